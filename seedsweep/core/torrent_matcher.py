"""Module de matching pour associer torrents qBittorrent aux médias."""
import os
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Set, Tuple
import structlog

logger = structlog.get_logger(__name__)

STOPWORDS = frozenset({"the", "a", "an", "and", "of", "le", "la", "les", "de", "des"})


@dataclass(frozen=True)
class MediaCandidate:
    """Média local candidat au matching."""
    id: int
    title: str
    file_path: Optional[str]


class TorrentMatcher:
    """Associe un torrent à un média par stratégies ordonnées.

    1. chemin identique
    2. le chemin local est un préfixe du content_path du torrent (le plus long d'abord)
    3. le content_path est un préfixe du chemin local (le plus long d'abord)
    4. inclusion de sous-chaîne (chemins locaux les plus courts d'abord)
    5. recouvrement de tokens entre nom du torrent et titre du média
    La première stratégie qui trouve un média gagne.
    """

    def __init__(self, candidates: Iterable[MediaCandidate], min_token_overlap: float = 1.0,
                 debug: bool = False):
        self.debug = debug
        self.min_token_overlap = min_token_overlap
        self.candidates: List[MediaCandidate] = list(candidates)
        # (candidate, normalized path), plus court d'abord pour la stratégie 4
        self._with_paths: List[Tuple[MediaCandidate, str]] = sorted(
            (
                (c, self.normalize_path(c.file_path))
                for c in self.candidates
                if c.file_path
            ),
            key=lambda pair: (len(pair[1]), pair[0].id),
        )
        # le chemin local le plus spécifique d'abord pour les préfixes
        self._longest_first = sorted(self._with_paths, key=lambda pair: (-len(pair[1]), pair[0].id))
        self._title_tokens = [(c, self.tokenize(c.title)) for c in self.candidates]

    @staticmethod
    def normalize_path(path: Optional[str]) -> str:
        """Normalise un chemin pour comparaison (sensible à la casse)."""
        if not path:
            return ""
        normalized = os.path.normpath(str(path).strip()).replace("\\", "/")
        if normalized != "/":
            normalized = normalized.rstrip("/")
        return normalized

    @staticmethod
    def tokenize(text: Optional[str]) -> Set[str]:
        if not text:
            return set()
        words = re.split(r"[^0-9a-z]+", text.lower())
        return {w for w in words if w and w not in STOPWORDS}

    def match(self, torrent_name: str, content_path: Optional[str]) -> Tuple[Optional[int], Optional[str]]:
        """Retourne (media_item_id, stratégie) ou (None, None)."""
        content = self.normalize_path(content_path)

        if content:
            for candidate, local in self._with_paths:
                if local == content:
                    return self._hit(candidate, "exact_path", torrent_name)

            for candidate, local in self._longest_first:
                if content.startswith(local + "/"):
                    return self._hit(candidate, "local_path_prefix", torrent_name)

            for candidate, local in self._longest_first:
                if local.startswith(content + "/"):
                    return self._hit(candidate, "content_path_prefix", torrent_name)

            for candidate, local in self._with_paths:
                if local in content or content in local:
                    return self._hit(candidate, "substring", torrent_name)

        name_tokens = self.tokenize(torrent_name)
        if name_tokens:
            best: Optional[MediaCandidate] = None
            best_score = 0.0
            best_size = 0
            for candidate, tokens in self._title_tokens:
                if not tokens:
                    continue
                score = len(tokens & name_tokens) / len(tokens)
                if score < self.min_token_overlap:
                    continue
                # à score égal, le titre le plus spécifique l'emporte
                if score > best_score or (score == best_score and len(tokens) > best_size):
                    best, best_score, best_size = candidate, score, len(tokens)
            if best is not None:
                return self._hit(best, "title_tokens", torrent_name)

        return None, None

    def _hit(self, candidate: MediaCandidate, reason: str, torrent_name: str) -> Tuple[int, str]:
        if self.debug:
            logger.debug("torrent_matched", torrent=torrent_name[:80], media_id=candidate.id, reason=reason)
        return candidate.id, reason


def candidates_from_rows(rows: Sequence) -> List[MediaCandidate]:
    return [MediaCandidate(id=r.id, title=r.title, file_path=r.file_path) for r in rows]
