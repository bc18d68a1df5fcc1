"""Moteur d'éligibilité: un média peut-il être supprimé sans enfreindre les règles du tracker ?"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from seedsweep.db.models import MediaItem, Torrent, WatchHistory
from seedsweep.errors import MediaItemNotFoundError

NO_TORRENTS_REASON = "No torrents found for this media item"


@dataclass
class TorrentEligibility:
    hash: str
    is_eligible: bool
    reason: str
    tracker_type: str
    seeding_time: int
    required_time: Optional[int]
    ratio: float
    required_ratio: Optional[float]
    is_seeding: bool


@dataclass
class EligibilityStatus:
    """Résultat de check_eligibility.

    Les champs de résumé reprennent le premier torrent lié (ordre d'id);
    le détail de chaque torrent est dans ``torrents``.
    """
    is_eligible: bool = False
    reason: str = ""
    seeding_time: int = 0
    required_time: Optional[int] = None  # None = infini pour un tracker privé
    seeding_ratio: float = 0.0
    required_ratio: Optional[float] = None
    tracker_type: str = "unknown"
    is_seeding: bool = False
    last_watched: Optional[datetime] = None
    play_count: int = 0
    torrents: List[TorrentEligibility] = field(default_factory=list)


def check_torrent_eligibility(torrent: Torrent) -> Tuple[bool, str]:
    """Règles par torrent (fonction pure)."""
    seeding_time = torrent.seeding_time_seconds or 0
    ratio = torrent.ratio or 0.0
    required_time = torrent.seeding_required_seconds
    required_ratio = torrent.seeding_required_ratio

    # Trackers publics: éligibles sauf override
    if torrent.tracker_type == "public":
        if required_time is not None and seeding_time < required_time:
            return False, f"Seeding time {seeding_time}s < required {required_time}s"
        if required_ratio is not None and ratio < required_ratio:
            return False, f"Ratio {ratio:.2f} < required {required_ratio:.2f}"
        return True, "Public tracker - eligible"

    # Privé (ou inconnu): exigences obligatoires
    if required_time is None:
        return False, "Infinite seeding time required"
    if seeding_time < required_time:
        return False, f"Seeding time {seeding_time}s < required {required_time}s"
    if required_ratio is not None and ratio < required_ratio:
        return False, f"Ratio {ratio:.2f} < required {required_ratio:.2f}"
    if not torrent.is_seeding:
        return False, "Torrent is not currently seeding"
    return True, "All requirements met"


class EligibilityService:
    """Calcule l'éligibilité à la suppression sans rien modifier."""

    def __init__(self, db: Session):
        self.db = db

    def check_eligibility(self, media_item_id: int) -> EligibilityStatus:
        item = self.db.get(MediaItem, media_item_id)
        if item is None:
            raise MediaItemNotFoundError(media_item_id)

        status = EligibilityStatus()
        self._apply_watch_stats(status, media_item_id)

        torrents = (
            self.db.query(Torrent)
            .filter(Torrent.media_item_id == media_item_id)
            .order_by(Torrent.id)
            .all()
        )
        if not torrents:
            status.reason = NO_TORRENTS_REASON
            return status

        first_failure: Optional[str] = None
        for torrent in torrents:
            eligible, reason = check_torrent_eligibility(torrent)
            status.torrents.append(TorrentEligibility(
                hash=torrent.hash,
                is_eligible=eligible,
                reason=reason,
                tracker_type=torrent.tracker_type or "unknown",
                seeding_time=torrent.seeding_time_seconds or 0,
                required_time=torrent.seeding_required_seconds,
                ratio=torrent.ratio or 0.0,
                required_ratio=torrent.seeding_required_ratio,
                is_seeding=bool(torrent.is_seeding),
            ))
            if not eligible and first_failure is None:
                first_failure = reason

        status.is_eligible = first_failure is None
        status.reason = first_failure or "All seeding requirements met"

        first = status.torrents[0]
        status.seeding_time = first.seeding_time
        status.required_time = first.required_time
        status.seeding_ratio = first.ratio
        status.required_ratio = first.required_ratio
        status.tracker_type = first.tracker_type
        status.is_seeding = first.is_seeding
        return status

    def _apply_watch_stats(self, status: EligibilityStatus, media_item_id: int) -> None:
        last_watched, play_count = (
            self.db.query(func.max(WatchHistory.last_watched_at), func.sum(WatchHistory.play_count))
            .filter(WatchHistory.media_item_id == media_item_id)
            .one()
        )
        status.last_watched = last_watched
        status.play_count = int(play_count or 0)
