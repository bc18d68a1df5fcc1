"""Synchronisation des torrents qBittorrent et des exigences de seed."""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from seedsweep.core.torrent_matcher import TorrentMatcher, candidates_from_rows
from seedsweep.db.models import MediaItem, SeedingOverride, Torrent
from seedsweep.errors import ServiceError
from seedsweep.services.qbittorrent import SEEDING_STATES
from seedsweep.services.registry import IntegrationRegistry, get_integrations

logger = logging.getLogger(__name__)

# Préfixes de trackers publics connus; tout le reste est considéré privé
PUBLIC_TRACKER_PREFIXES = (
    "1337x",
    "rarbg",
    "thepiratebay",
    "torrentz",
    "kickass",
    "yts",
    "eztv",
    "nyaa",
)


def is_public_tracker(tracker: str) -> bool:
    tracker_lower = (tracker or "").lower()
    # URL d'annonce: on compare aussi l'hôte
    host = tracker_lower.split("://", 1)[-1]
    return any(
        tracker_lower.startswith(prefix) or host.startswith(prefix)
        for prefix in PUBLIC_TRACKER_PREFIXES
    )


@dataclass
class TrackerInfo:
    tracker_id: Optional[int] = None
    tracker_name: Optional[str] = None
    tracker_type: Optional[str] = None  # public, private
    required_seconds: Optional[int] = None
    required_ratio: Optional[float] = None


@dataclass
class TorrentSyncReport:
    synced: int = 0
    linked: int = 0
    unmatched: int = 0


class TorrentSyncService:
    """Synchronise la table torrents avec qBittorrent et Prowlarr."""

    def __init__(self, db: Session, integrations: Optional[IntegrationRegistry] = None):
        self.db = db
        self.integrations = integrations or get_integrations()

    def _fetch_indexers(self) -> Dict[str, Dict[str, Any]]:
        """Indexers Prowlarr par nom; un échec n'est pas fatal."""
        if not self.integrations.is_enabled("prowlarr"):
            return {}
        try:
            indexers = self.integrations.client("prowlarr").get_indexers()
        except ServiceError as e:
            logger.warning(f"Could not fetch Prowlarr indexers, skipping tracker requirements: {e}")
            return {}
        return {indexer.get("name"): indexer for indexer in indexers if indexer.get("name")}

    def resolve_tracker(self, tracker: str, indexers: Dict[str, Dict[str, Any]]) -> TrackerInfo:
        """Indexer Prowlarr par nom, sinon classification public/privé."""
        if not tracker:
            return TrackerInfo()

        indexer = indexers.get(tracker)
        if indexer is not None:
            min_seed = indexer.get("minSeedTime")
            min_ratio = indexer.get("minRatio")
            info = TrackerInfo(
                tracker_id=indexer.get("id"),
                tracker_name=indexer.get("name"),
                tracker_type=indexer.get("privacy") or "private",
                required_seconds=int(min_seed) if min_seed is not None else None,
                required_ratio=float(min_ratio) if min_ratio is not None else None,
            )
        else:
            info = TrackerInfo(
                tracker_name=tracker,
                tracker_type="public" if is_public_tracker(tracker) else "private",
            )
        return self.apply_override(info)

    def apply_override(self, info: TrackerInfo) -> TrackerInfo:
        """Les valeurs non nulles d'un override remplacent celles de l'indexer."""
        override = None
        if info.tracker_id is not None:
            override = self.db.query(SeedingOverride).filter(
                SeedingOverride.tracker_id == info.tracker_id
            ).first()
        if override is None and info.tracker_name:
            override = self.db.query(SeedingOverride).filter(
                SeedingOverride.tracker_name == info.tracker_name
            ).first()
        if override is None:
            return info

        if override.min_seeding_time_seconds is not None:
            info.required_seconds = override.min_seeding_time_seconds
        if override.min_seeding_ratio is not None:
            info.required_ratio = override.min_seeding_ratio
        return info

    def sync_torrents(self) -> TorrentSyncReport:
        """Importe tous les torrents et les relie aux médias."""
        qbittorrent = self.integrations.client("qbittorrent")
        logger.info("Syncing torrents from qBittorrent...")
        torrents = qbittorrent.get_torrents()
        indexers = self._fetch_indexers()

        media_rows = self.db.query(MediaItem.id, MediaItem.title, MediaItem.file_path).all()
        matcher = TorrentMatcher(candidates_from_rows(media_rows))

        report = TorrentSyncReport()
        for data in torrents:
            if self._upsert_torrent(data, matcher, indexers):
                report.synced += 1

        report.unmatched = self.db.query(Torrent).filter(Torrent.media_item_id.is_(None)).count()
        report.linked = self.db.query(Torrent).filter(Torrent.media_item_id.isnot(None)).count()
        if report.unmatched:
            logger.warning(f"{report.unmatched} torrents are not linked to any media item")
        logger.info(f"qBittorrent sync complete: {report.synced}/{len(torrents)} torrents")
        return report

    def _upsert_torrent(self, data: Dict[str, Any], matcher: TorrentMatcher,
                        indexers: Dict[str, Dict[str, Any]]) -> bool:
        torrent_hash = data.get("hash")
        if not torrent_hash:
            return False

        media_item_id, reason = matcher.match(data.get("name", ""), data.get("content_path"))
        now = datetime.utcnow()
        added_on = data.get("added_on") or 0

        try:
            tracker = self.resolve_tracker(data.get("tracker", ""), indexers)
            fields = dict(
                name=data.get("name"),
                tracker_id=tracker.tracker_id,
                tracker_name=tracker.tracker_name,
                tracker_type=tracker.tracker_type,
                added_date=datetime.fromtimestamp(added_on, tz=timezone.utc).replace(tzinfo=None) if added_on > 0 else None,
                seeding_time_seconds=int(data.get("seeding_time") or 0),
                upload_bytes=int(data.get("uploaded") or 0),
                download_bytes=int(data.get("downloaded") or 0),
                ratio=float(data.get("ratio") or 0.0),
                seeding_required_seconds=tracker.required_seconds,
                seeding_required_ratio=tracker.required_ratio,
                is_seeding=data.get("state") in SEEDING_STATES,
                last_synced_at=now,
            )

            existing = self.db.query(Torrent).filter(Torrent.hash == torrent_hash).first()
            if existing is None:
                self.db.add(Torrent(hash=torrent_hash, media_item_id=media_item_id, **fields))
            else:
                for key, value in fields.items():
                    setattr(existing, key, value)
                # jamais de dé-liaison: on ne relie que vers un nouveau média
                if media_item_id is not None and media_item_id != existing.media_item_id:
                    existing.media_item_id = media_item_id
            self.db.commit()
            if media_item_id is not None:
                logger.debug(f"Torrent {torrent_hash[:8]} linked to media {media_item_id} ({reason})")
            return True
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to upsert torrent {torrent_hash}: {e}")
            return False
