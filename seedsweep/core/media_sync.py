"""Synchronisation des médias depuis Sonarr, Radarr et Overseerr."""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from seedsweep.core.locks import DeletionGuard, get_deletion_guard, manager_key
from seedsweep.db.models import MediaItem
from seedsweep.errors import IntegrationDisabledError
from seedsweep.services.overseerr import effective_media_type
from seedsweep.services.registry import IntegrationRegistry, get_integrations

logger = logging.getLogger(__name__)


def parse_added_date(value: Optional[str]) -> Optional[datetime]:
    """Parse une date ISO 8601 / RFC 3339 en datetime UTC naïf; None si invalide."""
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def size_on_disk(record: Dict[str, Any]) -> int:
    """Taille depuis statistics.sizeOnDisk (0 si pas encore téléchargé)."""
    stats = record.get("statistics") or {}
    if stats.get("sizeOnDisk"):
        return int(stats["sizeOnDisk"])
    # Radarr v3 expose aussi sizeOnDisk au premier niveau
    return int(record.get("sizeOnDisk") or 0)


@dataclass
class StageResult:
    status: str  # ok, skipped, failed
    count: int = 0
    error: Optional[str] = None


@dataclass
class SyncReport:
    stages: Dict[str, StageResult] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return all(stage.status != "failed" for stage in self.stages.values())

    def as_dict(self) -> Dict[str, Any]:
        return {name: vars(stage) for name, stage in self.stages.items()}


class MediaSyncService:
    """Synchronise la table media_items avec les gestionnaires de médias."""

    def __init__(self, db: Session, integrations: Optional[IntegrationRegistry] = None,
                 guard: Optional[DeletionGuard] = None):
        self.db = db
        self.integrations = integrations or get_integrations()
        self.guard = guard or get_deletion_guard()

    def sync_sonarr(self) -> int:
        """Importe toutes les séries Sonarr. Retourne le nombre synchronisé."""
        sonarr = self.integrations.client("sonarr")
        logger.info("Syncing media from Sonarr...")
        series_list = sonarr.get_series()

        synced = 0
        for series in series_list:
            if self._upsert_media(
                manager="sonarr",
                media_type="series",
                record=series,
                secondary={"tvdb_id": series.get("tvdbId"), "tmdb_id": series.get("tmdbId")},
            ):
                synced += 1

        logger.info(f"Sonarr sync complete: {synced}/{len(series_list)} series")
        return synced

    def sync_radarr(self) -> int:
        """Importe tous les films Radarr (y compris non téléchargés)."""
        radarr = self.integrations.client("radarr")
        logger.info("Syncing media from Radarr...")
        movies = radarr.get_movies()

        synced = 0
        for movie in movies:
            if self._upsert_media(
                manager="radarr",
                media_type="movie",
                record=movie,
                secondary={"tmdb_id": movie.get("tmdbId")},
            ):
                synced += 1

        logger.info(f"Radarr sync complete: {synced}/{len(movies)} movies")
        return synced

    def _upsert_media(self, manager: str, media_type: str, record: Dict[str, Any],
                      secondary: Dict[str, Any]) -> bool:
        manager_id = record.get("id")
        if manager_id is None:
            logger.warning(f"Skipping {manager} record without id: {record.get('title')}")
            return False
        if self.guard.is_blocked(manager_key(manager, manager_id)):
            logger.info(f"Skipping {manager} id {manager_id}: deletion in progress or just completed")
            return False

        id_column = MediaItem.sonarr_id if manager == "sonarr" else MediaItem.radarr_id
        title = record.get("title") or ""
        path = record.get("path") or None
        size = size_on_disk(record)
        now = datetime.utcnow()

        try:
            existing = self.db.query(MediaItem).filter(id_column == manager_id).first()
            if existing is None:
                item = MediaItem(
                    title=title,
                    type=media_type,
                    file_path=path,
                    file_size=size,
                    added_date=parse_added_date(record.get("added")),
                    last_synced_at=now,
                    **{f"{manager}_id": manager_id},
                    **{k: v for k, v in secondary.items() if v},
                )
                self.db.add(item)
            else:
                # overseerr_request_id / requested_by_user_id ne sont jamais touchés ici
                existing.title = title
                existing.file_path = path
                existing.file_size = size
                existing.last_synced_at = now
            self.db.commit()
            return True
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to upsert media item from {manager} (id={manager_id}, title={title}): {e}")
            return False

    def sync_overseerr_requests(self) -> int:
        """Relie les requests Overseerr aux médias existants. Retourne le nombre lié."""
        if not self.integrations.is_enabled("overseerr"):
            return 0
        overseerr = self.integrations.client("overseerr")

        logger.info("Syncing Overseerr requests...")
        requests = overseerr.get_requests()

        linked = 0
        for request in requests:
            item = self._find_item_for_request(request)
            if item is None:
                continue
            requested_by = (request.get("requestedBy") or {}).get("id")
            try:
                item.overseerr_request_id = request.get("id")
                item.requested_by_user_id = requested_by
                item.last_synced_at = datetime.utcnow()
                self.db.commit()
                linked += 1
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(
                    f"Failed to link Overseerr request {request.get('id')} to media item {item.id}: {e}"
                )

        logger.info(f"Overseerr request sync complete: linked {linked}/{len(requests)} requests")
        return linked

    def _find_item_for_request(self, request: Dict[str, Any]) -> Optional[MediaItem]:
        media = request.get("media") or {}
        media_type = effective_media_type(request)
        tmdb_id = media.get("tmdbId")
        tvdb_id = media.get("tvdbId")

        lookups = []
        if media_type in ("movie", "") and tmdb_id:
            lookups.append((MediaItem.tmdb_id == tmdb_id, "movie"))
        if media_type in ("series", "") and tvdb_id:
            lookups.append((MediaItem.tvdb_id == tvdb_id, "series"))

        for condition, local_type in lookups:
            try:
                item = self.db.query(MediaItem).filter(condition, MediaItem.type == local_type).first()
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.warning(f"Failed to find media item for Overseerr request {request.get('id')}: {e}")
                return None
            if item is not None:
                return item
        return None

    def sync_all(self) -> SyncReport:
        """Sonarr, puis Radarr, puis Overseerr (les requests ont besoin des médias).

        Un échec d'étape est journalisé sans interrompre les suivantes.
        """
        report = SyncReport()
        stages = [
            ("sonarr", self.sync_sonarr),
            ("radarr", self.sync_radarr),
            ("overseerr", self.sync_overseerr_requests),
        ]
        for name, stage in stages:
            if not self.integrations.is_enabled(name):
                report.stages[name] = StageResult(status="skipped")
                continue
            try:
                report.stages[name] = StageResult(status="ok", count=stage())
            except IntegrationDisabledError as e:
                report.stages[name] = StageResult(status="skipped", error=str(e))
            except Exception as e:
                logger.error(f"{name} sync failed: {e}")
                report.stages[name] = StageResult(status="failed", error=str(e))
        return report

    def list_media(self, user_id: Optional[int] = None, media_type: Optional[str] = None) -> List[MediaItem]:
        """Médias triés par titre, filtrés par demandeur Overseerr et/ou par type."""
        query = self.db.query(MediaItem)
        if user_id is not None:
            query = query.filter(MediaItem.requested_by_user_id == user_id)
        if media_type:
            query = query.filter(MediaItem.type == media_type)
        return query.order_by(MediaItem.title).all()
