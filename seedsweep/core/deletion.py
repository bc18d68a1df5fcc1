"""Suppression d'un média sur tous les systèmes (best-effort, sans rollback)."""
import logging
import os
import shutil
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from seedsweep.core.locks import DeletionGuard, get_deletion_guard, manager_key
from seedsweep.db.models import AuditLog, MediaItem, Torrent
from seedsweep.errors import DeletionError, MediaItemNotFoundError, SeedSweepError, StepFailure
from seedsweep.services.registry import IntegrationRegistry, get_integrations

logger = logging.getLogger(__name__)


def delete_files(file_path: str) -> None:
    """Supprime un dossier (récursif) ou un fichier puis son dossier parent s'il est vide.

    Un chemin inexistant est considéré comme déjà supprimé.
    """
    if not os.path.lexists(file_path):
        logger.warning(f"File path does not exist, skipping deletion: {file_path}")
        return

    if os.path.isdir(file_path) and not os.path.islink(file_path):
        logger.info(f"Deleting directory and all contents: {file_path}")
        shutil.rmtree(file_path)
        return

    logger.info(f"Deleting file: {file_path}")
    os.remove(file_path)

    # Nettoyage du dossier film/saison devenu vide
    parent = os.path.dirname(file_path)
    if parent and os.path.isdir(parent) and not os.listdir(parent):
        try:
            os.rmdir(parent)
            logger.info(f"Removed empty parent directory: {parent}")
        except OSError as e:
            logger.warning(f"Failed to remove empty parent directory {parent}: {e}")


@dataclass
class DeletionResult:
    media_id: int
    title: str
    media_type: str
    failures: List[StepFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


@dataclass
class BulkDeletionResult:
    total: int
    deleted: int = 0
    errors: List[str] = field(default_factory=list)


class DeletionService:
    """Orchestration de la suppression d'un média.

    Ordre fixe: fichiers, Sonarr/Radarr, Overseerr, qBittorrent, audit, base locale.
    Chaque étape distante est isolée: son échec est noté et on continue.
    Seule la suppression locale finale est fatale.
    """

    def __init__(self, db: Session, integrations: Optional[IntegrationRegistry] = None,
                 guard: Optional[DeletionGuard] = None):
        self.db = db
        self.integrations = integrations or get_integrations()
        self.guard = guard or get_deletion_guard()

    def delete_media_item(self, media_id: int, user_id: Optional[int] = None) -> DeletionResult:
        """Supprime un média; lève DeletionError si des étapes ont échoué.

        Dans tous les cas la ligne locale est supprimée quand cette méthode
        retourne ou lève DeletionError.
        """
        item = self.db.get(MediaItem, media_id)
        if item is None:
            raise MediaItemNotFoundError(media_id)

        keys = (manager_key("sonarr", item.sonarr_id), manager_key("radarr", item.radarr_id))
        with self.guard.deleting(media_id, *keys):
            result = self._run(item, user_id)

        if result.failures:
            raise DeletionError(media_id, result.failures, title=result.title)
        return result

    def delete_media_items(self, media_ids: List[int], user_id: Optional[int] = None) -> BulkDeletionResult:
        """Supprime plusieurs médias l'un après l'autre; un échec n'arrête pas les suivants.

        Un média supprimé avec des étapes en échec compte comme une erreur.
        """
        result = BulkDeletionResult(total=len(media_ids))
        for media_id in media_ids:
            try:
                self.delete_media_item(media_id, user_id)
                result.deleted += 1
            except SeedSweepError as e:
                logger.error(f"Failed to delete media item {media_id} in bulk: {e}")
                result.errors.append(f"Media ID {media_id}: {e}")
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Failed to delete media item {media_id} in bulk: {e}")
                result.errors.append(f"Media ID {media_id}: {e}")
        return result

    def _run(self, item: MediaItem, user_id: Optional[int]) -> DeletionResult:
        result = DeletionResult(media_id=item.id, title=item.title, media_type=item.type)
        logger.info(f"Starting media deletion: id={item.id}, title={item.title}, type={item.type}")

        # Step 2: fichiers sur disque
        if item.file_path:
            try:
                delete_files(item.file_path)
            except OSError as e:
                self._record(result, "filesystem", f"failed to delete files: {e}")

        # Step 3: Sonarr/Radarr
        self._delete_from_manager(item, result)

        # Step 4: Overseerr
        self._delete_request(item, result)

        # Step 5: qBittorrent
        self._delete_torrents(item, result)

        # Step 6: audit
        self._write_audit(item, user_id, result)

        # Step 7: base locale (fatal)
        self.db.delete(item)
        self.db.commit()

        logger.info(
            f"Media deletion completed: id={result.media_id}, title={result.title}, "
            f"errors={len(result.failures)}"
        )
        return result

    def _record(self, result: DeletionResult, step: str, message: str) -> None:
        logger.error(f"Deletion step '{step}' failed for media {result.media_id}: {message}")
        result.failures.append(StepFailure(step=step, message=message))

    def _delete_from_manager(self, item: MediaItem, result: DeletionResult) -> None:
        if item.type == "series" and item.sonarr_id is not None:
            name, manager_id = "sonarr", item.sonarr_id
        elif item.type == "movie" and item.radarr_id is not None:
            name, manager_id = "radarr", item.radarr_id
        else:
            return
        if not self.integrations.is_enabled(name):
            logger.info(f"{name} not enabled, skipping manager deletion")
            return

        client = self.integrations.client(name)
        delete = client.delete_series if name == "sonarr" else client.delete_movie
        unmonitor = client.unmonitor_series if name == "sonarr" else client.unmonitor_movie
        try:
            # fichiers déjà supprimés; pas d'exclusion pour pouvoir redemander le média
            delete(manager_id, delete_files=False, add_import_exclusion=False)
            logger.info(f"Deleted from {name} (not added to exclusion list): {manager_id}")
            return
        except Exception as e:
            logger.warning(f"Failed to delete from {name}, trying unmonitor: {e}")

        try:
            unmonitor(manager_id)
            logger.info(f"Unmonitored in {name}: {manager_id}")
        except Exception as e:
            self._record(result, name, f"failed to delete/unmonitor from {name}: {e}")

    def _delete_request(self, item: MediaItem, result: DeletionResult) -> None:
        if not self.integrations.is_enabled("overseerr"):
            return
        overseerr = self.integrations.client("overseerr")

        request_id = item.overseerr_request_id
        if request_id is None and (item.tmdb_id or item.tvdb_id):
            try:
                request = overseerr.find_request_by_media_id(item.tmdb_id, item.tvdb_id, item.type)
            except Exception as e:
                logger.warning(f"Failed to find Overseerr request for media {item.id}: {e}")
                request = None
            if request is not None:
                request_id = request.get("id")
                logger.info(f"Found Overseerr request {request_id} by media ID")

        if not request_id:
            logger.info("No Overseerr request found, skipping Overseerr deletion")
            return

        try:
            overseerr.delete_request(request_id)
            logger.info(f"Deleted Overseerr request {request_id}")
        except Exception as e:
            self._record(result, "overseerr", f"failed to delete request {request_id}: {e}")

    def _delete_torrents(self, item: MediaItem, result: DeletionResult) -> None:
        hashes = [
            h for (h,) in self.db.query(Torrent.hash).filter(Torrent.media_item_id == item.id).all()
        ]
        if not hashes:
            return
        if not self.integrations.is_enabled("qbittorrent"):
            logger.info("qBittorrent not enabled, skipping torrent deletion")
            return

        qbittorrent = self.integrations.client("qbittorrent")
        for torrent_hash in hashes:
            try:
                qbittorrent.delete_torrent(torrent_hash, delete_files=True)
                logger.info(f"Deleted torrent {torrent_hash}")
            except Exception as e:
                self._record(result, "qbittorrent", f"failed to delete torrent {torrent_hash}: {e}")

    def _write_audit(self, item: MediaItem, user_id: Optional[int], result: DeletionResult) -> None:
        message = f"Deleted media: {item.title} (type: {item.type})"
        try:
            self.db.add(AuditLog(
                user_id=user_id,
                action="delete",
                media_item_id=item.id,
                media_title=item.title,
                media_type=item.type,
                details={
                    "message": message,
                    "errors": [str(f) for f in result.failures],
                },
            ))
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create audit log for media {item.id}: {e}")
