"""Passe de synchronisation complète (médias puis torrents)."""
import logging
from typing import Any, Dict

from seedsweep.core.media_sync import MediaSyncService
from seedsweep.core.torrent_sync import TorrentSyncService
from seedsweep.db.database import get_db_sync
from seedsweep.errors import IntegrationDisabledError

logger = logging.getLogger(__name__)


def run_full_sync() -> Dict[str, Any]:
    """sync_all() puis sync_torrents(), chacun dans sa propre session.

    Les torrents sont synchronisés même si la sync des médias a échoué.
    """
    summary: Dict[str, Any] = {}

    db = get_db_sync()
    try:
        report = MediaSyncService(db).sync_all()
        summary["media"] = report.as_dict()
        if not report.ok:
            logger.warning(f"Media sync completed with errors: {report.as_dict()}")
    except Exception as e:
        logger.exception("Media sync failed")
        summary["media"] = {"error": str(e)}
    finally:
        db.close()

    db = get_db_sync()
    try:
        torrent_report = TorrentSyncService(db).sync_torrents()
        summary["torrents"] = vars(torrent_report)
    except IntegrationDisabledError as e:
        logger.info(f"Skipping torrent sync: {e}")
        summary["torrents"] = {"skipped": str(e)}
    except Exception as e:
        logger.exception("Torrent sync failed")
        summary["torrents"] = {"error": str(e)}
    finally:
        db.close()

    logger.info(f"Full sync finished: {summary}")
    return summary
