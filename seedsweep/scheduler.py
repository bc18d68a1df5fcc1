"""Scheduler pour les synchronisations automatiques."""
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from datetime import datetime, timedelta
import logging
import threading
from typing import Optional

from seedsweep.config import get_config
from seedsweep.core.settings import DEFAULT_SYNC_FREQUENCY, get_sync_frequency
from seedsweep.core.sync_runner import run_full_sync
from seedsweep.db.database import get_db_sync
from seedsweep.utils.duration import format_duration

logger = logging.getLogger(__name__)

PERIODIC_SYNC_JOB = "periodic_sync"
FREQUENCY_CHECK_JOB = "sync_frequency_check"

scheduler: Optional[BackgroundScheduler] = None
current_interval: Optional[timedelta] = None


def _default_frequency() -> str:
    try:
        return get_config().scheduler.default_sync_frequency
    except RuntimeError:
        return DEFAULT_SYNC_FREQUENCY


def read_sync_frequency() -> timedelta:
    db = get_db_sync()
    try:
        return get_sync_frequency(db, _default_frequency())
    finally:
        db.close()


def run_scheduled_sync():
    """Exécute une sync planifiée; les erreurs sont journalisées, jamais propagées."""
    logger.info("Running scheduled sync")
    try:
        run_full_sync()
    except Exception as e:
        logger.error(f"Error in scheduled sync: {str(e)}")


def check_sync_frequency():
    """Replanifie periodic_sync si le paramètre sync_frequency a changé."""
    global current_interval
    if scheduler is None:
        return
    try:
        interval = read_sync_frequency()
    except Exception as e:
        logger.error(f"Failed to read sync frequency: {str(e)}")
        return
    if interval == current_interval:
        return

    scheduler.reschedule_job(PERIODIC_SYNC_JOB, trigger=IntervalTrigger(seconds=interval.total_seconds()))
    logger.info(f"Sync frequency changed to {format_duration(interval)}, rescheduled")
    current_interval = interval


def trigger_sync() -> bool:
    """Lance une sync immédiate, en parallèle de la sync périodique.

    Sans scheduler (désactivé dans la config), la sync tourne dans un thread dédié.
    Retourne True si elle passe par le scheduler.
    """
    if scheduler is None:
        thread = threading.Thread(target=run_scheduled_sync, name="manual-sync", daemon=True)
        thread.start()
        logger.info("Manual sync started (scheduler not running)")
        return False
    scheduler.add_job(run_scheduled_sync, next_run_time=datetime.now(), misfire_grace_time=None)
    logger.info("Manual sync triggered")
    return True


def start_scheduler():
    """Démarre le scheduler si configuré."""
    global scheduler, current_interval
    config = get_config()

    if not config.scheduler.enabled:
        logger.info("Scheduler is disabled")
        return

    current_interval = read_sync_frequency()
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        run_scheduled_sync,
        trigger=IntervalTrigger(seconds=current_interval.total_seconds()),
        id=PERIODIC_SYNC_JOB,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        check_sync_frequency,
        trigger=IntervalTrigger(seconds=config.scheduler.frequency_check_seconds),
        id=FREQUENCY_CHECK_JOB,
        replace_existing=True,
    )

    scheduler.start()
    logger.info(f"Scheduler started with sync frequency: {format_duration(current_interval)}")


def stop_scheduler():
    """Arrête le scheduler."""
    global scheduler, current_interval
    if scheduler:
        scheduler.shutdown(wait=False)
        scheduler = None
        current_interval = None
        logger.info("Scheduler stopped")
