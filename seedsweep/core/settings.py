"""Paramètres persistés (table settings) et rechargement des intégrations."""
import logging
from datetime import timedelta
from typing import Dict, Optional

from sqlalchemy.orm import Session

from seedsweep.config import Config, IntegrationsConfig
from seedsweep.db.models import Setting
from seedsweep.services.registry import IntegrationRegistry, activate
from seedsweep.utils.duration import parse_duration

logger = logging.getLogger(__name__)

SYNC_FREQUENCY_KEY = "sync_frequency"
DEFAULT_SYNC_FREQUENCY = "5m"


def load_settings(db: Session) -> Dict[str, str]:
    return {row.key: row.value for row in db.query(Setting).all() if row.value is not None}


def get_setting(db: Session, key: str, default: Optional[str] = None) -> Optional[str]:
    row = db.get(Setting, key)
    if row is None or row.value in (None, ""):
        return default
    return row.value


def set_setting(db: Session, key: str, value: str, setting_type: str = "string") -> Setting:
    row = db.get(Setting, key)
    if row is None:
        row = Setting(key=key, value=value, type=setting_type)
        db.add(row)
    else:
        row.value = value
        row.type = setting_type
    db.commit()
    return row


def get_sync_frequency(db: Session, default: str = DEFAULT_SYNC_FREQUENCY) -> timedelta:
    """Intervalle de sync persisté; valeur invalide -> défaut."""
    raw = get_setting(db, SYNC_FREQUENCY_KEY, default)
    try:
        frequency = parse_duration(raw)
    except ValueError:
        logger.warning(f"Invalid sync_frequency setting {raw!r}, using {default}")
        frequency = parse_duration(default)
    if frequency.total_seconds() <= 0:
        return parse_duration(default)
    return frequency


def reload_integrations(db: Session, static: Optional[Config] = None) -> IntegrationRegistry:
    """Construit un nouveau snapshot de config et l'active d'un bloc."""
    snapshot = IntegrationsConfig.from_sources(static, load_settings(db))
    registry = activate(snapshot)
    logger.info("Loaded integration settings from database")
    return registry
