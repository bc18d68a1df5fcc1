"""Registre des intégrations actives.

Chaque service est soit ``Enabled(client)`` soit ``Disabled(reason)``;
la question "cette intégration est-elle active ?" est typée au lieu d'un
test de None dispersé dans le code.
"""
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from seedsweep.config import IntegrationsConfig, SERVICE_NAMES
from seedsweep.errors import IntegrationDisabledError
from seedsweep.services.overseerr import OverseerrService
from seedsweep.services.prowlarr import ProwlarrService
from seedsweep.services.qbittorrent import QBittorrentService
from seedsweep.services.radarr import RadarrService
from seedsweep.services.sonarr import SonarrService
from seedsweep.utils.http_client import CircuitBreaker

logger = logging.getLogger(__name__)

SERVICE_CLASSES = {
    "sonarr": SonarrService,
    "radarr": RadarrService,
    "overseerr": OverseerrService,
    "prowlarr": ProwlarrService,
    "qbittorrent": QBittorrentService,
}


@dataclass(frozen=True)
class Enabled:
    client: Any


@dataclass(frozen=True)
class Disabled:
    reason: str = "integration not enabled"


Integration = Union[Enabled, Disabled]


class IntegrationRegistry:
    """Capability map keyed by service name."""

    def __init__(self, integrations: Optional[Mapping[str, Integration]] = None):
        self._integrations: Dict[str, Integration] = dict(integrations or {})

    def get(self, name: str) -> Integration:
        return self._integrations.get(name, Disabled())

    def is_enabled(self, name: str) -> bool:
        return isinstance(self.get(name), Enabled)

    def client(self, name: str) -> Any:
        """Retourne le client d'un service actif, sinon IntegrationDisabledError."""
        integration = self.get(name)
        if isinstance(integration, Enabled):
            return integration.client
        raise IntegrationDisabledError(name, integration.reason)

    def enabled_names(self):
        return [name for name in SERVICE_NAMES if self.is_enabled(name)]


def _make_client(name: str, service_config, config: IntegrationsConfig):
    if name == "qbittorrent":
        return QBittorrentService(service_config, timeout=config.timeout_seconds)
    return SERVICE_CLASSES[name](
        service_config,
        timeout=config.timeout_seconds,
        max_retries=config.max_retries,
        circuit_breaker=CircuitBreaker(
            failure_threshold=config.circuit_breaker_threshold,
            timeout=config.circuit_breaker_timeout,
        ),
    )


def build_integrations(config: IntegrationsConfig) -> IntegrationRegistry:
    """Construit des clients neufs pour chaque intégration configurée."""
    integrations: Dict[str, Integration] = {}
    for name in SERVICE_NAMES:
        service_config = getattr(config, name)
        if not service_config.enabled:
            integrations[name] = Disabled("integration not enabled")
        elif not service_config.url:
            integrations[name] = Disabled("integration has no URL configured")
        else:
            integrations[name] = Enabled(_make_client(name, service_config, config))
    logger.info(f"Integrations built: {[n for n, i in integrations.items() if isinstance(i, Enabled)]}")
    return IntegrationRegistry(integrations)


# Snapshot actif (config + registre), remplacé d'un bloc lors d'un reload
_active: Tuple[IntegrationsConfig, IntegrationRegistry] = (
    IntegrationsConfig(),
    IntegrationRegistry(),
)
_swap_lock = threading.Lock()


def get_integrations() -> IntegrationRegistry:
    return _active[1]


def get_integrations_config() -> IntegrationsConfig:
    return _active[0]


def activate(config: IntegrationsConfig, registry: Optional[IntegrationRegistry] = None) -> IntegrationRegistry:
    """Swap the active config snapshot and registry in one assignment."""
    global _active
    registry = registry if registry is not None else build_integrations(config)
    with _swap_lock:
        _active = (config, registry)
    return registry
