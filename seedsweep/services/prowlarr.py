"""Prowlarr API client."""
import httpx
from typing import List, Dict, Any, Optional

from seedsweep.config import ServiceConfig
from seedsweep.errors import ServiceError
from seedsweep.utils.http_client import CircuitBreaker, ServiceHTTPClient


def _field_value(indexer: Dict[str, Any], suffix: str) -> Any:
    for field in indexer.get("fields") or []:
        if str(field.get("name", "")).endswith(suffix):
            return field.get("value")
    return None


def normalize_indexer(indexer: Dict[str, Any]) -> Dict[str, Any]:
    """Ajoute minSeedTime (secondes) / minRatio à partir des seedCriteria si absents."""
    result = dict(indexer)
    if result.get("minSeedTime") is None:
        minutes = _field_value(indexer, "seedCriteria.seedTime")
        if minutes not in (None, ""):
            result["minSeedTime"] = int(float(minutes) * 60)
    if result.get("minRatio") is None:
        ratio = _field_value(indexer, "seedCriteria.seedRatio")
        if ratio not in (None, ""):
            result["minRatio"] = float(ratio)
    return result


class ProwlarrService:
    """Service pour lister les indexers Prowlarr."""

    name = "prowlarr"

    def __init__(self, service_config: ServiceConfig, timeout: float = 30.0,
                 http: Optional[ServiceHTTPClient] = None, max_retries: int = 3,
                 circuit_breaker: Optional[CircuitBreaker] = None):
        self.base_url = service_config.url.rstrip("/")
        self.api_key = service_config.api_key
        self.http = http or ServiceHTTPClient(
            self.name,
            f"{self.base_url}/api/v1",
            headers={"X-Api-Key": self.api_key},
            timeout=timeout,
            max_retries=max_retries,
            circuit_breaker=circuit_breaker,
        )

    def get_indexers(self) -> List[Dict[str, Any]]:
        """Récupère tous les indexers (id, name, protocol, privacy, minSeedTime, minRatio)."""
        try:
            indexers = self.http.get("/indexer")
        except httpx.HTTPError as e:
            raise ServiceError(self.name, "fetch indexers", e) from e
        return [normalize_indexer(indexer) for indexer in indexers or []]
