"""Sonarr API client."""
import logging
import httpx
from typing import List, Dict, Any, Optional

from seedsweep.config import ServiceConfig
from seedsweep.errors import ServiceError
from seedsweep.utils.http_client import CircuitBreaker, ServiceHTTPClient

logger = logging.getLogger(__name__)

DEFAULT_ROOT_FOLDER = "/tv"


class SonarrService:
    """Service pour interagir avec Sonarr."""

    name = "sonarr"

    def __init__(self, service_config: ServiceConfig, timeout: float = 30.0,
                 http: Optional[ServiceHTTPClient] = None, max_retries: int = 3,
                 circuit_breaker: Optional[CircuitBreaker] = None):
        self.base_url = service_config.url.rstrip("/")
        self.api_key = service_config.api_key
        self.http = http or ServiceHTTPClient(
            self.name,
            f"{self.base_url}/api/v3",
            headers=self._get_headers(),
            timeout=timeout,
            max_retries=max_retries,
            circuit_breaker=circuit_breaker,
        )

    def _get_headers(self) -> Dict[str, str]:
        """Get API headers."""
        return {"X-Api-Key": self.api_key}

    def get_series(self) -> List[Dict[str, Any]]:
        """Récupère toutes les séries depuis Sonarr."""
        try:
            return self.http.get("/series")
        except httpx.HTTPError as e:
            raise ServiceError(self.name, "fetch series", e) from e

    def get_series_by_id(self, series_id: int) -> Dict[str, Any]:
        """Récupère une série."""
        try:
            return self.http.get(f"/series/{series_id}")
        except httpx.HTTPError as e:
            raise ServiceError(self.name, f"fetch series {series_id}", e) from e

    def delete_series(self, series_id: int, delete_files: bool = False,
                      add_import_exclusion: bool = False) -> None:
        """Supprime une série via l'API Sonarr."""
        params = {
            "deleteFiles": str(delete_files).lower(),
            "addImportExclusion": str(add_import_exclusion).lower(),
        }
        try:
            self.http.delete(f"/series/{series_id}", params=params)
        except httpx.HTTPError as e:
            raise ServiceError(self.name, f"delete series {series_id}", e) from e

    def unmonitor_series(self, series_id: int) -> None:
        """Passe une série en non-surveillée (GET puis PUT de l'objet complet)."""
        series = self.get_series_by_id(series_id)
        series["monitored"] = False

        # Sonarr refuse le PUT sans profil qualité / dossier racine
        if not series.get("qualityProfileId") or not series.get("rootFolderPath"):
            sibling: Dict[str, Any] = {}
            try:
                all_series = self.get_series()
                if all_series:
                    sibling = all_series[0]
            except ServiceError as e:
                logger.warning(f"Could not fetch sibling series for defaults: {e}")
            if not series.get("qualityProfileId"):
                series["qualityProfileId"] = sibling.get("qualityProfileId") or 1
            if not series.get("rootFolderPath"):
                series["rootFolderPath"] = sibling.get("rootFolderPath") or DEFAULT_ROOT_FOLDER

        try:
            self.http.put("/series", json=series)
        except httpx.HTTPError as e:
            raise ServiceError(self.name, f"unmonitor series {series_id}", e) from e
