"""Overseerr API client."""
import logging
import httpx
from typing import List, Dict, Any, Optional

from seedsweep.config import ServiceConfig
from seedsweep.errors import ServiceError
from seedsweep.utils.http_client import CircuitBreaker, ServiceHTTPClient

logger = logging.getLogger(__name__)

PAGE_SIZE = 100


def effective_media_type(request: Dict[str, Any]) -> str:
    """Type local ("movie"/"series") d'une request, "" si inconnu.

    Le type de premier niveau est prioritaire, sinon celui de l'objet media.
    Overseerr utilise "tv" pour les séries.
    """
    media = request.get("media") or {}
    media_type = request.get("mediaType") or request.get("type") or media.get("mediaType") or ""
    if media_type == "tv":
        return "series"
    return media_type


def request_matches(
    request: Dict[str, Any],
    media_type: str,
    tmdb_id: Optional[int] = None,
    tvdb_id: Optional[int] = None,
) -> bool:
    """Vérifie qu'une request Overseerr correspond à un média local.

    Un type vide côté request matche n'importe quel type (match par ID seul).
    """
    request_type = effective_media_type(request)
    if request_type and request_type != media_type:
        return False

    media = request.get("media") or {}
    if media_type == "movie":
        return bool(tmdb_id) and media.get("tmdbId") == tmdb_id
    if media_type == "series":
        return bool(tvdb_id) and media.get("tvdbId") == tvdb_id
    return False


class OverseerrService:
    """Service pour interagir avec Overseerr."""

    name = "overseerr"

    def __init__(self, service_config: ServiceConfig, timeout: float = 30.0,
                 http: Optional[ServiceHTTPClient] = None, max_retries: int = 3,
                 circuit_breaker: Optional[CircuitBreaker] = None):
        self.base_url = service_config.url.rstrip("/")
        self.api_key = service_config.api_key
        self.http = http or ServiceHTTPClient(
            self.name,
            f"{self.base_url}/api/v1",
            headers=self._get_headers(),
            timeout=timeout,
            max_retries=max_retries,
            circuit_breaker=circuit_breaker,
        )

    def _get_headers(self) -> Dict[str, str]:
        """Get API headers."""
        return {"X-Api-Key": self.api_key}

    def get_requests(self) -> List[Dict[str, Any]]:
        """Récupère toutes les demandes depuis Overseerr (toutes les pages)."""
        results: List[Dict[str, Any]] = []
        skip = 0
        while True:
            try:
                data = self.http.get("/request", params={"take": PAGE_SIZE, "skip": skip})
            except httpx.HTTPError as e:
                raise ServiceError(self.name, "fetch requests", e) from e

            page = data.get("results", []) if isinstance(data, dict) else []
            results.extend(page)

            page_info = (data.get("pageInfo") or {}) if isinstance(data, dict) else {}
            total = page_info.get("results")
            skip += len(page)
            if len(page) < PAGE_SIZE or (total is not None and skip >= total):
                break
        return results

    def delete_request(self, request_id: int) -> None:
        """Supprime une demande."""
        try:
            self.http.delete(f"/request/{request_id}")
        except httpx.HTTPError as e:
            raise ServiceError(self.name, f"delete request {request_id}", e) from e

    def find_request_by_media_id(
        self,
        tmdb_id: Optional[int],
        tvdb_id: Optional[int],
        media_type: str,
    ) -> Optional[Dict[str, Any]]:
        """Retrouve la request d'un média par TMDB (films) ou TVDB (séries)."""
        requests = self.get_requests()
        logger.debug(
            f"Searching {len(requests)} Overseerr requests "
            f"(tmdb={tmdb_id}, tvdb={tvdb_id}, type={media_type})"
        )
        for request in requests:
            if request_matches(request, media_type, tmdb_id=tmdb_id, tvdb_id=tvdb_id):
                return request
        return None
