"""Radarr API client."""
import logging
import httpx
from typing import List, Dict, Any, Optional

from seedsweep.config import ServiceConfig
from seedsweep.errors import ServiceError
from seedsweep.utils.http_client import CircuitBreaker, ServiceHTTPClient

logger = logging.getLogger(__name__)

DEFAULT_ROOT_FOLDER = "/movies"


class RadarrService:
    """Service pour interagir avec Radarr."""

    name = "radarr"

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

    def get_movies(self) -> List[Dict[str, Any]]:
        """Récupère tous les films depuis Radarr."""
        try:
            return self.http.get("/movie")
        except httpx.HTTPError as e:
            raise ServiceError(self.name, "fetch movies", e) from e

    def get_movie_by_id(self, movie_id: int) -> Dict[str, Any]:
        try:
            return self.http.get(f"/movie/{movie_id}")
        except httpx.HTTPError as e:
            raise ServiceError(self.name, f"fetch movie {movie_id}", e) from e

    def delete_movie(self, movie_id: int, delete_files: bool = False,
                     add_import_exclusion: bool = False) -> None:
        """Supprime un film via l'API Radarr.

        Avec addImportExclusion=false le film peut être redemandé plus tard.
        """
        params = {
            "deleteFiles": str(delete_files).lower(),
            "addImportExclusion": str(add_import_exclusion).lower(),
        }
        try:
            self.http.delete(f"/movie/{movie_id}", params=params)
        except httpx.HTTPError as e:
            raise ServiceError(self.name, f"delete movie {movie_id}", e) from e

    def unmonitor_movie(self, movie_id: int) -> None:
        """Passe un film en non-surveillé."""
        movie = self.get_movie_by_id(movie_id)
        movie["monitored"] = False

        if not movie.get("qualityProfileId") or not movie.get("rootFolderPath"):
            sibling: Dict[str, Any] = {}
            try:
                movies = self.get_movies()
                if movies:
                    sibling = movies[0]
            except ServiceError as e:
                logger.warning(f"Could not fetch sibling movie for defaults: {e}")
            if not movie.get("qualityProfileId"):
                movie["qualityProfileId"] = sibling.get("qualityProfileId") or 1
            if not movie.get("rootFolderPath"):
                movie["rootFolderPath"] = sibling.get("rootFolderPath") or DEFAULT_ROOT_FOLDER

        try:
            self.http.put("/movie", json=movie)
        except httpx.HTTPError as e:
            raise ServiceError(self.name, f"unmonitor movie {movie_id}", e) from e
