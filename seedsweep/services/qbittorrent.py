"""qBittorrent API client."""
import logging
from typing import List, Dict, Any, Optional, Callable, TypeVar

import qbittorrentapi
from qbittorrentapi import Client

from seedsweep.config import ServiceConfig
from seedsweep.errors import ServiceError

logger = logging.getLogger(__name__)

T = TypeVar("T")

SEEDING_STATES = frozenset({"uploading", "stalledUP"})


class QBittorrentService:
    """Service pour interagir avec qBittorrent.

    La session (cookie SID) est ouverte au premier appel puis réutilisée;
    une réponse 401/403 déclenche une seule reconnexion transparente.
    """

    name = "qbittorrent"

    def __init__(self, service_config: ServiceConfig, timeout: float = 30.0,
                 client_factory: Optional[Callable[..., Client]] = None):
        self.base_url = service_config.url.rstrip("/")
        self.username = service_config.username
        self.password = service_config.password
        self.timeout = timeout
        self._client_factory = client_factory or Client
        self._client: Optional[Client] = None

    def _get_client(self) -> Client:
        """Get or create qBittorrent client."""
        if self._client is None:
            client = self._client_factory(
                host=self.base_url,
                username=self.username,
                password=self.password,
                REQUESTS_ARGS={"timeout": self.timeout},
            )
            try:
                client.auth_log_in()
            except qbittorrentapi.APIError as e:
                raise ServiceError(self.name, "login", e) from e
            self._client = client
        return self._client

    def _call(self, operation: str, fn: Callable[[Client], T]) -> T:
        client = self._get_client()
        try:
            return fn(client)
        except (qbittorrentapi.Unauthorized401Error, qbittorrentapi.Forbidden403Error):
            logger.info(f"qBittorrent session expired during {operation}, logging in again")
            try:
                client.auth_log_in()
                return fn(client)
            except qbittorrentapi.APIError as e:
                raise ServiceError(self.name, operation, e) from e
        except qbittorrentapi.APIError as e:
            raise ServiceError(self.name, operation, e) from e

    def get_torrents(self) -> List[Dict[str, Any]]:
        """Récupère tous les torrents depuis qBittorrent."""
        torrents = self._call("fetch torrents", lambda c: c.torrents_info())
        result = []
        for torrent in torrents:
            result.append({
                "hash": torrent.get("hash"),
                "name": torrent.get("name", ""),
                "size": torrent.get("size", 0),
                "state": torrent.get("state", ""),
                "seeding_time": torrent.get("seeding_time", 0) or 0,
                "uploaded": torrent.get("uploaded", 0) or 0,
                "downloaded": torrent.get("downloaded", 0) or 0,
                "ratio": torrent.get("ratio", 0.0) or 0.0,
                "added_on": torrent.get("added_on", 0) or 0,
                "tracker": torrent.get("tracker", "") or "",
                "content_path": torrent.get("content_path", "") or "",
            })
        return result

    def delete_torrent(self, torrent_hash: str, delete_files: bool = True) -> None:
        """Supprime un torrent (avec ou sans fichiers)."""
        self._call(
            f"delete torrent {torrent_hash}",
            lambda c: c.torrents_delete(delete_files=delete_files, torrent_hashes=torrent_hash),
        )
