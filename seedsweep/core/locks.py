"""Coordination entre suppressions et synchronisations (dans un même process).

Pendant une suppression, l'item et ses IDs Sonarr/Radarr sont réservés;
après la suppression, les IDs restent en "tombstone" quelques minutes pour
qu'une sync dont le snapshot précède la suppression ne recrée pas la ligne.
"""
import threading
import time
from contextlib import contextmanager
from typing import Dict, Iterator, Optional, Set

from seedsweep.errors import DeletionInProgressError

TOMBSTONE_TTL_SECONDS = 600


def manager_key(kind: str, manager_id: Optional[int]) -> Optional[str]:
    if manager_id is None:
        return None
    return f"{kind}:{manager_id}"


class DeletionGuard:
    def __init__(self, tombstone_ttl: float = TOMBSTONE_TTL_SECONDS, clock=time.monotonic):
        self._lock = threading.Lock()
        self._in_flight_items: Set[int] = set()
        self._in_flight_keys: Set[str] = set()
        self._tombstones: Dict[str, float] = {}
        self._ttl = tombstone_ttl
        self._clock = clock

    @contextmanager
    def deleting(self, media_id: int, *keys: Optional[str]) -> Iterator[None]:
        """Réserve un item pendant sa suppression.

        Raises DeletionInProgressError if the item is already being deleted.
        """
        held = {k for k in keys if k}
        with self._lock:
            if media_id in self._in_flight_items:
                raise DeletionInProgressError(media_id)
            self._in_flight_items.add(media_id)
            self._in_flight_keys.update(held)
        try:
            yield
        finally:
            with self._lock:
                self._in_flight_items.discard(media_id)
                self._in_flight_keys.difference_update(held)
                expires = self._clock() + self._ttl
                for key in held:
                    self._tombstones[key] = expires

    def is_blocked(self, key: Optional[str]) -> bool:
        """True if a sync must not touch the record with this manager key."""
        if not key:
            return False
        with self._lock:
            if key in self._in_flight_keys:
                return True
            expires = self._tombstones.get(key)
            if expires is None:
                return False
            if expires <= self._clock():
                del self._tombstones[key]
                return False
            return True

    def is_deleting(self, media_id: int) -> bool:
        with self._lock:
            return media_id in self._in_flight_items


_guard = DeletionGuard()


def get_deletion_guard() -> DeletionGuard:
    return _guard
