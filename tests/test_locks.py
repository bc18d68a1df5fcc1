"""
Unit tests for the deletion guard.
"""
import pytest

from seedsweep.core.locks import DeletionGuard, manager_key
from seedsweep.errors import DeletionInProgressError


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestManagerKey:
    def test_builds_key(self):
        assert manager_key("sonarr", 5) == "sonarr:5"

    def test_none_id_gives_none(self):
        assert manager_key("radarr", None) is None


class TestDeletionGuard:
    """Tests for DeletionGuard."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def guard(self, clock):
        return DeletionGuard(tombstone_ttl=600, clock=clock)

    def test_keys_blocked_while_deleting(self, guard):
        with guard.deleting(1, "sonarr:5"):
            assert guard.is_deleting(1)
            assert guard.is_blocked("sonarr:5")
        assert not guard.is_deleting(1)

    def test_second_deletion_of_same_item_rejected(self, guard):
        with guard.deleting(1):
            with pytest.raises(DeletionInProgressError):
                with guard.deleting(1):
                    pass

    def test_other_items_not_affected(self, guard):
        with guard.deleting(1, "radarr:1"):
            with guard.deleting(2, "radarr:2"):
                assert guard.is_deleting(2)
            assert not guard.is_blocked("radarr:3")

    def test_tombstone_expires(self, guard, clock):
        with guard.deleting(1, "radarr:9"):
            pass

        clock.now += 599
        assert guard.is_blocked("radarr:9")
        clock.now += 2
        assert not guard.is_blocked("radarr:9")

    def test_tombstone_written_even_on_failure(self, guard):
        with pytest.raises(RuntimeError):
            with guard.deleting(1, "sonarr:7"):
                raise RuntimeError("local delete failed")

        assert guard.is_blocked("sonarr:7")
        assert not guard.is_deleting(1)

    def test_none_keys_ignored(self, guard):
        with guard.deleting(1, None, "sonarr:8"):
            pass
        assert not guard.is_blocked(None)
        assert guard.is_blocked("sonarr:8")
