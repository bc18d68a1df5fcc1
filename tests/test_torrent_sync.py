"""
Unit tests for torrent synchronisation and tracker requirement resolution.
"""
from datetime import datetime

import pytest

from factories import create_media_item, create_override, create_torrent
from seedsweep.core.torrent_sync import TorrentSyncService, is_public_tracker
from seedsweep.db.models import Torrent
from seedsweep.errors import IntegrationDisabledError, ServiceError


def qbit_torrent(hash, name="Some.Torrent", content_path="", tracker="", state="uploading", **kwargs):
    data = {
        "hash": hash,
        "name": name,
        "size": 1000,
        "state": state,
        "seeding_time": 7200,
        "uploaded": 2000,
        "downloaded": 1000,
        "ratio": 2.0,
        "added_on": 1700000000,
        "tracker": tracker,
        "content_path": content_path,
    }
    data.update(kwargs)
    return data


class TestIsPublicTracker:
    @pytest.mark.parametrize("tracker", [
        "1337x.to",
        "YTS",
        "http://nyaa.tracker.wf:7777/announce",
        "udp://eztv.tracker:1337",
    ])
    def test_known_public_prefixes(self, tracker):
        assert is_public_tracker(tracker) is True

    @pytest.mark.parametrize("tracker", ["", "https://secret.example.org/announce", "PrivateHD"])
    def test_everything_else_is_private(self, tracker):
        assert is_public_tracker(tracker) is False


class TestSyncTorrents:
    """Tests for TorrentSyncService.sync_torrents()."""

    def test_links_by_path_prefix(self, test_session, qbittorrent, make_registry):
        """A content path that contains the media file links the torrent."""
        item = create_media_item(test_session, title="X", file_path="/data/movies/X/X.mkv")
        qbittorrent.get_torrents.return_value = [qbit_torrent("a" * 40, name="X", content_path="/data/movies/X")]

        report = TorrentSyncService(test_session, make_registry(qbittorrent=qbittorrent)).sync_torrents()

        torrent = test_session.query(Torrent).one()
        assert torrent.media_item_id == item.id
        assert report.synced == 1
        assert report.linked == 1
        assert report.unmatched == 0

    def test_copies_torrent_stats(self, test_session, qbittorrent, make_registry):
        qbittorrent.get_torrents.return_value = [qbit_torrent("b" * 40, state="stalledUP")]

        TorrentSyncService(test_session, make_registry(qbittorrent=qbittorrent)).sync_torrents()

        torrent = test_session.query(Torrent).one()
        assert torrent.seeding_time_seconds == 7200
        assert torrent.upload_bytes == 2000
        assert torrent.download_bytes == 1000
        assert torrent.ratio == 2.0
        assert torrent.is_seeding is True
        assert torrent.added_date == datetime(2023, 11, 14, 22, 13, 20)

    def test_paused_torrent_is_not_seeding(self, test_session, qbittorrent, make_registry):
        qbittorrent.get_torrents.return_value = [qbit_torrent("c" * 40, state="pausedUP")]

        TorrentSyncService(test_session, make_registry(qbittorrent=qbittorrent)).sync_torrents()

        assert test_session.query(Torrent).one().is_seeding is False

    def test_counts_unmatched_torrents(self, test_session, qbittorrent, make_registry):
        create_media_item(test_session, title="Dune", file_path="/data/movies/Dune (2021)")
        qbittorrent.get_torrents.return_value = [
            qbit_torrent("d" * 40, name="Dune.2021.2160p", content_path="/data/movies/Dune (2021)"),
            qbit_torrent("e" * 40, name="Unrelated.Linux.ISO", content_path="/downloads/iso"),
        ]

        report = TorrentSyncService(test_session, make_registry(qbittorrent=qbittorrent)).sync_torrents()

        assert report.synced == 2
        assert report.linked == 1
        assert report.unmatched == 1

    def test_never_unlinks_existing_torrent(self, test_session, qbittorrent, make_registry):
        """A torrent that no longer matches keeps its media link."""
        item = create_media_item(test_session, title="Alien", file_path="/data/movies/Alien")
        create_torrent(test_session, item, hash="f" * 40)
        qbittorrent.get_torrents.return_value = [
            qbit_torrent("f" * 40, name="zzz", content_path="/somewhere/else"),
        ]

        TorrentSyncService(test_session, make_registry(qbittorrent=qbittorrent)).sync_torrents()

        assert test_session.query(Torrent).one().media_item_id == item.id

    def test_resync_does_not_duplicate(self, test_session, qbittorrent, make_registry):
        qbittorrent.get_torrents.return_value = [qbit_torrent("1" * 40)]
        service = TorrentSyncService(test_session, make_registry(qbittorrent=qbittorrent))

        service.sync_torrents()
        service.sync_torrents()

        assert test_session.query(Torrent).count() == 1

    def test_database_error_skips_only_that_torrent(self, test_session, qbittorrent, make_registry,
                                                    failing_commit):
        """A failed commit is rolled back and the later torrents are still synced."""
        item = create_media_item(test_session, title="Heat", file_path="/data/movies/Heat")
        qbittorrent.get_torrents.return_value = [
            qbit_torrent("1" * 40, content_path="/downloads/one"),
            qbit_torrent("2" * 40, content_path="/downloads/two"),
            qbit_torrent("3" * 40, content_path="/data/movies/Heat/Heat.mkv"),
        ]
        failing_commit(2)

        report = TorrentSyncService(test_session, make_registry(qbittorrent=qbittorrent)).sync_torrents()

        assert report.synced == 2
        assert report.linked == 1
        assert report.unmatched == 1
        hashes = sorted(h for (h,) in test_session.query(Torrent.hash).all())
        assert hashes == ["1" * 40, "3" * 40]
        assert test_session.query(Torrent).filter(Torrent.hash == "3" * 40).one().media_item_id == item.id

    def test_requires_qbittorrent(self, test_session, make_registry):
        with pytest.raises(IntegrationDisabledError):
            TorrentSyncService(test_session, make_registry()).sync_torrents()


class TestTrackerRequirements:
    """Tests for indexer and override resolution during sync."""

    INDEXERS = [
        {"id": 3, "name": "PrivateHD", "privacy": "private", "minSeedTime": 3600, "minRatio": 1.0},
    ]

    def test_uses_indexer_requirements(self, test_session, qbittorrent, prowlarr, make_registry):
        prowlarr.get_indexers.return_value = self.INDEXERS
        qbittorrent.get_torrents.return_value = [qbit_torrent("2" * 40, tracker="PrivateHD")]

        TorrentSyncService(test_session, make_registry(qbittorrent=qbittorrent, prowlarr=prowlarr)).sync_torrents()

        torrent = test_session.query(Torrent).one()
        assert torrent.tracker_id == 3
        assert torrent.tracker_name == "PrivateHD"
        assert torrent.tracker_type == "private"
        assert torrent.seeding_required_seconds == 3600
        assert torrent.seeding_required_ratio == 1.0

    def test_override_by_tracker_id_wins(self, test_session, qbittorrent, prowlarr, make_registry):
        """Non-null override values replace the indexer values."""
        create_override(test_session, tracker_id=3, min_seeding_time_seconds=7200)
        prowlarr.get_indexers.return_value = self.INDEXERS
        qbittorrent.get_torrents.return_value = [qbit_torrent("3" * 40, tracker="PrivateHD")]

        TorrentSyncService(test_session, make_registry(qbittorrent=qbittorrent, prowlarr=prowlarr)).sync_torrents()

        torrent = test_session.query(Torrent).one()
        assert torrent.seeding_required_seconds == 7200
        assert torrent.seeding_required_ratio == 1.0

    def test_override_by_tracker_name(self, test_session, qbittorrent, make_registry):
        """Trackers unknown to Prowlarr can still get requirements by name."""
        tracker = "https://secret.example.org/announce"
        create_override(test_session, tracker_name=tracker, min_seeding_time_seconds=600, min_seeding_ratio=0.5)
        qbittorrent.get_torrents.return_value = [qbit_torrent("4" * 40, tracker=tracker)]

        TorrentSyncService(test_session, make_registry(qbittorrent=qbittorrent)).sync_torrents()

        torrent = test_session.query(Torrent).one()
        assert torrent.tracker_type == "private"
        assert torrent.seeding_required_seconds == 600
        assert torrent.seeding_required_ratio == 0.5

    def test_public_tracker_without_indexer(self, test_session, qbittorrent, make_registry):
        qbittorrent.get_torrents.return_value = [
            qbit_torrent("5" * 40, tracker="http://nyaa.tracker.wf:7777/announce"),
        ]

        TorrentSyncService(test_session, make_registry(qbittorrent=qbittorrent)).sync_torrents()

        torrent = test_session.query(Torrent).one()
        assert torrent.tracker_type == "public"
        assert torrent.seeding_required_seconds is None

    def test_prowlarr_failure_is_not_fatal(self, test_session, qbittorrent, prowlarr, make_registry):
        prowlarr.get_indexers.side_effect = ServiceError("prowlarr", "fetch indexers", RuntimeError("down"))
        qbittorrent.get_torrents.return_value = [qbit_torrent("6" * 40, tracker="PrivateHD")]

        report = TorrentSyncService(
            test_session, make_registry(qbittorrent=qbittorrent, prowlarr=prowlarr)
        ).sync_torrents()

        assert report.synced == 1
        torrent = test_session.query(Torrent).one()
        assert torrent.tracker_type == "private"
        assert torrent.seeding_required_seconds is None
