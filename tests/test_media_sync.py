"""
Unit tests for media synchronisation from Sonarr, Radarr and Overseerr.
"""
from datetime import datetime

import pytest

from seedsweep.core.media_sync import MediaSyncService, parse_added_date, size_on_disk
from seedsweep.db.models import MediaItem
from seedsweep.errors import ServiceError

SERIES = [
    {
        "id": 5,
        "title": "Severance",
        "tvdbId": 371980,
        "path": "/data/tv/Severance",
        "added": "2023-01-02T10:00:00Z",
        "statistics": {"sizeOnDisk": 5000},
    },
    {
        "id": 6,
        "title": "Andor",
        "tvdbId": 393189,
        "path": "/data/tv/Andor",
        "added": "not a date",
        "statistics": {"sizeOnDisk": 0},
    },
]

MOVIES = [
    {
        "id": 11,
        "title": "The Matrix",
        "tmdbId": 603,
        "path": "/data/movies/The Matrix (1999)",
        "added": "2022-05-01T08:30:00+02:00",
        "sizeOnDisk": 8000,
    },
]


class TestParseAddedDate:
    """Tests for parse_added_date()."""

    def test_parses_utc_timestamp(self):
        """A Z-suffixed timestamp becomes a naive UTC datetime."""
        assert parse_added_date("2023-01-02T10:00:00Z") == datetime(2023, 1, 2, 10, 0, 0)

    def test_converts_offset_to_utc(self):
        """Offsets are normalised to UTC."""
        assert parse_added_date("2022-05-01T08:30:00+02:00") == datetime(2022, 5, 1, 6, 30, 0)

    @pytest.mark.parametrize("value", [None, "", "not a date", 12345])
    def test_malformed_values_give_none(self, value):
        """Unparseable values are treated as missing."""
        assert parse_added_date(value) is None


class TestSizeOnDisk:
    def test_prefers_statistics(self):
        assert size_on_disk({"statistics": {"sizeOnDisk": 42}, "sizeOnDisk": 1}) == 42

    def test_falls_back_to_top_level(self):
        assert size_on_disk({"sizeOnDisk": 7}) == 7

    def test_missing_size_is_zero(self):
        assert size_on_disk({}) == 0


class TestSyncSonarr:
    """Tests for MediaSyncService.sync_sonarr()."""

    def test_creates_series_rows(self, test_session, sonarr, make_registry, guard):
        """Each Sonarr series becomes a media item of type series."""
        sonarr.get_series.return_value = SERIES
        service = MediaSyncService(test_session, make_registry(sonarr=sonarr), guard)

        assert service.sync_sonarr() == 2

        item = test_session.query(MediaItem).filter(MediaItem.sonarr_id == 5).one()
        assert item.title == "Severance"
        assert item.type == "series"
        assert item.tvdb_id == 371980
        assert item.file_path == "/data/tv/Severance"
        assert item.file_size == 5000
        assert item.added_date == datetime(2023, 1, 2, 10, 0, 0)

    def test_malformed_added_date_is_null(self, test_session, sonarr, make_registry, guard):
        """A bad 'added' timestamp does not prevent the upsert."""
        sonarr.get_series.return_value = SERIES
        MediaSyncService(test_session, make_registry(sonarr=sonarr), guard).sync_sonarr()

        item = test_session.query(MediaItem).filter(MediaItem.sonarr_id == 6).one()
        assert item.added_date is None
        assert item.file_size == 0

    def test_sync_is_idempotent(self, test_session, sonarr, make_registry, guard):
        """Running the sync twice yields the same rows and values."""
        sonarr.get_series.return_value = SERIES
        service = MediaSyncService(test_session, make_registry(sonarr=sonarr), guard)

        service.sync_sonarr()
        first = {
            (i.sonarr_id, i.title, i.file_path, i.file_size, i.tvdb_id)
            for i in test_session.query(MediaItem).all()
        }
        service.sync_sonarr()
        second = {
            (i.sonarr_id, i.title, i.file_path, i.file_size, i.tvdb_id)
            for i in test_session.query(MediaItem).all()
        }

        assert test_session.query(MediaItem).count() == 2
        assert first == second

    def test_update_refreshes_title_and_path(self, test_session, sonarr, make_registry, guard):
        """An existing row keyed by sonarr_id is updated in place."""
        sonarr.get_series.return_value = SERIES
        service = MediaSyncService(test_session, make_registry(sonarr=sonarr), guard)
        service.sync_sonarr()

        renamed = dict(SERIES[0], title="Severance (US)", path="/data/tv/Severance (US)")
        sonarr.get_series.return_value = [renamed]
        service.sync_sonarr()

        items = test_session.query(MediaItem).filter(MediaItem.sonarr_id == 5).all()
        assert len(items) == 1
        assert items[0].title == "Severance (US)"
        assert items[0].file_path == "/data/tv/Severance (US)"

    def test_upsert_preserves_request_linkage(self, test_session, sonarr, make_registry, guard):
        """A resync never clears overseerr_request_id or requested_by_user_id."""
        sonarr.get_series.return_value = SERIES
        service = MediaSyncService(test_session, make_registry(sonarr=sonarr), guard)
        service.sync_sonarr()

        item = test_session.query(MediaItem).filter(MediaItem.sonarr_id == 5).one()
        item.overseerr_request_id = 42
        item.requested_by_user_id = 3
        test_session.commit()

        service.sync_sonarr()

        item = test_session.query(MediaItem).filter(MediaItem.sonarr_id == 5).one()
        assert item.overseerr_request_id == 42
        assert item.requested_by_user_id == 3

    def test_skips_records_under_deletion(self, test_session, sonarr, make_registry, guard):
        """A record whose manager id was just deleted is not re-created."""
        with guard.deleting(1, "sonarr:5"):
            pass
        sonarr.get_series.return_value = SERIES
        MediaSyncService(test_session, make_registry(sonarr=sonarr), guard).sync_sonarr()

        assert test_session.query(MediaItem).filter(MediaItem.sonarr_id == 5).count() == 0
        assert test_session.query(MediaItem).filter(MediaItem.sonarr_id == 6).count() == 1

    def test_skips_records_without_id(self, test_session, sonarr, make_registry, guard):
        sonarr.get_series.return_value = [{"title": "No id"}]
        assert MediaSyncService(test_session, make_registry(sonarr=sonarr), guard).sync_sonarr() == 0


class TestSyncRadarr:
    """Tests for MediaSyncService.sync_radarr()."""

    def test_creates_movie_rows(self, test_session, radarr, make_registry, guard):
        radarr.get_movies.return_value = MOVIES
        service = MediaSyncService(test_session, make_registry(radarr=radarr), guard)

        assert service.sync_radarr() == 1

        item = test_session.query(MediaItem).filter(MediaItem.radarr_id == 11).one()
        assert item.type == "movie"
        assert item.tmdb_id == 603
        assert item.file_size == 8000

    def test_database_error_skips_only_that_movie(self, test_session, radarr, make_registry, guard,
                                                  failing_commit):
        """A failed commit is rolled back and the rest of the batch is still synced."""
        radarr.get_movies.return_value = [
            {"id": 1, "title": "Alien"},
            {"id": 2, "title": "Aliens"},
            {"id": 3, "title": "Alien 3"},
        ]
        failing_commit(2)

        synced = MediaSyncService(test_session, make_registry(radarr=radarr), guard).sync_radarr()

        assert synced == 2
        rows = test_session.query(MediaItem).order_by(MediaItem.radarr_id).all()
        assert [m.radarr_id for m in rows] == [1, 3]
        assert [m.title for m in rows] == ["Alien", "Alien 3"]


class TestSyncOverseerrRequests:
    """Tests for MediaSyncService.sync_overseerr_requests()."""

    def test_disabled_is_noop(self, test_session, make_registry, guard):
        """No Overseerr integration means nothing to link."""
        assert MediaSyncService(test_session, make_registry(), guard).sync_overseerr_requests() == 0

    def test_links_movie_and_series_requests(self, test_session, sonarr, radarr, overseerr,
                                             make_registry, guard):
        sonarr.get_series.return_value = SERIES
        radarr.get_movies.return_value = MOVIES
        overseerr.get_requests.return_value = [
            {"id": 70, "type": "movie", "media": {"tmdbId": 603}, "requestedBy": {"id": 3}},
            {"id": 71, "type": "tv", "media": {"tvdbId": 371980}, "requestedBy": {"id": 4}},
            {"id": 72, "type": "movie", "media": {"tmdbId": 999999}, "requestedBy": {"id": 5}},
        ]
        service = MediaSyncService(
            test_session, make_registry(sonarr=sonarr, radarr=radarr, overseerr=overseerr), guard
        )
        service.sync_sonarr()
        service.sync_radarr()

        assert service.sync_overseerr_requests() == 2

        movie = test_session.query(MediaItem).filter(MediaItem.radarr_id == 11).one()
        assert movie.overseerr_request_id == 70
        assert movie.requested_by_user_id == 3
        series = test_session.query(MediaItem).filter(MediaItem.sonarr_id == 5).one()
        assert series.overseerr_request_id == 71
        assert series.requested_by_user_id == 4

    def test_untyped_request_matches_by_id(self, test_session, radarr, overseerr, make_registry, guard):
        """A request without a media type is matched on ids alone."""
        radarr.get_movies.return_value = MOVIES
        overseerr.get_requests.return_value = [
            {"id": 80, "media": {"tmdbId": 603}, "requestedBy": {"id": 9}},
        ]
        service = MediaSyncService(test_session, make_registry(radarr=radarr, overseerr=overseerr), guard)
        service.sync_radarr()

        assert service.sync_overseerr_requests() == 1
        assert test_session.query(MediaItem).one().overseerr_request_id == 80


class TestSyncAll:
    """Tests for MediaSyncService.sync_all()."""

    def test_failed_stage_does_not_stop_later_stages(self, test_session, sonarr, radarr,
                                                     make_registry, guard):
        sonarr.get_series.side_effect = ServiceError("sonarr", "fetch series", RuntimeError("boom"))
        radarr.get_movies.return_value = MOVIES
        service = MediaSyncService(test_session, make_registry(sonarr=sonarr, radarr=radarr), guard)

        report = service.sync_all()

        assert report.stages["sonarr"].status == "failed"
        assert "fetch series" in report.stages["sonarr"].error
        assert report.stages["radarr"].status == "ok"
        assert report.stages["radarr"].count == 1
        assert report.stages["overseerr"].status == "skipped"
        assert not report.ok
        assert test_session.query(MediaItem).count() == 1

    def test_stages_run_in_order(self, test_session, sonarr, radarr, overseerr, make_registry, guard):
        calls = []
        sonarr.get_series.side_effect = lambda: calls.append("sonarr") or []
        radarr.get_movies.side_effect = lambda: calls.append("radarr") or []
        overseerr.get_requests.side_effect = lambda: calls.append("overseerr") or []
        service = MediaSyncService(
            test_session, make_registry(sonarr=sonarr, radarr=radarr, overseerr=overseerr), guard
        )

        report = service.sync_all()

        assert calls == ["sonarr", "radarr", "overseerr"]
        assert report.ok
