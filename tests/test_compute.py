from datetime import time

import pytest

from conftest import FakeEphemeris
from vedicpanchang.compute import PanchangService, run
from vedicpanchang.errors import CacheUnavailable, DegenerateDayWindow, EphemerisUnavailable


class BrokenStore:
    """Store whose database is unreachable."""

    def get(self, point):
        raise CacheUnavailable("connection refused")

    def get_muhurta(self, point):
        raise CacheUnavailable("connection refused")

    def put(self, point, panchang, muhurta=None):
        raise CacheUnavailable("connection refused")


class OfflineEphemeris(FakeEphemeris):
    def positions(self, point):
        raise EphemerisUnavailable("kernel download timed out")


def test_computes_then_serves_from_database(fake_ephemeris, store, point):
    service = PanchangService(fake_ephemeris, store)

    first = service.panchang(point)
    second = service.panchang(point)

    assert first.source == "computed"
    assert second.source == "database"
    assert first.panchang == second.panchang
    assert first.muhurta == second.muhurta
    assert fake_ephemeris.position_calls == 1


def test_idempotent_without_store(fake_ephemeris, point):
    service = PanchangService(fake_ephemeris)
    assert service.panchang(point) == service.panchang(point)


def test_muhurta_can_be_omitted(fake_ephemeris, store, point):
    response = PanchangService(fake_ephemeris, store).panchang(point, include_muhurta=False)
    assert response.muhurta is None
    # Windows were still derived and stored with the Panchang
    assert store.get_muhurta(point) is not None


def test_unreachable_cache_does_not_fail_request(fake_ephemeris, point, caplog):
    service = PanchangService(fake_ephemeris, BrokenStore())

    with caplog.at_level("WARNING", logger="vedicpanchang.compute"):
        response = service.panchang(point)

    assert response.source == "computed"
    assert response.muhurta is not None
    assert "cache read skipped" in caplog.text
    assert "cache write skipped" in caplog.text


def test_ephemeris_failure_propagates_and_persists_nothing(store, point):
    service = PanchangService(OfflineEphemeris(), store)

    with pytest.raises(EphemerisUnavailable):
        service.panchang(point)
    assert store.get(point) is None


def test_degenerate_day_returns_no_partial_result(store, point):
    service = PanchangService(FakeEphemeris(sunrise=time(18, 0), sunset=time(6, 0)), store)

    with pytest.raises(DegenerateDayWindow):
        service.panchang(point)
    assert store.get(point) is None


def test_degenerate_day_without_muhurta(store, point):
    service = PanchangService(FakeEphemeris(sunrise=time(18, 0), sunset=time(6, 0)), store)

    response = service.panchang(point, include_muhurta=False)
    assert response.muhurta is None
    # Later requests for the windows still fail instead of returning half a result
    with pytest.raises(DegenerateDayWindow):
        service.panchang(point)


def test_polar_night_still_returns_panchang(store, point):
    service = PanchangService(FakeEphemeris(sunrise=None, sunset=None), store)

    response = service.panchang(point, include_muhurta=False)
    assert response.panchang.sun_rise is None
    assert response.muhurta is None
    assert store.get(point) == response.panchang

    with pytest.raises(DegenerateDayWindow):
        service.panchang(point)


def test_run_success(fake_ephemeris, store, settings):
    service = PanchangService(fake_ephemeris, store)
    request = {
        "date": "2024-01-15",
        "latitude": 17.38333,
        "longitude": 78.4666,
        "timezoneOffsetHours": 5.5,
    }

    body = run(request, service=service, settings=settings)

    assert body["success"] is True
    assert body["source"] == "computed"
    assert body["data"]["weekday"]["weekday_name"] == "Monday"
    assert "left_precentage" in body["data"]["tithi"]
    assert body["data"]["yoga"]["1"]["name"] == "Vajra"
    assert body["calculations"]["rahu_kaal"] == {
        "start": "07:56:15",
        "end": "09:22:30",
        "description": "Inauspicious time, avoid starting new activities",
    }
    assert [t["name"] for t in body["calculations"]["auspicious_times"]] == [
        "Brahma Muhurta",
        "Abhijit Muhurta",
    ]

    assert run(request, service=service, settings=settings)["source"] == "database"


def test_run_reports_error_code(fake_ephemeris, settings):
    service = PanchangService(fake_ephemeris)
    body = run({"date": "15/01/2024"}, service=service, settings=settings)
    assert body["success"] is False
    assert body["error"] == "INVALID_OBSERVATION"


def test_run_reports_engine_error(settings):
    service = PanchangService(OfflineEphemeris())
    body = run(
        {"date": "2024-01-15", "timezoneOffsetHours": 5.5},
        service=service,
        settings=settings,
    )
    assert body == {
        "success": False,
        "error": "EPHEMERIS_UNAVAILABLE",
        "message": "kernel download timed out",
        "details": {},
    }
