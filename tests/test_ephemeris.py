"""Ephemeris provider tests. Those using the real JPL kernel skip when it cannot be loaded."""

from datetime import date, datetime, timezone
from threading import Event

import numpy as np
import pytest
from skyfield.api import Loader

from vedicpanchang.calculator import PanchangCalculator
from vedicpanchang.config import get_settings
from vedicpanchang.ephemeris import SkyfieldEphemeris, lahiri_ayanamsa
from vedicpanchang.errors import DegenerateDayWindow, EphemerisUnavailable
from vedicpanchang.models import ObservationPoint
from vedicpanchang.muhurta import MuhurtaDeriver
from vedicpanchang.solver import jd_from_datetime


@pytest.fixture(scope="module")
def ephemeris():
    settings = get_settings()
    eph = SkyfieldEphemeris(
        settings.ephemeris_dir,
        filename=settings.ephemeris_file,
        timeout=settings.ephemeris_timeout,
    )
    try:
        eph.longitudes(np.array([2460324.5]))
    except EphemerisUnavailable as e:
        pytest.skip(f"ephemeris kernel not available: {e.message}")
    return eph


def test_lahiri_ayanamsa_2024():
    assert lahiri_ayanamsa(2460324.5) == pytest.approx(24.19, abs=0.05)


def test_hyderabad_2024_01_15(ephemeris, point):
    positions = ephemeris.positions(point)
    panchang = PanchangCalculator(ephemeris).compute(positions, point)
    muhurta = MuhurtaDeriver().derive(panchang, positions, point)

    # Makara Sankranti: sidereal Sun at the start of Capricorn
    assert 268.0 < positions.sun_longitude < 272.0
    assert positions.sunrise.hour == 6
    assert positions.sunset.hour == 18

    assert panchang.weekday.weekday_name == "Monday"
    assert panchang.tithi.paksha == "Shukla"
    assert panchang.tithi.number in (4, 5)  # Chaturthi ends near sunrise
    assert panchang.lunar_month.lunar_month_name == "Pausha"
    assert panchang.aayanam == "Uttarayana"

    assert len(muhurta.windows) == 5
    for window in muhurta.windows:
        assert window.start < window.end


def test_longitudes_are_vectorized(ephemeris):
    sun, moon = ephemeris.longitudes(np.array([2460324.5, 2460325.5]))
    assert sun.shape == moon.shape == (2,)
    assert 0.9 < sun[1] - sun[0] < 1.1
    assert np.all((0.0 <= moon) & (moon < 360.0))


def test_polar_night(ephemeris):
    svalbard = ObservationPoint(date(2024, 1, 15), 78.2232, 15.6267, 1.0)
    positions = ephemeris.positions(svalbard)
    assert positions.sunrise is None
    assert positions.sunset is None

    panchang = PanchangCalculator(ephemeris).compute(positions, svalbard)
    assert panchang.sun_rise is None
    with pytest.raises(DegenerateDayWindow):
        MuhurtaDeriver().derive(panchang, positions, svalbard)


def test_julian_days_map_to_the_same_utc_instant(tmp_path):
    eph = SkyfieldEphemeris(tmp_path)
    ts = Loader(str(tmp_path), verbose=False).timescale()
    eph._ts = ts

    moments = [
        datetime(2024, 1, 15, 0, 30, tzinfo=timezone.utc),
        datetime(1999, 12, 31, 23, 59, 59, tzinfo=timezone.utc),
        datetime(1972, 6, 30, 12, 0, tzinfo=timezone.utc),
    ]
    t = eph._times(np.array([jd_from_datetime(m) for m in moments]))
    for i, m in enumerate(moments):
        assert abs(t.tt[i] - ts.from_datetime(m).tt) * 86400 < 1e-3


class BlockedLoad(SkyfieldEphemeris):
    """Kernel load that hangs until released."""

    def __init__(self, directory):
        super().__init__(directory, timeout=0.05)
        self.release = Event()
        self.calls = 0

    def _load(self):
        self.calls += 1
        self.release.wait(5)
        return "timescale", "kernel"


def test_timed_out_load_is_reused(tmp_path):
    eph = BlockedLoad(tmp_path)

    for _ in range(2):
        with pytest.raises(EphemerisUnavailable):
            eph._ensure_loaded()

    eph.release.set()
    eph._ensure_loaded()
    assert eph.calls == 1
    assert eph._eph == "kernel"
