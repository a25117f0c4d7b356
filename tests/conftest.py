"""Shared fixtures: a deterministic linear-motion ephemeris and in-memory stores."""

from datetime import date, datetime, time
from pathlib import Path

import numpy as np
import pytest

from vedicpanchang.config import Settings
from vedicpanchang.ephemeris import reference_instant
from vedicpanchang.models import CelestialPositions, ObservationPoint
from vedicpanchang.solver import jd_from_datetime, normalize
from vedicpanchang.store import PanchangStore, create_store_engine

SUN_RATE = 0.9856  # degrees/day
MOON_RATE = 13.1764
EPOCH_JD = 2460324.5  # 2024-01-15 00:00 UTC

HYDERABAD = ObservationPoint(
    date=date(2024, 1, 15),
    latitude=17.38333,
    longitude=78.4666,
    timezone_offset_hours=5.5,
)


class FakeEphemeris:
    """Sun and Moon moving uniformly from fixed sidereal longitudes at `epoch_jd`.

    A sunrise or sunset of None stands for a day on which it does not happen.
    """

    def __init__(
        self,
        sun0: float = 270.0,
        moon0: float = 280.0,
        sunrise: time | None = time(6, 30),
        sunset: time | None = time(18, 0),
        sun_rate: float = SUN_RATE,
        moon_rate: float = MOON_RATE,
        epoch_jd: float = EPOCH_JD,
    ) -> None:
        self.sun0 = sun0
        self.moon0 = moon0
        self.sun_rate = sun_rate
        self.moon_rate = moon_rate
        self.epoch_jd = epoch_jd
        self.sunrise = sunrise
        self.sunset = sunset
        self.position_calls = 0

    def longitudes(self, jd):
        dt = np.asarray(jd, dtype=float) - self.epoch_jd
        return (
            normalize(self.sun0 + self.sun_rate * dt),
            normalize(self.moon0 + self.moon_rate * dt),
        )

    @staticmethod
    def _local(point: ObservationPoint, clock: time | None) -> datetime | None:
        if clock is None:
            return None
        return datetime.combine(point.date, clock, tzinfo=point.tzinfo)

    def positions(self, point: ObservationPoint) -> CelestialPositions:
        self.position_calls += 1
        instant = reference_instant(point)
        sun, moon = self.longitudes(np.array([jd_from_datetime(instant)]))
        return CelestialPositions(
            instant=instant,
            sun_longitude=float(sun[0]),
            moon_longitude=float(moon[0]),
            ayanamsa=24.19,
            sunrise=self._local(point, self.sunrise),
            sunset=self._local(point, self.sunset),
        )


@pytest.fixture
def point() -> ObservationPoint:
    return HYDERABAD


@pytest.fixture
def fake_ephemeris() -> FakeEphemeris:
    return FakeEphemeris()


@pytest.fixture
def store() -> PanchangStore:
    return PanchangStore(create_store_engine("sqlite:///:memory:"))


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        database_url="sqlite:///:memory:",
        ephemeris_dir=tmp_path,
        ephemeris_file="de421.bsp",
        ephemeris_timeout=60.0,
        log_level="DEBUG",
        default_latitude=17.38333,
        default_longitude=78.4666,
        default_timezone_offset=5.5,
    )
