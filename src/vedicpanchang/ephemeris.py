"""Ephemeris layer — skyfield Sun/Moon longitudes, Lahiri ayanamsa, and sunrise/sunset."""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from datetime import datetime, time, timedelta
from pathlib import Path
from threading import Lock
from typing import Protocol

import numpy as np
from pytz import utc
from skyfield import almanac
from skyfield.api import Loader, wgs84
from skyfield.errors import EphemerisRangeError

from vedicpanchang.errors import EphemerisUnavailable
from vedicpanchang.models import CelestialPositions, ObservationPoint
from vedicpanchang.solver import (
    SECONDS_PER_DAY,
    UNIX_EPOCH_JD,
    datetime_from_jd,
    jd_from_datetime,
    normalize,
)

logger = logging.getLogger(__name__)

# Elements are evaluated at this local clock time on the observation date
REFERENCE_TIME = time(6, 0)

# Lahiri mean ayanamsa, polynomial in Julian centuries from 1900.0
LAHIRI_EPOCH_JD = 2415020.5
LAHIRI_C0 = 22.460148
LAHIRI_C1 = 1.396042
LAHIRI_C2 = 0.000308
LAHIRI_C3 = 0.00000002


def lahiri_ayanamsa(jd: float | np.ndarray) -> float | np.ndarray:
    """Lahiri ayanamsa in degrees for a UTC Julian day (scalar or array)."""
    centuries = (np.asarray(jd) - LAHIRI_EPOCH_JD) / 36525.0
    return LAHIRI_C0 + centuries * (
        LAHIRI_C1 + centuries * (LAHIRI_C2 - centuries * LAHIRI_C3)
    )


def reference_instant(point: ObservationPoint) -> datetime:
    """Aware local datetime at REFERENCE_TIME on the observation date."""
    return datetime.combine(point.date, REFERENCE_TIME, tzinfo=point.tzinfo)


class EphemerisProvider(Protocol):
    """What the calculator needs from an astronomy source."""

    def positions(self, point: ObservationPoint) -> CelestialPositions:
        """Longitudes at the reference instant plus the day's sunrise/sunset."""
        ...

    def longitudes(self, jd: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Sidereal (sun, moon) longitudes in degrees for UTC Julian days."""
        ...


class SkyfieldEphemeris:
    """EphemerisProvider backed by a JPL kernel loaded through skyfield.

    The kernel is opened lazily on first use. Opening may trigger a download
    into `directory`; it runs on a worker thread and the caller gives up after
    `timeout` seconds. A load that is still running is reused by later calls
    rather than started again.
    """

    def __init__(
        self,
        directory: Path,
        filename: str = "de421.bsp",
        timeout: float = 60.0,
    ) -> None:
        self._loader = Loader(str(directory), verbose=False)
        self._filename = filename
        self._timeout = timeout
        self._lock = Lock()
        self._pending: Future | None = None
        self._ts = None
        self._eph = None

    def _load(self):
        ts = self._loader.timescale()
        eph = self._loader(self._filename)
        return ts, eph

    def _ensure_loaded(self) -> None:
        with self._lock:
            if self._eph is not None:
                return
            if self._pending is None:
                pool = ThreadPoolExecutor(max_workers=1)
                self._pending = pool.submit(self._load)
                pool.shutdown(wait=False)
            try:
                self._ts, self._eph = self._pending.result(timeout=self._timeout)
            except FutureTimeout as e:
                raise EphemerisUnavailable(
                    f"Loading {self._filename} exceeded {self._timeout:.0f}s",
                    details={"file": self._filename},
                ) from e
            except (OSError, ValueError) as e:
                self._pending = None
                raise EphemerisUnavailable(
                    f"Cannot load {self._filename}: {e}",
                    details={"file": self._filename},
                ) from e
            self._pending = None
            logger.info("loaded ephemeris %s", self._filename)

    def _times(self, jd: np.ndarray):
        # Whole days go in the day field so leap seconds are not counted
        # inside the seconds argument
        days = np.asarray(jd, dtype=float) - UNIX_EPOCH_JD
        whole = np.floor(days)
        return self._ts.utc(  # type: ignore[union-attr]
            1970, 1, 1 + whole.astype(int), 0, 0, (days - whole) * SECONDS_PER_DAY
        )

    def longitudes(self, jd: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
        """Apparent geocentric ecliptic longitudes of date, minus Lahiri ayanamsa."""
        self._ensure_loaded()
        jd = np.asarray(jd, dtype=float)
        try:
            t = self._times(jd)
            earth = self._eph["earth"].at(t)  # type: ignore[index]
            _, sun_lon, _ = (
                earth.observe(self._eph["sun"]).apparent().ecliptic_latlon(epoch="date")  # type: ignore[index]
            )
            _, moon_lon, _ = (
                earth.observe(self._eph["moon"]).apparent().ecliptic_latlon(epoch="date")  # type: ignore[index]
            )
        except EphemerisRangeError as e:
            raise EphemerisUnavailable(
                f"Date outside {self._filename} coverage", details={"jd": jd.tolist()}
            ) from e

        ayanamsa = lahiri_ayanamsa(jd)
        sun = normalize(np.asarray(sun_lon.degrees) - ayanamsa)
        moon = normalize(np.asarray(moon_lon.degrees) - ayanamsa)
        if not (np.all(np.isfinite(sun)) and np.all(np.isfinite(moon))):
            raise EphemerisUnavailable(
                "Ephemeris returned non-finite longitudes", details={"jd": jd.tolist()}
            )
        return sun, moon

    def sunrise_sunset(
        self, point: ObservationPoint
    ) -> tuple[datetime | None, datetime | None]:
        """First sunrise and first sunset within the local civil day.

        Either is None when it does not happen that day (polar day or night).
        """
        self._ensure_loaded()
        tz = point.tzinfo
        midnight = datetime.combine(point.date, time(0, 0), tzinfo=tz)
        t0 = self._ts.from_datetime(midnight.astimezone(utc))  # type: ignore[union-attr]
        t1 = self._ts.from_datetime((midnight + timedelta(days=1)).astimezone(utc))  # type: ignore[union-attr]
        topos = wgs84.latlon(
            latitude_degrees=point.latitude, longitude_degrees=point.longitude
        )
        try:
            times, events = almanac.find_discrete(
                t0, t1, almanac.sunrise_sunset(self._eph, topos)
            )
        except EphemerisRangeError as e:
            raise EphemerisUnavailable(
                f"Date outside {self._filename} coverage",
                details={"date": point.date.isoformat()},
            ) from e

        sunrise: datetime | None = None
        sunset: datetime | None = None
        for ti, ev in zip(times, events):
            local = datetime_from_jd(jd_from_datetime(ti.utc_datetime()), tz)
            if bool(ev) and sunrise is None:
                sunrise = local
            elif not bool(ev) and sunset is None:
                sunset = local

        if sunrise is None or sunset is None:
            logger.info(
                "no full sunrise/sunset on %s at (%.4f, %.4f)",
                point.date,
                point.latitude,
                point.longitude,
            )
        return sunrise, sunset

    def positions(self, point: ObservationPoint) -> CelestialPositions:
        instant = reference_instant(point)
        jd = jd_from_datetime(instant)
        sun, moon = self.longitudes(np.array([jd]))
        sunrise, sunset = self.sunrise_sunset(point)
        return CelestialPositions(
            instant=instant,
            sun_longitude=float(sun[0]),
            moon_longitude=float(moon[0]),
            ayanamsa=float(lahiri_ayanamsa(jd)),
            sunrise=sunrise,
            sunset=sunset,
        )
