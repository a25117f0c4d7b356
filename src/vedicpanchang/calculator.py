"""Panchang calculation — Tithi, Vara, Nakshatra, Yoga, Karana, and month/season/era metadata."""

import logging
from collections.abc import Callable
from datetime import datetime, time, timedelta

import numpy as np

from vedicpanchang.ephemeris import EphemerisProvider
from vedicpanchang.models import (
    CelestialPositions,
    LunarMonth,
    Nakshatra,
    ObservationPoint,
    PanchangResult,
    Period,
    Ritu,
    Tithi,
    Weekday,
    YearInfo,
)
from vedicpanchang.solver import (
    datetime_from_jd,
    find_crossing,
    jd_from_datetime,
    normalize,
)
from vedicpanchang.tables import (
    KARANA_NAMES,
    LUNAR_MONTH_NAMES,
    NAKSHATRA_NAMES,
    RITU_NAMES,
    SAMVATSARA_NAMES,
    TITHI_NAMES,
    VEDIC_WEEKDAY_NAMES,
    WEEKDAY_NAMES,
    YOGA_NAMES,
    karana_index,
)

logger = logging.getLogger(__name__)

TITHI_SPAN = 12.0
KARANA_SPAN = 6.0
NAKSHATRA_SPAN = 360.0 / 27.0  # 13°20'
YOGA_SPAN = 360.0 / 27.0

MAX_PERIODS = 2  # Yoga/Karana entries reported per civil day

# Epochs of the 60-year cycle: Saka 1909 (1987-88) and Vikram 2030 (1973-74) are Prabhava
SAKA_CYCLE_EPOCH = 1909
VIKRAM_CYCLE_EPOCH = 2030

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
CLOCK_FORMAT = "%H:%M:%S"


def _fmt(dt: datetime) -> str:
    return dt.strftime(TIMESTAMP_FORMAT)


def _clock(dt: datetime | None) -> str | None:
    return dt.strftime(CLOCK_FORMAT) if dt is not None else None


def _left_percentage(current: float, segment_end: float, width: float) -> float:
    pct = (segment_end - current) / width * 100.0
    return round(min(100.0, max(0.0, pct)), 4)


def segment_of(angle: float, width: float) -> int:
    """0-based segment of `angle`; a wrapped 360.0 stays in the last segment."""
    count = round(360.0 / width)
    return min(int(angle // width), count - 1)


def _samvatsara(year: int, epoch: int) -> tuple[int, str]:
    index = (year - epoch) % 60
    return index + 1, SAMVATSARA_NAMES[index]


class PanchangCalculator:
    """Turns ephemeris positions into a PanchangResult.

    Boundary instants (tithi completion, nakshatra start/end, yoga and karana
    changes, surrounding new moons) are found by querying `ephemeris` at
    other times through the boundary solver.
    """

    def __init__(self, ephemeris: EphemerisProvider) -> None:
        self._ephemeris = ephemeris

    # Angle functions of UTC Julian day, vectorized for the solver

    def _elongation(self, jd: np.ndarray) -> np.ndarray:
        sun, moon = self._ephemeris.longitudes(jd)
        return normalize(moon - sun)

    def _moon(self, jd: np.ndarray) -> np.ndarray:
        return self._ephemeris.longitudes(jd)[1]

    def _yoga_sum(self, jd: np.ndarray) -> np.ndarray:
        sun, moon = self._ephemeris.longitudes(jd)
        return normalize(sun + moon)

    def _sun(self, jd: np.ndarray) -> np.ndarray:
        return self._ephemeris.longitudes(jd)[0]

    def compute(
        self, positions: CelestialPositions, point: ObservationPoint
    ) -> PanchangResult:
        tz = point.tzinfo
        jd = jd_from_datetime(positions.instant)
        day_start = datetime.combine(point.date, time(0, 0), tzinfo=tz)
        day = (
            jd_from_datetime(day_start),
            jd_from_datetime(day_start + timedelta(days=1)),
        )

        sun = positions.sun_longitude
        moon = positions.moon_longitude
        elongation = float(normalize(moon - sun))

        tithi = self._tithi(elongation, jd, point)
        nakshatra = self._nakshatra(moon, jd, point)
        yoga = self._periods(
            self._yoga_sum,
            float(normalize(sun + moon)),
            YOGA_SPAN,
            jd,
            day,
            point,
            lambda i: (i % 27 + 1, YOGA_NAMES[i % 27]),
        )
        karana = self._periods(
            self._elongation,
            elongation,
            KARANA_SPAN,
            jd,
            day,
            point,
            lambda i: (karana_index(i) + 1, KARANA_NAMES[karana_index(i)]),
        )
        lunar_month = self._lunar_month(jd)
        logger.debug(
            "panchang %s (%.4f, %.4f): tithi %d, nakshatra %d, %d yoga, %d karana",
            point.date,
            point.latitude,
            point.longitude,
            tithi.number,
            nakshatra.number,
            len(yoga),
            len(karana),
        )

        return PanchangResult(
            sun_rise=_clock(positions.sunrise),
            sun_set=_clock(positions.sunset),
            weekday=self._weekday(positions, point),
            tithi=tithi,
            nakshatra=nakshatra,
            yoga=yoga,
            karana=karana,
            lunar_month=lunar_month,
            ritu=self._ritu(sun),
            aayanam=self._aayanam(sun),
            year=self._year(point, lunar_month),
        )

    def _tithi(self, elongation: float, jd: float, point: ObservationPoint) -> Tithi:
        index = segment_of(elongation, TITHI_SPAN)
        segment_end = (index + 1) * TITHI_SPAN
        completes = find_crossing(self._elongation, jd, segment_end % 360.0)
        number = index + 1
        return Tithi(
            number=number,
            name=TITHI_NAMES[index],
            paksha="Shukla" if number <= 15 else "Krishna",
            completes_at=_fmt(datetime_from_jd(completes, point.tzinfo)),
            left_percentage=_left_percentage(elongation, segment_end, TITHI_SPAN),
        )

    def _nakshatra(self, moon: float, jd: float, point: ObservationPoint) -> Nakshatra:
        index = segment_of(moon, NAKSHATRA_SPAN)
        segment_start = index * NAKSHATRA_SPAN
        segment_end = (index + 1) * NAKSHATRA_SPAN
        starts = find_crossing(self._moon, jd, segment_start, direction=-1)
        ends = find_crossing(self._moon, jd, segment_end % 360.0)
        return Nakshatra(
            number=index + 1,
            name=NAKSHATRA_NAMES[index],
            starts_at=_fmt(datetime_from_jd(starts, point.tzinfo)),
            ends_at=_fmt(datetime_from_jd(ends, point.tzinfo)),
            left_percentage=_left_percentage(moon, segment_end, NAKSHATRA_SPAN),
        )

    def _periods(
        self,
        angle_fn: Callable[[np.ndarray], np.ndarray],
        angle: float,
        width: float,
        jd: float,
        day: tuple[float, float],
        point: ObservationPoint,
        label: Callable[[int], tuple[int, str]],
    ) -> tuple[Period, ...]:
        """Periods overlapping the civil day `day` (start, end JD), in order.

        Enumeration starts with the period active at local midnight. Only the
        period active at `jd` reports a partial remainder; earlier ones report
        0 and later ones 100.
        """
        day_start_jd, day_end_jd = day
        count = round(360.0 / width)
        index = segment_of(float(angle_fn(np.array([day_start_jd]))[0]), width)
        periods: list[Period] = []
        start_jd = day_start_jd
        while len(periods) < MAX_PERIODS and start_jd < day_end_jd:
            segment_end = (index + 1) * width
            end_jd = find_crossing(angle_fn, start_jd, segment_end % 360.0)
            if end_jd <= jd:
                remaining = 0.0
            elif start_jd <= jd:
                remaining = _left_percentage(angle, segment_end, width)
            else:
                remaining = 100.0
            number, name = label(index)
            periods.append(
                Period(
                    number=number,
                    name=name,
                    completion=_fmt(datetime_from_jd(end_jd, point.tzinfo)),
                    left_percentage=remaining,
                )
            )
            start_jd = end_jd
            index = (index + 1) % count
        return tuple(periods)

    def _weekday(self, positions: CelestialPositions, point: ObservationPoint) -> Weekday:
        # date.weekday(): Monday=0 … Sunday=6  →  Sunday=0 … Saturday=6
        civil = (point.date.weekday() + 1) % 7
        # Without a sunrise that day the civil weekday stands
        before_sunrise = (
            positions.sunrise is not None and positions.instant < positions.sunrise
        )
        vedic = (civil - 1) % 7 if before_sunrise else civil
        return Weekday(
            weekday_number=civil + 1,
            weekday_name=WEEKDAY_NAMES[civil],
            vedic_weekday_number=vedic + 1,
            vedic_weekday_name=VEDIC_WEEKDAY_NAMES[vedic],
        )

    def _lunar_month(self, jd: float) -> LunarMonth:
        """Amanta month from the solar rashi at the surrounding new moons."""
        last_new_moon = find_crossing(
            self._elongation, jd, 0.0, direction=-1, horizon=32.0, step=0.5
        )
        next_new_moon = find_crossing(
            self._elongation, jd, 0.0, direction=1, horizon=32.0, step=0.5
        )
        sun = self._sun(np.array([last_new_moon, next_new_moon]))
        this_rashi = int(sun[0] // 30) % 12
        next_rashi = int(sun[1] // 30) % 12
        adhika = this_rashi == next_rashi
        kshaya = (next_rashi - this_rashi) % 12 == 2

        # A new moon with the Sun in Meena (rashi 11) opens Chaitra
        index = (this_rashi + 1) % 12
        name = LUNAR_MONTH_NAMES[index]
        if adhika:
            full_name = f"Adhika {name}"
        elif kshaya:
            full_name = f"Kshaya {name}"
        else:
            full_name = name
        return LunarMonth(
            lunar_month_number=index + 1,
            lunar_month_name=name,
            lunar_month_full_name=full_name,
            adhika=int(adhika),
            nija=int(not adhika and not kshaya),
            kshaya=int(kshaya),
        )

    def _ritu(self, sun: float) -> Ritu:
        index = int(sun // 60) % 6
        return Ritu(number=index + 1, name=RITU_NAMES[index])

    def _aayanam(self, sun: float) -> str:
        # Makara sankranti (270°) to Karka sankranti (90°)
        return "Uttarayana" if sun >= 270.0 or sun < 90.0 else "Dakshinayana"

    def _year(self, point: ObservationPoint, lunar_month: LunarMonth) -> YearInfo:
        """Saka and Vikram (Chaitradi) years; both turn over when Chaitra begins."""
        year = point.date.year
        before_chaitra = point.date.month <= 6 and lunar_month.lunar_month_number >= 10
        saka = year - 78 - int(before_chaitra)
        vikram = year + 57 - int(before_chaitra)
        saka_number, saka_name = _samvatsara(saka, SAKA_CYCLE_EPOCH)
        vikram_number, vikram_name = _samvatsara(vikram, VIKRAM_CYCLE_EPOCH)
        return YearInfo(
            saka_salivahana_number=saka,
            saka_salivahana_name_number=saka_number,
            saka_salivahana_year_name=saka_name,
            vikram_chaitradi_number=vikram,
            vikram_chaitradi_name_number=vikram_number,
            vikram_chaitradi_year_name=vikram_name,
        )
