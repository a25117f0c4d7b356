"""Muhurta windows — Brahma, Abhijit, Rahu Kaal, Yamaganda, Gulika Kaal."""

from dataclasses import dataclass
from datetime import datetime, timedelta

from vedicpanchang.errors import DegenerateDayWindow
from vedicpanchang.models import (
    CelestialPositions,
    DayDuration,
    MuhurtaResult,
    MuhurtaWindow,
    ObservationPoint,
    PanchangResult,
)

BRAHMA_MUHURTA = timedelta(minutes=96)
DAY_SEGMENTS = 8

# Which eighth of daylight (1-based) each window occupies, by civil weekday.
# Traditional table; not derivable from a formula.
SEGMENT_TABLE: dict[str, tuple[int, int, int]] = {
    #              rahu_kaal, yamaganda, gulika_kaal
    "Sunday": (8, 5, 7),
    "Monday": (2, 4, 6),
    "Tuesday": (7, 3, 5),
    "Wednesday": (5, 2, 4),
    "Thursday": (6, 1, 3),
    "Friday": (4, 7, 2),
    "Saturday": (3, 6, 1),
}
SEGMENT_KEYS = ("rahu_kaal", "yamaganda", "gulika_kaal")


@dataclass(frozen=True)
class WindowSpec:
    name: str
    category: str
    usage: str
    description: str


WINDOW_SPECS: dict[str, WindowSpec] = {
    "brahma_muhurta": WindowSpec(
        "Brahma Muhurta",
        "auspicious",
        "spiritual",
        "Most auspicious time for spiritual practices",
    ),
    "abhijit_muhurta": WindowSpec(
        "Abhijit Muhurta",
        "auspicious",
        "general",
        "Most favorable time for important activities",
    ),
    "rahu_kaal": WindowSpec(
        "Rahu Kaal",
        "inauspicious",
        "avoid",
        "Inauspicious time, avoid starting new activities",
    ),
    "yamaganda": WindowSpec(
        "Yamaganda",
        "inauspicious",
        "avoid",
        "Inauspicious time, avoid important decisions",
    ),
    "gulika_kaal": WindowSpec(
        "Gulika Kaal",
        "inauspicious",
        "avoid",
        "Inauspicious time, avoid new ventures",
    ),
}


def segment_index(weekday_name: str, key: str) -> int:
    """1-based daylight segment of `key` on `weekday_name`."""
    return SEGMENT_TABLE[weekday_name][SEGMENT_KEYS.index(key)]


def _whole_seconds(dt: datetime) -> datetime:
    if dt.microsecond >= 500_000:
        dt += timedelta(seconds=1)
    return dt.replace(microsecond=0)


def _window(key: str, start: datetime, end: datetime) -> MuhurtaWindow:
    spec = WINDOW_SPECS[key]
    return MuhurtaWindow(
        key=key,
        name=spec.name,
        start=_whole_seconds(start),
        end=_whole_seconds(end),
        category=spec.category,
        usage=spec.usage,
        description=spec.description,
    )


class MuhurtaDeriver:
    """Divides the sunrise-to-sunset interval into the named windows."""

    def derive(
        self,
        panchang: PanchangResult,
        positions: CelestialPositions,
        point: ObservationPoint,
    ) -> MuhurtaResult:
        """Derive the five windows and the day length.

        Raises:
            DegenerateDayWindow: The Sun does not both rise and set that day,
                or sunrise is not strictly before sunset.
        """
        sunrise, sunset = positions.sunrise, positions.sunset
        if sunrise is None or sunset is None or sunrise >= sunset:
            raise DegenerateDayWindow(
                details={
                    "date": point.date.isoformat(),
                    "latitude": point.latitude,
                    "longitude": point.longitude,
                    "sunrise": sunrise.isoformat() if sunrise else None,
                    "sunset": sunset.isoformat() if sunset else None,
                }
            )
        day = sunset - sunrise
        segment = day / DAY_SEGMENTS

        windows = [
            _window("brahma_muhurta", sunrise - BRAHMA_MUHURTA, sunrise),
            _window("abhijit_muhurta", sunrise + day * 7 / 15, sunrise + day * 8 / 15),
        ]
        weekday = panchang.weekday.weekday_name
        for key in SEGMENT_KEYS:
            n = segment_index(weekday, key)
            windows.append(
                _window(key, sunrise + segment * (n - 1), sunrise + segment * n)
            )

        minutes = int(day.total_seconds() // 60)
        return MuhurtaResult(
            windows=tuple(windows),
            day_duration=DayDuration(hours=minutes // 60, minutes=minutes % 60),
        )
