"""Data model definitions — explicit boundaries between request, ephemeris, calculation, and cache layers."""

from dataclasses import dataclass
from datetime import date, datetime, tzinfo

from pytz import FixedOffset

CACHE_PRECISION = 4  # Decimal places kept for lat/lng in cache keys (≈11 m)


@dataclass(frozen=True)
class ObservationPoint:
    """One computation request. Immutable."""

    date: date  # Civil calendar date at the observer
    latitude: float  # Decimal degrees, north positive
    longitude: float  # Decimal degrees, east positive
    timezone_offset_hours: float = 5.5  # Signed offset from UTC ("+5.5" = IST)

    @property
    def tzinfo(self) -> tzinfo:
        return FixedOffset(self.offset_minutes)

    @property
    def offset_minutes(self) -> int:
        return round(self.timezone_offset_hours * 60)

    def cache_key(
        self, precision: int = CACHE_PRECISION
    ) -> tuple[date, int, int, int]:
        """(date, lat, lng, offset minutes), coordinates scaled to integers at `precision` decimals."""
        scale = 10**precision
        return (
            self.date,
            round(self.latitude * scale),
            round(self.longitude * scale),
            self.offset_minutes,
        )


@dataclass(frozen=True)
class CelestialPositions:
    """Ephemeris output for one ObservationPoint. Input to the calculator."""

    instant: datetime  # Reference instant (aware, local) the longitudes refer to
    sun_longitude: float  # Sidereal (Lahiri) longitude, [0, 360)
    moon_longitude: float  # Sidereal (Lahiri) longitude, [0, 360)
    ayanamsa: float  # Lahiri ayanamsa applied (degrees)
    sunrise: datetime | None  # Aware, local, whole seconds; None if the Sun does not rise
    sunset: datetime | None  # None if the Sun does not set


@dataclass(frozen=True)
class Weekday:
    weekday_number: int  # Sunday=1 … Saturday=7
    weekday_name: str
    vedic_weekday_number: int  # Sunrise-to-sunrise day
    vedic_weekday_name: str


@dataclass(frozen=True)
class Tithi:
    number: int  # 1–30
    name: str
    paksha: str  # "Shukla" (waxing) or "Krishna" (waning)
    completes_at: str  # "YYYY-MM-DD HH:MM:SS" local
    left_percentage: float  # Remaining at the reference instant, [0, 100]


@dataclass(frozen=True)
class Nakshatra:
    number: int  # 1–27
    name: str
    starts_at: str
    ends_at: str
    left_percentage: float


@dataclass(frozen=True)
class Period:
    """A single Yoga or Karana span within the civil day."""

    number: int
    name: str
    completion: str
    left_percentage: float


@dataclass(frozen=True)
class LunarMonth:
    lunar_month_number: int  # Chaitra=1 … Phalguna=12
    lunar_month_name: str
    lunar_month_full_name: str  # "Adhika Shravana", "Pausha", ...
    adhika: int  # Intercalary month flag (0/1)
    nija: int  # Normal month flag (0/1)
    kshaya: int  # Omitted month flag (0/1)


@dataclass(frozen=True)
class Ritu:
    number: int  # 1–6
    name: str


@dataclass(frozen=True)
class YearInfo:
    saka_salivahana_number: int
    saka_salivahana_name_number: int  # 1–60 in the samvatsara cycle
    saka_salivahana_year_name: str
    vikram_chaitradi_number: int
    vikram_chaitradi_name_number: int
    vikram_chaitradi_year_name: str


@dataclass(frozen=True)
class PanchangResult:
    """The persisted/cacheable almanac for one ObservationPoint."""

    sun_rise: str | None  # "HH:MM:SS" local; None on polar day or night
    sun_set: str | None
    weekday: Weekday
    tithi: Tithi
    nakshatra: Nakshatra
    yoga: tuple[Period, ...]  # 1–2 entries, ordered by start
    karana: tuple[Period, ...]  # 1–2 entries, ordered by start
    lunar_month: LunarMonth
    ritu: Ritu
    aayanam: str  # "Uttarayana" or "Dakshinayana"
    year: YearInfo


@dataclass(frozen=True)
class MuhurtaWindow:
    """A named auspicious or inauspicious span of the day."""

    key: str  # "rahu_kaal", "brahma_muhurta", ...
    name: str  # Display name ("Rahu Kaal")
    start: datetime  # Aware, local, whole seconds
    end: datetime
    category: str  # "auspicious" or "inauspicious"
    usage: str  # "spiritual", "general" or "avoid"
    description: str


@dataclass(frozen=True)
class DayDuration:
    hours: int
    minutes: int


@dataclass(frozen=True)
class MuhurtaResult:
    """Windows derived from sunrise/sunset and weekday. Owned by a PanchangResult."""

    windows: tuple[MuhurtaWindow, ...]
    day_duration: DayDuration

    def window(self, key: str) -> MuhurtaWindow:
        for w in self.windows:
            if w.key == key:
                return w
        raise KeyError(key)


@dataclass(frozen=True)
class PanchangResponse:
    """Façade output. `source` is "database" on a cache hit, "computed" otherwise."""

    panchang: PanchangResult
    muhurta: MuhurtaResult | None
    source: str
