from dataclasses import replace
from datetime import datetime, time, timedelta

import pytest

from conftest import FakeEphemeris
from vedicpanchang.calculator import PanchangCalculator
from vedicpanchang.errors import DegenerateDayWindow
from vedicpanchang.models import Weekday
from vedicpanchang.muhurta import MuhurtaDeriver, segment_index
from vedicpanchang.tables import VEDIC_WEEKDAY_NAMES, WEEKDAY_NAMES


@pytest.fixture
def day(fake_ephemeris, point):
    positions = fake_ephemeris.positions(point)
    panchang = PanchangCalculator(fake_ephemeris).compute(positions, point)
    return panchang, positions


def _at(point, hh, mm, ss=0):
    return datetime.combine(point.date, time(hh, mm, ss), tzinfo=point.tzinfo)


def test_monday_windows(day, point):
    panchang, positions = day
    result = MuhurtaDeriver().derive(panchang, positions, point)

    assert [w.key for w in result.windows] == [
        "brahma_muhurta",
        "abhijit_muhurta",
        "rahu_kaal",
        "yamaganda",
        "gulika_kaal",
    ]
    rahu = result.window("rahu_kaal")
    assert (rahu.start, rahu.end) == (_at(point, 7, 56, 15), _at(point, 9, 22, 30))
    assert rahu.category == "inauspicious"
    assert result.day_duration.hours == 11
    assert result.day_duration.minutes == 30


def test_brahma_muhurta_ends_at_sunrise(day, point):
    panchang, positions = day
    brahma = MuhurtaDeriver().derive(panchang, positions, point).window("brahma_muhurta")
    assert brahma.end == positions.sunrise
    assert brahma.end - brahma.start == timedelta(minutes=96)
    assert brahma.usage == "spiritual"


def test_abhijit_centered_on_midday(day, point):
    panchang, positions = day
    abhijit = MuhurtaDeriver().derive(panchang, positions, point).window("abhijit_muhurta")
    midday = positions.sunrise + (positions.sunset - positions.sunrise) / 2
    center = abhijit.start + (abhijit.end - abhijit.start) / 2
    assert abs(center - midday) <= timedelta(seconds=1)
    assert (abhijit.start, abhijit.end) == (_at(point, 11, 52), _at(point, 12, 38))


@pytest.mark.parametrize(
    "weekday, rahu, yama, gulika",
    [
        ("Sunday", 8, 5, 7),
        ("Monday", 2, 4, 6),
        ("Tuesday", 7, 3, 5),
        ("Wednesday", 5, 2, 4),
        ("Thursday", 6, 1, 3),
        ("Friday", 4, 7, 2),
        ("Saturday", 3, 6, 1),
    ],
)
def test_segment_table(day, point, weekday, rahu, yama, gulika):
    panchang, positions = day
    i = WEEKDAY_NAMES.index(weekday)
    panchang = replace(
        panchang,
        weekday=Weekday(i + 1, weekday, i + 1, VEDIC_WEEKDAY_NAMES[i]),
    )
    result = MuhurtaDeriver().derive(panchang, positions, point)

    segment = (positions.sunset - positions.sunrise) / 8
    for key, n in (("rahu_kaal", rahu), ("yamaganda", yama), ("gulika_kaal", gulika)):
        assert segment_index(weekday, key) == n
        window = result.window(key)
        assert window.start == positions.sunrise + segment * (n - 1)
        assert window.end == positions.sunrise + segment * n
        assert positions.sunrise <= window.start < window.end <= positions.sunset


def test_sunset_before_sunrise_is_degenerate(point):
    ephemeris = FakeEphemeris(sunrise=time(18, 0), sunset=time(6, 30))
    positions = ephemeris.positions(point)
    panchang = PanchangCalculator(ephemeris).compute(positions, point)

    with pytest.raises(DegenerateDayWindow) as exc:
        MuhurtaDeriver().derive(panchang, positions, point)
    assert exc.value.code == "DEGENERATE_DAY_WINDOW"
    assert exc.value.retryable is False


def test_unknown_window_key(day, point):
    panchang, positions = day
    with pytest.raises(KeyError):
        MuhurtaDeriver().derive(panchang, positions, point).window("choghadiya")


@pytest.mark.parametrize("sunrise, sunset", [(None, None), (time(9, 40), None)])
def test_missing_sunrise_or_sunset_is_degenerate(point, sunrise, sunset):
    ephemeris = FakeEphemeris(sunrise=sunrise, sunset=sunset)
    positions = ephemeris.positions(point)
    panchang = PanchangCalculator(ephemeris).compute(positions, point)

    with pytest.raises(DegenerateDayWindow) as exc:
        MuhurtaDeriver().derive(panchang, positions, point)
    assert exc.value.details["sunset"] is None
