"""Request parsing and response shaping for callers that speak plain dicts (JSON)."""

import logging
from datetime import date, datetime, time
from typing import Any

from pytz import UnknownTimeZoneError, timezone
from timezonefinder import TimezoneFinder

from vedicpanchang.config import Settings
from vedicpanchang.errors import InvalidObservation
from vedicpanchang.models import (
    MuhurtaResult,
    MuhurtaWindow,
    ObservationPoint,
    PanchangResponse,
    PanchangResult,
    Period,
)

logger = logging.getLogger(__name__)

CLOCK_FORMAT = "%H:%M:%S"
MAX_OFFSET_HOURS = 14.0

_tf: TimezoneFinder | None = None


def _timezone_finder() -> TimezoneFinder:
    global _tf
    if _tf is None:
        _tf = TimezoneFinder()
    return _tf


def resolve_timezone_offset(lat: float, lng: float, day: date) -> float | None:
    """UTC offset in hours at local noon of `day`, from the zone containing (lat, lng).

    Returns None when no zone covers the coordinates (open sea, poles).
    """
    tz_str = _timezone_finder().timezone_at(lat=lat, lng=lng)
    if tz_str is None:
        return None
    try:
        local_tz = timezone(tz_str)
    except UnknownTimeZoneError:
        logger.warning("timezonefinder returned unknown zone %s", tz_str)
        return None
    noon = local_tz.localize(datetime.combine(day, time(12, 0)), is_dst=None)
    offset = noon.utcoffset()
    assert offset is not None
    return offset.total_seconds() / 3600.0


def _coordinate(request: dict[str, Any], key: str, default: float, limit: float) -> float:
    raw = request.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError) as e:
        raise InvalidObservation(
            f"{key} must be a number", details={key: raw}
        ) from e
    if not -limit <= value <= limit:
        raise InvalidObservation(
            f"{key} must be within ±{limit:g}", details={key: value}
        )
    return value


def parse_request(request: dict[str, Any], settings: Settings) -> ObservationPoint:
    """Validate a request dict and build an ObservationPoint.

    Accepts `date` (ISO-8601), `latitude`, `longitude` and optional
    `timezoneOffsetHours`. Missing coordinates fall back to the configured
    default location; a missing offset is looked up from the coordinates.

    Raises:
        InvalidObservation: Missing/invalid date or out-of-range values.
    """
    raw_date = request.get("date")
    if not raw_date:
        raise InvalidObservation("date is required")
    try:
        day = date.fromisoformat(str(raw_date)[:10])
    except ValueError as e:
        raise InvalidObservation(
            "date must be ISO-8601 (YYYY-MM-DD)", details={"date": raw_date}
        ) from e

    latitude = _coordinate(request, "latitude", settings.default_latitude, 90.0)
    longitude = _coordinate(request, "longitude", settings.default_longitude, 180.0)

    raw_offset = request.get("timezoneOffsetHours")
    if raw_offset is None or raw_offset == "":
        offset = resolve_timezone_offset(latitude, longitude, day)
        if offset is None:
            logger.info(
                "no timezone for (%.4f, %.4f); using %+.2f",
                latitude,
                longitude,
                settings.default_timezone_offset,
            )
            offset = settings.default_timezone_offset
    else:
        try:
            offset = float(raw_offset)
        except (TypeError, ValueError) as e:
            raise InvalidObservation(
                "timezoneOffsetHours must be a number",
                details={"timezoneOffsetHours": raw_offset},
            ) from e
        if not -MAX_OFFSET_HOURS <= offset <= MAX_OFFSET_HOURS:
            raise InvalidObservation(
                f"timezoneOffsetHours must be within ±{MAX_OFFSET_HOURS:g}",
                details={"timezoneOffsetHours": offset},
            )

    return ObservationPoint(
        date=day,
        latitude=latitude,
        longitude=longitude,
        timezone_offset_hours=offset,
    )


def _periods(periods: tuple[Period, ...], prefix: str) -> dict[str, dict[str, Any]]:
    return {
        str(i): {
            "number": p.number,
            "name": p.name,
            "completion": p.completion,
            f"{prefix}_left_percentage": p.left_percentage,
        }
        for i, p in enumerate(periods, start=1)
    }


def panchang_to_dict(p: PanchangResult) -> dict[str, Any]:
    return {
        "sun_rise": p.sun_rise,
        "sun_set": p.sun_set,
        "weekday": {
            "weekday_number": p.weekday.weekday_number,
            "weekday_name": p.weekday.weekday_name,
            "vedic_weekday_number": p.weekday.vedic_weekday_number,
            "vedic_weekday_name": p.weekday.vedic_weekday_name,
        },
        "lunar_month": {
            "lunar_month_number": p.lunar_month.lunar_month_number,
            "lunar_month_name": p.lunar_month.lunar_month_name,
            "lunar_month_full_name": p.lunar_month.lunar_month_full_name,
            "adhika": p.lunar_month.adhika,
            "nija": p.lunar_month.nija,
            "kshaya": p.lunar_month.kshaya,
        },
        "ritu": {"number": p.ritu.number, "name": p.ritu.name},
        "aayanam": p.aayanam,
        "tithi": {
            "number": p.tithi.number,
            "name": p.tithi.name,
            "paksha": p.tithi.paksha,
            "completes_at": p.tithi.completes_at,
            "left_precentage": p.tithi.left_percentage,  # sic, field name clients read
        },
        "nakshatra": {
            "number": p.nakshatra.number,
            "name": p.nakshatra.name,
            "starts_at": p.nakshatra.starts_at,
            "ends_at": p.nakshatra.ends_at,
            "left_percentage": p.nakshatra.left_percentage,
        },
        "yoga": _periods(p.yoga, "yoga"),
        "karana": _periods(p.karana, "karana"),
        "year": {
            "status": "success",
            "saka_salivahana_number": p.year.saka_salivahana_number,
            "saka_salivahana_name_number": p.year.saka_salivahana_name_number,
            "saka_salivahana_year_name": p.year.saka_salivahana_year_name,
            "vikram_chaitradi_number": p.year.vikram_chaitradi_number,
            "vikram_chaitradi_name_number": p.year.vikram_chaitradi_name_number,
            "vikram_chaitradi_year_name": p.year.vikram_chaitradi_year_name,
        },
    }


def _span(w: MuhurtaWindow) -> dict[str, str]:
    return {
        "start": w.start.strftime(CLOCK_FORMAT),
        "end": w.end.strftime(CLOCK_FORMAT),
        "description": w.description,
    }


def _listed(w: MuhurtaWindow) -> dict[str, str]:
    return {
        "name": w.name,
        "start": w.start.strftime(CLOCK_FORMAT),
        "end": w.end.strftime(CLOCK_FORMAT),
        "type": w.usage,
        "description": w.description,
    }


def muhurta_to_dict(m: MuhurtaResult) -> dict[str, Any]:
    out: dict[str, Any] = {w.key: _span(w) for w in m.windows}
    out["day_duration"] = {
        "hours": m.day_duration.hours,
        "minutes": m.day_duration.minutes,
    }
    out["auspicious_times"] = [
        _listed(w) for w in m.windows if w.category == "auspicious"
    ]
    out["inauspicious_times"] = [
        _listed(w) for w in m.windows if w.category == "inauspicious"
    ]
    return out


def to_response(response: PanchangResponse) -> dict[str, Any]:
    """Successful response dict: provenance, Panchang data and (optionally) calculations."""
    body: dict[str, Any] = {
        "success": True,
        "source": response.source,
        "data": panchang_to_dict(response.panchang),
    }
    if response.muhurta is not None:
        body["calculations"] = muhurta_to_dict(response.muhurta)
    return body
