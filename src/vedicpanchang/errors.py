"""Error taxonomy. Every error carries a stable `code` callers can switch on."""

from typing import Any


class PanchangError(Exception):
    """Base class for all engine errors."""

    default_message = "Panchang computation failed"
    default_code = "PANCHANG_ERROR"
    retryable = False

    def __init__(
        self,
        message: str | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": False,
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class EphemerisUnavailable(PanchangError):
    """Astronomy source unreachable, timed out, or returned invalid data."""

    default_message = "Ephemeris unavailable"
    default_code = "EPHEMERIS_UNAVAILABLE"
    retryable = True


class DegenerateDayWindow(PanchangError):
    """Sunrise/sunset ordering is invalid for the location and date."""

    default_message = "Unsupported location/date: no valid sunrise-to-sunset window"
    default_code = "DEGENERATE_DAY_WINDOW"


class ConvergenceFailure(PanchangError):
    """A boundary-crossing search exceeded its iteration cap or horizon."""

    default_message = "Boundary crossing search did not converge"
    default_code = "CONVERGENCE_FAILURE"


class CacheUnavailable(PanchangError):
    """The Panchang store could not be reached."""

    default_message = "Panchang cache unavailable"
    default_code = "CACHE_UNAVAILABLE"
    retryable = True


class InvalidObservation(PanchangError):
    """Malformed request: bad date, out-of-range coordinates, bad offset."""

    default_message = "Invalid observation point"
    default_code = "INVALID_OBSERVATION"
