"""Boundary-crossing search for monotonically advancing angles (elongation, Moon, Sun+Moon).

All instants are UTC Julian days (float). Conversions to/from aware datetimes
live here as well so every layer shares one definition.
"""

import logging
from collections.abc import Callable
from datetime import datetime, tzinfo

import numpy as np

from vedicpanchang.errors import ConvergenceFailure

logger = logging.getLogger(__name__)

UNIX_EPOCH_JD = 2440587.5
SECONDS_PER_DAY = 86400.0

MAX_ITERATIONS = 60
TOLERANCE_DAYS = 0.5 / SECONDS_PER_DAY  # Half a second

AngleFn = Callable[[np.ndarray], np.ndarray]


def jd_from_datetime(dt: datetime) -> float:
    """UTC Julian day of an aware datetime."""
    return dt.timestamp() / SECONDS_PER_DAY + UNIX_EPOCH_JD


def datetime_from_jd(jd: float, tz: tzinfo) -> datetime:
    """Aware datetime in `tz` for a UTC Julian day, rounded to the whole second."""
    seconds = round((jd - UNIX_EPOCH_JD) * SECONDS_PER_DAY)
    return datetime.fromtimestamp(seconds, tz)


def normalize(deg: float | np.ndarray) -> float | np.ndarray:
    """Wrap degrees into [0, 360)."""
    return np.mod(deg, 360.0)


def signed_distance(angle: np.ndarray, boundary: float) -> np.ndarray:
    """Signed angular distance angle − boundary, wrapped into [-180, 180)."""
    return np.mod(np.asarray(angle) - boundary + 180.0, 360.0) - 180.0


def find_crossing(
    angle_fn: AngleFn,
    start_jd: float,
    boundary: float,
    direction: int = 1,
    horizon: float = 2.0,
    step: float = 0.05,
) -> float:
    """Find when an increasing angle passes `boundary`, searching from `start_jd`.

    The angle is sampled on a grid of `step` days out to `horizon` days in
    `direction` (+1 forward, -1 backward). The first grid interval where the
    signed distance to the boundary flips from negative to non-negative (in
    time order) brackets the crossing, which is then bisected until the
    bracket is narrower than TOLERANCE_DAYS.

    Args:
        angle_fn: Vectorized angle function of UTC Julian day, in degrees.
        start_jd: Search origin (UTC Julian day).
        boundary: Target angle in degrees.
        direction: +1 for the next crossing, -1 for the previous one.
        horizon: Search span in days.
        step: Grid spacing in days. Must be short enough that the angle
            advances well under 180° per step.

    Returns:
        UTC Julian day of the crossing.

    Raises:
        ConvergenceFailure: No crossing within the horizon, or bisection did
            not reach tolerance within MAX_ITERATIONS.
    """
    if direction not in (1, -1):
        raise ValueError(f"direction must be +1 or -1, got {direction}")

    offsets = np.arange(0.0, horizon + step, step)
    grid = start_jd + direction * offsets
    distance = signed_distance(angle_fn(grid), boundary)

    # Angles advance with time, so in time order the crossing is a − → + flip.
    # Going backward the grid is reversed in time, hence the flipped test.
    if direction > 0:
        flips = np.nonzero((distance[:-1] < 0) & (distance[1:] >= 0))[0]
    else:
        flips = np.nonzero((distance[:-1] >= 0) & (distance[1:] < 0))[0]
    if flips.size == 0:
        logger.error(
            "no crossing of %.4f° within %.1f days from jd=%.6f (direction %+d)",
            boundary,
            horizon,
            start_jd,
            direction,
        )
        raise ConvergenceFailure(
            details={"boundary": boundary, "start_jd": start_jd, "direction": direction}
        )

    i = int(flips[0])
    lo, hi = sorted((float(grid[i]), float(grid[i + 1])))

    for _ in range(MAX_ITERATIONS):
        if hi - lo < TOLERANCE_DAYS:
            return hi
        mid = (lo + hi) / 2
        if signed_distance(angle_fn(np.array([mid])), boundary)[0] < 0:
            lo = mid
        else:
            hi = mid

    logger.error(
        "bisection for %.4f° stalled after %d iterations (bracket %.3e days)",
        boundary,
        MAX_ITERATIONS,
        hi - lo,
    )
    raise ConvergenceFailure(
        details={"boundary": boundary, "start_jd": start_jd, "bracket_days": hi - lo}
    )
