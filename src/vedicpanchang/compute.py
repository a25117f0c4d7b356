"""Query façade — cache check, computation pipeline, persistence."""

import logging
from typing import Any

from vedicpanchang.calculator import PanchangCalculator
from vedicpanchang.config import Settings, get_settings
from vedicpanchang.ephemeris import EphemerisProvider, SkyfieldEphemeris
from vedicpanchang.errors import CacheUnavailable, DegenerateDayWindow, PanchangError
from vedicpanchang.models import (
    MuhurtaResult,
    ObservationPoint,
    PanchangResponse,
    PanchangResult,
)
from vedicpanchang.muhurta import MuhurtaDeriver
from vedicpanchang.schema import parse_request, to_response
from vedicpanchang.store import PanchangStore

logger = logging.getLogger(__name__)

SOURCE_DATABASE = "database"
SOURCE_COMPUTED = "computed"


class PanchangService:
    """Serves Panchang queries, database first.

    The store is an optimization: when it is absent or unreachable the
    service computes the result and returns it uncached. Computation errors
    propagate and nothing is persisted for the failed point.
    """

    def __init__(
        self,
        ephemeris: EphemerisProvider,
        store: PanchangStore | None = None,
    ) -> None:
        self._ephemeris = ephemeris
        self._store = store
        self._calculator = PanchangCalculator(ephemeris)
        self._deriver = MuhurtaDeriver()

    def _cached(self, point: ObservationPoint, include_muhurta: bool):
        if self._store is None:
            return None
        try:
            panchang = self._store.get(point)
            if panchang is None:
                logger.debug("cache miss for %s", point.cache_key())
                return None
            muhurta = self._store.get_muhurta(point) if include_muhurta else None
        except CacheUnavailable as e:
            logger.warning("cache read skipped: %s", e.message)
            return None
        logger.debug("cache hit for %s", point.cache_key())
        return panchang, muhurta

    def _persist(
        self,
        point: ObservationPoint,
        panchang: PanchangResult,
        muhurta: MuhurtaResult | None,
    ) -> None:
        if self._store is None:
            return
        try:
            self._store.put(point, panchang, muhurta)
        except CacheUnavailable as e:
            logger.warning("cache write skipped: %s", e.message)

    def panchang(
        self, point: ObservationPoint, include_muhurta: bool = True
    ) -> PanchangResponse:
        """Panchang (and Muhurta windows) for one observation point.

        Args:
            point: Date, coordinates and timezone offset.
            include_muhurta: Also return the day's Muhurta windows.

        Returns:
            PanchangResponse whose `source` is "database" on a cache hit.

        Raises:
            EphemerisUnavailable, DegenerateDayWindow, ConvergenceFailure:
                The result could not be computed.
        """
        cached = self._cached(point, include_muhurta)
        if cached is not None:
            panchang, muhurta = cached
            if include_muhurta and muhurta is None:
                # Stored without windows; derive them from fresh positions
                positions = self._ephemeris.positions(point)
                muhurta = self._deriver.derive(panchang, positions, point)
            return PanchangResponse(
                panchang=panchang,
                muhurta=muhurta if include_muhurta else None,
                source=SOURCE_DATABASE,
            )

        positions = self._ephemeris.positions(point)
        panchang = self._calculator.compute(positions, point)
        try:
            muhurta = self._deriver.derive(panchang, positions, point)
        except DegenerateDayWindow:
            if include_muhurta:
                raise
            muhurta = None
        self._persist(point, panchang, muhurta)
        return PanchangResponse(
            panchang=panchang,
            muhurta=muhurta if include_muhurta else None,
            source=SOURCE_COMPUTED,
        )


def build_service(settings: Settings | None = None) -> PanchangService:
    """PanchangService wired to the configured kernel and database."""
    settings = settings or get_settings()
    ephemeris = SkyfieldEphemeris(
        settings.ephemeris_dir,
        filename=settings.ephemeris_file,
        timeout=settings.ephemeris_timeout,
    )
    store: PanchangStore | None
    try:
        store = PanchangStore.from_url(settings.database_url)
    except CacheUnavailable as e:
        logger.warning("running without cache: %s", e.message)
        store = None
    return PanchangService(ephemeris, store)


def run(
    request: dict[str, Any],
    service: PanchangService | None = None,
    settings: Settings | None = None,
    include_muhurta: bool = True,
) -> dict[str, Any]:
    """Handle one request dict end to end and return the response dict.

    Engine errors are reported as `{"success": False, "error": <code>, ...}`;
    anything else propagates.
    """
    settings = settings or get_settings()
    service = service or build_service(settings)
    try:
        point = parse_request(request, settings)
        response = service.panchang(point, include_muhurta=include_muhurta)
    except PanchangError as e:
        logger.warning("request failed with %s: %s", e.code, e.message)
        return e.to_dict()
    return to_response(response)
