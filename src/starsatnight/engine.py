"""Orchestration: validation, window planning, cached parallel prediction."""

import dataclasses
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date
from typing import Callable, Mapping

from starsatnight.cache import ResultCache, local_today
from starsatnight.config import Settings
from starsatnight.errors import ComputationError, DataSourceUnavailable
from starsatnight.models import (
    IRIDIUM_MAX_DAYS,
    ISS_MAX_DAYS,
    CacheKey,
    DateWindow,
    EventReport,
    Phenomenon,
    ValidatedRequest,
    WindowPlan,
)
from starsatnight.planets import PlanetPredictor
from starsatnight.satellites import SatellitePredictor
from starsatnight.sources import (
    CelestrakProvider,
    Clock,
    ElementsProvider,
    ElementStore,
    EphemerisSource,
    utc_now,
)
from starsatnight.sunmoon import SunMoonPredictor
from starsatnight.validation import validate_request

logger = logging.getLogger(__name__)


def plan_windows(today: date, days: int) -> WindowPlan:
    """Derive each phenomenon's window from the validated day count.

    ISS shares the full window (its lookahead equals the request ceiling),
    Iridium is capped at 7 days, planets cover today only.
    """
    full = DateWindow(start=today, days=days)
    return WindowPlan(
        requested_days=days,
        full=full,
        iss=full.capped(ISS_MAX_DAYS),
        iridium=full.capped(IRIDIUM_MAX_DAYS),
        planet_date=today,
    )


class Engine:
    """Computes an EventReport per request, sharing one ResultCache across requests."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        provider: ElementsProvider | None = None,
        clock: Clock = utc_now,
        cache: ResultCache | None = None,
        sun_moon: SunMoonPredictor | None = None,
        planets: PlanetPredictor | None = None,
        satellites: SatellitePredictor | None = None,
    ):
        self.settings = settings or Settings()
        self._clock = clock
        self.cache = cache or ResultCache(self.settings.cache_capacity, clock=clock)

        ephemeris = None
        if sun_moon is None or planets is None or satellites is None:
            ephemeris = EphemerisSource(self.settings)
        self.sun_moon = sun_moon or SunMoonPredictor(ephemeris)
        self.planets = planets or PlanetPredictor(ephemeris)
        if satellites is None:
            elements = ElementStore(
                provider or CelestrakProvider(self.settings, clock), self.settings, clock
            )
            satellites = SatellitePredictor(elements, ephemeris, self.settings)
        self.satellites = satellites

    def compute_events(self, raw: Mapping[str, object]) -> EventReport:
        """Validate a raw request and compute all four event collections.

        Raises:
            ValidationError: Before any computation, listing every bad field.
        """
        return self.compute(validate_request(raw))

    def compute(self, request: ValidatedRequest) -> EventReport:
        location = request.location
        today = local_today(self._clock(), location.timezone)
        windows = plan_windows(today, request.days)
        if windows.full.days != request.days:
            raise ComputationError(
                f"Window spans {windows.full.days} days but {request.days} were requested"
            )

        def key(phenomenon: Phenomenon, window: DateWindow) -> CacheKey:
            return CacheKey(
                phenomenon=phenomenon,
                location_key=location.location_key,
                window_start=window.start,
                window_end=window.end,
                suppress_degrees=request.suppress_degrees,
            )

        def cached(phenomenon: Phenomenon, window: DateWindow, fn: Callable, anchored=True):
            return lambda: self.cache.get_or_compute(
                key(phenomenon, window),
                fn,
                timezone=location.timezone,
                refresh=request.refresh,
                anchored=anchored,
            )

        planet_window = DateWindow(start=windows.planet_date, days=1)
        tasks = {
            Phenomenon.SUN_MOON: cached(
                Phenomenon.SUN_MOON,
                windows.full,
                lambda: self.sun_moon.predict(location, windows.full),
                anchored=False,
            ),
            Phenomenon.PLANETS: cached(
                Phenomenon.PLANETS,
                planet_window,
                lambda: self.planets.predict(location, windows.planet_date, request.refresh),
            ),
            Phenomenon.ISS: cached(
                Phenomenon.ISS,
                windows.iss,
                lambda: self.satellites.predict_iss(
                    location, windows.iss, request.refresh, request.suppress_degrees
                ),
            ),
            Phenomenon.IRIDIUM: cached(
                Phenomenon.IRIDIUM,
                windows.iridium,
                lambda: self.satellites.predict_iridium(
                    location,
                    windows.iridium,
                    request.days,
                    request.refresh,
                    request.suppress_degrees,
                ),
            ),
        }

        report = EventReport(location=location, windows=windows)
        with ThreadPoolExecutor(max_workers=len(tasks), thread_name_prefix="starsatnight") as pool:
            futures = {pool.submit(fn): phenomenon for phenomenon, fn in tasks.items()}
            for future in as_completed(futures):
                phenomenon = futures[future]
                try:
                    result = future.result()
                except (DataSourceUnavailable, ComputationError) as exc:
                    logger.warning("%s failed for %s: %s", phenomenon.value, location.location_key, exc)
                    report.failures[phenomenon] = str(exc)
                    continue
                except Exception as exc:
                    logger.exception(
                        "%s raised unexpectedly for %s", phenomenon.value, location.location_key
                    )
                    report.failures[phenomenon] = f"Internal error: {exc}"
                    continue
                if phenomenon is Phenomenon.IRIDIUM:
                    # Cached per resolved window, so 8 and 10 requested days share an entry
                    result = dataclasses.replace(result, requested_days=request.days)
                setattr(report, phenomenon.value, result)
        return report
