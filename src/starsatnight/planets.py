"""Planet rise/transit/set for the current day."""

import logging
from datetime import date

import pytz
from skyfield import almanac
from skyfield.api import wgs84

from starsatnight.models import LocationContext, PlanetPassEvent
from starsatnight.sources import EphemerisSource
from starsatnight.sunmoon import first_rise_and_set, local_day_bounds

logger = logging.getLogger(__name__)

# Display name → ephemeris segment (de421 only carries planet barycenters)
TRACKED_PLANETS: dict[str, str] = {
    "Mercury": "mercury barycenter",
    "Venus": "venus barycenter",
    "Mars": "mars barycenter",
    "Jupiter": "jupiter barycenter",
    "Saturn": "saturn barycenter",
}


class PlanetPredictor:
    """Rise, upper transit and set of Mercury through Saturn on one date."""

    def __init__(self, ephemeris: EphemerisSource):
        self._ephemeris = ephemeris

    def predict(
        self, location: LocationContext, day: date, refresh: bool = False
    ) -> tuple[PlanetPassEvent, ...]:
        """Compute PlanetPassEvents for one local date, in TRACKED_PLANETS order.

        Args:
            location: Validated observer.
            day: Local calendar date; the engine only ever passes today.
            refresh: Reopen the ephemeris instead of reusing the loaded one.
        """
        eph = self._ephemeris.get(refresh=refresh)
        ts = self._ephemeris.timescale()
        tz = pytz.timezone(location.timezone)
        topos = wgs84.latlon(
            latitude_degrees=location.latitude, longitude_degrees=location.longitude
        )
        ground = eph["earth"] + topos
        start, end = local_day_bounds(day, tz)
        t0 = ts.from_datetime(start)
        t1 = ts.from_datetime(end)

        events: list[PlanetPassEvent] = []
        for name, segment in TRACKED_PLANETS.items():
            body = eph[segment]

            rise, set_ = first_rise_and_set(
                almanac.find_discrete(t0, t1, almanac.risings_and_settings(eph, body, topos)), tz
            )

            transit = altitude = azimuth = None
            times, values = almanac.find_discrete(
                t0, t1, almanac.meridian_transits(eph, body, topos)
            )
            for t, value in zip(times, values):
                if value == 1:  # 1 = meridian, 0 = antimeridian
                    alt, az, _ = ground.at(t).observe(body).apparent().altaz()
                    transit = t.astimezone(tz)
                    altitude = round(float(alt.degrees), 1)
                    azimuth = round(float(az.degrees), 1)
                    break

            events.append(
                PlanetPassEvent(
                    planet=name,
                    rise_time=rise,
                    transit_time=transit,
                    transit_altitude=altitude,
                    transit_azimuth=azimuth,
                    set_time=set_,
                )
            )
        logger.debug("Planet passes for %s on %s: %d", location.location_key, day, len(events))
        return tuple(events)
