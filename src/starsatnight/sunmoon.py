"""Sun and moon almanac — rise/set times and moon phase per local calendar date."""

from datetime import date, datetime, time, timedelta

import pytz
from skyfield import almanac
from skyfield.api import wgs84

from starsatnight.models import DateWindow, LocationContext, SunCondition, SunMoonEvent
from starsatnight.sources import EphemerisSource

# Apparent lunar radius used for moonrise/moonset (upper limb on the horizon)
MOON_RADIUS_DEGREES = 0.26

_PHASE_NAMES = (
    "New Moon",
    "Waxing Crescent",
    "First Quarter",
    "Waxing Gibbous",
    "Full Moon",
    "Waning Gibbous",
    "Last Quarter",
    "Waning Crescent",
)


def moon_phase_name(angle_degrees: float) -> str:
    """Name the phase for an ecliptic elongation (0 = new, 180 = full).

    Each named phase covers a 45° sector centred on its nominal angle.
    """
    index = int(((angle_degrees % 360) + 22.5) // 45) % 8
    return _PHASE_NAMES[index]


def sun_condition(
    sunrise: datetime | None, sunset: datetime | None, noon_altitude: float | None = None
) -> SunCondition:
    """Classify a local date from its first sunrise and first sunset.

    A date whose first sunset precedes its first sunrise (the previous
    evening's sunset after local midnight, or a timezone far from the
    longitude) is flagged rather than reported as an ordinary day.
    noon_altitude only matters when neither event occurs.
    """
    if sunrise is None and sunset is None:
        if noon_altitude is None:
            raise ValueError("noon_altitude is required when the sun neither rises nor sets")
        return SunCondition.POLAR_DAY if noon_altitude > 0 else SunCondition.POLAR_NIGHT
    if sunrise is not None and sunset is not None and sunset < sunrise:
        return SunCondition.SET_BEFORE_RISE
    return SunCondition.NORMAL


def local_day_bounds(day: date, tz) -> tuple[datetime, datetime]:
    """Local midnight to the next local midnight, DST-correct."""
    start = tz.localize(datetime.combine(day, time()))
    end = tz.localize(datetime.combine(day + timedelta(days=1), time()))
    return start, end


class SunMoonPredictor:
    """Computes one SunMoonEvent per date. Pure for a given (date, location)."""

    def __init__(self, ephemeris: EphemerisSource):
        self._ephemeris = ephemeris

    def predict(
        self, location: LocationContext, window: DateWindow
    ) -> tuple[SunMoonEvent, ...]:
        """Sun and moon events for each date of the window, ascending.

        Args:
            location: Validated observer.
            window: Dates to cover, in the observer's timezone.

        Returns:
            Tuple with exactly window.days events.
        """
        eph = self._ephemeris.get()
        ts = self._ephemeris.timescale()
        tz = pytz.timezone(location.timezone)
        topos = wgs84.latlon(
            latitude_degrees=location.latitude, longitude_degrees=location.longitude
        )
        sun_up = almanac.sunrise_sunset(eph, topos)
        moon_up = almanac.risings_and_settings(
            eph, eph["moon"], topos, radius_degrees=MOON_RADIUS_DEGREES
        )
        ground = eph["earth"] + topos

        events: list[SunMoonEvent] = []
        for day in window.dates():
            start, end = local_day_bounds(day, tz)
            t0 = ts.from_datetime(start)
            t1 = ts.from_datetime(end)
            noon = ts.from_datetime(tz.localize(datetime.combine(day, time(12))))

            sunrise, sunset = first_rise_and_set(almanac.find_discrete(t0, t1, sun_up), tz)
            moonrise, moonset = first_rise_and_set(almanac.find_discrete(t0, t1, moon_up), tz)

            noon_altitude = None
            if sunrise is None and sunset is None:
                alt, _, _ = ground.at(noon).observe(eph["sun"]).apparent().altaz()
                noon_altitude = float(alt.degrees)
            condition = sun_condition(sunrise, sunset, noon_altitude)

            phase_angle = float(almanac.moon_phase(eph, noon).degrees)
            events.append(
                SunMoonEvent(
                    date=day,
                    sunrise=sunrise,
                    sunset=sunset,
                    moonrise=moonrise,
                    moonset=moonset,
                    sun_condition=condition,
                    moon_phase_fraction=float(
                        almanac.fraction_illuminated(eph, "moon", noon)
                    ),
                    moon_phase_name=moon_phase_name(phase_angle),
                    moon_phase_angle=phase_angle,
                )
            )
        return tuple(events)


def first_rise_and_set(found, tz) -> tuple[datetime | None, datetime | None]:
    """Split find_discrete output (True = rising) into the first rise and first set."""
    times, values = found
    rise = set_ = None
    for t, is_rise in zip(times, values):
        if is_rise and rise is None:
            rise = t.astimezone(tz)
        elif not is_rise and set_ is None:
            set_ = t.astimezone(tz)
    return rise, set_
