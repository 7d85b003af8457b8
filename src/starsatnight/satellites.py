"""Satellite pass prediction: visible ISS passes and Iridium flares from TLE elements.

Passes are found with skyfield's find_events(), then each pass is sampled as
a numpy array of times so visibility (satellite sunlit, observer in darkness)
and flare geometry are evaluated in one vectorized step per pass.
"""

import logging
import math
from datetime import timedelta

import numpy as np
import pytz
from skyfield.api import EarthSatellite, wgs84

from starsatnight.config import Settings
from starsatnight.errors import ComputationError, DataSourceUnavailable
from starsatnight.models import (
    IRIDIUM_MAX_DAYS,
    ISS_MAX_DAYS,
    DateWindow,
    LocationContext,
    Phenomenon,
    SatellitePassEvent,
    SatelliteTable,
)
from starsatnight.sources import ElementStore, EphemerisSource, TleRecord
from starsatnight.sunmoon import local_day_bounds

logger = logging.getLogger(__name__)

DARK_SUN_ALTITUDE = -6.0  # Observer needs at least civil twilight
ISS_SAMPLE_SECONDS = 10.0
FLARE_SAMPLE_SECONDS = 1.0

# Main mission antennas: flat panels, nadir-pointing body, yaw along velocity
MMA_TILT_DEGREES = 40.0
MMA_AZIMUTHS_DEGREES = (0.0, 120.0, 240.0)

# Empirical flare brightness: peak at zero miss angle, ~3 mag fainter per degree
FLARE_PEAK_MAGNITUDE = -9.0
FLARE_MAGNITUDE_PER_DEGREE = 3.0
FLARE_REFERENCE_RANGE_KM = 1000.0


def _unit(vectors: np.ndarray) -> np.ndarray:
    return vectors / np.linalg.norm(vectors, axis=0)


def _build_satellite(record: TleRecord, ts) -> EarthSatellite:
    try:
        return EarthSatellite(record.line1, record.line2, record.name, ts)
    except (ValueError, IndexError) as exc:
        raise ComputationError(f"Malformed elements for {record.name!r}: {exc}") from exc


def _discover_passes(sat, topos, t0, t1) -> list[tuple]:
    """Rise/set Time pairs of every pass that rises in [t0, t1).

    The search runs one orbit past t1 so a pass still up at t1 keeps its set.
    A pass already up at t0 has no rise and is skipped.
    """
    orbit = timedelta(minutes=2 * math.pi / sat.model.no_kozai)
    times, events = sat.find_events(topos, t0, t1 + orbit, altitude_degrees=0.0)
    passes = []
    rise = None
    for t, event in zip(times, events):
        if event == 0:
            rise = t
        elif event == 2 and rise is not None:
            if rise.tt < t1.tt:
                passes.append((rise, t))
            rise = None
    return passes


def _sun_altitudes(eph, topos, times) -> np.ndarray:
    alt, _, _ = (eph["earth"] + topos).at(times).observe(eph["sun"]).apparent().altaz()
    return alt.degrees


def _dark_passes(passes: list[tuple], eph, topos, ts) -> list[tuple]:
    """Drop passes that rise and set while the observer's sky is still bright."""
    if not passes:
        return passes
    ends = ts.tt_jd(np.array([t.tt for pair in passes for t in pair]))
    sun_alt = np.reshape(_sun_altitudes(eph, topos, ends), (-1, 2))
    return [p for p, alt in zip(passes, sun_alt) if alt.min() < DARK_SUN_ALTITUDE]


def _sample_times(ts, t_rise, t_set, step_seconds: float):
    span = (t_set.tt - t_rise.tt) * 86400.0
    count = max(2, int(span / step_seconds) + 1)
    return ts.tt_jd(np.linspace(t_rise.tt, t_set.tt, count))


class SatellitePredictor:
    """ISS and Iridium pass tables for an observer and window."""

    def __init__(self, elements: ElementStore, ephemeris: EphemerisSource, settings: Settings):
        self._elements = elements
        self._ephemeris = ephemeris
        self._settings = settings

    def predict_iss(
        self,
        location: LocationContext,
        window: DateWindow,
        refresh: bool = False,
        suppress_degrees: bool = False,
    ) -> SatelliteTable:
        """Visible ISS passes over the window (at most 10 days).

        Raises:
            DataSourceUnavailable: Elements or ephemeris could not be fetched,
                or the ISS is missing from its element group.
            ComputationError: The ISS elements are malformed.
        """
        window = window.capped(ISS_MAX_DAYS)
        elements = self._elements.get(self._settings.iss_group, refresh=refresh)
        record = elements.find(self._settings.iss_name)
        if record is None:
            raise DataSourceUnavailable(
                f"{self._settings.iss_name!r} not found in group {elements.group!r}"
            )

        passes = self._visible_passes([record], location, window, flares=False)
        logger.info("ISS: %d visible passes over %d days", len(passes), window.days)
        return SatelliteTable(
            phenomenon=Phenomenon.ISS,
            passes=passes,
            window=window,
            requested_days=window.days,
            suppress_degrees=suppress_degrees,
        )

    def predict_iridium(
        self,
        location: LocationContext,
        window: DateWindow,
        requested_days: int,
        refresh: bool = False,
        suppress_degrees: bool = False,
    ) -> SatelliteTable:
        """Iridium flares over the window, never more than 7 days.

        requested_days is only carried onto the table so a renderer can say
        why it stops short.
        """
        window = window.capped(IRIDIUM_MAX_DAYS)
        elements = self._elements.get(self._settings.iridium_group, refresh=refresh)
        passes = self._visible_passes(list(elements.records), location, window, flares=True)
        logger.info(
            "Iridium: %d flares from %d satellites over %d days",
            len(passes),
            len(elements.records),
            window.days,
        )
        return SatelliteTable(
            phenomenon=Phenomenon.IRIDIUM,
            passes=passes,
            window=window,
            requested_days=requested_days,
            suppress_degrees=suppress_degrees,
        )

    def _visible_passes(
        self,
        records: list[TleRecord],
        location: LocationContext,
        window: DateWindow,
        flares: bool,
    ) -> tuple[SatellitePassEvent, ...]:
        eph = self._ephemeris.get()
        ts = self._ephemeris.timescale()
        tz = pytz.timezone(location.timezone)
        topos = wgs84.latlon(
            latitude_degrees=location.latitude, longitude_degrees=location.longitude
        )
        start, _ = local_day_bounds(window.start, tz)
        _, end = local_day_bounds(window.end, tz)
        t0 = ts.from_datetime(start)
        t1 = ts.from_datetime(end)

        found: list[SatellitePassEvent] = []
        for record in records:
            sat = _build_satellite(record, ts)
            passes = _dark_passes(_discover_passes(sat, topos, t0, t1), eph, topos, ts)
            for t_rise, t_set in passes:
                if flares:
                    event = self._flare(sat, topos, eph, ts, t_rise, t_set, tz)
                else:
                    event = self._pass(sat, topos, eph, ts, t_rise, t_set, tz)
                if event is not None:
                    found.append(event)
        found.sort(key=lambda e: e.max_time)
        return tuple(found)

    def _geometry(self, sat, topos, eph, times):
        """Altitude, azimuth, range and visibility mask for each sample."""
        alt, az, distance = (sat - topos).at(times).altaz()
        sunlit = sat.at(times).is_sunlit(eph)
        dark = _sun_altitudes(eph, topos, times) < DARK_SUN_ALTITUDE
        visible = sunlit & dark & (alt.degrees > 0)
        return alt.degrees, az.degrees, distance.km, visible

    def _pass(self, sat, topos, eph, ts, t_rise, t_set, tz) -> SatellitePassEvent | None:
        times = _sample_times(ts, t_rise, t_set, ISS_SAMPLE_SECONDS)
        alt, az, _, visible = self._geometry(sat, topos, eph, times)
        indexes = np.flatnonzero(visible)
        if indexes.size == 0:
            return None
        peak = int(indexes[np.argmax(alt[indexes])])
        if alt[peak] < self._settings.min_elevation:
            return None
        return _event(sat.name, times, alt, az, tz, int(indexes[0]), peak, int(indexes[-1]))

    def _flare(self, sat, topos, eph, ts, t_rise, t_set, tz) -> SatellitePassEvent | None:
        times = _sample_times(ts, t_rise, t_set, FLARE_SAMPLE_SECONDS)
        alt, az, range_km, visible = self._geometry(sat, topos, eph, times)
        if not visible.any():
            return None

        miss = reflection_miss_angles(sat, topos, eph, times)
        flaring = visible & (miss < self._settings.flare_max_angle)
        if not flaring.any():
            return None

        peak = int(np.argmin(np.where(flaring, miss, np.inf)))
        magnitude = flare_magnitude(float(miss[peak]), float(range_km[peak]))
        if magnitude > self._settings.iridium_magnitude_limit:
            return None

        first = last = peak
        while first > 0 and flaring[first - 1]:
            first -= 1
        while last < len(flaring) - 1 and flaring[last + 1]:
            last += 1
        return _event(sat.name, times, alt, az, tz, first, peak, last, magnitude)


def reflection_miss_angles(sat, topos, eph, times) -> np.ndarray:
    """Smallest angle (degrees) between a mirrored sun ray and the observer, over all antennas.

    Samples where no antenna faces both the sun and the observer get +inf.
    """
    geocentric = sat.at(times)
    position = geocentric.position.km
    velocity = geocentric.velocity.km_per_s
    sun = eph["earth"].at(times).observe(eph["sun"]).position.km
    observer = topos.at(times).position.km

    nadir = -_unit(position)
    along = _unit(velocity - np.sum(velocity * nadir, axis=0) * nadir)
    across = np.cross(nadir, along, axis=0)
    to_sun = _unit(sun - position)
    to_observer = _unit(observer - position)

    tilt = math.radians(MMA_TILT_DEGREES)
    best = np.full(position.shape[1], np.inf)
    for azimuth in MMA_AZIMUTHS_DEGREES:
        phi = math.radians(azimuth)
        normal = math.cos(tilt) * nadir + math.sin(tilt) * (
            math.cos(phi) * along + math.sin(phi) * across
        )
        facing_sun = np.sum(normal * to_sun, axis=0)
        reflected = 2.0 * facing_sun * normal - to_sun
        cos_miss = np.clip(np.sum(reflected * to_observer, axis=0), -1.0, 1.0)
        miss = np.degrees(np.arccos(cos_miss))
        usable = (facing_sun > 0) & (np.sum(normal * to_observer, axis=0) > 0)
        best = np.minimum(best, np.where(usable, miss, np.inf))
    return best


def flare_magnitude(miss_degrees: float, range_km: float) -> float:
    """Apparent magnitude of a flare from its miss angle and slant range."""
    return round(
        FLARE_PEAK_MAGNITUDE
        + FLARE_MAGNITUDE_PER_DEGREE * miss_degrees
        + 5.0 * math.log10(range_km / FLARE_REFERENCE_RANGE_KM),
        1,
    )


def _event(name, times, alt, az, tz, first, peak, last, magnitude=None) -> SatellitePassEvent:
    return SatellitePassEvent(
        satellite=name,
        start_time=times[first].astimezone(tz),
        start_azimuth=round(float(az[first]), 1),
        start_elevation=round(float(alt[first]), 1),
        max_time=times[peak].astimezone(tz),
        max_azimuth=round(float(az[peak]), 1),
        max_elevation=round(float(alt[peak]), 1),
        end_time=times[last].astimezone(tz),
        end_azimuth=round(float(az[last]), 1),
        end_elevation=round(float(alt[last]), 1),
        max_magnitude=magnitude,
    )
