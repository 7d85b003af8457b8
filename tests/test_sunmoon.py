"""
Tests for starsatnight/sunmoon.py. Almanac tests need the JPL ephemeris.

Run:
    pytest tests/test_sunmoon.py -v
"""

from datetime import date, datetime

import pytest
import pytz

from starsatnight.models import DateWindow, LocationContext, SunCondition
from starsatnight.sunmoon import (
    SunMoonPredictor,
    first_rise_and_set,
    local_day_bounds,
    moon_phase_name,
    sun_condition,
)

LLANO = LocationContext(name="Llano", latitude=30.8910, longitude=-98.4265, timezone="America/Chicago")
TROMSO = LocationContext(name="Tromso", latitude=69.6492, longitude=18.9553, timezone="Europe/Oslo")
# Equator near the date line on Central time: solar noon falls around 19:40 CDT
DATELINE = LocationContext(name="Dateline", latitude=0.0, longitude=170.0, timezone="America/Chicago")


# =============================================================================
# Pure helpers
# =============================================================================


class TestMoonPhaseName:
    @pytest.mark.parametrize(
        "angle, name",
        [
            (0.0, "New Moon"),
            (359.0, "New Moon"),
            (45.0, "Waxing Crescent"),
            (90.0, "First Quarter"),
            (135.0, "Waxing Gibbous"),
            (180.0, "Full Moon"),
            (225.0, "Waning Gibbous"),
            (270.0, "Last Quarter"),
            (315.0, "Waning Crescent"),
        ],
    )
    def test_sectors(self, angle, name):
        assert moon_phase_name(angle) == name


class TestLocalDayBounds:
    def test_dst_start_day_is_23_hours(self):
        start, end = local_day_bounds(date(2024, 3, 10), pytz.timezone("America/Chicago"))
        assert (end - start).total_seconds() == 23 * 3600

    def test_ordinary_day(self):
        start, end = local_day_bounds(date(2024, 6, 20), pytz.timezone("America/Chicago"))
        assert (end - start).total_seconds() == 24 * 3600
        assert start.utcoffset().total_seconds() == -5 * 3600



class TestSunCondition:
    def _at(self, hour, minute=0):
        return pytz.timezone("America/Chicago").localize(datetime(2024, 6, 20, hour, minute))

    def test_ordinary_day(self):
        assert sun_condition(self._at(6, 30), self._at(20, 40)) is SunCondition.NORMAL

    def test_sunset_before_sunrise_is_flagged(self):
        assert sun_condition(self._at(13, 40), self._at(1, 40)) is SunCondition.SET_BEFORE_RISE

    def test_only_one_event(self):
        assert sun_condition(self._at(1, 10), None) is SunCondition.NORMAL
        assert sun_condition(None, self._at(23, 50)) is SunCondition.NORMAL

    def test_polar_from_noon_altitude(self):
        assert sun_condition(None, None, noon_altitude=40.0) is SunCondition.POLAR_DAY
        assert sun_condition(None, None, noon_altitude=-3.0) is SunCondition.POLAR_NIGHT

    def test_polar_needs_noon_altitude(self):
        with pytest.raises(ValueError):
            sun_condition(None, None)


class TestFirstRiseAndSet:
    """Shared by the sun/moon and planet predictors."""

    class _T:
        def __init__(self, hour):
            self.hour = hour

        def astimezone(self, tz):
            return tz.localize(datetime(2024, 6, 20, self.hour))

    def test_first_of_each_kind(self):
        tz = pytz.timezone("America/Chicago")
        found = ([self._T(1), self._T(6), self._T(13), self._T(20)], [False, True, False, True])

        rise, set_ = first_rise_and_set(found, tz)

        assert rise.hour == 6
        assert set_.hour == 1

    def test_nothing_found(self):
        assert first_rise_and_set(([], []), pytz.utc) == (None, None)


# =============================================================================
# Almanac (real ephemeris)
# =============================================================================


@pytest.mark.ephemeris
class TestSunMoonPredictor:
    def test_one_event_per_day_in_order(self, ephemeris):
        events = SunMoonPredictor(ephemeris).predict(LLANO, DateWindow(date(2024, 6, 20), 3))

        assert [e.date for e in events] == [date(2024, 6, 20), date(2024, 6, 21), date(2024, 6, 22)]

    def test_sunrise_before_sunset_on_local_date(self, ephemeris):
        events = SunMoonPredictor(ephemeris).predict(LLANO, DateWindow(date(2024, 6, 20), 3))

        for e in events:
            assert e.sun_condition is SunCondition.NORMAL
            assert e.sunrise is not None and e.sunset is not None
            assert e.sunrise < e.sunset
            assert e.sunrise.date() == e.date
            assert e.sunset.date() == e.date
            # Central Texas summer: sunrise ~06:30, sunset ~20:40 CDT
            assert 5 <= e.sunrise.hour <= 7
            assert 19 <= e.sunset.hour <= 21

    def test_moon_phase_near_full_moon(self, ephemeris):
        # Full moon 2024-06-22 01:08 UTC
        (event,) = SunMoonPredictor(ephemeris).predict(LLANO, DateWindow(date(2024, 6, 21), 1))

        assert event.moon_phase_name == "Full Moon"
        assert event.moon_phase_fraction > 0.95

    def test_moon_fields_are_local_times_or_none(self, ephemeris):
        events = SunMoonPredictor(ephemeris).predict(LLANO, DateWindow(date(2024, 6, 1), 10))

        for e in events:
            assert 0.0 <= e.moon_phase_fraction <= 1.0
            for t in (e.moonrise, e.moonset):
                assert t is None or t.date() == e.date

    def test_polar_day(self, ephemeris):
        (event,) = SunMoonPredictor(ephemeris).predict(TROMSO, DateWindow(date(2024, 6, 21), 1))

        assert event.sun_condition is SunCondition.POLAR_DAY
        assert event.sunrise is None
        assert event.sunset is None

    def test_polar_night(self, ephemeris):
        (event,) = SunMoonPredictor(ephemeris).predict(TROMSO, DateWindow(date(2024, 12, 21), 1))

        assert event.sun_condition is SunCondition.POLAR_NIGHT
        assert event.sunrise is None
        assert event.sunset is None

    def test_deterministic(self, ephemeris):
        predictor = SunMoonPredictor(ephemeris)
        window = DateWindow(date(2024, 6, 20), 2)
        assert predictor.predict(LLANO, window) == predictor.predict(LLANO, window)

    def test_timezone_far_from_longitude(self, ephemeris):
        # Sunset ~01:45 CDT (the evening of 06/20 local solar time), sunrise ~13:35 CDT
        (event,) = SunMoonPredictor(ephemeris).predict(DATELINE, DateWindow(date(2024, 6, 20), 1))

        assert event.sun_condition is SunCondition.SET_BEFORE_RISE
        assert event.sunset < event.sunrise
        assert event.sunset.hour < 4
        assert 12 <= event.sunrise.hour < 15

    def test_no_silent_inversion_approaching_polar_day(self, ephemeris):
        # Nights shrink toward the midnight sun, centred near 00:40 CEST
        events = SunMoonPredictor(ephemeris).predict(TROMSO, DateWindow(date(2024, 5, 8), 10))

        for e in events:
            if e.sunrise is None or e.sunset is None:
                assert e.sun_condition in (SunCondition.NORMAL, SunCondition.POLAR_DAY)
            elif e.sun_condition is SunCondition.SET_BEFORE_RISE:
                assert e.sunset < e.sunrise
            else:
                assert e.sun_condition is SunCondition.NORMAL
                assert e.sunrise <= e.sunset
