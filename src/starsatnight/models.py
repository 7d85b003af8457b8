"""Request, event and cache types passed between the validation, predictor and renderer layers."""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Iterator

ISS_MAX_DAYS = 10
IRIDIUM_MAX_DAYS = 7
MAX_REQUEST_DAYS = 10


class Phenomenon(str, Enum):
    """Event classes the engine computes independently."""

    SUN_MOON = "sun_moon"
    PLANETS = "planets"
    ISS = "iss"
    IRIDIUM = "iridium"


class SunCondition(str, Enum):
    """Whether the sun crosses the horizon on a given date."""

    NORMAL = "normal"
    POLAR_DAY = "polar_day"  # Above the horizon all day
    POLAR_NIGHT = "polar_night"  # Below the horizon all day
    SET_BEFORE_RISE = "set_before_rise"  # Sets (from the previous day) before it rises


@dataclass(frozen=True)
class LocationContext:
    """Validated observer. Input to every predictor."""

    name: str  # Sanitized display name (≤32 chars)
    latitude: float  # Decimal degrees, north positive
    longitude: float  # Decimal degrees, east positive
    timezone: str  # IANA identifier ("America/Chicago")

    @property
    def location_key(self) -> str:
        """Stable identity of the observer used in cache keys."""
        return f"{self.latitude:.4f},{self.longitude:.4f},{self.timezone}"


@dataclass(frozen=True)
class DateWindow:
    """Consecutive calendar dates in the observer's timezone."""

    start: date
    days: int

    @property
    def end(self) -> date:
        return self.start + timedelta(days=self.days - 1)

    def dates(self) -> Iterator[date]:
        for offset in range(self.days):
            yield self.start + timedelta(days=offset)

    def capped(self, max_days: int) -> "DateWindow":
        """Same start, shortened to at most max_days."""
        return DateWindow(start=self.start, days=min(self.days, max_days))


@dataclass(frozen=True)
class WindowPlan:
    """Resolved per-phenomenon windows for one request."""

    requested_days: int
    full: DateWindow
    iss: DateWindow
    iridium: DateWindow
    planet_date: date

    @property
    def iridium_truncated(self) -> bool:
        return self.iridium.days < self.requested_days


@dataclass(frozen=True)
class SunMoonEvent:
    """Sun and moon almanac for one local calendar date. None = does not occur."""

    date: date
    sunrise: datetime | None
    sunset: datetime | None
    moonrise: datetime | None
    moonset: datetime | None
    sun_condition: SunCondition
    moon_phase_fraction: float  # Illuminated fraction, 0.0 (new) to 1.0 (full)
    moon_phase_name: str
    moon_phase_angle: float  # Ecliptic longitude difference moon - sun (degrees)


@dataclass(frozen=True)
class PlanetPassEvent:
    """Rise, transit and set of a planet on the current day."""

    planet: str
    rise_time: datetime | None
    transit_time: datetime | None
    transit_altitude: float | None  # Degrees above horizon at transit
    transit_azimuth: float | None  # Degrees from north at transit
    set_time: datetime | None


@dataclass(frozen=True)
class SatellitePassEvent:
    """Visible portion of one satellite pass (or one Iridium flare)."""

    satellite: str
    start_time: datetime
    start_azimuth: float
    start_elevation: float
    max_time: datetime
    max_azimuth: float
    max_elevation: float
    end_time: datetime
    end_azimuth: float
    end_elevation: float
    max_magnitude: float | None = None  # Iridium flares only


@dataclass(frozen=True)
class SatelliteTable:
    """Satellite passes plus what a renderer needs to label the table."""

    phenomenon: Phenomenon
    passes: tuple[SatellitePassEvent, ...]
    window: DateWindow
    requested_days: int
    suppress_degrees: bool

    @property
    def truncated(self) -> bool:
        return self.window.days < self.requested_days


@dataclass(frozen=True)
class CacheKey:
    """Identity of a cached event collection."""

    phenomenon: Phenomenon
    location_key: str
    window_start: date
    window_end: date
    suppress_degrees: bool


@dataclass(frozen=True)
class ValidatedRequest:
    """Sanitized request. Produced only when every required field is valid."""

    location: LocationContext
    days: int
    refresh: bool
    suppress_degrees: bool


@dataclass
class EventReport:
    """Everything computed for one request. The sole input to renderers."""

    location: LocationContext
    windows: WindowPlan
    sun_moon: tuple[SunMoonEvent, ...] | None = None
    planets: tuple[PlanetPassEvent, ...] | None = None
    iss: SatelliteTable | None = None
    iridium: SatelliteTable | None = None
    failures: dict[Phenomenon, str] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return not self.failures
