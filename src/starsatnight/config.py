"""Environment-driven settings. Entry points call load_dotenv() before from_env()."""

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

_ROOT = Path(__file__).parent.parent.parent

CELESTRAK_GP_URL = "https://celestrak.org/NORAD/elements/gp.php"


def _float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    """Tunable engine parameters."""

    data_dir: Path = _ROOT / "resources"  # skyfield download/cache directory
    ephemeris: str = "de421.bsp"
    tle_url: str = CELESTRAK_GP_URL
    iss_group: str = "stations"
    iss_name: str = "ISS (ZARYA)"
    iridium_group: str = "iridium"
    http_timeout: float = 10.0  # Seconds
    tle_max_age: timedelta = timedelta(hours=12)  # Since last fetch
    tle_stale_after: timedelta = timedelta(days=3)  # Since element epoch
    min_elevation: float = 10.0  # Degrees; visible passes must peak above
    iridium_magnitude_limit: float = -1.0  # Flares fainter than this are dropped
    flare_max_angle: float = 2.0  # Degrees between reflected ray and observer
    cache_capacity: int = 256
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from STARS_* environment variables.

        Raises:
            ValueError: When a numeric variable cannot be parsed.
        """
        defaults = cls()
        data_dir = os.environ.get("STARS_DATA_DIR")
        return cls(
            data_dir=Path(data_dir) if data_dir else defaults.data_dir,
            ephemeris=os.environ.get("STARS_EPHEMERIS", defaults.ephemeris),
            tle_url=os.environ.get("STARS_TLE_URL", defaults.tle_url),
            iss_group=os.environ.get("STARS_ISS_GROUP", defaults.iss_group),
            iss_name=os.environ.get("STARS_ISS_NAME", defaults.iss_name),
            iridium_group=os.environ.get("STARS_IRIDIUM_GROUP", defaults.iridium_group),
            http_timeout=_float("STARS_HTTP_TIMEOUT", defaults.http_timeout),
            tle_max_age=timedelta(hours=_float("STARS_TLE_MAX_AGE_HOURS", 12.0)),
            tle_stale_after=timedelta(days=_float("STARS_TLE_STALE_DAYS", 3.0)),
            min_elevation=_float("STARS_MIN_ELEVATION", defaults.min_elevation),
            iridium_magnitude_limit=_float(
                "STARS_IRIDIUM_MAGNITUDE_LIMIT", defaults.iridium_magnitude_limit
            ),
            flare_max_angle=_float("STARS_FLARE_MAX_ANGLE", defaults.flare_max_angle),
            cache_capacity=_int("STARS_CACHE_CAPACITY", defaults.cache_capacity),
            log_level=os.environ.get("STARS_LOG_LEVEL", defaults.log_level).upper(),
        )
