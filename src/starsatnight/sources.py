"""Orbital elements from CelesTrak and the JPL ephemeris via skyfield."""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Protocol

import httpx
from pytz import utc
from skyfield.api import Loader

from starsatnight.config import Settings
from starsatnight.errors import ComputationError, DataSourceUnavailable

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(utc)


@dataclass(frozen=True)
class TleRecord:
    """One satellite's two-line element set."""

    name: str
    line1: str
    line2: str

    @property
    def epoch(self) -> datetime:
        """Reference time of the elements, from columns 19-32 of line 1 (YYDDD.DDDDDDDD)."""
        field = self.line1[18:32].strip()
        try:
            yy = int(field[:2])
            day_of_year = float(field[2:])
        except ValueError:
            raise ComputationError(f"Malformed TLE epoch for {self.name!r}: {field!r}") from None
        year = 2000 + yy if yy < 57 else 1900 + yy
        return datetime(year, 1, 1, tzinfo=utc) + timedelta(days=day_of_year - 1)


@dataclass(frozen=True)
class ElementSet:
    """Elements for a satellite group plus when they were fetched."""

    group: str
    records: tuple[TleRecord, ...]
    fetched_at: datetime

    @property
    def newest_epoch(self) -> datetime:
        return max(r.epoch for r in self.records)

    def find(self, name: str) -> TleRecord | None:
        for record in self.records:
            if record.name == name:
                return record
        return None


class ElementsProvider(Protocol):
    """Anything that can hand out current elements for a satellite group."""

    def fetch_elements(self, group: str) -> ElementSet: ...


def parse_tle_text(text: str) -> tuple[TleRecord, ...]:
    """Parse three-line (name, line 1, line 2) TLE text.

    Lines that don't form a complete name/1/2 triple are skipped.
    """
    lines = [line.rstrip() for line in text.splitlines() if line.strip()]
    records: list[TleRecord] = []
    i = 0
    while i + 2 < len(lines):
        name, line1, line2 = lines[i], lines[i + 1], lines[i + 2]
        if line1.startswith("1 ") and line2.startswith("2 "):
            records.append(TleRecord(name=name.strip(), line1=line1, line2=line2))
            i += 3
        else:
            i += 1
    return tuple(records)


class CelestrakProvider:
    """CelesTrak GP endpoint, FORMAT=tle."""

    def __init__(self, settings: Settings, clock: Clock = utc_now):
        self._url = settings.tle_url
        self._timeout = settings.http_timeout
        self._clock = clock

    def fetch_elements(self, group: str) -> ElementSet:
        """Download elements for a CelesTrak group.

        Raises:
            DataSourceUnavailable: On timeout, HTTP error, or an empty/garbled body.
        """
        params = {"GROUP": group, "FORMAT": "tle"}
        headers = {"User-Agent": "StarsAtNight/1.0"}
        try:
            resp = httpx.get(
                self._url, params=params, headers=headers, timeout=self._timeout
            )
            resp.raise_for_status()
        except httpx.TimeoutException as exc:
            raise DataSourceUnavailable(
                f"CelesTrak timed out after {self._timeout}s for group {group!r}"
            ) from exc
        except httpx.HTTPError as exc:
            raise DataSourceUnavailable(f"CelesTrak request failed: {exc}") from exc

        records = parse_tle_text(resp.text)
        if not records:
            raise DataSourceUnavailable(f"CelesTrak returned no elements for group {group!r}")
        return ElementSet(group=group, records=records, fetched_at=self._clock())


class ElementStore:
    """In-memory element cache in front of a provider.

    Elements are refetched when the caller asks, when the last fetch is older
    than tle_max_age, or when the newest element epoch is older than
    tle_stale_after. The last two apply even when the caller did not ask.
    """

    def __init__(self, provider: ElementsProvider, settings: Settings, clock: Clock = utc_now):
        self._provider = provider
        self._max_age = settings.tle_max_age
        self._stale_after = settings.tle_stale_after
        self._clock = clock
        self._sets: dict[str, ElementSet] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    def is_stale(self, elements: ElementSet) -> bool:
        now = self._clock()
        if now - elements.fetched_at > self._max_age:
            return True
        return now - elements.newest_epoch > self._stale_after

    def get(self, group: str, refresh: bool = False) -> ElementSet:
        with self._lock:
            group_lock = self._locks.setdefault(group, threading.Lock())
        with group_lock:
            cached = self._sets.get(group)
            if cached is not None and not refresh and not self.is_stale(cached):
                return cached

            reason = "refresh requested" if refresh else "missing" if cached is None else "stale"
            logger.info("Fetching elements for %s (%s)", group, reason)
            fresh = self._provider.fetch_elements(group)
            if not fresh.records:
                raise DataSourceUnavailable(f"No elements for group {group!r}")
            age = self._clock() - fresh.newest_epoch
            if age > self._stale_after:
                logger.warning(
                    "Elements for %s are %.1f days old after refetch; passes may drift",
                    group,
                    age.total_seconds() / 86400,
                )
            self._sets[group] = fresh
            return fresh


class EphemerisSource:
    """Lazily opened JPL ephemeris shared by the sun/moon, planet, and satellite predictors."""

    def __init__(self, settings: Settings):
        self._loader = Loader(str(settings.data_dir), verbose=False)
        self._filename = settings.ephemeris
        self._eph = None
        self._ts = None
        self._lock = threading.Lock()

    def timescale(self):
        with self._lock:
            if self._ts is None:
                self._ts = self._loader.timescale(builtin=True)
            return self._ts

    def get(self, refresh: bool = False):
        """Return the opened ephemeris, reopening it from disk when refresh is set.

        Raises:
            DataSourceUnavailable: When the file is missing and cannot be downloaded.
        """
        with self._lock:
            if self._eph is None or refresh:
                try:
                    self._eph = self._loader(self._filename)
                except (OSError, ValueError) as exc:
                    raise DataSourceUnavailable(
                        f"Ephemeris {self._filename} unavailable: {exc}"
                    ) from exc
                logger.info("Opened ephemeris %s", self._filename)
            return self._eph
