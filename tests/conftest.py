"""Shared fixtures: fake clock, fake element provider, and the real JPL ephemeris."""

from datetime import datetime, timedelta

import pytest
from pytz import utc

from starsatnight.config import Settings
from starsatnight.errors import DataSourceUnavailable
from starsatnight.sources import ElementSet, EphemerisSource, parse_tle_text

# Epoch 2008-09-20 12:25:40 UTC
ISS_TLE = """ISS (ZARYA)
1 25544U 98067A   08264.51782528 -.00002182  00000-0 -11606-4 0  2927
2 25544  51.6416 247.4627 0006703 130.5360 325.0288 15.72125391563537
"""

ISS_EPOCH = datetime(2008, 9, 20, 12, 25, 40, tzinfo=utc)

LLANO = {"lat": "30.8910", "long": "-98.4265", "timezone": "America/Chicago"}


class FakeClock:
    """Settable replacement for utc_now()."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeProvider:
    """ElementsProvider serving fixed TLE text, counting fetches."""

    def __init__(self, text: str, clock: FakeClock):
        self.text = text
        self.clock = clock
        self.fetches: list[str] = []

    def fetch_elements(self, group: str) -> ElementSet:
        self.fetches.append(group)
        return ElementSet(group=group, records=parse_tle_text(self.text), fetched_at=self.clock())


@pytest.fixture
def clock():
    return FakeClock(ISS_EPOCH + timedelta(hours=6))


@pytest.fixture
def provider(clock):
    return FakeProvider(ISS_TLE, clock)


@pytest.fixture
def settings(tmp_path):
    return Settings(data_dir=tmp_path)


@pytest.fixture(scope="session")
def ephemeris():
    """The configured JPL ephemeris; tests using it skip when it cannot be loaded."""
    source = EphemerisSource(Settings.from_env())
    try:
        source.get()
    except DataSourceUnavailable as exc:
        pytest.skip(f"JPL ephemeris not available: {exc}")
    return source
