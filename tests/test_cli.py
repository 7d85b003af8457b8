"""
Tests for the stars-at-night command line entry point.

Run:
    pytest tests/test_cli.py -v
"""

from datetime import date

import pytest

from starsatnight import cli
from starsatnight.engine import plan_windows
from starsatnight.models import EventReport, LocationContext, Phenomenon, SatelliteTable

LLANO_ARGS = ["--name", "Llano", "--lat", "30.8910", "--long", "-98.4265", "--timezone", "America/Chicago"]


@pytest.fixture(autouse=True)
def isolated(monkeypatch, tmp_path):
    monkeypatch.setenv("STARS_DATA_DIR", str(tmp_path))
    monkeypatch.setattr(cli, "setup_logging", lambda level: None)


class FakeEngine:
    """Returns a canned report; records the raw request it was given."""

    failures: dict = {}
    requests: list = []

    def __init__(self, settings):
        self.settings = settings

    def compute_events(self, raw):
        FakeEngine.requests.append(raw)
        windows = plan_windows(date(2024, 6, 20), 3)
        return EventReport(
            location=LocationContext("Llano", 30.891, -98.4265, "America/Chicago"),
            windows=windows,
            sun_moon=(),
            planets=(),
            iss=SatelliteTable(Phenomenon.ISS, (), windows.iss, 3, False),
            iridium=SatelliteTable(Phenomenon.IRIDIUM, (), windows.iridium, 3, False),
            failures=dict(FakeEngine.failures),
        )


@pytest.fixture
def fake_engine(monkeypatch):
    FakeEngine.failures = {}
    FakeEngine.requests = []
    monkeypatch.setattr(cli, "Engine", FakeEngine)
    return FakeEngine


class TestParser:
    def test_defaults_are_raw_strings(self):
        args = vars(cli.build_parser().parse_args(LLANO_ARGS))

        assert args["lat"] == "30.8910"
        assert args["days"] == "3"
        assert args["refresh"] == "false"
        assert args["suppressDegrees"] == "false"

    def test_suppress_degrees_flag_name(self):
        args = cli.build_parser().parse_args(LLANO_ARGS + ["--suppress-degrees", "true"])
        assert args.suppressDegrees == "true"


class TestMain:
    def test_validation_errors(self, capsys):
        code = cli.main(["--lat", "abc", "--long", "200", "--timezone", "Mars/Olympus", "--days", "0"])

        err = capsys.readouterr().err
        assert code == 2
        assert err.startswith("Errors: ")
        assert "Latitude must be numeric." in err
        assert "Longitude must be in the range -180 to 180." in err
        assert "Timezone contains an unrecognized value." in err
        assert "Days must be in the range 1 to 10." in err

    def test_missing_location(self, capsys):
        assert cli.main([]) == 2
        assert "Latitude must be numeric." in capsys.readouterr().err

    def test_prints_report(self, fake_engine, capsys):
        code = cli.main(LLANO_ARGS + ["--days", "3"])

        out = capsys.readouterr().out
        assert code == 0
        assert out.startswith("Llano: 06/20/2024 - 06/22/2024")
        assert fake_engine.requests[0]["timezone"] == "America/Chicago"

    def test_partial_failure_exit_code(self, fake_engine, capsys):
        fake_engine.failures = {Phenomenon.IRIDIUM: "CelesTrak request failed: 503"}

        assert cli.main(LLANO_ARGS) == 1
        assert "Unavailable: CelesTrak request failed: 503" in capsys.readouterr().out
