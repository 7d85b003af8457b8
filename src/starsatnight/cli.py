"""CLI entry point: print sun/moon, planet, ISS and Iridium tables for a location.

    uv run stars-at-night --lat 30.8910 --long -98.4265 --timezone America/Chicago --days 3
"""

import argparse
import sys

from dotenv import load_dotenv

from starsatnight.config import Settings
from starsatnight.engine import Engine
from starsatnight.errors import ValidationError
from starsatnight.logging_config import setup_logging
from starsatnight.renderers.text import render_report
from starsatnight.validation import parse_flag


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stars-at-night",
        description="Sunrise/sunset, moon, planet, ISS and Iridium events for a location.",
    )
    # Values stay strings: validation happens at the request boundary, not here
    parser.add_argument("--name", default="")
    parser.add_argument("--lat")
    parser.add_argument("--long")
    parser.add_argument("--timezone")
    parser.add_argument("--days", default="3")
    parser.add_argument("--graphical", default="")
    parser.add_argument("--refresh", default="false", help='only "true" forces recomputation')
    parser.add_argument(
        "--suppress-degrees",
        dest="suppressDegrees",
        default="false",
        help='only "true" drops the degree sign',
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    setup_logging(settings.log_level)

    engine = Engine(settings)
    try:
        report = engine.compute_events(vars(args))
    except ValidationError as exc:
        print(exc.report, file=sys.stderr)
        return 2

    sys.stdout.write(render_report(report, suppress_degrees=parse_flag(args.suppressDegrees)))
    return 0 if report.complete else 1


if __name__ == "__main__":
    sys.exit(main())
