"""Plain-text table renderer for EventReport."""

from datetime import datetime

from starsatnight.models import (
    EventReport,
    Phenomenon,
    PlanetPassEvent,
    SatelliteTable,
    SunCondition,
    SunMoonEvent,
)

_COMPASS = (
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
)

_SUN_CONDITION_TEXT = {
    SunCondition.POLAR_DAY: "up all day",
    SunCondition.POLAR_NIGHT: "down all day",
}


def compass_direction(azimuth: float) -> str:
    return _COMPASS[round(azimuth / 22.5) % 16]


def format_degrees(value: float | None, suppress_degrees: bool = False) -> str:
    """Whole degrees, with or without the degree sign."""
    if value is None:
        return "-"
    return f"{value:.0f}" if suppress_degrees else f"{value:.0f}°"


def format_time(value: datetime | None, with_date: bool = False) -> str:
    if value is None:
        return "none"
    return value.strftime("%m/%d %H:%M:%S" if with_date else "%H:%M")


def _table(headers: list[str], rows: list[list[str]]) -> list[str]:
    widths = [len(h) for h in headers]
    for row in rows:
        widths = [max(w, len(cell)) for w, cell in zip(widths, row)]
    lines = ["  ".join(h.ljust(w) for h, w in zip(headers, widths)).rstrip()]
    lines.append("  ".join("-" * w for w in widths))
    for row in rows:
        lines.append("  ".join(c.ljust(w) for c, w in zip(row, widths)).rstrip())
    return lines


def _sunset_text(event: SunMoonEvent) -> str:
    text = format_time(event.sunset)
    if event.sun_condition is SunCondition.SET_BEFORE_RISE:
        return f"{text} (before rise)"
    return text


def render_sun_moon(events: tuple[SunMoonEvent, ...]) -> list[str]:
    rows = []
    for e in events:
        condition = _SUN_CONDITION_TEXT.get(e.sun_condition)
        rows.append(
            [
                e.date.strftime("%m/%d/%Y"),
                condition or format_time(e.sunrise),
                condition or _sunset_text(e),
                format_time(e.moonrise),
                format_time(e.moonset),
                f"{e.moon_phase_name} ({e.moon_phase_fraction:.0%})",
            ]
        )
    return _table(["Date", "Sunrise", "Sunset", "Moonrise", "Moonset", "Moon Phase"], rows)


def render_planets(events: tuple[PlanetPassEvent, ...], suppress_degrees: bool) -> list[str]:
    rows = [
        [
            e.planet,
            format_time(e.rise_time),
            format_time(e.transit_time),
            format_degrees(e.transit_altitude, suppress_degrees),
            format_time(e.set_time),
        ]
        for e in events
    ]
    return _table(["Planet", "Rise", "Transit", "Altitude", "Set"], rows)


def render_satellites(table: SatelliteTable) -> list[str]:
    deg = table.suppress_degrees
    flares = table.phenomenon is Phenomenon.IRIDIUM
    headers = ["Satellite", "Start", "Start Dir", "Max", "Max Alt", "Max Dir", "End", "End Dir"]
    if flares:
        headers.append("Mag")
    rows = []
    for p in table.passes:
        row = [
            p.satellite,
            format_time(p.start_time, with_date=True),
            f"{compass_direction(p.start_azimuth)} {format_degrees(p.start_elevation, deg)}",
            format_time(p.max_time, with_date=True),
            format_degrees(p.max_elevation, deg),
            compass_direction(p.max_azimuth),
            format_time(p.end_time, with_date=True),
            f"{compass_direction(p.end_azimuth)} {format_degrees(p.end_elevation, deg)}",
        ]
        if flares:
            row.append("-" if p.max_magnitude is None else f"{p.max_magnitude:.1f}")
        rows.append(row)
    if not rows:
        return ["No visible passes."]
    return _table(headers, rows)


def render_report(report: EventReport, suppress_degrees: bool = False) -> str:
    """Render every section of the report; failed sections show their error."""
    w = report.windows
    title = report.location.name or report.location.location_key
    lines = [
        f"{title}: {w.full.start:%m/%d/%Y} - {w.full.end:%m/%d/%Y} ({report.location.timezone})",
        "",
    ]

    def section(heading: str, body: list[str] | None, failure: str | None) -> None:
        lines.append(heading)
        if failure is not None:
            lines.append(f"Unavailable: {failure}")
        elif body is not None:
            lines.extend(body)
        lines.append("")

    section(
        "Sun and Moon",
        render_sun_moon(report.sun_moon) if report.sun_moon is not None else None,
        report.failures.get(Phenomenon.SUN_MOON),
    )
    section(
        f"Planets for {w.planet_date:%m/%d/%Y}",
        render_planets(report.planets, suppress_degrees) if report.planets is not None else None,
        report.failures.get(Phenomenon.PLANETS),
    )
    section(
        f"ISS passes, {w.iss.start:%m/%d} - {w.iss.end:%m/%d}",
        render_satellites(report.iss) if report.iss is not None else None,
        report.failures.get(Phenomenon.ISS),
    )
    heading = f"Iridium flares, {w.iridium.start:%m/%d} - {w.iridium.end:%m/%d}"
    if w.iridium_truncated:
        heading += f" (limited to {w.iridium.days} of {w.requested_days} requested days)"
    section(
        heading,
        render_satellites(report.iridium) if report.iridium is not None else None,
        report.failures.get(Phenomenon.IRIDIUM),
    )
    return "\n".join(lines).rstrip() + "\n"
