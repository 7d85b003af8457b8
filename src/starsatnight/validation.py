"""Request-boundary parsing: raw string fields in, ValidatedRequest out."""

import math
import re
from typing import Mapping

import pytz

from starsatnight.errors import ValidationError
from starsatnight.models import MAX_REQUEST_DAYS, LocationContext, ValidatedRequest

NAME_MAX_LENGTH = 32
DEFAULT_DAYS = "3"

_TAG_RE = re.compile(r"<[^>]*>?")
# Decimal or exponent notation only: no underscores, hex, inf or nan
_NUMERIC_RE = re.compile(r"\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*", re.ASCII)
_STRIP_RE = re.compile(r"[\x00-\x1f\x7f-\U0010ffff]")


def sanitize_name(name: object) -> str:
    """Truncate to 32 chars, strip tags and control/non-ASCII chars, encode & and quotes."""
    if name is None:
        return ""
    text = str(name)[:NAME_MAX_LENGTH]
    text = _TAG_RE.sub("", text)
    text = _STRIP_RE.sub("", text)
    return (
        text.replace("&", "&#38;").replace('"', "&#34;").replace("'", "&#39;")
    )


def parse_flag(value: object) -> bool:
    """Only the exact string "true" is true. "True", "1" and True are all false."""
    return isinstance(value, str) and value == "true"


def _parse_number(value: object) -> float | None:
    """Return a finite float for numeric input, None otherwise."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str) and _NUMERIC_RE.fullmatch(value):
        number = float(value)
    else:
        return None
    if not math.isfinite(number):
        return None
    return number


def validate_request(raw: Mapping[str, object]) -> ValidatedRequest:
    """Validate a raw request record.

    Every field is checked before reporting, so the raised error lists all
    failures at once. Name is the one field that self-corrects (truncation)
    instead of failing.

    Args:
        raw: Mapping with name, lat, long, timezone, days, graphical,
            refresh, suppressDegrees. Missing keys take their defaults.

    Returns:
        ValidatedRequest with a frozen LocationContext.

    Raises:
        ValidationError: With one message per rejected field.
    """
    messages: list[str] = []
    sanitized: dict[str, object] = {"name": sanitize_name(raw.get("name", ""))}

    lat = _parse_number(raw.get("lat"))
    if lat is None:
        messages.append("Latitude must be numeric.")
    elif lat < -90 or lat > 90:
        messages.append("Latitude must be in the range -90 to 90.")
    else:
        sanitized["lat"] = lat

    lng = _parse_number(raw.get("long"))
    if lng is None:
        messages.append("Longitude must be numeric.")
    elif lng < -180 or lng > 180:
        messages.append("Longitude must be in the range -180 to 180.")
    else:
        sanitized["long"] = lng

    tz = raw.get("timezone")
    if not isinstance(tz, str) or tz not in pytz.common_timezones_set:
        messages.append("Timezone contains an unrecognized value.")
    else:
        sanitized["timezone"] = tz

    days = _parse_number(raw.get("days", DEFAULT_DAYS))
    if days is None:
        messages.append("Days must be numeric.")
    elif days < 1 or days > MAX_REQUEST_DAYS:
        messages.append(f"Days must be in the range 1 to {MAX_REQUEST_DAYS}.")
    elif not days.is_integer():
        messages.append("Days must be a whole number.")
    else:
        sanitized["days"] = int(days)

    # graphical is accepted and ignored
    if messages:
        raise ValidationError(messages, sanitized)

    return ValidatedRequest(
        location=LocationContext(
            name=sanitized["name"],  # type: ignore[arg-type]
            latitude=sanitized["lat"],  # type: ignore[arg-type]
            longitude=sanitized["long"],  # type: ignore[arg-type]
            timezone=sanitized["timezone"],  # type: ignore[arg-type]
        ),
        days=sanitized["days"],  # type: ignore[arg-type]
        refresh=parse_flag(raw.get("refresh")),
        suppress_degrees=parse_flag(raw.get("suppressDegrees")),
    )
