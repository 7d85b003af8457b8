"""Exception hierarchy shared by the validation, source, and predictor layers."""


class StarsAtNightError(Exception):
    """Base class for engine errors."""


class ValidationError(StarsAtNightError):
    """One or more request fields were rejected.

    Carries every failure message, not just the first, plus the fields that
    did sanitize cleanly.
    """

    def __init__(self, messages: list[str], sanitized: dict[str, object] | None = None):
        self.messages = list(messages)
        self.sanitized = dict(sanitized or {})
        super().__init__(self.report)

    @property
    def report(self) -> str:
        return "Errors: " + " ".join(self.messages)


class DataSourceUnavailable(StarsAtNightError):
    """An orbital-element or ephemeris source failed, timed out, or returned incomplete data."""


class ComputationError(StarsAtNightError):
    """A predictor precondition was violated (malformed elements, bad geometry)."""
