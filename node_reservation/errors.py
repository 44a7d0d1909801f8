from __future__ import annotations


class NodeReservationError(Exception):
    pass


class InvalidPatternError(NodeReservationError, ValueError):
    """Raised when a recurrence pattern cannot be built or cannot be matched."""

    def __init__(self, pattern: str, reason: str) -> None:
        super().__init__(f"Invalid recurrence pattern '{pattern}': {reason}")
        self.pattern = pattern
        self.reason = reason


class MalformedRuleError(NodeReservationError, ValueError):
    """Raised for the first rule line that cannot be parsed.

    ``line`` is 1-indexed so an editor can point at the offending line.
    """

    def __init__(self, line: int, reason: str, text: str = "") -> None:
        super().__init__(f"line {line}: {reason}")
        self.line = line
        self.reason = reason
        self.text = text


class NodeConfigError(NodeReservationError, RuntimeError):
    pass
