from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta, timezone, tzinfo
from enum import Enum
from typing import Any, Iterator
import logging
import re

from .errors import InvalidPatternError, MalformedRuleError
from .recurrence import RecurrencePattern, resolve_timezone, timezone_name
from .squatter import NEVER, Node, Squatter

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = ":"
FIELD_COUNT = 3
COMMENT_PREFIX = "#"
_LINE_BREAK_RE = re.compile(r"\r?\n")
_NON_NEGATIVE_RE = re.compile(r"[0-9]+")
_MILLISECOND = timedelta(milliseconds=1)


class ReservationSize(Enum):
    ALL = "*"

    def __str__(self) -> str:
        return self.value


ALL = ReservationSize.ALL


@dataclass(frozen=True)
class Entry:
    size: int | ReservationSize
    pattern: RecurrencePattern
    duration: timedelta

    def __post_init__(self) -> None:
        if self.size is not ALL and self.size < 0:
            raise ValueError("Reservation size must be non-negative.")
        if self.duration < timedelta(0):
            raise ValueError("Reservation duration must be non-negative.")

    @property
    def duration_millis(self) -> int:
        return self.duration // _MILLISECOND

    def reservation_size(self, node: Node) -> int:
        if self.size is ALL:
            return node.executor_count()
        return self.size

    def size_of_reservation(self, node: Node, timestamp: int, tz: tzinfo = timezone.utc) -> int:
        start = self.pattern.floor_millis(timestamp, tz)
        if start <= timestamp < start + self.duration_millis:
            return self.reservation_size(node)
        return 0

    def time_of_next_change(self, timestamp: int, tz: tzinfo = timezone.utc) -> int:
        end = self.pattern.floor_millis(timestamp, tz) + self.duration_millis
        start = self.pattern.ceil_millis(timestamp, tz)
        if timestamp < end:
            return min(end, start)
        return start

    def to_line(self) -> str:
        minutes = self.duration // timedelta(minutes=1)
        return f"{self.size}{FIELD_SEPARATOR}{self.pattern}{FIELD_SEPARATOR}{minutes}"


def parse_entries(text: str) -> tuple[Entry, ...]:
    """Parse rule text into entries, failing on the first malformed line.

    One rule per line: ``<size>:<cron pattern>:<duration minutes>``. Blank
    lines and lines starting with ``#`` are skipped.
    """
    entries: list[Entry] = []
    for line_number, raw_line in enumerate(_LINE_BREAK_RE.split(text), start=1):
        line = raw_line.strip()
        if not line or line.startswith(COMMENT_PREFIX):
            continue
        entries.append(_parse_line(line, line_number))
    return tuple(entries)


def _parse_line(line: str, line_number: int) -> Entry:
    tokens = [token.strip() for token in line.split(FIELD_SEPARATOR)]
    if len(tokens) != FIELD_COUNT:
        raise MalformedRuleError(
            line_number,
            f"{FIELD_COUNT} fields separated by '{FIELD_SEPARATOR}' are expected, but found {len(tokens)} in '{line}'",
            line,
        )

    size_text, pattern_text, duration_text = tokens
    size: int | ReservationSize
    if size_text == ALL.value:
        size = ALL
    else:
        size = _parse_non_negative(size_text, "size", line_number, line)

    try:
        pattern = RecurrencePattern(pattern_text)
    except InvalidPatternError as error:
        raise MalformedRuleError(line_number, f"invalid cron pattern '{pattern_text}': {error.reason}", line) from error

    minutes = _parse_non_negative(duration_text, "duration", line_number, line)
    return Entry(size=size, pattern=pattern, duration=timedelta(minutes=minutes))


def _parse_non_negative(token: str, field_name: str, line_number: int, line: str) -> int:
    if not _NON_NEGATIVE_RE.fullmatch(token):
        expected = "'*' or a non-negative integer" if field_name == "size" else "a non-negative integer (minutes)"
        raise MalformedRuleError(line_number, f"{field_name} must be {expected}, but found '{token}'", line)
    return int(token)


class ReservationSchedule(Squatter):
    """Reserves executors of a node following cron-like rules.

    Each rule gives the start of a reservation window (a cron pattern), its
    length, and how many executors it holds. The parsed entries are always
    derived from ``format``; only that text is ever persisted.
    """

    display_name = "Cron-like reservation"

    def __init__(self, format: str = "", tz: tzinfo = timezone.utc) -> None:
        self._format = format
        self._tz = tz
        self._entries = parse_entries(format)
        logger.debug("Parsed %d reservation entries", len(self._entries))

    @classmethod
    def parse(cls, text: str, tz: tzinfo = timezone.utc) -> "ReservationSchedule":
        return cls(text, tz)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReservationSchedule":
        return cls(str(data.get("format") or ""), resolve_timezone(data.get("timezone")))

    def to_dict(self) -> dict[str, str]:
        return {"format": self._format, "timezone": timezone_name(self._tz)}

    @property
    def format(self) -> str:
        return self._format

    @property
    def tz(self) -> tzinfo:
        return self._tz

    @property
    def entries(self) -> tuple[Entry, ...]:
        return self._entries

    def size_of_reservation(self, node: Node, timestamp: int) -> int:
        return sum(entry.size_of_reservation(node, timestamp, self._tz) for entry in self._entries)

    def time_of_next_change(self, node: Node, timestamp: int) -> int:
        return min((entry.time_of_next_change(timestamp, self._tz) for entry in self._entries), default=NEVER)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Entry]:
        return iter(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ReservationSchedule):
            return NotImplemented
        return self._entries == other._entries and self._tz == other._tz

    def __hash__(self) -> int:
        return hash((self._entries, self._tz))

    def __repr__(self) -> str:
        return f"ReservationSchedule(entries={len(self._entries)}, timezone={timezone_name(self._tz)!r})"


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    line: int | None = None
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.ok:
            return {"ok": True}
        return {"ok": False, "line": self.line, "message": self.message}


def validate_format(text: str) -> ValidationResult:
    try:
        parse_entries(text)
    except MalformedRuleError as error:
        return ValidationResult(ok=False, line=error.line, message=error.reason)
    return ValidationResult(ok=True)
