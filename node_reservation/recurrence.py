from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import CroniterBadDateError, croniter

from .errors import InvalidPatternError

logger = logging.getLogger(__name__)

CRON_FIELD_COUNT = 5
SEARCH_HORIZON_YEARS = 10
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MINUTE = timedelta(minutes=1)
_MILLISECOND = timedelta(milliseconds=1)


def to_millis(moment: datetime, tz: tzinfo = timezone.utc) -> int:
    """Return epoch milliseconds for ``moment``; naive values are read in ``tz``."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=tz)
    return (moment - EPOCH) // _MILLISECOND


def from_millis(timestamp: int, tz: tzinfo = timezone.utc) -> datetime:
    try:
        return (EPOCH + timedelta(milliseconds=timestamp)).astimezone(tz)
    except OverflowError as error:
        raise ValueError(f"Timestamp out of range: {timestamp}") from error


def truncate_to_minute(moment: datetime) -> datetime:
    return moment.replace(second=0, microsecond=0)


def shift(moment: datetime, delta: timedelta) -> datetime:
    """Add ``delta`` in absolute time, so a repeated DST hour keeps its fold."""
    try:
        if moment.tzinfo is None:
            return moment + delta
        return (moment.astimezone(timezone.utc) + delta).astimezone(moment.tzinfo)
    except OverflowError as error:
        raise ValueError(f"Timestamp out of range: {moment.isoformat()}") from error


def resolve_timezone(name: str | None) -> tzinfo:
    if name is None or name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as error:
        raise ValueError(f"Unknown timezone: {name}") from error


def timezone_name(tz: tzinfo) -> str:
    return getattr(tz, "key", None) or str(tz)


@dataclass(frozen=True)
class RecurrencePattern:
    """Cron-like predicate over calendar instants, matched at minute granularity.

    Accepts the classic five fields (minute hour day-of-month month
    day-of-week) or one of the ``@hourly``/``@daily``/... macros.
    """

    text: str

    def __post_init__(self) -> None:
        expression = self.text.strip()
        if not expression:
            raise InvalidPatternError(self.text, "pattern must not be empty")

        if not expression.startswith("@"):
            fields = expression.split()
            if len(fields) != CRON_FIELD_COUNT:
                raise InvalidPatternError(
                    self.text,
                    f"{CRON_FIELD_COUNT} fields (minute hour day-of-month month day-of-week) "
                    f"are expected, but found {len(fields)}",
                )

        try:
            croniter(expression, EPOCH, day_or=False)
        except (ValueError, KeyError) as error:
            raise InvalidPatternError(self.text, str(error) or type(error).__name__) from error

        object.__setattr__(self, "text", expression)

    def matches(self, moment: datetime) -> bool:
        moment = truncate_to_minute(moment)
        return self.floor(moment) == moment

    def floor(self, moment: datetime) -> datetime:
        """Latest matching instant at or before ``moment``."""
        return self._search(shift(truncate_to_minute(moment), _MINUTE), backwards=True)

    def ceil(self, moment: datetime) -> datetime:
        """Earliest matching instant at or after ``moment`` (seconds truncated)."""
        return self._search(shift(truncate_to_minute(moment), -_MINUTE), backwards=False)

    def floor_millis(self, timestamp: int, tz: tzinfo = timezone.utc) -> int:
        return to_millis(self.floor(from_millis(timestamp, tz)))

    def ceil_millis(self, timestamp: int, tz: tzinfo = timezone.utc) -> int:
        return to_millis(self.ceil(from_millis(timestamp, tz)))

    def _search(self, start: datetime, backwards: bool) -> datetime:
        # croniter steps strictly away from ``start``, so callers shift by one
        # minute to make both directions inclusive.
        iterator = croniter(
            self.text,
            start,
            day_or=False,
            max_years_between_matches=SEARCH_HORIZON_YEARS,
        )
        try:
            if backwards:
                return iterator.get_prev(datetime)
            return iterator.get_next(datetime)
        except CroniterBadDateError as error:
            logger.warning(
                "No occurrence of '%s' within %d years of %s",
                self.text,
                SEARCH_HORIZON_YEARS,
                start.isoformat(),
            )
            raise InvalidPatternError(
                self.text,
                f"no matching instant within {SEARCH_HORIZON_YEARS} years of {start.isoformat()}",
            ) from error
        except OverflowError as error:
            raise ValueError(f"Timestamp out of range: {start.isoformat()}") from error

    def __str__(self) -> str:
        return self.text
