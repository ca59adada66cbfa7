"""Pure recurrence logic - decides whether a task or notification is due.

No I/O and no wall clock: every function takes the query instant explicitly.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum

logger = logging.getLogger(__name__)

# Sunday-first week containing the Unix epoch. Biweekly parity counts weeks from here.
PARITY_EPOCH = date(1969, 12, 28)

# Poll tolerance for time-of-day gating, in minutes
TIME_WINDOW_MINUTES = 1


class InvalidDescriptor(ValueError):
    """Raised when a recurrence descriptor violates its field invariants."""

    pass


class RecurrenceKind(Enum):
    """How often an item repeats."""

    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY_BY_DATE = "monthly_by_date"


class WeekParity(Enum):
    """Alternating-week selector for biweekly recurrence."""

    ODD = "odd"
    EVEN = "even"


# Stored vocabularies differ between the tasks and notifications tables
_KIND_ALIASES = {
    "monthly_date": RecurrenceKind.MONTHLY_BY_DATE,
    "monthly": RecurrenceKind.MONTHLY_BY_DATE,
}


def parse_kind(value: str | None) -> RecurrenceKind:
    """Map a stored recurrence_type string to a RecurrenceKind."""
    if not value:
        return RecurrenceKind.NONE
    value = value.strip().lower()
    if value in _KIND_ALIASES:
        return _KIND_ALIASES[value]
    try:
        return RecurrenceKind(value)
    except ValueError:
        raise InvalidDescriptor(f"Unknown recurrence type: {value!r}")


def parse_parity(value: str | None) -> WeekParity | None:
    """Map a stored week parity string to a WeekParity."""
    if not value:
        return None
    try:
        return WeekParity(value.strip().lower())
    except ValueError:
        raise InvalidDescriptor(f"Unknown week parity: {value!r}")


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp as returned by the backend (UTC if naive)."""
    if not value:
        return None
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return to_utc(dt)


def parse_time_of_day(value: str | None) -> time | None:
    """Parse an "HH:MM" or "HH:MM:SS" column value."""
    if not value:
        return None
    try:
        return time.fromisoformat(value.strip())
    except ValueError:
        raise InvalidDescriptor(f"Invalid time of day: {value!r}")


def to_utc(instant: datetime) -> datetime:
    """Normalize a datetime to UTC. Naive values are taken to already be UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def day_of_week(day: date) -> int:
    """Day of week with Sunday=0 ... Saturday=6."""
    return (day.weekday() + 1) % 7


def week_parity(day: date) -> WeekParity:
    """Parity of the week containing `day`, counted from PARITY_EPOCH."""
    week_index = (day - PARITY_EPOCH).days // 7
    return WeekParity.ODD if week_index % 2 else WeekParity.EVEN


@dataclass(frozen=True)
class RecurrenceDescriptor:
    """
    How and when an item repeats.

    Recurring kinds use the anchor fields; `NONE` uses `due` instead, which is
    a date for tasks and a datetime for notifications. The notification-only
    fields (time_of_day, last_fired_at) are simply left unset for tasks.
    """

    kind: RecurrenceKind = RecurrenceKind.NONE
    anchor_day_of_week: int | None = None
    parity: WeekParity | None = None
    anchor_day_of_month: int | None = None
    time_of_day: time | None = None
    start_date: date | None = None
    end_date: date | None = None
    last_fired_at: datetime | None = None
    due: date | datetime | None = None
    fired: bool = False

    @property
    def is_recurring(self) -> bool:
        return self.kind is not RecurrenceKind.NONE


def validate(descriptor: RecurrenceDescriptor) -> None:
    """Raise InvalidDescriptor if the fields are inconsistent with `kind`."""
    kind = descriptor.kind
    if not isinstance(kind, RecurrenceKind):
        raise InvalidDescriptor(f"Unknown recurrence kind: {kind!r}")

    dow = descriptor.anchor_day_of_week
    dom = descriptor.anchor_day_of_month

    if dow is not None and dom is not None:
        raise InvalidDescriptor("Day of week and day of month are mutually exclusive")

    if kind in (RecurrenceKind.WEEKLY, RecurrenceKind.BIWEEKLY):
        if dow is None or not 0 <= dow <= 6:
            raise InvalidDescriptor(f"{kind.value} recurrence needs a day of week 0-6, got {dow!r}")
    elif dow is not None:
        raise InvalidDescriptor(f"{kind.value} recurrence does not take a day of week")

    if kind is RecurrenceKind.MONTHLY_BY_DATE:
        if dom is None or not 1 <= dom <= 31:
            raise InvalidDescriptor(f"monthly_by_date recurrence needs a day of month 1-31, got {dom!r}")
    elif dom is not None:
        raise InvalidDescriptor(f"{kind.value} recurrence does not take a day of month")

    if kind is RecurrenceKind.BIWEEKLY:
        if not isinstance(descriptor.parity, WeekParity):
            raise InvalidDescriptor("biweekly recurrence needs a week parity")
    elif descriptor.parity is not None:
        raise InvalidDescriptor(f"{kind.value} recurrence does not take a week parity")

    if kind is RecurrenceKind.NONE:
        if descriptor.due is None:
            raise InvalidDescriptor("Non-recurring item needs a due date or scheduled time")
        if descriptor.time_of_day is not None:
            raise InvalidDescriptor("Non-recurring item does not take a time of day")
    elif descriptor.due is not None:
        raise InvalidDescriptor("Recurring item cannot also carry a literal due date")

    if descriptor.start_date and descriptor.end_date and descriptor.start_date > descriptor.end_date:
        raise InvalidDescriptor(
            f"Start date {descriptor.start_date} is after end date {descriptor.end_date}"
        )


def _within_window(moment: datetime, target: time) -> bool:
    return moment.hour == target.hour and abs(moment.minute - target.minute) <= TIME_WINDOW_MINUTES


def _literal_due(descriptor: RecurrenceDescriptor, day: date, moment: datetime | None) -> bool:
    if descriptor.fired:
        return False
    due = descriptor.due
    if isinstance(due, datetime):
        due = to_utc(due)
        if moment is None:
            return due.date() <= day
        return due <= moment
    return due == day


def _matches_kind(descriptor: RecurrenceDescriptor, day: date) -> bool:
    match descriptor.kind:
        case RecurrenceKind.DAILY:
            return True
        case RecurrenceKind.WEEKLY:
            return day_of_week(day) == descriptor.anchor_day_of_week
        case RecurrenceKind.BIWEEKLY:
            return (
                day_of_week(day) == descriptor.anchor_day_of_week
                and week_parity(day) is descriptor.parity
            )
        case RecurrenceKind.MONTHLY_BY_DATE:
            # No clamping: day 31 simply never matches in shorter months
            return day.day == descriptor.anchor_day_of_month
    return False


def check_due(descriptor: RecurrenceDescriptor, instant: date | datetime) -> bool:
    """
    Strict variant of is_due: raises InvalidDescriptor instead of failing closed.

    `instant` may be a datetime (normalized to UTC) or a bare date. With a bare
    date the time-of-day gate is skipped, which is what calendar views want.
    """
    validate(descriptor)

    if isinstance(instant, datetime):
        moment = to_utc(instant)
        day = moment.date()
    else:
        moment = None
        day = instant

    if descriptor.end_date and day > descriptor.end_date:
        return False
    if descriptor.start_date and day < descriptor.start_date:
        return False

    if descriptor.kind is RecurrenceKind.NONE:
        return _literal_due(descriptor, day, moment)

    if descriptor.time_of_day is not None and moment is not None:
        if not _within_window(moment, descriptor.time_of_day):
            return False

    if descriptor.last_fired_at is not None and to_utc(descriptor.last_fired_at).date() == day:
        return False

    return _matches_kind(descriptor, day)


def is_due(descriptor: RecurrenceDescriptor, instant: date | datetime) -> bool:
    """
    Decide whether an item fires at `instant`.

    Pure function - no I/O. Malformed descriptors are logged and treated as
    not due rather than raised.
    """
    try:
        return check_due(descriptor, instant)
    except InvalidDescriptor as e:
        logger.warning(f"Skipping invalid recurrence descriptor: {e}")
        return False


def due_dates(descriptor: RecurrenceDescriptor, start: date, end: date) -> list[date]:
    """All dates in [start, end] on which the item is due (date-level check)."""
    days = []
    current = start
    while current <= end:
        if is_due(descriptor, current):
            days.append(current)
        current += timedelta(days=1)
    return days
