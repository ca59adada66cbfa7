"""Pure notification scheduling logic - no I/O dependencies."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime

from .recurrence import (
    InvalidDescriptor,
    RecurrenceDescriptor,
    RecurrenceKind,
    is_due,
    parse_kind,
    parse_time_of_day,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

TARGET_ALL = "all"


@dataclass
class Notification:
    """An administrator-authored notification, one-time or recurring."""

    id: str
    title: str
    message: str
    target_type: str = TARGET_ALL
    target_user_ids: list[str] = field(default_factory=list)
    is_active: bool = True
    is_recurring: bool = False
    is_sent: bool = False
    scheduled_at: datetime | None = None
    recurrence_type: str | None = None
    recurrence_time: str | None = None
    recurrence_day_of_week: int | None = None
    recurrence_day_of_month: int | None = None
    recurrence_end_date: date | None = None
    last_sent_at: datetime | None = None

    @property
    def recurrence(self) -> RecurrenceDescriptor:
        """
        Recurrence descriptor for this notification.

        Recurring notifications must have a time of day; without one the
        poller could never match them, so they are rejected as invalid.
        """
        if not self.is_recurring:
            return RecurrenceDescriptor(
                kind=RecurrenceKind.NONE,
                due=self.scheduled_at,
                fired=self.is_sent,
            )

        kind = parse_kind(self.recurrence_type)
        if kind is RecurrenceKind.NONE:
            raise InvalidDescriptor(f"Notification {self.id} is recurring but has no recurrence type")

        time_of_day = parse_time_of_day(self.recurrence_time)
        if time_of_day is None:
            raise InvalidDescriptor(f"Notification {self.id} is recurring but has no time of day")

        return RecurrenceDescriptor(
            kind=kind,
            anchor_day_of_week=self.recurrence_day_of_week,
            anchor_day_of_month=self.recurrence_day_of_month,
            time_of_day=time_of_day,
            end_date=self.recurrence_end_date,
            last_fired_at=self.last_sent_at,
        )

    @classmethod
    def from_api(cls, data: dict) -> "Notification":
        """Create Notification from a `notifications` table row."""
        end = data.get("recurrence_end_date")
        return cls(
            id=data["id"],
            title=data["title"],
            message=data.get("message", ""),
            target_type=data.get("target_type") or TARGET_ALL,
            target_user_ids=list(data.get("target_user_ids") or []),
            is_active=data.get("is_active", True),
            is_recurring=bool(data.get("is_recurring")),
            is_sent=bool(data.get("is_sent")),
            scheduled_at=parse_timestamp(data.get("scheduled_at")),
            recurrence_type=data.get("recurrence_type"),
            recurrence_time=data.get("recurrence_time"),
            recurrence_day_of_week=data.get("recurrence_day_of_week"),
            recurrence_day_of_month=data.get("recurrence_day_of_month"),
            recurrence_end_date=date.fromisoformat(end.split("T")[0]) if end else None,
            last_sent_at=parse_timestamp(data.get("last_sent_at")),
        )


@dataclass
class UserNotification:
    """A delivered notification in a user's inbox."""

    id: str
    user_id: str
    title: str
    message: str
    notification_id: str | None = None
    is_read: bool = False
    created_at: datetime | None = None

    @classmethod
    def from_api(cls, data: dict) -> "UserNotification":
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            title=data["title"],
            message=data.get("message", ""),
            notification_id=data.get("notification_id"),
            is_read=bool(data.get("is_read")),
            created_at=parse_timestamp(data.get("created_at")),
        )


def is_notification_due(notification: Notification, now: datetime) -> bool:
    """Whether the notification should be sent at `now` (UTC-normalized)."""
    if not notification.is_active:
        return False
    try:
        descriptor = notification.recurrence
    except InvalidDescriptor as e:
        logger.warning(f"Notification {notification.id} has an invalid schedule: {e}")
        return False
    if descriptor.kind is RecurrenceKind.NONE and descriptor.due is None:
        return False
    return is_due(descriptor, now)


def select_due(notifications: list[Notification], now: datetime) -> list[Notification]:
    """Filter to notifications due at `now`."""
    return [n for n in notifications if is_notification_due(n, now)]


def resolve_targets(notification: Notification, active_user_ids: list[str]) -> list[str]:
    """Recipients: every active user for "all", else the explicit list."""
    if notification.target_type == TARGET_ALL:
        return list(active_user_ids)
    return list(notification.target_user_ids)


def build_user_notifications(notification: Notification, user_ids: list[str]) -> list[dict]:
    """Rows to insert into `user_notifications`, one per recipient."""
    return [
        {
            "user_id": user_id,
            "notification_id": notification.id,
            "title": notification.title,
            "message": notification.message,
        }
        for user_id in user_ids
    ]


def sent_update(notification: Notification, now: datetime) -> dict:
    """Patch recording a send. One-time notifications are also marked sent."""
    stamp = now.isoformat()
    update = {"last_sent_at": stamp}
    if not notification.is_recurring:
        update["is_sent"] = True
        update["sent_at"] = stamp
    return update


def unread_count(items: list[UserNotification]) -> int:
    return sum(1 for n in items if not n.is_read)
