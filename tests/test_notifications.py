"""Tests for notification scheduling logic."""

from datetime import date, datetime, timezone

import pytest

from churros.core.notifications import (
    Notification,
    UserNotification,
    build_user_notifications,
    is_notification_due,
    resolve_targets,
    select_due,
    sent_update,
    unread_count,
)


@pytest.fixture
def now():
    # Wednesday 2025-01-15, 09:00 UTC
    return datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def daily():
    return Notification(
        id="n1",
        title="Open the shop",
        message="Turn on the fryers",
        is_recurring=True,
        recurrence_type="daily",
        recurrence_time="09:00",
    )


class TestFromApi:
    def test_parses_row(self):
        n = Notification.from_api(
            {
                "id": "n1",
                "title": "Hi",
                "message": "Hello",
                "target_type": "specific",
                "target_user_ids": ["u1", "u2"],
                "is_recurring": False,
                "scheduled_at": "2025-01-15T09:00:00Z",
                "last_sent_at": None,
            }
        )
        assert n.scheduled_at == datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc)
        assert n.target_user_ids == ["u1", "u2"]
        assert n.last_sent_at is None

    def test_defaults_target_to_all(self):
        n = Notification.from_api({"id": "n1", "title": "Hi", "target_type": None})
        assert n.target_type == "all"
        assert n.target_user_ids == []

    def test_end_date(self):
        n = Notification.from_api({"id": "n1", "title": "Hi", "recurrence_end_date": "2025-02-01"})
        assert n.recurrence_end_date == date(2025, 2, 1)


class TestIsNotificationDue:
    def test_daily_at_time(self, daily, now):
        assert is_notification_due(daily, now)

    def test_daily_within_one_minute(self, daily):
        assert is_notification_due(daily, datetime(2025, 1, 15, 9, 1, tzinfo=timezone.utc))
        assert not is_notification_due(daily, datetime(2025, 1, 15, 9, 2, tzinfo=timezone.utc))

    def test_already_sent_today(self, daily, now):
        daily.last_sent_at = datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc)
        assert not is_notification_due(daily, now)

    def test_sent_yesterday(self, daily, now):
        daily.last_sent_at = datetime(2025, 1, 14, 9, 0, tzinfo=timezone.utc)
        assert is_notification_due(daily, now)

    def test_seconds_in_stored_time(self, daily, now):
        daily.recurrence_time = "09:00:00"
        assert is_notification_due(daily, now)

    def test_weekly_on_other_day(self, now):
        n = Notification(
            id="n2",
            title="Inventory",
            message="",
            is_recurring=True,
            recurrence_type="weekly",
            recurrence_time="09:00",
            recurrence_day_of_week=1,
        )
        assert not is_notification_due(n, now)

    def test_monthly_alias(self, now):
        n = Notification(
            id="n3",
            title="Pay suppliers",
            message="",
            is_recurring=True,
            recurrence_type="monthly",
            recurrence_time="09:00",
            recurrence_day_of_month=15,
        )
        assert is_notification_due(n, now)

    def test_recurring_without_time_is_invalid(self, daily, now):
        daily.recurrence_time = None
        assert not is_notification_due(daily, now)

    def test_inactive(self, daily, now):
        daily.is_active = False
        assert not is_notification_due(daily, now)

    def test_one_time_after_schedule(self, now):
        n = Notification(
            id="n4",
            title="Promo",
            message="",
            scheduled_at=datetime(2025, 1, 15, 8, 30, tzinfo=timezone.utc),
        )
        assert is_notification_due(n, now)

    def test_one_time_before_schedule(self, now):
        n = Notification(
            id="n4",
            title="Promo",
            message="",
            scheduled_at=datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc),
        )
        assert not is_notification_due(n, now)

    def test_one_time_already_sent(self, now):
        n = Notification(
            id="n4",
            title="Promo",
            message="",
            is_sent=True,
            scheduled_at=datetime(2025, 1, 15, 8, 30, tzinfo=timezone.utc),
        )
        assert not is_notification_due(n, now)

    def test_one_time_without_schedule(self, now):
        assert not is_notification_due(Notification(id="n5", title="Draft", message=""), now)


def test_select_due(daily, now):
    late = Notification(
        id="n2", title="Close", message="", is_recurring=True, recurrence_type="daily", recurrence_time="18:00"
    )
    assert select_due([daily, late], now) == [daily]


class TestTargets:
    def test_all_uses_active_users(self, daily):
        assert resolve_targets(daily, ["u1", "u2"]) == ["u1", "u2"]

    def test_specific_uses_list(self, daily):
        daily.target_type = "specific"
        daily.target_user_ids = ["u3"]
        assert resolve_targets(daily, ["u1", "u2"]) == ["u3"]

    def test_build_rows(self, daily):
        rows = build_user_notifications(daily, ["u1", "u2"])
        assert rows == [
            {"user_id": "u1", "notification_id": "n1", "title": "Open the shop", "message": "Turn on the fryers"},
            {"user_id": "u2", "notification_id": "n1", "title": "Open the shop", "message": "Turn on the fryers"},
        ]


class TestSentUpdate:
    def test_recurring_only_stamps_last_sent(self, daily, now):
        assert sent_update(daily, now) == {"last_sent_at": now.isoformat()}

    def test_one_time_marks_sent(self, now):
        n = Notification(id="n4", title="Promo", message="", scheduled_at=now)
        update = sent_update(n, now)
        assert update["is_sent"] is True
        assert update["sent_at"] == now.isoformat()


def test_unread_count():
    items = [
        UserNotification(id="1", user_id="u1", title="a", message=""),
        UserNotification(id="2", user_id="u1", title="b", message="", is_read=True),
        UserNotification.from_api({"id": "3", "user_id": "u1", "title": "c", "is_read": False}),
    ]
    assert unread_count(items) == 2
