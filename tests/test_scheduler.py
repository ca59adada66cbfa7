"""Tests for the notification poller setup."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest
from apscheduler.triggers.cron import CronTrigger

from churros.config import MAX_POLL_MINUTES, Config, ConfigError
from churros.core.notifications import Notification, is_notification_due
from churros.scheduler import poll_notifications, setup_scheduler
from churros.workflows import ProcessResult


def fire_times(trigger, start, end):
    """Every time the trigger fires in [start, end)."""
    times = []
    t = trigger.get_next_fire_time(None, start)
    while t is not None and t < end:
        times.append(t)
        t = trigger.get_next_fire_time(t, t + timedelta(microseconds=1))
    return times


class TestSetupScheduler:
    def test_registers_polling_job(self):
        scheduler = setup_scheduler(MagicMock(), Config(poll_minutes=2))

        jobs = scheduler.get_jobs()
        assert [j.id for j in jobs] == ["scheduled_notifications"]
        job = jobs[0]
        assert isinstance(job.trigger, CronTrigger)
        assert str(job.trigger.timezone) == "UTC"
        assert "minute='*/2'" in str(job.trigger)

    @pytest.mark.parametrize("minutes", [0, 5, 15])
    def test_rejects_intervals_that_skip_targets(self, minutes):
        with pytest.raises(ConfigError, match="poll_minutes"):
            setup_scheduler(MagicMock(), Config(poll_minutes=minutes))

    @pytest.mark.parametrize("minutes", range(1, MAX_POLL_MINUTES + 1))
    def test_every_minute_of_the_hour_is_delivered(self, minutes):
        scheduler = setup_scheduler(MagicMock(), Config(poll_minutes=minutes))
        trigger = scheduler.get_jobs()[0].trigger
        start = datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc)
        polls = fire_times(trigger, start, start + timedelta(hours=1))

        missed = []
        for minute in range(60):
            daily = Notification(
                id=f"n{minute}",
                title="Reminder",
                message="",
                is_recurring=True,
                recurrence_type="daily",
                recurrence_time=f"09:{minute:02d}",
            )
            if not any(is_notification_due(daily, poll) for poll in polls):
                missed.append(minute)

        assert missed == []


@patch("churros.scheduler.process_scheduled_notifications")
def test_poll_uses_aware_utc_now(mock_process):
    mock_process.return_value = ProcessResult(sent=1)
    backend = MagicMock()

    poll_notifications(backend)

    called_backend, now = mock_process.call_args.args
    assert called_backend is backend
    assert now.utcoffset().total_seconds() == 0
