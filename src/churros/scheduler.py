"""Notification poller - runs the scheduled-notification pass on a cron."""

import logging
from datetime import datetime, timezone

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from .adapters.supabase_rest import SupabaseAdapter
from .config import MAX_POLL_MINUTES, Config, ConfigError, load_config
from .ports.shop_backend import ShopBackend
from .workflows import process_scheduled_notifications

logger = logging.getLogger(__name__)


def poll_notifications(backend: ShopBackend) -> None:
    """One polling pass at the current UTC time."""
    now = datetime.now(timezone.utc)
    result = process_scheduled_notifications(backend, now)
    if result.sent or result.failed:
        logger.info(f"Poll at {now:%H:%M}: sent {result.sent}, failed {result.failed}")


def setup_scheduler(backend: ShopBackend, config: Config | None = None) -> BlockingScheduler:
    """Set up the polling job. Times are UTC to match how notifications are stored."""
    if config is None:
        config = load_config()
    if not 1 <= config.poll_minutes <= MAX_POLL_MINUTES:
        raise ConfigError(
            f"poll_minutes must be between 1 and {MAX_POLL_MINUTES}, got {config.poll_minutes}"
        )

    scheduler = BlockingScheduler(timezone="UTC")
    scheduler.add_job(
        poll_notifications,
        CronTrigger(minute=f"*/{config.poll_minutes}", timezone="UTC"),
        args=[backend],
        id="scheduled_notifications",
        max_instances=1,
        coalesce=True,
    )
    logger.info(f"Scheduled notification polling every {config.poll_minutes} minute(s)")
    return scheduler


def run_scheduler(config: Config | None = None) -> None:
    """Run the poller until interrupted."""
    if config is None:
        config = load_config()

    backend = SupabaseAdapter(config)
    scheduler = setup_scheduler(backend, config)

    logger.info("Starting notification scheduler...")
    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Scheduler stopped")
