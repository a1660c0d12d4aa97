"""Entry point: initialise all components, run health checks, start scheduler and bot."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

from apscheduler.events import EVENT_JOB_ERROR, JobExecutionEvent
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from pytz import timezone as pytz_timezone

from .config import Config, ConfigError, load_config
from .database.repository import Repository
from .hydration.store import HydrationStore
from .scheduler.jobs import (
    make_plan_reminders_job,
    make_rollover_job,
    make_weekly_report_job,
)
from .telegram.bot import TelegramBot
from .utils.logger import setup_logging

logger = logging.getLogger(__name__)

_WEEKDAY_MAP = {
    "monday": "mon", "tuesday": "tue", "wednesday": "wed",
    "thursday": "thu", "friday": "fri", "saturday": "sat", "sunday": "sun",
}


def _job_error_listener(event: JobExecutionEvent) -> None:
    logger.error(
        "Scheduler job '%s' raised an exception: %s",
        event.job_id,
        event.exception,
        exc_info=(type(event.exception), event.exception, event.exception.__traceback__),
    )


def _run_health_checks(repo: Repository, bot_token: str, loop: asyncio.AbstractEventLoop) -> None:
    """Verify the database and Telegram on startup, on the main thread's event loop."""
    try:
        count = repo.count_entries()
        logger.info("Health: database OK (%d entries stored)", count)
    except Exception as exc:
        logger.error("Health: database check failed: %s", exc)
        raise

    try:
        from telegram import Bot

        async def _ping():
            bot = Bot(token=bot_token)
            me = await bot.get_me()
            logger.info("Health: Telegram OK (@%s)", me.username)

        loop.run_until_complete(_ping())
    except Exception as exc:
        logger.warning("Health: Telegram check failed: %s", exc)


def build_scheduler(config: Config, store: HydrationStore, repo: Repository, tg_bot: TelegramBot) -> BackgroundScheduler:
    """Create the scheduler with rollover, reminder-planning and weekly jobs.

    Also wires the bot so any intake/profile change replans today's reminders.
    """
    tz = pytz_timezone(config.timezone)
    scheduler = BackgroundScheduler(timezone=tz)
    scheduler.add_listener(_job_error_listener, EVENT_JOB_ERROR)

    plan_job = make_plan_reminders_job(scheduler, store, repo, tg_bot, timezone=tz)
    tg_bot.set_on_change(plan_job)

    scheduler.add_job(
        make_rollover_job(store),
        CronTrigger(hour=config.rollover_hour, minute=config.rollover_minute, timezone=tz),
        id="day_rollover",
        name="Day Rollover",
        max_instances=1,
        coalesce=True,
        misfire_grace_time=3600,
    )
    scheduler.add_job(
        plan_job,
        CronTrigger(hour=config.plan_hour, minute=config.plan_minute, timezone=tz),
        id="plan_reminders",
        name="Plan Reminders",
        max_instances=1,
        coalesce=True,
        misfire_grace_time=3600,
    )

    weekly_day = _WEEKDAY_MAP[config.weekly_report_day]
    scheduler.add_job(
        make_weekly_report_job(store, tg_bot, config.database_path),
        CronTrigger(day_of_week=weekly_day, hour=config.weekly_hour, minute=config.weekly_minute, timezone=tz),
        id="weekly_report",
        name="Weekly Report",
        max_instances=1,
        coalesce=True,
        misfire_grace_time=7200,
    )

    return scheduler


def run() -> None:
    """Main application entry point."""
    # Minimal early logging before config is loaded
    logging.basicConfig(level=logging.INFO)

    try:
        config = load_config()
    except ConfigError as exc:
        logging.critical("Configuration error: %s", exc)
        sys.exit(1)

    setup_logging(config.log_level, config.log_file)
    logger.info("WaterQuest starting up")

    repo = Repository(config.database_path)
    repo.init_database()
    store = HydrationStore(repo, settings=config.goal_settings())

    tg_bot = TelegramBot(config, store, repo)

    # run_polling needs a current event loop on the main thread, so keep one set
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    _run_health_checks(repo, config.telegram_bot_token, loop)

    # Catch up on days that elapsed while the bot was down
    store.close_elapsed_days()

    scheduler = build_scheduler(config, store, repo, tg_bot)
    scheduler.start()
    # Plan today's remaining reminders right away, not only at the next planning time
    scheduler.add_job(
        make_plan_reminders_job(scheduler, store, repo, tg_bot, timezone=scheduler.timezone),
        id="plan_reminders_startup",
        name="Plan Reminders (startup)",
    )
    logger.info(
        "Scheduler started. Rollover at %02d:%02d, reminders planned at %02d:%02d, "
        "weekly on %s at %02d:%02d (%s)",
        config.rollover_hour, config.rollover_minute,
        config.plan_hour, config.plan_minute,
        config.weekly_report_day, config.weekly_hour, config.weekly_minute,
        config.timezone,
    )

    app = tg_bot.build_application()
    app.bot_data["scheduler"] = scheduler

    # Graceful shutdown handler
    def _shutdown(signum, frame):
        logger.info("Shutdown signal received, stopping...")
        scheduler.shutdown(wait=True)
        logger.info("Scheduler stopped cleanly")
        sys.exit(0)

    signal.signal(signal.SIGTERM, _shutdown)
    signal.signal(signal.SIGINT, _shutdown)

    logger.info("WaterQuest running. Press Ctrl+C to stop.")

    try:
        app.run_polling(allowed_updates=["message"])
    except (KeyboardInterrupt, SystemExit):
        pass
    finally:
        if scheduler.running:
            scheduler.shutdown(wait=True)
        logger.info("WaterQuest stopped")


if __name__ == "__main__":
    run()
