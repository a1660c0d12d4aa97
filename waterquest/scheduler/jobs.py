"""APScheduler job definitions for day rollover, reminder planning/dispatch, weekly report, and backup."""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime

from apscheduler.jobstores.base import JobLookupError
from apscheduler.triggers.date import DateTrigger

from ..database.repository import Repository
from ..hydration.insights import generate_insights, weekly_summary
from ..hydration.reminders import ReminderTime, reminder_datetimes
from ..hydration.store import HydrationStore
from ..telegram.bot import TelegramBot
from ..utils.backup import create_backup
from ..utils.charts import generate_fluid_chart, generate_weekly_chart

logger = logging.getLogger(__name__)

REMINDER_JOB_PREFIX = "reminder_"


def _run_async(coro) -> None:
    """Run an async coroutine synchronously from a sync scheduler job."""
    loop = asyncio.new_event_loop()
    try:
        loop.run_until_complete(coro)
    finally:
        loop.close()


def reminder_job_id(day: date, reminder: ReminderTime) -> str:
    return f"{REMINDER_JOB_PREFIX}{day.isoformat()}_{reminder.index}"


def make_rollover_job(store: HydrationStore) -> callable:
    """Return a callable that closes every fully elapsed day.

    Args:
        store: The hydration store.

    Returns:
        Callable suitable for APScheduler.
    """
    def day_rollover_job() -> None:
        logger.info("Job: closing elapsed days")
        try:
            result = store.close_elapsed_days()
        except Exception as exc:
            logger.error("Job: day rollover failed: %s", exc, exc_info=True)
            raise  # Let APScheduler's error listener handle it
        state = store.state
        logger.info(
            "Job: rollover done (last closed %s, streak %d, %d achievements unlocked)",
            state.last_closed_day, state.streak_days, len(result.unlocked),
        )

    return day_rollover_job


def make_send_reminder_job(
    store: HydrationStore,
    repo: Repository,
    bot: TelegramBot,
    day: date,
    reminder: ReminderTime,
) -> callable:
    """Return a callable that delivers one planned reminder.

    The slot is re-checked at send time: if it was already sent, or smart
    pacing no longer keeps it because intake caught up, it is skipped.

    Args:
        store: The hydration store.
        repo: Database repository (reminder log).
        bot: TelegramBot instance.
        day: Day whose waking window the slot belongs to.
        reminder: The slot to deliver.

    Returns:
        Callable suitable for APScheduler.
    """
    def send_reminder_job() -> None:
        if repo.has_reminder_sent(day, reminder.index):
            logger.debug("Job: reminder %s/%d already sent, skipping", day, reminder.index)
            return
        still_due = {r.index for r in store.reminders(day)}
        if reminder.index not in still_due:
            repo.log_reminder(day, reminder.index, "skipped")
            logger.info("Job: reminder %s/%d skipped, intake is on pace", day, reminder.index)
            return
        try:
            _run_async(bot.send_reminder(reminder))
            repo.log_reminder(day, reminder.index, "sent")
        except Exception as exc:
            repo.log_reminder(day, reminder.index, "error", str(exc))
            logger.error("Job: reminder %s/%d failed: %s", day, reminder.index, exc, exc_info=True)
            raise

    return send_reminder_job


def plan_reminders(
    scheduler,
    store: HydrationStore,
    repo: Repository,
    bot: TelegramBot,
    day: date | None = None,
    now: datetime | None = None,
    timezone=None,
) -> list[str]:
    """Replace the scheduled reminder set for ``day`` with a freshly computed one.

    Future slots are (re)added under stable ids with ``replace_existing``;
    previously planned jobs for the same day that are no longer in the set are
    removed. Slots already in the past are not scheduled.

    Args:
        scheduler: APScheduler scheduler.
        store: The hydration store.
        repo: Database repository.
        bot: TelegramBot instance.
        day: Day whose waking window is planned (defaults to today).
        now: Current local time (defaults to datetime.now()).
        timezone: Timezone for the date triggers (defaults to the scheduler's).

    Returns:
        Ids of the jobs now scheduled for ``day``.
    """
    now = now or datetime.now()
    day = day or now.date()
    reminders = store.reminders(day)
    run_times = reminder_datetimes(day, reminders)

    planned: list[str] = []
    for reminder, run_at in zip(reminders, run_times):
        if run_at <= now:
            continue
        job_id = reminder_job_id(day, reminder)
        trigger = DateTrigger(run_date=run_at, timezone=timezone) if timezone is not None else DateTrigger(run_date=run_at)
        scheduler.add_job(
            make_send_reminder_job(store, repo, bot, day, reminder),
            trigger,
            id=job_id,
            name=f"Lembrete {reminder.label}",
            replace_existing=True,
            misfire_grace_time=900,
        )
        planned.append(job_id)

    day_prefix = f"{REMINDER_JOB_PREFIX}{day.isoformat()}_"
    keep = set(planned)
    for job in scheduler.get_jobs():
        if job.id.startswith(day_prefix) and job.id not in keep:
            try:
                scheduler.remove_job(job.id)
            except JobLookupError:
                # Already fired and gone
                continue
            logger.debug("Removed stale reminder job %s", job.id)

    logger.info("Planned %d reminders for %s", len(planned), day)
    return planned


def make_plan_reminders_job(scheduler, store: HydrationStore, repo: Repository, bot: TelegramBot, timezone=None) -> callable:
    """Return a callable that plans today's reminders.

    Args:
        scheduler: APScheduler scheduler the reminder jobs are added to.
        store: The hydration store.
        repo: Database repository.
        bot: TelegramBot instance.
        timezone: Timezone for the date triggers.

    Returns:
        Callable suitable for APScheduler, also used to replan after changes.
    """
    def plan_reminders_job() -> None:
        try:
            plan_reminders(scheduler, store, repo, bot, timezone=timezone)
        except Exception as exc:
            logger.error("Job: reminder planning failed: %s", exc, exc_info=True)
            raise

    return plan_reminders_job


def make_weekly_report_job(store: HydrationStore, bot: TelegramBot, database_path: str) -> callable:
    """Return a callable that sends the weekly report, charts and insights, then backs up the database.

    Args:
        store: The hydration store.
        bot: TelegramBot instance.
        database_path: Path to the SQLite database (for weekly backup).

    Returns:
        Callable suitable for APScheduler.
    """
    def send_weekly_report_job() -> None:
        logger.info("Job: sending weekly report")
        today = date.today()
        goal_ml = store.daily_goal(today).total_ml
        summary = weekly_summary(store.ledger, goal_ml, today)

        try:
            if not summary:
                logger.warning("Job: no intake logged this week")
                _run_async(bot.send_text("📅 Sem registos de hidratação esta semana. Usa /agua para começar!"))
                return

            insights = generate_insights(summary, store.state)
            _run_async(bot.send_weekly_report(summary, insights))

            chart_bytes = generate_weekly_chart(summary["days"], goal_ml)
            if chart_bytes:
                _run_async(bot.send_image(chart_bytes, caption="📊 Evolução semanal"))
            fluid_bytes = generate_fluid_chart(summary["breakdown"])
            if fluid_bytes:
                _run_async(bot.send_image(fluid_bytes, caption="🥤 Bebidas da semana"))

            logger.info("Job: weekly report sent")
        except Exception as exc:
            logger.error("Job: failed to send weekly report: %s", exc, exc_info=True)
            raise
        finally:
            # Always back up regardless of send outcome
            create_backup(database_path)

    return send_weekly_report_job
