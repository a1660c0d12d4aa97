"""Reminder slots across the waking window, with optional smart pacing."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable

from .models import MINUTES_PER_DAY, HydrationEntry, Profile, format_minutes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReminderTime:
    """One reminder slot.

    ``minute_of_day`` is always in [0, 1440); ``day_offset`` is 1 for slots that
    fall after midnight in a window that wraps past it.
    """

    index: int
    minute_of_day: int
    day_offset: int
    pacing_target_ml: float

    @property
    def label(self) -> str:
        return format_minutes(self.minute_of_day)


def window_span(wake_minutes: int, sleep_minutes: int) -> int:
    """Length of the waking window in minutes, computed modulo a day.

    A sleep time equal to the wake time is treated as a full 24h window.
    """
    span = (sleep_minutes - wake_minutes) % MINUTES_PER_DAY
    return span or MINUTES_PER_DAY


def reminder_slots(wake_minutes: int, sleep_minutes: int, count: int, goal_ml: float = 0.0) -> list[ReminderTime]:
    """Spread ``count`` slots evenly over [wake, sleep), wrapping past midnight."""
    span = window_span(wake_minutes, sleep_minutes)
    gap = span // count
    slots = []
    for i in range(count):
        absolute = wake_minutes + i * gap
        slots.append(ReminderTime(
            index=i,
            minute_of_day=absolute % MINUTES_PER_DAY,
            day_offset=absolute // MINUTES_PER_DAY,
            pacing_target_ml=goal_ml * (i + 1) / count,
        ))
    return slots


def schedule_reminders(
    profile: Profile,
    todays_entries: Iterable[HydrationEntry],
    goal_ml: float,
) -> list[ReminderTime]:
    """Compute today's reminder set.

    Classic mode returns every slot. Smart mode drops a slot when intake already
    covers its pacing target, i.e. the share of the goal expected by the time the
    next slot comes around. Same inputs always give the same list, so callers can
    replace a previously scheduled set wholesale.

    Args:
        profile: Supplies the waking window, count and mode flags.
        todays_entries: Entries logged today.
        goal_ml: Today's goal total.

    Returns:
        Reminder slots ordered by time within the window.
    """
    if not profile.reminders_enabled:
        return []

    slots = reminder_slots(profile.wake_minutes, profile.sleep_minutes, profile.reminder_count, goal_ml)
    if not profile.smart_reminders_enabled:
        return slots

    intake = sum(e.effective_ml for e in todays_entries)
    kept = [slot for slot in slots if intake < slot.pacing_target_ml]
    logger.debug("Smart reminders: intake %.0f ml, kept %d of %d slots", intake, len(kept), len(slots))
    return kept


def reminder_datetimes(day: date, reminders: Iterable[ReminderTime]) -> list[datetime]:
    """Anchor reminder slots to the waking window that starts on ``day``."""
    result = []
    for reminder in reminders:
        hour, minute = divmod(reminder.minute_of_day, 60)
        result.append(datetime.combine(day + timedelta(days=reminder.day_offset), time(hour, minute)))
    return result


_EARLY_MESSAGES = (
    "Começa o dia bem: um copo de água!",
    "O teu corpo acordou com sede. Ajuda-o!",
    "Primeiro gole do dia, vamos lá!",
)
_MID_MESSAGES = (
    "Ponto de situação: como vai a hidratação?",
    "Um gole rápido mantém a energia.",
    "Pausa para água e ganha XP.",
)
_LATE_MESSAGES = (
    "Quase no objetivo, só mais um copo!",
    "A meta está perto. Termina em força!",
    "Estás a ir muito bem, falta pouco.",
)


def reminder_message(progress: float, index: int = 0) -> str:
    """Pick a reminder text for the fraction of the goal already reached."""
    if progress < 0.25:
        pool = _EARLY_MESSAGES
    elif progress < 0.6:
        pool = _MID_MESSAGES
    else:
        pool = _LATE_MESSAGES
    return pool[index % len(pool)]
