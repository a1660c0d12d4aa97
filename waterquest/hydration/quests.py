"""Daily quests: deterministic per date, progress recomputed from the day's entries."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, replace
from datetime import date
from typing import Iterable

from .models import DailyGoal, FluidType, GameState, HydrationEntry, Profile, Quest
from .units import format_volume

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _QuestTemplate:
    id: str
    title: str
    detail: str
    goal_fraction: float | None
    reward_xp: int
    reward_coins: int
    deadline_hour: int | None = None
    fluid_type: FluidType | None = None
    target_ml: float | None = None


_DAILY_TEMPLATES = (
    _QuestTemplate("morning-splash", "Mergulho matinal", "Atinge 20% até às 11h", 0.2, 40, 10, deadline_hour=11),
    _QuestTemplate("steady-sips", "Goles constantes", "Chega aos 50% até às 16h", 0.5, 70, 15, deadline_hour=16),
    _QuestTemplate("finish-line", "Meta final", "Completa o objetivo diário", 1.0, 120, 25),
)

_BONUS_POOL = (
    _QuestTemplate("pure-water", "Água pura", "Bebe metade do objetivo só em água", 0.5, 50, 15,
                   fluid_type=FluidType.WATER),
    _QuestTemplate("tea-break", "Pausa para chá", "Bebe {volume} de chá", None, 30, 10,
                   fluid_type=FluidType.TEA, target_ml=300.0),
    _QuestTemplate("bubbles", "Borbulhas", "Bebe {volume} de água com gás", None, 30, 10,
                   fluid_type=FluidType.SPARKLING_WATER, target_ml=500.0),
)


def bonus_template_for(day: date) -> _QuestTemplate:
    """Pick the bonus quest for ``day``; the same day always yields the same quest."""
    return random.Random(day.toordinal()).choice(_BONUS_POOL)


def _progress(template: _QuestTemplate, entries: Iterable[HydrationEntry]) -> float:
    if template.fluid_type is not None:
        return sum(e.volume_ml for e in entries if e.fluid_type == template.fluid_type)
    if template.deadline_hour is not None:
        return sum(e.effective_ml for e in entries if e.timestamp.hour <= template.deadline_hour)
    return sum(e.effective_ml for e in entries)


def daily_quests(
    entries_today: Iterable[HydrationEntry],
    goal: DailyGoal,
    profile: Profile,
    day: date,
) -> list[Quest]:
    """Build the quest list for ``day`` with progress from that day's entries.

    Pure and idempotent: the bonus quest is seeded by the date, and progress is
    recomputed from scratch every call (capped at each quest's target).

    Args:
        entries_today: Entries logged on ``day`` (any order).
        goal: The day's goal.
        profile: User profile, for volumes shown in quest details.
        day: Calendar day the quests belong to.

    Returns:
        Fixed daily quests followed by the bonus fluid quest.
    """
    entries = [e for e in entries_today if e.day == day]
    quests = []
    for template in (*_DAILY_TEMPLATES, bonus_template_for(day)):
        if template.target_ml is not None:
            target = template.target_ml
        else:
            target = goal.total_ml * template.goal_fraction
        progress = min(target, _progress(template, entries))
        quests.append(Quest(
            id=template.id,
            title=template.title,
            detail=template.detail.format(volume=format_volume(target, profile.unit_system)),
            target_ml=target,
            progress_ml=progress,
            reward_xp=template.reward_xp,
            reward_coins=template.reward_coins,
            deadline_hour=template.deadline_hour,
            fluid_type=template.fluid_type,
        ))
    return quests


def claim_rewards(state: GameState, quests: Iterable[Quest], day: date) -> tuple[GameState, list[Quest]]:
    """Award XP/coins for completed quests that have not been rewarded yet on ``day``.

    Returns:
        The new state and the quests rewarded by this call (empty when nothing new).
    """
    rewarded = [
        q for q in quests
        if q.is_completed and (day, q.id) not in state.claimed_rewards
    ]
    if not rewarded:
        return state, []

    xp = sum(q.reward_xp for q in rewarded)
    coins = sum(q.reward_coins for q in rewarded)
    new_state = replace(
        state,
        xp=state.xp + xp,
        coins=state.coins + coins,
        claimed_rewards=state.claimed_rewards | {(day, q.id) for q in rewarded},
    )
    logger.info("Quests completed on %s: %s (+%d XP, +%d coins)", day, [q.id for q in rewarded], xp, coins)
    return new_state, rewarded
