"""Streaks, levels and achievements derived from day-by-day goal attainment."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Any, Callable, Mapping

from .models import Achievement, GameState

logger = logging.getLogger(__name__)

XP_PER_LEVEL_STEP = 50
GOAL_MET_XP = 50
GOAL_MET_COINS = 10


def xp_for_level(level: int) -> int:
    """Cumulative XP needed to reach ``level`` (level 1 needs 0)."""
    if level <= 1:
        return 0
    return XP_PER_LEVEL_STEP * (level - 1) ** 2


def level_for_xp(xp: int) -> int:
    """Level for a cumulative XP total: 0→1, 50→2, 200→3, 450→4, 800→5."""
    return math.isqrt(max(0, xp) // XP_PER_LEVEL_STEP) + 1


# ---------------------------------------------------------------------- #
# Achievement catalogue                                                   #
# ---------------------------------------------------------------------- #

_Condition = Callable[[GameState, Mapping[str, Any]], bool]


@dataclass(frozen=True)
class _Milestone:
    id: str
    title: str
    detail: str
    reward_coins: int
    condition: _Condition


_CATALOG: tuple[_Milestone, ...] = (
    _Milestone("first-sip", "Primeiro gole", "Regista a primeira bebida.", 5,
               lambda s, st: st.get("entry_count", 0) >= 1),
    _Milestone("early-bird", "Madrugador", "Regista água antes das 8h.", 10,
               lambda s, st: bool(st.get("has_early_entry"))),
    _Milestone("night-owl", "Coruja", "Regista água depois das 22h.", 10,
               lambda s, st: bool(st.get("has_late_entry"))),
    _Milestone("streak-3", "Fluxo de 3 dias", "Mantém uma sequência de 3 dias.", 15,
               lambda s, st: s.streak_days >= 3),
    _Milestone("streak-7", "Rio de 7 dias", "Mantém uma sequência de 7 dias.", 30,
               lambda s, st: s.streak_days >= 7),
    _Milestone("streak-14", "Corrente de 14 dias", "Mantém uma sequência de 14 dias.", 60,
               lambda s, st: s.streak_days >= 14),
    _Milestone("streak-30", "Maré de 30 dias", "Mantém uma sequência de 30 dias.", 120,
               lambda s, st: s.streak_days >= 30),
    _Milestone("days-30", "Campeão da constância", "Regista água em 30 dias diferentes.", 50,
               lambda s, st: st.get("logged_days", 0) >= 30),
    _Milestone("goal-day", "Dia cumprido", "Atinge o objetivo diário uma vez.", 10,
               lambda s, st: s.goal_days >= 1),
    _Milestone("goal-10", "Dez vezes", "Atinge o objetivo 10 vezes.", 40,
               lambda s, st: s.goal_days >= 10),
    _Milestone("goal-25", "Quarto de século", "Atinge o objetivo 25 vezes.", 100,
               lambda s, st: s.goal_days >= 25),
    _Milestone("entries-25", "Bebedor regular", "Regista 25 bebidas.", 20,
               lambda s, st: st.get("entry_count", 0) >= 25),
    _Milestone("entries-100", "Hábito de hidratação", "Regista 100 bebidas.", 60,
               lambda s, st: st.get("entry_count", 0) >= 100),
    _Milestone("total-10k", "Reservatório", "Regista 10.000 ml no total.", 30,
               lambda s, st: st.get("total_ml", 0.0) >= 10_000),
    _Milestone("total-50k", "Criador de lagos", "Regista 50.000 ml no total.", 100,
               lambda s, st: st.get("total_ml", 0.0) >= 50_000),
)


def ensure_achievements(state: GameState) -> GameState:
    """Merge the catalogue into ``state`` keeping unlock stamps.

    Titles and details always come from the catalogue; unknown ids from older
    snapshots are kept at the end so nothing already earned disappears.
    """
    existing = {a.id: a for a in state.achievements}
    catalog_ids = {m.id for m in _CATALOG}
    merged = [
        Achievement(
            id=m.id,
            title=m.title,
            detail=m.detail,
            reward_coins=m.reward_coins,
            unlocked_at=existing[m.id].unlocked_at if m.id in existing else None,
        )
        for m in _CATALOG
    ]
    legacy = [a for a in state.achievements if a.id not in catalog_ids]
    achievements = tuple(merged + legacy)
    if achievements == state.achievements:
        return state
    return replace(state, achievements=achievements)


def evaluate_achievements(
    state: GameState, stats: Mapping[str, Any], now: datetime
) -> tuple[GameState, list[Achievement]]:
    """Unlock every achievement whose condition holds for the first time.

    ``unlocked_at`` is stamped once and never cleared, even if the stats that
    triggered it later regress (e.g. entries deleted).

    Args:
        state: Current game state.
        stats: Lifetime counters from ``ledger.entry_stats``.
        now: Unlock timestamp.

    Returns:
        The new state and the achievements unlocked by this call.
    """
    state = ensure_achievements(state)
    conditions = {m.id: m.condition for m in _CATALOG}
    unlocked: list[Achievement] = []
    achievements = []
    for achievement in state.achievements:
        condition = conditions.get(achievement.id)
        if not achievement.is_unlocked and condition is not None and condition(state, stats):
            achievement = replace(achievement, unlocked_at=now)
            unlocked.append(achievement)
        achievements.append(achievement)

    if not unlocked:
        return state, []

    coins = sum(a.reward_coins for a in unlocked)
    logger.info("Achievements unlocked: %s (+%d coins)", [a.id for a in unlocked], coins)
    return replace(state, achievements=tuple(achievements), coins=state.coins + coins), unlocked


# ---------------------------------------------------------------------- #
# Streak state machine                                                    #
# ---------------------------------------------------------------------- #

@dataclass(frozen=True)
class ProgressUpdate:
    state: GameState
    streak_by_day: list[tuple[date, int]] = field(default_factory=list)
    newly_unlocked: list[Achievement] = field(default_factory=list)
    xp_awarded: int = 0
    coins_awarded: int = 0


def advance(
    state: GameState,
    history: Mapping[date, float],
    goal_ml: float,
    today: date,
    stats: Mapping[str, Any] | None = None,
    now: datetime | None = None,
    goals: Mapping[date, float] | None = None,
) -> ProgressUpdate:
    """Walk the calendar from the last closed day up to ``today``.

    Each day is ``met`` when its total reaches its goal. A met day extends
    the streak (or restarts it at 1 after a gap) and awards goal-met XP and
    coins once. A fully elapsed missed day resets the streak to 0 and closes
    the day. Today is never treated as missed while it is still running.

    Args:
        state: Current game state.
        history: Effective ml per day; days absent from it count as 0.
        goal_ml: Goal used to judge each not-yet-closed day.
        goals: Optional per-day goals; days missing from it fall back to ``goal_ml``.
        today: Current calendar day.
        stats: Optional lifetime counters; when given, achievements are evaluated too.
        now: Timestamp for achievement unlocks (defaults to datetime.now()).

    Returns:
        ProgressUpdate with the new state and the streak value after each visited day.
    """
    if state.last_closed_day is not None:
        day = state.last_closed_day + timedelta(days=1)
    elif history:
        day = min(min(history), today)
    else:
        day = today

    streak = state.streak_days
    last_met = state.last_met_day
    last_closed = state.last_closed_day
    goal_days = state.goal_days
    xp = coins = 0
    streak_by_day: list[tuple[date, int]] = []

    while day <= today:
        day_goal = goals.get(day, goal_ml) if goals is not None else goal_ml
        met = history.get(day, 0.0) >= day_goal
        if met and last_met != day:
            streak = streak + 1 if last_met == day - timedelta(days=1) else 1
            last_met = day
            goal_days += 1
            xp += GOAL_MET_XP
            coins += GOAL_MET_COINS
            logger.info("Goal met on %s, streak now %d", day, streak)
        if day < today:
            if not met:
                if streak:
                    logger.info("Goal missed on %s, streak reset from %d", day, streak)
                streak = 0
            last_closed = day
        streak_by_day.append((day, streak))
        day += timedelta(days=1)

    new_state = replace(
        state,
        streak_days=streak,
        last_met_day=last_met,
        last_closed_day=last_closed,
        goal_days=goal_days,
        xp=state.xp + xp,
        coins=state.coins + coins,
    )

    unlocked: list[Achievement] = []
    if stats is not None:
        coins_before = new_state.coins
        new_state, unlocked = evaluate_achievements(new_state, stats, now or datetime.now())
        coins += new_state.coins - coins_before

    return ProgressUpdate(
        state=new_state,
        streak_by_day=streak_by_day,
        newly_unlocked=unlocked,
        xp_awarded=xp,
        coins_awarded=coins,
    )
