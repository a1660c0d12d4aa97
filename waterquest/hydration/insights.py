"""Smart insights: weekly summaries, beverage mix and hydration patterns."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Iterable

from .ledger import IntakeLedger
from .models import FluidType, GameState, HydrationEntry

logger = logging.getLogger(__name__)


def weekly_summary(ledger: IntakeLedger, goal_ml: float, end_day: date) -> dict[str, Any]:
    """Summarise the 7 days ending on ``end_day`` (inclusive).

    Returns an empty dict when nothing was logged in the period.
    """
    start = end_day - timedelta(days=6)
    entries = ledger.entries_between(start, end_day)
    if not entries:
        return {}

    totals = ledger.daily_totals(start, end_day)
    days = sorted(totals.items())
    best_day, best_ml = max(days, key=lambda item: item[1])
    total_ml = sum(totals.values())

    return {
        "start_date": start,
        "end_date": end_day,
        "days": days,
        "goal_ml": goal_ml,
        "total_ml": round(total_ml, 1),
        "avg_ml": round(total_ml / len(days), 1),
        "days_goal_met": sum(1 for _, ml in days if ml >= goal_ml),
        "best_day": best_day,
        "best_ml": round(best_ml, 1),
        "entries_count": len(entries),
        "breakdown": beverage_breakdown(entries),
    }


def beverage_breakdown(entries: Iterable[HydrationEntry]) -> list[dict[str, Any]]:
    """Raw and effective ml per fluid type, largest effective volume first."""
    raw: dict = {}
    effective: dict = {}
    for entry in entries:
        raw[entry.fluid_type] = raw.get(entry.fluid_type, 0.0) + entry.volume_ml
        effective[entry.fluid_type] = effective.get(entry.fluid_type, 0.0) + entry.effective_ml

    grand_total = sum(effective.values())
    rows = [
        {
            "fluid_type": fluid,
            "raw_ml": round(raw[fluid], 1),
            "effective_ml": round(effective[fluid], 1),
            "share": effective[fluid] / grand_total if grand_total else 0.0,
        }
        for fluid in effective
    ]
    rows.sort(key=lambda row: row["effective_ml"], reverse=True)
    return rows


def generate_insights(summary: dict[str, Any], state: GameState | None = None) -> list[str]:
    """Turn a weekly summary into short insight strings.

    Args:
        summary: Output of ``weekly_summary``.
        state: Optional game state for streak milestones.

    Returns:
        List of insight strings (may be empty).
    """
    if not summary:
        return []

    insights: list[str] = []
    goal_ml = summary["goal_ml"]
    days = summary["days"]

    run = _count_streak(days, lambda ml: ml >= goal_ml)
    if run >= 7:
        insights.append("🏆 Semana perfeita: objetivo cumprido nos 7 dias!")
    elif run >= 3:
        insights.append(f"🔥 {run} dias seguidos a cumprir o objetivo, continua!")

    if state is not None and state.streak_days >= 14:
        insights.append(f"🌊 Sequência de {state.streak_days} dias. Impressionante!")

    met_ratio = summary["days_goal_met"] / len(days)
    if met_ratio < 0.4:
        insights.append("⚠️ Objetivo falhado na maioria dos dias desta semana.")

    if summary["avg_ml"] >= goal_ml:
        insights.append(f"💧 Média diária acima do objetivo ({summary['avg_ml']:,.0f} ml)".replace(",", "."))

    breakdown = summary.get("breakdown") or []
    top = breakdown[0]["fluid_type"] if breakdown else None
    if top is not None and top not in (FluidType.WATER, FluidType.SPARKLING_WATER):
        insights.append(f"☕ A bebida principal da semana foi {top.label.lower()}, tenta beber mais água.")

    return insights


def _count_streak(days: list[tuple[date, float]], condition: callable) -> int:
    """Count consecutive days (from most recent backwards) where condition is True."""
    streak = 0
    for _, ml in reversed(days):
        if condition(ml):
            streak += 1
        else:
            break
    return streak
