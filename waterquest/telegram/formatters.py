"""Message formatters for Telegram: daily status, quests, achievements, reports, errors."""

from __future__ import annotations

from datetime import date
from typing import Any, Iterable

from telegram.helpers import escape_markdown

from ..hydration.errors import ConfigurationConflict, InvalidInput, NotFound
from ..hydration.models import DailyGoal, GameState, HydrationEntry, HydrationSource, Profile, Quest, format_minutes
from ..hydration.units import UnitSystem, format_volume, from_kg


def _progress_bar(fraction: float, width: int = 10) -> str:
    """Render a fraction as a bar like '▓▓▓▓░░░░░░'."""
    filled = int(round(min(1.0, max(0.0, fraction)) * width))
    return "▓" * filled + "░" * (width - filled)


def _pct(value: float, total: float) -> int:
    if total <= 0:
        return 0
    return int(round(100 * value / total))


def _day_name_pt(d: date) -> str:
    names = ["Segunda", "Terça", "Quarta", "Quinta", "Sexta", "Sábado", "Domingo"]
    return names[d.weekday()]


def _quest_line(quest: Quest, unit_system: UnitSystem) -> str:
    mark = "✅" if quest.is_completed else "▫️"
    progress = f"{format_volume(quest.progress_ml, unit_system)}/{format_volume(quest.target_ml, unit_system)}"
    deadline = f" até às {quest.deadline_hour}h" if quest.deadline_hour is not None else ""
    return f"{mark} *{quest.title}*{deadline}: {progress} (+{quest.reward_xp} XP)"


def _entry_line(entry: HydrationEntry, unit_system: UnitSystem) -> str:
    source = " ⌚" if entry.source is HydrationSource.HEALTH_KIT else ""
    note = f" _{entry.note}_" if entry.note else ""
    return f"• {entry.timestamp.strftime('%H:%M')} {entry.fluid_type.label} {format_volume(entry.volume_ml, unit_system)}{source}{note}"


def format_today(
    goal: DailyGoal,
    total_ml: float,
    entries: Iterable[HydrationEntry],
    quests: list[Quest],
    state: GameState,
    unit_system: UnitSystem,
    day: date | None = None,
) -> str:
    """Format the /hoje status message.

    Args:
        goal: Today's goal.
        total_ml: Effective ml logged today.
        entries: Today's entries, most recent first.
        quests: Today's quests.
        state: Current game state.
        unit_system: Display units.
        day: Day shown in the title (defaults to today).

    Returns:
        Markdown-formatted string ready to send via Telegram.
    """
    day = day or date.today()
    fraction = total_ml / goal.total_ml if goal.total_ml else 0.0
    remaining = max(0.0, goal.total_ml - total_ml)

    lines = [
        f"💧 *Hidratação de {day.strftime('%d/%m/%Y')}*",
        "",
        f"{_progress_bar(fraction)} {_pct(total_ml, goal.total_ml)}%",
        f"• Bebido: {format_volume(total_ml, unit_system)} de {format_volume(goal.total_ml, unit_system)}",
    ]
    if remaining > 0:
        lines.append(f"• Falta: {format_volume(remaining, unit_system)}")
    else:
        lines.append("• 🎉 Objetivo cumprido!")

    entries = list(entries)
    if entries:
        lines += ["", "🥤 *Registos*"]
        lines += [_entry_line(e, unit_system) for e in entries[:8]]
        if len(entries) > 8:
            lines.append(f"  … e mais {len(entries) - 8}")

    if quests:
        lines += ["", "🗺 *Missões*"]
        lines += [_quest_line(q, unit_system) for q in quests]

    lines += [
        "",
        f"⭐ Nível {state.level} · {state.xp} XP · 🪙 {state.coins} · 🔥 {state.streak_days} dias",
    ]
    return "\n".join(lines)


def format_intake_logged(
    entry: HydrationEntry,
    total_ml: float,
    goal_ml: float,
    completed: list[Quest],
    unlocked: list[Any],
    unit_system: UnitSystem,
) -> str:
    """Confirmation for a logged drink, with any quests or achievements it triggered."""
    lines = [
        f"💧 Registado: {entry.fluid_type.label} {format_volume(entry.volume_ml, unit_system)}",
        f"{_progress_bar(total_ml / goal_ml if goal_ml else 0.0)} "
        f"{format_volume(total_ml, unit_system)}/{format_volume(goal_ml, unit_system)}",
    ]
    for quest in completed:
        lines.append(f"🏁 Missão concluída: *{quest.title}* (+{quest.reward_xp} XP, +{quest.reward_coins} 🪙)")
    for achievement in unlocked:
        lines.append(f"🏅 Conquista desbloqueada: *{achievement.title}* (+{achievement.reward_coins} 🪙)")
    return "\n".join(lines)


def format_quests(quests: list[Quest], unit_system: UnitSystem) -> str:
    if not quests:
        return "Sem missões para hoje."
    lines = ["🗺 *Missões de hoje*", ""]
    for quest in quests:
        lines.append(_quest_line(quest, unit_system))
        lines.append(f"   _{quest.detail}_")
    done = sum(1 for q in quests if q.is_completed)
    lines += ["", f"{done}/{len(quests)} concluídas"]
    return "\n".join(lines)


def format_achievements(state: GameState) -> str:
    """Format the /conquistas message: unlocked first, then locked."""
    unlocked = [a for a in state.achievements if a.is_unlocked]
    locked = [a for a in state.achievements if not a.is_unlocked]
    lines = [
        f"🏅 *Conquistas ({len(unlocked)}/{len(state.achievements)})*",
        f"⭐ Nível {state.level}, faltam {state.xp_to_next_level} XP para o próximo",
        "",
    ]
    for a in unlocked:
        lines.append(f"✅ *{a.title}* ({a.unlocked_at.strftime('%d/%m/%Y')})")
    for a in locked:
        lines.append(f"🔒 {a.title}: {a.detail}")
    return "\n".join(lines)


def format_goal(goal: DailyGoal, profile: Profile) -> str:
    """Format the goal breakdown and the profile fields that drive it."""
    us = profile.unit_system
    lines = ["🎯 *Objetivo diário*", ""]
    if goal.custom_override:
        lines.append(f"• Meta personalizada: {format_volume(goal.base_ml, us)}")
    else:
        lines.append(f"• Base ({profile.activity_level.label}): {format_volume(goal.base_ml, us)}")
        if goal.weather_adjustment_ml:
            lines.append(f"• Calor: +{format_volume(goal.weather_adjustment_ml, us)}")
        if goal.workout_adjustment_ml:
            lines.append(f"• Treino: +{format_volume(goal.workout_adjustment_ml, us)}")
    lines.append(f"• *Total: {format_volume(goal.total_ml, us)}*")

    weight = from_kg(profile.weight_kg, us)
    lines += [
        "",
        "👤 *Perfil*",
        f"• Peso: {weight:.1f} {us.weight_unit}",
        f"• Atividade: {profile.activity_level.label}",
        f"• Acordar/dormir: {format_minutes(profile.wake_minutes)} – {format_minutes(profile.sleep_minutes)}",
        f"• Lembretes: {profile.reminder_count if profile.reminders_enabled else 'desligados'}"
        + (" (inteligentes)" if profile.reminders_enabled and profile.smart_reminders_enabled else ""),
        f"• Ajuste por clima: {'sim' if profile.prefers_weather_goal else 'não'}",
        f"• Ajuste por treino: {'sim' if profile.prefers_health_kit else 'não'}",
    ]
    return "\n".join(lines)


def format_weekly_report(
    summary: dict[str, Any],
    state: GameState,
    unit_system: UnitSystem,
    insights: list[str] | None = None,
) -> str:
    """Format a 7-day hydration summary message for Telegram.

    Args:
        summary: Dict from ``insights.weekly_summary``.
        state: Current game state.
        unit_system: Display units.
        insights: Optional insight strings to append.

    Returns:
        Markdown-formatted string.
    """
    start: date = summary["start_date"]
    end: date = summary["end_date"]
    best_day: date = summary["best_day"]

    lines = [
        f"📅 *Relatório Semanal ({start.strftime('%d/%m')} – {end.strftime('%d/%m')})*",
        "",
        f"• Total: {format_volume(summary['total_ml'], unit_system)}",
        f"• Média diária: {format_volume(summary['avg_ml'], unit_system)}",
        f"• Objetivo cumprido: {summary['days_goal_met']}/{len(summary['days'])} dias",
        f"• Melhor dia: {_day_name_pt(best_day)} ({format_volume(summary['best_ml'], unit_system)})",
        f"• Registos: {summary['entries_count']}",
    ]

    breakdown = summary.get("breakdown") or []
    if breakdown:
        lines += ["", "🥤 *Bebidas*"]
        for row in breakdown:
            lines.append(f"• {row['fluid_type'].label}: {format_volume(row['raw_ml'], unit_system)} ({row['share']:.0%})")

    lines += ["", f"⭐ Nível {state.level} · 🪙 {state.coins} · 🔥 {state.streak_days} dias"]

    if insights:
        lines += ["", "💡 *Insights:*"] + [f"• {i}" for i in insights]
    return "\n".join(lines)


def format_reminder(message: str, total_ml: float, goal_ml: float, unit_system: UnitSystem) -> str:
    remaining = max(0.0, goal_ml - total_ml)
    return (
        f"🔔 {message}\n"
        f"{_progress_bar(total_ml / goal_ml if goal_ml else 0.0)} "
        f"{format_volume(total_ml, unit_system)}/{format_volume(goal_ml, unit_system)}"
        f" (falta {format_volume(remaining, unit_system)})\n"
        "Usa /agua para registar."
    )


def format_error_message(context: str, error: Exception) -> str:
    """Format a user-friendly, actionable error notification.

    Maps known exception types to helpful guidance; falls back to a generic
    message for unknown errors.
    """
    type_name = type(error).__name__
    msg = str(error)[:200]

    if isinstance(error, InvalidInput):
        detail = f"Valor inválido: {escape_markdown(msg)}"
    elif isinstance(error, NotFound):
        detail = "Esse registo já não existe."
    elif isinstance(error, ConfigurationConflict):
        detail = "A meta personalizada anula os ajustes de clima e treino. Remove a meta ou desliga os ajustes."
    elif isinstance(error, (ConnectionError, TimeoutError)) or "timeout" in msg.lower() or "connection" in msg.lower():
        detail = "Falha de rede. O bot vai tentar novamente automaticamente."
    elif "database" in type_name.lower() or "sqlalchemy" in type(error).__module__.lower():
        detail = "Erro na base de dados. Verifica os logs para mais detalhes."
    else:
        detail = f"`{type_name}: {msg}`"

    return f"⚠️ *Erro: {context}*\n{detail}"


def format_status(
    state: GameState,
    entries_stored: int,
    recent_reminders: list[Any],
    next_jobs: dict[str, str],
) -> str:
    """Format the /status command response.

    Args:
        state: Current game state.
        entries_stored: Total entries in the database.
        recent_reminders: Recent ReminderLog rows.
        next_jobs: Dict mapping job name to next run time string.

    Returns:
        Markdown-formatted status message.
    """
    closed = state.last_closed_day.strftime("%d/%m/%Y") if state.last_closed_day else "nenhum"
    lines = [
        "🤖 *Status do Bot*",
        "",
        f"• Registos armazenados: {entries_stored}",
        f"• Último dia fechado: {closed}",
    ]

    if recent_reminders:
        lines += ["", "🔔 *Últimos lembretes:*"]
        for log in recent_reminders[:5]:
            ts = log.sent_at.strftime("%d/%m %H:%M")
            extra = f" ({(log.error_message or '')[:60]})" if log.status == "error" else ""
            lines.append(f"  • {ts}: {log.status}{extra}")

    if next_jobs:
        lines += ["", "⏰ *Próximas execuções:*"]
        for name, run_time in next_jobs.items():
            lines.append(f"  • {name}: {run_time}")

    return "\n".join(lines)


def format_help_message() -> str:
    """Return the /ajuda command text listing all available commands."""
    return (
        "🤖 Comandos disponíveis:\n"
        "\n"
        "/agua [quantidade] [bebida] - Registar bebida (ex: /agua 330 cha)\n"
        "/hoje - Progresso de hoje\n"
        "/missoes - Missões do dia\n"
        "/conquistas - Conquistas e nível\n"
        "/semana - Relatório semanal com gráfico\n"
        "/objetivo - Ver objetivo diário\n"
        "/perfil campo valor - Alterar perfil (peso, atividade, meta, acordar, dormir, lembretes, ...)\n"
        "/clima temperatura [humidade] - Informar o tempo de hoje\n"
        "/treino minutos - Informar minutos de exercício\n"
        "/apagar - Apagar último registo de hoje\n"
        "/status - Estado do bot\n"
        "/ajuda - Esta mensagem"
    )
