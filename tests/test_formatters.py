"""Tests for waterquest/telegram/formatters.py."""

from dataclasses import replace
from datetime import date, datetime
from types import SimpleNamespace

import pytest

from waterquest.hydration.errors import ConfigurationConflict, InvalidInput, NotFound
from waterquest.hydration.models import (
    DailyGoal,
    FluidType,
    GameState,
    HydrationEntry,
    HydrationSource,
    Profile,
    Quest,
)
from waterquest.hydration.progress import ensure_achievements
from waterquest.hydration.units import UnitSystem
from waterquest.telegram.formatters import (
    format_achievements,
    format_error_message,
    format_goal,
    format_help_message,
    format_intake_logged,
    format_quests,
    format_reminder,
    format_status,
    format_today,
    format_weekly_report,
)

M = UnitSystem.METRIC
GOAL = DailyGoal(base_ml=2450, weather_adjustment_ml=0, workout_adjustment_ml=0, total_ml=2450)


def _quest(progress: float, target: float = 2000) -> Quest:
    return Quest(id="finish-line", title="Meta final", detail="Completa o objetivo diário",
                 target_ml=target, progress_ml=progress, reward_xp=120, reward_coins=25)


def _entry(ml: float, **kwargs) -> HydrationEntry:
    return HydrationEntry(timestamp=datetime(2026, 3, 10, 9, 30), volume_ml=ml, **kwargs)


def test_format_today_in_progress():
    text = format_today(GOAL, 1000, [_entry(1000, note="garrafa")], [_quest(1000)], GameState(xp=60), M,
                        day=date(2026, 3, 10))
    assert "Hidratação de 10/03/2026" in text
    assert "Falta: 1.450 ml" in text
    assert "09:30 Água 1.000 ml" in text
    assert "_garrafa_" in text
    assert "Nível 2" in text


def test_format_today_goal_met_with_watch_entry():
    entry = _entry(2500, source=HydrationSource.HEALTH_KIT)
    text = format_today(GOAL, 2500, [entry], [], GameState(), M, day=date(2026, 3, 10))
    assert "🎉 Objetivo cumprido!" in text
    assert "Falta" not in text
    assert "⌚" in text


def test_format_today_truncates_long_lists():
    entries = [_entry(100) for _ in range(11)]
    text = format_today(GOAL, 1100, entries, [], GameState(), M, day=date(2026, 3, 10))
    assert "e mais 3" in text


def test_format_intake_logged_with_news():
    achievement = SimpleNamespace(title="Primeiro gole", reward_coins=5)
    text = format_intake_logged(_entry(330, fluid_type=FluidType.TEA), 330, 2450, [_quest(2000)], [achievement], M)
    assert text.startswith("💧 Registado: Chá 330 ml")
    assert "Missão concluída: *Meta final*" in text
    assert "Conquista desbloqueada: *Primeiro gole*" in text


def test_format_quests():
    text = format_quests([_quest(2000), _quest(100)], M)
    assert "1/2 concluídas" in text
    assert "✅" in text
    assert format_quests([], M) == "Sem missões para hoje."


def test_format_achievements_counts_unlocked():
    state = ensure_achievements(GameState(xp=60))
    first = replace(state.achievements[0], unlocked_at=datetime(2026, 3, 1, 9))
    unlocked = replace(state, achievements=(first,) + state.achievements[1:])
    text = format_achievements(unlocked)
    assert "🏅 *Conquistas (1/15)*" in text
    assert "01/03/2026" in text
    assert "🔒" in text


def test_format_goal_breakdown():
    goal = DailyGoal(base_ml=2450, weather_adjustment_ml=500, workout_adjustment_ml=360, total_ml=3310)
    text = format_goal(goal, Profile(prefers_weather_goal=True, prefers_health_kit=True))
    assert "Base (Regular): 2.450 ml" in text
    assert "Calor: +500 ml" in text
    assert "Treino: +360 ml" in text
    assert "Total: 3.310 ml" in text
    assert "Peso: 70.0 kg" in text


def test_format_goal_custom_override():
    goal = DailyGoal(base_ml=3000, weather_adjustment_ml=0, workout_adjustment_ml=0, total_ml=3000,
                     custom_override=True)
    text = format_goal(goal, Profile(custom_goal_ml=3000))
    assert "Meta personalizada: 3.000 ml" in text
    assert "Base" not in text


def test_format_weekly_report():
    summary = {
        "start_date": date(2026, 3, 9),
        "end_date": date(2026, 3, 15),
        "days": [(date(2026, 3, 9 + i), 2000.0) for i in range(7)],
        "goal_ml": 2000,
        "total_ml": 14000.0,
        "avg_ml": 2000.0,
        "days_goal_met": 7,
        "best_day": date(2026, 3, 15),
        "best_ml": 2000.0,
        "entries_count": 21,
        "breakdown": [{"fluid_type": FluidType.WATER, "raw_ml": 14000.0, "effective_ml": 14000.0, "share": 1.0}],
    }
    text = format_weekly_report(summary, GameState(streak_days=7), M, ["Semana perfeita"])
    assert "Relatório Semanal (09/03 – 15/03)" in text
    assert "Objetivo cumprido: 7/7 dias" in text
    assert "Melhor dia: Domingo" in text
    assert "Água: 14.000 ml (100%)" in text
    assert "💡 *Insights:*" in text


def test_format_reminder():
    text = format_reminder("Hora de beber!", 500, 2000, M)
    assert text.startswith("🔔 Hora de beber!")
    assert "falta 1.500 ml" in text
    assert "Usa /agua" in text


def test_format_error_message_known_errors():
    assert "Valor inválido" in format_error_message("registo", InvalidInput("volume_ml must be > 0"))
    assert "já não existe" in format_error_message("apagar", NotFound("abc"))
    assert "meta personalizada" in format_error_message("objetivo", ConfigurationConflict("x"))
    assert "Falha de rede" in format_error_message("envio", TimeoutError("timed out"))


def test_format_error_message_generic():
    text = format_error_message("teste", RuntimeError("boom"))
    assert text.startswith("⚠️ *Erro: teste*")
    assert "RuntimeError: boom" in text


def test_format_status():
    log = SimpleNamespace(sent_at=datetime(2026, 3, 10, 9, 0), status="error", error_message="timeout")
    text = format_status(GameState(last_closed_day=date(2026, 3, 9)), 42, [log], {"Lembrete 10:00": "10/03 10:00"})
    assert "Registos armazenados: 42" in text
    assert "09/03/2026" in text
    assert "error (timeout)" in text
    assert "Lembrete 10:00" in text


def test_help_lists_commands():
    text = format_help_message()
    for command in ("/agua", "/hoje", "/missoes", "/conquistas", "/semana", "/objetivo",
                    "/perfil", "/clima", "/treino", "/apagar", "/status", "/ajuda"):
        assert command in text


def test_invalid_input_detail_is_markdown_safe():
    with pytest.raises(InvalidInput) as excinfo:
        Profile(weight_kg=0)
    text = format_error_message("perfil", excinfo.value)
    assert "weight\\_kg" in text
    assert text.replace("\\_", "").count("_") == 0
    assert text.count("*") == 2
