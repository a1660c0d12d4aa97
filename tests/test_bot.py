"""Tests for waterquest/telegram/bot.py."""

import asyncio
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from waterquest.config import Config
from waterquest.hydration.errors import InvalidInput
from waterquest.hydration.models import ActivityLevel, FluidType
from waterquest.hydration.store import HydrationStore
from waterquest.hydration.units import UnitSystem
from waterquest.telegram.bot import TelegramBot, parse_profile_change

CHAT_ID = 999


@pytest.mark.parametrize("field,raw,expected", [
    ("peso", "72,5", {"weight_kg": 72.5}),
    ("atividade", "Intenso", {"activity_level": ActivityLevel.INTENSE}),
    ("meta", "3000", {"custom_goal_ml": 3000.0}),
    ("meta", "auto", {"custom_goal_ml": None}),
    ("acordar", "06:30", {"wake_minutes": 390}),
    ("dormir", "23:15", {"sleep_minutes": 1395}),
    ("lembretes", "off", {"reminders_enabled": False}),
    ("lembretes", "5", {"reminder_count": 5, "reminders_enabled": True}),
    ("inteligente", "não", {"smart_reminders_enabled": False}),
    ("clima", "sim", {"prefers_weather_goal": True}),
    ("saude", "on", {"prefers_health_kit": True}),
    ("unidades", "imperial", {"unit_system": UnitSystem.IMPERIAL}),
    ("nome", " Ana ", {"name": "Ana"}),
])
def test_parse_profile_change(field, raw, expected):
    assert parse_profile_change(field, raw, UnitSystem.METRIC) == expected


def test_parse_profile_change_imperial_units():
    changes = parse_profile_change("peso", "150", UnitSystem.IMPERIAL)
    assert changes["weight_kg"] == pytest.approx(68.04, abs=0.01)
    changes = parse_profile_change("meta", "100", UnitSystem.IMPERIAL)
    assert changes["custom_goal_ml"] == pytest.approx(2957.35, abs=0.01)


@pytest.mark.parametrize("field,raw", [
    ("cor", "azul"),
    ("atividade", "maratonista"),
    ("acordar", "25:00"),
    ("clima", "talvez"),
    ("unidades", "furlongs"),
    ("lembretes", "muitos"),
])
def test_parse_profile_change_rejects_bad_input(field, raw):
    with pytest.raises(ValueError):
        parse_profile_change(field, raw, UnitSystem.METRIC)


def test_bad_time_is_invalid_input():
    with pytest.raises(InvalidInput):
        parse_profile_change("dormir", "tarde", UnitSystem.METRIC)


# ---------------------------------------------------------------------- #
# Command handlers                                                        #
# ---------------------------------------------------------------------- #

def _config() -> Config:
    return Config(
        telegram_bot_token="123:ABC", telegram_chat_id=str(CHAT_ID), database_path="/tmp/wq.db",
        day_rollover_time="00:05", reminder_plan_time="05:00",
        weekly_report_day="sunday", weekly_report_time="20:00",
        timezone="Europe/Lisbon", log_level="INFO", log_file="/tmp/wq.log",
    )


def _update(chat_id: int = CHAT_ID) -> MagicMock:
    update = MagicMock()
    update.effective_chat.id = chat_id
    update.message.reply_text = AsyncMock()
    return update


def _context(*args: str) -> MagicMock:
    context = MagicMock()
    context.args = list(args)
    return context


@pytest.fixture
def bot():
    store = HydrationStore(clock=lambda: datetime(2026, 3, 10, 12, 0))
    on_change = MagicMock()
    tg = TelegramBot(_config(), store, MagicMock(), on_change=on_change)
    with patch("waterquest.telegram.bot._is_rate_limited", return_value=False):
        yield tg, store, on_change


def test_agua_default_sip(bot):
    tg, store, on_change = bot
    update = _update()
    asyncio.run(tg._cmd_agua(update, _context()))
    assert store.today_total() == 250
    on_change.assert_called_once()
    assert "Registado" in update.message.reply_text.call_args[0][0]


def test_agua_with_fluid(bot):
    tg, store, _ = bot
    asyncio.run(tg._cmd_agua(_update(), _context("200", "cafe")))
    entry = store.ledger.entries()[0]
    assert entry.fluid_type is FluidType.COFFEE
    assert entry.volume_ml == 200


def test_agua_unknown_fluid(bot):
    tg, store, on_change = bot
    update = _update()
    asyncio.run(tg._cmd_agua(update, _context("200", "vinho")))
    assert len(store.ledger) == 0
    on_change.assert_not_called()
    assert "Bebida desconhecida" in update.message.reply_text.call_args[0][0]


def test_unauthorized_chat_is_ignored(bot):
    tg, store, _ = bot
    update = _update(chat_id=1)
    asyncio.run(tg._cmd_agua(update, _context("500")))
    assert len(store.ledger) == 0
    update.message.reply_text.assert_not_called()


def test_perfil_invalid_value_keeps_profile(bot):
    tg, store, on_change = bot
    update = _update()
    asyncio.run(tg._cmd_perfil(update, _context("peso", "-3")))
    assert store.profile.weight_kg == 70
    on_change.assert_not_called()
    assert "Erro: perfil" in update.message.reply_text.call_args[0][0]


def test_apagar_without_entries(bot):
    tg, _, _ = bot
    update = _update()
    asyncio.run(tg._cmd_apagar(update, _context()))
    assert "Não há registos" in update.message.reply_text.call_args[0][0]


def test_commands_registered_when_application_starts(bot):
    tg, _, _ = bot
    app = tg.build_application()
    with patch.object(tg, "register_commands", new=AsyncMock()) as mock_register:
        asyncio.run(app.post_init(app))
    mock_register.assert_awaited_once_with(app.bot)
