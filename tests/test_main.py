"""Tests for waterquest/main.py scheduler wiring."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

from waterquest.config import Config
from waterquest.hydration.store import HydrationStore
from waterquest.main import _run_health_checks, build_scheduler


def _config(**overrides) -> Config:
    values = dict(
        telegram_bot_token="123:ABC", telegram_chat_id="999", database_path="/tmp/wq.db",
        day_rollover_time="00:05", reminder_plan_time="05:30",
        weekly_report_day="friday", weekly_report_time="21:15",
        timezone="Europe/Lisbon", log_level="INFO", log_file="/tmp/wq.log",
    )
    values.update(overrides)
    return Config(**values)


def test_build_scheduler_registers_jobs():
    tg_bot = MagicMock()
    scheduler = build_scheduler(_config(), HydrationStore(), MagicMock(), tg_bot)

    jobs = {job.id: job for job in scheduler.get_jobs()}
    assert set(jobs) == {"day_rollover", "plan_reminders", "weekly_report"}
    assert "day_of_week='fri'" in str(jobs["weekly_report"].trigger)
    assert "hour='21'" in str(jobs["weekly_report"].trigger)
    assert "minute='30'" in str(jobs["plan_reminders"].trigger)


def test_build_scheduler_wires_replanning_into_bot():
    tg_bot = MagicMock()
    build_scheduler(_config(), HydrationStore(), MagicMock(), tg_bot)
    tg_bot.set_on_change.assert_called_once()
    assert callable(tg_bot.set_on_change.call_args[0][0])


def test_health_checks_keep_main_loop_current():
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    repo = MagicMock()
    repo.count_entries.return_value = 3
    fake_bot = MagicMock()
    fake_bot.get_me = AsyncMock(return_value=MagicMock(username="waterquest_bot"))
    try:
        with patch("telegram.Bot", return_value=fake_bot):
            _run_health_checks(repo, "123:ABC", loop)
        fake_bot.get_me.assert_awaited_once()
        assert asyncio.get_event_loop() is loop
        assert not loop.is_closed()
    finally:
        asyncio.set_event_loop(None)
        loop.close()
