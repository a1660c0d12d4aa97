"""Tests for waterquest/database/repository.py."""

import tempfile
import os
from datetime import date, datetime, timedelta

import pytest

from waterquest.database.repository import Repository
from waterquest.hydration.models import (
    Achievement,
    ActivityLevel,
    FluidType,
    GameState,
    HydrationEntry,
    HydrationSource,
    Profile,
    Snapshot,
    WeatherSignal,
    WorkoutSignal,
)
from waterquest.hydration.units import UnitSystem


@pytest.fixture
def repo():
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name
    r = Repository(db_path)
    r.init_database()
    yield r
    # Dispose the engine to release the file handle before deletion (required on Windows)
    r._engine.dispose()
    try:
        os.unlink(db_path)
    except PermissionError:
        pass  # Windows may still hold the file; not critical for test results


def _entry(entry_id: str, when: datetime, ml: float = 250, **kwargs) -> HydrationEntry:
    return HydrationEntry(timestamp=when, volume_ml=ml, id=entry_id, **kwargs)


def test_empty_database_loads_defaults(repo):
    assert repo.load_snapshot() == Snapshot()
    assert repo.count_entries() == 0


def test_snapshot_round_trip(repo):
    snapshot = Snapshot(
        profile=Profile(
            name="Rui", unit_system=UnitSystem.IMPERIAL, weight_kg=81.3,
            activity_level=ActivityLevel.INTENSE, custom_goal_ml=3000.0,
            wake_minutes=390, sleep_minutes=30, reminder_count=9,
            smart_reminders_enabled=False, prefers_health_kit=True,
        ),
        entries=(
            _entry("a", datetime(2026, 3, 9, 8, 15, 30, 123456), 330.5, fluid_type=FluidType.TEA, note="chá verde"),
            _entry("b", datetime(2026, 3, 10, 14, 0, 0, 1), 500, source=HydrationSource.HEALTH_KIT),
        ),
        game_state=GameState(
            xp=310, coins=75, streak_days=2,
            last_met_day=date(2026, 3, 9), last_closed_day=date(2026, 3, 9), goal_days=4,
            claimed_rewards=frozenset({(date(2026, 3, 9), "finish-line"), (date(2026, 3, 10), "morning-splash")}),
            achievements=(
                Achievement("first-sip", "Primeiro gole", "Regista a primeira bebida.", 5,
                            datetime(2026, 3, 1, 9, 0, 0, 654321)),
                Achievement("streak-3", "Fluxo de 3 dias", "Mantém uma sequência de 3 dias.", 15),
            ),
        ),
        weather=WeatherSignal(31.5, 82.0, "sol"),
        workout=WorkoutSignal(45.0, 380.0),
        signals_day=date(2026, 3, 10),
    )
    repo.save_snapshot(snapshot)
    assert repo.load_snapshot() == snapshot


def test_save_snapshot_replaces_everything(repo):
    repo.save_entry(_entry("old", datetime(2026, 3, 1, 9)))
    repo.save_signals(date(2026, 3, 1), WeatherSignal(25), None)
    repo.save_snapshot(Snapshot())
    assert repo.load_snapshot() == Snapshot()


def test_save_entry_upserts(repo):
    repo.save_entry(_entry("x", datetime(2026, 3, 10, 9)))
    repo.save_entry(_entry("x", datetime(2026, 3, 10, 9), 750, fluid_type=FluidType.JUICE))
    entries = repo.load_snapshot().entries
    assert len(entries) == 1
    assert entries[0].volume_ml == 750
    assert entries[0].fluid_type is FluidType.JUICE


def test_save_entry_requires_id(repo):
    with pytest.raises(ValueError):
        repo.save_entry(HydrationEntry(timestamp=datetime(2026, 3, 10, 9), volume_ml=100))


def test_delete_entry(repo):
    repo.save_entry(_entry("x", datetime(2026, 3, 10, 9)))
    assert repo.delete_entry("x") is True
    assert repo.delete_entry("x") is False
    assert repo.count_entries() == 0


def test_entries_load_in_timestamp_order(repo):
    for i in (3, 0, 2, 1):
        repo.save_entry(_entry(f"e{i}", datetime(2026, 3, 1, 12) + timedelta(days=i)))
    assert [e.id for e in repo.load_snapshot().entries] == ["e0", "e1", "e2", "e3"]


def test_replace_source_entries(repo):
    day = date(2026, 3, 10)
    repo.save_entry(_entry("manual", datetime(2026, 3, 10, 8)))
    repo.save_entry(_entry("hk1", datetime(2026, 3, 10, 9), source=HydrationSource.HEALTH_KIT))
    repo.save_entry(_entry("hk-other", datetime(2026, 3, 9, 9), source=HydrationSource.HEALTH_KIT))

    repo.replace_source_entries(
        HydrationSource.HEALTH_KIT, day,
        [_entry("hk2", datetime(2026, 3, 10, 10), 600, source=HydrationSource.HEALTH_KIT)],
    )

    assert {e.id for e in repo.load_snapshot().entries} == {"manual", "hk2", "hk-other"}


def test_game_state_incremental_save_keeps_rewards(repo):
    first = GameState(xp=40, claimed_rewards=frozenset({(date(2026, 3, 10), "morning-splash")}))
    repo.save_game_state(first)
    second = GameState(
        xp=160,
        claimed_rewards=first.claimed_rewards | {(date(2026, 3, 10), "finish-line")},
    )
    repo.save_game_state(second)
    assert repo.load_snapshot().game_state == second


def test_latest_signals_wins(repo):
    repo.save_signals(date(2026, 3, 9), WeatherSignal(20), None)
    repo.save_signals(date(2026, 3, 10), None, WorkoutSignal(30))
    repo.save_signals(date(2026, 3, 10), WeatherSignal(27, 60.0), WorkoutSignal(30))
    snapshot = repo.load_snapshot()
    assert snapshot.signals_day == date(2026, 3, 10)
    assert snapshot.weather == WeatherSignal(27, 60.0)
    assert snapshot.workout == WorkoutSignal(30)


def test_reminder_log(repo):
    day = date(2026, 3, 10)
    assert repo.has_reminder_sent(day, 2) is False
    repo.log_reminder(day, 2, "skipped")
    assert repo.has_reminder_sent(day, 2) is False
    repo.log_reminder(day, 2, "sent")
    assert repo.has_reminder_sent(day, 2) is True
    assert repo.has_reminder_sent(day + timedelta(days=1), 2) is False
    repo.log_reminder(day, 3, "error", "timeout")
    logs = repo.get_recent_reminder_logs(limit=2)
    assert len(logs) == 2


def test_init_database_is_idempotent(repo):
    repo.init_database()
    repo.save_entry(_entry("x", datetime(2026, 3, 10, 9), note="ok"))
    assert repo.load_snapshot().entries[0].note == "ok"
