"""Database repository: all read/write operations for WaterQuest data."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import UTC, date, datetime
from typing import Generator, Iterable

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from ..hydration.models import (
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
from ..hydration.units import UnitSystem
from .models import (
    AchievementRow,
    Base,
    DailySignals,
    GameStateRow,
    IntakeEntry,
    ProfileRow,
    QuestReward,
    ReminderLog,
)

logger = logging.getLogger(__name__)

_SINGLETON_ID = 1


class Repository:
    """Handles all database operations using SQLAlchemy."""

    def __init__(self, database_path: str) -> None:
        url = f"sqlite:///{database_path}"
        self._engine = create_engine(url, connect_args={"check_same_thread": False})
        # expire_on_commit=False lets ORM objects be used after session.close()
        self._Session = sessionmaker(bind=self._engine, expire_on_commit=False)

    def init_database(self) -> None:
        """Create all tables if they don't already exist."""
        Base.metadata.create_all(self._engine)
        logger.info("Database initialised at %s", self._engine.url)

    @contextmanager
    def _session(self) -> Generator[Session, None, None]:
        session = self._Session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ------------------------------------------------------------------ #
    # Profile                                                               #
    # ------------------------------------------------------------------ #

    def save_profile(self, profile: Profile) -> None:
        with self._session() as session:
            _write_profile(session, profile)
        logger.debug("Saved profile (weight=%.1f kg)", profile.weight_kg)

    # ------------------------------------------------------------------ #
    # Intake entries                                                        #
    # ------------------------------------------------------------------ #

    def save_entry(self, entry: HydrationEntry) -> None:
        """Insert or update a single entry by id."""
        if not entry.id:
            raise ValueError("Entry must have an id before it is stored")
        with self._session() as session:
            existing = session.get(IntakeEntry, entry.id)
            if existing:
                _fill_entry_row(existing, entry)
            else:
                session.add(_fill_entry_row(IntakeEntry(id=entry.id), entry))
        logger.debug("Saved entry %s (%.0f ml %s)", entry.id, entry.volume_ml, entry.fluid_type.value)

    def delete_entry(self, entry_id: str) -> bool:
        """Delete an entry. Returns True if a row was removed."""
        with self._session() as session:
            row = session.get(IntakeEntry, entry_id)
            if row is None:
                return False
            session.delete(row)
        logger.debug("Deleted entry %s", entry_id)
        return True

    def replace_source_entries(self, source: HydrationSource, day: date, entries: Iterable[HydrationEntry]) -> None:
        """Replace all entries of ``source`` on ``day`` with ``entries`` in one transaction."""
        entries = list(entries)
        with self._session() as session:
            session.query(IntakeEntry).filter_by(source=source.value, day=day).delete()
            for entry in entries:
                session.add(_fill_entry_row(IntakeEntry(id=entry.id), entry))
        logger.debug("Replaced %s entries on %s with %d rows", source.value, day, len(entries))

    def count_entries(self) -> int:
        """Return total number of stored intake entries."""
        with self._session() as session:
            return session.query(IntakeEntry).count()

    # ------------------------------------------------------------------ #
    # Game state                                                            #
    # ------------------------------------------------------------------ #

    def save_game_state(self, state: GameState) -> None:
        """Persist counters, achievements and claimed quest rewards."""
        with self._session() as session:
            _write_game_state(session, state)
        logger.debug("Saved game state (xp=%d coins=%d streak=%d)", state.xp, state.coins, state.streak_days)

    # ------------------------------------------------------------------ #
    # Signals                                                               #
    # ------------------------------------------------------------------ #

    def save_signals(self, day: date, weather: WeatherSignal | None, workout: WorkoutSignal | None) -> None:
        """Insert or update the weather/workout signals for a day."""
        with self._session() as session:
            _write_signals(session, day, weather, workout)

    # ------------------------------------------------------------------ #
    # Snapshot                                                              #
    # ------------------------------------------------------------------ #

    def save_snapshot(self, snapshot: Snapshot) -> None:
        """Replace the whole stored state with ``snapshot`` atomically."""
        with self._session() as session:
            _write_profile(session, snapshot.profile)
            session.query(IntakeEntry).delete()
            for entry in snapshot.entries:
                session.add(_fill_entry_row(IntakeEntry(id=entry.id), entry))
            _write_game_state(session, snapshot.game_state, replace_all=True)
            session.query(DailySignals).delete()
            if snapshot.signals_day is not None:
                _write_signals(session, snapshot.signals_day, snapshot.weather, snapshot.workout)
        logger.info("Saved snapshot with %d entries", len(snapshot.entries))

    def load_snapshot(self) -> Snapshot:
        """Load the stored state, falling back to defaults for anything missing."""
        with self._session() as session:
            profile_row = session.get(ProfileRow, _SINGLETON_ID)
            entries = [_row_to_entry(r) for r in session.query(IntakeEntry).order_by(IntakeEntry.timestamp).all()]
            state = _read_game_state(session)
            signals_day, weather, workout = _read_latest_signals(session)
        return Snapshot(
            profile=_row_to_profile(profile_row) if profile_row else Profile(),
            entries=tuple(entries),
            game_state=state or GameState(),
            weather=weather,
            workout=workout,
            signals_day=signals_day,
        )

    # ------------------------------------------------------------------ #
    # Reminder log                                                          #
    # ------------------------------------------------------------------ #

    def log_reminder(self, day: date, slot_index: int, status: str, error_message: str | None = None) -> None:
        """Record a reminder delivery attempt.

        Args:
            day: Day whose waking window the slot belongs to.
            slot_index: Index of the reminder slot.
            status: "sent", "skipped", or "error".
            error_message: Optional description of the failure.
        """
        with self._session() as session:
            session.add(ReminderLog(
                day=day,
                slot_index=slot_index,
                sent_at=datetime.now(UTC),
                status=status,
                error_message=error_message,
            ))

    def has_reminder_sent(self, day: date, slot_index: int) -> bool:
        """Return True if the slot was already delivered for that day."""
        with self._session() as session:
            result = (
                session.query(ReminderLog)
                .filter_by(day=day, slot_index=slot_index, status="sent")
                .first()
            )
            return result is not None

    def get_recent_reminder_logs(self, limit: int = 5) -> list[ReminderLog]:
        """Return the most recent reminder log entries."""
        with self._session() as session:
            return (
                session.query(ReminderLog)
                .order_by(ReminderLog.sent_at.desc())
                .limit(limit)
                .all()
            )


# ---------------------------------------------------------------------- #
# Row <-> domain conversion                                               #
# ---------------------------------------------------------------------- #

def _write_profile(session: Session, profile: Profile) -> None:
    row = session.get(ProfileRow, _SINGLETON_ID)
    if row is None:
        row = ProfileRow(id=_SINGLETON_ID)
        session.add(row)
    row.name = profile.name
    row.unit_system = profile.unit_system.value
    row.weight_kg = profile.weight_kg
    row.activity_level = profile.activity_level.value
    row.custom_goal_ml = profile.custom_goal_ml
    row.wake_minutes = profile.wake_minutes
    row.sleep_minutes = profile.sleep_minutes
    row.reminder_count = profile.reminder_count
    row.reminders_enabled = profile.reminders_enabled
    row.smart_reminders_enabled = profile.smart_reminders_enabled
    row.prefers_weather_goal = profile.prefers_weather_goal
    row.prefers_health_kit = profile.prefers_health_kit
    row.updated_at = datetime.now(UTC)


def _row_to_profile(row: ProfileRow) -> Profile:
    return Profile(
        name=row.name or "",
        unit_system=UnitSystem(row.unit_system),
        weight_kg=row.weight_kg,
        activity_level=ActivityLevel(row.activity_level),
        custom_goal_ml=row.custom_goal_ml,
        wake_minutes=row.wake_minutes,
        sleep_minutes=row.sleep_minutes,
        reminder_count=row.reminder_count,
        reminders_enabled=row.reminders_enabled,
        smart_reminders_enabled=row.smart_reminders_enabled,
        prefers_weather_goal=row.prefers_weather_goal,
        prefers_health_kit=row.prefers_health_kit,
    )


def _fill_entry_row(row: IntakeEntry, entry: HydrationEntry) -> IntakeEntry:
    row.timestamp = entry.timestamp
    row.day = entry.day
    row.volume_ml = entry.volume_ml
    row.source = entry.source.value
    row.fluid_type = entry.fluid_type.value
    row.note = entry.note
    return row


def _row_to_entry(row: IntakeEntry) -> HydrationEntry:
    return HydrationEntry(
        timestamp=row.timestamp,
        volume_ml=row.volume_ml,
        source=HydrationSource(row.source),
        fluid_type=FluidType(row.fluid_type),
        note=row.note,
        id=row.id,
    )


def _write_game_state(session: Session, state: GameState, replace_all: bool = False) -> None:
    row = session.get(GameStateRow, _SINGLETON_ID)
    if row is None:
        row = GameStateRow(id=_SINGLETON_ID)
        session.add(row)
    row.xp = state.xp
    row.coins = state.coins
    row.streak_days = state.streak_days
    row.last_met_day = state.last_met_day
    row.last_closed_day = state.last_closed_day
    row.goal_days = state.goal_days
    row.updated_at = datetime.now(UTC)

    session.query(AchievementRow).delete()
    for position, achievement in enumerate(state.achievements):
        session.add(AchievementRow(
            id=achievement.id,
            position=position,
            title=achievement.title,
            detail=achievement.detail,
            reward_coins=achievement.reward_coins,
            unlocked_at=achievement.unlocked_at,
        ))

    if replace_all:
        session.query(QuestReward).delete()
        stored: set[tuple[date, str]] = set()
    else:
        stored = {(r.day, r.quest_id) for r in session.query(QuestReward).all()}
    for day, quest_id in sorted(state.claimed_rewards - stored):
        session.add(QuestReward(day=day, quest_id=quest_id))


def _read_game_state(session: Session) -> GameState | None:
    row = session.get(GameStateRow, _SINGLETON_ID)
    if row is None:
        return None
    achievements = tuple(
        Achievement(
            id=a.id,
            title=a.title,
            detail=a.detail,
            reward_coins=a.reward_coins,
            unlocked_at=a.unlocked_at,
        )
        for a in session.query(AchievementRow).order_by(AchievementRow.position).all()
    )
    claimed = frozenset((r.day, r.quest_id) for r in session.query(QuestReward).all())
    return GameState(
        xp=row.xp,
        coins=row.coins,
        streak_days=row.streak_days,
        last_met_day=row.last_met_day,
        last_closed_day=row.last_closed_day,
        goal_days=row.goal_days,
        claimed_rewards=claimed,
        achievements=achievements,
    )


def _write_signals(session: Session, day: date, weather: WeatherSignal | None, workout: WorkoutSignal | None) -> None:
    row = session.query(DailySignals).filter_by(day=day).first()
    if row is None:
        row = DailySignals(day=day)
        session.add(row)
    row.temperature_c = weather.temperature_c if weather else None
    row.humidity_percent = weather.humidity_percent if weather else None
    row.condition = weather.condition if weather else None
    row.exercise_minutes = workout.exercise_minutes if workout else None
    row.active_energy_kcal = workout.active_energy_kcal if workout else None
    row.updated_at = datetime.now(UTC)


def _read_latest_signals(session: Session) -> tuple[date | None, WeatherSignal | None, WorkoutSignal | None]:
    row = session.query(DailySignals).order_by(DailySignals.day.desc()).first()
    if row is None:
        return None, None, None
    weather = None
    if row.temperature_c is not None:
        weather = WeatherSignal(
            temperature_c=row.temperature_c,
            humidity_percent=row.humidity_percent,
            condition=row.condition or "",
        )
    workout = None
    if row.exercise_minutes is not None:
        workout = WorkoutSignal(
            exercise_minutes=row.exercise_minutes,
            active_energy_kcal=row.active_energy_kcal,
        )
    return row.day, weather, workout
