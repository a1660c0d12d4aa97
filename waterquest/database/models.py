"""SQLAlchemy ORM models for the WaterQuest database."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import Boolean, Column, Date, DateTime, Float, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class ProfileRow(Base):
    """Single-row table holding the user profile."""

    __tablename__ = "profile"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False, default="")
    unit_system = Column(String(10), nullable=False, default="metric")
    weight_kg = Column(Float, nullable=False)
    activity_level = Column(String(10), nullable=False, default="steady")
    custom_goal_ml = Column(Float, nullable=True)
    wake_minutes = Column(Integer, nullable=False)
    sleep_minutes = Column(Integer, nullable=False)
    reminder_count = Column(Integer, nullable=False)
    reminders_enabled = Column(Boolean, nullable=False, default=True)
    smart_reminders_enabled = Column(Boolean, nullable=False, default=True)
    prefers_weather_goal = Column(Boolean, nullable=False, default=False)
    prefers_health_kit = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime, default=lambda: datetime.now(UTC))

    def __repr__(self) -> str:
        return f"<ProfileRow weight={self.weight_kg} activity={self.activity_level}>"


class IntakeEntry(Base):
    """One logged drink."""

    __tablename__ = "intake_entries"

    id = Column(String(32), primary_key=True)
    timestamp = Column(DateTime, nullable=False, index=True)
    day = Column(Date, nullable=False, index=True)
    volume_ml = Column(Float, nullable=False)
    source = Column(String(20), nullable=False, default="manual")  # "manual" | "health_kit"
    fluid_type = Column(String(20), nullable=False, default="water")
    note = Column(Text, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC))

    def __repr__(self) -> str:
        return f"<IntakeEntry {self.timestamp} {self.volume_ml}ml {self.fluid_type}>"


class GameStateRow(Base):
    """Single-row table with counters of the gamification state."""

    __tablename__ = "game_state"

    id = Column(Integer, primary_key=True)
    xp = Column(Integer, nullable=False, default=0)
    coins = Column(Integer, nullable=False, default=0)
    streak_days = Column(Integer, nullable=False, default=0)
    last_met_day = Column(Date, nullable=True)
    last_closed_day = Column(Date, nullable=True)
    goal_days = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=lambda: datetime.now(UTC))


class AchievementRow(Base):
    __tablename__ = "achievements"

    id = Column(String(50), primary_key=True)
    position = Column(Integer, nullable=False, default=0)
    title = Column(String(100), nullable=False)
    detail = Column(String(200), nullable=False, default="")
    reward_coins = Column(Integer, nullable=False, default=0)
    unlocked_at = Column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<AchievementRow {self.id} unlocked_at={self.unlocked_at}>"


class QuestReward(Base):
    """Records each (day, quest) reward so it is paid out once."""

    __tablename__ = "quest_rewards"
    __table_args__ = (UniqueConstraint("day", "quest_id", name="uq_quest_reward_day"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    day = Column(Date, nullable=False, index=True)
    quest_id = Column(String(50), nullable=False)
    claimed_at = Column(DateTime, default=lambda: datetime.now(UTC))


class DailySignals(Base):
    """Weather and workout signals received for a day."""

    __tablename__ = "daily_signals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    day = Column(Date, unique=True, nullable=False, index=True)
    temperature_c = Column(Float, nullable=True)
    humidity_percent = Column(Float, nullable=True)
    condition = Column(String(50), nullable=True)
    exercise_minutes = Column(Float, nullable=True)
    active_energy_kcal = Column(Float, nullable=True)
    updated_at = Column(DateTime, default=lambda: datetime.now(UTC))


class ReminderLog(Base):
    """Records each reminder delivery attempt with its outcome."""

    __tablename__ = "reminder_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    day = Column(Date, nullable=False, index=True)
    slot_index = Column(Integer, nullable=False)
    sent_at = Column(DateTime, default=lambda: datetime.now(UTC))
    status = Column(String(20), nullable=False)  # "sent" | "skipped" | "error"
    error_message = Column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<ReminderLog {self.day} slot={self.slot_index} status={self.status}>"
