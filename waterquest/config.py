"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from .hydration.goal import GoalSettings

load_dotenv()

_WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""


@dataclass
class Config:
    telegram_bot_token: str
    telegram_chat_id: str
    database_path: str
    day_rollover_time: str
    reminder_plan_time: str
    weekly_report_day: str
    weekly_report_time: str
    timezone: str
    log_level: str
    log_file: str
    goal_floor_ml: float = 1200.0
    weather_comfort_c: float = 20.0
    weather_cap_ml: float = 750.0
    workout_ml_per_minute: float = 12.0
    workout_cap_ml: float = 1000.0

    # Derived fields
    rollover_hour: int = field(init=False)
    rollover_minute: int = field(init=False)
    plan_hour: int = field(init=False)
    plan_minute: int = field(init=False)
    weekly_hour: int = field(init=False)
    weekly_minute: int = field(init=False)

    def __post_init__(self) -> None:
        self.rollover_hour, self.rollover_minute = self._parse_time(self.day_rollover_time, "DAY_ROLLOVER_TIME")
        self.plan_hour, self.plan_minute = self._parse_time(self.reminder_plan_time, "REMINDER_PLAN_TIME")
        self.weekly_hour, self.weekly_minute = self._parse_time(self.weekly_report_time, "WEEKLY_REPORT_TIME")
        self.weekly_report_day = self.weekly_report_day.strip().lower()
        if self.weekly_report_day not in _WEEKDAYS:
            raise ConfigError(f"WEEKLY_REPORT_DAY must be a weekday name, got: {self.weekly_report_day!r}")

    @staticmethod
    def _parse_time(value: str, name: str) -> tuple[int, int]:
        """Parse HH:MM string into (hour, minute) tuple."""
        try:
            parts = value.strip().split(":")
            hour, minute = int(parts[0]), int(parts[1])
        except (ValueError, IndexError):
            raise ConfigError(f"{name} must be in HH:MM format, got: {value!r}")
        if not (0 <= hour < 24 and 0 <= minute < 60):
            raise ConfigError(f"{name} is not a valid time of day: {value!r}")
        return hour, minute

    def goal_settings(self) -> GoalSettings:
        """Goal constants with the configured overrides applied."""
        return GoalSettings(
            floor_ml=self.goal_floor_ml,
            comfort_temp_c=self.weather_comfort_c,
            weather_cap_ml=self.weather_cap_ml,
            workout_ml_per_minute=self.workout_ml_per_minute,
            workout_cap_ml=self.workout_cap_ml,
        )


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got: {raw!r}")
    if value < 0:
        raise ConfigError(f"{name} must not be negative, got: {raw!r}")
    return value


def load_config() -> Config:
    """Load and validate configuration from environment variables."""
    required = {
        "TELEGRAM_BOT_TOKEN": os.getenv("TELEGRAM_BOT_TOKEN"),
        "TELEGRAM_CHAT_ID": os.getenv("TELEGRAM_CHAT_ID"),
    }

    missing = [k for k, v in required.items() if not v]
    if missing:
        raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")

    # Ensure data and logs directories exist
    database_path = os.getenv("DATABASE_PATH", "./data/waterquest.db")
    log_file = os.getenv("LOG_FILE", "./logs/waterquest.log")

    Path(database_path).parent.mkdir(parents=True, exist_ok=True)
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    return Config(
        telegram_bot_token=required["TELEGRAM_BOT_TOKEN"],  # type: ignore[arg-type]
        telegram_chat_id=required["TELEGRAM_CHAT_ID"],  # type: ignore[arg-type]
        database_path=database_path,
        day_rollover_time=os.getenv("DAY_ROLLOVER_TIME", "00:05"),
        reminder_plan_time=os.getenv("REMINDER_PLAN_TIME", "05:00"),
        weekly_report_day=os.getenv("WEEKLY_REPORT_DAY", "sunday"),
        weekly_report_time=os.getenv("WEEKLY_REPORT_TIME", "20:00"),
        timezone=os.getenv("TIMEZONE", "Europe/Lisbon"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_file=log_file,
        goal_floor_ml=_float_env("GOAL_FLOOR_ML", 1200.0),
        weather_comfort_c=_float_env("WEATHER_COMFORT_C", 20.0),
        weather_cap_ml=_float_env("WEATHER_CAP_ML", 750.0),
        workout_ml_per_minute=_float_env("WORKOUT_ML_PER_MINUTE", 12.0),
        workout_cap_ml=_float_env("WORKOUT_CAP_ML", 1000.0),
    )
