"""Domain types: profile, intake entries, signals, goals, quests, achievements, game state."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

from .errors import InvalidInput
from .units import UnitSystem

MINUTES_PER_DAY = 1440
MAX_REMINDERS = 12


class ActivityLevel(str, Enum):
    CHILL = "chill"
    STEADY = "steady"
    INTENSE = "intense"

    @property
    def label(self) -> str:
        return {"chill": "Calmo", "steady": "Regular", "intense": "Intenso"}[self.value]


class HydrationSource(str, Enum):
    MANUAL = "manual"
    HEALTH_KIT = "health_kit"


class FluidType(str, Enum):
    WATER = "water"
    SPARKLING_WATER = "sparkling_water"
    TEA = "tea"
    COFFEE = "coffee"
    JUICE = "juice"
    MILK = "milk"
    SPORTS_DRINK = "sports_drink"

    @property
    def hydration_factor(self) -> float:
        return _HYDRATION_FACTORS[self]

    @property
    def label(self) -> str:
        return _FLUID_LABELS[self]


_HYDRATION_FACTORS = {
    FluidType.WATER: 1.0,
    FluidType.SPARKLING_WATER: 1.0,
    FluidType.TEA: 0.9,
    FluidType.COFFEE: 0.8,
    FluidType.JUICE: 0.85,
    FluidType.MILK: 0.9,
    FluidType.SPORTS_DRINK: 1.0,
}

_FLUID_LABELS = {
    FluidType.WATER: "Água",
    FluidType.SPARKLING_WATER: "Água com gás",
    FluidType.TEA: "Chá",
    FluidType.COFFEE: "Café",
    FluidType.JUICE: "Sumo",
    FluidType.MILK: "Leite",
    FluidType.SPORTS_DRINK: "Bebida isotónica",
}


def parse_minutes(value: str) -> int:
    """Parse an 'HH:MM' string into minutes since midnight.

    Raises:
        InvalidInput: If the value is not a valid time of day.
    """
    try:
        hours, minutes = (int(part) for part in value.strip().split(":"))
    except (ValueError, AttributeError):
        raise InvalidInput(f"Time of day must be HH:MM, got: {value!r}")
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise InvalidInput(f"Time of day out of range: {value!r}")
    return hours * 60 + minutes


def format_minutes(minutes: int) -> str:
    minutes %= MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def _check_minute_of_day(value: int, name: str) -> None:
    if not isinstance(value, int) or not 0 <= value < MINUTES_PER_DAY:
        raise InvalidInput(f"{name} must be a minute of day in [0, 1440), got: {value!r}")


@dataclass(frozen=True)
class Profile:
    name: str = ""
    unit_system: UnitSystem = UnitSystem.METRIC
    weight_kg: float = 70.0
    activity_level: ActivityLevel = ActivityLevel.STEADY
    custom_goal_ml: float | None = None
    wake_minutes: int = 7 * 60
    sleep_minutes: int = 22 * 60
    reminder_count: int = 7
    reminders_enabled: bool = True
    smart_reminders_enabled: bool = True
    prefers_weather_goal: bool = False
    prefers_health_kit: bool = False

    def __post_init__(self) -> None:
        if not math.isfinite(self.weight_kg) or self.weight_kg <= 0:
            raise InvalidInput(f"weight_kg must be > 0, got: {self.weight_kg!r}")
        if self.custom_goal_ml is not None and (not math.isfinite(self.custom_goal_ml) or self.custom_goal_ml <= 0):
            raise InvalidInput(f"custom_goal_ml must be > 0 when set, got: {self.custom_goal_ml!r}")
        _check_minute_of_day(self.wake_minutes, "wake_minutes")
        _check_minute_of_day(self.sleep_minutes, "sleep_minutes")
        if isinstance(self.reminder_count, bool) or not isinstance(self.reminder_count, int) \
                or not 1 <= self.reminder_count <= MAX_REMINDERS:
            raise InvalidInput(f"reminder_count must be an integer between 1 and {MAX_REMINDERS}, got: {self.reminder_count!r}")


@dataclass(frozen=True)
class HydrationEntry:
    """A single logged drink. Only the ledger assigns or changes ``id``."""

    timestamp: datetime
    volume_ml: float
    source: HydrationSource = HydrationSource.MANUAL
    fluid_type: FluidType = FluidType.WATER
    note: str | None = None
    id: str = ""

    def __post_init__(self) -> None:
        if not math.isfinite(self.volume_ml) or self.volume_ml <= 0:
            raise InvalidInput(f"volume_ml must be > 0, got: {self.volume_ml!r}")

    @property
    def day(self) -> date:
        return self.timestamp.date()

    @property
    def effective_ml(self) -> float:
        """Volume weighted by the fluid's hydration factor."""
        return self.volume_ml * self.fluid_type.hydration_factor


@dataclass(frozen=True)
class WeatherSignal:
    temperature_c: float
    humidity_percent: float | None = None
    condition: str = ""

    def __post_init__(self) -> None:
        if not math.isfinite(self.temperature_c):
            raise InvalidInput(f"temperature_c must be finite, got: {self.temperature_c!r}")
        if self.humidity_percent is not None and not 0 <= self.humidity_percent <= 100:
            raise InvalidInput(f"humidity_percent must be in [0, 100], got: {self.humidity_percent!r}")


@dataclass(frozen=True)
class WorkoutSignal:
    exercise_minutes: float
    active_energy_kcal: float | None = None

    def __post_init__(self) -> None:
        if not math.isfinite(self.exercise_minutes) or self.exercise_minutes < 0:
            raise InvalidInput(f"exercise_minutes must be >= 0, got: {self.exercise_minutes!r}")


@dataclass(frozen=True)
class DailyGoal:
    base_ml: float
    weather_adjustment_ml: float
    workout_adjustment_ml: float
    total_ml: float
    custom_override: bool = False


@dataclass(frozen=True)
class Quest:
    id: str
    title: str
    detail: str
    target_ml: float
    progress_ml: float
    reward_xp: int
    reward_coins: int = 0
    deadline_hour: int | None = None
    fluid_type: FluidType | None = None

    @property
    def is_completed(self) -> bool:
        return self.progress_ml >= self.target_ml


@dataclass(frozen=True)
class Achievement:
    id: str
    title: str
    detail: str
    reward_coins: int = 0
    unlocked_at: datetime | None = None

    @property
    def is_unlocked(self) -> bool:
        return self.unlocked_at is not None


@dataclass(frozen=True)
class GameState:
    xp: int = 0
    coins: int = 0
    streak_days: int = 0
    last_met_day: date | None = None
    last_closed_day: date | None = None
    goal_days: int = 0
    claimed_rewards: frozenset[tuple[date, str]] = field(default_factory=frozenset)
    achievements: tuple[Achievement, ...] = ()

    @property
    def level(self) -> int:
        from .progress import level_for_xp
        return level_for_xp(self.xp)

    @property
    def xp_to_next_level(self) -> int:
        from .progress import xp_for_level
        return xp_for_level(self.level + 1) - self.xp

    def achievement(self, achievement_id: str) -> Achievement | None:
        return next((a for a in self.achievements if a.id == achievement_id), None)


@dataclass(frozen=True)
class Snapshot:
    """Everything the persistence layer saves and restores."""

    profile: Profile = field(default_factory=Profile)
    entries: tuple[HydrationEntry, ...] = ()
    game_state: GameState = field(default_factory=GameState)
    weather: WeatherSignal | None = None
    workout: WorkoutSignal | None = None
    signals_day: date | None = None
