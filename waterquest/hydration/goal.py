"""Daily hydration goal: weight-based base plus weather and workout adjustments."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .errors import ConfigurationConflict
from .models import ActivityLevel, DailyGoal, Profile, WeatherSignal, WorkoutSignal

logger = logging.getLogger(__name__)

_ACTIVITY_MULTIPLIERS = {
    ActivityLevel.CHILL: 32.0,
    ActivityLevel.STEADY: 35.0,
    ActivityLevel.INTENSE: 38.0,
}


@dataclass(frozen=True)
class GoalSettings:
    """Tunable constants for the goal formula. All volumes in ml."""

    floor_ml: float = 1200.0
    comfort_temp_c: float = 20.0
    weather_ml_per_degree: float = 50.0
    humid_bonus_ml: float = 150.0        # humidity >= 70%
    very_humid_bonus_ml: float = 250.0   # humidity >= 80%
    weather_cap_ml: float = 750.0
    workout_ml_per_minute: float = 12.0
    workout_cap_ml: float = 1000.0


DEFAULT_SETTINGS = GoalSettings()


def activity_multiplier(level: ActivityLevel) -> float:
    """ml of water per kg of body weight for the given activity tier."""
    return _ACTIVITY_MULTIPLIERS[level]


def base_goal_ml(weight_kg: float, level: ActivityLevel) -> float:
    return weight_kg * activity_multiplier(level)


def weather_adjustment_ml(weather: WeatherSignal, settings: GoalSettings = DEFAULT_SETTINGS) -> float:
    """Extra ml for heat, zero at or below the comfort temperature.

    Increases linearly with degrees above the threshold, adds a humidity bonus
    when it is hot, and saturates at ``weather_cap_ml``.
    """
    excess = weather.temperature_c - settings.comfort_temp_c
    if excess <= 0:
        return 0.0

    adjustment = excess * settings.weather_ml_per_degree
    humidity = weather.humidity_percent
    if humidity is not None:
        if humidity >= 80:
            adjustment += settings.very_humid_bonus_ml
        elif humidity >= 70:
            adjustment += settings.humid_bonus_ml
    return min(settings.weather_cap_ml, adjustment)


def workout_adjustment_ml(workout: WorkoutSignal, settings: GoalSettings = DEFAULT_SETTINGS) -> float:
    return min(settings.workout_cap_ml, workout.exercise_minutes * settings.workout_ml_per_minute)


def has_conflicting_preferences(profile: Profile) -> bool:
    """True when a custom goal is set alongside weather or workout preferences."""
    return profile.custom_goal_ml is not None and (profile.prefers_weather_goal or profile.prefers_health_kit)


def compute_goal(
    profile: Profile,
    weather: WeatherSignal | None = None,
    workout: WorkoutSignal | None = None,
    settings: GoalSettings = DEFAULT_SETTINGS,
    strict: bool = False,
) -> DailyGoal:
    """Compute today's hydration target.

    A custom goal is an explicit override: both adjustments are forced to zero
    even when the profile also asks for weather or workout adjustments.

    Args:
        profile: User profile.
        weather: Current weather, or None if unavailable.
        workout: Today's workout summary, or None if unavailable.
        settings: Formula constants.
        strict: Raise instead of resolving a custom goal / preference conflict.

    Returns:
        DailyGoal with total never below ``settings.floor_ml``.

    Raises:
        ConfigurationConflict: Only when ``strict`` is True and the profile conflicts.
    """
    if profile.custom_goal_ml is not None:
        if has_conflicting_preferences(profile):
            if strict:
                raise ConfigurationConflict(
                    "Custom goal is set together with weather/workout adjustments"
                )
            logger.info("Custom goal %.0f ml overrides weather/workout preferences", profile.custom_goal_ml)
        base = float(profile.custom_goal_ml)
        return DailyGoal(
            base_ml=base,
            weather_adjustment_ml=0.0,
            workout_adjustment_ml=0.0,
            total_ml=max(settings.floor_ml, base),
            custom_override=True,
        )

    base = base_goal_ml(profile.weight_kg, profile.activity_level)

    weather_ml = 0.0
    if profile.prefers_weather_goal and weather is not None:
        weather_ml = weather_adjustment_ml(weather, settings)

    workout_ml = 0.0
    if profile.prefers_health_kit and workout is not None:
        workout_ml = workout_adjustment_ml(workout, settings)

    total = max(settings.floor_ml, base + weather_ml + workout_ml)
    logger.debug(
        "Goal computed: base=%.0f weather=%.0f workout=%.0f total=%.0f",
        base, weather_ml, workout_ml, total,
    )
    return DailyGoal(
        base_ml=base,
        weather_adjustment_ml=weather_ml,
        workout_adjustment_ml=workout_ml,
        total_ml=total,
    )
