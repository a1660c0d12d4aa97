"""Tests for waterquest/hydration/goal.py."""

import pytest

from waterquest.hydration.errors import ConfigurationConflict
from waterquest.hydration.goal import GoalSettings, compute_goal, weather_adjustment_ml
from waterquest.hydration.models import ActivityLevel, Profile, WeatherSignal, WorkoutSignal


def test_steady_70kg_base():
    goal = compute_goal(Profile(weight_kg=70, activity_level=ActivityLevel.STEADY))
    assert goal.base_ml == 2450
    assert goal.total_ml == 2450
    assert goal.weather_adjustment_ml == 0
    assert goal.workout_adjustment_ml == 0
    assert goal.custom_override is False


def test_activity_multipliers():
    assert compute_goal(Profile(weight_kg=70, activity_level=ActivityLevel.CHILL)).base_ml == 2240
    assert compute_goal(Profile(weight_kg=70, activity_level=ActivityLevel.INTENSE)).base_ml == 2660


def test_base_monotonic_in_weight_and_tier():
    tiers = [ActivityLevel.CHILL, ActivityLevel.STEADY, ActivityLevel.INTENSE]
    for tier in tiers:
        bases = [compute_goal(Profile(weight_kg=w, activity_level=tier)).base_ml for w in (50, 60, 70, 90, 120)]
        assert bases == sorted(bases)
    for weight in (50, 70, 100):
        bases = [compute_goal(Profile(weight_kg=weight, activity_level=t)).base_ml for t in tiers]
        assert bases == sorted(bases)


def test_floor_applies():
    goal = compute_goal(Profile(weight_kg=20, activity_level=ActivityLevel.CHILL))
    assert goal.base_ml == 640
    assert goal.total_ml == 1200


def test_custom_goal_overrides_adjustments():
    profile = Profile(custom_goal_ml=2000, prefers_weather_goal=True, prefers_health_kit=True)
    goal = compute_goal(profile, WeatherSignal(35, humidity_percent=90), WorkoutSignal(90))
    assert goal.custom_override is True
    assert goal.weather_adjustment_ml == 0
    assert goal.workout_adjustment_ml == 0
    assert goal.total_ml == 2000


def test_custom_goal_below_floor():
    goal = compute_goal(Profile(custom_goal_ml=800))
    assert goal.total_ml == 1200


def test_strict_conflict_raises():
    profile = Profile(custom_goal_ml=2000, prefers_weather_goal=True)
    with pytest.raises(ConfigurationConflict):
        compute_goal(profile, strict=True)


def test_strict_without_conflict_is_fine():
    goal = compute_goal(Profile(custom_goal_ml=2000), strict=True)
    assert goal.total_ml == 2000


def test_weather_ignored_without_preference():
    goal = compute_goal(Profile(), WeatherSignal(35))
    assert goal.weather_adjustment_ml == 0
    assert goal.total_ml == 2450


def test_weather_adjustment():
    profile = Profile(prefers_weather_goal=True)
    assert compute_goal(profile, WeatherSignal(30)).weather_adjustment_ml == 500
    assert compute_goal(profile, WeatherSignal(30)).total_ml == 2950
    assert compute_goal(profile, None).weather_adjustment_ml == 0


def test_weather_thresholds_and_humidity():
    assert weather_adjustment_ml(WeatherSignal(20)) == 0
    assert weather_adjustment_ml(WeatherSignal(12, humidity_percent=95)) == 0
    assert weather_adjustment_ml(WeatherSignal(25, humidity_percent=75)) == 400
    assert weather_adjustment_ml(WeatherSignal(25, humidity_percent=80)) == 500
    assert weather_adjustment_ml(WeatherSignal(35, humidity_percent=85)) == 750


def test_workout_adjustment():
    profile = Profile(prefers_health_kit=True)
    assert compute_goal(profile, workout=WorkoutSignal(30)).workout_adjustment_ml == 360
    assert compute_goal(profile, workout=WorkoutSignal(120)).workout_adjustment_ml == 1000
    assert compute_goal(Profile(), workout=WorkoutSignal(30)).workout_adjustment_ml == 0


def test_settings_override():
    goal = compute_goal(Profile(), settings=GoalSettings(floor_ml=3000))
    assert goal.total_ml == 3000
