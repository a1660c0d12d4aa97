"""HydrationStore: single owner of the profile, ledger and game state."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Any, Callable, Iterable, Iterator

from .goal import DEFAULT_SETTINGS, GoalSettings, compute_goal
from .ledger import UNSET, IntakeLedger, entry_stats
from .models import (
    Achievement,
    DailyGoal,
    FluidType,
    GameState,
    HydrationEntry,
    HydrationSource,
    Profile,
    Quest,
    Snapshot,
    WeatherSignal,
    WorkoutSignal,
)
from .progress import advance, ensure_achievements
from .quests import claim_rewards, daily_quests
from .reminders import ReminderTime, schedule_reminders
from .units import UnitSystem, to_ml

if TYPE_CHECKING:
    from ..database.repository import Repository

logger = logging.getLogger(__name__)

QUICK_ADD_MIN_ML = 50.0
QUICK_ADD_MAX_ML = 2000.0


@dataclass(frozen=True)
class IntakeResult:
    """Outcome of a mutation, for the caller to celebrate or report."""

    entry: HydrationEntry | None
    goal: DailyGoal
    quests: list[Quest] = field(default_factory=list)
    completed_quests: list[Quest] = field(default_factory=list)
    unlocked: list[Achievement] = field(default_factory=list)

    @property
    def has_news(self) -> bool:
        return bool(self.completed_quests or self.unlocked)


class HydrationStore:
    """Mutates the ledger, recomputes derived state and persists both.

    Every mutation runs under one lock and follows the same path:
    goal → quests → quest rewards → streak/achievements → persist. Readers get
    immutable values.

    Args:
        repository: Persistence backend; None keeps everything in memory.
        settings: Goal constants.
        clock: Returns the current local naive datetime.
    """

    def __init__(
        self,
        repository: Repository | None = None,
        settings: GoalSettings = DEFAULT_SETTINGS,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._repo = repository
        self._settings = settings
        self._clock = clock
        self._lock = threading.RLock()

        snapshot = repository.load_snapshot() if repository is not None else Snapshot()
        self._profile = snapshot.profile
        self._ledger = IntakeLedger()
        self._ledger.load(snapshot.entries)
        self._state = ensure_achievements(snapshot.game_state)
        self._weather = snapshot.weather
        self._workout = snapshot.workout
        self._signals_day = snapshot.signals_day
        logger.info(
            "Store loaded: %d entries, level %d, streak %d",
            len(self._ledger), self._state.level, self._state.streak_days,
        )

    # ------------------------------------------------------------------ #
    # Read access                                                           #
    # ------------------------------------------------------------------ #

    @property
    def profile(self) -> Profile:
        return self._profile

    @property
    def state(self) -> GameState:
        return self._state

    @property
    def ledger(self) -> IntakeLedger:
        return self._ledger

    def snapshot(self) -> Snapshot:
        with self._lock:
            return Snapshot(
                profile=self._profile,
                entries=self._ledger.entries(),
                game_state=self._state,
                weather=self._weather,
                workout=self._workout,
                signals_day=self._signals_day,
            )

    def daily_goal(self, day: date | None = None) -> DailyGoal:
        """Goal for ``day`` (today by default); signals only count on the day they were received."""
        day = day or self._clock().date()
        with self._lock:
            weather, workout = self._signals_for(day)
            return compute_goal(self._profile, weather, workout, self._settings)

    def today_total(self) -> float:
        return self._ledger.total_on(self._clock().date())

    def today_quests(self) -> list[Quest]:
        today = self._clock().date()
        with self._lock:
            return daily_quests(self._ledger.entries_on(today), self.daily_goal(today), self._profile, today)

    def reminders(self, day: date | None = None) -> list[ReminderTime]:
        """Reminder slots for the waking window starting on ``day``."""
        day = day or self._clock().date()
        with self._lock:
            return schedule_reminders(self._profile, self._ledger.entries_on(day), self.daily_goal(day).total_ml)

    def history(self, days: int = 7) -> dict[date, float]:
        """Effective ml per day for the last ``days`` days, today included."""
        today = self._clock().date()
        return self._ledger.daily_totals(today - timedelta(days=days - 1), today)

    # ------------------------------------------------------------------ #
    # Intake                                                                #
    # ------------------------------------------------------------------ #

    def add_intake(
        self,
        amount: float,
        unit_system: UnitSystem | None = None,
        source: HydrationSource = HydrationSource.MANUAL,
        fluid_type: FluidType = FluidType.WATER,
        note: str | None = None,
        timestamp: datetime | None = None,
    ) -> IntakeResult:
        """Log a drink given in the user's (or an explicit) unit system.

        Raises:
            InvalidInput: If the volume is not positive.
        """
        with self._lock:
            volume_ml = to_ml(amount, unit_system or self._profile.unit_system)
            entry = HydrationEntry(
                timestamp=timestamp or self._clock(),
                volume_ml=volume_ml,
                source=source,
                fluid_type=fluid_type,
                note=note,
            )
            with self._rollback_on_failure():
                entry_id = self._ledger.add(entry)
                stored = self._ledger.get(entry_id)
                if self._repo is not None:
                    self._repo.save_entry(stored)
            logger.info("Logged %.0f ml of %s", stored.volume_ml, stored.fluid_type.value)
            return self._recompute(stored)

    def quick_add(self, amount_ml: float) -> IntakeResult:
        """Log manual water, clamping the amount into the quick-add range."""
        clamped = min(QUICK_ADD_MAX_ML, max(QUICK_ADD_MIN_ML, amount_ml))
        if clamped != amount_ml:
            logger.debug("Quick-add %.0f ml clamped to %.0f ml", amount_ml, clamped)
        return self.add_intake(clamped, unit_system=UnitSystem.METRIC)

    def update_entry(
        self,
        entry_id: str,
        volume_ml: float | None = None,
        fluid_type: FluidType | None = None,
        note: Any = UNSET,
    ) -> IntakeResult:
        """Edit an entry. Rewards and achievements already earned are kept.

        Raises:
            NotFound: If no entry has ``entry_id``.
            InvalidInput: If the new volume is not positive.
        """
        with self._lock:
            with self._rollback_on_failure():
                updated = self._ledger.update(entry_id, volume_ml=volume_ml, fluid_type=fluid_type, note=note)
                if self._repo is not None:
                    self._repo.save_entry(updated)
            return self._recompute(updated)

    def delete_entry(self, entry_id: str) -> IntakeResult:
        """Remove an entry.

        Raises:
            NotFound: If no entry has ``entry_id``.
        """
        with self._lock:
            with self._rollback_on_failure():
                removed = self._ledger.delete(entry_id)
                if self._repo is not None:
                    self._repo.delete_entry(entry_id)
            logger.info("Deleted entry %s (%.0f ml)", entry_id, removed.volume_ml)
            return self._recompute(removed)

    def delete_last_entry(self) -> IntakeResult | None:
        """Remove today's most recent entry, or return None when there is none."""
        with self._lock:
            todays = self._ledger.entries_on(self._clock().date())
            if not todays:
                return None
            return self.delete_entry(todays[0].id)

    def sync_external_entries(
        self,
        entries: Iterable[HydrationEntry],
        day: date,
        source: HydrationSource = HydrationSource.HEALTH_KIT,
    ) -> IntakeResult:
        """Replace an external source's entries for ``day`` with a fresh import."""
        entries = [e for e in entries if e.day == day]
        with self._lock:
            with self._rollback_on_failure():
                ids = self._ledger.replace_source_entries(source, day, entries)
                stored = [self._ledger.get(i) for i in ids]
                if self._repo is not None:
                    self._repo.replace_source_entries(source, day, stored)
            return self._recompute(None)

    # ------------------------------------------------------------------ #
    # Profile and signals                                                   #
    # ------------------------------------------------------------------ #

    def update_profile(self, **changes: Any) -> IntakeResult:
        """Apply field changes to the profile.

        Raises:
            InvalidInput: If the resulting profile is invalid (the old one is kept).
            TypeError: If a field name is unknown.
        """
        with self._lock:
            profile = replace(self._profile, **changes)
            if self._repo is not None:
                self._repo.save_profile(profile)
            self._profile = profile
            logger.info("Profile updated: %s", ", ".join(sorted(changes)))
            return self._recompute(None)

    def update_weather(self, weather: WeatherSignal | None) -> DailyGoal:
        with self._lock:
            self._set_signals(weather=weather)
            return self._recompute(None).goal

    def update_workout(self, workout: WorkoutSignal | None) -> DailyGoal:
        with self._lock:
            self._set_signals(workout=workout)
            return self._recompute(None).goal

    def close_elapsed_days(self) -> IntakeResult:
        """Apply met/missed state to every fully elapsed day since the last close."""
        with self._lock:
            return self._recompute(None)

    # ------------------------------------------------------------------ #
    # Internals                                                             #
    # ------------------------------------------------------------------ #

    @contextmanager
    def _rollback_on_failure(self) -> Iterator[None]:
        """Restore the in-memory ledger when a mutation or its repository write fails."""
        entries = self._ledger.entries()
        try:
            yield
        except Exception:
            self._ledger.load(entries)
            raise

    def _signals_for(self, day: date) -> tuple[WeatherSignal | None, WorkoutSignal | None]:
        if self._signals_day != day:
            return None, None
        return self._weather, self._workout

    def _set_signals(self, **signals: Any) -> None:
        today = self._clock().date()
        weather, workout = self._signals_for(today)
        weather = signals.get("weather", weather)
        workout = signals.get("workout", workout)
        if self._repo is not None:
            self._repo.save_signals(today, weather, workout)
        self._weather, self._workout, self._signals_day = weather, workout, today

    def _recompute(self, entry: HydrationEntry | None) -> IntakeResult:
        now = self._clock()
        today = now.date()
        goal = self.daily_goal(today)
        quests = daily_quests(self._ledger.entries_on(today), goal, self._profile, today)
        state, completed = claim_rewards(self._state, quests, today)

        if state.last_closed_day is not None:
            start = state.last_closed_day + timedelta(days=1)
        else:
            all_entries = self._ledger.entries()
            start = min(all_entries[0].day, today) if all_entries else today
        history = self._ledger.daily_totals(start, today)
        # Elapsed days are judged against their own goal, without today's signals
        goals = {day: self.daily_goal(day).total_ml for day in history}

        update = advance(
            state, history, goal.total_ml, today,
            stats=entry_stats(self._ledger.entries()), now=now, goals=goals,
        )
        if update.state != self._state:
            if self._repo is not None:
                self._repo.save_game_state(update.state)
            self._state = update.state

        return IntakeResult(
            entry=entry,
            goal=goal,
            quests=quests,
            completed_quests=completed,
            unlocked=update.newly_unlocked,
        )
