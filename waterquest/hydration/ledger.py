"""IntakeLedger: the ordered, thread-safe collection of hydration entries."""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import replace
from datetime import date, timedelta
from typing import Iterable

from .errors import InvalidInput, NotFound
from .models import FluidType, HydrationEntry, HydrationSource

logger = logging.getLogger(__name__)

UNSET = object()


class IntakeLedger:
    """Owns every HydrationEntry.

    Entries are kept sorted by timestamp (ties keep insertion order) no matter
    the order they were added in. Every mutation happens under a lock and all
    readers get immutable tuples, so a reader never sees a half-applied change.
    """

    def __init__(self, entries: Iterable[HydrationEntry] = ()) -> None:
        self._lock = threading.RLock()
        self._entries: list[HydrationEntry] = []
        self._seq = 0
        self._order: dict[str, int] = {}
        if entries:
            self.load(entries)

    # ------------------------------------------------------------------ #
    # Mutations                                                            #
    # ------------------------------------------------------------------ #

    def load(self, entries: Iterable[HydrationEntry]) -> None:
        """Replace the ledger contents with persisted entries, keeping their ids."""
        with self._lock:
            self._entries = []
            self._order = {}
            for entry in entries:
                if not entry.id:
                    raise InvalidInput("Persisted entries must carry an id")
                if entry.id in self._order:
                    raise InvalidInput(f"Duplicate entry id {entry.id!r}")
                self._insert(entry)
        logger.debug("Ledger loaded with %d entries", len(self._entries))

    def add(self, entry: HydrationEntry) -> str:
        """Insert an entry under a freshly generated id and return that id."""
        with self._lock:
            new_entry = replace(entry, id=self._new_id())
            self._insert(new_entry)
        logger.debug("Ledger: added %s (%.0f ml %s)", new_entry.id, new_entry.volume_ml, new_entry.fluid_type.value)
        return new_entry.id

    def update(
        self,
        entry_id: str,
        volume_ml: float | None = None,
        fluid_type: FluidType | None = None,
        note: str | None | object = UNSET,
    ) -> HydrationEntry:
        """Edit volume, fluid type and/or note of an entry.

        ``note`` is only touched when passed explicitly, so ``note=None`` clears it.

        Raises:
            NotFound: If no entry has ``entry_id``.
            InvalidInput: If the new volume is not positive.
        """
        with self._lock:
            index = self._index_of(entry_id)
            current = self._entries[index]
            changes: dict = {}
            if volume_ml is not None:
                changes["volume_ml"] = volume_ml
            if fluid_type is not None:
                changes["fluid_type"] = fluid_type
            if note is not UNSET:
                changes["note"] = note
            updated = replace(current, **changes)
            self._entries[index] = updated
        logger.debug("Ledger: updated %s", entry_id)
        return updated

    def delete(self, entry_id: str) -> HydrationEntry:
        """Remove an entry and return it.

        Raises:
            NotFound: If no entry has ``entry_id``.
        """
        with self._lock:
            index = self._index_of(entry_id)
            removed = self._entries.pop(index)
            del self._order[entry_id]
        logger.debug("Ledger: deleted %s", entry_id)
        return removed

    def replace_source_entries(
        self, source: HydrationSource, day: date, entries: Iterable[HydrationEntry]
    ) -> list[str]:
        """Swap all entries of ``source`` on ``day`` for a fresh import.

        Used by external re-syncs so the same import never double counts.
        Returns the ids assigned to the new entries.
        """
        with self._lock:
            stale = [e.id for e in self._entries if e.source == source and e.day == day]
            for entry_id in stale:
                self._entries.pop(self._index_of(entry_id))
                del self._order[entry_id]
            ids = []
            for entry in entries:
                new_entry = replace(entry, id=self._new_id(), source=source)
                self._insert(new_entry)
                ids.append(new_entry.id)
        logger.info("Ledger: replaced %d %s entries on %s with %d", len(stale), source.value, day, len(ids))
        return ids

    # ------------------------------------------------------------------ #
    # Reads                                                                #
    # ------------------------------------------------------------------ #

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, entry_id: str) -> HydrationEntry:
        with self._lock:
            return self._entries[self._index_of(entry_id)]

    def entries(self) -> tuple[HydrationEntry, ...]:
        """All entries, oldest first."""
        with self._lock:
            return tuple(self._entries)

    def entries_on(self, day: date) -> tuple[HydrationEntry, ...]:
        """Entries logged on ``day``, most recent first."""
        with self._lock:
            return tuple(reversed([e for e in self._entries if e.day == day]))

    def entries_between(self, start: date, end: date) -> tuple[HydrationEntry, ...]:
        """Entries from ``start`` to ``end`` (inclusive), oldest first."""
        with self._lock:
            return tuple(e for e in self._entries if start <= e.day <= end)

    def total_on(self, day: date, effective: bool = True) -> float:
        """Total intake for ``day`` in ml (hydration-weighted unless ``effective`` is False)."""
        entries = self.entries_on(day)
        if effective:
            return sum(e.effective_ml for e in entries)
        return sum(e.volume_ml for e in entries)

    def daily_totals(self, start: date, end: date) -> dict[date, float]:
        """Effective ml per day from ``start`` to ``end``; days without entries map to 0."""
        totals: dict[date, float] = {}
        day = start
        while day <= end:
            totals[day] = 0.0
            day += timedelta(days=1)
        for entry in self.entries_between(start, end):
            totals[entry.day] += entry.effective_ml
        return totals

    # ------------------------------------------------------------------ #
    # Internals                                                            #
    # ------------------------------------------------------------------ #

    def _new_id(self) -> str:
        entry_id = uuid.uuid4().hex
        while entry_id in self._order:
            entry_id = uuid.uuid4().hex
        return entry_id

    def _insert(self, entry: HydrationEntry) -> None:
        self._seq += 1
        self._order[entry.id] = self._seq
        key = (entry.timestamp, self._seq)
        index = len(self._entries)
        # Back-dated entries are rare, so scan from the end.
        while index > 0:
            prev = self._entries[index - 1]
            if (prev.timestamp, self._order[prev.id]) <= key:
                break
            index -= 1
        self._entries.insert(index, entry)

    def _index_of(self, entry_id: str) -> int:
        for index, entry in enumerate(self._entries):
            if entry.id == entry_id:
                return index
        raise NotFound(entry_id)


def entry_stats(entries: Iterable[HydrationEntry]) -> dict:
    """Lifetime counters used by achievement conditions."""
    entries = list(entries)
    per_day: dict[date, float] = {}
    for entry in entries:
        per_day[entry.day] = per_day.get(entry.day, 0.0) + entry.effective_ml
    return {
        "entry_count": len(entries),
        "total_ml": sum(e.volume_ml for e in entries),
        "logged_days": len(per_day),
        "has_early_entry": any(e.timestamp.hour < 8 for e in entries),
        "has_late_entry": any(e.timestamp.hour >= 22 for e in entries),
    }
