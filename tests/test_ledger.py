"""Tests for waterquest/hydration/ledger.py."""

import threading
from datetime import date, datetime

import pytest

from waterquest.hydration.errors import InvalidInput, NotFound
from waterquest.hydration.ledger import IntakeLedger, entry_stats
from waterquest.hydration.models import FluidType, HydrationEntry, HydrationSource

DAY = date(2026, 3, 10)


def _entry(hour: int, ml: float = 250, minute: int = 0, day: date = DAY, **kwargs) -> HydrationEntry:
    return HydrationEntry(timestamp=datetime(day.year, day.month, day.day, hour, minute), volume_ml=ml, **kwargs)


def test_add_assigns_fresh_id():
    ledger = IntakeLedger()
    first = ledger.add(_entry(9, id="caller-id"))
    second = ledger.add(_entry(10))
    assert first != "caller-id"
    assert first != second
    assert ledger.get(first).volume_ml == 250


def test_total_on_day():
    ledger = IntakeLedger()
    ledger.add(_entry(9, 250))
    assert ledger.total_on(DAY) == 250
    assert ledger.total_on(date(2026, 3, 11)) == 0


def test_effective_and_raw_totals():
    ledger = IntakeLedger()
    ledger.add(_entry(9, 200, fluid_type=FluidType.COFFEE))
    assert ledger.total_on(DAY) == pytest.approx(160)
    assert ledger.total_on(DAY, effective=False) == 200


def test_back_dated_entries_are_ordered():
    ledger = IntakeLedger()
    late = ledger.add(_entry(15))
    early = ledger.add(_entry(8))
    middle = ledger.add(_entry(11))
    assert [e.id for e in ledger.entries()] == [early, middle, late]
    assert [e.id for e in ledger.entries_on(DAY)] == [late, middle, early]


def test_ties_keep_insertion_order():
    ledger = IntakeLedger()
    a = ledger.add(_entry(9, 100))
    b = ledger.add(_entry(9, 200))
    c = ledger.add(_entry(9, 300))
    assert [e.id for e in ledger.entries()] == [a, b, c]


def test_update_volume_and_note():
    ledger = IntakeLedger()
    entry_id = ledger.add(_entry(9, note="garrafa"))
    updated = ledger.update(entry_id, volume_ml=500)
    assert updated.id == entry_id
    assert updated.volume_ml == 500
    assert updated.note == "garrafa"
    assert ledger.update(entry_id, note=None).note is None
    assert ledger.update(entry_id, fluid_type=FluidType.TEA).fluid_type is FluidType.TEA


def test_update_invalid_volume_leaves_entry_unchanged():
    ledger = IntakeLedger()
    entry_id = ledger.add(_entry(9))
    with pytest.raises(InvalidInput):
        ledger.update(entry_id, volume_ml=-10)
    assert ledger.get(entry_id).volume_ml == 250


def test_unknown_ids_raise_not_found():
    ledger = IntakeLedger()
    with pytest.raises(NotFound):
        ledger.update("missing", volume_ml=100)
    with pytest.raises(NotFound):
        ledger.delete("missing")
    with pytest.raises(LookupError):
        ledger.get("missing")


def test_delete_returns_entry():
    ledger = IntakeLedger()
    entry_id = ledger.add(_entry(9))
    removed = ledger.delete(entry_id)
    assert removed.id == entry_id
    assert len(ledger) == 0


def test_replace_source_entries_only_touches_source_and_day():
    ledger = IntakeLedger()
    manual = ledger.add(_entry(8))
    ledger.add(_entry(9, 300, source=HydrationSource.HEALTH_KIT))
    other_day = ledger.add(_entry(9, 400, day=date(2026, 3, 9), source=HydrationSource.HEALTH_KIT))

    new_ids = ledger.replace_source_entries(HydrationSource.HEALTH_KIT, DAY, [_entry(10, 500)])

    assert len(new_ids) == 1
    assert ledger.get(new_ids[0]).source is HydrationSource.HEALTH_KIT
    assert {e.id for e in ledger.entries()} == {manual, other_day, new_ids[0]}
    assert ledger.total_on(DAY) == 750


def test_load_keeps_ids_and_rejects_bad_input():
    ledger = IntakeLedger()
    ledger.load([_entry(10, id="b"), _entry(9, id="a")])
    assert [e.id for e in ledger.entries()] == ["a", "b"]
    with pytest.raises(InvalidInput):
        ledger.load([_entry(9, id="a"), _entry(10, id="a")])
    with pytest.raises(InvalidInput):
        ledger.load([_entry(9)])


def test_daily_totals_zero_fill():
    ledger = IntakeLedger()
    ledger.add(_entry(9, 500, day=date(2026, 3, 8)))
    ledger.add(_entry(9, 700, day=date(2026, 3, 10)))
    totals = ledger.daily_totals(date(2026, 3, 8), date(2026, 3, 10))
    assert totals == {date(2026, 3, 8): 500, date(2026, 3, 9): 0, date(2026, 3, 10): 700}


def test_entry_stats():
    entries = [_entry(7, 300), _entry(23, 200, day=date(2026, 3, 11))]
    stats = entry_stats(entries)
    assert stats["entry_count"] == 2
    assert stats["total_ml"] == 500
    assert stats["logged_days"] == 2
    assert stats["has_early_entry"] is True
    assert stats["has_late_entry"] is True


def test_concurrent_adds():
    ledger = IntakeLedger()
    ids: list[str] = []
    lock = threading.Lock()

    def worker():
        for i in range(50):
            entry_id = ledger.add(_entry(i % 24))
            with lock:
                ids.append(entry_id)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(ledger) == 200
    assert len(set(ids)) == 200
    stamps = [e.timestamp for e in ledger.entries()]
    assert stamps == sorted(stamps)
