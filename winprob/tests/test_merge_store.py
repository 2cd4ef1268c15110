"""Tests for merge_store.py"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from merge_store import VariationStore
from models import ParsedUpdate, VariationRecord


def test_update_without_rank_index_is_dropped():
    store = VariationStore()
    assert store.apply(ParsedUpdate(depth=12, cp=30)) is None
    assert len(store) == 0


def test_later_update_keeps_unspecified_fields():
    store = VariationStore()
    store.apply(ParsedUpdate(multipv=1, depth=10, cp=50, pv=["e2e4"]))
    record = store.apply(ParsedUpdate(multipv=1, depth=12))
    assert record == VariationRecord(multipv=1, depth=12, cp=50, pv=["e2e4"])


def test_applying_the_same_update_twice_is_idempotent():
    update = ParsedUpdate(multipv=2, depth=14, cp=-20, wdl=(100, 800, 100), pv=["d2d4", "d7d5"])
    once = VariationStore()
    once.apply(update)
    twice = VariationStore()
    twice.apply(update)
    twice.apply(update)
    assert once.variations() == twice.variations()


def test_last_write_wins_for_overlapping_fields():
    store = VariationStore()
    store.apply(ParsedUpdate(multipv=1, cp=40))
    store.apply(ParsedUpdate(multipv=1, cp=-15))
    assert store.best_record().cp == -15


def test_mate_and_cp_are_merged_independently():
    store = VariationStore()
    store.apply(ParsedUpdate(multipv=1, cp=300))
    store.apply(ParsedUpdate(multipv=1, mate=5))
    record = store.best_record()
    assert record.cp == 300
    assert record.mate == 5


def test_variations_sorted_by_rank():
    store = VariationStore()
    for rank in (3, 1, 2):
        store.apply(ParsedUpdate(multipv=rank, cp=rank * 10))
    assert [v.multipv for v in store.variations()] == [1, 2, 3]


def test_best_record_missing_until_rank_one_seen():
    store = VariationStore()
    store.apply(ParsedUpdate(multipv=2, cp=5))
    assert store.best_record() is None
    store.apply(ParsedUpdate(multipv=1, cp=9))
    assert store.best_record().cp == 9


def test_clear_forgets_everything():
    store = VariationStore()
    store.apply(ParsedUpdate(multipv=1, cp=9))
    store.clear()
    assert store.variations() == []
    assert store.best_record() is None


def test_stored_pv_is_not_shared_with_update():
    store = VariationStore()
    update = ParsedUpdate(multipv=1, pv=["e2e4"])
    store.apply(update)
    update.pv.append("e7e5")
    assert store.best_record().pv == ["e2e4"]
