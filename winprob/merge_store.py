"""Keyed upsert of streaming engine updates, one record per multipv index."""

import sys
from dataclasses import fields
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))
from models import ParsedUpdate, VariationRecord

MERGED_FIELDS = tuple(f.name for f in fields(ParsedUpdate) if f.name != "multipv")


class VariationStore:
    """
    Current view of every ranked variation for the analysed position.

    A field present in an update overwrites the stored one; a missing field
    keeps the previous value. Cleared whenever the position changes.
    """

    def __init__(self) -> None:
        self._records: dict[int, VariationRecord] = {}

    def apply(self, update: ParsedUpdate) -> VariationRecord | None:
        """Merge one update. Updates without a rank index are dropped."""
        if update.multipv is None:
            return None
        record = self._records.get(update.multipv)
        if record is None:
            record = VariationRecord(multipv=update.multipv)
            self._records[update.multipv] = record
        for name in MERGED_FIELDS:
            value = getattr(update, name)
            if value is not None:
                setattr(record, name, list(value) if name == "pv" else value)
        return record

    def clear(self) -> None:
        self._records.clear()

    def best_record(self) -> VariationRecord | None:
        return self._records.get(1)

    def variations(self) -> list[VariationRecord]:
        """All records, ascending by rank index."""
        return [self._records[k] for k in sorted(self._records)]

    def __len__(self) -> int:
        return len(self._records)
