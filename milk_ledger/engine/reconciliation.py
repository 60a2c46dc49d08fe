"""Layer 4 — Reconciliation / dedup policy.

An entry is identified by (date, machine, shift). This module decides
create vs update for a submitted entry and skips duplicates when a backup
is imported.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Mapping, Optional

from milk_ledger.models import (
    DailyEntry,
    DuplicateEntryError,
    EntryIdentity,
    LedgerSettings,
    MappingError,
    Shift,
)
from milk_ledger.parsers.record_normalizer import normalize_record, normalize_records, to_record

if TYPE_CHECKING:
    from milk_ledger.store import EntryStore


class WriteAction(Enum):
    CREATE = "create"
    UPDATE = "update"


@dataclass(frozen=True)
class WriteDecision:
    action: WriteAction
    existing: Optional[DailyEntry] = None


def find_existing(
    store: "EntryStore",
    day: date,
    machine_id: Optional[str],
    shift: Optional[Shift] = None,
) -> Optional[DailyEntry]:
    """Look up the entry for an identity key.

    Without a shift, the earliest shift recorded for (date, machine) is
    returned, which is how single-shift historical data is found.
    """
    if shift is not None:
        record = store.fetch_entry_by_identity(day, machine_id, shift.value)
        return normalize_record(record) if record is not None else None

    candidates = [
        e for e in normalize_records(store.fetch_entries(day, day, machine_id))
        if e.machine_id == machine_id
    ]
    if not candidates:
        return None
    return min(candidates, key=lambda e: e.shift.order)


def resolve_write(store: "EntryStore", identity: EntryIdentity) -> WriteDecision:
    existing = find_existing(store, identity.date, identity.machine_id, identity.shift)
    if existing is None:
        return WriteDecision(WriteAction.CREATE)
    return WriteDecision(WriteAction.UPDATE, existing)


def merge_for_update(existing: DailyEntry, composed: DailyEntry) -> DailyEntry:
    """Full replace of the mutable fields; id and identity key are kept."""
    return dataclasses.replace(
        composed,
        id=existing.id,
        date=existing.date,
        machine_id=existing.machine_id,
        shift=existing.shift,
        machine_name=composed.machine_name or existing.machine_name,
        machine_location=composed.machine_location or existing.machine_location,
        created_at=existing.created_at,
    )


def prefill_total_milk(
    existing: Optional[DailyEntry],
    settings: LedgerSettings,
) -> Optional[Decimal]:
    """Milk-loaded value to show in the entry form.

    The configured default only applies to new entries; an existing entry's
    stored value is never overwritten by it.
    """
    if existing is not None:
        return existing.total_milk_loaded
    return settings.default_starting_milk


class ImportStatus(Enum):
    IMPORTED = "imported"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class ImportResult:
    index: int
    status: ImportStatus
    identity: Optional[EntryIdentity] = None
    reason: str = ""


@dataclass
class ImportReport:
    results: list[ImportResult] = field(default_factory=list)

    def _count(self, status: ImportStatus) -> int:
        return sum(1 for r in self.results if r.status is status)

    @property
    def imported(self) -> int:
        return self._count(ImportStatus.IMPORTED)

    @property
    def skipped(self) -> int:
        return self._count(ImportStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(ImportStatus.FAILED)

    @property
    def total(self) -> int:
        return len(self.results)


def import_one(store: "EntryStore", index: int, record: Mapping) -> ImportResult:
    """Insert one backup record, skipping it when its identity already exists."""
    try:
        entry = normalize_record(record)
    except MappingError as e:
        return ImportResult(index, ImportStatus.FAILED, reason=str(e))

    identity = entry.identity
    if find_existing(store, identity.date, identity.machine_id, identity.shift) is not None:
        return ImportResult(index, ImportStatus.SKIPPED, identity, "duplicate entry")

    fresh = dataclasses.replace(entry, id=None, created_at=None, updated_at=None)
    try:
        store.insert_entry(to_record(fresh))
    except DuplicateEntryError:
        return ImportResult(index, ImportStatus.SKIPPED, identity, "duplicate entry")
    return ImportResult(index, ImportStatus.IMPORTED, identity)


def import_records(store: "EntryStore", records: Iterable[Mapping]) -> ImportReport:
    """Insert backup records one by one; a bad or duplicate record never aborts the batch."""
    report = ImportReport()
    for index, record in enumerate(records):
        report.results.append(import_one(store, index, record))
    return report
