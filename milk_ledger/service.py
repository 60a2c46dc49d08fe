"""Ledger service: entry submission, queries and reports over a store.

The engines are pure; this is where they meet the store, the machine
registry and the settings, and where outcomes are logged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Iterable, Mapping, Optional

from milk_ledger.backup import write_backup
from milk_ledger.engine.aggregation import DaySnapshot, combined_day_snapshot, month_bounds, week_bounds
from milk_ledger.engine.calculator import compose_entry
from milk_ledger.engine.reconciliation import (
    ImportReport,
    WriteAction,
    find_existing,
    import_records,
    merge_for_update,
    prefill_total_milk,
    resolve_write,
)
from milk_ledger.engine.validator import validate_draft
from milk_ledger.excel.generator import generate_excel_export
from milk_ledger.models import (
    DailyEntry,
    DuplicateEntryError,
    EntryDraft,
    LedgerSettings,
    PaymentMethod,
    Shift,
)
from milk_ledger.parsers.record_normalizer import normalize_record, normalize_records, to_record
from milk_ledger.reports.builders import (
    build_daily_range_report,
    build_leftover_analysis,
    build_monthly_report,
    build_payment_method_report,
    build_weekly_report,
)
from milk_ledger.reports.results import (
    DailyRangeReport,
    LeftoverAnalysis,
    MonthlyReport,
    PaymentMethodReport,
    WeeklyReport,
)
from milk_ledger.settings import SettingsStore
from milk_ledger.store import EntryStore, MachineRegistry

LOGGER = logging.getLogger(__name__)


class SubmitStatus(Enum):
    CREATED = "created"
    UPDATED = "updated"
    INVALID = "invalid"


@dataclass
class SubmitOutcome:
    status: SubmitStatus
    entry: Optional[DailyEntry] = None
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status is not SubmitStatus.INVALID


def _text(value) -> str:
    return "" if value is None else str(value)


class LedgerService:
    def __init__(
        self,
        store: EntryStore,
        machines: Optional[MachineRegistry] = None,
        settings: Optional[SettingsStore] = None,
    ):
        self.store = store
        self.machines = machines or MachineRegistry()
        self.settings_store = settings or SettingsStore()

    @property
    def settings(self) -> LedgerSettings:
        return self.settings_store.current

    # --- entry form ---

    def new_draft(self, day: date, machine_id: Optional[str], shift: Optional[Shift] = None) -> EntryDraft:
        """Form contents for (date, machine, shift): the stored entry or a fresh prefilled one."""
        existing = find_existing(self.store, day, machine_id, shift)
        loaded = prefill_total_milk(existing, self.settings)
        draft = EntryDraft(
            date=day.isoformat(),
            machine_id=machine_id,
            shift=(existing.shift if existing else (shift or Shift.MORNING)).value,
            total_milk_loaded=_text(loaded),
        )
        if existing is not None:
            draft.entry_id = existing.id
            draft.liters = {m.value: _text(existing.liters_for(m)) for m in PaymentMethod}
            draft.amounts = {m.value: _text(existing.amount_for(m)) for m in PaymentMethod}
        return draft

    def submit(self, draft: EntryDraft, today: Optional[date] = None) -> SubmitOutcome:
        """Validate a draft and create or update the entry for its identity."""
        result = validate_draft(draft, self.settings, today)
        errors = dict(result.errors)
        if "machine_id" not in errors:
            machine = self.machines.get(str(draft.machine_id).strip())
            if machine is None or not machine.is_active:
                errors["machine_id"] = f"Unknown or inactive machine: {draft.machine_id}"
        if errors:
            LOGGER.info("Rejected entry draft: %s", ", ".join(sorted(errors)))
            return SubmitOutcome(SubmitStatus.INVALID, errors=errors)

        composed = compose_entry(draft, self.settings, today)
        decision = resolve_write(self.store, composed.identity)

        if decision.action is WriteAction.CREATE:
            try:
                stored = self.store.insert_entry(to_record(composed))
            except DuplicateEntryError:
                # someone else created it first; fall through to update
                decision = resolve_write(self.store, composed.identity)
            else:
                LOGGER.info("Created entry %s", stored.get("id"))
                return SubmitOutcome(SubmitStatus.CREATED, normalize_record(stored))

        merged = merge_for_update(decision.existing, composed)
        stored = self.store.replace_entry(decision.existing.id, to_record(merged))
        LOGGER.info("Updated entry %s", decision.existing.id)
        return SubmitOutcome(SubmitStatus.UPDATED, normalize_record(stored))

    def delete(self, entry_id: str) -> bool:
        removed = self.store.remove_entry(entry_id)
        LOGGER.info("Deleted entry %s", entry_id)
        return removed

    # --- queries ---

    def entries_between(
        self, date_from: date, date_to: date, machine_id: Optional[str] = None,
    ) -> list[DailyEntry]:
        return normalize_records(self.store.fetch_entries(date_from, date_to, machine_id))

    def all_entries(self) -> list[DailyEntry]:
        return normalize_records(self.store.all_entries())

    def today_snapshot(self, today: Optional[date] = None) -> DaySnapshot:
        today = today or date.today()
        return combined_day_snapshot(self.entries_between(today, today), self.machines.active_machines())

    # --- reports ---

    def daily_report(
        self, date_from: date, date_to: date, machine_id: Optional[str] = None,
    ) -> DailyRangeReport:
        return build_daily_range_report(self.entries_between(date_from, date_to, machine_id), date_from, date_to)

    def weekly_report(
        self, day: date, machine_id: Optional[str] = None, today: Optional[date] = None,
    ) -> WeeklyReport:
        start, end = week_bounds(day)
        return build_weekly_report(self.entries_between(start, end, machine_id), start, today)

    def monthly_report(self, year: int, month: int, machine_id: Optional[str] = None) -> MonthlyReport:
        start, end = month_bounds(year, month)
        return build_monthly_report(self.entries_between(start, end, machine_id), year, month, machine_id)

    def payment_report(
        self, date_from: date, date_to: date, machine_id: Optional[str] = None,
    ) -> PaymentMethodReport:
        return build_payment_method_report(self.entries_between(date_from, date_to, machine_id), date_from, date_to)

    def leftover_report(
        self, date_from: date, date_to: date, machine_id: Optional[str] = None,
    ) -> LeftoverAnalysis:
        return build_leftover_analysis(self.entries_between(date_from, date_to, machine_id), date_from, date_to)

    # --- export / import ---

    def export_excel(
        self,
        output_path: str | Path,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> Path:
        if date_from is not None and date_to is not None:
            entries = self.entries_between(date_from, date_to)
        else:
            entries = self.all_entries()
        path = generate_excel_export(entries, output_path)
        LOGGER.info("Exported %d entries to %s", len(entries), path)
        return path

    def export_backup(self, output_path: str | Path) -> Path:
        entries = self.all_entries()
        path = write_backup(entries, output_path)
        LOGGER.info("Wrote backup of %d entries to %s", len(entries), path)
        return path

    def import_backup(self, records: Iterable[Mapping]) -> ImportReport:
        report = import_records(self.store, records)
        LOGGER.info(
            "Imported %d of %d records (%d skipped, %d failed)",
            report.imported, report.total, report.skipped, report.failed,
        )
        for result in report.results:
            if result.reason:
                LOGGER.debug("Record %d %s: %s", result.index, result.status.value, result.reason)
        return report
