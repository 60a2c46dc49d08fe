"""API routes for the Milk Ledger."""

from __future__ import annotations

import base64
import dataclasses
import logging
import tempfile
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile

from milk_ledger.backup import generate_backup_list
from milk_ledger.config import load_config
from milk_ledger.models import DailyEntry, EntryDraft, EntryNotFoundError, Machine, Shift
from milk_ledger.parsers.backup_parser import BackupFormatError, parse_backup_text
from milk_ledger.service import LedgerService
from milk_ledger.settings import SettingsStore
from milk_ledger.store import InMemoryEntryStore, MachineRegistry

from api.schemas import (
    DraftResponse,
    EntryListResponse,
    EntryRequest,
    EntryResponse,
    EntrySchema,
    ExportResponse,
    ImportResponse,
    ImportResultSchema,
    MachineCreate,
    MachineSchema,
    MethodPaymentSchema,
    ReportResponse,
    SettingsSchema,
    SettingsUpdate,
    SnapshotResponse,
)

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1")


@lru_cache(maxsize=1)
def get_service() -> LedgerService:
    """Service over the JSON files in the configured data directory."""
    config = load_config()
    machines = MachineRegistry.load(config.machines_path)
    store = InMemoryEntryStore.load(config.entries_path, machines=machines)
    return LedgerService(store, machines, SettingsStore(config.settings_path))


def _plain(value):
    """Report dataclasses -> JSON-ready values (Decimal as float, dates as ISO)."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _plain(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(_plain(k)): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def _machine_schema(machine: Machine) -> MachineSchema:
    return MachineSchema(
        id=machine.id, name=machine.name, location=machine.location, is_active=machine.is_active,
    )


def _entry_schema(entry: DailyEntry) -> EntrySchema:
    return EntrySchema(
        id=entry.id,
        date=entry.date.isoformat(),
        machine_id=entry.machine_id,
        machine_name=entry.machine_name,
        machine_location=entry.machine_location,
        shift=entry.shift.value,
        total_milk_loaded=float(entry.total_milk_loaded),
        distributed_milk=float(entry.distributed_milk),
        leftover_milk=float(entry.leftover_milk),
        total_amount=float(entry.total_amount),
        payments={
            method.value: MethodPaymentSchema(liters=float(p.liters), amount=float(p.amount))
            for method, p in entry.payments.items()
        },
        created_at=entry.created_at.isoformat() if entry.created_at else None,
        updated_at=entry.updated_at.isoformat() if entry.updated_at else None,
    )


@router.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok"}


# --- machines ---

@router.get("/machines", response_model=list[MachineSchema])
async def list_machines(
    include_inactive: bool = False,
    service: LedgerService = Depends(get_service),
):
    machines = service.machines.all_machines() if include_inactive else service.machines.active_machines()
    return [_machine_schema(m) for m in machines]


@router.post("/machines", response_model=MachineSchema)
async def add_machine(body: MachineCreate, service: LedgerService = Depends(get_service)):
    try:
        machine = service.machines.add(body.name, body.location)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _machine_schema(machine)


@router.post("/machines/{machine_id}/deactivate", response_model=MachineSchema)
async def deactivate_machine(machine_id: str, service: LedgerService = Depends(get_service)):
    try:
        machine = service.machines.deactivate(machine_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown machine: {machine_id}")
    return _machine_schema(machine)


# --- entries ---

@router.get("/entries", response_model=EntryListResponse)
async def list_entries(
    from_date: date = Query(..., alias="from"),
    to_date: date = Query(..., alias="to"),
    machine_id: Optional[str] = None,
    service: LedgerService = Depends(get_service),
):
    entries = service.entries_between(from_date, to_date, machine_id)
    return EntryListResponse(entries=[_entry_schema(e) for e in entries])


@router.get("/entries/draft", response_model=DraftResponse)
async def entry_draft(
    day: date = Query(..., alias="date"),
    machine_id: str = Query(...),
    shift: Optional[Shift] = None,
    service: LedgerService = Depends(get_service),
):
    """Form contents for an identity key: the stored entry or a prefilled new one."""
    draft = service.new_draft(day, machine_id, shift)
    return DraftResponse(
        entry_id=draft.entry_id,
        date=draft.date,
        machine_id=draft.machine_id,
        shift=draft.shift,
        total_milk_loaded=draft.total_milk_loaded or "",
        liters={k: str(v) for k, v in draft.liters.items()},
        amounts={k: str(v) for k, v in draft.amounts.items()},
    )


@router.post("/entries", response_model=EntryResponse)
async def submit_entry(body: EntryRequest, service: LedgerService = Depends(get_service)):
    """Create or update the entry for (date, machine, shift)."""
    draft = EntryDraft(
        date=body.date,
        machine_id=body.machine_id,
        shift=body.shift,
        total_milk_loaded=body.total_milk_loaded,
        liters=dict(body.liters),
        amounts=dict(body.amounts),
    )
    outcome = service.submit(draft)
    if not outcome.ok:
        return EntryResponse(success=False, error_type="validation_error", errors=outcome.errors)
    return EntryResponse(success=True, status=outcome.status.value, entry=_entry_schema(outcome.entry))


@router.delete("/entries/{entry_id}")
async def delete_entry(entry_id: str, service: LedgerService = Depends(get_service)):
    try:
        service.delete(entry_id)
    except EntryNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"success": True, "id": entry_id}


# --- dashboard and reports ---

@router.get("/dashboard/today", response_model=SnapshotResponse)
async def today_snapshot(
    day: Optional[date] = Query(None, alias="date"),
    service: LedgerService = Depends(get_service),
):
    day = day or date.today()
    snapshot = service.today_snapshot(day)
    return SnapshotResponse(
        date=day.isoformat(),
        total_milk=float(snapshot.total_milk),
        distributed=float(snapshot.distributed),
        leftover=float(snapshot.leftover),
        total_amount=float(snapshot.total_amount),
        machine_count=snapshot.machine_count,
        entry_count=snapshot.entry_count,
        pending_machines=[_machine_schema(m) for m in snapshot.pending_machines],
    )


@router.get("/reports/daily", response_model=ReportResponse)
async def daily_report(
    from_date: date = Query(..., alias="from"),
    to_date: date = Query(..., alias="to"),
    machine_id: Optional[str] = None,
    service: LedgerService = Depends(get_service),
):
    report = service.daily_report(from_date, to_date, machine_id)
    return ReportResponse(success=True, kind="daily", report=_plain(report))


@router.get("/reports/weekly", response_model=ReportResponse)
async def weekly_report(
    day: date = Query(..., alias="date"),
    machine_id: Optional[str] = None,
    service: LedgerService = Depends(get_service),
):
    report = service.weekly_report(day, machine_id)
    return ReportResponse(success=True, kind="weekly", report=_plain(report))


@router.get("/reports/monthly", response_model=ReportResponse)
async def monthly_report(
    year: int = Query(..., ge=1),
    month: int = Query(..., ge=1, le=12),
    machine_id: Optional[str] = None,
    service: LedgerService = Depends(get_service),
):
    report = service.monthly_report(year, month, machine_id)
    return ReportResponse(success=True, kind="monthly", report=_plain(report))


@router.get("/reports/payments", response_model=ReportResponse)
async def payment_report(
    from_date: date = Query(..., alias="from"),
    to_date: date = Query(..., alias="to"),
    machine_id: Optional[str] = None,
    service: LedgerService = Depends(get_service),
):
    report = service.payment_report(from_date, to_date, machine_id)
    return ReportResponse(success=True, kind="payments", report=_plain(report))


@router.get("/reports/leftover", response_model=ReportResponse)
async def leftover_report(
    from_date: date = Query(..., alias="from"),
    to_date: date = Query(..., alias="to"),
    machine_id: Optional[str] = None,
    service: LedgerService = Depends(get_service),
):
    report = service.leftover_report(from_date, to_date, machine_id)
    return ReportResponse(success=True, kind="leftover", report=_plain(report))


# --- export / import ---

@router.get("/export/excel", response_model=ExportResponse)
async def export_excel(
    from_date: Optional[date] = Query(None, alias="from"),
    to_date: Optional[date] = Query(None, alias="to"),
    service: LedgerService = Depends(get_service),
):
    """Three-sheet workbook, base64-encoded."""
    with tempfile.TemporaryDirectory() as tmpdir:
        out_path = Path(tmpdir) / "milk-report.xlsx"
        service.export_excel(out_path, from_date, to_date)
        excel_b64 = base64.b64encode(out_path.read_bytes()).decode("ascii")

    if from_date is not None and to_date is not None:
        count = len(service.entries_between(from_date, to_date))
    else:
        count = len(service.all_entries())
    return ExportResponse(success=True, filename="milk-report.xlsx", excel_base64=excel_b64, entry_count=count)


@router.get("/export/json")
async def export_json(service: LedgerService = Depends(get_service)):
    """Backup payload: a list of canonical entries."""
    return _plain(generate_backup_list(service.all_entries()))


@router.post("/import", response_model=ImportResponse)
async def import_json(
    backup: UploadFile = File(..., description="JSON backup file"),
    service: LedgerService = Depends(get_service),
):
    """Import a JSON backup; entries whose identity already exists are skipped."""
    try:
        records = parse_backup_text((await backup.read()).decode("utf-8"))
    except UnicodeDecodeError:
        return ImportResponse(success=False, error_type="format_error", errors=["Backup must be UTF-8 JSON"])
    except BackupFormatError as e:
        return ImportResponse(success=False, error_type="format_error", errors=[str(e)])

    report = service.import_backup(records)
    return ImportResponse(
        success=True,
        imported=report.imported,
        skipped=report.skipped,
        failed=report.failed,
        total=report.total,
        results=[
            ImportResultSchema(index=r.index, status=r.status.value, reason=r.reason)
            for r in report.results
        ],
    )


# --- settings ---

def _settings_schema(service: LedgerService) -> SettingsSchema:
    settings = service.settings
    return SettingsSchema(
        milk_rate=float(settings.milk_rate),
        default_starting_milk=(
            float(settings.default_starting_milk)
            if settings.default_starting_milk is not None else None
        ),
    )


@router.get("/settings", response_model=SettingsSchema)
async def get_settings(service: LedgerService = Depends(get_service)):
    return _settings_schema(service)


@router.put("/settings", response_model=SettingsSchema)
async def update_settings(body: SettingsUpdate, service: LedgerService = Depends(get_service)):
    try:
        service.settings_store.update(
            milk_rate=Decimal(str(body.milk_rate)) if body.milk_rate is not None else None,
            default_starting_milk=(
                Decimal(str(body.default_starting_milk))
                if body.default_starting_milk is not None else None
            ),
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    LOGGER.info("Settings updated: %s", service.settings)
    return _settings_schema(service)
