"""Pydantic request/response models for the Milk Ledger API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class MachineSchema(BaseModel):
    id: str
    name: str
    location: str = ""
    is_active: bool = True


class MachineCreate(BaseModel):
    name: str
    location: str = ""


class MethodPaymentSchema(BaseModel):
    liters: float
    amount: float


class EntrySchema(BaseModel):
    id: str | None = None
    date: str
    machine_id: str | None = None
    machine_name: str | None = None
    machine_location: str | None = None
    shift: str
    total_milk_loaded: float
    distributed_milk: float
    leftover_milk: float
    total_amount: float
    payments: dict[str, MethodPaymentSchema]
    created_at: str | None = None
    updated_at: str | None = None


class EntryRequest(BaseModel):
    """Raw form values; numbers may arrive as free-typed strings."""
    date: str
    machine_id: str
    shift: str = "morning"
    total_milk_loaded: str | float | None = None
    liters: dict[str, str | float] = Field(default_factory=dict)
    amounts: dict[str, str | float] = Field(default_factory=dict)


class EntryResponse(BaseModel):
    success: bool
    status: str | None = None
    entry: EntrySchema | None = None
    error_type: str | None = None
    errors: dict[str, str] | None = None


class EntryListResponse(BaseModel):
    entries: list[EntrySchema]


class DraftResponse(BaseModel):
    entry_id: str | None = None
    date: str
    machine_id: str | None = None
    shift: str
    total_milk_loaded: str
    liters: dict[str, str]
    amounts: dict[str, str]


class SnapshotResponse(BaseModel):
    date: str
    total_milk: float
    distributed: float
    leftover: float
    total_amount: float
    machine_count: int
    entry_count: int
    pending_machines: list[MachineSchema]


class ReportResponse(BaseModel):
    success: bool
    kind: str
    report: dict | None = None
    error_type: str | None = None
    errors: list[str] | None = None


class ExportResponse(BaseModel):
    success: bool
    filename: str
    excel_base64: str
    entry_count: int


class ImportResultSchema(BaseModel):
    index: int
    status: str
    reason: str = ""


class ImportResponse(BaseModel):
    success: bool
    imported: int = 0
    skipped: int = 0
    failed: int = 0
    total: int = 0
    results: list[ImportResultSchema] | None = None
    error_type: str | None = None
    errors: list[str] | None = None


class SettingsSchema(BaseModel):
    milk_rate: float
    default_starting_milk: float | None = None


class SettingsUpdate(BaseModel):
    milk_rate: float | None = None
    default_starting_milk: float | None = None
