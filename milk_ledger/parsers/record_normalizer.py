"""Layer 1 — Record Normalizer.

Maps between stored/imported records and the canonical DailyEntry.

Records arrive in several layouts:

- current store rows: ``total_milk``, ``atm_id``, ``shift``, ``cash`` +
  ``cash_liters`` for each payment method, optionally a joined
  ``milk_atms`` object carrying the machine name/location;
- legacy single-machine rows: ``starting_milk``/``leftover_milk``/
  ``distributed_milk`` and per-method amounts, no machine, shift or liters;
- camelCase backups (``startingMilk``, ``udhaarPermanent``);
- this package's own JSON backups (``total_milk_loaded``, ``cash_amount``).

The layout is resolved once here (see ``resolve_shape``); everything past
this module only sees DailyEntry.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Mapping, Optional

from milk_ledger.engine.coercion import (
    parse_entry_date,
    parse_non_negative_decimal,
    parse_shift,
)
from milk_ledger.models import (
    ZERO,
    DailyEntry,
    MappingError,
    MethodPayment,
    PaymentMethod,
    RecordShape,
    Shift,
    quantize_amount,
)

_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "id": ("id",),
    "date": ("date", "entry_date"),
    "machine_id": ("machine_id", "atm_id", "machineId", "atmId"),
    "shift": ("shift",),
    "total_milk_loaded": (
        "total_milk_loaded", "total_milk", "totalMilkLoaded", "totalMilk",
        "starting_milk", "startingMilk",
    ),
    "distributed_milk": ("distributed_milk", "distributedMilk"),
    "leftover_milk": ("leftover_milk", "leftoverMilk"),
    "machine_name": ("machine_name", "atm_name", "machineName", "atmName"),
    "machine_location": ("machine_location", "atm_location", "machineLocation", "atmLocation"),
    "created_at": ("created_at", "createdAt"),
    "updated_at": ("updated_at", "updatedAt"),
}

_JOINED_MACHINE_KEYS = ("milk_atms", "machine", "atm")


def _camel(snake: str) -> str:
    head, *rest = snake.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _amount_keys(method: PaymentMethod) -> tuple[str, ...]:
    return (f"{method.value}_amount", method.value, _camel(method.value), f"{_camel(method.value)}Amount")


def _liters_keys(method: PaymentMethod) -> tuple[str, ...]:
    return (f"{method.value}_liters", f"{_camel(method.value)}Liters")


def _first(record: Mapping, keys: Iterable[str]) -> object:
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


def _field(record: Mapping, name: str) -> object:
    return _first(record, _FIELD_ALIASES[name])


def _parse_timestamp(raw: object) -> Optional[datetime]:
    if isinstance(raw, datetime):
        return raw
    if not raw:
        return None
    try:
        return datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    except ValueError:
        return None


def _joined_machine(record: Mapping) -> tuple[Optional[str], Optional[str]]:
    for key in _JOINED_MACHINE_KEYS:
        joined = record.get(key)
        if isinstance(joined, Mapping):
            return joined.get("name"), joined.get("location")
    name = _field(record, "machine_name")
    location = _field(record, "machine_location")
    return (str(name) if name is not None else None,
            str(location) if location is not None else None)


def _legacy_distributed(record: Mapping, loaded: Decimal) -> Decimal:
    stored = _field(record, "distributed_milk")
    if stored is not None:
        return parse_non_negative_decimal(stored)
    leftover = _field(record, "leftover_milk")
    if leftover is not None:
        return max(ZERO, loaded - parse_non_negative_decimal(leftover))
    return ZERO


def resolve_shape(record: Mapping) -> RecordShape:
    """Decide whether a record is a legacy row or a current multi-machine row.

    A record is legacy when no payment method carries liters but the record
    still reports distributed milk (stored, or as starting minus leftover).
    """
    for method in PaymentMethod:
        if parse_non_negative_decimal(_first(record, _liters_keys(method))) > 0:
            return RecordShape.CURRENT
    loaded = parse_non_negative_decimal(_field(record, "total_milk_loaded"))
    if _legacy_distributed(record, loaded) > 0:
        return RecordShape.LEGACY
    return RecordShape.CURRENT


def normalize_record(record: Mapping) -> DailyEntry:
    """Inbound mapping: stored or imported record -> canonical DailyEntry."""
    if not isinstance(record, Mapping):
        raise MappingError(f"Record must be an object, got {type(record).__name__}")

    raw_date = _field(record, "date")
    entry_date = parse_entry_date(raw_date)
    if entry_date is None:
        if raw_date is None:
            raise MappingError("Record has no date")
        raise MappingError(f"Record has an unreadable date: {raw_date!r}")

    try:
        shift = parse_shift(_field(record, "shift")) or Shift.MORNING
    except ValueError:
        raise MappingError(f"Record has an unknown shift: {_field(record, 'shift')!r}")

    machine_id = _field(record, "machine_id")
    machine_name, machine_location = _joined_machine(record)
    loaded = parse_non_negative_decimal(_field(record, "total_milk_loaded"))

    payments = {
        method: MethodPayment(
            liters=parse_non_negative_decimal(_first(record, _liters_keys(method))),
            amount=quantize_amount(parse_non_negative_decimal(_first(record, _amount_keys(method)))),
        )
        for method in PaymentMethod
    }

    shape = resolve_shape(record)
    if shape is RecordShape.LEGACY:
        distributed = _legacy_distributed(record, loaded)
    else:
        distributed = sum((p.liters for p in payments.values()), ZERO)

    record_id = _field(record, "id")
    return DailyEntry(
        date=entry_date,
        machine_id=str(machine_id) if machine_id is not None else None,
        shift=shift,
        total_milk_loaded=loaded,
        payments=payments,
        distributed_milk=distributed,
        leftover_milk=max(ZERO, loaded - distributed),
        total_amount=sum((p.amount for p in payments.values()), ZERO),
        id=str(record_id) if record_id is not None else None,
        machine_name=machine_name,
        machine_location=machine_location,
        shape=shape,
        created_at=_parse_timestamp(_field(record, "created_at")),
        updated_at=_parse_timestamp(_field(record, "updated_at")),
    )


def normalize_records(records: Iterable[Mapping]) -> list[DailyEntry]:
    return [normalize_record(r) for r in records]


def _number(value: Decimal) -> str:
    """Plain decimal text (never exponent form) so stored values read back exactly."""
    return format(value, "f")


def _recomputed(entry: DailyEntry) -> tuple[Decimal, Decimal, Decimal]:
    """Derived quantities recomputed from the entry's inputs."""
    if entry.shape is RecordShape.LEGACY:
        distributed = entry.distributed_milk
    else:
        distributed = entry.method_liters_total
    leftover = max(ZERO, entry.total_milk_loaded - distributed)
    total = quantize_amount(entry.method_amount_total)
    return distributed, leftover, total


def to_record(entry: DailyEntry) -> dict:
    """Outbound mapping: canonical DailyEntry -> stored record.

    Derived fields are always recomputed from the inputs; whatever the entry
    carries in distributed/leftover/total is not trusted. Numbers are
    written as plain decimal text.
    """
    distributed, leftover, total = _recomputed(entry)
    record: dict = {
        "date": entry.date.isoformat(),
        "atm_id": entry.machine_id,
        "shift": entry.shift.value,
        "total_milk": _number(entry.total_milk_loaded),
        "distributed_milk": _number(distributed),
        "leftover_milk": _number(leftover),
    }
    for method in PaymentMethod:
        record[method.value] = _number(entry.amount_for(method))
        record[f"{method.value}_liters"] = _number(entry.liters_for(method))
    record["total_amount"] = _number(total)

    if entry.id is not None:
        record["id"] = entry.id
    if entry.created_at is not None:
        record["created_at"] = entry.created_at.isoformat()
    if entry.updated_at is not None:
        record["updated_at"] = entry.updated_at.isoformat()
    return record


def to_canonical_dict(entry: DailyEntry) -> dict:
    """Flat, JSON-ready view of a canonical entry (backups and API)."""
    distributed, leftover, total = _recomputed(entry)
    data: dict = {
        "id": entry.id,
        "date": entry.date.isoformat(),
        "machine_id": entry.machine_id,
        "machine_name": entry.machine_name,
        "machine_location": entry.machine_location,
        "shift": entry.shift.value,
        "total_milk_loaded": _number(entry.total_milk_loaded),
        "distributed_milk": _number(distributed),
        "leftover_milk": _number(leftover),
    }
    for method in PaymentMethod:
        data[f"{method.value}_liters"] = _number(entry.liters_for(method))
        data[f"{method.value}_amount"] = _number(entry.amount_for(method))
    data["total_amount"] = _number(total)
    data["created_at"] = entry.created_at.isoformat() if entry.created_at else None
    data["updated_at"] = entry.updated_at.isoformat() if entry.updated_at else None
    return data
