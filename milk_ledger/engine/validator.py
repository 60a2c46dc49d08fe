"""Layer 3 — Entry Validation Engine.

Field-level checks for a single entry draft, and a strict batch check for
entries that are already in canonical form.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional

from milk_ledger.engine.coercion import (
    coerce_method_values,
    is_blank,
    is_negative,
    parse_entry_date,
    parse_non_negative_decimal,
    parse_shift,
    raw_method_value,
)
from milk_ledger.models import (
    ZERO,
    DailyEntry,
    EntryDraft,
    EntryValidationError,
    LedgerSettings,
    PaymentMethod,
    quantize_amount,
)


@dataclass
class ValidationResult:
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def valid(self) -> bool:
        return not self.errors


def validate_draft(
    draft: EntryDraft,
    settings: Optional[LedgerSettings] = None,
    today: Optional[date] = None,
) -> ValidationResult:
    """Check one entry draft and return a map of field -> message."""
    settings = settings or LedgerSettings()
    today = today or date.today()
    errors: dict[str, str] = {}

    # Date
    if is_blank(draft.date):
        errors["date"] = "Date is required"
    else:
        entry_date = parse_entry_date(draft.date)
        if entry_date is None:
            errors["date"] = f"Invalid date: {draft.date!r}"
        elif entry_date > today:
            errors["date"] = "Date cannot be in the future"

    # Machine selection
    if is_blank(draft.machine_id):
        errors["machine_id"] = "Machine is required"

    # Shift (optional, defaults to morning)
    try:
        parse_shift(draft.shift)
    except ValueError:
        errors["shift"] = f"Shift must be morning or evening, got {draft.shift!r}"

    # Milk loaded
    loaded: Optional[Decimal] = None
    if is_blank(draft.total_milk_loaded):
        errors["total_milk_loaded"] = "Total milk loaded is required"
    elif is_negative(draft.total_milk_loaded):
        errors["total_milk_loaded"] = "Total milk loaded cannot be negative"
    else:
        loaded = parse_non_negative_decimal(draft.total_milk_loaded)
        if loaded <= 0:
            errors["total_milk_loaded"] = "Total milk loaded must be greater than zero"

    # Payment fields: negatives are rejected, zero is allowed
    for method in PaymentMethod:
        if is_negative(raw_method_value(draft.liters, method)):
            errors[f"{method.value}_liters"] = "Liters cannot be negative"
        if not settings.rate_enabled and is_negative(raw_method_value(draft.amounts, method)):
            errors[method.value] = "Amount cannot be negative"

    # Over-distribution
    distributed = sum(coerce_method_values(draft.liters).values(), ZERO)
    if loaded is not None and distributed > loaded:
        errors["distributed_milk"] = (
            f"Distributed milk ({distributed} L) cannot exceed milk loaded ({loaded} L)"
        )

    return ValidationResult(errors=errors)


def validate_entries(entries: list[DailyEntry]) -> list[DailyEntry]:
    """Check the stored relationships between fields across canonical entries.

    Any violation is an error; the entries are returned unchanged when all
    checks pass.
    """
    errors: dict[str, str] = {}

    for index, entry in enumerate(entries):
        label = f"entry[{index}] {entry.date.isoformat()}/{entry.machine_id or '-'}/{entry.shift.value}"

        for attr in ("total_milk_loaded", "distributed_milk", "leftover_milk", "total_amount"):
            val = getattr(entry, attr)
            if not val.is_finite() or val < 0:
                errors[f"{label}.{attr}"] = f"{attr}={val} must be a non-negative number"

        if entry.method_liters_total and entry.distributed_milk != entry.method_liters_total:
            errors[f"{label}.distributed_milk"] = (
                f"distributed_milk={entry.distributed_milk} != sum of method liters "
                f"{entry.method_liters_total}"
            )

        expected_leftover = max(ZERO, entry.total_milk_loaded - entry.distributed_milk)
        if entry.leftover_milk != expected_leftover:
            errors[f"{label}.leftover_milk"] = (
                f"leftover_milk={entry.leftover_milk} != {expected_leftover}"
            )

        if quantize_amount(entry.total_amount) != quantize_amount(entry.method_amount_total):
            errors[f"{label}.total_amount"] = (
                f"total_amount={entry.total_amount} != sum of method amounts "
                f"{entry.method_amount_total}"
            )

    # --- Identity uniqueness ---
    counts = Counter(entry.identity for entry in entries)
    for identity, count in counts.items():
        if count > 1:
            key = f"{identity.date.isoformat()}/{identity.machine_id or '-'}/{identity.shift.value}"
            errors[f"duplicate.{key}"] = f"{count} entries share the identity {key}"

    if errors:
        raise EntryValidationError(errors)

    return entries
