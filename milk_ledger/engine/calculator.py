"""Layer 3 — Entry Calculation Engine.

Derives distributed/leftover milk and collected amounts from raw entry input.
All arithmetic is done with Decimal; nothing here holds state or does I/O.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Iterable, Mapping, Optional, Union

from milk_ledger.engine.coercion import (
    coerce_method_values,
    parse_entry_date,
    parse_non_negative_decimal,
    parse_shift,
)
from milk_ledger.engine.validator import validate_draft
from milk_ledger.models import (
    ZERO,
    DailyEntry,
    EntryDraft,
    EntryValidationError,
    LedgerSettings,
    MethodPayment,
    PaymentMethod,
    RecordShape,
    Shift,
    quantize_amount,
)

RawValues = Union[Mapping, Iterable]


def _raw_iter(values: RawValues) -> Iterable:
    if isinstance(values, Mapping):
        return values.values()
    return values


def derive_distributed(method_liters: RawValues) -> Decimal:
    """Sum the per-method liters (raw input is coerced, invalid counts as 0)."""
    return sum((parse_non_negative_decimal(raw) for raw in _raw_iter(method_liters)), ZERO)


def derive_leftover(total_loaded: object, distributed: object) -> Decimal:
    loaded = parse_non_negative_decimal(total_loaded)
    dist = parse_non_negative_decimal(distributed)
    return max(ZERO, loaded - dist)


def derive_total_amount(method_amounts: RawValues) -> Decimal:
    return sum((parse_non_negative_decimal(raw) for raw in _raw_iter(method_amounts)), ZERO)


def auto_calc_amount(liters: object, rate: object) -> Decimal:
    """Amount for a payment method when a milk rate is configured."""
    return quantize_amount(parse_non_negative_decimal(liters) * parse_non_negative_decimal(rate))


def resolve_amounts(draft: EntryDraft, settings: LedgerSettings) -> dict[PaymentMethod, Decimal]:
    """Per-method amounts for a draft.

    With a milk rate set, amounts are derived from liters and whatever was
    typed into the amount fields is ignored.
    """
    if settings.rate_enabled:
        liters = coerce_method_values(draft.liters)
        return {
            method: auto_calc_amount(liters[method], settings.milk_rate)
            for method in PaymentMethod
        }
    return {
        method: quantize_amount(value)
        for method, value in coerce_method_values(draft.amounts).items()
    }


def compose_entry(
    draft: EntryDraft,
    settings: Optional[LedgerSettings] = None,
    today: Optional[date] = None,
) -> DailyEntry:
    """Validate a draft and build a fully-derived DailyEntry from it.

    Raises EntryValidationError when the draft is invalid; nothing is derived
    for an invalid draft.
    """
    settings = settings or LedgerSettings()
    result = validate_draft(draft, settings, today)
    if not result.valid:
        raise EntryValidationError(result.errors)

    liters = coerce_method_values(draft.liters)
    amounts = resolve_amounts(draft, settings)
    loaded = parse_non_negative_decimal(draft.total_milk_loaded)
    distributed = derive_distributed(liters)

    return DailyEntry(
        date=parse_entry_date(draft.date),
        machine_id=str(draft.machine_id).strip(),
        shift=parse_shift(draft.shift) or Shift.MORNING,
        total_milk_loaded=loaded,
        payments={
            method: MethodPayment(liters=liters[method], amount=amounts[method])
            for method in PaymentMethod
        },
        distributed_milk=distributed,
        leftover_milk=derive_leftover(loaded, distributed),
        total_amount=quantize_amount(derive_total_amount(amounts)),
        shape=RecordShape.CURRENT,
    )
