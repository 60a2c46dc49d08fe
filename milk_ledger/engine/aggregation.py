"""Layer 4 — Aggregation Engine.

Pure reducers over canonical entries that have already been filtered to the
wanted date range / machine. Every reducer is total: empty input yields
zeros and nothing divides by zero.
"""

from __future__ import annotations

import calendar
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Sequence

from milk_ledger.models import (
    TENTH,
    ZERO,
    DailyEntry,
    Machine,
    MethodPayment,
    PaymentMethod,
)

ENTRY_FIELDS = ("total_milk_loaded", "distributed_milk", "leftover_milk", "total_amount")


def field_value(entry: DailyEntry, name: str) -> Decimal:
    """Numeric value of an entry column.

    Besides the entry's own quantities, ``<method>_liters`` and
    ``<method>_amount`` address a payment method's pair.
    """
    if name in ENTRY_FIELDS:
        return getattr(entry, name)
    method_value, _, part = name.rpartition("_")
    method = PaymentMethod(method_value)
    if part == "liters":
        return entry.liters_for(method)
    if part == "amount":
        return entry.amount_for(method)
    raise ValueError(f"Unknown entry field: {name}")


def sum_field(entries: Iterable[DailyEntry], name: str) -> Decimal:
    return sum((field_value(e, name) for e in entries), ZERO)


@dataclass
class MethodTotals:
    """Liters and amount per payment method across a set of entries."""
    by_method: dict[PaymentMethod, MethodPayment]
    grand_total_amount: Decimal = ZERO
    total_liters: Decimal = ZERO

    def __getitem__(self, method: PaymentMethod) -> MethodPayment:
        return self.by_method[method]


def totals_by_method(entries: Iterable[DailyEntry]) -> MethodTotals:
    liters: dict[PaymentMethod, Decimal] = {m: ZERO for m in PaymentMethod}
    amounts: dict[PaymentMethod, Decimal] = {m: ZERO for m in PaymentMethod}
    for entry in entries:
        for method in PaymentMethod:
            liters[method] += entry.liters_for(method)
            amounts[method] += entry.amount_for(method)

    return MethodTotals(
        by_method={m: MethodPayment(liters=liters[m], amount=amounts[m]) for m in PaymentMethod},
        grand_total_amount=sum(amounts.values(), ZERO),
        total_liters=sum(liters.values(), ZERO),
    )


def percentage_of(part: Decimal, whole: Decimal) -> Decimal:
    """part/whole as a percentage rounded to one decimal; 0 when whole is 0."""
    if not whole:
        return ZERO
    return (Decimal(part) / Decimal(whole) * 100).quantize(TENTH, ROUND_HALF_UP)


def average_per_entry(entries: Sequence[DailyEntry], name: str) -> Decimal:
    if not entries:
        return ZERO
    return sum_field(entries, name) / len(entries)


@dataclass
class PeriodTotals:
    """Running totals for one bucket (a week, a day)."""
    distributed: Decimal = ZERO
    revenue: Decimal = ZERO
    leftover: Decimal = ZERO
    loaded: Decimal = ZERO
    count: int = 0

    def add(self, entry: DailyEntry) -> None:
        self.distributed += entry.distributed_milk
        self.revenue += entry.total_amount
        self.leftover += entry.leftover_milk
        self.loaded += entry.total_milk_loaded
        self.count += 1


@dataclass
class MachineTotals(PeriodTotals):
    machine_id: Optional[str] = None
    name: str = ""


def iso_year_week(day: date) -> tuple[int, int]:
    iso_year, week, _ = day.isocalendar()
    return iso_year, week


def group_by_iso_week(entries: Iterable[DailyEntry]) -> dict[int, PeriodTotals]:
    """Bucket entries by the Monday-start ISO week containing their date.

    Keys are week numbers, ordered by (ISO year, week) so early-January days
    that belong to the previous year's last week come first. Within one
    month no two weeks share a number.
    """
    buckets: dict[tuple[int, int], PeriodTotals] = defaultdict(PeriodTotals)
    for entry in entries:
        buckets[iso_year_week(entry.date)].add(entry)
    return {week: bucket for (_, week), bucket in sorted(buckets.items())}


def group_by_day(entries: Iterable[DailyEntry]) -> dict[date, PeriodTotals]:
    buckets: dict[date, PeriodTotals] = defaultdict(PeriodTotals)
    for entry in entries:
        buckets[entry.date].add(entry)
    return dict(sorted(buckets.items()))


def group_by_machine(entries: Iterable[DailyEntry]) -> dict[Optional[str], MachineTotals]:
    buckets: dict[Optional[str], MachineTotals] = {}
    for entry in entries:
        bucket = buckets.get(entry.machine_id)
        if bucket is None:
            bucket = MachineTotals(machine_id=entry.machine_id, name="")
            buckets[entry.machine_id] = bucket
        if not bucket.name and entry.machine_name:
            bucket.name = entry.machine_name
        bucket.add(entry)

    for machine_id, bucket in buckets.items():
        if not bucket.name:
            bucket.name = machine_id or "Unassigned"
    return buckets


def newest_first(entries: Iterable[DailyEntry]) -> list[DailyEntry]:
    """Sort by date then shift, most recent first (stable for ties)."""
    return sorted(entries, key=lambda e: (e.date, e.shift.order), reverse=True)


def trailing_window_average(
    entries: Sequence[DailyEntry],
    window_size: int,
    name: str,
) -> Decimal:
    """Average of ``name`` over the first ``window_size`` entries.

    ``entries`` must already be ordered newest first.
    """
    window = list(entries[:max(window_size, 0)])
    if not window:
        return ZERO
    return sum_field(window, name) / len(window)


@dataclass
class DaySnapshot:
    """Combined figures for one day across machines."""
    total_milk: Decimal = ZERO
    distributed: Decimal = ZERO
    leftover: Decimal = ZERO
    total_amount: Decimal = ZERO
    machine_count: int = 0
    entry_count: int = 0
    pending_machines: list[Machine] = field(default_factory=list)


def combined_day_snapshot(
    entries: Sequence[DailyEntry],
    machines: Iterable[Machine] = (),
) -> DaySnapshot:
    """Totals for one day's entries; machines without an entry are listed as pending."""
    reporting = {e.machine_id for e in entries}
    return DaySnapshot(
        total_milk=sum_field(entries, "total_milk_loaded"),
        distributed=sum_field(entries, "distributed_milk"),
        leftover=sum_field(entries, "leftover_milk"),
        total_amount=sum_field(entries, "total_amount"),
        machine_count=len(reporting),
        entry_count=len(entries),
        pending_machines=[m for m in machines if m.is_active and m.id not in reporting],
    )


def week_bounds(day: date) -> tuple[date, date]:
    """Monday and Sunday of the week containing ``day``."""
    start = day - timedelta(days=day.weekday())
    return start, start + timedelta(days=6)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)
