"""Report view models produced by the report builders."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from milk_ledger.models import ZERO, DailyEntry, PaymentMethod


@dataclass(frozen=True)
class MethodLine:
    """One payment method's share of a period."""
    method: PaymentMethod
    liters: Decimal
    amount: Decimal
    percentage: Decimal

    @property
    def label(self) -> str:
        return self.method.label


@dataclass(frozen=True)
class SummaryCards:
    entry_count: int = 0
    total_loaded: Decimal = ZERO
    total_distributed: Decimal = ZERO
    total_leftover: Decimal = ZERO
    total_revenue: Decimal = ZERO
    avg_distributed: Decimal = ZERO
    avg_leftover: Decimal = ZERO


@dataclass
class LedgerRow:
    """A row of the daily table; the synthesized totals row has no date."""
    label: str
    date: Optional[date]
    machine_name: Optional[str]
    shift: Optional[str]
    total_milk_loaded: Decimal
    distributed_milk: Decimal
    leftover_milk: Decimal
    liters: dict[PaymentMethod, Decimal]
    amounts: dict[PaymentMethod, Decimal]
    total_amount: Decimal


@dataclass
class DailyRangeReport:
    from_date: date
    to_date: date
    rows: list[LedgerRow]
    totals: LedgerRow


@dataclass(frozen=True)
class DayLine:
    date: date
    entry_count: int
    loaded: Decimal
    distributed: Decimal
    leftover: Decimal
    revenue: Decimal


@dataclass
class WeeklyReport:
    week_start: date
    week_end: date
    summary: SummaryCards
    payments: list[MethodLine]
    days: list[DayLine]
    previous_week_start: date
    next_week_start: Optional[date]


@dataclass(frozen=True)
class WeekLine:
    week_number: int
    distributed: Decimal
    revenue: Decimal
    leftover: Decimal
    count: int


@dataclass(frozen=True)
class MachineLine:
    machine_id: Optional[str]
    name: str
    distributed: Decimal
    revenue: Decimal
    leftover: Decimal
    count: int


@dataclass
class MonthlyReport:
    year: int
    month: int
    machine_id: Optional[str]
    summary: SummaryCards
    payments: list[MethodLine]
    weeks: list[WeekLine]
    machines: list[MachineLine]
    implied_rate: Decimal
    avg_leftover_value: Decimal


@dataclass(frozen=True)
class PaymentDayLine:
    date: date
    amounts: dict[PaymentMethod, Decimal]
    total: Decimal


@dataclass
class PaymentMethodReport:
    from_date: date
    to_date: date
    methods: list[MethodLine]
    total_amount: Decimal
    total_liters: Decimal
    days: list[PaymentDayLine]


class Severity(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    NORMAL = "normal"


@dataclass(frozen=True)
class LeftoverRow:
    entry: DailyEntry
    percentage: Decimal
    severity: Severity


@dataclass(frozen=True)
class LeftoverInsight:
    over_threshold: bool
    recommended_loading: Optional[Decimal]
    message: str


@dataclass
class LeftoverAnalysis:
    from_date: date
    to_date: date
    entry_count: int
    total_leftover: Decimal
    avg_leftover: Decimal
    highest: Optional[DailyEntry]
    lowest: Optional[DailyEntry]
    avg_last_7: Decimal
    avg_last_15: Decimal
    insight: LeftoverInsight
    rows: list[LeftoverRow] = field(default_factory=list)
