"""Layer 5 — Report Builders.

Turn a batch of canonical entries into report view models. Builders do not
filter: the caller's store query decides which entries are in range.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Sequence

from milk_ledger.engine.aggregation import (
    average_per_entry,
    group_by_day,
    group_by_iso_week,
    group_by_machine,
    newest_first,
    percentage_of,
    sum_field,
    totals_by_method,
    trailing_window_average,
    week_bounds,
)
from milk_ledger.models import ZERO, DailyEntry, PaymentMethod, quantize_amount
from milk_ledger.reports.results import (
    DailyRangeReport,
    DayLine,
    LedgerRow,
    LeftoverAnalysis,
    LeftoverInsight,
    LeftoverRow,
    MachineLine,
    MethodLine,
    MonthlyReport,
    PaymentDayLine,
    PaymentMethodReport,
    Severity,
    SummaryCards,
    WeekLine,
    WeeklyReport,
)

LEFTOVER_THRESHOLD_LITERS = Decimal("30")
HIGH_LEFTOVER_PCT = Decimal("15")
MEDIUM_LEFTOVER_PCT = Decimal("10")
SHORT_WINDOW = 7
LONG_WINDOW = 15


def summarize(entries: Sequence[DailyEntry]) -> SummaryCards:
    return SummaryCards(
        entry_count=len(entries),
        total_loaded=sum_field(entries, "total_milk_loaded"),
        total_distributed=sum_field(entries, "distributed_milk"),
        total_leftover=sum_field(entries, "leftover_milk"),
        total_revenue=sum_field(entries, "total_amount"),
        avg_distributed=average_per_entry(entries, "distributed_milk"),
        avg_leftover=average_per_entry(entries, "leftover_milk"),
    )


def method_lines(entries: Sequence[DailyEntry]) -> list[MethodLine]:
    """Per-method liters/amount with each method's share of the collected amount."""
    totals = totals_by_method(entries)
    return [
        MethodLine(
            method=method,
            liters=totals[method].liters,
            amount=totals[method].amount,
            percentage=percentage_of(totals[method].amount, totals.grand_total_amount),
        )
        for method in PaymentMethod
    ]


def _day_lines(entries: Sequence[DailyEntry]) -> list[DayLine]:
    return [
        DayLine(
            date=day,
            entry_count=bucket.count,
            loaded=bucket.loaded,
            distributed=bucket.distributed,
            leftover=bucket.leftover,
            revenue=bucket.revenue,
        )
        for day, bucket in group_by_day(entries).items()
    ]


def _ledger_row(entry: DailyEntry) -> LedgerRow:
    return LedgerRow(
        label=entry.date.isoformat(),
        date=entry.date,
        machine_name=entry.machine_name or entry.machine_id,
        shift=entry.shift.value,
        total_milk_loaded=entry.total_milk_loaded,
        distributed_milk=entry.distributed_milk,
        leftover_milk=entry.leftover_milk,
        liters={m: entry.liters_for(m) for m in PaymentMethod},
        amounts={m: entry.amount_for(m) for m in PaymentMethod},
        total_amount=entry.total_amount,
    )


def totals_row(entries: Sequence[DailyEntry]) -> LedgerRow:
    """Synthesized TOTALS row summing every numeric column."""
    totals = totals_by_method(entries)
    return LedgerRow(
        label="TOTALS",
        date=None,
        machine_name=None,
        shift=None,
        total_milk_loaded=sum_field(entries, "total_milk_loaded"),
        distributed_milk=sum_field(entries, "distributed_milk"),
        leftover_milk=sum_field(entries, "leftover_milk"),
        liters={m: totals[m].liters for m in PaymentMethod},
        amounts={m: totals[m].amount for m in PaymentMethod},
        total_amount=sum_field(entries, "total_amount"),
    )


def build_daily_range_report(
    entries: Sequence[DailyEntry],
    from_date: date,
    to_date: date,
) -> DailyRangeReport:
    return DailyRangeReport(
        from_date=from_date,
        to_date=to_date,
        rows=[_ledger_row(e) for e in entries],
        totals=totals_row(entries),
    )


def build_weekly_report(
    entries: Sequence[DailyEntry],
    week_start: date,
    today: Optional[date] = None,
) -> WeeklyReport:
    """Summary for the Monday-start week containing ``week_start``.

    ``next_week_start`` is None when the following week starts in the future.
    """
    today = today or date.today()
    start, end = week_bounds(week_start)
    following = start + timedelta(days=7)

    return WeeklyReport(
        week_start=start,
        week_end=end,
        summary=summarize(entries),
        payments=method_lines(entries),
        days=_day_lines(entries),
        previous_week_start=start - timedelta(days=7),
        next_week_start=following if following <= today else None,
    )


def build_monthly_report(
    entries: Sequence[DailyEntry],
    year: int,
    month: int,
    machine_id: Optional[str] = None,
) -> MonthlyReport:
    """Monthly summary; ``machine_id=None`` is the all-machines view."""
    summary = summarize(entries)

    weeks = [
        WeekLine(
            week_number=week,
            distributed=bucket.distributed,
            revenue=bucket.revenue,
            leftover=bucket.leftover,
            count=bucket.count,
        )
        for week, bucket in group_by_iso_week(entries).items()
    ]

    machines: list[MachineLine] = []
    if machine_id is None:
        by_machine = group_by_machine(entries)
        if len(by_machine) > 1:
            machines = [
                MachineLine(
                    machine_id=bucket.machine_id,
                    name=bucket.name,
                    distributed=bucket.distributed,
                    revenue=bucket.revenue,
                    leftover=bucket.leftover,
                    count=bucket.count,
                )
                for bucket in sorted(by_machine.values(), key=lambda b: b.name)
            ]

    if summary.total_distributed:
        implied_rate = quantize_amount(summary.total_revenue / summary.total_distributed)
    else:
        implied_rate = ZERO

    return MonthlyReport(
        year=year,
        month=month,
        machine_id=machine_id,
        summary=summary,
        payments=method_lines(entries),
        weeks=weeks,
        machines=machines,
        implied_rate=implied_rate,
        avg_leftover_value=quantize_amount(summary.avg_leftover * implied_rate),
    )


def build_payment_method_report(
    entries: Sequence[DailyEntry],
    from_date: date,
    to_date: date,
) -> PaymentMethodReport:
    totals = totals_by_method(entries)

    per_day: dict[date, dict[PaymentMethod, Decimal]] = {}
    for entry in entries:
        amounts = per_day.setdefault(entry.date, {m: ZERO for m in PaymentMethod})
        for method in PaymentMethod:
            amounts[method] += entry.amount_for(method)

    days = [
        PaymentDayLine(date=day, amounts=amounts, total=sum(amounts.values(), ZERO))
        for day, amounts in sorted(per_day.items(), reverse=True)
    ]

    return PaymentMethodReport(
        from_date=from_date,
        to_date=to_date,
        methods=method_lines(entries),
        total_amount=totals.grand_total_amount,
        total_liters=totals.total_liters,
        days=days,
    )


def leftover_severity(percentage: Decimal) -> Severity:
    if percentage > HIGH_LEFTOVER_PCT:
        return Severity.HIGH
    if percentage > MEDIUM_LEFTOVER_PCT:
        return Severity.MEDIUM
    return Severity.NORMAL


def leftover_insight(entries: Sequence[DailyEntry]) -> LeftoverInsight:
    avg_leftover = average_per_entry(entries, "leftover_milk")
    if avg_leftover <= LEFTOVER_THRESHOLD_LITERS:
        return LeftoverInsight(
            over_threshold=False,
            recommended_loading=None,
            message="Leftover milk is within the acceptable range.",
        )

    avg_loaded = average_per_entry(entries, "total_milk_loaded")
    recommended = (avg_loaded - avg_leftover).quantize(Decimal("1"), ROUND_HALF_UP)
    return LeftoverInsight(
        over_threshold=True,
        recommended_loading=recommended,
        message=(
            f"Based on the last {len(entries)} entries, leftover averages "
            f"{avg_leftover.quantize(Decimal('0.1'), ROUND_HALF_UP)} L. "
            f"Consider loading {recommended} L instead to reduce waste."
        ),
    )


def build_leftover_analysis(
    entries: Sequence[DailyEntry],
    from_date: date,
    to_date: date,
) -> LeftoverAnalysis:
    """Leftover totals, extremes, trailing averages and a loading suggestion.

    Ties for highest/lowest go to the entry that comes first in ``entries``.
    """
    ordered = newest_first(entries)

    rows = []
    for entry in ordered:
        # bands compare the exact ratio; the rounded one is for display
        if entry.total_milk_loaded:
            exact = entry.leftover_milk / entry.total_milk_loaded * 100
        else:
            exact = ZERO
        rows.append(LeftoverRow(
            entry=entry,
            percentage=percentage_of(entry.leftover_milk, entry.total_milk_loaded),
            severity=leftover_severity(exact),
        ))

    return LeftoverAnalysis(
        from_date=from_date,
        to_date=to_date,
        entry_count=len(entries),
        total_leftover=sum_field(entries, "leftover_milk"),
        avg_leftover=average_per_entry(entries, "leftover_milk"),
        highest=max(entries, key=lambda e: e.leftover_milk, default=None),
        lowest=min(entries, key=lambda e: e.leftover_milk, default=None),
        avg_last_7=trailing_window_average(ordered, SHORT_WINDOW, "leftover_milk"),
        avg_last_15=trailing_window_average(ordered, LONG_WINDOW, "leftover_milk"),
        insight=leftover_insight(entries),
        rows=rows,
    )
