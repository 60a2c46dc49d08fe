"""Tests for aggregation reducers."""

import pytest
from decimal import Decimal
from datetime import date

from milk_ledger.engine.aggregation import (
    average_per_entry,
    combined_day_snapshot,
    field_value,
    group_by_day,
    group_by_iso_week,
    group_by_machine,
    iso_year_week,
    month_bounds,
    newest_first,
    percentage_of,
    sum_field,
    totals_by_method,
    trailing_window_average,
    week_bounds,
)
from milk_ledger.models import (
    ZERO,
    DailyEntry,
    Machine,
    MethodPayment,
    PaymentMethod,
    Shift,
    empty_payments,
)


def _make_entry(day: date, loaded="100", cash_liters="60", cash_amount="3600",
                machine_id="A", shift=Shift.MORNING, machine_name=None) -> DailyEntry:
    payments = empty_payments()
    payments[PaymentMethod.CASH] = MethodPayment(Decimal(cash_liters), Decimal(cash_amount))
    loaded = Decimal(loaded)
    distributed = Decimal(cash_liters)
    return DailyEntry(
        date=day,
        machine_id=machine_id,
        shift=shift,
        total_milk_loaded=loaded,
        payments=payments,
        distributed_milk=distributed,
        leftover_milk=max(ZERO, loaded - distributed),
        total_amount=Decimal(cash_amount),
        machine_name=machine_name,
    )


class TestSums:
    def test_sum_field(self):
        entries = [_make_entry(date(2025, 1, 1)), _make_entry(date(2025, 1, 2), cash_liters="40")]
        assert sum_field(entries, "distributed_milk") == Decimal("100")
        assert sum_field(entries, "leftover_milk") == Decimal("100")
        assert sum_field(entries, "cash_liters") == Decimal("100")
        assert sum_field(entries, "udhaar_permanent_amount") == Decimal("0")

    def test_empty(self):
        assert sum_field([], "total_amount") == Decimal("0")
        assert average_per_entry([], "leftover_milk") == Decimal("0")

    def test_unknown_field(self):
        with pytest.raises(ValueError):
            field_value(_make_entry(date(2025, 1, 1)), "cash_weight")

    def test_totals_by_method(self):
        entries = [_make_entry(date(2025, 1, 1)), _make_entry(date(2025, 1, 2))]
        totals = totals_by_method(entries)
        assert totals[PaymentMethod.CASH].liters == Decimal("120")
        assert totals[PaymentMethod.CASH].amount == Decimal("7200")
        assert totals.grand_total_amount == Decimal("7200")
        assert totals.total_liters == Decimal("120")

    def test_average(self):
        entries = [_make_entry(date(2025, 1, 1), cash_liters="30"), _make_entry(date(2025, 1, 2), cash_liters="60")]
        assert average_per_entry(entries, "distributed_milk") == Decimal("45")


class TestPercentage:
    def test_zero_whole(self):
        assert percentage_of(Decimal("10"), Decimal("0")) == Decimal("0")

    def test_rounds_to_one_decimal(self):
        assert percentage_of(Decimal("1"), Decimal("3")) == Decimal("33.3")
        assert percentage_of(Decimal("2"), Decimal("3")) == Decimal("66.7")


class TestGrouping:
    def test_iso_week_partition_sums(self):
        entries = [
            _make_entry(date(2025, 1, 5)),    # Sunday, week 1
            _make_entry(date(2025, 1, 6)),    # Monday, week 2
            _make_entry(date(2025, 1, 12)),   # Sunday, week 2
            _make_entry(date(2025, 1, 13)),   # week 3
        ]
        weeks = group_by_iso_week(entries)
        assert list(weeks) == [1, 2, 3]
        assert weeks[2].count == 2
        assert sum(b.distributed for b in weeks.values()) == sum_field(entries, "distributed_milk")
        assert sum(b.revenue for b in weeks.values()) == sum_field(entries, "total_amount")

    def test_iso_year_week_boundary(self):
        assert iso_year_week(date(2024, 12, 30)) == (2025, 1)
        assert iso_year_week(date(2027, 1, 1)) == (2026, 53)

    def test_iso_weeks_ordered_across_year_boundary(self):
        entries = [
            _make_entry(date(2027, 1, 18)),   # week 3 of 2027
            _make_entry(date(2027, 1, 1)),    # Friday, week 53 of 2026
            _make_entry(date(2027, 1, 4)),    # Monday, week 1
        ]
        assert list(group_by_iso_week(entries)) == [53, 1, 3]

    def test_group_by_day_sorted(self):
        entries = [
            _make_entry(date(2025, 1, 3)),
            _make_entry(date(2025, 1, 1)),
            _make_entry(date(2025, 1, 3), shift=Shift.EVENING),
        ]
        days = group_by_day(entries)
        assert list(days) == [date(2025, 1, 1), date(2025, 1, 3)]
        assert days[date(2025, 1, 3)].count == 2

    def test_group_by_machine_names(self):
        entries = [
            _make_entry(date(2025, 1, 1), machine_id="A", machine_name="Sector 7"),
            _make_entry(date(2025, 1, 1), machine_id="B"),
            _make_entry(date(2024, 6, 1), machine_id=None),
        ]
        machines = group_by_machine(entries)
        assert machines["A"].name == "Sector 7"
        assert machines["B"].name == "B"
        assert machines[None].name == "Unassigned"


class TestOrdering:
    def test_newest_first(self):
        morning = _make_entry(date(2025, 1, 2), shift=Shift.MORNING)
        evening = _make_entry(date(2025, 1, 2), shift=Shift.EVENING)
        older = _make_entry(date(2025, 1, 1))
        assert newest_first([older, morning, evening]) == [evening, morning, older]

    def test_trailing_window(self):
        entries = [_make_entry(date(2025, 1, d), cash_liters=str(100 - d * 10)) for d in range(1, 4)]
        ordered = newest_first(entries)
        # leftovers newest first: 30, 20, 10
        assert trailing_window_average(ordered, 2, "leftover_milk") == Decimal("25")
        assert trailing_window_average(ordered, 7, "leftover_milk") == Decimal("20")
        assert trailing_window_average([], 7, "leftover_milk") == Decimal("0")


class TestSnapshot:
    def test_snapshot_and_pending(self):
        machines = [
            Machine(id="A", name="Sector 7"),
            Machine(id="B", name="Market"),
            Machine(id="C", name="Old", is_active=False),
        ]
        entries = [
            _make_entry(date(2025, 1, 10), machine_id="A"),
            _make_entry(date(2025, 1, 10), machine_id="A", shift=Shift.EVENING),
        ]
        snapshot = combined_day_snapshot(entries, machines)
        assert snapshot.total_milk == Decimal("200")
        assert snapshot.distributed == Decimal("120")
        assert snapshot.machine_count == 1
        assert snapshot.entry_count == 2
        assert [m.id for m in snapshot.pending_machines] == ["B"]

    def test_empty_day(self):
        snapshot = combined_day_snapshot([])
        assert snapshot.total_amount == Decimal("0")
        assert snapshot.machine_count == 0


class TestBounds:
    def test_week_bounds(self):
        assert week_bounds(date(2025, 1, 8)) == (date(2025, 1, 6), date(2025, 1, 12))
        assert week_bounds(date(2025, 1, 6)) == (date(2025, 1, 6), date(2025, 1, 12))

    def test_month_bounds(self):
        assert month_bounds(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))
        assert month_bounds(2025, 12) == (date(2025, 12, 1), date(2025, 12, 31))
