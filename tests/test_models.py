"""Tests for canonical data models."""

import pytest
from decimal import Decimal
from datetime import date

from milk_ledger.models import (
    DailyEntry,
    DuplicateEntryError,
    EntryIdentity,
    EntryValidationError,
    LedgerSettings,
    MethodPayment,
    PaymentMethod,
    Shift,
    empty_payments,
    quantize_amount,
)


class TestMethodPayment:
    def test_defaults_to_zero(self):
        p = MethodPayment()
        assert p.liters == Decimal("0")
        assert p.amount == Decimal("0")

    def test_negative_liters_raises(self):
        with pytest.raises(ValueError, match="must not be negative"):
            MethodPayment(liters=Decimal("-1"), amount=Decimal("0"))

    def test_negative_amount_raises(self):
        with pytest.raises(ValueError, match="must not be negative"):
            MethodPayment(liters=Decimal("1"), amount=Decimal("-5"))


class TestEnums:
    def test_six_payment_methods(self):
        assert [m.value for m in PaymentMethod] == [
            "cash", "upi", "card", "udhaar_permanent", "udhaar_temporary", "others",
        ]

    def test_labels(self):
        assert PaymentMethod.UPI.label == "UPI"
        assert PaymentMethod.UDHAAR_TEMPORARY.label == "Udhaar Temporary"

    def test_shift_order(self):
        assert Shift.MORNING.order < Shift.EVENING.order


class TestDailyEntry:
    def test_identity(self):
        entry = DailyEntry(
            date=date(2025, 1, 10), machine_id="A", shift=Shift.EVENING,
            total_milk_loaded=Decimal("100"),
        )
        assert entry.identity == EntryIdentity(date(2025, 1, 10), "A", Shift.EVENING)

    def test_method_totals(self):
        payments = empty_payments()
        payments[PaymentMethod.CASH] = MethodPayment(Decimal("20"), Decimal("1200"))
        payments[PaymentMethod.CARD] = MethodPayment(Decimal("5"), Decimal("300"))
        entry = DailyEntry(
            date=date(2025, 1, 10), machine_id="A", shift=Shift.MORNING,
            total_milk_loaded=Decimal("100"), payments=payments,
        )
        assert entry.method_liters_total == Decimal("25")
        assert entry.method_amount_total == Decimal("1500")
        assert entry.liters_for(PaymentMethod.UPI) == Decimal("0")
        assert entry.amount_for(PaymentMethod.CARD) == Decimal("300")


class TestLedgerSettings:
    def test_rate_disabled_by_default(self):
        assert not LedgerSettings().rate_enabled

    def test_rate_enabled(self):
        assert LedgerSettings(milk_rate=Decimal("60")).rate_enabled

    def test_negative_rate_raises(self):
        with pytest.raises(ValueError, match="must not be negative"):
            LedgerSettings(milk_rate=Decimal("-1"))

    def test_negative_default_milk_raises(self):
        with pytest.raises(ValueError, match="must not be negative"):
            LedgerSettings(default_starting_milk=Decimal("-10"))


class TestErrors:
    def test_validation_error_carries_errors(self):
        err = EntryValidationError({"date": "Date is required", "machine_id": "Machine is required"})
        assert err.errors["date"] == "Date is required"
        assert "2 error(s)" in str(err)

    def test_duplicate_error_message(self):
        identity = EntryIdentity(date(2025, 1, 10), "A", Shift.MORNING)
        err = DuplicateEntryError(identity)
        assert err.identity == identity
        assert "2025-01-10 / A / morning" in str(err)


class TestQuantize:
    def test_half_up(self):
        assert quantize_amount(Decimal("10.005")) == Decimal("10.01")
        assert quantize_amount(Decimal("10.004")) == Decimal("10.00")
