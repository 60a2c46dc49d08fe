"""Tests for entry validation."""

import pytest
from decimal import Decimal
from datetime import date

from milk_ledger.engine.validator import validate_draft, validate_entries
from milk_ledger.models import (
    DailyEntry,
    EntryDraft,
    EntryValidationError,
    LedgerSettings,
    MethodPayment,
    PaymentMethod,
    Shift,
    empty_payments,
)

TODAY = date(2025, 1, 31)


def _make_draft(**kwargs) -> EntryDraft:
    defaults = dict(
        date="2025-01-10",
        machine_id="A",
        shift="morning",
        total_milk_loaded="100",
        liters={"cash": "60"},
        amounts={"cash": "3600"},
    )
    defaults.update(kwargs)
    return EntryDraft(**defaults)


def _make_entry(**kwargs) -> DailyEntry:
    payments = empty_payments()
    payments[PaymentMethod.CASH] = MethodPayment(Decimal("60"), Decimal("3600"))
    defaults = dict(
        date=date(2025, 1, 10),
        machine_id="A",
        shift=Shift.MORNING,
        total_milk_loaded=Decimal("100"),
        payments=payments,
        distributed_milk=Decimal("60"),
        leftover_milk=Decimal("40"),
        total_amount=Decimal("3600"),
    )
    defaults.update(kwargs)
    return DailyEntry(**defaults)


class TestValidateDraft:
    def test_valid(self):
        result = validate_draft(_make_draft(), today=TODAY)
        assert result.valid
        assert result.errors == {}

    def test_over_distribution(self):
        result = validate_draft(
            _make_draft(total_milk_loaded="100", liters={"cash": "70", "upi": "50"}),
            today=TODAY,
        )
        assert not result.valid
        assert "distributed_milk" in result.errors
        assert "120" in result.errors["distributed_milk"]

    def test_missing_date(self):
        result = validate_draft(_make_draft(date=""), today=TODAY)
        assert result.errors["date"] == "Date is required"

    def test_invalid_date(self):
        result = validate_draft(_make_draft(date="10/01/2025"), today=TODAY)
        assert "Invalid date" in result.errors["date"]

    def test_future_date(self):
        result = validate_draft(_make_draft(date="2025-02-01"), today=TODAY)
        assert result.errors["date"] == "Date cannot be in the future"

    def test_today_allowed(self):
        assert validate_draft(_make_draft(date="2025-01-31"), today=TODAY).valid

    def test_missing_machine(self):
        result = validate_draft(_make_draft(machine_id=" "), today=TODAY)
        assert "machine_id" in result.errors

    def test_unknown_shift(self):
        result = validate_draft(_make_draft(shift="night"), today=TODAY)
        assert "shift" in result.errors

    def test_blank_milk_is_required(self):
        result = validate_draft(_make_draft(total_milk_loaded=""), today=TODAY)
        assert result.errors["total_milk_loaded"] == "Total milk loaded is required"

    def test_zero_milk_must_be_positive(self):
        result = validate_draft(_make_draft(total_milk_loaded="0", liters={}), today=TODAY)
        assert result.errors["total_milk_loaded"] == "Total milk loaded must be greater than zero"

    def test_negative_milk(self):
        result = validate_draft(_make_draft(total_milk_loaded="-5"), today=TODAY)
        assert result.errors["total_milk_loaded"] == "Total milk loaded cannot be negative"

    def test_negative_liters(self):
        result = validate_draft(_make_draft(liters={"upi": "-3"}), today=TODAY)
        assert "upi_liters" in result.errors

    def test_zero_payment_fields_allowed(self):
        result = validate_draft(
            _make_draft(liters={m.value: "0" for m in PaymentMethod}, amounts={"cash": 0}),
            today=TODAY,
        )
        assert result.valid

    def test_negative_amount_when_rate_disabled(self):
        result = validate_draft(_make_draft(amounts={"card": "-10"}), today=TODAY)
        assert "card" in result.errors

    def test_amounts_ignored_when_rate_enabled(self):
        result = validate_draft(
            _make_draft(amounts={"card": "-10"}),
            LedgerSettings(milk_rate=Decimal("60")),
            today=TODAY,
        )
        assert result.valid

    def test_collects_all_errors(self):
        result = validate_draft(
            EntryDraft(date=None, machine_id=None, total_milk_loaded=None),
            today=TODAY,
        )
        assert set(result.errors) == {"date", "machine_id", "total_milk_loaded"}


class TestValidateEntries:
    def test_valid_entries(self):
        entries = [_make_entry(), _make_entry(shift=Shift.EVENING)]
        assert validate_entries(entries) == entries

    def test_duplicate_identity(self):
        with pytest.raises(EntryValidationError, match="share the identity"):
            validate_entries([_make_entry(), _make_entry()])

    def test_wrong_leftover(self):
        with pytest.raises(EntryValidationError) as exc_info:
            validate_entries([_make_entry(leftover_milk=Decimal("10"))])
        assert any(k.endswith("leftover_milk") for k in exc_info.value.errors)

    def test_wrong_total_amount(self):
        with pytest.raises(EntryValidationError) as exc_info:
            validate_entries([_make_entry(total_amount=Decimal("100"))])
        assert any(k.endswith("total_amount") for k in exc_info.value.errors)

    def test_distributed_mismatch(self):
        with pytest.raises(EntryValidationError) as exc_info:
            validate_entries([_make_entry(distributed_milk=Decimal("50"), leftover_milk=Decimal("50"))])
        assert any(k.endswith("distributed_milk") for k in exc_info.value.errors)
