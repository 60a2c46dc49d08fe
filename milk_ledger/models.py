"""Layer 2 — Canonical Data Model for the milk ledger."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import NamedTuple, Optional

ZERO = Decimal("0")
CENT = Decimal("0.01")
TENTH = Decimal("0.1")


def quantize_amount(value: Decimal) -> Decimal:
    """Round a currency amount to two decimals (half-up)."""
    return value.quantize(CENT, ROUND_HALF_UP)


class PaymentMethod(Enum):
    CASH = "cash"
    UPI = "upi"
    CARD = "card"
    UDHAAR_PERMANENT = "udhaar_permanent"
    UDHAAR_TEMPORARY = "udhaar_temporary"
    OTHERS = "others"

    @property
    def label(self) -> str:
        return _METHOD_LABELS[self]


_METHOD_LABELS = {
    PaymentMethod.CASH: "Cash",
    PaymentMethod.UPI: "UPI",
    PaymentMethod.CARD: "Card",
    PaymentMethod.UDHAAR_PERMANENT: "Udhaar Permanent",
    PaymentMethod.UDHAAR_TEMPORARY: "Udhaar Temporary",
    PaymentMethod.OTHERS: "Others",
}


class Shift(Enum):
    MORNING = "morning"
    EVENING = "evening"

    @property
    def order(self) -> int:
        return 0 if self is Shift.MORNING else 1


class RecordShape(Enum):
    """Which record layout an entry was resolved from."""
    LEGACY = "legacy"      # single machine, single shift, no per-method liters
    CURRENT = "current"    # multi-machine, multi-shift


@dataclass(frozen=True)
class Machine:
    """A milk dispensing unit (ATM)."""
    id: str
    name: str
    location: str = ""
    is_active: bool = True


@dataclass(frozen=True)
class MethodPayment:
    """Liters sold and money collected through one payment method."""
    liters: Decimal = ZERO
    amount: Decimal = ZERO

    def __post_init__(self) -> None:
        for name, val in [("liters", self.liters), ("amount", self.amount)]:
            if val < 0:
                raise ValueError(f"'{name}' must not be negative, got {val}")


def empty_payments() -> dict[PaymentMethod, MethodPayment]:
    return {method: MethodPayment() for method in PaymentMethod}


class EntryIdentity(NamedTuple):
    date: date
    machine_id: Optional[str]
    shift: Shift


@dataclass
class DailyEntry:
    """One shift's record at one machine on one date (canonical form)."""
    date: date
    machine_id: Optional[str]
    shift: Shift
    total_milk_loaded: Decimal
    payments: dict[PaymentMethod, MethodPayment] = field(default_factory=empty_payments)
    distributed_milk: Decimal = ZERO
    leftover_milk: Decimal = ZERO
    total_amount: Decimal = ZERO

    id: Optional[str] = None
    machine_name: Optional[str] = None
    machine_location: Optional[str] = None
    shape: RecordShape = RecordShape.CURRENT
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def identity(self) -> EntryIdentity:
        return EntryIdentity(self.date, self.machine_id, self.shift)

    def liters_for(self, method: PaymentMethod) -> Decimal:
        return self.payments.get(method, MethodPayment()).liters

    def amount_for(self, method: PaymentMethod) -> Decimal:
        return self.payments.get(method, MethodPayment()).amount

    @property
    def method_liters_total(self) -> Decimal:
        return sum((p.liters for p in self.payments.values()), ZERO)

    @property
    def method_amount_total(self) -> Decimal:
        return sum((p.amount for p in self.payments.values()), ZERO)


@dataclass
class EntryDraft:
    """Raw entry form input, before coercion and validation.

    ``liters`` and ``amounts`` are keyed by ``PaymentMethod`` or its string
    value; values are whatever the operator typed.
    ``entry_id`` names the stored entry the form was opened on, if any.
    """
    date: object = None
    machine_id: Optional[str] = None
    shift: object = None
    total_milk_loaded: object = None
    liters: dict = field(default_factory=dict)
    amounts: dict = field(default_factory=dict)
    entry_id: Optional[str] = None


@dataclass(frozen=True)
class LedgerSettings:
    """Process-wide settings read when an entry is composed."""
    milk_rate: Decimal = ZERO
    default_starting_milk: Optional[Decimal] = None

    def __post_init__(self) -> None:
        if self.milk_rate < 0:
            raise ValueError(f"Milk rate must not be negative, got {self.milk_rate}")
        if self.default_starting_milk is not None and self.default_starting_milk < 0:
            raise ValueError(
                f"Default starting milk must not be negative, got {self.default_starting_milk}"
            )

    @property
    def rate_enabled(self) -> bool:
        return self.milk_rate > 0


class EntryValidationError(Exception):
    """Raised when an entry fails field-level validation."""
    def __init__(self, errors: dict[str, str]):
        self.errors = errors
        super().__init__(f"Entry validation failed with {len(errors)} error(s):\n" +
                         "\n".join(f"  - {k}: {v}" for k, v in errors.items()))


class MappingError(Exception):
    """Raised when a stored or imported record cannot be mapped to an entry."""


class DuplicateEntryError(Exception):
    """Raised by a store when an entry with the same identity already exists."""
    def __init__(self, identity: EntryIdentity):
        self.identity = identity
        machine = identity.machine_id or "-"
        super().__init__(
            f"Entry already exists for {identity.date.isoformat()} / {machine} / {identity.shift.value}"
        )


class EntryNotFoundError(Exception):
    """Raised by a store when an entry id is unknown."""
