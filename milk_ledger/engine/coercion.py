"""Numeric and date coercion for raw operator input and loosely-typed records."""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional

from milk_ledger.models import ZERO, PaymentMethod, Shift

_NON_NUMERIC = re.compile(r"[^0-9.]")
_SIGNED_NUMBER = re.compile(r"^\s*-\s*\d*\.?\d+")


def is_blank(raw: object) -> bool:
    """True when a field was not entered at all (as opposed to entered as zero)."""
    return raw is None or (isinstance(raw, str) and raw.strip() == "")


def parse_non_negative_decimal(raw: object) -> Decimal:
    """Coerce raw input to a non-negative Decimal.

    Text keeps only digits and decimal points; when several points are present
    everything after the first one is joined ("1.2.3" -> 1.23). Empty or
    malformed input, and negative numbers, become 0.
    """
    if raw is None or isinstance(raw, bool):
        return ZERO

    if isinstance(raw, (int, float, Decimal)):
        try:
            value = Decimal(str(raw))
        except InvalidOperation:
            return ZERO
        if not value.is_finite() or value < 0:
            return ZERO
        return value

    text = _NON_NUMERIC.sub("", str(raw))
    if "." in text:
        head, _, tail = text.partition(".")
        text = f"{head}.{tail.replace('.', '')}"
    if text in ("", "."):
        return ZERO
    try:
        return Decimal(text)
    except InvalidOperation:
        return ZERO


def is_negative(raw: object) -> bool:
    """True when raw input explicitly carries a negative number."""
    if raw is None or isinstance(raw, bool):
        return False
    if isinstance(raw, (int, float, Decimal)):
        return raw < 0
    return bool(_SIGNED_NUMBER.match(str(raw)))


def parse_entry_date(raw: object) -> Optional[date]:
    """Return a calendar date, or None when raw is blank or not an ISO date."""
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if is_blank(raw):
        return None
    text = str(raw).strip()[:10]
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


def parse_shift(raw: object) -> Optional[Shift]:
    """Return the shift for raw input, None when blank.

    Raises ValueError for anything other than morning/evening.
    """
    if isinstance(raw, Shift):
        return raw
    if is_blank(raw):
        return None
    return Shift(str(raw).strip().lower())


def raw_method_value(values: Mapping, method: PaymentMethod) -> object:
    """Look up a per-method raw value keyed either by the enum or its value."""
    if method in values:
        return values[method]
    return values.get(method.value)


def coerce_method_values(values: Mapping) -> dict[PaymentMethod, Decimal]:
    return {
        method: parse_non_negative_decimal(raw_method_value(values, method))
        for method in PaymentMethod
    }
