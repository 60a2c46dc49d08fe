"""Display formatting for currency (INR), liters and dates."""

from __future__ import annotations

from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from milk_ledger.engine.coercion import parse_non_negative_decimal


def group_indian(digits: str) -> str:
    """Group an integer digit string the Indian way: 12,34,567."""
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups) + "," + tail


def format_currency(amount: object) -> str:
    """Whole rupees with Indian digit grouping, e.g. ₹1,23,457."""
    value = parse_non_negative_decimal(amount).quantize(Decimal("1"), ROUND_HALF_UP)
    return f"₹{group_indian(str(value))}"


def format_liters(liters: object) -> str:
    value = parse_non_negative_decimal(liters).quantize(Decimal("0.1"), ROUND_HALF_UP)
    whole, _, frac = str(value).partition(".")
    return f"{group_indian(whole)}.{frac or '0'} L"


def format_percentage(value: object) -> str:
    return f"{parse_non_negative_decimal(value).quantize(Decimal('0.1'), ROUND_HALF_UP)}%"


def format_date(day: Optional[date], fmt: str = "%d %b %Y") -> str:
    if day is None:
        return ""
    return day.strftime(fmt)
