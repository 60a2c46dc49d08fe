"""Calculation and validation engines."""
from milk_ledger.engine.validator import validate_draft, validate_entries
from milk_ledger.engine.calculator import compose_entry

__all__ = ["validate_draft", "validate_entries", "compose_entry"]
