"""Persistence for the ledger's scalar settings (milk rate, default starting milk)."""
from __future__ import annotations

import json
import logging
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

from milk_ledger.models import LedgerSettings

LOGGER = logging.getLogger(__name__)


def _decimal_or_none(raw: object) -> Optional[Decimal]:
    if raw is None or raw == "":
        return None
    try:
        value = Decimal(str(raw))
    except InvalidOperation:
        return None
    if not value.is_finite() or value < 0:
        return None
    return value


class SettingsStore:
    """Reads and writes LedgerSettings as a small JSON document."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else None
        self._settings = self._load()

    def _load(self) -> LedgerSettings:
        if self.path is None or not self.path.exists():
            return LedgerSettings()
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            LOGGER.warning("Settings file %s is unreadable, using defaults", self.path)
            return LedgerSettings()
        return LedgerSettings(
            milk_rate=_decimal_or_none(payload.get("milk_rate")) or Decimal("0"),
            default_starting_milk=_decimal_or_none(payload.get("default_starting_milk")),
        )

    @property
    def current(self) -> LedgerSettings:
        return self._settings

    def update(
        self,
        milk_rate: Optional[Decimal] = None,
        default_starting_milk: Optional[Decimal] = None,
    ) -> LedgerSettings:
        self._settings = LedgerSettings(
            milk_rate=self._settings.milk_rate if milk_rate is None else Decimal(milk_rate),
            default_starting_milk=(
                self._settings.default_starting_milk
                if default_starting_milk is None else Decimal(default_starting_milk)
            ),
        )
        self.save()
        return self._settings

    def save(self) -> None:
        if self.path is None:
            return
        if not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "milk_rate": str(self._settings.milk_rate),
            "default_starting_milk": (
                str(self._settings.default_starting_milk)
                if self._settings.default_starting_milk is not None else None
            ),
        }
        self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
