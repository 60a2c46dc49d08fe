"""Record store and machine registry.

The ledger core only talks to a store through ``EntryStore``. The in-memory
implementation here enforces identity uniqueness the way a database unique
index would, and can persist itself to a JSON file.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import uuid
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Protocol

from milk_ledger.models import (
    DuplicateEntryError,
    EntryIdentity,
    EntryNotFoundError,
    Machine,
    Shift,
)

LOGGER = logging.getLogger(__name__)

_SHIFT_ORDER = {Shift.MORNING.value: 0, Shift.EVENING.value: 1}


class EntryStore(Protocol):
    def fetch_entries(
        self, date_from: date, date_to: date, machine_id: Optional[str] = None,
    ) -> list[dict]: ...

    def fetch_entry_by_identity(
        self, day: date, machine_id: Optional[str], shift: str,
    ) -> Optional[dict]: ...

    def insert_entry(self, record: dict) -> dict: ...

    def replace_entry(self, entry_id: str, record: dict) -> dict: ...

    def remove_entry(self, entry_id: str) -> bool: ...

    def all_entries(self) -> list[dict]: ...


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class MachineRegistry:
    """Machines known to the ledger; deactivated, never deleted."""

    def __init__(self, machines: Iterable[Machine] = (), path: Optional[Path] = None):
        self._machines: dict[str, Machine] = {m.id: m for m in machines}
        self.path = Path(path) if path else None

    @classmethod
    def load(cls, path: Path) -> "MachineRegistry":
        path = Path(path)
        if not path.exists():
            return cls(path=path)
        payload = json.loads(path.read_text(encoding="utf-8"))
        machines = [
            Machine(
                id=str(item["id"]),
                name=item["name"],
                location=item.get("location", ""),
                is_active=bool(item.get("is_active", True)),
            )
            for item in payload
        ]
        LOGGER.debug("Loaded %d machines from %s", len(machines), path)
        return cls(machines, path=path)

    def save(self) -> None:
        if self.path is None:
            return
        if not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = [dataclasses.asdict(m) for m in self._machines.values()]
        self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def add(self, name: str, location: str = "", machine_id: Optional[str] = None) -> Machine:
        if not name or not name.strip():
            raise ValueError("Machine name is required")
        machine = Machine(
            id=machine_id or uuid.uuid4().hex[:8],
            name=name.strip(),
            location=(location or "").strip(),
        )
        if machine.id in self._machines:
            raise ValueError(f"Machine id already exists: {machine.id}")
        self._machines[machine.id] = machine
        self.save()
        LOGGER.info("Added machine %s (%s)", machine.name, machine.id)
        return machine

    def update(self, machine_id: str, name: Optional[str] = None, location: Optional[str] = None) -> Machine:
        machine = self._require(machine_id)
        if name is not None and not name.strip():
            raise ValueError("Machine name is required")
        updated = dataclasses.replace(
            machine,
            name=name.strip() if name is not None else machine.name,
            location=location.strip() if location is not None else machine.location,
        )
        self._machines[machine_id] = updated
        self.save()
        return updated

    def deactivate(self, machine_id: str) -> Machine:
        updated = dataclasses.replace(self._require(machine_id), is_active=False)
        self._machines[machine_id] = updated
        self.save()
        LOGGER.info("Deactivated machine %s", machine_id)
        return updated

    def get(self, machine_id: Optional[str]) -> Optional[Machine]:
        if machine_id is None:
            return None
        return self._machines.get(machine_id)

    def active_machines(self) -> list[Machine]:
        return sorted((m for m in self._machines.values() if m.is_active), key=lambda m: m.name)

    def all_machines(self) -> list[Machine]:
        return sorted(self._machines.values(), key=lambda m: m.name)

    def _require(self, machine_id: str) -> Machine:
        machine = self._machines.get(machine_id)
        if machine is None:
            raise KeyError(f"Unknown machine: {machine_id}")
        return machine


class InMemoryEntryStore:
    """Entry records keyed by id, unique on (date, machine, shift)."""

    def __init__(
        self,
        records: Iterable[dict] = (),
        path: Optional[Path] = None,
        machines: Optional[MachineRegistry] = None,
    ):
        self._records: dict[str, dict] = {}
        self.path = Path(path) if path else None
        self.machines = machines
        for record in records:
            record = dict(record)
            record.setdefault("id", uuid.uuid4().hex)
            self._records[str(record["id"])] = record

    @classmethod
    def load(cls, path: Path, machines: Optional[MachineRegistry] = None) -> "InMemoryEntryStore":
        path = Path(path)
        if not path.exists():
            return cls(path=path, machines=machines)
        payload = json.loads(path.read_text(encoding="utf-8"))
        LOGGER.debug("Loaded %d entries from %s", len(payload), path)
        return cls(payload, path=path, machines=machines)

    def save(self) -> None:
        if self.path is None:
            return
        if not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = list(self._records.values())
        self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    # --- reads ---

    def fetch_entries(
        self, date_from: date, date_to: date, machine_id: Optional[str] = None,
    ) -> list[dict]:
        lo, hi = date_from.isoformat(), date_to.isoformat()
        matches = [
            r for r in self._records.values()
            if lo <= str(r.get("date", ""))[:10] <= hi
            and (machine_id is None or r.get("atm_id") == machine_id)
        ]
        return [self._joined(r) for r in self._newest_first(matches)]

    def fetch_entry_by_identity(
        self, day: date, machine_id: Optional[str], shift: str,
    ) -> Optional[dict]:
        wanted = (day.isoformat(), machine_id, shift)
        for record in self._records.values():
            if self._key(record) == wanted:
                return self._joined(record)
        return None

    def all_entries(self) -> list[dict]:
        return [self._joined(r) for r in self._newest_first(self._records.values())]

    # --- writes ---

    def insert_entry(self, record: dict) -> dict:
        key = self._key(record)
        if any(self._key(r) == key for r in self._records.values()):
            raise DuplicateEntryError(self._identity(key))

        stored = dict(record)
        stored["id"] = uuid.uuid4().hex
        stored["created_at"] = stored["updated_at"] = _now()
        self._records[stored["id"]] = stored
        self.save()
        LOGGER.debug("Inserted entry %s for %s", stored["id"], key)
        return self._joined(stored)

    def replace_entry(self, entry_id: str, record: dict) -> dict:
        existing = self._records.get(entry_id)
        if existing is None:
            raise EntryNotFoundError(f"No entry with id {entry_id}")

        stored = dict(record)
        # identity key is immutable
        stored["date"] = existing["date"]
        stored["atm_id"] = existing.get("atm_id")
        stored["shift"] = existing.get("shift") or Shift.MORNING.value
        stored["id"] = entry_id
        stored["created_at"] = existing.get("created_at")
        stored["updated_at"] = _now()
        self._records[entry_id] = stored
        self.save()
        LOGGER.debug("Replaced entry %s", entry_id)
        return self._joined(stored)

    def remove_entry(self, entry_id: str) -> bool:
        if entry_id not in self._records:
            raise EntryNotFoundError(f"No entry with id {entry_id}")
        del self._records[entry_id]
        self.save()
        LOGGER.debug("Removed entry %s", entry_id)
        return True

    # --- helpers ---

    @staticmethod
    def _key(record: dict) -> tuple[str, Optional[str], str]:
        return (
            str(record.get("date", ""))[:10],
            record.get("atm_id"),
            record.get("shift") or Shift.MORNING.value,
        )

    @staticmethod
    def _identity(key: tuple[str, Optional[str], str]) -> EntryIdentity:
        return EntryIdentity(date.fromisoformat(key[0]), key[1], Shift(key[2]))

    def _newest_first(self, records: Iterable[dict]) -> list[dict]:
        return sorted(
            records,
            key=lambda r: (str(r.get("date", ""))[:10], _SHIFT_ORDER.get(r.get("shift") or "morning", 0)),
            reverse=True,
        )

    def _joined(self, record: dict) -> dict:
        joined = dict(record)
        machine = self.machines.get(record.get("atm_id")) if self.machines else None
        if machine is not None:
            joined["milk_atms"] = {"name": machine.name, "location": machine.location}
        return joined
