"""Layer 6 — JSON Backup Export.

A backup is a JSON array of canonical entries; it can be imported again
through the reconciliation import path.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Sequence

from milk_ledger.models import DailyEntry
from milk_ledger.parsers.record_normalizer import to_canonical_dict


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal and date values."""
    def default(self, obj):
        if isinstance(obj, Decimal):
            return float(obj)
        if isinstance(obj, (date, datetime)):
            return obj.isoformat()
        return super().default(obj)


def generate_backup_list(entries: Sequence[DailyEntry]) -> list[dict]:
    """Build the backup payload from canonical entries (no file I/O)."""
    return [to_canonical_dict(e) for e in entries]


def backup_json(entries: Sequence[DailyEntry]) -> str:
    return json.dumps(generate_backup_list(entries), indent=2, cls=DecimalEncoder)


def write_backup(entries: Sequence[DailyEntry], output_path: str | Path) -> Path:
    """Write a JSON backup file of the given entries."""
    output_path = Path(output_path)
    output_path.write_text(backup_json(entries), encoding='utf-8')
    return output_path
