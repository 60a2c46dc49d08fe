"""Layer 1 — JSON backup reader.

Reads a backup file into a list of loosely-typed records. Mapping each
record to an entry is the normalizer's job, not this module's.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Union


class BackupFormatError(Exception):
    """Raised when a backup file is not a JSON array of records."""


def parse_backup_text(text: str) -> list[dict]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise BackupFormatError(f"Invalid JSON backup: {e}") from e

    if not isinstance(data, list):
        raise BackupFormatError(
            f"Backup must be a JSON array of entries, got {type(data).__name__}"
        )
    return data


def parse_backup(path: Union[str, Path]) -> list[dict]:
    """Read and parse a JSON backup file."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise BackupFormatError(f"Failed to read backup file {path}: {e}") from e
    return parse_backup_text(text)
