"""Record normalization and backup parsing layer."""
from milk_ledger.parsers.backup_parser import BackupFormatError, parse_backup, parse_backup_text
from milk_ledger.parsers.record_normalizer import (
    normalize_record,
    normalize_records,
    resolve_shape,
    to_canonical_dict,
    to_record,
)

__all__ = [
    "BackupFormatError",
    "parse_backup",
    "parse_backup_text",
    "normalize_record",
    "normalize_records",
    "resolve_shape",
    "to_canonical_dict",
    "to_record",
]
