"""Excel export."""
from milk_ledger.excel.generator import generate_excel_export

__all__ = ["generate_excel_export"]
