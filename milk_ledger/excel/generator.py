"""Layer 6 — Excel Export Generator.

Writes a fresh three-sheet workbook: one row per entry plus a totals row,
summary metrics, and payment-method totals.
Excel formulas are NOT relied upon — all values are pre-computed in Python.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Sequence

import openpyxl
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from milk_ledger.engine.aggregation import average_per_entry
from milk_ledger.models import DailyEntry, PaymentMethod
from milk_ledger.reports.builders import method_lines, summarize, totals_row

DAILY_SHEET = "Daily Entries"
SUMMARY_SHEET = "Summary"
PAYMENT_SHEET = "Payment Methods"

HEADER_ROW = 1
DATA_START_ROW = 2

# Formatting constants
THIN_BORDER = Border(
    left=Side(style='thin'),
    right=Side(style='thin'),
    top=Side(style='thin'),
    bottom=Side(style='thin'),
)

HEADER_FONT = Font(name='Calibri', size=11, bold=True)
DATA_FONT = Font(name='Calibri', size=11)
HEADER_FILL = PatternFill(start_color='DDEBF7', end_color='DDEBF7', fill_type='solid')
TOTALS_FILL = PatternFill(start_color='F2F2F2', end_color='F2F2F2', fill_type='solid')
CENTER_ALIGN = Alignment(horizontal='center', vertical='center')
RUPEE_FORMAT = '"₹"#,##0.00'
LITERS_FORMAT = '#,##0.0'
PERCENT_FORMAT = '0.0'
DATE_FORMAT = 'dd-mmm-yyyy'


def daily_headers() -> list[str]:
    headers = ['Date', 'Machine', 'Shift', 'Milk Loaded (L)', 'Distributed (L)', 'Leftover (L)']
    for method in PaymentMethod:
        headers.append(f'{method.label} (L)')
        headers.append(f'{method.label} (₹)')
    headers.append('Total Amount (₹)')
    return headers


def _write_header(ws, headers: list[str]) -> None:
    for col, label in enumerate(headers, start=1):
        cell = ws.cell(row=HEADER_ROW, column=col)
        cell.value = label
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = CENTER_ALIGN
        cell.border = THIN_BORDER


def _write_number(ws, row: int, col: int, value, number_format: str, font=DATA_FONT) -> None:
    cell = ws.cell(row=row, column=col)
    cell.value = float(value)
    cell.number_format = number_format
    cell.font = font
    cell.border = THIN_BORDER


def _write_daily_sheet(ws, entries: Sequence[DailyEntry]) -> None:
    headers = daily_headers()
    _write_header(ws, headers)

    row_num = DATA_START_ROW
    for entry in entries:
        day = entry.date
        date_cell = ws.cell(row=row_num, column=1)
        date_cell.value = datetime(day.year, day.month, day.day)
        date_cell.number_format = DATE_FORMAT
        date_cell.alignment = CENTER_ALIGN
        date_cell.border = THIN_BORDER
        ws.cell(row=row_num, column=2).value = entry.machine_name or entry.machine_id or ''
        ws.cell(row=row_num, column=3).value = entry.shift.value.capitalize()

        _write_number(ws, row_num, 4, entry.total_milk_loaded, LITERS_FORMAT)
        _write_number(ws, row_num, 5, entry.distributed_milk, LITERS_FORMAT)
        _write_number(ws, row_num, 6, entry.leftover_milk, LITERS_FORMAT)
        col = 7
        for method in PaymentMethod:
            _write_number(ws, row_num, col, entry.liters_for(method), LITERS_FORMAT)
            _write_number(ws, row_num, col + 1, entry.amount_for(method), RUPEE_FORMAT)
            col += 2
        _write_number(ws, row_num, col, entry.total_amount, RUPEE_FORMAT)
        row_num += 1

    if not entries:
        return

    # --- Totals row ---
    totals = totals_row(entries)
    ws.cell(row=row_num, column=1).value = totals.label
    ws.cell(row=row_num, column=1).font = HEADER_FONT
    _write_number(ws, row_num, 4, totals.total_milk_loaded, LITERS_FORMAT, HEADER_FONT)
    _write_number(ws, row_num, 5, totals.distributed_milk, LITERS_FORMAT, HEADER_FONT)
    _write_number(ws, row_num, 6, totals.leftover_milk, LITERS_FORMAT, HEADER_FONT)
    col = 7
    for method in PaymentMethod:
        _write_number(ws, row_num, col, totals.liters[method], LITERS_FORMAT, HEADER_FONT)
        _write_number(ws, row_num, col + 1, totals.amounts[method], RUPEE_FORMAT, HEADER_FONT)
        col += 2
    _write_number(ws, row_num, col, totals.total_amount, RUPEE_FORMAT, HEADER_FONT)
    for c in range(1, len(headers) + 1):
        ws.cell(row=row_num, column=c).fill = TOTALS_FILL

    # --- Column widths ---
    ws.column_dimensions['A'].width = 14
    ws.column_dimensions['B'].width = 18
    for c in range(3, len(headers) + 1):
        ws.column_dimensions[get_column_letter(c)].width = 16


def _write_summary_sheet(ws, entries: Sequence[DailyEntry]) -> None:
    _write_header(ws, ['Metric', 'Value'])
    summary = summarize(entries)
    metrics = [
        ('Total Entries', summary.entry_count, '0'),
        ('Total Milk Loaded (L)', summary.total_loaded, LITERS_FORMAT),
        ('Total Milk Distributed (L)', summary.total_distributed, LITERS_FORMAT),
        ('Total Leftover (L)', summary.total_leftover, LITERS_FORMAT),
        ('Total Revenue (₹)', summary.total_revenue, RUPEE_FORMAT),
        ('Average Leftover per Entry (L)',
         average_per_entry(entries, 'leftover_milk'), LITERS_FORMAT),
    ]
    for offset, (label, value, number_format) in enumerate(metrics):
        row = DATA_START_ROW + offset
        ws.cell(row=row, column=1).value = label
        ws.cell(row=row, column=1).border = THIN_BORDER
        _write_number(ws, row, 2, value, number_format)

    ws.column_dimensions['A'].width = 34
    ws.column_dimensions['B'].width = 18


def _write_payment_sheet(ws, entries: Sequence[DailyEntry]) -> None:
    _write_header(ws, ['Payment Method', 'Liters', 'Total (₹)', 'Share (%)'])
    lines = method_lines(entries)
    row = DATA_START_ROW
    for line in lines:
        ws.cell(row=row, column=1).value = line.label
        ws.cell(row=row, column=1).border = THIN_BORDER
        _write_number(ws, row, 2, line.liters, LITERS_FORMAT)
        _write_number(ws, row, 3, line.amount, RUPEE_FORMAT)
        _write_number(ws, row, 4, line.percentage, PERCENT_FORMAT)
        row += 1

    ws.cell(row=row, column=1).value = 'TOTAL'
    ws.cell(row=row, column=1).font = HEADER_FONT
    _write_number(ws, row, 2, sum(line.liters for line in lines), LITERS_FORMAT, HEADER_FONT)
    _write_number(ws, row, 3, sum(line.amount for line in lines), RUPEE_FORMAT, HEADER_FONT)

    ws.column_dimensions['A'].width = 22
    for col in ('B', 'C', 'D'):
        ws.column_dimensions[col].width = 16


def generate_excel_export(
    entries: Sequence[DailyEntry],
    output_path: str | Path,
) -> Path:
    """Write the three-sheet export workbook and return its path."""
    output_path = Path(output_path)

    wb = openpyxl.Workbook()
    daily_ws = wb.active
    daily_ws.title = DAILY_SHEET
    _write_daily_sheet(daily_ws, entries)
    _write_summary_sheet(wb.create_sheet(SUMMARY_SHEET), entries)
    _write_payment_sheet(wb.create_sheet(PAYMENT_SHEET), entries)

    wb.save(str(output_path))
    return output_path
