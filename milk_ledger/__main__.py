"""CLI entry point.

Usage:
    python -m milk_ledger machine-add "Sector 7" --location "Main road"
    python -m milk_ledger add-entry --date 2025-01-10 --machine ab12cd34 \
        --shift morning --loaded 500 --liters cash=200 --liters upi=150 \
        --amount cash=12000 --amount upi=9000
    python -m milk_ledger report monthly --year 2025 --month 1
    python -m milk_ledger export-excel --out milk-report.xlsx
    python -m milk_ledger import-json backup.json

Data lives in $MILK_LEDGER_DATA_DIR (default: ./data).
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

import typer

from milk_ledger.models import EntryDraft, EntryNotFoundError, PaymentMethod, Shift

app = typer.Typer(help="Milk ATM ledger: shift entries, reports and backups.", no_args_is_help=True)

REPORT_KINDS = ("daily", "weekly", "monthly", "payments", "leftover")


def _service():
    from milk_ledger.config import load_config
    from milk_ledger.service import LedgerService
    from milk_ledger.settings import SettingsStore
    from milk_ledger.store import InMemoryEntryStore, MachineRegistry

    config = load_config()
    machines = MachineRegistry.load(config.machines_path)
    store = InMemoryEntryStore.load(config.entries_path, machines=machines)
    return LedgerService(store, machines, SettingsStore(config.settings_path))


_METHOD_KEYS = tuple(m.value for m in PaymentMethod)


def _parse_pairs(pairs: list[str], option: str) -> dict[str, str]:
    values: dict[str, str] = {}
    for pair in pairs:
        method, sep, value = pair.partition("=")
        if not sep:
            typer.echo(f"ERROR: {option} expects method=value, got {pair!r}", err=True)
            raise typer.Exit(1)
        key = method.strip().lower()
        if key not in _METHOD_KEYS:
            typer.echo(
                f"ERROR: {option} has unknown payment method {key!r}; expected one of {', '.join(_METHOD_KEYS)}",
                err=True,
            )
            raise typer.Exit(1)
        values[key] = value.strip()
    return values


def _parse_day(raw: Optional[str], option: str) -> Optional[date]:
    if raw is None:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        typer.echo(f"ERROR: {option} must be YYYY-MM-DD, got {raw!r}", err=True)
        raise typer.Exit(1)


def _parse_amount(raw: str, name: str) -> Decimal:
    try:
        return Decimal(raw)
    except InvalidOperation:
        typer.echo(f"ERROR: {name} must be a number, got {raw!r}", err=True)
        raise typer.Exit(1)


def _update_settings(**changes):
    try:
        return _service().settings_store.update(**changes)
    except ValueError as e:
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(1)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command("add-entry")
def add_entry(
    entry_date: str = typer.Option(date.today().isoformat(), "--date", help="Entry date (YYYY-MM-DD)"),
    machine: str = typer.Option(..., "--machine", help="Machine id"),
    shift: str = typer.Option(Shift.MORNING.value, "--shift", help="morning or evening"),
    loaded: Optional[str] = typer.Option(None, "--loaded", help="Total milk loaded (L); defaults to the configured starting milk"),
    liters: list[str] = typer.Option([], "--liters", help="Liters per payment method, e.g. cash=200"),
    amount: list[str] = typer.Option([], "--amount", help="Amount per payment method, e.g. cash=12000"),
) -> None:
    """Create or update the entry for (date, machine, shift)."""
    from milk_ledger.formatters import format_currency, format_liters

    service = _service()
    day = _parse_day(entry_date, "--date")
    prefill = service.new_draft(day, machine, Shift(shift) if shift in ("morning", "evening") else None)

    draft = EntryDraft(
        date=entry_date,
        machine_id=machine,
        shift=shift,
        total_milk_loaded=loaded if loaded is not None else prefill.total_milk_loaded,
        liters={**prefill.liters, **_parse_pairs(liters, "--liters")},
        amounts={**prefill.amounts, **_parse_pairs(amount, "--amount")},
    )
    outcome = service.submit(draft)

    if not outcome.ok:
        typer.echo("ENTRY REJECTED:", err=True)
        for name, message in outcome.errors.items():
            typer.echo(f"  {name}: {message}", err=True)
        raise typer.Exit(1)

    entry = outcome.entry
    typer.echo(f"Entry {outcome.status.value}: {entry.date} / {entry.machine_name or entry.machine_id} / {entry.shift.value}")
    typer.echo(f"  Loaded:      {format_liters(entry.total_milk_loaded)}")
    typer.echo(f"  Distributed: {format_liters(entry.distributed_milk)}")
    typer.echo(f"  Leftover:    {format_liters(entry.leftover_milk)}")
    typer.echo(f"  Collected:   {format_currency(entry.total_amount)}")


@app.command("delete-entry")
def delete_entry(entry_id: str = typer.Argument(..., help="Entry id")) -> None:
    """Delete an entry."""
    try:
        _service().delete(entry_id)
    except EntryNotFoundError as e:
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Deleted entry {entry_id}")


@app.command("report")
def report(
    kind: str = typer.Argument(..., help="daily, weekly, monthly, payments or leftover"),
    from_date: Optional[str] = typer.Option(None, "--from", help="Range start (YYYY-MM-DD)"),
    to_date: Optional[str] = typer.Option(None, "--to", help="Range end (YYYY-MM-DD)"),
    week_of: Optional[str] = typer.Option(None, "--week-of", help="Any date in the wanted week"),
    year: Optional[int] = typer.Option(None, "--year"),
    month: Optional[int] = typer.Option(None, "--month"),
    machine: Optional[str] = typer.Option(None, "--machine", help="Restrict to one machine"),
) -> None:
    """Print a report."""
    from milk_ledger.formatters import format_currency, format_date, format_liters, format_percentage

    if kind not in REPORT_KINDS:
        typer.echo(f"ERROR: report must be one of {', '.join(REPORT_KINDS)}", err=True)
        raise typer.Exit(1)

    service = _service()
    today = date.today()
    end = _parse_day(to_date, "--to") or today
    start = _parse_day(from_date, "--from") or (end - timedelta(days=30))

    if kind == "daily":
        result = service.daily_report(start, end, machine)
        typer.echo(f"Daily entries {format_date(start)} - {format_date(end)}")
        for row in result.rows + [result.totals]:
            typer.echo(
                f"  {row.label:<10} {row.machine_name or '':<14} {row.shift or '':<8}"
                f" loaded {format_liters(row.total_milk_loaded):>10}"
                f" sold {format_liters(row.distributed_milk):>10}"
                f" left {format_liters(row.leftover_milk):>9}"
                f" {format_currency(row.total_amount):>12}"
            )

    elif kind == "weekly":
        result = service.weekly_report(_parse_day(week_of, "--week-of") or today, machine)
        s = result.summary
        typer.echo(f"Week {format_date(result.week_start)} - {format_date(result.week_end)}")
        typer.echo(f"  Distributed: {format_liters(s.total_distributed)} (avg {format_liters(s.avg_distributed)})")
        typer.echo(f"  Avg leftover: {format_liters(s.avg_leftover)}")
        typer.echo(f"  Revenue: {format_currency(s.total_revenue)}")
        for line in result.payments:
            typer.echo(f"    {line.label:<17} {format_liters(line.liters):>10} {format_currency(line.amount):>12} {format_percentage(line.percentage):>7}")
        for day in result.days:
            typer.echo(f"  {format_date(day.date)}  sold {format_liters(day.distributed)}  left {format_liters(day.leftover)}  {format_currency(day.revenue)}")

    elif kind == "monthly":
        result = service.monthly_report(year or today.year, month or today.month, machine)
        s = result.summary
        typer.echo(f"Month {result.month:02d}/{result.year}: {s.entry_count} entries")
        typer.echo(f"  Distributed: {format_liters(s.total_distributed)} (avg {format_liters(s.avg_distributed)})")
        typer.echo(f"  Revenue: {format_currency(s.total_revenue)}")
        typer.echo(f"  Avg leftover: {format_liters(s.avg_leftover)} (~{format_currency(result.avg_leftover_value)} at {format_currency(result.implied_rate)}/L)")
        for week in result.weeks:
            typer.echo(f"    Week {week.week_number}: sold {format_liters(week.distributed)}, {format_currency(week.revenue)}, {week.count} entries")
        for line in result.machines:
            typer.echo(f"    {line.name}: sold {format_liters(line.distributed)}, {format_currency(line.revenue)}")

    elif kind == "payments":
        result = service.payment_report(start, end, machine)
        typer.echo(f"Payments {format_date(start)} - {format_date(end)}: {format_currency(result.total_amount)}")
        for line in result.methods:
            typer.echo(f"  {line.label:<17} {format_currency(line.amount):>12} {format_percentage(line.percentage):>7}")

    else:
        result = service.leftover_report(start, end, machine)
        typer.echo(f"Leftover {format_date(start)} - {format_date(end)}: {format_liters(result.total_leftover)} over {result.entry_count} entries")
        typer.echo(f"  Average: {format_liters(result.avg_leftover)}  last 7: {format_liters(result.avg_last_7)}  last 15: {format_liters(result.avg_last_15)}")
        if result.highest is not None:
            typer.echo(f"  Highest: {format_liters(result.highest.leftover_milk)} on {format_date(result.highest.date)}")
            typer.echo(f"  Lowest:  {format_liters(result.lowest.leftover_milk)} on {format_date(result.lowest.date)}")
        typer.echo(f"  {result.insight.message}")


@app.command("export-excel")
def export_excel(
    out: str = typer.Option("milk-report.xlsx", "--out", help="Output Excel file path"),
    from_date: Optional[str] = typer.Option(None, "--from"),
    to_date: Optional[str] = typer.Option(None, "--to"),
) -> None:
    """Export entries to a three-sheet Excel workbook."""
    path = _service().export_excel(Path(out), _parse_day(from_date, "--from"), _parse_day(to_date, "--to"))
    typer.echo(f"Excel report saved to: {path}")


@app.command("export-json")
def export_json(out: str = typer.Option("milk-backup.json", "--out", help="Output JSON file path")) -> None:
    """Write a JSON backup of every entry."""
    path = _service().export_backup(Path(out))
    typer.echo(f"Backup saved to: {path}")


@app.command("import-json")
def import_json(path: str = typer.Argument(..., help="JSON backup file")) -> None:
    """Import a JSON backup; entries that already exist are skipped."""
    from milk_ledger.parsers import BackupFormatError, parse_backup

    try:
        records = parse_backup(path)
    except BackupFormatError as e:
        typer.echo(f"IMPORT FAILED: {e}", err=True)
        raise typer.Exit(1)

    result = _service().import_backup(records)
    typer.echo(f"Imported {result.imported} entries ({result.skipped} skipped, {result.failed} failed)")
    for item in result.results:
        if item.reason and item.status.value == "failed":
            typer.echo(f"  record {item.index}: {item.reason}", err=True)


@app.command("machine-add")
def machine_add(
    name: str = typer.Argument(...),
    location: str = typer.Option("", "--location"),
) -> None:
    """Register a machine."""
    try:
        machine = _service().machines.add(name, location)
    except ValueError as e:
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Added machine {machine.name} with id {machine.id}")


@app.command("machine-list")
def machine_list(show_all: bool = typer.Option(False, "--all", help="Include deactivated machines")) -> None:
    """List machines."""
    registry = _service().machines
    machines = registry.all_machines() if show_all else registry.active_machines()
    for machine in machines:
        status = "" if machine.is_active else " (inactive)"
        typer.echo(f"{machine.id}  {machine.name}  {machine.location}{status}")


@app.command("machine-deactivate")
def machine_deactivate(machine_id: str = typer.Argument(...)) -> None:
    """Deactivate a machine; its past entries are kept."""
    try:
        machine = _service().machines.deactivate(machine_id)
    except KeyError as e:
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Deactivated machine {machine.name}")


@app.command("set-rate")
def set_rate(rate: str = typer.Argument(..., help="Price per liter; 0 disables automatic amounts")) -> None:
    """Set the milk rate used to compute payment amounts from liters."""
    settings = _update_settings(milk_rate=_parse_amount(rate, "rate"))
    typer.echo(f"Milk rate set to {settings.milk_rate}")


@app.command("set-default-milk")
def set_default_milk(liters: str = typer.Argument(..., help="Default starting milk for new entries")) -> None:
    """Set the milk-loaded value pre-filled for new entries."""
    settings = _update_settings(default_starting_milk=_parse_amount(liters, "liters"))
    typer.echo(f"Default starting milk set to {settings.default_starting_milk} L")


if __name__ == "__main__":
    app()
