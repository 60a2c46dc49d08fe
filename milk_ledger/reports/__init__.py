"""Report builders."""
from milk_ledger.reports.builders import (
    build_daily_range_report,
    build_leftover_analysis,
    build_monthly_report,
    build_payment_method_report,
    build_weekly_report,
)

__all__ = [
    "build_daily_range_report",
    "build_leftover_analysis",
    "build_monthly_report",
    "build_payment_method_report",
    "build_weekly_report",
]
