"""
Timesheets Module.

Weekly hours logged by the vendor against an active contract and approved
or rejected by the client.  Approved sheets are the input to invoicing.
"""

from bench_modules.timesheets.models import (
    HoursSummary,
    Timesheet,
    TimesheetEntry,
    TimesheetEntryInput,
    TimesheetStatus,
)
from bench_modules.timesheets.workflows import TIMESHEET_WORKFLOW

__all__ = [
    "HoursSummary",
    "Timesheet",
    "TimesheetEntry",
    "TimesheetEntryInput",
    "TimesheetStatus",
    "TIMESHEET_WORKFLOW",
]
