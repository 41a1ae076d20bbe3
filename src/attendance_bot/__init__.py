"""Daily ERP attendance checker with Telegram alerts.

Logs into the student portal, reads today's column of the month-wise
attendance table, and reports absences (with a screenshot) to a chat.
"""

from attendance_bot.models import AbsenceRecord, AttendanceTable, CheckResult, DayColumn
from attendance_bot.parsing import find_day_column, is_absent, parse_legend, scan_absences
from attendance_bot.runner import AttendanceRun, RunState, main

__all__ = [
    "AbsenceRecord",
    "AttendanceRun",
    "AttendanceTable",
    "CheckResult",
    "DayColumn",
    "RunState",
    "find_day_column",
    "is_absent",
    "main",
    "parse_legend",
    "scan_absences",
]
