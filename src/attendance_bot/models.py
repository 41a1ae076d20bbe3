"""Pydantic models for attendance data.

All data structures use Pydantic v2 for validation and type safety.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class AttendanceTable(BaseModel):
    """Month-scoped attendance grid as read from the portal.

    headers holds the first row (column 0 is the subject code); rows holds
    the cell texts of every later row, index-aligned with headers.
    Rows may be ragged.
    """

    headers: list[str]
    rows: list[list[str]] = []


class DayColumn(BaseModel):
    """Today's column in the attendance table."""

    model_config = ConfigDict(frozen=True)

    index: int
    header: str  # Whitespace-normalized, e.g. "15 Fri"


class AbsenceRecord(BaseModel):
    """A subject marked absent today."""

    model_config = ConfigDict(frozen=True)

    code: str  # e.g. "BAS-202"
    name: str  # Legend name, or the bare code when the legend lacks it

    @property
    def label(self) -> str:
        return f"{self.code} – {self.name}"


class CheckResult(BaseModel):
    """Outcome of one attendance check."""

    checked_at: datetime
    day_column: DayColumn | None = None
    absences: list[AbsenceRecord] = []
    screenshot: str | None = None

    @property
    def has_class_today(self) -> bool:
        return self.day_column is not None
