"""Pure text functions turning attendance page content into structured data.

Nothing here touches the browser: the page objects hand over plain strings
and these functions decide what they mean. Format notes from the portal:

  Legend: one big <td> with entries stacked on separate lines,
    "BAS-202 - Engg. Chemistry"
    "BIO-110 - Biology"
  Header row: "Subject", "1 Mon", "2 Tue", ... "31 Fri" (day number first)
  Status cells: "P", "PP" (lab present), "A", "AA" (lab absent), "-" (no class)
"""

import re
from collections.abc import Iterable

from attendance_bot.logging import get_logger
from attendance_bot.models import AbsenceRecord, AttendanceTable, DayColumn

log = get_logger(__name__)

LEGEND_SEPARATOR = " - "

# Separator must sit inside the first 20 characters to count as "code - name"
MAX_CODE_OFFSET = 20

# Summary/footer rows that reuse the attendance table layout
NON_SUBJECT_MARKERS: tuple[str, ...] = ("Total", "Legend", "G.")

_WHITESPACE = re.compile(r"\s+")


def normalize_whitespace(text: str) -> str:
    """Collapse whitespace runs to single spaces and trim."""
    return _WHITESPACE.sub(" ", text).strip()


def _looks_like_subject_code(code: str) -> bool:
    return (
        bool(code)
        and not any(ch.isspace() for ch in code)
        and re.search(r"[A-Z]", code) is not None
        and re.search(r"\d", code) is not None
    )


def parse_legend_line(line: str) -> tuple[str, str] | None:
    """Split one legend line into (code, name), or None if it is not one."""
    text = line.strip()
    idx = text.find(LEGEND_SEPARATOR)
    if not 0 < idx < MAX_CODE_OFFSET:
        return None

    code = text[:idx].strip()
    name = text[idx + len(LEGEND_SEPARATOR) :].strip()
    if not _looks_like_subject_code(code):
        return None
    return code, name


def parse_legend(cell_texts: Iterable[str]) -> dict[str, str]:
    """Build the subject code -> name map from table cell texts.

    Every cell is split into lines and each line is tried on its own, so a
    single cell can contribute several entries. Later entries overwrite
    earlier ones with the same code. Never raises; an empty map is valid.

    Args:
        cell_texts: Inner text of every <td> on the attendance page.

    Returns:
        Mapping like {"BAS-202": "Engg. Chemistry"}.
    """
    legend: dict[str, str] = {}
    for text in cell_texts:
        for line in (text or "").strip().split("\n"):
            entry = parse_legend_line(line)
            if entry is not None:
                code, name = entry
                legend[code] = name
    return legend


def find_day_column(headers: list[str], day: int) -> DayColumn | None:
    """Locate the header column for a day of the month.

    The day number has to open the header text and end on a word boundary,
    so "26 Wed" matches day 26 while "126" never matches day 1. The first
    match from the left wins.

    Returns:
        DayColumn with the whitespace-normalized header, or None when the
        month has no column for that day (holiday, weekend).
    """
    pattern = re.compile(rf"^\s*{day}\b")
    for index, text in enumerate(headers):
        if pattern.match(text or ""):
            return DayColumn(index=index, header=normalize_whitespace(text))
    return None


def is_absent(status: str) -> bool:
    """True for "A" and "AA"; "P", "PP", "-" and unknown markers are not absences."""
    return "A" in status


def _is_subject_code(code: str) -> bool:
    return bool(code) and not any(marker in code for marker in NON_SUBJECT_MARKERS)


def scan_absences(
    table: AttendanceTable, legend: dict[str, str], column_index: int
) -> list[AbsenceRecord]:
    """Collect subjects marked absent in the given column, in row order.

    Rows too short to reach the column are skipped, as are empty codes and
    total/legend footer rows. Inputs are not modified.
    """
    absences: list[AbsenceRecord] = []
    for cells in table.rows:
        if len(cells) <= column_index:
            log.debug("row_skipped", reason="ragged", cells=len(cells))
            continue

        code = (cells[0] or "").strip()
        if not _is_subject_code(code):
            continue

        status = (cells[column_index] or "").strip()
        log.debug("subject_status", code=code, status=status)
        if is_absent(status):
            absences.append(AbsenceRecord(code=code, name=legend.get(code, code)))

    return absences
