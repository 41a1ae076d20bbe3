"""AttendancePage - reads the month-wise attendance view of the ERP.

Lives in a frame whose address contains "attendance_class_step1".

DOM structure (as served by the student portal):
  select#months_01 -> option values "01".."12"
  table.table-striped (or #divToPrint table / table.table-bordered)
    tr (first) -> th/td per column: "Subject", "1 Mon", "2 Tue", ...
    tr -> td per column: subject code, then one status per day
  td (somewhere below) -> legend, one "CODE - Name" per line

Changing the month either reloads the frame through a server round trip
or swaps the table in place, depending on the portal layout.
"""

from playwright.async_api import Frame, TimeoutError as PlaywrightTimeoutError

from attendance_bot.errors import TableStructureUnexpected
from attendance_bot.logging import get_logger
from attendance_bot.models import AttendanceTable

log = get_logger(__name__)

# Header row keeps th and td cells; data rows only td, like the portal renders them.
_TABLE_TEXT_JS = """table => Array.from(table.querySelectorAll('tr')).map(
    (row, i) => Array.from(row.querySelectorAll(i === 0 ? 'th, td' : 'td'))
        .map(cell => cell.textContent || '')
)"""


class AttendancePage:
    """Attendance frame of the student portal."""

    MONTH_SELECT = "#months_01"
    ATTENDANCE_TABLE = "table.table-striped, #divToPrint table, table.table-bordered"
    LEGEND_CELL = "td"

    def __init__(
        self,
        frame: Frame,
        *,
        settle_ms: int = 2000,
        reload_timeout_ms: int = 5000,
    ) -> None:
        self.frame = frame
        self.settle_ms = settle_ms
        self.reload_timeout_ms = reload_timeout_ms

    async def select_month(self, month: int) -> None:
        """Select a month and wait for the table to reflect it.

        Waits for network idle when the selection navigates the frame, or
        for a fixed settle delay when the content is replaced in place.

        Args:
            month: Calendar month, 1-12.

        Raises:
            TableStructureUnexpected: If the month dropdown is missing.
        """
        value = f"{month:02d}"
        select = self.frame.locator(self.MONTH_SELECT)
        try:
            await select.wait_for(state="attached")
        except PlaywrightTimeoutError as e:
            raise TableStructureUnexpected(
                f"Month selector {self.MONTH_SELECT} not found in {self.frame.url}"
            ) from e

        # Only the navigation wait may time out into "swapped in place".
        reloaded = True
        try:
            async with self.frame.expect_navigation(timeout=self.reload_timeout_ms):
                try:
                    await select.select_option(value)
                except PlaywrightTimeoutError as e:
                    raise TableStructureUnexpected(
                        f"Month option {value} not offered by {self.MONTH_SELECT}"
                    ) from e
        except PlaywrightTimeoutError:
            reloaded = False

        if reloaded:
            await self.frame.wait_for_load_state("networkidle")
        else:
            await self.frame.wait_for_timeout(self.settle_ms)

        log.info("month_selected", month=value, reloaded=reloaded)

    async def read_legend_cells(self) -> list[str]:
        """Return the rendered text of every table cell in the frame."""
        cells = await self.frame.locator(self.LEGEND_CELL).all_inner_texts()
        log.debug("legend_cells_read", count=len(cells))
        return cells

    async def read_table(self) -> AttendanceTable:
        """Read the attendance grid as text.

        Raises:
            TableStructureUnexpected: If the table or its header row is missing.
        """
        tables = self.frame.locator(self.ATTENDANCE_TABLE)
        if await tables.count() == 0:
            raise TableStructureUnexpected(
                f"Attendance table not found in {self.frame.url}"
            )

        rows: list[list[str]] = await tables.first.evaluate(_TABLE_TEXT_JS)
        if not rows or not rows[0]:
            raise TableStructureUnexpected("Attendance table has no header row")

        table = AttendanceTable(headers=rows[0], rows=rows[1:])
        log.info(
            "attendance_table_read",
            columns=len(table.headers),
            rows=len(table.rows),
            first_header=" ".join(table.headers[0].split()),
            last_header=" ".join(table.headers[-1].split()),
        )
        return table
