"""Run orchestrator: one attendance check from login to notification.

Run with: attendance-bot            (or python -m attendance_bot)
Debug:    attendance-bot --headed

Exit codes:
  0 = success, including days without an attendance column
  1 = any failure (an error notification is attempted first)
"""

import argparse
import asyncio
from collections.abc import Callable
from datetime import datetime, timezone
from enum import Enum
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from attendance_bot.config import BotConfig, get_config
from attendance_bot.logging import get_logger, setup_logging
from attendance_bot.models import CheckResult
from attendance_bot.notifier import (
    TelegramNotifier,
    format_absence_alert,
    format_all_present,
    format_error,
    format_no_class,
    format_photo_caption,
)
from attendance_bot.parsing import find_day_column, parse_legend, scan_absences
from attendance_bot.session import PortalSession

log = get_logger(__name__)


class RunState(str, Enum):
    STARTING = "starting"
    LOGGING_IN = "logging_in"
    NAVIGATING_TO_VIEW = "navigating_to_view"
    SELECTING_MONTH = "selecting_month"
    PARSING_LEGEND = "parsing_legend"
    LOCATING_COLUMN = "locating_column"
    SCANNING_ROWS = "scanning_rows"
    NOTIFYING = "notifying"
    DONE = "done"
    FAILED = "failed"


class AttendanceRun:
    """Sequences one check and owns its browser session.

    Every exception ends in FAILED: one error notification is attempted
    (its own failure is only logged) and execute() returns 1. The browser
    is closed on every path.
    """

    def __init__(
        self,
        config: BotConfig,
        notifier: TelegramNotifier,
        *,
        session_factory: Callable[[BotConfig], PortalSession] = PortalSession,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config
        self.notifier = notifier
        self.session_factory = session_factory
        self._clock = clock or (lambda: datetime.now(ZoneInfo(config.timezone)))
        self.state = RunState.STARTING
        self.result: CheckResult | None = None

    def _transition(self, state: RunState) -> None:
        log.debug("run_state", previous=self.state.value, state=state.value)
        self.state = state

    async def execute(self) -> int:
        """Run the check and notify.

        Returns:
            Process exit status.
        """
        self.state = RunState.STARTING

        try:
            now = self._clock()
            log.info("attendance_check_started", date=now.date().isoformat())
            async with self.session_factory(self.config) as session:
                self.result = await self.check(session, now)
            await self._notify(self.result)
        except Exception as e:
            failed_in = self.state
            self._transition(RunState.FAILED)
            log.exception("run_failed", state=failed_in.value, error=str(e))
            await self._report_failure(e)
            return 1

        self._transition(RunState.DONE)
        log.info("attendance_check_finished")
        return 0

    async def check(self, session: PortalSession, now: datetime) -> CheckResult:
        """Log in, read today's column and collect absences."""
        self._transition(RunState.LOGGING_IN)
        await session.login()

        self._transition(RunState.NAVIGATING_TO_VIEW)
        view = await session.open_attendance_view()

        self._transition(RunState.SELECTING_MONTH)
        await view.select_month(now.month)

        self._transition(RunState.PARSING_LEGEND)
        legend = parse_legend(await view.read_legend_cells())
        log.info("legend_parsed", subjects=len(legend), legend=legend)

        self._transition(RunState.LOCATING_COLUMN)
        table = await view.read_table()
        column = find_day_column(table.headers, now.day)
        if column is None:
            log.info("no_class_today", day=now.day)
            return CheckResult(checked_at=now)
        log.info("day_column_located", index=column.index, header=column.header)

        self._transition(RunState.SCANNING_ROWS)
        absences = scan_absences(table, legend, column.index)
        log.info("rows_scanned", absences=[record.code for record in absences])

        screenshot = await session.screenshot(self.config.screenshot_path)
        return CheckResult(
            checked_at=now,
            day_column=column,
            absences=absences,
            screenshot=screenshot,
        )

    async def _send(self, text: str) -> None:
        await asyncio.to_thread(self.notifier.send_message, text)

    async def _notify(self, result: CheckResult) -> None:
        if not result.has_class_today:
            if self.config.notify_no_class:
                self._transition(RunState.NOTIFYING)
                await self._send(format_no_class(result.checked_at))
            return

        self._transition(RunState.NOTIFYING)
        header = result.day_column.header
        if result.absences:
            await self._send(
                format_absence_alert(header, result.checked_at, result.absences)
            )
            if result.screenshot:
                await asyncio.to_thread(
                    self.notifier.send_photo,
                    result.screenshot,
                    format_photo_caption(header),
                )
            log.info("absence_alert_sent", count=len(result.absences))
        elif self.config.notify_all_present:
            await self._send(format_all_present(header, result.checked_at))
            log.info("all_present_sent")
        else:
            log.info("all_present", notified=False)

    def _failure_time(self) -> datetime:
        try:
            return self._clock()
        except Exception:
            # The configured clock may be what failed
            return datetime.now(timezone.utc)

    async def _report_failure(self, error: Exception) -> None:
        try:
            await self._send(format_error(error, self._failure_time()))
        except Exception as e:
            log.warning("error_notification_failed", error=str(e))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments using argparse."""
    parser = argparse.ArgumentParser(
        description="Check today's ERP attendance and alert on Telegram.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Launch browser in headed mode (visible window).",
    )
    parser.add_argument(
        "--screenshot",
        type=str,
        default=None,
        help="Path for the attendance screenshot (default: SCREENSHOT_PATH).",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    try:
        config = get_config()
    except ValidationError as e:
        setup_logging()
        missing = [".".join(str(part) for part in err["loc"]) for err in e.errors()]
        log.error("config_invalid", fields=missing)
        return 1

    updates: dict = {}
    if args.headed:
        updates["headless"] = False
    if args.screenshot:
        updates["screenshot_path"] = args.screenshot
    if updates:
        config = config.model_copy(update=updates)

    setup_logging(json_output=config.log_json, log_level=config.log_level)
    run = AttendanceRun(config, TelegramNotifier.from_config(config))
    return asyncio.run(run.execute())
