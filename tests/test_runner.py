import asyncio
from datetime import datetime
from unittest.mock import MagicMock
from zoneinfo import ZoneInfo

import pytest

from attendance_bot.config import BotConfig
from attendance_bot.errors import AuthenticationTimeout, NotificationDeliveryError
from attendance_bot.models import AbsenceRecord, AttendanceTable
from attendance_bot.runner import AttendanceRun, RunState, main

LEGEND_CELLS = ["Subject", "BAS-202 - Engg. Chemistry\nBIO-110 - Biology"]
HEADERS = ["Subject", "8", "9", "10", "11", "12", "13", "15 Fri", "16 Sat"]


class FakeView:
    def __init__(self, table):
        self.table = table
        self.months = []

    async def select_month(self, month):
        self.months.append(month)

    async def read_legend_cells(self):
        return list(LEGEND_CELLS)

    async def read_table(self):
        return self.table


class FakeSession:
    def __init__(self, table, login_error=None):
        self.view = FakeView(table)
        self.login_error = login_error
        self.closed = False
        self.screenshots = []

    def __call__(self, config):
        return self

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.closed = True

    async def login(self):
        if self.login_error:
            raise self.login_error

    async def open_attendance_view(self):
        return self.view

    async def screenshot(self, path):
        self.screenshots.append(path)
        return path


@pytest.fixture
def config(tmp_path):
    return BotConfig(
        _env_file=None,
        portal_username="student",
        portal_password="secret",
        notify_bot_token="123:abc",
        notify_chat_id="42",
        screenshot_path=str(tmp_path / "attendance.png"),
    )


def _clock(day):
    return lambda: datetime(2026, 10, day, 21, 0, tzinfo=ZoneInfo("Asia/Kolkata"))


def _run(config, session, day=15):
    notifier = MagicMock()
    run = AttendanceRun(config, notifier, session_factory=session, clock=_clock(day))
    code = asyncio.run(run.execute())
    return run, notifier, code


def test_absence_alert_with_screenshot(config):
    table = AttendanceTable(
        headers=HEADERS,
        rows=[
            ["BAS-202", "P", "P", "A", "P", "P", "P", "A", "P"],
            ["BIO-110", "P", "P", "P", "P", "P", "P", "P", "P"],
        ],
    )
    session = FakeSession(table)

    run, notifier, code = _run(config, session)

    assert code == 0
    assert run.state is RunState.DONE
    assert session.view.months == [10]
    assert run.result.absences == [
        AbsenceRecord(code="BAS-202", name="Engg. Chemistry")
    ]
    text = notifier.send_message.call_args.args[0]
    assert "Absent in 1 subject(s)" in text
    assert "BAS-202 – Engg. Chemistry" in text
    notifier.send_photo.assert_called_once_with(
        config.screenshot_path, "Attendance – 15 Fri"
    )
    assert session.closed


def test_no_class_today_exits_quietly(config):
    table = AttendanceTable(headers=["Subject", "2 Mon", "12 Thu", "126"], rows=[])
    session = FakeSession(table)

    run, notifier, code = _run(config, session, day=1)

    assert code == 0
    assert run.state is RunState.DONE
    assert run.result.day_column is None
    notifier.send_message.assert_not_called()
    notifier.send_photo.assert_not_called()
    assert session.screenshots == []
    assert session.closed


def test_no_class_heartbeat_when_enabled(config):
    config = config.model_copy(update={"notify_no_class": True})
    session = FakeSession(AttendanceTable(headers=["Subject", "2 Mon"]))

    _, notifier, code = _run(config, session, day=1)

    assert code == 0
    assert "No class today" in notifier.send_message.call_args.args[0]


def test_all_present_confirmation_without_photo(config):
    table = AttendanceTable(
        headers=HEADERS,
        rows=[
            ["BAS-202", "A", "P", "P", "P", "P", "P", "P", "P"],
            ["BIO-110", "P", "P", "P", "P", "P", "P", "-", "P"],
        ],
    )

    _, notifier, code = _run(config, FakeSession(table))

    assert code == 0
    notifier.send_message.assert_called_once()
    assert "All Present" in notifier.send_message.call_args.args[0]
    notifier.send_photo.assert_not_called()


def test_all_present_silent_when_disabled(config):
    config = config.model_copy(update={"notify_all_present": False})
    table = AttendanceTable(
        headers=HEADERS, rows=[["BAS-202", "P", "P", "P", "P", "P", "P", "P", "P"]]
    )

    _, notifier, code = _run(config, FakeSession(table))

    assert code == 0
    notifier.send_message.assert_not_called()


def test_failure_sends_error_and_exits_nonzero(config):
    session = FakeSession(
        AttendanceTable(headers=HEADERS),
        login_error=AuthenticationTimeout("Login did not reach the dashboard"),
    )

    run, notifier, code = _run(config, session)

    assert code == 1
    assert run.state is RunState.FAILED
    text = notifier.send_message.call_args.args[0]
    assert "Bot Error" in text
    assert "Login did not reach the dashboard" in text
    assert session.closed


def test_failed_error_notification_is_swallowed(config):
    session = FakeSession(
        AttendanceTable(headers=HEADERS),
        login_error=AuthenticationTimeout("timeout"),
    )
    notifier = MagicMock()
    notifier.send_message.side_effect = NotificationDeliveryError("sendMessage", 502, "")
    run = AttendanceRun(config, notifier, session_factory=session, clock=_clock(15))

    assert asyncio.run(run.execute()) == 1
    assert run.state is RunState.FAILED


def test_rejected_alert_fails_run(config):
    table = AttendanceTable(
        headers=HEADERS, rows=[["BAS-202", "P", "P", "P", "P", "P", "P", "A", "P"]]
    )
    notifier = MagicMock()
    notifier.send_message.side_effect = [
        NotificationDeliveryError("sendMessage", 400, "chat not found"),
        None,
    ]
    run = AttendanceRun(
        config, notifier, session_factory=FakeSession(table), clock=_clock(15)
    )

    assert asyncio.run(run.execute()) == 1
    assert notifier.send_message.call_count == 2
    notifier.send_photo.assert_not_called()


def test_main_reports_missing_configuration(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in ("PORTAL_USERNAME", "PORTAL_PASSWORD", "NOTIFY_BOT_TOKEN", "NOTIFY_CHAT_ID"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("attendance_bot.config._config", None)

    assert main([]) == 1


def test_failure_before_login_still_reports(config):
    def broken_clock():
        raise ValueError("clock unavailable")

    session = FakeSession(AttendanceTable(headers=HEADERS))
    notifier = MagicMock()
    run = AttendanceRun(config, notifier, session_factory=session, clock=broken_clock)

    assert asyncio.run(run.execute()) == 1
    assert run.state is RunState.FAILED
    assert "clock unavailable" in notifier.send_message.call_args.args[0]
    assert session.closed is False


def test_main_rejects_unknown_timezone(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("PORTAL_USERNAME", "student")
    monkeypatch.setenv("PORTAL_PASSWORD", "secret")
    monkeypatch.setenv("NOTIFY_BOT_TOKEN", "123:abc")
    monkeypatch.setenv("NOTIFY_CHAT_ID", "42")
    monkeypatch.setenv("TIMEZONE", "Not/AZone")
    monkeypatch.setattr("attendance_bot.config._config", None)

    assert main([]) == 1
