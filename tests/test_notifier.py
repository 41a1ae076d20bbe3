from datetime import datetime
from unittest.mock import MagicMock
from zoneinfo import ZoneInfo

import pytest
import requests

from attendance_bot.errors import NotificationDeliveryError
from attendance_bot.models import AbsenceRecord
from attendance_bot.notifier import (
    TelegramNotifier,
    format_absence_alert,
    format_all_present,
    format_error,
    format_photo_caption,
)

CHECKED_AT = datetime(2026, 10, 15, 21, 30, 5, tzinfo=ZoneInfo("Asia/Kolkata"))


def _response(status_code=200, payload=None, text=""):
    resp = MagicMock()
    resp.status_code = status_code
    resp.ok = 200 <= status_code < 300
    resp.json.return_value = payload if payload is not None else {"ok": True}
    resp.text = text
    return resp


def _notifier(session):
    return TelegramNotifier("123:abc", "42", session=session, timeout=5)


def test_absence_alert_lists_each_subject():
    absences = [
        AbsenceRecord(code="BAS-202", name="Engg. Chemistry"),
        AbsenceRecord(code="BIO-110", name="Biology & Lab"),
    ]
    text = format_absence_alert("15 Fri", CHECKED_AT, absences)

    assert "Absent in 2 subject(s)" in text
    assert "• BAS-202 – Engg. Chemistry" in text
    assert "• BIO-110 – Biology &amp; Lab" in text
    assert "15 Fri" in text
    assert "15/10/2026, 09:30:05 pm" in text


def test_all_present_includes_date_and_time():
    text = format_all_present("15 Fri", CHECKED_AT)
    assert "All Present" in text
    assert "15 Fri" in text
    assert "09:30:05 pm" in text


def test_error_message_escapes_description():
    text = format_error(ValueError("bad <table>"), CHECKED_AT)
    assert "<code>bad &lt;table&gt;</code>" in text
    assert "Bot Error" in text


def test_error_message_falls_back_to_exception_name():
    assert "RuntimeError" in format_error(RuntimeError(), CHECKED_AT)


def test_photo_caption():
    assert format_photo_caption("15 Fri") == "Attendance – 15 Fri"


def test_send_message_posts_html_payload():
    session = MagicMock()
    session.post.return_value = _response()

    _notifier(session).send_message("<b>hi</b>")

    session.post.assert_called_once_with(
        "https://api.telegram.org/bot123:abc/sendMessage",
        timeout=5,
        json={"chat_id": "42", "text": "<b>hi</b>", "parse_mode": "HTML"},
    )


def test_send_message_rejected_raises_with_status_and_body():
    session = MagicMock()
    session.post.return_value = _response(
        400, {"ok": False}, '{"ok":false,"description":"chat not found"}'
    )

    with pytest.raises(NotificationDeliveryError) as excinfo:
        _notifier(session).send_message("hi")

    assert excinfo.value.method == "sendMessage"
    assert excinfo.value.status_code == 400
    assert "chat not found" in excinfo.value.body


def test_send_message_ok_false_in_body_raises():
    session = MagicMock()
    session.post.return_value = _response(200, {"ok": False}, '{"ok":false}')

    with pytest.raises(NotificationDeliveryError):
        _notifier(session).send_message("hi")


def test_send_message_transport_failure_raises():
    session = MagicMock()
    session.post.side_effect = requests.ConnectionError("offline")

    with pytest.raises(NotificationDeliveryError) as excinfo:
        _notifier(session).send_message("hi")

    assert excinfo.value.status_code is None
    assert "offline" in str(excinfo.value)


def test_send_photo_uploads_file(tmp_path):
    photo = tmp_path / "attendance.png"
    photo.write_bytes(b"\x89PNG fake")
    session = MagicMock()
    session.post.return_value = _response()

    _notifier(session).send_photo(str(photo), "Attendance – 15 Fri")

    url = session.post.call_args.args[0]
    kwargs = session.post.call_args.kwargs
    assert url.endswith("/sendPhoto")
    assert kwargs["data"] == {"chat_id": "42", "caption": "Attendance – 15 Fri"}
    assert kwargs["files"]["photo"] == ("attendance.png", b"\x89PNG fake", "image/png")


def test_send_photo_missing_file_raises(tmp_path):
    session = MagicMock()

    with pytest.raises(NotificationDeliveryError):
        _notifier(session).send_photo(str(tmp_path / "missing.png"))

    session.post.assert_not_called()
