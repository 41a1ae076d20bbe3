"""Telegram notifications for attendance results.

Message templates use Telegram's HTML parse mode; text coming from the
portal or from exceptions is escaped before it is embedded.
"""

import html
from datetime import datetime
from pathlib import Path

import requests

from attendance_bot.config import BotConfig
from attendance_bot.errors import NotificationDeliveryError
from attendance_bot.logging import get_logger
from attendance_bot.models import AbsenceRecord

log = get_logger(__name__)

# Telegram rejects photo captions longer than this
MAX_CAPTION_LENGTH = 1024


def format_checked_time(moment: datetime) -> str:
    """Render a timestamp like "18/10/2026, 09:30:00 pm"."""
    return moment.strftime("%d/%m/%Y, %I:%M:%S %p").lower()


def format_all_present(day_header: str, checked_at: datetime) -> str:
    return (
        "✅ <b>All Present!</b>\n\n"
        f"📅 <b>Date:</b> {html.escape(day_header)}\n"
        f"🕐 <b>Checked:</b> {format_checked_time(checked_at)}\n\n"
        "No absence recorded in any subject today 🎉"
    )


def format_absence_alert(
    day_header: str, checked_at: datetime, absences: list[AbsenceRecord]
) -> str:
    bullets = "\n".join(f"• {html.escape(record.label)}" for record in absences)
    return (
        "⚠️ <b>ATTENDANCE ALERT</b> 🚨\n\n"
        f"📅 <b>Date:</b> {html.escape(day_header)}\n"
        f"🕐 <b>Checked:</b> {format_checked_time(checked_at)}\n\n"
        f"❌ <b>Absent in {len(absences)} subject(s):</b>\n"
        f"{bullets}"
    )


def format_error(error: BaseException | str, checked_at: datetime) -> str:
    description = str(error) or type(error).__name__
    return (
        "🔴 <b>Bot Error!</b>\n\n"
        f"<code>{html.escape(description)}</code>\n\n"
        f"⏰ {format_checked_time(checked_at)}"
    )


def format_no_class(checked_at: datetime) -> str:
    return (
        "ℹ️ <b>No class today</b>\n\n"
        f"📅 {checked_at.strftime('%d/%m/%Y')} has no attendance column.\n"
        f"🕐 <b>Checked:</b> {format_checked_time(checked_at)}"
    )


def format_photo_caption(day_header: str) -> str:
    return f"Attendance – {day_header}"[:MAX_CAPTION_LENGTH]


class TelegramNotifier:
    """Sends messages and photos to one Telegram chat through the Bot API."""

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        *,
        api_url: str = "https://api.telegram.org",
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.chat_id = chat_id
        self.base_url = f"{api_url.rstrip('/')}/bot{bot_token}"
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config: BotConfig) -> "TelegramNotifier":
        return cls(
            config.notify_bot_token,
            config.notify_chat_id,
            api_url=config.telegram_api_url,
            timeout=config.request_timeout,
        )

    def send_message(self, text: str) -> None:
        """Send an HTML-formatted text message.

        Raises:
            NotificationDeliveryError: If Telegram rejects the message.
        """
        self._post(
            "sendMessage",
            json={"chat_id": self.chat_id, "text": text, "parse_mode": "HTML"},
        )
        log.info("message_sent", chars=len(text))

    def send_photo(self, photo_path: str, caption: str = "") -> None:
        """Upload a photo with an optional caption.

        Raises:
            NotificationDeliveryError: If the file is unreadable or Telegram
                rejects the upload.
        """
        path = Path(photo_path)
        try:
            photo = path.read_bytes()
        except OSError as e:
            raise NotificationDeliveryError("sendPhoto", None, str(e)) from e

        self._post(
            "sendPhoto",
            data={"chat_id": self.chat_id, "caption": caption[:MAX_CAPTION_LENGTH]},
            files={"photo": (path.name, photo, "image/png")},
        )
        log.info("photo_sent", path=str(path), size=len(photo))

    def _post(self, method: str, **kwargs) -> dict:
        try:
            resp = self.session.post(
                f"{self.base_url}/{method}", timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            log.error("telegram_unreachable", method=method, error=str(e))
            raise NotificationDeliveryError(method, None, str(e)) from e

        if not resp.ok:
            log.error("telegram_rejected", method=method, status=resp.status_code)
            raise NotificationDeliveryError(method, resp.status_code, resp.text)

        try:
            payload = resp.json()
        except ValueError:
            payload = {}
        if payload.get("ok") is False:
            log.error("telegram_rejected", method=method, status=resp.status_code)
            raise NotificationDeliveryError(method, resp.status_code, resp.text)
        return payload
