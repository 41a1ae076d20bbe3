"""Error hierarchy for the attendance bot.

Nothing here is retried: every error propagates to the run orchestrator,
which sends one best-effort error notification and exits with status 1.
"""


class AttendanceBotError(Exception):
    """Base exception for all attendance bot errors."""

    pass


class ScrapingError(AttendanceBotError):
    """Failure while driving or reading the ERP portal."""

    pass


class AuthenticationTimeout(ScrapingError):
    """Login did not reach the post-login dashboard within the deadline.

    Usually wrong credentials or the portal being down.
    """

    pass


class ViewNotFound(ScrapingError):
    """No navigation strategy located the attendance view.

    Carries every frame address observed on the page for diagnosis.
    """

    def __init__(self, frame_urls: list[str]) -> None:
        self.frame_urls = list(frame_urls)
        super().__init__(
            "Attendance frame not found. Available frames: "
            + (", ".join(self.frame_urls) or "(none)")
        )


class TableStructureUnexpected(ScrapingError):
    """An expected element (month selector, table, header row) is missing."""

    pass


class NotificationDeliveryError(AttendanceBotError):
    """The Telegram Bot API rejected a send or could not be reached."""

    def __init__(
        self, method: str, status_code: int | None = None, body: str = ""
    ) -> None:
        self.method = method
        self.status_code = status_code
        self.body = body
        status = status_code if status_code is not None else "no response"
        super().__init__(f"{method} failed ({status}): {body}")
