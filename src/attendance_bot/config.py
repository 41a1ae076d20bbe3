"""Bot configuration loaded from environment variables.

Credentials are required; everything else has defaults matching the
BBS ERP student portal.
"""

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class BotConfig(BaseSettings):
    """Attendance bot configuration loaded from environment variables.

    For local development, create a .env file in the project root.
    """

    # Credentials (required)
    portal_username: str = Field(description="ERP student login")
    portal_password: str = Field(description="ERP student password")
    notify_bot_token: str = Field(description="Telegram bot token")
    notify_chat_id: str = Field(description="Telegram chat receiving alerts")

    # Portal layout
    portal_url: str = Field(
        default="https://erp.bbs.ac.in",
        description="ERP base URL",
    )
    login_path: str = Field(
        default="/indexLogin.php",
        description="Login page path relative to portal_url",
    )
    dashboard_url_pattern: str = Field(
        default="**/students/index.php",
        description="Glob the page URL must match once login succeeded",
    )
    attendance_url: str = Field(
        default="",
        description="Direct URL of the attendance view (empty: navigate via menu)",
    )
    attendance_frame_marker: str = Field(
        default="attendance_class_step1",
        description="Substring identifying the attendance frame address",
    )
    attendance_link_pattern: str = Field(
        default=r"Attendance.*%age",
        description="Case-insensitive regex for the left-navigation link text",
    )
    tree_link_selectors: list[str] = Field(
        default=["#tree-5-link", "#tree-10-link"],
        description="Menu anchors clicked in order when the text link is absent",
    )

    # Login form selectors
    username_selector: str = Field(default="#login")
    password_selector: str = Field(default="#passwd")
    submit_selector: str = Field(default="#btnSubmit")

    # Timing (milliseconds)
    login_timeout_ms: int = Field(
        default=20000,
        description="Deadline for reaching the dashboard after submitting login",
    )
    settle_ms: int = Field(
        default=2000,
        description="Fixed delay letting frames settle after load or in-place swaps",
    )
    frame_wait_ms: int = Field(
        default=3000,
        description="How long to wait for the attendance frame after a menu click",
    )
    month_reload_timeout_ms: int = Field(
        default=5000,
        description="How long a month change may take to start a frame navigation",
    )
    default_timeout_ms: int = Field(
        default=30000,
        description="Playwright default action and navigation timeout",
    )

    # Run behaviour
    timezone: str = Field(
        default="Asia/Kolkata",
        description="Timezone deciding 'today' and the checked-at timestamp",
    )
    screenshot_path: str = Field(
        default="attendance.png",
        description="Where the full-page screenshot is written",
    )
    headless: bool = Field(default=True)
    notify_all_present: bool = Field(
        default=True,
        description="Send a confirmation when no absence is recorded today",
    )
    notify_no_class: bool = Field(
        default=False,
        description="Send a heartbeat when today has no attendance column",
    )

    # Telegram transport
    telegram_api_url: str = Field(default="https://api.telegram.org")
    request_timeout: float = Field(
        default=30.0,
        description="HTTP timeout in seconds for Telegram calls",
    )

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (for scheduled runs)",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    @field_validator("timezone")
    @classmethod
    def known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone {value!r}") from e
        return value

    model_config = {
        "env_prefix": "",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def login_url(self) -> str:
        return f"{self.portal_url.rstrip('/')}{self.login_path}"


# Singleton pattern
_config: BotConfig | None = None


def get_config() -> BotConfig:
    """Get the bot configuration singleton.

    Returns:
        BotConfig: Bot configuration instance

    Raises:
        pydantic.ValidationError: If a required credential is missing.
    """
    global _config
    if _config is None:
        _config = BotConfig()
    return _config
