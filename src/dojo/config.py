"""Engine configuration loaded from environment variables.

For local development, create a .env file in the project root.
"""

from zoneinfo import ZoneInfo

from pydantic import Field
from pydantic_settings import BaseSettings


class DojoConfig(BaseSettings):
    """Engine configuration loaded from environment variables.

    Variables are read with a ``DOJO_`` prefix, e.g. ``DOJO_DATA_DIR``.
    """

    # Storage
    data_dir: str = Field(
        default="data",
        description="Directory holding the per-city JSON documents",
    )

    # Calendar
    school_timezone: str = Field(
        default="America/Sao_Paulo",
        description="IANA zone of the school's local calendar day",
    )
    next_class_horizon_days: int = Field(
        default=60,
        description="How many days ahead the next-class lookup searches",
    )

    # Messaging API (cloud functions backend)
    api_base_url: str = Field(
        default="https://us-central1-akad-fbe7e.cloudfunctions.net/app",
        description="Base URL for the city list and messaging endpoints",
    )
    portal_url: str = Field(
        default="https://akad-fbe7e.web.app",
        description="Student portal URL used for achievement deep links",
    )
    notifications_enabled: bool = Field(
        default=True,
        description="Send push notifications through the messaging API",
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for every outgoing HTTP request",
    )

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (for production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = {
        "env_prefix": "DOJO_",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.school_timezone)


# Singleton pattern
_config: DojoConfig | None = None


def get_config() -> DojoConfig:
    """Get the engine configuration singleton.

    Returns:
        DojoConfig: Engine configuration instance
    """
    global _config
    if _config is None:
        _config = DojoConfig()
    return _config


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() re-reads the env."""
    global _config
    _config = None
