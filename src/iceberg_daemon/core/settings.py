"""Application settings and configuration.

This module defines all configuration options for the Iceberg daemon.
Settings are loaded from environment variables with sensible defaults.
Consensus thresholds live in a separate rules document (see
``iceberg_daemon.core.rules``); this module only knows where to find it.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Iceberg Daemon", alias="APP_NAME")
    app_version: str = Field(default="0.2.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(default="sqlite:///./iceberg.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")
    auto_create_tables: bool = Field(default=True, alias="AUTO_CREATE_TABLES")

    # Consensus rules document (JSON); missing file means built-in defaults
    rules_path: str = Field(
        default="config/consensus_rules.json",
        alias="CONSENSUS_RULES_PATH",
    )

    # Background reconciliation
    scheduler_enabled: bool = Field(default=True, alias="SCHEDULER_ENABLED")
    moderation_check_hours: float = Field(default=24.0, alias="MODERATION_CHECK_HOURS")
    moderation_first_run_delay_seconds: float = Field(
        default=60.0,
        alias="MODERATION_FIRST_RUN_DELAY_SECONDS",
    )
    metrics_snapshot_days: float = Field(default=7.0, alias="METRICS_SNAPSHOT_DAYS")
    min_votes_for_review: int = Field(default=5, alias="MIN_VOTES_FOR_REVIEW")
    report_threshold_percent: float = Field(default=50.0, alias="REPORT_THRESHOLD_PERCENT")
    sweep_batch_size: int = Field(default=100, alias="SWEEP_BATCH_SIZE")

    # Fixed-window rate limiting (window in milliseconds, max requests per window)
    rate_limit_general_window_ms: int = Field(default=60_000, alias="RATE_LIMIT_GENERAL_WINDOW_MS")
    rate_limit_general_max: int = Field(default=100, alias="RATE_LIMIT_GENERAL_MAX")
    rate_limit_items_window_ms: int = Field(default=3_600_000, alias="RATE_LIMIT_ITEMS_WINDOW_MS")
    rate_limit_items_max: int = Field(default=10, alias="RATE_LIMIT_ITEMS_MAX")
    rate_limit_votes_window_ms: int = Field(default=60_000, alias="RATE_LIMIT_VOTES_WINDOW_MS")
    rate_limit_votes_max: int = Field(default=60, alias="RATE_LIMIT_VOTES_MAX")
    rate_limit_reports_window_ms: int = Field(
        default=3_600_000,
        alias="RATE_LIMIT_REPORTS_WINDOW_MS",
    )
    rate_limit_reports_max: int = Field(default=20, alias="RATE_LIMIT_REPORTS_MAX")
    rate_limit_cleanup_seconds: float = Field(default=300.0, alias="RATE_LIMIT_CLEANUP_SECONDS")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.
        """
        url = self.database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def rate_limit_buckets(self) -> dict[str, tuple[int, int]]:
        """Return the named rate-limit buckets as ``(window_ms, max_requests)``."""
        return {
            "general": (self.rate_limit_general_window_ms, self.rate_limit_general_max),
            "items": (self.rate_limit_items_window_ms, self.rate_limit_items_max),
            "votes": (self.rate_limit_votes_window_ms, self.rate_limit_votes_max),
            "reports": (self.rate_limit_reports_window_ms, self.rate_limit_reports_max),
        }


settings = Settings()
