"""Application settings and configuration.

This module defines all configuration options for the Connection Core service.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Connection Core", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    debug: bool = Field(default=False, alias="DEBUG")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 30,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )

    # Database configuration
    database_url: str = Field(default="sqlite:///./connection.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Redis configuration for the shared preference cache
    redis_url: str = Field(default="redis://localhost:6379", alias="REDIS_URL")
    preference_cache_backend: str = Field(default="memory", alias="PREFERENCE_CACHE_BACKEND")
    preference_cache_ttl_seconds: int = Field(
        default=300,
        alias="PREFERENCE_CACHE_TTL_SECONDS",
    )

    # Push delivery provider (Expo-compatible HTTP API)
    push_enabled: bool = Field(default=False, alias="PUSH_ENABLED")
    push_api_url: str = Field(
        default="https://exp.host/--/api/v2/push/send",
        alias="PUSH_API_URL",
    )
    push_access_token: str | None = Field(default=None, alias="PUSH_ACCESS_TOKEN")
    push_http_timeout_seconds: float = Field(default=10.0, alias="PUSH_HTTP_TIMEOUT_SECONDS")
    push_batch_size: int = Field(default=100, alias="PUSH_BATCH_SIZE")

    # Notification listing
    notification_page_size: int = Field(default=50, alias="NOTIFICATION_PAGE_SIZE")
    notification_max_page_size: int = Field(default=100, alias="NOTIFICATION_MAX_PAGE_SIZE")

    # Platform-wide events are announced to users within this radius
    event_nearby_radius_miles: float = Field(default=25.0, alias="EVENT_NEARBY_RADIUS_MILES")

    # Scheduled jobs
    scheduler_enabled: bool = Field(default=False, alias="SCHEDULER_ENABLED")
    event_reminder_interval_seconds: float = Field(
        default=3600.0,
        alias="EVENT_REMINDER_INTERVAL_SECONDS",
    )
    weekly_digest_interval_seconds: float = Field(
        default=3600.0,
        alias="WEEKLY_DIGEST_INTERVAL_SECONDS",
    )
    engagement_interval_seconds: float = Field(
        default=6 * 3600.0,
        alias="ENGAGEMENT_INTERVAL_SECONDS",
    )
    inactivity_interval_seconds: float = Field(
        default=24 * 3600.0,
        alias="INACTIVITY_INTERVAL_SECONDS",
    )

    # Engagement nudge thresholds
    community_activity_threshold: int = Field(default=5, alias="COMMUNITY_ACTIVITY_THRESHOLD")
    community_min_members: int = Field(default=10, alias="COMMUNITY_MIN_MEMBERS")
    event_rsvp_threshold: int = Field(default=20, alias="EVENT_RSVP_THRESHOLD")
    event_lookahead_days: int = Field(default=14, alias="EVENT_LOOKAHEAD_DAYS")
    apologetics_min_answer_length: int = Field(
        default=100,
        alias="APOLOGETICS_MIN_ANSWER_LENGTH",
    )
    max_users_active_community: int = Field(default=15, alias="MAX_USERS_ACTIVE_COMMUNITY")
    max_users_popular_event: int = Field(default=20, alias="MAX_USERS_POPULAR_EVENT")
    max_users_apologetics: int = Field(default=15, alias="MAX_USERS_APOLOGETICS")
    cooldown_active_community_hours: int = Field(
        default=48,
        alias="COOLDOWN_ACTIVE_COMMUNITY_HOURS",
    )
    cooldown_popular_event_hours: int = Field(
        default=72,
        alias="COOLDOWN_POPULAR_EVENT_HOURS",
    )
    cooldown_apologetics_hours: int = Field(default=96, alias="COOLDOWN_APOLOGETICS_HOURS")
    cooldown_admin_hours: int = Field(default=24, alias="COOLDOWN_ADMIN_HOURS")
    inactivity_after_days: int = Field(default=14, alias="INACTIVITY_AFTER_DAYS")
    inactivity_give_up_days: int = Field(default=90, alias="INACTIVITY_GIVE_UP_DAYS")
    bot_user_ids: list[int] = Field(default=[1, 2, 3, 4, 5], alias="BOT_USER_IDS")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
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

        Converts asyncpg URLs to psycopg for Alembic migrations and scripts.
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url


settings = Settings()  # type: ignore[call-arg]
