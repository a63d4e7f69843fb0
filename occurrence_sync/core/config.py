# occurrence_sync/core/config.py
from functools import lru_cache

from pydantic import AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Global configuration for the occurrence engine.

    Values are loaded from environment variables (or a local `.env` file)
    at runtime. Graph credentials are only needed when the shared
    Graph-backed appointment store is used; the engine itself works with
    any AppointmentStore implementation.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    APP_NAME: str = "Occurrence Sync"
    APP_ENV: str = Field("local", description="Environment name: local/dev/stage/prod")

    GRAPH_TENANT_ID: str | None = None
    GRAPH_CLIENT_ID: str | None = None
    GRAPH_CLIENT_SECRET: str | None = None
    GRAPH_BASE_URL: AnyHttpUrl | None = None

    GRAPH_USER_ID: str | None = Field(
        default=None,
        description=(
            "User ID/email whose mailbox owns the recurring series that "
            "will be expanded."
        ),
    )
    GRAPH_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="Per-request timeout applied to every Graph call.",
    )

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Root log level: DEBUG, INFO, WARNING or ERROR.",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Cached accessor for application settings.

    Settings are read and validated once per process.
    """
    return Settings()
