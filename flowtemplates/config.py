"""
Service settings, read from the environment (or a ``.env`` file) by
pydantic-settings.
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Every field can be overridden by an environment variable of the same name."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    APP_NAME: str = "Process Template Service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # sqlite+aiosqlite locally, postgresql+asyncpg in deployments
    DATABASE_URL: str = "sqlite+aiosqlite:///./flowtemplates.db"

    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    # Naming of copies and imports: <name>_copy_<millis>, <name>_import_<millis>
    COPY_NAME_SUFFIX: str = "_copy_"
    IMPORT_NAME_SUFFIX: str = "_import_"
    # Import probes name, name(1), ..., name(MAX_IMPORT_NAME_ATTEMPTS)
    MAX_IMPORT_NAME_ATTEMPTS: int = 1000

    EXPORT_FILE_NAME: str = "process_templates.json"

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    @field_validator("MAX_IMPORT_NAME_ATTEMPTS")
    @classmethod
    def validate_name_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("MAX_IMPORT_NAME_ATTEMPTS must be at least 1")
        return v

    @field_validator("LOG_FORMAT")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        if v not in ("json", "text"):
            raise ValueError("LOG_FORMAT must be 'json' or 'text'")
        return v


settings = Settings()


def get_settings() -> Settings:
    return settings
