from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="", extra="ignore")

    SERVICE_NAME: str = "pact-broker-client"
    LOG_LEVEL: str = "INFO"

    # Publishing
    PACT_PUBLISH_MAX_WORKERS: int = 1
    PACT_SCHEMA_VALIDATION_ENABLED: bool = True
    PACT_FILE_ENCODING: str = "utf-8"


def get_settings() -> Settings:
    return Settings()
