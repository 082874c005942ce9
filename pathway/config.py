# pathway/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    database_url: str = Field("sqlite:///./pathway.db", validation_alias="DATABASE_URL")
    history_limit: int = Field(20, validation_alias="HISTORY_LIMIT")

    openai_api_key: str | None = Field(None, validation_alias="OPENAI_API_KEY")
    openai_base_url: str | None = Field(None, validation_alias="OPENAI_BASE_URL")
    llm_model: str = Field("gpt-4o", validation_alias="LLM_MODEL")
    llm_timeout_seconds: float = Field(20.0, validation_alias="LLM_TIMEOUT_SECONDS")

    customerio_site_id: str | None = Field(None, validation_alias="CUSTOMERIO_SITE_ID")
    customerio_api_key: str | None = Field(None, validation_alias="CUSTOMERIO_API_KEY")
    customerio_track_url: str = Field(
        "https://track.customer.io/api/v1", validation_alias="CUSTOMERIO_TRACK_URL"
    )

    dispatch_queue_size: int = Field(256, validation_alias="DISPATCH_QUEUE_SIZE")
    dispatch_max_attempts: int = Field(4, validation_alias="DISPATCH_MAX_ATTEMPTS")
    dispatch_backoff_seconds: float = Field(0.5, validation_alias="DISPATCH_BACKOFF_SECONDS")

    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
