from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    project_id: str = "simplefit"
    api_key: str = ""
    email: str | None = None
    password: str | None = None
    request_timeout: float = 30
    # bounded wait used when a caller needs a single blocking answer
    result_timeout: float = 5
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="SIMPLEFIT_", env_file=".env", env_file_encoding="utf-8", extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
