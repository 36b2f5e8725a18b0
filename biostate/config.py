from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Calendar day used for ratio checks and safety headroom
    timezone: str = "UTC"
    log_level: str = "INFO"

    # Derived-state cache (outside the engine)
    state_cache_max_entries: int = 256
    state_cache_ttl_seconds: float = 60.0


@lru_cache
def get_settings() -> Settings:
    return Settings()
