"""Application configuration loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file)."""

    # --- App ---
    app_name: str = "CycleSense"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # development | staging | production

    # --- Population training data ---
    training_data_source: str | None = None  # local path or http(s) URL
    training_data_timeout_seconds: float = 10.0
    training_data_delimiter: str = ","

    # --- Prediction ---
    default_user_age: int = 25
    engine_config_path: str | None = None  # overrides the bundled engine_config.yaml

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
