"""Environment-based store configuration using pydantic-settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreSettings(BaseSettings):
    """Store defaults loaded from ``TIMECTL_*`` environment variables."""

    model_config = SettingsConfigDict(env_prefix="TIMECTL_")

    fill_gaps: bool = True
    default_tz: str = "UTC"
