"""Configuration management for the multilingual notification core."""

import logging
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "sqlite:///./multilingual_notify.db"

    # Content languages
    content_language_topic_filtering_enabled: bool = False
    default_locale: str = "en"
    locales_file: str = ""

    # Topic tracking
    remove_muted_tags_from_latest: Literal["always", "only_muted", "never"] = "always"
    default_other_new_topic_duration_minutes: int = 2880
    min_new_topics_time: int = 0  # epoch seconds, absolute floor for "new"
    show_category_definitions_in_topic_lists: bool = True

    # App
    log_level: str = "INFO"
    env: str = "development"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(settings: Settings = None) -> None:
    """Configure root logging from settings."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
