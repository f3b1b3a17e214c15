"""
Configuration settings for the bookstore query runner.

Uses Pydantic Settings to load environment variables for the MongoDB
connection, logging, and demo defaults.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    mongo_uri: Optional[str] = Field(None, alias="MONGO_URI")
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(27017, alias="DB_PORT")
    db_user: Optional[str] = Field(None, alias="DB_USER")
    db_password: Optional[str] = Field(None, alias="DB_PASSWORD")
    db_auth_source: str = Field("admin", alias="DB_AUTH_SOURCE")
    db_name: str = Field("plp_bookstore", alias="DB_NAME")
    db_collection: str = Field("books", alias="DB_COLLECTION")
    db_server_selection_timeout_ms: int = Field(5000, alias="DB_SERVER_SELECTION_TIMEOUT_MS")
    db_connect_attempts: int = Field(3, ge=1, alias="DB_CONNECT_ATTEMPTS")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Demo defaults
    demo_page_size: int = Field(5, ge=1, alias="DEMO_PAGE_SIZE")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
