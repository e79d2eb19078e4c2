"""
Configuration management for the formations data-access layer.

Provides centralized, validated configuration from environment variables
with proper type checking and defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BackendConfig(BaseSettings):
    """Managed backend (REST, RPC, auth and edge functions) configuration."""

    url: str = Field(default="", alias="SUPABASE_URL")
    anon_key: str = Field(default="", alias="SUPABASE_ANON_KEY")

    # Remote resource names
    listing_table: str = Field(default="formation_list", alias="FORMATIONS_LISTING_TABLE")
    profiles_table: str = Field(default="user_profiles", alias="FORMATIONS_PROFILES_TABLE")
    consume_procedure: str = Field(
        default="use_token_for_formation", alias="FORMATIONS_CONSUME_PROCEDURE"
    )
    functions_path: str = Field(default="/functions/v1", alias="FORMATIONS_FUNCTIONS_PATH")
    notes_function: str = Field(default="get-formation-notes", alias="FORMATIONS_NOTES_FUNCTION")

    @field_validator("url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v):
        if isinstance(v, str):
            return v.strip().rstrip("/")
        return v or ""

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class Settings(BaseSettings):
    """Main application settings."""

    # Environment
    environment: str = Field(default="production", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")

    # Transport
    request_timeout: float = Field(default=30.0, alias="REQUEST_TIMEOUT")

    # CLI session persistence
    session_path: Path = Field(
        default=Path.home() / ".config" / "formations" / "session.json",
        alias="FORMATIONS_SESSION_PATH",
    )

    backend: BackendConfig = Field(default_factory=BackendConfig)

    @field_validator("debug", mode="before")
    @classmethod
    def parse_debug(cls, v):
        if isinstance(v, str):
            return v.lower() in ("1", "true", "yes")
        return bool(v)

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global settings
    if settings is None:
        settings = Settings()
    return settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global settings
    settings = None


def validate_required_settings(config: Optional[BackendConfig] = None) -> List[str]:
    """
    Check that the backend URL and public client key are present.

    Args:
        config: Backend configuration (global settings if None)

    Returns:
        List of missing required settings
    """
    config = config or get_settings().backend
    missing = []
    if not config.url:
        missing.append("SUPABASE_URL")
    if not config.anon_key:
        missing.append("SUPABASE_ANON_KEY")
    return missing


def print_configuration_summary():
    """Print a summary of the current configuration for debugging."""
    try:
        config = get_settings()
        print("=== Formations Configuration Summary ===")
        print(f"Environment: {config.environment}")
        print(f"Debug Mode: {config.debug}")
        print(f"Request Timeout: {config.request_timeout}s")
        print(f"Session File: {config.session_path}")
        print()
        print(f"Backend URL: {config.backend.url or '✗'}")
        print(f"Client Key: {'✓' if config.backend.anon_key else '✗'}")
        print(f"Listing Table: {config.backend.listing_table}")
        print(f"Profiles Table: {config.backend.profiles_table}")
        print(f"Token Procedure: {config.backend.consume_procedure}")
        print(f"Notes Function: {config.backend.functions_path}/{config.backend.notes_function}")
        print("=" * 40)
    except Exception as e:
        print(f"Error loading configuration: {e}")
