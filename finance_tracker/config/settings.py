"""
Configuration Management for Finance Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets remote document store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the spreadsheet that mirrors profile data"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Remote sync will stay in local mode until it exists."
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="FINANCE_TRACKER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum log level for structured logs"
    )

    # Local storage
    data_dir: str = Field(
        default=".finance_tracker",
        description="Directory holding the local key-value store"
    )

    # Profiles
    profiles: str = Field(
        default="hemank,partner",
        description="Comma-separated list of profile identifiers"
    )
    profile_pins: str = Field(
        default="",
        description="Comma-separated profile:pin pairs (convenience lock only)"
    )
    default_profile: Optional[str] = Field(
        default=None,
        description="Profile opened when no current profile is stored"
    )

    # Ledger policy
    income_categories: str = Field(
        default="Salaire,Freelance,Investissements,Remboursement,Autre",
        description="Comma-separated fixed set of income categories"
    )
    month_key_timezone: str = Field(
        default="UTC",
        description="Timezone used to turn 'now' into a YYYY-MM archive key"
    )

    # Remote sync
    remote_sync_enabled: bool = Field(
        default=True,
        description="Mirror data to the remote document store when configured"
    )

    @field_validator('month_key_timezone')
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject unknown timezone names at startup."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @property
    def profiles_list(self) -> list[str]:
        """Get profile identifiers as a list."""
        return _split_csv(self.profiles)

    @property
    def profile_pins_map(self) -> dict[str, str]:
        """Get profile PINs as a {profile: pin} dict."""
        pins = {}
        for pair in _split_csv(self.profile_pins):
            profile, _, pin = pair.partition(":")
            if profile and pin:
                pins[profile.strip()] = pin.strip()
        return pins

    @property
    def income_categories_list(self) -> list[str]:
        """Get income categories as a list."""
        return _split_csv(self.income_categories)

    @property
    def timezone(self) -> ZoneInfo:
        return ZoneInfo(self.month_key_timezone)

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir)


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily so a missing remote configuration
    # does not prevent local-only use.

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.google_sheets
        results["google_sheets"] = True
    except Exception as e:
        results["google_sheets"] = False
        results["google_sheets_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
