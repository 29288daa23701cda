"""Environment-based configuration for the account status engine and its store."""

from decimal import Decimal
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from ...shared.exceptions.base import ConfigurationError


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="PROPGUARD_LOG_")

    level: str = Field("INFO", description="Log level")
    format: str = Field("console", description="Log format: json or console")

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate renderer name."""
        if v.lower() not in {"json", "console"}:
            raise ValueError("Log format must be 'json' or 'console'")
        return v.lower()


class EngineConfig(BaseSettings):
    """Status engine defaults."""

    model_config = SettingsConfigDict(env_prefix="PROPGUARD_ENGINE_")

    personal_account_size: Decimal = Field(
        Decimal("10000"), gt=0, description="Synthetic account size for personal accounts"
    )
    fallback_challenge_account_size: Decimal = Field(
        Decimal("100000"), gt=0, description="Account size used when a challenge has no usable rules"
    )


class AdvisoryConfig(BaseSettings):
    """Thresholds for the advisory generator and trading plan."""

    model_config = SettingsConfigDict(env_prefix="PROPGUARD_ADVISORY_")

    max_risk_per_trade_pct: Decimal = Field(
        Decimal("2"), gt=0, le=100, description="Per-trade risk ceiling as % of account size"
    )
    daily_allowance_share_pct: Decimal = Field(
        Decimal("40"), gt=0, le=100, description="Per-trade risk ceiling as % of the daily loss allowance"
    )
    daily_warning_ratio_pct: Decimal = Field(
        Decimal("70"), gt=0, le=100, description="Warn when daily headroom drops below this % of its allowance"
    )
    default_plan_days: int = Field(20, ge=1, description="Planning horizon when there is no minimum-days rule")
    volatile_hour_start: int = Field(14, ge=0, le=23, description="First high-volatility hour")
    volatile_hour_end: int = Field(16, ge=0, le=23, description="Last high-volatility hour")

    @model_validator(mode="after")
    def validate_volatile_window(self) -> "AdvisoryConfig":
        """Validate the volatility window is ordered."""
        if self.volatile_hour_start > self.volatile_hour_end:
            raise ValueError("volatile_hour_start must not be after volatile_hour_end")
        return self


class PersistenceConfig(BaseSettings):
    """Document persistence for the account store."""

    model_config = SettingsConfigDict(env_prefix="PROPGUARD_PERSISTENCE_")

    debounce_ms: int = Field(500, ge=0, le=60000, description="Delay before a pending save is due")
    accounts_key: str = Field("accounts", min_length=1, description="Document key holding the accounts")
    deleted_ids_key: str = Field(
        "deletedAccountIds", min_length=1, description="Document key holding deleted account ids"
    )
    database_url: str = Field("sqlite:///propguard.db", description="SQLAlchemy URL for the SQL document store")


class AppSettings(BaseSettings):
    """Main application settings with all subsystem configurations."""

    model_config = SettingsConfigDict(
        env_prefix="PROPGUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field("PropGuard", description="Application name")
    environment: str = Field("development", description="Environment name")

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    advisory: AdvisoryConfig = Field(default_factory=AdvisoryConfig)
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment name."""
        valid_envs = {"development", "testing", "staging", "production"}
        if v not in valid_envs:
            raise ValueError(f"Environment must be one of {valid_envs}")
        return v


# Global settings instance
_settings: Optional[AppSettings] = None


def _load_settings() -> AppSettings:
    try:
        return AppSettings()
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid PropGuard configuration: {e}") from e


def get_settings() -> AppSettings:
    """
    Get application settings singleton.

    Raises:
        ConfigurationError: If the environment holds invalid values
    """
    global _settings
    if _settings is None:
        _settings = _load_settings()
    return _settings


def reload_settings() -> AppSettings:
    """Reload settings from environment."""
    global _settings
    _settings = _load_settings()
    return _settings
