"""
Configuration for the pump.fun trading engine.

Settings are loaded from environment variables (and an optional ``.env``
file) with Pydantic v2 BaseSettings, one section per concern.

Usage:
    from pumpfun_trader.config import get_settings
    settings = get_settings()
    print(settings.solana.rpc_url)
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AnyHttpUrl, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# ENUMS
# =============================================================================

class LogLevel(str, Enum):
    """Logging level options."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# =============================================================================
# BASE CONFIGURATION
# =============================================================================

class BaseConfig(BaseSettings):
    """Base configuration with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )


# =============================================================================
# SOLANA RPC CONFIGURATION
# =============================================================================

class SolanaSettings(BaseConfig):
    """Solana RPC connection configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SOLANA_",
        env_file=".env",
        extra="ignore",
    )

    rpc_url: AnyHttpUrl = Field(
        default="https://api.mainnet-beta.solana.com",
        description="RPC endpoint URL",
    )

    commitment: str = Field(
        default="confirmed",
        pattern="^(processed|confirmed|finalized)$",
        description="Commitment level for reads",
    )

    timeout: int = Field(
        default=30,
        ge=5,
        le=120,
        description="RPC request timeout in seconds",
    )


# =============================================================================
# PUMP.FUN API CONFIGURATION
# =============================================================================

class PumpFunAPISettings(BaseConfig):
    """Pump.fun frontend API configuration."""

    model_config = SettingsConfigDict(
        env_prefix="PUMPFUN_API_",
        env_file=".env",
        extra="ignore",
    )

    base_url: AnyHttpUrl = Field(
        default="https://frontend-api-v3.pump.fun",
        description="Frontend API base URL",
    )

    timeout: int = Field(
        default=30,
        ge=1,
        le=120,
        description="HTTP request timeout in seconds",
    )


# =============================================================================
# RETRY CONFIGURATION
# =============================================================================

class RetrySettings(BaseConfig):
    """Backoff policy applied to every network call."""

    model_config = SettingsConfigDict(
        env_prefix="RETRY_",
        env_file=".env",
        extra="ignore",
    )

    max_attempts: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Total attempts per call, first attempt included",
    )

    initial_delay: float = Field(
        default=0.5,
        gt=0,
        le=60.0,
        description="Delay before the first retry in seconds",
    )

    max_delay: float = Field(
        default=10.0,
        gt=0,
        le=300.0,
        description="Cap on the backoff delay in seconds",
    )

    factor: float = Field(
        default=2.0,
        gt=1.0,
        le=10.0,
        description="Backoff multiplier",
    )

    jitter: bool = Field(
        default=True,
        description="Randomize each delay by a factor in [0.5, 1.5]",
    )

    @model_validator(mode="after")
    def validate_delays(self) -> "RetrySettings":
        if self.max_delay < self.initial_delay:
            raise ValueError("max_delay must be >= initial_delay")
        return self


# =============================================================================
# TRADING CONFIGURATION
# =============================================================================

class TradingSettings(BaseConfig):
    """Defaults for buy and sell calls."""

    model_config = SettingsConfigDict(
        env_prefix="TRADING_",
        env_file=".env",
        extra="ignore",
    )

    default_slippage: float = Field(
        default=0.25,
        ge=0.0,
        le=1.0,
        description="Slippage tolerance as a fraction (0.25 = 25%)",
    )

    default_priority_fee: float = Field(
        default=0.0,
        ge=0.0,
        description="Priority fee in SOL",
    )

    compute_unit_limit: int = Field(
        default=1_000_000,
        ge=1,
        le=1_400_000,
        description="Compute unit limit set on every trade transaction",
    )

    track_finality: bool = Field(
        default=True,
        description="Track submitted transactions until finalized",
    )

    confirmation_timeout: float = Field(
        default=60.0,
        gt=0,
        le=600.0,
        description="Seconds to wait for finality",
    )

    poll_interval: float = Field(
        default=2.0,
        gt=0,
        le=60.0,
        description="Seconds between signature status polls",
    )


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

class LoggingSettings(BaseConfig):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        extra="ignore",
    )

    level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level",
    )

    format: str = Field(
        default="%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s",
        description="Log message format",
    )

    date_format: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="Log date format",
    )

    file_enabled: bool = Field(
        default=False,
        description="Enable file logging",
    )

    file_path: Path = Field(
        default=Path("logs/pumpfun_trader.log"),
        description="Log file path",
    )

    file_max_bytes: int = Field(
        default=10 * 1024 * 1024,  # 10 MB
        ge=1024,
        description="Max log file size in bytes",
    )

    file_backup_count: int = Field(
        default=5,
        ge=0,
        le=100,
        description="Number of backup log files",
    )


# =============================================================================
# APPLICATION SETTINGS (MAIN)
# =============================================================================

class Settings(BaseConfig):
    """
    Top-level settings aggregating all configuration sections.

    Usage:
        settings = get_settings()
        manager = TransactionLifecycleManager.from_settings(ledger, api, settings)
    """

    solana: SolanaSettings = Field(default_factory=SolanaSettings)
    api: PumpFunAPISettings = Field(default_factory=PumpFunAPISettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    trading: TradingSettings = Field(default_factory=TradingSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# =============================================================================
# SINGLETON & CACHING
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Cached settings singleton
    """
    return Settings()


def reload_settings() -> Settings:
    """Clear the settings cache and reload from the environment."""
    get_settings.cache_clear()
    return get_settings()


__all__ = [
    "LogLevel",
    "SolanaSettings",
    "PumpFunAPISettings",
    "RetrySettings",
    "TradingSettings",
    "LoggingSettings",
    "Settings",
    "get_settings",
    "reload_settings",
]
