from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str = Field(default="sqlite+aiosqlite:///./cadence.db")

    # Connection pool
    pool_size: int = Field(default=200)
    pool_connection_timeout: float = Field(default=10.0)  # seconds

    # Job queue
    job_poll_interval: float = Field(default=60.0)  # seconds
    job_concurrency: int = Field(default=10)
    job_timeout: float = Field(default=30.0)
    job_max_retries: int = Field(default=3)

    # Transactions
    transaction_timeout: float = Field(default=60.0)
    transaction_isolation_level: str = Field(default="read_committed")
    transaction_max_retries: int = Field(default=3)

    # Cache
    cache_ttl: int = Field(default=3600)

    # External validation service
    validation_service_url: str = Field(default="https://validation-service.external/validate")
    validation_service_timeout: float = Field(default=30.0)
    validation_service_api_key: str = Field(default="")

    # Multiplier for the handlers' simulated downstream latency (0 disables it)
    simulated_latency_scale: float = Field(default=1.0)

    # Application
    debug: bool = Field(default=False)


class PoolConfig:
    """Connection pool configuration from config.yml and environment."""

    def __init__(self, data: dict[str, Any], settings: "Settings") -> None:
        self.size: int = data.get("size", settings.pool_size)
        self.connection_timeout: float = data.get(
            "connection_timeout", settings.pool_connection_timeout
        )
        # Simulated backend latency range in milliseconds
        low, high = data.get("latency_ms", (0.0, 0.0))
        self.latency_ms: tuple[float, float] = (low, high)


class JobsConfig:
    """Job queue configuration from config.yml and environment."""

    def __init__(self, data: dict[str, Any], settings: "Settings") -> None:
        self.poll_interval: float = data.get("poll_interval", settings.job_poll_interval)
        self.concurrency: int = data.get("concurrency", settings.job_concurrency)
        self.timeout: float = data.get("timeout", settings.job_timeout)
        self.max_retries: int = data.get("max_retries", settings.job_max_retries)
        self.latency_scale: float = data.get("latency_scale", settings.simulated_latency_scale)


class TransactionConfig:
    """Default transaction options."""

    def __init__(self, data: dict[str, Any], settings: "Settings") -> None:
        self.timeout: float = data.get("timeout", settings.transaction_timeout)
        self.isolation_level: str = data.get(
            "isolation_level", settings.transaction_isolation_level
        )
        self.max_retries: int = data.get("max_retries", settings.transaction_max_retries)


class CacheConfig:
    """Cache configuration from config.yml and environment."""

    def __init__(self, data: dict[str, Any], settings: "Settings") -> None:
        self.ttl: int = data.get("ttl", settings.cache_ttl)
        self.cleanup_interval: float = data.get("cleanup_interval", 60.0)


class ValidationServiceConfig:
    """External workflow validation service configuration."""

    def __init__(self, data: dict[str, Any], settings: "Settings") -> None:
        self.url: str = data.get("url", settings.validation_service_url)
        self.timeout: float = data.get("timeout", settings.validation_service_timeout)
        self.max_tries: int = data.get("max_tries", 3)
        # Credentials from environment only
        self.api_key: str = settings.validation_service_api_key


class AppConfig:
    """Combined application configuration from .env and config.yml."""

    def __init__(self, settings: Settings | None = None, config_path: Path | None = None) -> None:
        self.settings = settings or Settings()
        self._load_yaml(config_path or Path("config.yml"))

    def _load_yaml(self, config_path: Path) -> None:
        if config_path.exists():
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
        else:
            data = {}

        self.pool = PoolConfig(data.get("pool", {}), self.settings)
        self.jobs = JobsConfig(data.get("jobs", {}), self.settings)
        self.transactions = TransactionConfig(data.get("transactions", {}), self.settings)
        self.cache = CacheConfig(data.get("cache", {}), self.settings)
        self.validation_service = ValidationServiceConfig(
            data.get("validation_service", {}), self.settings
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


@lru_cache
def get_config() -> AppConfig:
    """Get cached full config instance."""
    return AppConfig(get_settings())
