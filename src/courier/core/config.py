"""
Courier Configuration Management

Provides centralized configuration management with validation and environment support.
"""

from pathlib import Path
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_ALLOWED_HEADERS = [
    "Content-Type",
    "User-Agent",
    "Accept",
    "Accept-Language",
    "Accept-Encoding",
    "Cache-Control",
    "Referer",
    "Authorization",
]


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Logging level")
    file_path: Optional[str] = Field(default=None, description="Log file path")
    max_file_size: int = Field(
        default=10_000_000, description="Max log file size in bytes"
    )
    backup_count: int = Field(default=5, description="Number of backup log files")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class ExecutionConfig(BaseModel):
    """Executor and batch configuration."""

    timeout_ms: int = Field(default=30_000, description="Per-request timeout in ms")
    batch_window_size: int = Field(
        default=5, description="Requests executed concurrently per batch window"
    )
    verify_ssl: bool = Field(
        default=False, description="Verify TLS certificates of target hosts"
    )
    follow_redirects: bool = Field(
        default=False, description="Follow HTTP redirects instead of reporting them"
    )

    @field_validator("timeout_ms", "batch_window_size")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Value must be a positive integer, got {v}")
        return v


class CacheConfig(BaseModel):
    """Response cache configuration."""

    enabled: bool = Field(default=True, description="Enable the response cache")
    ttl_seconds: float = Field(default=300.0, description="Entry time-to-live")
    max_entries: int = Field(default=100, description="Maximum cached responses")

    @field_validator("ttl_seconds")
    @classmethod
    def validate_ttl(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"Cache TTL must be positive, got {v}")
        return v

    @field_validator("max_entries")
    @classmethod
    def validate_max_entries(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Cache capacity must be at least 1, got {v}")
        return v


class HistoryConfig(BaseModel):
    """Request history store configuration."""

    backend: str = Field(default="memory", description="memory, json or sqlite")
    path: Optional[str] = Field(
        default=None, description="File path for json/sqlite backends"
    )
    storage_key: str = Field(
        default="courier.history", description="Key the history snapshot is stored under"
    )
    max_records: int = Field(default=1000, description="Retained history records")
    flush_delay_ms: int = Field(
        default=100, description="Window in which writes are coalesced"
    )
    max_batch_size: int = Field(
        default=50, description="Queued writes that force an immediate flush"
    )
    read_cache_ttl_seconds: float = Field(
        default=60.0, description="TTL of the list() read-through cache"
    )
    quota_bytes: Optional[int] = Field(
        default=5_242_880, description="Max serialized size of one stored value"
    )

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        valid_backends = {"memory", "json", "sqlite"}
        if v.lower() not in valid_backends:
            raise ValueError(
                f"Invalid history backend: {v}. Must be one of {valid_backends}"
            )
        return v.lower()

    @field_validator("max_records", "max_batch_size")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Value must be a positive integer, got {v}")
        return v

    @field_validator("flush_delay_ms")
    @classmethod
    def validate_delay(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"Flush delay cannot be negative, got {v}")
        return v


class GateConfig(BaseModel):
    """Security gate configuration."""

    max_body_chars: int = Field(default=100_000, description="Max body length")
    scan_window_chars: int = Field(
        default=1000, description="Leading body characters scanned for patterns"
    )
    allowed_headers: List[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_HEADERS),
        description="Request headers callers may set",
    )
    required_capability: Optional[str] = Field(
        default="network", description="Capability required before sending"
    )
    record_rejections: bool = Field(
        default=False, description="Record gate rejections in history"
    )

    @field_validator("max_body_chars", "scan_window_chars")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"Value cannot be negative, got {v}")
        return v


class CourierConfig(BaseSettings):
    """Main Courier configuration."""

    # Environment and deployment
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Component configurations
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    gate: GateConfig = Field(default_factory=GateConfig)

    model_config = SettingsConfigDict(
        env_prefix="COURIER_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
    )


# Global configuration instance
_config: Optional[CourierConfig] = None


def get_config() -> CourierConfig:
    """
    Get the global configuration instance.

    Returns:
        The global CourierConfig instance
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def load_config(config_file: Optional[Path] = None) -> CourierConfig:
    """
    Load configuration from file and environment variables.

    Args:
        config_file: Optional path to an env-style configuration file

    Returns:
        Loaded configuration instance
    """
    if config_file and config_file.exists():
        return CourierConfig(_env_file=str(config_file))

    return CourierConfig()


def reload_config(config_file: Optional[Path] = None) -> CourierConfig:
    """
    Reload the global configuration.

    Args:
        config_file: Optional path to configuration file

    Returns:
        Reloaded configuration instance
    """
    global _config
    _config = load_config(config_file)
    return _config


def update_config(**kwargs: Any) -> None:
    """
    Update configuration values at runtime.

    Args:
        **kwargs: Configuration values to update
    """
    global _config
    if _config is None:
        _config = load_config()

    for key, value in kwargs.items():
        if hasattr(_config, key):
            setattr(_config, key, value)
        else:
            raise ValueError(f"Unknown configuration key: {key}")


def get_history_path(history: Optional[HistoryConfig] = None) -> Path:
    """
    Get the configured history file path, creating its parent directory.

    Args:
        history: History configuration (uses the global config if None)

    Returns:
        Path of the history file for file-backed storage
    """
    history = history or get_config().history
    if history.path:
        path = Path(history.path)
    else:
        suffix = ".db" if history.backend == "sqlite" else ".json"
        path = Path.home() / ".courier" / f"history{suffix}"
    path.parent.mkdir(parents=True, exist_ok=True)
    return path
