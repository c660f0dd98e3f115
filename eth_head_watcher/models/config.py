"""Configuration management using Pydantic settings."""

from typing import Optional
from urllib.parse import urlparse

from pydantic import Field, ValidationError, validator
from pydantic_settings import BaseSettings

from eth_head_watcher.exceptions import ConfigError


class WatcherConfig(BaseSettings):
    """Configuration for the block header watcher."""

    # Endpoint
    sepolia_rpc_url: str = Field(
        validation_alias="SEPOLIA_RPC_URL",
        description="WebSocket RPC endpoint of an Ethereum-compatible node"
    )

    # RPC Settings
    rpc_connect_timeout: float = Field(default=10.0, gt=0, description="WebSocket open timeout in seconds")
    rpc_request_timeout: float = Field(default=30.0, gt=0, description="JSON-RPC reply timeout in seconds")
    rpc_max_message_size: int = Field(default=2 ** 22, description="Largest accepted frame in bytes")

    # Logging Settings
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="text", description="Log format (json|text)")
    log_file: Optional[str] = Field(default=None, description="Log file path")
    log_max_size_mb: int = Field(default=100, description="Max log file size in MB")
    log_backup_count: int = Field(default=5, description="Number of log backups")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "WATCHER_"
        case_sensitive = False
        populate_by_name = True
        extra = "ignore"

    @validator('sepolia_rpc_url')
    def validate_rpc_url(cls, v):
        """Endpoint must be a non-empty ws:// or wss:// URL."""
        v = v.strip()
        if not v:
            raise ValueError("SEPOLIA_RPC_URL must not be empty")
        parsed = urlparse(v)
        if parsed.scheme not in ("ws", "wss"):
            raise ValueError(f"unsupported scheme {parsed.scheme!r}, expected ws or wss")
        if not parsed.netloc:
            raise ValueError("endpoint URL has no host")
        return v

    @validator('log_format')
    def validate_log_format(cls, v):
        v = v.lower()
        if v not in ("json", "text"):
            raise ValueError("log_format must be 'json' or 'text'")
        return v

    @property
    def endpoint_host(self) -> str:
        """Host part of the endpoint, safe to log (no path or API key)."""
        return urlparse(self.sepolia_rpc_url).hostname or ""


def load_config(env_file: Optional[str] = None) -> WatcherConfig:
    """
    Load the watcher configuration once at process entry.

    Args:
        env_file: Explicit dotenv file. Defaults to ``.env`` in the working
            directory. A missing default ``.env`` is not an error, since the
            process environment alone is a complete source. Only an explicit
            ``--env-file`` must exist, and the CLI checks that.

    Raises:
        ConfigError: required values are missing or invalid.
    """
    try:
        if env_file:
            return WatcherConfig(_env_file=env_file)
        return WatcherConfig()
    except ValidationError as e:
        raise ConfigError(_describe(e)) from e
    except OSError as e:
        raise ConfigError(f"cannot read configuration: {e}") from e


def _describe(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        field = ".".join(str(loc) for loc in item.get("loc", ())) or "config"
        if item.get("type") == "missing":
            parts.append(f"{field.upper()} is not set")
        else:
            parts.append(f"{field}: {item.get('msg')}")
    return "; ".join(parts)
