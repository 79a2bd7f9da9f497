"""Configuration management for the Courier SDK."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_TIMEOUT_MS = 1000

_GATEWAY_HOSTS = {
    "production": "http://api.gateway.internal",
    "uat": "http://api.uat.gateway.internal",
    "sit": "http://api.sit.gateway.internal",
}

_ENV_ALIASES = {
    "prod": "production",
    "product": "production",
    "production": "production",
    "uat": "uat",
    "sit": "sit",
    "test": "sit",
    "dev": "dev",
    "development": "dev",
    "local": "dev",
    "localdev": "dev",
}


class GatewayConfig(BaseModel):
    """Unified configuration for the Courier SDK."""

    # Runtime settings
    environment: str = Field(default="sit")
    debug: bool = Field(default=True)

    # Gateway used for relative request URIs
    gateway_host: str = Field(default=_GATEWAY_HOSTS["sit"])

    # Transfer settings
    default_timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0)
    ssl_verify: bool = Field(default=False)
    ca_bundle: Optional[str] = Field(default=None)
    force_ipv4: bool = Field(default=True)

    # Engine settings
    handle_pool_size: int = Field(default=5, ge=0)
    select_timeout: float = Field(default=0.1, gt=0)
    accept_any_2xx: bool = Field(default=False)

    class Config:
        frozen = True

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_environment(cls) -> "GatewayConfig":
        """Create configuration from environment variables."""

        env_mode = _normalize_env(os.getenv("COURIER_ENV") or os.getenv("MODE", "sit"))
        host_key = env_mode if env_mode in _GATEWAY_HOSTS else "sit"

        config_data = {
            "environment": env_mode,
            "debug": _get_bool("COURIER_DEBUG", env_mode in ("dev", "sit")),
            "gateway_host": os.getenv("COURIER_GATEWAY_HOST", _GATEWAY_HOSTS[host_key]),
            "default_timeout_ms": _get_int("COURIER_DEFAULT_TIMEOUT", DEFAULT_TIMEOUT_MS),
            "ssl_verify": _get_bool("COURIER_SSL_VERIFY", False),
            "ca_bundle": os.getenv("COURIER_CA_BUNDLE") or None,
            "force_ipv4": _get_bool("COURIER_FORCE_IPV4", True),
            "handle_pool_size": _get_int("COURIER_HANDLE_POOL_SIZE", 5),
            "accept_any_2xx": _get_bool("COURIER_ACCEPT_ANY_2XX", False),
        }
        return cls(**config_data)


def _normalize_env(value: str) -> str:
    value = value.strip().lower()
    return _ENV_ALIASES.get(value, value)


def _get_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(key: str, default: int) -> int:
    """Get integer environment variable, ignoring unparsable values."""
    value = os.getenv(key)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


# Global configuration instance
_config: Optional[GatewayConfig] = None


def get_config(*, reload: bool = False) -> GatewayConfig:
    """Get the process-wide configuration instance."""
    global _config

    if _config is None or reload:
        _config = GatewayConfig.from_environment()

    return _config


def load_dotenv_for_sdk(path: Optional[Path] = None, *, override: bool = False) -> None:
    """Load environment variables from .env file."""
    if path is None:
        mode = _normalize_env(os.getenv("COURIER_ENV") or os.getenv("MODE", "sit"))
        env_files = {
            "dev": ".env.dev",
            "sit": ".env.sit",
            "uat": ".env.uat",
            "production": ".env.production",
        }
        path = Path.cwd() / env_files.get(mode, ".env")

        # If the environment-specific file doesn't exist, try the default .env file
        if not path.exists():
            default_env = Path.cwd() / ".env"
            if default_env.exists():
                path = default_env

    if path.exists():
        load_dotenv(path, override=override)
