# =============================================================================
# pos_core/config/settings.py
# Runtime Configuration for the Vitana POS
# =============================================================================
"""
Configuration for the offline storage and sync layer.

Values are resolved in three layers, later layers winning:

1. Dataclass defaults below
2. The ``[pos]`` section of ``.streamlit/secrets.toml``
3. Environment variables (``POS_*``)

Expected secrets.toml format:

    [pos]
    api_url = "https://pdv.example.com/api"
    api_token = "..."
    request_timeout = 8
    sync_interval = 30
    max_retries = 3
    db_path = "local_data/pos_offline.db"
"""

from __future__ import annotations
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
import logging

from pos_core.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path(__file__).parent.parent.parent / "local_data" / "pos_offline.db"


@dataclass
class GatewayConfig:
    """Connection settings for the POS backend"""
    base_url: str = "http://localhost:3001/api"
    token: Optional[str] = None
    timeout: float = 8.0            # seconds per HTTP request
    max_attempts: int = 3           # HTTP attempts before reporting a failure
    backoff_base: float = 2.0       # exponential backoff base
    backoff_factor: float = 0.5     # seconds multiplied by base ** attempt


@dataclass
class SyncConfig:
    """Sync engine behaviour"""
    sync_interval: float = 30.0     # seconds between periodic passes
    max_retries: int = 3            # failed passes before an item is dropped
    health_check_interval: float = 15.0
    retry_rejected: bool = True     # False drops non-retryable rejections immediately
    flush_on_exit: bool = True


@dataclass
class StorageConfig:
    """Local record store settings"""
    db_path: Path = DEFAULT_DB_PATH
    key_prefix: str = "vitana_offline_"


@dataclass
class AppConfig:
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)


# Maps flat setting names to (section, attribute, caster)
_FIELDS = {
    "api_url": ("gateway", "base_url", str),
    "api_token": ("gateway", "token", str),
    "request_timeout": ("gateway", "timeout", float),
    "http_attempts": ("gateway", "max_attempts", int),
    "backoff_base": ("gateway", "backoff_base", float),
    "backoff_factor": ("gateway", "backoff_factor", float),
    "sync_interval": ("sync", "sync_interval", float),
    "max_retries": ("sync", "max_retries", int),
    "health_check_interval": ("sync", "health_check_interval", float),
    "retry_rejected": ("sync", "retry_rejected", "bool"),
    "flush_on_exit": ("sync", "flush_on_exit", "bool"),
    "db_path": ("storage", "db_path", Path),
    "key_prefix": ("storage", "key_prefix", str),
}


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on", "sim"}


def _apply(config: AppConfig, name: str, raw: Any) -> None:
    section, attr, caster = _FIELDS[name]
    try:
        value = _to_bool(raw) if caster == "bool" else caster(raw)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"Invalid value for {name}: {raw!r}",
            config_key=name,
            expected_type=getattr(caster, "__name__", str(caster)),
        ) from e
    setattr(getattr(config, section), attr, value)


def _load_secrets() -> Dict[str, Any]:
    """Read the [pos] section from Streamlit secrets, if any."""
    try:
        import streamlit as st

        if hasattr(st, "secrets") and "pos" in st.secrets:
            return dict(st.secrets["pos"])
    except Exception as e:
        # No secrets.toml outside `streamlit run`
        logger.debug(f"Streamlit secrets not available: {e}")
    return {}


def _validate(config: AppConfig) -> None:
    if not config.gateway.base_url:
        raise ConfigurationError("api_url must not be empty", config_key="api_url")
    if config.gateway.timeout <= 0:
        raise ConfigurationError("request_timeout must be positive", config_key="request_timeout")
    if config.gateway.max_attempts < 1:
        raise ConfigurationError("http_attempts must be at least 1", config_key="http_attempts")
    if config.sync.max_retries < 1:
        raise ConfigurationError("max_retries must be at least 1", config_key="max_retries")
    if config.sync.sync_interval <= 0:
        raise ConfigurationError("sync_interval must be positive", config_key="sync_interval")


def load_config(
    secrets: Optional[Dict[str, Any]] = None,
    environ: Optional[Dict[str, str]] = None,
) -> AppConfig:
    """
    Build the application configuration.

    Args:
        secrets: Settings mapping (defaults to the Streamlit [pos] section)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated AppConfig
    """
    config = AppConfig()

    secrets = _load_secrets() if secrets is None else secrets
    for name, raw in secrets.items():
        if name in _FIELDS and raw is not None:
            _apply(config, name, raw)

    environ = os.environ if environ is None else environ
    for name in _FIELDS:
        env_name = f"POS_{name.upper()}"
        if environ.get(env_name):
            _apply(config, name, environ[env_name])

    _validate(config)
    return config
