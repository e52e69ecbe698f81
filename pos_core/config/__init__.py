from .settings import (
    AppConfig,
    GatewayConfig,
    SyncConfig,
    StorageConfig,
    load_config,
)

__all__ = [
    "AppConfig",
    "GatewayConfig",
    "SyncConfig",
    "StorageConfig",
    "load_config",
]
