"""
Runtime configuration.

Usage:
    from courier.config import ConfigHandle

    handle = ConfigHandle.from_file("courier.yaml")
    snapshot = handle.current()
"""

from courier.config.loader import (
    AgentTypeSettings,
    RetrySettings,
    RuntimeConfig,
    SessionSettings,
    get_config_path,
    load_runtime_config,
)
from courier.config.snapshot import ConfigHandle, ConfigSnapshot

__all__ = [
    "RuntimeConfig",
    "SessionSettings",
    "RetrySettings",
    "AgentTypeSettings",
    "ConfigHandle",
    "ConfigSnapshot",
    "load_runtime_config",
    "get_config_path",
]
