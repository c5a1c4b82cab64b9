"""
Versioned configuration snapshots.

Processing loops read one immutable snapshot per step. Reloading builds
a new snapshot and swaps the handle's reference; readers never take a
lock.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from .loader import AgentTypeSettings, RuntimeConfig, load_runtime_config

if TYPE_CHECKING:
    from courier.runtime.types import SessionConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfigSnapshot:
    version: int
    config: RuntimeConfig
    session: "SessionConfig"

    def agent_type(self, name: str | None) -> AgentTypeSettings | None:
        if not name:
            return None
        return self.config.agent_types.get(name)


class ConfigHandle:
    """Holds the current ConfigSnapshot."""

    def __init__(self, config: RuntimeConfig | None = None):
        config = config or RuntimeConfig()
        self._snapshot = ConfigSnapshot(
            version=1,
            config=config,
            session=config.session.to_session_config(),
        )
        self._swap_lock = threading.Lock()

    @classmethod
    def from_file(cls, path: str | Path | None = None) -> "ConfigHandle":
        return cls(load_runtime_config(path))

    def current(self) -> ConfigSnapshot:
        return self._snapshot

    @property
    def version(self) -> int:
        return self._snapshot.version

    def swap(self, config: RuntimeConfig) -> ConfigSnapshot:
        """Publish a new snapshot. Steps already running keep their old one."""
        # Copy so later mutation of the caller's model can't leak in
        config = config.model_copy(deep=True)
        with self._swap_lock:
            snapshot = ConfigSnapshot(
                version=self._snapshot.version + 1,
                config=config,
                session=config.session.to_session_config(),
            )
            self._snapshot = snapshot
        logger.info(f"Configuration swapped to version {snapshot.version}")
        return snapshot

    def reload(self, path: str | Path | None = None) -> ConfigSnapshot:
        """Load from YAML and swap. On failure the current snapshot stays."""
        return self.swap(load_runtime_config(path))
