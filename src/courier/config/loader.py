"""
Runtime configuration loading.

Reads courier.yaml from the project root (or an explicit path) and
validates it with Pydantic. Missing sections fall back to defaults.

Example courier.yaml:

    session:
      drain_batch_size: 20
      retry:
        max_attempts: 3
        initial_backoff: 0.5
    correlation_ttl: 30
    retain_closed_mailboxes: false
    agent_types:
      planner:
        description: Breaks work into tasks
        prompt: You plan work for the team.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from courier.core.errors import InvalidConfiguration

if TYPE_CHECKING:
    from courier.runtime.types import SessionConfig

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "courier.yaml"


class RetrySettings(BaseModel):
    max_attempts: int = Field(3, ge=1)
    initial_backoff: float = Field(0.5, ge=0)
    backoff_multiplier: float = Field(2.0, ge=1)
    max_backoff: float = Field(10.0, ge=0)


class SessionSettings(BaseModel):
    drain_batch_size: int = Field(20, ge=1)
    max_context_entries: int = Field(100, ge=1)
    max_message_failures: int = Field(3, ge=1)
    mailbox_capacity: int | None = Field(None, ge=1)
    mailbox_history: int = Field(50, ge=0)
    transition_history: int = Field(50, ge=0)
    retry: RetrySettings = Field(default_factory=RetrySettings)

    def to_session_config(self) -> "SessionConfig":
        # Import here to avoid circular dependency
        from courier.runtime.types import RetryPolicy, SessionConfig

        return SessionConfig(
            drain_batch_size=self.drain_batch_size,
            max_context_entries=self.max_context_entries,
            retry=RetryPolicy(**self.retry.model_dump()),
            max_message_failures=self.max_message_failures,
            mailbox_capacity=self.mailbox_capacity,
            mailbox_history=self.mailbox_history,
            transition_history=self.transition_history,
        )


class AgentTypeSettings(BaseModel):
    """Agent type definition. Extra keys are passed through as metadata."""

    model_config = ConfigDict(extra="allow")

    description: str = ""
    prompt: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)


class RuntimeConfig(BaseModel):
    session: SessionSettings = Field(default_factory=SessionSettings)
    correlation_ttl: float = Field(30.0, gt=0)
    sweep_interval: float = Field(1.0, gt=0)
    retain_closed_mailboxes: bool = False
    agent_types: dict[str, AgentTypeSettings] = Field(default_factory=dict)


def get_config_path() -> Path:
    """Path of courier.yaml in the current working directory."""
    return Path(os.getcwd()) / CONFIG_FILENAME


def load_runtime_config(path: str | Path | None = None) -> RuntimeConfig:
    """
    Load and validate runtime configuration.

    Args:
        path: YAML file; defaults to courier.yaml in the working directory

    Raises:
        FileNotFoundError: If the file doesn't exist
        InvalidConfiguration: If the YAML is unreadable or fails validation
    """
    config_path = Path(path) if path is not None else get_config_path()
    logger.debug(f"Loading config from: {config_path}")

    if not config_path.exists():
        raise FileNotFoundError(f"{CONFIG_FILENAME} not found at {config_path}")

    try:
        with open(config_path, "r") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise InvalidConfiguration(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(raw, dict):
        raise InvalidConfiguration(f"{config_path} must contain a mapping at the top level")

    try:
        return RuntimeConfig.model_validate(raw)
    except ValidationError as e:
        raise InvalidConfiguration(
            f"Invalid configuration in {config_path}", {"errors": e.errors()}
        ) from e
