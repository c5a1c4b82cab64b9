"""
Runtime types for the courier agent runtime.

Data structures shared by the mailbox, lifecycle, processing loop and
the external collaborator protocols.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal, Mapping

from courier.core.address import Address
from courier.core.message import Message, Priority

if TYPE_CHECKING:
    from .lifecycle import AgentState, LifecycleStateMachine
    from .mailbox import Mailbox


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff for inference calls."""

    max_attempts: int = 3
    initial_backoff: float = 0.5
    backoff_multiplier: float = 2.0
    max_backoff: float = 10.0

    def backoff_for(self, attempt: int) -> float:
        """Delay before retrying after the given (1-based) failed attempt."""
        delay = self.initial_backoff * (self.backoff_multiplier ** (attempt - 1))
        return min(delay, self.max_backoff)


@dataclass(frozen=True)
class SessionConfig:
    """Configuration for a per-agent processing loop."""

    drain_batch_size: int = 20
    max_context_entries: int = 100
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    max_message_failures: int = 3  # Exhausted steps a message may sit through before it is dropped
    mailbox_capacity: int | None = None  # None = unbounded
    mailbox_history: int = 50  # Read messages kept per mailbox
    transition_history: int = 50  # Lifecycle transitions kept per agent


class Decision(str, Enum):
    """Outcome chosen by the inference collaborator."""

    STOP = "stop"
    CONTINUE = "continue"


class WakeReason(str, Enum):
    MAIL = "you have mail"
    CONTINUATION = "continue"


@dataclass(frozen=True)
class OutgoingMessage:
    """
    Draft produced by inference.

    The processing loop stamps the agent's own address as sender.
    """

    to: str | Address
    subject: str = ""
    body: str = ""
    priority: Priority = Priority.NORMAL
    headers: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolRequest:
    name: str
    parameters: dict[str, Any] = field(default_factory=dict)
    call_id: str | None = None


@dataclass(frozen=True)
class ToolResult:
    status: Literal["success", "error"]
    payload: Any = None
    tool_name: str = ""
    call_id: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "success"


@dataclass
class InferenceResult:
    decision: Decision = Decision.STOP
    outgoing_messages: list[OutgoingMessage] = field(default_factory=list)
    tool_requests: list[ToolRequest] = field(default_factory=list)


@dataclass
class AgentSession:
    """
    One registered agent.

    Owns exactly one lifecycle state machine and one mailbox for its
    lifetime. metadata is opaque to the runtime.
    """

    agent_id: str
    project_id: str
    address: Address
    lifecycle: "LifecycleStateMachine" = field(repr=False)
    mailbox: "Mailbox" = field(repr=False)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def state(self) -> "AgentState":
        return self.lifecycle.state


@dataclass
class ContextEntry:
    """One accumulated item of agent context (mail in, mail out, tool result)."""

    kind: Literal["mail", "sent", "tool_result"]
    content: Any
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class AgentContext:
    """
    Everything passed to inference for one step.

    prompt is the rendered text from the PromptProvider, passed through
    untouched.
    """

    session: AgentSession
    prompt: str
    signal: str
    new_mail: list[Message]
    history: list[ContextEntry]
    config_version: int = 0

    @property
    def agent_id(self) -> str:
        return self.session.agent_id

    @property
    def address(self) -> Address:
        return self.session.address
