"""
Courier Runtime Layer - mail routing and agent execution.

Components:
    Mailbox: Per-address priority-banded inbox
    MailboxDirectory / Router: Address lookup, delivery, wake, bounces
    LifecycleStateMachine: Per-agent state transitions
    ExecutionContext: Per-agent processing loop
    CorrelationTracker: Request/response matching with expiry
    AgentRuntime: Convenience wrapper wiring all of the above
    UserSink: External sink for user-facing addresses

Utilities:
    formatters: Pure functions for mail formatting
    prompts: System prompt rendering
    MessageFailureTracker: Poison message tracking
"""

# Types
from .types import (
    AgentContext,
    AgentSession,
    ContextEntry,
    Decision,
    InferenceResult,
    OutgoingMessage,
    RetryPolicy,
    SessionConfig,
    ToolRequest,
    ToolResult,
    WakeReason,
)

# Core runtime components
from .mailbox import DeliveryReceipt, Mailbox
from .lifecycle import (
    TRANSITIONS,
    AgentState,
    LifecycleEvent,
    LifecycleStateMachine,
    Transition,
    next_state,
)
from .correlation import CorrelationHandle, CorrelationTracker
from .router import DirectoryEntry, MailboxDirectory, RouteResult, Router
from .sinks import UserSink
from .execution import Execution, ExecutionContext
from .runtime import AgentRuntime, ExecutionFactory

# Collaborators
from .protocols import InferenceService, ObservabilitySink, PromptProvider, ToolExecutor
from .observability import LoggingObservabilitySink, ObservabilityEvent

# Utilities
from .formatters import format_context_for_llm, format_mail_for_llm, format_tool_result_for_llm
from .prompts import BASE_INSTRUCTIONS, YOU_HAVE_MAIL, ConfigPromptProvider, render_system_prompt
from .retry_tracker import MessageFailureTracker

__all__ = [
    # Types
    "AgentContext",
    "AgentSession",
    "ContextEntry",
    "Decision",
    "InferenceResult",
    "OutgoingMessage",
    "RetryPolicy",
    "SessionConfig",
    "ToolRequest",
    "ToolResult",
    "WakeReason",
    # Core components
    "Mailbox",
    "DeliveryReceipt",
    "AgentState",
    "LifecycleEvent",
    "LifecycleStateMachine",
    "Transition",
    "TRANSITIONS",
    "next_state",
    "CorrelationHandle",
    "CorrelationTracker",
    "DirectoryEntry",
    "MailboxDirectory",
    "RouteResult",
    "Router",
    "UserSink",
    "Execution",
    "ExecutionContext",
    "AgentRuntime",
    "ExecutionFactory",
    # Collaborators
    "InferenceService",
    "ToolExecutor",
    "PromptProvider",
    "ObservabilitySink",
    "ObservabilityEvent",
    "LoggingObservabilitySink",
    # Formatters
    "format_mail_for_llm",
    "format_context_for_llm",
    "format_tool_result_for_llm",
    # Prompts
    "render_system_prompt",
    "BASE_INSTRUCTIONS",
    "YOU_HAVE_MAIL",
    "ConfigPromptProvider",
    # Trackers
    "MessageFailureTracker",
]
