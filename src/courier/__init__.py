"""
Courier - mailbox-based runtime for agent-first systems.

Agents talk only through mail. A message is routed to the destination
mailbox, which wakes the owning agent; the agent's processing loop asks
the inference service what to do and sends any resulting mail back
through the router.

Core Layer:
    Address, Message, Priority: Immutable data
    resolve, format_address: Address parsing and rendering

Runtime Layer:
    AgentRuntime: Convenience wrapper (directory + router + executions)
    Router, MailboxDirectory, Mailbox: Delivery
    LifecycleStateMachine, ExecutionContext: Per-agent scheduling
    CorrelationTracker: Request/response matching

Configuration:
    ConfigHandle: Versioned configuration snapshots
    load_runtime_config: YAML loader

Example:
    from courier import AgentRuntime, Decision, InferenceResult, Message, OutgoingMessage

    class Echo:
        async def infer(self, ctx, wake_reason):
            return InferenceResult(
                decision=Decision.STOP,
                outgoing_messages=[
                    OutgoingMessage(to=m.sender, subject=f"Re: {m.subject}", body=m.body)
                    for m in ctx.new_mail
                ],
            )

    runtime = AgentRuntime(inference=Echo())
    echo = await runtime.register_agent("echo", "demo")
    alice = runtime.register_sink("alice@demo.user")
    async with runtime:
        runtime.send(Message.create(alice.address, echo.address, "hi", "hello"))
        print(await alice.next_message(timeout=5))
"""

# Core layer
from .core import (
    Address,
    AddressDomain,
    CourierError,
    DeliveryError,
    InferenceFailure,
    MailboxClosed,
    MailboxFull,
    MalformedAddress,
    Message,
    Priority,
    ToolExecutionFailure,
    UnknownAddress,
    format_address,
    resolve,
)

# Runtime layer
from .runtime import (
    AgentContext,
    AgentRuntime,
    AgentSession,
    AgentState,
    CorrelationTracker,
    Decision,
    ExecutionContext,
    InferenceResult,
    LifecycleStateMachine,
    Mailbox,
    MailboxDirectory,
    OutgoingMessage,
    Router,
    SessionConfig,
    ToolRequest,
    ToolResult,
    UserSink,
    WakeReason,
)

# Configuration
from .config import ConfigHandle, RuntimeConfig, load_runtime_config

__all__ = [
    # Core
    "Address",
    "AddressDomain",
    "Message",
    "Priority",
    "resolve",
    "format_address",
    # Errors
    "CourierError",
    "MalformedAddress",
    "DeliveryError",
    "UnknownAddress",
    "MailboxClosed",
    "MailboxFull",
    "InferenceFailure",
    "ToolExecutionFailure",
    # Runtime
    "AgentRuntime",
    "AgentSession",
    "AgentState",
    "AgentContext",
    "Router",
    "MailboxDirectory",
    "Mailbox",
    "LifecycleStateMachine",
    "ExecutionContext",
    "CorrelationTracker",
    "UserSink",
    "Decision",
    "InferenceResult",
    "OutgoingMessage",
    "ToolRequest",
    "ToolResult",
    "WakeReason",
    "SessionConfig",
    # Configuration
    "ConfigHandle",
    "RuntimeConfig",
    "load_runtime_config",
]

__version__ = "0.1.0"
