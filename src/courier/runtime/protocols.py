"""Protocols for the external collaborators the runtime drives."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .execution import ExecutionContext
    from .observability import ObservabilityEvent
    from .types import AgentContext, AgentSession, InferenceResult, ToolResult, WakeReason


@runtime_checkable
class InferenceService(Protocol):
    """
    The AI step. Opaque to the runtime.

    Must be safe to retry: any exception is treated as a retryable failure.
    """

    async def infer(
        self, agent_context: "AgentContext", wake_reason: "WakeReason"
    ) -> "InferenceResult":
        """
        Decide what the agent does next.

        Args:
            agent_context: Prompt, new mail and accumulated history
            wake_reason: Why the agent was woken ("you have mail" or continue)

        Returns:
            InferenceResult with decision, outgoing messages and tool requests
        """
        ...


@runtime_checkable
class ToolExecutor(Protocol):
    """Runs tool requests on behalf of an agent."""

    async def execute(
        self,
        tool_name: str,
        parameters: dict[str, Any],
        execution_context: "ExecutionContext",
    ) -> "ToolResult":
        ...


@runtime_checkable
class PromptProvider(Protocol):
    """Supplies the rendered prompt text. The runtime never inspects it."""

    def render(self, session: "AgentSession") -> str:
        ...


@runtime_checkable
class ObservabilitySink(Protocol):
    def emit(self, event: "ObservabilityEvent") -> None:
        ...
