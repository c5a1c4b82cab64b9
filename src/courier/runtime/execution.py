"""
Execution - the per-agent processing loop.

One ExecutionContext per agent session. It owns a single asyncio task,
so an agent never has more than one processing step in flight.

Step flow (state ACTIVE):
    1. Peek pending mail (up to drain_batch_size)
    2. Build AgentContext: rendered prompt + "you have mail" + history
    3. Call inference, retrying with backoff
    4. On success: acknowledge the peeked mail, dispatch outgoing
       messages through the Router, run tool requests and fold results
       into context, then fire the decision as a lifecycle event
    5. On exhaustion, or when any collaborator raises mid-step: leave
       unacknowledged mail intact, emit one inference_failure or
       step_failure event and fall back to IDLE

While IDLE the loop sleeps until a lifecycle transition. On entry to
IDLE it re-checks the mailbox, so mail queued during PAUSED or during a
step wakes the agent without a fresh delivery.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import TYPE_CHECKING, Awaitable, Callable, Protocol, runtime_checkable

from courier.config.snapshot import ConfigHandle, ConfigSnapshot
from courier.core.address import Address, resolve
from courier.core.errors import (
    CourierError,
    DeliveryError,
    InferenceFailure,
    MalformedAddress,
    ToolExecutionFailure,
)
from courier.core.message import Message

from .lifecycle import AgentState, LifecycleEvent, LifecycleStateMachine, Transition
from .observability import LoggingObservabilitySink, ObservabilityEvent
from .prompts import YOU_HAVE_MAIL, ConfigPromptProvider
from .retry_tracker import MessageFailureTracker
from .types import (
    AgentContext,
    AgentSession,
    ContextEntry,
    Decision,
    InferenceResult,
    OutgoingMessage,
    RetryPolicy,
    ToolRequest,
    ToolResult,
    WakeReason,
)

if TYPE_CHECKING:
    from .mailbox import Mailbox
    from .protocols import InferenceService, ObservabilitySink, PromptProvider, ToolExecutor
    from .router import Router

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@runtime_checkable
class Execution(Protocol):
    """
    Interface for a per-agent processing loop. Pluggable.

    The default ExecutionContext drives the lifecycle state machine from
    inference decisions.
    """

    agent_id: str

    async def start(self) -> None:
        """Start the processing loop."""
        ...

    async def stop(self) -> None:
        """Stop the loop and release the mailbox."""
        ...


class ExecutionContext:
    """
    Default execution: context accumulation model.

    - Accumulates mail, sent mail and tool results as context
    - Runs at most one step at a time
    - Survives collaborator failures; only stop() ends the loop

    Example:
        ctx = ExecutionContext(session, router, inference)
        await ctx.start()
        ...
        await ctx.stop()
    """

    def __init__(
        self,
        session: AgentSession,
        router: "Router",
        inference: "InferenceService",
        tools: "ToolExecutor | None" = None,
        prompts: "PromptProvider | None" = None,
        observer: "ObservabilitySink | None" = None,
        config: ConfigHandle | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Initialize the processing loop for one agent.

        Args:
            session: The agent session (owns lifecycle and mailbox)
            router: Router for outgoing mail
            inference: Inference collaborator
            tools: Tool executor; tool requests fail without one
            prompts: Prompt provider; defaults to ConfigPromptProvider
            observer: Observability sink; defaults to logging
            config: Configuration handle read once per step
            sleep: Backoff sleep, injectable for tests
        """
        self.session = session
        self.router = router
        self.inference = inference
        self.tools = tools
        self.config = config or ConfigHandle()
        self.prompts = prompts or ConfigPromptProvider(self.config)
        self.observer = observer or LoggingObservabilitySink()
        self._sleep = sleep

        self._history: list[ContextEntry] = []
        self._process_loop_task: asyncio.Task[None] | None = None
        self._in_flight = False
        # delivered_total at the last failed step; older mail must not re-wake
        self._quiet_mark: int | None = None
        self._unacknowledged: list[Message] = []
        self._failures = MessageFailureTracker(agent_id=session.agent_id)
        self.steps_completed = 0

    @property
    def agent_id(self) -> str:
        return self.session.agent_id

    @property
    def address(self) -> Address:
        return self.session.address

    @property
    def lifecycle(self) -> LifecycleStateMachine:
        return self.session.lifecycle

    @property
    def mailbox(self) -> "Mailbox":
        return self.session.mailbox

    @property
    def state(self) -> AgentState:
        return self.lifecycle.state

    @property
    def is_processing(self) -> bool:
        """True while a step is in flight."""
        return self._in_flight

    @property
    def is_running(self) -> bool:
        return (
            self._process_loop_task is not None and not self._process_loop_task.done()
        )

    @property
    def history(self) -> list[ContextEntry]:
        """Accumulated context (copy)."""
        return self._history.copy()

    # --- Execution protocol implementation ---

    async def start(self) -> None:
        """Create the background task that drives this agent."""
        if self.is_running:
            logger.warning(f"ExecutionContext {self.agent_id} already running")
            return
        if self.lifecycle.is_stopped:
            logger.warning(f"ExecutionContext {self.agent_id} is stopped, not starting")
            return

        logger.info(f"Starting ExecutionContext for agent: {self.address}")
        self._process_loop_task = asyncio.create_task(
            self._process_loop(),
            name=f"agent-{self.address}",
        )

    async def stop(self) -> Transition:
        """
        Stop the agent. Idempotent.

        Cancels an in-flight step and closes the mailbox. When called
        from inside the agent's own step (e.g. by a tool) the loop exits
        after that call returns.
        """
        transition = self.lifecycle.stop()
        self.mailbox.close()

        task = self._process_loop_task
        if task is None:
            return transition

        if task is not asyncio.current_task():
            logger.info(f"Stopping ExecutionContext for agent: {self.address}")
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            self._process_loop_task = None
        return transition

    def pause(self) -> Transition:
        """Pause. An in-flight step runs to completion first."""
        return self.lifecycle.pause()

    def resume(self) -> Transition:
        return self.lifecycle.resume()

    # --- Internal processing ---

    def _has_new_mail(self) -> bool:
        if self.mailbox.unread_count() == 0:
            return False
        return self._quiet_mark is None or self.mailbox.delivered_total > self._quiet_mark

    async def _process_loop(self) -> None:
        """
        Drive the lifecycle until STOPPED.

        Uses asyncio cancellation for shutdown; the mailbox is closed on
        the way out whatever the exit path.
        """
        lifecycle = self.lifecycle
        try:
            while not lifecycle.is_stopped:
                lifecycle.clear_change()
                state = lifecycle.state

                if state is AgentState.ACTIVE:
                    await self._run_step()
                    # Yield so a run of "continue" decisions can't starve other agents
                    await asyncio.sleep(0)
                    continue

                if state is AgentState.RESUMING:
                    lifecycle.fire(LifecycleEvent.RESUME_COMPLETE)
                    continue

                if state is AgentState.IDLE and self._has_new_mail():
                    lifecycle.signal_mail()
                    continue

                await lifecycle.wait_for_change()

        except asyncio.CancelledError:
            logger.debug(f"ExecutionContext {self.agent_id} cancelled")
        except Exception as e:
            logger.error(f"ExecutionContext {self.agent_id} error: {e}", exc_info=True)
            lifecycle.stop()
        finally:
            self.mailbox.close()

        logger.debug(f"ExecutionContext {self.agent_id} loop exited")

    async def _run_step(self) -> None:
        """
        Run one processing step. Never raises except on cancellation.

        Any failure inside the step, inference exhaustion or a raising
        collaborator, leaves unacknowledged mail in place and returns the
        agent to IDLE.
        """
        snapshot = self.config.current()
        pending = self.mailbox.peek(snapshot.session.drain_batch_size)
        delivered_mark = self.mailbox.delivered_total
        self._unacknowledged = list(pending)
        self._in_flight = True
        try:
            await self._step(snapshot, pending)
        except Exception as e:
            if self.lifecycle.is_stopped:
                return
            self._quiet_mark = delivered_mark
            self._step_failed(e, snapshot)
            self.lifecycle.fire(LifecycleEvent.PROCESSING_FAILED)
        finally:
            self._unacknowledged = []
            self._in_flight = False

    async def _step(self, snapshot: ConfigSnapshot, pending: list[Message]) -> None:
        reason = WakeReason.MAIL if pending else WakeReason.CONTINUATION
        agent_context = self._build_context(snapshot, pending)
        result = await self._infer_with_retry(agent_context, reason, snapshot.session.retry)

        if self.lifecycle.is_stopped:
            return

        self._quiet_mark = None
        self.mailbox.acknowledge(m.id for m in pending)
        self._unacknowledged = []
        for message in pending:
            self._failures.mark_success(message.id)
            self._record(ContextEntry(kind="mail", content=message), snapshot)

        self._dispatch(result.outgoing_messages, snapshot)

        for request in result.tool_requests:
            tool_result = await self._run_tool(request)
            self._record(ContextEntry(kind="tool_result", content=tool_result), snapshot)
            if self.lifecycle.is_stopped:
                return

        self.steps_completed += 1
        if result.decision is Decision.CONTINUE:
            self.lifecycle.fire(LifecycleEvent.PROCESSING_CONTINUE)
        else:
            self.lifecycle.fire(LifecycleEvent.PROCESSING_STOP)

    def _build_context(self, snapshot: ConfigSnapshot, pending: list[Message]) -> AgentContext:
        return AgentContext(
            session=self.session,
            prompt=self.prompts.render(self.session),
            signal=YOU_HAVE_MAIL,
            new_mail=list(pending),
            history=self._history.copy(),
            config_version=snapshot.version,
        )

    async def _infer_with_retry(
        self,
        agent_context: AgentContext,
        reason: WakeReason,
        policy: RetryPolicy,
    ) -> InferenceResult:
        """
        Call inference up to policy.max_attempts times.

        Raises:
            InferenceFailure: When every attempt failed or the agent stopped.
        """
        last_error: Exception | None = None
        attempt = 0
        while attempt < policy.max_attempts:
            attempt += 1
            try:
                result = await self.inference.infer(agent_context, reason)
                if not isinstance(result, InferenceResult):
                    raise TypeError(
                        f"infer() returned {type(result).__name__}, expected InferenceResult"
                    )
                return result
            except Exception as e:
                last_error = e
                logger.warning(
                    f"Agent {self.agent_id}: inference attempt {attempt}/{policy.max_attempts} failed: {e}"
                )

            if self.lifecycle.is_stopped:
                break
            if attempt < policy.max_attempts:
                await self._sleep(policy.backoff_for(attempt))
                if self.lifecycle.is_stopped:
                    break

        raise InferenceFailure(
            f"Inference failed after {attempt} attempt(s): {last_error}",
            attempts=attempt,
            details={"error": repr(last_error)},
        )

    def _step_failed(self, error: Exception, snapshot: ConfigSnapshot) -> None:
        """Report a failed step once and drop mail that keeps failing."""
        pending = self._unacknowledged
        if isinstance(error, InferenceFailure):
            logger.error(f"Agent {self.agent_id}: {error}")
            kind = "inference_failure"
            details = {"attempts": error.attempts, **error.details}
        else:
            logger.error(f"Agent {self.agent_id}: processing step failed: {error}", exc_info=True)
            kind = "step_failure"
            details = {"error": repr(error)}

        self._emit(
            ObservabilityEvent(
                kind=kind,
                severity="error",
                agent_id=self.agent_id,
                message=str(error),
                details={"pending": [m.id for m in pending], **details},
            )
        )

        try:
            self._drop_poisoned(pending, error, snapshot.session.max_message_failures)
        except Exception as e:
            logger.error(f"Agent {self.agent_id}: dropping failed mail raised: {e}", exc_info=True)

    def _drop_poisoned(self, pending: list[Message], error: Exception, max_failures: int) -> None:
        poisoned = [
            m for m in pending if self._failures.record_failure(m.id, max_failures)[1]
        ]
        if not poisoned:
            return

        code = error.code if isinstance(error, CourierError) else "step_failure"
        self.mailbox.acknowledge(m.id for m in poisoned)
        for message in poisoned:
            self.router.bounce(
                message,
                code,
                f"{self.address} could not process the message",
            )
            self._emit(
                ObservabilityEvent(
                    kind="message_dropped",
                    severity="warning",
                    agent_id=self.agent_id,
                    message=f"Dropped {message.id} after {max_failures} failed step(s)",
                    details={"message_id": message.id, "sender": str(message.sender)},
                )
            )

    def _emit(self, event: ObservabilityEvent) -> None:
        try:
            self.observer.emit(event)
        except Exception as e:
            logger.warning(f"Agent {self.agent_id}: observer failed on {event.kind}: {e}")


    def _dispatch(self, drafts: list[OutgoingMessage], snapshot: ConfigSnapshot) -> None:
        """Send outgoing mail. Delivery failures bounce back to this agent."""
        for draft in drafts:
            try:
                message = Message(
                    sender=self.address,
                    to=resolve(draft.to),
                    subject=draft.subject,
                    body=draft.body,
                    priority=draft.priority,
                    headers=dict(draft.headers),
                )
            except MalformedAddress as e:
                logger.warning(f"Agent {self.agent_id}: rejected outgoing mail: {e}")
                self._record(
                    ContextEntry(
                        kind="tool_result",
                        content=ToolResult(status="error", payload=str(e), tool_name="send_mail"),
                    ),
                    snapshot,
                )
                continue

            try:
                self.router.route(message)
            except DeliveryError as e:
                logger.info(f"Agent {self.agent_id}: {message.id} undeliverable: {e}")
            self._record(ContextEntry(kind="sent", content=message), snapshot)

    async def _run_tool(self, request: ToolRequest) -> ToolResult:
        """Execute one tool request. Failures become error results."""
        if self.tools is None:
            error = ToolExecutionFailure(f"No tool executor configured for {request.name}")
            return self._tool_failed(request, error)

        try:
            result = await self.tools.execute(request.name, dict(request.parameters), self)
        except Exception as e:
            logger.warning(f"Agent {self.agent_id}: tool {request.name} raised: {e}", exc_info=True)
            return self._tool_failed(request, ToolExecutionFailure(str(e)))

        if not isinstance(result, ToolResult):
            error = ToolExecutionFailure(
                f"Tool {request.name} returned {type(result).__name__}, expected ToolResult"
            )
            logger.warning(f"Agent {self.agent_id}: {error.message}")
            return self._tool_failed(request, error)

        result = dataclasses.replace(
            result,
            tool_name=result.tool_name or request.name,
            call_id=result.call_id or request.call_id,
        )
        if not result.ok:
            self._emit_tool_failure(request, str(result.payload))
        return result

    def _tool_failed(self, request: ToolRequest, error: ToolExecutionFailure) -> ToolResult:
        self._emit_tool_failure(request, error.message)
        return ToolResult(
            status="error",
            payload=error.message,
            tool_name=request.name,
            call_id=request.call_id,
        )

    def _emit_tool_failure(self, request: ToolRequest, reason: str) -> None:
        self._emit(
            ObservabilityEvent(
                kind="tool_failure",
                severity="warning",
                agent_id=self.agent_id,
                message=f"Tool {request.name} failed: {reason}",
                details={"tool": request.name, "call_id": request.call_id},
            )
        )

    def _record(self, entry: ContextEntry, snapshot: ConfigSnapshot) -> None:
        self._history.append(entry)
        overflow = len(self._history) - snapshot.session.max_context_entries
        if overflow > 0:
            del self._history[:overflow]
