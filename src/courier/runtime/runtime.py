"""
AgentRuntime - Convenience wrapper wiring directory, router, correlation
and per-agent executions.

Every dependency is passed in (or defaulted here); nothing is looked up
from global state.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Any, Callable

from courier.config.loader import AgentTypeSettings, RuntimeConfig
from courier.config.snapshot import ConfigHandle
from courier.core.address import Address, resolve
from courier.core.errors import AddressInUse, DeliveryError, UnknownAgent
from courier.core.message import Message

from .correlation import CorrelationHandle, CorrelationTracker
from .execution import Execution, ExecutionContext
from .lifecycle import LifecycleStateMachine, Transition
from .mailbox import Mailbox
from .observability import LoggingObservabilitySink
from .protocols import InferenceService, ObservabilitySink, PromptProvider, ToolExecutor
from .router import DirectoryEntry, MailboxDirectory, RouteResult, Router
from .sinks import UserSink
from .types import AgentSession

logger = logging.getLogger(__name__)

# Factory type for custom execution implementations
ExecutionFactory = Callable[[AgentSession, Router], Execution]

AgentRef = AgentSession | Address | str


class AgentRuntime:
    """
    Convenience wrapper: agents, sinks and routing in one place.

    Manages:
    - Agent sessions (address, lifecycle, mailbox) and their executions
    - User sinks for user-facing addresses
    - Routing, request/response correlation and its expiry sweep

    Example:
        runtime = AgentRuntime(inference=my_inference)
        planner = await runtime.register_agent("planner", "project-1")
        user = runtime.register_sink("alice@project-1.user")

        async with runtime:
            runtime.send(Message.create(user.address, planner.address, "hi", "hello"))
            reply = await user.next_message(timeout=30)
    """

    def __init__(
        self,
        inference: InferenceService,
        tools: ToolExecutor | None = None,
        prompts: PromptProvider | None = None,
        observer: ObservabilitySink | None = None,
        config: ConfigHandle | RuntimeConfig | None = None,
        directory: MailboxDirectory | None = None,
        correlation: CorrelationTracker | None = None,
        execution_factory: ExecutionFactory | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize AgentRuntime.

        Args:
            inference: Inference collaborator shared by all agents
            tools: Tool executor shared by all agents
            prompts: Prompt provider; defaults to the config-driven one
            observer: Observability sink; defaults to logging
            config: ConfigHandle, or a RuntimeConfig to wrap in one
            directory: Address -> mailbox directory
            correlation: Correlation tracker
            execution_factory: Optional factory for custom Execution implementations
            clock: Monotonic clock for correlation expiry
        """
        self.inference = inference
        self.tools = tools
        self.prompts = prompts
        self.observer = observer or LoggingObservabilitySink()
        self.config = config if isinstance(config, ConfigHandle) else ConfigHandle(config)
        self.correlation = correlation or CorrelationTracker(clock)
        self.router = Router(
            directory or MailboxDirectory(),
            correlation=self.correlation,
            observer=self.observer,
        )
        self._execution_factory = execution_factory

        self.sessions: dict[Address, AgentSession] = {}
        self.executions: dict[Address, Execution] = {}
        self.sinks: dict[Address, UserSink] = {}

        self._started = False
        self._sweeper_task: asyncio.Task[None] | None = None

    @property
    def directory(self) -> MailboxDirectory:
        return self.router.directory

    @property
    def is_started(self) -> bool:
        return self._started

    # --- Registration ---

    async def register_agent(
        self,
        agent_id: str,
        project_id: str,
        metadata: dict[str, Any] | None = None,
        agent_type: str | None = None,
    ) -> AgentSession:
        """
        Create an agent session and register its mailbox.

        Raises:
            MalformedAddress: If agent_id/project_id don't form a valid address
            AddressInUse: If the address already has a mailbox
        """
        address = Address.agent(agent_id, project_id)
        snapshot = self.config.current()
        session_config = snapshot.session

        metadata = self._agent_metadata(snapshot.agent_type(agent_type), metadata)
        if agent_type:
            metadata["agent_type"] = agent_type

        lifecycle = LifecycleStateMachine(
            str(address), history_size=session_config.transition_history
        )
        mailbox = Mailbox(
            address,
            capacity=session_config.mailbox_capacity,
            history_size=session_config.mailbox_history,
        )
        session = AgentSession(
            agent_id=agent_id,
            project_id=project_id,
            address=address,
            lifecycle=lifecycle,
            mailbox=mailbox,
            metadata=metadata,
        )

        _, created = self.directory.register(
            DirectoryEntry(address, mailbox, lifecycle.signal_mail, kind="agent")
        )
        if not created:
            raise AddressInUse(f"{address} already has a registered mailbox")

        if self._execution_factory:
            execution = self._execution_factory(session, self.router)
        else:
            execution = ExecutionContext(
                session,
                self.router,
                self.inference,
                tools=self.tools,
                prompts=self.prompts,
                observer=self.observer,
                config=self.config,
            )

        self.sessions[address] = session
        self.executions[address] = execution
        if self._started:
            await execution.start()

        logger.info(f"Registered agent {address}")
        return session

    @staticmethod
    def _agent_metadata(
        agent_type: AgentTypeSettings | None,
        metadata: dict[str, Any] | None,
    ) -> dict[str, Any]:
        """Agent type metadata and extra keys, overridden by explicit metadata."""
        merged: dict[str, Any] = {}
        if agent_type is not None:
            merged.update(agent_type.metadata)
            merged.update(agent_type.model_extra or {})
        merged.update(metadata or {})
        return merged

    def register_sink(
        self,
        address: Address | str,
        on_message: Callable[[Message], None] | None = None,
    ) -> UserSink:
        """
        Register a reserved external sink (user session).

        Raises:
            ValueError: If the address is in the agent domain
            AddressInUse: If the address already has a mailbox
        """
        address = resolve(address)
        if address.is_agent:
            raise ValueError(f"{address} is an agent address; use register_agent()")

        sink = UserSink(address, on_message=on_message)
        _, created = self.directory.register(
            DirectoryEntry(address, sink.mailbox, sink.wake, kind="sink")
        )
        if not created:
            raise AddressInUse(f"{address} already has a registered mailbox")

        self.sinks[address] = sink
        logger.info(f"Registered sink {address}")
        return sink

    def unregister_sink(self, address: Address | str) -> None:
        address = resolve(address)
        sink = self.sinks.pop(address, None)
        if sink is None:
            return
        self.directory.unregister(address)
        sink.close()

    def get_session(self, agent: AgentRef) -> AgentSession:
        """
        Raises:
            UnknownAgent: If no session exists for the reference.
        """
        if isinstance(agent, AgentSession):
            address = agent.address
        else:
            address = resolve(agent)
        session = self.sessions.get(address)
        if session is None:
            raise UnknownAgent(f"No agent registered at {address}")
        return session

    # --- Messaging ---

    def send(self, message: Message) -> RouteResult:
        """Route a message. Raises the Router's delivery errors."""
        return self.router.route(message)

    def request(self, message: Message, ttl: float | None = None) -> CorrelationHandle:
        """
        Route a request and track its response.

        Adds a correlation-id header if the message lacks one. Await
        handle.wait() for the reply.

        Raises:
            DuplicateCorrelationToken: If the token is already outstanding
            DeliveryError: If the request is undeliverable
        """
        token = message.correlation_id
        if not token:
            token = uuid.uuid4().hex
            message = message.with_headers(correlation_id=token)

        ttl = ttl if ttl is not None else self.config.current().config.correlation_ttl
        handle = self.correlation.register(token, ttl)
        try:
            self.router.route(message)
        except DeliveryError:
            self.correlation.cancel(token)
            raise
        return handle

    # --- Administrative commands ---

    def pause_agent(self, agent: AgentRef) -> Transition:
        return self.get_session(agent).lifecycle.pause()

    def resume_agent(self, agent: AgentRef) -> Transition:
        return self.get_session(agent).lifecycle.resume()

    async def stop_agent(self, agent: AgentRef) -> Transition:
        """
        Permanently stop an agent. Idempotent.

        Closes the mailbox and, unless retain_closed_mailboxes is set,
        removes it from the directory.
        """
        session = self.get_session(agent)
        transition = session.lifecycle.stop()
        session.mailbox.close()
        execution = self.executions.get(session.address)
        if execution is not None:
            await execution.stop()

        if not self.config.current().config.retain_closed_mailboxes:
            entry = self.directory.lookup(session.address)
            if entry is not None and entry.mailbox is session.mailbox:
                self.directory.unregister(session.address)

        if transition.changed:
            logger.info(f"Stopped agent {session.address}")
        return transition

    # --- Lifecycle ---

    async def start(self) -> None:
        """Start every registered execution and the correlation sweeper."""
        if self._started:
            logger.warning("AgentRuntime already started")
            return

        logger.info(f"Starting AgentRuntime with {len(self.executions)} agent(s)")
        self._started = True
        for execution in list(self.executions.values()):
            await execution.start()
        self._sweeper_task = asyncio.create_task(
            self._sweep_loop(), name="courier-correlation-sweeper"
        )

    async def stop(self) -> None:
        """Stop all agents, the sweeper and all sinks."""
        logger.info("Stopping AgentRuntime")

        for address in list(self.sessions):
            await self.stop_agent(address)

        if self._sweeper_task is not None:
            self._sweeper_task.cancel()
            try:
                await self._sweeper_task
            except asyncio.CancelledError:
                pass
            self._sweeper_task = None

        for address in list(self.sinks):
            self.unregister_sink(address)

        self._started = False

    async def __aenter__(self) -> "AgentRuntime":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.current().config.sweep_interval)
            try:
                self.correlation.expire_sweep()
            except Exception as e:
                logger.error(f"Correlation sweep failed: {e}", exc_info=True)
