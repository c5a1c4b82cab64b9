"""Tests for AgentRuntime."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from courier.config import ConfigHandle, RuntimeConfig
from courier.core.address import Address
from courier.core.errors import (
    AddressInUse,
    CorrelationExpired,
    DuplicateCorrelationToken,
    MailboxClosed,
    MalformedAddress,
    UnknownAddress,
    UnknownAgent,
)
from courier.core.message import CORRELATION_HEADER
from courier.runtime.execution import ExecutionContext
from courier.runtime.lifecycle import AgentState
from courier.runtime.runtime import AgentRuntime
from courier.runtime.types import InferenceResult, OutgoingMessage
from courier.testing import ScriptedInference
from tests.conftest import make_message, wait_until


class TestRegisterAgent:
    async def test_creates_session_and_mailbox(self, runtime):
        session = await runtime.register_agent("planner", "proj", metadata={"team": "a"})

        assert session.address == Address.agent("planner", "proj")
        assert session.state is AgentState.IDLE
        assert session.metadata == {"team": "a"}
        assert session.address in runtime.directory
        assert isinstance(runtime.executions[session.address], ExecutionContext)

    async def test_agent_type_goes_into_metadata(self, runtime):
        session = await runtime.register_agent("planner", "proj", agent_type="planner")

        assert session.metadata["agent_type"] == "planner"

    async def test_duplicate_address_rejected(self, runtime):
        await runtime.register_agent("planner", "proj")

        with pytest.raises(AddressInUse):
            await runtime.register_agent("PLANNER", "proj")

    async def test_malformed_identity_rejected(self, runtime):
        with pytest.raises(MalformedAddress):
            await runtime.register_agent("bad name", "proj")

    async def test_register_after_start_starts_execution(self, runtime):
        await runtime.start()

        session = await runtime.register_agent("late", "proj")

        assert runtime.executions[session.address].is_running is True

    async def test_register_before_start_waits(self, runtime):
        session = await runtime.register_agent("early", "proj")

        assert runtime.executions[session.address].is_running is False
        await runtime.start()
        assert runtime.executions[session.address].is_running is True

    async def test_mailbox_uses_configured_capacity(self, inference):
        config = RuntimeConfig.model_validate({"session": {"mailbox_capacity": 5}})
        runtime = AgentRuntime(inference=inference, config=config)

        session = await runtime.register_agent("planner", "proj")

        assert session.mailbox.capacity == 5

    async def test_custom_execution_factory(self, inference):
        execution = MagicMock()
        execution.start = AsyncMock()
        execution.stop = AsyncMock()
        factory = MagicMock(return_value=execution)
        runtime = AgentRuntime(inference=inference, execution_factory=factory)

        session = await runtime.register_agent("custom", "proj")
        await runtime.start()
        await runtime.stop()

        factory.assert_called_once_with(session, runtime.router)
        execution.start.assert_awaited_once()
        execution.stop.assert_awaited_once()
        assert session.state is AgentState.STOPPED


class TestSinks:
    async def test_register_sink(self, runtime):
        sink = runtime.register_sink("carol@proj.user")

        assert sink.address in runtime.directory
        assert runtime.sinks[sink.address] is sink

    async def test_agent_address_not_allowed(self, runtime):
        with pytest.raises(ValueError):
            runtime.register_sink("planner@proj.agent")

    async def test_duplicate_sink_rejected(self, runtime):
        runtime.register_sink("carol@proj.user")

        with pytest.raises(AddressInUse):
            runtime.register_sink("Carol@proj.user")

    async def test_unregister_sink(self, runtime):
        sink = runtime.register_sink("carol@proj.user")

        runtime.unregister_sink("carol@proj.user")

        assert sink.address not in runtime.directory
        assert sink.mailbox.closed is True

    async def test_send_to_unregistered_user_is_unknown(self, runtime):
        runtime.register_sink("carol@proj.user")

        with pytest.raises(UnknownAddress):
            runtime.send(make_message(sender="carol@proj.user", to="dave@proj.user"))


class TestGetSession:
    async def test_lookup_by_text_address_or_session(self, runtime):
        session = await runtime.register_agent("planner", "proj")

        assert runtime.get_session("Planner@Proj.agent") is session
        assert runtime.get_session(session.address) is session
        assert runtime.get_session(session) is session

    async def test_unknown_agent(self, runtime):
        with pytest.raises(UnknownAgent):
            runtime.get_session("ghost@proj.agent")


class TestRequest:
    async def test_request_resolved_by_reply(self, runtime, inference):
        def answer(ctx):
            return InferenceResult(
                outgoing_messages=[
                    OutgoingMessage(
                        to=m.sender,
                        body="42",
                        headers={"in-reply-to": m.id, CORRELATION_HEADER: m.correlation_id},
                    )
                    for m in ctx.new_mail
                ]
            )

        inference.script = [answer]
        await runtime.register_agent("oracle", "proj")
        carol = runtime.register_sink("carol@proj.user")
        await runtime.start()

        handle = runtime.request(make_message(sender="carol@proj.user", to="oracle@proj.agent"))
        response = await handle.wait(timeout=2)

        assert response.body == "42"
        assert response.correlation_id == handle.token
        assert (await carol.next_message(timeout=1)).id == response.id

    async def test_request_keeps_existing_token(self, runtime):
        await runtime.register_agent("oracle", "proj")

        handle = runtime.request(
            make_message(to="oracle@proj.agent", headers={CORRELATION_HEADER: "tok-1"})
        )

        assert handle.token == "tok-1"
        assert "tok-1" in runtime.correlation

    async def test_duplicate_outstanding_token(self, runtime):
        await runtime.register_agent("oracle", "proj")
        msg = make_message(to="oracle@proj.agent", headers={CORRELATION_HEADER: "tok-1"})
        runtime.request(msg)

        with pytest.raises(DuplicateCorrelationToken):
            runtime.request(msg)

    async def test_undeliverable_request_cancels_registration(self, runtime):
        with pytest.raises(UnknownAddress):
            runtime.request(make_message(to="ghost@proj.agent", headers={CORRELATION_HEADER: "tok-1"}))

        assert "tok-1" not in runtime.correlation

    async def test_unanswered_request_expires(self, runtime):
        await runtime.register_agent("silent", "proj")
        await runtime.start()

        handle = runtime.request(make_message(to="silent@proj.agent"), ttl=0.02)

        with pytest.raises(CorrelationExpired):
            await handle.wait(timeout=2)
        assert len(runtime.correlation) == 0


class TestAdministrativeCommands:
    async def test_pause_and_resume(self, runtime):
        session = await runtime.register_agent("planner", "proj")

        assert runtime.pause_agent("planner@proj.agent").current is AgentState.PAUSED
        assert runtime.resume_agent(session).current is AgentState.RESUMING

    async def test_pause_stopped_agent_is_noop(self, runtime):
        session = await runtime.register_agent("planner", "proj")
        await runtime.stop_agent(session)

        transition = runtime.pause_agent(session)

        assert transition.accepted is False
        assert session.state is AgentState.STOPPED

    async def test_stop_removes_mailbox_from_directory(self, runtime):
        session = await runtime.register_agent("planner", "proj")
        runtime.register_sink("carol@proj.user")

        await runtime.stop_agent(session)

        assert session.address not in runtime.directory
        assert session.mailbox.closed is True
        with pytest.raises(UnknownAddress):
            runtime.send(make_message(sender="carol@proj.user", to="planner@proj.agent"))

    async def test_stop_can_retain_closed_mailbox(self, inference):
        config = RuntimeConfig.model_validate({"retain_closed_mailboxes": True})
        runtime = AgentRuntime(inference=inference, config=config)
        session = await runtime.register_agent("planner", "proj")
        carol = runtime.register_sink("carol@proj.user")

        await runtime.stop_agent(session)

        with pytest.raises(MailboxClosed):
            runtime.send(make_message(sender="carol@proj.user", to="planner@proj.agent"))
        assert carol.messages()[0].is_bounce is True
        await runtime.stop()

    async def test_stop_unknown_agent(self, runtime):
        with pytest.raises(UnknownAgent):
            await runtime.stop_agent("ghost@proj.agent")


class TestRuntimeLifecycle:
    async def test_context_manager_starts_and_stops(self, inference):
        runtime = AgentRuntime(inference=inference)
        session = await runtime.register_agent("planner", "proj")

        async with runtime:
            assert runtime.is_started is True

        assert runtime.is_started is False
        assert session.state is AgentState.STOPPED

    async def test_stop_closes_sinks(self, runtime):
        sink = runtime.register_sink("carol@proj.user")
        await runtime.start()

        await runtime.stop()

        assert sink.mailbox.closed is True
        assert runtime.sinks == {}

    async def test_start_twice_is_harmless(self, runtime):
        await runtime.start()
        await runtime.start()

        assert runtime.is_started is True

    async def test_agents_run_independently(self, observer):
        """A blocked agent doesn't hold up another agent's mail."""
        gate = asyncio.Event()

        class Selective(ScriptedInference):
            async def infer(self, agent_context, wake_reason):
                if agent_context.agent_id == "slow":
                    await gate.wait()
                return await super().infer(agent_context, wake_reason)

        inference = Selective()
        async with AgentRuntime(inference=inference, observer=observer) as runtime:
            slow = await runtime.register_agent("slow", "proj")
            fast = await runtime.register_agent("fast", "proj")
            runtime.send(make_message(sender="fast@proj.agent", to="slow@proj.agent"))
            runtime.send(make_message(sender="slow@proj.agent", to="fast@proj.agent"))

            fast_exec = runtime.executions[fast.address]
            await wait_until(lambda: fast_exec.steps_completed == 1)
            assert slow.state is AgentState.ACTIVE
            gate.set()


class TestConfigReload:
    async def test_swap_applies_to_next_step(self, runtime, inference, fast_config):
        session = await runtime.register_agent("planner", "proj", agent_type="planner")
        runtime.register_sink("carol@proj.user")
        await runtime.start()
        data = fast_config.current().config.model_dump()
        data["agent_types"] = {"planner": {"prompt": "Plan carefully."}}
        fast_config.swap(RuntimeConfig.model_validate(data))

        runtime.send(make_message(sender="carol@proj.user", to="planner@proj.agent"))
        execution = runtime.executions[session.address]
        await wait_until(lambda: execution.steps_completed == 1)

        assert "Plan carefully." in inference.calls[0][0].prompt
        assert inference.calls[0][0].config_version == fast_config.version

    def test_runtime_wraps_plain_config(self):
        runtime = AgentRuntime(inference=ScriptedInference(), config=RuntimeConfig())

        assert isinstance(runtime.config, ConfigHandle)


class TestAgentTypeMetadata:
    async def test_agent_type_metadata_merged_into_session(self, inference):
        config = RuntimeConfig.model_validate(
            {
                "agent_types": {
                    "planner": {
                        "description": "Plans",
                        "metadata": {"team": "core", "tier": 1},
                        "model": "large",
                    }
                }
            }
        )
        runtime = AgentRuntime(inference=inference, config=config)

        session = await runtime.register_agent(
            "planner", "proj", metadata={"tier": 2}, agent_type="planner"
        )

        assert session.metadata == {
            "team": "core",
            "tier": 2,
            "model": "large",
            "agent_type": "planner",
        }

    async def test_unknown_agent_type_keeps_metadata(self, runtime):
        session = await runtime.register_agent("planner", "proj", metadata={"a": 1}, agent_type="nope")

        assert session.metadata == {"a": 1, "agent_type": "nope"}
