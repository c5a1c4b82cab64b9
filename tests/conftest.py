"""
Pytest fixtures for courier tests.

Provides fast in-process collaborators; no real inference backend.

Key fixture pattern:
- inference: ScriptedInference that tests load with canned results
- observer: RecordingObserver for asserting on emitted events
- runtime: AgentRuntime wired with the two above and zero backoff
"""

import asyncio

import pytest

from courier.config import ConfigHandle, RuntimeConfig
from courier.core.address import Address
from courier.core.message import Message, Priority
from courier.testing import FakeToolExecutor, RecordingObserver, ScriptedInference


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Poll predicate on the event loop until true or fail."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


def make_message(
    sender: str = "bob@proj.agent",
    to: str = "alice@proj.agent",
    subject: str = "hi",
    body: str = "hello",
    priority: Priority | str = Priority.NORMAL,
    headers: dict | None = None,
) -> Message:
    return Message.create(sender, to, subject, body, priority=priority, headers=headers)


@pytest.fixture
def alice() -> Address:
    return Address.agent("alice", "proj")


@pytest.fixture
def bob() -> Address:
    return Address.agent("bob", "proj")


@pytest.fixture
def fast_config() -> ConfigHandle:
    """Config with zero backoff and a short sweep interval."""
    return ConfigHandle(
        RuntimeConfig.model_validate(
            {
                "session": {"retry": {"max_attempts": 3, "initial_backoff": 0}},
                "sweep_interval": 0.01,
            }
        )
    )


@pytest.fixture
def inference() -> ScriptedInference:
    return ScriptedInference()


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def tools() -> FakeToolExecutor:
    return FakeToolExecutor()


@pytest.fixture
async def runtime(inference, observer, tools, fast_config):
    """AgentRuntime with fakes. Stopped after the test."""
    from courier.runtime.runtime import AgentRuntime

    rt = AgentRuntime(
        inference=inference,
        tools=tools,
        observer=observer,
        config=fast_config,
    )
    yield rt
    await rt.stop()
