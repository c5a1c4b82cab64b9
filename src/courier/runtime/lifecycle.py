"""
Lifecycle state machine - one per agent.

Transitions are a total function: every (state, event) pair either maps
to a next state in TRANSITIONS or is an explicit no-op. STOPPED is
terminal.

    IDLE --mail--> ACTIVE --stop/failed--> IDLE
      |              |  \\--continue--> ACTIVE
      +----pause-----+--> PAUSED --resume--> RESUMING --complete--> IDLE
    any non-terminal --stop command--> STOPPED
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class AgentState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    PAUSED = "paused"
    RESUMING = "resuming"
    STOPPED = "stopped"


class LifecycleEvent(str, Enum):
    MAIL_DELIVERED = "mail_delivered"
    PROCESSING_STOP = "processing_stop"
    PROCESSING_CONTINUE = "processing_continue"
    PROCESSING_FAILED = "processing_failed"
    PAUSE = "pause"
    RESUME = "resume"
    RESUME_COMPLETE = "resume_complete"
    STOP = "stop"


TRANSITIONS: dict[tuple[AgentState, LifecycleEvent], AgentState] = {
    (AgentState.IDLE, LifecycleEvent.MAIL_DELIVERED): AgentState.ACTIVE,
    (AgentState.ACTIVE, LifecycleEvent.PROCESSING_STOP): AgentState.IDLE,
    (AgentState.ACTIVE, LifecycleEvent.PROCESSING_CONTINUE): AgentState.ACTIVE,
    (AgentState.ACTIVE, LifecycleEvent.PROCESSING_FAILED): AgentState.IDLE,
    (AgentState.IDLE, LifecycleEvent.PAUSE): AgentState.PAUSED,
    (AgentState.ACTIVE, LifecycleEvent.PAUSE): AgentState.PAUSED,
    (AgentState.PAUSED, LifecycleEvent.RESUME): AgentState.RESUMING,
    (AgentState.RESUMING, LifecycleEvent.RESUME_COMPLETE): AgentState.IDLE,
    (AgentState.IDLE, LifecycleEvent.STOP): AgentState.STOPPED,
    (AgentState.ACTIVE, LifecycleEvent.STOP): AgentState.STOPPED,
    (AgentState.PAUSED, LifecycleEvent.STOP): AgentState.STOPPED,
    (AgentState.RESUMING, LifecycleEvent.STOP): AgentState.STOPPED,
}


def next_state(state: AgentState, event: LifecycleEvent) -> AgentState | None:
    """Pure transition lookup. None means the event is a no-op in this state."""
    return TRANSITIONS.get((state, event))


@dataclass(frozen=True)
class Transition:
    previous: AgentState
    event: LifecycleEvent
    current: AgentState
    accepted: bool

    @property
    def changed(self) -> bool:
        return self.previous != self.current


TransitionListener = Callable[[str, Transition], None]


class LifecycleStateMachine:
    """
    Owns one agent's state and applies TRANSITIONS.

    Every accepted transition sets an asyncio.Event so the processing
    loop can sleep until something happens. Events must be fired from the
    thread running the agent's event loop.
    """

    def __init__(
        self,
        agent_id: str,
        initial: AgentState = AgentState.IDLE,
        on_transition: TransitionListener | None = None,
        history_size: int = 50,
    ):
        self.agent_id = agent_id
        self._state = initial
        self._lock = threading.Lock()
        self._changed = asyncio.Event()
        self._on_transition = on_transition
        self.history: deque[Transition] = deque(maxlen=history_size)

    @property
    def state(self) -> AgentState:
        return self._state

    @property
    def is_stopped(self) -> bool:
        return self._state is AgentState.STOPPED

    def fire(self, event: LifecycleEvent) -> Transition:
        """
        Apply an event.

        Returns:
            Transition with accepted=False when the pair is a no-op.
        """
        with self._lock:
            previous = self._state
            target = next_state(previous, event)
            if target is None:
                transition = Transition(previous, event, previous, accepted=False)
            else:
                self._state = target
                transition = Transition(previous, event, target, accepted=True)
                self.history.append(transition)

        if not transition.accepted:
            logger.debug(
                f"Agent {self.agent_id}: {event.value} ignored in {previous.value}"
            )
            return transition

        logger.debug(
            f"Agent {self.agent_id}: {previous.value} --{event.value}--> {transition.current.value}"
        )
        self._changed.set()
        if self._on_transition:
            try:
                self._on_transition(self.agent_id, transition)
            except Exception as e:
                logger.warning(f"Transition listener failed for {self.agent_id}: {e}")
        return transition

    # --- Named events ---

    def signal_mail(self) -> Transition:
        """Wake trigger. Only IDLE reacts; elsewhere mail simply waits."""
        return self.fire(LifecycleEvent.MAIL_DELIVERED)

    def pause(self) -> Transition:
        return self.fire(LifecycleEvent.PAUSE)

    def resume(self) -> Transition:
        return self.fire(LifecycleEvent.RESUME)

    def stop(self) -> Transition:
        return self.fire(LifecycleEvent.STOP)

    # --- Waiting ---

    def clear_change(self) -> None:
        self._changed.clear()

    async def wait_for_change(self) -> None:
        await self._changed.wait()
