"""Request/response correlation with TTL expiry. Sync core, awaitable handles."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Callable

from courier.core.errors import CorrelationExpired, DuplicateCorrelationToken
from courier.core.message import Message

logger = logging.getLogger(__name__)


class CorrelationHandle:
    """
    Outstanding request registration.

    Await wait() for the response; it raises CorrelationExpired if the
    registration expires first.
    """

    def __init__(self, token: str, expires_at: float):
        self.token = token
        self.expires_at = expires_at
        self.response: Message | None = None
        self.expired = False
        self._done = asyncio.Event()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def _resolve(self, response: Message) -> None:
        self.response = response
        self._done.set()

    def _expire(self) -> None:
        self.expired = True
        self._done.set()

    async def wait(self, timeout: float | None = None) -> Message:
        await asyncio.wait_for(self._done.wait(), timeout)
        if self.response is None:
            raise CorrelationExpired(f"Correlation {self.token} expired without a response")
        return self.response


class CorrelationTracker:
    """
    Tracks outstanding requests by correlation token.

    Used by the Router to match responses and by AgentRuntime.request().
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._pending: dict[str, CorrelationHandle] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, token: str) -> bool:
        return token in self._pending

    def register(self, token: str, ttl: float) -> CorrelationHandle:
        """
        Register an outstanding request.

        Raises:
            DuplicateCorrelationToken: If the token is already outstanding.
        """
        with self._lock:
            if token in self._pending:
                raise DuplicateCorrelationToken(
                    f"Correlation token {token!r} is already outstanding"
                )
            handle = CorrelationHandle(token, self._clock() + ttl)
            self._pending[token] = handle
        logger.debug(f"Registered correlation {token} (ttl={ttl}s)")
        return handle

    def resolve(self, token: str, response: Message) -> bool:
        """
        Match a response to its registration.

        Returns:
            True if an outstanding registration existed and was resolved.
        """
        with self._lock:
            handle = self._pending.pop(token, None)
        if handle is None:
            return False
        handle._resolve(response)
        logger.debug(f"Correlation {token} resolved by {response.id}")
        return True

    def cancel(self, token: str) -> bool:
        with self._lock:
            handle = self._pending.pop(token, None)
        if handle is None:
            return False
        handle._expire()
        return True

    def expire_sweep(self, now: float | None = None) -> list[str]:
        """
        Drop registrations past their ttl.

        Returns:
            Expired tokens.
        """
        now = self._clock() if now is None else now
        with self._lock:
            expired = [t for t, h in self._pending.items() if h.expires_at <= now]
            handles = [self._pending.pop(t) for t in expired]
        for handle in handles:
            handle._expire()
        if expired:
            logger.info(f"Expired {len(expired)} correlation(s)")
        return expired
