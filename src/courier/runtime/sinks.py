"""
UserSink - reserved external sink for user-facing addresses.

A sink is registered in the directory like an agent mailbox but has no
lifecycle or processing loop; an external user session reads from it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from courier.core.address import Address
from courier.core.message import Message

from .mailbox import Mailbox

logger = logging.getLogger(__name__)


class UserSink:
    """
    Mailbox plus wake notification for a user session.

    Example:
        sink = runtime.register_sink("alice@project-1.user")
        message = await sink.next_message(timeout=5)
    """

    def __init__(
        self,
        address: Address,
        mailbox: Mailbox | None = None,
        on_message: Callable[[Message], None] | None = None,
    ):
        self.address = address
        self.mailbox = mailbox or Mailbox(address)
        self.on_message = on_message
        self._arrived = asyncio.Event()

    def wake(self) -> None:
        """Called by the Router after an accepted delivery."""
        self._arrived.set()
        if self.on_message is None:
            return
        # Listener sees everything pending; the sink drains it
        for message in self.mailbox.drain():
            try:
                self.on_message(message)
            except Exception as e:
                logger.error(
                    f"UserSink {self.address}: listener failed for {message.id}: {e}",
                    exc_info=True,
                )

    def unread_count(self) -> int:
        return self.mailbox.unread_count()

    def messages(self) -> list[Message]:
        """Drain everything pending without waiting."""
        return list(self.mailbox.drain())

    async def next_message(self, timeout: float | None = None) -> Message:
        """
        Wait for and return the next message.

        Raises:
            asyncio.TimeoutError: If nothing arrives within timeout.
        """
        while True:
            for message in self.mailbox.drain(1):
                return message
            self._arrived.clear()
            await asyncio.wait_for(self._arrived.wait(), timeout)

    def close(self) -> None:
        self.mailbox.close()
