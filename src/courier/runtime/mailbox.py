"""
Mailbox - per-address ordered inbox.

Messages are held in priority bands. Higher bands drain first; within a
band delivery order is arrival order. All mutation happens under a lock
because delivering agents and the draining owner run in different
contexts.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Iterable, Iterator

from courier.core.address import Address
from courier.core.errors import MailboxClosed, MailboxFull
from courier.core.message import PRIORITY_BANDS, Message, Priority

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryReceipt:
    accepted: bool
    reason: str | None = None
    error_code: str | None = None
    message_id: str | None = None


class Mailbox:
    """
    Ordered inbox owned by a single address.

    Example:
        mailbox = Mailbox(address)
        receipt = mailbox.deliver(message)
        for msg in mailbox.drain(10):
            ...
    """

    def __init__(
        self,
        owner: Address,
        capacity: int | None = None,
        history_size: int = 50,
    ):
        """
        Args:
            owner: The address this mailbox belongs to
            capacity: Max pending messages; None means unbounded
            history_size: Number of read messages to retain
        """
        self.owner = owner
        self.capacity = capacity
        self._lock = threading.Lock()
        self._bands: dict[Priority, deque[Message]] = {p: deque() for p in PRIORITY_BANDS}
        self._unread = 0
        self._delivered_total = 0
        self._closed = False
        self._history: deque[Message] = deque(maxlen=history_size)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def delivered_total(self) -> int:
        """Monotonic count of accepted deliveries. Used to detect new mail."""
        return self._delivered_total

    def unread_count(self) -> int:
        return self._unread

    def __len__(self) -> int:
        return self._unread

    def deliver(self, message: Message) -> DeliveryReceipt:
        """
        Append a message to its priority band.

        Returns:
            DeliveryReceipt; accepted=False when closed or at capacity.
        """
        with self._lock:
            if self._closed:
                return DeliveryReceipt(
                    accepted=False,
                    reason=f"mailbox {self.owner} is closed",
                    error_code=MailboxClosed.code,
                    message_id=message.id,
                )
            if self.capacity is not None and self._unread >= self.capacity:
                return DeliveryReceipt(
                    accepted=False,
                    reason=f"mailbox {self.owner} is full ({self.capacity} pending)",
                    error_code=MailboxFull.code,
                    message_id=message.id,
                )
            self._bands[message.priority].append(message)
            self._unread += 1
            self._delivered_total += 1

        logger.debug(f"Mailbox {self.owner}: accepted {message.id} ({message.priority.value})")
        return DeliveryReceipt(accepted=True, message_id=message.id)

    def drain(self, max_count: int | None = None) -> Iterator[Message]:
        """
        Lazily yield up to max_count pending messages, marking each read.

        Never blocks. Stopping iteration early leaves the rest unread;
        call drain() again to continue.
        """
        produced = 0
        while max_count is None or produced < max_count:
            message = self._pop_next()
            if message is None:
                return
            produced += 1
            yield message

    def _pop_next(self) -> Message | None:
        with self._lock:
            for band in PRIORITY_BANDS:
                queue = self._bands[band]
                if queue:
                    message = queue.popleft()
                    self._unread -= 1
                    self._history.append(message)
                    return message
        return None

    def peek(self, max_count: int | None = None) -> list[Message]:
        """Pending messages in drain order, without marking them read."""
        with self._lock:
            pending: list[Message] = []
            for band in PRIORITY_BANDS:
                for message in self._bands[band]:
                    if max_count is not None and len(pending) >= max_count:
                        return pending
                    pending.append(message)
            return pending

    def acknowledge(self, message_ids: Iterable[str]) -> int:
        """
        Mark specific pending messages read.

        Returns:
            Number of messages removed; unknown ids are ignored.
        """
        wanted = set(message_ids)
        if not wanted:
            return 0

        removed = 0
        with self._lock:
            for band in PRIORITY_BANDS:
                queue = self._bands[band]
                if not queue:
                    continue
                kept: deque[Message] = deque()
                for message in queue:
                    if message.id in wanted:
                        self._history.append(message)
                        removed += 1
                    else:
                        kept.append(message)
                self._bands[band] = kept
            self._unread -= removed
        return removed

    def history(self) -> list[Message]:
        """Recently read messages, oldest first."""
        with self._lock:
            return list(self._history)

    def close(self) -> None:
        """Permanently close. Idempotent; pending messages stay readable."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        logger.debug(f"Mailbox {self.owner} closed with {self._unread} unread")
