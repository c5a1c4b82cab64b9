"""
Router - resolves destinations and delivers mail.

The MailboxDirectory is the process-wide address -> mailbox map. Entries
exist only for addresses explicitly registered by an agent session or an
external sink; routing anywhere else is an UnknownAddress error and the
sender gets a bounce.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Literal

from courier.core.address import Address, resolve
from courier.core.errors import DeliveryError, MailboxClosed, MailboxFull, UnknownAddress
from courier.core.message import Message, make_bounce

from .correlation import CorrelationTracker
from .mailbox import DeliveryReceipt, Mailbox
from .observability import LoggingObservabilitySink, ObservabilityEvent
from .protocols import ObservabilitySink

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DirectoryEntry:
    address: Address
    mailbox: Mailbox
    wake: Callable[[], object]
    kind: Literal["agent", "sink"] = "agent"


@dataclass(frozen=True)
class RouteResult:
    delivered: bool
    mailbox: Mailbox
    message_id: str


class MailboxDirectory:
    """
    Address -> DirectoryEntry map.

    Lookups are lock-free; inserts are insert-if-absent under a lock, so
    concurrent registrations never lose an update.
    """

    def __init__(self) -> None:
        self._entries: dict[Address, DirectoryEntry] = {}
        self._lock = threading.Lock()

    def __contains__(self, address: Address) -> bool:
        return address in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def addresses(self) -> list[Address]:
        return list(self._entries)

    def lookup(self, address: Address) -> DirectoryEntry | None:
        return self._entries.get(address)

    def register(self, entry: DirectoryEntry) -> tuple[DirectoryEntry, bool]:
        """
        Insert if absent.

        Returns:
            (entry now in the directory, whether this call created it)
        """
        with self._lock:
            existing = self._entries.get(entry.address)
            if existing is not None:
                return existing, False
            self._entries[entry.address] = entry
        logger.debug(f"Registered {entry.kind} mailbox {entry.address}")
        return entry, True

    def unregister(self, address: Address) -> DirectoryEntry | None:
        with self._lock:
            entry = self._entries.pop(address, None)
        if entry is not None:
            logger.debug(f"Unregistered mailbox {address}")
        return entry


class Router:
    """
    Delivers messages to registered mailboxes.

    Delivery and the wake signal form one step: a rejected delivery
    never wakes the owner.

    route() must run on the event loop that runs the agents' processing
    loops, because waking sets asyncio primitives. The locks inside the
    mailbox, directory and correlation tracker only keep their own state
    consistent; they do not make route() safe to call from another
    thread. From a foreign thread use
    loop.call_soon_threadsafe(router.route, message).

    Example:
        router = Router(directory, correlation=tracker)
        result = router.route(message)
    """

    def __init__(
        self,
        directory: MailboxDirectory | None = None,
        correlation: CorrelationTracker | None = None,
        observer: ObservabilitySink | None = None,
    ):
        self.directory = directory or MailboxDirectory()
        self.correlation = correlation
        self.observer = observer or LoggingObservabilitySink()

    def route(self, message: Message) -> RouteResult:
        """
        Deliver a message and wake its owner.

        Raises:
            MalformedAddress: If the destination cannot be parsed.
            UnknownAddress: No mailbox is registered for the destination.
            MailboxClosed: The destination agent has stopped.
            MailboxFull: The destination mailbox is at capacity.
        """
        destination = resolve(message.to)
        entry = self.directory.lookup(destination)
        if entry is None:
            error = UnknownAddress(
                f"No mailbox registered for {destination}", message_id=message.id
            )
            self.bounce(message, error.code, error.message)
            raise error

        receipt = entry.mailbox.deliver(message)
        if not receipt.accepted:
            error = self._receipt_error(receipt)
            self.bounce(message, error.code, error.message)
            raise error

        entry.wake()
        self._match_correlation(message)
        logger.debug(f"Routed {message.id} {message.sender} -> {destination}")
        return RouteResult(delivered=True, mailbox=entry.mailbox, message_id=message.id)

    def _receipt_error(self, receipt: DeliveryReceipt) -> DeliveryError:
        if receipt.error_code == MailboxFull.code:
            return MailboxFull(receipt.reason or "mailbox full", message_id=receipt.message_id)
        return MailboxClosed(receipt.reason or "mailbox closed", message_id=receipt.message_id)

    def _match_correlation(self, message: Message) -> None:
        # Only replies resolve; the request itself carries the same token
        if self.correlation is None or not message.in_reply_to:
            return
        token = message.correlation_id
        if token:
            self.correlation.resolve(token, message)

    def bounce(self, original: Message, error_code: str, reason: str) -> Message | None:
        """
        Return an undeliverable message to its sender. Bounces never bounce.

        Returns:
            The delivered bounce, or None if it was dropped.
        """
        if original.is_bounce:
            self._bounce_dropped(original, error_code, "original is itself a bounce")
            return None

        bounce = make_bounce(original, error_code, reason)
        if original.correlation_id:
            bounce = bounce.with_headers(correlation_id=original.correlation_id)

        entry = self.directory.lookup(original.sender)
        if entry is None:
            self._bounce_dropped(original, error_code, f"sender {original.sender} has no mailbox")
            return None

        receipt = entry.mailbox.deliver(bounce)
        if not receipt.accepted:
            self._bounce_dropped(original, error_code, receipt.reason or "sender mailbox rejected")
            return None

        entry.wake()
        self._match_correlation(bounce)
        logger.warning(f"Bounced {original.id} to {original.sender}: {error_code}: {reason}")
        self.observer.emit(
            ObservabilityEvent(
                kind="bounce",
                severity="warning",
                message=f"{original.id} bounced: {error_code}",
                details={
                    "message_id": original.id,
                    "bounce_id": bounce.id,
                    "to": str(original.to),
                    "sender": str(original.sender),
                    "reason": error_code,
                },
            )
        )
        return bounce

    def _bounce_dropped(self, original: Message, error_code: str, why: str) -> None:
        logger.warning(f"Dropping bounce for {original.id} ({error_code}): {why}")
        self.observer.emit(
            ObservabilityEvent(
                kind="bounce_dropped",
                severity="warning",
                message=f"bounce for {original.id} dropped: {why}",
                details={"message_id": original.id, "reason": error_code},
            )
        )
