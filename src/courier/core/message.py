"""
Message types.

Messages are immutable once constructed. Headers are an ordered mapping
with unique keys; the core only interprets the reserved keys below.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from .address import Address, resolve

CORRELATION_HEADER = "correlation-id"
IN_REPLY_TO_HEADER = "in-reply-to"
BOUNCE_OF_HEADER = "bounce-of"
BOUNCE_REASON_HEADER = "bounce-reason"


class Priority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        """Higher rank drains first."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    Priority.LOW: 0,
    Priority.NORMAL: 1,
    Priority.HIGH: 2,
    Priority.URGENT: 3,
}

# Drain order, highest band first
PRIORITY_BANDS: tuple[Priority, ...] = (
    Priority.URGENT,
    Priority.HIGH,
    Priority.NORMAL,
    Priority.LOW,
)


def new_message_id() -> str:
    return uuid.uuid4().hex


def _freeze_headers(headers: Mapping[str, str] | None) -> Mapping[str, str]:
    frozen: dict[str, str] = {}
    for key, value in (headers or {}).items():
        frozen[str(key)] = str(value)
    return MappingProxyType(frozen)


@dataclass(frozen=True)
class Message:
    """
    A unit of mail.

    Use Message.create() to build one from raw address text; the
    constructor expects already-resolved addresses.
    """

    sender: Address
    to: Address
    subject: str = ""
    body: str = ""
    priority: Priority = Priority.NORMAL
    headers: Mapping[str, str] = field(default_factory=dict)
    id: str = field(default_factory=new_message_id)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", _freeze_headers(self.headers))
        object.__setattr__(self, "priority", Priority(self.priority))

    def __hash__(self) -> int:
        return hash(self.id)

    @classmethod
    def create(
        cls,
        sender: str | Address,
        to: str | Address,
        subject: str = "",
        body: str = "",
        priority: Priority | str = Priority.NORMAL,
        headers: Mapping[str, str] | None = None,
    ) -> "Message":
        """
        Build a message, resolving address text.

        Raises:
            MalformedAddress: If either address fails to parse.
        """
        return cls(
            sender=resolve(sender),
            to=resolve(to),
            subject=subject,
            body=body,
            priority=Priority(priority),
            headers=dict(headers or {}),
        )

    @property
    def correlation_id(self) -> str | None:
        return self.headers.get(CORRELATION_HEADER)

    @property
    def in_reply_to(self) -> str | None:
        return self.headers.get(IN_REPLY_TO_HEADER)

    @property
    def is_bounce(self) -> bool:
        return BOUNCE_OF_HEADER in self.headers

    def with_headers(self, **extra: str) -> "Message":
        """
        Copy with additional headers. Keeps id and created_at.

        Keyword names use underscores; they are written with dashes.
        """
        headers = dict(self.headers)
        for key, value in extra.items():
            headers[key.replace("_", "-")] = value
        return Message(
            sender=self.sender,
            to=self.to,
            subject=self.subject,
            body=self.body,
            priority=self.priority,
            headers=headers,
            id=self.id,
            created_at=self.created_at,
        )

    def reply(
        self,
        body: str,
        subject: str | None = None,
        priority: Priority | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> "Message":
        """Build a reply addressed back to the sender, echoing the correlation token."""
        reply_headers = dict(headers or {})
        reply_headers[IN_REPLY_TO_HEADER] = self.id
        if self.correlation_id:
            reply_headers[CORRELATION_HEADER] = self.correlation_id
        return Message(
            sender=self.to,
            to=self.sender,
            subject=subject if subject is not None else f"Re: {self.subject}",
            body=body,
            priority=priority or self.priority,
            headers=reply_headers,
        )


def make_bounce(original: Message, error_code: str, reason: str) -> Message:
    """
    Build a synthetic bounce for an undeliverable message.

    The bounce comes from the scope's postmaster and references the
    original id.
    """
    return Message(
        sender=Address.postmaster(original.sender.scope_id),
        to=original.sender,
        subject=f"Undeliverable: {original.subject}",
        body=(
            f"Message {original.id} to {original.to} could not be delivered: "
            f"{reason}"
        ),
        priority=original.priority,
        headers={
            BOUNCE_OF_HEADER: original.id,
            BOUNCE_REASON_HEADER: error_code,
            IN_REPLY_TO_HEADER: original.id,
        },
    )
