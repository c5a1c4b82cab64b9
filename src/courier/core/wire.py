"""
Wire shape for delivered mail.

Using Pydantic for validation at the boundary; the runtime itself works
with the immutable Message dataclass.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .address import format_address, resolve
from .errors import MalformedAddress
from .message import Message, Priority


class WireMessage(BaseModel):
    """Serialized message. Addresses travel in textual form."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    sender: str = Field(alias="from")
    to: str
    subject: str = ""
    body: str = ""
    priority: Priority = Priority.NORMAL
    headers: dict[str, str] = Field(default_factory=dict)
    created_at: datetime

    @field_validator("sender", "to")
    @classmethod
    def _validate_address(cls, value: str) -> str:
        try:
            resolve(value)
        except MalformedAddress as e:
            raise ValueError(e.message) from e
        return value

    @classmethod
    def from_message(cls, message: Message) -> "WireMessage":
        return cls(
            id=message.id,
            sender=format_address(message.sender),
            to=format_address(message.to),
            subject=message.subject,
            body=message.body,
            priority=message.priority,
            headers=dict(message.headers),
            created_at=message.created_at,
        )

    def to_message(self) -> Message:
        return Message(
            sender=resolve(self.sender),
            to=resolve(self.to),
            subject=self.subject,
            body=self.body,
            priority=self.priority,
            headers=self.headers,
            id=self.id,
            created_at=self.created_at,
        )


def encode_message(message: Message) -> dict[str, Any]:
    """Message -> JSON-compatible dict with the ``from`` key."""
    return WireMessage.from_message(message).model_dump(mode="json", by_alias=True)


def decode_message(data: dict[str, Any] | str | bytes) -> Message:
    """JSON text or dict -> Message."""
    if isinstance(data, (str, bytes)):
        data = json.loads(data)
    return WireMessage.model_validate(data).to_message()
