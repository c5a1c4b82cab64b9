"""
Address resolution.

Addresses have the textual form ``entity_id@scope_id.suffix`` where the
suffix names the routing domain:

    planner@project-42.agent    an agent mailbox
    alice@project-42.user       a user session sink
    postmaster@project-42.system  router-generated mail (bounces)

Parsing has no side effects and does not check that the target exists.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from .errors import MalformedAddress

_ADDRESS_RE = re.compile(
    r"^(?P<entity>[A-Za-z0-9_][A-Za-z0-9_.\-]*)"
    r"@(?P<scope>[A-Za-z0-9_][A-Za-z0-9_\-]*)"
    r"\.(?P<suffix>[A-Za-z]+)$"
)


class AddressDomain(str, Enum):
    """Routing domain selected by the address suffix."""

    AGENT = "agent"
    USER = "user"
    SYSTEM = "system"


@dataclass(frozen=True, eq=False)
class Address:
    """
    Immutable routable address.

    Equality and hashing ignore case on entity_id and scope_id.
    """

    entity_id: str
    scope_id: str
    suffix: AddressDomain

    def _key(self) -> tuple[str, str, AddressDomain]:
        return (self.entity_id.casefold(), self.scope_id.casefold(), self.suffix)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Address):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        return format_address(self)

    @property
    def is_agent(self) -> bool:
        return self.suffix is AddressDomain.AGENT

    @property
    def is_user(self) -> bool:
        return self.suffix is AddressDomain.USER

    @classmethod
    def agent(cls, agent_id: str, project_id: str) -> "Address":
        return resolve(f"{agent_id}@{project_id}.{AddressDomain.AGENT.value}")

    @classmethod
    def user(cls, user_id: str, project_id: str) -> "Address":
        return resolve(f"{user_id}@{project_id}.{AddressDomain.USER.value}")

    @classmethod
    def postmaster(cls, scope_id: str) -> "Address":
        return cls("postmaster", scope_id, AddressDomain.SYSTEM)


def resolve(raw: str | Address) -> Address:
    """
    Parse raw address text into an Address.

    Address instances pass through unchanged.

    Raises:
        MalformedAddress: If the text is not ``entity@scope.suffix`` or the
            suffix is not a known routing domain.
    """
    if isinstance(raw, Address):
        return raw
    if not isinstance(raw, str):
        raise MalformedAddress(f"Address must be a string, got {type(raw).__name__}")

    text = raw.strip()
    match = _ADDRESS_RE.match(text)
    if not match:
        raise MalformedAddress(f"Malformed address: {raw!r}", {"raw": raw})

    suffix = match.group("suffix").lower()
    try:
        domain = AddressDomain(suffix)
    except ValueError:
        raise MalformedAddress(
            f"Unknown address suffix {suffix!r} in {raw!r}", {"raw": raw}
        ) from None

    return Address(match.group("entity"), match.group("scope"), domain)


def format_address(address: Address) -> str:
    """Render an Address back to its textual form."""
    return f"{address.entity_id}@{address.scope_id}.{address.suffix.value}"


def is_valid_address(raw: str) -> bool:
    try:
        resolve(raw)
    except MalformedAddress:
        return False
    return True
