"""Error taxonomy for the courier runtime."""

from __future__ import annotations

from typing import Any


class CourierError(Exception):
    """Base class for all courier errors. Carries a stable machine code."""

    code = "courier_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class MalformedAddress(CourierError):
    """Address text failed validation. Client error, never retried."""

    code = "malformed_address"


class DeliveryError(CourierError):
    """Message could not be delivered. Bounced back to the sender."""

    code = "delivery_error"

    def __init__(
        self,
        message: str,
        message_id: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.message_id = message_id


class UnknownAddress(DeliveryError):
    code = "unknown_address"


class MailboxClosed(DeliveryError):
    code = "mailbox_closed"


class MailboxFull(DeliveryError):
    code = "mailbox_full"


class AddressInUse(CourierError):
    """An address already has a registered mailbox."""

    code = "address_in_use"


class InferenceFailure(CourierError):
    """Inference collaborator failed after all retry attempts."""

    code = "inference_failure"

    def __init__(self, message: str, attempts: int, details: dict[str, Any] | None = None):
        super().__init__(message, details)
        self.attempts = attempts


class ToolExecutionFailure(CourierError):
    code = "tool_execution_failure"


class DuplicateCorrelationToken(CourierError):
    code = "duplicate_correlation_token"


class CorrelationExpired(CourierError):
    code = "correlation_expired"


class UnknownAgent(CourierError):
    code = "unknown_agent"


class InvalidConfiguration(CourierError):
    code = "invalid_configuration"
