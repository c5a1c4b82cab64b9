"""
Courier core - addresses, messages, errors and the wire shape.

Pure data, no I/O.
"""

from .address import Address, AddressDomain, format_address, is_valid_address, resolve
from .errors import (
    AddressInUse,
    CorrelationExpired,
    CourierError,
    DeliveryError,
    DuplicateCorrelationToken,
    InferenceFailure,
    InvalidConfiguration,
    MailboxClosed,
    MailboxFull,
    MalformedAddress,
    ToolExecutionFailure,
    UnknownAddress,
    UnknownAgent,
)
from .message import (
    BOUNCE_OF_HEADER,
    BOUNCE_REASON_HEADER,
    CORRELATION_HEADER,
    IN_REPLY_TO_HEADER,
    PRIORITY_BANDS,
    Message,
    Priority,
    make_bounce,
    new_message_id,
)
from .wire import WireMessage, decode_message, encode_message

__all__ = [
    # Addresses
    "Address",
    "AddressDomain",
    "resolve",
    "format_address",
    "is_valid_address",
    # Messages
    "Message",
    "Priority",
    "PRIORITY_BANDS",
    "make_bounce",
    "new_message_id",
    "CORRELATION_HEADER",
    "IN_REPLY_TO_HEADER",
    "BOUNCE_OF_HEADER",
    "BOUNCE_REASON_HEADER",
    # Wire
    "WireMessage",
    "encode_message",
    "decode_message",
    # Errors
    "CourierError",
    "MalformedAddress",
    "DeliveryError",
    "UnknownAddress",
    "MailboxClosed",
    "MailboxFull",
    "AddressInUse",
    "InferenceFailure",
    "ToolExecutionFailure",
    "DuplicateCorrelationToken",
    "CorrelationExpired",
    "UnknownAgent",
    "InvalidConfiguration",
]
