"""Tests for the wire shape."""

import json

import pytest
from pydantic import ValidationError

from courier.core.message import Message, Priority
from courier.core.wire import WireMessage, decode_message, encode_message


@pytest.fixture
def message() -> Message:
    return Message.create(
        "bob@proj.agent",
        "alice@proj.user",
        "status",
        "all good",
        priority=Priority.HIGH,
        headers={"correlation-id": "tok-1", "x-trace": "abc"},
    )


class TestEncode:
    def test_uses_from_key_and_text_addresses(self, message):
        data = encode_message(message)

        assert data["from"] == "bob@proj.agent"
        assert data["to"] == "alice@proj.user"
        assert data["priority"] == "high"
        assert data["headers"] == {"correlation-id": "tok-1", "x-trace": "abc"}
        assert data["id"] == message.id
        assert "sender" not in data

    def test_is_json_serializable(self, message):
        json.dumps(encode_message(message))


class TestDecode:
    def test_decodes_json_text(self, message):
        decoded = decode_message(json.dumps(encode_message(message)))

        assert decoded.id == message.id
        assert decoded.sender == message.sender
        assert decoded.to == message.to
        assert decoded.priority is Priority.HIGH
        assert list(decoded.headers) == ["correlation-id", "x-trace"]
        assert decoded.created_at == message.created_at

    def test_accepts_sender_field_name(self, message):
        data = encode_message(message)
        data["sender"] = data.pop("from")

        assert decode_message(data).sender == message.sender

    def test_rejects_malformed_address(self, message):
        data = encode_message(message)
        data["to"] = "not-an-address"

        with pytest.raises(ValidationError):
            decode_message(data)

    def test_rejects_unknown_priority(self, message):
        data = encode_message(message)
        data["priority"] = "whenever"

        with pytest.raises(ValidationError):
            WireMessage.model_validate(data)
