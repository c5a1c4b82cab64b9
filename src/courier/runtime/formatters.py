"""Pure functions for mail formatting. No I/O, fully unit-testable."""

from __future__ import annotations

from typing import Any

from courier.core.address import Address
from courier.core.message import Message

from .types import ContextEntry, ToolResult


def format_mail_for_llm(message: Message, self_address: Address | None = None) -> dict[str, Any]:
    """
    Map a message to LLM format.

    Args:
        message: Mail to format
        self_address: The agent's own address; its mail becomes "assistant"

    Returns:
        Dict with role, content, sender, subject, message_id
    """
    is_own = self_address is not None and message.sender == self_address
    header = f"From: {message.sender}\nTo: {message.to}\nSubject: {message.subject}"
    if message.priority.value != "normal":
        header += f"\nPriority: {message.priority.value}"
    if message.in_reply_to:
        header += f"\nIn-Reply-To: {message.in_reply_to}"

    return {
        "role": "assistant" if is_own else "user",
        "content": f"{header}\n\n{message.body}",
        "sender": str(message.sender),
        "subject": message.subject,
        "message_id": message.id,
    }


def format_tool_result_for_llm(result: ToolResult) -> dict[str, Any]:
    return {
        "role": "tool",
        "tool_name": result.tool_name,
        "call_id": result.call_id,
        "status": result.status,
        "content": result.payload,
    }


def format_context_for_llm(
    history: list[ContextEntry],
    self_address: Address | None = None,
) -> list[dict[str, Any]]:
    """Format accumulated context entries, oldest first."""
    formatted: list[dict[str, Any]] = []
    for entry in history:
        if entry.kind in ("mail", "sent"):
            formatted.append(format_mail_for_llm(entry.content, self_address))
        elif entry.kind == "tool_result":
            formatted.append(format_tool_result_for_llm(entry.content))
    return formatted
