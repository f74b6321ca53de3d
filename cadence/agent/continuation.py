"""Serialization of parked turns.

A continuation is the exact model-visible message list at the moment a turn
paused, stored as LangChain message dicts. Resuming replays that list and
appends a single tool result for the parked call.
"""

import json
from dataclasses import dataclass
from typing import Any

from langchain_core.messages import BaseMessage, ToolMessage, messages_from_dict, messages_to_dict


@dataclass
class Continuation:
    messages: list[dict[str, Any]]
    tool_call_id: str
    tool_name: str


def serialize_messages(messages: list[BaseMessage]) -> list[dict[str, Any]]:
    """Convert messages to JSON-safe dicts for storage."""
    return json.loads(json.dumps(messages_to_dict(messages), default=str))


def deserialize_messages(data: list[dict[str, Any]]) -> list[BaseMessage]:
    return messages_from_dict(data)


def resume_messages(continuation: Continuation, answer: str) -> list[BaseMessage]:
    """Rebuild the paused message list with the human's answer appended.

    Args:
        continuation: The stored continuation.
        answer: The user's reply (or a permission outcome) for the parked call.

    Returns:
        The prior messages followed by exactly one ToolMessage.
    """
    messages = deserialize_messages(continuation.messages)
    messages.append(
        ToolMessage(
            content=answer,
            tool_call_id=continuation.tool_call_id,
            name=continuation.tool_name,
        )
    )
    return messages
