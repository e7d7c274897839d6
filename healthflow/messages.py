"""
Conversational message types.

The ``type`` field is the authorship tag: only HumanMessage marks direct
user input.
"""

from typing import Any, Dict, Literal, Mapping, Union
from pydantic import BaseModel, Field


class BaseMessage(BaseModel):
    """A single message in a conversation."""

    type: str
    content: str = ""
    response_metadata: Dict[str, Any] = Field(default_factory=dict)

    def __init__(self, content: str = "", **kwargs: Any):
        super().__init__(content=content, **kwargs)


class HumanMessage(BaseMessage):
    """Message typed by the user."""
    type: Literal["human"] = "human"


class AIMessage(BaseMessage):
    """Message produced by the model."""
    type: Literal["ai"] = "ai"


class SystemMessage(BaseMessage):
    """Instruction for the model."""
    type: Literal["system"] = "system"


AnyMessage = Union[HumanMessage, AIMessage, SystemMessage]

_MESSAGE_TYPES = {
    "human": HumanMessage,
    "ai": AIMessage,
    "system": SystemMessage,
}

# Chat-completions roles
_ROLES = {
    "human": "user",
    "ai": "assistant",
    "system": "system",
}


def message_from_dict(data: Mapping[str, Any]) -> BaseMessage:
    """Build a message from its dict form (``{"type": ..., "content": ...}``)."""
    if not isinstance(data, Mapping):
        raise ValueError(f"Expected a message object, got {type(data).__name__}")
    message_type = data.get("type", "human")
    cls = _MESSAGE_TYPES.get(message_type)
    if cls is None:
        raise ValueError(
            f"Unknown message type '{message_type}'. "
            f"Expected one of {sorted(_MESSAGE_TYPES)}"
        )
    return cls(
        content=data.get("content", ""),
        response_metadata=data.get("response_metadata") or {},
    )


def to_openai_message(message: BaseMessage) -> Dict[str, str]:
    """Convert a message to a chat-completions ``{"role", "content"}`` dict."""
    return {"role": _ROLES[message.type], "content": message.content}
