"""
Health assistant agent.

The agent is the pluggable unit behind the delegating graph node: it
takes the whole state, asks the chat model for a reply and returns only
the new messages.
"""

from typing import Any, Dict, List, Optional, Protocol
import logging

from healthflow.messages import BaseMessage, SystemMessage


logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are a friendly health assistant. Answer questions about general "
    "wellbeing, nutrition, exercise and sleep clearly and briefly, and "
    "recommend seeing a medical professional for anything that needs a diagnosis."
)


class ChatModelLike(Protocol):
    async def ainvoke(self, messages: List[BaseMessage]) -> BaseMessage: ...


class Agent(Protocol):
    """Anything a delegating node can forward state to."""

    async def ainvoke(self, state: Dict[str, Any]) -> Dict[str, List[BaseMessage]]: ...


class HealthAgent:
    """Single-turn agent with no tools: one model call per invocation."""

    def __init__(self, llm: ChatModelLike, system_prompt: Optional[str] = DEFAULT_SYSTEM_PROMPT):
        self.llm = llm
        self.system_prompt = system_prompt
        self.tools: List[Any] = []
        logger.info(f"Health agent initialized with {len(self.tools)} tools")

    async def ainvoke(self, state: Dict[str, Any]) -> Dict[str, List[BaseMessage]]:
        messages: List[BaseMessage] = list(state.get("messages", []))
        if self.system_prompt:
            messages = [SystemMessage(content=self.system_prompt)] + messages

        reply = await self.llm.ainvoke(messages)
        return {"messages": [reply]}
