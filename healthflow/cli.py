"""
Run the health assistant once and log the streamed state.

Usage:
    healthflow
    python -m healthflow

Reads ENDPOINT_ID, ENDPOINT_API_KEY and ARK_BASE_URL from the
environment or local.env. Exits with status 1 on any error.
"""

from typing import Any, Dict
import asyncio
import logging
import sys

from healthflow.agents.health_agent import HealthAgent
from healthflow.config import load_llm_settings
from healthflow.engine.graph import CompiledGraph
from healthflow.llm.client import ChatModel
from healthflow.logging_config import configure_logging
from healthflow.messages import HumanMessage
from healthflow.workflows.health_assistant import create_health_assistant_workflow


logger = logging.getLogger(__name__)

GREETING = "Hello! Can you give me a few tips for sleeping better?"


async def run_workflow(app: CompiledGraph, initial_state: Dict[str, Any]) -> None:
    """Stream one run and log the last message of every snapshot."""
    async for snapshot in app.stream(initial_state):
        messages = snapshot.get("messages", [])
        if not messages:
            continue
        last_message = messages[-1]
        logger.info(
            f"[run_workflow] node: {snapshot.node}, type: {last_message.type}, "
            f"content: {last_message.content}"
        )
        if last_message.response_metadata:
            logger.info(f"[run_workflow] response_metadata: {last_message.response_metadata}")


async def amain() -> None:
    llm = ChatModel.from_settings(load_llm_settings())
    agent = HealthAgent(llm)
    app = create_health_assistant_workflow(agent)
    await run_workflow(app, {"messages": [HumanMessage(content=GREETING)]})


def main() -> int:
    configure_logging()
    try:
        asyncio.run(amain())
    except Exception as e:
        logger.error(f"Unhandled error: {e}", exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
