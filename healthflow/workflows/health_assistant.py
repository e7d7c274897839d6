"""
Health Assistant Workflow.

A two-node loop over a single ``messages`` channel:
1. supervisor - passes state through; its outgoing edge decides what runs next
2. health_agent - forwards the conversation to the health agent

The supervisor routes to the agent while the last message was written by
the user and ends the run otherwise, so a single user turn produces a
single agent reply.
"""

from typing import Any, Dict, List, Optional
import logging

from healthflow.agents.health_agent import Agent
from healthflow.config import settings
from healthflow.engine.channel import Channel
from healthflow.engine.graph import CompiledGraph, StateGraph
from healthflow.engine.state import END, START
from healthflow.messages import BaseMessage, HumanMessage
from healthflow.storage.memory import graph_storage


logger = logging.getLogger(__name__)

HEALTH_ASSISTANT_GRAPH_ID = "health-assistant"

SUPERVISOR = "supervisor"
HEALTH_AGENT = "health_agent"


def supervisor_node(state: Dict[str, Any]) -> Dict[str, Any]:
    """Branch point for the supervisor's routing edge. Leaves state unchanged."""
    logger.debug("[Supervisor] Passing through supervisor node")
    return {}


def route_logic(state: Dict[str, Any]) -> str:
    """
    Decide where the supervisor goes next.

    Only the authorship of the last message matters: a HumanMessage
    routes to the agent, anything else (or no message) ends the run.
    """
    messages: List[BaseMessage] = state.get("messages", [])
    last_message = messages[-1] if messages else None

    if isinstance(last_message, HumanMessage):
        logger.info("[Supervisor] Route to health_agent")
        return HEALTH_AGENT

    logger.info("[Supervisor] Route to END")
    return END


def make_health_agent_node(agent: Agent):
    """Build the delegating node handler around an agent."""

    async def health_agent_node(state: Dict[str, Any]) -> Dict[str, Any]:
        """Forward the conversation to the health agent."""
        logger.debug("[HealthAgent] Calling health agent")
        response = await agent.ainvoke(state)
        logger.debug(f"[HealthAgent] Received response: {response}")
        return {"messages": response["messages"]}

    return health_agent_node


def create_health_assistant_workflow(
    agent: Agent,
    max_steps: Optional[int] = None,
    graph_id: str = HEALTH_ASSISTANT_GRAPH_ID,
) -> CompiledGraph:
    """
    Build and compile the supervisor / health agent graph.

    Args:
        agent: Unit the health_agent node delegates to
        max_steps: Step limit per run (defaults to settings.MAX_STEPS)
        graph_id: Identifier for the compiled graph

    Returns:
        The compiled graph
    """
    graph = StateGraph(
        {"messages": Channel.appending()},
        name="health_assistant",
        description="Supervisor routes user messages to a health assistant agent",
        graph_id=graph_id,
    )

    graph.add_node(HEALTH_AGENT, make_health_agent_node(agent))
    graph.add_node(SUPERVISOR, supervisor_node)

    graph.add_edge(START, SUPERVISOR)
    graph.add_conditional_edges(
        SUPERVISOR,
        route_logic,
        {
            HEALTH_AGENT: HEALTH_AGENT,
            END: END,
        },
    )
    graph.add_edge(HEALTH_AGENT, SUPERVISOR)

    app = graph.compile(max_steps=max_steps or settings.MAX_STEPS)
    logger.info("Health assistant workflow compiled")
    return app


async def register_health_assistant_workflow(agent: Agent) -> CompiledGraph:
    """Compile the workflow and store it under its well-known ID."""
    app = create_health_assistant_workflow(agent)
    await graph_storage.save(app)
    logger.info(f"Registered health assistant workflow: {app.graph_id}")
    return app
