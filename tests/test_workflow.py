"""
Tests for the health assistant workflow.
"""

from typing import Any, Dict, List

import pytest

from healthflow.engine.errors import RecursionLimitError, TaskExecutionError
from healthflow.engine.executor import ExecutionStatus, execute_graph
from healthflow.engine.state import END
from healthflow.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from healthflow.workflows.health_assistant import (
    HEALTH_AGENT,
    SUPERVISOR,
    create_health_assistant_workflow,
    route_logic,
    supervisor_node,
)


class FakeAgent:
    """Agent that replies with a fixed list of messages."""

    def __init__(self, reply: List[BaseMessage]):
        self.reply = reply
        self.calls: List[Dict[str, Any]] = []

    async def ainvoke(self, state: Dict[str, Any]) -> Dict[str, List[BaseMessage]]:
        self.calls.append(state)
        return {"messages": list(self.reply)}


class FailingAgent:
    async def ainvoke(self, state):
        raise ConnectionError("model endpoint unreachable")


# ============================================================
# Routing Tests
# ============================================================

class TestRouting:
    """Tests for the supervisor's routing policy."""

    def test_user_message_routes_to_agent(self):
        state = {"messages": [HumanMessage(content="hi")]}
        assert route_logic(state) == HEALTH_AGENT

    def test_agent_message_routes_to_end(self):
        state = {"messages": [HumanMessage(content="hi"), AIMessage(content="hello")]}
        assert route_logic(state) == END

    def test_only_last_message_counts(self):
        """Earlier user messages do not matter."""
        state = {"messages": [HumanMessage(content="a"), HumanMessage(content="b"), SystemMessage(content="c")]}
        assert route_logic(state) == END

    def test_empty_conversation_routes_to_end(self):
        assert route_logic({"messages": []}) == END

    def test_routing_is_deterministic(self):
        state = {"messages": [HumanMessage(content="hi")]}
        assert {route_logic(state) for _ in range(10)} == {HEALTH_AGENT}

    def test_supervisor_is_pass_through(self):
        assert supervisor_node({"messages": [HumanMessage(content="hi")]}) == {}


# ============================================================
# Workflow Tests
# ============================================================

class TestHealthAssistantWorkflow:
    """Integration tests for the supervisor / health agent graph."""

    def test_topology(self):
        app = create_health_assistant_workflow(FakeAgent([]))

        assert app.entry_point == SUPERVISOR
        assert app.edges[HEALTH_AGENT] == SUPERVISOR
        assert dict(app.conditional_edges[SUPERVISOR].routes) == {HEALTH_AGENT: HEALTH_AGENT, END: END}
        assert list(app.channels) == ["messages"]

    @pytest.mark.asyncio
    async def test_single_turn_terminates_after_one_reply(self):
        """One user message gives exactly two snapshots and one agent call."""
        agent = FakeAgent([AIMessage(content="hello")])
        app = create_health_assistant_workflow(agent)

        snapshots = [s async for s in app.stream({"messages": [HumanMessage(content="hi")]})]

        assert len(snapshots) == 2
        assert snapshots[0].node == SUPERVISOR
        assert [m.content for m in snapshots[0].values["messages"]] == ["hi"]
        assert snapshots[1].node == HEALTH_AGENT
        assert [(m.type, m.content) for m in snapshots[1].values["messages"]] == [
            ("human", "hi"),
            ("ai", "hello"),
        ]
        assert len(agent.calls) == 1

    @pytest.mark.asyncio
    async def test_agent_receives_full_state(self):
        agent = FakeAgent([AIMessage(content="hello")])
        app = create_health_assistant_workflow(agent)

        await app.invoke({"messages": [HumanMessage(content="hi")]})

        assert [m.content for m in agent.calls[0]["messages"]] == ["hi"]

    @pytest.mark.asyncio
    async def test_no_user_message_skips_agent(self):
        """A conversation ending in an agent message ends right away."""
        agent = FakeAgent([AIMessage(content="unused")])
        app = create_health_assistant_workflow(agent)

        snapshots = [s async for s in app.stream({"messages": [AIMessage(content="done")]})]

        assert [s.node for s in snapshots] == [SUPERVISOR]
        assert agent.calls == []

    @pytest.mark.asyncio
    async def test_agent_failure(self):
        """Client errors end the run as a task failure on the agent node."""
        app = create_health_assistant_workflow(FailingAgent())
        snapshots = []

        with pytest.raises(TaskExecutionError) as exc_info:
            async for snapshot in app.stream({"messages": [HumanMessage(content="hi")]}):
                snapshots.append(snapshot)

        assert len(snapshots) == 1
        assert exc_info.value.node == HEALTH_AGENT
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    @pytest.mark.asyncio
    async def test_executor_summary(self):
        agent = FakeAgent([AIMessage(content="hello")])
        app = create_health_assistant_workflow(agent)

        result = await execute_graph(app, {"messages": [HumanMessage(content="hi")]})

        assert result.status == ExecutionStatus.COMPLETED
        assert [m.content for m in result.final_state["messages"]] == ["hi", "hello"]

    # Routing looks only at the authorship of the last message. These two
    # cases pin what happens when the agent's reply does not end the turn.

    @pytest.mark.asyncio
    async def test_empty_reply_loops_until_step_limit(self):
        agent = FakeAgent([])
        app = create_health_assistant_workflow(agent, max_steps=6)

        with pytest.raises(RecursionLimitError):
            await app.invoke({"messages": [HumanMessage(content="hi")]})
        assert len(agent.calls) == 3

    @pytest.mark.asyncio
    async def test_user_tagged_reply_loops_until_step_limit(self):
        agent = FakeAgent([HumanMessage(content="echo")])
        app = create_health_assistant_workflow(agent, max_steps=6)

        result = await execute_graph(app, {"messages": [HumanMessage(content="hi")]})

        assert result.status == ExecutionStatus.FAILED
        assert result.error_type == "RecursionLimitError"
        assert len(result.final_state["messages"]) == 4
