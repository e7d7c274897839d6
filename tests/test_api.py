"""
Tests for the FastAPI endpoints.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient
from httpx import AsyncClient, ASGITransport
from starlette.websockets import WebSocketDisconnect

from healthflow.api.routes.websocket import websocket_run
from healthflow.engine.channel import Channel
from healthflow.engine.graph import StateGraph
from healthflow.engine.state import END
from healthflow.main import app
from healthflow.messages import AIMessage
from healthflow.storage.memory import graph_storage, run_storage
from healthflow.workflows.health_assistant import create_health_assistant_workflow


TEST_GRAPH_ID = "test-health"
FAILING_GRAPH_ID = "test-health-failing"
PLAIN_GRAPH_ID = "test-plain"


class FakeAgent:
    async def ainvoke(self, state):
        return {"messages": [AIMessage(content="Sleep at regular times.")]}


class FailingAgent:
    async def ainvoke(self, state):
        raise RuntimeError("model endpoint unreachable")


def _register_graphs():
    plain = StateGraph({"count": Channel.last_value(default=lambda: 0)}, graph_id=PLAIN_GRAPH_ID)
    plain.add_node("bump", lambda s: {"count": s["count"] + 1})
    plain.set_entry_point("bump")
    plain.add_edge("bump", END)

    async def register():
        await graph_storage.save(create_health_assistant_workflow(FakeAgent(), graph_id=TEST_GRAPH_ID))
        await graph_storage.save(create_health_assistant_workflow(FailingAgent(), graph_id=FAILING_GRAPH_ID))
        await graph_storage.save(plain.compile())

    asyncio.run(register())


_register_graphs()


# ============================================================
# Sync Test Client (for simple tests)
# ============================================================

client = TestClient(app)


def run_request(graph_id=TEST_GRAPH_ID, content="How can I sleep better?"):
    return client.post(
        "/graph/run",
        json={"graph_id": graph_id, "messages": [{"type": "human", "content": content}]},
    )


class TestRootEndpoints:
    """Tests for root endpoints."""

    def test_root(self):
        """Test root endpoint."""
        response = client.get("/")
        assert response.status_code == 200

        data = response.json()
        assert "name" in data
        assert "version" in data
        assert "endpoints" in data

    def test_health(self):
        """Test health endpoint."""
        response = client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["graphs_count"] >= 3


class TestGraphEndpoints:
    """Tests for graph inspection endpoints."""

    def test_list_graphs(self):
        response = client.get("/graph/")
        assert response.status_code == 200

        data = response.json()
        ids = [g["graph_id"] for g in data["graphs"]]
        assert TEST_GRAPH_ID in ids
        assert data["total"] == len(ids)

    def test_get_graph(self):
        response = client.get(f"/graph/{TEST_GRAPH_ID}")
        assert response.status_code == 200

        data = response.json()
        assert data["entry_point"] == "supervisor"
        assert sorted(data["nodes"]) == ["health_agent", "supervisor"]
        assert data["channels"] == ["messages"]
        assert "graph TD" in data["mermaid_diagram"]

    def test_get_missing_graph(self):
        response = client.get("/graph/does-not-exist")
        assert response.status_code == 404


class TestRunEndpoints:
    """Tests for running graphs over HTTP."""

    def test_run_graph(self):
        response = run_request()
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "completed"
        assert [s["node"] for s in data["snapshots"]] == ["supervisor", "health_agent"]
        messages = data["final_state"]["messages"]
        assert [m["type"] for m in messages] == ["human", "ai"]
        assert messages[-1]["content"] == "Sleep at regular times."

    def test_run_state_is_recorded(self):
        run_id = run_request().json()["run_id"]

        response = client.get(f"/graph/state/{run_id}")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "completed"
        assert data["current_node"] == "health_agent"
        assert len(data["snapshots"]) == 2
        assert len(data["execution_log"]) == 2

    def test_failed_run(self):
        response = run_request(graph_id=FAILING_GRAPH_ID)
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "failed"
        assert data["error_type"] == "TaskExecutionError"
        assert "health_agent" in data["error"]
        assert len(data["snapshots"]) == 1

    def test_run_missing_graph(self):
        assert run_request(graph_id="missing").status_code == 404

    def test_run_graph_without_messages_channel(self):
        assert run_request(graph_id=PLAIN_GRAPH_ID).status_code == 400

    def test_invalid_message_type(self):
        response = client.post(
            "/graph/run",
            json={"graph_id": TEST_GRAPH_ID, "messages": [{"type": "robot", "content": "x"}]},
        )
        assert response.status_code == 422

    def test_list_runs_filtered(self):
        run_request()
        run_request(graph_id=FAILING_GRAPH_ID)

        response = client.get("/graph/runs", params={"graph_id": FAILING_GRAPH_ID})
        assert response.status_code == 200

        data = response.json()
        assert data["total"] >= 1
        assert all(r["graph_id"] == FAILING_GRAPH_ID for r in data["runs"])

    def test_missing_run(self):
        assert client.get("/graph/state/nope").status_code == 404


class TestWebSocket:
    """Tests for live streaming over WebSocket."""

    def test_stream_run(self):
        with client.websocket_connect(f"/ws/run/{TEST_GRAPH_ID}") as websocket:
            websocket.send_json({
                "action": "start",
                "messages": [{"type": "human", "content": "hi"}],
            })

            started = websocket.receive_json()
            first = websocket.receive_json()
            second = websocket.receive_json()
            completed = websocket.receive_json()

        assert started["type"] == "started"
        assert (first["type"], first["node"]) == ("snapshot", "supervisor")
        assert (second["type"], second["node"]) == ("snapshot", "health_agent")
        assert len(second["values"]["messages"]) == 2
        assert completed["type"] == "completed"
        assert completed["steps"] == 2

    def test_stream_failure(self):
        with client.websocket_connect(f"/ws/run/{FAILING_GRAPH_ID}") as websocket:
            websocket.send_json({"action": "start", "messages": [{"content": "hi"}]})

            assert websocket.receive_json()["type"] == "started"
            assert websocket.receive_json()["type"] == "snapshot"
            error = websocket.receive_json()

        assert error["type"] == "error"
        assert error["error_type"] == "TaskExecutionError"

    def test_wrong_action(self):
        with client.websocket_connect(f"/ws/run/{TEST_GRAPH_ID}") as websocket:
            websocket.send_json({"action": "stop"})
            assert websocket.receive_json() == {"type": "error", "error": "Expected 'start' action"}

    def test_start_payload_not_an_object(self):
        with client.websocket_connect(f"/ws/run/{TEST_GRAPH_ID}") as websocket:
            websocket.send_json(["start"])
            assert websocket.receive_json() == {"type": "error", "error": "Expected 'start' action"}

    def test_message_not_an_object(self):
        with client.websocket_connect(f"/ws/run/{TEST_GRAPH_ID}") as websocket:
            websocket.send_json({"action": "start", "messages": ["hi"]})
            error = websocket.receive_json()

        assert error["type"] == "error"
        assert error["error"].startswith("Invalid messages")

    def test_messages_not_a_list(self):
        with client.websocket_connect(f"/ws/run/{TEST_GRAPH_ID}") as websocket:
            websocket.send_json({"action": "start", "messages": "hi"})
            error = websocket.receive_json()

        assert error["type"] == "error"
        assert error["error"].startswith("Invalid messages")

    def test_unknown_graph(self):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/ws/run/missing") as websocket:
                websocket.receive_json()


class CountingAgent:
    def __init__(self):
        self.calls = 0

    async def ainvoke(self, state):
        self.calls += 1
        return {"messages": [AIMessage(content="Go for a walk.")]}


class DisconnectingWebSocket:
    """Client that goes away as soon as the first snapshot arrives."""

    def __init__(self, start):
        self.start = start
        self.sent = []

    async def accept(self):
        pass

    async def close(self, code=1000, reason=None):
        pass

    async def receive_json(self):
        return self.start

    async def send_json(self, data):
        self.sent.append(data)
        if data["type"] == "snapshot":
            raise WebSocketDisconnect(code=1001)


class TestWebSocketDisconnect:
    """Tests for a client leaving mid-run."""

    @pytest.mark.asyncio
    async def test_disconnect_marks_run_cancelled(self):
        agent = CountingAgent()
        graph_id = "test-health-disconnect"
        await graph_storage.save(create_health_assistant_workflow(agent, graph_id=graph_id))

        websocket = DisconnectingWebSocket({
            "action": "start",
            "messages": [{"type": "human", "content": "hi"}],
        })
        await websocket_run(websocket, graph_id)

        assert [m["type"] for m in websocket.sent] == ["started", "snapshot"]
        stored = await run_storage.get(websocket.sent[0]["run_id"])
        assert stored.status == "cancelled"
        assert stored.error == "Client disconnected"
        assert [entry["node"] for entry in stored.execution_log] == ["supervisor"]
        assert stored.completed_at is not None

        # The stream was closed before the agent node started
        assert agent.calls == 0


# ============================================================
# Async Client
# ============================================================

class TestAsyncClient:
    """Tests using httpx.AsyncClient against the ASGI app."""

    @pytest.mark.asyncio
    async def test_run_graph_async(self):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            response = await ac.post(
                "/graph/run",
                json={"graph_id": TEST_GRAPH_ID, "messages": [{"content": "hello"}]},
            )

        assert response.status_code == 200
        assert response.json()["status"] == "completed"
