"""
WebSocket Routes for live state streaming.

Each snapshot is forwarded to the client as soon as the node that
produced it finishes.
"""

from typing import Any, Dict, List
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from pydantic import TypeAdapter
from uuid import uuid4
import logging

from healthflow.api.routes.graph import snapshot_to_dict
from healthflow.api.schemas import MessagePayload
from healthflow.engine.errors import GraphError
from healthflow.engine.executor import ExecutionStatus, run
from healthflow.messages import message_from_dict
from healthflow.storage.memory import graph_storage, run_storage


logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket"])

_message_list = TypeAdapter(List[MessagePayload])


@router.websocket("/ws/run/{graph_id}")
async def websocket_run(websocket: WebSocket, graph_id: str):
    """
    Run a graph and stream its snapshots.

    Message format (client -> server):
    ```json
    {"action": "start", "messages": [{"type": "human", "content": "hi"}]}
    ```

    Message format (server -> client), one per executed node:
    ```json
    {"type": "snapshot", "step": 1, "node": "supervisor", "duration_ms": 0.2, "values": {...}}
    ```
    followed by a final `completed` or `error` message.

    Disconnecting stops the run after the node in flight.
    """
    graph = await graph_storage.get(graph_id)
    if not graph:
        await websocket.close(code=4004, reason=f"Graph '{graph_id}' not found")
        return

    await websocket.accept()
    run_id = str(uuid4())
    stream = None
    log: List[Dict[str, Any]] = []
    last_values: Dict[str, Any] = {}

    try:
        data = await websocket.receive_json()

        if not isinstance(data, dict) or data.get("action") != "start":
            await websocket.send_json({
                "type": "error",
                "error": "Expected 'start' action"
            })
            return

        try:
            payloads = _message_list.validate_python(data.get("messages", []))
        except ValueError as e:
            await websocket.send_json({"type": "error", "error": f"Invalid messages: {e}"})
            return

        messages = [message_from_dict(p.model_dump()) for p in payloads]
        initial_state = {"messages": messages}
        await run_storage.create(run_id, graph_id, jsonable_encoder(initial_state))

        await websocket.send_json({
            "type": "started",
            "run_id": run_id,
            "graph_id": graph_id,
        })

        stream = run(graph, initial_state, run_id=run_id)

        try:
            async for snapshot in stream:
                payload = snapshot_to_dict(snapshot)
                entry = {
                    "step": snapshot.step,
                    "node": snapshot.node,
                    "completed_at": snapshot.timestamp.isoformat(),
                    "duration_ms": snapshot.duration_ms,
                    "result": "success",
                    "error": None,
                }
                log.append(entry)
                last_values = payload["values"]
                await run_storage.add_snapshot(run_id, payload, entry)
                await websocket.send_json({"type": "snapshot", **payload})
        except GraphError as e:
            await run_storage.finish(
                run_id, ExecutionStatus.FAILED.value, last_values, log,
                error=str(e), error_type=type(e).__name__,
            )
            await websocket.send_json({
                "type": "error",
                "run_id": run_id,
                "error": str(e),
                "error_type": type(e).__name__,
            })
            return

        await run_storage.finish(run_id, ExecutionStatus.COMPLETED.value, last_values, log)
        await websocket.send_json({
            "type": "completed",
            "run_id": run_id,
            "status": ExecutionStatus.COMPLETED.value,
            "steps": len(log),
            "final_state": last_values,
        })

    except WebSocketDisconnect:
        logger.info(f"Client disconnected from run {run_id}")
        if stream is not None:
            await stream.aclose()
            await run_storage.finish(
                run_id, ExecutionStatus.CANCELLED.value, last_values, log,
                error="Client disconnected",
            )
