"""
Graph API Routes.

Endpoints for inspecting registered graphs, running them and polling
run records.
"""

from typing import Any, Dict, List, Optional
from fastapi import APIRouter, HTTPException
from fastapi.encoders import jsonable_encoder
from uuid import uuid4
import logging

from healthflow.api.schemas import (
    ErrorResponse,
    ExecutionLogEntry,
    GraphInfoResponse,
    GraphListResponse,
    GraphRunRequest,
    GraphRunResponse,
    MessagePayload,
    RunListResponse,
    RunStateResponse,
    SnapshotEntry,
)
from healthflow.engine.executor import ExecutionResult, ExecutionStep, Executor
from healthflow.engine.graph import CompiledGraph
from healthflow.engine.state import StateSnapshot
from healthflow.messages import BaseMessage, message_from_dict
from healthflow.storage.memory import StoredRun, graph_storage, run_storage


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/graph", tags=["Graph"])


# ============================================================
# Helpers
# ============================================================

def build_initial_state(graph: CompiledGraph, messages: List[MessagePayload]) -> Dict[str, List[BaseMessage]]:
    """Turn request messages into the initial value of the messages channel."""
    if "messages" not in graph.channels:
        raise HTTPException(
            status_code=400,
            detail=f"Graph '{graph.graph_id}' has no 'messages' channel",
        )
    return {"messages": [message_from_dict(m.model_dump()) for m in messages]}


def snapshot_to_dict(snapshot: StateSnapshot) -> Dict[str, Any]:
    """JSON-ready form of a snapshot."""
    return {
        "step": snapshot.step,
        "node": snapshot.node,
        "duration_ms": snapshot.duration_ms,
        "values": jsonable_encoder(snapshot.values),
    }


async def graph_info(graph: CompiledGraph, with_diagram: bool = True) -> GraphInfoResponse:
    registered_at = await graph_storage.registered_at(graph.graph_id)
    return GraphInfoResponse(
        graph_id=graph.graph_id,
        name=graph.name,
        description=graph.description or None,
        channels=list(graph.channels),
        node_count=len(graph.nodes),
        nodes=list(graph.nodes),
        entry_point=graph.entry_point,
        max_steps=graph.max_steps,
        registered_at=registered_at.isoformat() if registered_at else None,
        mermaid_diagram=graph.to_mermaid() if with_diagram else None,
    )


def _stored_run_to_response(stored: StoredRun) -> RunStateResponse:
    return RunStateResponse(
        run_id=stored.run_id,
        graph_id=stored.graph_id,
        status=stored.status,
        current_node=stored.current_node,
        current_state=stored.current_state,
        snapshots=[SnapshotEntry(**s) for s in stored.snapshots],
        execution_log=[ExecutionLogEntry(**entry) for entry in stored.execution_log],
        started_at=stored.started_at.isoformat(),
        completed_at=stored.completed_at.isoformat() if stored.completed_at else None,
        error=stored.error,
        error_type=stored.error_type,
    )


def _result_to_response(result: ExecutionResult) -> GraphRunResponse:
    """Convert ExecutionResult to API response."""
    return GraphRunResponse(
        run_id=result.run_id,
        graph_id=result.graph_id,
        status=result.status,
        final_state=jsonable_encoder(result.final_state),
        snapshots=[SnapshotEntry(**snapshot_to_dict(s)) for s in result.snapshots],
        execution_log=[ExecutionLogEntry(**s.to_dict()) for s in result.execution_log],
        started_at=result.started_at.isoformat() if result.started_at else None,
        completed_at=result.completed_at.isoformat() if result.completed_at else None,
        total_duration_ms=result.total_duration_ms,
        error=result.error,
        error_type=result.error_type,
    )


# ============================================================
# Graph Endpoints
# ============================================================

@router.get(
    "/",
    response_model=GraphListResponse,
)
async def list_graphs() -> GraphListResponse:
    """List all registered graphs."""
    graphs = await graph_storage.list_all()
    infos = [await graph_info(g, with_diagram=False) for g in graphs]
    return GraphListResponse(graphs=infos, total=len(infos))


@router.get(
    "/runs",
    response_model=RunListResponse,
)
async def list_runs(graph_id: Optional[str] = None) -> RunListResponse:
    """List all runs, optionally filtered by graph_id."""
    if graph_id:
        runs = await run_storage.list_by_graph(graph_id)
    else:
        runs = await run_storage.list_all()

    run_states = [_stored_run_to_response(stored) for stored in runs]
    return RunListResponse(runs=run_states, total=len(run_states))


@router.get(
    "/state/{run_id}",
    response_model=RunStateResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_run_state(run_id: str) -> RunStateResponse:
    """Get the recorded state of a run."""
    stored = await run_storage.get(run_id)
    if not stored:
        raise HTTPException(status_code=404, detail=f"Run '{run_id}' not found")
    return _stored_run_to_response(stored)


@router.get(
    "/{graph_id}",
    response_model=GraphInfoResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_graph(graph_id: str) -> GraphInfoResponse:
    """Get information about a specific graph, with its Mermaid diagram."""
    graph = await graph_storage.get(graph_id)
    if not graph:
        raise HTTPException(status_code=404, detail=f"Graph '{graph_id}' not found")
    return await graph_info(graph)


# ============================================================
# Execution Endpoints
# ============================================================

@router.post(
    "/run",
    response_model=GraphRunResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    }
)
async def run_graph(request: GraphRunRequest) -> GraphRunResponse:
    """
    Run a graph to completion over the given conversation.

    Run failures (task, routing or step-limit errors) come back as a
    result with status `failed`.
    """
    graph = await graph_storage.get(request.graph_id)
    if not graph:
        raise HTTPException(
            status_code=404,
            detail=f"Graph '{request.graph_id}' not found"
        )

    initial_state = build_initial_state(graph, request.messages)

    run_id = str(uuid4())
    await run_storage.create(run_id, request.graph_id, jsonable_encoder(initial_state))

    async def record_step(step: ExecutionStep, snapshot: StateSnapshot) -> None:
        await run_storage.add_snapshot(run_id, snapshot_to_dict(snapshot), step.to_dict())

    executor = Executor(graph, run_id=run_id, on_step=record_step, max_steps=request.max_steps)
    result = await executor.run(initial_state)

    await run_storage.finish(
        run_id,
        result.status.value,
        jsonable_encoder(result.final_state),
        [s.to_dict() for s in result.execution_log],
        error=result.error,
        error_type=result.error_type,
    )
    logger.info(f"Run {run_id} on graph {request.graph_id} finished: {result.status.value}")

    return _result_to_response(result)
