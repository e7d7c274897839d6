"""
Pydantic Schemas for API Request/Response Models.
"""

from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

from healthflow.engine.executor import ExecutionStatus


# ============================================================
# Message Schemas
# ============================================================

class MessagePayload(BaseModel):
    """A conversational message as sent over the wire."""
    type: Literal["human", "ai", "system"] = Field("human", description="Authorship tag")
    content: str = Field(..., description="Message text")
    response_metadata: Dict[str, Any] = Field(default_factory=dict)


# ============================================================
# Graph Schemas
# ============================================================

class GraphInfoResponse(BaseModel):
    """Response with graph information."""
    graph_id: str
    name: str
    description: Optional[str]
    channels: List[str]
    node_count: int
    nodes: List[str]
    entry_point: str
    max_steps: int
    registered_at: Optional[str]
    mermaid_diagram: Optional[str] = Field(None, description="Mermaid diagram of the graph")


class GraphListResponse(BaseModel):
    """Response listing all graphs."""
    graphs: List[GraphInfoResponse]
    total: int


# ============================================================
# Run Schemas
# ============================================================

class GraphRunRequest(BaseModel):
    """Request to run a graph over a conversation."""
    graph_id: str = Field(..., description="ID of the graph to run")
    messages: List[MessagePayload] = Field(
        ...,
        description="Initial contents of the messages channel"
    )
    max_steps: Optional[int] = Field(None, ge=1, le=1000, description="Step limit override")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "graph_id": "health-assistant",
                "messages": [{"type": "human", "content": "How much water should I drink?"}],
            }
        }
    )


class SnapshotEntry(BaseModel):
    """The full state after one node ran."""
    step: int
    node: str
    duration_ms: float
    values: Dict[str, Any]


class ExecutionLogEntry(BaseModel):
    """A single entry in the execution log."""
    step: int
    node: str
    completed_at: str
    duration_ms: Optional[float]
    result: str
    error: Optional[str]


class GraphRunResponse(BaseModel):
    """Response after running a graph."""
    run_id: str = Field(..., description="Unique identifier for this run")
    graph_id: str
    status: ExecutionStatus
    final_state: Dict[str, Any]
    snapshots: List[SnapshotEntry]
    execution_log: List[ExecutionLogEntry]
    started_at: Optional[str]
    completed_at: Optional[str]
    total_duration_ms: Optional[float]
    error: Optional[str] = None
    error_type: Optional[str] = None


class RunStateResponse(BaseModel):
    """Response with current run state."""
    run_id: str
    graph_id: str
    status: ExecutionStatus
    current_node: Optional[str]
    current_state: Dict[str, Any]
    snapshots: List[SnapshotEntry]
    execution_log: List[ExecutionLogEntry]
    started_at: str
    completed_at: Optional[str]
    error: Optional[str]
    error_type: Optional[str] = None


class RunListResponse(BaseModel):
    """Response listing runs."""
    runs: List[RunStateResponse]
    total: int


# ============================================================
# Error Schemas
# ============================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    status_code: int
