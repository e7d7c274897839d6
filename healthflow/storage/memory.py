"""
In-Memory Storage for compiled graphs and run records.

Everything here lives for the lifetime of the process only.
"""

from typing import Any, Dict, List, Optional
from datetime import datetime
import asyncio
from dataclasses import dataclass, field

from healthflow.engine.graph import CompiledGraph


@dataclass
class StoredRun:
    """A run record kept for polling."""
    run_id: str
    graph_id: str
    status: str
    initial_state: Dict[str, Any]
    current_state: Dict[str, Any] = field(default_factory=dict)
    final_state: Optional[Dict[str, Any]] = None
    snapshots: List[Dict[str, Any]] = field(default_factory=list)
    execution_log: List[Dict[str, Any]] = field(default_factory=list)
    current_node: Optional[str] = None
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    error_type: Optional[str] = None


class GraphStorage:
    """
    In-memory registry of compiled graphs, keyed by graph ID.

    Compiled graphs are immutable, so the same instance serves every run.
    """

    def __init__(self):
        self._graphs: Dict[str, CompiledGraph] = {}
        self._registered_at: Dict[str, datetime] = {}
        self._lock = asyncio.Lock()

    async def save(self, graph: CompiledGraph) -> CompiledGraph:
        """Register (or replace) a compiled graph."""
        async with self._lock:
            self._graphs[graph.graph_id] = graph
            self._registered_at[graph.graph_id] = datetime.now()
            return graph

    async def get(self, graph_id: str) -> Optional[CompiledGraph]:
        """Get a graph by ID."""
        async with self._lock:
            return self._graphs.get(graph_id)

    async def registered_at(self, graph_id: str) -> Optional[datetime]:
        async with self._lock:
            return self._registered_at.get(graph_id)

    async def list_all(self) -> List[CompiledGraph]:
        """List all registered graphs."""
        async with self._lock:
            return list(self._graphs.values())

    def __len__(self) -> int:
        return len(self._graphs)


class RunStorage:
    """
    In-memory storage for run records.

    State values are stored in JSON-ready form so they can be returned
    by the API as-is.
    """

    def __init__(self):
        self._runs: Dict[str, StoredRun] = {}
        self._lock = asyncio.Lock()

    async def create(
        self,
        run_id: str,
        graph_id: str,
        initial_state: Dict[str, Any]
    ) -> StoredRun:
        """
        Create a new run.

        Args:
            run_id: Unique run identifier
            graph_id: Associated graph ID
            initial_state: Initial state data

        Returns:
            The stored run
        """
        async with self._lock:
            stored = StoredRun(
                run_id=run_id,
                graph_id=graph_id,
                status="pending",
                initial_state=initial_state,
                current_state=dict(initial_state),
            )
            self._runs[run_id] = stored
            return stored

    async def get(self, run_id: str) -> Optional[StoredRun]:
        """Get a run by ID."""
        async with self._lock:
            return self._runs.get(run_id)

    async def add_snapshot(
        self,
        run_id: str,
        snapshot: Dict[str, Any],
        log_entry: Dict[str, Any],
    ) -> Optional[StoredRun]:
        """Record one streamed snapshot and its log entry."""
        async with self._lock:
            if run_id not in self._runs:
                return None
            stored = self._runs[run_id]
            stored.status = "running"
            stored.snapshots.append(snapshot)
            stored.execution_log.append(log_entry)
            stored.current_state = snapshot["values"]
            stored.current_node = snapshot["node"]
            return stored

    async def finish(
        self,
        run_id: str,
        status: str,
        final_state: Dict[str, Any],
        execution_log: List[Dict[str, Any]],
        error: Optional[str] = None,
        error_type: Optional[str] = None,
    ) -> Optional[StoredRun]:
        """Mark a run as completed, failed or cancelled."""
        async with self._lock:
            if run_id not in self._runs:
                return None
            stored = self._runs[run_id]
            stored.status = status
            stored.final_state = final_state
            stored.execution_log = execution_log
            stored.error = error
            stored.error_type = error_type
            stored.completed_at = datetime.now()
            return stored

    async def list_all(self) -> List[StoredRun]:
        """List all runs."""
        async with self._lock:
            return list(self._runs.values())

    async def list_by_graph(self, graph_id: str) -> List[StoredRun]:
        """List all runs for a specific graph."""
        async with self._lock:
            return [r for r in self._runs.values() if r.graph_id == graph_id]

    def __len__(self) -> int:
        return len(self._runs)


# Global storage instances
graph_storage = GraphStorage()
run_storage = RunStorage()
