"""
Async Graph Executor.

StateChangeStream walks a compiled graph one node at a time and yields a
full-state snapshot after every node. Executor drains a stream into an
ExecutionResult with a step log, for callers that want a summary rather
than the live sequence.
"""

from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
import asyncio
import inspect
import logging
import time
import uuid

from healthflow.engine.errors import GraphError, RecursionLimitError, TaskExecutionError
from healthflow.engine.graph import CompiledGraph
from healthflow.engine.node import Node
from healthflow.engine.state import END, StateManager, StateSnapshot


logger = logging.getLogger(__name__)


class StateChangeStream:
    """
    Lazy, ordered, single-use sequence of snapshots for one run.

    Nothing runs until the first pull. Each pull executes nodes until
    one produces a snapshot; routing to the next node happens on the
    following pull. A node that returns an empty update after the first
    snapshot leaves the state as it was and emits nothing. Closing the
    stream starts no further nodes.

    Usage:
        async for snapshot in graph.stream({"messages": [...]}):
            print(snapshot.node, snapshot.values)
    """

    def __init__(
        self,
        graph: CompiledGraph,
        initial_state: Optional[Mapping[str, Any]] = None,
        max_steps: Optional[int] = None,
        run_id: Optional[str] = None,
    ):
        self.graph = graph
        self.run_id = run_id or str(uuid.uuid4())
        self.max_steps = max_steps or graph.max_steps
        self.current_node: Optional[str] = None
        self.steps = 0
        self._initial_state = initial_state
        self._generator = self._execute()

    def __aiter__(self) -> "StateChangeStream":
        return self

    async def __anext__(self) -> StateSnapshot:
        return await self._generator.__anext__()

    async def aclose(self) -> None:
        """Stop the run. A node that is mid-flight is not interrupted."""
        await self._generator.aclose()

    async def __aenter__(self) -> "StateChangeStream":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _execute(self):
        manager = StateManager(self.graph.channels, self.run_id)
        current = self.graph.entry_point
        emitted = False

        try:
            state = manager.initialize(self._initial_state)
            logger.info(f"Run {self.run_id} started on graph '{self.graph.name}' at '{current}'")

            while True:
                if self.steps >= self.max_steps:
                    raise RecursionLimitError(self.max_steps, current)

                node = self.graph.nodes[current]
                self.current_node = current
                self.steps += 1

                logger.debug(f"Executing node: {current} (step {self.steps})")
                started = time.perf_counter()
                update = await self._run_task(node, state)
                duration_ms = (time.perf_counter() - started) * 1000

                state = manager.apply(current, update)
                # A no-op node would only repeat the previous snapshot
                if update or not emitted:
                    emitted = True
                    yield manager.snapshot(self.steps, current, duration_ms)
                else:
                    logger.debug(f"Node '{current}' wrote nothing; no snapshot emitted")

                next_node = self.graph.get_next_node(current, state)
                logger.debug(f"Route: {current} -> {next_node}")
                if next_node == END:
                    logger.info(f"Run {self.run_id} reached END after {self.steps} steps")
                    return
                current = next_node

        except GraphError as e:
            logger.error(f"Run {self.run_id} failed at node '{current}': {e}")
            raise
        except GeneratorExit:
            logger.info(f"Run {self.run_id} closed by consumer after {self.steps} steps")
            raise

    async def _run_task(self, node: Node, state: Dict[str, Any]) -> Dict[str, Any]:
        """Await one task unit, letting it finish even if the consumer is cancelled."""
        task = asyncio.ensure_future(node.execute(state))
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.done():
                logger.warning(
                    f"Run {self.run_id} cancelled while '{node.name}' was running; "
                    f"the node will finish and its update will be discarded"
                )
                task.add_done_callback(_log_discarded_task)
            raise


def _log_discarded_task(task: "asyncio.Future") -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error(f"Discarded node task failed: {error}")


def run(
    graph: CompiledGraph,
    initial_state: Optional[Mapping[str, Any]] = None,
    max_steps: Optional[int] = None,
    run_id: Optional[str] = None,
) -> StateChangeStream:
    """Start a run of a compiled graph. Never raises; failures surface on the stream."""
    return StateChangeStream(graph, initial_state, max_steps=max_steps, run_id=run_id)


class ExecutionStatus(str, Enum):
    """Status of a workflow execution."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class ExecutionStep:
    """A single step in the execution log."""
    step: int
    node: str
    completed_at: datetime = field(default_factory=datetime.now)
    duration_ms: Optional[float] = None
    result: str = "success"
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step,
            "node": self.node,
            "completed_at": self.completed_at.isoformat(),
            "duration_ms": self.duration_ms,
            "result": self.result,
            "error": self.error,
        }


@dataclass
class ExecutionResult:
    """Result of a workflow execution."""
    run_id: str
    graph_id: str
    status: ExecutionStatus
    final_state: Dict[str, Any]
    snapshots: List[StateSnapshot] = field(default_factory=list)
    execution_log: List[ExecutionStep] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    total_duration_ms: Optional[float] = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "graph_id": self.graph_id,
            "status": self.status.value,
            "final_state": self.final_state,
            "snapshots": [
                {"step": s.step, "node": s.node, "duration_ms": s.duration_ms, "values": s.values}
                for s in self.snapshots
            ],
            "execution_log": [step.to_dict() for step in self.execution_log],
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "total_duration_ms": self.total_duration_ms,
            "error": self.error,
            "error_type": self.error_type,
        }


StepCallback = Callable[[ExecutionStep, StateSnapshot], Union[None, Awaitable[None]]]


class Executor:
    """
    Runs a compiled graph to completion and summarizes the run.

    Errors raised by the stream are captured in the result instead of
    propagating.

    Usage:
        executor = Executor(graph)
        result = await executor.run({"messages": [HumanMessage(content="hi")]})
    """

    def __init__(
        self,
        graph: CompiledGraph,
        run_id: Optional[str] = None,
        on_step: Optional[StepCallback] = None,
        max_steps: Optional[int] = None,
    ):
        """
        Initialize the executor.

        Args:
            graph: The compiled graph to execute
            run_id: Optional run ID (generated if not provided)
            on_step: Optional sync or async callback for each snapshot
            max_steps: Step limit override for this run
        """
        self.graph = graph
        self.run_id = run_id or str(uuid.uuid4())
        self.on_step = on_step
        self.max_steps = max_steps

        self._stream: Optional[StateChangeStream] = None
        self._execution_log: List[ExecutionStep] = []
        self._snapshots: List[StateSnapshot] = []
        self._status = ExecutionStatus.PENDING
        self._cancelled = False

    @property
    def status(self) -> ExecutionStatus:
        """Get the current execution status."""
        return self._status

    @property
    def current_state(self) -> Optional[Dict[str, Any]]:
        """State after the most recent step."""
        if self._snapshots:
            return dict(self._snapshots[-1].values)
        return None

    def cancel(self) -> None:
        """Stop after the node that is currently running."""
        self._cancelled = True

    async def run(self, initial_state: Optional[Mapping[str, Any]] = None) -> ExecutionResult:
        """
        Execute the graph with the given initial state.

        Returns:
            ExecutionResult with final state, snapshots and step log
        """
        start_time = time.time()
        started_at = datetime.now()
        self._status = ExecutionStatus.RUNNING
        self._stream = run(self.graph, initial_state, max_steps=self.max_steps, run_id=self.run_id)

        try:
            async for snapshot in self._stream:
                step = ExecutionStep(
                    step=snapshot.step,
                    node=snapshot.node,
                    completed_at=snapshot.timestamp,
                    duration_ms=snapshot.duration_ms,
                )
                self._execution_log.append(step)
                self._snapshots.append(snapshot)
                await self._notify(step, snapshot)

                if self._cancelled:
                    logger.info(f"Execution cancelled after node '{snapshot.node}'")
                    await self._stream.aclose()
                    self._status = ExecutionStatus.CANCELLED
                    break
        except GraphError as e:
            if isinstance(e, TaskExecutionError):
                self._execution_log.append(
                    ExecutionStep(
                        step=self._stream.steps,
                        node=e.node,
                        result="error",
                        error=str(e),
                    )
                )
            return self._create_result(ExecutionStatus.FAILED, started_at, start_time, error=e)

        if self._status == ExecutionStatus.RUNNING:
            self._status = ExecutionStatus.COMPLETED
        return self._create_result(self._status, started_at, start_time)

    async def _notify(self, step: ExecutionStep, snapshot: StateSnapshot) -> None:
        if not self.on_step:
            return
        try:
            result = self.on_step(step, snapshot)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning(f"Step callback failed: {e}")

    def _create_result(
        self,
        status: ExecutionStatus,
        started_at: datetime,
        start_time: float,
        error: Optional[GraphError] = None,
    ) -> ExecutionResult:
        self._status = status
        return ExecutionResult(
            run_id=self.run_id,
            graph_id=self.graph.graph_id,
            status=status,
            final_state=self.current_state or {},
            snapshots=list(self._snapshots),
            execution_log=list(self._execution_log),
            started_at=started_at,
            completed_at=datetime.now(),
            total_duration_ms=(time.time() - start_time) * 1000,
            error=str(error) if error else None,
            error_type=type(error).__name__ if error else None,
        )


async def execute_graph(
    graph: CompiledGraph,
    initial_state: Optional[Mapping[str, Any]] = None,
    run_id: Optional[str] = None,
    on_step: Optional[StepCallback] = None,
) -> ExecutionResult:
    """
    Convenience function to execute a graph.

    Args:
        graph: The compiled graph
        initial_state: Initial channel values
        run_id: Optional run ID
        on_step: Optional step callback

    Returns:
        ExecutionResult
    """
    executor = Executor(graph, run_id, on_step)
    return await executor.run(initial_state)
