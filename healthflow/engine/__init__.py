"""
Engine package - Core graph runtime components.
"""

from healthflow.engine.channel import Channel, append_reducer, last_value_reducer
from healthflow.engine.errors import (
    ConfigurationError,
    GraphError,
    InvalidUpdateError,
    RecursionLimitError,
    RoutingError,
    TaskExecutionError,
    ValidationError,
)
from healthflow.engine.state import END, START, StateManager, StateSnapshot
from healthflow.engine.node import Node
from healthflow.engine.graph import CompiledGraph, StateGraph
from healthflow.engine.executor import (
    ExecutionResult,
    ExecutionStatus,
    Executor,
    StateChangeStream,
    execute_graph,
    run,
)

__all__ = [
    "Channel",
    "append_reducer",
    "last_value_reducer",
    "ConfigurationError",
    "GraphError",
    "InvalidUpdateError",
    "RecursionLimitError",
    "RoutingError",
    "TaskExecutionError",
    "ValidationError",
    "END",
    "START",
    "StateManager",
    "StateSnapshot",
    "Node",
    "CompiledGraph",
    "StateGraph",
    "ExecutionResult",
    "ExecutionStatus",
    "Executor",
    "StateChangeStream",
    "execute_graph",
    "run",
]
