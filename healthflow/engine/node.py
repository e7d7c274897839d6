"""
Node Definition for the graph runtime.

A node binds a unique name to a task unit: a function that reads the
current state and returns a partial update for some of its channels.
"""

from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union
from dataclasses import dataclass, field
import inspect

from healthflow.engine.errors import InvalidUpdateError, TaskExecutionError


TaskResult = Optional[Mapping[str, Any]]
TaskUnit = Callable[[Dict[str, Any]], Union[TaskResult, Awaitable[TaskResult]]]


@dataclass(frozen=True)
class Node:
    """
    A node in the workflow graph.

    Attributes:
        name: Unique identifier for the node
        handler: Task unit (sync or async) returning a partial update
        description: Human-readable description
        metadata: Additional node metadata
    """

    name: str
    handler: TaskUnit
    description: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Validate the node after initialization."""
        if not self.name:
            raise ValueError("Node name cannot be empty")
        if not callable(self.handler):
            raise ValueError(f"Handler for node '{self.name}' must be callable")

    @property
    def is_async(self) -> bool:
        """Check if the handler is an async function."""
        return inspect.iscoroutinefunction(self.handler)

    async def execute(self, state: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run the task unit against the given state.

        Sync handlers run inline on the event loop; an awaitable result
        is awaited.

        Returns:
            The partial update ({} when the handler returned None)

        Raises:
            TaskExecutionError: if the handler raises
            InvalidUpdateError: if it returns something other than a mapping
        """
        try:
            result = self.handler(state)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            # Add the node name to the error
            raise TaskExecutionError(self.name, f"{type(e).__name__}: {e}") from e

        if result is None:
            return {}

        if isinstance(result, Mapping):
            return dict(result)

        raise InvalidUpdateError(
            self.name,
            f"handler must return a mapping or None, got {type(result).__name__}",
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the node to a dictionary."""
        return {
            "name": self.name,
            "description": self.description,
            "handler": getattr(self.handler, "__name__", str(self.handler)),
            "async": self.is_async,
            "metadata": self.metadata,
        }
