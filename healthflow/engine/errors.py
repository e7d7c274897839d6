"""
Error taxonomy for the graph runtime.

Build-time problems raise immediately; run-time problems surface through
the state-change stream and end the run.
"""

from typing import Any, Iterable, List, Optional


class GraphError(Exception):
    """Base class for all runtime errors."""


class ConfigurationError(GraphError):
    """Required external configuration is missing."""

    def __init__(self, missing: Iterable[str], source: Optional[str] = None):
        self.missing: List[str] = list(missing)
        self.source = source
        where = f" (checked environment and {source})" if source else ""
        super().__init__(
            f"Missing required configuration: {', '.join(self.missing)}{where}"
        )


class ValidationError(GraphError):
    """The graph topology is malformed."""

    def __init__(self, errors: Iterable[str]):
        self.errors: List[str] = list(errors)
        super().__init__("Graph validation failed: " + "; ".join(self.errors))


class RoutingError(GraphError):
    """A router produced a label with no matching outcome."""

    def __init__(self, node: str, label: Any, available: Iterable[str], detail: str = ""):
        self.node = node
        self.label = label
        self.available = list(available)
        message = detail or (
            f"Router for node '{node}' returned unknown route {label!r}. "
            f"Available routes: {self.available}"
        )
        super().__init__(message)


class TaskExecutionError(GraphError):
    """A node's task unit failed. The original exception is chained as __cause__."""

    def __init__(self, node: str, detail: str):
        self.node = node
        self.detail = detail
        super().__init__(f"Error in node '{node}': {detail}")


class InvalidUpdateError(TaskExecutionError):
    """A node returned an update that cannot be merged into the state."""


class RecursionLimitError(GraphError):
    """A run executed more nodes than its step limit allows."""

    def __init__(self, limit: int, node: str):
        self.limit = limit
        self.node = node
        super().__init__(
            f"Step limit of {limit} reached without hitting END "
            f"(next node was '{node}')"
        )
