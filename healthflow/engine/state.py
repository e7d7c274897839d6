"""
State Management for the graph runtime.

The state of a run is a plain dict keyed by channel name. The
StateManager materializes channel defaults when a run starts and folds
each node's partial update into the current values through the
channel reducers.
"""

from typing import Any, Dict, Mapping, Optional
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
import uuid

from healthflow.engine.channel import Channel
from healthflow.engine.errors import InvalidUpdateError


START = "__start__"
END = "__end__"


class StateSnapshot(BaseModel):
    """The full merged state captured right after one node ran."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    step: int
    node: str
    values: Dict[str, Any]
    duration_ms: float = 0.0
    timestamp: datetime = Field(default_factory=datetime.now)

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)


class StateManager:
    """
    Holds the current values of one run.

    Every value replaced here is replaced by a new object produced by a
    reducer, so dicts handed out earlier stay valid as snapshots.
    """

    def __init__(self, channels: Mapping[str, Channel], run_id: Optional[str] = None):
        self.run_id = run_id or str(uuid.uuid4())
        self.channels = channels
        self._values: Optional[Dict[str, Any]] = None

    @property
    def current_state(self) -> Optional[Dict[str, Any]]:
        """The current values (a fresh dict) or None before initialize()."""
        if self._values is None:
            return None
        return dict(self._values)

    def initialize(self, initial_state: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """
        Build the starting values for a run.

        Seeded channels take the supplied value; every other channel
        calls its default factory exactly once.

        Raises:
            InvalidUpdateError: if the initial state names an undeclared channel
        """
        initial_state = dict(initial_state or {})
        unknown = set(initial_state) - set(self.channels)
        if unknown:
            raise InvalidUpdateError(
                START,
                f"Initial state has unknown channels {sorted(unknown)}. "
                f"Declared channels: {sorted(self.channels)}",
            )

        values: Dict[str, Any] = {}
        for name, channel in self.channels.items():
            if name in initial_state:
                values[name] = initial_state[name]
            else:
                values[name] = channel.initial()

        self._values = values
        return dict(values)

    def apply(self, node_name: str, update: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Merge a node's partial update into the current values.

        Only the keys present in ``update`` are touched.

        Raises:
            InvalidUpdateError: on an undeclared channel or a failing reducer
        """
        if self._values is None:
            raise RuntimeError("StateManager.apply() called before initialize()")

        unknown = set(update) - set(self.channels)
        if unknown:
            raise InvalidUpdateError(
                node_name,
                f"Update has unknown channels {sorted(unknown)}. "
                f"Declared channels: {sorted(self.channels)}",
            )

        merged = dict(self._values)
        for name, delta in update.items():
            try:
                merged[name] = self.channels[name].merge(merged[name], delta)
            except Exception as e:
                raise InvalidUpdateError(
                    node_name, f"Reducer for channel '{name}' failed: {e}"
                ) from e

        self._values = merged
        return dict(merged)

    def snapshot(self, step: int, node_name: str, duration_ms: float = 0.0) -> StateSnapshot:
        """Capture the current values as an immutable snapshot."""
        return StateSnapshot(
            step=step,
            node=node_name,
            values=dict(self._values or {}),
            duration_ms=duration_ms,
        )
