"""
State channels.

A channel is one named slot of the shared run state. It knows how to
build its starting value and how to fold an incoming delta into the
value it already holds.
"""

from typing import Any, Callable, List, Optional, Sequence
from dataclasses import dataclass


Reducer = Callable[[Any, Any], Any]


def append_reducer(current: Sequence[Any], delta: Any) -> List[Any]:
    """Concatenate ``delta`` onto ``current``, keeping arrival order."""
    if isinstance(delta, (list, tuple)):
        return list(current) + list(delta)
    return list(current) + [delta]


def last_value_reducer(current: Any, delta: Any) -> Any:
    """Replace the current value with the delta."""
    return delta


@dataclass(frozen=True)
class Channel:
    """
    A named slot of shared state.

    Attributes:
        reducer: Merges the current value with an incoming delta
        default: Factory for the value a run starts with
    """

    reducer: Reducer = last_value_reducer
    default: Optional[Callable[[], Any]] = None

    def __post_init__(self):
        if not callable(self.reducer):
            raise TypeError("Channel reducer must be callable")
        if self.default is not None and not callable(self.default):
            raise TypeError("Channel default must be a zero-argument callable")

    @classmethod
    def appending(cls) -> "Channel":
        """A sequence channel starting empty, merged by concatenation."""
        return cls(reducer=append_reducer, default=list)

    @classmethod
    def last_value(cls, default: Optional[Callable[[], Any]] = None) -> "Channel":
        """A channel that keeps whatever was written last."""
        return cls(reducer=last_value_reducer, default=default)

    def initial(self) -> Any:
        return self.default() if self.default is not None else None

    def merge(self, current: Any, delta: Any) -> Any:
        return self.reducer(current, delta)
