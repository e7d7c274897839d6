"""
Graph Definition for the graph runtime.

A StateGraph collects channels, nodes, plain edges and conditional
edges. compile() validates the topology once and freezes it into a
CompiledGraph, which can be streamed any number of times.
"""

from typing import Any, AsyncIterator, Callable, Dict, Iterable, List, Mapping, Optional, Set, Union
from dataclasses import dataclass, field
from types import MappingProxyType
import logging
import uuid

from healthflow.engine.channel import Channel
from healthflow.engine.errors import RoutingError, ValidationError
from healthflow.engine.node import Node, TaskUnit
from healthflow.engine.state import END, START, StateSnapshot


logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 25

Router = Callable[[Dict[str, Any]], Any]


@dataclass(frozen=True)
class Edge:
    """An edge that is always followed."""
    source: str
    target: str


@dataclass(frozen=True)
class ConditionalEdge:
    """
    An edge whose target is chosen at run time.

    The router receives the current state and returns a label; routes
    maps every label the router may return to a node name or END.
    """
    source: str
    router: Router
    routes: Mapping[str, str]

    def evaluate(self, state: Dict[str, Any]) -> str:
        """Run the router and return the target node name."""
        try:
            label = self.router(state)
        except Exception as e:
            raise RoutingError(
                self.source, None, self.routes,
                detail=f"Router for node '{self.source}' failed: {type(e).__name__}: {e}",
            ) from e

        try:
            return self.routes[label]
        except (KeyError, TypeError):
            raise RoutingError(self.source, label, self.routes) from None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "router": getattr(self.router, "__name__", str(self.router)),
            "routes": dict(self.routes),
        }


class StateGraph:
    """
    Builder for a workflow graph over a set of state channels.

    Usage:
        graph = StateGraph({"messages": Channel.appending()})
        graph.add_node("supervisor", supervisor)
        graph.add_node("agent", agent)
        graph.add_edge(START, "supervisor")
        graph.add_conditional_edges("supervisor", route, {"agent": "agent", END: END})
        graph.add_edge("agent", "supervisor")
        app = graph.compile()
    """

    def __init__(
        self,
        channels: Mapping[str, Channel],
        name: str = "Unnamed Workflow",
        description: str = "",
        graph_id: Optional[str] = None,
    ):
        bad = [key for key, value in channels.items() if not isinstance(value, Channel)]
        if bad:
            raise ValidationError([f"Channel '{key}' is not a Channel instance" for key in bad])

        self.graph_id = graph_id or str(uuid.uuid4())
        self.name = name
        self.description = description
        self.channels: Dict[str, Channel] = dict(channels)
        self.nodes: Dict[str, Node] = {}
        self.edges: List[Edge] = []
        self.conditional_edges: List[ConditionalEdge] = []
        self._entry_points: List[str] = []

    def add_node(self, name: str, handler: TaskUnit, description: str = "") -> "StateGraph":
        """
        Register a task unit under a unique node name.

        Returns:
            Self for chaining
        """
        if name in (START, END):
            raise ValidationError([f"Node name '{name}' is reserved"])
        if name in self.nodes:
            raise ValidationError([f"Node '{name}' already exists in the graph"])

        self.nodes[name] = Node(
            name=name,
            handler=handler,
            description=description or (handler.__doc__ or "").strip(),
        )
        return self

    def add_edge(self, source: str, target: str) -> "StateGraph":
        """
        Add a plain edge. An edge from START names the entry node.

        Endpoints are checked by compile().
        """
        if source == START:
            self._entry_points.append(target)
        else:
            self.edges.append(Edge(source=source, target=target))
        return self

    def add_conditional_edges(
        self,
        source: str,
        router: Router,
        routes: Union[Mapping[str, str], Iterable[str]],
    ) -> "StateGraph":
        """
        Add a conditional edge from source.

        Args:
            source: Source node name
            router: Function returning a route label
            routes: Label -> target mapping, or a list of targets that
                double as their own labels
        """
        if not callable(router):
            raise ValidationError([f"Router for node '{source}' must be callable"])
        if not isinstance(routes, Mapping):
            routes = {target: target for target in routes}

        self.conditional_edges.append(
            ConditionalEdge(source=source, router=router, routes=MappingProxyType(dict(routes)))
        )
        return self

    def set_entry_point(self, node_name: str) -> "StateGraph":
        """Set the first node to execute."""
        return self.add_edge(START, node_name)

    def validate(self) -> List[str]:
        """
        Validate the graph structure.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: List[str] = []

        if not self.nodes:
            errors.append("Graph must have at least one node")
            return errors

        entries = list(dict.fromkeys(self._entry_points))
        if not entries:
            errors.append("Graph must have an entry point")
        elif len(entries) > 1:
            errors.append(f"Graph has more than one entry point: {entries}")
        elif entries[0] not in self.nodes:
            errors.append(f"Entry point '{entries[0]}' not found in nodes")

        sources: Dict[str, int] = {}

        for edge in self.edges:
            sources[edge.source] = sources.get(edge.source, 0) + 1
            if edge.source == END:
                errors.append("END cannot be the source of an edge")
            elif edge.source not in self.nodes:
                errors.append(f"Edge source '{edge.source}' not found in graph")
            if edge.target != END and edge.target not in self.nodes:
                errors.append(f"Edge target '{edge.target}' not found in graph")

        for cond in self.conditional_edges:
            sources[cond.source] = sources.get(cond.source, 0) + 1
            if cond.source not in self.nodes:
                errors.append(f"Conditional edge source '{cond.source}' not found in graph")
            if not cond.routes:
                errors.append(f"Conditional edge from '{cond.source}' has no routes")
            for label, target in cond.routes.items():
                if target != END and target not in self.nodes:
                    errors.append(
                        f"Target node '{target}' for route '{label}' of '{cond.source}' "
                        f"not found in graph"
                    )

        for source, count in sources.items():
            if count > 1:
                errors.append(f"Node '{source}' has {count} outgoing edge sets; at most one is allowed")

        for node_name in self.nodes:
            if node_name not in sources:
                errors.append(f"Node '{node_name}' has no outgoing edge")

        if not errors:
            orphans = set(self.nodes) - self._get_reachable_nodes(entries[0])
            if orphans:
                errors.append(f"Orphan nodes (not reachable): {sorted(orphans)}")

        return errors

    def _get_reachable_nodes(self, entry: str) -> Set[str]:
        """Get all nodes reachable from the entry point."""
        direct = {edge.source: edge.target for edge in self.edges}
        branches = {cond.source: cond for cond in self.conditional_edges}

        reachable: Set[str] = set()
        to_visit = [entry]

        while to_visit:
            node = to_visit.pop()
            if node in reachable or node == END:
                continue

            reachable.add(node)

            if node in direct:
                to_visit.append(direct[node])
            if node in branches:
                to_visit.extend(branches[node].routes.values())

        return reachable

    def compile(self, max_steps: int = DEFAULT_MAX_STEPS) -> "CompiledGraph":
        """
        Validate the topology and freeze it.

        Raises:
            ValidationError: listing every problem found
        """
        if max_steps < 1:
            raise ValidationError([f"max_steps must be at least 1, got {max_steps}"])

        errors = self.validate()
        if errors:
            raise ValidationError(errors)

        compiled = CompiledGraph(
            graph_id=self.graph_id,
            name=self.name,
            description=self.description,
            channels=MappingProxyType(dict(self.channels)),
            nodes=MappingProxyType(dict(self.nodes)),
            edges=MappingProxyType({edge.source: edge.target for edge in self.edges}),
            conditional_edges=MappingProxyType(
                {cond.source: cond for cond in self.conditional_edges}
            ),
            entry_point=self._entry_points[0],
            max_steps=max_steps,
        )
        logger.info(f"Compiled graph '{self.name}' with nodes {list(self.nodes)}")
        return compiled


@dataclass(frozen=True)
class CompiledGraph:
    """
    A validated, immutable workflow graph.

    Attributes:
        graph_id: Unique identifier for this graph
        name: Human-readable name
        channels: Channel name -> Channel
        nodes: Node name -> Node
        edges: Source -> target for plain edges
        conditional_edges: Source -> ConditionalEdge
        entry_point: Name of the first node to execute
        max_steps: Default step limit for a run
    """

    graph_id: str
    name: str
    channels: Mapping[str, Channel]
    nodes: Mapping[str, Node]
    edges: Mapping[str, str]
    conditional_edges: Mapping[str, ConditionalEdge]
    entry_point: str
    max_steps: int = DEFAULT_MAX_STEPS
    description: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def get_next_node(self, current_node: str, state: Dict[str, Any]) -> str:
        """
        Resolve the node that follows current_node.

        Raises:
            RoutingError: if a router returns a label with no route
        """
        if current_node in self.conditional_edges:
            return self.conditional_edges[current_node].evaluate(state)
        return self.edges[current_node]

    def stream(
        self,
        initial_state: Optional[Mapping[str, Any]] = None,
        max_steps: Optional[int] = None,
        run_id: Optional[str] = None,
    ) -> "AsyncIterator[StateSnapshot]":
        """Start a run and return its state-change stream."""
        from healthflow.engine.executor import StateChangeStream

        return StateChangeStream(self, initial_state, max_steps=max_steps, run_id=run_id)

    async def invoke(
        self,
        initial_state: Optional[Mapping[str, Any]] = None,
        max_steps: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Run to completion and return the final state."""
        final: Optional[StateSnapshot] = None
        async for snapshot in self.stream(initial_state, max_steps=max_steps):
            final = snapshot
        return dict(final.values) if final else {}

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the graph to a dictionary."""
        return {
            "graph_id": self.graph_id,
            "name": self.name,
            "description": self.description,
            "channels": list(self.channels),
            "nodes": {name: node.to_dict() for name, node in self.nodes.items()},
            "edges": dict(self.edges),
            "conditional_edges": {
                name: edge.to_dict()
                for name, edge in self.conditional_edges.items()
            },
            "entry_point": self.entry_point,
            "max_steps": self.max_steps,
            "metadata": self.metadata,
        }

    def to_mermaid(self) -> str:
        """Generate a Mermaid diagram of the graph."""
        lines = ["graph TD"]

        lines.append(f'    {START}(("START"))')
        for name in self.nodes:
            label = name.replace("_", " ").title()
            lines.append(f'    {name}["{label}"]')

        has_end = END in self.edges.values() or any(
            END in cond.routes.values() for cond in self.conditional_edges.values()
        )
        if has_end:
            lines.append(f'    {END}(("END"))')

        lines.append(f"    {START} --> {self.entry_point}")

        for source, target in self.edges.items():
            lines.append(f"    {source} --> {target}")

        for source, cond in self.conditional_edges.items():
            for route_key, target in cond.routes.items():
                lines.append(f"    {source} -.->|{route_key}| {target}")

        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"CompiledGraph(name='{self.name}', nodes={list(self.nodes)}, "
            f"entry='{self.entry_point}')"
        )
