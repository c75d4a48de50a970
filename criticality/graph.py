"""
Mergeable dependency fragments.

A Graph is one unit's view of the dependency graph: its own edges plus every
fragment folded in from its dependencies. Graph.add folds another fragment in
without double counting containers that were already incorporated through a
different path.

This module does not log. Outcomes are returned (MergeResult, booleans) or
recorded on the graph (invalid_edges) so the caller decides what to report.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Set

from .errors import (
    AbstractEdgeError,
    EdgeTypeMismatchError,
    FrozenGraphError,
    UnmergeableEdgeError,
)
from .schemas import BaseEdge, DirectedEdge, EdgeKey, EdgeType, Node, NodeKey


MergeFunc = Callable[[BaseEdge, BaseEdge], None]


def merge_directed_weights(existing: BaseEdge, incoming: BaseEdge) -> None:
    """Default merge: directed weights accumulate. Other variants have no policy."""
    if isinstance(existing, DirectedEdge) and isinstance(incoming, DirectedEdge):
        existing.weight += incoming.weight
        return
    raise UnmergeableEdgeError(
        f"no merge policy for {existing.edge_type.value} edge {existing.key}"
    )


@dataclass
class MergeOptions:
    # Folds incoming into existing, mutating only existing. Only called
    # when an edge with the same key is already present.
    merge_func: MergeFunc = merge_directed_weights


DEFAULT_MERGE_OPTIONS = MergeOptions()


# Valid status values for MergeResult
STATUS_MERGED = 'merged'        # At least one new container, edges folded in
STATUS_REDUNDANT = 'redundant'  # Every container already present, nothing inserted


@dataclass
class MergeResult:
    """Outcome of folding one fragment into another"""
    status: str  # One of STATUS_* constants above
    overlap: int = 0  # Edges skipped because their container was already present
    inserted: int = 0  # Edges with a new key
    merged: int = 0  # Edges folded into an existing edge
    kept_containers: List[str] = field(default_factory=list)

    @property
    def redundant(self) -> bool:
        return self.status == STATUS_REDUNDANT


@dataclass
class Graph:
    """
    A dependency fragment.

    Every edge whose container is in added_containers is already represented
    in edges, so merges never insert it again. A graph with no added
    containers is a bare fragment and is merged unconditionally.
    """

    # The unit this graph primarily represents
    container: str = ""
    # Containers folded into this graph, usually including container itself
    added_containers: Set[str] = field(default_factory=set)
    nodes: Dict[NodeKey, Node] = field(default_factory=dict)
    edges: Dict[EdgeKey, BaseEdge] = field(default_factory=dict)
    # Edges stored despite failing validation, with the problem found
    invalid_edges: Dict[EdgeKey, str] = field(default_factory=dict)

    _frozen: bool = field(default=False, repr=False, compare=False)

    @classmethod
    def for_unit(cls, unit: str) -> "Graph":
        """Empty fragment for a unit that counts itself as already added."""
        return cls(container=unit, added_containers={unit})

    def order(self) -> int:
        """Number of nodes."""
        return len(self.nodes)

    def size(self) -> int:
        """Number of edges."""
        return len(self.edges)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> "Graph":
        self._frozen = True
        return self

    def _check_mutable(self):
        if self._frozen:
            raise FrozenGraphError(f"fragment {self.container!r} is frozen")

    def add_node(self, node_id: str, data: Optional[Dict[str, Any]] = None) -> bool:
        """Track a node, including isolated ones. Returns True if it existed."""
        self._check_mutable()
        key = NodeKey(node_id)
        if key in self.nodes:
            if data:
                self.nodes[key].data.update(data)
            return True
        self.nodes[key] = Node(key=key, data=dict(data or {}))
        return False

    def add_edge(self, edge: BaseEdge, options: Optional[MergeOptions] = None) -> bool:
        """
        Insert an edge, merging it into an existing edge with the same key.

        Invalid edges are still inserted; the problem is kept in invalid_edges.

        Returns:
            True if an edge with this key was already present
        """
        if edge.edge_type == EdgeType.BASE:
            raise AbstractEdgeError(f"cannot add base edges: {edge!r}")
        self._check_mutable()

        problem = edge.validate()
        if problem:
            self.invalid_edges[edge.key] = problem

        opts = options or DEFAULT_MERGE_OPTIONS
        prev = self.edges.get(edge.key)
        if prev is not None:
            if prev.edge_type != edge.edge_type:
                raise EdgeTypeMismatchError(edge.key, prev.edge_type, edge.edge_type)
            opts.merge_func(prev, edge)
            return True

        # Stored edges are private copies: merges mutate them in place and
        # must never reach a fragment that was already published.
        stored = edge.copy()
        self.edges[edge.key] = stored
        for node_key in stored.nodes():
            if node_key.id and node_key not in self.nodes:
                self.nodes[node_key] = Node(key=node_key)
        return False

    def add(self, other: "Graph", options: Optional[MergeOptions] = None) -> MergeResult:
        """
        Fold another fragment into this one.

        Containers of other that this graph already holds were incorporated
        through another path; their edges are skipped and counted as overlap.
        If none of other's containers are new, nothing is inserted.
        """
        self._check_mutable()

        keep: Set[str] = set()
        for container in sorted(other.added_containers):
            if container in self.added_containers:
                continue
            keep.add(container)
            self.added_containers.add(container)

        if other.added_containers and not keep:
            return MergeResult(status=STATUS_REDUNDANT, overlap=other.size())

        bare = not other.added_containers
        result = MergeResult(status=STATUS_MERGED, kept_containers=sorted(keep))
        for edge in other.edges.values():
            if not bare and edge.key.container not in keep:
                result.overlap += 1
                continue
            if self.add_edge(edge, options):
                result.merged += 1
            else:
                result.inserted += 1

        for key, node in other.nodes.items():
            if key not in self.nodes:
                self.nodes[key] = Node(key=key, data=dict(node.data))

        return result

    def directed_edges(self) -> Iterator[DirectedEdge]:
        for edge in self.edges.values():
            if isinstance(edge, DirectedEdge):
                yield edge

    def describe(self) -> str:
        """One "key: weight" line per edge, heaviest first, then by key."""
        ordered = sorted(self.edges.values(), key=lambda e: (-e.weight, str(e.key)))
        return "\n".join(f"{edge.key}: {edge.weight:g}" for edge in ordered)

    def __str__(self) -> str:
        return f"Graph({self.container!r}, order={self.order()}, size={self.size()})"
