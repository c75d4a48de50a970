"""
Criticality Analysis Schemas

Node and edge types for dependency fragments:
- NodeKey / Node: a compilation unit or finer-grained symbol
- EdgeKey: (container, id) identity used for merge bookkeeping
- DirectedEdge / UndirectedEdge / HyperEdge: the storable edge variants
- CriticalityInfo: one ranked row per node
- ConvergenceReport: whether a PageRank run converged
"""

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from .errors import InvalidEdgeKeyError


@dataclass(frozen=True, order=True)
class NodeKey:
    """Opaque node identifier (e.g. an import path)."""
    id: str

    def __str__(self) -> str:
        return self.id


@dataclass
class Node:
    key: NodeKey
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, order=True)
class EdgeKey:
    """
    Edge identity.

    container: the unit whose local analysis produced the edge
    id: disambiguates edges within that container ("src->dst", "l~r", "a,b,c")
    """
    container: str
    id: str

    def __str__(self) -> str:
        return f"{self.container}:{self.id}"

    @classmethod
    def parse(cls, s: str) -> "EdgeKey":
        """Parse "container:id". The container is everything before the first colon."""
        container, sep, edge_id = s.partition(":")
        if not sep:
            raise InvalidEdgeKeyError(f"invalid edge key: {s!r}")
        return cls(container=container, id=edge_id)


class EdgeType(str, Enum):
    BASE = "base"
    DIRECTED = "directed"
    UNDIRECTED = "undirected"
    HYPER = "hyper"


EMPTY_NODE = NodeKey("")


@dataclass
class BaseEdge:
    """
    Shared edge fields. Abstract: graphs refuse to store a bare BaseEdge.
    """

    key: EdgeKey
    weight: float = 1.0

    edge_type: ClassVar[EdgeType] = EdgeType.BASE

    def nodes(self) -> List[NodeKey]:
        return []

    def validate(self) -> Optional[str]:
        """Return a description of the first structural problem, or None."""
        if self.weight < 0:
            return f"negative weight: {self.weight}"
        return None

    def copy(self) -> "BaseEdge":
        return copy.copy(self)

    def __str__(self) -> str:
        return str(self.key)


@dataclass
class DirectedEdge(BaseEdge):
    """src depends on dst."""

    src: NodeKey = EMPTY_NODE
    dst: NodeKey = EMPTY_NODE

    edge_type: ClassVar[EdgeType] = EdgeType.DIRECTED

    @classmethod
    def create(cls, container: str, src_id: str, dst_id: str, weight: float = 1.0) -> "DirectedEdge":
        return cls(
            key=EdgeKey(container=container, id=f"{src_id}->{dst_id}"),
            weight=weight,
            src=NodeKey(src_id),
            dst=NodeKey(dst_id),
        )

    def nodes(self) -> List[NodeKey]:
        return [self.src, self.dst]

    def validate(self) -> Optional[str]:
        problem = super().validate()
        if problem:
            return f"invalid base edge: {problem}"
        if not self.src.id:
            return f"invalid src: {self.src!r}"
        if not self.dst.id:
            return f"invalid dst: {self.dst!r}"
        return None


@dataclass
class UndirectedEdge(BaseEdge):
    left: NodeKey = EMPTY_NODE
    right: NodeKey = EMPTY_NODE

    edge_type: ClassVar[EdgeType] = EdgeType.UNDIRECTED

    @classmethod
    def create(cls, container: str, left_id: str, right_id: str, weight: float = 1.0) -> "UndirectedEdge":
        return cls(
            key=EdgeKey(container=container, id=f"{left_id}~{right_id}"),
            weight=weight,
            left=NodeKey(left_id),
            right=NodeKey(right_id),
        )

    def nodes(self) -> List[NodeKey]:
        return [self.left, self.right]


@dataclass
class HyperEdge(BaseEdge):
    members: Tuple[NodeKey, ...] = ()

    edge_type: ClassVar[EdgeType] = EdgeType.HYPER

    @classmethod
    def create(cls, container: str, *ids: str, weight: float = 1.0) -> "HyperEdge":
        # Sorted so the key does not depend on member order
        ordered = sorted(ids)
        return cls(
            key=EdgeKey(container=container, id=",".join(ordered)),
            weight=weight,
            members=tuple(NodeKey(i) for i in ordered),
        )

    def nodes(self) -> List[NodeKey]:
        return list(self.members)

    def validate(self) -> Optional[str]:
        problem = super().validate()
        if problem:
            return problem
        if not self.members:
            return "hyperedge must have at least one node"
        return None


@dataclass
class CriticalityInfo:
    """
    Ranked row for a single node.

    pagerank: forward score, high for foundational nodes others resolve down to
    consumers_pagerank: score on the reversed graph, high for top-level consumers
    betweenness: high for bridge nodes sitting between consumers and dependencies
    """

    label: str
    pagerank: float
    consumers_pagerank: float = 0.0
    betweenness: float = 0.0  # Fraction of shortest paths routed through the node
    normalized_score: float = 0.0  # pagerank / max pagerank (0.0 - 1.0)
    percentile: int = 0  # 0-100, where 100 = most critical

    in_degree: int = 0  # Number of incoming edges (dependents)
    out_degree: int = 0  # Number of outgoing edges (dependencies)

    scope: str = ""  # Root unit the ranking was computed for

    def to_dict(self) -> Dict:
        return {
            "label": self.label,
            "pagerank": self.pagerank,
            "consumers_pagerank": self.consumers_pagerank,
            "betweenness": self.betweenness,
            "normalized_score": self.normalized_score,
            "percentile": self.percentile,
            "in_degree": self.in_degree,
            "out_degree": self.out_degree,
            "scope": self.scope,
        }


@dataclass
class ConvergenceReport:
    """
    Outcome of one PageRank power iteration.

    iterations and diff_l1 are only known when the iteration limit was hit;
    networkx does not report them for a converged run.
    """

    converged: bool
    max_iterations: int
    iterations: Optional[int] = None
    diff_l1: Optional[float] = None

    def to_dict(self) -> Dict:
        return {
            "converged": self.converged,
            "max_iterations": self.max_iterations,
            "iterations": self.iterations,
            "diff_l1": self.diff_l1,
        }
