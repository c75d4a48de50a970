"""
PageRank computation for criticality analysis.

Uses NetworkX to hold a weighted directed graph and compute PageRank scores.
Edge direction: importer → imported, so forward PageRank ranks foundational
(depended-upon) nodes highest. PageRank on the reversed graph ranks top-level
consumers highest.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

import networkx as nx
import numpy as np

from .errors import UnsupportedEdgeError, UnsupportedMetricError
from .graph import Graph
from .schemas import ConvergenceReport, CriticalityInfo, DirectedEdge


DEFAULT_DAMPING = 0.85
DEFAULT_TOLERANCE = 0.0001


class ImportGraph:
    """
    Weighted directed graph over integer node ids.

    id_to_label and label_to_id map between ids and node labels.
    """

    def __init__(self):
        self.graph = nx.DiGraph()
        self.id_to_label: Dict[int, str] = {}
        self.label_to_id: Dict[str, int] = {}
        self._next_id = 0

    def __len__(self) -> int:
        return self.graph.number_of_nodes()

    def number_of_edges(self) -> int:
        return self.graph.number_of_edges()

    def add_node(self, label: str) -> int:
        """Return the id for label, allocating a node the first time it is seen."""
        if label in self.label_to_id:
            return self.label_to_id[label]
        node_id = self._next_id
        self._next_id += 1
        self.graph.add_node(node_id)
        self.label_to_id[label] = node_id
        self.id_to_label[node_id] = label
        return node_id

    def update_edge(self, from_label: str, to_label: str, weight: float = 1.0):
        """
        Increase the weight on from → to, creating the edge (and either node)
        if needed. Repeated observations of one import accumulate here.
        """
        u, v = self.add_node(from_label), self.add_node(to_label)
        if self.graph.has_edge(u, v):
            self.graph[u][v]["weight"] += weight
        else:
            self.graph.add_edge(u, v, weight=weight)

    def weight(self, from_label: str, to_label: str) -> Optional[float]:
        u, v = self.label_to_id.get(from_label), self.label_to_id.get(to_label)
        if u is None or v is None or not self.graph.has_edge(u, v):
            return None
        return self.graph[u][v]["weight"]

    def reversed(self) -> "ImportGraph":
        """Same nodes, ids and weights with every edge flipped."""
        rev = ImportGraph()
        rev.graph = self.graph.reverse(copy=True)
        rev.id_to_label = dict(self.id_to_label)
        rev.label_to_id = dict(self.label_to_id)
        rev._next_id = self._next_id
        return rev

    def pagerank(
        self,
        alpha: float = DEFAULT_DAMPING,
        tol: float = DEFAULT_TOLERANCE,
        max_iter: int = 100,
    ) -> Dict[str, float]:
        """PageRank score per label. Empty graph gives an empty dict."""
        scores, _ = self.pagerank_report(alpha=alpha, tol=tol, max_iter=max_iter)
        return scores

    def pagerank_report(
        self,
        alpha: float = DEFAULT_DAMPING,
        tol: float = DEFAULT_TOLERANCE,
        max_iter: int = 100,
    ) -> Tuple[Dict[str, float], ConvergenceReport]:
        """
        PageRank score per label together with a convergence report.

        When the power iteration does not settle within max_iter steps, the
        scores reached after max_iter steps are returned and the report is
        marked as not converged.
        """
        if len(self) == 0:
            return {}, ConvergenceReport(converged=True, max_iterations=max_iter, iterations=0, diff_l1=0.0)
        try:
            scores = nx.pagerank(self.graph, alpha=alpha, tol=tol, max_iter=max_iter, weight="weight")
            report = ConvergenceReport(converged=True, max_iterations=max_iter)
        except nx.PowerIterationFailedConvergence:
            scores, diff_l1 = self._power_iteration(alpha, max_iter)
            report = ConvergenceReport(
                converged=False,
                max_iterations=max_iter,
                iterations=max_iter,
                diff_l1=diff_l1,
            )
        return {self.id_to_label[node_id]: score for node_id, score in scores.items()}, report

    def _power_iteration(self, alpha: float, max_iter: int) -> Tuple[Dict[int, float], float]:
        """Scores after exactly max_iter steps on the Google matrix, and the last L1 change."""
        nodelist = list(self.graph)
        M = np.asarray(nx.google_matrix(self.graph, alpha=alpha, nodelist=nodelist, weight="weight"))
        x = np.full(len(nodelist), 1.0 / len(nodelist))
        diff_l1 = 0.0
        for _ in range(max_iter):
            last = x
            x = last @ M
            diff_l1 = float(np.abs(x - last).sum())
        return dict(zip(nodelist, x.tolist())), diff_l1

    def centrality(
        self,
        alpha: float = DEFAULT_DAMPING,
        tol: float = DEFAULT_TOLERANCE,
        max_iter: int = 100,
    ) -> Tuple[List[str], List[float]]:
        """
        Labels sorted by PageRank, most important first, with their scores.

        Equal scores are ordered by label so output is stable.
        """
        ranked = sorted(
            self.pagerank(alpha=alpha, tol=tol, max_iter=max_iter).items(),
            key=lambda item: (-item[1], item[0]),
        )
        return [label for label, _ in ranked], [score for _, score in ranked]

    def consumer_centrality(self, **kwargs) -> Tuple[List[str], List[float]]:
        """Centrality on the reversed graph: top-level consumers first."""
        return self.reversed().centrality(**kwargs)

    def in_degree(self, label: str) -> int:
        return self.graph.in_degree(self.label_to_id[label])

    def out_degree(self, label: str) -> int:
        return self.graph.out_degree(self.label_to_id[label])

    @classmethod
    def from_graph(cls, graph: Graph) -> "ImportGraph":
        """
        Convert a whole-program fragment. Directed edges sharing endpoints
        under different containers collapse into one edge with summed weight.
        """
        G = cls()
        for node_key in sorted(graph.nodes):
            G.add_node(node_key.id)
        for edge in sorted(graph.edges.values(), key=lambda e: e.key):
            if not isinstance(edge, DirectedEdge):
                raise UnsupportedEdgeError(
                    f"unsupported edge type for centrality: {edge.edge_type.value} ({edge.key})"
                )
            G.update_edge(edge.src.id, edge.dst.id, edge.weight)
        return G


class Metric(str, Enum):
    PAGERANK = "pagerank"
    CONSUMERS_PAGERANK = "consumers_pagerank"
    IN_DEGREE = "in_degree"
    OUT_DEGREE = "out_degree"
    BETWEENNESS = "betweenness"


def parse_metric(s: str) -> Metric:
    """Metric from its name. Raises UnsupportedMetricError for anything else."""
    try:
        return Metric(s.strip().lower())
    except ValueError:
        raise UnsupportedMetricError(f"unsupported centrality measure: {s}") from None


@dataclass
class CriticalityReport:
    """Ranked rows plus the convergence outcome of each PageRank orientation."""

    rows: List[CriticalityInfo] = field(default_factory=list)
    convergence: Dict[str, ConvergenceReport] = field(default_factory=dict)

    @property
    def converged(self) -> bool:
        return all(report.converged for report in self.convergence.values())


def compute_criticality_report(
    G: ImportGraph,
    alpha: float = DEFAULT_DAMPING,
    tol: float = DEFAULT_TOLERANCE,
    max_iter: int = 100,
    scope: str = "",
) -> CriticalityReport:
    """
    Compute a CriticalityInfo row for every node, ordered by forward PageRank.

    Args:
        G: Import graph
        alpha: Damping factor (default 0.85, standard value)
        tol: Convergence tolerance
        max_iter: Power iteration limit
        scope: Description of the computation scope (e.g. the root unit)

    Returns:
        Rows sorted by pagerank descending (ties by label), and the forward
        and consumer convergence reports keyed by metric name
    """
    forward, forward_report = G.pagerank_report(alpha=alpha, tol=tol, max_iter=max_iter)
    consumers, consumers_report = G.reversed().pagerank_report(alpha=alpha, tol=tol, max_iter=max_iter)
    report = CriticalityReport(convergence={
        Metric.PAGERANK.value: forward_report,
        Metric.CONSUMERS_PAGERANK.value: consumers_report,
    })
    if not forward:
        return report

    betweenness = nx.betweenness_centrality(G.graph, weight=None)
    ranked = sorted(forward.items(), key=lambda item: (-item[1], item[0]))
    max_score = ranked[0][1]
    total = len(ranked)

    # Equal scores share the rank of the first of them
    first_rank: Dict[float, int] = {}
    for rank, (_, score) in enumerate(ranked, 1):
        first_rank.setdefault(score, rank)

    for label, score in ranked:
        report.rows.append(CriticalityInfo(
            label=label,
            pagerank=score,
            consumers_pagerank=consumers.get(label, 0.0),
            betweenness=betweenness[G.label_to_id[label]],
            normalized_score=score / max_score if max_score > 0 else 0,
            percentile=int(100 * (1 - first_rank[score] / total)),
            in_degree=G.in_degree(label),
            out_degree=G.out_degree(label),
            scope=scope,
        ))
    return report


def compute_criticality_info(
    G: ImportGraph,
    alpha: float = DEFAULT_DAMPING,
    tol: float = DEFAULT_TOLERANCE,
    max_iter: int = 100,
    scope: str = "",
) -> List[CriticalityInfo]:
    """Rows of compute_criticality_report without the convergence details."""
    return compute_criticality_report(G, alpha=alpha, tol=tol, max_iter=max_iter, scope=scope).rows


def sort_rows(rows: List[CriticalityInfo], metric: Metric = Metric.PAGERANK) -> List[CriticalityInfo]:
    """Rows ordered by metric, highest first; ties broken by label."""
    return sorted(rows, key=lambda r: (-getattr(r, metric.value), r.label))
