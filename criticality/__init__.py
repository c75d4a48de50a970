"""
Criticality Analysis

Accumulates a whole-program dependency graph from per-unit fragments and
ranks its nodes with PageRank, forward (most depended upon) and reversed
(top-level consumers).

Key components:
- schemas.py: NodeKey, EdgeKey, edge variants, CriticalityInfo, ConvergenceReport
- graph.py: Graph fragments with dedup merge and weight accumulation
- registry.py: Write-once registry of published fragments
- accumulator.py: Dependency-order fragment accumulation and scheduling
- pagerank.py: NetworkX import graph and PageRank computation
- pydeps_parser.py: Edge line and pydeps JSON loaders
- cli.py: CLI entry points
"""

from .schemas import (
    NodeKey,
    Node,
    EdgeKey,
    EdgeType,
    BaseEdge,
    DirectedEdge,
    UndirectedEdge,
    HyperEdge,
    CriticalityInfo,
    ConvergenceReport,
)
from .graph import Graph, MergeOptions, MergeResult, merge_directed_weights
from .registry import FragmentRegistry
from .accumulator import FragmentAccumulator, DependencyScheduler, group_unit_edges
from .pagerank import (
    ImportGraph,
    Metric,
    CriticalityReport,
    compute_criticality_info,
    compute_criticality_report,
    parse_metric,
    sort_rows,
)

__all__ = [
    "NodeKey",
    "Node",
    "EdgeKey",
    "EdgeType",
    "BaseEdge",
    "DirectedEdge",
    "UndirectedEdge",
    "HyperEdge",
    "CriticalityInfo",
    "ConvergenceReport",
    "Graph",
    "MergeOptions",
    "MergeResult",
    "merge_directed_weights",
    "FragmentRegistry",
    "FragmentAccumulator",
    "DependencyScheduler",
    "group_unit_edges",
    "ImportGraph",
    "Metric",
    "CriticalityReport",
    "compute_criticality_info",
    "compute_criticality_report",
    "parse_metric",
    "sort_rows",
]
