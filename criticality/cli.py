#!/usr/bin/env python3
"""
CLI for criticality analysis.

Usage:
    # Rank units from raw edge lines ("unit importer imported" or "importer imported")
    python -m criticality.cli analyze --edges deps.txt --root example.com/app

    # Rank from pydeps output, consumers first, exported to JSON
    python -m criticality.cli analyze \
        --pydeps t1deps.json,t2deps.json \
        --prefixes tier1apps,tier2apps \
        --metric consumers_pagerank \
        --output criticality.json

    # Print the whole-program graph ("src dst" per edge, or weighted with --weights)
    python -m criticality.cli graph --edges deps.txt --root example.com/app

    # Show graph statistics only
    python -m criticality.cli stats --edges deps.txt
"""

import argparse
import asyncio
import json
import sys
from typing import List

from loguru import logger

from .accumulator import DependencyScheduler
from .config import CriticalityConfig
from .errors import ContractViolationError
from .graph import Graph
from .pagerank import ImportGraph, compute_criticality_report, parse_metric, sort_rows
from .pydeps_parser import (
    load_edge_file,
    load_multiple_pydeps,
    triples_from_pydeps,
)
from .schemas import CriticalityInfo


def configure_logging(config: CriticalityConfig):
    """Configure loguru from config: stderr sink plus an optional file."""
    logger.remove()

    level = config.log_level.upper()
    serialize = config.log_format.lower() == "json"
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
        level=level,
        serialize=serialize,
    )

    if config.log_output:
        logger.add(
            config.log_output,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}",
            level=level,
            serialize=serialize,
            rotation="10 MB",
            retention="7 days",
        )


def _split(value: str) -> List[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


def load_triples(args) -> list:
    """Raw edges from --edges files or --pydeps files."""
    if args.edges:
        triples = []
        for path in _split(args.edges):
            triples.extend(load_edge_file(path))
        logger.info(f"Loaded {len(triples)} raw edges")
        return triples

    pydeps_data = load_multiple_pydeps(_split(args.pydeps))
    prefixes = _split(args.prefixes) if args.prefixes else []
    logger.info(f"Loaded {len(pydeps_data)} total modules (including external)")
    triples = triples_from_pydeps(pydeps_data, prefixes)
    logger.info(f"{len(triples)} import edges between project modules")
    return triples


def build_whole_program_graph(args, config: CriticalityConfig) -> Graph:
    """Accumulate per-unit fragments up to the root."""
    root = args.root or config.root_unit or None
    scheduler = DependencyScheduler.from_triples(load_triples(args), root_unit=root)
    concurrency = args.concurrency or config.concurrency
    if concurrency > 1:
        return asyncio.run(scheduler.run_async(concurrency=concurrency))
    return scheduler.run()


def print_ranking(rows: List[CriticalityInfo], metric, nodes: int, edges: int):
    """Print formatted ranking to stdout."""
    print(f"\n{'='*89}")
    print(f"TOP {len(rows)} BY {metric.value.upper()}")
    print(f"{'='*89}")
    print(
        f"{'Rank':<5} {'Unit':<45} {'PageRank':<10} {'Consumers':<10} "
        f"{'Between':<10} {'In':<4} {'Out':<4}"
    )
    print("-" * 89)

    for i, row in enumerate(rows, 1):
        display = row.label
        if len(display) > 44:
            display = display[:41] + "..."
        print(
            f"{i:<5} {display:<45} {row.pagerank:<10.6f} "
            f"{row.consumers_pagerank:<10.6f} {row.betweenness:<10.6f} "
            f"{row.in_degree:<4} {row.out_degree:<4}"
        )

    print(f"\n{nodes} nodes, {edges} edges")
    print("Edges are A → B meaning A depends on B.")
    print("- pagerank: central shared dependencies (mass flows toward dependencies)")
    print("- consumers_pagerank: top-level consumers (PageRank on reversed graph)")
    print("- betweenness: bridges that many shortest import paths pass through")


def cmd_analyze(args, config: CriticalityConfig):
    """Accumulate the graph and rank its nodes."""
    metric = parse_metric(args.metric)
    whole = build_whole_program_graph(args, config)

    G = ImportGraph.from_graph(whole)
    logger.info(f"Graph: {len(G)} nodes, {G.number_of_edges()} edges")

    report = compute_criticality_report(
        G,
        alpha=config.damping,
        tol=config.tolerance,
        max_iter=config.max_iterations,
        scope=whole.container,
    )
    for name, convergence in report.convergence.items():
        if not convergence.converged:
            logger.warning(
                f"{name} did not converge within {convergence.max_iterations} iterations "
                f"(last L1 change {convergence.diff_l1:.6g}); scores are approximate"
            )
    rows = sort_rows(report.rows, metric)
    print_ranking(rows[:args.top], metric, len(G), G.number_of_edges())

    if args.output:
        output_data = {
            "root": whole.container,
            "metric": metric.value,
            "stats": {
                "node_count": len(G),
                "edge_count": G.number_of_edges(),
                "invalid_edges": len(whole.invalid_edges),
            },
            "convergence": {
                name: convergence.to_dict()
                for name, convergence in report.convergence.items()
            },
            "scores": [row.to_dict() for row in rows],
        }
        with open(args.output, "w") as f:
            json.dump(output_data, f, indent=2)
        print(f"\nExported to {args.output}")


def cmd_graph(args, config: CriticalityConfig):
    """Print the whole-program graph."""
    whole = build_whole_program_graph(args, config)
    if args.weights:
        print(whole.describe())
        return
    for edge in sorted(whole.directed_edges(), key=lambda e: e.key):
        print(edge.src, edge.dst)


def cmd_stats(args, config: CriticalityConfig):
    """Show graph statistics without ranking."""
    G = ImportGraph.from_graph(build_whole_program_graph(args, config))
    nodes = len(G)
    print(f"Nodes: {nodes}")
    print(f"Edges: {G.number_of_edges()}")
    if nodes == 0:
        return
    print(f"Density: {G.number_of_edges() / (nodes ** 2):.6f}")

    in_degrees = [d for _, d in G.graph.in_degree()]
    out_degrees = [d for _, d in G.graph.out_degree()]
    print(f"\nIn-degree: min={min(in_degrees)}, max={max(in_degrees)}, avg={sum(in_degrees)/nodes:.2f}")
    print(f"Out-degree: min={min(out_degrees)}, max={max(out_degrees)}, avg={sum(out_degrees)/nodes:.2f}")


def _add_input_arguments(parser: argparse.ArgumentParser):
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--edges", help="Comma-separated edge line files")
    source.add_argument("--pydeps", help="Comma-separated pydeps JSON files")
    parser.add_argument("--prefixes", help="Comma-separated module prefixes (pydeps only)")
    parser.add_argument("--root", help="Root unit (default: DEPGRAPH_ROOT_PKG or the top-level unit)")
    parser.add_argument(
        "--concurrency",
        type=int,
        default=0,
        help="Units processed at once per dependency generation (default: config)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Dependency graph criticality analysis",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # analyze command
    analyze_parser = subparsers.add_parser("analyze", help="Rank units by centrality")
    _add_input_arguments(analyze_parser)
    analyze_parser.add_argument(
        "--metric",
        default="pagerank",
        help="pagerank, consumers_pagerank, betweenness, in_degree or out_degree (default: pagerank)",
    )
    analyze_parser.add_argument(
        "--top",
        type=int,
        default=30,
        help="Number of top units to show (default: 30)",
    )
    analyze_parser.add_argument("--output", help="Export ranking to JSON file")
    analyze_parser.set_defaults(func=cmd_analyze)

    # graph command
    graph_parser = subparsers.add_parser("graph", help="Print the whole-program graph")
    _add_input_arguments(graph_parser)
    graph_parser.add_argument("--weights", action="store_true", help="Print edge keys with weights")
    graph_parser.set_defaults(func=cmd_graph)

    # stats command
    stats_parser = subparsers.add_parser("stats", help="Show graph statistics")
    _add_input_arguments(stats_parser)
    stats_parser.set_defaults(func=cmd_stats)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    config = CriticalityConfig()
    configure_logging(config)

    try:
        args.func(args, config)
    except ContractViolationError as e:
        logger.error(f"Contract violated ({type(e).__name__}): {e}")
        return 1
    except (OSError, ValueError) as e:
        logger.error(f"Invalid input: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
