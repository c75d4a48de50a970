"""
Build the whole-program dependency graph from per-unit fragments.

Each unit is processed once, after all of its direct imports. Its fragment
starts with its own edges (unit -> import) and then folds in the published
fragment of every import. Graph.add skips containers that already arrived
through another import, so a dependency shared by a diamond is counted once.

Usage:
    scheduler = DependencyScheduler.from_triples(triples, root_unit="app")
    whole = scheduler.run()
"""

import asyncio
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import networkx as nx
from loguru import logger

from .errors import DependencyCycleError, MissingFragmentError
from .graph import Graph, MergeOptions
from .registry import FragmentRegistry
from .schemas import DirectedEdge


Pair = Tuple[str, str]
Triple = Tuple[str, str, str]


class FragmentAccumulator:
    """
    Produces one frozen fragment per unit and publishes it to the registry.

    The caller guarantees dependency order: every import of a unit must have
    been processed before the unit itself.
    """

    def __init__(
        self,
        registry: Optional[FragmentRegistry] = None,
        root_unit: Optional[str] = None,
        merge_options: Optional[MergeOptions] = None,
    ):
        self.registry = registry if registry is not None else FragmentRegistry()
        self.root_unit = root_unit or None
        self.merge_options = merge_options
        self.result: Optional[Graph] = None
        self.overlap_by_unit: Dict[str, int] = {}

    def process_unit(
        self,
        unit: str,
        imports: Sequence[str],
        extra_edges: Sequence[Pair] = (),
    ) -> Graph:
        """
        Build, freeze and publish the fragment for one unit.

        Args:
            unit: Unit identifier
            imports: Direct imports; each needs a published fragment
            extra_edges: Finer-grained (importer, imported) edges found in this
                unit that do not name a dependency unit

        Returns:
            The unit's published fragment (the existing one if already visited)
        """
        if unit in self.registry:
            logger.debug(f"[{unit}] already visited")
            return self.registry.get(unit)

        fragment = Graph.for_unit(unit)
        fragment.add_node(unit)
        for dep in imports:
            fragment.add_edge(DirectedEdge.create(unit, unit, dep), self.merge_options)
        for importer, imported in extra_edges:
            fragment.add_edge(DirectedEdge.create(unit, importer, imported), self.merge_options)

        overlap = 0
        for dep in imports:
            # Raises MissingFragmentError: the ordering contract was broken
            dep_graph = self.registry.get(dep, requested_by=unit)
            result = fragment.add(dep_graph, self.merge_options)
            if result.redundant:
                logger.debug(f"[{unit}] {dep}: no new containers ({result.overlap} edges already present)")
            else:
                logger.debug(
                    f"[{unit}] {dep}: order={dep_graph.order()} size={dep_graph.size()} "
                    f"inserted={result.inserted} merged={result.merged} overlap={result.overlap}"
                )
            overlap += result.overlap

        for key, problem in fragment.invalid_edges.items():
            if key.container == unit:
                logger.warning(f"[{unit}] invalid edge {key}: {problem}")

        self.registry.publish(unit, fragment)
        self.overlap_by_unit[unit] = overlap
        logger.info(
            f"[{unit}] published fragment: order={fragment.order()} size={fragment.size()} "
            f"deps={len(imports)} overlap={overlap}"
        )

        if unit == self.root_unit:
            logger.info(f"[{unit}] root reached, whole-program graph has {fragment.size()} edges")
            self.result = fragment
        return fragment


def group_unit_edges(triples: Iterable[Triple]) -> Dict[str, List[Pair]]:
    """Group raw (unit, importer, imported) edges by unit, keeping first-seen order."""
    grouped: Dict[str, List[Pair]] = OrderedDict()
    for unit, importer, imported in triples:
        grouped.setdefault(unit, []).append((importer, imported))
    return dict(grouped)


@dataclass
class UnitPlan:
    """What the scheduler hands the accumulator for one unit"""
    unit: str
    imports: List[str] = field(default_factory=list)
    extra_edges: List[Pair] = field(default_factory=list)


class DependencyScheduler:
    """
    Runs the accumulator over units in dependency order.

    Pairs whose importer is the unit itself are direct imports. Every imported
    id is treated as a unit, with no edges of its own if it never appears as
    one. Other pairs are kept as extra edges of the unit.
    """

    def __init__(
        self,
        unit_edges: Mapping[str, Sequence[Pair]],
        accumulator: Optional[FragmentAccumulator] = None,
        root_unit: Optional[str] = None,
    ):
        self.accumulator = accumulator or FragmentAccumulator(root_unit=root_unit)
        if root_unit and not self.accumulator.root_unit:
            self.accumulator.root_unit = root_unit
        self.plans: Dict[str, UnitPlan] = {}

        for unit, pairs in unit_edges.items():
            plan = self._plan(unit)
            for importer, imported in pairs:
                if importer == unit:
                    if imported not in plan.imports:
                        plan.imports.append(imported)
                    self._plan(imported)
                else:
                    plan.extra_edges.append((importer, imported))

    @classmethod
    def from_triples(cls, triples: Iterable[Triple], **kwargs) -> "DependencyScheduler":
        return cls(group_unit_edges(triples), **kwargs)

    def _plan(self, unit: str) -> UnitPlan:
        if unit not in self.plans:
            self.plans[unit] = UnitPlan(unit=unit)
        return self.plans[unit]

    @property
    def root_unit(self) -> Optional[str]:
        return self.accumulator.root_unit

    def dependency_graph(self) -> nx.DiGraph:
        """Edges point from a dependency to the units that import it."""
        G = nx.DiGraph()
        for unit, plan in self.plans.items():
            G.add_node(unit)
            for dep in plan.imports:
                G.add_edge(dep, unit)
        return G

    def schedule(self) -> List[List[str]]:
        """
        Topological generations: every unit comes after all of its imports,
        and units within one generation are independent of each other.
        """
        G = self.dependency_graph()
        try:
            return [sorted(generation) for generation in nx.topological_generations(G)]
        except nx.NetworkXUnfeasible:
            cycle = nx.find_cycle(G)
            raise DependencyCycleError(
                "dependency cycle: " + " -> ".join(src for src, _ in cycle) + f" -> {cycle[0][0]}"
            ) from None

    def top_units(self) -> List[str]:
        """Units no other unit imports."""
        G = self.dependency_graph()
        return sorted(n for n in G.nodes() if G.out_degree(n) == 0)

    def _process(self, unit: str) -> Graph:
        plan = self.plans[unit]
        return self.accumulator.process_unit(unit, plan.imports, plan.extra_edges)

    def run(self) -> Graph:
        """Process every unit in order and return the whole-program graph."""
        self._check_root()
        generations = self.schedule()
        logger.info(f"Scheduling {len(self.plans)} units in {len(generations)} generations")
        for generation in generations:
            for unit in generation:
                self._process(unit)
        return self.whole_program_graph()

    async def run_async(self, concurrency: int = 4) -> Graph:
        """
        Like run(), but units of one generation are processed concurrently in
        worker threads. Generations still run strictly one after another.
        """
        self._check_root()
        generations = self.schedule()
        logger.info(
            f"Scheduling {len(self.plans)} units in {len(generations)} generations "
            f"(concurrency={concurrency})"
        )
        semaphore = asyncio.Semaphore(max(1, concurrency))

        async def process_one(unit: str) -> Graph:
            async with semaphore:
                return await asyncio.to_thread(self._process, unit)

        for generation in generations:
            await asyncio.gather(*(process_one(unit) for unit in generation))
        return self.whole_program_graph()

    def _check_root(self):
        root = self.root_unit
        if root and root not in self.plans:
            raise MissingFragmentError(root, requested_by="root of interest")

    def whole_program_graph(self) -> Graph:
        """
        The root's fragment. Without a configured root, the single top-level
        unit's fragment, or a bare graph folding every top-level fragment.
        """
        if self.accumulator.result is not None:
            return self.accumulator.result

        registry = self.accumulator.registry
        if self.root_unit:
            return registry.get(self.root_unit, requested_by="root of interest")

        tops = self.top_units()
        if len(tops) == 1:
            return registry.get(tops[0])

        combined = Graph()
        for unit in tops:
            combined.add(registry.get(unit), self.accumulator.merge_options)
        logger.info(f"Folded {len(tops)} top-level units into one graph ({combined.size()} edges)")
        return combined.freeze()
