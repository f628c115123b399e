"""Application layer - Circular dependency detection."""

import logging
from typing import TYPE_CHECKING, Dict, Iterator, List, Set, Tuple

from miraveja_verifier.application.graph_builder import DependencyGraph, GraphEdge
from miraveja_verifier.application.stage import internal_error
from miraveja_verifier.domain import (
    Cycle,
    DependencyWrapping,
    Diagnostic,
    DiagnosticKind,
    Identity,
    IValidator,
    ServiceDeclaration,
    Snapshot,
    make_diagnostic,
)

if TYPE_CHECKING:
    from miraveja_verifier.application.context import VerificationContext

logger = logging.getLogger(__name__)

STRONG_WRAPPINGS = frozenset({DependencyWrapping.DIRECT, DependencyWrapping.DEFERRED})


class CycleDetector(IValidator):
    """Detects circular dependencies in a dependency graph.

    Depth-first traversal over direct and deferred edges, rooted at each
    declaration in declaration order. The current path is kept as a stack;
    when an edge leads back to a node on the stack, the stack slice from that
    node is a cycle. Each node is expanded once, and every physical cycle is
    reported once, rotated to start at its earliest declared member.

    Collection edges are ignored. External declarations never appear in the
    graph, so they break any cycle running through them.
    """

    def validate(self, context: "VerificationContext") -> List[Diagnostic]:
        _, diagnostics = self.analyze(context)
        return diagnostics

    def analyze(self, context: "VerificationContext") -> Tuple[List[Cycle], List[Diagnostic]]:
        """Find the cycles of a pass and the diagnostics reporting them."""
        cycles, failures = self._detect(context.graph, context.snapshot)
        diagnostics: List[Diagnostic] = []
        for cycle in cycles:
            root = context.arena.declaration(cycle.root.key)
            diagnostics.append(
                make_diagnostic(DiagnosticKind.CIRCULAR_DEPENDENCY, root, related=cycle.path, path=cycle.path)
            )
        for declaration, error in failures:
            diagnostics.append(internal_error(declaration, error))
        return cycles, diagnostics

    def detect(self, graph: DependencyGraph, snapshot: Snapshot) -> List[Cycle]:
        """Find the distinct cycles of a graph.

        Args:
            graph: Dependency graph to traverse.
            snapshot: Snapshot the graph was built from, supplies root order.

        Returns:
            Canonical cycles in discovery order.

        Example:
            >>> [cycle.path for cycle in CycleDetector().detect(graph, snapshot)]
            ['A -> B -> A']
        """
        cycles, _ = self._detect(graph, snapshot)
        return cycles

    def _detect(
        self,
        graph: DependencyGraph,
        snapshot: Snapshot,
    ) -> Tuple[List[Cycle], List[Tuple[ServiceDeclaration, Exception]]]:
        order = {declaration.identity.key: declaration.order for declaration in snapshot.declarations}
        expanded: Set[str] = set()
        seen: Set[Tuple[str, ...]] = set()
        cycles: List[Cycle] = []
        failures: List[Tuple[ServiceDeclaration, Exception]] = []

        for declaration in snapshot.declarations:
            key = declaration.identity.key
            if key in expanded or key not in graph.adjacency:
                continue
            try:
                for members in self._walk(graph, declaration.identity, expanded):
                    cycle = self._canonical(members, order)
                    signature = tuple(member.key for member in cycle.members)
                    if signature in seen:
                        continue
                    seen.add(signature)
                    cycles.append(cycle)
            except Exception as error:
                logger.exception("Cycle detection failed from root %s", declaration.identity)
                failures.append((declaration, error))

        logger.debug("Found %d distinct dependency cycles", len(cycles))
        return cycles, failures

    @staticmethod
    def _walk(graph: DependencyGraph, root: Identity, expanded: Set[str]) -> Iterator[List[Identity]]:
        stack: List[Identity] = [root]
        positions: Dict[str, int] = {root.key: 0}
        pending: List[Iterator[GraphEdge]] = [_strong_successors(graph, root.key)]
        expanded.add(root.key)

        while pending:
            edge = next(pending[-1], None)
            if edge is None:
                pending.pop()
                del positions[stack.pop().key]
                continue

            key = edge.target.key
            if key in positions:
                # Back edge: the path from the revisited node closes a cycle
                yield stack[positions[key]:] + [edge.target]
                continue
            if key in expanded:
                continue

            expanded.add(key)
            positions[key] = len(stack)
            stack.append(edge.target)
            pending.append(_strong_successors(graph, key))

    @staticmethod
    def _canonical(members: List[Identity], order: Dict[str, int]) -> Cycle:
        distinct = members[:-1]
        start = min(range(len(distinct)), key=lambda index: order.get(distinct[index].key, len(order)))
        rotated = distinct[start:] + distinct[:start]
        return Cycle(members=tuple(rotated + [rotated[0]]))


def _strong_successors(graph: DependencyGraph, key: str) -> Iterator[GraphEdge]:
    return (edge for edge in graph.successors(key) if edge.wrapping in STRONG_WRAPPINGS)
