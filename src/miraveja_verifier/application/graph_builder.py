"""Application layer - Dependency graph construction."""

import logging
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from miraveja_verifier.application.arena import DeclarationArena
from miraveja_verifier.domain import (
    ContractSignature,
    DependencyEdge,
    DependencyWrapping,
    GenericType,
    IImplementationLookup,
    Identity,
    Resolution,
    ResolutionStrategy,
    ServiceDeclaration,
    Snapshot,
)
from miraveja_verifier.domain.settings import (
    DEFAULT_COLLECTION_WRAPPERS,
    DEFAULT_DEFERRED_WRAPPERS,
    DEFAULT_FRAMEWORK_TYPES,
)

logger = logging.getLogger(__name__)


class GraphEdge(BaseModel):
    """One adjacency entry: source declaration -> implementing declaration."""

    model_config = ConfigDict(frozen=True)

    source: Identity
    target: Identity
    wrapping: DependencyWrapping
    edge: DependencyEdge


class EdgeResolution(BaseModel):
    """A dependency edge after unwrapping, together with its lookup result.

    Attributes:
        owner: Declaration the edge is effective on.
        edge: The declared edge, possibly inherited from an ancestor.
        target: Target signature with collection and deferred wrappers removed.
        wrapping: Effective wrapping after unwrapping.
        resolution: Lookup result for ``target``.
    """

    model_config = ConfigDict(frozen=True)

    owner: Identity
    edge: DependencyEdge
    target: ContractSignature
    wrapping: DependencyWrapping
    resolution: Resolution

    @property
    def is_inherited(self) -> bool:
        return self.edge.origin != self.owner


class DependencyGraph(BaseModel):
    """Adjacency of one snapshot, recomputed on every pass.

    Attributes:
        adjacency: Source identity key -> outgoing graph edges, in declaration order.
        resolved: Edges that found at least one implementation.
        unresolved: Edges whose lookup came back empty.
        unresolved_by_owner: Owner identity key -> its unresolved edges, in declaration order.
        failures: Identity key -> error text, for declarations whose edges could not be processed.
    """

    model_config = ConfigDict(frozen=True)

    adjacency: Dict[str, Tuple[GraphEdge, ...]] = {}
    resolved: Tuple[EdgeResolution, ...] = ()
    unresolved: Tuple[EdgeResolution, ...] = ()
    unresolved_by_owner: Dict[str, Tuple[EdgeResolution, ...]] = {}
    failures: Dict[str, str] = {}

    def successors(self, identity_key: str) -> Tuple[GraphEdge, ...]:
        return self.adjacency.get(identity_key, ())

    def unresolved_of(self, identity_key: str) -> Tuple[EdgeResolution, ...]:
        return self.unresolved_by_owner.get(identity_key, ())

    @property
    def edge_count(self) -> int:
        return sum(len(edges) for edges in self.adjacency.values())


class FrameworkTypeMatcher:
    """Allow-list of runtime-provided types, matched by simple name and arity.

    ``ILogger`` matches only the non-generic name, ``ILogger<>`` matches any
    single-argument construction and ``IDictionary<,>`` any two-argument one.
    """

    def __init__(self, entries: Iterable[str] = DEFAULT_FRAMEWORK_TYPES) -> None:
        self._entries: FrozenSet[Tuple[str, int]] = frozenset(self._parse_entry(entry) for entry in entries)

    @staticmethod
    def _parse_entry(entry: str) -> Tuple[str, int]:
        entry = entry.strip()
        if "<" not in entry:
            return _simple_name(entry), 0
        name, _, rest = entry.partition("<")
        return _simple_name(name), rest.count(",") + 1

    def matches(self, target: ContractSignature) -> bool:
        return (target.simple_name, target.arity) in self._entries


class DependencyGraphBuilder:
    """Turns declarations and lookups into a dependency graph.

    Attributes:
        _collection_wrappers: Simple names unwrapped as "has many" references.
        _deferred_wrappers: Simple names unwrapped as lazily resolved references.
        _framework: Matcher for runtime-provided targets, never turned into edges.
    """

    def __init__(
        self,
        collection_wrappers: Iterable[str] = DEFAULT_COLLECTION_WRAPPERS,
        deferred_wrappers: Iterable[str] = DEFAULT_DEFERRED_WRAPPERS,
        framework_types: Iterable[str] = DEFAULT_FRAMEWORK_TYPES,
    ) -> None:
        self._collection_wrappers = frozenset(_simple_name(name) for name in collection_wrappers)
        self._deferred_wrappers = frozenset(_simple_name(name) for name in deferred_wrappers)
        self._framework = FrameworkTypeMatcher(framework_types)

    def unwrap(
        self,
        target: ContractSignature,
        declared: DependencyWrapping = DependencyWrapping.DIRECT,
    ) -> Tuple[ContractSignature, DependencyWrapping]:
        """Peel collection and deferred wrappers off a target, recursively.

        Args:
            target: Declared target signature.
            declared: Wrapping stated on the edge itself.

        Returns:
            The innermost target and the effective wrapping. Collection wins
            over deferred, which wins over the declared wrapping.

        Example:
            >>> target, wrapping = builder.unwrap(ContractSignature.parse("Lazy<IEnumerable<IFoo>>"))
            >>> target.display, wrapping
            ('IFoo', <DependencyWrapping.COLLECTION: 'collection'>)
        """
        collection = declared == DependencyWrapping.COLLECTION
        deferred = declared == DependencyWrapping.DEFERRED
        expression = target.expression
        while isinstance(expression, GenericType):
            name = _simple_name(expression.name)
            if name in self._collection_wrappers and len(expression.arguments) == 1:
                collection = True
                expression = expression.arguments[0]
            elif name in self._deferred_wrappers:
                # Func<A, B> produces its last argument
                deferred = True
                expression = expression.arguments[-1]
            else:
                break

        if collection:
            wrapping = DependencyWrapping.COLLECTION
        elif deferred:
            wrapping = DependencyWrapping.DEFERRED
        else:
            wrapping = declared
        if expression is target.expression:
            return target, wrapping
        return ContractSignature(expression=expression), wrapping

    def is_framework_type(self, target: ContractSignature) -> bool:
        return self._framework.matches(target)

    def build(self, snapshot: Snapshot, arena: DeclarationArena, lookup: IImplementationLookup) -> DependencyGraph:
        """Resolve every effective edge of every non-external declaration.

        Args:
            snapshot: Snapshot to build the graph for.
            arena: Arena over the same snapshot, supplies inherited edges.
            lookup: Contract resolution.

        Returns:
            The dependency graph.
        """
        adjacency: Dict[str, Tuple[GraphEdge, ...]] = {}
        resolved: List[EdgeResolution] = []
        unresolved: List[EdgeResolution] = []
        unresolved_by_owner: Dict[str, Tuple[EdgeResolution, ...]] = {}
        failures: Dict[str, str] = {}

        for declaration in snapshot.declarations:
            if declaration.is_external:
                continue
            try:
                outgoing, found, missing = self._build_node(declaration, arena, lookup)
            except Exception as error:
                logger.exception("Could not resolve the dependencies of %s", declaration.identity)
                failures[declaration.identity.key] = f"{type(error).__name__}: {error}"
                outgoing, found, missing = [], [], []
            adjacency[declaration.identity.key] = tuple(outgoing)
            resolved.extend(found)
            unresolved.extend(missing)
            if missing:
                unresolved_by_owner[declaration.identity.key] = tuple(missing)

        graph = DependencyGraph(
            adjacency=adjacency,
            resolved=tuple(resolved),
            unresolved=tuple(unresolved),
            unresolved_by_owner=unresolved_by_owner,
            failures=failures,
        )
        logger.debug(
            "Built dependency graph with %d nodes, %d edges and %d unresolved targets",
            len(adjacency),
            graph.edge_count,
            len(unresolved),
        )
        return graph

    def _build_node(
        self,
        declaration: ServiceDeclaration,
        arena: DeclarationArena,
        lookup: IImplementationLookup,
    ) -> Tuple[List[GraphEdge], List[EdgeResolution], List[EdgeResolution]]:
        outgoing: List[GraphEdge] = []
        resolved: List[EdgeResolution] = []
        unresolved: List[EdgeResolution] = []
        for edge in arena.effective_edges(declaration):
            resolution = self._resolve_edge(declaration, edge, lookup)
            if resolution is None:
                continue
            if not resolution.resolution.is_resolved:
                unresolved.append(resolution)
                continue
            resolved.append(resolution)
            for candidate in self._graph_candidates(resolution.resolution):
                target = arena.declaration(candidate.key)
                if target is None or target.is_external:
                    continue
                graph_edge = GraphEdge(
                    source=declaration.identity,
                    target=candidate,
                    wrapping=resolution.wrapping,
                    edge=edge,
                )
                if graph_edge not in outgoing:
                    outgoing.append(graph_edge)
        return outgoing, resolved, unresolved

    def _resolve_edge(
        self,
        declaration: ServiceDeclaration,
        edge: DependencyEdge,
        lookup: IImplementationLookup,
    ) -> Optional[EdgeResolution]:
        if edge.is_external:
            return None
        target, wrapping = self.unwrap(edge.target, edge.wrapping)
        if self.is_framework_type(target):
            return None
        return EdgeResolution(
            owner=declaration.identity,
            edge=edge,
            target=target,
            wrapping=wrapping,
            resolution=lookup.lookup(target),
        )

    @staticmethod
    def _graph_candidates(resolution: Resolution) -> Tuple[Identity, ...]:
        if resolution.strategy == ResolutionStrategy.FALLBACK:
            return resolution.candidates[:1]
        return resolution.candidates


def _simple_name(name: str) -> str:
    return name.strip().rsplit(".", 1)[-1].rsplit("::", 1)[-1]
