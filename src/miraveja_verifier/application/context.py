"""Application layer - Per-pass verification context."""

import logging

from miraveja_verifier.application.arena import DeclarationArena
from miraveja_verifier.application.graph_builder import DependencyGraph, DependencyGraphBuilder
from miraveja_verifier.application.registry import ImplementationRegistry
from miraveja_verifier.domain import Snapshot, VerifierSettings

logger = logging.getLogger(__name__)


class VerificationContext:
    """Everything a verification stage may read during one pass.

    Built from scratch for every snapshot and never mutated afterwards, so
    stages can share it across worker threads without locking.

    Attributes:
        snapshot: The snapshot under verification.
        settings: Settings of this pass.
        arena: Inheritance-chain traversal over the snapshot.
        registry: Contract resolution over the snapshot.
        graph: The dependency graph.
    """

    def __init__(
        self,
        snapshot: Snapshot,
        settings: VerifierSettings,
        arena: DeclarationArena,
        registry: ImplementationRegistry,
        graph: DependencyGraph,
    ) -> None:
        self.snapshot = snapshot
        self.settings = settings
        self.arena = arena
        self.registry = registry
        self.graph = graph

    @classmethod
    def build(cls, snapshot: Snapshot, settings: VerifierSettings) -> "VerificationContext":
        """Index a snapshot and build its dependency graph.

        Args:
            snapshot: The snapshot to verify.
            settings: Settings of this pass.

        Returns:
            A fresh context.
        """
        arena = DeclarationArena(snapshot)
        registry = ImplementationRegistry.build(snapshot, arena, settings.fallback_resolution_enabled)
        graph_builder = DependencyGraphBuilder(
            collection_wrappers=settings.collection_wrappers,
            deferred_wrappers=settings.deferred_wrappers,
            framework_types=settings.framework_types,
        )
        graph = graph_builder.build(snapshot, arena, registry)
        logger.debug("Built verification context for %d declarations", len(snapshot.declarations))
        return cls(snapshot, settings, arena, registry, graph)
