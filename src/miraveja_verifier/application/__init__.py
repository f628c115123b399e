"""
Application layer - Verification engine.

This layer contains the stages that turn declarations into diagnostics.
It depends only on the Domain layer.
"""

from .arena import AncestorLink, DeclarationArena, SelectedContract
from .collector import DeclarationCollector
from .conditional_validator import ConditionalValidator
from .context import VerificationContext
from .cycle_detector import CycleDetector
from .declaration_validator import DeclarationValidator
from .emitter import DiagnosticEmitter
from .graph_builder import DependencyGraph, DependencyGraphBuilder, EdgeResolution, FrameworkTypeMatcher, GraphEdge
from .lifetime_validator import LifetimeValidator, lifetime_violation
from .registry import ImplementationIndex, ImplementationRegistry, NameArityFallback
from .runner import LatestSnapshotRunner
from .stage import DeclarationStage
from .verifier import DependencyVerifier, VerificationResult

__all__ = [
    "DependencyVerifier",
    "VerificationResult",
    "LatestSnapshotRunner",
    "VerificationContext",
    "DeclarationCollector",
    "DeclarationArena",
    "AncestorLink",
    "SelectedContract",
    "ImplementationRegistry",
    "ImplementationIndex",
    "NameArityFallback",
    "DependencyGraphBuilder",
    "DependencyGraph",
    "GraphEdge",
    "EdgeResolution",
    "FrameworkTypeMatcher",
    "DeclarationStage",
    "CycleDetector",
    "LifetimeValidator",
    "lifetime_violation",
    "DeclarationValidator",
    "ConditionalValidator",
    "DiagnosticEmitter",
]
