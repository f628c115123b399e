"""Application layer - Verification pipeline."""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict

from miraveja_verifier.application.collector import DeclarationCollector
from miraveja_verifier.application.conditional_validator import ConditionalValidator
from miraveja_verifier.application.context import VerificationContext
from miraveja_verifier.application.cycle_detector import CycleDetector
from miraveja_verifier.application.declaration_validator import DeclarationValidator
from miraveja_verifier.application.emitter import DiagnosticEmitter
from miraveja_verifier.application.graph_builder import DependencyGraph
from miraveja_verifier.application.lifetime_validator import LifetimeValidator
from miraveja_verifier.application.registry import ImplementationIndex
from miraveja_verifier.domain import (
    Cycle,
    Diagnostic,
    DiagnosticKind,
    IDeclarationCollector,
    Severity,
    Snapshot,
    TypeFragment,
    TypeRecord,
    VerifierSettings,
    make_diagnostic,
)

logger = logging.getLogger(__name__)


class VerificationResult(BaseModel):
    """Outcome of one verification pass.

    Attributes:
        diagnostics: Final, sorted diagnostics.
        snapshot: The verified snapshot.
        index: Implementation index, read-only, for code generation.
        graph: Dependency graph of the snapshot.
        cycles: Distinct dependency cycles.
    """

    model_config = ConfigDict(frozen=True)

    diagnostics: Tuple[Diagnostic, ...] = ()
    snapshot: Snapshot
    index: ImplementationIndex
    graph: DependencyGraph
    cycles: Tuple[Cycle, ...] = ()

    @property
    def has_errors(self) -> bool:
        return any(diagnostic.severity == Severity.ERROR for diagnostic in self.diagnostics)

    def by_kind(self, kind: DiagnosticKind) -> List[Diagnostic]:
        return [diagnostic for diagnostic in self.diagnostics if diagnostic.kind == kind]


class DependencyVerifier:
    """Runs every verification stage over one snapshot.

    Each call to ``verify`` is independent: indices and the graph are rebuilt
    from the snapshot, nothing is cached between calls. Cycle detection and
    lifetime validation only read the per-pass context, so they run on worker
    threads, each into its own buffer.

    Attributes:
        settings: Settings applied to every pass.
        _collector: Turns fragments into snapshots.
        _max_workers: Size of the worker pool for the concurrent stages.

    Example:
        >>> verifier = DependencyVerifier()
        >>> result = verifier.verify([TypeFragment(name="Clock", lifetime=Lifetime.SINGLETON)])
        >>> result.diagnostics
        ()
    """

    def __init__(
        self,
        settings: Optional[VerifierSettings] = None,
        collector: Optional[IDeclarationCollector] = None,
        max_workers: int = 2,
    ) -> None:
        self.settings = settings or VerifierSettings()
        self._collector = collector or DeclarationCollector(self.settings.default_implicit_lifetime)
        self._max_workers = max_workers
        self._declaration_validator = DeclarationValidator()
        self._conditional_validator = ConditionalValidator()
        self._cycle_detector = CycleDetector()
        self._lifetime_validator = LifetimeValidator()
        self._emitter = DiagnosticEmitter(self.settings)

    def collect(self, fragments: Iterable[TypeFragment]) -> Snapshot:
        return self._collector.collect(fragments)

    def verify(self, source: Union[Snapshot, Iterable[TypeFragment]]) -> VerificationResult:
        """Verify a snapshot, or the snapshot collected from raw fragments.

        Args:
            source: A collected snapshot or raw fragments.

        Returns:
            The verification result. Malformed type expressions are reported
            as diagnostics on their declaration, never raised.
        """
        snapshot = source if isinstance(source, Snapshot) else self.collect(source)
        context = VerificationContext.build(snapshot, self.settings)

        buffers: List[List[Diagnostic]] = [
            self._malformed_inputs(snapshot),
            self._graph_failures(context),
            self._declaration_validator.validate(context),
            self._conditional_validator.validate(context),
        ]
        cycles, cycle_diagnostics, lifetime_diagnostics = self._run_graph_stages(context)
        buffers.append(cycle_diagnostics)
        buffers.append(lifetime_diagnostics)

        diagnostics = self._emitter.emit(buffers)
        logger.info(
            "Verified %d declarations: %d diagnostics, %d cycles",
            len(snapshot.declarations),
            len(diagnostics),
            len(cycles),
        )
        return VerificationResult(
            diagnostics=tuple(diagnostics),
            snapshot=snapshot,
            index=context.registry.index,
            graph=context.graph,
            cycles=tuple(cycles),
        )

    def _run_graph_stages(
        self,
        context: VerificationContext,
    ) -> Tuple[List[Cycle], List[Diagnostic], List[Diagnostic]]:
        run_lifetimes = self.settings.lifetime_validation_enabled
        if not self.settings.parallel_validation:
            cycles, cycle_diagnostics = self._cycle_detector.analyze(context)
            lifetime_diagnostics = self._lifetime_validator.validate(context) if run_lifetimes else []
            return cycles, cycle_diagnostics, lifetime_diagnostics

        with ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="verifier") as executor:
            cycle_future = executor.submit(self._cycle_detector.analyze, context)
            lifetime_future = executor.submit(self._lifetime_validator.validate, context) if run_lifetimes else None
            cycles, cycle_diagnostics = cycle_future.result()
            lifetime_diagnostics = lifetime_future.result() if lifetime_future is not None else []
        return cycles, cycle_diagnostics, lifetime_diagnostics

    @staticmethod
    def _malformed_inputs(snapshot: Snapshot) -> List[Diagnostic]:
        records: List[TypeRecord] = [*snapshot.declarations, *snapshot.plain_types]
        return [
            make_diagnostic(
                DiagnosticKind.MALFORMED_TYPE_EXPRESSION,
                record,
                related=expression.text,
                reason=expression.reason or "not a type expression",
            )
            for record in records
            for expression in record.malformed_expressions
        ]

    @staticmethod
    def _graph_failures(context: VerificationContext) -> List[Diagnostic]:
        diagnostics: List[Diagnostic] = []
        failures: Dict[str, str] = context.graph.failures
        for key, detail in failures.items():
            declaration = context.arena.declaration(key)
            if declaration is not None:
                diagnostics.append(make_diagnostic(DiagnosticKind.INTERNAL_ERROR, declaration, detail=detail))
        return diagnostics
