"""Application layer - Lifetime compatibility checks."""

import logging
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from miraveja_verifier.application.stage import DeclarationStage
from miraveja_verifier.domain import (
    Diagnostic,
    DiagnosticKind,
    Lifetime,
    ServiceDeclaration,
    make_diagnostic,
)

if TYPE_CHECKING:
    from miraveja_verifier.application.context import VerificationContext

logger = logging.getLogger(__name__)

# (consumer lifetime, dependency lifetime) -> violation; anything else is compatible
LIFETIME_RULES: Dict[Tuple[Lifetime, Lifetime], DiagnosticKind] = {
    (Lifetime.SINGLETON, Lifetime.SCOPED): DiagnosticKind.SINGLETON_DEPENDS_ON_SCOPED,
    (Lifetime.SINGLETON, Lifetime.TRANSIENT): DiagnosticKind.SINGLETON_DEPENDS_ON_TRANSIENT,
}


def lifetime_violation(consumer: Lifetime, dependency: Optional[Lifetime]) -> Optional[DiagnosticKind]:
    """Look a consumer/dependency lifetime pair up in the rule table.

    Example:
        >>> lifetime_violation(Lifetime.SINGLETON, Lifetime.SCOPED)
        <DiagnosticKind.SINGLETON_DEPENDS_ON_SCOPED: 'IOC012'>
        >>> lifetime_violation(Lifetime.SCOPED, Lifetime.SINGLETON) is None
        True
    """
    if dependency is None:
        return None
    return LIFETIME_RULES.get((consumer, dependency))


class LifetimeValidator(DeclarationStage):
    """Checks that no service outlives what it depends on.

    Every graph edge of a declaration is checked, whether it is declared
    directly, inherited from an ancestor, deferred or a collection. The
    related name is always the concrete implementing declaration.

    Singleton declarations additionally get one inheritance-chain check: the
    first ancestor that is itself Scoped or Transient, or that declares a
    dependency on a Scoped service, is reported.

    Background services must be Singleton unless they suppress lifetime warnings.
    """

    def check(self, declaration: ServiceDeclaration, context: "VerificationContext") -> List[Diagnostic]:
        diagnostics: List[Diagnostic] = []
        diagnostics.extend(self._check_edges(declaration, context))
        if declaration.lifetime == Lifetime.SINGLETON:
            inheritance = self._check_inheritance_chain(declaration, context)
            if inheritance is not None:
                diagnostics.append(inheritance)
        if declaration.is_background and declaration.lifetime != Lifetime.SINGLETON:
            if declaration.suppress_lifetime_warnings:
                logger.debug("Lifetime warning suppressed for background service %s", declaration.identity)
            else:
                diagnostics.append(
                    make_diagnostic(
                        DiagnosticKind.BACKGROUND_SERVICE_WRONG_LIFETIME,
                        declaration,
                        lifetime=declaration.lifetime.display,
                    )
                )
        return diagnostics

    @staticmethod
    def _check_edges(declaration: ServiceDeclaration, context: "VerificationContext") -> List[Diagnostic]:
        diagnostics: List[Diagnostic] = []
        for edge in context.graph.successors(declaration.identity.key):
            kind = lifetime_violation(declaration.lifetime, context.registry.lifetime_of(edge.target))
            if kind is not None:
                diagnostics.append(make_diagnostic(kind, declaration, related=edge.target.display))
        return diagnostics

    @staticmethod
    def _check_inheritance_chain(
        declaration: ServiceDeclaration,
        context: "VerificationContext",
    ) -> Optional[Diagnostic]:
        inherited = context.graph.successors(declaration.identity.key)
        for link in context.arena.ancestors(declaration):
            ancestor = link.record
            if not isinstance(ancestor, ServiceDeclaration) or ancestor.is_external:
                continue
            if ancestor.lifetime in (Lifetime.SCOPED, Lifetime.TRANSIENT):
                return make_diagnostic(
                    DiagnosticKind.INHERITANCE_CHAIN_LIFETIME_VIOLATION,
                    declaration,
                    related=ancestor.identity.display,
                    reason=f"has {ancestor.lifetime.display} lifetime",
                )
            for edge in inherited:
                if edge.edge.origin != ancestor.identity:
                    continue
                if context.registry.lifetime_of(edge.target) == Lifetime.SCOPED:
                    return make_diagnostic(
                        DiagnosticKind.INHERITANCE_CHAIN_LIFETIME_VIOLATION,
                        declaration,
                        related=ancestor.identity.display,
                        reason=f"depends on Scoped service '{edge.target.display}'",
                    )
        return None
