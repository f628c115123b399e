"""Application layer - Declaration consistency and resolution checks."""

import logging
from typing import TYPE_CHECKING, Dict, List, Set, Tuple

from miraveja_verifier.application.stage import DeclarationStage
from miraveja_verifier.domain import (
    DeclarationStyle,
    DependencyEdge,
    Diagnostic,
    DiagnosticKind,
    Identity,
    ServiceDeclaration,
    make_diagnostic,
)

if TYPE_CHECKING:
    from miraveja_verifier.application.context import VerificationContext

logger = logging.getLogger(__name__)


class DeclarationValidator(DeclarationStage):
    """Checks how a declaration states its dependencies and registrations.

    Dependency-style checks look at the declaration together with everything
    it inherits. Missing implementations are only reported on the declaration
    that physically declares the dependency.
    """

    def check(self, declaration: ServiceDeclaration, context: "VerificationContext") -> List[Diagnostic]:
        edges = context.arena.effective_edges(declaration)
        diagnostics: List[Diagnostic] = []
        diagnostics.extend(self._check_registration_markers(declaration, context))
        diagnostics.extend(self._check_register_as(declaration, context))
        diagnostics.extend(self._check_duplicates_within_list(declaration, edges))
        diagnostics.extend(self._check_duplicates_across_lists(declaration, edges))
        diagnostics.extend(self._check_conflicting_styles(declaration, edges))
        diagnostics.extend(self._check_resolution(declaration, context))
        return diagnostics

    @staticmethod
    def _check_registration_markers(
        declaration: ServiceDeclaration,
        context: "VerificationContext",
    ) -> List[Diagnostic]:
        diagnostics: List[Diagnostic] = []
        if declaration.register_as_all and not declaration.explicit_lifetime:
            diagnostics.append(make_diagnostic(DiagnosticKind.REGISTER_AS_ALL_REQUIRES_LIFETIME, declaration))
        if not declaration.skip_registration:
            return diagnostics
        if not declaration.register_as_all:
            diagnostics.append(make_diagnostic(DiagnosticKind.UNNECESSARY_EXCLUSION_MARKER, declaration))
            return diagnostics

        implemented = {contract.key for contract in context.arena.contracts(declaration)}
        for skipped in declaration.skip_registration:
            if skipped.key not in implemented:
                diagnostics.append(
                    make_diagnostic(
                        DiagnosticKind.EXCLUSION_OF_UNIMPLEMENTED_CONTRACT,
                        declaration,
                        related=skipped.display,
                    )
                )
        return diagnostics

    @staticmethod
    def _check_register_as(declaration: ServiceDeclaration, context: "VerificationContext") -> List[Diagnostic]:
        if not declaration.register_as:
            return []
        diagnostics: List[Diagnostic] = []
        has_service_marker = (
            declaration.explicit_lifetime
            or declaration.dependency_edges
            or declaration.conditions
            or declaration.is_background
            or declaration.register_as_all
        )
        if not has_service_marker:
            diagnostics.append(make_diagnostic(DiagnosticKind.REGISTER_AS_REQUIRES_SERVICE, declaration))
        for selected in context.arena.selected_contracts(declaration):
            if selected.rejection is not None:
                diagnostics.append(make_diagnostic(selected.rejection, declaration, related=selected.contract.display))
        return diagnostics

    @staticmethod
    def _check_duplicates_within_list(
        declaration: ServiceDeclaration,
        edges: Tuple[DependencyEdge, ...],
    ) -> List[Diagnostic]:
        counts: Dict[Tuple[str, int, str], int] = {}
        names: Dict[str, str] = {}
        for edge in edges:
            if edge.style != DeclarationStyle.LIST or edge.group is None:
                continue
            slot = (edge.origin.key, edge.group, edge.target.key)
            counts[slot] = counts.get(slot, 0) + 1
            names[edge.target.key] = edge.target.display

        diagnostics: List[Diagnostic] = []
        for (_, _, target_key), count in counts.items():
            if count > 1:
                diagnostics.append(
                    make_diagnostic(
                        DiagnosticKind.DUPLICATE_WITHIN_ONE_DECLARATION,
                        declaration,
                        related=names[target_key],
                    )
                )
        return diagnostics

    @staticmethod
    def _check_duplicates_across_lists(
        declaration: ServiceDeclaration,
        edges: Tuple[DependencyEdge, ...],
    ) -> List[Diagnostic]:
        lists: Dict[str, Set[Tuple[str, int]]] = {}
        names: Dict[str, str] = {}
        for edge in edges:
            if edge.style != DeclarationStyle.LIST or edge.group is None:
                continue
            lists.setdefault(edge.target.key, set()).add((edge.origin.key, edge.group))
            names[edge.target.key] = edge.target.display

        return [
            make_diagnostic(DiagnosticKind.DUPLICATE_DEPENDENCY_DECLARATION, declaration, related=names[target_key])
            for target_key, groups in lists.items()
            if len(groups) > 1
        ]

    @staticmethod
    def _check_conflicting_styles(
        declaration: ServiceDeclaration,
        edges: Tuple[DependencyEdge, ...],
    ) -> List[Diagnostic]:
        styles: Dict[str, Set[DeclarationStyle]] = {}
        names: Dict[str, str] = {}
        for edge in edges:
            styles.setdefault(edge.target.key, set()).add(edge.style)
            names[edge.target.key] = edge.target.display

        return [
            make_diagnostic(DiagnosticKind.CONFLICTING_DECLARATION_STYLES, declaration, related=names[target_key])
            for target_key, found in styles.items()
            if len(found) > 1
        ]

    @staticmethod
    def _check_resolution(declaration: ServiceDeclaration, context: "VerificationContext") -> List[Diagnostic]:
        diagnostics: List[Diagnostic] = []
        owner: Identity = declaration.identity
        for unresolved in context.graph.unresolved_of(owner.key):
            if unresolved.is_inherited:
                continue
            if context.registry.lookup_unregistered(unresolved.target).is_resolved:
                kind = DiagnosticKind.IMPLEMENTATION_EXISTS_BUT_UNREGISTERED
            else:
                kind = DiagnosticKind.NO_IMPLEMENTATION_FOUND
            logger.debug("%s: %s has no registered implementation of %s", kind.code, owner, unresolved.target)
            diagnostics.append(make_diagnostic(kind, declaration, related=unresolved.target.display))
        return diagnostics
