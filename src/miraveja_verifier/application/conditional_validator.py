"""Application layer - Conditional registration checks."""

import logging
from typing import TYPE_CHECKING, List, Optional

from miraveja_verifier.application.stage import DeclarationStage
from miraveja_verifier.domain import (
    ConditionalMarker,
    Diagnostic,
    DiagnosticKind,
    ServiceDeclaration,
    make_diagnostic,
)

if TYPE_CHECKING:
    from miraveja_verifier.application.context import VerificationContext

logger = logging.getLogger(__name__)


def split_values(text: Optional[str]) -> List[str]:
    """Split a comma-separated condition value, keeping empty items.

    Example:
        >>> split_values("Development, Staging,")
        ['Development', 'Staging', '']
        >>> split_values("")
        []
    """
    if not text:
        return []
    return [item.strip() for item in text.split(",")]


class ConditionalValidator(DeclarationStage):
    """Checks the conditions attached to conditional declarations.

    ``None`` means a condition was not given at all, while an empty string is a
    given but empty condition. Value comparisons are case sensitive.
    """

    def check(self, declaration: ServiceDeclaration, context: "VerificationContext") -> List[Diagnostic]:
        if not declaration.is_conditional:
            return []

        diagnostics: List[Diagnostic] = []
        if not declaration.explicit_lifetime:
            diagnostics.append(make_diagnostic(DiagnosticKind.CONDITIONAL_MISSING_LIFETIME, declaration))
        if len(declaration.conditions) > 1:
            diagnostics.append(
                make_diagnostic(
                    DiagnosticKind.CONDITIONAL_MULTIPLE_MARKERS,
                    declaration,
                    count=len(declaration.conditions),
                )
            )
        for marker in declaration.conditions:
            diagnostics.extend(self._check_marker(declaration, marker))
        return diagnostics

    @staticmethod
    def _check_marker(declaration: ServiceDeclaration, marker: ConditionalMarker) -> List[Diagnostic]:
        diagnostics: List[Diagnostic] = []

        if marker.environment and marker.not_environment:
            excluded = split_values(marker.not_environment)
            conflicts = [name for name in split_values(marker.environment) if name in excluded]
            if conflicts:
                detail = (
                    f"environment '{', '.join(conflicts)}' appears in both Environment and NotEnvironment"
                )
                diagnostics.append(
                    make_diagnostic(
                        DiagnosticKind.CONDITIONAL_CONFLICTING_CONDITIONS,
                        declaration,
                        related=detail,
                        detail=detail,
                    )
                )

        if marker.equals and marker.not_equals and marker.equals in split_values(marker.not_equals):
            detail = (
                f"value '{marker.equals}' of '{marker.config_value}' appears in both Equals and NotEquals"
            )
            diagnostics.append(
                make_diagnostic(
                    DiagnosticKind.CONDITIONAL_CONFLICTING_CONDITIONS,
                    declaration,
                    related=detail,
                    detail=detail,
                )
            )

        has_environment = marker.environment is not None or marker.not_environment is not None
        has_config = marker.config_value is not None
        has_comparison = bool(marker.equals) or bool(marker.not_equals)

        if not has_environment and not has_config:
            diagnostics.append(make_diagnostic(DiagnosticKind.CONDITIONAL_EMPTY_CONDITIONS, declaration))
        if has_config and not has_comparison:
            diagnostics.append(
                make_diagnostic(
                    DiagnosticKind.CONDITIONAL_CONFIG_VALUE_WITHOUT_COMPARISON,
                    declaration,
                    related=marker.config_value,
                )
            )
        if has_comparison and not has_config:
            diagnostics.append(make_diagnostic(DiagnosticKind.CONDITIONAL_COMPARISON_WITHOUT_CONFIG_VALUE, declaration))
        if marker.config_value and not marker.config_value.strip():
            diagnostics.append(make_diagnostic(DiagnosticKind.CONDITIONAL_EMPTY_CONFIG_KEY, declaration))

        if diagnostics:
            logger.debug("Conditional marker on %s has %d problems", declaration.identity, len(diagnostics))
        return diagnostics
