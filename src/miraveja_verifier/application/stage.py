"""Application layer - Per-declaration validation stages with fault isolation."""

import logging
from abc import abstractmethod
from typing import TYPE_CHECKING, List

from miraveja_verifier.domain import (
    Diagnostic,
    DiagnosticKind,
    IValidator,
    ServiceDeclaration,
    TypeRecord,
    make_diagnostic,
)

if TYPE_CHECKING:
    from miraveja_verifier.application.context import VerificationContext

logger = logging.getLogger(__name__)


def internal_error(record: TypeRecord, error: Exception) -> Diagnostic:
    """Turn an unexpected failure while processing a declaration into a diagnostic."""
    return make_diagnostic(
        DiagnosticKind.INTERNAL_ERROR,
        record,
        detail=f"{type(error).__name__}: {error}",
    )


class DeclarationStage(IValidator):
    """Base class for stages that check declarations one at a time.

    A failure while checking one declaration is logged and reported as an
    internal-error diagnostic for that declaration; the other declarations are
    still checked.
    """

    skip_external = True

    def validate(self, context: "VerificationContext") -> List[Diagnostic]:
        diagnostics: List[Diagnostic] = []
        for declaration in context.snapshot.declarations:
            if self.skip_external and declaration.is_external:
                continue
            try:
                diagnostics.extend(self.check(declaration, context))
            except Exception as error:
                logger.exception("%s failed on %s", type(self).__name__, declaration.identity)
                diagnostics.append(internal_error(declaration, error))
        return diagnostics

    @abstractmethod
    def check(self, declaration: ServiceDeclaration, context: "VerificationContext") -> List[Diagnostic]:
        """Check one declaration.

        Args:
            declaration: The declaration to check.
            context: Per-pass verification context.

        Returns:
            Diagnostics about this declaration.
        """
