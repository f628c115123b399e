"""
miraveja-verifier: Build-time verifier for declarative dependency-injection models.

Public API exports for the miraveja-verifier package.
"""

# Application exports
from miraveja_verifier.application import DependencyVerifier, LatestSnapshotRunner, VerificationResult

# Domain exports
from miraveja_verifier.domain import (
    Diagnostic,
    DiagnosticKind,
    Lifetime,
    Severity,
    TypeFragment,
    VerifierSettings,
)
from miraveja_verifier.domain.exceptions import DeclarationError, VerifierException

__version__ = "0.1.0"

__all__ = [
    # Verifier
    "DependencyVerifier",
    "LatestSnapshotRunner",
    "VerificationResult",
    "VerifierSettings",
    # Models
    "TypeFragment",
    "Diagnostic",
    # Enums
    "Lifetime",
    "Severity",
    "DiagnosticKind",
    # Exceptions
    "VerifierException",
    "DeclarationError",
]
