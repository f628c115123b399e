"""
Domain layer - Core declaration model.

This layer contains the declaration, signature and diagnostic models together
with the verifier settings. It has no dependencies on other layers.
"""

from .catalog import DESCRIPTORS, DiagnosticDescriptor, get_descriptor, make_diagnostic
from .enums import DeclarationStyle, DependencyWrapping, DiagnosticKind, Lifetime, ResolutionStrategy, Severity
from .exceptions import DeclarationError, VerifierException
from .interfaces import IDeclarationCollector, IFallbackResolver, IImplementationLookup, IValidator
from .models import (
    ConditionalMarker,
    Cycle,
    DependencyEdge,
    DependencyList,
    Diagnostic,
    FieldDependency,
    MalformedExpression,
    PlainType,
    Resolution,
    ServiceDeclaration,
    Snapshot,
    SourceLocation,
    TypeFragment,
    TypeRecord,
)
from .settings import VerifierSettings
from .signatures import ContractSignature, GenericType, Identity, LeafType, TypeExpression, parse_type_expression

__all__ = [
    # Enums
    "Lifetime",
    "Severity",
    "DependencyWrapping",
    "DeclarationStyle",
    "DiagnosticKind",
    "ResolutionStrategy",
    # Exceptions
    "VerifierException",
    "DeclarationError",
    # Interfaces
    "IDeclarationCollector",
    "IImplementationLookup",
    "IFallbackResolver",
    "IValidator",
    # Signatures
    "TypeExpression",
    "LeafType",
    "GenericType",
    "ContractSignature",
    "Identity",
    "parse_type_expression",
    # Models
    "SourceLocation",
    "ConditionalMarker",
    "FieldDependency",
    "DependencyList",
    "TypeFragment",
    "MalformedExpression",
    "DependencyEdge",
    "PlainType",
    "ServiceDeclaration",
    "TypeRecord",
    "Snapshot",
    "Resolution",
    "Cycle",
    "Diagnostic",
    # Catalog
    "DiagnosticDescriptor",
    "DESCRIPTORS",
    "get_descriptor",
    "make_diagnostic",
    # Settings
    "VerifierSettings",
]
