from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict

from miraveja_verifier.domain.enums import DiagnosticKind, Severity
from miraveja_verifier.domain.models import Diagnostic, TypeRecord


class DiagnosticDescriptor(BaseModel):
    """Static description of a diagnostic kind.

    Attributes:
        kind: The diagnostic code.
        title: Short title.
        message_format: ``str.format`` template filled with named arguments.
        default_severity: Severity used when configuration says nothing.
    """

    model_config = ConfigDict(frozen=True)

    kind: DiagnosticKind
    title: str
    message_format: str
    default_severity: Severity

    def format(self, **arguments: Any) -> str:
        return self.message_format.format(**arguments)


def _descriptor(kind: DiagnosticKind, title: str, message_format: str, severity: Severity) -> DiagnosticDescriptor:
    return DiagnosticDescriptor(kind=kind, title=title, message_format=message_format, default_severity=severity)


DESCRIPTORS: Dict[DiagnosticKind, DiagnosticDescriptor] = {
    descriptor.kind: descriptor
    for descriptor in (
        _descriptor(
            DiagnosticKind.NO_IMPLEMENTATION_FOUND,
            "No implementation found for contract",
            "Service '{subject}' depends on '{target}' but no implementation of this contract exists",
            Severity.WARNING,
        ),
        _descriptor(
            DiagnosticKind.IMPLEMENTATION_EXISTS_BUT_UNREGISTERED,
            "Implementation exists but not registered",
            "Service '{subject}' depends on '{target}' - implementation exists but lacks a lifetime marker",
            Severity.WARNING,
        ),
        _descriptor(
            DiagnosticKind.CIRCULAR_DEPENDENCY,
            "Circular dependency detected",
            "Circular dependency detected: {path}",
            Severity.WARNING,
        ),
        _descriptor(
            DiagnosticKind.REGISTER_AS_ALL_REQUIRES_LIFETIME,
            "Register-as-all requires a lifetime marker",
            "Type '{subject}' registers as all contracts but is missing a lifetime marker",
            Severity.ERROR,
        ),
        _descriptor(
            DiagnosticKind.UNNECESSARY_EXCLUSION_MARKER,
            "Skip-registration has no effect without register-as-all",
            "Type '{subject}' skips contract registration but does not register as all contracts",
            Severity.WARNING,
        ),
        _descriptor(
            DiagnosticKind.DUPLICATE_DEPENDENCY_DECLARATION,
            "Duplicate dependency in dependency lists",
            "Type '{target}' is declared multiple times in dependency lists of '{subject}'",
            Severity.WARNING,
        ),
        _descriptor(
            DiagnosticKind.CONFLICTING_DECLARATION_STYLES,
            "Dependency declared with conflicting styles",
            "Type '{target}' is declared in a dependency list but also as an injected field of '{subject}'",
            Severity.WARNING,
        ),
        _descriptor(
            DiagnosticKind.DUPLICATE_WITHIN_ONE_DECLARATION,
            "Duplicate type in a single dependency list",
            "Type '{target}' is declared multiple times in the same dependency list of '{subject}'",
            Severity.WARNING,
        ),
        _descriptor(
            DiagnosticKind.EXCLUSION_OF_UNIMPLEMENTED_CONTRACT,
            "Skip-registration names a contract that would not be registered",
            "Type '{target}' skipped by '{subject}' is not a contract it implements",
            Severity.WARNING,
        ),
        _descriptor(
            DiagnosticKind.SINGLETON_DEPENDS_ON_SCOPED,
            "Singleton service depends on Scoped service",
            "Singleton service '{subject}' depends on Scoped service '{target}'",
            Severity.ERROR,
        ),
        _descriptor(
            DiagnosticKind.SINGLETON_DEPENDS_ON_TRANSIENT,
            "Singleton service depends on Transient service",
            "Singleton service '{subject}' depends on Transient service '{target}'",
            Severity.WARNING,
        ),
        _descriptor(
            DiagnosticKind.BACKGROUND_SERVICE_WRONG_LIFETIME,
            "Background service with non-Singleton lifetime",
            "Background service '{subject}' has {lifetime} lifetime; background services must be Singleton",
            Severity.ERROR,
        ),
        _descriptor(
            DiagnosticKind.INHERITANCE_CHAIN_LIFETIME_VIOLATION,
            "Service lifetime mismatch in inheritance chain",
            "Service lifetime mismatch in inheritance chain: "
            "Singleton '{subject}' inherits from '{target}', which {reason}",
            Severity.ERROR,
        ),
        _descriptor(
            DiagnosticKind.CONDITIONAL_CONFLICTING_CONDITIONS,
            "Conditional service has conflicting conditions",
            "Conditional service '{subject}' has conflicting conditions: {detail}",
            Severity.WARNING,
        ),
        _descriptor(
            DiagnosticKind.CONDITIONAL_MISSING_LIFETIME,
            "Conditional service requires a lifetime marker",
            "Type '{subject}' is conditional but has no lifetime marker",
            Severity.ERROR,
        ),
        _descriptor(
            DiagnosticKind.CONDITIONAL_EMPTY_CONDITIONS,
            "Conditional service has no conditions",
            "Type '{subject}' is conditional but at least one condition is required",
            Severity.WARNING,
        ),
        _descriptor(
            DiagnosticKind.CONDITIONAL_CONFIG_VALUE_WITHOUT_COMPARISON,
            "Configuration key specified without a comparison",
            "Type '{subject}' names configuration key '{target}' but no Equals or NotEquals comparison",
            Severity.WARNING,
        ),
        _descriptor(
            DiagnosticKind.CONDITIONAL_COMPARISON_WITHOUT_CONFIG_VALUE,
            "Comparison specified without a configuration key",
            "Type '{subject}' has an Equals or NotEquals comparison but no configuration key",
            Severity.WARNING,
        ),
        _descriptor(
            DiagnosticKind.CONDITIONAL_EMPTY_CONFIG_KEY,
            "Configuration key is blank",
            "Type '{subject}' has a whitespace-only configuration key",
            Severity.WARNING,
        ),
        _descriptor(
            DiagnosticKind.CONDITIONAL_MULTIPLE_MARKERS,
            "Multiple conditional markers on one type",
            "Type '{subject}' has {count} conditional markers, which may lead to unexpected registration",
            Severity.WARNING,
        ),
        _descriptor(
            DiagnosticKind.REGISTER_AS_REQUIRES_SERVICE,
            "Selective registration requires service markers",
            "Type '{subject}' selects contracts to register as but has no lifetime marker or dependency declarations",
            Severity.ERROR,
        ),
        _descriptor(
            DiagnosticKind.REGISTER_AS_CONTRACT_NOT_IMPLEMENTED,
            "Selective registration names an unimplemented contract",
            "Type '{subject}' registers as '{target}' but does not implement this contract",
            Severity.ERROR,
        ),
        _descriptor(
            DiagnosticKind.REGISTER_AS_DUPLICATE_CONTRACT,
            "Selective registration names a contract twice",
            "Type '{subject}' registers as '{target}' more than once",
            Severity.WARNING,
        ),
        _descriptor(
            DiagnosticKind.REGISTER_AS_NON_CONTRACT_TYPE,
            "Selective registration names a concrete type",
            "Type '{subject}' registers as '{target}', which is a concrete type rather than a contract",
            Severity.ERROR,
        ),
        _descriptor(
            DiagnosticKind.MALFORMED_TYPE_EXPRESSION,
            "Malformed type expression",
            "Type '{subject}' declares malformed type expression '{target}', which was ignored: {reason}",
            Severity.ERROR,
        ),
        _descriptor(
            DiagnosticKind.INTERNAL_ERROR,
            "Internal verifier error",
            "Verification of '{subject}' failed with an internal error: {detail}",
            Severity.ERROR,
        ),
    )
}


def get_descriptor(kind: DiagnosticKind) -> DiagnosticDescriptor:
    return DESCRIPTORS[kind]


def make_diagnostic(
    kind: DiagnosticKind,
    record: TypeRecord,
    related: Optional[str] = None,
    **arguments: Any,
) -> Diagnostic:
    """Build a diagnostic about a declaration with the kind's default severity.

    The message template receives ``subject`` (the record's display name) and,
    when given, ``target`` (the related name) in addition to ``arguments``.
    Severity is finalized later by the emitter.

    Args:
        kind: Diagnostic kind.
        record: Subject declaration or plain type.
        related: Display name of the related declaration, contract or cycle path.
        **arguments: Extra template arguments.

    Returns:
        The diagnostic.
    """
    descriptor = get_descriptor(kind)
    arguments.setdefault("subject", record.identity.display)
    if related is not None:
        arguments.setdefault("target", related)
    return Diagnostic(
        kind=kind,
        severity=descriptor.default_severity,
        subject=record.identity,
        related=related,
        message=descriptor.format(**arguments),
        location=record.location,
        order=record.order,
    )
