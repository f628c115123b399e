from typing import Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from miraveja_verifier.domain.enums import (
    DeclarationStyle,
    DependencyWrapping,
    DiagnosticKind,
    Lifetime,
    ResolutionStrategy,
    Severity,
)
from miraveja_verifier.domain.signatures import ContractSignature, Identity


class SourceLocation(BaseModel):
    """Where a declaration was written, for display only."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Source file path.")
    line: Optional[int] = Field(default=None, description="1-based line number.")

    def __str__(self) -> str:
        return f"{self.path}:{self.line}" if self.line is not None else self.path


class ConditionalMarker(BaseModel):
    """Conditions attached to a conditional declaration.

    ``None`` means "not specified"; an empty string means "specified but empty".

    Attributes:
        environment: Comma-separated environments the service is registered in.
        not_environment: Comma-separated environments the service is excluded from.
        config_value: Configuration key to compare.
        equals: Value the configuration key must equal.
        not_equals: Comma-separated values the configuration key must not equal.
    """

    model_config = ConfigDict(frozen=True)

    environment: Optional[str] = None
    not_environment: Optional[str] = None
    config_value: Optional[str] = None
    equals: Optional[str] = None
    not_equals: Optional[str] = None


class FieldDependency(BaseModel):
    """A dependency declared as a single injected field."""

    model_config = ConfigDict(frozen=True)

    target: str = Field(..., description="Target type expression text.")
    wrapping: DependencyWrapping = Field(default=DependencyWrapping.DIRECT)
    is_external: bool = Field(default=False, description="Dependency is provided outside the verified program.")
    field_name: Optional[str] = None


class DependencyList(BaseModel):
    """One list-style dependency declaration naming several targets."""

    model_config = ConfigDict(frozen=True)

    targets: Tuple[str, ...] = Field(..., description="Target type expression texts, in declared order.")
    is_external: bool = Field(default=False)


class MalformedExpression(BaseModel):
    """A type expression that could not be parsed and was left out of its declaration."""

    model_config = ConfigDict(frozen=True)

    text: str
    reason: Optional[str] = None


class TypeFragment(BaseModel):
    """One raw, partial declaration produced by the declaration-parsing layer.

    Several fragments may describe the same logical type; the collector merges them.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    type_parameters: Tuple[str, ...] = ()
    lifetime: Optional[Lifetime] = None
    is_external: bool = False
    is_background: bool = False
    suppress_lifetime_warnings: bool = False
    register_as_all: bool = False
    register_as: Tuple[str, ...] = ()
    conditions: Tuple[ConditionalMarker, ...] = ()
    skip_registration: Tuple[str, ...] = ()
    base_type: Optional[str] = None
    implements: Tuple[str, ...] = ()
    field_dependencies: Tuple[FieldDependency, ...] = ()
    dependency_lists: Tuple[DependencyList, ...] = ()
    location: Optional[SourceLocation] = None

    @property
    def identity(self) -> Identity:
        return Identity(name=self.name, type_parameters=self.type_parameters)


class DependencyEdge(BaseModel):
    """A reference from a declaration to a target contract or concrete type.

    Attributes:
        target: Target signature, possibly still wrapped (``Lazy<IFoo>``).
        wrapping: Declared wrapping mode.
        style: Field-style or list-style declaration.
        group: Index of the dependency list for list-style edges.
        is_external: Edge individually opted out of verification.
        origin: Declaration that physically declares the edge.
    """

    model_config = ConfigDict(frozen=True)

    target: ContractSignature
    wrapping: DependencyWrapping = DependencyWrapping.DIRECT
    style: DeclarationStyle = DeclarationStyle.FIELD
    group: Optional[int] = None
    is_external: bool = False
    origin: Identity


class PlainType(BaseModel):
    """A type without any service marker.

    Never registered, but still known: it may implement a contract somebody
    depends on, or sit in the middle of an inheritance chain.
    """

    model_config = ConfigDict(frozen=True)

    identity: Identity
    base_type: Optional[ContractSignature] = None
    implemented_contracts: Tuple[ContractSignature, ...] = ()
    malformed_expressions: Tuple[MalformedExpression, ...] = ()
    order: int = 0
    location: Optional[SourceLocation] = None


class ServiceDeclaration(BaseModel):
    """Complete, merged metadata of one service type."""

    model_config = ConfigDict(frozen=True)

    identity: Identity
    lifetime: Lifetime
    explicit_lifetime: bool = True
    is_external: bool = False
    is_conditional: bool = False
    conditions: Tuple[ConditionalMarker, ...] = ()
    is_background: bool = False
    suppress_lifetime_warnings: bool = False
    register_as_all: bool = False
    register_as: Tuple[ContractSignature, ...] = Field(
        default=(),
        description="Contracts named for selective registration, in declared order, duplicates kept.",
    )
    skip_registration: Tuple[ContractSignature, ...] = ()
    base_type: Optional[ContractSignature] = None
    implemented_contracts: Tuple[ContractSignature, ...] = ()
    dependency_edges: Tuple[DependencyEdge, ...] = ()
    malformed_expressions: Tuple[MalformedExpression, ...] = ()
    order: int = 0
    location: Optional[SourceLocation] = None


TypeRecord = Union[ServiceDeclaration, PlainType]


class Snapshot(BaseModel):
    """Immutable set of declarations verified in one pass."""

    model_config = ConfigDict(frozen=True)

    declarations: Tuple[ServiceDeclaration, ...] = ()
    plain_types: Tuple[PlainType, ...] = ()


class Resolution(BaseModel):
    """Outcome of looking a target signature up in the implementation index."""

    model_config = ConfigDict(frozen=True)

    target: ContractSignature
    candidates: Tuple[Identity, ...] = ()
    strategy: ResolutionStrategy = ResolutionStrategy.NONE

    @property
    def is_resolved(self) -> bool:
        return bool(self.candidates)


class Cycle(BaseModel):
    """Closed dependency path; the first member is repeated at the end."""

    model_config = ConfigDict(frozen=True)

    members: Tuple[Identity, ...] = Field(..., min_length=2)

    @property
    def root(self) -> Identity:
        return self.members[0]

    @property
    def path(self) -> str:
        return " -> ".join(member.display for member in self.members)

    @property
    def distinct_members(self) -> Tuple[Identity, ...]:
        return self.members[:-1]


class Diagnostic(BaseModel):
    """One finding reported by the verifier.

    Attributes:
        kind: Stable diagnostic code.
        severity: Effective severity after configuration is applied.
        subject: Declaration the finding is about.
        related: Display name of the related declaration or contract, if any.
        message: Human readable message.
        location: Location of the subject declaration, if known.
        order: Declaration order of the subject, used for stable sorting.
    """

    model_config = ConfigDict(frozen=True)

    kind: DiagnosticKind
    severity: Severity
    subject: Identity
    related: Optional[str] = None
    message: str
    location: Optional[SourceLocation] = None
    order: int = 0

    @property
    def dedupe_key(self) -> Tuple[DiagnosticKind, str, Optional[str]]:
        return (self.kind, self.subject.key, self.related)

    @property
    def sort_key(self) -> Tuple[int, str, str, str]:
        return (self.order, self.kind.code, self.related or "", self.message)

    def __str__(self) -> str:
        where = f"{self.location}: " if self.location else ""
        return f"{where}{self.severity} {self.kind.code}: {self.message}"
