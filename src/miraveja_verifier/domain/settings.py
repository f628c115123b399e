import logging
from typing import Any, Dict, FrozenSet, Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from miraveja_verifier.domain.catalog import get_descriptor
from miraveja_verifier.domain.enums import DiagnosticKind, Lifetime, Severity

logger = logging.getLogger(__name__)

DEFAULT_FRAMEWORK_TYPES: Tuple[str, ...] = (
    "ILogger",
    "ILogger<>",
    "IConfiguration",
    "IConfigurationRoot",
    "IConfigurationSection",
    "IOptions<>",
    "IOptionsMonitor<>",
    "IOptionsSnapshot<>",
    "HttpClient",
    "IServiceProvider",
    "IServiceScopeFactory",
    "IServiceScope",
    "IHostEnvironment",
    "IHostApplicationLifetime",
    "IHttpContextAccessor",
    "IMemoryCache",
    "IDistributedCache",
    "IMediator",
    "ISender",
    "IPublisher",
    "IHostedService",
    "IFileProvider",
    "IChangeToken",
)

DEFAULT_COLLECTION_WRAPPERS: Tuple[str, ...] = (
    "IEnumerable",
    "IList",
    "ICollection",
    "IReadOnlyList",
    "IReadOnlyCollection",
    "List",
    "[]",
)

DEFAULT_DEFERRED_WRAPPERS: Tuple[str, ...] = ("Lazy", "Func")

LIFETIME_KINDS: FrozenSet[DiagnosticKind] = frozenset(
    {
        DiagnosticKind.SINGLETON_DEPENDS_ON_SCOPED,
        DiagnosticKind.SINGLETON_DEPENDS_ON_TRANSIENT,
        DiagnosticKind.BACKGROUND_SERVICE_WRONG_LIFETIME,
        DiagnosticKind.INHERITANCE_CHAIN_LIFETIME_VIOLATION,
    }
)


class VerifierSettings(BaseSettings):
    """Configuration of one verification pass.

    Values can be passed directly or read from ``MIRAVEJA_VERIFIER_*`` environment
    variables. Unparsable severities fall back to ``Severity.WARNING`` without error.

    Example:
        >>> settings = VerifierSettings(lifetime_validation_severity="warning")
        >>> settings.severity_for(DiagnosticKind.SINGLETON_DEPENDS_ON_SCOPED)
        <Severity.WARNING: 'warning'>
    """

    model_config = SettingsConfigDict(env_prefix="MIRAVEJA_VERIFIER_", frozen=True, extra="ignore")

    diagnostics_enabled: bool = Field(default=True, description="Master switch for all diagnostics.")
    lifetime_validation_enabled: bool = Field(default=True, description="Run lifetime compatibility checks.")
    no_implementation_severity: Severity = Field(default=Severity.WARNING)
    unregistered_implementation_severity: Severity = Field(default=Severity.WARNING)
    lifetime_validation_severity: Severity = Field(default=Severity.ERROR)
    severity_overrides: Dict[DiagnosticKind, Severity] = Field(
        default_factory=dict,
        description="Per-kind severities, taking precedence over every other option.",
    )
    disabled_kinds: FrozenSet[DiagnosticKind] = Field(
        default_factory=frozenset,
        description="Kinds dropped from the output.",
    )
    default_implicit_lifetime: Lifetime = Field(
        default=Lifetime.SCOPED,
        description="Lifetime of declarations that only carry dependency markers.",
    )
    framework_types: Tuple[str, ...] = Field(default=DEFAULT_FRAMEWORK_TYPES)
    collection_wrappers: Tuple[str, ...] = Field(default=DEFAULT_COLLECTION_WRAPPERS)
    deferred_wrappers: Tuple[str, ...] = Field(default=DEFAULT_DEFERRED_WRAPPERS)
    fallback_resolution_enabled: bool = Field(
        default=True,
        description="Enable the name/arity heuristic as the last resolution stage.",
    )
    parallel_validation: bool = Field(
        default=True,
        description="Run cycle detection and lifetime validation on worker threads.",
    )

    @field_validator(
        "no_implementation_severity",
        "unregistered_implementation_severity",
        "lifetime_validation_severity",
        mode="before",
    )
    @classmethod
    def _parse_severity(cls, value: Any) -> Severity:
        return Severity.parse(value)

    @field_validator("severity_overrides", mode="before")
    @classmethod
    def _parse_overrides(cls, value: Any) -> Dict[DiagnosticKind, Severity]:
        if not value:
            return {}
        overrides: Dict[DiagnosticKind, Severity] = {}
        for raw_kind, raw_severity in dict(value).items():
            try:
                kind = DiagnosticKind.parse(raw_kind)
            except KeyError:
                logger.debug("Ignoring severity override for unknown diagnostic kind %r", raw_kind)
                continue
            overrides[kind] = Severity.parse(raw_severity)
        return overrides

    @field_validator("disabled_kinds", mode="before")
    @classmethod
    def _parse_disabled_kinds(cls, value: Any) -> FrozenSet[DiagnosticKind]:
        if not value:
            return frozenset()
        if isinstance(value, str):
            value = [item for item in value.split(",") if item.strip()]
        kinds = set()
        for raw_kind in value:
            try:
                kinds.add(DiagnosticKind.parse(raw_kind))
            except KeyError:
                logger.debug("Ignoring unknown disabled diagnostic kind %r", raw_kind)
        return frozenset(kinds)

    @field_validator("framework_types", "collection_wrappers", "deferred_wrappers", mode="before")
    @classmethod
    def _split_names(cls, value: Any) -> Any:
        if isinstance(value, str):
            return tuple(item.strip() for item in value.split(",") if item.strip())
        return value

    def severity_for(self, kind: DiagnosticKind) -> Severity:
        """Effective severity of a kind: overrides, then named options, then the kind default."""
        if kind in self.severity_overrides:
            return self.severity_overrides[kind]
        if kind == DiagnosticKind.NO_IMPLEMENTATION_FOUND:
            return self.no_implementation_severity
        if kind == DiagnosticKind.IMPLEMENTATION_EXISTS_BUT_UNREGISTERED:
            return self.unregistered_implementation_severity
        if kind in (DiagnosticKind.SINGLETON_DEPENDS_ON_SCOPED, DiagnosticKind.INHERITANCE_CHAIN_LIFETIME_VIOLATION):
            return self.lifetime_validation_severity
        return get_descriptor(kind).default_severity

    def is_enabled(self, kind: DiagnosticKind) -> bool:
        if not self.diagnostics_enabled or kind in self.disabled_kinds:
            return False
        if kind in LIFETIME_KINDS and not self.lifetime_validation_enabled:
            return False
        return True
