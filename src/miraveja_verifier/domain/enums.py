from enum import Enum
from typing import Any


class Lifetime(str, Enum):
    """Declared lifetime of a service.

    Attributes:
        SINGLETON: Single instance shared across entire application.
        TRANSIENT: New instance created on each resolution.
        SCOPED: Single instance per scope (e.g., per HTTP request).
    """

    TRANSIENT = "transient"
    SCOPED = "scoped"
    SINGLETON = "singleton"

    def __str__(self) -> str:
        return self.value

    @property
    def display(self) -> str:
        return self.value.capitalize()


class Severity(str, Enum):
    """Severity attached to an emitted diagnostic."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    HIDDEN = "hidden"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: Any) -> "Severity":
        """Parse a severity, falling back to WARNING for anything unrecognized.

        Args:
            value: A Severity, or its name in any case.

        Returns:
            The parsed severity.
        """
        if isinstance(value, Severity):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.WARNING


class DependencyWrapping(str, Enum):
    """How a dependency edge refers to its target.

    Attributes:
        DIRECT: Plain reference.
        COLLECTION: "Has many" reference, exempt from cycle detection.
        DEFERRED: Lazily resolved reference, still lifetime-checked.
    """

    DIRECT = "direct"
    COLLECTION = "collection"
    DEFERRED = "deferred"

    def __str__(self) -> str:
        return self.value


class DeclarationStyle(str, Enum):
    """Surface style a dependency was declared with."""

    FIELD = "field"
    LIST = "list"

    def __str__(self) -> str:
        return self.value


class ResolutionStrategy(str, Enum):
    """Which lookup stage produced a set of candidates."""

    EXACT = "exact"
    NORMALIZED = "normalized"
    FALLBACK = "fallback"
    NONE = "none"

    def __str__(self) -> str:
        return self.value


class DiagnosticKind(str, Enum):
    """Stable diagnostic codes."""

    NO_IMPLEMENTATION_FOUND = "IOC001"
    IMPLEMENTATION_EXISTS_BUT_UNREGISTERED = "IOC002"
    CIRCULAR_DEPENDENCY = "IOC003"
    REGISTER_AS_ALL_REQUIRES_LIFETIME = "IOC004"
    UNNECESSARY_EXCLUSION_MARKER = "IOC005"
    DUPLICATE_DEPENDENCY_DECLARATION = "IOC006"
    CONFLICTING_DECLARATION_STYLES = "IOC007"
    DUPLICATE_WITHIN_ONE_DECLARATION = "IOC008"
    EXCLUSION_OF_UNIMPLEMENTED_CONTRACT = "IOC009"
    SINGLETON_DEPENDS_ON_SCOPED = "IOC012"
    SINGLETON_DEPENDS_ON_TRANSIENT = "IOC013"
    BACKGROUND_SERVICE_WRONG_LIFETIME = "IOC014"
    INHERITANCE_CHAIN_LIFETIME_VIOLATION = "IOC015"
    CONDITIONAL_CONFLICTING_CONDITIONS = "IOC020"
    CONDITIONAL_MISSING_LIFETIME = "IOC021"
    CONDITIONAL_EMPTY_CONDITIONS = "IOC022"
    CONDITIONAL_CONFIG_VALUE_WITHOUT_COMPARISON = "IOC023"
    CONDITIONAL_COMPARISON_WITHOUT_CONFIG_VALUE = "IOC024"
    CONDITIONAL_EMPTY_CONFIG_KEY = "IOC025"
    CONDITIONAL_MULTIPLE_MARKERS = "IOC026"
    REGISTER_AS_REQUIRES_SERVICE = "IOC028"
    REGISTER_AS_CONTRACT_NOT_IMPLEMENTED = "IOC029"
    REGISTER_AS_DUPLICATE_CONTRACT = "IOC030"
    REGISTER_AS_NON_CONTRACT_TYPE = "IOC031"
    MALFORMED_TYPE_EXPRESSION = "IOC995"
    INTERNAL_ERROR = "IOC996"

    def __str__(self) -> str:
        return self.value

    @property
    def code(self) -> str:
        return self.value

    @property
    def stable_name(self) -> str:
        """Kebab-case name, e.g. ``no-implementation-found``."""
        return self.name.lower().replace("_", "-")

    @classmethod
    def parse(cls, value: Any) -> "DiagnosticKind":
        """Accept the code (``IOC012``), the member name or the stable name (``singleton-depends-on-scoped``)."""
        if isinstance(value, DiagnosticKind):
            return value
        text = str(value).strip()
        try:
            return cls(text.upper())
        except ValueError:
            return cls[text.upper().replace("-", "_")]
