from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Iterable, List, Optional, Tuple

from miraveja_verifier.domain.enums import Lifetime
from miraveja_verifier.domain.models import Diagnostic, Resolution, Snapshot, TypeFragment
from miraveja_verifier.domain.signatures import ContractSignature, Identity

if TYPE_CHECKING:
    from miraveja_verifier.application.context import VerificationContext


class IDeclarationCollector(ABC):
    """Abstract interface for turning raw fragments into a snapshot."""

    @abstractmethod
    def collect(self, fragments: Iterable[TypeFragment]) -> Snapshot:
        """Merge fragments sharing an identity into declarations.

        Args:
            fragments: Raw fragments in source order.

        Returns:
            Snapshot holding declarations and unmarked types, in stable order.
        """


class IImplementationLookup(ABC):
    """Abstract interface for contract-to-implementation resolution."""

    @abstractmethod
    def lookup(self, target: ContractSignature) -> Resolution:
        """Resolve a target signature to candidate implementations.

        Args:
            target: The requested contract or concrete type.

        Returns:
            Zero, one or many candidates and the stage that produced them.
        """

    @abstractmethod
    def lifetime_of(self, identity: Identity) -> Optional[Lifetime]:
        """Return the lifetime registered for an identity, if any."""


class IFallbackResolver(ABC):
    """Abstract interface for the last-resort heuristic resolution stage.

    Kept apart from exact and normalized resolution so that it can be
    disabled or replaced without touching them.
    """

    @abstractmethod
    def resolve(self, target: ContractSignature) -> Tuple[Identity, ...]:
        """Return heuristic candidates for a constructed generic target, in declaration order."""


class IValidator(ABC):
    """Abstract interface for one verification stage producing diagnostics."""

    @abstractmethod
    def validate(self, context: "VerificationContext") -> List[Diagnostic]:
        """Run the stage over a snapshot.

        Args:
            context: Per-pass, read-only verification context.

        Returns:
            Diagnostics found by this stage, in discovery order.
        """
