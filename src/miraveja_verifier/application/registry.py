"""Application layer - Contract to implementation resolution."""

import logging
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from miraveja_verifier.application.arena import DeclarationArena
from miraveja_verifier.domain import (
    ContractSignature,
    IFallbackResolver,
    IImplementationLookup,
    Identity,
    Lifetime,
    Resolution,
    ResolutionStrategy,
    ServiceDeclaration,
    Snapshot,
    TypeRecord,
)

logger = logging.getLogger(__name__)


class ImplementationIndex(BaseModel):
    """Read-only lookup tables built once per snapshot.

    Also handed, unchanged, to the code-generation consumer.

    Attributes:
        exact: Exact signature key -> implementing identities.
        normalized: Generic-normalized signature key -> implementing identities.
        lifetimes: Identity key -> registered lifetime.
        open_forms: ``Name`arity`` of every registered open generic contract.
        open_contracts: Registered open contracts and their implementer, in declaration order.
    """

    model_config = ConfigDict(frozen=True)

    exact: Dict[str, Tuple[Identity, ...]] = Field(default_factory=dict)
    normalized: Dict[str, Tuple[Identity, ...]] = Field(default_factory=dict)
    lifetimes: Dict[str, Lifetime] = Field(default_factory=dict)
    open_forms: FrozenSet[str] = Field(default_factory=frozenset)
    open_contracts: Tuple[Tuple[ContractSignature, Identity], ...] = ()

    @classmethod
    def from_records(
        cls,
        records: Iterable[TypeRecord],
        arena: DeclarationArena,
    ) -> "ImplementationIndex":
        """Index every record under its own signature and each of its registered contracts.

        Args:
            records: Records to index, in declaration order.
            arena: Arena used to collect inherited contracts.

        Returns:
            The populated index.
        """
        registrations: List[Tuple[ContractSignature, Identity]] = []
        lifetimes: Dict[str, Lifetime] = {}
        for record in records:
            for contract in _registered_contracts(record, arena):
                registrations.append((contract, record.identity))
            lifetime = getattr(record, "lifetime", None)
            if lifetime is not None:
                lifetimes[record.identity.key] = lifetime

        open_registrations = [(contract, identity) for contract, identity in registrations if contract.is_open]
        open_forms = frozenset(contract.expression.open_form for contract, _ in open_registrations)

        exact: Dict[str, List[Identity]] = {}
        normalized: Dict[str, List[Identity]] = {}
        for contract, identity in registrations:
            _append_unique(exact, contract.key, identity)
        for contract, identity in open_registrations:
            _append_unique(normalized, contract.normalized(open_forms).key, identity)

        return cls(
            exact={key: tuple(identities) for key, identities in exact.items()},
            normalized={key: tuple(identities) for key, identities in normalized.items()},
            lifetimes=lifetimes,
            open_forms=open_forms,
            open_contracts=tuple(open_registrations),
        )

    def find(self, target: ContractSignature) -> Resolution:
        """Exact lookup, then generic-normalized lookup for constructed generics.

        The normalized stage tries the structure-preserving key first and then
        the flat key, where every top-level argument is a placeholder. The flat
        key keeps ``IRepo<List<User>>`` resolvable through ``IRepo<T>`` when some
        other type registers an open ``List<T>``.
        """
        exact = self.exact.get(target.key)
        if exact:
            return Resolution(target=target, candidates=exact, strategy=ResolutionStrategy.EXACT)
        if target.is_constructed:
            for key in self._normalized_keys(target):
                normalized = self.normalized.get(key)
                if normalized:
                    return Resolution(target=target, candidates=normalized, strategy=ResolutionStrategy.NORMALIZED)
        return Resolution(target=target)

    def _normalized_keys(self, target: ContractSignature) -> List[str]:
        keys = [target.normalized(self.open_forms).key]
        flat = target.normalized(frozenset()).key
        if flat not in keys:
            keys.append(flat)
        return keys


class NameArityFallback(IFallbackResolver):
    """Heuristic last resort: match open contracts by simple base name and arity.

    Only constructed generic targets are considered, and only open contracts can
    match, so a concrete ``IRepo<User>`` registration never satisfies an open
    ``IRepo<T>`` dependency. This is a heuristic, not a correctness guarantee.
    """

    def __init__(self, index: ImplementationIndex) -> None:
        self._open_contracts = index.open_contracts

    def resolve(self, target: ContractSignature) -> Tuple[Identity, ...]:
        if not target.is_constructed:
            return ()
        candidates: List[Identity] = []
        for contract, identity in self._open_contracts:
            if contract.simple_name == target.simple_name and contract.arity == target.arity:
                if identity not in candidates:
                    candidates.append(identity)
        return tuple(candidates)


class ImplementationRegistry(IImplementationLookup):
    """Resolves contracts to registered implementations.

    Lookup precedence is fixed: exact, then generic-normalized, then the
    fallback heuristic. Lookups are pure functions of the target and the
    frozen indices.

    Attributes:
        index: Index of registered declarations.
        unregistered_index: Index of unmarked types, used to tell "no
            implementation" apart from "implementation not registered".
    """

    def __init__(
        self,
        index: ImplementationIndex,
        unregistered_index: ImplementationIndex,
        fallback: Optional[IFallbackResolver] = None,
        unregistered_fallback: Optional[IFallbackResolver] = None,
    ) -> None:
        self.index = index
        self.unregistered_index = unregistered_index
        self._fallback = fallback
        self._unregistered_fallback = unregistered_fallback

    @classmethod
    def build(
        cls,
        snapshot: Snapshot,
        arena: DeclarationArena,
        fallback_enabled: bool = True,
    ) -> "ImplementationRegistry":
        """Build both indices for a snapshot.

        Args:
            snapshot: The snapshot to index.
            arena: Arena over the same snapshot.
            fallback_enabled: Whether to install the name/arity heuristic.

        Returns:
            A registry ready for lookups.
        """
        index = ImplementationIndex.from_records(snapshot.declarations, arena)
        unregistered_index = ImplementationIndex.from_records(snapshot.plain_types, arena)
        logger.debug(
            "Indexed %d exact and %d normalized contract keys",
            len(index.exact),
            len(index.normalized),
        )
        if not fallback_enabled:
            return cls(index, unregistered_index)
        return cls(index, unregistered_index, NameArityFallback(index), NameArityFallback(unregistered_index))

    def lookup(self, target: ContractSignature) -> Resolution:
        """Resolve a target to registered implementations.

        Args:
            target: Requested contract or concrete type.

        Returns:
            Resolution whose candidates may be empty.

        Example:
            >>> registry.lookup(ContractSignature.parse("IRepository<User>")).strategy
            <ResolutionStrategy.NORMALIZED: 'normalized'>
        """
        return self._lookup_in(self.index, self._fallback, target)

    def lookup_unregistered(self, target: ContractSignature) -> Resolution:
        """Resolve a target against unmarked types only."""
        return self._lookup_in(self.unregistered_index, self._unregistered_fallback, target)

    def lifetime_of(self, identity: Identity) -> Optional[Lifetime]:
        return self.index.lifetimes.get(identity.key)

    @staticmethod
    def _lookup_in(
        index: ImplementationIndex,
        fallback: Optional[IFallbackResolver],
        target: ContractSignature,
    ) -> Resolution:
        resolution = index.find(target)
        if resolution.is_resolved or fallback is None:
            return resolution
        candidates = fallback.resolve(target)
        if candidates:
            logger.debug("Resolved %s through the name/arity fallback to %s", target, candidates)
            return Resolution(target=target, candidates=candidates, strategy=ResolutionStrategy.FALLBACK)
        return resolution


def _registered_contracts(record: TypeRecord, arena: DeclarationArena) -> List[ContractSignature]:
    contracts = [record.identity.signature()]
    if isinstance(record, ServiceDeclaration) and record.register_as and not record.register_as_all:
        contracts.extend(
            selected.contract for selected in arena.selected_contracts(record) if selected.rejection is None
        )
        return contracts

    skipped = set()
    if getattr(record, "register_as_all", False):
        skipped = {contract.key for contract in record.skip_registration}
    for contract in arena.contracts(record):
        if contract.key in skipped:
            continue
        if contract not in contracts:
            contracts.append(contract)
    return contracts


def _append_unique(table: Dict[str, List[Identity]], key: str, identity: Identity) -> None:
    identities = table.setdefault(key, [])
    if identity not in identities:
        identities.append(identity)
