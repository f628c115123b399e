"""Application layer - Shared inheritance-chain traversal."""

import logging
from typing import Dict, Iterator, List, NamedTuple, Optional, Tuple

from miraveja_verifier.domain import (
    ContractSignature,
    DependencyEdge,
    DiagnosticKind,
    ServiceDeclaration,
    Snapshot,
    TypeExpression,
    TypeRecord,
)

logger = logging.getLogger(__name__)

ROOT_TYPE_NAMES = frozenset({"object", "Object", "System.Object"})


class AncestorLink(NamedTuple):
    """One step up an inheritance chain.

    Attributes:
        signature: Base type as seen from the descendant, type arguments substituted.
        record: The known ancestor type, or None when the base is not in the snapshot.
        bindings: Ancestor type parameter name -> bound type expression.
    """

    signature: ContractSignature
    record: Optional[TypeRecord]
    bindings: Dict[str, TypeExpression]


class SelectedContract(NamedTuple):
    """One type named by a selective registration.

    Attributes:
        contract: The named type.
        rejection: Why the type is not registered, or None when it is.
    """

    contract: ContractSignature
    rejection: Optional[DiagnosticKind]


class DeclarationArena:
    """Every known type of a snapshot, indexed by identity key.

    Single place that walks ``base_type`` chains. Used for contract collection,
    inherited dependency edges and inheritance lifetime checks.
    """

    def __init__(self, snapshot: Snapshot) -> None:
        self._records: Dict[str, TypeRecord] = {}
        for declaration in snapshot.declarations:
            self._records[declaration.identity.key] = declaration
        for plain_type in snapshot.plain_types:
            self._records.setdefault(plain_type.identity.key, plain_type)

    def get(self, identity_key: str) -> Optional[TypeRecord]:
        return self._records.get(identity_key)

    def declaration(self, identity_key: str) -> Optional[ServiceDeclaration]:
        record = self._records.get(identity_key)
        return record if isinstance(record, ServiceDeclaration) else None

    def ancestors(self, record: TypeRecord) -> Iterator[AncestorLink]:
        """Walk the base-type chain of a record, nearest ancestor first.

        Stops at the implicit universal root, at the first base type unknown to
        the snapshot (which is still yielded, without a record), and on
        malformed cyclic chains.
        """
        visited = {record.identity.key}
        bindings: Dict[str, TypeExpression] = {}
        base = record.base_type
        while base is not None:
            signature = base.substituted(bindings)
            if signature.base_name in ROOT_TYPE_NAMES:
                return
            key = signature.identity_key
            if key in visited:
                logger.debug("Inheritance chain of %s loops back to %s", record.identity, signature)
                return
            visited.add(key)

            ancestor = self._records.get(key)
            if ancestor is None:
                yield AncestorLink(signature, None, {})
                return
            bindings = dict(zip(ancestor.identity.type_parameters, signature.arguments))
            yield AncestorLink(signature, ancestor, bindings)
            base = ancestor.base_type

    def contracts(self, record: TypeRecord) -> Tuple[ContractSignature, ...]:
        """Contracts implemented by a record, directly or through its ancestors."""
        contracts: List[ContractSignature] = list(record.implemented_contracts)
        for link in self.ancestors(record):
            if link.record is None:
                continue
            for contract in link.record.implemented_contracts:
                inherited = contract.substituted(link.bindings)
                if inherited not in contracts:
                    contracts.append(inherited)
        return tuple(contracts)

    def effective_edges(self, declaration: ServiceDeclaration) -> Tuple[DependencyEdge, ...]:
        """Own dependency edges followed by the edges inherited from ancestor declarations."""
        edges: List[DependencyEdge] = list(declaration.dependency_edges)
        for link in self.ancestors(declaration):
            if not isinstance(link.record, ServiceDeclaration):
                continue
            for edge in link.record.dependency_edges:
                edges.append(edge.model_copy(update={"target": edge.target.substituted(link.bindings)}))
        return tuple(edges)

    def selected_contracts(self, declaration: ServiceDeclaration) -> List[SelectedContract]:
        """Classify the types named by ``register_as``, in declared order.

        A known type the declaration does not implement is not a contract. A
        contract named twice is registered once. A contract the declaration
        does not implement, directly or through its ancestors, is rejected.
        """
        implemented = {contract.key for contract in self.contracts(declaration)}
        seen = set()
        selected: List[SelectedContract] = []
        for contract in declaration.register_as:
            if contract.key not in implemented and self.get(contract.identity_key) is not None:
                rejection: Optional[DiagnosticKind] = DiagnosticKind.REGISTER_AS_NON_CONTRACT_TYPE
            elif contract.key in seen:
                rejection = DiagnosticKind.REGISTER_AS_DUPLICATE_CONTRACT
            elif contract.key not in implemented:
                rejection = DiagnosticKind.REGISTER_AS_CONTRACT_NOT_IMPLEMENTED
            else:
                rejection = None
            seen.add(contract.key)
            selected.append(SelectedContract(contract=contract, rejection=rejection))
        return selected
