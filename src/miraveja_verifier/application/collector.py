"""Application layer - Declaration collection."""

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from miraveja_verifier.domain import (
    ContractSignature,
    DeclarationError,
    DeclarationStyle,
    DependencyEdge,
    IDeclarationCollector,
    Identity,
    Lifetime,
    MalformedExpression,
    PlainType,
    ServiceDeclaration,
    Snapshot,
    TypeFragment,
)

logger = logging.getLogger(__name__)


class DeclarationCollector(IDeclarationCollector):
    """Normalizes scattered partial declarations into one declaration per type.

    Fragments sharing an identity are merged in first-appearance order. Types
    carrying any service or dependency marker become declarations; the rest are
    kept as plain types. A type expression that does not parse is left out of
    its record and listed in ``malformed_expressions`` instead.

    Attributes:
        _default_implicit_lifetime: Lifetime of declarations that state none.
    """

    def __init__(self, default_implicit_lifetime: Lifetime = Lifetime.SCOPED) -> None:
        self._default_implicit_lifetime = default_implicit_lifetime

    def collect(self, fragments: Iterable[TypeFragment]) -> Snapshot:
        """Merge fragments into a snapshot.

        Args:
            fragments: Raw fragments in source order.

        Returns:
            Snapshot with declarations and plain types in first-appearance order.

        Example:
            >>> snapshot = DeclarationCollector().collect([
            ...     TypeFragment(name="UserService", lifetime=Lifetime.SCOPED),
            ...     TypeFragment(name="UserService", implements=("IUserService",)),
            ... ])
            >>> len(snapshot.declarations)
            1
        """
        groups: Dict[str, List[TypeFragment]] = {}
        for fragment in fragments:
            groups.setdefault(fragment.identity.key, []).append(fragment)

        declarations: List[ServiceDeclaration] = []
        plain_types: List[PlainType] = []
        for order, group in enumerate(groups.values()):
            if any(self._is_marked(fragment) for fragment in group):
                declarations.append(self._merge_declaration(group, order))
            else:
                plain_types.append(self._merge_plain(group, order))

        logger.debug("Collected %d declarations and %d plain types", len(declarations), len(plain_types))
        return Snapshot(declarations=tuple(declarations), plain_types=tuple(plain_types))

    @staticmethod
    def _is_marked(fragment: TypeFragment) -> bool:
        return bool(
            fragment.lifetime is not None
            or fragment.conditions
            or fragment.is_background
            or fragment.is_external
            or fragment.register_as_all
            or fragment.register_as
            or fragment.skip_registration
            or fragment.field_dependencies
            or fragment.dependency_lists
        )

    def _merge_declaration(self, group: Sequence[TypeFragment], order: int) -> ServiceDeclaration:
        identity = group[0].identity
        parameters = identity.type_parameters
        malformed: List[MalformedExpression] = []

        lifetime: Optional[Lifetime] = None
        for fragment in group:
            if fragment.lifetime is None:
                continue
            if lifetime is None:
                lifetime = fragment.lifetime
            elif fragment.lifetime != lifetime:
                logger.debug(
                    "Ignoring lifetime %s on a later fragment of %s, keeping %s",
                    fragment.lifetime,
                    identity,
                    lifetime,
                )

        is_background = any(fragment.is_background for fragment in group)
        explicit_lifetime = lifetime is not None
        if lifetime is None:
            lifetime = Lifetime.SINGLETON if is_background else self._default_implicit_lifetime

        edges: List[DependencyEdge] = []
        list_index = 0
        for fragment in group:
            for dependency in fragment.field_dependencies:
                target = self._parse(dependency.target, parameters, identity, malformed)
                if target is None:
                    continue
                edges.append(
                    DependencyEdge(
                        target=target,
                        wrapping=dependency.wrapping,
                        style=DeclarationStyle.FIELD,
                        is_external=dependency.is_external,
                        origin=identity,
                    )
                )
            for dependency_list in fragment.dependency_lists:
                for text in dependency_list.targets:
                    target = self._parse(text, parameters, identity, malformed)
                    if target is None:
                        continue
                    edges.append(
                        DependencyEdge(
                            target=target,
                            style=DeclarationStyle.LIST,
                            group=list_index,
                            is_external=dependency_list.is_external,
                            origin=identity,
                        )
                    )
                list_index += 1

        register_as: List[ContractSignature] = []
        for fragment in group:
            for text in fragment.register_as:
                signature = self._parse(text, parameters, identity, malformed)
                if signature is not None:
                    register_as.append(signature)

        conditions = tuple(marker for fragment in group for marker in fragment.conditions)
        return ServiceDeclaration(
            identity=identity,
            lifetime=lifetime,
            explicit_lifetime=explicit_lifetime,
            is_external=any(fragment.is_external for fragment in group),
            is_conditional=bool(conditions),
            conditions=conditions,
            is_background=is_background,
            suppress_lifetime_warnings=any(fragment.suppress_lifetime_warnings for fragment in group),
            register_as_all=any(fragment.register_as_all for fragment in group),
            register_as=tuple(register_as),
            skip_registration=self._parse_all(
                (fragment.skip_registration for fragment in group), parameters, identity, malformed
            ),
            base_type=self._first_base_type(group, parameters, identity, malformed),
            implemented_contracts=self._parse_all(
                (fragment.implements for fragment in group), parameters, identity, malformed
            ),
            dependency_edges=tuple(edges),
            malformed_expressions=tuple(malformed),
            order=order,
            location=next((fragment.location for fragment in group if fragment.location), None),
        )

    def _merge_plain(self, group: Sequence[TypeFragment], order: int) -> PlainType:
        identity = group[0].identity
        parameters = identity.type_parameters
        malformed: List[MalformedExpression] = []
        return PlainType(
            identity=identity,
            base_type=self._first_base_type(group, parameters, identity, malformed),
            implemented_contracts=self._parse_all(
                (fragment.implements for fragment in group), parameters, identity, malformed
            ),
            malformed_expressions=tuple(malformed),
            order=order,
            location=next((fragment.location for fragment in group if fragment.location), None),
        )

    @staticmethod
    def _parse(
        text: str,
        parameters: Sequence[str],
        identity: Identity,
        malformed: List[MalformedExpression],
    ) -> Optional[ContractSignature]:
        try:
            return ContractSignature.parse(text, parameters)
        except DeclarationError as error:
            logger.warning("Skipping malformed type expression %r on %s: %s", text, identity, error.reason)
            malformed.append(MalformedExpression(text=text, reason=error.reason))
            return None

    @classmethod
    def _first_base_type(
        cls,
        group: Sequence[TypeFragment],
        parameters: Sequence[str],
        identity: Identity,
        malformed: List[MalformedExpression],
    ) -> Optional[ContractSignature]:
        for fragment in group:
            if fragment.base_type:
                return cls._parse(fragment.base_type, parameters, identity, malformed)
        return None

    @classmethod
    def _parse_all(
        cls,
        texts: Iterable[Sequence[str]],
        parameters: Sequence[str],
        identity: Identity,
        malformed: List[MalformedExpression],
    ) -> Tuple[ContractSignature, ...]:
        signatures: List[ContractSignature] = []
        for batch in texts:
            for text in batch:
                signature = cls._parse(text, parameters, identity, malformed)
                if signature is not None and signature not in signatures:
                    signatures.append(signature)
        return tuple(signatures)
