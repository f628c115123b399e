"""Type expressions, contract signatures and service identities.

Type names are modeled as a small tree instead of raw strings:

    Repo<List<User>>  ->  GenericType("Repo", (GenericType("List", (LeafType("User"),)),))

Leaves that name a type parameter of the declaring type (``T`` in
``SqlRepo<T> : IRepo<T>``) carry ``is_parameter=True``. Lookup keys render
parameter leaves positionally (``$0``, ``$1``...) so that ``IRepo<T>`` and
``IRepo<TEntity>`` share a key while ``IRepo<User>`` never does.
"""

import itertools
import re
from typing import AbstractSet, Annotated, Dict, List, Literal, Mapping, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from miraveja_verifier.domain.exceptions import DeclarationError

ARRAY = "[]"
PLACEHOLDER_PREFIX = "$"

_TOKEN_PATTERN = re.compile(r"\s*(?:(?P<name>[A-Za-z_@][\w.`:@]*\??)|(?P<punct>[<>,\[\]]))")


class LeafType(BaseModel):
    """A non-generic type name, or a type parameter."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["leaf"] = "leaf"
    name: str = Field(..., description="Type name as written, may be namespace qualified.")
    is_parameter: bool = Field(default=False, description="Whether the name is a type parameter.")

    @property
    def display(self) -> str:
        return self.name

    def is_open(self) -> bool:
        return self.is_parameter


class GenericType(BaseModel):
    """A generic type applied to a list of type arguments."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["generic"] = "generic"
    name: str = Field(..., description="Generic type name without its argument list.")
    arguments: Tuple["TypeExpression", ...] = Field(..., description="Type arguments in order.")

    @property
    def display(self) -> str:
        if self.name == ARRAY:
            return f"{self.arguments[0].display}[]"
        return f"{self.name}<{', '.join(argument.display for argument in self.arguments)}>"

    @property
    def open_form(self) -> str:
        return f"{self.name}`{len(self.arguments)}"

    def is_open(self) -> bool:
        return any(argument.is_open() for argument in self.arguments)


TypeExpression = Annotated[Union[LeafType, GenericType], Field(discriminator="kind")]

GenericType.model_rebuild()


def render_key(expression: TypeExpression) -> str:
    """Render a lookup key, numbering parameter leaves by first appearance."""
    numbering: Dict[str, int] = {}

    def visit(node: TypeExpression) -> str:
        if isinstance(node, LeafType):
            if not node.is_parameter:
                return node.name
            if node.name not in numbering:
                numbering[node.name] = len(numbering)
            return f"{PLACEHOLDER_PREFIX}{numbering[node.name]}"
        inner = ",".join(visit(argument) for argument in node.arguments)
        return f"{node.name}<{inner}>"

    return visit(expression)


def normalize(expression: TypeExpression, open_forms: AbstractSet[str]) -> TypeExpression:
    """Reduce a generic expression to its arity-preserving open form.

    Every argument becomes a fresh positional placeholder, except arguments that
    are themselves generics whose open form is in ``open_forms``; those keep
    their structure and have their own arguments normalized the same way.

    Args:
        expression: The expression to normalize.
        open_forms: Open forms (``Name`arity``) of registered open contracts.

    Returns:
        The normalized expression. Leaves are returned unchanged.

    Example:
        >>> normalize(parse_type_expression("Repo<List<User>>"), set()).display
        'Repo<$0>'
        >>> normalize(parse_type_expression("Repo<List<User>>"), {"List`1"}).display
        'Repo<List<$0>>'
    """
    if isinstance(expression, LeafType):
        return expression

    counter = itertools.count()

    def transform(node: TypeExpression) -> TypeExpression:
        if isinstance(node, GenericType) and node.open_form in open_forms:
            return GenericType(name=node.name, arguments=tuple(transform(argument) for argument in node.arguments))
        return LeafType(name=f"{PLACEHOLDER_PREFIX}{next(counter)}", is_parameter=True)

    return GenericType(
        name=expression.name,
        arguments=tuple(transform(argument) for argument in expression.arguments),
    )


def substitute(expression: TypeExpression, mapping: Mapping[str, TypeExpression]) -> TypeExpression:
    """Replace type parameter leaves by the expressions bound to them."""
    if isinstance(expression, LeafType):
        if expression.is_parameter and expression.name in mapping:
            return mapping[expression.name]
        return expression
    return GenericType(
        name=expression.name,
        arguments=tuple(substitute(argument, mapping) for argument in expression.arguments),
    )


class _Parser:
    """Recursive-descent parser for type expression text."""

    def __init__(self, text: str, type_parameters: AbstractSet[str]) -> None:
        self._text = text
        self._type_parameters = type_parameters
        self._tokens = self._tokenize(text)
        self._position = 0

    def _tokenize(self, text: str) -> List[str]:
        tokens: List[str] = []
        position = 0
        stripped_end = len(text.rstrip())
        while position < stripped_end:
            match = _TOKEN_PATTERN.match(text, position)
            if not match:
                raise DeclarationError(text, f"unexpected character at position {position}")
            tokens.append(match.group("name") or match.group("punct"))
            position = match.end()
        return tokens

    def _peek(self) -> Optional[str]:
        if self._position < len(self._tokens):
            return self._tokens[self._position]
        return None

    def _take(self, expected: Optional[str] = None) -> str:
        token = self._peek()
        if token is None or (expected is not None and token != expected):
            raise DeclarationError(self._text, f"expected {expected or 'a type name'}, found {token!r}")
        self._position += 1
        return token

    def parse(self) -> TypeExpression:
        if not self._tokens:
            raise DeclarationError(self._text, "empty type expression")
        expression = self._parse_type(inside_arguments=False)
        if self._peek() is not None:
            raise DeclarationError(self._text, f"unexpected trailing token {self._peek()!r}")
        return expression

    def _parse_type(self, inside_arguments: bool) -> TypeExpression:
        token = self._peek()
        if inside_arguments and token in (",", ">"):
            # Unbound argument slot, as in ``ILogger<>`` or ``IMap<,>``.
            return LeafType(name="", is_parameter=True)
        if token is None or token in ("<", ">", ",", "[", "]"):
            raise DeclarationError(self._text, f"expected a type name, found {token!r}")
        name = self._take()

        expression: TypeExpression
        if self._peek() == "<":
            self._take("<")
            arguments = [self._parse_type(inside_arguments=True)]
            while self._peek() == ",":
                self._take(",")
                arguments.append(self._parse_type(inside_arguments=True))
            self._take(">")
            expression = GenericType(name=name, arguments=tuple(arguments))
        else:
            expression = LeafType(name=name, is_parameter=name in self._type_parameters)

        while self._peek() == "[":
            self._take("[")
            self._take("]")
            expression = GenericType(name=ARRAY, arguments=(expression,))
        return expression


def parse_type_expression(text: str, type_parameters: Sequence[str] = ()) -> TypeExpression:
    """Parse type expression text into a tree.

    Args:
        text: Text such as ``IRepository<List<User>>`` or ``IHandler[]``.
        type_parameters: Names that are type parameters of the declaring type.

    Returns:
        The parsed expression.

    Raises:
        DeclarationError: If the text is not a well-formed type expression.
    """
    return _Parser(text, frozenset(type_parameters)).parse()


class ContractSignature(BaseModel):
    """Canonical form of a (possibly generic) contract or concrete type."""

    model_config = ConfigDict(frozen=True)

    expression: TypeExpression = Field(..., description="Structured type expression.")

    @classmethod
    def parse(cls, text: str, type_parameters: Sequence[str] = ()) -> "ContractSignature":
        return cls(expression=parse_type_expression(text, type_parameters))

    @property
    def display(self) -> str:
        return self.expression.display

    @property
    def key(self) -> str:
        return render_key(self.expression)

    @property
    def base_name(self) -> str:
        return self.expression.name

    @property
    def simple_name(self) -> str:
        return self.base_name.rsplit(".", 1)[-1].rsplit("::", 1)[-1]

    @property
    def arity(self) -> int:
        if isinstance(self.expression, GenericType):
            return len(self.expression.arguments)
        return 0

    @property
    def identity_key(self) -> str:
        """Key of the declaration this signature names, ignoring its type arguments."""
        return Identity.make_key(self.base_name, self.arity)

    @property
    def is_generic(self) -> bool:
        return isinstance(self.expression, GenericType)

    @property
    def is_open(self) -> bool:
        return self.expression.is_open()

    @property
    def is_constructed(self) -> bool:
        return self.is_generic and not self.is_open

    def normalized(self, open_forms: AbstractSet[str]) -> "ContractSignature":
        return ContractSignature(expression=normalize(self.expression, open_forms))

    def substituted(self, mapping: Mapping[str, TypeExpression]) -> "ContractSignature":
        if not mapping:
            return self
        return ContractSignature(expression=substitute(self.expression, mapping))

    @property
    def arguments(self) -> Tuple[TypeExpression, ...]:
        if isinstance(self.expression, GenericType):
            return self.expression.arguments
        return ()

    def __str__(self) -> str:
        return self.display


class Identity(BaseModel):
    """Unique identity of a declared type: canonical name plus generic arity."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Canonical, possibly namespace-qualified type name.")
    type_parameters: Tuple[str, ...] = Field(default=(), description="Names of the type parameters.")

    @staticmethod
    def make_key(name: str, arity: int) -> str:
        return f"{name}`{arity}" if arity else name

    @property
    def arity(self) -> int:
        return len(self.type_parameters)

    @property
    def key(self) -> str:
        return self.make_key(self.name, self.arity)

    @property
    def display(self) -> str:
        if not self.type_parameters:
            return self.name
        return f"{self.name}<{', '.join(self.type_parameters)}>"

    @property
    def simple_name(self) -> str:
        return self.name.rsplit(".", 1)[-1]

    def signature(self) -> ContractSignature:
        """Signature naming this type itself, with its own type parameters open."""
        if not self.type_parameters:
            return ContractSignature(expression=LeafType(name=self.name))
        return ContractSignature(
            expression=GenericType(
                name=self.name,
                arguments=tuple(LeafType(name=parameter, is_parameter=True) for parameter in self.type_parameters),
            )
        )

    def __str__(self) -> str:
        return self.display
