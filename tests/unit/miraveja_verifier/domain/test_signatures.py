"""Unit tests for type expressions, contract signatures and identities."""

import pytest

from miraveja_verifier.domain.exceptions import DeclarationError
from miraveja_verifier.domain.signatures import (
    ContractSignature,
    GenericType,
    Identity,
    LeafType,
    normalize,
    parse_type_expression,
    render_key,
)


class TestParseTypeExpression:
    """Test cases for parse_type_expression."""

    def test_parses_simple_name(self):
        """Test that a plain name becomes a non-parameter leaf."""
        expression = parse_type_expression("IUserService")

        assert expression == LeafType(name="IUserService")

    def test_parses_nested_generics(self):
        """Test that nested generic arguments are parsed into a tree."""
        expression = parse_type_expression("IRepository<List<User>>")

        assert isinstance(expression, GenericType)
        assert expression.name == "IRepository"
        assert expression.arguments[0] == GenericType(name="List", arguments=(LeafType(name="User"),))

    def test_marks_declared_type_parameters(self):
        """Test that names listed as type parameters become parameter leaves."""
        expression = parse_type_expression("IRepo<T>", ("T",))

        assert expression.arguments[0] == LeafType(name="T", is_parameter=True)

    def test_parses_array_suffix(self):
        """Test that ``X[]`` becomes an array of X."""
        expression = parse_type_expression("IHandler[]")

        assert isinstance(expression, GenericType)
        assert expression.display == "IHandler[]"
        assert expression.arguments == (LeafType(name="IHandler"),)

    def test_parses_unbound_argument_slots(self):
        """Test that ``ILogger<>`` has one open argument slot."""
        expression = parse_type_expression("ILogger<>")

        assert isinstance(expression, GenericType)
        assert len(expression.arguments) == 1
        assert expression.arguments[0].is_parameter

    def test_tolerates_whitespace(self):
        """Test that whitespace between tokens is ignored."""
        expression = parse_type_expression(" IMap< string ,  User > ")

        assert expression.display == "IMap<string, User>"

    @pytest.mark.parametrize("text", ["", "   ", "IRepo<User", "IRepo<User>>", "Foo Bar", "a$b", "<T>"])
    def test_rejects_malformed_text(self, text):
        """Test that malformed input raises DeclarationError."""
        with pytest.raises(DeclarationError) as exc_info:
            parse_type_expression(text)

        assert exc_info.value.text == text


class TestRenderKeyAndNormalize:
    """Test cases for lookup keys and generic normalization."""

    def test_key_numbers_parameters_by_first_appearance(self):
        """Test that parameter names do not leak into keys."""
        first = parse_type_expression("IMap<TKey, TValue>", ("TKey", "TValue"))
        second = parse_type_expression("IMap<K, V>", ("K", "V"))

        assert render_key(first) == "IMap<$0,$1>"
        assert render_key(first) == render_key(second)

    def test_key_keeps_repeated_parameters_apart_from_distinct_ones(self):
        """Test that ``IMap<T, T>`` and ``IMap<K, V>`` have different keys."""
        same = parse_type_expression("IMap<T, T>", ("T",))
        distinct = parse_type_expression("IMap<K, V>", ("K", "V"))

        assert render_key(same) == "IMap<$0,$0>"
        assert render_key(same) != render_key(distinct)

    def test_normalize_replaces_every_argument(self):
        """Test that normalization reduces arguments to placeholders."""
        expression = parse_type_expression("Repo<List<User>>")

        assert normalize(expression, set()).display == "Repo<$0>"

    def test_normalize_keeps_registered_open_generic_arguments(self):
        """Test that arguments whose open form is registered keep their structure."""
        expression = parse_type_expression("Repo<List<User>>")

        assert normalize(expression, {"List`1"}).display == "Repo<List<$0>>"

    def test_normalize_leaves_plain_names_untouched(self):
        """Test that a non-generic expression normalizes to itself."""
        expression = parse_type_expression("IClock")

        assert normalize(expression, set()) == expression


class TestContractSignature:
    """Test cases for ContractSignature."""

    def test_open_and_constructed_flags(self):
        """Test the open/constructed classification."""
        open_signature = ContractSignature.parse("IRepo<T>", ("T",))
        constructed = ContractSignature.parse("IRepo<User>")
        plain = ContractSignature.parse("IClock")

        assert open_signature.is_open and not open_signature.is_constructed
        assert constructed.is_constructed and not constructed.is_open
        assert not plain.is_generic and not plain.is_constructed

    def test_open_signatures_with_renamed_parameters_share_a_key(self):
        """Test that ``IRepo<T>`` and ``IRepo<TEntity>`` are the same contract."""
        first = ContractSignature.parse("IRepo<T>", ("T",))
        second = ContractSignature.parse("IRepo<TEntity>", ("TEntity",))

        assert first.key == second.key

    def test_constructed_signature_never_shares_the_open_key(self):
        """Test that ``IRepo<User>`` does not collide with ``IRepo<T>``."""
        assert ContractSignature.parse("IRepo<User>").key != ContractSignature.parse("IRepo<T>", ("T",)).key

    def test_names_and_arity(self):
        """Test name accessors on a qualified generic."""
        signature = ContractSignature.parse("My.Data.IRepo<User>")

        assert signature.base_name == "My.Data.IRepo"
        assert signature.simple_name == "IRepo"
        assert signature.arity == 1
        assert signature.identity_key == "My.Data.IRepo`1"

    def test_substituted_binds_parameters(self):
        """Test that substitution closes an open signature."""
        signature = ContractSignature.parse("IRepo<T>", ("T",))

        bound = signature.substituted({"T": LeafType(name="User")})

        assert bound.display == "IRepo<User>"
        assert bound.is_constructed

    def test_substituted_with_empty_mapping_returns_same_signature(self):
        """Test that an empty mapping is a no-op."""
        signature = ContractSignature.parse("IRepo<T>", ("T",))

        assert signature.substituted({}) is signature

    def test_str_is_display(self):
        """Test the string form."""
        assert str(ContractSignature.parse("IMap<string, User>")) == "IMap<string, User>"


class TestIdentity:
    """Test cases for Identity."""

    def test_non_generic_identity(self):
        """Test key and display of a non-generic type."""
        identity = Identity(name="UserService")

        assert identity.key == "UserService"
        assert identity.display == "UserService"
        assert identity.arity == 0

    def test_generic_identity(self):
        """Test key and display of a generic type."""
        identity = Identity(name="SqlRepo", type_parameters=("T",))

        assert identity.key == "SqlRepo`1"
        assert identity.display == "SqlRepo<T>"
        assert str(identity) == "SqlRepo<T>"

    def test_signature_of_generic_identity_is_open(self):
        """Test that an identity's own signature keeps its parameters open."""
        signature = Identity(name="SqlRepo", type_parameters=("T",)).signature()

        assert signature.is_open
        assert signature.key == "SqlRepo<$0>"
        assert signature.identity_key == "SqlRepo`1"

    def test_simple_name_strips_namespace(self):
        """Test simple name of a qualified identity."""
        assert Identity(name="My.App.UserService").simple_name == "UserService"
