"""Unit tests for FilterParser."""

import pytest

from querygate.application.query.filter_parser import FilterParser
from querygate.domain.exceptions import InvalidOperator, MalformedFilter, TypeMismatch
from querygate.domain.value_objects import (
    MATCH_ALL,
    And,
    Condition,
    Not,
    Operator,
    Or,
)


class TestParse:
    def test_none_and_empty(self, parser: FilterParser) -> None:
        assert parser.parse("posts", None) is None
        assert parser.parse("posts", {}) is MATCH_ALL

    def test_condition(self, parser: FilterParser) -> None:
        node = parser.parse("posts", {"status": {"eq": "published"}})
        assert node == Condition("status", Operator.EQ, "published")

    def test_scalar_shorthand_is_eq(self, parser: FilterParser) -> None:
        assert parser.parse("posts", {"status": "draft"}) == Condition(
            "status", Operator.EQ, "draft"
        )

    def test_list_shorthand_is_in(self, parser: FilterParser) -> None:
        assert parser.parse("posts", {"status": ["a", "b"]}) == Condition(
            "status", Operator.IN, ["a", "b"]
        )

    def test_sibling_keys_are_anded(self, parser: FilterParser) -> None:
        node = parser.parse("posts", {"status": "draft", "views": {"gt": 10}})
        assert node == And(
            (
                Condition("status", Operator.EQ, "draft"),
                Condition("views", Operator.GT, 10),
            )
        )

    def test_several_operators_on_one_field(self, parser: FilterParser) -> None:
        node = parser.parse("posts", {"views": {"gte": 1, "lte": 5}})
        assert isinstance(node, And)
        assert [c.operator for c in node.children] == [Operator.GTE, Operator.LTE]

    def test_logical_nodes(self, parser: FilterParser) -> None:
        node = parser.parse(
            "posts",
            {
                "OR": [{"status": "draft"}, {"status": "review"}],
                "NOT": {"views": {"eq": 0}},
            },
        )
        assert isinstance(node, And)
        either, negated = node.children
        assert isinstance(either, Or)
        assert len(either.children) == 2
        assert negated == Not(Condition("views", Operator.EQ, 0))

    def test_relation_path(self, parser: FilterParser) -> None:
        node = parser.parse("posts", {"category.name": {"eq": "Books"}})
        assert node == Condition("category.name", Operator.EQ, "Books")

    def test_nested_relation_object(self, parser: FilterParser) -> None:
        node = parser.parse("posts", {"category": {"name": {"eq": "Books"}}})
        assert node == Condition("category.name", Operator.EQ, "Books")

    def test_cast(self, parser: FilterParser) -> None:
        node = parser.parse("posts", {"title": {"gt": 10, "cast": "numeric"}})
        assert node == Condition("title", Operator.GT, 10, cast="numeric")

    def test_unsupported_cast(self, parser: FilterParser) -> None:
        with pytest.raises(MalformedFilter, match="cast"):
            parser.parse("posts", {"title": {"eq": "x", "cast": "blob"}})

    def test_is_not_null(self, parser: FilterParser) -> None:
        node = parser.parse("posts", {"title": {"isNotNull": True}})
        assert node == Condition("title", Operator.IS_NULL, False)

    def test_alias(self, parser: FilterParser) -> None:
        node = parser.parse("posts", {"status": {"ne": "draft"}})
        assert node == Condition("status", Operator.NEQ, "draft")

    def test_already_built_tree_is_validated(self, parser: FilterParser) -> None:
        node = Condition("status", Operator.EQ, "draft")
        assert parser.parse("posts", node) is node
        with pytest.raises(MalformedFilter):
            parser.parse("posts", Condition("nope", Operator.EQ, "x"))


class TestRejects:
    def test_unknown_field(self, parser: FilterParser) -> None:
        with pytest.raises(MalformedFilter, match="Unknown field"):
            parser.parse("posts", {"nope": "x"})

    def test_relation_is_not_a_field(self, parser: FilterParser) -> None:
        with pytest.raises(MalformedFilter):
            parser.parse("posts", {"author": "x"})

    def test_unknown_operator(self, parser: FilterParser) -> None:
        with pytest.raises(InvalidOperator, match="foo"):
            parser.parse("posts", {"title": {"foo": "x"}})

    def test_operator_not_applicable(self, parser: FilterParser) -> None:
        with pytest.raises(InvalidOperator):
            parser.parse("posts", {"views": {"like": "1%"}})

    def test_value_shape(self, parser: FilterParser) -> None:
        with pytest.raises(TypeMismatch):
            parser.parse("posts", {"status": {"in": "draft"}})

    def test_filter_must_be_object(self, parser: FilterParser) -> None:
        with pytest.raises(MalformedFilter):
            parser.parse("posts", ["status"])

    def test_logical_operands_must_be_objects(self, parser: FilterParser) -> None:
        with pytest.raises(MalformedFilter):
            parser.parse("posts", {"AND": {"status": "draft"}})
        with pytest.raises(MalformedFilter):
            parser.parse("posts", {"NOT": ["x"]})

    def test_depth_limit(self, registry) -> None:
        shallow = FilterParser(registry, max_depth=1)
        shallow.parse("posts", {"category.name": "x"})
        with pytest.raises(MalformedFilter, match="depth"):
            shallow.parse("posts", {"category.parent.name": "x"})

    def test_variable_values_checked_later(self, parser: FilterParser) -> None:
        node = parser.parse("posts", {"status": {"in": "$CURRENT_USER.statuses"}})
        assert node == Condition("status", Operator.IN, "$CURRENT_USER.statuses")


class TestRelConditions:
    def test_parsed_against_target(self, parser: FilterParser) -> None:
        parsed = parser.parse_rel_conditions("posts", {"comments": {"status": "approved"}})
        assert parsed == {"comments": Condition("status", Operator.EQ, "approved")}

    def test_unknown_relation(self, parser: FilterParser) -> None:
        with pytest.raises(MalformedFilter, match="Unknown relation"):
            parser.parse_rel_conditions("posts", {"likes": {"status": "x"}})

    def test_empty(self, parser: FilterParser) -> None:
        assert parser.parse_rel_conditions("posts", None) == {}
        assert parser.parse_rel_conditions("posts", {}) == {}
