"""Filter parser - nested filter objects into a validated filter tree."""

from collections.abc import Mapping
from typing import Any

from querygate.application.ports.schema_provider import SchemaProvider
from querygate.application.query.variables import contains_variable
from querygate.domain.exceptions import InvalidOperator, MalformedFilter
from querygate.domain.value_objects import (
    MATCH_ALL,
    And,
    Condition,
    FilterNode,
    MatchAll,
    MatchNone,
    Not,
    Operator,
    Or,
)
from querygate.domain.value_objects.field_type import CAST_FAMILIES, TypeFamily
from querygate.domain.value_objects.filter_node import conjoin, disjoin, negate
from querygate.domain.value_objects.operator import (
    ALIASES,
    check_applicable,
    check_value,
    parse_operator,
)

_CAST_KEY = "cast"
_NOT_NULL_KEY = "isNotNull"


def _is_operator_key(key: str) -> bool:
    if key in (_CAST_KEY, _NOT_NULL_KEY) or key in ALIASES:
        return True
    try:
        Operator(key)
    except ValueError:
        return False
    return True


class FilterParser:
    """Parses and validates filters against collection schemas.

    Accepted input::

        {"status": {"eq": "published"}}                 # condition
        {"status": "published"}                         # shorthand for eq
        {"status": ["a", "b"]}                          # shorthand for in
        {"AND": [...]} / {"OR": [...]} / {"NOT": {...}} # logical nodes
        {"category.name": {"eq": "Books"}}              # relation path
        {"category": {"name": {"eq": "Books"}}}         # nested relation
        {"price": {"gt": "10", "cast": "numeric"}}      # cast

    Several keys in one object are AND-ed. Unknown fields, unknown
    operators and operators that do not fit the field type are rejected.
    Value shapes are checked now unless the value holds a dynamic variable,
    in which case they are checked after resolution.
    """

    def __init__(self, schema: SchemaProvider, max_depth: int = 7) -> None:
        self._schema = schema
        self._max_depth = max_depth

    def parse(self, collection: str, raw: Mapping[str, Any] | FilterNode | None) -> FilterNode | None:
        """Parse raw input, or re-validate an already built tree."""
        if raw is None:
            return None
        if isinstance(raw, (Condition, And, Or, Not, MatchAll, MatchNone)):
            self.validate(collection, raw)
            return raw
        if not isinstance(raw, Mapping):
            raise MalformedFilter("Filter must be an object")
        if not raw:
            return MATCH_ALL
        return self._parse_object(collection, raw, prefix="")

    def parse_rel_conditions(
        self, collection: str, raw: Mapping[str, Any] | None
    ) -> dict[str, FilterNode]:
        """Parse a relation name -> filter map against each relation's target."""
        if not raw:
            return {}
        if not isinstance(raw, Mapping):
            raise MalformedFilter("relConditions must be an object")
        relations = self._schema.relationships(collection)
        parsed: dict[str, FilterNode] = {}
        for name, spec in raw.items():
            relation = relations.get(name)
            if relation is None:
                raise MalformedFilter(f"Unknown relation '{name}' on '{collection}'")
            node = self.parse(relation.target, spec)
            if node is not None:
                parsed[name] = node
        return parsed

    def validate(self, collection: str, node: FilterNode) -> None:
        """Check every leaf of a tree against the schema."""
        if isinstance(node, Condition):
            self._check_condition(collection, node)
        elif isinstance(node, (And, Or)):
            for child in node.children:
                self.validate(collection, child)
        elif isinstance(node, Not):
            self.validate(collection, node.child)

    def _parse_object(self, collection: str, obj: Mapping[str, Any], prefix: str) -> FilterNode:
        nodes: list[FilterNode] = []
        for key, value in obj.items():
            if not isinstance(key, str) or not key:
                raise MalformedFilter(f"Invalid filter key: {key!r}")
            if key == "AND":
                nodes.append(conjoin(*self._parse_list(collection, value, key, prefix)))
            elif key == "OR":
                nodes.append(disjoin(*self._parse_list(collection, value, key, prefix)))
            elif key == "NOT":
                if not isinstance(value, Mapping):
                    raise MalformedFilter("NOT expects a filter object")
                nodes.append(negate(self._parse_object(collection, value, prefix)))
            else:
                nodes.append(self._parse_field(collection, prefix + key, value))
        return conjoin(*nodes)

    def _parse_list(self, collection: str, value: Any, key: str, prefix: str) -> list[FilterNode]:
        if not isinstance(value, (list, tuple)):
            raise MalformedFilter(f"{key} expects a list of filter objects")
        nodes = []
        for item in value:
            if not isinstance(item, Mapping):
                raise MalformedFilter(f"{key} expects a list of filter objects")
            nodes.append(self._parse_object(collection, item, prefix))
        return nodes

    def _parse_field(self, collection: str, path: str, spec: Any) -> FilterNode:
        if isinstance(spec, Mapping):
            if spec and all(_is_operator_key(k) for k in spec):
                return self._parse_operators(collection, path, spec)
            if (
                spec
                and not any(_is_operator_key(k) for k in spec)
                and self._is_relation_path(collection, path)
            ):
                # nested object under a relation name
                self._check_relation_prefix(collection, path)
                return self._parse_object(collection, spec, prefix=path + ".")
            unknown = [k for k in spec if not _is_operator_key(k)]
            if unknown:
                raise InvalidOperator(f"Unknown operator '{unknown[0]}' on field '{path}'")
            raise MalformedFilter(f"No operator given for field '{path}'")
        if isinstance(spec, (list, tuple)):
            return self._build(collection, path, Operator.IN, list(spec), None)
        return self._build(collection, path, Operator.EQ, spec, None)

    def _parse_operators(self, collection: str, path: str, spec: Mapping[str, Any]) -> FilterNode:
        cast = spec.get(_CAST_KEY)
        if cast is not None and (not isinstance(cast, str) or cast.lower() not in CAST_FAMILIES):
            raise MalformedFilter(f"Unsupported cast '{cast}' on field '{path}'")
        cast = cast.lower() if cast else None
        nodes: list[FilterNode] = []
        for key, value in spec.items():
            if key == _CAST_KEY:
                continue
            if key == _NOT_NULL_KEY:
                if not isinstance(value, bool):
                    raise MalformedFilter(f"Operator 'isNotNull' on field '{path}' expects true or false")
                nodes.append(self._build(collection, path, Operator.IS_NULL, not value, cast))
                continue
            operator = parse_operator(key, path)
            nodes.append(self._build(collection, path, operator, value, cast))
        if not nodes:
            raise MalformedFilter(f"No operator given for field '{path}'")
        return conjoin(*nodes)

    def _build(
        self, collection: str, path: str, operator: Operator, value: Any, cast: str | None
    ) -> Condition:
        condition = Condition(path, operator, value, cast)
        self._check_condition(collection, condition)
        return condition

    def _check_condition(self, collection: str, cond: Condition) -> None:
        self._check_depth(cond.field)
        family = self._family(collection, cond)
        check_applicable(family, cond.operator, cond.field)
        if not contains_variable(cond.value):
            check_value(cond.operator, cond.value, cond.field)

    def _family(self, collection: str, cond: Condition) -> TypeFamily:
        field_type = self._schema.field_type(collection, cond.field)
        if cond.cast is None:
            return field_type.family
        if cond.cast not in CAST_FAMILIES:
            raise InvalidOperator(f"Unsupported cast '{cond.cast}' on field '{cond.field}'")
        return CAST_FAMILIES[cond.cast]

    def _check_depth(self, path: str) -> None:
        if path.count(".") > self._max_depth:
            raise MalformedFilter(
                f"Field path '{path}' exceeds the maximum relation depth of {self._max_depth}"
            )

    def _is_relation_path(self, collection: str, path: str) -> bool:
        current = collection
        for segment in path.split("."):
            relation = self._schema.relationships(current).get(segment)
            if relation is None:
                return False
            current = relation.target
        return True

    def _check_relation_prefix(self, collection: str, path: str) -> None:
        if path.count(".") + 1 > self._max_depth:
            raise MalformedFilter(
                f"Field path '{path}' exceeds the maximum relation depth of {self._max_depth}"
            )
        current = collection
        for segment in path.split("."):
            relation = self._schema.relationships(current).get(segment)
            if relation is None:
                raise MalformedFilter(f"'{segment}' is not a relation of '{current}'")
            current = relation.target
