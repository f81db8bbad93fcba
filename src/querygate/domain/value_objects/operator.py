"""Filter operator catalogue.

Every operator has exactly one ``OperatorSpec`` describing the shape its
value must have and the field type families it applies to. ``validate`` is
the single entry point used by the parser and by the variable resolver
after tokens have been replaced with literals.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from enum import StrEnum
from typing import Any
from uuid import UUID

from querygate.domain.exceptions import InvalidOperator, TypeMismatch
from querygate.domain.value_objects.field_type import FieldType, TypeFamily


class Operator(StrEnum):
    """Supported filter operators."""

    # Comparison
    EQ = "eq"
    NEQ = "neq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    # List
    IN = "in"
    NIN = "nin"
    # String
    LIKE = "like"
    NOT_LIKE = "notLike"
    ILIKE = "iLike"
    NOT_ILIKE = "notILike"
    CONTAINS = "contains"
    ICONTAINS = "icontains"
    NCONTAINS = "ncontains"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    NSTARTS_WITH = "nstartsWith"
    NENDS_WITH = "nendsWith"
    REGEX = "regex"
    # Range
    BETWEEN = "between"
    NBETWEEN = "nbetween"
    # Null / empty
    IS_NULL = "isNull"
    EMPTY = "empty"
    # Array
    ARRAY_CONTAINS = "arraycontains"
    ARRAY_CONTAINS_ANY = "arraycontainsany"
    ARRAY_CONTAINED = "arraycontained"
    ARRAY_LENGTH = "arraylength"
    ARRAY_EMPTY = "arrayempty"
    # JSON
    JSON_CONTAINS = "jsoncontains"
    JSON_HAS_KEY = "jsonhaskey"
    JSON_HAS_ANY_KEYS = "jsonhasanykeys"
    JSON_HAS_ALL_KEYS = "jsonhasallkeys"
    JSON_PATH = "jsonpath"
    # Geospatial
    WITHIN = "within"
    CONTAINS_GEO = "containsGEO"
    INTERSECTS = "intersects"
    NINTERSECTS = "nIntersects"
    OVERLAPS = "overlaps"
    DWITHIN = "dwithin"


class ValueShape(StrEnum):
    """Value shapes an operator can require."""

    SCALAR = "scalar"
    ORDERED = "ordered"
    SCALAR_LIST = "scalar_list"
    PAIR = "pair"
    STRING = "string"
    BOOL = "bool"
    NON_NEGATIVE_INT = "non_negative_int"
    JSON_VALUE = "json_value"
    STRING_LIST = "string_list"
    GEOMETRY = "geometry"
    GEO_DISTANCE = "geo_distance"


@dataclass(frozen=True)
class OperatorSpec:
    """Value contract of a single operator."""

    shape: ValueShape
    families: frozenset[TypeFamily]


_SCALAR_TYPES = (str, int, float, Decimal, bool, datetime, date, time, UUID)
_GEOMETRY_TYPES = frozenset(
    {"Point", "LineString", "Polygon", "MultiPoint", "MultiLineString", "MultiPolygon"}
)

_ANY = frozenset(TypeFamily)
_SCALARS = frozenset(
    {
        TypeFamily.TEXT,
        TypeFamily.IDENTIFIER,
        TypeFamily.NUMERIC,
        TypeFamily.BOOLEAN,
        TypeFamily.TEMPORAL,
    }
)
_ORDERED = frozenset({TypeFamily.TEXT, TypeFamily.NUMERIC, TypeFamily.TEMPORAL})
_TEXT = frozenset({TypeFamily.TEXT})
_ARRAY = frozenset({TypeFamily.ARRAY})
_JSON = frozenset({TypeFamily.JSON})
_GEO = frozenset({TypeFamily.GEOMETRY})

OPERATORS: dict[Operator, OperatorSpec] = {
    Operator.EQ: OperatorSpec(ValueShape.SCALAR, _SCALARS),
    Operator.NEQ: OperatorSpec(ValueShape.SCALAR, _SCALARS),
    Operator.GT: OperatorSpec(ValueShape.ORDERED, _ORDERED),
    Operator.GTE: OperatorSpec(ValueShape.ORDERED, _ORDERED),
    Operator.LT: OperatorSpec(ValueShape.ORDERED, _ORDERED),
    Operator.LTE: OperatorSpec(ValueShape.ORDERED, _ORDERED),
    Operator.IN: OperatorSpec(ValueShape.SCALAR_LIST, _SCALARS),
    Operator.NIN: OperatorSpec(ValueShape.SCALAR_LIST, _SCALARS),
    Operator.LIKE: OperatorSpec(ValueShape.STRING, _TEXT),
    Operator.NOT_LIKE: OperatorSpec(ValueShape.STRING, _TEXT),
    Operator.ILIKE: OperatorSpec(ValueShape.STRING, _TEXT),
    Operator.NOT_ILIKE: OperatorSpec(ValueShape.STRING, _TEXT),
    Operator.CONTAINS: OperatorSpec(ValueShape.STRING, _TEXT),
    Operator.ICONTAINS: OperatorSpec(ValueShape.STRING, _TEXT),
    Operator.NCONTAINS: OperatorSpec(ValueShape.STRING, _TEXT),
    Operator.STARTS_WITH: OperatorSpec(ValueShape.STRING, _TEXT),
    Operator.ENDS_WITH: OperatorSpec(ValueShape.STRING, _TEXT),
    Operator.NSTARTS_WITH: OperatorSpec(ValueShape.STRING, _TEXT),
    Operator.NENDS_WITH: OperatorSpec(ValueShape.STRING, _TEXT),
    Operator.REGEX: OperatorSpec(ValueShape.STRING, _TEXT),
    Operator.BETWEEN: OperatorSpec(ValueShape.PAIR, _ORDERED),
    Operator.NBETWEEN: OperatorSpec(ValueShape.PAIR, _ORDERED),
    Operator.IS_NULL: OperatorSpec(ValueShape.BOOL, _ANY),
    Operator.EMPTY: OperatorSpec(ValueShape.BOOL, _TEXT | _ARRAY | _JSON),
    Operator.ARRAY_CONTAINS: OperatorSpec(ValueShape.SCALAR_LIST, _ARRAY),
    Operator.ARRAY_CONTAINS_ANY: OperatorSpec(ValueShape.SCALAR_LIST, _ARRAY),
    Operator.ARRAY_CONTAINED: OperatorSpec(ValueShape.SCALAR_LIST, _ARRAY),
    Operator.ARRAY_LENGTH: OperatorSpec(ValueShape.NON_NEGATIVE_INT, _ARRAY),
    Operator.ARRAY_EMPTY: OperatorSpec(ValueShape.BOOL, _ARRAY),
    Operator.JSON_CONTAINS: OperatorSpec(ValueShape.JSON_VALUE, _JSON),
    Operator.JSON_HAS_KEY: OperatorSpec(ValueShape.STRING, _JSON),
    Operator.JSON_HAS_ANY_KEYS: OperatorSpec(ValueShape.STRING_LIST, _JSON),
    Operator.JSON_HAS_ALL_KEYS: OperatorSpec(ValueShape.STRING_LIST, _JSON),
    Operator.JSON_PATH: OperatorSpec(ValueShape.STRING, _JSON),
    Operator.WITHIN: OperatorSpec(ValueShape.GEOMETRY, _GEO),
    Operator.CONTAINS_GEO: OperatorSpec(ValueShape.GEOMETRY, _GEO),
    Operator.INTERSECTS: OperatorSpec(ValueShape.GEOMETRY, _GEO),
    Operator.NINTERSECTS: OperatorSpec(ValueShape.GEOMETRY, _GEO),
    Operator.OVERLAPS: OperatorSpec(ValueShape.GEOMETRY, _GEO),
    Operator.DWITHIN: OperatorSpec(ValueShape.GEO_DISTANCE, _GEO),
}

_unmapped = set(Operator) - set(OPERATORS)
if _unmapped:
    raise RuntimeError(f"Operators without a spec: {sorted(_unmapped)}")

# Alternative spellings accepted on input
ALIASES: dict[str, Operator] = {
    "ne": Operator.NEQ,
    "notIn": Operator.NIN,
    "ilike": Operator.ILIKE,
    "notBetween": Operator.NBETWEEN,
    "startswith": Operator.STARTS_WITH,
    "startsWiths": Operator.STARTS_WITH,
    "endswith": Operator.ENDS_WITH,
    "endsWiths": Operator.ENDS_WITH,
    "nstartsWiths": Operator.NSTARTS_WITH,
    "nendsWiths": Operator.NENDS_WITH,
    "arrayoverlap": Operator.ARRAY_CONTAINS_ANY,
    "jsonbContains": Operator.JSON_CONTAINS,
    "jsonbHasKey": Operator.JSON_HAS_KEY,
    "jsonbHasAnyKeys": Operator.JSON_HAS_ANY_KEYS,
    "jsonbHasAllKeys": Operator.JSON_HAS_ALL_KEYS,
    "jsonbPathExists": Operator.JSON_PATH,
}


def parse_operator(name: str, field: str = "") -> Operator:
    """Return the canonical operator for a name or alias."""
    try:
        return Operator(name)
    except ValueError:
        pass
    if name in ALIASES:
        return ALIASES[name]
    where = f" on field '{field}'" if field else ""
    raise InvalidOperator(f"Unknown operator '{name}'{where}")


def _is_scalar(value: Any) -> bool:
    return isinstance(value, _SCALAR_TYPES)


def _is_geometry(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and value.get("type") in _GEOMETRY_TYPES
        and isinstance(value.get("coordinates"), list)
    )


def _check_scalar(value: Any) -> str | None:
    return None if _is_scalar(value) else "expects a single scalar value"


def _check_ordered(value: Any) -> str | None:
    if _is_scalar(value) and not isinstance(value, bool):
        return None
    return "expects a comparable scalar value"


def _check_scalar_list(value: Any) -> str | None:
    if isinstance(value, (list, tuple)) and all(_is_scalar(v) for v in value):
        return None
    return "expects a list of scalar values"


def _check_pair(value: Any) -> str | None:
    if (
        isinstance(value, (list, tuple))
        and len(value) == 2
        and all(_check_ordered(v) is None for v in value)
    ):
        return None
    return "expects a two-element list [from, to]"


def _check_string(value: Any) -> str | None:
    return None if isinstance(value, str) else "expects a string"


def _check_bool(value: Any) -> str | None:
    return None if isinstance(value, bool) else "expects true or false"


def _check_non_negative_int(value: Any) -> str | None:
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return None
    return "expects a non-negative integer"


def _check_json_value(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list, str, int, float, bool)):
        return None
    return "expects a JSON value"


def _check_string_list(value: Any) -> str | None:
    if isinstance(value, (list, tuple)) and value and all(isinstance(v, str) for v in value):
        return None
    return "expects a non-empty list of strings"


def _check_geometry(value: Any) -> str | None:
    return None if _is_geometry(value) else "expects a GeoJSON geometry"


def _check_geo_distance(value: Any) -> str | None:
    if isinstance(value, dict) and _is_geometry(value.get("geometry")):
        distance = value.get("distance")
        if isinstance(distance, (int, float)) and not isinstance(distance, bool) and distance >= 0:
            return None
    return "expects {geometry: <GeoJSON>, distance: <number>}"


_SHAPE_CHECKS: dict[ValueShape, Callable[[Any], str | None]] = {
    ValueShape.SCALAR: _check_scalar,
    ValueShape.ORDERED: _check_ordered,
    ValueShape.SCALAR_LIST: _check_scalar_list,
    ValueShape.PAIR: _check_pair,
    ValueShape.STRING: _check_string,
    ValueShape.BOOL: _check_bool,
    ValueShape.NON_NEGATIVE_INT: _check_non_negative_int,
    ValueShape.JSON_VALUE: _check_json_value,
    ValueShape.STRING_LIST: _check_string_list,
    ValueShape.GEOMETRY: _check_geometry,
    ValueShape.GEO_DISTANCE: _check_geo_distance,
}


def check_applicable(family: TypeFamily, operator: Operator, field: str = "") -> None:
    """Raise InvalidOperator if the operator cannot be used on the family."""
    if family not in OPERATORS[operator].families:
        raise InvalidOperator(
            f"Operator '{operator}' is not supported on {family} field '{field}'"
        )


def check_value(operator: Operator, value: Any, field: str = "") -> None:
    """Raise TypeMismatch if the value does not fit the operator's shape."""
    problem = _SHAPE_CHECKS[OPERATORS[operator].shape](value)
    if problem:
        raise TypeMismatch(f"Operator '{operator}' on field '{field}' {problem}")


def validate(
    field_type: FieldType | TypeFamily,
    operator: Operator,
    value: Any,
    field: str = "",
) -> None:
    """Validate an operator and its value against a field type."""
    family = field_type.family if isinstance(field_type, FieldType) else field_type
    check_applicable(family, operator, field)
    check_value(operator, value, field)
