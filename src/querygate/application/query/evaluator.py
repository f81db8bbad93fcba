"""In-memory evaluation of filter trees against a single record.

Used where there is no row in the database yet to filter on, such as a
create payload that must satisfy the create permission. Evaluation is
three-valued: conditions that cannot be decided from the record alone
(relation paths, geometry, JSONPath, values that fail to coerce) are
unknown, and unknown propagates through AND, OR and NOT under Kleene
rules. A record matches only when the tree is definitely true.
"""

import logging
import re
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from querygate.domain.value_objects import (
    And,
    Condition,
    FilterNode,
    MatchAll,
    MatchNone,
    Not,
    Operator,
    Or,
)

logger = logging.getLogger(__name__)

_UNDECIDABLE = frozenset(
    {
        Operator.JSON_PATH,
        Operator.WITHIN,
        Operator.CONTAINS_GEO,
        Operator.INTERSECTS,
        Operator.NINTERSECTS,
        Operator.OVERLAPS,
        Operator.DWITHIN,
    }
)


def matches(node: FilterNode, record: Mapping[str, Any]) -> bool:
    """Whether the record definitely satisfies the filter tree."""
    return evaluate(node, record) is True


def evaluate(node: FilterNode, record: Mapping[str, Any]) -> bool | None:
    """Evaluate the tree, returning None when the outcome is unknown."""
    if isinstance(node, MatchAll):
        return True
    if isinstance(node, MatchNone):
        return False
    if isinstance(node, And):
        result: bool | None = True
        for child in node.children:
            value = evaluate(child, record)
            if value is False:
                return False
            if value is None:
                result = None
        return result
    if isinstance(node, Or):
        result = False
        for child in node.children:
            value = evaluate(child, record)
            if value is True:
                return True
            if value is None:
                result = None
        return result
    if isinstance(node, Not):
        value = evaluate(node.child, record)
        return None if value is None else not value
    return _evaluate(node, record)


def _evaluate(cond: Condition, record: Mapping[str, Any]) -> bool | None:
    if "." in cond.field or cond.operator in _UNDECIDABLE:
        logger.debug("Condition on %s cannot be evaluated in memory", cond.field)
        return None
    actual = record.get(cond.field)
    try:
        return _apply(cond.operator, actual, cond.value)
    except (TypeError, ValueError, ArithmeticError, re.error):
        logger.debug("Condition on %s could not be compared", cond.field)
        return None


def _apply(op: Operator, actual: Any, expected: Any) -> bool:
    if op is Operator.IS_NULL:
        return (actual is None) is expected
    if op is Operator.EMPTY:
        return (actual is None or len(actual) == 0) is expected
    if op is Operator.ARRAY_EMPTY:
        return (actual is None or len(actual) == 0) is expected
    if op is Operator.NEQ:
        return not _equal(actual, expected)
    if op is Operator.NIN:
        return actual is None or not any(_equal(actual, v) for v in expected)
    if actual is None:
        return False

    if op is Operator.EQ:
        return _equal(actual, expected)
    if op is Operator.IN:
        return any(_equal(actual, v) for v in expected)
    if op in (Operator.GT, Operator.GTE, Operator.LT, Operator.LTE):
        left, right = _comparable(actual, expected)
        return {
            Operator.GT: left > right,
            Operator.GTE: left >= right,
            Operator.LT: left < right,
            Operator.LTE: left <= right,
        }[op]
    if op in (Operator.BETWEEN, Operator.NBETWEEN):
        left, low = _comparable(actual, expected[0])
        _, high = _comparable(actual, expected[1])
        inside = low <= left <= high
        return inside if op is Operator.BETWEEN else not inside
    if op in _STRING_OPS:
        return _STRING_OPS[op](str(actual), str(expected))
    if op is Operator.ARRAY_CONTAINS:
        return all(v in actual for v in expected)
    if op is Operator.ARRAY_CONTAINS_ANY:
        return any(v in actual for v in expected)
    if op is Operator.ARRAY_CONTAINED:
        return all(v in expected for v in actual)
    if op is Operator.ARRAY_LENGTH:
        return len(actual) == expected
    if op is Operator.JSON_CONTAINS:
        return _json_contains(actual, expected)
    if op is Operator.JSON_HAS_KEY:
        return isinstance(actual, Mapping) and expected in actual
    if op is Operator.JSON_HAS_ANY_KEYS:
        return isinstance(actual, Mapping) and any(k in actual for k in expected)
    if op is Operator.JSON_HAS_ALL_KEYS:
        return isinstance(actual, Mapping) and all(k in actual for k in expected)
    return False


def _like(pattern: str, flags: int = 0) -> re.Pattern[str]:
    parts = []
    for ch in pattern:
        if ch == "%":
            parts.append(".*")
        elif ch == "_":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return re.compile("^" + "".join(parts) + "$", flags | re.DOTALL)


_STRING_OPS = {
    Operator.LIKE: lambda a, e: bool(_like(e).match(a)),
    Operator.NOT_LIKE: lambda a, e: not _like(e).match(a),
    Operator.ILIKE: lambda a, e: bool(_like(e, re.IGNORECASE).match(a)),
    Operator.NOT_ILIKE: lambda a, e: not _like(e, re.IGNORECASE).match(a),
    Operator.CONTAINS: lambda a, e: e in a,
    Operator.ICONTAINS: lambda a, e: e.lower() in a.lower(),
    Operator.NCONTAINS: lambda a, e: e not in a,
    Operator.STARTS_WITH: lambda a, e: a.startswith(e),
    Operator.ENDS_WITH: lambda a, e: a.endswith(e),
    Operator.NSTARTS_WITH: lambda a, e: not a.startswith(e),
    Operator.NENDS_WITH: lambda a, e: not a.endswith(e),
    Operator.REGEX: lambda a, e: re.search(e, a) is not None,
}


def _comparable(actual: Any, expected: Any) -> tuple[Any, Any]:
    """Coerce ISO strings, UUIDs and numbers so both sides compare."""
    if isinstance(expected, datetime) and isinstance(actual, str):
        return datetime.fromisoformat(actual), expected
    if isinstance(expected, date) and not isinstance(expected, datetime) and isinstance(actual, str):
        return date.fromisoformat(actual), expected
    if isinstance(actual, datetime) and isinstance(expected, str):
        return actual, datetime.fromisoformat(expected)
    if isinstance(expected, UUID) or isinstance(actual, UUID):
        return str(actual), str(expected)
    if isinstance(expected, (int, float, Decimal)) and isinstance(actual, str):
        return Decimal(actual), Decimal(str(expected))
    return actual, expected


def _equal(actual: Any, expected: Any) -> bool:
    if actual is None:
        return expected is None
    left, right = _comparable(actual, expected)
    return left == right


def _json_contains(actual: Any, expected: Any) -> bool:
    if isinstance(expected, Mapping):
        return isinstance(actual, Mapping) and all(
            k in actual and _json_contains(actual[k], v) for k, v in expected.items()
        )
    if isinstance(expected, list):
        if not isinstance(actual, list):
            return False
        return all(any(_json_contains(a, e) for a in actual) for e in expected)
    if isinstance(actual, list):
        return any(_json_contains(a, expected) for a in actual)
    return actual == expected
