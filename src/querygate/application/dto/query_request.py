"""Query request DTOs - what a caller asks for."""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from querygate.domain.exceptions import MalformedFilter
from querygate.domain.value_objects import FilterNode


class SortDirection(StrEnum):
    """Sort direction."""

    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class SortItem:
    """One sort key: field path and direction."""

    field: str
    direction: SortDirection = SortDirection.ASC

    @classmethod
    def parse(cls, value: Any) -> "SortItem":
        """Parse ``"name"``, ``"-name"``, ``"name:desc"`` or ``{field, order}``."""
        if isinstance(value, Mapping):
            name = value.get("field") or value.get("column")
            order = str(value.get("order") or value.get("direction") or "asc")
            if not isinstance(name, str) or not name:
                raise MalformedFilter(f"Invalid sort entry: {value!r}")
            return cls(name, _parse_direction(order))
        if not isinstance(value, str) or not value.strip():
            raise MalformedFilter(f"Invalid sort entry: {value!r}")
        text = value.strip()
        if text.startswith("-"):
            return cls(text[1:], SortDirection.DESC)
        if ":" in text:
            name, _, order = text.partition(":")
            return cls(name, _parse_direction(order))
        return cls(text)


def _parse_direction(value: str) -> SortDirection:
    try:
        return SortDirection(value.strip().lower())
    except ValueError:
        raise MalformedFilter(f"Invalid sort direction '{value}'") from None


def parse_sort(value: Any) -> list[SortItem]:
    """Normalize every supported sort shape into a list of SortItem.

    Accepts a comma separated string, a list of strings or ``{field, order}``
    objects, or a ``{field: direction}`` mapping.
    """
    if value is None:
        return []
    if isinstance(value, str):
        return [SortItem.parse(part) for part in value.split(",") if part.strip()]
    if isinstance(value, Mapping):
        if "field" in value or "column" in value:
            return [SortItem.parse(value)]
        return [SortItem(str(k), _parse_direction(str(v))) for k, v in value.items()]
    if isinstance(value, (list, tuple)):
        return [SortItem.parse(v) for v in value]
    raise MalformedFilter(f"Invalid sort specification: {value!r}")


class AggregateFunction(StrEnum):
    """Aggregate functions available in aggregate queries."""

    COUNT = "count"
    COUNT_DISTINCT = "countDistinct"
    SUM = "sum"
    AVG = "avg"
    MIN = "min"
    MAX = "max"
    ARRAY_AGG = "array_agg"

    @classmethod
    def _missing_(cls, value: object) -> "AggregateFunction | None":
        if value == "distinct":
            return cls.COUNT_DISTINCT
        return None


@dataclass(frozen=True)
class AggregateSpec:
    """Aggregate function applied to a field (``*`` for count)."""

    function: AggregateFunction
    field: str = "*"

    @classmethod
    def parse(cls, alias: str, value: Any) -> "AggregateSpec":
        """Parse ``{function, field}`` or a bare function name."""
        if isinstance(value, str):
            function, target = value, "*"
        elif isinstance(value, Mapping):
            function, target = value.get("function"), value.get("field", "*")
        else:
            raise MalformedFilter(f"Invalid aggregate '{alias}'")
        try:
            fn = AggregateFunction(function)
        except ValueError:
            raise MalformedFilter(f"Unknown aggregate function '{function}' in '{alias}'") from None
        if not isinstance(target, str) or not target:
            raise MalformedFilter(f"Aggregate '{alias}' needs a field")
        if target == "*" and fn is not AggregateFunction.COUNT:
            raise MalformedFilter(f"Aggregate '{alias}': only count accepts '*'")
        return cls(fn, target)


class DatePart(StrEnum):
    """Date parts that groupBy can extract from a temporal field."""

    YEAR = "year"
    QUARTER = "quarter"
    MONTH = "month"
    WEEK = "week"
    DAY = "day"
    DOW = "dow"
    HOUR = "hour"
    MINUTE = "minute"


_DATE_PART_RE = re.compile(r"^(?P<part>[a-z]+)\((?P<field>[\w.]+)\)$")


@dataclass(frozen=True)
class GroupByItem:
    """Group key: a field, optionally reduced to a date part."""

    field: str
    date_part: DatePart | None = None

    @property
    def alias(self) -> str:
        """Output column name of the group key."""
        if self.date_part is None:
            return self.field
        return f"{self.field}_{self.date_part}"

    @classmethod
    def parse(cls, value: Any) -> "GroupByItem":
        """Parse ``"status"`` or ``"month(created_at)"``."""
        if not isinstance(value, str) or not value.strip():
            raise MalformedFilter(f"Invalid groupBy entry: {value!r}")
        text = value.strip()
        match = _DATE_PART_RE.match(text)
        if not match:
            return cls(text)
        try:
            part = DatePart(match.group("part"))
        except ValueError:
            raise MalformedFilter(f"Unknown date part '{match.group('part')}'") from None
        return cls(match.group("field"), part)


@dataclass
class QueryRequest:
    """Declarative read request against one collection.

    ``filter`` and ``rel_conditions`` values are raw nested objects (as sent
    by the caller) or already-built filter trees. ``limit`` of -1 means no
    limit.
    """

    collection: str
    filter: Mapping[str, Any] | FilterNode | None = None
    fields: list[str] | None = None
    sort: list[SortItem] = field(default_factory=list)
    page: int = 1
    limit: int = 10
    offset: int | None = None
    search: str | None = None
    search_fields: list[str] | None = None
    sort_by_relevance: bool = False
    aggregate: dict[str, AggregateSpec] = field(default_factory=dict)
    group_by: list[GroupByItem] = field(default_factory=list)
    rel_conditions: dict[str, Mapping[str, Any] | FilterNode] = field(default_factory=dict)

    @property
    def is_aggregate(self) -> bool:
        return bool(self.aggregate or self.group_by)
