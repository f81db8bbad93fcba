"""Compiled query - merged, resolved and ready for execution."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from querygate.application.dto.query_request import AggregateSpec, GroupByItem, SortItem
from querygate.domain.value_objects import FieldAllowlist, FilterNode


@dataclass(frozen=True)
class Selection:
    """Columns of one collection plus nested relation selections."""

    columns: tuple[str, ...]
    relations: dict[str, Selection] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.columns and not self.relations


@dataclass(frozen=True)
class SearchSpec:
    """Free-text search term and the fields it is matched against."""

    term: str
    fields: tuple[str, ...]
    rank: bool = False


@dataclass
class CompiledQuery:
    """Everything needed to execute a read, bounded by the caller's grant."""

    collection: str
    filter: FilterNode
    rel_conditions: dict[str, FilterNode]
    selection: Selection
    allowlist: FieldAllowlist
    now: datetime
    sort: list[SortItem] = field(default_factory=list)
    limit: int = -1
    offset: int = 0
    search: SearchSpec | None = None
    aggregate: dict[str, AggregateSpec] = field(default_factory=dict)
    group_by: list[GroupByItem] = field(default_factory=list)

    @property
    def is_aggregate(self) -> bool:
        return bool(self.aggregate or self.group_by)


@dataclass
class ReadResult:
    """Response envelope of a read."""

    data: list[dict[str, Any]]
    total_count: int

    def to_dict(self) -> dict[str, Any]:
        return {"data": self.data, "totalCount": self.total_count}
