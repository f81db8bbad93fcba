"""Item repository port - executes compiled queries against a collection."""

from collections.abc import Mapping
from typing import Any, Protocol

from querygate.application.dto.compiled_query import CompiledQuery
from querygate.domain.entities import Relationship
from querygate.domain.value_objects import FilterNode


class ItemRepository(Protocol):
    """Port for reading and writing collection items.

    ``rel_conditions`` on writes restrict matching rows to those with at
    least one related row satisfying each relation's condition.
    """

    async def read(self, query: CompiledQuery) -> tuple[list[dict[str, Any]], int]: ...

    async def create(self, collection: str, data: dict[str, Any]) -> Any: ...

    async def update(
        self,
        collection: str,
        filter: FilterNode,
        data: dict[str, Any],
        rel_conditions: Mapping[str, FilterNode] | None = None,
    ) -> list[Any]: ...

    async def delete(
        self,
        collection: str,
        filter: FilterNode,
        rel_conditions: Mapping[str, FilterNode] | None = None,
    ) -> list[Any]: ...

    async def link(self, relation: Relationship, source_key: Any, target_keys: list[Any]) -> None: ...
