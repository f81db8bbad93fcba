"""PostgreSQL item repository - executes compiled queries."""

import logging
from collections.abc import Mapping
from typing import Any

from psycopg import AsyncConnection
from psycopg.rows import dict_row

from querygate.application.dto.compiled_query import CompiledQuery
from querygate.domain.entities import Relationship
from querygate.domain.value_objects import FilterNode
from querygate.infrastructure.persistence.postgres.sql_builder import (
    PostgresQueryBuilder,
    SqlStatement,
)

logger = logging.getLogger(__name__)


class PostgresItemRepository:
    """Item repository implementation."""

    def __init__(self, conn: AsyncConnection, builder: PostgresQueryBuilder) -> None:
        self._conn = conn
        self._builder = builder

    async def read(self, query: CompiledQuery) -> tuple[list[dict[str, Any]], int]:
        """Rows of the current page and the total count under the same filter."""
        select = self._builder.build_select(query)
        count = self._builder.build_count(query)
        logger.debug("Executing %s with %d params", select.sql, len(select.params))
        async with self._conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(select.sql, select.params)
            rows = await cur.fetchall()
        cur = await self._conn.execute(count.sql, count.params)
        r = await cur.fetchone()
        total = int(r[0]) if r else 0
        return rows, total

    async def create(self, collection: str, data: dict[str, Any]) -> Any:
        """Insert one item and return its primary key."""
        r = await self._fetchone(self._builder.build_insert(collection, data))
        return r[0] if r else None

    async def update(
        self,
        collection: str,
        filter: FilterNode,
        data: dict[str, Any],
        rel_conditions: Mapping[str, FilterNode] | None = None,
    ) -> list[Any]:
        """Update matching items and return their primary keys."""
        statement = self._builder.build_update(collection, filter, data, rel_conditions)
        return await self._fetch_keys(statement)

    async def delete(
        self,
        collection: str,
        filter: FilterNode,
        rel_conditions: Mapping[str, FilterNode] | None = None,
    ) -> list[Any]:
        """Delete matching items and return their primary keys."""
        statement = self._builder.build_delete(collection, filter, rel_conditions)
        return await self._fetch_keys(statement)

    async def link(self, relation: Relationship, source_key: Any, target_keys: list[Any]) -> None:
        """Link an item to existing targets of a many-to-many relation."""
        statement = self._builder.build_link(relation, source_key, target_keys)
        await self._conn.execute(statement.sql, statement.params)

    async def _fetchone(self, statement: SqlStatement) -> tuple | None:
        cur = await self._conn.execute(statement.sql, statement.params)
        return await cur.fetchone()

    async def _fetch_keys(self, statement: SqlStatement) -> list[Any]:
        cur = await self._conn.execute(statement.sql, statement.params)
        rows = await cur.fetchall()
        return [r[0] for r in rows]
