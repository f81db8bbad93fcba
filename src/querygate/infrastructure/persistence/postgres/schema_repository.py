"""PostgreSQL schema definition repository implementation."""

from typing import Any

from psycopg import AsyncConnection


class PostgresSchemaRepository:
    """Reads collection definitions stored as JSONB."""

    def __init__(self, conn: AsyncConnection) -> None:
        self._conn = conn

    async def list_definitions(self) -> dict[str, dict[str, Any]]:
        """Map of collection name to its stored definition."""
        cur = await self._conn.execute(
            "SELECT collection_name, definition FROM schema_definition ORDER BY collection_name"
        )
        rows = await cur.fetchall()
        return {r[0]: r[1] for r in rows}
