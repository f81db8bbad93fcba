"""PostgreSQL role repository implementation."""

from uuid import UUID

from psycopg import AsyncConnection

from querygate.domain.entities import Role

_COLUMNS = "id, name, description, is_tenant_specific"


def _to_role(r: tuple) -> Role:
    return Role(id=r[0], name=r[1], description=r[2], is_tenant_specific=bool(r[3]))


class PostgresRoleRepository:
    """Role repository implementation."""

    def __init__(self, conn: AsyncConnection) -> None:
        self._conn = conn

    async def get_by_id(self, role_id: UUID) -> Role | None:
        """Get role by id."""
        cur = await self._conn.execute(f"SELECT {_COLUMNS} FROM role WHERE id = %s", (role_id,))
        r = await cur.fetchone()
        return _to_role(r) if r else None

    async def get_by_name(self, name: str) -> Role | None:
        """Get role by name."""
        cur = await self._conn.execute(f"SELECT {_COLUMNS} FROM role WHERE name = %s", (name,))
        r = await cur.fetchone()
        return _to_role(r) if r else None

    async def list_all(self) -> list[Role]:
        """List all roles."""
        cur = await self._conn.execute(f"SELECT {_COLUMNS} FROM role ORDER BY name")
        rows = await cur.fetchall()
        return [_to_role(r) for r in rows]
