"""PostgreSQL permission repository implementation."""

from uuid import UUID

from psycopg import AsyncConnection
from psycopg.types.json import Jsonb

from querygate.domain.entities import Permission
from querygate.domain.value_objects import PermissionAction

_COLUMNS = (
    "id, role_id, collection, action, fields, conditions, rel_conditions, "
    "default_values, created_at, updated_at"
)


def _to_permission(r: tuple) -> Permission:
    return Permission(
        id=r[0],
        role_id=r[1],
        collection=r[2],
        action=PermissionAction(r[3]),
        fields=list(r[4]) if r[4] is not None else None,
        conditions=r[5],
        rel_conditions=r[6] or {},
        default_values=r[7] or {},
        created_at=r[8],
        updated_at=r[9],
    )


def _jsonb(value: object) -> Jsonb | None:
    return Jsonb(value) if value is not None else None


class PostgresPermissionRepository:
    """Permission repository implementation."""

    def __init__(self, conn: AsyncConnection) -> None:
        self._conn = conn

    async def list_all(self) -> list[Permission]:
        """List every permission (cache reload source)."""
        cur = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM permission ORDER BY created_at, id"
        )
        rows = await cur.fetchall()
        return [_to_permission(r) for r in rows]

    async def get_by_id(self, permission_id: UUID) -> Permission | None:
        """Get permission by id."""
        cur = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM permission WHERE id = %s",
            (permission_id,),
        )
        r = await cur.fetchone()
        return _to_permission(r) if r else None

    async def find(
        self, role_id: UUID, collection: str, action: PermissionAction
    ) -> Permission | None:
        """Get the rule for (role, collection, action)."""
        cur = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM permission "
            "WHERE role_id = %s AND collection = %s AND action = %s",
            (role_id, collection, action.value),
        )
        r = await cur.fetchone()
        return _to_permission(r) if r else None

    async def create(self, permission: Permission) -> Permission:
        """Create permission."""
        await self._conn.execute(
            f"INSERT INTO permission ({_COLUMNS}) "
            "VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)",
            (
                permission.id,
                permission.role_id,
                permission.collection,
                permission.action.value,
                _jsonb(permission.fields),
                _jsonb(permission.conditions),
                Jsonb(permission.rel_conditions),
                Jsonb(permission.default_values),
                permission.created_at,
                permission.updated_at,
            ),
        )
        return permission

    async def update(self, permission: Permission) -> Permission:
        """Update permission."""
        await self._conn.execute(
            "UPDATE permission SET fields=%s, conditions=%s, rel_conditions=%s, "
            "default_values=%s, updated_at=%s WHERE id=%s",
            (
                _jsonb(permission.fields),
                _jsonb(permission.conditions),
                Jsonb(permission.rel_conditions),
                Jsonb(permission.default_values),
                permission.updated_at,
                permission.id,
            ),
        )
        return permission

    async def delete(self, permission_id: UUID) -> None:
        """Delete permission."""
        await self._conn.execute(
            "DELETE FROM permission WHERE id = %s",
            (permission_id,),
        )
