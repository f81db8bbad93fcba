"""PostgreSQL Unit of Work implementation."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from psycopg_pool import AsyncConnectionPool

from querygate.application.ports.schema_provider import SchemaProvider
from querygate.application.ports.unit_of_work import UnitOfWorkFactory
from querygate.infrastructure.persistence.postgres.item_repository import (
    PostgresItemRepository,
)
from querygate.infrastructure.persistence.postgres.permission_repository import (
    PostgresPermissionRepository,
)
from querygate.infrastructure.persistence.postgres.role_repository import (
    PostgresRoleRepository,
)
from querygate.infrastructure.persistence.postgres.schema_repository import (
    PostgresSchemaRepository,
)
from querygate.infrastructure.persistence.postgres.sql_builder import PostgresQueryBuilder


class PostgresUnitOfWork:
    """PostgreSQL Unit of Work - one connection, one transaction."""

    def __init__(self, pool: AsyncConnectionPool, schema: SchemaProvider) -> None:
        self._pool = pool
        self._builder = PostgresQueryBuilder(schema)
        self._conn: object | None = None
        self._conn_cm: object | None = None

    async def __aenter__(self) -> "PostgresUnitOfWork":
        self._conn_cm = self._pool.connection()
        self._conn = await self._conn_cm.__aenter__()
        self._items = PostgresItemRepository(self._conn, self._builder)
        self._permissions = PostgresPermissionRepository(self._conn)
        self._roles = PostgresRoleRepository(self._conn)
        self._schemas = PostgresSchemaRepository(self._conn)
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        if exc_type and self._conn:
            await self._conn.rollback()
        if self._conn_cm:
            await self._conn_cm.__aexit__(exc_type, exc_val, exc_tb)

    @property
    def items(self) -> PostgresItemRepository:
        return self._items

    @property
    def permissions(self) -> PostgresPermissionRepository:
        return self._permissions

    @property
    def roles(self) -> PostgresRoleRepository:
        return self._roles

    @property
    def schemas(self) -> PostgresSchemaRepository:
        return self._schemas

    async def commit(self) -> None:
        if self._conn:
            await self._conn.commit()

    async def rollback(self) -> None:
        if self._conn:
            await self._conn.rollback()


def create_uow_factory(pool: AsyncConnectionPool, schema: SchemaProvider) -> UnitOfWorkFactory:
    """Create UnitOfWork factory (async context manager)."""

    @asynccontextmanager
    async def factory() -> AsyncIterator[PostgresUnitOfWork]:
        uow = PostgresUnitOfWork(pool, schema)
        async with uow:
            try:
                yield uow
                await uow.commit()
            except BaseException:
                await uow.rollback()
                raise

    return factory
