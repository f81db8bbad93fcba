"""Pytest fixtures for QueryGate tests."""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any
from uuid import UUID, uuid4

import pytest

from querygate.application.dto.compiled_query import CompiledQuery
from querygate.application.query.compiler import QueryCompiler
from querygate.application.query.evaluator import matches
from querygate.application.query.filter_parser import FilterParser
from querygate.application.query.projector import FieldProjector
from querygate.domain.entities import Accountability, Permission, Relationship, Role, User
from querygate.domain.value_objects import FilterNode, PermissionAction
from querygate.infrastructure.permission.permission_cache import PermissionCache
from querygate.infrastructure.permission.permission_resolver import CachedPermissionResolver
from querygate.infrastructure.schema.schema_registry import SchemaRegistry

FIXED_NOW = datetime(2024, 3, 15, 12, 0, tzinfo=UTC)

SCHEMA_DEFINITIONS: dict[str, dict[str, Any]] = {
    "users": {
        "fields": {
            "id": {"type": "UUID", "primaryKey": True},
            "name": {"type": "String"},
            "email": {"type": "String"},
            "password": {"type": "String"},
            "department": {"type": "String"},
        },
    },
    "categories": {
        "fields": {
            "id": {"type": "UUID", "primaryKey": True},
            "name": {"type": "String"},
            "secret": {"type": "String"},
            "parent": {"relType": "M2O", "target": "categories", "foreignKey": "parent_id"},
        },
    },
    "tags": {
        "fields": {
            "id": {"type": "UUID", "primaryKey": True},
            "label": {"type": "String"},
        },
    },
    "comments": {
        "paranoid": True,
        "fields": {
            "id": {"type": "UUID", "primaryKey": True},
            "body": {"type": "Text"},
            "status": {"type": "String"},
            "post_id": {"type": "UUID"},
        },
    },
    "posts": {
        "fields": {
            "id": {"type": "UUID", "primaryKey": True},
            "title": {"type": "String"},
            "body": {"type": "Text"},
            "status": {"type": "String"},
            "views": {"type": "Integer"},
            "metadata": {"type": "JSONB"},
            "labels": {"type": "Array"},
            "location": {"type": "Point"},
            "created_at": {"type": "DateTime"},
            "author": {"relType": "M2O", "target": "users", "foreignKey": "author_id"},
            "category": {"relType": "M2O", "target": "categories", "foreignKey": "category_id"},
            "comments": {"relType": "O2M", "target": "comments", "foreignKey": "post_id"},
            "tags": {
                "relType": "M2M",
                "target": "tags",
                "through": "posts_tags",
                "foreignKey": "post_id",
                "otherKey": "tag_id",
            },
        },
    },
    "products": {
        "fields": {
            "id": {"type": "UUID", "primaryKey": True},
            "name": {"type": "String"},
            "price": {"type": "Decimal"},
            "cost": {"type": "Decimal"},
            "category": {"relType": "M2O", "target": "categories", "foreignKey": "category_id"},
        },
    },
    "orders": {
        "fields": {
            "id": {"type": "UUID", "primaryKey": True},
            "status": {"type": "String"},
            "total": {"type": "Decimal"},
            "region": {"type": "String"},
            "created_at": {"type": "DateTime"},
            "customer": {"relType": "M2O", "target": "users", "foreignKey": "customer_id"},
        },
    },
    "invoices": {
        "fields": {
            "id": {"type": "UUID", "primaryKey": True},
            "number": {"type": "String"},
            "amount": {"type": "Decimal"},
            "tenant_id": {"type": "String"},
        },
    },
}


# --- Fake repositories ---


class FakeItemRepository:
    """Records every call and returns canned rows."""

    def __init__(self) -> None:
        self.rows: list[dict[str, Any]] = []
        self.total: int | None = None
        self.queries: list[CompiledQuery] = []
        self.created: list[tuple[str, dict[str, Any]]] = []
        self.updated: list[tuple[str, FilterNode, dict[str, Any]]] = []
        self.deleted: list[tuple[str, FilterNode]] = []
        self.write_rel_conditions: list[dict[str, FilterNode]] = []
        self.links: list[tuple[str, Any, list[Any]]] = []
        self.matching_keys: list[Any] | None = None

    async def read(self, query: CompiledQuery) -> tuple[list[dict[str, Any]], int]:
        self.queries.append(query)
        total = self.total if self.total is not None else len(self.rows)
        return [dict(r) for r in self.rows], total

    async def create(self, collection: str, data: dict[str, Any]) -> Any:
        self.created.append((collection, dict(data)))
        return data.get("id") or uuid4()

    async def update(
        self,
        collection: str,
        filter: FilterNode,
        data: dict[str, Any],
        rel_conditions: Mapping[str, FilterNode] | None = None,
    ) -> list[Any]:
        self.updated.append((collection, filter, dict(data)))
        self.write_rel_conditions.append(dict(rel_conditions or {}))
        return self._keys(filter, rel_conditions or {})

    async def delete(
        self,
        collection: str,
        filter: FilterNode,
        rel_conditions: Mapping[str, FilterNode] | None = None,
    ) -> list[Any]:
        self.deleted.append((collection, filter))
        self.write_rel_conditions.append(dict(rel_conditions or {}))
        return self._keys(filter, rel_conditions or {})

    async def link(self, relation: Relationship, source_key: Any, target_keys: list[Any]) -> None:
        self.links.append((relation.name, source_key, list(target_keys)))

    def _keys(self, filter: FilterNode, rel_conditions: Mapping[str, FilterNode]) -> list[Any]:
        if self.matching_keys is not None:
            return list(self.matching_keys)
        return [
            r.get("id")
            for r in self.rows
            if matches(filter, r) and all(_has_related(r, n, c) for n, c in rel_conditions.items())
        ]


def _has_related(row: dict[str, Any], name: str, condition: FilterNode) -> bool:
    """Rows carry their related rows inline under the relation name."""
    related = row.get(name)
    if related is None:
        return False
    if isinstance(related, list):
        return any(matches(condition, r) for r in related)
    return matches(condition, related)


class FakePermissionRepository:
    """In-memory permission repository."""

    def __init__(self) -> None:
        self._by_id: dict[UUID, Permission] = {}

    async def list_all(self) -> list[Permission]:
        return list(self._by_id.values())

    async def get_by_id(self, permission_id: UUID) -> Permission | None:
        return self._by_id.get(permission_id)

    async def find(
        self, role_id: UUID, collection: str, action: PermissionAction
    ) -> Permission | None:
        for p in self._by_id.values():
            if p.role_id == role_id and p.collection == collection and p.action == action:
                return p
        return None

    async def create(self, permission: Permission) -> Permission:
        self._by_id[permission.id] = permission
        return permission

    async def update(self, permission: Permission) -> None:
        self._by_id[permission.id] = permission

    async def delete(self, permission_id: UUID) -> None:
        self._by_id.pop(permission_id, None)

    def add(self, permission: Permission) -> None:
        self._by_id[permission.id] = permission


class FakeRoleRepository:
    """In-memory role repository."""

    def __init__(self) -> None:
        self._by_id: dict[UUID, Role] = {}

    async def get_by_id(self, role_id: UUID) -> Role | None:
        return self._by_id.get(role_id)

    async def get_by_name(self, name: str) -> Role | None:
        for role in self._by_id.values():
            if role.name == name:
                return role
        return None

    async def list_all(self) -> list[Role]:
        return sorted(self._by_id.values(), key=lambda r: r.name)

    def add_role(self, role: Role) -> None:
        self._by_id[role.id] = role


class FakeSchemaRepository:
    """In-memory schema definition store."""

    def __init__(self, definitions: dict[str, dict[str, Any]] | None = None) -> None:
        self.definitions = dict(definitions or {})

    async def list_definitions(self) -> dict[str, dict[str, Any]]:
        return dict(self.definitions)


class FakeUnitOfWork:
    """In-memory Unit of Work for tests."""

    def __init__(self) -> None:
        self.items = FakeItemRepository()
        self.permissions = FakePermissionRepository()
        self.roles = FakeRoleRepository()
        self.schemas = FakeSchemaRepository(SCHEMA_DEFINITIONS)
        self.commits = 0

    async def commit(self) -> None:
        self.commits += 1

    async def rollback(self) -> None:
        pass


def make_uow_factory(uow: FakeUnitOfWork):
    """Factory that yields the same UoW for every call."""

    @asynccontextmanager
    async def factory() -> AsyncIterator[FakeUnitOfWork]:
        yield uow
        await uow.commit()

    return factory


def make_permission(
    role: Role,
    collection: str,
    action: PermissionAction = PermissionAction.READ,
    fields: list[str] | None = None,
    conditions: dict[str, Any] | None = None,
    rel_conditions: dict[str, Any] | None = None,
    default_values: dict[str, Any] | None = None,
) -> Permission:
    now = datetime.now(UTC)
    return Permission(
        id=uuid4(),
        role_id=role.id,
        collection=collection,
        action=action,
        fields=fields,
        conditions=conditions,
        rel_conditions=rel_conditions or {},
        default_values=default_values or {},
        created_at=now,
        updated_at=now,
    )


def make_accountability(
    role: Role | None,
    user_id: str | None = "user-1",
    is_admin: bool = False,
    tenant: str | None = None,
    **profile: Any,
) -> Accountability:
    user = (
        User(
            id=user_id,
            role=role.name if role else None,
            is_admin=is_admin,
            profile=MappingProxyType(profile),
        )
        if user_id
        else None
    )
    return Accountability(user=user, role=role, tenant=tenant)


# --- Fixtures ---


@pytest.fixture
def registry() -> SchemaRegistry:
    return SchemaRegistry.from_definitions(SCHEMA_DEFINITIONS)


@pytest.fixture
def parser(registry: SchemaRegistry) -> FilterParser:
    return FilterParser(registry)


@pytest.fixture
def compiler(registry: SchemaRegistry, parser: FilterParser) -> QueryCompiler:
    return QueryCompiler(registry, parser)


@pytest.fixture
def projector(registry: SchemaRegistry) -> FieldProjector:
    return FieldProjector(registry)


@pytest.fixture
def editor_role() -> Role:
    return Role(id=uuid4(), name="editor", description="Editor")


@pytest.fixture
def viewer_role() -> Role:
    return Role(id=uuid4(), name="viewer", description="Viewer")


@pytest.fixture
def uow(editor_role: Role, viewer_role: Role) -> FakeUnitOfWork:
    uow = FakeUnitOfWork()
    uow.roles.add_role(editor_role)
    uow.roles.add_role(viewer_role)
    return uow


@pytest.fixture
def uow_factory(uow: FakeUnitOfWork):
    return make_uow_factory(uow)


@pytest.fixture
def permission_cache(uow_factory) -> PermissionCache:
    return PermissionCache(uow_factory)


@pytest.fixture
def resolver(permission_cache: PermissionCache, parser: FilterParser) -> CachedPermissionResolver:
    return CachedPermissionResolver(permission_cache, parser)


@pytest.fixture
def admin() -> Accountability:
    role = Role(id=uuid4(), name="administrator")
    return make_accountability(role, user_id="admin-1", is_admin=True)


@pytest.fixture
def editor(editor_role: Role) -> Accountability:
    return make_accountability(editor_role, user_id="user-1", department="sales")


@pytest.fixture
def viewer(viewer_role: Role) -> Accountability:
    return make_accountability(viewer_role, user_id="user-2")
