"""Permission repository port."""

from typing import Protocol
from uuid import UUID

from querygate.domain.entities import Permission
from querygate.domain.value_objects import PermissionAction


class PermissionRepository(Protocol):
    """Port for permission persistence."""

    async def list_all(self) -> list[Permission]: ...

    async def get_by_id(self, permission_id: UUID) -> Permission | None: ...

    async def find(
        self, role_id: UUID, collection: str, action: PermissionAction
    ) -> Permission | None: ...

    async def create(self, permission: Permission) -> Permission: ...

    async def update(self, permission: Permission) -> Permission: ...

    async def delete(self, permission_id: UUID) -> None: ...
