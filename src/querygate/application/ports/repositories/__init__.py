"""Repository ports."""

from querygate.application.ports.repositories.permission_repository import (
    PermissionRepository,
)
from querygate.application.ports.repositories.role_repository import RoleRepository
from querygate.application.ports.repositories.schema_repository import SchemaRepository

__all__ = [
    "PermissionRepository",
    "RoleRepository",
    "SchemaRepository",
]
