"""Permission actions for RBAC."""

from enum import StrEnum


class PermissionAction(StrEnum):
    """Actions a permission record can grant on a collection."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
