"""Role entity for RBAC."""

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class Role:
    """Role that permission records are attached to."""

    id: UUID
    name: str
    description: str | None = None
    is_tenant_specific: bool = False
