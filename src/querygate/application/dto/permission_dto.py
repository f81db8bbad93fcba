"""Permission DTOs."""

from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from querygate.domain.value_objects import PermissionAction

UPDATABLE_FIELDS = ("fields", "conditions", "rel_conditions", "default_values")


@dataclass
class PermissionCreateInput:
    """Input for creating a permission."""

    role_id: UUID
    collection: str
    action: PermissionAction
    fields: list[str] | None = None
    conditions: dict[str, Any] | None = None
    rel_conditions: dict[str, Any] = field(default_factory=dict)
    default_values: dict[str, Any] = field(default_factory=dict)
