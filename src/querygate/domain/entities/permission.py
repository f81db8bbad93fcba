"""Permission entity - role access to a collection action."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from querygate.domain.value_objects import PermissionAction


@dataclass
class Permission:
    """Permission - role may perform action on collection, within fields and conditions.

    ``fields`` of None means all fields, ``conditions`` of None means no row
    restriction. Condition, relCondition and default values are stored in
    their raw nested-object form and may reference dynamic variables.
    """

    id: UUID
    role_id: UUID
    collection: str
    action: PermissionAction
    fields: list[str] | None = None
    conditions: dict[str, Any] | None = None
    rel_conditions: dict[str, Any] = field(default_factory=dict)
    default_values: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None
