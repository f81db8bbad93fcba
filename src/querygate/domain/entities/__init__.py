"""Domain entities."""

from querygate.domain.entities.accountability import Accountability, User
from querygate.domain.entities.collection_schema import (
    CollectionSchema,
    FieldDefinition,
    Relationship,
    RelationType,
)
from querygate.domain.entities.permission import Permission
from querygate.domain.entities.role import Role

__all__ = [
    "Accountability",
    "CollectionSchema",
    "FieldDefinition",
    "Permission",
    "Relationship",
    "RelationType",
    "Role",
    "User",
]
