"""Schema provider port - collection definitions for validation and SQL."""

from typing import Protocol

from querygate.domain.entities import CollectionSchema, Relationship
from querygate.domain.value_objects import FieldType


class SchemaProvider(Protocol):
    """Port for looking up collection schemas."""

    def get_collection(self, name: str) -> CollectionSchema | None: ...

    def field_type(self, collection: str, path: str) -> FieldType: ...

    def relationships(self, collection: str) -> dict[str, Relationship]: ...
