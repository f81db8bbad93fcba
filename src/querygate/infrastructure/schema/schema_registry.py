"""Schema registry - in-memory collection schemas built from stored definitions.

A definition is a JSON object::

    {
        "table": "posts",
        "paranoid": false,
        "fields": {
            "id": {"type": "UUID", "primaryKey": true},
            "title": {"type": "String", "allowNull": false},
            "author": {"relType": "BelongsTo", "target": "users", "foreignKey": "author_Id"},
            "comments": {"relType": "HasMany", "target": "comments", "foreignKey": "post_Id"},
            "tags": {"relType": "M2M", "target": "tags", "through": "posts_tags",
                     "foreignKey": "post_Id", "otherKey": "tag_Id"}
        }
    }

Fields with ``relType`` are relationships, everything else is a scalar
field. M2O/O2O foreign keys are added as UUID fields when not declared.
"""

import logging
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any

from querygate.application.ports.unit_of_work import UnitOfWorkFactory
from querygate.domain.entities import (
    CollectionSchema,
    FieldDefinition,
    Relationship,
    RelationType,
)
from querygate.domain.exceptions import MalformedFilter, NotFound, ValidationError
from querygate.domain.value_objects import FieldType

logger = logging.getLogger(__name__)


def parse_collection(name: str, definition: Mapping[str, Any]) -> CollectionSchema:
    """Build a CollectionSchema from a stored definition."""
    raw_fields = definition.get("fields")
    if not isinstance(raw_fields, Mapping) or not raw_fields:
        raise ValidationError(f"Collection '{name}' has no fields")

    fields: dict[str, FieldDefinition] = {}
    relationships: dict[str, Relationship] = {}
    for field_name, spec in raw_fields.items():
        if not isinstance(spec, Mapping):
            raise ValidationError(f"Invalid definition of field '{name}.{field_name}'")
        if "relType" in spec:
            relationships[field_name] = _parse_relationship(name, field_name, spec)
            continue
        try:
            field_type = FieldType(spec.get("type"))
        except ValueError:
            raise ValidationError(
                f"Unknown type {spec.get('type')!r} for field '{name}.{field_name}'"
            ) from None
        fields[field_name] = FieldDefinition(
            name=field_name,
            type=field_type,
            primary_key=bool(spec.get("primaryKey", False)),
            allow_null=bool(spec.get("allowNull", True)),
        )

    for relation in relationships.values():
        if relation.is_to_one and relation.foreign_key not in fields:
            fields[relation.foreign_key] = FieldDefinition(relation.foreign_key, FieldType.UUID)

    return CollectionSchema(
        name=name,
        fields=fields,
        relationships=relationships,
        table=str(definition.get("table") or name),
        paranoid=bool(definition.get("paranoid", False)),
    )


def _parse_relationship(collection: str, name: str, spec: Mapping[str, Any]) -> Relationship:
    try:
        rel_type = RelationType(spec["relType"])
    except ValueError:
        raise ValidationError(
            f"Unsupported relation type {spec['relType']!r} on '{collection}.{name}'"
        ) from None
    target = spec.get("target")
    if not isinstance(target, str) or not target:
        raise ValidationError(f"Relation '{collection}.{name}' has no target")

    if rel_type is RelationType.M2M:
        return Relationship(
            name=name,
            type=rel_type,
            target=target,
            through=spec.get("through") or f"{collection}_{name}_junction",
            through_source_key=spec.get("foreignKey") or f"{collection}_id",
            through_target_key=spec.get("otherKey") or f"{target}_id",
        )
    if rel_type is RelationType.O2M:
        foreign_key = spec.get("foreignKey") or f"{collection}_id"
    else:
        foreign_key = spec.get("foreignKey") or f"{name}_id"
    return Relationship(name=name, type=rel_type, target=target, foreign_key=foreign_key)


class SchemaRegistry:
    """Schema provider backed by an immutable map, replaced wholesale on reload."""

    def __init__(self, collections: Iterable[CollectionSchema] = ()) -> None:
        self._collections: Mapping[str, CollectionSchema] = MappingProxyType(
            {c.name: c for c in collections}
        )

    @classmethod
    def from_definitions(cls, definitions: Mapping[str, Mapping[str, Any]]) -> "SchemaRegistry":
        return cls(parse_collection(name, d) for name, d in definitions.items())

    def replace(self, collections: Iterable[CollectionSchema]) -> None:
        self._collections = MappingProxyType({c.name: c for c in collections})

    async def reload(self, uow_factory: UnitOfWorkFactory) -> None:
        """Load every stored definition and swap them in."""
        async with uow_factory() as uow:
            definitions = await uow.schemas.list_definitions()
        self.replace(parse_collection(name, d) for name, d in definitions.items())
        logger.info("Schema registry loaded: collections=%s", len(self._collections))

    def collection_names(self) -> list[str]:
        return sorted(self._collections)

    def get_collection(self, name: str) -> CollectionSchema | None:
        return self._collections.get(name)

    def relationships(self, collection: str) -> dict[str, Relationship]:
        schema = self._collections.get(collection)
        return dict(schema.relationships) if schema else {}

    def field_type(self, collection: str, path: str) -> FieldType:
        """Type of the field at a dotted path, following relations."""
        schema = self._collections.get(collection)
        if schema is None:
            raise NotFound("Collection", collection)
        segments = path.split(".")
        for segment in segments[:-1]:
            relation = schema.relationships.get(segment)
            if relation is None:
                raise MalformedFilter(f"'{segment}' is not a relation of '{schema.name}'")
            target = self._collections.get(relation.target)
            if target is None:
                raise MalformedFilter(f"Relation '{segment}' points to an unknown collection")
            schema = target
        definition = schema.fields.get(segments[-1])
        if definition is None:
            if segments[-1] in schema.relationships:
                raise MalformedFilter(f"'{path}' is a relation, not a field")
            raise MalformedFilter(f"Unknown field '{path}' on '{collection}'")
        return definition.type
