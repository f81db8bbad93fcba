"""Write payload checks shared by create and update."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from querygate.application.dto.permission_grant import PermissionGrant
from querygate.application.ports.schema_provider import SchemaProvider
from querygate.application.query.variables import VariableResolver
from querygate.domain.entities import CollectionSchema, Relationship
from querygate.domain.exceptions import AccessDenied, ValidationError
from querygate.domain.value_objects import FieldAllowlist


@dataclass
class RelatedWrite:
    """Nested data sent for one relation.

    ``rows`` are new items of the target collection, ``keys`` values of
    ``target_key`` for existing target items to link.
    """

    relation: Relationship
    target_key: str = "id"
    rows: list[dict[str, Any]] = field(default_factory=list)
    keys: list[Any] = field(default_factory=list)


@dataclass
class WritePayload:
    """Column values of the item plus nested relation data."""

    values: dict[str, Any]
    related: list[RelatedWrite] = field(default_factory=list)


def prepare_payload(
    schema: CollectionSchema,
    grant: PermissionGrant,
    variables: VariableResolver,
    data: Mapping[str, Any],
    schemas: SchemaProvider,
) -> WritePayload:
    """Validate a payload against the schema and grant, then apply default values.

    Unknown fields are a validation error, fields outside the allowlist a
    denial. Relation keys need the relation opened by the allowlist, and
    every field of a nested row is checked against the relation's part of
    it. Resolved default values override whatever the caller sent.
    """
    if not isinstance(data, Mapping):
        raise ValidationError("Payload must be an object")
    values: dict[str, Any] = {}
    related: list[RelatedWrite] = []
    for name, value in data.items():
        relation = schema.relationships.get(name)
        if relation is not None:
            if not grant.allowlist.allows_relation(name):
                raise AccessDenied()
            if relation.is_to_one and not isinstance(value, (Mapping, list)):
                if relation.foreign_key is None:
                    raise ValidationError(f"Relation '{name}' is missing its foreign key")
                values[relation.foreign_key] = value
                continue
            related.append(
                _related_write(relation, value, grant.allowlist.for_relation(name), schemas)
            )
            continue
        if name not in schema.fields:
            raise ValidationError(f"Unknown field '{name}' on '{schema.name}'")
        if not grant.allowlist.allows_field(name):
            raise AccessDenied()
        values[name] = value

    for name, value in grant.default_values.items():
        if name not in schema.fields:
            raise ValidationError(f"Default value for unknown field '{name}' on '{schema.name}'")
        values[name] = variables.resolve(value)
    return WritePayload(values, related)


def _related_write(
    relation: Relationship,
    value: Any,
    allowlist: FieldAllowlist,
    schemas: SchemaProvider,
) -> RelatedWrite:
    target = schemas.get_collection(relation.target)
    if target is None:
        raise ValidationError(f"Relation '{relation.name}' points to unknown '{relation.target}'")
    if relation.is_to_one:
        if isinstance(value, list):
            raise ValidationError(f"Relation '{relation.name}' takes a single item")
        items = [value]
    else:
        if not isinstance(value, list):
            raise ValidationError(f"Relation '{relation.name}' takes a list of items")
        items = value

    write = RelatedWrite(relation, target.primary_key)
    for item in items:
        if not isinstance(item, Mapping):
            write.keys.append(item)
            continue
        for name in item:
            if name not in target.fields:
                raise ValidationError(f"Unknown field '{name}' on '{target.name}'")
            if not allowlist.allows_field(name):
                raise AccessDenied()
        write.rows.append(dict(item))
    return write
