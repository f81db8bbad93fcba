"""Checks a permission rule before it is stored."""

from querygate.application.ports import SchemaProvider
from querygate.application.query.filter_parser import FilterParser
from querygate.domain.entities import Permission
from querygate.domain.exceptions import NotFound, ValidationError


def validate_permission(
    permission: Permission, schema: SchemaProvider, parser: FilterParser
) -> None:
    """Reject rules that would fail to resolve later.

    Conditions and relConditions must parse against the collection schema,
    default values must name existing fields.
    """
    collection = schema.get_collection(permission.collection)
    if collection is None:
        raise NotFound("Collection", permission.collection)
    if permission.fields is not None:
        if not isinstance(permission.fields, list) or not all(
            isinstance(f, str) and f for f in permission.fields
        ):
            raise ValidationError("fields must be a list of field paths")
    if permission.conditions is not None and not isinstance(permission.conditions, dict):
        raise ValidationError("conditions must be an object")
    parser.parse(permission.collection, permission.conditions)
    parser.parse_rel_conditions(permission.collection, permission.rel_conditions)
    if not isinstance(permission.default_values, dict):
        raise ValidationError("defaultValues must be an object")
    for name in permission.default_values:
        if name not in collection.fields:
            raise ValidationError(f"Default value for unknown field '{name}'")
