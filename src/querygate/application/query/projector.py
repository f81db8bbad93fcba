"""Field projector - strip returned rows down to the allowlist."""

from collections.abc import Iterable, Mapping
from typing import Any

from querygate.application.ports.schema_provider import SchemaProvider
from querygate.domain.value_objects import FieldAllowlist


class FieldProjector:
    """Removes every field the caller may not see, recursively through relations.

    Applying it twice gives the same result as applying it once.
    """

    def __init__(self, schema: SchemaProvider) -> None:
        self._schema = schema

    def project(
        self, collection: str, rows: Iterable[Mapping[str, Any]], allowlist: FieldAllowlist
    ) -> list[dict[str, Any]]:
        if allowlist.is_all:
            return [dict(row) for row in rows]
        return [self._project_row(collection, row, allowlist) for row in rows]

    def project_keys(
        self, rows: Iterable[Mapping[str, Any]], keys: Iterable[str]
    ) -> list[dict[str, Any]]:
        """Keep only the given output columns (aggregate rows)."""
        wanted = tuple(keys)
        return [{k: row[k] for k in wanted if k in row} for row in rows]

    def _project_row(
        self, collection: str, row: Mapping[str, Any], allowlist: FieldAllowlist
    ) -> dict[str, Any]:
        relations = self._schema.relationships(collection)
        result: dict[str, Any] = {}
        for key, value in row.items():
            relation = relations.get(key)
            if relation is None:
                if allowlist.allows_field(key):
                    result[key] = value
                continue
            if not allowlist.allows_relation(key):
                continue
            nested = allowlist.for_relation(key)
            if isinstance(value, Mapping):
                result[key] = self._project_row(relation.target, value, nested)
            elif isinstance(value, list):
                result[key] = [
                    self._project_row(relation.target, item, nested)
                    if isinstance(item, Mapping)
                    else item
                    for item in value
                ]
            else:
                result[key] = value
        return result
