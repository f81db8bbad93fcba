"""Collection schema - fields and relationships of a collection."""

from dataclasses import dataclass, field
from enum import StrEnum

from querygate.domain.value_objects import FieldType
from querygate.domain.value_objects.field_type import SEARCHABLE_FAMILIES


class RelationType(StrEnum):
    """Relationship kinds between collections."""

    M2O = "M2O"
    O2O = "O2O"
    O2M = "O2M"
    M2M = "M2M"

    @classmethod
    def _missing_(cls, value: object) -> "RelationType | None":
        legacy = {
            "BelongsTo": cls.M2O,
            "HasOne": cls.O2O,
            "HasMany": cls.O2M,
            "BelongsToMany": cls.M2M,
        }
        return legacy.get(value) if isinstance(value, str) else None


@dataclass(frozen=True)
class FieldDefinition:
    """Single scalar field."""

    name: str
    type: FieldType
    primary_key: bool = False
    allow_null: bool = True


@dataclass(frozen=True)
class Relationship:
    """Named relation to another collection.

    For M2O/O2O ``foreign_key`` is a column of the source table, for O2M it
    is a column of the target table. M2M goes through a junction table.
    """

    name: str
    type: RelationType
    target: str
    foreign_key: str | None = None
    through: str | None = None
    through_source_key: str | None = None
    through_target_key: str | None = None

    @property
    def is_to_one(self) -> bool:
        return self.type in (RelationType.M2O, RelationType.O2O)


@dataclass(frozen=True)
class CollectionSchema:
    """Declarative description of a collection."""

    name: str
    fields: dict[str, FieldDefinition]
    relationships: dict[str, Relationship] = field(default_factory=dict)
    table: str = ""
    paranoid: bool = False

    @property
    def table_name(self) -> str:
        return self.table or self.name

    @property
    def primary_key(self) -> str:
        for f in self.fields.values():
            if f.primary_key:
                return f.name
        return "id"

    def scalar_fields(self) -> list[str]:
        """Names of all non-relation fields, in declaration order."""
        return list(self.fields)

    def searchable_fields(self) -> list[str]:
        """Text and identifier fields used when no search fields are given."""
        return [f.name for f in self.fields.values() if f.type.family in SEARCHABLE_FAMILIES]
