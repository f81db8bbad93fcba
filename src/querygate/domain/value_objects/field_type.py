"""Field types declared in collection schemas and their operator families."""

from enum import StrEnum


class TypeFamily(StrEnum):
    """Groups of field types that accept the same operators."""

    TEXT = "text"
    IDENTIFIER = "identifier"
    NUMERIC = "numeric"
    BOOLEAN = "boolean"
    TEMPORAL = "temporal"
    JSON = "json"
    ARRAY = "array"
    GEOMETRY = "geometry"


class FieldType(StrEnum):
    """Supported field types of a collection schema."""

    STRING = "String"
    TEXT = "Text"
    HTML = "HTML"
    ENUM = "Enum"
    UUID = "UUID"
    SUID = "SUID"
    INTEGER = "Integer"
    BIGINT = "BigInt"
    FLOAT = "Float"
    REAL = "Real"
    DOUBLE = "Double"
    DECIMAL = "Decimal"
    BOOLEAN = "Boolean"
    DATE = "Date"
    DATETIME = "DateTime"
    TIME = "Time"
    JSON = "JSON"
    JSONB = "JSONB"
    ARRAY = "Array"
    GEOMETRY = "Geometry"
    POINT = "Point"
    LINESTRING = "LineString"
    POLYGON = "Polygon"

    @classmethod
    def _missing_(cls, value: object) -> "FieldType | None":
        if isinstance(value, str):
            lowered = value.lower()
            for member in cls:
                if member.value.lower() == lowered:
                    return member
        return None

    @property
    def family(self) -> TypeFamily:
        """Operator family of this field type."""
        return _FAMILIES[self]


_FAMILIES: dict[FieldType, TypeFamily] = {
    FieldType.STRING: TypeFamily.TEXT,
    FieldType.TEXT: TypeFamily.TEXT,
    FieldType.HTML: TypeFamily.TEXT,
    FieldType.ENUM: TypeFamily.TEXT,
    FieldType.UUID: TypeFamily.IDENTIFIER,
    FieldType.SUID: TypeFamily.IDENTIFIER,
    FieldType.INTEGER: TypeFamily.NUMERIC,
    FieldType.BIGINT: TypeFamily.NUMERIC,
    FieldType.FLOAT: TypeFamily.NUMERIC,
    FieldType.REAL: TypeFamily.NUMERIC,
    FieldType.DOUBLE: TypeFamily.NUMERIC,
    FieldType.DECIMAL: TypeFamily.NUMERIC,
    FieldType.BOOLEAN: TypeFamily.BOOLEAN,
    FieldType.DATE: TypeFamily.TEMPORAL,
    FieldType.DATETIME: TypeFamily.TEMPORAL,
    FieldType.TIME: TypeFamily.TEMPORAL,
    FieldType.JSON: TypeFamily.JSON,
    FieldType.JSONB: TypeFamily.JSON,
    FieldType.ARRAY: TypeFamily.ARRAY,
    FieldType.GEOMETRY: TypeFamily.GEOMETRY,
    FieldType.POINT: TypeFamily.GEOMETRY,
    FieldType.LINESTRING: TypeFamily.GEOMETRY,
    FieldType.POLYGON: TypeFamily.GEOMETRY,
}

# SQL cast target -> family the cast value is validated against
CAST_FAMILIES: dict[str, TypeFamily] = {
    "text": TypeFamily.TEXT,
    "varchar": TypeFamily.TEXT,
    "uuid": TypeFamily.IDENTIFIER,
    "numeric": TypeFamily.NUMERIC,
    "integer": TypeFamily.NUMERIC,
    "bigint": TypeFamily.NUMERIC,
    "double precision": TypeFamily.NUMERIC,
    "boolean": TypeFamily.BOOLEAN,
    "date": TypeFamily.TEMPORAL,
    "time": TypeFamily.TEMPORAL,
    "timestamp": TypeFamily.TEMPORAL,
    "timestamptz": TypeFamily.TEMPORAL,
    "jsonb": TypeFamily.JSON,
}

SEARCHABLE_FAMILIES = frozenset({TypeFamily.TEXT, TypeFamily.IDENTIFIER})
