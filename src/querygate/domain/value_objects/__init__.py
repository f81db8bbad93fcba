"""Domain value objects."""

from querygate.domain.value_objects.field_allowlist import FieldAllowlist
from querygate.domain.value_objects.field_type import FieldType, TypeFamily
from querygate.domain.value_objects.filter_node import (
    MATCH_ALL,
    MATCH_NONE,
    And,
    Condition,
    FilterNode,
    MatchAll,
    MatchNone,
    Not,
    Or,
)
from querygate.domain.value_objects.operator import Operator
from querygate.domain.value_objects.permission_action import PermissionAction

__all__ = [
    "MATCH_ALL",
    "MATCH_NONE",
    "And",
    "Condition",
    "FieldAllowlist",
    "FieldType",
    "FilterNode",
    "MatchAll",
    "MatchNone",
    "Not",
    "Operator",
    "Or",
    "PermissionAction",
    "TypeFamily",
]
