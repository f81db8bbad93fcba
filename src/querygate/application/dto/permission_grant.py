"""Permission grant - effective, parsed permission for one request."""

from dataclasses import dataclass, field
from typing import Any

from querygate.domain.value_objects import MATCH_NONE, FieldAllowlist, FilterNode


@dataclass(frozen=True)
class PermissionGrant:
    """What a caller may do for one (collection, action).

    ``condition`` of None means no row restriction. Condition values may
    still contain dynamic variables; they are resolved per request.
    """

    allowlist: FieldAllowlist
    condition: FilterNode | None = None
    rel_conditions: dict[str, FilterNode] = field(default_factory=dict)
    default_values: dict[str, Any] = field(default_factory=dict)
    unrestricted: bool = False
    denied: bool = False

    @classmethod
    def admin(cls) -> "PermissionGrant":
        """Full access, no security filter."""
        return cls(FieldAllowlist.all(), unrestricted=True)

    @classmethod
    def deny(cls) -> "PermissionGrant":
        """No rule applies: nothing visible, nothing matches."""
        return cls(FieldAllowlist.none(), condition=MATCH_NONE, denied=True)
