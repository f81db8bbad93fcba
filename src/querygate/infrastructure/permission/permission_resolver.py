"""Permission resolver - effective grant from the cached permissions."""

from querygate.application.dto.permission_grant import PermissionGrant
from querygate.application.query.filter_parser import FilterParser
from querygate.domain.entities import Accountability
from querygate.domain.value_objects import FieldAllowlist, PermissionAction
from querygate.infrastructure.permission.permission_cache import PermissionCache


class CachedPermissionResolver:
    """Resolves grants against the current permission snapshot.

    Administrators get an unrestricted grant. Anyone else gets exactly
    the stored rule for (role, collection, action), or a denied grant when
    there is none. Conditions are parsed here and left with their dynamic
    variables unresolved.
    """

    def __init__(self, cache: PermissionCache, parser: FilterParser) -> None:
        self._cache = cache
        self._parser = parser

    def resolve(
        self, accountability: Accountability, collection: str, action: PermissionAction
    ) -> PermissionGrant:
        if accountability.is_admin:
            return PermissionGrant.admin()
        if accountability.role is None:
            return PermissionGrant.deny()

        permission = self._cache.snapshot.get(accountability.role.id, collection, action)
        if permission is None:
            return PermissionGrant.deny()

        return PermissionGrant(
            allowlist=FieldAllowlist.from_fields(permission.fields),
            condition=self._parser.parse(collection, permission.conditions),
            rel_conditions=self._parser.parse_rel_conditions(
                collection, permission.rel_conditions
            ),
            default_values=dict(permission.default_values),
        )
