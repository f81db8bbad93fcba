"""Permission resolver port - effective grant for a caller."""

from typing import Protocol

from querygate.application.dto.permission_grant import PermissionGrant
from querygate.domain.entities import Accountability
from querygate.domain.value_objects import PermissionAction


class PermissionResolver(Protocol):
    """Port for resolving what a caller may do on a collection."""

    def resolve(
        self, accountability: Accountability, collection: str, action: PermissionAction
    ) -> PermissionGrant: ...
