"""Update permission use case."""

import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from querygate.application.dto.permission_dto import UPDATABLE_FIELDS
from querygate.application.ports import PermissionCache, SchemaProvider, UnitOfWorkFactory
from querygate.application.query.filter_parser import FilterParser
from querygate.application.use_cases.permission.validation import validate_permission
from querygate.domain.entities import Accountability, Permission
from querygate.domain.exceptions import AccessDenied, NotFound, ValidationError

logger = logging.getLogger(__name__)


class UpdatePermissionUseCase:
    """Change fields, conditions, relConditions or default values of a rule."""

    def __init__(
        self,
        unit_of_work_factory: UnitOfWorkFactory,
        permission_cache: PermissionCache,
        schema: SchemaProvider,
        parser: FilterParser,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._permission_cache = permission_cache
        self._schema = schema
        self._parser = parser

    async def execute(
        self, actor: Accountability, permission_id: UUID, changes: Mapping[str, Any]
    ) -> Permission:
        """Apply the changes and reload the permission cache."""
        if not actor.is_admin:
            raise AccessDenied()
        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update {', '.join(sorted(unknown))}")

        async with self._uow_factory() as uow:
            permission = await uow.permissions.get_by_id(permission_id)
            if not permission:
                raise NotFound("Permission", str(permission_id))
            for name, value in changes.items():
                if name in ("rel_conditions", "default_values") and value is None:
                    value = {}
                setattr(permission, name, value)
            permission.updated_at = datetime.now(UTC)
            validate_permission(permission, self._schema, self._parser)
            await uow.permissions.update(permission)

        await self._permission_cache.reload()
        logger.info("Updated permission %s", permission_id)
        return permission
