"""Create permission use case."""

import logging
from datetime import UTC, datetime
from uuid import uuid4

from querygate.application.dto.permission_dto import PermissionCreateInput
from querygate.application.ports import PermissionCache, SchemaProvider, UnitOfWorkFactory
from querygate.application.query.filter_parser import FilterParser
from querygate.application.use_cases.permission.validation import validate_permission
from querygate.domain.entities import Accountability, Permission
from querygate.domain.exceptions import AccessDenied, NotFound, ValidationError

logger = logging.getLogger(__name__)


class CreatePermissionUseCase:
    """Create a permission rule. Administrators only."""

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

    async def execute(self, actor: Accountability, data: PermissionCreateInput) -> Permission:
        """Store the rule and reload the permission cache."""
        if not actor.is_admin:
            raise AccessDenied()

        now = datetime.now(UTC)
        permission = Permission(
            id=uuid4(),
            role_id=data.role_id,
            collection=data.collection,
            action=data.action,
            fields=data.fields,
            conditions=data.conditions,
            rel_conditions=data.rel_conditions,
            default_values=data.default_values,
            created_at=now,
            updated_at=now,
        )
        validate_permission(permission, self._schema, self._parser)

        async with self._uow_factory() as uow:
            role = await uow.roles.get_by_id(data.role_id)
            if not role:
                raise NotFound("Role", str(data.role_id))
            existing = await uow.permissions.find(data.role_id, data.collection, data.action)
            if existing:
                raise ValidationError(
                    f"Role '{role.name}' already has a {data.action} permission on "
                    f"'{data.collection}'"
                )
            await uow.permissions.create(permission)

        await self._permission_cache.reload()
        logger.info(
            "Created permission %s: role=%s collection=%s action=%s",
            permission.id,
            role.name,
            permission.collection,
            permission.action,
        )
        return permission
