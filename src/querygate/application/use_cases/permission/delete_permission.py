"""Delete permission use case."""

import logging
from uuid import UUID

from querygate.application.ports import PermissionCache, UnitOfWorkFactory
from querygate.domain.entities import Accountability
from querygate.domain.exceptions import AccessDenied, NotFound

logger = logging.getLogger(__name__)


class DeletePermissionUseCase:
    """Delete a permission rule. Administrators only."""

    def __init__(
        self,
        unit_of_work_factory: UnitOfWorkFactory,
        permission_cache: PermissionCache,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._permission_cache = permission_cache

    async def execute(self, actor: Accountability, permission_id: UUID) -> None:
        if not actor.is_admin:
            raise AccessDenied()
        async with self._uow_factory() as uow:
            permission = await uow.permissions.get_by_id(permission_id)
            if not permission:
                raise NotFound("Permission", str(permission_id))
            await uow.permissions.delete(permission_id)

        await self._permission_cache.reload()
        logger.info("Deleted permission %s", permission_id)
