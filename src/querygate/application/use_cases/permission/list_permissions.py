"""List permissions use case."""

from querygate.application.ports import UnitOfWorkFactory
from querygate.domain.entities import Accountability, Permission
from querygate.domain.exceptions import AccessDenied


class ListPermissionsUseCase:
    """List every permission rule. Administrators only."""

    def __init__(self, unit_of_work_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = unit_of_work_factory

    async def execute(self, actor: Accountability) -> list[Permission]:
        if not actor.is_admin:
            raise AccessDenied()
        async with self._uow_factory() as uow:
            return await uow.permissions.list_all()
