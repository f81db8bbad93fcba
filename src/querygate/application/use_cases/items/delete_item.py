"""Delete item use case."""

import logging
from typing import Any

from querygate.application.ports import PermissionResolver, SchemaProvider, UnitOfWorkFactory
from querygate.application.use_cases.items.security import write_security
from querygate.domain.entities import Accountability
from querygate.domain.exceptions import AccessDenied, NotFound
from querygate.domain.value_objects import PermissionAction

logger = logging.getLogger(__name__)


class DeleteItemUseCase:
    """Delete one item if the delete permission's conditions allow it."""

    def __init__(
        self,
        unit_of_work_factory: UnitOfWorkFactory,
        permission_resolver: PermissionResolver,
        schema: SchemaProvider,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._permission_resolver = permission_resolver
        self._schema = schema

    async def execute(self, accountability: Accountability, collection: str, item_id: Any) -> None:
        grant = self._permission_resolver.resolve(
            accountability, collection, PermissionAction.DELETE
        )
        if grant.denied:
            logger.info("Denied delete on %s", collection)
            raise AccessDenied()
        schema = self._schema.get_collection(collection)
        if schema is None:
            raise NotFound("Collection", collection)

        row_filter, rel_conditions, _ = write_security(schema, grant, accountability, item_id)

        async with self._uow_factory() as uow:
            keys = await uow.items.delete(collection, row_filter, rel_conditions)
        if not keys:
            raise NotFound("Item", str(item_id))
        logger.info("Deleted item %s from %s", item_id, collection)
