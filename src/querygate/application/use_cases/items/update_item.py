"""Update item use case."""

import logging
from typing import Any

from querygate.application.ports import PermissionResolver, SchemaProvider, UnitOfWorkFactory
from querygate.application.use_cases.items.nested import write_to_many, write_to_one
from querygate.application.use_cases.items.payload import prepare_payload
from querygate.application.use_cases.items.security import write_security
from querygate.domain.entities import Accountability
from querygate.domain.exceptions import AccessDenied, NotFound, ValidationError
from querygate.domain.value_objects import PermissionAction

logger = logging.getLogger(__name__)


class UpdateItemUseCase:
    """Update one item; the update permission's conditions bound which rows match."""

    def __init__(
        self,
        unit_of_work_factory: UnitOfWorkFactory,
        permission_resolver: PermissionResolver,
        schema: SchemaProvider,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._permission_resolver = permission_resolver
        self._schema = schema

    async def execute(
        self,
        accountability: Accountability,
        collection: str,
        item_id: Any,
        data: dict[str, Any],
    ) -> Any:
        """Update the item and return its primary key."""
        grant = self._permission_resolver.resolve(
            accountability, collection, PermissionAction.UPDATE
        )
        if grant.denied:
            logger.info("Denied update on %s", collection)
            raise AccessDenied()
        schema = self._schema.get_collection(collection)
        if schema is None:
            raise NotFound("Collection", collection)
        if not data:
            raise ValidationError("Nothing to update")

        row_filter, rel_conditions, variables = write_security(
            schema, grant, accountability, item_id
        )
        payload = prepare_payload(schema, grant, variables, data, self._schema)

        async with self._uow_factory() as uow:
            await write_to_one(uow, payload)
            # nested-only updates still have to match the row under the security filter
            values = payload.values or {schema.primary_key: item_id}
            keys = await uow.items.update(collection, row_filter, values, rel_conditions)
            if not keys:
                raise NotFound("Item", str(item_id))
            await write_to_many(uow, schema, payload, keys[0])
        return keys[0]
