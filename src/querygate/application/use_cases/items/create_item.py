"""Create item use case."""

import logging
from typing import Any

from querygate.application.ports import PermissionResolver, SchemaProvider, UnitOfWorkFactory
from querygate.application.query.evaluator import matches
from querygate.application.query.variables import VariableResolver
from querygate.application.use_cases.items.nested import write_to_many, write_to_one
from querygate.application.use_cases.items.payload import prepare_payload
from querygate.domain.entities import Accountability
from querygate.domain.exceptions import AccessDenied, NotFound
from querygate.domain.value_objects import PermissionAction

logger = logging.getLogger(__name__)


class CreateItemUseCase:
    """Create an item if the payload satisfies the create permission."""

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
        self, accountability: Accountability, collection: str, data: dict[str, Any]
    ) -> Any:
        """Insert the item and return its primary key."""
        grant = self._permission_resolver.resolve(
            accountability, collection, PermissionAction.CREATE
        )
        if grant.denied:
            logger.info("Denied create on %s", collection)
            raise AccessDenied()
        schema = self._schema.get_collection(collection)
        if schema is None:
            raise NotFound("Collection", collection)

        variables = VariableResolver(accountability)
        payload = prepare_payload(schema, grant, variables, data, self._schema)
        if grant.condition is not None and not grant.unrestricted:
            condition = variables.resolve_filter(grant.condition)
            if not matches(condition, payload.values):
                logger.info("Create on %s rejected by permission condition", collection)
                raise AccessDenied()
        if grant.rel_conditions and not grant.unrestricted:
            # related rows of an item that does not exist yet cannot be checked
            logger.info("Create on %s rejected by relation conditions", collection)
            raise AccessDenied()

        async with self._uow_factory() as uow:
            await write_to_one(uow, payload)
            key = await uow.items.create(collection, payload.values)
            await write_to_many(uow, schema, payload, key)
        logger.info("Created item %s in %s", key, collection)
        return key
