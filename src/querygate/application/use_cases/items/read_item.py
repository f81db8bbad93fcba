"""Read single item use case."""

import logging
from typing import Any

from querygate.application.dto.query_request import QueryRequest
from querygate.application.ports import PermissionResolver, SchemaProvider, UnitOfWorkFactory
from querygate.application.query.compiler import QueryCompiler
from querygate.application.query.projector import FieldProjector
from querygate.application.query.variables import VariableResolver
from querygate.domain.entities import Accountability
from querygate.domain.exceptions import AccessDenied, NotFound
from querygate.domain.value_objects import Condition, Operator, PermissionAction
from querygate.domain.value_objects.filter_node import conjoin

logger = logging.getLogger(__name__)


class ReadItemUseCase:
    """Read one item by primary key within the caller's read permission."""

    def __init__(
        self,
        unit_of_work_factory: UnitOfWorkFactory,
        permission_resolver: PermissionResolver,
        schema: SchemaProvider,
        compiler: QueryCompiler,
        projector: FieldProjector,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._permission_resolver = permission_resolver
        self._schema = schema
        self._compiler = compiler
        self._projector = projector

    async def execute(
        self,
        accountability: Accountability,
        collection: str,
        item_id: Any,
        fields: list[str] | None = None,
    ) -> dict[str, Any]:
        """Return the projected item; NotFound when it is missing or outside the grant."""
        grant = self._permission_resolver.resolve(
            accountability, collection, PermissionAction.READ
        )
        if grant.denied:
            logger.info("Denied read on %s", collection)
            raise AccessDenied()
        schema = self._schema.get_collection(collection)
        if schema is None:
            raise NotFound("Collection", collection)

        request = QueryRequest(collection=collection, fields=fields, limit=1)
        compiled = self._compiler.compile(request, grant, VariableResolver(accountability))
        # added after compiling so a hidden primary key is not pruned
        compiled.filter = conjoin(Condition(schema.primary_key, Operator.EQ, item_id), compiled.filter)

        async with self._uow_factory() as uow:
            rows, _ = await uow.items.read(compiled)
        if not rows:
            raise NotFound("Item", str(item_id))
        return self._projector.project(compiled.collection, rows[:1], compiled.allowlist)[0]
