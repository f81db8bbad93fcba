"""Read items use case."""

import logging

from querygate.application.dto.compiled_query import ReadResult
from querygate.application.dto.query_request import QueryRequest
from querygate.application.ports import PermissionResolver, UnitOfWorkFactory
from querygate.application.query.compiler import QueryCompiler
from querygate.application.query.projector import FieldProjector
from querygate.application.query.variables import VariableResolver
from querygate.domain.entities import Accountability
from querygate.domain.exceptions import AccessDenied
from querygate.domain.value_objects import PermissionAction

logger = logging.getLogger(__name__)


class ReadItemsUseCase:
    """Read items of a collection within the caller's permission.

    Resolve the grant, compile the request against it, execute, then strip
    every field the caller may not see.
    """

    def __init__(
        self,
        unit_of_work_factory: UnitOfWorkFactory,
        permission_resolver: PermissionResolver,
        compiler: QueryCompiler,
        projector: FieldProjector,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._permission_resolver = permission_resolver
        self._compiler = compiler
        self._projector = projector

    async def execute(
        self,
        accountability: Accountability,
        request: QueryRequest,
        action: PermissionAction = PermissionAction.READ,
    ) -> ReadResult:
        """Run the query and return ``{data, totalCount}``."""
        grant = self._permission_resolver.resolve(accountability, request.collection, action)
        if grant.denied:
            logger.info(
                "Denied %s on %s for role %s",
                action,
                request.collection,
                accountability.role.name if accountability.role else None,
            )
            raise AccessDenied()

        compiled = self._compiler.compile(request, grant, VariableResolver(accountability))

        async with self._uow_factory() as uow:
            rows, total = await uow.items.read(compiled)

        if compiled.is_aggregate:
            data = self._projector.project_keys(rows, compiled.selection.columns)
        else:
            data = self._projector.project(compiled.collection, rows, compiled.allowlist)
        return ReadResult(data=data, total_count=total)
