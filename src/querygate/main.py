"""Application entry point and composition root."""

import logging

import falcon
import falcon.asgi

from querygate import __version__
from querygate.application.query.compiler import QueryCompiler
from querygate.application.query.filter_parser import FilterParser
from querygate.application.query.projector import FieldProjector
from querygate.application.use_cases.items.create_item import CreateItemUseCase
from querygate.application.use_cases.items.delete_item import DeleteItemUseCase
from querygate.application.use_cases.items.read_item import ReadItemUseCase
from querygate.application.use_cases.items.read_items import ReadItemsUseCase
from querygate.application.use_cases.items.update_item import UpdateItemUseCase
from querygate.application.use_cases.permission.create_permission import CreatePermissionUseCase
from querygate.application.use_cases.permission.delete_permission import DeletePermissionUseCase
from querygate.application.use_cases.permission.list_permissions import ListPermissionsUseCase
from querygate.application.use_cases.permission.update_permission import UpdatePermissionUseCase
from querygate.config import get_settings
from querygate.infrastructure.auth.keycloak_provider import KeycloakProvider
from querygate.infrastructure.permission.permission_cache import PermissionCache
from querygate.infrastructure.permission.permission_resolver import CachedPermissionResolver
from querygate.infrastructure.persistence.postgres.connection import create_pool
from querygate.infrastructure.persistence.postgres.unit_of_work import create_uow_factory
from querygate.infrastructure.schema.schema_registry import SchemaRegistry
from querygate.interfaces.api.media import configure_media
from querygate.interfaces.api.middleware.auth import AuthMiddleware
from querygate.interfaces.api.middleware.cors import CORSMiddleware
from querygate.interfaces.api.middleware.lifespan import LifespanMiddleware
from querygate.interfaces.api.resources.health import HealthResource
from querygate.interfaces.api.resources.items import (
    ItemResource,
    ItemsQueryResource,
    ItemsResource,
)
from querygate.interfaces.api.resources.permissions import (
    PermissionResource,
    PermissionsResource,
)
from querygate.log import configure_logging

logger = logging.getLogger(__name__)


def create_querygate_app() -> falcon.asgi.App:
    """Composition root - build Falcon app with all dependencies."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.debug)

    pool = create_pool(
        settings.database_url,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
    )
    registry = SchemaRegistry()
    uow_factory = create_uow_factory(pool, registry)

    keycloak = (
        KeycloakProvider(
            server_url=settings.keycloak_url,
            realm=settings.keycloak_realm,
            client_id=settings.keycloak_client_id,
            client_secret=settings.keycloak_client_secret,
            tenant_claim=settings.keycloak_tenant_claim,
        )
        if settings.keycloak_client_secret
        else None
    )

    parser = FilterParser(registry, max_depth=settings.max_relation_depth)
    permission_cache = PermissionCache(uow_factory)
    permission_resolver = CachedPermissionResolver(permission_cache, parser)
    compiler = QueryCompiler(registry, parser, max_depth=settings.max_relation_depth)
    projector = FieldProjector(registry)

    read_items = ReadItemsUseCase(
        unit_of_work_factory=uow_factory,
        permission_resolver=permission_resolver,
        compiler=compiler,
        projector=projector,
    )
    read_item = ReadItemUseCase(
        unit_of_work_factory=uow_factory,
        permission_resolver=permission_resolver,
        schema=registry,
        compiler=compiler,
        projector=projector,
    )
    create_item = CreateItemUseCase(
        unit_of_work_factory=uow_factory,
        permission_resolver=permission_resolver,
        schema=registry,
    )
    update_item = UpdateItemUseCase(
        unit_of_work_factory=uow_factory,
        permission_resolver=permission_resolver,
        schema=registry,
    )
    delete_item = DeleteItemUseCase(
        unit_of_work_factory=uow_factory,
        permission_resolver=permission_resolver,
        schema=registry,
    )
    list_permissions = ListPermissionsUseCase(unit_of_work_factory=uow_factory)
    create_permission = CreatePermissionUseCase(
        unit_of_work_factory=uow_factory,
        permission_cache=permission_cache,
        schema=registry,
        parser=parser,
    )
    update_permission = UpdatePermissionUseCase(
        unit_of_work_factory=uow_factory,
        permission_cache=permission_cache,
        schema=registry,
        parser=parser,
    )
    delete_permission = DeletePermissionUseCase(
        unit_of_work_factory=uow_factory,
        permission_cache=permission_cache,
    )

    async def load_schemas() -> None:
        await registry.reload(uow_factory)

    cors_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app = falcon.asgi.App(
        middleware=[
            CORSMiddleware(cors_origins),
            LifespanMiddleware(pool, [load_schemas, permission_cache.reload]),
            AuthMiddleware(
                keycloak,
                uow_factory,
                public_role_name=settings.public_role_name,
                admin_role_name=settings.admin_role_name,
            ),
        ],
    )
    configure_media(app)

    async def log_exception(req, resp, ex, params):
        if isinstance(ex, falcon.HTTPError):
            raise ex
        logger.exception("Unhandled error on %s %s", req.method, req.path)
        resp.status = falcon.HTTP_500
        resp.media = {"title": "500 Internal Server Error"}

    health_resource = HealthResource(pool, registry)
    items_resource = ItemsResource(read_items, create_item, settings.default_query_limit)
    items_query_resource = ItemsQueryResource(read_items, settings.default_query_limit)
    item_resource = ItemResource(read_item, update_item, delete_item)

    app.add_error_handler(Exception, log_exception)
    app.add_route("/v1/health", health_resource)
    app.add_route("/v1/health/ready", health_resource, suffix="ready")
    app.add_route("/v1/items/{collection}", items_resource)
    app.add_route("/v1/items/{collection}/query", items_query_resource)
    app.add_route("/v1/items/{collection}/{item_id}", item_resource)
    app.add_route("/v1/permissions", PermissionsResource(list_permissions, create_permission))
    app.add_route(
        "/v1/permissions/{permission_id}",
        PermissionResource(update_permission, delete_permission),
    )

    logger.info("QueryGate v%s configured (%s)", __version__, settings.environment)
    return app


def run_server() -> None:
    """Run uvicorn server."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(create_querygate_app(), host=settings.host, port=settings.port)


def main() -> None:
    """CLI entry point."""
    print(f"QueryGate v{__version__}")
    run_server()
