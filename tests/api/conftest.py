"""Fixtures for API tests."""

import falcon.asgi
import pytest
from falcon.testing import TestClient

from querygate.application.use_cases.items.create_item import CreateItemUseCase
from querygate.application.use_cases.items.delete_item import DeleteItemUseCase
from querygate.application.use_cases.items.read_item import ReadItemUseCase
from querygate.application.use_cases.items.read_items import ReadItemsUseCase
from querygate.application.use_cases.items.update_item import UpdateItemUseCase
from querygate.application.use_cases.permission.create_permission import CreatePermissionUseCase
from querygate.application.use_cases.permission.delete_permission import DeletePermissionUseCase
from querygate.application.use_cases.permission.list_permissions import ListPermissionsUseCase
from querygate.application.use_cases.permission.update_permission import UpdatePermissionUseCase
from querygate.interfaces.api.media import configure_media
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


class AuthBypassMiddleware:
    """Middleware that sets context.accountability from a test-controlled holder."""

    def __init__(self, holder: dict) -> None:
        self._holder = holder

    async def process_request(self, req, resp):
        req.context.accountability = self._holder.get("accountability")


@pytest.fixture
def caller(editor):
    """Mutable holder for the accountability of the next request."""
    return {"accountability": editor}


@pytest.fixture
def app(caller, uow_factory, permission_cache, resolver, compiler, projector, registry, parser):
    """Falcon ASGI app with API resources for testing."""
    read_items = ReadItemsUseCase(uow_factory, resolver, compiler, projector)
    read_item = ReadItemUseCase(uow_factory, resolver, registry, compiler, projector)
    create_item = CreateItemUseCase(uow_factory, resolver, registry)
    update_item = UpdateItemUseCase(uow_factory, resolver, registry)
    delete_item = DeleteItemUseCase(uow_factory, resolver, registry)

    app = falcon.asgi.App(middleware=[AuthBypassMiddleware(caller)])
    configure_media(app)
    health = HealthResource(None, registry)
    app.add_route("/v1/health", health)
    app.add_route("/v1/health/ready", health, suffix="ready")
    app.add_route("/v1/items/{collection}", ItemsResource(read_items, create_item, 10))
    app.add_route("/v1/items/{collection}/query", ItemsQueryResource(read_items, 10))
    app.add_route(
        "/v1/items/{collection}/{item_id}",
        ItemResource(read_item, update_item, delete_item),
    )
    app.add_route(
        "/v1/permissions",
        PermissionsResource(
            ListPermissionsUseCase(uow_factory),
            CreatePermissionUseCase(uow_factory, permission_cache, registry, parser),
        ),
    )
    app.add_route(
        "/v1/permissions/{permission_id}",
        PermissionResource(
            UpdatePermissionUseCase(uow_factory, permission_cache, registry, parser),
            DeletePermissionUseCase(uow_factory, permission_cache),
        ),
    )
    return app


@pytest.fixture
def client(app):
    """Falcon ASGI test client."""
    return TestClient(app)
