"""Items API resources."""

from collections.abc import Mapping

import falcon
import falcon.asgi

from querygate.application.use_cases.items.create_item import CreateItemUseCase
from querygate.application.use_cases.items.delete_item import DeleteItemUseCase
from querygate.application.use_cases.items.read_item import ReadItemUseCase
from querygate.application.use_cases.items.read_items import ReadItemsUseCase
from querygate.application.use_cases.items.update_item import UpdateItemUseCase
from querygate.domain.exceptions import QueryGateError
from querygate.interfaces.api.query_params import parse_fields, parse_query_request
from querygate.interfaces.api.resources.errors import error_response, unauthorized


async def _read_body(req: falcon.asgi.Request, resp: falcon.asgi.Response) -> dict | None:
    try:
        body = await req.get_media()
    except falcon.MediaMalformedError:
        body = None
    if not isinstance(body, Mapping):
        resp.status = falcon.HTTP_400
        resp.media = {"error": "Request body must be a JSON object"}
        return None
    return dict(body)


class ItemsResource:
    """GET/POST /v1/items/{collection} - query and create items."""

    def __init__(
        self,
        read_items: ReadItemsUseCase,
        create_item: CreateItemUseCase,
        default_limit: int = 10,
    ) -> None:
        self._read = read_items
        self._create = create_item
        self._default_limit = default_limit

    async def on_get(
        self, req: falcon.asgi.Request, resp: falcon.asgi.Response, collection: str
    ) -> None:
        """Query items with filter, fields, sort, pagination, search and aggregates."""
        accountability = getattr(req.context, "accountability", None)
        if not accountability:
            unauthorized(resp)
            return
        try:
            request = parse_query_request(collection, req.params, self._default_limit)
            result = await self._read.execute(accountability, request)
        except QueryGateError as e:
            error_response(resp, e)
            return
        resp.media = result.to_dict()
        resp.status = falcon.HTTP_200

    async def on_post(
        self, req: falcon.asgi.Request, resp: falcon.asgi.Response, collection: str
    ) -> None:
        """Create an item."""
        accountability = getattr(req.context, "accountability", None)
        if not accountability:
            unauthorized(resp)
            return
        body = await _read_body(req, resp)
        if body is None:
            return
        try:
            key = await self._create.execute(accountability, collection, body)
        except QueryGateError as e:
            error_response(resp, e)
            return
        resp.media = {"data": {"id": key}}
        resp.status = falcon.HTTP_201


class ItemsQueryResource:
    """POST /v1/items/{collection}/query - query items with a JSON body."""

    def __init__(self, read_items: ReadItemsUseCase, default_limit: int = 10) -> None:
        self._read = read_items
        self._default_limit = default_limit

    async def on_post(
        self, req: falcon.asgi.Request, resp: falcon.asgi.Response, collection: str
    ) -> None:
        accountability = getattr(req.context, "accountability", None)
        if not accountability:
            unauthorized(resp)
            return
        body = await _read_body(req, resp)
        if body is None:
            return
        try:
            request = parse_query_request(collection, body, self._default_limit)
            result = await self._read.execute(accountability, request)
        except QueryGateError as e:
            error_response(resp, e)
            return
        resp.media = result.to_dict()
        resp.status = falcon.HTTP_200


class ItemResource:
    """GET/PATCH/DELETE /v1/items/{collection}/{item_id} - read, update and delete one item."""

    def __init__(
        self,
        read_item: ReadItemUseCase,
        update_item: UpdateItemUseCase,
        delete_item: DeleteItemUseCase,
    ) -> None:
        self._read = read_item
        self._update = update_item
        self._delete = delete_item

    async def on_get(
        self,
        req: falcon.asgi.Request,
        resp: falcon.asgi.Response,
        collection: str,
        item_id: str,
    ) -> None:
        """Read an item."""
        accountability = getattr(req.context, "accountability", None)
        if not accountability:
            unauthorized(resp)
            return
        try:
            fields = parse_fields(req.params)
            item = await self._read.execute(accountability, collection, item_id, fields)
        except QueryGateError as e:
            error_response(resp, e)
            return
        resp.media = {"data": item}
        resp.status = falcon.HTTP_200

    async def on_patch(
        self,
        req: falcon.asgi.Request,
        resp: falcon.asgi.Response,
        collection: str,
        item_id: str,
    ) -> None:
        """Update an item."""
        accountability = getattr(req.context, "accountability", None)
        if not accountability:
            unauthorized(resp)
            return
        body = await _read_body(req, resp)
        if body is None:
            return
        try:
            key = await self._update.execute(accountability, collection, item_id, body)
        except QueryGateError as e:
            error_response(resp, e)
            return
        resp.media = {"data": {"id": key}}
        resp.status = falcon.HTTP_200

    async def on_delete(
        self,
        req: falcon.asgi.Request,
        resp: falcon.asgi.Response,
        collection: str,
        item_id: str,
    ) -> None:
        """Delete an item."""
        accountability = getattr(req.context, "accountability", None)
        if not accountability:
            unauthorized(resp)
            return
        try:
            await self._delete.execute(accountability, collection, item_id)
        except QueryGateError as e:
            error_response(resp, e)
            return
        resp.status = falcon.HTTP_204
