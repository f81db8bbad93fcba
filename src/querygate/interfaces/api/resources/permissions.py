"""Permissions API resources (administrators only)."""

from typing import Any
from uuid import UUID

import falcon
import falcon.asgi

from querygate.application.dto.permission_dto import PermissionCreateInput
from querygate.application.use_cases.permission.create_permission import CreatePermissionUseCase
from querygate.application.use_cases.permission.delete_permission import DeletePermissionUseCase
from querygate.application.use_cases.permission.list_permissions import ListPermissionsUseCase
from querygate.application.use_cases.permission.update_permission import UpdatePermissionUseCase
from querygate.domain.entities import Permission
from querygate.domain.exceptions import QueryGateError, ValidationError
from querygate.domain.value_objects import PermissionAction
from querygate.interfaces.api.resources.errors import error_response, unauthorized

# API names -> attribute names
_BODY_KEYS = {
    "fields": "fields",
    "conditions": "conditions",
    "relConditions": "rel_conditions",
    "defaultValues": "default_values",
}


def permission_to_dict(p: Permission) -> dict[str, Any]:
    return {
        "id": str(p.id),
        "role_Id": str(p.role_id),
        "collection": p.collection,
        "action": p.action.value,
        "fields": p.fields,
        "conditions": p.conditions,
        "relConditions": p.rel_conditions,
        "defaultValues": p.default_values,
    }


def _parse_uuid(value: Any, name: str) -> UUID:
    try:
        return UUID(str(value))
    except ValueError:
        raise ValidationError(f"Invalid {name}") from None


def _parse_create(body: dict[str, Any]) -> PermissionCreateInput:
    role_id = body.get("role_Id", body.get("roleId"))
    if role_id is None:
        raise ValidationError("Missing required field: role_Id")
    collection = body.get("collection")
    if not isinstance(collection, str) or not collection:
        raise ValidationError("Missing required field: collection")
    try:
        action = PermissionAction(body.get("action"))
    except ValueError:
        raise ValidationError(f"Invalid action {body.get('action')!r}") from None
    return PermissionCreateInput(
        role_id=_parse_uuid(role_id, "role_Id"),
        collection=collection,
        action=action,
        fields=body.get("fields"),
        conditions=body.get("conditions"),
        rel_conditions=body.get("relConditions") or {},
        default_values=body.get("defaultValues") or {},
    )


def _parse_changes(body: dict[str, Any]) -> dict[str, Any]:
    unknown = set(body) - set(_BODY_KEYS)
    if unknown:
        raise ValidationError(f"Cannot update {', '.join(sorted(unknown))}")
    return {_BODY_KEYS[k]: v for k, v in body.items()}


class PermissionsResource:
    """GET/POST /v1/permissions - list and create permission rules."""

    def __init__(
        self,
        list_permissions: ListPermissionsUseCase,
        create_permission: CreatePermissionUseCase,
    ) -> None:
        self._list = list_permissions
        self._create = create_permission

    async def on_get(self, req: falcon.asgi.Request, resp: falcon.asgi.Response) -> None:
        """List permissions."""
        accountability = getattr(req.context, "accountability", None)
        if not accountability:
            unauthorized(resp)
            return
        try:
            permissions = await self._list.execute(accountability)
        except QueryGateError as e:
            error_response(resp, e)
            return
        resp.media = {"data": [permission_to_dict(p) for p in permissions]}
        resp.status = falcon.HTTP_200

    async def on_post(self, req: falcon.asgi.Request, resp: falcon.asgi.Response) -> None:
        """Create a permission."""
        accountability = getattr(req.context, "accountability", None)
        if not accountability:
            unauthorized(resp)
            return
        try:
            body = await req.get_media()
        except falcon.MediaMalformedError:
            body = None
        if not isinstance(body, dict):
            resp.status = falcon.HTTP_400
            resp.media = {"error": "Request body must be a JSON object"}
            return
        try:
            permission = await self._create.execute(accountability, _parse_create(body))
        except QueryGateError as e:
            error_response(resp, e)
            return
        resp.media = {"data": permission_to_dict(permission)}
        resp.status = falcon.HTTP_201


class PermissionResource:
    """PATCH/DELETE /v1/permissions/{permission_id} - change or remove a rule."""

    def __init__(
        self,
        update_permission: UpdatePermissionUseCase,
        delete_permission: DeletePermissionUseCase,
    ) -> None:
        self._update = update_permission
        self._delete = delete_permission

    async def on_patch(
        self, req: falcon.asgi.Request, resp: falcon.asgi.Response, permission_id: str
    ) -> None:
        """Update a permission."""
        accountability = getattr(req.context, "accountability", None)
        if not accountability:
            unauthorized(resp)
            return
        try:
            body = await req.get_media()
        except falcon.MediaMalformedError:
            body = None
        if not isinstance(body, dict):
            resp.status = falcon.HTTP_400
            resp.media = {"error": "Request body must be a JSON object"}
            return
        try:
            permission = await self._update.execute(
                accountability, _parse_uuid(permission_id, "permission id"), _parse_changes(body)
            )
        except QueryGateError as e:
            error_response(resp, e)
            return
        resp.media = {"data": permission_to_dict(permission)}
        resp.status = falcon.HTTP_200

    async def on_delete(
        self, req: falcon.asgi.Request, resp: falcon.asgi.Response, permission_id: str
    ) -> None:
        """Delete a permission."""
        accountability = getattr(req.context, "accountability", None)
        if not accountability:
            unauthorized(resp)
            return
        try:
            await self._delete.execute(accountability, _parse_uuid(permission_id, "permission id"))
        except QueryGateError as e:
            error_response(resp, e)
            return
        resp.status = falcon.HTTP_204
