"""Auth middleware - builds the request's Accountability."""

import logging
from types import MappingProxyType

import falcon.asgi

from querygate.application.ports import UnitOfWorkFactory
from querygate.domain.entities import Accountability, Role, User
from querygate.infrastructure.auth.keycloak_provider import KeycloakProvider, OIDCUser

logger = logging.getLogger(__name__)


class AuthMiddleware:
    """Middleware that validates the bearer token and sets req.context.accountability.

    No Authorization header: anonymous caller bound to the public role.
    Invalid token: ``accountability`` is None and resources answer 401.
    """

    def __init__(
        self,
        keycloak_provider: KeycloakProvider | None,
        unit_of_work_factory: UnitOfWorkFactory,
        public_role_name: str = "public",
        admin_role_name: str = "administrator",
    ) -> None:
        self._keycloak = keycloak_provider
        self._uow_factory = unit_of_work_factory
        self._public_role_name = public_role_name
        self._admin_role_name = admin_role_name

    async def process_request(self, req: falcon.asgi.Request, resp: falcon.asgi.Response) -> None:
        """Extract the caller from the Authorization header."""
        if req.path.startswith("/v1/health"):
            return
        ip = req.remote_addr
        auth = req.get_header("Authorization")
        if not auth or not auth.startswith("Bearer "):
            role = await self._find_role([self._public_role_name])
            req.context.accountability = Accountability(role=role, ip=ip)
            return

        user = self._keycloak.decode_token(auth[7:]) if self._keycloak else None
        if not user:
            req.context.accountability = None
            return
        req.context.accountability = await self._build(user, ip)

    async def _build(self, user: OIDCUser, ip: str | None) -> Accountability:
        is_admin = self._admin_role_name in user.realm_roles
        role = await self._find_role(user.realm_roles)
        profile = dict(user.claims)
        profile.update({"email": user.email, "username": user.username})
        return Accountability(
            user=User(
                id=user.user_id,
                role=role.name if role else None,
                is_admin=is_admin,
                profile=MappingProxyType(profile),
            ),
            role=role,
            tenant=user.tenant,
            ip=ip,
        )

    async def _find_role(self, names: list[str]) -> Role | None:
        """Alphabetically first of the given role names that exists in the role table.

        Token role order is not significant, so several known roles always
        resolve to the same one.
        """
        found: list[Role] = []
        async with self._uow_factory() as uow:
            for name in sorted(set(names)):
                role = await uow.roles.get_by_name(name)
                if role:
                    found.append(role)
        if not found:
            logger.debug("No known role among %s", names)
            return None
        if len(found) > 1:
            logger.warning(
                "Several known roles %s, using %s",
                [r.name for r in found],
                found[0].name,
            )
        return found[0]
