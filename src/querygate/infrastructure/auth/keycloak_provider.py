"""Keycloak OIDC provider for token validation."""

import logging
from dataclasses import dataclass, field
from typing import Any

from keycloak import KeycloakOpenID
from keycloak.exceptions import KeycloakError

logger = logging.getLogger(__name__)

_STANDARD_CLAIMS = frozenset(
    {"active", "exp", "iat", "nbf", "iss", "aud", "azp", "jti", "typ", "scope", "sid", "realm_access"}
)


@dataclass
class OIDCUser:
    """Authenticated user from an introspected token."""

    user_id: str
    email: str | None
    username: str | None
    realm_roles: list[str]
    tenant: str | None = None
    claims: dict[str, Any] = field(default_factory=dict)


class KeycloakProvider:
    """Keycloak OIDC - introspects bearer tokens and extracts user info."""

    def __init__(
        self,
        server_url: str,
        realm: str,
        client_id: str,
        client_secret: str = "",
        tenant_claim: str = "tenant_Id",
    ) -> None:
        self._keycloak = KeycloakOpenID(
            server_url=server_url,
            realm_name=realm,
            client_id=client_id,
            client_secret_key=client_secret,
        )
        self._tenant_claim = tenant_claim

    def decode_token(self, token: str) -> OIDCUser | None:
        """Introspect the token, return user info or None when it is not valid."""
        try:
            token_info = self._keycloak.introspect(token)
        except KeycloakError as e:
            logger.warning("Token introspection failed: %s", e)
            return None
        if not token_info.get("active"):
            return None
        tenant = token_info.get(self._tenant_claim)
        return OIDCUser(
            user_id=token_info.get("sub", ""),
            email=token_info.get("email"),
            username=token_info.get("preferred_username"),
            realm_roles=list(token_info.get("realm_access", {}).get("roles", [])),
            tenant=str(tenant) if tenant is not None else None,
            claims={k: v for k, v in token_info.items() if k not in _STANDARD_CLAIMS},
        )
