"""Accountability - identity and authorization context of one request."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from querygate.domain.entities.role import Role


@dataclass(frozen=True)
class User:
    """Authenticated user with arbitrary profile fields."""

    id: str
    role: str | None = None
    is_admin: bool = False
    profile: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def as_mapping(self) -> dict[str, Any]:
        """Profile fields plus the identity fields, for variable lookups."""
        data = dict(self.profile)
        data.update({"id": self.id, "role": self.role, "isAdmin": self.is_admin})
        return data


@dataclass(frozen=True)
class Accountability:
    """Who is calling: user, role, tenant and origin.

    Built once by the authentication layer and never mutated afterwards.
    """

    user: User | None = None
    role: Role | None = None
    tenant: str | None = None
    ip: str | None = None
    permissions: tuple[Any, ...] = ()

    @property
    def is_admin(self) -> bool:
        return self.user is not None and self.user.is_admin
