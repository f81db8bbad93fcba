"""Permission cache - immutable snapshots swapped atomically on reload."""

import asyncio
import copy
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from uuid import UUID

from querygate.application.ports.unit_of_work import UnitOfWorkFactory
from querygate.domain.entities import Permission
from querygate.domain.value_objects import PermissionAction

logger = logging.getLogger(__name__)

PermissionKey = tuple[UUID, str, PermissionAction]


@dataclass(frozen=True)
class PermissionSnapshot:
    """Complete, read-only view of every permission at one point in time."""

    version: int
    entries: Mapping[PermissionKey, Permission]

    def get(
        self, role_id: UUID, collection: str, action: PermissionAction
    ) -> Permission | None:
        return self.entries.get((role_id, collection, action))

    def __len__(self) -> int:
        return len(self.entries)


class PermissionCache:
    """Process-wide permission cache.

    Readers take ``snapshot`` once per request and never block. A reload
    builds a complete new snapshot and publishes it with a single
    assignment, so readers see either the old or the new set in full.
    """

    def __init__(self, uow_factory: UnitOfWorkFactory | None = None) -> None:
        self._uow_factory = uow_factory
        self._snapshot = PermissionSnapshot(0, MappingProxyType({}))
        self._reload_lock = asyncio.Lock()

    @property
    def snapshot(self) -> PermissionSnapshot:
        return self._snapshot

    def publish(self, permissions: Iterable[Permission]) -> PermissionSnapshot:
        """Build a snapshot from the full permission set and make it current."""
        entries: dict[PermissionKey, Permission] = {}
        for permission in permissions:
            key = (permission.role_id, permission.collection, permission.action)
            if key in entries:
                logger.warning(
                    "Duplicate permission for role %s on %s/%s, keeping %s",
                    permission.role_id,
                    permission.collection,
                    permission.action,
                    entries[key].id,
                )
                continue
            entries[key] = copy.deepcopy(permission)
        snapshot = PermissionSnapshot(self._snapshot.version + 1, MappingProxyType(entries))
        self._snapshot = snapshot
        return snapshot

    async def reload(self) -> PermissionSnapshot:
        """Load every permission from the store and publish a new snapshot."""
        if self._uow_factory is None:
            raise RuntimeError("PermissionCache has no unit of work factory")
        async with self._reload_lock:
            async with self._uow_factory() as uow:
                permissions = await uow.permissions.list_all()
            snapshot = self.publish(permissions)
        logger.info(
            "Permission cache reloaded: version=%s permissions=%s",
            snapshot.version,
            len(snapshot),
        )
        return snapshot
