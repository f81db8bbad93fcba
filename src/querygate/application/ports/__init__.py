"""Application ports - interfaces for external adapters."""

from querygate.application.ports.item_repository import ItemRepository
from querygate.application.ports.permission_cache import PermissionCache
from querygate.application.ports.permission_resolver import PermissionResolver
from querygate.application.ports.schema_provider import SchemaProvider
from querygate.application.ports.unit_of_work import UnitOfWork, UnitOfWorkFactory

__all__ = [
    "ItemRepository",
    "PermissionCache",
    "PermissionResolver",
    "SchemaProvider",
    "UnitOfWork",
    "UnitOfWorkFactory",
]
