"""Permission cache port - reload signal after permission changes."""

from typing import Any, Protocol


class PermissionCache(Protocol):
    """Port for the process-wide permission cache."""

    async def reload(self) -> Any: ...
