"""Schema repository port."""

from typing import Any, Protocol


class SchemaRepository(Protocol):
    """Port for stored collection definitions."""

    async def list_definitions(self) -> dict[str, dict[str, Any]]: ...
