"""Lifespan middleware - pool, schema registry and permission cache startup."""

import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from psycopg_pool import AsyncConnectionPool

logger = logging.getLogger(__name__)

StartupHook = Callable[[], Awaitable[Any]]


class LifespanMiddleware:
    """Opens the connection pool, then runs startup hooks in order; closes the pool on shutdown."""

    def __init__(self, pool: AsyncConnectionPool, startup_hooks: Sequence[StartupHook] = ()) -> None:
        self._pool = pool
        self._startup_hooks = list(startup_hooks)

    async def process_startup(self, scope: dict[str, Any], event: dict[str, Any]) -> None:
        """Open pool and load caches when the ASGI server starts."""
        await self._pool.open()
        for hook in self._startup_hooks:
            await hook()
        logger.info("Startup complete")

    async def process_shutdown(self, scope: dict[str, Any], event: dict[str, Any]) -> None:
        """Close pool when the ASGI server shuts down."""
        await self._pool.close()
