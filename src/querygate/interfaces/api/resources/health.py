"""Health check endpoints."""

import falcon.asgi
from psycopg_pool import AsyncConnectionPool

from querygate.infrastructure.schema.schema_registry import SchemaRegistry


class HealthResource:
    """Health and readiness endpoints."""

    def __init__(
        self, pool: AsyncConnectionPool | None = None, registry: SchemaRegistry | None = None
    ) -> None:
        self._pool = pool
        self._registry = registry

    async def on_get(self, req: falcon.asgi.Request, resp: falcon.asgi.Response) -> None:
        """GET /v1/health - liveness."""
        resp.media = {"status": "ok"}
        resp.status = falcon.HTTP_200

    async def on_get_ready(self, req: falcon.asgi.Request, resp: falcon.asgi.Response) -> None:
        """GET /v1/health/ready - readiness (pool open, schemas loaded)."""
        pool_ready = self._pool is None or not self._pool.closed
        collections = len(self._registry.collection_names()) if self._registry else 0
        if not pool_ready:
            resp.media = {"status": "unavailable", "collections": collections}
            resp.status = falcon.HTTP_503
            return
        resp.media = {"status": "ready", "collections": collections}
        resp.status = falcon.HTTP_200
