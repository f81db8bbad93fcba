"""CORS middleware - adds Access-Control-* headers."""

import falcon.asgi

_ALLOW_METHODS = "GET, POST, PATCH, DELETE, OPTIONS"
_ALLOW_HEADERS = "Authorization, Content-Type"


class CORSMiddleware:
    """Middleware that answers preflight requests and echoes allowed origins.

    An origin list containing ``*`` allows any origin.
    """

    def __init__(self, origins: list[str]) -> None:
        self._origins = origins
        self._any = "*" in origins

    def _allowed(self, origin: str | None) -> bool:
        return bool(origin) and (self._any or origin in self._origins)

    def _set_cors_headers(self, req: falcon.asgi.Request, resp: falcon.asgi.Response) -> None:
        origin = req.get_header("Origin")
        if not self._allowed(origin):
            return
        resp.set_header("Access-Control-Allow-Origin", origin)
        resp.set_header("Vary", "Origin")
        resp.set_header("Access-Control-Allow-Methods", _ALLOW_METHODS)
        resp.set_header("Access-Control-Allow-Headers", _ALLOW_HEADERS)
        resp.set_header("Access-Control-Max-Age", "86400")

    async def process_request(self, req: falcon.asgi.Request, resp: falcon.asgi.Response) -> None:
        """Short-circuit OPTIONS preflight."""
        if req.method == "OPTIONS":
            self._set_cors_headers(req, resp)
            resp.status = falcon.HTTP_204
            resp.complete = True

    async def process_response(
        self, req: falcon.asgi.Request, resp: falcon.asgi.Response, resource, req_succeeded
    ) -> None:
        self._set_cors_headers(req, resp)
