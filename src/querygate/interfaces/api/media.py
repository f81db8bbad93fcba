"""JSON media handling for API responses."""

import json
from datetime import date, datetime, time
from decimal import Decimal
from functools import partial
from typing import Any
from uuid import UUID

import falcon
import falcon.asgi
import falcon.media


def json_default(value: Any) -> Any:
    """Serialize values psycopg returns that json does not know."""
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def configure_media(app: falcon.asgi.App) -> None:
    """Install a JSON handler that understands UUIDs, dates and decimals."""
    handler = falcon.media.JSONHandler(dumps=partial(json.dumps, default=json_default))
    app.req_options.media_handlers.update({falcon.MEDIA_JSON: handler})
    app.resp_options.media_handlers.update({falcon.MEDIA_JSON: handler})
