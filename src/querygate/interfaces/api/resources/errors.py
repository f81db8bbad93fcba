"""Mapping of domain errors to HTTP responses."""

import falcon
import falcon.asgi

from querygate.domain.exceptions import (
    AccessDenied,
    IncompatibleAggregate,
    MalformedFilter,
    NotFound,
    QueryGateError,
    UnresolvableVariable,
    ValidationError,
)


def unauthorized(resp: falcon.asgi.Response) -> None:
    resp.status = falcon.HTTP_401
    resp.media = {"error": "Unauthorized"}


def error_response(resp: falcon.asgi.Response, error: QueryGateError) -> None:
    """Set status and body for a domain error.

    Denials never say why, so they cannot be used to probe collections or
    policies.
    """
    if isinstance(error, AccessDenied):
        resp.status = falcon.HTTP_403
        resp.media = {"error": "Forbidden"}
    elif isinstance(error, NotFound):
        resp.status = falcon.HTTP_404
        resp.media = {"error": str(error)}
    elif isinstance(
        error, (MalformedFilter, IncompatibleAggregate, UnresolvableVariable, ValidationError)
    ):
        resp.status = falcon.HTTP_400
        resp.media = {"error": str(error)}
    else:
        raise error
