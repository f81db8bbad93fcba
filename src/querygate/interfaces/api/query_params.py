"""Translate query strings and JSON bodies into QueryRequest."""

import json
from collections.abc import Mapping
from typing import Any

from querygate.application.dto.query_request import (
    AggregateSpec,
    GroupByItem,
    QueryRequest,
    parse_sort,
)
from querygate.domain.exceptions import MalformedFilter

_JSON_KEYS = ("filter", "aggregate", "relConditions")


def _decode_json(name: str, value: Any) -> Any:
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        raise MalformedFilter(f"Parameter '{name}' is not valid JSON") from None


def _as_list(name: str, value: Any) -> list[str] | None:
    """Accept a list, a JSON array string or a comma separated string."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("["):
            value = _decode_json(name, text)
        else:
            return [part.strip() for part in text.split(",") if part.strip()]
    if isinstance(value, (list, tuple)):
        items: list[str] = []
        for v in value:
            if not isinstance(v, str):
                raise MalformedFilter(f"Parameter '{name}' must be a list of strings")
            items.extend(part.strip() for part in v.split(",") if part.strip())
        return items
    raise MalformedFilter(f"Parameter '{name}' must be a list of strings")


def _as_int(name: str, value: Any, default: int | None) -> int | None:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise MalformedFilter(f"Parameter '{name}' must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise MalformedFilter(f"Parameter '{name}' must be an integer") from None


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


def _as_sort(value: Any) -> Any:
    if isinstance(value, str) and value.strip()[:1] in ("[", "{"):
        return _decode_json("sort", value)
    return value


def parse_query_request(
    collection: str, params: Mapping[str, Any], default_limit: int = 10
) -> QueryRequest:
    """Build a QueryRequest from request parameters.

    Works for both the query string (JSON-encoded values) and a decoded
    JSON body.
    """
    decoded = {k: _decode_json(k, params[k]) for k in _JSON_KEYS if params.get(k) not in (None, "")}

    filter_ = decoded.get("filter")
    if filter_ is not None and not isinstance(filter_, Mapping):
        raise MalformedFilter("Parameter 'filter' must be an object")
    aggregate_raw = decoded.get("aggregate") or {}
    if not isinstance(aggregate_raw, Mapping):
        raise MalformedFilter("Parameter 'aggregate' must be an object")
    rel_conditions = decoded.get("relConditions") or {}
    if not isinstance(rel_conditions, Mapping):
        raise MalformedFilter("Parameter 'relConditions' must be an object")

    search = params.get("search")
    if search is not None and not isinstance(search, str):
        raise MalformedFilter("Parameter 'search' must be a string")

    return QueryRequest(
        collection=collection,
        filter=filter_,
        fields=_as_list("fields", params.get("fields")),
        sort=parse_sort(_as_sort(params.get("sort"))),
        page=_as_int("page", params.get("page"), 1),
        limit=_as_int("limit", params.get("limit"), default_limit),
        offset=_as_int("offset", params.get("offset"), None),
        search=search or None,
        search_fields=_as_list("searchFields", params.get("searchFields")),
        sort_by_relevance=_as_bool(params.get("sortByRelevance", False)),
        aggregate={alias: AggregateSpec.parse(alias, spec) for alias, spec in aggregate_raw.items()},
        group_by=[GroupByItem.parse(g) for g in _as_list("groupBy", params.get("groupBy")) or []],
        rel_conditions=dict(rel_conditions),
    )


def parse_fields(params: Mapping[str, Any]) -> list[str] | None:
    """The ``fields`` parameter of a single-item read."""
    return _as_list("fields", params.get("fields"))
