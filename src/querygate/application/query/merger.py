"""Condition merger - combine the caller's filter with the security filter.

The security filter is always AND-ed at the top level, so nothing the
caller sends, whatever its shape, can widen the set of matching rows
beyond what the security filter allows.
"""

from collections.abc import Mapping

from querygate.domain.value_objects import MATCH_ALL, FilterNode
from querygate.domain.value_objects.filter_node import conjoin


def merge_filters(
    caller: FilterNode | None,
    security: FilterNode | None,
    unrestricted: bool = False,
) -> FilterNode:
    """Return ``caller AND security``; administrators skip the security side."""
    if unrestricted or security is None:
        return caller if caller is not None else MATCH_ALL
    if caller is None:
        return security
    return conjoin(caller, security)


def merge_rel_conditions(
    caller: Mapping[str, FilterNode],
    security: Mapping[str, FilterNode],
    unrestricted: bool = False,
) -> dict[str, FilterNode]:
    """Merge relation conditions per relation name.

    A relation named on one side only keeps that side's condition.
    """
    merged: dict[str, FilterNode] = dict(caller)
    if unrestricted:
        return merged
    for name, condition in security.items():
        merged[name] = merge_filters(merged.get(name), condition)
    return merged
