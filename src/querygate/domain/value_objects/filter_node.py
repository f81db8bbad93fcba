"""Filter AST - conditions and logical combinators."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

from querygate.domain.value_objects.operator import Operator


@dataclass(frozen=True)
class Condition:
    """Leaf: ``field operator value`` with optional SQL cast."""

    field: str
    operator: Operator
    value: Any
    cast: str | None = None


@dataclass(frozen=True)
class And:
    """All children must match."""

    children: tuple[FilterNode, ...]


@dataclass(frozen=True)
class Or:
    """At least one child must match."""

    children: tuple[FilterNode, ...]


@dataclass(frozen=True)
class Not:
    """Child must not match."""

    child: FilterNode


@dataclass(frozen=True)
class MatchAll:
    """Matches every row."""


@dataclass(frozen=True)
class MatchNone:
    """Matches no row."""


MATCH_ALL = MatchAll()
MATCH_NONE = MatchNone()

FilterNode = Condition | And | Or | Not | MatchAll | MatchNone


def conjoin(*nodes: FilterNode | None) -> FilterNode:
    """AND nodes together, flattening nested ANDs and folding constants."""
    children: list[FilterNode] = []
    for node in nodes:
        if node is None or isinstance(node, MatchAll):
            continue
        if isinstance(node, MatchNone):
            return MATCH_NONE
        if isinstance(node, And):
            children.extend(node.children)
        else:
            children.append(node)
    if not children:
        return MATCH_ALL
    if len(children) == 1:
        return children[0]
    return And(tuple(children))


def disjoin(*nodes: FilterNode | None) -> FilterNode:
    """OR nodes together, flattening nested ORs and folding constants."""
    children: list[FilterNode] = []
    for node in nodes:
        if node is None or isinstance(node, MatchNone):
            continue
        if isinstance(node, MatchAll):
            return MATCH_ALL
        if isinstance(node, Or):
            children.extend(node.children)
        else:
            children.append(node)
    if not children:
        return MATCH_NONE
    if len(children) == 1:
        return children[0]
    return Or(tuple(children))


def negate(node: FilterNode) -> FilterNode:
    """NOT a node, folding constants and double negation."""
    if isinstance(node, MatchAll):
        return MATCH_NONE
    if isinstance(node, MatchNone):
        return MATCH_ALL
    if isinstance(node, Not):
        return node.child
    return Not(node)


def iter_conditions(node: FilterNode) -> Iterator[Condition]:
    """Yield every leaf condition of a tree."""
    if isinstance(node, Condition):
        yield node
    elif isinstance(node, (And, Or)):
        for child in node.children:
            yield from iter_conditions(child)
    elif isinstance(node, Not):
        yield from iter_conditions(node.child)


def map_conditions(node: FilterNode, fn: Callable[[Condition], FilterNode]) -> FilterNode:
    """Rebuild a tree with every leaf replaced by ``fn(leaf)``."""
    if isinstance(node, Condition):
        return fn(node)
    if isinstance(node, And):
        return conjoin(*(map_conditions(c, fn) for c in node.children))
    if isinstance(node, Or):
        return disjoin(*(map_conditions(c, fn) for c in node.children))
    if isinstance(node, Not):
        return negate(map_conditions(node.child, fn))
    return node


def to_dict(node: FilterNode) -> dict[str, Any]:
    """Render a tree back into the nested object form (for logs and errors)."""
    if isinstance(node, Condition):
        spec: dict[str, Any] = {node.operator.value: node.value}
        if node.cast:
            spec["cast"] = node.cast
        return {node.field: spec}
    if isinstance(node, And):
        return {"AND": [to_dict(c) for c in node.children]}
    if isinstance(node, Or):
        return {"OR": [to_dict(c) for c in node.children]}
    if isinstance(node, Not):
        return {"NOT": to_dict(node.child)}
    if isinstance(node, MatchNone):
        return {"OR": []}
    return {}
