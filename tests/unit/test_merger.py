"""Unit tests for the condition merger."""

import pytest

from querygate.application.query.evaluator import matches
from querygate.application.query.merger import merge_filters, merge_rel_conditions
from querygate.domain.value_objects import (
    MATCH_ALL,
    MATCH_NONE,
    And,
    Condition,
    Not,
    Operator,
    Or,
)

SECURITY = Condition("author_id", Operator.EQ, "u1")

RECORDS = [
    {"author_id": "u1", "status": "draft"},
    {"author_id": "u1", "status": "published"},
    {"author_id": "u2", "status": "draft"},
    {"author_id": "u2", "status": "published"},
    {"author_id": None, "status": None},
]

CALLER_FILTERS = [
    None,
    MATCH_ALL,
    Condition("status", Operator.EQ, "draft"),
    Or((Condition("status", Operator.EQ, "draft"), Condition("author_id", Operator.EQ, "u2"))),
    Not(SECURITY),
    Or((SECURITY, Not(SECURITY))),
    Condition("author_id", Operator.IN, ["u1", "u2"]),
]


@pytest.mark.parametrize("caller", CALLER_FILTERS)
def test_merged_filter_never_widens_security(caller) -> None:
    """Whatever the caller sends, every matching record also matches the security filter."""
    merged = merge_filters(caller, SECURITY)
    for record in RECORDS:
        if matches(merged, record):
            assert matches(SECURITY, record)


def test_merge_is_top_level_and() -> None:
    caller = Condition("status", Operator.EQ, "draft")
    assert merge_filters(caller, SECURITY) == And((caller, SECURITY))


def test_missing_sides() -> None:
    assert merge_filters(None, None) is MATCH_ALL
    assert merge_filters(None, SECURITY) == SECURITY
    caller = Condition("status", Operator.EQ, "draft")
    assert merge_filters(caller, None) == caller


def test_unrestricted_skips_security() -> None:
    caller = Condition("status", Operator.EQ, "draft")
    assert merge_filters(caller, SECURITY, unrestricted=True) == caller
    assert merge_filters(None, MATCH_NONE, unrestricted=True) is MATCH_ALL


def test_match_none_security_wins() -> None:
    caller = Condition("status", Operator.EQ, "draft")
    assert merge_filters(caller, MATCH_NONE) is MATCH_NONE


def test_merge_rel_conditions_per_relation() -> None:
    approved = Condition("status", Operator.EQ, "approved")
    recent = Condition("created_at", Operator.GT, "2024-01-01")
    label = Condition("label", Operator.EQ, "x")
    merged = merge_rel_conditions(
        {"comments": recent, "tags": label},
        {"comments": approved, "author": SECURITY},
    )
    assert merged == {
        "comments": And((recent, approved)),
        "tags": label,
        "author": SECURITY,
    }


def test_merge_rel_conditions_unrestricted() -> None:
    recent = Condition("created_at", Operator.GT, "2024-01-01")
    merged = merge_rel_conditions(
        {"comments": recent},
        {"comments": Condition("status", Operator.EQ, "approved")},
        unrestricted=True,
    )
    assert merged == {"comments": recent}
