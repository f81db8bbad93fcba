"""Unit tests for domain exceptions."""

import pytest

from querygate.domain.exceptions import (
    AccessDenied,
    IncompatibleAggregate,
    InvalidOperator,
    MalformedFilter,
    NotFound,
    QueryGateError,
    TypeMismatch,
    UnresolvableVariable,
    ValidationError,
)


@pytest.mark.parametrize(
    "exc",
    [
        MalformedFilter,
        AccessDenied,
        UnresolvableVariable,
        IncompatibleAggregate,
        NotFound,
        ValidationError,
    ],
)
def test_inherits_querygate_error(exc) -> None:
    assert issubclass(exc, QueryGateError)


def test_operator_errors_are_malformed_filters() -> None:
    """InvalidOperator and TypeMismatch are caught as MalformedFilter."""
    assert issubclass(InvalidOperator, MalformedFilter)
    assert issubclass(TypeMismatch, MalformedFilter)


def test_access_denied_has_generic_message() -> None:
    """AccessDenied never carries details by default."""
    assert str(AccessDenied()) == "Access denied"


def test_not_found_message() -> None:
    """NotFound names the kind and identifier."""
    err = NotFound("Collection", "posts")
    assert err.kind == "Collection"
    assert err.identifier == "posts"
    assert str(err) == "Collection 'posts' not found"
    assert str(NotFound("Item")) == "Item not found"


def test_exception_message_preserved() -> None:
    """Exception message is preserved when raised."""
    msg = "Unknown field 'x' on 'posts'"
    with pytest.raises(MalformedFilter, match=msg):
        raise MalformedFilter(msg)
