"""Domain exceptions."""


class QueryGateError(Exception):
    """Base exception for QueryGate."""

    pass


class MalformedFilter(QueryGateError):
    """Filter, field path or query shape is invalid.

    Messages are syntactic and safe to return to the caller verbatim.
    """

    pass


class InvalidOperator(MalformedFilter):
    """Operator is unknown or not applicable to the field type."""

    pass


class TypeMismatch(MalformedFilter):
    """Operator value does not have the shape the operator requires."""

    pass


class AccessDenied(QueryGateError):
    """Caller is not allowed to perform the action.

    Never carries details about the collection or the security policy.
    """

    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(message)


class UnresolvableVariable(QueryGateError):
    """Dynamic variable references a field missing on the user or role."""

    pass


class IncompatibleAggregate(QueryGateError):
    """Selected field is neither aggregated nor listed in groupBy."""

    pass


class NotFound(QueryGateError):
    """Requested resource was not found."""

    def __init__(self, kind: str, identifier: str = "") -> None:
        self.kind = kind
        self.identifier = identifier
        message = f"{kind} not found" if not identifier else f"{kind} '{identifier}' not found"
        super().__init__(message)


class ValidationError(QueryGateError):
    """Validation failed for input data."""

    pass
