"""Dynamic variable resolution for filters and default values.

A string value that is exactly one of the tokens below is substituted
with its runtime value:

- ``$CURRENT_USER`` / ``$CURRENT_USER.<path>``: the caller's id or a
  profile field of the caller
- ``$CURRENT_ROLE`` / ``$CURRENT_ROLE.<path>``: the caller's role id or a
  role field
- ``$CURRENT_TENANT``: the caller's tenant
- ``$NOW`` and ``$NOW(+|-)<UNIT>_<N>``: the request time, optionally
  shifted by N years, months, weeks, days, hours, minutes or seconds

Strings that merely contain a token are left untouched.
"""

import logging
import re
from collections.abc import Mapping
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

from dateutil.relativedelta import relativedelta

from querygate.domain.entities import Accountability
from querygate.domain.exceptions import AccessDenied, UnresolvableVariable
from querygate.domain.value_objects import Condition, FilterNode
from querygate.domain.value_objects.filter_node import map_conditions
from querygate.domain.value_objects.operator import check_value

logger = logging.getLogger(__name__)

_IDENTITY_RE = re.compile(r"^\$(?P<kind>CURRENT_USER|CURRENT_ROLE)(?:\.(?P<path>[\w.]+))?$")
_TENANT_TOKEN = "$CURRENT_TENANT"
_NOW_RE = re.compile(
    r"^\$NOW(?:(?P<sign>[+-])(?P<unit>YEARS|MONTHS|WEEKS|DAYS|HOURS|MINUTES|SECONDS)_(?P<amount>\d+))?$"
)


def is_variable(value: Any) -> bool:
    """Whether a string is a dynamic variable token."""
    return isinstance(value, str) and bool(
        _IDENTITY_RE.match(value) or _NOW_RE.match(value) or value == _TENANT_TOKEN
    )


def contains_variable(value: Any) -> bool:
    """Whether a value, or anything nested in it, is a variable token."""
    if isinstance(value, str):
        return is_variable(value)
    if isinstance(value, Mapping):
        return any(contains_variable(v) for v in value.values())
    if isinstance(value, (list, tuple)):
        return any(contains_variable(v) for v in value)
    return False


class VariableResolver:
    """Substitutes variables for one request.

    ``now`` is captured once so every ``$NOW`` in the request sees the same
    instant.
    """

    def __init__(self, accountability: Accountability, now: datetime | None = None) -> None:
        self._accountability = accountability
        self.now = now or datetime.now(UTC)

    def resolve(self, value: Any) -> Any:
        """Return the value with every token substituted, recursively."""
        if isinstance(value, str):
            return self._resolve_token(value)
        if isinstance(value, Mapping):
            return {k: self.resolve(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self.resolve(v) for v in value]
        if isinstance(value, tuple):
            return tuple(self.resolve(v) for v in value)
        return value

    def resolve_filter(self, node: FilterNode) -> FilterNode:
        """Substitute variables in every leaf and re-check the value shape."""

        def _resolve(cond: Condition) -> FilterNode:
            if not contains_variable(cond.value):
                return cond
            value = self.resolve(cond.value)
            check_value(cond.operator, value, cond.field)
            return replace(cond, value=value)

        return map_conditions(node, _resolve)

    def _resolve_token(self, token: str) -> Any:
        match = _IDENTITY_RE.match(token)
        if match:
            if match.group("kind") == "CURRENT_USER":
                return self._resolve_user(token, match.group("path"))
            return self._resolve_role(token, match.group("path"))
        if token == _TENANT_TOKEN:
            if self._accountability.tenant is None:
                logger.debug("Variable %s used without a tenant", token)
                raise AccessDenied()
            return self._accountability.tenant
        match = _NOW_RE.match(token)
        if match:
            return self._resolve_now(match)
        return token

    def _resolve_user(self, token: str, path: str | None) -> Any:
        user = self._accountability.user
        if user is None:
            logger.debug("Variable %s used by an anonymous caller", token)
            raise AccessDenied()
        if path is None:
            return user.id
        return _lookup(user.as_mapping(), path, token)

    def _resolve_role(self, token: str, path: str | None) -> Any:
        role = self._accountability.role
        if role is None:
            logger.debug("Variable %s used without a role", token)
            raise AccessDenied()
        if path is None:
            return str(role.id)
        data = {
            "id": str(role.id),
            "name": role.name,
            "description": role.description,
            "isTenantSpecific": role.is_tenant_specific,
        }
        return _lookup(data, path, token)

    def _resolve_now(self, match: re.Match[str]) -> datetime:
        if not match.group("sign"):
            return self.now
        amount = int(match.group("amount"))
        if match.group("sign") == "-":
            amount = -amount
        delta = relativedelta(**{match.group("unit").lower(): amount})
        return self.now + delta


def _lookup(data: Mapping[str, Any], path: str, token: str) -> Any:
    current: Any = data
    for segment in path.split("."):
        if not isinstance(current, Mapping) or segment not in current:
            raise UnresolvableVariable(f"Variable '{token}' references unknown field '{path}'")
        current = current[segment]
    return current
