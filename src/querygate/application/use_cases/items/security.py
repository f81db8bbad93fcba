"""Security filter of a single-item write."""

from typing import Any

from querygate.application.dto.permission_grant import PermissionGrant
from querygate.application.query.merger import merge_filters, merge_rel_conditions
from querygate.application.query.variables import VariableResolver
from querygate.domain.entities import Accountability, CollectionSchema
from querygate.domain.exceptions import MalformedFilter
from querygate.domain.value_objects import Condition, FilterNode, Operator


def write_security(
    schema: CollectionSchema,
    grant: PermissionGrant,
    accountability: Accountability,
    item_id: Any,
) -> tuple[FilterNode, dict[str, FilterNode], VariableResolver]:
    """Row filter and relation conditions an update or delete must match.

    Both are merged exactly as on the read path and resolved against one
    variable resolver, which is returned for reuse on the payload.
    """
    variables = VariableResolver(accountability)
    target = Condition(schema.primary_key, Operator.EQ, item_id)
    row_filter = variables.resolve_filter(
        merge_filters(target, grant.condition, grant.unrestricted)
    )
    for name in grant.rel_conditions:
        if name not in schema.relationships:
            raise MalformedFilter(f"Unknown relation '{name}' on '{schema.name}'")
    rel_conditions = {
        name: variables.resolve_filter(node)
        for name, node in merge_rel_conditions({}, grant.rel_conditions, grant.unrestricted).items()
    }
    return row_filter, rel_conditions, variables
