"""Query compiler - turn a request and a grant into an executable query."""

import logging

from querygate.application.dto.compiled_query import CompiledQuery, SearchSpec, Selection
from querygate.application.dto.permission_grant import PermissionGrant
from querygate.application.dto.query_request import (
    AggregateFunction,
    AggregateSpec,
    GroupByItem,
    QueryRequest,
    SortItem,
)
from querygate.application.ports.schema_provider import SchemaProvider
from querygate.application.query.filter_parser import FilterParser
from querygate.application.query.merger import merge_filters, merge_rel_conditions
from querygate.application.query.variables import VariableResolver
from querygate.domain.entities import CollectionSchema
from querygate.domain.exceptions import (
    AccessDenied,
    IncompatibleAggregate,
    MalformedFilter,
    NotFound,
)
from querygate.domain.value_objects import (
    MATCH_ALL,
    MATCH_NONE,
    And,
    Condition,
    FieldAllowlist,
    FilterNode,
    Not,
    Or,
    TypeFamily,
)
from querygate.domain.value_objects.field_allowlist import WILDCARD
from querygate.domain.value_objects.field_type import SEARCHABLE_FAMILIES
from querygate.domain.value_objects.filter_node import (
    conjoin,
    disjoin,
    iter_conditions,
    to_dict,
)

logger = logging.getLogger(__name__)

_NUMERIC_AGGREGATES = (AggregateFunction.SUM, AggregateFunction.AVG)


class QueryCompiler:
    """Builds a CompiledQuery bounded by the caller's grant.

    Steps: parse the caller's filter and relConditions, drop everything
    that refers to fields outside the allowlist, AND in the security
    filter, resolve dynamic variables, expand the field selection and
    validate sort, search, aggregate and groupBy.
    """

    def __init__(self, schema: SchemaProvider, parser: FilterParser, max_depth: int = 7) -> None:
        self._schema = schema
        self._parser = parser
        self._max_depth = max_depth

    def compile(
        self,
        request: QueryRequest,
        grant: PermissionGrant,
        variables: VariableResolver,
    ) -> CompiledQuery:
        collection = self._schema.get_collection(request.collection)
        if collection is None:
            raise NotFound("Collection", request.collection)

        if grant.denied:
            return CompiledQuery(
                collection=collection.name,
                filter=MATCH_NONE,
                rel_conditions={},
                selection=Selection(()),
                allowlist=grant.allowlist,
                now=variables.now,
                limit=0,
            )

        allowlist = grant.allowlist
        caller_filter = self._parser.parse(collection.name, request.filter)
        if caller_filter is not None:
            caller_filter = _prune_filter(caller_filter, allowlist)
        merged = merge_filters(caller_filter, grant.condition, grant.unrestricted)
        merged = variables.resolve_filter(merged)

        caller_rel = self._compile_caller_rel_conditions(collection, request, allowlist)
        for name in grant.rel_conditions:
            if name not in collection.relationships:
                raise MalformedFilter(f"Unknown relation '{name}' on '{collection.name}'")
        rel_conditions = {
            name: variables.resolve_filter(node)
            for name, node in merge_rel_conditions(
                caller_rel, grant.rel_conditions, grant.unrestricted
            ).items()
        }

        aggregate = self._compile_aggregate(collection, request.aggregate, allowlist)
        group_by = self._compile_group_by(collection, request.group_by, allowlist)
        if request.is_aggregate and not (aggregate or group_by):
            logger.info("Aggregate on %s only touches hidden fields", collection.name)
            raise AccessDenied()
        if request.is_aggregate:
            selection = self._aggregate_selection(request, aggregate, group_by)
        else:
            selection = _restrict(self.expand_fields(collection, request.fields), allowlist)
        sort = self._compile_sort(collection, request.sort, allowlist, aggregate, group_by)
        search = self._compile_search(collection, request, allowlist)
        limit, offset = _paginate(request)

        compiled = CompiledQuery(
            collection=collection.name,
            filter=merged,
            rel_conditions=rel_conditions,
            selection=selection,
            allowlist=allowlist,
            now=variables.now,
            sort=sort,
            limit=limit,
            offset=offset,
            search=search,
            aggregate=aggregate,
            group_by=group_by,
        )
        logger.debug(
            "Compiled %s: filter=%s relations=%s limit=%s offset=%s",
            collection.name,
            to_dict(merged),
            sorted(rel_conditions),
            limit,
            offset,
        )
        return compiled

    def expand_fields(self, collection: CollectionSchema, fields: list[str] | None) -> Selection:
        """Expand ``*``, ``rel.*`` and dot paths into a selection tree."""
        paths = [tuple(f.strip().split(".")) for f in (fields or [WILDCARD]) if f and f.strip()]
        if not paths:
            paths = [(WILDCARD,)]
        for path in paths:
            if len(path) - 1 > self._max_depth:
                raise MalformedFilter(
                    f"Field path '{'.'.join(path)}' exceeds the maximum relation depth "
                    f"of {self._max_depth}"
                )
        return self._expand(collection, paths)

    def _expand(self, collection: CollectionSchema, paths: list[tuple[str, ...]]) -> Selection:
        columns: list[str] = []
        nested: dict[str, list[tuple[str, ...]]] = {}
        for path in paths:
            head, rest = path[0], path[1:]
            if head == WILDCARD:
                if rest:
                    for name in collection.relationships:
                        nested.setdefault(name, []).append(rest)
                else:
                    columns.extend(collection.scalar_fields())
            elif head in collection.relationships:
                nested.setdefault(head, []).append(rest or (WILDCARD,))
            elif head in collection.fields:
                if rest:
                    raise MalformedFilter(f"'{head}' is not a relation of '{collection.name}'")
                columns.append(head)
            else:
                raise MalformedFilter(f"Unknown field '{head}' on '{collection.name}'")

        relations: dict[str, Selection] = {}
        for name, sub_paths in nested.items():
            target = self._schema.get_collection(collection.relationships[name].target)
            if target is None:
                raise MalformedFilter(f"Relation '{name}' points to an unknown collection")
            relations[name] = self._expand(target, sub_paths)
        return Selection(tuple(dict.fromkeys(columns)), relations)

    def _compile_caller_rel_conditions(
        self, collection: CollectionSchema, request: QueryRequest, allowlist: FieldAllowlist
    ) -> dict[str, FilterNode]:
        compiled: dict[str, FilterNode] = {}
        for name, raw in request.rel_conditions.items():
            relation = collection.relationships.get(name)
            if relation is None:
                raise MalformedFilter(f"Unknown relation '{name}' on '{collection.name}'")
            node = self._parser.parse(relation.target, raw)
            if node is None:
                continue
            if not allowlist.allows_relation(name):
                node = MATCH_ALL
            else:
                node = _prune_filter(node, allowlist.for_relation(name))
            compiled[name] = node
        return compiled

    def _compile_aggregate(
        self,
        collection: CollectionSchema,
        aggregate: dict[str, AggregateSpec],
        allowlist: FieldAllowlist,
    ) -> dict[str, AggregateSpec]:
        compiled: dict[str, AggregateSpec] = {}
        for alias, spec in aggregate.items():
            if spec.field == WILDCARD:
                compiled[alias] = spec
                continue
            definition = collection.fields.get(spec.field)
            if definition is None:
                raise MalformedFilter(f"Unknown aggregate field '{spec.field}' in '{alias}'")
            if spec.function in _NUMERIC_AGGREGATES and definition.type.family is not TypeFamily.NUMERIC:
                raise MalformedFilter(f"Aggregate '{alias}': {spec.function} needs a numeric field")
            if not allowlist.allows_field(spec.field):
                logger.debug("Dropping aggregate %s on hidden field", alias)
                continue
            compiled[alias] = spec
        return compiled

    def _compile_group_by(
        self,
        collection: CollectionSchema,
        group_by: list[GroupByItem],
        allowlist: FieldAllowlist,
    ) -> list[GroupByItem]:
        compiled: list[GroupByItem] = []
        for item in group_by:
            definition = collection.fields.get(item.field)
            if definition is None:
                raise MalformedFilter(f"Unknown groupBy field '{item.field}'")
            if item.date_part is not None and definition.type.family is not TypeFamily.TEMPORAL:
                raise MalformedFilter(
                    f"Date part '{item.date_part}' needs a date or time field, got '{item.field}'"
                )
            if not allowlist.allows_field(item.field):
                logger.debug("Dropping groupBy on hidden field")
                continue
            compiled.append(item)
        return compiled

    def _aggregate_selection(
        self,
        request: QueryRequest,
        aggregate: dict[str, AggregateSpec],
        group_by: list[GroupByItem],
    ) -> Selection:
        group_aliases = [g.alias for g in group_by]
        if request.fields:
            allowed = set(group_aliases) | {g.field for g in group_by} | set(aggregate)
            for name in request.fields:
                if name not in allowed and name not in request.aggregate:
                    raise IncompatibleAggregate(
                        f"Field '{name}' must be aggregated or listed in groupBy"
                    )
        return Selection(tuple(group_aliases) + tuple(aggregate))

    def _compile_sort(
        self,
        collection: CollectionSchema,
        sort: list[SortItem],
        allowlist: FieldAllowlist,
        aggregate: dict[str, AggregateSpec],
        group_by: list[GroupByItem],
    ) -> list[SortItem]:
        compiled: list[SortItem] = []
        if aggregate or group_by:
            aliases = {g.alias for g in group_by} | set(aggregate)
            for item in sort:
                if item.field not in aliases:
                    raise IncompatibleAggregate(
                        f"Sort field '{item.field}' must be an aggregate or groupBy key"
                    )
                compiled.append(item)
            return compiled

        for item in sort:
            self._check_sort_path(collection, item.field)
            if not allowlist.allows_path(item.field):
                logger.debug("Dropping sort on hidden field")
                continue
            compiled.append(item)
        return compiled

    def _check_sort_path(self, collection: CollectionSchema, path: str) -> None:
        segments = path.split(".")
        if len(segments) - 1 > self._max_depth:
            raise MalformedFilter(f"Sort path '{path}' exceeds the maximum relation depth")
        current = collection
        for segment in segments[:-1]:
            relation = current.relationships.get(segment)
            if relation is None:
                raise MalformedFilter(f"'{segment}' is not a relation of '{current.name}'")
            if not relation.is_to_one:
                raise MalformedFilter(f"Cannot sort by to-many relation '{segment}'")
            target = self._schema.get_collection(relation.target)
            if target is None:
                raise MalformedFilter(f"Relation '{segment}' points to an unknown collection")
            current = target
        if segments[-1] not in current.fields:
            raise MalformedFilter(f"Unknown sort field '{path}'")

    def _compile_search(
        self, collection: CollectionSchema, request: QueryRequest, allowlist: FieldAllowlist
    ) -> SearchSpec | None:
        term = (request.search or "").strip()
        if not term:
            return None
        if request.search_fields:
            for name in request.search_fields:
                definition = collection.fields.get(name)
                if definition is None:
                    raise MalformedFilter(f"Unknown search field '{name}'")
                if definition.type.family not in SEARCHABLE_FAMILIES:
                    raise MalformedFilter(f"Field '{name}' is not searchable")
            fields = list(request.search_fields)
        else:
            fields = collection.searchable_fields()
        visible = tuple(f for f in fields if allowlist.allows_field(f))
        return SearchSpec(term, visible, rank=request.sort_by_relevance)


def _prune_filter(node: FilterNode, allowlist: FieldAllowlist) -> FilterNode:
    """Neutralize caller conditions on fields the caller cannot see.

    A hidden leaf becomes MatchAll, and so does any NOT above one, so
    dropping the condition never narrows the result.
    """
    if allowlist.is_all:
        return node
    if isinstance(node, Condition):
        if allowlist.allows_path(node.field):
            return node
        logger.debug("Ignoring filter on hidden field")
        return MATCH_ALL
    if isinstance(node, Not):
        if all(allowlist.allows_path(c.field) for c in iter_conditions(node.child)):
            return node
        logger.debug("Ignoring negated filter on hidden field")
        return MATCH_ALL
    if isinstance(node, And):
        return conjoin(*(_prune_filter(c, allowlist) for c in node.children))
    if isinstance(node, Or):
        return disjoin(*(_prune_filter(c, allowlist) for c in node.children))
    return node


def _restrict(selection: Selection, allowlist: FieldAllowlist) -> Selection:
    if allowlist.is_all:
        return selection
    columns = tuple(c for c in selection.columns if allowlist.allows_field(c))
    relations: dict[str, Selection] = {}
    for name, sub in selection.relations.items():
        if not allowlist.allows_relation(name):
            continue
        restricted = _restrict(sub, allowlist.for_relation(name))
        if not restricted.is_empty:
            relations[name] = restricted
    return Selection(columns, relations)


def _paginate(request: QueryRequest) -> tuple[int, int]:
    limit = request.limit
    if limit < -1:
        raise MalformedFilter(f"Invalid limit {limit}")
    if request.offset is not None:
        if request.offset < 0:
            raise MalformedFilter(f"Invalid offset {request.offset}")
        return limit, request.offset
    if request.page < 1:
        raise MalformedFilter(f"Invalid page {request.page}")
    if limit == -1:
        return limit, 0
    return limit, (request.page - 1) * limit

