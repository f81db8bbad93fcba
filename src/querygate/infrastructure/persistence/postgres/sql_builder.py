"""PostgreSQL SQL rendering of compiled queries and writes.

Identifiers come from collection schemas and are always double-quoted.
Values are always passed as ``%s`` parameters, collected in the order
they appear in the statement text.
"""

import json
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from psycopg.types.json import Jsonb

from querygate.application.dto.compiled_query import CompiledQuery, SearchSpec, Selection
from querygate.application.dto.query_request import AggregateFunction, AggregateSpec, GroupByItem
from querygate.application.ports.schema_provider import SchemaProvider
from querygate.domain.entities import CollectionSchema, Relationship, RelationType
from querygate.domain.exceptions import MalformedFilter, NotFound
from querygate.domain.value_objects import (
    And,
    Condition,
    FilterNode,
    MatchAll,
    MatchNone,
    Not,
    Operator,
    Or,
    TypeFamily,
)
from querygate.domain.value_objects.field_type import CAST_FAMILIES

BASE_ALIAS = "t0"
DELETED_AT = "deleted_at"

_COMPARISON = {
    Operator.EQ: "=",
    Operator.GT: ">",
    Operator.GTE: ">=",
    Operator.LT: "<",
    Operator.LTE: "<=",
    Operator.LIKE: "LIKE",
    Operator.NOT_LIKE: "NOT LIKE",
    Operator.ILIKE: "ILIKE",
    Operator.NOT_ILIKE: "NOT ILIKE",
    Operator.REGEX: "~",
    Operator.ARRAY_CONTAINS: "@>",
    Operator.ARRAY_CONTAINS_ANY: "&&",
    Operator.ARRAY_CONTAINED: "<@",
}

# operator -> (SQL operator, LIKE pattern template)
_PATTERN = {
    Operator.CONTAINS: ("LIKE", "%{}%"),
    Operator.ICONTAINS: ("ILIKE", "%{}%"),
    Operator.NCONTAINS: ("NOT LIKE", "%{}%"),
    Operator.STARTS_WITH: ("LIKE", "{}%"),
    Operator.ENDS_WITH: ("LIKE", "%{}"),
    Operator.NSTARTS_WITH: ("NOT LIKE", "{}%"),
    Operator.NENDS_WITH: ("NOT LIKE", "%{}"),
}

_GEO_FUNCTIONS = {
    Operator.WITHIN: "ST_Within",
    Operator.CONTAINS_GEO: "ST_Contains",
    Operator.INTERSECTS: "ST_Intersects",
    Operator.OVERLAPS: "ST_Overlaps",
}

_AGGREGATES = {
    AggregateFunction.COUNT: "count({})",
    AggregateFunction.COUNT_DISTINCT: "count(DISTINCT {})",
    AggregateFunction.SUM: "sum({})",
    AggregateFunction.AVG: "avg({})",
    AggregateFunction.MIN: "min({})",
    AggregateFunction.MAX: "max({})",
    AggregateFunction.ARRAY_AGG: "array_agg({})",
}


def quote_ident(name: str) -> str:
    """Quote an SQL identifier."""
    return '"' + name.replace('"', '""') + '"'


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so the value matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


@dataclass
class SqlStatement:
    """SQL text with its positional parameters."""

    sql: str
    params: list[Any] = field(default_factory=list)


class _Context:
    """Parameters and table aliases of one statement."""

    def __init__(self) -> None:
        self.params: list[Any] = []
        self._aliases = 0

    def alias(self) -> str:
        self._aliases += 1
        return f"t{self._aliases}"

    def param(self, value: Any) -> str:
        self.params.append(value)
        return "%s"


class PostgresQueryBuilder:
    """Renders compiled queries and item writes as PostgreSQL statements."""

    def __init__(self, schema: SchemaProvider) -> None:
        self._schema = schema

    def build_select(self, query: CompiledQuery) -> SqlStatement:
        """Data statement: selection, filter, sort and pagination."""
        schema = self._collection(query.collection)
        ctx = _Context()
        table = f"{quote_ident(schema.table_name)} AS {BASE_ALIAS}"

        if query.is_aggregate:
            group_exprs = [_group_expr(g) for g in query.group_by]
            items = [f"{expr} AS {quote_ident(g.alias)}" for g, expr in zip(query.group_by, group_exprs)]
            items += [
                f"{_aggregate_expr(spec)} AS {quote_ident(alias)}"
                for alias, spec in query.aggregate.items()
            ]
            where = self._where_clause(query, schema, ctx)
            sql = f"SELECT {', '.join(items)} FROM {table} WHERE {where}"
            if group_exprs:
                sql += f" GROUP BY {', '.join(group_exprs)}"
            order = [f"{quote_ident(s.field)} {s.direction.upper()}" for s in query.sort]
        else:
            items = self._select_items(schema, BASE_ALIAS, query.selection, ctx, query.rel_conditions)
            where = self._where_clause(query, schema, ctx)
            sql = f"SELECT {', '.join(items)} FROM {table} WHERE {where}"
            order = self._order_items(query, schema, ctx)

        if order:
            sql += f" ORDER BY {', '.join(order)}"
        if query.limit >= 0:
            sql += f" LIMIT {ctx.param(query.limit)}"
        if query.offset > 0:
            sql += f" OFFSET {ctx.param(query.offset)}"
        return SqlStatement(sql, ctx.params)

    def build_count(self, query: CompiledQuery) -> SqlStatement:
        """Total count under the same filter, ignoring pagination.

        For grouped queries the count is the number of groups.
        """
        schema = self._collection(query.collection)
        ctx = _Context()
        table = f"{quote_ident(schema.table_name)} AS {BASE_ALIAS}"
        if query.is_aggregate and not query.group_by:
            return SqlStatement("SELECT 1")
        where = self._where_clause(query, schema, ctx)
        if query.group_by:
            group_exprs = ", ".join(_group_expr(g) for g in query.group_by)
            sql = (
                f"SELECT count(*) FROM (SELECT 1 FROM {table} WHERE {where} "
                f"GROUP BY {group_exprs}) AS grouped"
            )
        else:
            sql = f"SELECT count(*) FROM {table} WHERE {where}"
        return SqlStatement(sql, ctx.params)

    def build_insert(self, collection: str, data: dict[str, Any]) -> SqlStatement:
        schema = self._collection(collection)
        ctx = _Context()
        columns = ", ".join(quote_ident(name) for name in data)
        values = ", ".join(self._write_value(schema, name, value, ctx) for name, value in data.items())
        sql = (
            f"INSERT INTO {quote_ident(schema.table_name)} ({columns}) VALUES ({values}) "
            f"RETURNING {quote_ident(schema.primary_key)}"
        )
        return SqlStatement(sql, ctx.params)

    def build_update(
        self,
        collection: str,
        filter: FilterNode,
        data: dict[str, Any],
        rel_conditions: Mapping[str, FilterNode] | None = None,
    ) -> SqlStatement:
        schema = self._collection(collection)
        ctx = _Context()
        assignments = ", ".join(
            f"{quote_ident(name)} = {self._write_value(schema, name, value, ctx)}"
            for name, value in data.items()
        )
        where = " AND ".join(
            [self._where(filter, schema, BASE_ALIAS, ctx)]
            + self._relation_exists(schema, rel_conditions or {}, ctx)
        )
        if schema.paranoid:
            where += f" AND {BASE_ALIAS}.{quote_ident(DELETED_AT)} IS NULL"
        sql = (
            f"UPDATE {quote_ident(schema.table_name)} AS {BASE_ALIAS} SET {assignments} "
            f"WHERE {where} RETURNING {BASE_ALIAS}.{quote_ident(schema.primary_key)}"
        )
        return SqlStatement(sql, ctx.params)

    def build_delete(
        self,
        collection: str,
        filter: FilterNode,
        rel_conditions: Mapping[str, FilterNode] | None = None,
    ) -> SqlStatement:
        """Delete matching rows; paranoid collections are soft-deleted."""
        schema = self._collection(collection)
        ctx = _Context()
        where = " AND ".join(
            [self._where(filter, schema, BASE_ALIAS, ctx)]
            + self._relation_exists(schema, rel_conditions or {}, ctx)
        )
        pk = f"{BASE_ALIAS}.{quote_ident(schema.primary_key)}"
        if schema.paranoid:
            deleted_at = quote_ident(DELETED_AT)
            sql = (
                f"UPDATE {quote_ident(schema.table_name)} AS {BASE_ALIAS} "
                f"SET {deleted_at} = now() "
                f"WHERE {where} AND {BASE_ALIAS}.{deleted_at} IS NULL RETURNING {pk}"
            )
        else:
            sql = f"DELETE FROM {quote_ident(schema.table_name)} AS {BASE_ALIAS} WHERE {where} RETURNING {pk}"
        return SqlStatement(sql, ctx.params)

    def build_link(self, relation: Relationship, source_key: Any, target_keys: list[Any]) -> SqlStatement:
        """Insert junction rows of a many-to-many relation, skipping existing links."""
        ctx = _Context()
        source_column = quote_ident(_required(relation, relation.through_source_key))
        target_column = quote_ident(_required(relation, relation.through_target_key))
        sql = (
            f"INSERT INTO {quote_ident(_required(relation, relation.through))} "
            f"({source_column}, {target_column}) "
            f"SELECT {ctx.param(source_key)}, unnest({ctx.param(list(target_keys))}) "
            f"ON CONFLICT DO NOTHING"
        )
        return SqlStatement(sql, ctx.params)

    def _collection(self, name: str) -> CollectionSchema:
        schema = self._schema.get_collection(name)
        if schema is None:
            raise NotFound("Collection", name)
        return schema

    def _where_clause(self, query: CompiledQuery, schema: CollectionSchema, ctx: _Context) -> str:
        parts = [self._where(query.filter, schema, BASE_ALIAS, ctx)]
        parts += self._relation_exists(schema, query.rel_conditions, ctx)
        if query.search is not None:
            parts.append(self._search(query.search, ctx))
        if schema.paranoid:
            parts.append(f"{BASE_ALIAS}.{quote_ident(DELETED_AT)} IS NULL")
        return " AND ".join(parts)

    def _relation_exists(
        self, schema: CollectionSchema, rel_conditions: Mapping[str, FilterNode], ctx: _Context
    ) -> list[str]:
        """One EXISTS predicate per relation condition on the base row."""
        parts = []
        for name, node in rel_conditions.items():
            if isinstance(node, MatchAll):
                continue
            from_clause, on, alias, target = self._join(schema, BASE_ALIAS, name, ctx)
            inner = self._where(node, target, alias, ctx)
            parts.append(f"EXISTS (SELECT 1 FROM {from_clause} WHERE {on} AND {inner})")
        return parts

    def _where(self, node: FilterNode, schema: CollectionSchema, alias: str, ctx: _Context) -> str:
        if isinstance(node, MatchAll):
            return "TRUE"
        if isinstance(node, MatchNone):
            return "FALSE"
        if isinstance(node, And):
            return "(" + " AND ".join(self._where(c, schema, alias, ctx) for c in node.children) + ")"
        if isinstance(node, Or):
            return "(" + " OR ".join(self._where(c, schema, alias, ctx) for c in node.children) + ")"
        if isinstance(node, Not):
            return f"NOT ({self._where(node.child, schema, alias, ctx)})"
        return self._condition(node, schema, alias, ctx)

    def _condition(self, cond: Condition, schema: CollectionSchema, alias: str, ctx: _Context) -> str:
        if "." in cond.field:
            head, rest = cond.field.split(".", 1)
            from_clause, on, sub_alias, target = self._join(schema, alias, head, ctx)
            inner = self._condition(replace(cond, field=rest), target, sub_alias, ctx)
            return f"EXISTS (SELECT 1 FROM {from_clause} WHERE {on} AND {inner})"

        definition = schema.fields.get(cond.field)
        if definition is None:
            raise MalformedFilter(f"Unknown field '{cond.field}' on '{schema.name}'")
        column = f"{alias}.{quote_ident(cond.field)}"
        family = definition.type.family
        if cond.cast:
            column = f"({column})::{cond.cast}"
            family = CAST_FAMILIES[cond.cast]
        return _render(cond.operator, column, family, cond.value, ctx)

    def _join(
        self, source: CollectionSchema, alias: str, name: str, ctx: _Context
    ) -> tuple[str, str, str, CollectionSchema]:
        """FROM clause, correlation predicate, alias and schema of a relation."""
        relation = source.relationships.get(name)
        if relation is None:
            raise MalformedFilter(f"'{name}' is not a relation of '{source.name}'")
        target = self._collection(relation.target)
        sub = ctx.alias()
        target_table = f"{quote_ident(target.table_name)} AS {sub}"
        target_pk = f"{sub}.{quote_ident(target.primary_key)}"
        source_pk = f"{alias}.{quote_ident(source.primary_key)}"
        if relation.type is RelationType.M2M:
            junction = ctx.alias()
            from_clause = (
                f"{quote_ident(_required(relation, relation.through))} AS {junction} "
                f"JOIN {target_table} ON {target_pk} = "
                f"{junction}.{quote_ident(_required(relation, relation.through_target_key))}"
            )
            on = f"{junction}.{quote_ident(_required(relation, relation.through_source_key))} = {source_pk}"
        elif relation.type is RelationType.O2M:
            from_clause = target_table
            on = f"{sub}.{quote_ident(_required(relation, relation.foreign_key))} = {source_pk}"
        else:
            from_clause = target_table
            on = f"{target_pk} = {alias}.{quote_ident(_required(relation, relation.foreign_key))}"
        if target.paranoid:
            on += f" AND {sub}.{quote_ident(DELETED_AT)} IS NULL"
        return from_clause, on, sub, target

    def _select_items(
        self,
        schema: CollectionSchema,
        alias: str,
        selection: Selection,
        ctx: _Context,
        rel_conditions: dict[str, FilterNode],
    ) -> list[str]:
        items = [f"{alias}.{quote_ident(c)} AS {quote_ident(c)}" for c in selection.columns]
        for name, sub in selection.relations.items():
            expr = self._relation_json(schema, alias, name, sub, ctx, rel_conditions.get(name))
            items.append(f"{expr} AS {quote_ident(name)}")
        return items

    def _relation_json(
        self,
        schema: CollectionSchema,
        alias: str,
        name: str,
        selection: Selection,
        ctx: _Context,
        condition: FilterNode | None,
    ) -> str:
        relation = schema.relationships[name]
        from_clause, on, sub, target = self._join(schema, alias, name, ctx)
        pairs = [f"{_literal(c)}, {sub}.{quote_ident(c)}" for c in selection.columns]
        for nested_name, nested in selection.relations.items():
            expr = self._relation_json(target, sub, nested_name, nested, ctx, None)
            pairs.append(f"{_literal(nested_name)}, {expr}")
        obj = f"json_build_object({', '.join(pairs)})"
        where = on
        if condition is not None and not isinstance(condition, MatchAll):
            where += f" AND {self._where(condition, target, sub, ctx)}"
        if relation.is_to_one:
            return f"(SELECT {obj} FROM {from_clause} WHERE {where} LIMIT 1)"
        return f"(SELECT coalesce(json_agg({obj}), '[]'::json) FROM {from_clause} WHERE {where})"

    def _search(self, search: SearchSpec, ctx: _Context) -> str:
        if not search.fields:
            return "FALSE"
        matches = [
            f"{BASE_ALIAS}.{quote_ident(f)}::text ILIKE {ctx.param('%' + escape_like(search.term) + '%')}"
            for f in search.fields
        ]
        return "(" + " OR ".join(matches) + ")"

    def _order_items(self, query: CompiledQuery, schema: CollectionSchema, ctx: _Context) -> list[str]:
        order: list[str] = []
        if query.search is not None and query.search.rank and query.search.fields:
            document = ", ".join(f"{BASE_ALIAS}.{quote_ident(f)}::text" for f in query.search.fields)
            order.append(
                f"ts_rank(to_tsvector('simple', concat_ws(' ', {document})), "
                f"plainto_tsquery('simple', {ctx.param(query.search.term)})) DESC"
            )
        for item in query.sort:
            order.append(f"{self._sort_expr(schema, BASE_ALIAS, item.field, ctx)} {item.direction.upper()}")
        if not order:
            order.append(f"{BASE_ALIAS}.{quote_ident(schema.primary_key)} ASC")
        return order

    def _sort_expr(self, schema: CollectionSchema, alias: str, path: str, ctx: _Context) -> str:
        if "." not in path:
            return f"{alias}.{quote_ident(path)}"
        head, rest = path.split(".", 1)
        from_clause, on, sub, target = self._join(schema, alias, head, ctx)
        return f"(SELECT {self._sort_expr(target, sub, rest, ctx)} FROM {from_clause} WHERE {on} LIMIT 1)"

    def _write_value(self, schema: CollectionSchema, name: str, value: Any, ctx: _Context) -> str:
        definition = schema.fields.get(name)
        family = definition.type.family if definition else None
        if value is None:
            return ctx.param(None)
        if family is TypeFamily.JSON:
            return ctx.param(Jsonb(value))
        if family is TypeFamily.GEOMETRY:
            return f"ST_GeomFromGeoJSON({ctx.param(json.dumps(value))})"
        return ctx.param(value)


def _required(relation: Relationship, value: str | None) -> str:
    if not value:
        raise MalformedFilter(f"Relation '{relation.name}' is missing its join keys")
    return value


def _group_expr(item: GroupByItem) -> str:
    column = f"{BASE_ALIAS}.{quote_ident(item.field)}"
    if item.date_part is None:
        return column
    return f"EXTRACT({item.date_part.upper()} FROM {column})::integer"


def _aggregate_expr(spec: AggregateSpec) -> str:
    target = "*" if spec.field == "*" else f"{BASE_ALIAS}.{quote_ident(spec.field)}"
    return _AGGREGATES[spec.function].format(target)


def _render(op: Operator, column: str, family: TypeFamily, value: Any, ctx: _Context) -> str:
    if op in _COMPARISON:
        return f"{column} {_COMPARISON[op]} {ctx.param(value)}"
    if op in _PATTERN:
        sql_op, template = _PATTERN[op]
        return f"{column} {sql_op} {ctx.param(template.format(escape_like(value)))}"
    if op is Operator.NEQ:
        return f"{column} IS DISTINCT FROM {ctx.param(value)}"
    if op is Operator.IN:
        if not value:
            return "FALSE"
        return f"{column} = ANY({ctx.param(list(value))})"
    if op is Operator.NIN:
        if not value:
            return "TRUE"
        return f"({column} IS NULL OR {column} <> ALL({ctx.param(list(value))}))"
    if op in (Operator.BETWEEN, Operator.NBETWEEN):
        keyword = "BETWEEN" if op is Operator.BETWEEN else "NOT BETWEEN"
        return f"{column} {keyword} {ctx.param(value[0])} AND {ctx.param(value[1])}"
    if op is Operator.IS_NULL:
        return f"{column} IS NULL" if value else f"{column} IS NOT NULL"
    if op in (Operator.EMPTY, Operator.ARRAY_EMPTY):
        empty = _empty(column, family)
        return empty if value else f"NOT {empty}"
    if op is Operator.ARRAY_LENGTH:
        return f"coalesce(cardinality({column}), 0) = {ctx.param(value)}"
    if op is Operator.JSON_CONTAINS:
        return f"{column} @> {ctx.param(Jsonb(value))}::jsonb"
    if op is Operator.JSON_HAS_KEY:
        return f"{column} ? {ctx.param(value)}"
    if op is Operator.JSON_HAS_ANY_KEYS:
        return f"{column} ?| {ctx.param(list(value))}::text[]"
    if op is Operator.JSON_HAS_ALL_KEYS:
        return f"{column} ?& {ctx.param(list(value))}::text[]"
    if op is Operator.JSON_PATH:
        return f"jsonb_path_exists({column}, {ctx.param(value)}::jsonpath)"
    if op in _GEO_FUNCTIONS:
        return f"{_GEO_FUNCTIONS[op]}({column}, ST_GeomFromGeoJSON({ctx.param(json.dumps(value))}))"
    if op is Operator.NINTERSECTS:
        return f"NOT ST_Intersects({column}, ST_GeomFromGeoJSON({ctx.param(json.dumps(value))}))"
    if op is Operator.DWITHIN:
        geometry = ctx.param(json.dumps(value["geometry"]))
        distance = ctx.param(value["distance"])
        return f"ST_DWithin({column}::geography, ST_GeomFromGeoJSON({geometry})::geography, {distance})"
    raise MalformedFilter(f"Operator '{op}' cannot be rendered")


def _empty(column: str, family: TypeFamily) -> str:
    if family is TypeFamily.ARRAY:
        return f"({column} IS NULL OR cardinality({column}) = 0)"
    if family is TypeFamily.JSON:
        return f"({column} IS NULL OR {column}::jsonb IN ('{{}}'::jsonb, '[]'::jsonb))"
    return f"({column} IS NULL OR {column}::text = '')"
