"""Unit tests for QueryCompiler."""

from datetime import timedelta

import pytest

from querygate.application.dto.compiled_query import Selection
from querygate.application.dto.permission_grant import PermissionGrant
from querygate.application.dto.query_request import (
    AggregateFunction,
    AggregateSpec,
    DatePart,
    GroupByItem,
    QueryRequest,
    SortDirection,
    SortItem,
)
from querygate.application.query.compiler import QueryCompiler
from querygate.application.query.variables import VariableResolver
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
    Not,
    Operator,
    Or,
)

from tests.conftest import FIXED_NOW, make_accountability

ALL = PermissionGrant.admin()


def grant(fields=None, condition=None, rel_conditions=None) -> PermissionGrant:
    return PermissionGrant(
        allowlist=FieldAllowlist.from_fields(fields),
        condition=condition,
        rel_conditions=rel_conditions or {},
    )


@pytest.fixture
def variables(editor_role) -> VariableResolver:
    acc = make_accountability(editor_role, user_id="U1", tenant_id="T1")
    return VariableResolver(acc, now=FIXED_NOW)


class TestFilters:
    def test_caller_and_security_merged(self, compiler: QueryCompiler, variables) -> None:
        request = QueryRequest("posts", filter={"status": {"eq": "published"}})
        security = Condition("author_id", Operator.EQ, "$CURRENT_USER")
        compiled = compiler.compile(request, grant(condition=security), variables)
        assert compiled.filter == And(
            (
                Condition("status", Operator.EQ, "published"),
                Condition("author_id", Operator.EQ, "U1"),
            )
        )

    def test_or_cannot_escape_security(self, compiler: QueryCompiler, variables) -> None:
        request = QueryRequest(
            "invoices",
            filter={"OR": [{"tenant_id": {"eq": "other-tenant"}}, {"id": {"isNull": False}}]},
        )
        security = Condition("tenant_id", Operator.EQ, "$CURRENT_USER.tenant_id")
        compiled = compiler.compile(request, grant(condition=security), variables)
        assert isinstance(compiled.filter, And)
        caller_part, security_part = compiled.filter.children
        assert isinstance(caller_part, Or)
        assert security_part == Condition("tenant_id", Operator.EQ, "T1")

    def test_admin_keeps_caller_filter_only(self, compiler: QueryCompiler, variables) -> None:
        request = QueryRequest("posts", filter={"status": "draft"})
        compiled = compiler.compile(request, ALL, variables)
        assert compiled.filter == Condition("status", Operator.EQ, "draft")

    def test_no_filter_is_security_only(self, compiler: QueryCompiler, variables) -> None:
        security = Condition("status", Operator.EQ, "published")
        compiled = compiler.compile(QueryRequest("posts"), grant(condition=security), variables)
        assert compiled.filter == security

    def test_filter_on_hidden_field_ignored(self, compiler: QueryCompiler, variables) -> None:
        request = QueryRequest("posts", filter={"status": "draft", "title": "x"})
        compiled = compiler.compile(request, grant(fields=["title"]), variables)
        assert compiled.filter == Condition("title", Operator.EQ, "x")

    def test_negated_filter_on_hidden_field_ignored(self, compiler: QueryCompiler, variables) -> None:
        allowed = grant(fields=["title"])
        negated = QueryRequest("posts", filter={"NOT": {"status": {"eq": "x"}}, "title": "t"})
        assert compiler.compile(negated, allowed, variables).filter == Condition(
            "title", Operator.EQ, "t"
        )
        only_hidden = QueryRequest("posts", filter={"NOT": {"status": {"eq": "x"}}})
        assert compiler.compile(only_hidden, allowed, variables).filter == MATCH_ALL

    def test_negated_filter_on_visible_field_kept(self, compiler: QueryCompiler, variables) -> None:
        request = QueryRequest("posts", filter={"NOT": {"title": {"eq": "x"}}})
        compiled = compiler.compile(request, grant(fields=["title"]), variables)
        assert compiled.filter == Not(Condition("title", Operator.EQ, "x"))

    def test_now_resolved_once(self, compiler: QueryCompiler, variables) -> None:
        request = QueryRequest("posts", filter={"created_at": {"lt": "$NOW"}})
        security = Condition("created_at", Operator.GTE, "$NOW-DAYS_1")
        compiled = compiler.compile(request, grant(condition=security), variables)
        first, second = compiled.filter.children
        assert first.value == FIXED_NOW
        assert second.value == FIXED_NOW - timedelta(days=1)
        assert compiled.now == FIXED_NOW

    def test_unknown_collection(self, compiler: QueryCompiler, variables) -> None:
        with pytest.raises(NotFound):
            compiler.compile(QueryRequest("nope"), ALL, variables)

    def test_denied_grant_matches_nothing(self, compiler: QueryCompiler, variables) -> None:
        request = QueryRequest("invoices", filter={"id": {"in": ["a", "b"]}})
        compiled = compiler.compile(request, PermissionGrant.deny(), variables)
        assert compiled.filter == MATCH_NONE
        assert compiled.selection.is_empty
        assert compiled.limit == 0


class TestRelConditions:
    def test_caller_and_security_per_relation(self, compiler: QueryCompiler, variables) -> None:
        request = QueryRequest("posts", rel_conditions={"comments": {"body": {"contains": "hi"}}})
        security = {"comments": Condition("status", Operator.EQ, "approved")}
        compiled = compiler.compile(request, grant(rel_conditions=security), variables)
        assert compiled.rel_conditions == {
            "comments": And(
                (
                    Condition("body", Operator.CONTAINS, "hi"),
                    Condition("status", Operator.EQ, "approved"),
                )
            )
        }

    def test_unknown_relation(self, compiler: QueryCompiler, variables) -> None:
        request = QueryRequest("posts", rel_conditions={"likes": {"status": "x"}})
        with pytest.raises(MalformedFilter):
            compiler.compile(request, ALL, variables)

    def test_hidden_relation_condition_ignored(self, compiler: QueryCompiler, variables) -> None:
        request = QueryRequest("posts", rel_conditions={"comments": {"status": "x"}})
        compiled = compiler.compile(request, grant(fields=["title"]), variables)
        assert compiled.rel_conditions == {"comments": MATCH_ALL}


class TestFieldExpansion:
    def test_wildcard(self, compiler: QueryCompiler, registry) -> None:
        selection = compiler.expand_fields(registry.get_collection("posts"), ["*"])
        assert selection.columns == (
            "id",
            "title",
            "body",
            "status",
            "views",
            "metadata",
            "labels",
            "location",
            "created_at",
            "author_id",
            "category_id",
        )
        assert selection.relations == {}

    def test_relation_paths(self, compiler: QueryCompiler, registry) -> None:
        selection = compiler.expand_fields(
            registry.get_collection("posts"), ["author.name", "title", "category.*"]
        )
        assert selection == Selection(
            ("title",),
            {
                "author": Selection(("name",)),
                "category": Selection(("id", "name", "secret", "parent_id")),
            },
        )

    def test_bare_relation_is_all_its_fields(self, compiler: QueryCompiler, registry) -> None:
        selection = compiler.expand_fields(registry.get_collection("posts"), ["tags"])
        assert selection.relations == {"tags": Selection(("id", "label"))}

    def test_unknown_field(self, compiler: QueryCompiler, registry) -> None:
        with pytest.raises(MalformedFilter):
            compiler.expand_fields(registry.get_collection("posts"), ["nope"])
        with pytest.raises(MalformedFilter):
            compiler.expand_fields(registry.get_collection("posts"), ["title.x"])

    def test_depth_limit(self, registry, parser) -> None:
        shallow = QueryCompiler(registry, parser, max_depth=1)
        posts = registry.get_collection("posts")
        shallow.expand_fields(posts, ["category.name"])
        with pytest.raises(MalformedFilter, match="depth"):
            shallow.expand_fields(posts, ["category.parent.name"])

    def test_allowlist_strips_requested_fields(self, compiler: QueryCompiler, variables) -> None:
        request = QueryRequest("products", fields=["*", "category.*"])
        compiled = compiler.compile(request, grant(fields=["name", "price"]), variables)
        assert compiled.selection == Selection(("name", "price"))

    def test_allowlist_opens_relation(self, compiler: QueryCompiler, variables) -> None:
        request = QueryRequest("products", fields=["*", "category.*"])
        compiled = compiler.compile(request, grant(fields=["name", "category.name"]), variables)
        assert compiled.selection == Selection(("name",), {"category": Selection(("name",))})


class TestSort:
    def test_sort_items_kept(self, compiler: QueryCompiler, variables) -> None:
        request = QueryRequest(
            "posts",
            sort=[SortItem("views", SortDirection.DESC), SortItem("author.name")],
        )
        compiled = compiler.compile(request, ALL, variables)
        assert compiled.sort == request.sort

    def test_to_many_sort_rejected(self, compiler: QueryCompiler, variables) -> None:
        request = QueryRequest("posts", sort=[SortItem("comments.body")])
        with pytest.raises(MalformedFilter):
            compiler.compile(request, ALL, variables)

    def test_unknown_sort_field(self, compiler: QueryCompiler, variables) -> None:
        with pytest.raises(MalformedFilter):
            compiler.compile(QueryRequest("posts", sort=[SortItem("nope")]), ALL, variables)

    def test_hidden_sort_dropped(self, compiler: QueryCompiler, variables) -> None:
        request = QueryRequest("posts", sort=[SortItem("views"), SortItem("title")])
        compiled = compiler.compile(request, grant(fields=["title"]), variables)
        assert compiled.sort == [SortItem("title")]


class TestSearch:
    def test_default_fields(self, compiler: QueryCompiler, variables) -> None:
        compiled = compiler.compile(QueryRequest("posts", search=" hello "), ALL, variables)
        assert compiled.search.term == "hello"
        assert compiled.search.fields == (
            "id",
            "title",
            "body",
            "status",
            "author_id",
            "category_id",
        )
        assert not compiled.search.rank

    def test_explicit_fields_and_relevance(self, compiler: QueryCompiler, variables) -> None:
        request = QueryRequest(
            "posts", search="hello", search_fields=["title"], sort_by_relevance=True
        )
        compiled = compiler.compile(request, ALL, variables)
        assert compiled.search.fields == ("title",)
        assert compiled.search.rank

    def test_non_text_field_rejected(self, compiler: QueryCompiler, variables) -> None:
        request = QueryRequest("posts", search="1", search_fields=["views"])
        with pytest.raises(MalformedFilter):
            compiler.compile(request, ALL, variables)

    def test_hidden_fields_not_searched(self, compiler: QueryCompiler, variables) -> None:
        compiled = compiler.compile(
            QueryRequest("posts", search="x"), grant(fields=["title", "views"]), variables
        )
        assert compiled.search.fields == ("title",)

    def test_blank_search_ignored(self, compiler: QueryCompiler, variables) -> None:
        assert compiler.compile(QueryRequest("posts", search="  "), ALL, variables).search is None


class TestAggregate:
    def test_group_by_count(self, compiler: QueryCompiler, variables) -> None:
        request = QueryRequest(
            "orders",
            aggregate={"count": AggregateSpec(AggregateFunction.COUNT)},
            group_by=[GroupByItem("status")],
        )
        compiled = compiler.compile(request, ALL, variables)
        assert compiled.is_aggregate
        assert compiled.selection.columns == ("status", "count")

    def test_field_outside_group_by_rejected(self, compiler: QueryCompiler, variables) -> None:
        request = QueryRequest(
            "orders",
            fields=["region"],
            aggregate={"count": AggregateSpec(AggregateFunction.COUNT)},
            group_by=[GroupByItem("status")],
        )
        with pytest.raises(IncompatibleAggregate):
            compiler.compile(request, ALL, variables)

    def test_group_by_and_aggregate_fields_accepted(self, compiler: QueryCompiler, variables) -> None:
        request = QueryRequest(
            "orders",
            fields=["status", "revenue"],
            aggregate={"revenue": AggregateSpec(AggregateFunction.SUM, "total")},
            group_by=[GroupByItem("status")],
        )
        compiled = compiler.compile(request, ALL, variables)
        assert compiled.selection.columns == ("status", "revenue")

    def test_sum_needs_numeric(self, compiler: QueryCompiler, variables) -> None:
        request = QueryRequest(
            "orders", aggregate={"s": AggregateSpec(AggregateFunction.SUM, "region")}
        )
        with pytest.raises(MalformedFilter):
            compiler.compile(request, ALL, variables)

    def test_date_part_needs_temporal(self, compiler: QueryCompiler, variables) -> None:
        request = QueryRequest("orders", group_by=[GroupByItem("region", DatePart.MONTH)])
        with pytest.raises(MalformedFilter):
            compiler.compile(request, ALL, variables)

    def test_date_part_alias(self, compiler: QueryCompiler, variables) -> None:
        request = QueryRequest(
            "orders",
            aggregate={"n": AggregateSpec(AggregateFunction.COUNT)},
            group_by=[GroupByItem("created_at", DatePart.MONTH)],
            sort=[SortItem("created_at_month")],
        )
        compiled = compiler.compile(request, ALL, variables)
        assert compiled.selection.columns == ("created_at_month", "n")

    def test_sort_must_be_alias(self, compiler: QueryCompiler, variables) -> None:
        request = QueryRequest(
            "orders",
            aggregate={"n": AggregateSpec(AggregateFunction.COUNT)},
            group_by=[GroupByItem("status")],
            sort=[SortItem("total")],
        )
        with pytest.raises(IncompatibleAggregate):
            compiler.compile(request, ALL, variables)

    def test_hidden_aggregate_dropped(self, compiler: QueryCompiler, variables) -> None:
        request = QueryRequest(
            "orders",
            aggregate={"revenue": AggregateSpec(AggregateFunction.SUM, "total")},
            group_by=[GroupByItem("status")],
        )
        compiled = compiler.compile(request, grant(fields=["status"]), variables)
        assert compiled.aggregate == {}
        assert compiled.selection.columns == ("status",)

    def test_everything_hidden_denied(self, compiler: QueryCompiler, variables) -> None:
        request = QueryRequest(
            "orders", aggregate={"revenue": AggregateSpec(AggregateFunction.SUM, "total")}
        )
        with pytest.raises(AccessDenied):
            compiler.compile(request, grant(fields=["status"]), variables)


class TestPagination:
    def test_page_to_offset(self, compiler: QueryCompiler, variables) -> None:
        compiled = compiler.compile(QueryRequest("posts", page=3, limit=10), ALL, variables)
        assert (compiled.limit, compiled.offset) == (10, 20)

    def test_explicit_offset_wins(self, compiler: QueryCompiler, variables) -> None:
        compiled = compiler.compile(QueryRequest("posts", page=3, offset=5), ALL, variables)
        assert compiled.offset == 5

    def test_unlimited(self, compiler: QueryCompiler, variables) -> None:
        compiled = compiler.compile(QueryRequest("posts", page=4, limit=-1), ALL, variables)
        assert (compiled.limit, compiled.offset) == (-1, 0)

    @pytest.mark.parametrize(
        "request_kwargs", [{"limit": -2}, {"page": 0}, {"offset": -1}]
    )
    def test_invalid(self, compiler: QueryCompiler, variables, request_kwargs) -> None:
        with pytest.raises(MalformedFilter):
            compiler.compile(QueryRequest("posts", **request_kwargs), ALL, variables)
