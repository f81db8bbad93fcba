"""Unit tests for the schema registry."""

import pytest

from querygate.domain.entities import RelationType
from querygate.domain.exceptions import MalformedFilter, NotFound, ValidationError
from querygate.domain.value_objects import FieldType
from querygate.infrastructure.schema.schema_registry import SchemaRegistry, parse_collection

from tests.conftest import FakeUnitOfWork, make_uow_factory


class TestParseCollection:
    def test_fields_and_relations(self) -> None:
        schema = parse_collection(
            "posts",
            {
                "table": "blog_posts",
                "paranoid": True,
                "fields": {
                    "id": {"type": "UUID", "primaryKey": True},
                    "title": {"type": "String", "allowNull": False},
                    "author": {"relType": "BelongsTo", "target": "users"},
                    "comments": {"relType": "HasMany", "target": "comments"},
                    "tags": {"relType": "M2M", "target": "tags"},
                },
            },
        )
        assert schema.table_name == "blog_posts"
        assert schema.paranoid
        assert schema.primary_key == "id"
        assert not schema.fields["title"].allow_null
        assert schema.scalar_fields() == ["id", "title", "author_id"]
        assert schema.fields["author_id"].type is FieldType.UUID

        author = schema.relationships["author"]
        assert author.type is RelationType.M2O
        assert author.is_to_one
        assert author.foreign_key == "author_id"

        comments = schema.relationships["comments"]
        assert comments.type is RelationType.O2M
        assert comments.foreign_key == "posts_id"

        tags = schema.relationships["tags"]
        assert tags.through == "posts_tags_junction"
        assert tags.through_source_key == "posts_id"
        assert tags.through_target_key == "tags_id"

    def test_table_defaults_to_name(self) -> None:
        schema = parse_collection("users", {"fields": {"id": {"type": "UUID"}}})
        assert schema.table_name == "users"
        assert not schema.paranoid

    @pytest.mark.parametrize(
        "definition",
        [
            {},
            {"fields": {}},
            {"fields": {"id": "UUID"}},
            {"fields": {"id": {"type": "Blob"}}},
            {"fields": {"a": {"relType": "Sideways", "target": "x"}}},
            {"fields": {"a": {"relType": "M2O"}}},
        ],
    )
    def test_invalid(self, definition) -> None:
        with pytest.raises(ValidationError):
            parse_collection("broken", definition)


class TestSchemaRegistry:
    def test_field_type_follows_relations(self, registry: SchemaRegistry) -> None:
        assert registry.field_type("posts", "views") is FieldType.INTEGER
        assert registry.field_type("posts", "category.parent.name") is FieldType.STRING

    def test_field_type_errors(self, registry: SchemaRegistry) -> None:
        with pytest.raises(NotFound):
            registry.field_type("nope", "id")
        with pytest.raises(MalformedFilter):
            registry.field_type("posts", "author")
        with pytest.raises(MalformedFilter):
            registry.field_type("posts", "title.name")
        with pytest.raises(MalformedFilter):
            registry.field_type("posts", "nope")

    def test_relationships_copy(self, registry: SchemaRegistry) -> None:
        relations = registry.relationships("posts")
        relations.clear()
        assert "author" in registry.relationships("posts")
        assert registry.relationships("nope") == {}

    @pytest.mark.asyncio
    async def test_reload_replaces_collections(self) -> None:
        uow = FakeUnitOfWork()
        uow.schemas.definitions = {"notes": {"fields": {"id": {"type": "UUID"}}}}
        registry = SchemaRegistry()
        assert registry.collection_names() == []
        await registry.reload(make_uow_factory(uow))
        assert registry.collection_names() == ["notes"]
        assert registry.get_collection("notes") is not None
