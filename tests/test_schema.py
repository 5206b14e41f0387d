"""Tests for entity types and schema validation."""

from dataclasses import dataclass

import pytest

from livetodo.errors import InvalidTransactionState, NotFound, SchemaError, ValidationError
from livetodo.store.schema import (
    Category,
    Entity,
    LinkingObjects,
    Schema,
    Task,
    freeze,
    link,
    relationship_fields,
    thaw,
    value_fields,
)


class TestEntity:
    """Tests for Entity dataclasses."""

    def test_defaults(self):
        task = Task()

        assert task.id == ""
        assert task.title == ""
        assert task.is_completed is False
        assert Category().active_items == []

    def test_type_name(self):
        assert Task.__type_name__ == "Task"
        assert Category.__type_name__ == "Category"

    def test_field_introspection(self):
        assert relationship_fields(Category) == {"active_items": "Task", "completed_items": "Task"}
        assert set(value_fields(Category)) == {"id", "name"}
        assert set(value_fields(Task)) == {"id", "title", "is_completed"}

    def test_to_dict_from_dict(self):
        category = Category(id="c1", name="Home", active_items=["t1", "t2"])

        data = category.to_dict()
        assert data == {"id": "c1", "name": "Home", "active_items": ["t1", "t2"], "completed_items": []}

        restored = Category.from_dict({**data, "legacy_field": 1})
        assert restored == category

    def test_freeze_blocks_assignment(self):
        task = freeze(Task(id="t1", title="Buy milk"))

        assert task.is_frozen
        with pytest.raises(InvalidTransactionState):
            task.title = "Buy oat milk"
        assert task.title == "Buy milk"

    def test_freeze_turns_relationships_into_tuples(self):
        category = freeze(Category(id="c1", active_items=["t1"]))

        assert category.active_items == ("t1",)
        with pytest.raises(AttributeError):
            category.active_items.append("t2")

    def test_thaw_returns_mutable_copy(self):
        frozen = freeze(Category(id="c1", name="Home", active_items=["t1"]))

        copy = thaw(frozen)
        copy.name = "Work"
        copy.active_items.append("t2")

        assert not copy.is_frozen
        assert frozen.name == "Home"
        assert frozen.active_items == ("t1",)

    def test_linking_objects_without_store_is_empty(self):
        assert Task(id="t1").active_categories == ()

    def test_linking_objects_cannot_be_assigned(self):
        task = Task(id="t1")

        with pytest.raises(AttributeError):
            task.active_categories = ["c1"]

    def test_linking_objects_descriptor_on_class(self):
        descriptor = Task.active_categories

        assert isinstance(descriptor, LinkingObjects)
        assert descriptor.origin == "Category"
        assert descriptor.property == "active_items"


class TestSchema:
    """Tests for Schema construction and lookups."""

    def test_default_schema(self):
        schema = Schema()

        assert schema.type_names == ["Task", "Category"]
        assert schema.resolve("Task") is Task
        assert schema.resolve(Category) is Category

    def test_unknown_type(self):
        with pytest.raises(SchemaError):
            Schema().resolve("Project")

    def test_rejects_non_entity(self):
        with pytest.raises(SchemaError):
            Schema([dict])

    def test_rejects_missing_link_target(self):
        with pytest.raises(SchemaError, match="unknown type 'Task'"):
            Schema([Category])

    def test_rejects_dangling_linking_objects(self):
        with pytest.raises(SchemaError, match="Category.active_items"):
            Schema([Task])

    def test_rejects_entity_without_id(self):
        @dataclass
        class Nameless(Entity):
            label: str = ""

        with pytest.raises(SchemaError, match="no 'id' field"):
            Schema([Nameless])

    def test_custom_entities(self):
        @dataclass
        class Tag(Entity):
            id: str = ""

        @dataclass
        class Note(Entity):
            id: str = ""
            text: str = ""
            tags: list[str] = link("Tag")

        schema = Schema([Tag, Note])

        assert schema.type_names == ["Tag", "Note"]
        assert schema.origins("tags") == [Note]

    def test_origins(self):
        schema = Schema()

        assert schema.origins("active_items") == [Category]
        assert schema.origins("active_items", origin="Category") == [Category]
        with pytest.raises(SchemaError):
            schema.origins("members")
        with pytest.raises(SchemaError):
            schema.origins("active_items", origin="Task")


class TestValidate:
    """Tests for Schema.validate."""

    def test_accepts_valid_entity(self):
        category = Category(id="c1", active_items=["t1"])

        Schema().validate(category, lambda type_name, ref: ref == "t1")

        assert category.active_items == ["t1"]

    def test_wrong_value_type(self):
        with pytest.raises(ValidationError, match="Task.title expects str"):
            Schema().validate(Task(id="t1", title=42), lambda *_: True)

    def test_missing_relationship_target(self):
        with pytest.raises(NotFound) as exc_info:
            Schema().validate(Category(id="c1", active_items=["ghost"]), lambda *_: False)

        assert exc_info.value.entity_id == "ghost"
        assert exc_info.value.type_name == "Task"

    def test_entities_normalized_to_ids(self):
        category = Category(id="c1", active_items=[Task(id="t1"), "t2"])

        Schema().validate(category, lambda *_: True)

        assert category.active_items == ["t1", "t2"]

    def test_relationship_must_be_sequence(self):
        with pytest.raises(ValidationError, match="must be a sequence"):
            Schema().validate(Category(id="c1", active_items="t1"), lambda *_: True)

    def test_relationship_items_must_be_ids(self):
        with pytest.raises(ValidationError):
            Schema().validate(Category(id="c1", active_items=[7]), lambda *_: True)
