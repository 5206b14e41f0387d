"""Entity types and schema for the object store.

Entities are plain dataclasses deriving from Entity. Ordered to-many
relationships are declared with link(), and inverse relationships with
the LinkingObjects descriptor, which is computed on access and never
stored.

Example:
    >>> @dataclass
    ... class Note(Entity):
    ...     id: str = ""
    ...     text: str = ""
    ...     tags: list[str] = link("Tag")
"""

import dataclasses
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Iterable

from livetodo.errors import InvalidTransactionState, NotFound, SchemaError, ValidationError

if TYPE_CHECKING:
    from livetodo.store.object_store import ObjectStore

PRIMARY_KEY = "id"


def link(target: str) -> Any:
    """Declare an ordered to-many relationship to entities of `target`.

    The sequence holds target ids in insertion order; duplicates are allowed.
    """
    return field(default_factory=list, metadata={"link": target})


class LinkingObjects:
    """Inverse relationship computed from a forward relationship.

    Reading the attribute scans every `origin` entity whose `property`
    sequence contains this entity and returns them in insertion order.
    The result always reflects the last committed state of the store the
    entity came from. It cannot be assigned.
    """

    def __init__(self, origin: str, property: str) -> None:
        self.origin = origin
        self.property = property
        self.name = ""

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, obj: "Entity | None", owner: type | None = None) -> Any:
        if obj is None:
            return self
        store = obj._store
        if store is None or not obj.id:
            return ()
        return store.backlinks.owning_objects(obj.id, self.property, origin=self.origin)

    def __set__(self, obj: "Entity", value: Any) -> None:
        raise AttributeError(
            f"'{self.name}' is computed from {self.origin}.{self.property}; "
            "edit that relationship instead"
        )


class Entity:
    """Base class for persisted entity types.

    Instances handed out by the store are frozen: any attribute assignment
    raises InvalidTransactionState and relationship sequences are tuples.
    Mutable copies only exist inside a write transaction.
    """

    __type_name__: ClassVar[str] = "Entity"

    _frozen = False
    _store: "ObjectStore | None" = None

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls.__type_name__ = cls.__name__

    def __setattr__(self, name: str, value: Any) -> None:
        if self._frozen:
            raise InvalidTransactionState(
                f"Cannot modify {self.__type_name__} '{self.id}' outside of a write transaction"
            )
        object.__setattr__(self, name, value)

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            data[f.name] = list(value) if "link" in f.metadata else value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Entity":
        known = {f.name for f in dataclasses.fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        for name in relationship_fields(cls):
            if name in values:
                values[name] = list(values[name])
        return cls(**values)


@dataclass
class Task(Entity):
    """A single to-do item."""

    id: str = ""
    title: str = ""
    is_completed: bool = False

    active_categories = LinkingObjects("Category", "active_items")
    completed_categories = LinkingObjects("Category", "completed_items")


@dataclass
class Category(Entity):
    """A named group of tasks, split into active and completed sequences."""

    id: str = ""
    name: str = ""
    active_items: list[str] = link("Task")
    completed_items: list[str] = link("Task")


DEFAULT_ENTITIES: tuple[type[Entity], ...] = (Task, Category)


def relationship_fields(cls: type[Entity]) -> dict[str, str]:
    """Map each relationship field name of `cls` to its target type name."""
    return {
        f.name: f.metadata["link"]
        for f in dataclasses.fields(cls)
        if "link" in f.metadata
    }


def value_fields(cls: type[Entity]) -> dict[str, Any]:
    """Map each plain (non-relationship) field name of `cls` to its type."""
    return {
        f.name: f.type
        for f in dataclasses.fields(cls)
        if "link" not in f.metadata
    }


def freeze(entity: Entity, store: "ObjectStore | None" = None) -> Entity:
    """Turn a mutable entity into a read-only snapshot, in place."""
    for name in relationship_fields(type(entity)):
        object.__setattr__(entity, name, tuple(getattr(entity, name)))
    object.__setattr__(entity, "_store", store)
    object.__setattr__(entity, "_frozen", True)
    return entity


def thaw(entity: Entity) -> Entity:
    """Return a mutable copy of a frozen entity."""
    cls = type(entity)
    values = {}
    for f in dataclasses.fields(entity):
        value = getattr(entity, f.name)
        values[f.name] = list(value) if "link" in f.metadata else value
    copy = cls(**values)
    object.__setattr__(copy, "_store", entity._store)
    return copy


class Schema:
    """The set of entity types a store manages.

    Validates relationship targets and LinkingObjects declarations when
    built, and answers type and relationship lookups afterwards.
    """

    def __init__(self, entities: Iterable[type[Entity]] = DEFAULT_ENTITIES) -> None:
        self._types: dict[str, type[Entity]] = {}
        for cls in entities:
            if not (isinstance(cls, type) and issubclass(cls, Entity)):
                raise SchemaError(f"{cls!r} is not an Entity subclass")
            if not dataclasses.is_dataclass(cls):
                raise SchemaError(f"{cls.__name__} must be a dataclass")
            if PRIMARY_KEY not in value_fields(cls):
                raise SchemaError(f"{cls.__name__} has no '{PRIMARY_KEY}' field")
            self._types[cls.__type_name__] = cls
        self._check_links()

    def _check_links(self) -> None:
        for cls in self._types.values():
            for name, target in relationship_fields(cls).items():
                if target not in self._types:
                    raise SchemaError(
                        f"{cls.__name__}.{name} links to unknown type '{target}'"
                    )
            for attr in vars(cls).values():
                if not isinstance(attr, LinkingObjects):
                    continue
                origin = self._types.get(attr.origin)
                if origin is None or attr.property not in relationship_fields(origin):
                    raise SchemaError(
                        f"{cls.__name__}.{attr.name} refers to unknown relationship "
                        f"{attr.origin}.{attr.property}"
                    )

    @property
    def type_names(self) -> list[str]:
        return list(self._types)

    @property
    def entities(self) -> list[type[Entity]]:
        return list(self._types.values())

    def resolve(self, cls_or_name: "type[Entity] | str") -> type[Entity]:
        """Return the entity class for a class or a type name."""
        name = cls_or_name if isinstance(cls_or_name, str) else cls_or_name.__type_name__
        cls = self._types.get(name)
        if cls is None:
            raise SchemaError(f"Type '{name}' is not part of this store's schema")
        return cls

    def origins(self, relationship: str, origin: str | None = None) -> list[type[Entity]]:
        """Types declaring a relationship named `relationship`.

        Raises SchemaError when no type (or not `origin`) declares it.
        """
        candidates = [self.resolve(origin)] if origin else self.entities
        found = [cls for cls in candidates if relationship in relationship_fields(cls)]
        if not found:
            where = origin or "any type"
            raise SchemaError(f"No relationship '{relationship}' on {where}")
        return found

    def validate(self, entity: Entity, exists: Callable[[str, str], bool]) -> None:
        """Check field types and that every relationship target exists.

        Args:
            entity: Mutable entity to check.
            exists: Callback (type_name, id) -> bool against the working state.

        Raises:
            ValidationError: A field holds a value of the wrong type.
            NotFound: A relationship references a missing entity.
        """
        cls = type(entity)
        for name, expected in value_fields(cls).items():
            value = getattr(entity, name)
            if isinstance(expected, type) and not isinstance(value, expected):
                raise ValidationError(
                    f"{cls.__name__}.{name} expects {expected.__name__}, "
                    f"got {type(value).__name__}"
                )
        for name, target in relationship_fields(cls).items():
            items = getattr(entity, name)
            if isinstance(items, (str, Entity)) or not isinstance(items, Iterable):
                raise ValidationError(f"{cls.__name__}.{name} must be a sequence")
            normalized = [normalize_ref(item) for item in items]
            for ref in normalized:
                if not exists(target, ref):
                    raise NotFound(ref, target)
            setattr(entity, name, normalized)


def normalize_ref(item: Any) -> str:
    """Accept an entity or an id and return the id."""
    if isinstance(item, Entity):
        return item.id
    if isinstance(item, str):
        return item
    raise ValidationError(f"Relationship items must be ids or entities, got {type(item).__name__}")
