"""Write transactions.

A Transaction works on a private copy of the store's committed state.
Entities are copied on first write, so opening a transaction is cheap
and readers of the store keep seeing the last committed state until
commit() swaps the copy in. rollback() simply drops the copy.

Example:
    >>> with store.write() as txn:
    ...     task = txn.create(Task, title="Buy milk")
    ...     txn.update(task, lambda t: setattr(t, "is_completed", True))
    >>> store.get(Task, task.id).is_completed
    True
"""

import threading
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable

from livetodo.errors import (
    DuplicatePrimaryKey,
    InvalidTransactionState,
    NotFound,
    SchemaError,
    ValidationError,
)
from livetodo.store._utils import new_object_id
from livetodo.store.results import ChangeSet
from livetodo.store.schema import (
    PRIMARY_KEY,
    Entity,
    relationship_fields,
    thaw,
    value_fields,
)

if TYPE_CHECKING:
    from livetodo.store.object_store import ObjectStore


class TransactionState(Enum):
    """Lifecycle of a write transaction (IDLE means none is open)."""

    IDLE = "idle"
    OPEN = "open"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


def entity_id_of(target: "Entity | str") -> str:
    """Accept an entity or an id and return the id."""
    if isinstance(target, Entity):
        return target.id
    if isinstance(target, str):
        return target
    raise TypeError(f"Expected an entity or an id, got {type(target).__name__}")


class Transaction:
    """A single write transaction on an ObjectStore.

    Created by ObjectStore.begin_write(). Usable as a context manager:
    leaving the block normally commits, leaving it with an exception
    rolls back and re-raises.
    """

    def __init__(
        self,
        store: "ObjectStore",
        objects: dict[str, dict[str, Entity]],
        type_of: dict[str, str],
        base_version: int,
    ) -> None:
        self._store = store
        self._objects = {name: dict(items) for name, items in objects.items()}
        self._type_of = dict(type_of)
        self._touched: dict[str, Entity] = {}
        self.base_version = base_version
        self.owner_thread = threading.get_ident()
        self.state = TransactionState.OPEN
        self.changes = ChangeSet()

    # ---- state checks ----

    @property
    def is_open(self) -> bool:
        return self.state is TransactionState.OPEN

    def _require_writable(self) -> None:
        if self.state is not TransactionState.OPEN:
            raise InvalidTransactionState(
                f"Transaction is {self.state.value}; start a new one with begin_write()"
            )
        if threading.get_ident() != self.owner_thread:
            raise InvalidTransactionState("The open write transaction belongs to another thread")

    def _exists(self, type_name: str, entity_id: str) -> bool:
        return self._type_of.get(entity_id) == type_name

    def _writable(self, entity_id: str) -> Entity:
        type_name = self._type_of[entity_id]
        entity = self._objects[type_name][entity_id]
        if entity.is_frozen:
            entity = thaw(entity)
            self._objects[type_name][entity_id] = entity
            self._touched[entity_id] = entity
        return entity

    # ---- reads of the uncommitted state ----

    def find(self, entity_id: str) -> Entity | None:
        """Look up an id in this transaction's working state."""
        type_name = self._type_of.get(entity_id)
        if type_name is None:
            return None
        return self._objects[type_name][entity_id]

    def get(self, cls: "type[Entity] | str", entity_id: str) -> Entity:
        type_name = self._store.schema.resolve(cls).__type_name__
        if not self._exists(type_name, entity_id):
            raise NotFound(entity_id, type_name)
        return self._objects[type_name][entity_id]

    def objects(self, cls: "type[Entity] | str") -> list[Entity]:
        type_name = self._store.schema.resolve(cls).__type_name__
        return list(self._objects[type_name].values())

    # ---- mutations ----

    def create(
        self,
        cls: "type[Entity] | str",
        values: dict[str, Any] | None = None,
        **fields: Any,
    ) -> Entity:
        """Insert a new entity built from `values` over the type defaults.

        Returns:
            The new (mutable, uncommitted) entity; its id is final.

        Raises:
            DuplicatePrimaryKey: An explicit id is already in use.
            SchemaError: Unknown field names.
            ValidationError: Values of the wrong type.
            NotFound: A relationship references a missing entity.
        """
        self._require_writable()
        entity_cls = self._store.schema.resolve(cls)
        type_name = entity_cls.__type_name__
        data = {**(values or {}), **fields}

        unknown = set(data) - set(value_fields(entity_cls)) - set(relationship_fields(entity_cls))
        if unknown:
            raise SchemaError(f"{type_name} has no field(s) {', '.join(sorted(unknown))}")

        entity_id = data.pop(PRIMARY_KEY, None)
        if entity_id is None:
            entity_id = new_object_id()
            while entity_id in self._type_of:
                entity_id = new_object_id()
        elif not isinstance(entity_id, str) or not entity_id:
            raise ValidationError("Primary key must be a non-empty string")
        elif entity_id in self._type_of:
            raise DuplicatePrimaryKey(entity_id)

        entity = entity_cls(**{PRIMARY_KEY: entity_id}, **data)
        object.__setattr__(entity, "_store", self._store)
        self._objects[type_name][entity_id] = entity
        self._type_of[entity_id] = type_name
        try:
            self._store.schema.validate(entity, self._exists)
        except Exception:
            del self._objects[type_name][entity_id]
            del self._type_of[entity_id]
            raise

        self._touched[entity_id] = entity
        self.changes.record_insert(type_name, entity_id)
        return entity

    def update(self, target: "Entity | str", mutator: Callable[[Entity], Any]) -> Any:
        """Apply `mutator` to a mutable copy of one entity.

        The copy only replaces the working entity when the mutator returns
        and the result validates, so a failing mutator changes nothing.

        Returns:
            Whatever the mutator returned.
        """
        self._require_writable()
        entity_id = entity_id_of(target)
        type_name = self._type_of.get(entity_id)
        if type_name is None:
            raise NotFound(entity_id)

        current = self._objects[type_name][entity_id]
        scratch = thaw(current)
        result = mutator(scratch)
        if scratch.id != entity_id:
            raise ValidationError(f"Primary key of {type_name} '{entity_id}' is immutable")
        self._store.schema.validate(scratch, self._exists)
        if scratch.to_dict() == current.to_dict():
            return result

        self._objects[type_name][entity_id] = scratch
        self._touched[entity_id] = scratch
        self.changes.record_modify(type_name, entity_id)
        return result

    def delete(self, target: "Entity | str") -> None:
        """Remove an entity and every reference to it in relationship sequences."""
        self._require_writable()
        entity_id = entity_id_of(target)
        type_name = self._type_of.get(entity_id)
        if type_name is None:
            raise NotFound(entity_id)

        del self._objects[type_name][entity_id]
        del self._type_of[entity_id]
        self._touched.pop(entity_id, None)
        self._purge_references(type_name, entity_id)
        self.changes.record_delete(type_name, entity_id)

    def _purge_references(self, type_name: str, entity_id: str) -> None:
        for cls in self._store.schema.entities:
            links = [
                name
                for name, target in relationship_fields(cls).items()
                if target == type_name
            ]
            if not links:
                continue
            owner_type = cls.__type_name__
            for owner in list(self._objects[owner_type].values()):
                stale = [name for name in links if entity_id in getattr(owner, name)]
                if not stale:
                    continue
                writable = self._writable(owner.id)
                for name in stale:
                    setattr(writable, name, [ref for ref in getattr(writable, name) if ref != entity_id])
                self.changes.record_modify(owner_type, owner.id)

    # ---- completion ----

    def commit(self) -> None:
        """Make the changes visible and durable, then notify observers.

        Raises:
            InvalidTransactionState: The transaction is not open.
            TransactionConflict: The committed state changed since begin_write().
        """
        self._store._commit(self)

    def rollback(self) -> None:
        """Discard all changes. A no-op on a finished transaction."""
        if self.state is not TransactionState.OPEN:
            return
        self._store._rollback(self)

    def __enter__(self) -> "Transaction":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.state is not TransactionState.OPEN:
            return
        if exc_type is None:
            self.commit()
        else:
            self.rollback()

    def __repr__(self) -> str:
        return f"<Transaction {self.state.value} base_version={self.base_version}>"
