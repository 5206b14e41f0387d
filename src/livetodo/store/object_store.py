"""Persisted, transactional object store.

The store keeps the last committed state as immutable snapshots of
each entity, keyed by type and id in insertion order. All mutations go
through a single write transaction at a time; readers never see
uncommitted writes. After each commit the store persists its state
atomically (unless in memory) and notifies live results.

Storage layout (file-backed stores):
    {workspace_dir}/default.store.json
    {
      "format": 1,
      "generation": 12,
      "objects": {"Task": [...], "Category": [...]}
    }

Example:
    >>> store = ObjectStore(StoreConfiguration(in_memory_identifier="demo"))
    >>> with store.write():
    ...     task = store.create(Task, title="Buy milk")
    >>> [t.title for t in store.all(Task)]
    ['Buy milk']
    >>> store.close()
"""

import json
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable

from livetodo.errors import (
    InvalidTransactionState,
    NotFound,
    SchemaError,
    StoreClosed,
    StoreFileError,
    TransactionAlreadyOpen,
    TransactionConflict,
    ValidationError,
)
from livetodo.logging import Loggers
from livetodo.store._utils import atomic_write_json
from livetodo.store.backlinks import BacklinkResolver
from livetodo.store.configuration import StoreConfiguration
from livetodo.store.results import ChangeSet, Notifier, NotificationToken, Results
from livetodo.store.schema import Entity, Schema, freeze
from livetodo.store.transaction import Transaction, TransactionState

if TYPE_CHECKING:
    from livetodo.config import BaseSettings

logger = Loggers.store()

FILE_FORMAT = 1


class ObjectStore:
    """A process-local object store with live results.

    Opening happens in the constructor: a missing store file is created
    with an empty default state, an existing one is loaded. Call close()
    (or use the store as a context manager) when done.
    """

    def __init__(self, config: StoreConfiguration) -> None:
        self._config = config
        self.schema = Schema(config.entities)
        self._objects: dict[str, dict[str, Entity]] = {}
        self._type_of: dict[str, str] = {}
        self._version = 0
        self._generation = 0
        self._write_lock = threading.Lock()
        self._transaction: Transaction | None = None
        self._notifier = Notifier()
        self.backlinks = BacklinkResolver(self)
        self._closed = False

        if config.path is None:
            self._objects = {name: {} for name in self.schema.type_names}
        elif config.path.exists():
            data = self._read_file(config.path)
            self._objects, self._type_of = self._parse(data)
            self._generation = data["generation"]
        else:
            self._objects = {name: {} for name in self.schema.type_names}
            self._write_file(config.path, self._objects, self._generation)

        logger.info("store_opened", location=config.location, objects=len(self._type_of))

    @classmethod
    def from_settings(cls, settings: "BaseSettings") -> "ObjectStore":
        """Open the default store described by application settings."""
        return cls(StoreConfiguration.from_settings(settings))

    # ---- lifecycle ----

    @property
    def config(self) -> StoreConfiguration:
        return self._config

    @property
    def location(self) -> str:
        return self._config.location

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def version(self) -> int:
        """Counter bumped on every commit or refresh that changed state."""
        return self._version

    @property
    def generation(self) -> int:
        """Write counter persisted in the store file."""
        return self._generation

    def close(self) -> None:
        """Roll back any open transaction, drop observers and close the store."""
        if self._closed:
            return
        if self._transaction is not None:
            self._rollback(self._transaction)
        self._notifier.clear()
        self._closed = True
        logger.info("store_closed", location=self.location)

    def __enter__(self) -> "ObjectStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _check_open(self) -> None:
        if self._closed:
            raise StoreClosed(f"Store at {self.location} is closed")

    # ---- reads (always the last committed state) ----

    def _committed_objects(self, type_name: str) -> list[Entity]:
        self._check_open()
        return list(self._objects[type_name].values())

    def all(self, cls: "type[Entity] | str") -> Results:
        """Live results over every committed entity of a type."""
        self._check_open()
        return Results(self, self.schema.resolve(cls))

    def get(self, cls: "type[Entity] | str", entity_id: str) -> Entity:
        """Return the committed entity, or raise NotFound."""
        self._check_open()
        type_name = self.schema.resolve(cls).__type_name__
        entity = self._objects[type_name].get(entity_id)
        if entity is None:
            raise NotFound(entity_id, type_name)
        return entity

    def find(self, entity_id: str) -> Entity | None:
        """Look up a committed entity of any type by id."""
        self._check_open()
        type_name = self._type_of.get(entity_id)
        if type_name is None:
            return None
        return self._objects[type_name][entity_id]

    def count(self, cls: "type[Entity] | str") -> int:
        self._check_open()
        return len(self._objects[self.schema.resolve(cls).__type_name__])

    @property
    def is_empty(self) -> bool:
        self._check_open()
        return not self._type_of

    def owners(
        self, entity_id: str, relationship: str, origin: "type[Entity] | str | None" = None
    ) -> frozenset[str]:
        """Ids of committed entities whose `relationship` sequence contains `entity_id`."""
        self._check_open()
        origin_name = None
        if origin is not None:
            origin_name = self.schema.resolve(origin).__type_name__
        return self.backlinks.owners(entity_id, relationship, origin_name)

    def observe(self, callback: Callable[[ChangeSet], Any]) -> NotificationToken:
        """Call `callback(change_set)` after every commit that changed something."""
        self._check_open()
        return self._notifier.add_store_observer(callback)

    # ---- transactions ----

    @property
    def transaction_state(self) -> TransactionState:
        txn = self._transaction
        return txn.state if txn is not None else TransactionState.IDLE

    @property
    def is_in_write_transaction(self) -> bool:
        return self._transaction is not None

    def begin_write(self) -> Transaction:
        """Open the single write transaction.

        Raises:
            TransactionAlreadyOpen: A write transaction is already open.
            StoreClosed: The store was closed.
        """
        self._check_open()
        if not self._write_lock.acquire(blocking=False):
            raise TransactionAlreadyOpen("A write transaction is already open on this store")
        txn = Transaction(self, self._objects, self._type_of, self._version)
        self._transaction = txn
        logger.debug("transaction_begin", base_version=self._version)
        return txn

    def write(self) -> Transaction:
        """Open a write transaction for use in a `with` block.

        Example:
            with store.write():
                store.create(Task, title="Buy milk")
        """
        return self.begin_write()

    def _require_transaction(self) -> Transaction:
        self._check_open()
        txn = self._transaction
        if txn is None:
            raise InvalidTransactionState(
                "Cannot modify the store outside of a write transaction; call begin_write() first"
            )
        return txn

    def create(
        self,
        cls: "type[Entity] | str",
        values: dict[str, Any] | None = None,
        **fields: Any,
    ) -> Entity:
        """Insert an entity in the open write transaction. See Transaction.create."""
        return self._require_transaction().create(cls, values, **fields)

    def update(self, target: "Entity | str", mutator: Callable[[Entity], Any]) -> Any:
        """Mutate an entity in the open write transaction. See Transaction.update."""
        return self._require_transaction().update(target, mutator)

    def delete(self, target: "Entity | str") -> None:
        """Delete an entity in the open write transaction. See Transaction.delete."""
        self._require_transaction().delete(target)

    def _commit(self, txn: Transaction) -> None:
        txn._require_writable()
        if txn is not self._transaction:
            raise InvalidTransactionState("Transaction does not belong to the open write")

        changes = txn.changes
        generation = self._generation
        try:
            self._check_conflict(txn)
            if not changes.is_empty:
                for entity in txn._touched.values():
                    freeze(entity, self)
                generation += 1
                if self._config.path is not None:
                    self._write_file(self._config.path, txn._objects, generation)
        except Exception:
            self._finish(txn, TransactionState.ROLLED_BACK)
            logger.warning("transaction_rolled_back", reason="commit_failed")
            raise

        if not changes.is_empty:
            self._objects = txn._objects
            self._type_of = txn._type_of
            self._version += 1
            self._generation = generation
        self._finish(txn, TransactionState.COMMITTED)
        logger.debug("transaction_committed", version=self._version, **changes.counts())

        if not changes.is_empty:
            self._notifier.notify(changes)

    def _check_conflict(self, txn: Transaction) -> None:
        if txn.base_version != self._version:
            raise TransactionConflict(
                f"Store changed since the transaction began "
                f"(version {txn.base_version} -> {self._version})"
            )
        path = self._config.path
        if path is not None and path.exists():
            on_disk = self._read_file(path)["generation"]
            if on_disk != self._generation:
                raise TransactionConflict(
                    f"Store file {path} was written elsewhere "
                    f"(generation {self._generation} -> {on_disk}); call refresh()"
                )

    def _rollback(self, txn: Transaction) -> None:
        self._finish(txn, TransactionState.ROLLED_BACK)
        logger.debug("transaction_rolled_back", base_version=txn.base_version)

    def _finish(self, txn: Transaction, state: TransactionState) -> None:
        txn.state = state
        if self._transaction is txn:
            self._transaction = None
            self._write_lock.release()

    # ---- persistence ----

    def refresh(self) -> bool:
        """Reload the store file if another writer changed it.

        Live results observers are notified about the differences. An open
        transaction will fail to commit afterwards with TransactionConflict.

        Returns:
            True if newer state was loaded.
        """
        self._check_open()
        path = self._config.path
        if path is None or not path.exists():
            return False
        data = self._read_file(path)
        generation = data["generation"]
        if generation == self._generation:
            return False

        objects, type_of = self._parse(data)
        changes = self._diff_states(self._objects, objects)
        self._objects, self._type_of = objects, type_of
        self._generation = generation
        self._version += 1
        logger.info("store_refreshed", generation=generation, **changes.counts())
        if not changes.is_empty:
            self._notifier.notify(changes)
        return True

    @staticmethod
    def _diff_states(
        old: dict[str, dict[str, Entity]], new: dict[str, dict[str, Entity]]
    ) -> ChangeSet:
        changes = ChangeSet()
        for type_name, new_items in new.items():
            old_items = old.get(type_name, {})
            for entity_id, entity in new_items.items():
                previous = old_items.get(entity_id)
                if previous is None:
                    changes.record_insert(type_name, entity_id)
                elif previous.to_dict() != entity.to_dict():
                    changes.record_modify(type_name, entity_id)
            for entity_id in old_items:
                if entity_id not in new_items:
                    changes.record_delete(type_name, entity_id)
        return changes

    @staticmethod
    def _read_file(path: Path) -> dict[str, Any]:
        try:
            data = json.loads(path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise StoreFileError(f"Cannot read store file {path}: {e}") from e
        if not isinstance(data, dict) or not isinstance(data.get("objects", {}), dict):
            raise StoreFileError(f"Store file {path} is not a valid store document")
        if data.get("format", FILE_FORMAT) != FILE_FORMAT:
            raise StoreFileError(f"Unsupported store file format {data.get('format')!r}")
        generation = data.setdefault("generation", 0)
        if not isinstance(generation, int) or isinstance(generation, bool) or generation < 0:
            raise StoreFileError(f"Store file {path} has an invalid generation {generation!r}")
        return data

    @staticmethod
    def _write_file(path: Path, objects: dict[str, dict[str, Entity]], generation: int) -> None:
        document = {
            "format": FILE_FORMAT,
            "generation": generation,
            "objects": {
                type_name: [entity.to_dict() for entity in items.values()]
                for type_name, items in objects.items()
            },
        }
        try:
            atomic_write_json(path, document)
        except OSError as e:
            raise StoreFileError(f"Cannot write store file {path}: {e}") from e

    def _parse(
        self, data: dict[str, Any]
    ) -> tuple[dict[str, dict[str, Entity]], dict[str, str]]:
        """Build frozen committed state from a store document."""
        objects: dict[str, dict[str, Entity]] = {name: {} for name in self.schema.type_names}
        type_of: dict[str, str] = {}
        try:
            for type_name, records in data.get("objects", {}).items():
                cls = self.schema.resolve(type_name)
                if not isinstance(records, list):
                    raise StoreFileError(f"{type_name} records must be a list")
                for record in records:
                    if not isinstance(record, dict):
                        raise StoreFileError(f"{type_name} record is not an object: {record!r}")
                    entity = cls.from_dict(record)
                    if not isinstance(entity.id, str) or not entity.id:
                        raise StoreFileError(f"{type_name} record without a valid id")
                    if entity.id in type_of:
                        raise StoreFileError(f"Duplicate primary key '{entity.id}'")
                    objects[type_name][entity.id] = entity
                    type_of[entity.id] = type_name

            def exists(type_name: str, entity_id: str) -> bool:
                return type_of.get(entity_id) == type_name

            for items in objects.values():
                for entity in items.values():
                    self.schema.validate(entity, exists)
                    freeze(entity, self)
        except StoreFileError:
            raise
        except (SchemaError, NotFound, ValidationError, TypeError, ValueError, KeyError) as e:
            raise StoreFileError(f"Invalid store document: {e}") from e
        return objects, type_of

    def __repr__(self) -> str:
        state = "closed" if self._closed else f"version={self._version}"
        return f"<ObjectStore {self.location} {state}>"
