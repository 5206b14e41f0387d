"""Reactive, transactional object store.

Provides:
- ObjectStore: persisted entity storage with a single write transaction
- Results: live, filtered views that notify observers after each commit
- F: query expressions for Results.filter()
- Task / Category: the entity schema, with computed back-references

Example:
    >>> store = ObjectStore(StoreConfiguration(in_memory_identifier="demo"))
    >>> active = store.all(Task).filter(F("is_completed") == False)
    >>> with store.write():
    ...     store.create(Task, title="Buy milk")
    >>> len(active)
    1
"""

from livetodo.store.schema import (
    Category,
    Entity,
    LinkingObjects,
    Schema,
    Task,
    link,
)
from livetodo.store.query import F, Predicate
from livetodo.store.results import ChangeSet, CollectionChange, NotificationToken, Results
from livetodo.store.configuration import StoreConfiguration
from livetodo.store.transaction import Transaction, TransactionState
from livetodo.store.backlinks import BacklinkResolver
from livetodo.store.object_store import ObjectStore

__all__ = [
    "BacklinkResolver",
    "Category",
    "ChangeSet",
    "CollectionChange",
    "Entity",
    "F",
    "LinkingObjects",
    "NotificationToken",
    "ObjectStore",
    "Predicate",
    "Results",
    "Schema",
    "StoreConfiguration",
    "Task",
    "Transaction",
    "TransactionState",
    "link",
]
