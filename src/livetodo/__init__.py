"""livetodo - a local task tracker built on a reactive object store.

The package provides:

- A transactional object store with live, auto-updating results
- Task and Category entities with computed back-references
- TodoList, the add/toggle/delete service a UI talks to
- A terminal UI that re-renders on change notifications

Example:
    >>> from livetodo import ObjectStore, StoreConfiguration, TodoList
    >>> store = ObjectStore(StoreConfiguration(in_memory_identifier="demo"))
    >>> todos = TodoList(store)
    >>> todos.add_task("Buy milk").is_completed
    False
"""

from livetodo.config import (
    BaseSettings,
    SettingsContext,
    get_settings,
    reload_settings,
    set_settings,
)
from livetodo.errors import (
    DuplicatePrimaryKey,
    InvalidTransactionState,
    NotFound,
    SchemaError,
    StoreClosed,
    StoreError,
    StoreFileError,
    TransactionAlreadyOpen,
    TransactionConflict,
    ValidationError,
)
from livetodo.store import (
    Category,
    CollectionChange,
    F,
    ObjectStore,
    Results,
    StoreConfiguration,
    Task,
    Transaction,
    TransactionState,
)
from livetodo.todo import TodoList

__all__ = [
    # Settings
    "BaseSettings",
    "SettingsContext",
    "get_settings",
    "reload_settings",
    "set_settings",
    # Store
    "Category",
    "CollectionChange",
    "F",
    "ObjectStore",
    "Results",
    "StoreConfiguration",
    "Task",
    "Transaction",
    "TransactionState",
    "TodoList",
    # Errors
    "DuplicatePrimaryKey",
    "InvalidTransactionState",
    "NotFound",
    "SchemaError",
    "StoreClosed",
    "StoreError",
    "StoreFileError",
    "TransactionAlreadyOpen",
    "TransactionConflict",
    "ValidationError",
]

__version__ = "0.1.0"
