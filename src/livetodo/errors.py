"""Typed failures raised by the object store and the task list service.

Every expected failure mode of the core maps to one of these classes so
callers can decide whether to surface or ignore it. The core never
swallows a failed mutation.
"""


class StoreError(Exception):
    """Base class for all object store failures."""

    pass


class NotFound(StoreError):
    """Raised when an operation targets an id that does not exist."""

    def __init__(self, entity_id: str, type_name: str | None = None) -> None:
        self.entity_id = entity_id
        self.type_name = type_name
        label = type_name or "Object"
        super().__init__(f"{label} with id '{entity_id}' not found")


class InvalidTransactionState(StoreError):
    """Raised when a write happens outside a write transaction.

    Also raised when a transaction is used after it finished, or when a
    thread other than the owner of the open transaction tries to write.
    """

    pass


class TransactionAlreadyOpen(InvalidTransactionState):
    """Raised by begin_write() while another write transaction is open."""

    pass


class TransactionConflict(StoreError):
    """Raised at commit time when the committed state moved underneath."""

    pass


class ValidationError(StoreError):
    """Raised when field values do not fit the schema or the service rules."""

    pass


class DuplicatePrimaryKey(ValidationError):
    """Raised when an explicit id is already taken."""

    def __init__(self, entity_id: str) -> None:
        self.entity_id = entity_id
        super().__init__(f"Primary key '{entity_id}' already exists")


class SchemaError(StoreError):
    """Raised for unknown entity types, fields or relationships."""

    pass


class StoreClosed(StoreError):
    """Raised when a closed store is used."""

    pass


class StoreFileError(StoreError):
    """Raised when the store file cannot be read or parsed."""

    pass
