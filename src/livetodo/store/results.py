"""Live results and change notifications.

Results is a lazily evaluated, auto-updating view over one entity type
of an ObjectStore. It always reflects the last committed state: the
materialized sequence is cached and only recomputed after the store's
committed version moves.

Observers registered with Results.observe() get one callback per
committed transaction that changed the view, describing what changed as
index sets against the previous and the new contents.

Example:
    >>> active = store.all(Task).filter(F("is_completed") == False)
    >>> token = active.observe(lambda results, change: render(results))
    >>> with store.write():
    ...     store.create(Task, title="Buy milk")   # render() runs once after commit
    >>> token.invalidate()
"""

import difflib
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Iterator, overload

from livetodo.errors import SchemaError
from livetodo.logging import Loggers
from livetodo.store.query import Predicate, as_predicate
from livetodo.store.schema import Entity, relationship_fields, value_fields

if TYPE_CHECKING:
    from livetodo.store.object_store import ObjectStore

logger = Loggers.query()


@dataclass(frozen=True)
class CollectionChange:
    """What changed in a view during one committed transaction.

    deletions index the previous contents; insertions and modifications
    index the new contents.
    """

    deletions: tuple[int, ...] = ()
    insertions: tuple[int, ...] = ()
    modifications: tuple[int, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.deletions or self.insertions or self.modifications)


@dataclass
class ChangeSet:
    """Ids touched by one committed transaction, grouped by type name."""

    insertions: dict[str, list[str]] = field(default_factory=dict)
    modifications: dict[str, set[str]] = field(default_factory=dict)
    deletions: dict[str, list[str]] = field(default_factory=dict)

    def record_insert(self, type_name: str, entity_id: str) -> None:
        self.insertions.setdefault(type_name, []).append(entity_id)

    def record_modify(self, type_name: str, entity_id: str) -> None:
        if entity_id in self.insertions.get(type_name, ()):
            return
        self.modifications.setdefault(type_name, set()).add(entity_id)

    def record_delete(self, type_name: str, entity_id: str) -> None:
        inserted = self.insertions.get(type_name, [])
        self.modifications.get(type_name, set()).discard(entity_id)
        if entity_id in inserted:
            inserted.remove(entity_id)
            return
        self.deletions.setdefault(type_name, []).append(entity_id)

    @property
    def types(self) -> set[str]:
        touched = set()
        for group in (self.insertions, self.modifications, self.deletions):
            touched.update(name for name, ids in group.items() if ids)
        return touched

    @property
    def is_empty(self) -> bool:
        return not self.types

    def counts(self) -> dict[str, int]:
        return {
            "inserted": sum(len(v) for v in self.insertions.values()),
            "modified": sum(len(v) for v in self.modifications.values()),
            "deleted": sum(len(v) for v in self.deletions.values()),
        }


class NotificationToken:
    """Handle returned by observe(); invalidate() stops delivery."""

    def __init__(self, notifier: "Notifier") -> None:
        self._notifier = notifier
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def invalidate(self) -> None:
        if self._active:
            self._active = False
            self._notifier.remove(self)


@dataclass
class _Subscription:
    token: NotificationToken
    callback: Callable[..., Any]
    results: "Results | None" = None
    last_ids: list[str] = field(default_factory=list)


class Notifier:
    """Delivers post-commit notifications for one store.

    Subscriptions are served in registration order on the committing
    thread, after the new state is visible to readers.
    """

    def __init__(self) -> None:
        self._subscriptions: list[_Subscription] = []
        self._lock = threading.Lock()

    def add_results_observer(
        self, results: "Results", callback: Callable[["Results", CollectionChange], Any]
    ) -> NotificationToken:
        token = NotificationToken(self)
        sub = _Subscription(token, callback, results, results.ids())
        with self._lock:
            self._subscriptions.append(sub)
        return token

    def add_store_observer(self, callback: Callable[[ChangeSet], Any]) -> NotificationToken:
        token = NotificationToken(self)
        with self._lock:
            self._subscriptions.append(_Subscription(token, callback))
        return token

    def remove(self, token: NotificationToken) -> None:
        with self._lock:
            self._subscriptions = [s for s in self._subscriptions if s.token is not token]

    def clear(self) -> None:
        with self._lock:
            for sub in self._subscriptions:
                sub.token._active = False
            self._subscriptions = []

    def __len__(self) -> int:
        return len(self._subscriptions)

    def notify(self, changes: ChangeSet) -> None:
        """Deliver one batched notification per affected subscription."""
        with self._lock:
            subscriptions = list(self._subscriptions)
        touched = changes.types
        for sub in subscriptions:
            if not sub.token.active:
                continue
            if sub.results is None:
                self._deliver(sub, changes)
                continue
            if sub.results.type_name not in touched and not sub.results.reads_other_types:
                continue
            new_ids = sub.results.ids()
            change = diff_ids(
                sub.last_ids,
                new_ids,
                changes.modifications.get(sub.results.type_name, set()),
            )
            sub.last_ids = new_ids
            if not change.is_empty:
                self._deliver(sub, sub.results, change)

    def _deliver(self, sub: _Subscription, *args: Any) -> None:
        try:
            sub.callback(*args)
        except Exception:
            logger.exception("notification_callback_failed", callback=repr(sub.callback))


def diff_ids(old: list[str], new: list[str], modified: set[str]) -> CollectionChange:
    """Describe how `old` became `new` as deletion/insertion/modification indices."""
    deletions: list[int] = []
    insertions: list[int] = []
    matcher = difflib.SequenceMatcher(a=old, b=new, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag in ("delete", "replace"):
            deletions.extend(range(i1, i2))
        if tag in ("insert", "replace"):
            insertions.extend(range(j1, j2))
    inserted = set(insertions)
    modifications = [
        index
        for index, entity_id in enumerate(new)
        if entity_id in modified and index not in inserted
    ]
    return CollectionChange(tuple(deletions), tuple(insertions), tuple(modifications))


class Results(Sequence):
    """Live, ordered view over the committed entities of one type.

    Results are cheap to derive: filter() and sorted() return new views
    sharing the store. Contents are evaluated on access and cached until
    the next commit. Without sorted(), order is store insertion order.
    """

    def __init__(
        self,
        store: "ObjectStore",
        cls: type[Entity],
        predicates: tuple[Predicate, ...] = (),
        sort_key: Callable[[Entity], Any] | None = None,
        reverse: bool = False,
        opaque_key: bool = False,
    ) -> None:
        self._store = store
        self._cls = cls
        self._predicates = predicates
        self._sort_key = sort_key
        self._reverse = reverse
        self._opaque_key = opaque_key
        self._cache: list[Entity] = []
        self._cache_version = -1

    @property
    def type_name(self) -> str:
        return self._cls.__type_name__

    @property
    def entity_class(self) -> type[Entity]:
        return self._cls

    @property
    def store(self) -> "ObjectStore":
        return self._store

    @property
    def reads_other_types(self) -> bool:
        """Whether a plain function filters or orders the view.

        Such a function can follow links or back-references, so commits that
        only touch other types may still change the view.
        """
        return self._opaque_key or any(pred.is_opaque() for pred in self._predicates)

    def filter(self, predicate: Predicate | Callable[[Entity], Any]) -> "Results":
        """Return a view of the elements for which `predicate` holds."""
        pred = as_predicate(predicate)
        unknown = pred.fields() - _field_names(self._cls)
        if unknown:
            raise SchemaError(
                f"{self.type_name} has no field(s) {', '.join(sorted(unknown))}"
            )
        return Results(
            self._store,
            self._cls,
            self._predicates + (pred,),
            self._sort_key,
            self._reverse,
            self._opaque_key,
        )

    def sorted(self, key: str | Callable[[Entity], Any], reverse: bool = False) -> "Results":
        """Return a view ordered by a field name or key function.

        The sort is stable, so ties keep insertion order.
        """
        opaque = not isinstance(key, str)
        if isinstance(key, str):
            if key not in _field_names(self._cls):
                raise SchemaError(f"{self.type_name} has no field {key}")
            name = key
            key = lambda entity: getattr(entity, name)  # noqa: E731
        return Results(self._store, self._cls, self._predicates, key, reverse, opaque)

    def matches(self, entity: Entity) -> bool:
        return all(pred(entity) for pred in self._predicates)

    def _evaluate(self) -> list[Entity]:
        version = self._store.version
        if version != self._cache_version:
            items = [e for e in self._store._committed_objects(self.type_name) if self.matches(e)]
            if self._sort_key is not None:
                items.sort(key=self._sort_key, reverse=self._reverse)
            self._cache = items
            self._cache_version = version
        return self._cache

    def __len__(self) -> int:
        return len(self._evaluate())

    @overload
    def __getitem__(self, index: int) -> Entity: ...

    @overload
    def __getitem__(self, index: slice) -> list[Entity]: ...

    def __getitem__(self, index: int | slice) -> Entity | list[Entity]:
        return self._evaluate()[index]

    def __iter__(self) -> Iterator[Entity]:
        return iter(list(self._evaluate()))

    def __contains__(self, item: object) -> bool:
        entity_id = item.id if isinstance(item, Entity) else item
        return any(e.id == entity_id for e in self._evaluate())

    def ids(self) -> list[str]:
        return [e.id for e in self._evaluate()]

    def first(self) -> Entity | None:
        items = self._evaluate()
        return items[0] if items else None

    def snapshot(self) -> tuple[Entity, ...]:
        """The current contents as a plain tuple that will not update."""
        return tuple(self._evaluate())

    def observe(self, callback: Callable[["Results", CollectionChange], Any]) -> NotificationToken:
        """Call `callback(results, change)` after each commit that changes this view."""
        return self._store._notifier.add_results_observer(self, callback)

    def __repr__(self) -> str:
        preds = " AND ".join(repr(p) for p in self._predicates) or "TRUEPREDICATE"
        return f"<Results {self.type_name} where {preds}>"


def _field_names(cls: type[Entity]) -> set[str]:
    return set(value_fields(cls)) | set(relationship_fields(cls))
