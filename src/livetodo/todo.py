"""Task list service: the intents a UI issues and the views it renders.

Each intent opens one write transaction, performs one mutation and
commits. Failures surface as typed errors and leave the store unchanged,
so a UI can show them or ignore them.

Example:
    >>> todos = TodoList(store)
    >>> milk = todos.add_task("Buy milk")
    >>> [t.title for t in todos.active_tasks]
    ['Buy milk']
    >>> milk = todos.toggle_completion(milk.id)
    >>> [t.title for t in todos.completed_tasks]
    ['Buy milk']
"""

from typing import Iterable

from livetodo.errors import ValidationError
from livetodo.logging import Loggers
from livetodo.store import F, ObjectStore, Results, Task

logger = Loggers.todo()


class TodoList:
    """Add, toggle and delete tasks; expose active and completed live views."""

    def __init__(self, store: ObjectStore) -> None:
        self._store = store
        self.active_tasks: Results = store.all(Task).filter(F("is_completed") == False)  # noqa: E712
        self.completed_tasks: Results = store.all(Task).filter(F("is_completed") == True)  # noqa: E712

    @property
    def store(self) -> ObjectStore:
        return self._store

    def add_task(self, title: str) -> Task:
        """Create an active task.

        Raises:
            ValidationError: The title is not a string, or is empty or only whitespace.
        """
        _check_title(title)
        with self._store.write():
            task = self._store.create(Task, title=title)
        logger.debug("task_added", task_id=task.id)
        return self._store.get(Task, task.id)

    def toggle_completion(self, task_id: str) -> Task:
        """Flip a task between the active and completed views.

        Raises:
            NotFound: No task with that id.
        """
        with self._store.write() as txn:
            txn.get(Task, task_id)
            txn.update(task_id, _toggle)
        task = self._store.get(Task, task_id)
        logger.debug("task_toggled", task_id=task_id, is_completed=task.is_completed)
        return task

    def rename_task(self, task_id: str, title: str) -> Task:
        _check_title(title)
        with self._store.write() as txn:
            txn.get(Task, task_id)
            txn.update(task_id, lambda task: setattr(task, "title", title))
        return self._store.get(Task, task_id)

    def delete_task(self, task_id: str) -> None:
        """Delete a task.

        Raises:
            NotFound: No task with that id (for example a second delete).
        """
        with self._store.write() as txn:
            txn.get(Task, task_id)
            txn.delete(task_id)
        logger.debug("task_deleted", task_id=task_id)

    def delete_at(self, view: Results, indices: Iterable[int]) -> list[str]:
        """Delete the tasks shown at `indices` of `view`.

        Indices are resolved against the view's current contents right
        before deleting, then everything is deleted by id in a single
        transaction, so earlier deletes cannot shift later indices.

        Returns:
            Ids of the deleted tasks.

        Raises:
            IndexError: An index is out of range; nothing is deleted.
        """
        targets = _resolve(view, indices)
        if not targets:
            return []
        with self._store.write():
            for task_id in targets:
                self._store.delete(task_id)
        logger.debug("tasks_deleted", count=len(targets))
        return targets

    def toggle_at(self, view: Results, indices: Iterable[int]) -> list[str]:
        """Toggle the tasks shown at `indices` of `view` in one transaction.

        A position given twice is toggled once.

        Raises:
            IndexError: An index is out of range; nothing is toggled.
        """
        targets = _resolve(view, indices)
        if not targets:
            return []
        with self._store.write() as txn:
            for task_id in targets:
                txn.update(task_id, _toggle)
        logger.debug("tasks_toggled", count=len(targets))
        return targets

    def task_at(self, view: Results, index: int) -> Task:
        """The task currently shown at `index` of `view`."""
        items = view.snapshot()
        if not 0 <= index < len(items):
            raise IndexError(f"No task at position {index} (view has {len(items)})")
        return items[index]


def _toggle(task: Task) -> None:
    task.is_completed = not task.is_completed


def _check_title(title: object) -> None:
    if not isinstance(title, str):
        raise ValidationError(f"Task title must be text, got {type(title).__name__}")
    if not title.strip():
        raise ValidationError("Task title must not be empty")


def _resolve(view: Results, indices: Iterable[int]) -> list[str]:
    """Ids at `indices` of the view as it is now, first occurrence only."""
    current = view.ids()
    targets: list[str] = []
    for index in indices:
        if not 0 <= index < len(current):
            raise IndexError(f"No task at position {index} (view has {len(current)})")
        if current[index] not in targets:
            targets.append(current[index])
    return targets
