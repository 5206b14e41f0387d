"""Query expressions for filtering live results.

A predicate is any callable taking an entity and returning something
truthy. The expressions here are callables too, but they also know which
fields they read, so Results.filter() can reject unknown field names up
front, and they print readably in logs.

Example:
    >>> active = store.all(Task).filter(F("is_completed") == False)
    >>> same = store.all(Task).filter(~F("is_completed"))
    >>> milk = store.all(Task).filter(F("title").contains("milk", case_sensitive=False))
"""

import operator
from typing import Any, Callable, Iterable

_SYMBOLS = {
    operator.eq: "==",
    operator.ne: "!=",
    operator.lt: "<",
    operator.le: "<=",
    operator.gt: ">",
    operator.ge: ">=",
}


class Predicate:
    """Base class for composable query expressions."""

    def __call__(self, entity: Any) -> bool:
        raise NotImplementedError

    def fields(self) -> set[str]:
        """Names of the entity fields this expression reads."""
        return set()

    def is_opaque(self) -> bool:
        """True if a plain function is involved; it may read anything reachable."""
        return False

    def __and__(self, other: "Predicate | Callable[[Any], Any]") -> "Predicate":
        return And(self, as_predicate(other))

    def __or__(self, other: "Predicate | Callable[[Any], Any]") -> "Predicate":
        return Or(self, as_predicate(other))

    def __invert__(self) -> "Predicate":
        return Not(self)


class F(Predicate):
    """Reference to an entity field.

    Used on its own it tests the field's truthiness; comparison operators
    and the helper methods build Comparison expressions.
    """

    def __init__(self, name: str) -> None:
        self.name = name

    def __call__(self, entity: Any) -> bool:
        return bool(getattr(entity, self.name))

    def fields(self) -> set[str]:
        return {self.name}

    def _compare(self, op: Callable[[Any, Any], Any], value: Any) -> "Comparison":
        return Comparison(self.name, op, value, _SYMBOLS[op])

    def __eq__(self, value: Any) -> "Comparison":  # type: ignore[override]
        return self._compare(operator.eq, value)

    def __ne__(self, value: Any) -> "Comparison":  # type: ignore[override]
        return self._compare(operator.ne, value)

    def __lt__(self, value: Any) -> "Comparison":
        return self._compare(operator.lt, value)

    def __le__(self, value: Any) -> "Comparison":
        return self._compare(operator.le, value)

    def __gt__(self, value: Any) -> "Comparison":
        return self._compare(operator.gt, value)

    def __ge__(self, value: Any) -> "Comparison":
        return self._compare(operator.ge, value)

    __hash__ = None  # type: ignore[assignment]

    def contains(self, value: Any, case_sensitive: bool = True) -> "Comparison":
        """Substring match for text fields, membership for relationships."""
        if case_sensitive:
            return Comparison(self.name, _contains, value, "contains")
        return Comparison(self.name, _icontains, value, "contains[c]")

    def is_in(self, values: Iterable[Any]) -> "Comparison":
        return Comparison(self.name, _is_in, tuple(values), "in")

    def __repr__(self) -> str:
        return self.name


class Comparison(Predicate):
    """`field <op> value` evaluated against the entity's current value."""

    def __init__(self, name: str, op: Callable[[Any, Any], Any], value: Any, symbol: str) -> None:
        self.name = name
        self.op = op
        self.value = value
        self.symbol = symbol

    def __call__(self, entity: Any) -> bool:
        return bool(self.op(getattr(entity, self.name), self.value))

    def fields(self) -> set[str]:
        return {self.name}

    def __repr__(self) -> str:
        return f"{self.name} {self.symbol} {self.value!r}"


class And(Predicate):
    def __init__(self, left: Predicate, right: Predicate) -> None:
        self.left = left
        self.right = right

    def __call__(self, entity: Any) -> bool:
        return self.left(entity) and self.right(entity)

    def fields(self) -> set[str]:
        return self.left.fields() | self.right.fields()

    def is_opaque(self) -> bool:
        return self.left.is_opaque() or self.right.is_opaque()

    def __repr__(self) -> str:
        return f"({self.left!r} AND {self.right!r})"


class Or(Predicate):
    def __init__(self, left: Predicate, right: Predicate) -> None:
        self.left = left
        self.right = right

    def __call__(self, entity: Any) -> bool:
        return self.left(entity) or self.right(entity)

    def fields(self) -> set[str]:
        return self.left.fields() | self.right.fields()

    def is_opaque(self) -> bool:
        return self.left.is_opaque() or self.right.is_opaque()

    def __repr__(self) -> str:
        return f"({self.left!r} OR {self.right!r})"


class Not(Predicate):
    def __init__(self, inner: Predicate) -> None:
        self.inner = inner

    def __call__(self, entity: Any) -> bool:
        return not self.inner(entity)

    def fields(self) -> set[str]:
        return self.inner.fields()

    def is_opaque(self) -> bool:
        return self.inner.is_opaque()

    def __repr__(self) -> str:
        return f"NOT {self.inner!r}"


class _Callable(Predicate):
    """Wraps a plain function so it composes with expressions."""

    def __init__(self, fn: Callable[[Any], Any]) -> None:
        self.fn = fn

    def __call__(self, entity: Any) -> bool:
        return bool(self.fn(entity))

    def is_opaque(self) -> bool:
        return True

    def __repr__(self) -> str:
        return getattr(self.fn, "__name__", repr(self.fn))


def as_predicate(predicate: "Predicate | Callable[[Any], Any]") -> Predicate:
    """Normalize a callable or expression into a Predicate."""
    if isinstance(predicate, Predicate):
        return predicate
    if callable(predicate):
        return _Callable(predicate)
    raise TypeError(f"Predicate must be callable, got {type(predicate).__name__}")


def _contains(field_value: Any, value: Any) -> bool:
    return value in field_value


def _icontains(field_value: Any, value: Any) -> bool:
    return str(value).lower() in str(field_value).lower()


def _is_in(field_value: Any, values: tuple) -> bool:
    return field_value in values
