"""Snapshots — plain, non-reactive copies of store state.

Snapshot is the read-only mapping handed to subscribers. The ``state``
argument is bound to its store: reading a key from it registers the key
as a dependency of the running subscriber, exactly like reading the store
itself. The ``previous`` argument is unbound and tracks nothing.

Computed entries are held as their definitions and only run when read.
An unbound snapshot resolves them against itself, so ``previous.total``
is computed from the previous values.

to_json() produces the deep plain copy used for transport and storage:
views unwrapped, computed values resolved at every depth, cycles preserved
as shared references instead of recursing forever.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Callable, Iterator

from stashx._callables import accepts_positional
from stashx.computed import is_computed, resolve
from stashx.proxy import unwrap

if TYPE_CHECKING:
    from stashx.store import Store

SnapshotReader = Callable[[str, dict], Any]


class Snapshot(Mapping):
    """Read-only view of state at one point in time.

    Keys are reachable as items or attributes. On attribute access data
    comes first: a key named ``items`` or ``get`` hides the mapping method
    of the same name. Missing attributes read as None, matching the store.
    """

    __slots__ = ("_data", "_reader")

    def __init__(self, data: dict[str, Any], reader: SnapshotReader | None = None) -> None:
        object.__setattr__(self, "_data", data)
        object.__setattr__(self, "_reader", reader)

    def __getattribute__(self, name: str) -> Any:
        if not name.startswith("_") and name in object.__getattribute__(self, "_data"):
            return type(self).__getitem__(self, name)
        return object.__getattribute__(self, name)

    def __getitem__(self, key: str) -> Any:
        if self._reader is not None:
            return self._reader(key, self._data)
        value = self._data[key]
        if is_computed(value):
            return resolve(value, self)
        return value

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Snapshot):
            other = other._data
        if not isinstance(other, Mapping):
            return NotImplemented
        return self._data == dict(other)

    __hash__ = None  # type: ignore[assignment]

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError:
            return None

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Snapshot is read-only")

    def to_dict(self) -> dict[str, Any]:
        """Plain dict copy with computed values resolved."""
        return {key: self[key] for key in self._data}

    def _copy(self) -> dict[str, Any]:
        return dict(self._data)

    def __repr__(self) -> str:
        return f"Snapshot({self._data!r})"


def to_json(source: Any) -> Any:
    """Deep, computed-resolved, non-reactive copy of a store or plain state.

    Usage:
        s = store({"items": [1, 2], "total": computed(lambda st: sum(st.items))})
        to_json(s)  # {"items": [1, 2], "total": 3}
    """
    context = source if _is_store(source) else None
    state = source.get_state() if context is not None else source
    return _plain(state, {}, context)


def _is_store(value: Any) -> bool:
    return callable(getattr(type(value), "get_state", None))


def _plain(value: Any, memo: dict[int, tuple[Any, Any]], context: Store | None) -> Any:
    value = unwrap(value)

    if is_computed(value):
        if context is not None:
            value = resolve(value, context)
        elif accepts_positional(value, 0):
            value = value()
        else:
            return None
        return _plain(value, memo, context)

    if isinstance(value, Snapshot):
        value = Snapshot.to_dict(value)

    if not isinstance(value, (Mapping, list, tuple)):
        return value

    # Entries keep the source alive so its id() cannot be recycled mid-copy.
    seen = memo.get(id(value))
    if seen is not None and seen[0] is value:
        return seen[1]

    if isinstance(value, Mapping):
        result: dict[Any, Any] = {}
        memo[id(value)] = (value, result)
        for key, item in value.items():
            result[key] = _plain(item, memo, context)
        return result

    items: list[Any] = []
    memo[id(value)] = (value, items)
    for item in value:
        items.append(_plain(item, memo, context))
    return items
