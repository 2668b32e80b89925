"""Reactive views — nested dicts and lists that report their own mutations.

Reading a dict or list out of a store hands back a view over the raw
object instead of the object itself. Views behave like the mapping or
sequence they wrap. Any mutation goes straight to the raw object, then
fires the view's parent-notify callback exactly once. The parent answers
by storing a shallow clone of the mutated object under the same key,
which is the only way a nested change reaches the top-level key. Writing
the clone marks that key dirty.

Views are created through a ViewCache keyed by raw identity: one live view
per raw object per store, including self-referencing structures.

Only the top-level key is tracked. Reading ``s.todos[0]`` depends on
``todos``; it does not depend on the index.
"""

from __future__ import annotations

import copy
import functools
import logging
import weakref
from collections.abc import MutableMapping, MutableSequence
from typing import TYPE_CHECKING, Any, Callable, Iterator

from stashx.computed import is_computed, resolve
from stashx.signal import MISSING, same_value

if TYPE_CHECKING:
    from stashx.store import Store

logger = logging.getLogger("stashx.proxy")

NotifyParent = Callable[[Any], None]


def unwrap(value: object) -> object:
    """Return the raw object behind a view; anything else unchanged."""
    if isinstance(value, ReactiveView):
        return value._raw
    return value


def is_view(value: object) -> bool:
    return isinstance(value, ReactiveView)


def shallow_clone(raw: object) -> object:
    """Copy a raw composite one level deep, keeping its concrete type."""
    return copy.copy(raw)


class ReactiveView:
    """Shared plumbing for ReactiveDict and ReactiveList."""

    __slots__ = ("_raw", "_store", "_notify_parent", "__weakref__")

    def __init__(self, raw: Any, store: Store, notify_parent: NotifyParent) -> None:
        object.__setattr__(self, "_raw", raw)
        object.__setattr__(self, "_store", store)
        object.__setattr__(self, "_notify_parent", notify_parent)

    @property
    def __stashx_raw__(self) -> Any:
        return self._raw

    def _child(self, key: Any, value: Any) -> Any:
        """Resolve a computed child or wrap a composite one."""
        if is_computed(value):
            return resolve(value, self._store)
        return self._store._views.wrap(value, functools.partial(self._child_changed, key))

    def _child_changed(self, key: Any, child_raw: Any) -> None:
        raw = self._raw
        present = -len(raw) <= key < len(raw) if isinstance(raw, list) else key in raw
        if not present or raw[key] is not child_raw:
            logger.warning("Nested slot %r no longer holds the mutated object; change dropped", key)
            return
        raw[key] = shallow_clone(raw[key])
        self._changed()

    def _changed(self) -> None:
        self._notify_parent(self._raw)

    def __eq__(self, other: object) -> bool:
        return self._raw == unwrap(other)

    __hash__ = None  # type: ignore[assignment]


class ReactiveDict(ReactiveView, MutableMapping):
    """Mutable-mapping view over a raw dict.

    String keys are also reachable as attributes, so ``s.user.name`` works
    like ``s["user"]["name"]``. Mapping methods win over keys of the same
    name: ``view.items`` is always the method.
    """

    __slots__ = ()

    # --- Read operations ---

    def __getitem__(self, key: Any) -> Any:
        return self._child(key, self._raw[key])

    def get(self, key: Any, default: Any = None) -> Any:
        if key not in self._raw:
            return default
        return self[key]

    def __iter__(self) -> Iterator[Any]:
        return iter(self._raw)

    def __len__(self) -> int:
        return len(self._raw)

    def __contains__(self, key: object) -> bool:
        return key in self._raw

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name) from None

    # --- Write operations (notify parent once) ---

    def __setitem__(self, key: Any, value: Any) -> None:
        raw_value = unwrap(value)
        old = self._raw.get(key, MISSING)
        self._raw[key] = raw_value
        if not same_value(old, raw_value):
            self._changed()

    def __delitem__(self, key: Any) -> None:
        del self._raw[key]
        self._changed()

    def __setattr__(self, name: str, value: Any) -> None:
        self[name] = value

    def __delattr__(self, name: str) -> None:
        try:
            del self[name]
        except KeyError:
            raise AttributeError(name) from None

    def pop(self, key: Any, *default: Any) -> Any:
        if key not in self._raw:
            if default:
                return default[0]
            raise KeyError(key)
        value = self._raw.pop(key)
        self._changed()
        return value

    def popitem(self) -> tuple[Any, Any]:
        item = self._raw.popitem()
        self._changed()
        return item

    def clear(self) -> None:
        if self._raw:
            self._raw.clear()
            self._changed()

    def update(self, other: Any = (), /, **kwargs: Any) -> None:
        changed = False
        items = other.items() if hasattr(other, "items") else other
        for key, value in list(items) + list(kwargs.items()):
            raw_value = unwrap(value)
            if not same_value(self._raw.get(key, MISSING), raw_value):
                changed = True
            self._raw[key] = raw_value
        if changed:
            self._changed()

    def setdefault(self, key: Any, default: Any = None) -> Any:
        if key not in self._raw:
            self._raw[key] = unwrap(default)
            self._changed()
        return self[key]

    def __repr__(self) -> str:
        return f"ReactiveDict({self._raw!r})"


class ReactiveList(ReactiveView, MutableSequence):
    """Mutable-sequence view over a raw list.

    Every destructive method mutates the list in place, then notifies the
    parent exactly once, however many elements it touched.
    """

    __slots__ = ()

    # --- Read operations ---

    def __getitem__(self, index: Any) -> Any:
        if isinstance(index, slice):
            indices = range(*index.indices(len(self._raw)))
            return [self._child(i, self._raw[i]) for i in indices]
        return self._child(index, self._raw[index])

    def __len__(self) -> int:
        return len(self._raw)

    def __iter__(self) -> Iterator[Any]:
        for i, item in enumerate(self._raw):
            yield self._child(i, item)

    def __contains__(self, item: object) -> bool:
        return unwrap(item) in self._raw

    # --- Write operations (notify parent once) ---

    def __setitem__(self, index: Any, value: Any) -> None:
        if isinstance(index, slice):
            self._raw[index] = [unwrap(v) for v in value]
            self._changed()
            return
        raw_value = unwrap(value)
        old = self._raw[index]
        self._raw[index] = raw_value
        if not same_value(old, raw_value):
            self._changed()

    def __delitem__(self, index: Any) -> None:
        del self._raw[index]
        self._changed()

    def insert(self, index: int, value: Any) -> None:
        self._raw.insert(index, unwrap(value))
        self._changed()

    def append(self, value: Any) -> None:
        self._raw.append(unwrap(value))
        self._changed()

    def extend(self, values: Any) -> None:
        self._raw.extend([unwrap(v) for v in values])
        self._changed()

    def pop(self, index: int = -1) -> Any:
        value = self._raw.pop(index)
        self._changed()
        return value

    def remove(self, value: Any) -> None:
        self._raw.remove(unwrap(value))
        self._changed()

    def clear(self) -> None:
        self._raw.clear()
        self._changed()

    def sort(self, *, key: Callable[[Any], Any] | None = None, reverse: bool = False) -> None:
        self._raw.sort(key=key, reverse=reverse)
        self._changed()

    def reverse(self) -> None:
        self._raw.reverse()
        self._changed()

    def __iadd__(self, values: Any) -> ReactiveList:
        self.extend(values)
        return self

    def __imul__(self, count: int) -> ReactiveList:
        self._raw *= count
        self._changed()
        return self

    def __repr__(self) -> str:
        return f"ReactiveList({self._raw!r})"


class ViewCache:
    """Identity cache: raw composite -> its single live view.

    Entries are held weakly by view. A live view keeps its raw object
    alive, so the id() key cannot be reused while the entry exists.
    """

    __slots__ = ("_store", "_views")

    def __init__(self, store: Store) -> None:
        self._store = store
        self._views: weakref.WeakValueDictionary[int, ReactiveView] = weakref.WeakValueDictionary()

    def wrap(self, value: Any, notify_parent: NotifyParent) -> Any:
        """Return the view for a plain dict/list; anything else unchanged."""
        if isinstance(value, ReactiveView) or is_computed(value):
            return value
        if isinstance(value, dict):
            cls: type[ReactiveView] = ReactiveDict
        elif isinstance(value, list):
            cls = ReactiveList
        else:
            return value

        view = self._views.get(id(value))
        if view is not None and view._raw is value:
            return view
        view = cls(value, self._store, notify_parent)
        self._views[id(value)] = view
        return view

    def __len__(self) -> int:
        return len(self._views)

    def __contains__(self, raw: object) -> bool:
        view = self._views.get(id(raw))
        return view is not None and view._raw is raw
