"""Computed values — derived state re-evaluated on every read.

A computed definition is any callable carrying the marker attribute
``__stashx_computed__ = True``. Assigning one to a store key registers the
key as computed; the callable itself is stored, never invoked at assignment.

Reading the key runs the body with the store as its evaluation context and
*without* switching listeners: every read inside the body registers as a
dependency of whoever is reading the computed key. Chains of computed
values therefore propagate by plain recursion.

There is no cache. A computed body runs once per access.
"""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING, Any, Callable, TypeVar

from stashx._callables import accepts_positional

if TYPE_CHECKING:
    from stashx.store import Store

T = TypeVar("T")

COMPUTED_MARKER = "__stashx_computed__"


def computed(fn: Callable[..., T]) -> Callable[..., T]:
    """Tag fn as a computed definition.

    fn takes either no arguments or the store as its only argument.

    Usage:
        s = store({"a": 1, "b": 2})
        s.total = computed(lambda st: st.a + st.b)
        s.total  # 3
        s.a = 10
        s.total  # 12
    """
    if not callable(fn):
        raise TypeError(f"computed() expects a callable, got {type(fn).__name__}")
    try:
        setattr(fn, COMPUTED_MARKER, True)
        return fn
    except (AttributeError, TypeError):
        # Bound methods and builtins reject attributes; tag a thin wrapper instead.
        pass

    @functools.wraps(fn)
    def definition(*args: Any) -> T:
        return fn(*args)

    setattr(definition, COMPUTED_MARKER, True)
    return definition


def is_computed(value: object) -> bool:
    """Structural check: callable and tagged."""
    return callable(value) and getattr(value, COMPUTED_MARKER, False) is True


def resolve(definition: Callable[..., T], store: Store) -> T:
    """Evaluate a computed definition against store."""
    if accepts_positional(definition, 1):
        return definition(store)
    return definition()
