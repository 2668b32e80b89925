"""Small helpers for calling user functions with a flexible arity."""

from __future__ import annotations

import inspect
from typing import Callable


def accepts_positional(fn: Callable, count: int) -> bool:
    """Can fn be called with `count` positional arguments?

    Builtins without an introspectable signature are assumed to accept them.
    """
    try:
        sig = inspect.signature(fn)
    except (TypeError, ValueError):
        return True
    try:
        sig.bind(*([None] * count))
    except TypeError:
        return False
    return True


def positional_arity(fn: Callable, most: int = 2) -> int:
    """Largest positional argument count, up to `most`, that fn accepts."""
    return next((n for n in range(most, 0, -1) if accepts_positional(fn, n)), 0)
