"""Signals — the raw value cells behind every store key.

A Signal knows nothing about tracking or notification. The store decides
whether a write is a change (see same_value) and who to tell about it.
"""

from __future__ import annotations

from typing import Generic, TypeVar

T = TypeVar("T")

# Sentinel for "no value at all", distinct from None.
MISSING = object()

_PRIMITIVES = (type(None), bool, int, float, complex, str, bytes)


def same_value(a: object, b: object) -> bool:
    """Identity for composites, typed equality for primitives.

    NaN is considered the same as NaN; 1 and True are not the same value.
    """
    if a is b:
        return True
    if type(a) is not type(b) or not isinstance(a, _PRIMITIVES):
        return False
    if a == b:
        return True
    # NaN (and complex NaN) never compare equal to themselves.
    return a != a and b != b


class Signal(Generic[T]):
    """A single raw value cell."""

    __slots__ = ("_value",)

    def __init__(self, value: T) -> None:
        self._value = value

    def read(self) -> T:
        return self._value

    def write(self, value: T) -> None:
        self._value = value

    def __repr__(self) -> str:
        return f"Signal({self._value!r})"
