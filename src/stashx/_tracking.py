"""Dependency tracking — which listener is reading right now.

Each store owns one Tracker. The current listener lives in a ContextVar
created per tracker, so it is scoped to the store *and* to the running
context: a subscriber of store A reading store B never registers against A.

Listeners are anything with a ``_track(key)`` method (in practice a
Subscription). Setting and restoring go through token reset in a
``finally`` so a raising callback can never leave a stale listener behind.
"""

from __future__ import annotations

import contextvars
import itertools
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from stashx.subscription import Subscription

_tracker_ids = itertools.count(1)


class Tracker:
    """Store-scoped holder of the current listener."""

    __slots__ = ("_current",)

    def __init__(self) -> None:
        self._current: contextvars.ContextVar[Subscription | None] = contextvars.ContextVar(
            f"stashx_listener_{next(_tracker_ids)}", default=None
        )

    def current(self) -> Subscription | None:
        return self._current.get()

    def track(self, key: str) -> None:
        """Record a read of key against the current listener, if any."""
        listener = self._current.get()
        if listener is not None:
            listener._track(key)

    @contextmanager
    def listening(self, listener: Subscription | None) -> Iterator[None]:
        """Make listener current for the duration of the block."""
        token = self._current.set(listener)
        try:
            yield
        finally:
            self._current.reset(token)

    def untracked(self):
        """Suspend tracking: reads inside the block register nowhere."""
        return self.listening(None)
