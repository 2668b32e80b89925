"""Subscriptions — callbacks that re-run when the keys they read change.

A subscription runs its callback as the store's current listener. Every
key read during the run (on the store, on the ``state`` snapshot, or
inside a computed body) lands in the subscription's dependency set. The
set is cleared before each run, so it always reflects the latest run only:
a callback that reads different keys on different runs rebinds itself.

A subscription whose last run read nothing is *global* and hears about
every change that actually alters a value.

Dispatch is synchronous. A subscription already running is never started
again from inside its own run. By default the nested notification is
dropped; with ``on_reentry="requeue"`` one follow-up run is delivered
after the current one returns.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Iterable

from stashx._callables import positional_arity
from stashx.signal import MISSING, same_value
from stashx.snapshot import Snapshot

if TYPE_CHECKING:
    from stashx.store import Store

logger = logging.getLogger("stashx.subscription")

Subscriber = Callable[..., Any]

REENTRY_POLICIES = ("drop", "requeue")

# Upper bound on back-to-back redeliveries of one subscription in requeue mode.
MAX_REDELIVERIES = 100


class Subscription:
    """Handle for one subscribed callback.

    Calling the handle (or .dispose()) unsubscribes it. Disposing twice is
    harmless.
    """

    __slots__ = ("_manager", "_callback", "_arity")

    def __init__(self, manager: SubscriptionManager, callback: Subscriber) -> None:
        self._manager = manager
        self._callback = callback
        # Callbacks may take (state, previous), (state) or nothing.
        self._arity = positional_arity(callback)

    @property
    def dependencies(self) -> frozenset[str]:
        """Keys read during the most recent run."""
        return frozenset(self._manager._deps.get(self, ()))

    @property
    def active(self) -> bool:
        return self in self._manager._active

    @property
    def is_global(self) -> bool:
        return self.active and not self._manager._deps.get(self)

    def _track(self, key: str) -> None:
        deps = self._manager._deps.get(self)
        if deps is not None:
            deps.add(key)

    def dispose(self) -> None:
        self._manager.unsubscribe(self)

    def __call__(self) -> None:
        self.dispose()

    def __repr__(self) -> str:
        name = getattr(self._callback, "__name__", repr(self._callback))
        state = "active" if self.active else "disposed"
        return f"Subscription({name}, {state})"


class SubscriptionManager:
    """Subscriber bookkeeping and dispatch for one store."""

    def __init__(self, store: Store, *, isolate_errors: bool = True, on_reentry: str = "drop") -> None:
        if on_reentry not in REENTRY_POLICIES:
            raise ValueError(f"on_reentry must be one of {REENTRY_POLICIES}, got {on_reentry!r}")
        self._store = store
        self._isolate_errors = isolate_errors
        self._on_reentry = on_reentry
        # Insertion-ordered set of live subscriptions.
        self._active: dict[Subscription, None] = {}
        self._deps: dict[Subscription, set[str]] = {}
        self._dispatching: set[Subscription] = set()
        self._redeliver: set[Subscription] = set()

    def subscribe(self, callback: Subscriber, *, skip_initial_call: bool = False) -> Subscription:
        if not callable(callback):
            raise TypeError(f"subscribe() expects a callable, got {type(callback).__name__}")
        sub = Subscription(self, callback)
        self._active[sub] = None
        self._deps[sub] = set()
        if not skip_initial_call:
            self._run(sub, self._store._previous)
        logger.debug("Subscribed %r with dependencies %s", sub, sorted(self._deps.get(sub, ())))
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        if sub not in self._active:
            logger.debug("%r already unsubscribed", sub)
            return
        del self._active[sub]
        self._deps.pop(sub, None)
        self._dispatching.discard(sub)
        self._redeliver.discard(sub)

    def clear(self) -> None:
        for sub in list(self._active):
            self.unsubscribe(sub)

    def __len__(self) -> int:
        return len(self._active)

    # --- Dispatch ---

    def dispatch_key(self, key: str, current: dict[str, Any], previous: dict[str, Any]) -> None:
        """One key changed: keyed subscribers first, then globals if the value differs."""
        notified: set[Subscription] = set()
        for sub in list(self._active):
            deps = self._deps.get(sub)
            if deps and key in deps:
                notified.add(sub)
                self._notify(sub, previous)

        if same_value(current.get(key, MISSING), previous.get(key, MISSING)):
            return
        self._notify_globals(notified, previous)
        logger.debug("Key %r dispatched to %d subscriber(s)", key, len(notified))

    def dispatch_batch(
        self,
        changed: Iterable[str],
        previous: dict[str, Any],
        any_changed: bool,
    ) -> None:
        """Batch commit: each matching subscriber runs once, whatever the number of keys."""
        changed = set(changed)
        notified: set[Subscription] = set()
        for sub in list(self._active):
            deps = self._deps.get(sub)
            if deps and not deps.isdisjoint(changed):
                notified.add(sub)
                self._notify(sub, previous)

        if any_changed:
            self._notify_globals(notified, previous)
        logger.debug("Batch of %d key(s) dispatched to %d subscriber(s)", len(changed), len(notified))

    def _notify_globals(self, notified: set[Subscription], previous: dict[str, Any]) -> None:
        for sub in list(self._active):
            if sub in notified or self._deps.get(sub):
                continue
            notified.add(sub)
            self._notify(sub, previous)

    def _notify(self, sub: Subscription, previous: dict[str, Any]) -> None:
        if sub not in self._active:
            return
        if sub in self._dispatching:
            if self._on_reentry == "requeue":
                self._redeliver.add(sub)
                logger.debug("Re-entrant notification for %r queued", sub)
            else:
                logger.debug("Re-entrant notification for %r dropped", sub)
            return
        self._run(sub, previous)

    def _run(self, sub: Subscription, previous: dict[str, Any]) -> None:
        self._dispatching.add(sub)
        try:
            redeliveries = 0
            while True:
                seen = self._invoke(sub, previous)
                if sub not in self._redeliver:
                    break
                self._redeliver.discard(sub)
                if sub not in self._active:
                    break
                redeliveries += 1
                if redeliveries > MAX_REDELIVERIES:
                    logger.warning(
                        "%r was redelivered %d times in a row; dropping further redelivery",
                        sub,
                        MAX_REDELIVERIES,
                    )
                    break
                previous = seen
        finally:
            self._dispatching.discard(sub)
            self._redeliver.discard(sub)

    def _invoke(self, sub: Subscription, previous: dict[str, Any]) -> dict[str, Any]:
        """Run the callback once as the current listener. Returns the state it was shown."""
        deps = self._deps.get(sub)
        if deps is None:
            return dict(previous)
        deps.clear()

        store = self._store
        state = store._tracking_snapshot()
        with store._tracker.listening(sub):
            try:
                if sub._arity == 2:
                    sub._callback(state, Snapshot(previous))
                elif sub._arity == 1:
                    sub._callback(state)
                else:
                    sub._callback()
            except Exception:
                if not self._isolate_errors:
                    raise
                logger.exception("Subscriber %r raised; continuing dispatch", sub)
        return state._copy()
