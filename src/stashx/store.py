"""Store — a reactive property bag over plain nested data.

Keys are reachable as attributes (``s.count``), items (``s["count"]``) or
through get/set/delete. Every read registers the key with the store's
current listener; every write that changes a value notifies exactly the
subscriptions that read that key last time they ran, then the global ones.

Facade methods win over keys of the same name on attribute access. Such
keys stay reachable as items: ``s["subscribe"]``.

Missing keys read as None and still register the dependency, so a
subscription notices when the key appears.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Mapping
from contextlib import contextmanager
from typing import Any, Callable, Iterator, TypeVar

from stashx._tracking import Tracker
from stashx.batch import TOMBSTONE, BatchCoordinator
from stashx.computed import is_computed, resolve
from stashx.proxy import ViewCache, shallow_clone, unwrap
from stashx.signal import MISSING, Signal, same_value
from stashx.snapshot import Snapshot, to_json as _to_json
from stashx.subscription import Subscriber, Subscription, SubscriptionManager

logger = logging.getLogger("stashx.store")

R = TypeVar("R")


class Store:
    """Reactive container for one nested state tree.

    Options (keyword-only):
        isolate_errors: log and skip a raising subscriber instead of
            aborting the rest of the dispatch round. Default True.
        on_reentry: "drop" (default) or "requeue", for a subscription
            notified again while it is still running.
        name: label used in logs and repr.
    """

    __slots__ = (
        "_signals",
        "_computed_keys",
        "_target",
        "_views",
        "_tracker",
        "_subscriptions",
        "_batch",
        "_previous",
        "_suppressed",
        "_isolate_errors",
        "_name",
    )

    def __init__(
        self,
        initial: Mapping[str, Any] | None = None,
        *,
        isolate_errors: bool = True,
        on_reentry: str = "drop",
        name: str | None = None,
    ) -> None:
        if not isinstance(isolate_errors, bool):
            raise ValueError(f"isolate_errors must be a bool, got {isolate_errors!r}")
        if name is not None and not isinstance(name, str):
            raise ValueError(f"name must be a string or None, got {name!r}")
        self._signals = {}
        self._computed_keys = set()
        self._target = {}
        self._views = ViewCache(self)
        self._tracker = Tracker()
        self._subscriptions = SubscriptionManager(self, isolate_errors=isolate_errors, on_reentry=on_reentry)
        self._batch = BatchCoordinator()
        self._suppressed = False
        self._isolate_errors = isolate_errors
        self._name = name

        for key, value in (initial or {}).items():
            _check_key(key)
            if is_computed(value):
                self._computed_keys.add(key)
                self._target[key] = value
            else:
                self._target[key] = unwrap(value)
        self._previous = self._capture()

    # --- Facade ---

    def get_state(self) -> dict[str, Any]:
        """Plain shallow copy of the state, computed keys resolved.

        Does not register dependencies.
        """
        with self._tracker.untracked():
            return {
                key: self._resolve_for_snapshot(key, value) if is_computed(value) else value
                for key, value in self._capture().items()
            }

    def set_state(self, partial: Mapping[str, Any] | None = None, /, **values: Any) -> None:
        """Write each key through the normal write path, one notification per key.

        Wrap the call in batch() for a single notification.
        """
        for key, value in {**(partial or {}), **values}.items():
            self._write(key, value)

    def subscribe(self, callback: Subscriber, *, skip_initial_call: bool = False) -> Subscription:
        """Run callback now and again whenever a key it read changes.

        callback may accept (state, previous), (state) or nothing. Returns
        the Subscription; call it (or .dispose()) to unsubscribe.

        Usage:
            s = store({"count": 0})
            log = []
            unsubscribe = s.subscribe(lambda state: log.append(state.count))
            # log == [0]
            s.count = 1
            # log == [0, 1]
            unsubscribe()
        """
        return self._subscriptions.subscribe(callback, skip_initial_call=skip_initial_call)

    def batch(self, fn: Callable[[], R], name: str | None = None) -> R:
        """Run fn with notifications deferred; flush once when it returns.

        The flush also happens if fn raises. Nested batches join the outer one.
        """
        self.begin_batch(name)
        try:
            return fn()
        finally:
            self.commit_batch()

    @contextmanager
    def transaction(self, name: str | None = None) -> Iterator[Store]:
        """Context-manager form of batch().

        Usage:
            with s.transaction():
                s.a = 1
                s.b = 2
            # subscribers run here, once
        """
        self.begin_batch(name)
        try:
            yield self
        finally:
            self.commit_batch()

    def begin_batch(self, name: str | None = None) -> None:
        self._batch.begin(name)

    def commit_batch(self) -> None:
        """Close the current batch level. A no-op when no batch is open."""
        ledger = self._batch.end()
        if ledger:
            self._flush(ledger)

    @property
    def is_batching(self) -> bool:
        return self._batch.is_open

    def to_json(self) -> dict[str, Any]:
        """Deep, computed-resolved, non-reactive copy of the state."""
        return _to_json(self)

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._target:
            self._tracker.track(key)
            return default
        return self._read(key)

    def set(self, key: str, value: Any) -> None:
        self._write(key, value)

    def delete(self, key: str) -> None:
        self._delete(key)

    def keys(self) -> list[str]:
        return list(self._target)

    def dispose(self) -> None:
        """Unsubscribe every subscription."""
        self._subscriptions.clear()

    # --- Attribute / item protocol ---

    def __getattr__(self, name: str) -> Any:
        # Only reached when normal lookup fails: slots and methods never get here.
        if name.startswith("_"):
            raise AttributeError(name)
        return self._read(name)

    def __setattr__(self, name: str, value: Any) -> None:
        if name in Store.__slots__:
            object.__setattr__(self, name, value)
        else:
            self._write(name, value)

    def __delattr__(self, name: str) -> None:
        self._delete(name)

    def __getitem__(self, key: str) -> Any:
        return self._read(key)

    def __setitem__(self, key: str, value: Any) -> None:
        self._write(key, value)

    def __delitem__(self, key: str) -> None:
        self._delete(key)

    def __contains__(self, key: object) -> bool:
        return key in self._target or key in self._computed_keys or key in FACADE_NAMES

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._target))

    def __len__(self) -> int:
        return len(self._target)

    def __dir__(self) -> list[str]:
        return sorted(set(object.__dir__(self)) | {k for k in self._target if isinstance(k, str)})

    def __repr__(self) -> str:
        label = f"{self._name}: " if self._name else ""
        return f"Store({label}{self._target!r})"

    # --- Interception ---

    def _signal(self, key: str) -> Signal | None:
        """Fetch key's signal, creating it from the backing state on first access."""
        signal = self._signals.get(key)
        if signal is None and key in self._target:
            signal = self._signals[key] = Signal(self._target[key])
            logger.debug("Created signal for %r", key)
        return signal

    def _read(self, key: str) -> Any:
        self._tracker.track(key)
        signal = self._signal(key)
        if signal is None:
            return None
        value = signal.read()
        if key in self._computed_keys:
            return resolve(value, self)
        return self._views.wrap(value, functools.partial(self._child_changed, key))

    def _child_changed(self, key: str, child_raw: Any) -> None:
        current = self._target.get(key, MISSING)
        if current is not child_raw:
            logger.warning("Key %r no longer holds the mutated object; nested change dropped", key)
            return
        self._write(key, shallow_clone(current))

    def _write(self, key: str, value: Any) -> None:
        _check_key(key)
        if is_computed(value):
            raw = value
            if key not in self._computed_keys:
                logger.debug("Registered computed key %r", key)
            self._computed_keys.add(key)
        else:
            raw = unwrap(value)
            self._computed_keys.discard(key)

        signal = self._signal(key)
        if signal is None:
            old = MISSING
            signal = self._signals[key] = Signal(raw)
        else:
            old = signal.read()
        self._target[key] = raw
        if same_value(old, raw):
            return

        signal.write(raw)
        if self._batch.is_open:
            self._batch.record(key, raw)
            return
        if self._suppressed:
            return
        self._notify(key)

    def _delete(self, key: str) -> None:
        existed = key in self._target or key in self._signals
        self._signals.pop(key, None)
        self._computed_keys.discard(key)

        if self._batch.is_open:
            self._batch.record(key, TOMBSTONE)
            self._target.pop(key, None)
            return

        try:
            del self._target[key]
        except KeyError:
            logger.warning("Cannot delete %r: key not present in %r", key, self)
        if existed and not self._suppressed:
            self._notify(key)

    # --- Notification ---

    def _notify(self, key: str) -> None:
        previous = self._previous
        current = self._capture()
        # Updated before dispatch so writes made by subscribers diff against fresh state.
        self._previous = current
        self._subscriptions.dispatch_key(key, current, previous)

    def _flush(self, ledger: dict[str, Any]) -> None:
        """Apply a committed batch ledger, then run one notification round."""
        previous = self._previous
        with self._suppress():
            for key, value in ledger.items():
                if value is TOMBSTONE:
                    self._signals.pop(key, None)
                    self._computed_keys.discard(key)
                    self._target.pop(key, None)
                else:
                    self._write(key, value)

        current = self._capture()
        self._previous = current
        # Raw comparison: a computed key only differs when its definition was replaced.
        changed = [key for key in ledger if _differs(previous, current, key)]
        any_changed = bool(changed) or any(_differs(previous, current, key) for key in previous.keys() | current.keys())
        if changed or any_changed:
            self._subscriptions.dispatch_batch(changed, previous, any_changed)

    @contextmanager
    def _suppress(self) -> Iterator[None]:
        prior = self._suppressed
        self._suppressed = True
        try:
            yield
        finally:
            self._suppressed = prior

    # --- Snapshots ---

    def _capture(self) -> dict[str, Any]:
        """Shallow copy of the raw state. Computed keys keep their definitions."""
        state: dict[str, Any] = {}
        for key in list(self._target):
            signal = self._signals.get(key)
            state[key] = signal.read() if signal is not None else self._target[key]
        return state

    def _resolve_for_snapshot(self, key: str, definition: Callable) -> Any:
        try:
            return resolve(definition, self)
        except Exception:
            if not self._isolate_errors:
                raise
            logger.exception("Computed key %r raised while capturing state", key)
            return None

    def _tracking_snapshot(self) -> Snapshot:
        """Current state as a Snapshot whose reads register dependencies."""
        return Snapshot(self._capture(), self._snapshot_read)

    def _snapshot_read(self, key: str, data: dict[str, Any]) -> Any:
        self._tracker.track(key)
        value = data[key]
        if is_computed(value):
            # Resolved live so the body's reads are tracked too.
            return resolve(value, self)
        return value


FACADE_NAMES = frozenset(name for name in dir(Store) if not name.startswith("_"))


def _check_key(key: object) -> None:
    if not isinstance(key, str):
        raise TypeError(f"Store keys must be strings, got {type(key).__name__}")


def _differs(previous: dict[str, Any], current: dict[str, Any], key: str) -> bool:
    return not same_value(previous.get(key, MISSING), current.get(key, MISSING))


def store(initial: Mapping[str, Any] | None = None, /, **options: Any) -> Store:
    """Create a Store.

    Usage:
        s = store({"count": 0, "doubled": computed(lambda st: st.count * 2)})
        s.count = 5
        s.doubled  # 10
    """
    return Store(initial, **options)
