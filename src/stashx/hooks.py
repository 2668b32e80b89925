"""on_update() — lifecycle helper for callers that may or may not hold a store."""

from __future__ import annotations

import logging
from typing import Any, Callable

from stashx._callables import positional_arity
from stashx.snapshot import Snapshot
from stashx.subscription import Subscriber

logger = logging.getLogger("stashx.hooks")


def on_update(target: Any, callback: Subscriber) -> Callable[[], None]:
    """Call callback now and on every relevant change of target.

    With a store this is subscribe() with the initial call. With a plain
    mapping there is nothing to watch: callback runs once, with the same
    arguments a subscriber would get (state and previous are both the
    mapping), and the returned unsubscribe does nothing.
    """
    subscribe = getattr(type(target), "subscribe", None)
    if callable(subscribe):
        return target.subscribe(callback, skip_initial_call=False)

    state = Snapshot(dict(target))
    arity = positional_arity(callback)
    try:
        if arity == 2:
            callback(state, state)
        elif arity == 1:
            callback(state)
        else:
            callback()
    except Exception:
        logger.exception("on_update callback raised for non-reactive %s", type(target).__name__)
    return lambda: None
