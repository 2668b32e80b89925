"""Batching — buffered mutations with a single notification flush.

While a batch is open every write or delete lands in a ledger keyed by
store key; a later write to the same key replaces the earlier one. Nothing
is dispatched until the outermost batch commits, then the store runs one
notification round over the whole ledger.

Nested batches coalesce into the outer one: begin/commit pairs only move a
depth counter, and only the outermost commit hands the ledger back.
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger("stashx.batch")


class _Tombstone:
    """Ledger marker for a deleted key. Distinct from a key set to None."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "<deleted>"


TOMBSTONE = _Tombstone()


class BatchCoordinator:
    """Per-store batch state: open depth plus the change ledger."""

    __slots__ = ("_depth", "_ledger", "_name")

    def __init__(self) -> None:
        self._depth = 0
        self._ledger: dict[str, Any] = {}
        self._name: str | None = None

    @property
    def is_open(self) -> bool:
        return self._depth > 0

    @property
    def depth(self) -> int:
        return self._depth

    @property
    def name(self) -> str | None:
        return self._name

    def begin(self, name: str | None = None) -> None:
        """Open a batch, or join the one already open."""
        if self._depth == 0:
            self._name = name
            logger.debug("Batch %s opened", name or "<anonymous>")
        self._depth += 1

    def record(self, key: str, value: Any) -> None:
        """Remember the final value (or TOMBSTONE) for key."""
        self._ledger[key] = value

    def end(self) -> dict[str, Any] | None:
        """Close one level. Returns the ledger when the outermost level closes.

        Closing with no open batch is a no-op.
        """
        if self._depth == 0:
            logger.warning("commit_batch() called without an open batch; ignoring")
            return None
        self._depth -= 1
        if self._depth > 0:
            return None
        ledger, self._ledger = self._ledger, {}
        logger.debug("Batch %s committed with %d change(s)", self._name or "<anonymous>", len(ledger))
        self._name = None
        return ledger
