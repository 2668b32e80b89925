"""StashX: reactive, dependency-tracked state stores over plain Python data."""

from importlib.metadata import version as _version

__version__ = _version("stashx")

from stashx.signal import Signal, same_value
from stashx.computed import computed, is_computed
from stashx.proxy import ReactiveDict, ReactiveList, unwrap, is_view
from stashx.batch import TOMBSTONE
from stashx.snapshot import Snapshot, to_json
from stashx.subscription import Subscription
from stashx.store import Store, store
from stashx.hooks import on_update

__all__ = [
    "Signal",
    "same_value",
    "computed",
    "is_computed",
    "ReactiveDict",
    "ReactiveList",
    "unwrap",
    "is_view",
    "TOMBSTONE",
    "Snapshot",
    "to_json",
    "Subscription",
    "Store",
    "store",
    "on_update",
]
