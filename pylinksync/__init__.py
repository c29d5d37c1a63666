"""PyLinkSync - mirror local packages into the node_modules of their consumers."""

from .exceptions import LinkSyncError, MirrorError, SyncConfigError
from .output import OutputFormatter
from .sync import MirrorMode, SyncEngine, SyncPair, SyncTask

__all__ = [
    "LinkSyncError",
    "MirrorError",
    "SyncConfigError",
    "OutputFormatter",
    "MirrorMode",
    "SyncEngine",
    "SyncPair",
    "SyncTask",
]
