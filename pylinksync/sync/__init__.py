"""Sync engine for pylinksync - mirrors packages into their consumers."""

from .config import LINKS_FILE_NAME, load_links_config, pairs_from_links_config
from .engine import SyncEngine, SyncTask
from .linkfarm import link_farm_entry, rebuild_link_farm
from .manifest import PeerDependencies, read_manifest, read_peer_names
from .mirror import build_mirror, clear_mirror, replicate_entry
from .modes import MirrorMode
from .pair import SyncPair
from .reactor import ChangeEvent, ChangeKind, ChangeReactor, WatchScope
from .shutdown import ShutdownEvent, ShutdownRegistry, get_shutdown_registry
from .throttle import Throttle

__all__ = [
    "SyncEngine",
    "SyncTask",
    "SyncPair",
    "MirrorMode",
    "LINKS_FILE_NAME",
    "load_links_config",
    "pairs_from_links_config",
    "PeerDependencies",
    "read_manifest",
    "read_peer_names",
    "build_mirror",
    "clear_mirror",
    "replicate_entry",
    "rebuild_link_farm",
    "link_farm_entry",
    "ChangeEvent",
    "ChangeKind",
    "ChangeReactor",
    "WatchScope",
    "ShutdownEvent",
    "ShutdownRegistry",
    "get_shutdown_registry",
    "Throttle",
]
