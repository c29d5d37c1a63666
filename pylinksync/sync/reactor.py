"""Translating filesystem change events into mirror updates.

Each sync task holds up to three watch subscriptions on its source package:

* the manifest watch re-reads peer dependencies and schedules a throttled
  rebuild of the link farm,
* the root watch mirrors added, changed and removed entries of the package
  root; it never recurses into node_modules (in copy mode every other
  top-level directory gets its own recursive watch),
* in copy mode, the dependency-tree watch keeps the link farm entries in
  line with the source's node_modules (peer dependencies excluded).

Watch callbacks only enqueue ``ChangeEvent`` objects; one worker thread per
task applies them, so a mirror is never mutated from two threads at once.
Every application reconciles the target with the current state of the
source, which makes the result independent of event order.
"""

import logging
import os
import queue
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Callable, Optional

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver, ObservedWatch

from ..utils import (
    DEPENDENCY_DIR_NAME,
    MANIFEST_FILE_NAME,
    ensure_symlink,
    has_dependency_segment,
)
from .linkfarm import link_farm_entry
from .mirror import remove_entry, replicate_entry
from .modes import MirrorMode
from .throttle import Throttle

if TYPE_CHECKING:
    from .engine import SyncTask

logger = logging.getLogger(__name__)

# Seconds to wait for observer and worker threads when stopping
STOP_TIMEOUT: float = 5.0


class ChangeKind(str, Enum):
    """Kinds of change the reactor applies."""

    ADD = "add"
    CHANGE = "change"
    UNLINK = "unlink"
    REBUILD = "rebuild"
    """Throttled rebuild of the whole link farm"""


class WatchScope(str, Enum):
    """Subscription an event was delivered by."""

    MANIFEST = "manifest"
    ROOT = "root"
    DEPENDENCIES = "dependencies"


@dataclass(frozen=True)
class ChangeEvent:
    """A single change to apply to the mirror."""

    kind: ChangeKind
    """What happened"""

    scope: WatchScope
    """Which subscription reported it"""

    path: Optional[Path] = None
    """Absolute path in the source package (None for rebuilds)"""

    is_directory: bool = False
    """Whether the changed entry is a directory"""


class _QueueingHandler(FileSystemEventHandler):
    """Watchdog handler that turns events into queued ChangeEvents."""

    def __init__(
        self,
        scope: WatchScope,
        put: Callable[[ChangeEvent], None],
        accept: Callable[[Path], bool],
    ):
        super().__init__()
        self.scope = scope
        self.put = put
        self.accept = accept

    def _emit(self, kind: ChangeKind, raw_path, is_directory: bool) -> None:
        path = Path(os.fsdecode(raw_path))
        if self.accept(path):
            self.put(ChangeEvent(kind, self.scope, path, is_directory))

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type == EVENT_TYPE_CREATED:
            self._emit(ChangeKind.ADD, event.src_path, event.is_directory)
        elif event.event_type == EVENT_TYPE_MODIFIED:
            self._emit(ChangeKind.CHANGE, event.src_path, event.is_directory)
        elif event.event_type == EVENT_TYPE_DELETED:
            self._emit(ChangeKind.UNLINK, event.src_path, event.is_directory)
        elif event.event_type == EVENT_TYPE_MOVED:
            self._emit(ChangeKind.UNLINK, event.src_path, event.is_directory)
            self._emit(ChangeKind.ADD, event.dest_path, event.is_directory)


class ChangeReactor:
    """Keeps one task's mirror current while its source package changes."""

    def __init__(self, task: "SyncTask", interval: float):
        """Initialize change reactor.

        Args:
            task: Sync task whose mirror is maintained
            interval: Minimum seconds between two manifest-triggered rebuilds
        """
        self.task = task
        self.events: "queue.Queue[Optional[ChangeEvent]]" = queue.Queue()
        self.throttle = Throttle(self._queue_rebuild, interval)
        self.observers: list[BaseObserver] = []
        self.subtree_watches: dict[Path, ObservedWatch] = {}
        self._handlers: dict[WatchScope, _QueueingHandler] = {}
        self._root_observer: Optional[BaseObserver] = None
        self._subtree_lock = threading.Lock()
        self._worker: Optional[threading.Thread] = None

    @property
    def source_deps(self) -> Path:
        return self.task.source_path / DEPENDENCY_DIR_NAME

    @property
    def mirror_deps(self) -> Path:
        return self.task.mirror_path / DEPENDENCY_DIR_NAME

    def put(self, event: ChangeEvent) -> None:
        """Queue an event for the worker thread."""
        if not self.task.closed:
            self.events.put(event)

    def _queue_rebuild(self) -> None:
        self.put(ChangeEvent(ChangeKind.REBUILD, WatchScope.MANIFEST))

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def _accept_manifest(self, path: Path) -> bool:
        return path == self.task.source_path / MANIFEST_FILE_NAME

    def _accept_root(self, path: Path) -> bool:
        try:
            rel = path.relative_to(self.task.source_path)
        except ValueError:
            return False
        return bool(rel.parts) and not has_dependency_segment(rel)

    def _accept_dependency(self, path: Path) -> bool:
        try:
            rel = path.relative_to(self.source_deps)
        except ValueError:
            return False
        if not rel.parts:
            return False
        return not self.task.peers.is_excluded(
            PurePosixPath(DEPENDENCY_DIR_NAME, *rel.parts)
        )

    def _watch(
        self,
        scope: WatchScope,
        path: Path,
        recursive: bool,
        accept: Callable[[Path], bool],
    ) -> BaseObserver:
        handler = _QueueingHandler(scope, self.put, accept)
        observer = Observer()
        observer.schedule(handler, str(path), recursive=recursive)
        observer.daemon = True
        observer.start()
        self.observers.append(observer)
        self._handlers[scope] = handler
        logger.debug(f"Watching {path} ({scope.value}, recursive={recursive})")
        return observer

    def _watch_subtree(self, path: Path) -> None:
        """Add a recursive watch on a top-level directory to the root watch."""
        if path.name == DEPENDENCY_DIR_NAME or path.is_symlink() or not path.is_dir():
            return
        with self._subtree_lock:
            if path in self.subtree_watches or self._root_observer is None:
                return
            watch = self._root_observer.schedule(
                self._handlers[WatchScope.ROOT], str(path), recursive=True
            )
            self.subtree_watches[path] = watch
        logger.debug(f"Watching {path} (root subtree)")

    def _unwatch_subtree(self, path: Path) -> None:
        with self._subtree_lock:
            watch = self.subtree_watches.pop(path, None)
            if watch is None or self._root_observer is None:
                return
            self._root_observer.unschedule(watch)
        logger.debug(f"Stopped watching {path}")

    def _sync_subtree_watch(self, event: ChangeEvent) -> None:
        """Keep the subtree watch of a top-level entry in line with the source.

        A removed directory loses its watch even if it was recreated in the
        meantime, since the old watch belongs to the removed directory.
        """
        path = event.path
        if path is None:
            return
        try:
            if event.kind == ChangeKind.UNLINK:
                self._unwatch_subtree(path)
            self._watch_subtree(path)
        except OSError as e:
            self.task.log_error(f"Could not watch {path}: {e}")

    def start(self) -> None:
        """Start the worker thread and all watch subscriptions."""
        self._worker = threading.Thread(
            target=self._run,
            name=f"pylinksync-{self.task.dependency_name}",
            daemon=True,
        )
        self._worker.start()

        source = self.task.source_root
        self._watch(WatchScope.MANIFEST, source, False, self._accept_manifest)
        self._root_observer = self._watch(
            WatchScope.ROOT, source, False, self._accept_root
        )
        if self.task.mode.watches_root_subtrees:
            for entry in sorted(source.iterdir()):
                self._watch_subtree(entry)
        if self.task.mode.watches_dependency_tree:
            if self.source_deps.is_dir():
                self._watch(
                    WatchScope.DEPENDENCIES,
                    self.source_deps,
                    True,
                    self._accept_dependency,
                )
            else:
                logger.debug(f"No {DEPENDENCY_DIR_NAME} to watch in {source}")

    def stop(self) -> None:
        """Stop all subscriptions, drop pending rebuilds and end the worker.

        Events still queued are discarded by the worker since the task is
        already closed at this point.
        """
        self.throttle.cancel()
        for observer in self.observers:
            observer.stop()
        for observer in self.observers:
            if observer is not threading.current_thread():
                observer.join(STOP_TIMEOUT)

        self.events.put(None)
        worker = self._worker
        if worker is not None and worker is not threading.current_thread():
            worker.join(STOP_TIMEOUT)
            if worker.is_alive():
                logger.warning(f"Worker of {self.task.dependency_name} did not stop")
        self.subtree_watches.clear()

    def _run(self) -> None:
        while True:
            event = self.events.get()
            if event is None:
                return
            try:
                self.apply(event)
            except Exception:
                logger.exception(f"Failed to apply {event}")

    # -------------------------------------------------------------------------
    # Applying events
    # -------------------------------------------------------------------------

    def apply(self, event: ChangeEvent) -> None:
        """Apply a single event to the mirror.

        Safe to call repeatedly and in any order: the outcome only depends on
        the source's state at the time of the call.

        Args:
            event: Event to apply
        """
        if self.task.closed:
            return

        if event.kind == ChangeKind.REBUILD:
            self.task.rebuild_link_farm()
        elif event.scope == WatchScope.MANIFEST:
            self.task.log("package.json changed, reload.")
            self.task.read_deps()
            self.throttle.trigger()
        elif event.scope == WatchScope.ROOT:
            self._apply_root(event)
        elif event.scope == WatchScope.DEPENDENCIES:
            self._apply_dependency(event)

    def _apply_root(self, event: ChangeEvent) -> None:
        if event.path is None:
            return
        try:
            rel = event.path.relative_to(self.task.source_path)
        except ValueError:
            return
        if not rel.parts or has_dependency_segment(rel):
            return

        mode = self.task.mode
        if mode.watches_root_subtrees and len(rel.parts) == 1:
            # Before replicating, so nothing created inside is missed
            self._sync_subtree_watch(event)
        if mode == MirrorMode.LINK and len(rel.parts) > 1:
            # Covered by the link of the top-level entry
            return
        if (
            mode == MirrorMode.COPY
            and event.kind == ChangeKind.CHANGE
            and event.is_directory
        ):
            # Children report their own changes
            return

        target = self.task.mirror_path / rel
        if self.task.closed:
            return
        logger.debug(f"{event.kind.value} {rel.as_posix()} -> {target}")
        if not replicate_entry(event.path, target, mode):
            self.task.log_error(
                f"(event={event.kind.value}) Could not update {target} from {event.path}"
            )

    def _apply_dependency(self, event: ChangeEvent) -> None:
        if event.path is None:
            return
        try:
            rel = event.path.relative_to(self.source_deps)
        except ValueError:
            return

        entry = link_farm_entry(self.source_deps, rel.as_posix())
        if entry is None or self.task.peers.is_peer_entry(entry):
            return

        source = self.source_deps / entry
        target = self.mirror_deps / entry
        if self.task.closed:
            return

        if not source.is_dir() or source.is_symlink():
            remove_entry(target)
            return
        try:
            if ensure_symlink(source, target):
                logger.debug(f"Linked dependency {entry} into {self.mirror_deps}")
        except OSError as e:
            self.task.log_error(f"Could not link dependency {source} to {target}: {e}")
