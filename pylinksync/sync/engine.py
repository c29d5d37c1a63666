"""Sync tasks: keeping one consumer's copy of a package mirrored."""

import logging
import os
import threading
from pathlib import Path
from typing import Callable, Optional, Union

from ..exceptions import LinkSyncError, MirrorError, SyncConfigError
from ..output import OutputFormatter
from ..utils import (
    DEFAULT_REBUILD_INTERVAL,
    DEPENDENCY_DIR_NAME,
    MANIFEST_FILE_NAME,
    ensure_symlink,
    relative_link_target,
    remove_path,
)
from .linkfarm import rebuild_link_farm
from .manifest import PeerDependencies, read_manifest
from .mirror import build_mirror, clear_mirror
from .modes import MirrorMode
from .pair import SyncPair
from .reactor import ChangeReactor
from .shutdown import ShutdownEvent, ShutdownRegistry, get_shutdown_registry

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _abspath(path: PathLike) -> Path:
    return Path(os.path.abspath(path))


class SyncTask:
    """Mirrors one dependency into one consumer package.

    The task removes whatever a regular install put at
    ``<consumer>/node_modules/<name>``, builds a mirror of the source package
    there and rebuilds the mirror's own node_modules as a link farm without
    the source's peer dependencies. When watching, it keeps the mirror
    current until it is closed, which removes the mirror again.

    Examples:
        >>> task = SyncTask("packages/app", "core", "packages/core")  # doctest: +SKIP
        >>> task.start()  # doctest: +SKIP
        >>> task.wait()  # returns once a shutdown signal closed the task  # doctest: +SKIP
    """

    def __init__(
        self,
        consumer_root: PathLike,
        dependency_name: str,
        source_path: Optional[PathLike],
        watching: bool = True,
        mode: MirrorMode = MirrorMode.LINK,
        interval: float = DEFAULT_REBUILD_INTERVAL,
        restore_link: bool = False,
        output: Optional[OutputFormatter] = None,
        registry: Optional[ShutdownRegistry] = None,
    ):
        """Initialize sync task.

        Args:
            consumer_root: Root directory of the consuming package
            dependency_name: Name of the dependency to mirror
            source_path: Root directory of the dependency's source package
            watching: Keep the mirror current until shutdown
            mode: Build the mirror by copying or by linking top-level entries
            interval: Minimum seconds between manifest-triggered rebuilds
            restore_link: On teardown, put a plain symlink to the source back
            output: Output formatter for progress lines
            registry: Shutdown registry (defaults to the process-wide one)
        """
        self.consumer_root = _abspath(consumer_root)
        self.dependency_name = dependency_name
        self.source_path = _abspath(source_path) if source_path else None
        self.watching = watching
        self.mode = mode
        self.interval = interval
        self.restore_link = restore_link
        self.output = output or OutputFormatter()
        self.registry = registry

        self.consumer_name = self.consumer_root.name
        self.peers = PeerDependencies()
        self.closed = False
        self.started = False
        self.reactor: Optional[ChangeReactor] = None

        self._close_lock = threading.Lock()
        self._done = threading.Event()
        self._unsubscribe: Optional[Callable[[], None]] = None

    @classmethod
    def from_pair(cls, pair: SyncPair, **kwargs) -> "SyncTask":
        """Create a task for a sync pair."""
        return cls(pair.consumer, pair.name, pair.source, **kwargs)

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def mirror_path(self) -> Path:
        """Consumer-side path of the mirrored package."""
        return self.consumer_root / DEPENDENCY_DIR_NAME / self.dependency_name

    @property
    def source_root(self) -> Path:
        """Source path of a configured task.

        Raises:
            SyncConfigError: If no source is defined
        """
        if self.source_path is None:
            raise SyncConfigError(f"Dependency source {self.dependency_name} not defined.")
        return self.source_path

    @property
    def peer_names(self) -> set[str]:
        return self.peers.names

    @property
    def excluded_globs(self) -> list[str]:
        return self.peers.excluded_globs

    @property
    def watchers(self) -> list:
        """Open watch subscriptions (watchdog observers)."""
        return self.reactor.observers if self.reactor is not None else []

    def log(self, message: str) -> None:
        self.output.info(message, prefix=self.consumer_name)

    def log_error(self, message: str) -> None:
        logger.error(f"{self.consumer_name}: {message}")
        self.output.error(message, prefix=self.consumer_name)

    # -------------------------------------------------------------------------
    # Setup
    # -------------------------------------------------------------------------

    def validate(self) -> None:
        """Check the task's configuration.

        Raises:
            SyncConfigError: If the dependency name or source is missing, the
                source does not exist or the consumer has no package.json
        """
        if not self.dependency_name:
            raise SyncConfigError("Dependency name not defined.")
        if self.source_path is None:
            raise SyncConfigError(f"Dependency source {self.dependency_name} not defined.")
        if not self.source_path.exists():
            raise SyncConfigError(
                f"Dependency source {self.dependency_name} in '{self.source_path}' "
                "not found. Install it first.",
                path=str(self.source_path),
            )
        if not self.source_path.is_dir():
            raise SyncConfigError(
                f"Dependency source {self.dependency_name} in '{self.source_path}' "
                "is not a directory.",
                path=str(self.source_path),
            )
        if not (self.consumer_root / MANIFEST_FILE_NAME).exists():
            raise SyncConfigError(
                f"{MANIFEST_FILE_NAME} not found in {self.consumer_root}. "
                "Make sure you're in the right directory.",
                path=str(self.consumer_root),
            )

    def read_deps(self) -> None:
        """Re-read the peer dependencies of the source package."""
        self.peers = PeerDependencies.from_source(self.source_root)
        logger.debug(
            f"Peer dependencies of {self.dependency_name}: {sorted(self.peers.names)}"
        )

    def rebuild_link_farm(self) -> Optional[list[str]]:
        """Rebuild the mirror's node_modules; a no-op once closed."""
        return rebuild_link_farm(
            self.source_root,
            self.mirror_path,
            set(self.peers.names),
            is_closed=lambda: self.closed,
        )

    def start(self) -> None:
        """Build the mirror and, when watching, start reacting to changes.

        Without watching the task is finished when this returns and the
        mirror stays in place.

        Raises:
            SyncConfigError: If the task is misconfigured (nothing is touched)
            MirrorError: If the mirror path cannot be prepared or the source
                cannot be watched
        """
        if self.started:
            raise LinkSyncError(f"Sync of {self.dependency_name} already started")
        self.validate()
        source = self.source_root
        self.started = True

        manifest = read_manifest(self.consumer_root / MANIFEST_FILE_NAME)
        self.consumer_name = manifest.get("name") or self.consumer_root.name
        self.read_deps()

        if self.watching:
            # Armed before anything is removed, so an interrupt always reverts
            registry = self.registry or get_shutdown_registry()
            self._unsubscribe = registry.register(self._on_shutdown)

        try:
            clear_mirror(self.mirror_path)
            failed = build_mirror(source, self.mirror_path, self.mode)
        except LinkSyncError:
            self.close()
            raise
        if self.closed:
            # Shut down while building; the revert may have run before the
            # build finished
            self._revert()
            return
        if failed:
            self.output.warning(
                f"{failed} entries of {source} could not be mirrored",
                prefix=self.consumer_name,
            )

        self.rebuild_link_farm()
        logger.debug(f"Mirrored {source} into {self.mirror_path}")

        if not self.watching:
            self._finish()
            return

        reactor = ChangeReactor(self, self.interval)
        self.reactor = reactor
        try:
            reactor.start()
        except OSError as e:
            self.close()
            raise MirrorError(
                f"Could not watch {source}: {e}", path=str(source)
            ) from e
        if self.closed:
            # Shut down while the watches were starting
            reactor.stop()

    def run(self) -> None:
        """Start the task and block until it is closed."""
        self.start()
        self.wait()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the task is closed.

        Waits in short slices so signal handlers keep running in the main
        thread.

        Args:
            timeout: Maximum seconds to wait, None for no limit

        Returns:
            True if the task is closed
        """
        if timeout is not None:
            return self._done.wait(timeout)
        while not self._done.wait(0.5):
            pass
        return True

    # -------------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------------

    def _finish(self) -> None:
        with self._close_lock:
            self.closed = True
        self._done.set()

    def _on_shutdown(self, event: ShutdownEvent) -> None:
        self.close()

    def close(self) -> bool:
        """Stop watching and revert the consumer's node_modules entry.

        The closed flag is set first, so in-flight callbacks stop writing;
        watches are stopped before the mirror is removed. Calling this
        again is a no-op.

        Returns:
            True if this call performed the teardown
        """
        with self._close_lock:
            if self.closed:
                return False
            self.closed = True

        try:
            if self.reactor is not None:
                self.reactor.stop()
            if self._unsubscribe is not None:
                self._unsubscribe()
                self._unsubscribe = None
            if self.started:
                self._revert()
        finally:
            self._done.set()
        return True

    def _revert(self) -> None:
        self.log(f"Exiting, removing cloned {self.dependency_name}.")
        try:
            remove_path(self.mirror_path)
            if self.restore_link and self.source_path is not None:
                ensure_symlink(
                    relative_link_target(self.source_path, self.mirror_path),
                    self.mirror_path,
                )
                logger.debug(f"Restored link {self.mirror_path} -> {self.source_path}")
        except OSError as e:
            self.log_error(f"Could not revert {self.mirror_path}: {e}")


class SyncEngine:
    """Runs one sync task per sync pair and waits on all of them."""

    def __init__(
        self,
        output: Optional[OutputFormatter] = None,
        mode: MirrorMode = MirrorMode.LINK,
        interval: float = DEFAULT_REBUILD_INTERVAL,
        restore_link: bool = False,
        registry: Optional[ShutdownRegistry] = None,
    ):
        """Initialize sync engine.

        Args:
            output: Output formatter shared by all tasks
            mode: Mirror mode for every task
            interval: Minimum seconds between rebuilds of one task
            restore_link: Put plain symlinks back on teardown
            registry: Shutdown registry (defaults to the process-wide one)
        """
        self.output = output or OutputFormatter()
        self.mode = mode
        self.interval = interval
        self.restore_link = restore_link
        self.registry = registry
        self.tasks: list[SyncTask] = []
        self.failed: list[tuple[SyncPair, LinkSyncError]] = []

    def create_task(self, pair: SyncPair, watching: bool = True) -> SyncTask:
        return SyncTask.from_pair(
            pair,
            watching=watching,
            mode=self.mode,
            interval=self.interval,
            restore_link=self.restore_link,
            output=self.output,
            registry=self.registry,
        )

    def start(self, pairs: list[SyncPair], watching: bool = True) -> list[SyncTask]:
        """Start a task for every pair.

        A task that fails to set up is reported and skipped; the other
        tasks still start.

        Args:
            pairs: Sync pairs to start
            watching: Keep mirrors current until shutdown

        Returns:
            The tasks that started
        """
        started: list[SyncTask] = []
        for pair in pairs:
            task = self.create_task(pair, watching=watching)
            try:
                task.start()
            except LinkSyncError as e:
                self.failed.append((pair, e))
                self.output.error(f"{pair.name}: {e.message}", prefix=pair.consumer.name)
                continue
            started.append(task)
        self.tasks.extend(started)
        return started

    def wait(self) -> None:
        """Block until every task is closed."""
        for task in self.tasks:
            task.wait()

    def close(self) -> None:
        """Close every task."""
        for task in self.tasks:
            task.close()
