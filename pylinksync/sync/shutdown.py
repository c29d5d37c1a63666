"""Process-wide shutdown hooks.

Every watching sync task registers a teardown callback here. The first
registration takes over the shutdown signals; when one arrives all callbacks
run (newest first) and the process exits, unless a callback declared the
shutdown recovered, in which case the original signal handlers come back.
"""

import logging
import signal
import sys
import threading
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_SIGNALS: tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM)


class ShutdownEvent:
    """Passed to every shutdown callback of one signal delivery."""

    def __init__(self, signum: Optional[int] = None):
        self.signum = signum
        self.is_recovered = False

    def recovered(self) -> None:
        """Keep the process alive after all callbacks have run."""
        self.is_recovered = True


ShutdownCallback = Callable[[ShutdownEvent], Any]


class ShutdownRegistry:
    """Ordered list of shutdown callbacks bound to process signals."""

    def __init__(
        self,
        signals: tuple[signal.Signals, ...] = DEFAULT_SIGNALS,
        exit_code: int = 1,
    ):
        """Initialize registry.

        Args:
            signals: Signals that trigger the callbacks
            exit_code: Exit status used when nobody recovers the shutdown
        """
        self.signals = signals
        self.exit_code = exit_code
        self._listeners: list[ShutdownCallback] = []
        self._lock = threading.RLock()
        self._previous_handlers: dict[int, Any] = {}
        self._hooked = False

    @property
    def listeners(self) -> list[ShutdownCallback]:
        """Snapshot of the registered callbacks, in call order."""
        with self._lock:
            return list(self._listeners)

    @property
    def hooked(self) -> bool:
        """Whether the registry currently owns the signal handlers."""
        return self._hooked

    def register(self, callback: ShutdownCallback) -> Callable[[], None]:
        """Register a shutdown callback.

        Must be called from the main thread the first time, since signal
        handlers can only be installed there.

        Args:
            callback: Called with a ShutdownEvent when a signal arrives

        Returns:
            Function that unregisters the callback again
        """
        with self._lock:
            self._listeners.insert(0, callback)
            if not self._hooked:
                self._install()

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def _install(self) -> None:
        self._previous_handlers = {}
        for sig in self.signals:
            self._previous_handlers[sig] = signal.getsignal(sig)
            signal.signal(sig, self._handle_signal)
        self._hooked = True
        logger.debug(f"Installed shutdown handlers for {len(self.signals)} signal(s)")

    def _restore(self) -> None:
        for sig, handler in self._previous_handlers.items():
            signal.signal(sig, handler if handler is not None else signal.SIG_DFL)
        self._previous_handlers = {}
        self._hooked = False

    def _handle_signal(self, signum: int, frame: Any) -> None:
        event = self.fire(signum)
        if not event.is_recovered:
            sys.exit(self.exit_code)

    def fire(self, signum: Optional[int] = None) -> ShutdownEvent:
        """Run every registered callback once.

        The listener list is copied first, so callbacks may unregister
        themselves or register new ones. A failing callback is logged and
        the remaining ones still run. Afterwards the list is cleared; if the
        shutdown was recovered the original signal handlers are restored.

        Args:
            signum: Signal that caused the shutdown, if any

        Returns:
            The ShutdownEvent passed to the callbacks
        """
        event = ShutdownEvent(signum)
        for callback in self.listeners:
            try:
                callback(event)
            except Exception:
                logger.exception("Shutdown callback failed")

        with self._lock:
            self._listeners = []
            if event.is_recovered and self._hooked:
                self._restore()
        return event

    def reset(self) -> None:
        """Drop all callbacks and hand the signals back to their old handlers."""
        with self._lock:
            self._listeners = []
            if self._hooked:
                self._restore()


_registry: Optional[ShutdownRegistry] = None
_registry_lock = threading.Lock()


def get_shutdown_registry() -> ShutdownRegistry:
    """Return the process-wide registry, creating it on first use."""
    global _registry
    with _registry_lock:
        if _registry is None:
            _registry = ShutdownRegistry()
        return _registry
