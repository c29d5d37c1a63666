"""Rate limiting of repeated calls."""

import logging
import threading
import time
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class Throttle:
    """Calls a function at most once per interval, coalescing bursts.

    Every ``trigger()`` marks the throttle dirty and stores its arguments.
    A timer runs the function with the most recent arguments as soon as the
    interval since the previous call has passed; triggers arriving while the
    function runs re-arm the timer, so the last trigger is never dropped.

    Examples:
        >>> throttled = Throttle(rebuild, interval=0.1)  # doctest: +SKIP
        >>> throttled.trigger()  # doctest: +SKIP
        >>> throttled.trigger()  # coalesced into one trailing call  # doctest: +SKIP
    """

    def __init__(
        self,
        func: Callable[..., Any],
        interval: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize throttle.

        Args:
            func: Function to rate-limit
            interval: Minimum seconds between two calls
            clock: Monotonic time source
        """
        self.func = func
        self.interval = interval
        self._clock = clock
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._last_call: Optional[float] = None
        self._dirty = False
        self._running = False
        self._cancelled = False
        self._args: tuple = ()
        self._kwargs: dict = {}

    @property
    def pending(self) -> bool:
        """True while a call is scheduled or running."""
        with self._lock:
            return self._dirty or self._running

    def trigger(self, *args: Any, **kwargs: Any) -> None:
        """Request a call with the given arguments."""
        with self._lock:
            if self._cancelled:
                return
            self._args = args
            self._kwargs = kwargs
            self._dirty = True
            if self._timer is None and not self._running:
                self._schedule()

    def _schedule(self) -> None:
        # Caller holds the lock
        delay = 0.0
        if self._last_call is not None:
            delay = max(0.0, self._last_call + self.interval - self._clock())
        self._timer = threading.Timer(delay, self._fire)
        self._timer.daemon = True
        self._timer.start()

    def _fire(self) -> None:
        with self._lock:
            self._timer = None
            if self._cancelled or self._running or not self._dirty:
                return
            args, kwargs = self._args, self._kwargs
            self._dirty = False
            self._running = True

        try:
            self.func(*args, **kwargs)
        except Exception:
            logger.exception(f"Throttled call to {self.func!r} failed")
        finally:
            with self._lock:
                self._running = False
                self._last_call = self._clock()
                if self._dirty and not self._cancelled:
                    self._schedule()

    def flush(self) -> None:
        """Run a pending call immediately in the calling thread."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        self._fire()

    def cancel(self) -> None:
        """Drop any pending call and ignore further triggers."""
        with self._lock:
            self._cancelled = True
            self._dirty = False
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
