"""Runtime configuration for pylinksync.

Defaults can be overridden with environment variables; command line options
take precedence over both.
"""

import logging
import os
from typing import Optional

from .exceptions import SyncConfigError
from .sync.modes import MirrorMode
from .utils import DEFAULT_REBUILD_INTERVAL, parse_bool

logger = logging.getLogger(__name__)

ENV_MODE = "PYLINKSYNC_MODE"
ENV_INTERVAL = "PYLINKSYNC_INTERVAL"
ENV_RESTORE_LINK = "PYLINKSYNC_RESTORE_LINK"


class Config:
    """Configuration resolved from defaults and the environment."""

    def __init__(self, environ: Optional[dict[str, str]] = None):
        """Initialize configuration.

        Args:
            environ: Environment mapping to read (defaults to os.environ)
        """
        self._environ = os.environ if environ is None else environ

    @property
    def mode(self) -> MirrorMode:
        """Mirror mode used for new sync tasks."""
        value = self._environ.get(ENV_MODE)
        if not value:
            return MirrorMode.LINK
        try:
            return MirrorMode(value.strip().lower())
        except ValueError:
            raise SyncConfigError(
                f"Invalid {ENV_MODE}={value!r}, expected one of "
                f"{', '.join(m.value for m in MirrorMode)}"
            ) from None

    @property
    def interval(self) -> float:
        """Minimum seconds between two link-farm rebuilds."""
        value = self._environ.get(ENV_INTERVAL)
        if not value:
            return DEFAULT_REBUILD_INTERVAL
        try:
            interval = float(value)
        except ValueError:
            raise SyncConfigError(f"Invalid {ENV_INTERVAL}={value!r}") from None
        if interval < 0:
            raise SyncConfigError(f"{ENV_INTERVAL} must not be negative")
        return interval

    @property
    def restore_link(self) -> bool:
        """Whether teardown puts a plain symlink back in place of the mirror."""
        value = self._environ.get(ENV_RESTORE_LINK)
        if not value:
            return False
        return parse_bool(value)


config = Config()
