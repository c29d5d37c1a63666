"""Exceptions raised by pylinksync."""

from typing import Optional


class LinkSyncError(Exception):
    """Base exception for all pylinksync errors."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.path = path


class SyncConfigError(LinkSyncError):
    """A sync task cannot be set up (missing names, paths or manifests)."""


class MirrorError(LinkSyncError):
    """The mirror of a package could not be prepared."""
