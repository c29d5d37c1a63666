"""Utility functions for pylinksync."""

import errno
import logging
import os
import shutil
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

# =============================================================================
# Package layout constants
# =============================================================================

# Manifest file that marks a directory as a package
MANIFEST_FILE_NAME: str = "package.json"

# Directory holding a package's installed dependencies
DEPENDENCY_DIR_NAME: str = "node_modules"

# Default minimum interval between two link-farm rebuilds (seconds)
DEFAULT_REBUILD_INTERVAL: float = 0.1


# =============================================================================
# Path utilities
# =============================================================================


def has_dependency_segment(relative_path: Union[str, Path]) -> bool:
    """Check whether a relative path passes through a dependency directory.

    Args:
        relative_path: Path relative to a package root

    Returns:
        True if any segment of the path is ``node_modules``

    Examples:
        >>> has_dependency_segment("node_modules/rxjs/index.js")
        True
        >>> has_dependency_segment("src/index.js")
        False
    """
    return DEPENDENCY_DIR_NAME in Path(relative_path).parts


def is_package_dir(path: Path) -> bool:
    """Check whether a directory directly contains a manifest file."""
    return (path / MANIFEST_FILE_NAME).exists()


def relative_link_target(target: Path, link: Path) -> str:
    """Compute the relative path a symlink at ``link`` needs to reach ``target``.

    Args:
        target: Path the link should point at
        link: Path of the link itself

    Returns:
        Relative path from the link's directory to the target
    """
    return os.path.relpath(target, link.parent)


def lexists(path: Path) -> bool:
    """Like ``Path.exists`` but also True for dangling symlinks."""
    return os.path.lexists(path)


def remove_path(path: Path) -> bool:
    """Remove a file, symlink or directory tree if it exists.

    Symlinks are removed without touching what they point at.

    Args:
        path: Path to remove

    Returns:
        True if something was removed, False if the path did not exist
    """
    try:
        if path.is_symlink() or not path.is_dir():
            path.unlink()
        else:
            shutil.rmtree(path)
    except FileNotFoundError:
        return False
    except OSError as e:
        # Lost a race with another remover
        if e.errno == errno.ENOENT:
            return False
        raise
    return True


def ensure_symlink(target: Union[str, Path], link: Path) -> bool:
    """Create ``link`` pointing at ``target``, replacing any other occupant.

    Args:
        target: Link target (absolute or relative to the link's directory)
        link: Path of the symlink to create

    Returns:
        True if the link was created, False if it already pointed at target
    """
    target_str = str(target)
    if link.is_symlink():
        if os.readlink(link) == target_str:
            return False
        link.unlink()
    elif lexists(link):
        remove_path(link)

    link.parent.mkdir(parents=True, exist_ok=True)
    target_is_dir = (link.parent / target_str).is_dir()
    os.symlink(target_str, link, target_is_directory=target_is_dir)
    return True


def parse_bool(value: str) -> bool:
    """Parse a boolean from an environment-style string.

    Examples:
        >>> parse_bool("yes")
        True
        >>> parse_bool("0")
        False
    """
    return value.strip().lower() in ("1", "true", "yes", "on")
