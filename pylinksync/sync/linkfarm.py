"""Rebuilding the nested dependency link farm of a mirrored package.

The mirror gets its own ``node_modules`` whose entries are symlinks into the
source package's ``node_modules``. Peer dependencies are left out so that the
consumer's copy of them is the only one on the resolution path.
"""

import logging
from pathlib import Path, PurePosixPath
from typing import Callable, Optional

from ..utils import DEPENDENCY_DIR_NAME, ensure_symlink, is_package_dir, remove_path

logger = logging.getLogger(__name__)


def _is_real_dir(path: Path) -> bool:
    # Symlinked entries and plain files (.bin links, lock files) are skipped
    return path.is_dir() and not path.is_symlink()


def rebuild_link_farm(
    source_path: Path,
    mirror_path: Path,
    peer_names: set[str],
    is_closed: Optional[Callable[[], bool]] = None,
) -> Optional[list[str]]:
    """Recreate ``mirror_path/node_modules`` from the source's node_modules.

    Every top-level entry that is a package becomes one link. Any other
    directory is treated as a scope: it is created as a real directory and
    each sub-directory inside it becomes a link. Afterwards every entry named
    in ``peer_names`` is removed again.

    Args:
        source_path: Root directory of the source package
        mirror_path: Consumer-side path of the mirrored package
        peer_names: Names that must not appear in the link farm
        is_closed: Returns True once the owning task was closed; checked
            before any change is made

    Returns:
        Sorted names of the linked entries (``name`` or ``@scope/name``),
        or None if nothing was rebuilt
    """
    if is_closed is not None and is_closed():
        return None

    source_deps = source_path / DEPENDENCY_DIR_NAME
    mirror_deps = mirror_path / DEPENDENCY_DIR_NAME

    try:
        remove_path(mirror_deps)
    except OSError as e:
        logger.error(f"Could not remove {mirror_deps}: {e}")
        return None

    if not source_deps.is_dir():
        logger.info(f"Package has no dependencies installed ({source_path})")
        return []

    linked: list[str] = []
    try:
        for entry in sorted(source_deps.iterdir()):
            if is_closed is not None and is_closed():
                return None
            if not _is_real_dir(entry):
                continue

            if is_package_dir(entry):
                ensure_symlink(entry, mirror_deps / entry.name)
                linked.append(entry.name)
                continue

            scope_dir = mirror_deps / entry.name
            scope_dir.mkdir(parents=True, exist_ok=True)
            for sub_entry in sorted(entry.iterdir()):
                if not _is_real_dir(sub_entry):
                    continue
                ensure_symlink(sub_entry, scope_dir / sub_entry.name)
                linked.append(f"{entry.name}/{sub_entry.name}")
    except OSError as e:
        logger.error(f"Rebuilding dependency links of {mirror_path} failed: {e}")
        return None

    # Peers are removed after population, scoped and unscoped alike
    for name in peer_names:
        try:
            remove_path(mirror_deps / name)
        except OSError as e:
            logger.error(f"Could not remove peer dependency {name} from {mirror_deps}: {e}")

    linked = [
        name
        for name in linked
        if not any(name == peer or name.startswith(peer + "/") for peer in peer_names)
    ]
    logger.debug(f"Linked {len(linked)} dependencies into {mirror_deps}")
    return linked


def link_farm_entry(source_deps: Path, relative_path: str) -> Optional[str]:
    """Find the link-farm entry that owns a path inside node_modules.

    Args:
        source_deps: The source package's node_modules directory
        relative_path: Path relative to ``source_deps``

    Returns:
        ``name`` for a package, ``@scope/name`` inside a scope directory, or
        None when the path is a scope directory itself or a top-level file

    A vanished top-level entry is returned as is, so its link (or whole
    scope directory) can be removed from the farm.
    """
    parts = PurePosixPath(relative_path).parts
    if not parts:
        return None

    top = source_deps / parts[0]
    if not top.exists():
        if len(parts) > 1 and parts[0].startswith("@"):
            return f"{parts[0]}/{parts[1]}"
        return parts[0]
    if not _is_real_dir(top):
        return None
    if is_package_dir(top):
        return parts[0]
    if len(parts) < 2:
        return None
    return f"{parts[0]}/{parts[1]}"
