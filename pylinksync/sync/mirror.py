"""Building the consumer-side mirror of a source package."""

import logging
import shutil
from pathlib import Path

from ..exceptions import MirrorError
from ..utils import (
    DEPENDENCY_DIR_NAME,
    ensure_symlink,
    lexists,
    relative_link_target,
    remove_path,
)
from .modes import MirrorMode

logger = logging.getLogger(__name__)


def _ignore_dependency_dirs(directory: str, names: list[str]) -> list[str]:
    return [name for name in names if name == DEPENDENCY_DIR_NAME]


def clear_mirror(mirror_path: Path) -> None:
    """Remove whatever currently occupies the mirror path.

    This is usually a plain symlink left by a regular install, or a mirror
    left by an earlier run.

    Args:
        mirror_path: Consumer-side path of the mirrored package

    Raises:
        MirrorError: If the previous occupant cannot be removed
    """
    try:
        if remove_path(mirror_path):
            logger.debug(f"Removed previous occupant of {mirror_path}")
    except OSError as e:
        raise MirrorError(
            f"Could not remove existing {mirror_path}: {e}", path=str(mirror_path)
        ) from e


def copy_entry(source: Path, target: Path) -> list[tuple[str, str, str]]:
    """Copy a file or directory, skipping node_modules directories.

    Failures are collected instead of aborting the copy.

    Args:
        source: File or directory to copy
        target: Destination path

    Returns:
        List of (source, target, reason) tuples for entries that failed
    """
    try:
        if source.is_symlink():
            ensure_symlink(source.readlink(), target)
        elif source.is_dir():
            if target.is_symlink() or (lexists(target) and not target.is_dir()):
                remove_path(target)
            shutil.copytree(
                source,
                target,
                symlinks=True,
                ignore=_ignore_dependency_dirs,
                dirs_exist_ok=True,
            )
        else:
            if target.is_symlink() or target.is_dir():
                remove_path(target)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, target)
    except shutil.Error as e:
        return [tuple(str(part) for part in err) for err in e.args[0]]
    except OSError as e:
        return [(str(source), str(target), str(e))]
    return []


def link_entry(source: Path, target: Path) -> bool:
    """Create a relative symlink at ``target`` pointing at ``source``.

    Returns:
        True if a new link was created
    """
    return ensure_symlink(relative_link_target(source, target), target)


def replicate_entry(source: Path, target: Path, mode: MirrorMode) -> bool:
    """Bring a single mirror entry in line with its source entry.

    If the source entry exists it is copied or linked (create-or-replace),
    otherwise the target is removed. Both directions are idempotent, so
    replaying events in any order converges on the same mirror.

    Args:
        source: Entry in the source package
        target: Corresponding entry in the mirror
        mode: Mirror mode

    Returns:
        True if the entry was replicated without errors
    """
    if not lexists(source):
        return remove_entry(target)

    if mode == MirrorMode.LINK:
        try:
            link_entry(source, target)
        except OSError as e:
            logger.error(f"Could not link {target} to {source}: {e}")
            return False
        return True

    failures = copy_entry(source, target)
    for failed_source, failed_target, reason in failures:
        logger.error(f"Could not copy {failed_source} to {failed_target}: {reason}")
    return not failures


def remove_entry(target: Path) -> bool:
    """Remove a mirror entry; an already absent target is not an error.

    Returns:
        True unless removing an existing entry failed
    """
    try:
        remove_path(target)
    except OSError as e:
        logger.warning(f"Could not remove {target}: {e}")
        return False
    return True


def build_mirror(source_path: Path, mirror_path: Path, mode: MirrorMode) -> int:
    """Create the initial mirror of a source package.

    In copy mode every entry is copied recursively; in link mode each
    top-level entry gets one relative symlink. The source's node_modules is
    never part of the mirror, it is rebuilt separately as a link farm.
    A failing entry is logged and does not stop the remaining ones.

    Args:
        source_path: Root directory of the source package
        mirror_path: Consumer-side path of the mirrored package (must be clear)
        mode: Mirror mode

    Returns:
        Number of entries that failed

    Raises:
        MirrorError: If the mirror directory or the source listing fails
    """
    try:
        mirror_path.mkdir(parents=True, exist_ok=True)
        entries = sorted(source_path.iterdir())
    except OSError as e:
        raise MirrorError(
            f"Could not prepare mirror {mirror_path} of {source_path}: {e}",
            path=str(mirror_path),
        ) from e

    failed = 0
    for entry in entries:
        if entry.name == DEPENDENCY_DIR_NAME:
            continue
        target = mirror_path / entry.name

        if mode == MirrorMode.LINK:
            try:
                link_entry(entry, target)
            except OSError as e:
                failed += 1
                logger.error(f"Error linking {entry} to {target}: {e}")
            continue

        for failed_source, failed_target, reason in copy_entry(entry, target):
            failed += 1
            logger.error(f"Error copying {failed_source} to {failed_target}: {reason}")

    logger.debug(
        f"Built {mode.value} mirror {mirror_path} from {source_path} "
        f"({len(entries)} entries, {failed} failed)"
    )
    return failed
