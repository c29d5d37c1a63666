"""Loading package links from a ``.links.json`` file."""

import json
import logging
from pathlib import Path

from ..exceptions import SyncConfigError
from ..utils import MANIFEST_FILE_NAME
from .manifest import dependency_names, read_manifest
from .pair import SyncPair

logger = logging.getLogger(__name__)

LINKS_FILE_NAME = ".links.json"


def load_links_config(path: Path) -> dict[str, Path]:
    """Load package links from a JSON file.

    The file maps package names to the directories holding their sources::

        {
            "@acme/core": "../core",
            "utils": "/home/me/src/utils"
        }

    Relative source paths are resolved against the file's directory.

    Args:
        path: Path to the links file

    Returns:
        Mapping of package name to source directory

    Raises:
        SyncConfigError: If the file is missing, not valid JSON or malformed
    """
    if not path.exists():
        raise SyncConfigError(f"No {path.name} file found in {path.parent}.")

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise SyncConfigError(f"Invalid JSON in {path}: {e}", path=str(path)) from e
    except OSError as e:
        raise SyncConfigError(f"Could not read {path}: {e}", path=str(path)) from e

    if not isinstance(data, dict):
        raise SyncConfigError(
            f"{path} must contain an object mapping package names to paths",
            path=str(path),
        )

    links: dict[str, Path] = {}
    for name, source in data.items():
        if not isinstance(source, str) or not source:
            raise SyncConfigError(
                f"Source of '{name}' in {path} must be a non-empty string",
                path=str(path),
            )
        source_path = Path(source).expanduser()
        if not source_path.is_absolute():
            source_path = path.parent / source_path
        links[name] = source_path

    logger.debug(f"Loaded {len(links)} link(s) from {path}")
    return links


def pairs_from_links_config(
    links: dict[str, Path], package_folders: list[Path]
) -> list[SyncPair]:
    """Create a sync pair for every linked package a folder depends on.

    Args:
        links: Mapping of package name to source directory
        package_folders: Consumer package directories

    Returns:
        Sync pairs, in folder order
    """
    pairs: list[SyncPair] = []
    for folder in package_folders:
        manifest = read_manifest(folder / MANIFEST_FILE_NAME)
        dependencies = dependency_names(manifest)
        for name, source in links.items():
            if name in dependencies:
                pairs.append(SyncPair(consumer=folder, name=name, source=source))
    return pairs
