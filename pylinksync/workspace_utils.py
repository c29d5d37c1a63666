"""Workspace discovery: which packages exist and which link into which."""

import json
import logging
from pathlib import Path

from .exceptions import SyncConfigError
from .sync.manifest import dependency_names, read_manifest
from .sync.pair import SyncPair
from .utils import DEPENDENCY_DIR_NAME, MANIFEST_FILE_NAME

logger = logging.getLogger(__name__)

LERNA_FILE_NAME = "lerna.json"


class LinkedPackages:
    """Records which dependencies got linked into which consumer."""

    def __init__(self) -> None:
        self.links: dict[str, list[str]] = {}

    def add_link(self, name: str, linked_package: str) -> None:
        """Record that ``linked_package`` is mirrored into package ``name``."""
        self.links.setdefault(name, []).append(linked_package)

    def add_pairs(self, pairs: list[SyncPair]) -> None:
        """Record every pair under its consumer's package name."""
        for pair in pairs:
            manifest = read_manifest(pair.consumer / MANIFEST_FILE_NAME)
            self.add_link(manifest.get("name") or pair.consumer.name, pair.name)

    def __len__(self) -> int:
        return len(self.links)


def validate_package_folder(path: Path) -> Path:
    """Check that an explicitly given folder is a package.

    Args:
        path: Package directory

    Returns:
        Absolute path of the package directory

    Raises:
        SyncConfigError: If the folder is missing or has no package.json
    """
    if not path.exists():
        raise SyncConfigError(f"Given package path not found: {path}", path=str(path))
    if not (path / MANIFEST_FILE_NAME).exists():
        raise SyncConfigError(
            f"Given package path is not a npm package (no {MANIFEST_FILE_NAME} "
            f"found): {path}",
            path=str(path),
        )
    return path.absolute()


def discover_lerna_packages(cwd: Path) -> dict[str, Path]:
    """Find all packages of a lerna workspace.

    Args:
        cwd: Workspace root holding lerna.json

    Returns:
        Mapping of package name to package directory

    Raises:
        SyncConfigError: If lerna.json is missing, invalid or has no packages
    """
    lerna_path = cwd / LERNA_FILE_NAME
    try:
        with open(lerna_path, encoding="utf-8") as f:
            lerna_config = json.load(f)
    except FileNotFoundError:
        raise SyncConfigError(f"Could not find {LERNA_FILE_NAME}") from None
    except (OSError, json.JSONDecodeError) as e:
        raise SyncConfigError(f"Could not read {lerna_path}: {e}") from e

    package_globs = lerna_config.get("packages") if isinstance(lerna_config, dict) else None
    if not package_globs:
        raise SyncConfigError(f"No 'packages' defined in {LERNA_FILE_NAME}")

    packages: dict[str, Path] = {}
    for package_glob in package_globs:
        for folder in sorted(cwd.glob(package_glob)):
            if DEPENDENCY_DIR_NAME in folder.relative_to(cwd).parts:
                continue
            manifest_path = folder / MANIFEST_FILE_NAME
            if not manifest_path.is_file():
                continue
            manifest = read_manifest(manifest_path)
            name = manifest.get("name")
            if not name:
                logger.warning(f"Skipping {folder}: package has no name")
                continue
            packages[name] = folder.absolute()

    logger.debug(f"Found {len(packages)} package(s) in {LERNA_FILE_NAME}")
    return packages


def pairs_from_package_graph(packages: dict[str, Path]) -> list[SyncPair]:
    """Create a sync pair for every workspace package another one depends on.

    Args:
        packages: Mapping of package name to package directory

    Returns:
        Sync pairs, grouped by consumer
    """
    pairs: list[SyncPair] = []
    for folder in packages.values():
        dependencies = dependency_names(read_manifest(folder / MANIFEST_FILE_NAME))
        for name, source in packages.items():
            if name in dependencies:
                pairs.append(SyncPair(consumer=folder, name=name, source=source))
    return pairs
