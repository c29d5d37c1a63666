"""Reading package manifests and their peer dependencies."""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Union

import pathspec

from ..utils import DEPENDENCY_DIR_NAME, MANIFEST_FILE_NAME

logger = logging.getLogger(__name__)


def read_manifest(path: Path) -> dict:
    """Read a manifest file.

    A missing, unreadable or malformed manifest yields an empty mapping; a
    broken manifest must never take the whole sync task down.

    Args:
        path: Path to a package.json file

    Returns:
        Parsed manifest, or an empty dict
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return {}
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Failed to read manifest {path}: {e}")
        return {}

    if not isinstance(data, dict):
        logger.warning(f"Ignoring manifest {path}: top level is not an object")
        return {}
    return data


def dependency_names(manifest: dict) -> set[str]:
    """Names listed in a manifest's dependencies and devDependencies."""
    names: set[str] = set()
    for key in ("dependencies", "devDependencies"):
        section = manifest.get(key) or {}
        if isinstance(section, dict):
            names.update(section)
    return names


@dataclass
class PeerDependencies:
    """Peer dependency names of a source package.

    Attributes:
        names: Names from the manifest's ``peerDependencies``
        excluded_globs: Source-relative globs covering each peer's subtree in
            the source's own node_modules
    """

    names: set[str] = field(default_factory=set)
    excluded_globs: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._spec = pathspec.GitIgnoreSpec.from_lines(self.excluded_globs)

    @classmethod
    def from_names(cls, names: set[str]) -> "PeerDependencies":
        """Build the peer set and its excluded globs from peer names."""
        globs = [f"{DEPENDENCY_DIR_NAME}/{name}/**" for name in sorted(names)]
        return cls(names=set(names), excluded_globs=globs)

    @classmethod
    def from_source(cls, source_path: Path) -> "PeerDependencies":
        """Read the peer dependencies of the package at ``source_path``.

        Args:
            source_path: Root directory of the source package

        Returns:
            PeerDependencies, empty when the package has no manifest
        """
        manifest = read_manifest(source_path / MANIFEST_FILE_NAME)
        peers = manifest.get("peerDependencies") or {}
        if not isinstance(peers, dict):
            logger.warning(f"peerDependencies of {source_path} is not an object")
            peers = {}
        return cls.from_names(set(peers))

    def is_excluded(self, relative_path: Union[str, PurePosixPath]) -> bool:
        """Check whether a source-relative path lies inside a peer's subtree.

        Args:
            relative_path: Path relative to the source package root

        Returns:
            True if the path is a peer directory or anything below one

        Examples:
            >>> peers = PeerDependencies.from_names({"rxjs"})
            >>> peers.is_excluded("node_modules/rxjs/index.js")
            True
            >>> peers.is_excluded("node_modules/rxjs")
            True
            >>> peers.is_excluded("node_modules/rxjs-compat/index.js")
            False
        """
        rel = PurePosixPath(relative_path).as_posix()
        if self._spec.match_file(rel):
            return True
        return any(rel == f"{DEPENDENCY_DIR_NAME}/{name}" for name in self.names)

    def is_peer_entry(self, deps_relative_path: Union[str, PurePosixPath]) -> bool:
        """Check whether a path relative to node_modules starts with a peer name.

        Examples:
            >>> peers = PeerDependencies.from_names({"@angular/core"})
            >>> peers.is_peer_entry("@angular/core/index.js")
            True
            >>> peers.is_peer_entry("@angular/common")
            False
        """
        rel = PurePosixPath(deps_relative_path).as_posix()
        return any(rel == name or rel.startswith(name + "/") for name in self.names)


def read_peer_names(source_path: Path) -> set[str]:
    """Read the set of peer dependency names of a source package."""
    return PeerDependencies.from_source(source_path).names
