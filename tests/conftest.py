"""Shared fixtures: a small workspace with a source package and a consumer."""

import json
import os
import signal
import time
from pathlib import Path

import pytest

from pylinksync.sync.shutdown import ShutdownRegistry


def write_manifest(folder: Path, data: dict) -> Path:
    """Write a package.json into ``folder``, creating it if needed."""
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / "package.json"
    path.write_text(json.dumps(data))
    return path


def listing(root: Path) -> list[tuple[str, str]]:
    """Describe every entry below ``root`` without following symlinks."""
    entries = []
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames + filenames:
            path = Path(dirpath) / name
            rel = path.relative_to(root).as_posix()
            if path.is_symlink():
                entries.append((rel, "link:" + os.readlink(path)))
            elif path.is_dir():
                entries.append((rel, "dir"))
            else:
                entries.append((rel, "file:" + path.read_text()))
    return sorted(entries)


def wait_until(predicate, timeout=5.0):
    """Poll until ``predicate`` holds or ``timeout`` seconds have passed."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return predicate()

@pytest.fixture
def workspace(tmp_path):
    """Create ``core`` (peer: rxjs) and its consumer ``app``."""
    core = tmp_path / "core"
    write_manifest(
        core,
        {"name": "core", "version": "1.0.0", "peerDependencies": {"rxjs": "*"}},
    )
    (core / "index.js").write_text("module.exports = 1;")
    (core / "lib").mkdir()
    (core / "lib" / "util.js").write_text("exports.util = true;")

    deps = core / "node_modules"
    write_manifest(deps / "rxjs", {"name": "rxjs"})
    write_manifest(deps / "@scope" / "util", {"name": "@scope/util"})
    write_manifest(deps / "lodash", {"name": "lodash"})
    (deps / ".package-lock.json").write_text("{}")

    app = tmp_path / "app"
    write_manifest(app, {"name": "app", "dependencies": {"core": "^1.0.0"}})
    (app / "node_modules").mkdir()

    return {"root": tmp_path, "core": core, "app": app}


@pytest.fixture
def registry():
    """A shutdown registry bound to SIGUSR1 so tests never touch SIGINT."""
    reg = ShutdownRegistry(signals=(signal.SIGUSR1,))
    yield reg
    reg.reset()
