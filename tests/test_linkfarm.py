"""Tests for the dependency link farm."""

import os
from pathlib import Path

import pytest
from conftest import listing, write_manifest

from pylinksync.sync.linkfarm import link_farm_entry, rebuild_link_farm


@pytest.fixture
def mirror_path(workspace):
    path = workspace["app"] / "node_modules" / "core"
    path.mkdir(parents=True)
    return path


class TestRebuildLinkFarm:
    """Tests for rebuild_link_farm function."""

    def test_links_packages_and_scoped_packages(self, workspace, mirror_path):
        linked = rebuild_link_farm(workspace["core"], mirror_path, {"rxjs"})
        mirror_deps = mirror_path / "node_modules"
        source_deps = workspace["core"] / "node_modules"

        assert linked == ["@scope/util", "lodash"]
        assert (mirror_deps / "lodash").is_symlink()
        assert os.readlink(mirror_deps / "lodash") == str(source_deps / "lodash")
        assert (mirror_deps / "@scope").is_dir()
        assert not (mirror_deps / "@scope").is_symlink()
        assert (mirror_deps / "@scope" / "util").is_symlink()
        assert (mirror_deps / "@scope" / "util" / "package.json").exists()

    def test_peer_dependencies_excluded(self, workspace, mirror_path):
        rebuild_link_farm(workspace["core"], mirror_path, {"rxjs"})

        assert not os.path.lexists(mirror_path / "node_modules" / "rxjs")
        # The source keeps its own copy
        assert (workspace["core"] / "node_modules" / "rxjs").is_dir()

    def test_scoped_peer_dependency_excluded(self, workspace, mirror_path):
        linked = rebuild_link_farm(workspace["core"], mirror_path, {"@scope/util"})

        assert "@scope/util" not in linked
        assert not os.path.lexists(mirror_path / "node_modules" / "@scope" / "util")
        assert (mirror_path / "node_modules" / "rxjs").is_symlink()

    def test_whole_scope_as_peer(self, workspace, mirror_path):
        rebuild_link_farm(workspace["core"], mirror_path, {"@scope"})
        assert not os.path.lexists(mirror_path / "node_modules" / "@scope")

    def test_skips_plain_files(self, workspace, mirror_path):
        rebuild_link_farm(workspace["core"], mirror_path, set())
        assert not os.path.lexists(mirror_path / "node_modules" / ".package-lock.json")

    def test_idempotent(self, workspace, mirror_path):
        """Test that two rebuilds of an unchanged source give identical trees."""
        rebuild_link_farm(workspace["core"], mirror_path, {"rxjs"})
        first = listing(mirror_path)
        rebuild_link_farm(workspace["core"], mirror_path, {"rxjs"})

        assert listing(mirror_path) == first

    def test_replaces_stale_entries(self, workspace, mirror_path):
        stale = mirror_path / "node_modules" / "removed-package"
        stale.mkdir(parents=True)

        rebuild_link_farm(workspace["core"], mirror_path, {"rxjs"})

        assert not stale.exists()

    def test_new_peer_removed_on_rebuild(self, workspace, mirror_path):
        rebuild_link_farm(workspace["core"], mirror_path, {"rxjs"})
        assert (mirror_path / "node_modules" / "lodash").is_symlink()

        rebuild_link_farm(workspace["core"], mirror_path, {"rxjs", "lodash"})
        assert not os.path.lexists(mirror_path / "node_modules" / "lodash")

    def test_source_without_dependencies(self, tmp_path):
        source = tmp_path / "source"
        write_manifest(source, {"name": "source"})
        mirror = tmp_path / "mirror"
        (mirror / "node_modules" / "old").mkdir(parents=True)

        assert rebuild_link_farm(source, mirror, set()) == []
        assert not (mirror / "node_modules").exists()

    def test_closed_task_is_noop(self, workspace, mirror_path):
        (mirror_path / "node_modules" / "keep").mkdir(parents=True)

        result = rebuild_link_farm(
            workspace["core"], mirror_path, set(), is_closed=lambda: True
        )

        assert result is None
        assert (mirror_path / "node_modules" / "keep").is_dir()

    def test_unreadable_scope_aborts_rebuild(self, workspace, mirror_path, monkeypatch):
        """Test that a listing error is logged and the rebuild gives up."""
        real_iterdir = Path.iterdir

        def failing_iterdir(self):
            if self.name == "@scope":
                raise PermissionError("denied")
            return real_iterdir(self)

        monkeypatch.setattr(Path, "iterdir", failing_iterdir)

        assert rebuild_link_farm(workspace["core"], mirror_path, set()) is None


class TestLinkFarmEntry:
    """Tests for link_farm_entry function."""

    def test_package_path(self, workspace):
        deps = workspace["core"] / "node_modules"
        assert link_farm_entry(deps, "lodash") == "lodash"
        assert link_farm_entry(deps, "lodash/package.json") == "lodash"

    def test_scoped_package_path(self, workspace):
        deps = workspace["core"] / "node_modules"
        assert link_farm_entry(deps, "@scope/util/index.js") == "@scope/util"
        assert link_farm_entry(deps, "@scope/util") == "@scope/util"

    def test_scope_directory_itself(self, workspace):
        deps = workspace["core"] / "node_modules"
        assert link_farm_entry(deps, "@scope") is None

    def test_plain_file(self, workspace):
        deps = workspace["core"] / "node_modules"
        assert link_farm_entry(deps, ".package-lock.json") is None

    def test_vanished_entries(self, workspace):
        deps = workspace["core"] / "node_modules"
        assert link_farm_entry(deps, "gone") == "gone"
        assert link_farm_entry(deps, "gone/index.js") == "gone"
        assert link_farm_entry(deps, "@gone/pkg/index.js") == "@gone/pkg"
        assert link_farm_entry(deps, "@gone") == "@gone"
