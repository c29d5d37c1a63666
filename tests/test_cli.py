"""Unit tests for the pylinksync CLI commands."""

import json
import os

import pytest
from click.testing import CliRunner
from conftest import write_manifest

from pylinksync.cli import main


@pytest.fixture
def runner():
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def links_workspace(workspace, monkeypatch):
    """The core/app workspace with a .links.json next to app."""
    root = workspace["root"]
    (root / ".links.json").write_text(json.dumps({"core": "core"}))
    monkeypatch.chdir(root)
    return workspace


@pytest.fixture
def lerna_workspace(tmp_path, monkeypatch):
    (tmp_path / "lerna.json").write_text(json.dumps({"packages": ["packages/*"]}))
    packages = tmp_path / "packages"
    write_manifest(packages / "core", {"name": "core"})
    (packages / "core" / "index.js").write_text("core")
    write_manifest(packages / "app", {"name": "app", "dependencies": {"core": "1"}})
    monkeypatch.chdir(tmp_path)
    return tmp_path


class TestMainGroup:
    """Tests for the main CLI group."""

    def test_main_help(self, runner):
        """Test main help shows all commands."""
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "PyLinkSync" in result.output
        assert "sync" in result.output
        assert "list" in result.output

    def test_sync_help(self, runner):
        result = runner.invoke(main, ["sync", "--help"])
        assert result.exit_code == 0
        assert "--no-watcher" in result.output
        assert "--mode" in result.output


class TestSyncCommand:
    """Tests for the sync command."""

    def test_one_shot_sync_from_links_file(self, runner, links_workspace):
        app = links_workspace["app"]

        result = runner.invoke(main, ["sync", "--no-watcher", "app"])

        assert result.exit_code == 0, result.output
        assert "Read .links.json" in result.output
        assert "-> core" in result.output
        assert "Ready" in result.output
        mirror = app / "node_modules" / "core"
        assert (mirror / "index.js").read_text() == "module.exports = 1;"
        assert not os.path.lexists(mirror / "node_modules" / "rxjs")
        assert (mirror / "node_modules" / "lodash").is_symlink()

    def test_one_shot_sync_copy_mode(self, runner, links_workspace):
        result = runner.invoke(main, ["sync", "--no-watcher", "--mode", "copy", "app"])

        assert result.exit_code == 0, result.output
        index = links_workspace["app"] / "node_modules" / "core" / "index.js"
        assert not index.is_symlink()
        assert index.read_text() == "module.exports = 1;"

    def test_mode_from_environment(self, runner, links_workspace):
        result = runner.invoke(
            main,
            ["sync", "--no-watcher", "app"],
            env={"PYLINKSYNC_MODE": "copy"},
        )

        assert result.exit_code == 0, result.output
        index = links_workspace["app"] / "node_modules" / "core" / "index.js"
        assert not index.is_symlink()

    def test_one_shot_sync_from_lerna(self, runner, lerna_workspace):
        result = runner.invoke(main, ["sync", "--no-watcher"])

        assert result.exit_code == 0, result.output
        assert "Read lerna.json" in result.output
        mirror = lerna_workspace / "packages" / "app" / "node_modules" / "core"
        assert (mirror / "index.js").read_text() == "core"

    def test_no_links_found(self, runner, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        result = runner.invoke(main, ["sync", "--no-watcher"])

        assert result.exit_code == 1
        assert "No package links found" in result.output

    def test_invalid_package_folder(self, runner, links_workspace):
        result = runner.invoke(main, ["sync", "--no-watcher", "missing"])

        assert result.exit_code == 1
        assert "Given package path not found" in result.output

    def test_missing_source_fails(self, runner, links_workspace):
        (links_workspace["root"] / ".links.json").write_text(
            json.dumps({"core": "does-not-exist"})
        )

        result = runner.invoke(main, ["sync", "--no-watcher", "app"])

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_quiet(self, runner, links_workspace):
        result = runner.invoke(main, ["--quiet", "sync", "--no-watcher", "app"])

        assert result.exit_code == 0, result.output
        assert "Ready" not in result.output


class TestListCommand:
    """Tests for the list command."""

    def test_list_links(self, runner, lerna_workspace):
        result = runner.invoke(main, ["list"])

        assert result.exit_code == 0, result.output
        assert "app" in result.output
        assert "-> core" in result.output
        assert not os.path.lexists(
            lerna_workspace / "packages" / "app" / "node_modules" / "core"
        )

    def test_list_json(self, runner, lerna_workspace):
        result = runner.invoke(main, ["--json", "list"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {"app": ["core"]}
