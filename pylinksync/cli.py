"""CLI interface for pylinksync."""

import logging
from pathlib import Path
from typing import Any, Optional

import click

from .config import config
from .exceptions import SyncConfigError
from .output import OutputFormatter
from .sync import (
    LINKS_FILE_NAME,
    MirrorMode,
    SyncEngine,
    SyncPair,
    load_links_config,
    pairs_from_links_config,
)
from .workspace_utils import (
    LERNA_FILE_NAME,
    LinkedPackages,
    discover_lerna_packages,
    pairs_from_package_graph,
    validate_package_folder,
)

logger = logging.getLogger(__name__)


def collect_pairs(
    cwd: Path, package_folders: tuple[str, ...], out: OutputFormatter
) -> list[SyncPair]:
    """Discover the sync pairs of a workspace.

    Explicitly given package folders, packages of a lerna workspace and
    links from a ``.links.json`` file are combined.

    Args:
        cwd: Directory to look for lerna.json and .links.json in
        package_folders: Explicit consumer package folders
        out: Output formatter for progress messages

    Returns:
        List of sync pairs

    Raises:
        SyncConfigError: If a folder or configuration file is invalid
    """
    found_folders: list[Path] = [
        validate_package_folder(cwd / folder) for folder in package_folders
    ]
    pairs: list[SyncPair] = []

    if (cwd / LERNA_FILE_NAME).exists():
        out.info(f"Read {LERNA_FILE_NAME} ...")
        packages = discover_lerna_packages(cwd)
        found_folders.extend(packages.values())
        pairs.extend(pairs_from_package_graph(packages))

    if (cwd / LINKS_FILE_NAME).exists():
        out.info(f"Read {LINKS_FILE_NAME} ...")
        links = load_links_config(cwd / LINKS_FILE_NAME)
        pairs.extend(pairs_from_links_config(links, found_folders))

    return pairs


@click.group()
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="pylinksync")
@click.pass_context
def main(ctx: Any, quiet: bool, json: bool, verbose: bool) -> None:
    """PyLinkSync - Mirror local packages into the node_modules of their consumers."""
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pylinksync").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.argument("package_folders", nargs=-1, type=click.Path())
@click.option(
    "--no-watcher",
    "no_watcher",
    is_flag=True,
    help="Build the mirrors once and exit instead of watching for changes",
)
@click.option(
    "--mode",
    "-m",
    type=click.Choice([m.value for m in MirrorMode], case_sensitive=False),
    default=None,
    help="Mirror by linking top-level entries or by copying files "
    "(default: link, or $PYLINKSYNC_MODE)",
)
@click.option(
    "--interval",
    "-i",
    type=click.FloatRange(min=0),
    default=None,
    help="Minimum seconds between two dependency rebuilds "
    "(default: 0.1, or $PYLINKSYNC_INTERVAL)",
)
@click.option(
    "--restore-link/--no-restore-link",
    default=None,
    help="Replace mirrors with plain symlinks to the source on exit",
)
@click.pass_context
def sync(
    ctx: Any,
    package_folders: tuple[str, ...],
    no_watcher: bool,
    mode: Optional[str],
    interval: Optional[float],
    restore_link: Optional[bool],
) -> None:
    """Mirror linked packages into their consumers and keep them in sync.

    Packages are discovered from lerna.json and .links.json in the current
    directory; PACKAGE_FOLDERS adds consumer packages for .links.json.

    Examples:

        pylinksync sync                     # lerna.json and/or .links.json

        pylinksync sync packages/app        # link .links.json packages into app

        pylinksync sync --no-watcher        # one-shot mirror
    """
    out: OutputFormatter = ctx.obj["out"]

    try:
        mirror_mode = MirrorMode.from_string(mode) if mode else config.mode
        rebuild_interval = interval if interval is not None else config.interval
        restore = restore_link if restore_link is not None else config.restore_link
        pairs = collect_pairs(Path.cwd(), package_folders, out)
    except SyncConfigError as e:
        out.error(e.message)
        ctx.exit(1)

    linked_packages = LinkedPackages()
    linked_packages.add_pairs(pairs)
    out.print_tree(linked_packages.links)

    if not pairs:
        out.error("No package links found. Either no packages or no links found.")
        ctx.exit(1)

    engine = SyncEngine(
        output=out,
        mode=mirror_mode,
        interval=rebuild_interval,
        restore_link=restore,
    )
    watching = not no_watcher
    tasks = engine.start(pairs, watching=watching)
    if not tasks:
        out.error("No package could be synced.")
        ctx.exit(1)

    out.success("Ready")
    if watching:
        engine.wait()
    elif engine.failed:
        ctx.exit(1)


@main.command(name="list")
@click.argument("package_folders", nargs=-1, type=click.Path())
@click.pass_context
def list_links(ctx: Any, package_folders: tuple[str, ...]) -> None:
    """Show which packages would be linked into which consumer."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        pairs = collect_pairs(Path.cwd(), package_folders, out)
    except SyncConfigError as e:
        out.error(e.message)
        ctx.exit(1)

    if not pairs:
        out.error("No package links found. Either no packages or no links found.")
        ctx.exit(1)

    linked_packages = LinkedPackages()
    linked_packages.add_pairs(pairs)
    out.print_tree(linked_packages.links)


if __name__ == "__main__":
    main()
