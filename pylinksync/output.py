"""Console output formatting for pylinksync."""

import json
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape


class OutputFormatter:
    """Formats user-facing output with rich.

    All sync tasks of a process share one formatter; every line can carry a
    prefix naming the consumer package it belongs to.
    """

    def __init__(
        self,
        json_output: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        """Initialize output formatter.

        Args:
            json_output: Emit JSON instead of human-readable text
            quiet: Suppress info and success messages
            console: Console for regular output (defaults to stdout)
            err_console: Console for warnings and errors (defaults to stderr)
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = console or Console(highlight=False, soft_wrap=True)
        self.err_console = err_console or Console(
            stderr=True, highlight=False, soft_wrap=True
        )

    @staticmethod
    def _prefixed(message: str, prefix: Optional[str], color: str) -> str:
        text = escape(message)
        if prefix:
            return f"[{color}]{escape(prefix)}[/{color}] {text}"
        return text

    def info(self, message: str, prefix: Optional[str] = None) -> None:
        """Print an informational line."""
        if self.quiet or self.json_output:
            return
        self.console.print(self._prefixed(message, prefix, "green"))

    def success(self, message: str, prefix: Optional[str] = None) -> None:
        """Print a success line."""
        if self.quiet or self.json_output:
            return
        line = self._prefixed(message, prefix, "green")
        self.console.print(f"{line} [green]✓[/green]")

    def warning(self, message: str, prefix: Optional[str] = None) -> None:
        """Print a warning line to stderr."""
        self.err_console.print(self._prefixed(message, prefix, "yellow"))

    def error(self, message: str, prefix: Optional[str] = None) -> None:
        """Print an error line to stderr."""
        self.err_console.print(self._prefixed(message, prefix, "red"))

    def output_json(self, data: Any) -> None:
        """Print data as JSON."""
        self.console.print_json(json.dumps(data))

    def print_tree(self, links: dict[str, list[str]]) -> None:
        """Print consumer packages and the packages linked into them.

        Args:
            links: Mapping of consumer package name to linked package names
        """
        if self.json_output:
            self.output_json(links)
            return
        for name, linked_names in links.items():
            self.console.print(f"[green]{escape(name)}[/green]")
            for linked_name in linked_names:
                self.console.print(f"  -> [green]{escape(linked_name)}[/green]")
