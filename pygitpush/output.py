"""Output formatting for the CLI."""

import json
import sys
from typing import Any, Optional

from rich.console import Console
from rich.table import Table

from .utils import format_size


class OutputFormatter:
    """Prints messages, summaries and tables, or JSON with ``--json``.

    Errors and warnings go to stderr so JSON on stdout stays parseable.
    """

    def __init__(self, json_output: bool = False, quiet: bool = False):
        """Initialize output formatter.

        Args:
            json_output: Emit machine-readable JSON instead of text
            quiet: Suppress informational messages
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = Console(highlight=False, soft_wrap=True)
        self.err_console = Console(stderr=True, highlight=False, soft_wrap=True)

    def _show_text(self) -> bool:
        return not self.quiet and not self.json_output

    def info(self, message: str) -> None:
        if self._show_text():
            self.console.print(message, markup=False)

    def success(self, message: str) -> None:
        if self._show_text():
            self.console.print(message, style="green", markup=False)

    def warning(self, message: str) -> None:
        if not self.quiet:
            self.err_console.print(f"Warning: {message}", style="yellow", markup=False)

    def error(self, message: str) -> None:
        """Print an error; never suppressed."""
        self.err_console.print(f"Error: {message}", style="bold red", markup=False)

    def print(self, message: str = "") -> None:
        if self._show_text():
            self.console.print(message, markup=False)

    def progress_message(self, message: str) -> None:
        if self._show_text():
            self.console.print(message, style="dim", markup=False)

    def format_size(self, size_bytes: int) -> str:
        return format_size(size_bytes)

    def output_json(self, data: Any) -> None:
        """Write data as JSON to stdout."""
        sys.stdout.write(json.dumps(data, indent=2, default=str) + "\n")

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        """Print a titled list of label/value pairs."""
        if not self._show_text():
            return
        self.console.print()
        self.console.print(title, style="bold", markup=False)
        self.console.print("=" * len(title), markup=False)
        width = max((len(label) for label, _ in items), default=0)
        for label, value in items:
            self.console.print(f"  {label.ljust(width)}  {value}", markup=False)

    def output_table(
        self,
        data: list[dict[str, Any]],
        columns: list[str],
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        """Print rows as a table (or the rows as JSON with ``--json``)."""
        if self.json_output:
            self.output_json(data)
            return
        if self.quiet:
            return
        headers = headers or {}
        table = Table(show_header=True, header_style="bold")
        for column in columns:
            table.add_column(headers.get(column, column))
        for row in data:
            table.add_row(*(str(row.get(column, "")) for column in columns))
        self.console.print(table)
