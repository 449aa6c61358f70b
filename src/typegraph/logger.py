"""Logging for typegraph: schema build progress, declaration problems and CLI output."""

import json
import logging
from collections import Counter
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from typegraph.errors import SchemaProblem


class TypeGraphLogger(logging.Logger):
    """
    Logger shared by the library and the CLI.

    Build steps are logged at DEBUG and INFO, declaration problems at ERROR.
    Everything is written to stderr, so the CLI can print schemas to stdout.
    """

    def __init__(self, name: str, level: int = logging.INFO) -> None:
        super().__init__(name, level)
        self.console = Console(stderr=True)

        handler = RichHandler(
            console=self.console,
            rich_tracebacks=True,
            show_time=True,
            show_path=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        self.addHandler(handler)
        self.propagate = False

    def print(self, message: str) -> None:
        """Print a message with Rich markup, bypassing the log handlers."""
        self.console.print(message)

    def success(self, message: str) -> None:
        self.print(f"[green]✓[/green] {message}")

    def hint(self, message: str) -> None:
        """Print a dimmed secondary message."""
        self.print(f"[dim]{message}[/dim]")

    def rule(self, title: str, style: str = "bold blue") -> None:
        self.console.rule(f"[{style}]{title}")

    def print_dict(self, data: dict[str, Any]) -> None:
        """
        Print dictionary data as highlighted JSON.

        Args:
            data: Dictionary to display
        """
        self.console.print_json(json.dumps(data, indent=2))

    def report_problems(self, problems: "Iterable[SchemaProblem]") -> None:
        """
        Log every schema problem at ERROR level, prefixed with its kind.

        The records also reach file handlers, so a ``--log-file`` keeps the
        complete, unwrapped messages. A dimmed summary counts the problems per kind.

        Args:
            problems: Problems in the order they were found
        """
        counts: Counter[str] = Counter()
        for problem in problems:
            counts[problem.kind.value] += 1
            self.error(f"[{problem.kind.value}] {problem.message}")
        if counts:
            self.hint(", ".join(f"{count} {kind}" for kind, count in counts.items()))


def get_logger(name: str = "typegraph") -> TypeGraphLogger:
    """
    Get or create a typegraph logger instance.

    Args:
        name: Logger name (default: "typegraph")

    Returns:
        TypeGraphLogger instance
    """
    previous_class = logging.getLoggerClass()
    logging.setLoggerClass(TypeGraphLogger)
    try:
        logger = logging.getLogger(name)
    finally:
        logging.setLoggerClass(previous_class)

    return logger  # type: ignore[return-value]
