"""User-facing output for a build.

Steps report progress through a BuildUi instead of printing. Each
message goes to a Rich console and is mirrored to the ``gcebake.ui``
logger so log files carry the same narrative as the terminal.
"""

from __future__ import annotations

import logging
from typing import Optional

from rich.console import Console
from rich.markup import escape

logger = logging.getLogger(__name__)


class BuildUi:
    """Console sink shared by every step of a build.

    Args:
        console: Rich console to print to (default: a new stderr console).
        prefix: Label shown before each line, e.g. the builder name.
    """

    def __init__(self, console: Optional[Console] = None, prefix: str = "googlecompute") -> None:
        self.console = console or Console(stderr=True)
        self.prefix = prefix

    def say(self, message: str) -> None:
        """Announce a pipeline stage."""
        logger.info(message)
        self.console.print(f"[bold green]==> {self.prefix}:[/] {escape(message)}")

    def message(self, message: str) -> None:
        """Print detail output, such as remote command output."""
        logger.debug(message)
        self.console.print(f"    {self.prefix}: {escape(message)}", highlight=False)

    def error(self, message: str) -> None:
        """Report a failure."""
        logger.error(message)
        self.console.print(f"[bold red]==> {self.prefix}: {escape(message)}[/]")
