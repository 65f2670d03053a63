"""Shared utilities for all CLI command modules.

Provides the Rich console instance, logging setup, and the helpers
that turn configuration problems into a clean exit.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console

from ..compute import ComputeClient
from ..config import BuildConfig, load_config
from ..credentials import load_credentials
from ..errors import ConfigError

console = Console()

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"

# BuildUi mirrors every console line into this logger.
UI_LOGGER = "gcebake.ui"

_installed: List[logging.Handler] = []


def _skip_ui_mirror(record: logging.LogRecord) -> bool:
    return not (record.name == UI_LOGGER or record.name.startswith(UI_LOGGER + "."))


def setup_logging(verbose: bool = False, log_file: Optional[Path] = None) -> List[logging.Handler]:
    """Configure root logging once per invocation.

    The stderr handler leaves out ``gcebake.ui`` records, which the
    console already shows; the log file keeps them.

    Args:
        verbose: Log at DEBUG instead of WARNING.
        log_file: Also write every record to this file.

    Returns:
        The handlers added to the root logger.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    root = logging.getLogger()
    for old in _installed:
        root.removeHandler(old)
        old.close()
    _installed.clear()

    stream = logging.StreamHandler()
    stream.setFormatter(logging.Formatter(LOG_FORMAT))
    stream.setLevel(level)
    stream.addFilter(_skip_ui_mirror)
    _installed.append(stream)
    root.setLevel(level)

    if log_file is not None:
        handler = logging.FileHandler(log_file)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.setLevel(logging.DEBUG)
        _installed.append(handler)
        # The file always gets the full narrative.
        root.setLevel(logging.DEBUG)

    for handler in _installed:
        root.addHandler(handler)
    return list(_installed)


def print_config_error(exc: ConfigError) -> None:
    """Show every aggregated configuration problem."""
    console.print("\n  [bold red]Invalid configuration:[/]")
    for problem in exc.errors:
        console.print(f"    [red]*[/] {problem}", highlight=False)
    console.print()


def load_or_exit(path: str) -> BuildConfig:
    """Load a build file, exiting with status 1 on any problem."""
    try:
        return load_config(path)
    except ConfigError as exc:
        print_config_error(exc)
        raise SystemExit(1)


def client_for(config: BuildConfig) -> ComputeClient:
    """Build a ComputeClient from the config's credentials."""
    try:
        credentials, _ = load_credentials(config.account_file)
    except ConfigError as exc:
        print_config_error(exc)
        raise SystemExit(1)
    return ComputeClient(config.project_id, credentials=credentials)


def pause_for_debug(step, state) -> None:
    """Pause function used by ``gcebake build --debug``."""
    console.print(
        f"[bold yellow]Pausing after step[/] [cyan]{step.name}[/]. "
        "Press Enter to continue."
    )
    click.pause(info="")
