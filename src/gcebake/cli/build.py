"""Build commands: build, validate."""

from __future__ import annotations

import signal
from pathlib import Path
from typing import Optional

import click

from ..builder import Builder
from ..errors import ConfigError, GceBakeError
from ..ui import BuildUi
from ._common import (
    console,
    load_or_exit,
    pause_for_debug,
    print_config_error,
    setup_logging,
)


def register_build_commands(main: click.Group) -> None:
    """Register the build and validate commands."""

    @main.command()
    @click.argument("config_file", type=click.Path(dir_okay=False))
    @click.option("--debug", is_flag=True, help="Pause after every step.")
    @click.option("--verbose", "-v", is_flag=True, help="Log at DEBUG level.")
    @click.option(
        "--log-file", type=click.Path(dir_okay=False, path_type=Path),
        default=None, help="Also write the full log to this file.",
    )
    def build(config_file: str, debug: bool, verbose: bool, log_file: Optional[Path]):
        """Build an image from a YAML build file.

        Creates a temporary instance, runs the provisioners on it,
        captures its disk as an image and deletes the instance.
        Ctrl-C stops the build and cleans up.

        Examples:

            gcebake build web.yaml
            gcebake build web.yaml --debug --log-file build.log
        """
        setup_logging(verbose=verbose, log_file=log_file)
        config = load_or_exit(config_file)
        if debug:
            config = config.model_copy(update={"debug": True})

        builder = Builder(
            config,
            ui=BuildUi(console=console),
            pause_fn=pause_for_debug,
        )

        def _interrupt(signum, frame):
            console.print("[yellow]Interrupt received, cancelling build...[/]")
            builder.cancel()

        previous = signal.signal(signal.SIGINT, _interrupt)
        try:
            artifact = builder.run()
        except ConfigError as exc:
            print_config_error(exc)
            raise SystemExit(1)
        except GceBakeError as exc:
            console.print(f"\n  [bold red]Build failed:[/] {exc}\n", highlight=False)
            _report_cleanup(builder)
            raise SystemExit(1)
        finally:
            signal.signal(signal.SIGINT, previous)

        _report_cleanup(builder)
        console.print(f"\n  [bold green]Build finished.[/] {artifact}", highlight=False)
        console.print(f"  [dim]builder:[/] {artifact.builder_id}\n")

    @main.command()
    @click.argument("config_file", type=click.Path(dir_okay=False))
    def validate(config_file: str):
        """Check a build file without touching the cloud.

        Every problem is reported at once.

        Examples:

            gcebake validate web.yaml
        """
        config = load_or_exit(config_file)
        console.print(
            f"\n  [bold green]Configuration OK[/]: image [cyan]{config.image_name}[/] "
            f"from [cyan]{config.source_image}[/] in {config.project_id}/{config.zone}\n",
            highlight=False,
        )


def _report_cleanup(builder: Builder) -> None:
    errors = builder.cleanup_errors
    if not errors:
        return
    console.print("  [bold yellow]Cleanup problems (resources may need manual removal):[/]")
    for exc in errors:
        console.print(f"    [yellow]*[/] {exc}", highlight=False)
    console.print()
