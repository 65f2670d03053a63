"""Image and project commands: destroy-image, inspect."""

from __future__ import annotations

from typing import Optional

import click
from rich.table import Table

from ..artifact import Artifact
from ..errors import GceBakeError
from ._common import client_for, console, load_or_exit, setup_logging

_CONFIG_OPTION = click.option(
    "--config", "config_file", required=True,
    type=click.Path(dir_okay=False),
    help="Build file supplying project, zone and credentials.",
)


def _new_table() -> Table:
    return Table(show_header=True, header_style="bold", box=None, padding=(0, 2))


def register_image_commands(main: click.Group) -> None:
    """Register the destroy-image command and the inspect group."""

    @main.command("destroy-image")
    @click.argument("name")
    @_CONFIG_OPTION
    @click.option("--verbose", "-v", is_flag=True, help="Log at DEBUG level.")
    def destroy_image(name: str, config_file: str, verbose: bool):
        """Delete an image and wait for the deletion to finish.

        Examples:

            gcebake destroy-image web-1700000000 --config web.yaml
        """
        setup_logging(verbose=verbose)
        config = load_or_exit(config_file)
        client = client_for(config)
        artifact = Artifact(name, client, state_timeout=config.state_timeout)
        try:
            artifact.destroy()
        except GceBakeError as exc:
            console.print(f"\n  [bold red]Could not destroy image {name}:[/] {exc}\n", highlight=False)
            raise SystemExit(1)
        console.print(f"\n  [green]Image {name} destroyed.[/]\n")

    @main.group()
    def inspect():
        """Look up zones, machine types and images for a project."""

    @inspect.command("zones")
    @_CONFIG_OPTION
    def inspect_zones(config_file: str):
        """List zones visible to the build project."""
        config = load_or_exit(config_file)
        client = client_for(config)
        try:
            zones = client.list_zones()
        except GceBakeError as exc:
            console.print(f"[red]{exc}[/]", highlight=False)
            raise SystemExit(1)

        table = _new_table()
        table.add_column("Zone", style="bold cyan")
        table.add_column("Status")
        for zone in zones:
            style = "green" if zone.status == "UP" else "red"
            table.add_row(zone.name, f"[{style}]{zone.status}[/]")
        console.print(table)

    @inspect.command("machine-types")
    @_CONFIG_OPTION
    @click.option("--zone", default=None, help="Zone to list (default: the build zone).")
    def inspect_machine_types(config_file: str, zone: Optional[str]):
        """List machine types in a zone, flagging retired ones."""
        config = load_or_exit(config_file)
        client = client_for(config)
        target = zone or config.zone
        try:
            types = client.list_machine_types(target)
        except GceBakeError as exc:
            console.print(f"[red]{exc}[/]", highlight=False)
            raise SystemExit(1)

        table = _new_table()
        table.add_column("Machine type", style="bold cyan")
        table.add_column("State")
        for mt in types:
            state = f"[yellow]{mt.deprecation_state}[/]" if mt.deprecated else "[green]ACTIVE[/]"
            table.add_row(mt.name, state)
        console.print(table)

    @inspect.command("images")
    @_CONFIG_OPTION
    @click.option("--project", default=None, help="Project to list (default: the build project).")
    def inspect_images(config_file: str, project: Optional[str]):
        """List images owned by a project."""
        config = load_or_exit(config_file)
        client = client_for(config)
        try:
            images = client.list_images(project)
        except GceBakeError as exc:
            console.print(f"[red]{exc}[/]", highlight=False)
            raise SystemExit(1)

        table = _new_table()
        table.add_column("Image", style="bold cyan")
        table.add_column("Project", style="dim")
        table.add_column("Status")
        for image in images:
            table.add_row(image.name, image.project, image.status)
        console.print(table)
