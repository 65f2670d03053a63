"""
gcebake CLI: build and manage Compute Engine images.

Each command group lives in its own module and is attached to the
main Click group through a register function.

Entry point: gcebake.cli:main
"""

from __future__ import annotations

import click

from .. import __version__


@click.group()
@click.version_option(version=__version__, prog_name="gcebake")
def main():
    """gcebake: bake Compute Engine images from a disposable VM.

    Boots a temporary instance, provisions it over SSH, captures its
    disk as an image, and deletes the instance again.
    """


# ---------------------------------------------------------------------------
# Register all command groups/commands from modular files
# ---------------------------------------------------------------------------

from .build import register_build_commands
from .images import register_image_commands

register_build_commands(main)
register_image_commands(main)
