"""Bundle the instance disk, upload it, and register it as an image."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..errors import GceBakeError
from ..models import StepAction
from ..ssh import shell_join
from .base import await_operation, halt

if TYPE_CHECKING:
    from ..state import BuildState

logger = logging.getLogger(__name__)

IMAGE_BUNDLE_COMMAND = "/usr/share/imagebundle/image_bundle.py"
STORAGE_URL = "https://storage.googleapis.com"


def archive_name(image_name: str) -> str:
    return f"{image_name}.image.tar.gz"


def bundle_command(image_name: str, bucket: str) -> str:
    """Command that bundles ``/`` into a tarball and uploads it to ``bucket``."""
    return shell_join(
        IMAGE_BUNDLE_COMMAND,
        "-r", "/",
        "-o", "/tmp/",
        "--output_file_name", archive_name(image_name),
        "-b", bucket,
    )


def archive_url(image_name: str, bucket: str) -> str:
    return f"{STORAGE_URL}/{bucket}/{archive_name(image_name)}"


class StepCreateImage:
    """Capture the instance disk as ``config.image_name``.

    The image has to be bundled from inside the guest and pushed to a
    Cloud Storage bucket before the project can import it.
    """

    name = "create-image"

    def run(self, state: BuildState) -> StepAction:
        client = state.client
        config = state.config
        comm = state.require("communicator")

        state.ui.say("Creating image...")
        try:
            comm.run_checked(
                bundle_command(config.image_name, config.bucket_name),
                on_output=state.ui.message,
            )
        except GceBakeError as exc:
            return halt(state, self.name, "Error creating image", exc)

        state.ui.say("Adding image to the project...")
        source = archive_url(config.image_name, config.bucket_name)
        try:
            operation = client.create_image(
                config.image_name, config.image_description, source,
            )
            state.ui.say("Waiting for image to become available...")
            await_operation(state, operation)
        except GceBakeError as exc:
            return halt(state, self.name, "Error creating image", exc)

        logger.info("Image %s created from %s", config.image_name, source)
        state.put("image_name", config.image_name)
        return StepAction.CONTINUE

    def cleanup(self, state: BuildState) -> None:
        pass
