"""Create the temporary build instance and delete it again on unwind."""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Optional

from ..credentials import INSTANCE_SCOPES
from ..errors import GceBakeError, OperationError
from ..models import InstanceConfig, StepAction
from .base import await_operation, halt

if TYPE_CHECKING:
    from ..state import BuildState

logger = logging.getLogger(__name__)

INSTANCE_DESCRIPTION = "New instance created by gcebake"


def new_instance_name() -> str:
    """Return a time-ordered, GCE-safe instance name."""
    return f"gcebake-{uuid.uuid1().hex}"


class StepCreateInstance:
    """Resolve zone, image, machine type and network, then insert the instance.

    Publishes ``instance_name`` and the accepted ``create_operation``;
    waiting for it is left to StepInstanceInfo.
    """

    name = "create-instance"

    def __init__(self) -> None:
        self.instance_name: Optional[str] = None

    def run(self, state: BuildState) -> StepAction:
        client = state.client
        config = state.config
        public_key = state.require("ssh_public_key")

        state.ui.say("Creating instance...")
        name = new_instance_name()

        try:
            zone = client.get_zone(config.zone)
            image = client.get_image(
                config.source_image, fallback_projects=config.image_fallback_projects,
            )
            machine_type = client.get_machine_type(config.machine_type, zone.name)
            network = client.get_network(config.network)
        except GceBakeError as exc:
            return halt(state, self.name, "Error creating instance", exc)

        metadata = dict(config.metadata)
        metadata["sshKeys"] = f"{config.ssh_username}:{public_key.strip()}"

        instance_config = InstanceConfig(
            name=name,
            description=INSTANCE_DESCRIPTION,
            image=image.self_link,
            machine_type=machine_type.self_link,
            network=network.self_link,
            external_ip=True,
            metadata=metadata,
            tags=list(config.tags),
            service_account_email="default",
            service_account_scopes=list(INSTANCE_SCOPES),
        )

        try:
            operation = client.create_instance(zone.name, instance_config)
        except GceBakeError as exc:
            return halt(state, self.name, "Error creating instance", exc)

        logger.info(
            "Instance %s accepted (operation %s, image %s)",
            name, operation.name, image.self_link,
        )
        self.instance_name = name
        state.put("instance_name", name)
        state.put("create_operation", operation)
        return StepAction.CONTINUE

    def cleanup(self, state: BuildState) -> None:
        if self.instance_name is None:
            return

        zone = state.config.zone
        ui = state.ui
        try:
            if not self._confirm_pending_delete(state):
                ui.say("Destroying instance...")
                operation = state.client.delete_instance(zone, self.instance_name)
                ui.say("Waiting for the instance to be deleted...")
                await_operation(state, operation, cancellable=False)
        except GceBakeError as exc:
            logger.error("Failed to delete instance %s: %s", self.instance_name, exc)
            ui.error(
                "Error destroying instance. Please destroy it manually: "
                f"{self.instance_name} ({exc})"
            )
            state.cleanup_errors.append(exc)
            return

        logger.info("Deleted instance %s", self.instance_name)
        self.instance_name = None

    def _confirm_pending_delete(self, state: BuildState) -> bool:
        """Wait on a delete that delete-instance already started.

        Returns False when there is none, or when it finished with an
        error and a fresh delete is worth a try.
        """
        operation = state.delete_operation
        if operation is None:
            return False
        state.ui.say("Waiting for the instance to be deleted...")
        try:
            await_operation(state, operation, cancellable=False)
        except OperationError as exc:
            logger.warning("Delete of %s failed, retrying: %s", self.instance_name, exc)
            return False
        return True
