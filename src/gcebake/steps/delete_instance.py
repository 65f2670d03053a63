"""Release the build instance once its disk has been captured."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..errors import GceBakeError
from ..models import StepAction
from .base import await_operation, halt

if TYPE_CHECKING:
    from ..state import BuildState

logger = logging.getLogger(__name__)


class StepDeleteInstance:
    """Delete the instance and wait for the delete to finish.

    Runs as the last forward step. The accepted delete is published as
    ``delete_operation``; if the step halts after that, the unwind in
    StepCreateInstance.cleanup waits on it instead of deleting again.
    """

    name = "delete-instance"

    def run(self, state: BuildState) -> StepAction:
        instance_name = state.require("instance_name")
        zone = state.config.zone

        state.ui.say("Deleting instance...")
        try:
            operation = state.client.delete_instance(zone, instance_name)
            state.put("delete_operation", operation)
            await_operation(state, operation)
        except GceBakeError as exc:
            return halt(state, self.name, "Error deleting instance", exc)

        logger.info("Deleted instance %s after capture", instance_name)
        state.ui.message("Instance has been deleted!")
        return StepAction.CONTINUE

    def cleanup(self, state: BuildState) -> None:
        pass
