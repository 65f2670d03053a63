"""Run the configured shell provisioners on the instance."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..errors import CancelledError, GceBakeError
from ..models import StepAction
from .base import halt

if TYPE_CHECKING:
    from ..state import BuildState


class StepProvision:
    """Execute each ``provisioners`` command in order, stopping at the first failure."""

    name = "provision"

    def run(self, state: BuildState) -> StepAction:
        comm = state.require("communicator")
        commands = state.config.provisioners
        if not commands:
            state.ui.say("No provisioners configured")
            return StepAction.CONTINUE

        for command in commands:
            if state.cancelled:
                return halt(state, self.name, "Error provisioning", CancelledError())
            state.ui.say(f"Provisioning with shell command: {command}")
            try:
                comm.run_checked(command, on_output=state.ui.message)
            except GceBakeError as exc:
                return halt(state, self.name, "Error provisioning", exc)
        return StepAction.CONTINUE

    def cleanup(self, state: BuildState) -> None:
        pass
