"""Bring gsutil on the instance up to date before bundling."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..errors import GceBakeError
from ..models import StepAction
from .base import halt

if TYPE_CHECKING:
    from ..state import BuildState

# The bundling tool shells out to gsutil, which stops at an interactive
# "update available" prompt unless it is already current.
GSUTIL_UPDATE_COMMAND = "/usr/local/bin/gsutil update -n -f"


class StepUpdateGsutil:
    """Run ``gsutil update`` on the instance."""

    name = "update-gsutil"

    def run(self, state: BuildState) -> StepAction:
        comm = state.require("communicator")
        state.ui.say("Updating gsutil...")
        try:
            comm.run_checked(GSUTIL_UPDATE_COMMAND, on_output=state.ui.message)
        except GceBakeError as exc:
            return halt(state, self.name, "Error updating gsutil", exc)
        return StepAction.CONTINUE

    def cleanup(self, state: BuildState) -> None:
        pass
