"""Wait for the new instance to come up and learn its address."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..errors import GceBakeError
from ..models import InstanceStatus, StepAction
from ..waiters import wait_for_instance_state
from .base import await_operation, halt

if TYPE_CHECKING:
    from ..state import BuildState


class StepInstanceInfo:
    """Poll the create operation to DONE, the instance to RUNNING, then read its NAT IP."""

    name = "instance-info"

    def run(self, state: BuildState) -> StepAction:
        client = state.client
        config = state.config
        instance_name = state.require("instance_name")
        operation = state.require("create_operation")

        state.ui.say("Waiting for the instance to be created...")
        try:
            await_operation(state, operation)
        except GceBakeError as exc:
            return halt(state, self.name, "Error creating instance", exc)

        state.ui.say("Waiting for the instance to start...")
        try:
            wait_for_instance_state(
                client, config.zone, instance_name, InstanceStatus.RUNNING,
                config.state_timeout,
                interval=state.poll_interval,
                clock=state.clock,
                cancel_event=state.cancel_event,
            )
        except GceBakeError as exc:
            return halt(state, self.name, "Error waiting for instance", exc)

        try:
            ip = client.get_nat_ip(config.zone, instance_name)
        except GceBakeError as exc:
            return halt(state, self.name, "Error retrieving instance nat ip address", exc)

        state.ui.message(f"IP: {ip}")
        state.put("instance_ip", ip)
        return StepAction.CONTINUE

    def cleanup(self, state: BuildState) -> None:
        pass
