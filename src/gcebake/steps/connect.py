"""Wait for SSH on the instance and open a session."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable

from ..errors import GceBakeError
from ..models import StepAction
from ..ssh import SSHCommunicator
from ..waiters import poll_until
from .base import halt

if TYPE_CHECKING:
    from ..state import BuildState

logger = logging.getLogger(__name__)

SSH_RETRY_INTERVAL = 5.0  # seconds between connection attempts

CommunicatorFactory = Callable[..., Any]


class StepConnectSSH:
    """Retry until a login with the generated key succeeds.

    Args:
        communicator_factory: Called as ``factory(host, port, username,
            private_key)``; returns an object with ``is_reachable``,
            ``try_login``, ``run`` and ``run_checked``.
    """

    name = "connect-ssh"

    def __init__(self, communicator_factory: CommunicatorFactory = SSHCommunicator) -> None:
        self._factory = communicator_factory

    def run(self, state: BuildState) -> StepAction:
        config = state.config
        host = state.require("instance_ip")
        private_key = state.require("ssh_private_key")

        comm = self._factory(host, config.ssh_port, config.ssh_username, private_key)

        state.ui.say(f"Waiting for SSH to become available on {host}...")
        try:
            poll_until(
                lambda: comm.is_reachable() and comm.try_login(),
                bool,
                f"SSH on {host}:{config.ssh_port}",
                config.ssh_timeout,
                interval=SSH_RETRY_INTERVAL,
                clock=state.clock,
                cancel_event=state.cancel_event,
            )
        except GceBakeError as exc:
            close = getattr(comm, "close", None)
            if close is not None:
                close()
            return halt(state, self.name, "Error waiting for SSH", exc)

        state.ui.say("Connected to SSH!")
        logger.info("SSH session open to %s@%s", config.ssh_username, host)
        state.put("communicator", comm)
        return StepAction.CONTINUE

    def cleanup(self, state: BuildState) -> None:
        # The builder closes the session once the whole run is over.
        pass
