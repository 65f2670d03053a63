"""
Builder: assembles the step pipeline for one image build and runs it.

Usage:
    config = load_config("web.yaml")
    builder = Builder(config)
    artifact = builder.run()
    print(artifact)  # A disk image was created: web-1700000000
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, List, Optional

from .artifact import Artifact
from .compute import ComputeClient
from .config import BuildConfig
from .credentials import load_credentials
from .errors import CancelledError, ConfigError, StateError
from .runner import BasicRunner, DebugRunner, PauseFn
from .ssh import SSHCommunicator
from .state import BuildState
from .steps import (
    Step,
    StepConnectSSH,
    StepCreateImage,
    StepCreateInstance,
    StepCreateSSHKey,
    StepDeleteInstance,
    StepInstanceInfo,
    StepProvision,
    StepUpdateGsutil,
)
from .ui import BuildUi
from .waiters import DEFAULT_POLL_INTERVAL, Clock, SystemClock

logger = logging.getLogger(__name__)


def _no_pause(step: Step, state: BuildState) -> None:
    pass


class Builder:
    """Run the full create/provision/capture/destroy pipeline.

    Args:
        config: Validated build configuration.
        client: Resource client; built from ``config.account_file`` (or
            Application Default Credentials) when omitted.
        ui: Output sink (default: a BuildUi on stderr).
        clock: Time source for every wait loop.
        communicator_factory: Creates the SSH session; see StepConnectSSH.
        pause_fn: Called after every step when ``config.debug`` is set.
        poll_interval: Seconds between operation status fetches.
    """

    def __init__(
        self,
        config: BuildConfig,
        client: Any = None,
        ui: Optional[BuildUi] = None,
        clock: Optional[Clock] = None,
        communicator_factory: Optional[Callable[..., Any]] = None,
        pause_fn: Optional[PauseFn] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self.config = config
        self.client = client
        self.ui = ui or BuildUi()
        self.clock = clock or SystemClock()
        self.communicator_factory = communicator_factory or SSHCommunicator
        self.pause_fn = pause_fn
        self.poll_interval = poll_interval
        self.runner: Optional[BasicRunner] = None
        self.state: Optional[BuildState] = None
        self._cancel_event = threading.Event()

    def prepare(self) -> None:
        """Check referenced files and build the resource client.

        Raises:
            ConfigError: If files are missing or credentials are unusable.
        """
        problems = self.config.file_errors()
        if problems:
            raise ConfigError(problems)
        if self.client is None:
            credentials, _ = load_credentials(self.config.account_file)
            self.client = ComputeClient(self.config.project_id, credentials=credentials)

    def steps(self) -> List[Step]:
        """The pipeline, in execution order."""
        steps: List[Step] = [
            StepCreateSSHKey(),
            StepCreateInstance(),
            StepInstanceInfo(),
            StepConnectSSH(self.communicator_factory),
            StepProvision(),
        ]
        if self.config.update_gsutil:
            steps.append(StepUpdateGsutil())
        steps.append(StepCreateImage())
        steps.append(StepDeleteInstance())
        return steps

    def run(self) -> Artifact:
        """Execute the pipeline and return the captured image.

        Returns:
            The Artifact for the new image.

        Raises:
            GceBakeError: The error recorded by the halting step. Cleanup
                problems never replace it; see ``cleanup_errors``.
            StateError: A clean run finished without an image name.
            CancelledError: cancel() was called before any step ran.
        """
        self.prepare()
        if self._cancel_event.is_set():
            raise CancelledError()

        state = BuildState(
            config=self.config,
            client=self.client,
            ui=self.ui,
            clock=self.clock,
            poll_interval=self.poll_interval,
            cancel_event=self._cancel_event,
        )
        self.state = state

        steps = self.steps()
        if self.config.debug:
            self.runner = DebugRunner(steps, self.pause_fn or _no_pause)
        else:
            self.runner = BasicRunner(steps)

        logger.info(
            "Building image %s in %s/%s", self.config.image_name,
            self.config.project_id, self.config.zone,
        )
        try:
            _, error = self.runner.run(state)
        finally:
            self._close_session(state)

        if error is not None:
            raise error
        if state.image_name is None:
            raise StateError("build finished without producing an image")

        return Artifact(
            state.image_name,
            self.client,
            state_timeout=self.config.state_timeout,
            clock=self.clock,
        )

    def cancel(self) -> None:
        """Stop the build at the next step boundary or poll iteration.

        Safe to call before or during prepare(); the run then stops
        before creating anything.
        """
        logger.info("Cancel requested")
        self._cancel_event.set()

    @property
    def cleanup_errors(self) -> List[BaseException]:
        """Problems hit while unwinding; resources may need manual removal."""
        if self.state is None:
            return []
        return list(self.state.cleanup_errors)

    @staticmethod
    def _close_session(state: BuildState) -> None:
        comm = state.communicator
        if comm is None:
            return
        close = getattr(comm, "close", None)
        if close is not None:
            try:
                close()
            except OSError as exc:
                logger.warning("Could not close SSH session: %s", exc)
