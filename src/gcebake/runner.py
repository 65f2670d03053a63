"""
Step runner: executes build steps in order and unwinds on halt.

Flow:
  1. Run each step in order against the shared BuildState
  2. Stop at the first HALT (a cancellation or an exception from a
     step counts as one)
  3. On halt, call cleanup() on every step that returned CONTINUE,
     newest first
  4. Return the state and the error the halting step recorded

A run where every step continues calls no cleanup at all; releasing
the instance after a successful capture is a step of its own. A
failing cleanup is logged and recorded on the state, and the unwind
carries on with the remaining steps.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence, Tuple

from .errors import CancelledError, StateError
from .models import StepAction
from .state import BuildState
from .steps.base import Step

logger = logging.getLogger(__name__)

PauseFn = Callable[[Step, BuildState], None]


class BasicRunner:
    """Run steps sequentially with reverse-order cleanup.

    Args:
        steps: Steps in execution order.
    """

    def __init__(self, steps: Sequence[Step]) -> None:
        self.steps: List[Step] = list(steps)
        self._state: Optional[BuildState] = None

    def run(self, state: BuildState) -> Tuple[BuildState, Optional[BaseException]]:
        """Execute the pipeline.

        Args:
            state: Build state shared by all steps.

        Returns:
            Tuple of (state, error). ``error`` is None after a clean run.
        """
        self._state = state
        completed: List[Step] = []

        try:
            halted = self._run_steps(state, completed)
        except BaseException:
            # Interrupted from outside the steps: still release what exists.
            self._unwind(completed, state)
            self._state = None
            raise

        if halted:
            self._unwind(completed, state)
        self._state = None
        return state, state.error

    def _run_steps(self, state: BuildState, completed: List[Step]) -> bool:
        """Run forward until a halt; return True if the build halted."""
        for step in self.steps:
            if state.cancelled:
                state.error = state.error or CancelledError()
                return True

            logger.debug("Running step %s", step.name)
            try:
                action = step.run(state)
            except Exception as exc:
                logger.exception("Step %s raised", step.name)
                state.error = exc
                return True

            if action == StepAction.HALT:
                logger.info("Step %s halted the build", step.name)
                if state.error is None:
                    state.error = StateError(
                        f"step {step.name} halted without recording an error"
                    )
                return True

            completed.append(step)
            self._after_step(step, state)
        return False

    def _after_step(self, step: Step, state: BuildState) -> None:
        """Hook run after each CONTINUE; no-op for the basic runner."""

    def _unwind(self, completed: List[Step], state: BuildState) -> None:
        for step in reversed(completed):
            logger.debug("Cleaning up step %s", step.name)
            try:
                step.cleanup(state)
            except Exception as exc:
                logger.error("Cleanup of step %s failed: %s", step.name, exc)
                state.ui.error(f"Cleanup of step {step.name} failed: {exc}")
                state.cleanup_errors.append(exc)

    def cancel(self) -> None:
        """Ask the running build to stop.

        Takes effect at the next step boundary or poll iteration; a call
        already in flight is not interrupted.
        """
        if self._state is not None:
            logger.info("Cancelling build")
            self._state.cancel_event.set()


class DebugRunner(BasicRunner):
    """BasicRunner that pauses after every successful step.

    Args:
        steps: Steps in execution order.
        pause_fn: Called as ``pause_fn(step, state)`` after each step
            that returned CONTINUE; returns when the user resumes.
    """

    def __init__(self, steps: Sequence[Step], pause_fn: PauseFn) -> None:
        super().__init__(steps)
        self.pause_fn = pause_fn

    def _after_step(self, step: Step, state: BuildState) -> None:
        self.pause_fn(step, state)
