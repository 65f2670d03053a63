"""
Step contract and the helpers every step shares.

A step is anything with a ``name`` and the two operations below; there
is no base class to inherit from. Shared behaviour (halting with a
recorded error, waiting on operations) lives in plain functions.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from ..errors import BuildStepError
from ..models import Operation, StepAction
from ..waiters import wait_for_operation

if TYPE_CHECKING:
    from ..state import BuildState

logger = logging.getLogger(__name__)


@runtime_checkable
class Step(Protocol):
    """One unit of the build pipeline."""

    name: str

    def run(self, state: BuildState) -> StepAction:
        """Do the work; return CONTINUE or record an error and HALT."""
        ...

    def cleanup(self, state: BuildState) -> None:
        """Undo whatever ``run`` created. Must not raise."""
        ...


def halt(state: BuildState, step: str, message: str, cause: BaseException) -> StepAction:
    """Record ``cause`` as the build error, report it, and halt.

    Args:
        state: The build state.
        step: Name of the halting step.
        message: Context such as "Error creating instance".
        cause: The underlying failure.

    Returns:
        StepAction.HALT, for ``return halt(...)``.
    """
    err = BuildStepError(step, message, cause)
    state.error = err
    state.ui.error(str(err))
    return StepAction.HALT


def await_operation(state: BuildState, operation: Operation, cancellable: bool = True) -> Operation:
    """Block until ``operation`` finishes successfully.

    Uses the build's state timeout, clock and cancellation event.
    Cleanup passes ``cancellable=False`` so a cancelled build still
    waits for its teardown to finish.
    """
    return wait_for_operation(
        state.client,
        operation,
        state.config.state_timeout,
        interval=state.poll_interval,
        clock=state.clock,
        cancel_event=state.cancel_event if cancellable else None,
    )
