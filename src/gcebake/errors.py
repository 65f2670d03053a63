"""
Error classes for gcebake builds.

Every failure a build can hit maps to one of these types:

- ConfigError: missing/invalid settings, found before any step runs
- ResolutionError: a named zone, image, machine type or network is
  missing or deprecated
- TransportError: the call to the Compute API itself failed
- OperationError: the API accepted a request but the operation finished
  with an error payload attached
- PollTimeoutError: a wait loop ran past its budget
- RemoteCommandError: a command inside the guest exited non-zero

Steps catch these, record them on the build state, and halt. The
runner unwinds and the builder re-raises the recorded error.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional, Sequence


class GceBakeError(Exception):
    """Base exception for gcebake."""
    pass


class ConfigError(GceBakeError):
    """One or more configuration problems, reported together."""

    def __init__(self, errors: Sequence[str]) -> None:
        self.errors: List[str] = list(errors)
        if len(self.errors) == 1:
            message = self.errors[0]
        else:
            message = f"{len(self.errors)} configuration errors:\n" + "\n".join(
                f"  * {e}" for e in self.errors
            )
        super().__init__(message)


class ResolutionError(GceBakeError):
    """A named resource could not be resolved to a usable locator."""

    def __init__(self, kind: str, name: str, detail: str = "") -> None:
        self.kind = kind
        self.name = name
        message = f"{kind} does not exist: {name}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class ResourceNotFoundError(ResolutionError):
    """The provider reported the resource as not found."""
    pass


class DeprecatedResourceError(ResolutionError):
    """The resource exists but is deprecated and must not be used."""

    def __init__(self, kind: str, name: str, state: str = "DEPRECATED") -> None:
        self.kind = kind
        self.name = name
        self.state = state
        GceBakeError.__init__(
            self, f"{kind} is not available: {name} is {state.lower()}"
        )


class TransportError(GceBakeError):
    """The underlying Compute API call failed."""
    pass


@dataclass
class OperationErrorDetail:
    """One entry of an operation's error payload."""

    code: str = ""
    message: str = ""
    location: str = ""

    def __str__(self) -> str:
        parts = [p for p in (self.code, self.message) if p]
        text = ": ".join(parts) or "unknown error"
        if self.location:
            text = f"{text} (at {self.location})"
        return text


class OperationError(GceBakeError):
    """An operation reached DONE with a non-empty error payload."""

    def __init__(
        self,
        operation_name: str,
        details: Sequence[OperationErrorDetail],
    ) -> None:
        self.operation_name = operation_name
        self.details: List[OperationErrorDetail] = list(details)
        joined = "; ".join(str(d) for d in self.details)
        super().__init__(f"operation {operation_name} failed: {joined}")


class PollTimeoutError(GceBakeError):
    """A wait loop exceeded its configured budget."""

    def __init__(self, what: str, timeout: timedelta) -> None:
        self.what = what
        self.timeout = timeout
        super().__init__(
            f"timed out after {timeout.total_seconds():g}s waiting for {what}"
        )


class RemoteCommandError(GceBakeError):
    """A command run on the instance exited with a non-zero status."""

    def __init__(self, command: str, exit_status: Optional[int]) -> None:
        self.command = command
        self.exit_status = exit_status
        if exit_status is None:
            message = f"remote command did not report an exit status: {command}"
        else:
            message = f"remote command exited {exit_status}: {command}"
        super().__init__(message)


class CancelledError(GceBakeError):
    """The build was cancelled before this point was reached."""

    def __init__(self, message: str = "build cancelled") -> None:
        super().__init__(message)


class StateError(GceBakeError, RuntimeError):
    """Internal-consistency fault: a pipeline invariant did not hold.

    Raised when a step reads a state value an earlier step should have
    written, or when a clean run finishes without producing an image.
    These indicate a bug in the pipeline, not a user error.
    """
    pass


class BuildStepError(GceBakeError):
    """A step halted the build; wraps the underlying failure.

    Attributes:
        step: Name of the halting step.
        cause: The typed error that made it halt (also ``__cause__``).
    """

    def __init__(self, step: str, message: str, cause: BaseException) -> None:
        self.step = step
        self.cause = cause
        super().__init__(f"{message}: {cause}")
        self.__cause__ = cause
