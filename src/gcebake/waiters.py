"""
Polling loops for long-running operations and instance state.

Compute Engine answers every mutating call with an operation handle.
``wait_for_operation_state`` polls that handle until it reaches the
target status or the budget runs out.

An operation that reaches DONE has *finished*, not necessarily
*succeeded*: a DONE operation with an error payload is raised as
OperationError. Transport failures while fetching are not retried.

Time is read through an injectable Clock so tests can run these loops
without sleeping.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import timedelta
from typing import Any, Callable, Optional, Protocol, TypeVar

from .errors import CancelledError, OperationError, PollTimeoutError
from .models import Instance, InstanceStatus, Operation, OperationScope, OperationStatus

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 2.0  # seconds between status fetches

T = TypeVar("T")


class Clock(Protocol):
    """Monotonic time source used by the poll loops."""

    def monotonic(self) -> float: ...

    def sleep(self, seconds: float) -> None: ...


class SystemClock:
    """Real wall-clock time."""

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)


def poll_until(
    fetch: Callable[[], T],
    is_done: Callable[[T], bool],
    what: str,
    timeout: timedelta,
    interval: float = DEFAULT_POLL_INTERVAL,
    clock: Optional[Clock] = None,
    cancel_event: Optional[threading.Event] = None,
) -> T:
    """Call ``fetch`` every ``interval`` seconds until ``is_done`` holds.

    Args:
        fetch: Returns the latest observation. Exceptions propagate.
        is_done: Predicate on an observation.
        what: Description used in timeout messages.
        timeout: Hard deadline for the whole wait.
        interval: Seconds to sleep between fetches.
        clock: Time source (default: SystemClock).
        cancel_event: When set, the loop stops before its next fetch.

    Returns:
        The first observation for which ``is_done`` is true.

    Raises:
        PollTimeoutError: If the deadline passes first.
        CancelledError: If ``cancel_event`` is set.
    """
    clock = clock or SystemClock()
    deadline = clock.monotonic() + timeout.total_seconds()
    attempts = 0

    while True:
        if cancel_event is not None and cancel_event.is_set():
            raise CancelledError(f"cancelled while waiting for {what}")

        observed = fetch()
        attempts += 1
        if is_done(observed):
            logger.debug("%s reached after %d fetches", what, attempts)
            return observed

        remaining = deadline - clock.monotonic()
        if remaining <= 0:
            raise PollTimeoutError(what, timeout)
        clock.sleep(min(interval, remaining))


def _check_payload(operation: Operation) -> Operation:
    if operation.failed:
        raise OperationError(operation.name, operation.errors)
    return operation


def wait_for_operation_state(
    client: Any,
    target: OperationStatus,
    scope: OperationScope,
    name: str,
    timeout: timedelta,
    zone: Optional[str] = None,
    interval: float = DEFAULT_POLL_INTERVAL,
    clock: Optional[Clock] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Operation:
    """Wait for a named operation to reach ``target``.

    Args:
        client: ComputeClient (or anything with get_zone_operation and
            get_global_operation).
        target: Status to wait for, normally DONE.
        scope: ZONE or GLOBAL.
        name: Operation name.
        timeout: Hard deadline.
        zone: Required for zone-scoped operations.

    Returns:
        The operation as last fetched.

    Raises:
        OperationError: The operation is DONE with an error payload.
        PollTimeoutError: The deadline passed.
        TransportError: A status fetch failed.
    """
    if scope == OperationScope.ZONE:
        if not zone:
            raise ValueError(f"zone operation {name} needs a zone")
        fetch = lambda: client.get_zone_operation(zone, name)  # noqa: E731
    else:
        fetch = lambda: client.get_global_operation(name)  # noqa: E731

    def reached(op: Operation) -> bool:
        # DONE is terminal: it ends the wait whatever the target was.
        return op.status == target or op.done

    operation = poll_until(
        fetch, reached, f"operation {name} to be {target.value}",
        timeout, interval=interval, clock=clock, cancel_event=cancel_event,
    )
    return _check_payload(operation)


def wait_for_operation(
    client: Any,
    operation: Operation,
    timeout: timedelta,
    interval: float = DEFAULT_POLL_INTERVAL,
    clock: Optional[Clock] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Operation:
    """Wait for an accepted operation to finish successfully."""
    if operation.done:
        return _check_payload(operation)
    return wait_for_operation_state(
        client, OperationStatus.DONE, operation.scope, operation.name, timeout,
        zone=operation.zone, interval=interval, clock=clock,
        cancel_event=cancel_event,
    )


def wait_for_instance_state(
    client: Any,
    zone: str,
    name: str,
    target: InstanceStatus,
    timeout: timedelta,
    interval: float = DEFAULT_POLL_INTERVAL,
    clock: Optional[Clock] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Instance:
    """Wait for an instance to report ``target`` status."""
    def reached(instance: Instance) -> bool:
        logger.debug("Instance %s is %s", name, instance.status.value)
        return instance.status == target

    return poll_until(
        lambda: client.get_instance(zone, name),
        reached, f"instance {name} to be {target.value}",
        timeout, interval=interval, clock=clock, cancel_event=cancel_event,
    )
