"""Shared state threaded through every step of a build.

BuildState replaces a loosely-typed key/value bag with named fields.
Steps read earlier outputs with ``require`` and publish their own
with ``put``. A published value is never overwritten or removed
during a run; the error slot is the only exception, since the
halting step is the one that fills it.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, List, Optional

from .config import BuildConfig
from .errors import StateError
from .models import Operation
from .ui import BuildUi
from .waiters import DEFAULT_POLL_INTERVAL, Clock, SystemClock

# Fields steps may publish with put().
_OUTPUT_FIELDS = frozenset({
    "ssh_private_key",
    "ssh_public_key",
    "instance_name",
    "create_operation",
    "instance_ip",
    "communicator",
    "image_name",
    "delete_operation",
})


@dataclass
class BuildState:
    """Typed context for one pipeline run."""

    config: BuildConfig
    client: Any
    ui: BuildUi
    clock: Clock = field(default_factory=SystemClock)
    poll_interval: float = DEFAULT_POLL_INTERVAL
    cancel_event: threading.Event = field(default_factory=threading.Event)

    ssh_private_key: Optional[str] = None
    ssh_public_key: Optional[str] = None
    instance_name: Optional[str] = None
    create_operation: Optional[Operation] = None
    instance_ip: Optional[str] = None
    communicator: Optional[Any] = None
    image_name: Optional[str] = None
    delete_operation: Optional[Operation] = None

    error: Optional[BaseException] = None
    cleanup_errors: List[BaseException] = field(default_factory=list)

    def put(self, name: str, value: Any) -> None:
        """Publish a step output.

        Raises:
            StateError: If ``name`` is not an output field or was
                already published.
        """
        if name not in _OUTPUT_FIELDS:
            raise StateError(f"{name!r} is not a build output")
        if getattr(self, name) is not None:
            raise StateError(f"{name!r} was already set by an earlier step")
        setattr(self, name, value)

    def require(self, name: str) -> Any:
        """Read a value an earlier step must have published.

        Raises:
            StateError: If the value is missing. Step ordering
                guarantees presence, so this means a pipeline bug.
        """
        value = getattr(self, name, None)
        if value is None:
            raise StateError(f"build state is missing {name!r}")
        return value

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()
