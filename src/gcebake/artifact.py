"""The image a successful build leaves behind."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, List, Optional

from . import BUILDER_ID
from .models import Operation
from .waiters import Clock, wait_for_operation

logger = logging.getLogger(__name__)


class Artifact:
    """A captured disk image plus the client that can delete it.

    Args:
        image_name: Name of the image in the build project.
        client: ComputeClient bound to that project.
        state_timeout: Budget for the delete operation.
        clock: Time source for polling (default: real time).
    """

    builder_id = BUILDER_ID

    def __init__(
        self,
        image_name: str,
        client: Any,
        state_timeout: timedelta = timedelta(minutes=5),
        clock: Optional[Clock] = None,
    ) -> None:
        self.image_name = image_name
        self._client = client
        self._state_timeout = state_timeout
        self._clock = clock

    @property
    def id(self) -> str:
        return self.image_name

    def files(self) -> List[str]:
        """Images live in the project, not on local disk."""
        return []

    def destroy(self) -> Operation:
        """Delete the image and wait until the deletion has finished.

        Returns:
            The completed delete operation.

        Raises:
            OperationError: The delete finished with an error payload.
            PollTimeoutError: The delete did not finish in time.
            TransportError: A call to the API failed.
        """
        logger.info("Destroying image: %s", self.image_name)
        operation = self._client.delete_image(self.image_name)
        return wait_for_operation(
            self._client, operation, self._state_timeout, clock=self._clock,
        )

    def __str__(self) -> str:
        return f"A disk image was created: {self.image_name}"

    def __repr__(self) -> str:
        return f"Artifact(image_name={self.image_name!r})"
