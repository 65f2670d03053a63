"""
Pydantic models for Compute Engine resources as the pipeline sees them.

The Compute client converts API responses into these records so the
steps, the poller and the tests never depend on the wire types of
``google.cloud.compute_v1``.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .errors import OperationErrorDetail


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class StepAction(str, Enum):
    """Outcome of a single pipeline step."""

    CONTINUE = "continue"
    HALT = "halt"


class OperationScope(str, Enum):
    """Where a long-running operation lives."""

    ZONE = "zone"
    GLOBAL = "global"


class OperationStatus(str, Enum):
    """Operation status, ordered from accepted to terminal."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    DONE = "DONE"


class InstanceStatus(str, Enum):
    """Instance lifecycle states reported by Compute Engine."""

    PROVISIONING = "PROVISIONING"
    STAGING = "STAGING"
    RUNNING = "RUNNING"
    STOPPING = "STOPPING"
    STOPPED = "STOPPED"
    SUSPENDING = "SUSPENDING"
    SUSPENDED = "SUSPENDED"
    REPAIRING = "REPAIRING"
    TERMINATED = "TERMINATED"


# ---------------------------------------------------------------------------
# Resolved resources
# ---------------------------------------------------------------------------

class Zone(BaseModel):
    """A zone resolved to its locator."""

    name: str
    self_link: str
    status: str = "UP"


class MachineType(BaseModel):
    """A machine type resolved within a zone."""

    name: str
    self_link: str
    zone: str = ""
    deprecation_state: Optional[str] = Field(
        default=None,
        description="DEPRECATED, OBSOLETE or DELETED when the type is retired",
    )

    @property
    def deprecated(self) -> bool:
        return bool(self.deprecation_state)


class Network(BaseModel):
    """A VPC network resolved in the project."""

    name: str
    self_link: str


class Image(BaseModel):
    """A disk image resolved in some project."""

    name: str
    self_link: str
    project: str = ""
    status: str = "READY"


class Instance(BaseModel):
    """Observed state of an instance."""

    name: str
    zone: str
    status: InstanceStatus = InstanceStatus.PROVISIONING
    nat_ip: Optional[str] = None
    self_link: str = ""


class Operation(BaseModel):
    """A long-running operation handle.

    ``status == DONE`` only means the operation finished. It finished
    successfully only when ``errors`` is empty as well.
    """

    name: str
    scope: OperationScope = OperationScope.ZONE
    zone: Optional[str] = None
    status: OperationStatus = OperationStatus.PENDING
    errors: List[OperationErrorDetail] = Field(default_factory=list)

    @property
    def done(self) -> bool:
        return self.status == OperationStatus.DONE

    @property
    def failed(self) -> bool:
        return self.done and bool(self.errors)


# ---------------------------------------------------------------------------
# Instance creation request
# ---------------------------------------------------------------------------

class InstanceConfig(BaseModel):
    """Fully-resolved settings for an instance insert call."""

    name: str
    description: str = ""
    image: str = Field(description="Self link of the source image")
    machine_type: str = Field(description="Self link of the machine type")
    network: str = Field(description="Self link of the network")
    external_ip: bool = True
    metadata: Dict[str, str] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)
    service_account_email: str = "default"
    service_account_scopes: List[str] = Field(default_factory=list)
