"""
Build steps: the units the runner executes in order.

Each step has ``run(state) -> StepAction`` and ``cleanup(state)``.
Only StepCreateInstance allocates a cloud resource; every other
cleanup is a no-op.
"""

from .base import Step, await_operation, halt
from .connect import StepConnectSSH
from .create_image import StepCreateImage
from .create_instance import StepCreateInstance
from .delete_instance import StepDeleteInstance
from .instance_info import StepInstanceInfo
from .provision import StepProvision
from .ssh_key import StepCreateSSHKey
from .update_gsutil import StepUpdateGsutil

__all__ = [
    "Step",
    "await_operation",
    "halt",
    "StepConnectSSH",
    "StepCreateImage",
    "StepCreateInstance",
    "StepCreateSSHKey",
    "StepDeleteInstance",
    "StepInstanceInfo",
    "StepProvision",
    "StepUpdateGsutil",
]
