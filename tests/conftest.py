"""Shared test fixtures for gcebake."""

from __future__ import annotations

import io
from typing import Any, Dict, List, Optional, Tuple

import pytest
from rich.console import Console

from gcebake.config import BuildConfig, validate_config
from gcebake.errors import (
    DeprecatedResourceError,
    OperationErrorDetail,
    RemoteCommandError,
    ResourceNotFoundError,
)
from gcebake.models import (
    Image,
    Instance,
    InstanceStatus,
    MachineType,
    Network,
    Operation,
    OperationScope,
    OperationStatus,
    Zone,
)
from gcebake.state import BuildState
from gcebake.ui import BuildUi


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeClock:
    """Monotonic clock that only moves when someone sleeps."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: List[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeComputeClient:
    """In-memory stand-in for ComputeClient.

    Every create call is accepted, every operation reports DONE, and
    every instance is RUNNING unless a test changes the knobs below.
    """

    def __init__(self, project: str = "test-project") -> None:
        self.project = project
        self.calls: List[Tuple[Any, ...]] = []
        self.zones = {"us-central1-a"}
        self.machine_types = {"n1-standard-1", "n1-standard-2"}
        self.deprecated_machine_types: set = set()
        self.images: Dict[str, str] = {"debian-9": "debian-cloud"}
        self.networks = {"default"}
        self.nat_ip: Optional[str] = "203.0.113.10"
        self.operation_errors: Dict[str, List[OperationErrorDetail]] = {}
        self.instance_configs: List[Any] = []

    def count(self, method: str) -> int:
        return sum(1 for call in self.calls if call[0] == method)

    # Resolution

    def get_zone(self, name: str) -> Zone:
        self.calls.append(("get_zone", name))
        if name not in self.zones:
            raise ResourceNotFoundError("Zone", name)
        return Zone(name=name, self_link=f"zones/{name}")

    def get_machine_type(self, name: str, zone: str) -> MachineType:
        self.calls.append(("get_machine_type", name, zone))
        if name in self.deprecated_machine_types:
            raise DeprecatedResourceError("Machine Type", name, "DEPRECATED")
        if name not in self.machine_types:
            raise ResourceNotFoundError("Machine Type", name)
        return MachineType(
            name=name, self_link=f"zones/{zone}/machineTypes/{name}", zone=zone,
        )

    def get_image(self, name: str, fallback_projects=("debian-cloud",)) -> Image:
        self.calls.append(("get_image", name))
        owner = self.images.get(name)
        if owner is None or owner not in [self.project, *fallback_projects]:
            raise ResourceNotFoundError("Image", name)
        return Image(
            name=name, self_link=f"projects/{owner}/global/images/{name}", project=owner,
        )

    def get_network(self, name: str) -> Network:
        self.calls.append(("get_network", name))
        if name not in self.networks:
            raise ResourceNotFoundError("Network", name)
        return Network(name=name, self_link=f"global/networks/{name}")

    # Instances

    def create_instance(self, zone: str, config: Any) -> Operation:
        self.calls.append(("create_instance", zone, config.name))
        self.instance_configs.append(config)
        return Operation(
            name=f"op-insert-{config.name}", scope=OperationScope.ZONE, zone=zone,
        )

    def get_instance(self, zone: str, name: str) -> Instance:
        self.calls.append(("get_instance", zone, name))
        return Instance(
            name=name, zone=zone, status=InstanceStatus.RUNNING, nat_ip=self.nat_ip,
        )

    def get_nat_ip(self, zone: str, name: str) -> str:
        self.calls.append(("get_nat_ip", zone, name))
        if not self.nat_ip:
            raise ResourceNotFoundError("External address", name)
        return self.nat_ip

    def delete_instance(self, zone: str, name: str) -> Operation:
        self.calls.append(("delete_instance", zone, name))
        return Operation(
            name=f"op-delete-{name}", scope=OperationScope.ZONE, zone=zone,
        )

    # Images

    def create_image(self, name: str, description: str, source_url: str) -> Operation:
        self.calls.append(("create_image", name, description, source_url))
        return Operation(name=f"op-image-{name}", scope=OperationScope.GLOBAL)

    def delete_image(self, name: str) -> Operation:
        self.calls.append(("delete_image", name))
        return Operation(name=f"op-delete-image-{name}", scope=OperationScope.GLOBAL)

    # Operations

    def get_zone_operation(self, zone: str, name: str) -> Operation:
        self.calls.append(("get_zone_operation", zone, name))
        return Operation(
            name=name, scope=OperationScope.ZONE, zone=zone,
            status=OperationStatus.DONE,
            errors=self.operation_errors.get(name, []),
        )

    def get_global_operation(self, name: str) -> Operation:
        self.calls.append(("get_global_operation", name))
        return Operation(
            name=name, scope=OperationScope.GLOBAL,
            status=OperationStatus.DONE,
            errors=self.operation_errors.get(name, []),
        )


class FakeCommunicator:
    """Remote session that records commands instead of running them."""

    def __init__(self, host: str, port: int, username: str, private_key: str) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.private_key = private_key
        self.commands: List[str] = []
        self.failures: Dict[str, int] = {}
        self.reachable = True
        self.closed = False

    def is_reachable(self) -> bool:
        return self.reachable

    def try_login(self) -> bool:
        return self.reachable

    def run(self, command: str, on_output=None) -> int:
        self.commands.append(command)
        if on_output is not None:
            on_output(f"ran {command}")
        for fragment, status in self.failures.items():
            if fragment in command:
                return status
        return 0

    def run_checked(self, command: str, on_output=None) -> None:
        status = self.run(command, on_output=on_output)
        if status != 0:
            raise RemoteCommandError(command, status)

    def close(self) -> None:
        self.closed = True


class CommunicatorFactory:
    """Callable factory that remembers the sessions it opened."""

    def __init__(self) -> None:
        self.sessions: List[FakeCommunicator] = []
        self.failures: Dict[str, int] = {}
        self.reachable = True

    def __call__(self, host, port, username, private_key) -> FakeCommunicator:
        comm = FakeCommunicator(host, port, username, private_key)
        comm.failures = dict(self.failures)
        comm.reachable = self.reachable
        self.sessions.append(comm)
        return comm

    @property
    def last(self) -> FakeCommunicator:
        return self.sessions[-1]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


RAW_CONFIG = {
    "project_id": "test-project",
    "zone": "us-central1-a",
    "source_image": "debian-9",
    "bucket_name": "test-bucket",
    "machine_type": "n1-standard-1",
    "network": "default",
    "image_name": "packer-1234",
}


@pytest.fixture
def raw_config() -> Dict[str, Any]:
    """A minimal valid build mapping (fresh copy per test)."""
    return dict(RAW_CONFIG)


@pytest.fixture
def config(raw_config) -> BuildConfig:
    """A validated build configuration."""
    return validate_config(raw_config)


@pytest.fixture
def fake_client() -> FakeComputeClient:
    return FakeComputeClient()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ui_output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def ui(ui_output) -> BuildUi:
    """BuildUi writing into a buffer."""
    return BuildUi(console=Console(file=ui_output, width=200, color_system=None))


@pytest.fixture
def comm_factory() -> CommunicatorFactory:
    return CommunicatorFactory()


@pytest.fixture
def state(config, fake_client, ui, clock) -> BuildState:
    """A fresh build state wired to the fakes."""
    return BuildState(
        config=config, client=fake_client, ui=ui, clock=clock, poll_interval=1.0,
    )


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep the developer's gcloud settings out of config tests."""
    for var in ("GOOGLE_CLOUD_PROJECT", "GCLOUD_PROJECT", "CLOUDSDK_COMPUTE_ZONE"):
        monkeypatch.delenv(var, raising=False)
