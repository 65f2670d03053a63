"""
Compute client: thin wrapper over google-cloud-compute.

One method per resource kind and verb. Lookups return resolved
records from ``gcebake.models``; insert and delete calls return the
accepted Operation, not the finished resource. Callers hand those to
``gcebake.waiters.wait_for_operation`` to observe completion.

Error translation:
    google.api_core NotFound   -> ResourceNotFoundError
    any other API/auth failure -> TransportError
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from google.api_core.exceptions import GoogleAPIError, NotFound
from google.auth.exceptions import GoogleAuthError
from google.cloud import compute_v1

from .errors import (
    DeprecatedResourceError,
    OperationErrorDetail,
    ResourceNotFoundError,
    TransportError,
)
from .models import (
    Image,
    Instance,
    InstanceConfig,
    InstanceStatus,
    MachineType,
    Network,
    Operation,
    OperationScope,
    OperationStatus,
    Zone,
)

logger = logging.getLogger(__name__)

_CLIENT_FACTORIES: Dict[str, Callable[..., Any]] = {
    "zones": compute_v1.ZonesClient,
    "machine_types": compute_v1.MachineTypesClient,
    "images": compute_v1.ImagesClient,
    "networks": compute_v1.NetworksClient,
    "instances": compute_v1.InstancesClient,
    "zone_operations": compute_v1.ZoneOperationsClient,
    "global_operations": compute_v1.GlobalOperationsClient,
}

# Deprecation states that make a machine type unusable. ACTIVE (or an
# empty state) means the type is current.
_RETIRED_STATES = {"DEPRECATED", "OBSOLETE", "DELETED"}


def _enum_name(value: Any) -> str:
    """Normalise a proto enum or string field to its upper-case name."""
    if value is None:
        return ""
    name = getattr(value, "name", None)
    if isinstance(name, str):
        return name
    return str(value)


def _last_segment(link: str) -> str:
    return link.rstrip("/").rsplit("/", 1)[-1] if link else ""


def to_operation(raw: Any, scope: OperationScope, zone: Optional[str] = None) -> Operation:
    """Convert a ``compute_v1.Operation`` into an Operation record."""
    status_name = _enum_name(getattr(raw, "status", "")) or OperationStatus.PENDING.value
    try:
        status = OperationStatus(status_name)
    except ValueError:
        status = OperationStatus.RUNNING

    details: List[OperationErrorDetail] = []
    error = getattr(raw, "error", None)
    for item in getattr(error, "errors", None) or []:
        details.append(OperationErrorDetail(
            code=str(getattr(item, "code", "") or ""),
            message=str(getattr(item, "message", "") or ""),
            location=str(getattr(item, "location", "") or ""),
        ))

    return Operation(
        name=raw.name,
        scope=scope,
        zone=zone,
        status=status,
        errors=details,
    )


def _nat_ip(raw_instance: Any) -> Optional[str]:
    for iface in getattr(raw_instance, "network_interfaces", None) or []:
        for access in getattr(iface, "access_configs", None) or []:
            if getattr(access, "nat_i_p", None):
                return access.nat_i_p
    return None


class ComputeClient:
    """Compute Engine resource client bound to one project.

    Args:
        project: Project id all calls are scoped to.
        credentials: google-auth credentials; ``None`` lets each
            compute_v1 client pick up Application Default Credentials.
        clients: Pre-built compute_v1 clients keyed by kind (``zones``,
            ``machine_types``, ``images``, ``networks``, ``instances``,
            ``zone_operations``, ``global_operations``). Missing kinds
            are created on first use.
    """

    def __init__(
        self,
        project: str,
        credentials: Any = None,
        clients: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.project = project
        self._credentials = credentials
        self._clients: Dict[str, Any] = dict(clients or {})

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _client(self, kind: str) -> Any:
        """Return (creating once) the compute_v1 client for ``kind``."""
        client = self._clients.get(kind)
        if client is None:
            factory = _CLIENT_FACTORIES[kind]
            if self._credentials is not None:
                client = factory(credentials=self._credentials)
            else:
                client = factory()
            self._clients[kind] = client
        return client

    def _call(self, kind: str, name: str, func: Callable[..., Any], **kwargs: Any) -> Any:
        """Invoke an API method, translating google errors.

        Args:
            kind: Human resource kind for error messages (e.g. 'zone').
            name: Resource name for error messages.
            func: Bound compute_v1 client method.
            **kwargs: Request fields.

        Raises:
            ResourceNotFoundError: The API answered 404.
            TransportError: Any other API or auth failure.
        """
        try:
            return func(**kwargs)
        except NotFound as exc:
            raise ResourceNotFoundError(kind, name) from exc
        except (GoogleAPIError, GoogleAuthError) as exc:
            raise TransportError(f"{kind} {name}: {exc}") from exc

    def _list(self, kind: str, name: str, func: Callable[..., Any], **kwargs: Any) -> List[Any]:
        """Like _call, but drains the pager so paging errors are translated too."""
        return self._call(kind, name, lambda **kw: list(func(**kw)), **kwargs)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def get_zone(self, name: str) -> Zone:
        """Resolve a zone by name."""
        raw = self._call(
            "Zone", name, self._client("zones").get,
            project=self.project, zone=name,
        )
        return Zone(
            name=raw.name,
            self_link=raw.self_link,
            status=_enum_name(getattr(raw, "status", "")) or "UP",
        )

    def get_machine_type(self, name: str, zone: str) -> MachineType:
        """Resolve a machine type in a zone, rejecting retired types.

        Raises:
            DeprecatedResourceError: If the type is deprecated, obsolete
                or deleted.
        """
        raw = self._call(
            "Machine Type", name, self._client("machine_types").get,
            project=self.project, zone=zone, machine_type=name,
        )
        deprecated = getattr(raw, "deprecated", None)
        state = _enum_name(getattr(deprecated, "state", None)) if deprecated else ""
        if state in _RETIRED_STATES:
            logger.warning("Machine type %s in %s is %s", name, zone, state)
            raise DeprecatedResourceError("Machine Type", name, state)
        return MachineType(
            name=raw.name,
            self_link=raw.self_link,
            zone=_last_segment(getattr(raw, "zone", "") or zone),
        )

    def get_image(self, name: str, fallback_projects: Iterable[str] = ("debian-cloud",)) -> Image:
        """Resolve an image, trying this project before public projects.

        Fallback projects are only consulted when the lookup in the
        build project reports not-found; any other failure propagates.

        Raises:
            ResourceNotFoundError: If no project has the image.
        """
        searched = []
        for project in [self.project, *fallback_projects]:
            if project in searched:
                continue
            searched.append(project)
            try:
                raw = self._call(
                    "Image", name, self._client("images").get,
                    project=project, image=name,
                )
            except ResourceNotFoundError:
                logger.info("Cannot find image %s in project %s", name, project)
                continue
            return Image(
                name=raw.name,
                self_link=raw.self_link,
                project=project,
                status=_enum_name(getattr(raw, "status", "")) or "READY",
            )
        raise ResourceNotFoundError(
            "Image", name, detail=f"searched {', '.join(searched)}",
        )

    def get_network(self, name: str) -> Network:
        """Resolve a network by name."""
        raw = self._call(
            "Network", name, self._client("networks").get,
            project=self.project, network=name,
        )
        return Network(name=raw.name, self_link=raw.self_link)

    # ------------------------------------------------------------------
    # Instances
    # ------------------------------------------------------------------

    def create_instance(self, zone: str, config: InstanceConfig) -> Operation:
        """Submit an instance insert; returns the accepted operation."""
        disk = compute_v1.AttachedDisk(
            auto_delete=True,
            boot=True,
            initialize_params=compute_v1.AttachedDiskInitializeParams(
                source_image=config.image,
            ),
        )

        iface = compute_v1.NetworkInterface(network=config.network)
        if config.external_ip:
            iface.access_configs = [
                compute_v1.AccessConfig(name="External NAT", type_="ONE_TO_ONE_NAT"),
            ]

        instance = compute_v1.Instance(
            name=config.name,
            description=config.description,
            machine_type=config.machine_type,
            disks=[disk],
            network_interfaces=[iface],
            metadata=compute_v1.Metadata(items=[
                compute_v1.Items(key=key, value=value)
                for key, value in config.metadata.items()
            ]),
            tags=compute_v1.Tags(items=list(config.tags)),
            service_accounts=[compute_v1.ServiceAccount(
                email=config.service_account_email,
                scopes=list(config.service_account_scopes),
            )],
        )

        logger.info(
            "Inserting instance %s (zone=%s project=%s)",
            config.name, zone, self.project,
        )
        raw = self._call(
            "Instance", config.name, self._client("instances").insert_unary,
            project=self.project, zone=zone, instance_resource=instance,
        )
        return to_operation(raw, OperationScope.ZONE, zone)

    def get_instance(self, zone: str, name: str) -> Instance:
        """Fetch the current state of an instance."""
        raw = self._call(
            "Instance", name, self._client("instances").get,
            project=self.project, zone=zone, instance=name,
        )
        status_name = _enum_name(getattr(raw, "status", ""))
        try:
            status = InstanceStatus(status_name)
        except ValueError:
            status = InstanceStatus.PROVISIONING
        return Instance(
            name=raw.name,
            zone=zone,
            status=status,
            nat_ip=_nat_ip(raw),
            self_link=getattr(raw, "self_link", "") or "",
        )

    def get_nat_ip(self, zone: str, name: str) -> str:
        """Return the external address of an instance.

        Raises:
            ResourceNotFoundError: If the instance has no external address.
        """
        instance = self.get_instance(zone, name)
        if not instance.nat_ip:
            raise ResourceNotFoundError(
                "External address", name, detail="instance has no NAT IP",
            )
        return instance.nat_ip

    def delete_instance(self, zone: str, name: str) -> Operation:
        """Submit an instance delete; returns the accepted operation."""
        logger.info("Deleting instance %s (zone=%s)", name, zone)
        raw = self._call(
            "Instance", name, self._client("instances").delete_unary,
            project=self.project, zone=zone, instance=name,
        )
        return to_operation(raw, OperationScope.ZONE, zone)

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def create_image(self, name: str, description: str, source_url: str) -> Operation:
        """Register a Cloud Storage disk archive as an image."""
        image = compute_v1.Image(
            name=name,
            description=description,
            raw_disk=compute_v1.RawDisk(source=source_url),
        )
        logger.info("Inserting image %s from %s", name, source_url)
        raw = self._call(
            "Image", name, self._client("images").insert_unary,
            project=self.project, image_resource=image,
        )
        return to_operation(raw, OperationScope.GLOBAL)

    def delete_image(self, name: str) -> Operation:
        """Submit an image delete; returns the accepted operation."""
        logger.info("Deleting image %s", name)
        raw = self._call(
            "Image", name, self._client("images").delete_unary,
            project=self.project, image=name,
        )
        return to_operation(raw, OperationScope.GLOBAL)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def get_zone_operation(self, zone: str, name: str) -> Operation:
        """Fetch the status of a zone-scoped operation."""
        raw = self._call(
            "Operation", name, self._client("zone_operations").get,
            project=self.project, zone=zone, operation=name,
        )
        return to_operation(raw, OperationScope.ZONE, zone)

    def get_global_operation(self, name: str) -> Operation:
        """Fetch the status of a project-scoped operation."""
        raw = self._call(
            "Operation", name, self._client("global_operations").get,
            project=self.project, operation=name,
        )
        return to_operation(raw, OperationScope.GLOBAL)

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def list_zones(self) -> List[Zone]:
        """List every zone visible to the project."""
        pager = self._list(
            "Zone list", self.project, self._client("zones").list,
            project=self.project,
        )
        return [
            Zone(
                name=z.name,
                self_link=z.self_link,
                status=_enum_name(getattr(z, "status", "")) or "UP",
            )
            for z in pager
        ]

    def list_machine_types(self, zone: str) -> List[MachineType]:
        """List machine types in a zone, including retired ones."""
        pager = self._list(
            "Machine Type list", zone, self._client("machine_types").list,
            project=self.project, zone=zone,
        )
        types = []
        for mt in pager:
            deprecated = getattr(mt, "deprecated", None)
            state = _enum_name(getattr(deprecated, "state", None)) if deprecated else ""
            types.append(MachineType(
                name=mt.name,
                self_link=mt.self_link,
                zone=zone,
                deprecation_state=state if state in _RETIRED_STATES else None,
            ))
        return types

    def list_images(self, project: Optional[str] = None) -> List[Image]:
        """List images owned by a project (default: the build project)."""
        target = project or self.project
        pager = self._list(
            "Image list", target, self._client("images").list,
            project=target,
        )
        return [
            Image(
                name=img.name,
                self_link=img.self_link,
                project=target,
                status=_enum_name(getattr(img, "status", "")) or "READY",
            )
            for img in pager
        ]
