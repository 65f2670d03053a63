"""Tests for the build Artifact."""

from __future__ import annotations

from datetime import timedelta

import pytest

from gcebake import BUILDER_ID
from gcebake.artifact import Artifact
from gcebake.errors import OperationError, OperationErrorDetail, TransportError


class TestArtifact:
    """Artifact identity and destroy."""

    def test_identity(self, fake_client):
        artifact = Artifact("packer-1234", fake_client)
        assert artifact.id == "packer-1234"
        assert artifact.builder_id == BUILDER_ID
        assert artifact.files() == []
        assert str(artifact) == "A disk image was created: packer-1234"

    def test_destroy_waits_for_delete(self, fake_client, clock):
        artifact = Artifact("packer-1234", fake_client, clock=clock)
        op = artifact.destroy()
        assert op.done
        assert fake_client.calls == [
            ("delete_image", "packer-1234"),
            ("get_global_operation", "op-delete-image-packer-1234"),
        ]

    def test_destroy_surfaces_operation_failure(self, fake_client, clock):
        fake_client.operation_errors["op-delete-image-packer-1234"] = [
            OperationErrorDetail(code="RESOURCE_IN_USE_BY_ANOTHER_RESOURCE", message="in use"),
        ]
        artifact = Artifact("packer-1234", fake_client, state_timeout=timedelta(seconds=30), clock=clock)
        with pytest.raises(OperationError, match="in use"):
            artifact.destroy()

    def test_destroy_surfaces_transport_failure(self, fake_client, clock):
        def broken(name):
            raise TransportError("connection refused")

        fake_client.delete_image = broken
        with pytest.raises(TransportError):
            Artifact("packer-1234", fake_client, clock=clock).destroy()
