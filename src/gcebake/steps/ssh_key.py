"""Create a throwaway RSA key pair for logging in to the build instance."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Tuple

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from ..models import StepAction
from .base import halt

if TYPE_CHECKING:
    from ..state import BuildState

logger = logging.getLogger(__name__)

KEY_BITS = 2048


def generate_key_pair(bits: int = KEY_BITS) -> Tuple[str, str]:
    """Generate an RSA key pair.

    Returns:
        Tuple of (PEM private key, OpenSSH ``authorized_keys`` public key).
    """
    key = rsa.generate_private_key(public_exponent=65537, key_size=bits)
    private_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")
    public_ssh = key.public_key().public_bytes(
        encoding=serialization.Encoding.OpenSSH,
        format=serialization.PublicFormat.OpenSSH,
    ).decode("ascii")
    return private_pem, public_ssh


class StepCreateSSHKey:
    """Generate the login key pair and publish both halves."""

    name = "create-ssh-key"

    def __init__(self, bits: int = KEY_BITS) -> None:
        self.bits = bits

    def run(self, state: BuildState) -> StepAction:
        state.ui.say("Creating temporary ssh key for instance...")
        try:
            private_pem, public_ssh = generate_key_pair(self.bits)
        except (ValueError, TypeError) as exc:
            return halt(state, self.name, "Error creating temporary ssh key", exc)

        state.put("ssh_private_key", private_pem)
        state.put("ssh_public_key", public_ssh)
        logger.debug("Generated %d-bit RSA key pair", self.bits)
        return StepAction.CONTINUE

    def cleanup(self, state: BuildState) -> None:
        # The key only lives in memory and in the instance metadata.
        pass
