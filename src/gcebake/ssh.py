"""
SSH access to the build instance.

A paramiko client logs in with the key pair the create-ssh-key step
generated; the key never touches the local disk. The session is opened
lazily on the first reachability check and reused for every command
until ``close()``.

Usage:
    comm = SSHCommunicator("34.1.2.3", 22, "root", private_key_pem)
    comm.run_checked("apt-get update", on_output=ui.message)
    comm.close()
"""

from __future__ import annotations

import io
import logging
import shlex
from typing import Callable, Optional

import paramiko

from .errors import RemoteCommandError

logger = logging.getLogger(__name__)

OutputFn = Callable[[str], None]


class SSHCommunicator:
    """Run commands on a remote host over one SSH session.

    Args:
        host: Address of the instance.
        port: SSH port.
        username: Login user; its authorized_keys hold the public key.
        private_key: PEM-encoded RSA private key.
        connect_timeout: Seconds allowed for TCP connect, banner and auth.

    Raises:
        paramiko.SSHException: If ``private_key`` is not a usable RSA key.
    """

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        private_key: str,
        connect_timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.connect_timeout = connect_timeout
        self._pkey = paramiko.RSAKey.from_private_key(io.StringIO(private_key))
        self._client: Optional[paramiko.SSHClient] = None

    def _connect(self) -> paramiko.SSHClient:
        if self._client is not None:
            return self._client
        client = paramiko.SSHClient()
        # Fresh instance with a host key nobody has seen yet.
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                hostname=self.host,
                port=self.port,
                username=self.username,
                pkey=self._pkey,
                timeout=self.connect_timeout,
                banner_timeout=self.connect_timeout,
                auth_timeout=self.connect_timeout,
                allow_agent=False,
                look_for_keys=False,
            )
        except BaseException:
            client.close()
            raise
        self._client = client
        return client

    def close(self) -> None:
        """Close the session; a later call reconnects."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def is_reachable(self) -> bool:
        """True once the SSH handshake and key login succeed."""
        try:
            self._connect()
        except (paramiko.SSHException, OSError) as exc:
            logger.debug("ssh connect to %s:%s failed: %s", self.host, self.port, exc)
            return False
        return True

    def run(self, command: str, on_output: Optional[OutputFn] = None) -> int:
        """Run a command, streaming combined stdout/stderr line by line.

        Returns:
            The remote exit status.

        Raises:
            RemoteCommandError: If the session could not carry the command
                (``exit_status`` is None).
        """
        logger.debug("ssh %s@%s: %s", self.username, self.host, command)
        try:
            transport = self._connect().get_transport()
            if transport is None or not transport.is_active():
                raise paramiko.SSHException("SSH session is not active")
            channel = transport.open_session()
            try:
                channel.set_combine_stderr(True)
                channel.exec_command(command)
                with channel.makefile("rb") as stream:
                    for raw in stream:
                        if on_output is not None:
                            on_output(raw.decode("utf-8", errors="replace").rstrip("\r\n"))
                return channel.recv_exit_status()
            finally:
                channel.close()
        except (paramiko.SSHException, OSError) as exc:
            self.close()
            raise RemoteCommandError(command, None) from exc

    def run_checked(self, command: str, on_output: Optional[OutputFn] = None) -> None:
        """Run a command, raising RemoteCommandError on a non-zero exit."""
        status = self.run(command, on_output=on_output)
        if status != 0:
            raise RemoteCommandError(command, status)

    def try_login(self) -> bool:
        """True once a trivial command runs cleanly over the session."""
        try:
            return self.run("true") == 0
        except RemoteCommandError as exc:
            logger.debug("ssh login check failed: %s", exc)
            return False

    def __repr__(self) -> str:
        return f"SSHCommunicator({self.username}@{self.host}:{self.port})"


def shell_join(*parts: str) -> str:
    """Quote arguments for the remote shell."""
    return " ".join(shlex.quote(p) for p in parts)
