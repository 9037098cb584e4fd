"""SSH session to the gateway with SCP upload and SFTP download.

One RemoteSession owns one authenticated paramiko connection for the
lifetime of a flow. Everything blocks; there are no timeouts beyond the
transport's own and the optional connect timeout.
"""
import logging
import socket
import stat
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import paramiko
from scp import SCPClient, SCPException

from ..errors import AuthError, ConnectError, ExecError, TransferError
from ..utils.logging_config import timed

logger = logging.getLogger(__name__)

RECV_CHUNK = 32768
POLL_INTERVAL = 0.05


def _drain(channel) -> tuple[bytes, bytes]:
    """Read stdout and stderr side by side until the command exits.

    Reading one stream to EOF first can stall once the other fills the
    channel window.
    """
    out, err = bytearray(), bytearray()
    while True:
        if channel.recv_ready():
            out += channel.recv(RECV_CHUNK)
        elif channel.recv_stderr_ready():
            err += channel.recv_stderr(RECV_CHUNK)
        elif channel.exit_status_ready():
            break
        else:
            time.sleep(POLL_INTERVAL)

    # Data may land between the last readiness check and the exit status
    while channel.recv_ready():
        out += channel.recv(RECV_CHUNK)
    while channel.recv_stderr_ready():
        err += channel.recv_stderr(RECV_CHUNK)
    return bytes(out), bytes(err)


@dataclass(frozen=True)
class RemoteTarget:
    """Gateway address and credentials; ``host_and_port`` is ``host:port``."""
    host_and_port: str
    username: str
    password: str

    @property
    def host(self) -> str:
        return self.host_and_port.rsplit(":", 1)[0]

    @property
    def port(self) -> int:
        return int(self.host_and_port.rsplit(":", 1)[1])


class CommandResult:
    """Captured stdout of one remote command."""

    def __init__(self, command: str, output: str = "", exit_status: Optional[int] = None):
        self.command = command
        self.output = output
        self.exit_status = exit_status

    @property
    def text(self) -> str:
        """Output with surrounding whitespace removed."""
        return self.output.strip()

    def to_dict(self) -> dict:
        return {
            "command": self.command,
            "output": self.output,
            "exit_status": self.exit_status,
        }

    def __repr__(self) -> str:
        return f"CommandResult({self.command!r}, exit={self.exit_status})"


class RemoteSession:
    """Authenticated shell + file transfer channel to one gateway."""

    def __init__(self, target: RemoteTarget, timeout: Optional[float] = None):
        self.target = target
        self.timeout = timeout
        self._ssh: Optional[paramiko.SSHClient] = None
        self._scp: Optional[SCPClient] = None
        self._sftp: Optional[paramiko.SFTPClient] = None

    @property
    def target_label(self) -> str:
        return self.target.host_and_port

    @property
    def is_connected(self) -> bool:
        return self._ssh is not None

    @timed("connect")
    def connect(self) -> "RemoteSession":
        """Open the TCP connection, handshake and authenticate with password.

        Raises:
            AuthError: If the credentials are rejected
            ConnectError: If the host cannot be reached or the handshake fails
        """
        logger.debug(f"Connecting to {self.target.username}@{self.target_label}")
        ssh = paramiko.SSHClient()
        ssh.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            ssh.connect(
                hostname=self.target.host,
                port=self.target.port,
                username=self.target.username,
                password=self.target.password,
                timeout=self.timeout,
                allow_agent=False,
                look_for_keys=False,
            )
        except paramiko.AuthenticationException as e:
            ssh.close()
            raise AuthError(f"Authentication failed for {self.target.username}@{self.target_label}") from e
        except (paramiko.SSHException, socket.error) as e:
            ssh.close()
            raise ConnectError(f"Could not connect to {self.target_label}: {e}") from e

        transport = ssh.get_transport()
        if transport is None:
            ssh.close()
            raise ConnectError(f"Failed to get SSH transport for {self.target_label}")

        self._ssh = ssh
        self._scp = SCPClient(transport)
        logger.debug(f"Connected to {self.target_label}")
        return self

    def close(self) -> None:
        if self._sftp:
            self._sftp.close()
            self._sftp = None
        if self._scp:
            self._scp.close()
            self._scp = None
        if self._ssh:
            self._ssh.close()
            self._ssh = None
        logger.debug(f"Disconnected from {self.target_label}")

    def __enter__(self) -> "RemoteSession":
        if not self.is_connected:
            self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def _require_ssh(self) -> paramiko.SSHClient:
        if self._ssh is None:
            raise ConnectError("Not connected")
        return self._ssh

    def _sftp_client(self) -> paramiko.SFTPClient:
        if self._sftp is None:
            try:
                self._sftp = self._require_ssh().open_sftp()
            except (paramiko.SSHException, socket.error) as e:
                raise TransferError(f"Could not open SFTP channel: {e}") from e
        return self._sftp

    @timed("upload")
    def upload_file(
        self,
        local_path: Union[str, Path],
        remote_path: str,
        mode: int = 0o644,
    ) -> None:
        """Copy a local file to the gateway over SCP.

        Raises:
            TransferError: If the local file is unreadable or the remote write fails
        """
        if self._scp is None:
            raise ConnectError("Not connected")

        local_path = Path(local_path)
        try:
            with open(local_path, "rb") as f:
                size = local_path.stat().st_size
                self._scp.putfo(f, remote_path, mode=f"{mode:04o}", size=size)
        except OSError as e:
            raise TransferError(f"Could not upload {local_path} to {remote_path}: {e}") from e
        except (SCPException, paramiko.SSHException) as e:
            raise TransferError(f"Remote rejected {remote_path}: {e}") from e
        logger.debug(f"Uploaded {local_path} to {remote_path} ({size} bytes)")

    @timed("exec")
    def exec_command(self, command: str) -> CommandResult:
        """Run a command to completion and capture its stdout.

        The exit status is recorded but not interpreted.

        Raises:
            ExecError: If the command could not be dispatched or read
        """
        ssh = self._require_ssh()
        logger.debug(f"$ {command}")
        try:
            stdin, stdout, _ = ssh.exec_command(command)
            stdin.close()
            channel = stdout.channel
            raw_out, raw_err = _drain(channel)
            exit_status = channel.recv_exit_status()
        except (paramiko.SSHException, socket.error) as e:
            raise ExecError(f"Command '{command}' failed: {e}") from e

        out = raw_out.decode("utf-8", errors="replace")
        err = raw_err.decode("utf-8", errors="replace")
        if err:
            logger.debug(f"stderr of '{command}': {err.strip()}")
        logger.debug(f"'{command}' exited with {exit_status}")
        return CommandResult(command=command, output=out, exit_status=exit_status)

    def list_directory(self, path: str) -> list[str]:
        """Names of the regular files in a remote directory, sorted.

        Raises:
            TransferError: If the directory cannot be listed
        """
        sftp = self._sftp_client()
        try:
            entries = sftp.listdir_attr(path)
        except (OSError, paramiko.SSHException) as e:
            raise TransferError(f"Could not list {path}: {e}") from e
        return sorted(
            e.filename for e in entries
            if e.st_mode is None or stat.S_ISREG(e.st_mode)
        )

    @timed("read")
    def read_file(self, remote_path: str) -> bytes:
        """Fetch a remote file's contents over SFTP.

        Raises:
            TransferError: If the file cannot be read
        """
        sftp = self._sftp_client()
        try:
            with sftp.open(remote_path, "rb") as remote_file:
                return remote_file.read()
        except (OSError, paramiko.SSHException) as e:
            raise TransferError(f"Could not read {remote_path}: {e}") from e

    def download_file(self, remote_path: str, local_path: Union[str, Path]) -> int:
        """Fetch a remote file into ``local_path``, overwriting it.

        Returns:
            Number of bytes written

        Raises:
            TransferError: If the remote read or the local write fails
        """
        contents = self.read_file(remote_path)
        try:
            Path(local_path).write_bytes(contents)
        except OSError as e:
            raise TransferError(f"Could not write {local_path}: {e}") from e
        return len(contents)
