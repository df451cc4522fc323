"""
Remote-shell backend.

Runs ``ssh/run`` tasks over SSH with paramiko, authenticating with a private
key supplied in the task parameters.

Host identity policy:
- strict (default): the known_hosts file must exist and the server key must
  be listed in it; unknown or mismatched keys are rejected.
- permissive: no trust store is loaded and any server key is accepted.
  Opt-in only, and logged as a warning on every call.

paramiko is blocking, so the session runs in the default thread pool. On
timeout or cancellation the connection is closed to unblock the worker.
"""

import asyncio
import io
import os
import threading
import time
from typing import Any, Dict, Mapping, Optional

import paramiko
import structlog

from orkestra_executors.application.dto import RemoteShellParams, decode_params
from orkestra_executors.domain.errors import (
    ConnectionFailureError,
    HostKeyStoreMissingError,
    HostKeyVerificationError,
    InvalidHostFormatError,
    InvalidKeyError,
    NonZeroExitError,
)
from orkestra_executors.domain.value_objects import ExecutionContext, ProcessOutput
from orkestra_executors.infrastructure.backends.base import BaseExecutor, Handler
from orkestra_executors.infrastructure.backends.deadline import wait_bounded
from orkestra_executors.infrastructure.config import Settings, SSHDefaults, get_settings

logger = structlog.get_logger(__name__)

SSH_RUN = "ssh/run"

_KEY_TYPES = (paramiko.Ed25519Key, paramiko.ECDSAKey, paramiko.RSAKey)
_READ_SIZE = 32768
_POLL_INTERVAL = 0.05
# connect, banner and auth each get the connect timeout
_JOIN_GRACE_FACTOR = 3


def _discard_result(worker: asyncio.Future) -> None:
    """Retrieve the outcome of an abandoned session thread."""
    if not worker.cancelled() and worker.exception() is not None:
        logger.debug("SSH session ended with error", error=str(worker.exception()))


def load_private_key(key_text: str) -> paramiko.PKey:
    """
    Parse a private key in OpenSSH or PEM encoding.

    Raises:
        InvalidKeyError: If no supported key type accepts the text
    """
    for key_type in _KEY_TYPES:
        try:
            return key_type.from_private_key(io.StringIO(key_text))
        except paramiko.PasswordRequiredException as exc:
            raise InvalidKeyError(
                "Failed to parse private key: key is encrypted"
            ) from exc
        except (paramiko.SSHException, ValueError):
            continue
    raise InvalidKeyError("Failed to parse private key: unsupported or malformed key")


class RejectUnknownHostPolicy(paramiko.MissingHostKeyPolicy):
    """Reject servers whose key is not in the loaded known_hosts file."""

    def missing_host_key(self, client, hostname, key):
        raise HostKeyVerificationError(
            f"Host key for {hostname} not found in known_hosts",
            {"hostname": hostname, "key_type": key.get_name()},
        )


class RemoteSession:
    """
    One SSH connection running one command.

    ``run`` blocks and is meant for a worker thread; ``close`` may be called
    from any thread and is idempotent.
    """

    def __init__(
        self,
        hostname: str,
        port: int,
        username: str,
        pkey: paramiko.PKey,
        known_hosts_file: Optional[str],
        connect_timeout: float,
    ):
        self.hostname = hostname
        self.port = port
        self.username = username
        self.pkey = pkey
        self.known_hosts_file = known_hosts_file
        self.connect_timeout = connect_timeout
        self.client = paramiko.SSHClient()
        self._closed = threading.Event()

    def run(self, command: str) -> ProcessOutput:
        try:
            self._connect()
            return self._exec(command)
        finally:
            if self._closed.is_set():
                self.client.close()

    def close(self) -> None:
        self._closed.set()
        self.client.close()

    def _connect(self) -> None:
        if self.known_hosts_file is not None:
            try:
                self.client.load_host_keys(self.known_hosts_file)
            except OSError as exc:
                raise HostKeyVerificationError(
                    f"Failed to load known_hosts file {self.known_hosts_file}: {exc}",
                    {"known_hosts_file": self.known_hosts_file},
                ) from exc
            self.client.set_missing_host_key_policy(RejectUnknownHostPolicy())
        else:
            self.client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        try:
            self.client.connect(
                hostname=self.hostname,
                port=self.port,
                username=self.username,
                pkey=self.pkey,
                timeout=self.connect_timeout,
                banner_timeout=self.connect_timeout,
                auth_timeout=self.connect_timeout,
                allow_agent=False,
                look_for_keys=False,
            )
        except paramiko.BadHostKeyException as exc:
            raise HostKeyVerificationError(
                f"Host key for {self.hostname} does not match known_hosts: {exc}",
                {"hostname": self.hostname},
            ) from exc
        except paramiko.AuthenticationException as exc:
            raise ConnectionFailureError(
                f"Authentication failed for {self.username}@{self.hostname}: {exc}",
                {"hostname": self.hostname, "port": self.port},
            ) from exc
        except (paramiko.SSHException, OSError, EOFError) as exc:
            raise ConnectionFailureError(
                f"Failed to dial ssh {self.hostname}:{self.port}: {exc}",
                {"hostname": self.hostname, "port": self.port},
            ) from exc

        if self._closed.is_set():
            raise ConnectionFailureError("Session closed before the command was sent")

    def _exec(self, command: str) -> ProcessOutput:
        stdout, stderr = [], []
        transport = self.client.get_transport()
        if transport is None or not transport.is_active():
            raise ConnectionFailureError(
                "SSH transport closed before the command was sent",
                {"hostname": self.hostname},
            )
        try:
            channel = transport.open_session()
            try:
                channel.exec_command(command)
                # Drain both streams so neither fills its window and stalls the remote side
                while True:
                    idle = True
                    if channel.recv_ready():
                        stdout.append(channel.recv(_READ_SIZE))
                        idle = False
                    if channel.recv_stderr_ready():
                        stderr.append(channel.recv_stderr(_READ_SIZE))
                        idle = False
                    if idle:
                        if channel.exit_status_ready():
                            break
                        time.sleep(_POLL_INTERVAL)
                exit_code = channel.recv_exit_status()
            finally:
                channel.close()
        except (paramiko.SSHException, OSError, EOFError) as exc:
            raise ConnectionFailureError(
                f"Failed to run ssh command: {exc}", {"hostname": self.hostname}
            ) from exc

        return ProcessOutput(
            stdout=b"".join(stdout).decode("utf-8", errors="replace"),
            stderr=b"".join(stderr).decode("utf-8", errors="replace"),
            exit_code=exit_code,
        )


class RemoteShellExecutor(BaseExecutor):
    """Executes commands on remote hosts over SSH."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        defaults: Optional[SSHDefaults] = None,
    ):
        """
        Args:
            settings: Executor settings (timeouts)
            defaults: Host key policy fallbacks; taken from settings if omitted
        """
        settings = settings or get_settings()
        self._defaults = defaults or settings.ssh_defaults()
        self._timeout = settings.ssh_timeout
        self._connect_timeout = settings.ssh_connect_timeout
        super().__init__()

    def _build_handlers(self) -> Dict[str, Handler]:
        return {SSH_RUN: self._run_remote}

    async def _join_worker(self, worker: asyncio.Future, log) -> None:
        """
        Wait for the session thread to finish after ``close``.

        A thread still dialing or handshaking is not interrupted by closing
        the client; it gives up within the connect timeout and then closes
        whatever it opened.
        """
        if not worker.done():
            grace = self._connect_timeout * _JOIN_GRACE_FACTOR
            await asyncio.wait({worker}, timeout=grace)
        if not worker.done():
            log.warning("SSH session thread still running after close")
            worker.add_done_callback(_discard_result)
            return
        _discard_result(worker)

    def _known_hosts_path(self, params: RemoteShellParams) -> str:
        path = params.known_hosts_file or self._defaults.known_hosts_file
        return os.path.expanduser(path)

    async def _run_remote(
        self,
        parameters: Mapping[str, Any],
        context: ExecutionContext,
    ) -> ProcessOutput:
        params = decode_params(RemoteShellParams, SSH_RUN, parameters)

        parts = params.split_host()
        if parts is None:
            raise InvalidHostFormatError(params.host)
        username, hostname = parts

        log = logger.bind(
            operation=SSH_RUN,
            execution_id=context.execution_id,
            host=hostname,
            port=params.port,
        )

        strict = params.strict_host_key_checking
        if strict is None:
            strict = self._defaults.strict_host_key_checking

        known_hosts_file = None
        if strict:
            known_hosts_file = self._known_hosts_path(params)
            if not os.path.exists(known_hosts_file):
                raise HostKeyStoreMissingError(known_hosts_file, hostname)
        else:
            log.warning(
                "SSH host key verification is disabled - this is not recommended for production"
            )

        pkey = load_private_key(params.key)

        session = RemoteSession(
            hostname=hostname,
            port=params.port,
            username=username,
            pkey=pkey,
            known_hosts_file=known_hosts_file,
            connect_timeout=self._connect_timeout,
        )
        log.info("Executing SSH command", user=username, command=params.run, strict=strict)

        loop = asyncio.get_running_loop()
        worker = loop.run_in_executor(None, session.run, params.run)
        try:
            # Shielded so the worker keeps tracking the thread after a timeout
            output = await wait_bounded(
                asyncio.shield(worker),
                operation=SSH_RUN,
                timeout=self._timeout,
                context=context,
            )
        finally:
            session.close()
            await self._join_worker(worker, log)

        log.info("SSH command finished", exit_code=output.exit_code)
        log.debug("SSH command output", stdout=output.stdout, stderr=output.stderr)
        if output.exit_code != 0:
            raise NonZeroExitError(output.exit_code, output.to_dict(), what="ssh command")
        return output
