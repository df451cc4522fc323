"""
Executor Errors

Typed failures returned by every backend. Each error carries a stable
``code`` so the engine can branch on the failure kind without parsing
messages.
"""

from typing import Any, Dict, Optional


class ExecutorError(Exception):
    """Base class for all executor failures."""

    code = "executor_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary format."""
        return {
            "code": self.code,
            "message": self.message,
            "details": dict(self.details),
        }


class ValidationError(ExecutorError):
    """A required parameter is missing or malformed."""

    code = "validation_error"


class UnsupportedOperationError(ExecutorError):
    """The operation id is not in the backend's capability set."""

    code = "unsupported_operation"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(
            f"Unsupported operation '{operation}'",
            {"operation": operation},
        )


class LaunchFailureError(ExecutorError):
    """The local process could not be started."""

    code = "launch_failure"


class ImagePullError(ExecutorError):
    """The container image could not be pulled."""

    code = "image_pull_failure"


class ContainerCreateError(ExecutorError):
    """The container could not be created."""

    code = "container_create_failure"


class ContainerStartError(ExecutorError):
    """The container was created but could not be started."""

    code = "container_start_failure"


class ContainerWaitError(ExecutorError):
    """Waiting for the container to exit failed."""

    code = "container_wait_failure"


class ContainerLogsError(ExecutorError):
    """The container exited but its logs could not be collected."""

    code = "container_logs_failure"


class ConnectionFailureError(ExecutorError):
    """The SSH transport or authentication failed."""

    code = "connection_failure"


class HostKeyVerificationError(ConnectionFailureError):
    """The remote host key is unknown or does not match the trust store."""

    code = "host_key_verification_failure"


class HostKeyStoreMissingError(ExecutorError):
    """Strict host key checking is on but the known_hosts file is absent."""

    code = "host_key_store_missing"

    def __init__(self, known_hosts_file: str, hostname: str = "<hostname>"):
        self.known_hosts_file = known_hosts_file
        super().__init__(
            f"known_hosts file not found at {known_hosts_file}. "
            f"Please add the host key first using: "
            f"ssh-keyscan -H {hostname} >> {known_hosts_file}",
            {"known_hosts_file": known_hosts_file},
        )


class InvalidKeyError(ExecutorError):
    """The private key could not be parsed."""

    code = "invalid_key"


class InvalidHostFormatError(ExecutorError):
    """The host parameter is not of the form ``user@hostname``."""

    code = "invalid_host_format"

    def __init__(self, host: str):
        self.host = host
        super().__init__(
            "The 'host' parameter must be of the form 'user@hostname'",
            {"host": host},
        )


class FileReadError(ExecutorError):
    """A local file could not be read."""

    code = "file_read_failure"

    def __init__(self, path: str, reason: str = ""):
        self.path = path
        self.reason = reason
        super().__init__(
            f"Failed to read file '{path}': {reason}",
            {"path": path},
        )


class NonZeroExitError(ExecutorError):
    """
    The operation ran to completion but the program reported failure.

    The diagnostic payload is attached as ``result`` so callers get both the
    output and the failure signal.
    """

    code = "non_zero_exit"

    def __init__(self, exit_code: int, result: Dict[str, Any], what: str = "command"):
        self.exit_code = exit_code
        self.result = result
        super().__init__(
            f"{what} failed with exit code {exit_code}",
            {"exit_code": exit_code},
        )


class ExecutionTimeoutError(ExecutorError):
    """The deadline elapsed; resources were reclaimed before raising."""

    code = "timeout"

    def __init__(self, operation: str, timeout: float):
        self.operation = operation
        self.timeout = timeout
        super().__init__(
            f"{operation} timed out after {timeout}s",
            {"operation": operation, "timeout": timeout},
        )


class ExecutionCanceledError(ExecutorError):
    """External cancellation was observed."""

    code = "canceled"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"{operation} was canceled", {"operation": operation})
