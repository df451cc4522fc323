"""
Command backend.

Runs ``cmd/run`` tasks as a local shell process with a wall-clock deadline.
The process runs in its own session so the whole tree can be killed on
timeout or cancellation.
"""

import asyncio
import os
import signal
import sys
from typing import Any, Dict, List, Mapping, Optional

import psutil
import structlog

from orkestra_executors.application.dto import CommandRunParams, decode_params
from orkestra_executors.domain.errors import LaunchFailureError, NonZeroExitError
from orkestra_executors.domain.value_objects import ExecutionContext, ProcessOutput
from orkestra_executors.infrastructure.backends.base import BaseExecutor, Handler
from orkestra_executors.infrastructure.backends.deadline import wait_bounded
from orkestra_executors.infrastructure.config import Settings, get_settings

logger = structlog.get_logger(__name__)

CMD_RUN = "cmd/run"


def default_shell() -> str:
    return "powershell" if sys.platform == "win32" else "sh"


def shell_command(shell: str, command: str) -> List[str]:
    """
    Build the argv that makes ``shell`` run ``command``.

    Args:
        shell: Shell executable name or path
        command: Command line

    Returns:
        argv list
    """
    name = os.path.basename(shell).lower()
    if name.endswith(".exe"):
        name = name[:-4]
    if name in ("powershell", "pwsh"):
        flag = "-Command"
    elif name == "cmd":
        flag = "/C"
    else:
        flag = "-c"
    return [shell, flag, command]


def kill_process_tree(pid: int, reaped: bool = False) -> None:
    """
    Kill the session led by ``pid`` and every descendant still alive.

    Args:
        pid: Session leader started with ``start_new_session=True``
        reaped: The leader has already been waited for. Its pid is then only
            used as a process group id, which cannot be recycled while
            orphans of the group are still alive.
    """
    victims = []
    if not reaped:
        try:
            parent = psutil.Process(pid)
            # Collect descendants before the parent dies and they get reparented
            victims = parent.children(recursive=True) + [parent]
        except psutil.NoSuchProcess:
            pass

    if hasattr(os, "killpg"):
        try:
            os.killpg(pid, signal.SIGKILL)
        except (ProcessLookupError, PermissionError):
            pass

    for proc in victims:
        try:
            proc.kill()
        except psutil.NoSuchProcess:
            pass
        except psutil.AccessDenied as exc:
            logger.warning("Cannot kill process", pid=proc.pid, error=str(exc))


class CommandExecutor(BaseExecutor):
    """Executes shell commands on the local host."""

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self._timeout = settings.command_timeout
        super().__init__()

    def _build_handlers(self) -> Dict[str, Handler]:
        return {CMD_RUN: self._run_command}

    async def _run_command(
        self,
        parameters: Mapping[str, Any],
        context: ExecutionContext,
    ) -> ProcessOutput:
        params = decode_params(CommandRunParams, CMD_RUN, parameters)
        shell = params.shell or default_shell()

        env = os.environ.copy()
        env.update(params.env_strings())

        log = logger.bind(operation=CMD_RUN, execution_id=context.execution_id)
        log.info("Executing command", shell=shell, command=params.run, cwd=params.cwd)

        try:
            process = await asyncio.create_subprocess_exec(
                *shell_command(shell, params.run),
                cwd=params.cwd,
                env=env,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as exc:
            raise LaunchFailureError(
                f"Failed to start command with shell '{shell}': {exc}",
                {"shell": shell, "cwd": params.cwd},
            ) from exc

        completed = False
        try:
            stdout, stderr = await wait_bounded(
                process.communicate(),
                operation=CMD_RUN,
                timeout=self._timeout,
                context=context,
            )
            completed = True
        finally:
            if not completed:
                # The shell may have exited already while background jobs
                # still hold the output pipes
                log.warning("Terminating command", pid=process.pid)
                kill_process_tree(process.pid, reaped=process.returncode is not None)
                await process.wait()

        output = ProcessOutput(
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            exit_code=process.returncode,
        )
        log.info("Command finished", exit_code=output.exit_code, pid=process.pid)
        log.debug("Command output", stdout=output.stdout, stderr=output.stderr)

        if output.exit_code != 0:
            raise NonZeroExitError(output.exit_code, output.to_dict(), what="command")
        return output
