"""
Unit tests for CommandExecutor.

These run real processes through ``sh``.
"""

import asyncio
import signal
import time
from unittest.mock import patch

import psutil
import pytest

from orkestra_executors.domain.errors import (
    ExecutionCanceledError,
    ExecutionTimeoutError,
    LaunchFailureError,
    NonZeroExitError,
    UnsupportedOperationError,
    ValidationError,
)
from orkestra_executors.domain.value_objects import ExecutionContext, TaskDescriptor
from orkestra_executors.infrastructure.backends.command import (
    CommandExecutor,
    kill_process_tree,
    shell_command,
)
from orkestra_executors.infrastructure.config import Settings


def cmd_task(**parameters) -> TaskDescriptor:
    return TaskDescriptor(operation="cmd/run", parameters=parameters)


def is_running(pid: int) -> bool:
    try:
        return psutil.Process(pid).status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False


def wait_until_gone(pid: int, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if not is_running(pid):
            return True
        time.sleep(0.05)
    return False


class TestShellCommand:
    """Tests for argv construction."""

    @pytest.mark.parametrize(
        "shell,flag",
        [
            ("sh", "-c"),
            ("/bin/bash", "-c"),
            ("powershell", "-Command"),
            ("pwsh.exe", "-Command"),
            ("cmd", "/C"),
        ],
    )
    def test_flag_per_shell(self, shell, flag):
        assert shell_command(shell, "echo hi") == [shell, flag, "echo hi"]


@pytest.mark.posix
class TestKillProcessTree:
    """Tests for process tree termination."""

    def test_reaped_leader_signals_group_only(self):
        with patch("os.killpg") as killpg, patch("psutil.Process") as process_cls:
            kill_process_tree(4242, reaped=True)

        killpg.assert_called_once_with(4242, signal.SIGKILL)
        process_cls.assert_not_called()

    def test_group_already_gone(self):
        with patch("os.killpg", side_effect=ProcessLookupError), patch(
            "psutil.Process", side_effect=psutil.NoSuchProcess(4242)
        ):
            kill_process_tree(4242)


@pytest.mark.posix
class TestCommandExecutor:
    """Tests for cmd/run."""

    @pytest.fixture
    def executor(self, settings):
        return CommandExecutor(settings)

    def test_capabilities(self, executor):
        assert executor.get_capabilities() == frozenset({"cmd/run"})

    @pytest.mark.asyncio
    async def test_echo(self, executor, context):
        result = await executor.execute(cmd_task(run="echo hello"), context)

        assert result == {"stdout": "hello\n", "stderr": "", "exit_code": 0}

    @pytest.mark.asyncio
    async def test_stderr_is_captured(self, executor, context):
        result = await executor.execute(cmd_task(run="echo oops >&2"), context)

        assert result["stderr"] == "oops\n"

    @pytest.mark.asyncio
    async def test_non_zero_exit(self, executor, context):
        with pytest.raises(NonZeroExitError) as exc_info:
            await executor.execute(cmd_task(run="echo partial; exit 7"), context)

        assert exc_info.value.exit_code == 7
        assert exc_info.value.result["stdout"] == "partial\n"
        assert exc_info.value.result["exit_code"] == 7

    @pytest.mark.asyncio
    async def test_non_zero_exit_result_envelope(self, executor, context):
        result = await executor.run(cmd_task(run="exit 3"), context)

        assert result.ok is False
        assert result.error.code == "non_zero_exit"
        assert result.payload["exit_code"] == 3

    @pytest.mark.asyncio
    async def test_env_overrides_inherited(self, executor, context, monkeypatch):
        monkeypatch.setenv("A", "1")
        monkeypatch.setenv("KEEP", "kept")

        result = await executor.execute(
            cmd_task(run='echo "$A $B $KEEP"', env={"A": "2", "B": 3}),
            context,
        )

        assert result["stdout"] == "2 3 kept\n"

    @pytest.mark.asyncio
    async def test_cwd(self, executor, context, tmp_path):
        result = await executor.execute(cmd_task(run="pwd", cwd=str(tmp_path)), context)

        assert result["stdout"].strip() == str(tmp_path.resolve())

    @pytest.mark.asyncio
    async def test_missing_cwd_is_launch_failure(self, executor, context, tmp_path):
        with pytest.raises(LaunchFailureError):
            await executor.execute(
                cmd_task(run="true", cwd=str(tmp_path / "missing")), context
            )

    @pytest.mark.asyncio
    async def test_missing_shell_is_launch_failure(self, executor, context):
        with pytest.raises(LaunchFailureError) as exc_info:
            await executor.execute(
                cmd_task(run="true", shell="/nonexistent/shell"), context
            )

        assert exc_info.value.details["shell"] == "/nonexistent/shell"

    @pytest.mark.asyncio
    async def test_missing_run_never_spawns(self, executor, context):
        with patch("asyncio.create_subprocess_exec") as spawn:
            with pytest.raises(ValidationError):
                await executor.execute(cmd_task(shell="sh"), context)

        spawn.assert_not_called()

    @pytest.mark.asyncio
    async def test_unsupported_operation(self, executor, context):
        with pytest.raises(UnsupportedOperationError):
            await executor.execute(TaskDescriptor(operation="cmd/exec"), context)

    @pytest.mark.asyncio
    async def test_timeout_kills_process_tree(self, context, tmp_path):
        executor = CommandExecutor(Settings(command_timeout=1.0))
        pidfile = tmp_path / "child.pid"

        started = time.monotonic()
        with pytest.raises(ExecutionTimeoutError) as exc_info:
            await executor.execute(
                cmd_task(run=f"sleep 30 & echo $! > {pidfile}; wait"), context
            )
        elapsed = time.monotonic() - started

        assert exc_info.value.timeout == 1.0
        assert elapsed < 10
        child_pid = int(pidfile.read_text().strip())
        assert wait_until_gone(child_pid)

    @pytest.mark.asyncio
    async def test_timeout_kills_background_job_after_shell_exits(self, context, tmp_path):
        """The shell is gone but its background job still holds stdout."""
        executor = CommandExecutor(Settings(command_timeout=1.0))
        pidfile = tmp_path / "orphan.pid"

        with pytest.raises(ExecutionTimeoutError):
            await executor.execute(
                cmd_task(run=f"sleep 30 & echo $! > {pidfile}; exit 0"), context
            )

        assert wait_until_gone(int(pidfile.read_text().strip()))

    @pytest.mark.asyncio
    async def test_cancellation_kills_background_job_after_shell_exits(self, executor, tmp_path):
        event = asyncio.Event()
        context = ExecutionContext(cancel_event=event, execution_id="exec_cancel_bg")
        pidfile = tmp_path / "orphan.pid"
        asyncio.get_running_loop().call_later(0.5, event.set)

        with pytest.raises(ExecutionCanceledError):
            await executor.execute(
                cmd_task(run=f"sleep 30 & echo $! > {pidfile}; exit 0"), context
            )

        assert wait_until_gone(int(pidfile.read_text().strip()))

    @pytest.mark.asyncio
    async def test_cancellation(self, executor, tmp_path):
        event = asyncio.Event()
        context = ExecutionContext(cancel_event=event, execution_id="exec_cancel")
        pidfile = tmp_path / "shell.pid"
        asyncio.get_running_loop().call_later(0.5, event.set)

        with pytest.raises(ExecutionCanceledError):
            await executor.execute(
                cmd_task(run=f"echo $$ > {pidfile}; sleep 30"), context
            )

        assert wait_until_gone(int(pidfile.read_text().strip()))

    @pytest.mark.asyncio
    async def test_already_cancelled_never_spawns(self, executor):
        event = asyncio.Event()
        event.set()

        with patch("asyncio.create_subprocess_exec") as spawn:
            with pytest.raises(ExecutionCanceledError):
                await executor.execute(
                    cmd_task(run="true"), ExecutionContext(cancel_event=event)
                )

        spawn.assert_not_called()
