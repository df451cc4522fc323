"""Pytest configuration and fixtures."""

import io
import sys

import paramiko
import pytest

from orkestra_executors.domain.value_objects import ExecutionContext
from orkestra_executors.infrastructure.config import Settings


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: needs a real Docker daemon"
    )
    config.addinivalue_line(
        "markers", "posix: needs a POSIX shell"
    )


def pytest_collection_modifyitems(config, items):
    """Skip POSIX-only tests on Windows."""
    if sys.platform != "win32":
        return
    skip_posix = pytest.mark.skip(reason="requires a POSIX shell")
    for item in items:
        if "posix" in item.keywords:
            item.add_marker(skip_posix)


@pytest.fixture
def context() -> ExecutionContext:
    """Plain execution context with a correlation id."""
    return ExecutionContext(execution_id="exec_test_001")


@pytest.fixture
def settings() -> Settings:
    """Settings with short deadlines for fast tests."""
    return Settings(
        command_timeout=5.0,
        container_timeout=5.0,
        ssh_timeout=5.0,
        ssh_connect_timeout=1.0,
    )


@pytest.fixture(scope="session")
def rsa_key_text() -> str:
    """A freshly generated RSA private key in PEM encoding."""
    key = paramiko.RSAKey.generate(2048)
    buffer = io.StringIO()
    key.write_private_key(buffer)
    return buffer.getvalue()
