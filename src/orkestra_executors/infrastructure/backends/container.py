"""
Container backend.

Runs ``docker/run`` tasks in an ephemeral container using aiodocker:
pull, create, start, wait, collect logs. Once created, the container is
force-removed on every exit path.
"""

from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import aiohttp
import structlog
from aiodocker import Docker
from aiodocker.exceptions import DockerError

from orkestra_executors.application.dto import ContainerRunParams, decode_params
from orkestra_executors.domain.errors import (
    ContainerCreateError,
    ContainerLogsError,
    ContainerStartError,
    ContainerWaitError,
    ImagePullError,
    NonZeroExitError,
)
from orkestra_executors.domain.value_objects import ContainerOutput, ExecutionContext
from orkestra_executors.infrastructure.backends.base import BaseExecutor, Handler
from orkestra_executors.infrastructure.backends.deadline import wait_bounded
from orkestra_executors.infrastructure.config import Settings, get_settings

logger = structlog.get_logger(__name__)

DOCKER_RUN = "docker/run"
EXECUTOR_LABEL = "io.orkestra.executor"

# Errors the Docker client raises for daemon or transport problems
DOCKER_ERRORS = (DockerError, aiohttp.ClientError, OSError)


def split_image_reference(image: str) -> Tuple[str, Optional[str]]:
    """
    Split an image reference into (from_image, tag).

    References without a tag are pulled as ``latest``; the engine API would
    otherwise pull every tag. Digest references are passed through.

    Examples:
        "alpine" -> ("alpine", "latest")
        "localhost:5000/tools/jq:1.7" -> ("localhost:5000/tools/jq", "1.7")
        "alpine@sha256:abc" -> ("alpine@sha256:abc", None)
    """
    if "@" in image:
        return image, None
    prefix, slash, last = image.rpartition("/")
    if ":" in last:
        name, tag = last.rsplit(":", 1)
        return f"{prefix}{slash}{name}", tag
    return image, "latest"


class ContainerExecutor(BaseExecutor):
    """Executes commands inside ephemeral Docker containers."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        docker_factory: Optional[Callable[[], Docker]] = None,
    ):
        """
        Args:
            settings: Executor settings (timeout, Docker endpoint)
            docker_factory: Builds a Docker client per call; defaults to
                connecting to ``settings.docker_host``
        """
        settings = settings or get_settings()
        self._timeout = settings.container_timeout
        self._docker_host = settings.docker_host
        self._docker_factory = docker_factory or self._connect
        super().__init__()

    def _build_handlers(self) -> Dict[str, Handler]:
        return {DOCKER_RUN: self._run_container}

    def _connect(self) -> Docker:
        return Docker(url=self._docker_host)

    async def _run_container(
        self,
        parameters: Mapping[str, Any],
        context: ExecutionContext,
    ) -> ContainerOutput:
        params = decode_params(ContainerRunParams, DOCKER_RUN, parameters)
        log = logger.bind(operation=DOCKER_RUN, execution_id=context.execution_id, image=params.image)

        try:
            docker = self._docker_factory()
        except (ValueError, *DOCKER_ERRORS) as exc:
            raise ImagePullError(
                f"Docker engine unavailable, cannot pull '{params.image}': {exc}",
                {"image": params.image},
            ) from exc

        try:
            await self._pull(docker, params.image, log)
            container = await self._create(docker, params, log)
            log = log.bind(container_id=container.id)
            try:
                await self._start(container, log)
                exit_code = await self._wait(container, context)
                logs = await self._logs(container)
            finally:
                await self._remove(container, log)
        finally:
            await docker.close()

        output = ContainerOutput(logs=logs, exit_code=exit_code, container_id=container.id)
        log.info("Container finished", exit_code=exit_code)
        if exit_code != 0:
            raise NonZeroExitError(exit_code, output.to_dict(), what="container")
        return output

    async def _pull(self, docker: Docker, image: str, log) -> None:
        from_image, tag = split_image_reference(image)
        log.info("Pulling image", tag=tag)
        try:
            progress = await docker.images.pull(from_image, tag=tag)
        except DOCKER_ERRORS as exc:
            raise ImagePullError(
                f"Failed to pull docker image '{image}': {exc}", {"image": image}
            ) from exc

        # Failures mid-stream arrive as progress entries, not HTTP errors
        if isinstance(progress, dict):
            progress = [progress]
        for entry in progress or []:
            if isinstance(entry, dict) and entry.get("error"):
                raise ImagePullError(
                    f"Failed to pull docker image '{image}': {entry['error']}",
                    {"image": image},
                )

    async def _create(self, docker: Docker, params: ContainerRunParams, log):
        config: Dict[str, Any] = {
            "Image": params.image,
            "Labels": {EXECUTOR_LABEL: DOCKER_RUN},
        }
        cmd = params.cmd()
        if cmd:
            config["Cmd"] = cmd
        env = params.env_list()
        if env:
            config["Env"] = env

        try:
            container = await docker.containers.create(config)
        except DOCKER_ERRORS as exc:
            raise ContainerCreateError(
                f"Failed to create container: {exc}", {"image": params.image}
            ) from exc
        log.info("Created container", container_id=container.id, cmd=cmd)
        return container

    async def _start(self, container, log) -> None:
        try:
            await container.start()
        except DOCKER_ERRORS as exc:
            raise ContainerStartError(
                f"Failed to start container: {exc}", {"container_id": container.id}
            ) from exc
        log.info("Started container")

    async def _wait(self, container, context: ExecutionContext) -> int:
        try:
            status = await wait_bounded(
                container.wait(),
                operation=DOCKER_RUN,
                timeout=self._timeout,
                context=context,
            )
        except DOCKER_ERRORS as exc:
            raise ContainerWaitError(
                f"Error waiting for container: {exc}", {"container_id": container.id}
            ) from exc

        error = status.get("Error") or {}
        if error.get("Message"):
            raise ContainerWaitError(
                f"Error waiting for container: {error['Message']}",
                {"container_id": container.id},
            )
        return int(status["StatusCode"])

    async def _logs(self, container) -> str:
        try:
            chunks = await container.log(stdout=True, stderr=True)
        except DOCKER_ERRORS as exc:
            raise ContainerLogsError(
                f"Failed to get container logs: {exc}", {"container_id": container.id}
            ) from exc
        return "".join(chunks)

    async def _remove(self, container, log) -> None:
        try:
            await container.delete(force=True)
            log.info("Removed container")
        except DOCKER_ERRORS as exc:
            log.warning("Failed to remove container", error=str(exc))
