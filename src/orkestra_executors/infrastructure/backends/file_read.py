"""
File-read backend.

Runs ``fs/read`` tasks. Local reads carry no deadline, unlike the process,
container and SSH backends.
"""

import asyncio
from pathlib import Path
from typing import Any, Dict, Mapping

import structlog

from orkestra_executors.application.dto import FileReadParams, decode_params
from orkestra_executors.domain.errors import FileReadError
from orkestra_executors.domain.value_objects import ExecutionContext, FileContent
from orkestra_executors.infrastructure.backends.base import BaseExecutor, Handler

logger = structlog.get_logger(__name__)

FS_READ = "fs/read"


class FileReadExecutor(BaseExecutor):
    """Reads local files."""

    def _build_handlers(self) -> Dict[str, Handler]:
        return {FS_READ: self._read_file}

    async def _read_file(
        self,
        parameters: Mapping[str, Any],
        context: ExecutionContext,
    ) -> FileContent:
        params = decode_params(FileReadParams, FS_READ, parameters)
        logger.info("Reading file", path=params.path, execution_id=context.execution_id)

        loop = asyncio.get_running_loop()
        try:
            data = await loop.run_in_executor(None, Path(params.path).read_bytes)
        except OSError as exc:
            raise FileReadError(params.path, exc.strerror or str(exc)) from exc

        return FileContent(content=data.decode("utf-8", errors="replace"), size=len(data))
