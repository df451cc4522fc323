#!/usr/bin/env python3
"""
Orkestra executor CLI - run a single task definition locally
"""

import argparse
import asyncio
import signal
import sys
import uuid
from typing import List, Optional

import yaml

from orkestra_executors import __version__
from orkestra_executors.application.services import build_default_registry
from orkestra_executors.cli.formatter import ResultFormatter
from orkestra_executors.domain.errors import ExecutionCanceledError, ExecutionTimeoutError
from orkestra_executors.domain.value_objects import ExecutionContext, TaskDescriptor
from orkestra_executors.infrastructure.config import get_settings
from orkestra_executors.infrastructure.logging import configure_logging

EXIT_OK = 0
EXIT_TASK_FAILED = 1
EXIT_BAD_INPUT = 2
EXIT_TIMEOUT = 4
EXIT_INTERRUPTED = 130


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        prog="orkestra-exec",
        description="Run one Orkestra task (cmd/run, docker/run, ssh/run, fs/read) locally",
    )
    parser.add_argument(
        "task_file",
        type=str,
        help="YAML or JSON file with 'uses' and 'with' keys",
    )
    parser.add_argument(
        "--format",
        choices=["pretty", "json", "yaml"],
        default="pretty",
        help="Output format (default: pretty)",
    )
    parser.add_argument(
        "--output", "-o",
        type=str,
        help="Save the result to file",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: from ORKESTRA_LOG_LEVEL)",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Only print the result",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser.parse_args(argv)


def load_task(path: str) -> TaskDescriptor:
    """
    Load a task descriptor from a YAML or JSON file.

    Raises:
        OSError: If the file cannot be read
        ValueError: If the content is not a valid task definition
    """
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML/JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("Task file must contain a mapping")
    return TaskDescriptor.from_dict(data)


def exit_code_for(result) -> int:
    if result.ok:
        return EXIT_OK
    if isinstance(result.error, ExecutionTimeoutError):
        return EXIT_TIMEOUT
    if isinstance(result.error, ExecutionCanceledError):
        return EXIT_INTERRUPTED
    return EXIT_TASK_FAILED


async def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI function"""
    args = parse_args(argv)
    settings = get_settings()
    configure_logging(
        log_level=args.log_level or ("WARNING" if args.quiet else settings.log_level),
        log_format=settings.log_format,
    )

    try:
        descriptor = load_task(args.task_file)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_BAD_INPUT

    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    signals = (signal.SIGINT, signal.SIGTERM) if sys.platform != "win32" else ()
    for signum in signals:
        loop.add_signal_handler(signum, cancel_event.set)

    context = ExecutionContext(cancel_event=cancel_event, execution_id=uuid.uuid4().hex[:12])
    registry = build_default_registry(settings)

    if not args.quiet:
        print(f"Running {descriptor.operation} from {args.task_file}")
        print("-" * 50)

    try:
        result = await registry.run(descriptor, context)
    finally:
        for signum in signals:
            loop.remove_signal_handler(signum)
    output = ResultFormatter(format=args.format).format_result(result)
    print(output)

    if args.output:
        try:
            with open(args.output, "w", encoding="utf-8") as f:
                f.write(output)
        except OSError as e:
            print(f"Error saving result to file: {e}", file=sys.stderr)
            return EXIT_TASK_FAILED

    return exit_code_for(result)


def entry_point():
    """CLI entry point"""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        sys.exit(EXIT_INTERRUPTED)


if __name__ == "__main__":
    entry_point()
