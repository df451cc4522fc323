"""
Result formatting utilities for CLI output
"""

import json
import sys

import yaml

from orkestra_executors.domain.value_objects import TaskResult


class ResultFormatter:
    """
    Format task results for different output types
    """

    def __init__(self, format: str = "pretty", use_colors: bool = True):
        self.format = format
        self.use_colors = use_colors and hasattr(sys.stdout, "isatty") and sys.stdout.isatty()
        codes = {
            "reset": "\033[0m",
            "red": "\033[91m",
            "green": "\033[92m",
            "yellow": "\033[93m",
            "blue": "\033[94m",
            "dim": "\033[2m",
        }
        self.colors = codes if self.use_colors else {k: "" for k in codes}

    def _colorize(self, text: str, color: str) -> str:
        return f"{self.colors[color]}{text}{self.colors['reset']}"

    def format_result(self, result: TaskResult) -> str:
        if self.format == "json":
            return json.dumps(result.to_dict(), indent=2, ensure_ascii=False)
        if self.format == "yaml":
            return yaml.safe_dump(result.to_dict(), allow_unicode=True, sort_keys=False)
        return self._format_pretty(result)

    def _format_pretty(self, result: TaskResult) -> str:
        output = []
        if result.ok:
            output.append(self._colorize(f"{result.operation} succeeded", "green"))
        else:
            output.append(
                self._colorize(
                    f"{result.operation} failed [{result.error.code}]: {result.error.message}",
                    "red",
                )
            )
        output.append("")

        payload = result.payload or {}
        for name in ("stdout", "stderr", "logs", "content"):
            text = payload.get(name)
            if not text:
                continue
            color = "yellow" if name == "stderr" else "blue"
            output.append(self._colorize(f"{name.upper()}:", color))
            output.append(self._colorize("-" * 40, "dim"))
            output.append(text.rstrip())
            output.append("")

        for name in ("exit_code", "container_id", "size"):
            if name in payload:
                output.append(f"{name}: {payload[name]}")

        return "\n".join(output).rstrip()
