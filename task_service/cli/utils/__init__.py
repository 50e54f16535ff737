"""Helpers shared by CLI commands: the async bridge and styled output."""

from task_service.cli.utils.async_runner import coro
from task_service.cli.utils.formatters import error, header, info, success, warning

__all__ = ["coro", "error", "header", "info", "success", "warning"]
