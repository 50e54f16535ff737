"""Styled status lines for CLI commands."""

from __future__ import annotations

import click

# kind -> (marker, colour, write to stderr)
_STYLES: dict[str, tuple[str, str, bool]] = {
    "success": ("✓", "green", False),
    "error": ("✗", "red", True),
    "warning": ("⚠", "yellow", False),
    "info": ("ℹ", "blue", False),
}


def _emit(kind: str, message: str) -> None:
    marker, colour, to_stderr = _STYLES[kind]
    click.secho(f"{marker} {message}", fg=colour, err=to_stderr)


def success(message: str) -> None:
    _emit("success", message)


def error(message: str) -> None:
    """Errors go to stderr so scripted callers can separate them."""
    _emit("error", message)


def warning(message: str) -> None:
    _emit("warning", message)


def info(message: str) -> None:
    _emit("info", message)


def header(title: str) -> None:
    """Bold section title preceded by a blank line."""
    click.echo()
    click.secho(title, fg="cyan", bold=True)
