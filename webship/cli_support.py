"""Shared utilities for Webship CLI modules."""
from __future__ import annotations

import os
from typing import Dict, Optional

import typer
from rich.console import Console

from webship.models.server import ServerConfig


def is_mock() -> bool:
    """Return True when CLI runs in mock mode."""
    return os.environ.get("WEBSHIP_MOCK") == "1"


def setup_file_logging(log_file: Optional[str] = None, verbose: bool = False) -> None:
    """Set up file logging for CLI commands."""
    from webship.core.logger import setup_file_logging as _setup_file_logging
    _setup_file_logging(log_file=log_file, verbose=verbose)


def load_servers(config_path: Optional[str]) -> Dict[str, ServerConfig]:
    """Find and load the servers whitelist."""
    from webship.config.loader import ServersConfigLoader, find_servers_config

    return ServersConfigLoader(find_servers_config(config_path)).load()


def confirm_action(message: str, yes_flag: bool = False, mock: bool = False) -> bool:
    """Prompt user for confirmation unless --yes or mock mode."""
    if yes_flag or mock:
        return True
    return typer.confirm(message)


def handle_cli_error(
    e: Exception,
    console: Console,
    verbose: bool = False,
    exit_code: int = 1
) -> None:
    """Handle CLI errors with consistent formatting.

    Args:
        e: Exception to handle
        console: Rich console for output
        verbose: Show exception traceback if True
        exit_code: Exit code to use
    """
    console.print(f"[red]Error:[/red] {e}")
    if verbose:
        console.print_exception()
    raise typer.Exit(exit_code)


def print_success(console: Console, message: str, prefix: str = "✓") -> None:
    console.print(f"[green]{prefix}[/green] {message}")


def print_error(console: Console, message: str, prefix: str = "✗") -> None:
    console.print(f"[red]{prefix}[/red] {message}")


def print_warning(console: Console, message: str, prefix: str = "⚠") -> None:
    console.print(f"[yellow]{prefix}[/yellow] {message}")


def print_info(console: Console, message: str, prefix: str = "ℹ") -> None:
    console.print(f"[cyan]{prefix}[/cyan] {message}")
