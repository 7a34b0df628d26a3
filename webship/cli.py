#!/usr/bin/env python3
"""Webship CLI - Git deployments to whitelisted servers."""

import typer
from rich.console import Console

from webship.cli_deploy_commands import register_deploy_commands
from webship.cli_server_commands import register_server_commands

app = typer.Typer(
    name="webship",
    help="""Webship - Git deployments to whitelisted servers

Pull a branch, migrate, rebuild assets and restart, over SSH.
Conflicts are rolled back automatically.

Quick start:
  webship servers                      # Show configured servers
  webship plan prod shop feature/x     # Review the commands
  webship deploy prod shop feature/x   # Run them
""",
    add_completion=False,
)

console = Console()

register_server_commands(app, console)
register_deploy_commands(app, console)

if __name__ == "__main__":
    app()
