"""Server CLI commands - servers, lock-status."""
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from webship.cli_support import handle_cli_error, load_servers, print_info, print_warning
from webship.core.config import get_config
from webship.core.lock import check_lock_status
from webship.core.validators import ValidationError, validate_in
from webship.models.config import ConfigValidationError

# Module-level console instance (will be set by register function)
console: Console = Console()


def servers(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to servers.yml"),
):
    """List configured servers and their allowed directories."""
    try:
        configured = load_servers(config)
    except (FileNotFoundError, ConfigValidationError) as e:
        handle_cli_error(e, console)

    table = Table(title="Servers")
    table.add_column("Server", style="cyan")
    table.add_column("SSH host", style="green")
    table.add_column("Directories", style="yellow")

    for key, server in configured.items():
        table.add_row(key, server.ssh_host, ", ".join(server.allowed_directories))

    console.print(table)


def lock_status(
    server: str = typer.Argument(..., help="Server key"),
    directory: str = typer.Argument(..., help="App directory"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to servers.yml"),
):
    """Show whether a deployment is in progress for a server directory."""
    try:
        configured = load_servers(config)
    except (FileNotFoundError, ConfigValidationError) as e:
        handle_cli_error(e, console)

    try:
        if server not in configured:
            raise ValidationError(f"Unknown server: {server!r}")
        validate_in(directory, configured[server].allowed_directories, "Directory")
    except ValidationError as e:
        handle_cli_error(e, console)

    info = check_lock_status(get_config().lock_dir, configured[server].ssh_host, directory)
    if info is None:
        print_info(console, f"No deployment in progress for {directory} on {server}")
        return

    print_warning(
        console,
        f"Deployment in progress for {directory} on {server} "
        f"(PID {info['pid']} since {info['time']})",
    )


def register_server_commands(app: typer.Typer, shared_console: Console):
    """Register server commands with the main Typer app."""
    global console
    console = shared_console

    app.command()(servers)
    app.command(name="lock-status")(lock_status)
