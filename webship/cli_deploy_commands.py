"""Deployment CLI commands - plan, deploy."""
import json
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from webship.cli_support import (
    confirm_action,
    handle_cli_error,
    is_mock,
    load_servers,
    print_error,
    print_info,
    print_success,
    print_warning,
    setup_file_logging,
)
from webship.core import operations
from webship.core.config import get_config
from webship.core.lock import LockError
from webship.core.progress import ProgressEvent, ProgressStatus
from webship.core.validators import ValidationError
from webship.models.config import ConfigValidationError
from webship.models.plan import DeploymentPlan
from webship.models.results import ExecutionConflict, ExecutionFailure

# Module-level console instance (will be set by register function)
console: Console = Console()

EXIT_FAILURE = 1
EXIT_CONFLICT = 2


def _build_plan(config: Optional[str], server: str, directory: str, branch: str) -> DeploymentPlan:
    try:
        configured = load_servers(config)
        return operations.plan(configured, server, directory, branch, config=get_config())
    except (FileNotFoundError, ConfigValidationError, ValidationError) as e:
        handle_cli_error(e, console)


def _print_plan(plan: DeploymentPlan):
    table = Table(title=f"{plan.branch} → {plan.directory} on {plan.server_key} ({plan.ssh_host})")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Command", style="cyan")

    for index, command in enumerate(plan.commands, start=1):
        table.add_row(str(index), command)

    console.print(table)


def render_event(event: ProgressEvent):
    """Print one progress event for a human."""
    counter = f"[{event.current_step}/{event.total_steps}]"
    status = event.status

    if status == ProgressStatus.STARTED:
        print_info(console, event.message)
    elif status == ProgressStatus.STEP_RUNNING:
        console.print(f"[dim]{counter}[/dim] {event.command}")
    elif status == ProgressStatus.STEP_COMPLETE:
        print_success(console, f"{counter} done in {event.duration}s")
    elif status == ProgressStatus.STEP_FAILED:
        print_error(console, f"{counter} failed after {event.duration}s: {event.error}")
        if event.stderr:
            console.print(event.stderr, style="dim", markup=False)
    elif status == ProgressStatus.CONFLICT_DETECTED:
        print_warning(console, event.message)
    elif status == ProgressStatus.ROLLBACK_RUNNING:
        console.print(
            f"[yellow]  rollback {event.rollback_step}/{event.total_rollback_steps}[/yellow] {event.command}"
        )
    elif status == ProgressStatus.ROLLBACK_STEP_COMPLETE:
        print_success(console, f"  rollback step done in {event.duration}s")
    elif status == ProgressStatus.ROLLBACK_STEP_WARNING:
        print_warning(console, f"  rollback step failed (continuing): {event.error}")
    elif status == ProgressStatus.ROLLBACK_COMPLETED:
        print_info(console, event.message)
    elif status == ProgressStatus.COMPLETED:
        print_success(console, event.message)
    elif status == ProgressStatus.FAILED:
        print_error(console, event.message)


def _echo_event_json(event: ProgressEvent):
    typer.echo(json.dumps(event.to_dict()))


def plan(
    server: str = typer.Argument(..., help="Server key from servers.yml"),
    directory: str = typer.Argument(..., help="App directory to update"),
    branch: str = typer.Argument(..., help="Branch to deploy"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to servers.yml"),
    as_json: bool = typer.Option(False, "--json", help="Print the plan as JSON"),
):
    """Show the commands a deployment would run."""
    deployment_plan = _build_plan(config, server, directory, branch)

    if as_json:
        typer.echo(json.dumps(deployment_plan.to_dict(), indent=2))
        return

    _print_plan(deployment_plan)


def deploy(
    server: str = typer.Argument(..., help="Server key from servers.yml"),
    directory: str = typer.Argument(..., help="App directory to update"),
    branch: str = typer.Argument(..., help="Branch to deploy"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to servers.yml"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    json_events: bool = typer.Option(False, "--json-events", help="Print progress events as JSON lines"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Write logs to this file"),
):
    """Pull a branch onto a server directory and restart the app."""
    if log_file or verbose:
        setup_file_logging(log_file=log_file, verbose=verbose)

    mock = is_mock()
    deployment_plan = _build_plan(config, server, directory, branch)

    if not json_events:
        _print_plan(deployment_plan)
        if not confirm_action(
            f"Deploy {branch} to {directory} on {server}?", yes_flag=yes, mock=mock
        ):
            print_warning(console, "Cancelled")
            raise typer.Exit(0)

    callback = _echo_event_json if json_events else render_event

    try:
        result = operations.execute(deployment_plan, progress_callback=callback, mock=mock)
    except (LockError, ValidationError) as e:
        handle_cli_error(e, console, verbose=verbose)

    if json_events:
        typer.echo(json.dumps(result.to_dict()))

    if isinstance(result, ExecutionConflict):
        if not json_events:
            print_warning(console, result.message)
            print_info(console, f"Rollback {result.rollback.status} ({result.rollback.warnings} warning(s))")
        raise typer.Exit(EXIT_CONFLICT)

    if isinstance(result, ExecutionFailure):
        if not json_events:
            print_error(
                console,
                f"Step {result.failed_at_step}/{result.total_steps} failed: {result.failed_command}",
            )
            if result.stdout:
                console.print(result.stdout, markup=False)
        raise typer.Exit(EXIT_FAILURE)

    if not json_events:
        print_success(console, f"Deployed {branch} to {directory} in {result.total_duration}s")


def register_deploy_commands(app: typer.Typer, shared_console: Console):
    """Register deployment commands with the main Typer app."""
    global console
    console = shared_console

    app.command()(plan)
    app.command()(deploy)
