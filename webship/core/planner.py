"""Deployment planner: validate a request and emit the command sequence."""
from typing import List, Mapping, Union

from webship.core.logger import get_logger
from webship.core.rollback import DEFAULT_BASE_DIRECTORY, app_path
from webship.core.validators import (
    ValidationError,
    validate_in,
    validate_non_empty_string,
    validate_pattern,
)
from webship.models.plan import DeploymentPlan
from webship.models.server import ServerConfig

logger = get_logger(__name__)

BRANCH_PATTERN = r"^[A-Za-z0-9_./-]+$"
DEFAULT_MAIN_BRANCH = "main"


def generate_update_commands(
    directory: str,
    branch: str,
    base_directory: str = DEFAULT_BASE_DIRECTORY,
    main_branch: str = DEFAULT_MAIN_BRANCH,
) -> List[str]:
    """Fixed update template for a Rails app living in base_directory/directory."""
    return [
        f"cd {app_path(directory, base_directory)}",
        "git fetch origin",
        "git stash",
        f"git checkout {main_branch}",
        f"git pull origin {main_branch}",
        f"git checkout {branch}",
        f"git pull origin {branch}",
        "git stash pop || true",
        "rails db:migrate",
        "rails assets:clobber",
        "rails assets:precompile",
        f"sudo systemctl restart {directory}.service",
    ]


def _as_server_config(raw: Union[ServerConfig, Mapping]) -> ServerConfig:
    if isinstance(raw, ServerConfig):
        return raw
    return ServerConfig.model_construct(
        ssh_host=raw.get("ssh_host", raw.get("sshHost")),
        allowed_directories=raw.get("allowed_directories", raw.get("allowedDirectories")),
    )


def plan_update(
    server_key: str,
    directory: str,
    branch: str,
    servers: Mapping[str, Union[ServerConfig, Mapping]],
    base_directory: str = DEFAULT_BASE_DIRECTORY,
    main_branch: str = DEFAULT_MAIN_BRANCH,
) -> DeploymentPlan:
    """Validate a deployment request against the server whitelist.

    Args:
        server_key: Key of the target server
        directory: App directory, must be whitelisted for the server
        branch: Branch to deploy, restricted to BRANCH_PATTERN
        servers: Already-validated servers configuration
        base_directory: Parent directory of apps on the server
        main_branch: Branch merged before the target branch

    Returns:
        DeploymentPlan with the ordered commands

    Raises:
        ValidationError: On unknown server, disallowed directory, bad branch
            name or missing SSH host
    """
    validate_non_empty_string(server_key, "Server key")
    if server_key not in servers:
        raise ValidationError(
            f"Unknown server: {server_key!r}. "
            f"Available servers: {', '.join(servers) if servers else '(none)'}"
        )
    server = _as_server_config(servers[server_key])

    validate_non_empty_string(directory, "Directory")
    if not server.allowed_directories:
        raise ValidationError(f"Server {server_key!r} has no allowed directories configured")
    validate_in(directory, server.allowed_directories, "Directory")

    validate_non_empty_string(branch, "Branch name")
    validate_pattern(
        branch,
        BRANCH_PATTERN,
        "branch name",
        "Only alphanumeric characters, hyphens, underscores, slashes, and dots are allowed",
    )

    if not server.ssh_host or not isinstance(server.ssh_host, str) or not server.ssh_host.strip():
        raise ValidationError(f"Server {server_key!r} has no SSH host configured")

    commands = generate_update_commands(directory, branch, base_directory, main_branch)
    plan = DeploymentPlan(
        server_key=server_key,
        directory=directory,
        branch=branch,
        commands=tuple(commands),
        ssh_host=server.ssh_host,
    )

    logger.info(
        f"Plan created: server={server_key} directory={directory} "
        f"branch={branch} commands={len(commands)}"
    )
    return plan
