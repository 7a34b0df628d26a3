"""Public plan/execute surface with closed operation-type dispatch."""
from enum import Enum
from typing import Mapping, Optional, Union

from webship.core.config import WebshipConfig, get_config
from webship.core.executor import UpdateExecutor
from webship.core.lock import deploy_lock
from webship.core.logger import get_logger
from webship.core.planner import plan_update
from webship.core.progress import ProgressCallback
from webship.core.remote import SSHRunner
from webship.models.plan import DeploymentPlan
from webship.models.results import ExecutionResult
from webship.models.server import ServerConfig

logger = get_logger(__name__)


class OperationType(str, Enum):
    """Supported deployment operations."""

    GIT_DEPLOYMENT = "git-deployment"


class UnknownOperationError(ValueError):
    """Raised for an operation type outside OperationType."""
    pass


def _resolve(operation: Union[OperationType, str]) -> OperationType:
    try:
        return OperationType(operation)
    except ValueError:
        available = ", ".join(op.value for op in OperationType)
        raise UnknownOperationError(
            f"Unknown operation type: {operation!r}. Available types: {available}"
        ) from None


def plan_operation(
    operation: Union[OperationType, str],
    servers: Mapping[str, ServerConfig],
    server_key: str,
    directory: str,
    branch: str,
    config: Optional[WebshipConfig] = None,
) -> DeploymentPlan:
    """Route a planning request to the planner of its operation type."""
    op = _resolve(operation)
    config = config or get_config()
    logger.debug(f"Planning {op.value}")

    if op is OperationType.GIT_DEPLOYMENT:
        return plan_update(
            server_key,
            directory,
            branch,
            servers,
            base_directory=config.base_directory,
            main_branch=config.main_branch,
        )

    raise UnknownOperationError(f"No planner registered for {op.value}")


def execute_operation(
    operation: Union[OperationType, str],
    plan: DeploymentPlan,
    progress_callback: Optional[ProgressCallback] = None,
    runner=None,
    config: Optional[WebshipConfig] = None,
    mock: bool = False,
) -> ExecutionResult:
    """Route an execution request to the executor of its operation type.

    The plan's target (host + directory) is locked for the whole run.

    Raises:
        LockError: If another deployment to the same target is in flight
        ValidationError: If the plan is malformed
    """
    op = _resolve(operation)
    config = config or get_config()
    if runner is None:
        runner = SSHRunner.from_config(config, mock=mock)

    if op is OperationType.GIT_DEPLOYMENT:
        executor = UpdateExecutor(runner, base_directory=config.base_directory)
        with deploy_lock(
            config.lock_dir, plan.ssh_host, plan.directory, timeout=config.lock_timeout
        ):
            return executor.execute_update(
                list(plan.commands),
                plan.ssh_host,
                plan.directory,
                plan.branch,
                progress_callback,
            )

    raise UnknownOperationError(f"No executor registered for {op.value}")


def plan(
    servers: Mapping[str, ServerConfig],
    server_key: str,
    directory: str,
    branch: str,
    config: Optional[WebshipConfig] = None,
) -> DeploymentPlan:
    """Plan a git deployment."""
    return plan_operation(
        OperationType.GIT_DEPLOYMENT, servers, server_key, directory, branch, config=config
    )


def execute(
    plan: DeploymentPlan,
    progress_callback: Optional[ProgressCallback] = None,
    runner=None,
    config: Optional[WebshipConfig] = None,
    mock: bool = False,
) -> ExecutionResult:
    """Execute a git deployment plan."""
    return execute_operation(
        OperationType.GIT_DEPLOYMENT,
        plan,
        progress_callback=progress_callback,
        runner=runner,
        config=config,
        mock=mock,
    )
