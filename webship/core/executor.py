"""Update executor: runs a planned command sequence on a server step by step.

Each remote call is a fresh process, so every step replays the whole
executed prefix joined with ``&&``. That keeps ``cd`` and exports in effect
exactly as if the commands ran in one interactive session.
"""
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from webship.core.conflicts import ConflictType, detect_conflict
from webship.core.logger import get_logger
from webship.core.progress import ProgressCallback, ProgressTracker
from webship.core.remote import RemoteCommandError, join_commands
from webship.core.rollback import (
    DEFAULT_BASE_DIRECTORY,
    app_path,
    create_conflict_outcome,
    execute_conflict_cleanup,
)
from webship.core.validators import validate_non_empty_string, validate_string_list
from webship.models.results import ExecutionFailure, ExecutionResult, ExecutionSuccess

logger = get_logger(__name__)

OPERATION_NAME = "serverUpdate"


class ExecutionState(str, Enum):
    """Lifecycle of one executor run."""

    NOT_STARTED = "not-started"
    CAPTURING_BASELINE = "capturing-baseline"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CONFLICT_ROLLING_BACK = "conflict-rolling-back"
    CONFLICT_RESOLVED = "conflict-resolved"


@dataclass
class ExecutionSession:
    """Transient state owned by a single executor run.

    ``executed_commands`` only grows and is always a prefix of the plan.
    """

    commands: Sequence[str]
    executed_commands: List[str] = field(default_factory=list)
    current_step: int = 0
    original_head: Optional[str] = None
    start_time: float = field(default_factory=time.monotonic)
    step_start_time: Optional[float] = None
    state: ExecutionState = ExecutionState.NOT_STARTED

    def advance(self) -> str:
        """Append the next planned command and return it."""
        command = self.commands[len(self.executed_commands)]
        self.executed_commands.append(command)
        self.current_step = len(self.executed_commands)
        self.step_start_time = time.monotonic()
        return command

    def command_chain(self) -> str:
        return join_commands(self.executed_commands)

    def transition(self, state: ExecutionState):
        logger.debug(f"Execution state: {self.state.value} -> {state.value}")
        self.state = state


class UpdateExecutor:
    """Runs deployment commands over a remote runner with conflict rollback."""

    def __init__(self, runner, base_directory: str = DEFAULT_BASE_DIRECTORY):
        """Initialize executor.

        Args:
            runner: Object with ``run(host, command_sequence) -> RemoteResult``
                raising RemoteCommandError on failure (e.g. SSHRunner)
            base_directory: Parent directory of apps on the servers
        """
        self.runner = runner
        self.base_directory = base_directory
        self.last_session: Optional[ExecutionSession] = None

    def execute_update(
        self,
        commands: Sequence[str],
        ssh_host: str,
        directory: str,
        branch: str,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> ExecutionResult:
        """Execute commands on ssh_host one step at a time.

        Args:
            commands: Ordered, non-empty shell commands
            ssh_host: Target host
            directory: App directory (used for baseline capture and rollback)
            branch: Branch being deployed (used in conflict messages)
            progress_callback: Optional sink for ProgressEvent objects

        Returns:
            ExecutionSuccess, ExecutionFailure or ExecutionConflict

        Raises:
            ValidationError: If inputs are malformed (nothing is run remotely)
        """
        commands = validate_string_list(commands, "Commands")
        validate_non_empty_string(ssh_host, "SSH host")
        validate_non_empty_string(directory, "Directory")
        validate_non_empty_string(branch, "Branch name")

        session = ExecutionSession(commands=commands)
        self.last_session = session
        progress = ProgressTracker(OPERATION_NAME, len(commands), progress_callback)

        logger.info(f"Executing update to {ssh_host} ({len(commands)} steps)")
        progress.start(f"Starting update to {ssh_host}")
        session.start_time = progress.start_time

        session.transition(ExecutionState.CAPTURING_BASELINE)
        session.original_head = self._capture_baseline(ssh_host, directory)

        session.transition(ExecutionState.RUNNING)
        while len(session.executed_commands) < len(commands):
            command = session.advance()
            progress.step_start(command)

            try:
                result = self.runner.run(ssh_host, session.command_chain())
            except RemoteCommandError as e:
                detection = detect_conflict(e.stdout, e.stderr)
                if detection.has_conflict:
                    logger.warning(
                        f"Git conflict detected in failed command: {detection.conflict_type.value}"
                    )
                    return self._roll_back(
                        session, progress, ssh_host, directory, branch, detection.conflict_type
                    )
                return self._fail(session, progress, command, e)

            detection = detect_conflict(result.stdout, result.stderr)
            if detection.has_conflict:
                logger.warning(f"Git conflict detected: {detection.conflict_type.value}")
                return self._roll_back(
                    session, progress, ssh_host, directory, branch, detection.conflict_type
                )

            progress.step_complete(command, result.stdout, result.stderr)

        session.transition(ExecutionState.SUCCEEDED)
        total_duration = progress.get_total_duration()
        progress.complete()
        logger.info(f"Update completed in {total_duration}s")

        return ExecutionSuccess(total_steps=len(commands), total_duration=total_duration)

    def _capture_baseline(self, ssh_host: str, directory: str) -> Optional[str]:
        """Read the remote HEAD commit before anything changes.

        Failure only degrades rollback (no pin to the old commit), so it is
        logged and swallowed.
        """
        command = f"cd {app_path(directory, self.base_directory)} && git rev-parse HEAD"
        try:
            result = self.runner.run(ssh_host, command)
        except RemoteCommandError as e:
            logger.warning(f"Could not capture original HEAD: {e.reason}")
            return None

        head = result.stdout.strip()
        if not head:
            logger.warning("Could not capture original HEAD: empty output")
            return None

        logger.debug(f"Captured original HEAD: {head}")
        return head

    def _roll_back(
        self,
        session: ExecutionSession,
        progress: ProgressTracker,
        ssh_host: str,
        directory: str,
        branch: str,
        conflict_type: ConflictType,
    ):
        session.transition(ExecutionState.CONFLICT_ROLLING_BACK)
        report = execute_conflict_cleanup(
            self.runner,
            ssh_host,
            directory,
            conflict_type,
            session.original_head,
            progress,
            base_directory=self.base_directory,
        )
        session.transition(ExecutionState.CONFLICT_RESOLVED)

        total_duration = progress.get_total_duration()
        logger.warning(
            f"Update aborted at step {session.current_step}/{len(session.commands)} "
            f"due to {conflict_type.value} | Total: {total_duration}s"
        )

        return create_conflict_outcome(
            branch,
            directory,
            conflict_type,
            failed_at_step=session.current_step,
            total_steps=len(session.commands),
            total_duration=total_duration,
            rollback=report,
        )

    def _fail(
        self,
        session: ExecutionSession,
        progress: ProgressTracker,
        command: str,
        error: RemoteCommandError,
    ) -> ExecutionFailure:
        stdout = error.stdout.strip()
        stderr = error.stderr.strip()

        progress.step_failed(command, error.reason, stdout, stderr, error.exit_code)
        session.transition(ExecutionState.FAILED)

        total_duration = progress.get_total_duration()
        progress.failed()

        logger.error(
            f"Update failed at step {session.current_step}: {command} ({error.reason})"
        )
        if stderr:
            logger.error(f"Error output: {stderr}")

        return ExecutionFailure(
            total_steps=len(session.commands),
            failed_at_step=session.current_step,
            failed_command=command,
            stdout=stdout,
            stderr=stderr,
            failure_reason=error.reason,
            exit_code=error.exit_code,
            total_duration=total_duration,
        )


def execute_update(
    commands: Sequence[str],
    ssh_host: str,
    directory: str,
    branch: str,
    progress_callback: Optional[ProgressCallback] = None,
    runner=None,
    base_directory: str = DEFAULT_BASE_DIRECTORY,
) -> ExecutionResult:
    """Convenience wrapper around UpdateExecutor.execute_update.

    Uses an SSHRunner built from the global config when no runner is given.
    """
    if runner is None:
        from webship.core.config import get_config
        from webship.core.remote import SSHRunner

        runner = SSHRunner.from_config(get_config())

    executor = UpdateExecutor(runner, base_directory=base_directory)
    return executor.execute_update(commands, ssh_host, directory, branch, progress_callback)
