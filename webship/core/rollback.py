"""Compensating rollback after a git conflict during an update."""
import time
from typing import List, Optional

from webship.core.conflicts import ConflictType
from webship.core.logger import get_logger
from webship.core.progress import ProgressStatus, ProgressTracker, format_seconds
from webship.core.remote import RemoteCommandError, join_commands
from webship.models.results import ExecutionConflict, RollbackReport, RollbackStep

logger = get_logger(__name__)

DEFAULT_BASE_DIRECTORY = "/var/webs"


def app_path(directory: str, base_directory: str = DEFAULT_BASE_DIRECTORY) -> str:
    """Absolute path of an app directory on the server."""
    return f"{base_directory.rstrip('/')}/{directory}"


def generate_cleanup_commands(
    directory: str,
    conflict_type: ConflictType,
    original_head: Optional[str],
    base_directory: str = DEFAULT_BASE_DIRECTORY,
) -> List[str]:
    """Build the rollback sequence for a conflict.

    The first command always enters the app directory. A merge in progress
    is aborted, a dirty index is reset, and the working tree is pinned back
    to ``original_head`` when it was captured before the update.
    """
    commands = [f"cd {app_path(directory, base_directory)}"]

    if conflict_type in (ConflictType.MERGE_CONFLICT, ConflictType.UNMERGED_INDEX):
        commands.append("git merge --abort || true")
    elif conflict_type in (ConflictType.STASH_CONFLICT, ConflictType.UNMERGED_FILE):
        commands.append("git reset --hard")

    if original_head:
        commands.append(f"git reset --hard {original_head}")

    # The stash may legitimately be empty
    commands.append("git stash pop || true")

    return commands


def execute_conflict_cleanup(
    runner,
    ssh_host: str,
    directory: str,
    conflict_type: ConflictType,
    original_head: Optional[str],
    progress: ProgressTracker,
    base_directory: str = DEFAULT_BASE_DIRECTORY,
) -> RollbackReport:
    """Run the rollback sequence on the server, step by step.

    Rollback steps are best-effort: a failing step is reported as a warning
    and the remaining steps still run.

    Args:
        runner: Remote runner with ``run(host, command_sequence)``
        ssh_host: Host the update ran on
        directory: App directory name
        conflict_type: Detected conflict
        original_head: Commit captured before the update, or None
        progress: Tracker of the interrupted update (events keep its step counter)
        base_directory: Parent directory of apps on the server

    Returns:
        RollbackReport with one record per rollback step
    """
    cleanup_commands = generate_cleanup_commands(
        directory, conflict_type, original_head, base_directory
    )
    enter_app = cleanup_commands[0]
    rollback_steps = cleanup_commands[1:]
    total = len(rollback_steps)
    rollback_start = time.monotonic()

    logger.warning(f"Starting rollback for {conflict_type.value} ({total} steps)")

    progress.emit(
        ProgressStatus.CONFLICT_DETECTED,
        f"Git conflict detected: {conflict_type.value}",
        conflict_type=conflict_type.value,
    )

    records = []
    for number, command in enumerate(rollback_steps, start=1):
        step_start = time.monotonic()
        logger.info(f"[rollback {number}/{total}] Running: {command}")

        progress.emit(
            ProgressStatus.ROLLBACK_RUNNING,
            f"Rolling back: {command}",
            command=command,
            rollback_step=number,
            total_rollback_steps=total,
        )

        try:
            runner.run(ssh_host, join_commands([enter_app, command]))
        except RemoteCommandError as e:
            duration = format_seconds(time.monotonic() - step_start)
            logger.warning(
                f"[rollback {number}/{total}] Warning after {duration}s (non-critical): {e.reason}"
            )
            records.append(RollbackStep(number, command, False, duration, error=e.reason))
            progress.emit(
                ProgressStatus.ROLLBACK_STEP_WARNING,
                f"Rollback step {number}/{total} failed, continuing",
                command=command,
                rollback_step=number,
                total_rollback_steps=total,
                duration=duration,
                error=e.reason,
                stderr=e.stderr.strip(),
            )
            continue

        duration = format_seconds(time.monotonic() - step_start)
        logger.info(f"[rollback {number}/{total}] Completed in {duration}s")
        records.append(RollbackStep(number, command, True, duration))
        progress.emit(
            ProgressStatus.ROLLBACK_STEP_COMPLETE,
            f"Rollback step {number}/{total} completed ({duration}s)",
            command=command,
            rollback_step=number,
            total_rollback_steps=total,
            duration=duration,
        )

    report = RollbackReport(
        steps=tuple(records),
        duration=format_seconds(time.monotonic() - rollback_start),
    )

    if report.warnings:
        message = (
            f"Rollback finished with {report.warnings} warning(s). "
            "Server state may need manual inspection."
        )
        logger.warning(f"Rollback finished in {report.duration}s with {report.warnings} warning(s)")
    else:
        message = "All rollback operations completed. Server restored to stable state."
        logger.info(f"Rollback completed in {report.duration}s - server restored to previous state")

    progress.emit(
        ProgressStatus.ROLLBACK_COMPLETED,
        message,
        duration=report.duration,
    )

    return report


def conflict_message(branch: str, directory: str) -> str:
    """User-facing explanation of a conflict."""
    return (
        f"A conflict was encountered while pulling the {branch} branch to the "
        f"{directory} server. The update was rolled back. Please contact the developer."
    )


def create_conflict_outcome(
    branch: str,
    directory: str,
    conflict_type: ConflictType,
    failed_at_step: int = 0,
    total_steps: int = 0,
    total_duration: str = "0.00",
    rollback: Optional[RollbackReport] = None,
) -> ExecutionConflict:
    """Build the terminal conflict result for an update."""
    return ExecutionConflict(
        conflict_type=conflict_type.value,
        branch=branch,
        directory=directory,
        message=conflict_message(branch, directory),
        total_steps=total_steps,
        failed_at_step=failed_at_step,
        total_duration=total_duration,
        rollback=rollback if rollback is not None else RollbackReport(),
    )
