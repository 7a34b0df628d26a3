"""Step progress tracking and structured progress events."""
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional

from webship.core.logger import get_logger

logger = get_logger(__name__)


class ProgressStatus(str, Enum):
    """Tags of the progress events emitted during a deployment."""

    STARTED = "started"
    STEP_RUNNING = "step-running"
    STEP_COMPLETE = "step-complete"
    STEP_FAILED = "step-failed"
    CONFLICT_DETECTED = "conflict-detected"
    ROLLBACK_RUNNING = "rollback-running"
    ROLLBACK_STEP_COMPLETE = "rollback-step-complete"
    ROLLBACK_STEP_WARNING = "rollback-step-warning"
    ROLLBACK_COMPLETED = "rollback-completed"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ProgressEvent:
    """One progress notification.

    ``status`` selects which of the optional payload fields are set:
    step events carry ``command`` and output, rollback events carry
    ``rollback_step``/``total_rollback_steps``, conflict events carry
    ``conflict_type``, terminal events carry the total ``duration``.
    """

    status: ProgressStatus
    current_step: int
    total_steps: int
    message: str
    timestamp: str
    command: Optional[str] = None
    stdout: Optional[str] = None
    stderr: Optional[str] = None
    duration: Optional[str] = None
    error: Optional[str] = None
    exit_code: Optional[int] = None
    conflict_type: Optional[str] = None
    rollback_step: Optional[int] = None
    total_rollback_steps: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a plain dict, dropping unset payload fields."""
        data = {k: v for k, v in asdict(self).items() if v is not None}
        data["status"] = self.status.value
        return data


ProgressCallback = Callable[[ProgressEvent], Any]


def format_seconds(seconds: float) -> str:
    """Format elapsed seconds with two decimals ("0.00" for zero)."""
    return f"{max(seconds, 0.0):.2f}"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class ProgressTracker:
    """Tracks step counters and timings and emits progress events.

    Every event is logged locally and then handed to the optional callback.
    A failing callback is logged and otherwise ignored.
    """

    def __init__(
        self,
        operation_name: str,
        total_steps: int,
        callback: Optional[ProgressCallback] = None,
    ):
        self.operation_name = operation_name
        self.total_steps = total_steps
        self.callback = callback
        self.current_step = 0
        self.start_time = time.monotonic()
        self.step_start_time: Optional[float] = None

    def emit(self, status: ProgressStatus, message: str = "", **payload) -> ProgressEvent:
        """Build an event for the current step, log it and forward it."""
        event = ProgressEvent(
            status=status,
            current_step=self.current_step,
            total_steps=self.total_steps,
            message=message,
            timestamp=utc_timestamp(),
            **payload,
        )

        self._log_event(event)

        if self.callback is not None:
            try:
                self.callback(event)
            except Exception as e:
                logger.warning(
                    f"{self.operation_name}: progress callback failed on {status.value}: {e}"
                )

        return event

    def _log_event(self, event: ProgressEvent):
        prefix = f"[{self.operation_name}]"
        counter = f"[{event.current_step}/{event.total_steps}]"
        status = event.status

        if status == ProgressStatus.STARTED:
            logger.info(f"{prefix} Starting operation ({self.total_steps} steps)")
        elif status == ProgressStatus.STEP_RUNNING:
            logger.info(f"{prefix} {counter} Running: {event.command}")
        elif status == ProgressStatus.STEP_COMPLETE:
            logger.info(f"{prefix} {counter} Completed in {event.duration}s")
        elif status == ProgressStatus.STEP_FAILED:
            logger.info(f"{prefix} {counter} FAILED after {event.duration}s")
            if event.stderr:
                logger.debug(f"{prefix} Error output: {event.stderr}")
            if event.error:
                logger.debug(f"{prefix} Error message: {event.error}")
        elif status == ProgressStatus.COMPLETED:
            logger.info(f"{prefix} Completed all {self.total_steps} steps in {event.duration}s")
        elif status == ProgressStatus.FAILED:
            logger.info(f"{prefix} FAILED at step {counter} after {event.duration}s")
        else:
            logger.info(f"{prefix} {event.message}")

    def start(self, message: str = "") -> ProgressEvent:
        """Reset the clock and announce the operation."""
        self.start_time = time.monotonic()
        self.current_step = 0
        self.step_start_time = None
        return self.emit(ProgressStatus.STARTED, message)

    def step_start(self, command: str) -> ProgressEvent:
        self.current_step += 1
        self.step_start_time = time.monotonic()
        return self.emit(
            ProgressStatus.STEP_RUNNING,
            f"Executing step {self.current_step}/{self.total_steps}",
            command=command,
        )

    def step_complete(self, command: str, stdout: str = "", stderr: str = "") -> ProgressEvent:
        duration = self.get_step_duration()
        return self.emit(
            ProgressStatus.STEP_COMPLETE,
            f"Step {self.current_step}/{self.total_steps} completed ({duration}s)",
            command=command,
            stdout=stdout,
            stderr=stderr,
            duration=duration,
        )

    def step_failed(
        self,
        command: str,
        error: str,
        stdout: str = "",
        stderr: str = "",
        exit_code: Optional[int] = None,
    ) -> ProgressEvent:
        duration = self.get_step_duration()
        return self.emit(
            ProgressStatus.STEP_FAILED,
            f"Step {self.current_step}/{self.total_steps} failed ({duration}s)",
            command=command,
            error=error,
            stdout=stdout,
            stderr=stderr,
            exit_code=exit_code,
            duration=duration,
        )

    def complete(self) -> ProgressEvent:
        duration = self.get_total_duration()
        return self.emit(
            ProgressStatus.COMPLETED,
            f"Operation completed successfully in {duration}s",
            duration=duration,
        )

    def failed(self) -> ProgressEvent:
        duration = self.get_total_duration()
        return self.emit(
            ProgressStatus.FAILED,
            f"Operation failed at step {self.current_step}/{self.total_steps} after {duration}s",
            duration=duration,
        )

    def get_step_duration(self) -> str:
        """Seconds since the current step started, "0.00" before any step."""
        if self.step_start_time is None:
            return format_seconds(0.0)
        return format_seconds(time.monotonic() - self.step_start_time)

    def get_total_duration(self) -> str:
        """Seconds since start(), two decimals."""
        return format_seconds(time.monotonic() - self.start_time)
