"""Terminal outcomes of a deployment execution."""
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, Optional, Tuple, Union


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class RollbackStep:
    """Outcome of one rollback command."""

    step: int
    command: str
    succeeded: bool
    duration: str
    error: Optional[str] = None


@dataclass(frozen=True)
class RollbackReport:
    """What the conflict cleanup did on the remote repository."""

    steps: Tuple[RollbackStep, ...] = ()
    duration: str = "0.00"

    @property
    def warnings(self) -> int:
        return sum(1 for step in self.steps if not step.succeeded)

    @property
    def status(self) -> str:
        """Either completed (no failed steps) or partial."""
        return "partial" if self.warnings else "completed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "warnings": self.warnings,
            "duration": self.duration,
            "steps": [asdict(step) for step in self.steps],
        }


@dataclass(frozen=True)
class ExecutionSuccess:
    """Every planned command ran without error or conflict."""

    kind: ClassVar[str] = "success"
    success: ClassVar[bool] = True

    total_steps: int
    total_duration: str
    executed_at: str = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "success": self.success, **asdict(self)}


@dataclass(frozen=True)
class ExecutionFailure:
    """A step failed without a recognizable git conflict."""

    kind: ClassVar[str] = "failure"
    success: ClassVar[bool] = False

    total_steps: int
    failed_at_step: int
    failed_command: str
    stdout: str
    stderr: str
    failure_reason: str
    exit_code: Optional[int]
    total_duration: str
    executed_at: str = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "success": self.success, **asdict(self)}


@dataclass(frozen=True)
class ExecutionConflict:
    """A git conflict was detected and the remote repository was rolled back.

    ``message`` is meant for end users, not operators.
    """

    kind: ClassVar[str] = "conflict"
    success: ClassVar[bool] = False

    conflict_type: str
    branch: str
    directory: str
    message: str
    total_steps: int = 0
    failed_at_step: int = 0
    total_duration: str = "0.00"
    rollback: RollbackReport = field(default_factory=RollbackReport)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "success": self.success,
            "conflict_type": self.conflict_type,
            "branch": self.branch,
            "directory": self.directory,
            "message": self.message,
            "total_steps": self.total_steps,
            "failed_at_step": self.failed_at_step,
            "total_duration": self.total_duration,
            "rollback": self.rollback.to_dict(),
        }


ExecutionResult = Union[ExecutionSuccess, ExecutionFailure, ExecutionConflict]
