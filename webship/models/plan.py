"""Deployment plan model."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Tuple


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class DeploymentPlan:
    """Validated, ordered command list for one server/directory/branch.

    Plans are immutable; callers pass them by value into execution.

    Attributes:
        server_key: Key of the server in the servers configuration
        directory: Application directory name under the base directory
        branch: Git branch to deploy
        commands: Ordered shell commands, run one step at a time
        ssh_host: Host identifier handed to ssh
        created_at: ISO-8601 UTC creation time
    """

    server_key: str
    directory: str
    branch: str
    commands: Tuple[str, ...]
    ssh_host: str
    created_at: str = field(default_factory=_now)

    def __post_init__(self):
        # Freeze whatever sequence the caller passed in
        object.__setattr__(self, "commands", tuple(self.commands))

    @property
    def total_steps(self) -> int:
        return len(self.commands)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "server_key": self.server_key,
            "directory": self.directory,
            "branch": self.branch,
            "commands": list(self.commands),
            "ssh_host": self.ssh_host,
            "created_at": self.created_at,
        }
