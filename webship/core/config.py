"""Webship runtime configuration and settings."""
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

DEFAULT_COMMAND_TIMEOUT = 300
DEFAULT_MAX_OUTPUT_BYTES = 10 * 1024 * 1024


def _default_lock_dir() -> Path:
    return Path(tempfile.gettempdir()) / "webship-locks"


def _default_ssh_options() -> List[str]:
    # Never fall back to an interactive password prompt
    return ["-o", "BatchMode=yes"]


@dataclass
class WebshipConfig:
    """Runtime configuration for deployment runs.

    Attributes:
        command_timeout: Hard timeout in seconds for each remote call (default: 300)
        max_output_bytes: Cap on captured stdout+stderr per remote call (default: 10 MiB)
        base_directory: Parent directory of all deployable apps on the servers
        main_branch: Branch merged before the target branch is pulled
        lock_dir: Directory holding per-target deploy lock files
        lock_timeout: Seconds to wait for a busy target (0 = fail immediately)
        ssh_options: Extra arguments passed to ssh before the host
    """

    command_timeout: int = DEFAULT_COMMAND_TIMEOUT
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES
    base_directory: str = "/var/webs"
    main_branch: str = "main"
    lock_dir: Path = field(default_factory=_default_lock_dir)
    lock_timeout: int = 0
    ssh_options: List[str] = field(default_factory=_default_ssh_options)

    @classmethod
    def from_env(cls) -> "WebshipConfig":
        """Create config from environment variables.

        Environment variables:
            WEBSHIP_COMMAND_TIMEOUT: Per-command timeout in seconds
            WEBSHIP_MAX_OUTPUT_BYTES: Output cap in bytes
            WEBSHIP_BASE_DIRECTORY: Remote parent directory of apps
            WEBSHIP_MAIN_BRANCH: Name of the main branch
            WEBSHIP_LOCK_DIR: Directory for deploy lock files
            WEBSHIP_LOCK_TIMEOUT: Seconds to wait for a busy target

        Returns:
            WebshipConfig instance with values from environment or defaults
        """
        lock_dir = os.getenv("WEBSHIP_LOCK_DIR")
        return cls(
            command_timeout=int(
                os.getenv("WEBSHIP_COMMAND_TIMEOUT", DEFAULT_COMMAND_TIMEOUT)
            ),
            max_output_bytes=int(
                os.getenv("WEBSHIP_MAX_OUTPUT_BYTES", DEFAULT_MAX_OUTPUT_BYTES)
            ),
            base_directory=os.getenv("WEBSHIP_BASE_DIRECTORY", cls.base_directory),
            main_branch=os.getenv("WEBSHIP_MAIN_BRANCH", cls.main_branch),
            lock_dir=Path(lock_dir) if lock_dir else _default_lock_dir(),
            lock_timeout=int(os.getenv("WEBSHIP_LOCK_TIMEOUT", cls.lock_timeout)),
        )


# Global config instance (can be overridden)
_config: Optional[WebshipConfig] = None


def get_config() -> WebshipConfig:
    """Get the global Webship configuration.

    Returns:
        WebshipConfig instance (creates from environment if not set)
    """
    global _config
    if _config is None:
        _config = WebshipConfig.from_env()
    return _config


def set_config(config: Optional[WebshipConfig]):
    """Set the global Webship configuration.

    Args:
        config: WebshipConfig instance to use globally (None resets to env defaults)
    """
    global _config
    _config = config
