"""YAML loader for the servers whitelist."""
import os
from pathlib import Path
from typing import Dict, Optional

import yaml
from pydantic import ValidationError as PydanticValidationError

from webship.core.logger import get_logger
from webship.models.config import ConfigValidationError
from webship.models.server import ServerConfig

logger = get_logger(__name__)

# Default config search paths (ordered by proximity to current run)
CONFIG_PATHS = [
    "./servers.yml",
    str(Path.home() / ".config" / "webship" / "servers.yml"),
    "/etc/webship/servers.yml",
]


def find_servers_config(config_path: Optional[str] = None) -> str:
    """Locate the active servers configuration file."""
    if config_path:
        return config_path

    if env_config := os.environ.get("WEBSHIP_CONFIG"):
        return env_config

    for path in CONFIG_PATHS:
        if Path(path).exists():
            return path

    return "servers.yml"


class ServersConfigLoader:
    """Loads and validates the servers whitelist.

    The file maps server keys to ``ssh_host`` and ``allowed_directories``
    (``sshHost``/``allowedDirectories`` are accepted too). JSON files work
    as-is since YAML is a superset.
    """

    def __init__(self, config_path: str = "servers.yml"):
        self.config_path = Path(config_path)
        self.servers: Dict[str, ServerConfig] = {}

    def load(self) -> Dict[str, ServerConfig]:
        """Load and validate the configuration file."""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Config file not found: {self.config_path}")

        try:
            with open(self.config_path) as f:
                raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"Invalid YAML in {self.config_path}: {e}") from e

        self.servers = self.parse(raw)
        logger.debug(f"Loaded servers: {', '.join(self.servers)}")
        return self.servers

    @staticmethod
    def parse(raw) -> Dict[str, ServerConfig]:
        """Validate an in-memory configuration mapping."""
        if not raw:
            raise ConfigValidationError("Configuration must contain at least one server")
        if not isinstance(raw, dict):
            raise ConfigValidationError("Configuration must be a mapping of server keys")

        servers = {}
        for key, value in raw.items():
            if not isinstance(value, dict):
                raise ConfigValidationError(f"Server {key!r} configuration must be a mapping")
            try:
                servers[str(key)] = ServerConfig.model_validate(value)
            except PydanticValidationError as e:
                problems = "; ".join(
                    f"{'.'.join(str(p) for p in err['loc']) or key}: {err['msg']}"
                    for err in e.errors()
                )
                raise ConfigValidationError(f"Server {key!r} is invalid: {problems}") from e

        return servers
