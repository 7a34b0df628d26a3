"""Server whitelist models."""
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ServerConfig(BaseModel):
    """One deployable server: where to ssh and which app directories are allowed."""

    model_config = ConfigDict(extra='forbid', populate_by_name=True, frozen=True)

    ssh_host: str = Field(..., alias="sshHost", description="Host identifier passed to ssh")
    allowed_directories: List[str] = Field(
        ..., alias="allowedDirectories", description="App directories that may be deployed"
    )

    @field_validator('ssh_host')
    @classmethod
    def validate_ssh_host(cls, v):
        """SSH host must be a non-empty string."""
        if not v or not v.strip():
            raise ValueError("sshHost must be a non-empty string")
        return v

    @field_validator('allowed_directories')
    @classmethod
    def validate_allowed_directories(cls, v):
        """At least one directory, none of them blank."""
        if not v:
            raise ValueError("must have at least one allowed directory")
        for directory in v:
            if not directory or not directory.strip():
                raise ValueError("allowed directories must be non-empty strings")
        return v
