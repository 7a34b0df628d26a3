"""Data models for Webship."""
from webship.models.config import ConfigValidationError
from webship.models.plan import DeploymentPlan
from webship.models.results import (
    ExecutionConflict,
    ExecutionFailure,
    ExecutionResult,
    ExecutionSuccess,
    RollbackReport,
    RollbackStep,
)
from webship.models.server import ServerConfig

__all__ = [
    'ConfigValidationError',
    'DeploymentPlan',
    'ExecutionConflict',
    'ExecutionFailure',
    'ExecutionResult',
    'ExecutionSuccess',
    'RollbackReport',
    'RollbackStep',
    'ServerConfig',
]
