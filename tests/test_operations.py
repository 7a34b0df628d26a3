"""Tests for the public plan/execute surface."""
import pytest

from webship.core.lock import DeployLock, LockError
from webship.core.operations import (
    OperationType,
    UnknownOperationError,
    execute,
    execute_operation,
    plan,
    plan_operation,
)
from webship.core.config import WebshipConfig


class TestDispatch:
    """Test closed operation-type dispatch."""

    def test_string_operation_type(self, servers, webship_config):
        result = plan_operation("git-deployment", servers, "prod", "shop", "main", config=webship_config)
        assert result.directory == "shop"

    def test_unknown_operation_type(self, servers, webship_config):
        with pytest.raises(UnknownOperationError, match="Available types: git-deployment"):
            plan_operation("config-update", servers, "prod", "shop", "main", config=webship_config)

    def test_unknown_operation_on_execute(self, servers, webship_config, fake_runner):
        deployment_plan = plan(servers, "prod", "shop", "main", config=webship_config)

        with pytest.raises(UnknownOperationError):
            execute_operation("rollback-only", deployment_plan, runner=fake_runner, config=webship_config)

        assert fake_runner.calls == []

    def test_enum_members(self):
        assert OperationType.GIT_DEPLOYMENT.value == "git-deployment"


class TestPlanAndExecute:
    """Test planning and executing through the public surface."""

    def test_plan_uses_config_paths(self, servers, tmp_path):
        config = WebshipConfig(base_directory="/srv/www", main_branch="trunk", lock_dir=tmp_path)
        deployment_plan = plan(servers, "prod", "shop", "feature/x", config=config)

        assert deployment_plan.commands[0] == "cd /srv/www/shop"
        assert "git pull origin trunk" in deployment_plan.commands

    def test_execute_runs_plan(self, servers, webship_config, fake_runner):
        deployment_plan = plan(servers, "prod", "shop", "main", config=webship_config)
        events = []

        result = execute(deployment_plan, progress_callback=events.append,
                         runner=fake_runner, config=webship_config)

        assert result.success is True
        assert result.total_steps == 12
        assert len(fake_runner.calls) == 13
        assert fake_runner.sequences[-1].endswith("sudo systemctl restart shop.service")
        assert events[-1].status.value == "completed"

    def test_execute_rejects_concurrent_run(self, servers, webship_config, fake_runner):
        """A second deployment to the same target fails fast."""
        deployment_plan = plan(servers, "prod", "shop", "main", config=webship_config)

        with DeployLock(webship_config.lock_dir, "prod1", "shop"):
            with pytest.raises(LockError):
                execute(deployment_plan, runner=fake_runner, config=webship_config)

        assert fake_runner.calls == []

    def test_lock_released_after_execute(self, servers, webship_config, fake_runner):
        deployment_plan = plan(servers, "prod", "shop", "main", config=webship_config)

        execute(deployment_plan, runner=fake_runner, config=webship_config)
        second = execute(deployment_plan, runner=fake_runner, config=webship_config)

        assert second.success is True

    def test_mock_mode_without_runner(self, servers, webship_config):
        deployment_plan = plan(servers, "prod", "shop", "main", config=webship_config)

        result = execute(deployment_plan, config=webship_config, mock=True)

        assert result.success is True
