"""Shared test fixtures for Webship tests."""
import pytest

from webship.core.config import WebshipConfig, set_config
from webship.core.remote import COMMAND_SEPARATOR, RemoteCommandError, RemoteResult
from webship.models.server import ServerConfig


def last_command(command_sequence: str) -> str:
    """Last command of a joined chain."""
    return command_sequence.split(COMMAND_SEPARATOR)[-1]


class FakeRunner:
    """Scripted stand-in for SSHRunner.

    ``handler(host, command_sequence)`` may return a RemoteResult, raise or
    return a RemoteCommandError (raised for it), or return None for an
    empty successful result.
    """

    def __init__(self, handler=None, head="abc123"):
        self.handler = handler
        self.head = head
        self.calls = []

    def run(self, host, command_sequence):
        self.calls.append((host, command_sequence))

        outcome = self.handler(host, command_sequence) if self.handler else None
        if isinstance(outcome, RemoteCommandError):
            raise outcome
        if outcome is not None:
            return outcome
        if last_command(command_sequence) == "git rev-parse HEAD" and self.head:
            return RemoteResult(stdout=f"{self.head}\n", stderr="")
        return RemoteResult(stdout="", stderr="")

    @property
    def sequences(self):
        return [sequence for _, sequence in self.calls]


@pytest.fixture
def fake_runner():
    """FakeRunner where every command succeeds."""
    return FakeRunner()


@pytest.fixture
def servers():
    """Validated servers whitelist."""
    return {
        'prod': ServerConfig(ssh_host='prod1', allowed_directories=['shop', 'blog']),
        'staging': ServerConfig(ssh_host='deploy@staging.example.com', allowed_directories=['shop']),
    }


@pytest.fixture
def webship_config(tmp_path):
    """Runtime config with locks under tmp_path."""
    return WebshipConfig(lock_dir=tmp_path / "locks")


@pytest.fixture(autouse=True)
def reset_global_config():
    """Never leak a global config between tests."""
    set_config(None)
    yield
    set_config(None)
