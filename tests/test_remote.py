"""Tests for the remote command channel and SSH runner."""
import shlex
import signal
import time
from unittest.mock import patch

import pytest

from webship.core.remote import (
    RemoteCommandError,
    SSHRunner,
    build_remote_invocation,
    join_commands,
    login_shell_command,
    remote_argv,
)


class TestBuildRemoteInvocation:
    """Test command string construction."""

    def test_simple_command(self):
        """Plain commands are wrapped in a login shell."""
        assert login_shell_command("git fetch origin") == "bash -l -c 'git fetch origin'"

    def test_single_quotes_are_escaped(self):
        """Single quotes close, escape and reopen the quoted region."""
        assert login_shell_command("echo 'hi'") == "bash -l -c 'echo '\\''hi'\\'''"

    def test_login_shell_round_trip(self):
        """A POSIX shell recovers the exact command sequence."""
        sequence = join_commands(["cd /var/webs/shop", "echo 'it''s'", "git log --format='%H'"])
        assert shlex.split(login_shell_command(sequence)) == ["bash", "-l", "-c", sequence]

    def test_invocation_round_trip(self):
        """The full invocation splits into ssh, host and one wrapper argument."""
        sequence = "cd /var/webs/shop && echo 'hi'"
        invocation = build_remote_invocation("prod1", sequence)

        argv = shlex.split(invocation)
        assert argv == ["ssh", "prod1", login_shell_command(sequence)]
        assert shlex.split(argv[2])[3] == sequence

    def test_remote_argv_with_options(self):
        """SSH options go before the host."""
        argv = remote_argv("prod1", "ls", ["-o", "BatchMode=yes"])
        assert argv == ["ssh", "-o", "BatchMode=yes", "prod1", "bash -l -c 'ls'"]

    def test_join_commands(self):
        """Commands are chained with &&."""
        assert join_commands(["a", "b", "c"]) == "a && b && c"


def _local_argv(host, command_sequence, ssh_options=None):
    return ["bash", "-c", command_sequence]


@pytest.fixture
def local_shell():
    """Run "remote" commands in a local bash instead of over ssh."""
    with patch('webship.core.remote.remote_argv', side_effect=_local_argv) as mock_argv:
        yield mock_argv


class TestSSHRunner:
    """Test SSHRunner process handling."""

    def test_mock_mode_runs_nothing(self):
        """Mock mode never spawns ssh."""
        with patch('webship.core.remote.subprocess.Popen') as mock_popen:
            result = SSHRunner(mock=True).run("prod1", "git fetch origin")

        mock_popen.assert_not_called()
        assert result.stdout == ""
        assert result.exit_code == 0

    def test_runs_ssh_argv_in_new_session(self):
        """The ssh argv is run directly, in its own process group."""
        with patch('webship.core.remote.subprocess.Popen', side_effect=OSError("boom")) as mock_popen:
            with pytest.raises(RemoteCommandError):
                SSHRunner(ssh_options=["-o", "BatchMode=yes"]).run("prod1", "git pull origin main")

        cmd = mock_popen.call_args[0][0]
        assert cmd == ["ssh", "-o", "BatchMode=yes", "prod1", "bash -l -c 'git pull origin main'"]
        assert mock_popen.call_args[1]["start_new_session"] is True

    def test_success_returns_output(self, local_shell):
        """Zero exit returns decoded output of both streams."""
        result = SSHRunner(timeout=10).run("prod1", "echo 'Already up to date.'; echo warn >&2")

        assert result.stdout == "Already up to date.\n"
        assert result.stderr == "warn\n"
        assert result.exit_code == 0
        local_shell.assert_called_once()

    def test_nonzero_exit_raises_with_output(self, local_shell):
        """Non-zero exit raises with captured output and exit code."""
        command = "printf partial; printf 'fatal: bad ref' >&2; exit 128"

        with pytest.raises(RemoteCommandError) as exc_info:
            SSHRunner(timeout=10).run("prod1", command)

        err = exc_info.value
        assert err.exit_code == 128
        assert err.stdout == "partial"
        assert err.stderr == "fatal: bad ref"
        assert err.command == command
        assert not err.timed_out

    def test_timeout_kills_process_group(self, local_shell):
        """Timeout terminates the whole group and keeps partial output."""
        start = time.monotonic()

        with pytest.raises(RemoteCommandError) as exc_info:
            SSHRunner(timeout=1).run("prod1", "echo 'half done'; sleep 30; echo never")

        assert time.monotonic() - start < 10
        assert exc_info.value.timed_out is True
        assert exc_info.value.exit_code is None
        assert exc_info.value.stdout == "half done\n"
        assert "timed out after 1s" in exc_info.value.reason

    def test_timeout_after_output_closed(self, local_shell):
        """A command that closes its output but keeps running still times out."""
        with pytest.raises(RemoteCommandError) as exc_info:
            SSHRunner(timeout=1).run("prod1", "exec >&- 2>&-; sleep 30")

        assert exc_info.value.timed_out is True

    def test_timeout_escalates_to_sigkill(self, local_shell):
        """A group that ignores SIGTERM gets SIGKILL."""
        start = time.monotonic()

        with patch('webship.core.remote.KILL_GRACE_PERIOD', 0.5), \
                patch.object(SSHRunner, '_signal_group', wraps=SSHRunner._signal_group) as mock_signal:
            with pytest.raises(RemoteCommandError):
                SSHRunner(timeout=1).run("prod1", "trap '' TERM; sleep 30")

        assert time.monotonic() - start < 10
        assert [c[0][1] for c in mock_signal.call_args_list] == [signal.SIGTERM, signal.SIGKILL]

    def test_endless_output_is_stopped_at_cap(self, local_shell):
        """A runaway producer is killed once it passes the cap, not at the timeout."""
        start = time.monotonic()

        with pytest.raises(RemoteCommandError) as exc_info:
            SSHRunner(timeout=30, max_output_bytes=1024).run("prod1", "yes")

        assert time.monotonic() - start < 10
        assert "exceeded 1024 bytes" in exc_info.value.reason
        assert not exc_info.value.timed_out
        assert len(exc_info.value.stdout.encode()) <= 1024

    def test_output_cap_counts_both_streams(self, local_shell):
        """The cap applies to stdout and stderr combined."""
        command = "head -c 600 /dev/zero | tr '\\0' a; head -c 600 /dev/zero | tr '\\0' b >&2"

        with pytest.raises(RemoteCommandError) as exc_info:
            SSHRunner(timeout=10, max_output_bytes=1000).run("prod1", command)

        err = exc_info.value
        assert "exceeded 1000 bytes" in err.reason
        assert len(err.stdout.encode()) + len(err.stderr.encode()) <= 1000

    def test_overrun_truncates_bytes_not_characters(self, local_shell):
        """Multi-byte output is cut to the byte cap before decoding."""
        # 300 three-byte characters is 900 bytes
        command = "for i in $(seq 300); do printf '\\xe2\\x82\\xac'; done"

        with pytest.raises(RemoteCommandError) as exc_info:
            SSHRunner(timeout=10, max_output_bytes=100).run("prod1", command)

        # A split trailing character decodes to one replacement char
        stdout = exc_info.value.stdout
        assert stdout.startswith("€" * 33)
        assert len(stdout) <= 34

    def test_missing_ssh_binary(self):
        """Launch failures surface as RemoteCommandError."""
        with patch('webship.core.remote.subprocess.Popen', side_effect=FileNotFoundError("ssh")):
            with pytest.raises(RemoteCommandError) as exc_info:
                SSHRunner().run("prod1", "ls")

        assert "Failed to start ssh" in exc_info.value.reason
        assert exc_info.value.exit_code is None

    def test_from_config(self, webship_config):
        """Runner picks up timeout, cap and ssh options from config."""
        runner = SSHRunner.from_config(webship_config)

        assert runner.timeout == 300
        assert runner.max_output_bytes == 10 * 1024 * 1024
        assert runner.ssh_options == ["-o", "BatchMode=yes"]
