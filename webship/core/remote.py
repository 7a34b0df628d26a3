"""Remote command channel: build and run login-shell invocations over SSH.

Every remote call is a fresh ``ssh`` process running ``bash -l -c '<cmds>'``.
Shell state does not survive between calls, so callers that need a
persistent session replay the whole executed prefix in one invocation.
"""
import os
import selectors
import shlex
import signal
import subprocess
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence

from webship.core.config import DEFAULT_COMMAND_TIMEOUT, DEFAULT_MAX_OUTPUT_BYTES
from webship.core.logger import get_logger

logger = get_logger(__name__)

COMMAND_SEPARATOR = " && "

# Seconds to wait after SIGTERM before escalating to SIGKILL
KILL_GRACE_PERIOD = 5

READ_CHUNK_SIZE = 65536


def escape_single_quotes(text: str) -> str:
    """Escape text for embedding inside a single-quoted shell string.

    Each ``'`` closes the quoted region, emits an escaped quote and reopens it.
    """
    return text.replace("'", "'\\''")


def login_shell_command(command_sequence: str) -> str:
    """Wrap a command sequence as a single ``bash -l -c`` argument."""
    return f"bash -l -c '{escape_single_quotes(command_sequence)}'"


def join_commands(commands: Sequence[str]) -> str:
    """Chain commands so each one only runs if the previous succeeded."""
    return COMMAND_SEPARATOR.join(commands)


def remote_argv(
    host: str,
    command_sequence: str,
    ssh_options: Optional[Sequence[str]] = None,
) -> List[str]:
    """Build the ssh argv that runs command_sequence in a remote login shell."""
    return ["ssh", *(ssh_options or []), host, login_shell_command(command_sequence)]


def build_remote_invocation(host: str, command_sequence: str) -> str:
    """Build the full remote invocation as one string.

    Args:
        host: SSH host identifier (alias from ~/.ssh/config or user@host)
        command_sequence: Shell command(s), possibly already joined

    Returns:
        ``ssh <host> "bash -l -c '<escaped>'"`` quoted for a POSIX shell
    """
    return shlex.join(remote_argv(host, command_sequence))


@dataclass
class RemoteResult:
    """Captured output of a remote command that exited zero."""

    stdout: str
    stderr: str
    exit_code: int = 0


class RemoteCommandError(Exception):
    """Raised when a remote command fails, times out or overruns its output cap.

    Attributes:
        command: Command sequence that was sent to the host
        stdout: Captured (possibly partial) standard output
        stderr: Captured (possibly partial) standard error
        exit_code: Process exit status, None if it never exited normally
        reason: Human-readable failure reason
        timed_out: True when the hard timeout fired
    """

    def __init__(
        self,
        reason: str,
        command: str = "",
        stdout: str = "",
        stderr: str = "",
        exit_code: Optional[int] = None,
        timed_out: bool = False,
    ):
        super().__init__(reason)
        self.reason = reason
        self.command = command
        self.stdout = stdout or ""
        self.stderr = stderr or ""
        self.exit_code = exit_code
        self.timed_out = timed_out


def _decode(data) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


class SSHRunner:
    """Runs command sequences on remote hosts through the local ssh client."""

    def __init__(
        self,
        timeout: int = DEFAULT_COMMAND_TIMEOUT,
        max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
        ssh_options: Optional[Sequence[str]] = None,
        mock: bool = False,
    ):
        self.timeout = timeout
        self.max_output_bytes = max_output_bytes
        self.ssh_options = list(ssh_options) if ssh_options is not None else []
        self.mock = mock

    @classmethod
    def from_config(cls, config, mock: bool = False) -> "SSHRunner":
        """Create a runner from a WebshipConfig."""
        return cls(
            timeout=config.command_timeout,
            max_output_bytes=config.max_output_bytes,
            ssh_options=config.ssh_options,
            mock=mock,
        )

    def run(self, host: str, command_sequence: str) -> RemoteResult:
        """Run command_sequence on host and wait for it to finish.

        Output is read as it arrives. The process group is killed as soon as
        the timeout passes or the combined output goes over the byte cap.

        Returns:
            RemoteResult with captured output

        Raises:
            RemoteCommandError: On non-zero exit, timeout, output overrun or
                when ssh cannot be started
        """
        if self.mock:
            logger.info(f"MOCK: Would run on {host}: {command_sequence}")
            return RemoteResult(stdout="", stderr="")

        cmd = remote_argv(host, command_sequence, self.ssh_options)
        logger.debug(f"Running: {shlex.join(cmd)}")

        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                start_new_session=True,
            )
        except OSError as e:
            raise RemoteCommandError(
                f"Failed to start ssh: {e}", command=command_sequence
            ) from e

        deadline = time.monotonic() + self.timeout
        out, err = bytearray(), bytearray()
        outcome = self._collect(proc, deadline, out, err)

        if outcome == "overrun":
            self._terminate(proc)
            # Keep at most max_output_bytes in total, stdout first
            kept_out = bytes(out[: self.max_output_bytes])
            kept_err = bytes(err[: self.max_output_bytes - len(kept_out)])
            logger.warning(f"Output of {host} command exceeded {self.max_output_bytes} bytes")
            raise RemoteCommandError(
                f"Output exceeded {self.max_output_bytes} bytes",
                command=command_sequence,
                stdout=_decode(kept_out),
                stderr=_decode(kept_err),
            )

        if outcome == "done":
            try:
                proc.wait(timeout=max(deadline - time.monotonic(), 0))
            except subprocess.TimeoutExpired:
                outcome = "timeout"

        if outcome == "timeout":
            self._terminate(proc)
            logger.warning(f"Command on {host} timed out after {self.timeout}s")
            raise RemoteCommandError(
                f"Command timed out after {self.timeout}s",
                command=command_sequence,
                stdout=_decode(bytes(out)),
                stderr=_decode(bytes(err)),
                timed_out=True,
            )

        stdout, stderr = _decode(bytes(out)), _decode(bytes(err))

        if proc.returncode != 0:
            raise RemoteCommandError(
                f"Command failed with exit code {proc.returncode}",
                command=command_sequence,
                stdout=stdout,
                stderr=stderr,
                exit_code=proc.returncode,
            )

        return RemoteResult(stdout=stdout, stderr=stderr, exit_code=0)

    def _collect(self, proc: subprocess.Popen, deadline: float, out: bytearray, err: bytearray) -> str:
        """Read both pipes until EOF, the deadline or the output cap.

        Returns:
            "done", "timeout" or "overrun"
        """
        selector = selectors.DefaultSelector()
        selector.register(proc.stdout, selectors.EVENT_READ, out)
        selector.register(proc.stderr, selectors.EVENT_READ, err)

        try:
            while selector.get_map():
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return "timeout"

                for key, _ in selector.select(remaining):
                    chunk = os.read(key.fd, READ_CHUNK_SIZE)
                    if not chunk:
                        selector.unregister(key.fileobj)
                        continue

                    key.data.extend(chunk)
                    if len(out) + len(err) > self.max_output_bytes:
                        return "overrun"
        finally:
            selector.close()
            # Closed pipes make a still-running group fail its writes instead of blocking
            proc.stdout.close()
            proc.stderr.close()

        return "done"

    def _terminate(self, proc: subprocess.Popen):
        """Kill the whole process group of proc and reap it."""
        self._signal_group(proc, signal.SIGTERM)
        try:
            proc.wait(timeout=KILL_GRACE_PERIOD)
        except subprocess.TimeoutExpired:
            logger.warning(f"Process group of {proc.pid} ignored SIGTERM, sending SIGKILL")
            self._signal_group(proc, signal.SIGKILL)
            proc.wait()

    @staticmethod
    def _signal_group(proc: subprocess.Popen, sig: int):
        try:
            os.killpg(os.getpgid(proc.pid), sig)
        except ProcessLookupError:
            logger.debug(f"Process group of {proc.pid} already gone")
