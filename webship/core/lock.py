"""Per-target deploy locking.

Prevents two deployments from running against the same host and directory
at the same time.
"""
import fcntl
import hashlib
import os
import re
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from webship.core.logger import get_logger

logger = get_logger(__name__)


class LockError(Exception):
    """Raised when unable to acquire a deploy lock."""
    pass


def lock_path_for(lock_dir: Path, host: str, directory: str) -> Path:
    """Lock file path for one host/directory target.

    The name is a sanitized prefix plus a digest of the raw target.
    """
    target = f"{host}--{directory}"
    safe = re.sub(r"[^A-Za-z0-9_.-]", "_", target)
    digest = hashlib.sha256(target.encode("utf-8")).hexdigest()[:12]
    return Path(lock_dir) / f"{safe}-{digest}.lock"


class DeployLock:
    """File-based lock for one deployment target."""

    def __init__(self, lock_dir: Path, host: str, directory: str, timeout: int = 0):
        """Initialize lock.

        Args:
            lock_dir: Directory holding lock files
            host: SSH host of the target
            directory: App directory of the target
            timeout: Seconds to wait for lock (0 = fail immediately)
        """
        self.host = host
        self.directory = directory
        self.lock_file = lock_path_for(lock_dir, host, directory)
        self.timeout = timeout
        self.lock_fd = None

    def acquire(self) -> bool:
        """Acquire the lock.

        Raises:
            LockError: If another deployment holds it
        """
        self.lock_file.parent.mkdir(parents=True, exist_ok=True)
        self.lock_fd = open(self.lock_file, 'a+')

        start_time = time.time()
        while True:
            try:
                fcntl.flock(self.lock_fd.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)

                self.lock_fd.seek(0)
                self.lock_fd.truncate()
                self.lock_fd.write(f"{os.getpid()}\n")
                self.lock_fd.write(f"{time.strftime('%Y-%m-%d %H:%M:%S')}\n")
                self.lock_fd.flush()

                logger.debug(f"Acquired lock: {self.lock_file}")
                return True

            except OSError:
                elapsed = time.time() - start_time
                if self.timeout == 0 or elapsed >= self.timeout:
                    lock_info = read_lock_info(self.lock_file)
                    self.lock_fd.close()
                    self.lock_fd = None
                    raise LockError(
                        f"A deployment to {self.directory} on {self.host} is already in progress.\n"
                        f"Lock held by PID {lock_info['pid']} since {lock_info['time']}\n"
                        f"Wait for it to complete, or remove {self.lock_file} if stale."
                    )

                time.sleep(0.5)

    def release(self):
        """Release the lock.

        The lock file is emptied but left in place for waiters that already
        have it open.
        """
        if self.lock_fd is None:
            return

        try:
            self.lock_fd.seek(0)
            self.lock_fd.truncate()
            self.lock_fd.flush()
            fcntl.flock(self.lock_fd.fileno(), fcntl.LOCK_UN)
            self.lock_fd.close()
            logger.debug(f"Released lock: {self.lock_file}")
        except OSError as e:
            logger.warning(f"Error releasing lock: {e}")
        finally:
            self.lock_fd = None

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False


def read_lock_info(lock_file: Path) -> dict:
    """Read PID and start time written by the lock holder."""
    try:
        with open(lock_file) as f:
            lines = f.readlines()
    except OSError:
        return {'pid': 'unknown', 'time': 'unknown'}

    if len(lines) >= 2:
        return {'pid': lines[0].strip(), 'time': lines[1].strip()}
    return {'pid': 'unknown', 'time': 'unknown'}


@contextmanager
def deploy_lock(lock_dir: Path, host: str, directory: str, timeout: int = 0):
    """Context manager holding the deploy lock of one target.

    Raises:
        LockError: If unable to acquire lock
    """
    lock = DeployLock(lock_dir, host, directory, timeout=timeout)
    lock.acquire()
    try:
        yield lock
    finally:
        lock.release()


def check_lock_status(lock_dir: Path, host: str, directory: str) -> Optional[dict]:
    """Return lock holder info if a deployment is in flight, else None."""
    lock_path = lock_path_for(lock_dir, host, directory)
    if not lock_path.exists():
        return None

    try:
        with open(lock_path) as f:
            try:
                fcntl.flock(f.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
                # Stale lock file
                return None
            except OSError:
                info = read_lock_info(lock_path)
                info['lock_file'] = str(lock_path)
                return info
    except OSError as e:
        logger.warning(f"Error checking lock status: {e}")
        return None
