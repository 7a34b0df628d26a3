"""Git conflict detection from remote command output."""
import re
from dataclasses import dataclass
from enum import Enum


class ConflictType(str, Enum):
    """Kinds of git conflict recognized in command output."""

    UNMERGED_INDEX = "UNMERGED_INDEX"
    STASH_CONFLICT = "STASH_CONFLICT"
    MERGE_CONFLICT = "MERGE_CONFLICT"
    UNMERGED_FILE = "UNMERGED_FILE"
    NONE = "NONE"


# Checked in order, first match wins
CONFLICT_PATTERNS = (
    (ConflictType.UNMERGED_INDEX, re.compile(r"cannot stash.*unmerged paths", re.IGNORECASE)),
    (ConflictType.STASH_CONFLICT, re.compile(r"stash entry is kept", re.IGNORECASE)),
    (ConflictType.MERGE_CONFLICT, re.compile(r"CONFLICT \(content\)|Automatic merge failed", re.IGNORECASE)),
    (ConflictType.UNMERGED_FILE, re.compile(r"Your index file is unmerged", re.IGNORECASE)),
)


@dataclass(frozen=True)
class ConflictDetection:
    """Result of classifying one command's output."""

    has_conflict: bool
    conflict_type: ConflictType = ConflictType.NONE


NO_CONFLICT = ConflictDetection(has_conflict=False)


def detect_conflict(stdout: str, stderr: str) -> ConflictDetection:
    """Classify combined stdout/stderr against known git conflict signatures.

    Args:
        stdout: Captured standard output (may be empty)
        stderr: Captured standard error (may be empty)

    Returns:
        ConflictDetection for the first matching signature, or NO_CONFLICT
    """
    combined = f"{stdout or ''}\n{stderr or ''}"

    for conflict_type, pattern in CONFLICT_PATTERNS:
        if pattern.search(combined):
            return ConflictDetection(has_conflict=True, conflict_type=conflict_type)

    return NO_CONFLICT
