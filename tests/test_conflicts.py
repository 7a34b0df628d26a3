"""Tests for git conflict detection."""
import pytest

from webship.core.conflicts import NO_CONFLICT, ConflictType, detect_conflict


class TestDetectConflict:
    """Test classification of command output."""

    @pytest.mark.parametrize("stdout,stderr,expected", [
        ("", "error: cannot stash: you have unmerged paths", ConflictType.UNMERGED_INDEX),
        ("", "The stash entry is kept in case you need it again.", ConflictType.STASH_CONFLICT),
        ("CONFLICT (content): Merge conflict in app.rb", "", ConflictType.MERGE_CONFLICT),
        ("Automatic merge failed; fix conflicts and then commit the result.", "", ConflictType.MERGE_CONFLICT),
        ("", "error: Your index file is unmerged.", ConflictType.UNMERGED_FILE),
    ])
    def test_signatures(self, stdout, stderr, expected):
        """Each known git message maps to its conflict type."""
        detection = detect_conflict(stdout, stderr)

        assert detection.has_conflict is True
        assert detection.conflict_type == expected

    def test_clean_output(self):
        """Ordinary git output is not a conflict."""
        detection = detect_conflict("Already up to date.\n", "From github.com:acme/shop\n")

        assert detection == NO_CONFLICT
        assert detection.conflict_type == ConflictType.NONE

    def test_empty_output(self):
        """Empty or missing output is not a conflict."""
        assert detect_conflict("", "") == NO_CONFLICT
        assert detect_conflict(None, None) == NO_CONFLICT

    def test_case_insensitive_unmerged_index(self):
        """Unmerged index signature ignores case."""
        detection = detect_conflict("CANNOT STASH because of UNMERGED PATHS", "")
        assert detection.conflict_type == ConflictType.UNMERGED_INDEX

    def test_priority_order(self):
        """When several signatures match, the earliest in priority order wins."""
        stdout = "CONFLICT (content): Merge conflict in app.rb"
        stderr = "The stash entry is kept in case you need it again."

        assert detect_conflict(stdout, stderr).conflict_type == ConflictType.STASH_CONFLICT

    def test_signature_split_across_streams(self):
        """stdout and stderr are examined together."""
        detection = detect_conflict("cannot stash", "unmerged paths")
        assert detection.has_conflict is False

    def test_idempotent(self):
        """Same output always gives the same classification."""
        args = ("Auto-merging app.rb\nCONFLICT (content): Merge conflict in app.rb", "")
        assert detect_conflict(*args) == detect_conflict(*args)
