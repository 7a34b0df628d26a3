"""Tests for progress tracking."""
from unittest.mock import patch

from webship.core.progress import (
    ProgressStatus,
    ProgressTracker,
    format_seconds,
)


class TestFormatSeconds:
    """Test duration formatting."""

    def test_two_decimals(self):
        assert format_seconds(1.23456) == "1.23"

    def test_zero(self):
        """Zero elapsed still reports 0.00."""
        assert format_seconds(0) == "0.00"


class TestProgressTracker:
    """Test event emission."""

    def test_events_reach_callback_in_order(self):
        """Events are forwarded synchronously in emission order."""
        events = []
        tracker = ProgressTracker("test", 2, events.append)

        tracker.start("go")
        tracker.step_start("git fetch origin")
        tracker.step_complete("git fetch origin", "out", "")
        tracker.step_start("git stash")
        tracker.step_failed("git stash", "boom", "", "fatal", 1)
        tracker.failed()

        assert [e.status for e in events] == [
            ProgressStatus.STARTED,
            ProgressStatus.STEP_RUNNING,
            ProgressStatus.STEP_COMPLETE,
            ProgressStatus.STEP_RUNNING,
            ProgressStatus.STEP_FAILED,
            ProgressStatus.FAILED,
        ]
        assert events[1].message == "Executing step 1/2"
        assert events[3].current_step == 2
        assert events[4].exit_code == 1
        assert events[4].error == "boom"
        assert events[4].stderr == "fatal"

    def test_step_start_increments_counter(self):
        tracker = ProgressTracker("test", 3)

        tracker.step_start("a")
        tracker.step_start("b")

        assert tracker.current_step == 2

    def test_zero_elapsed_reports_zero(self):
        """Durations are 0.00 when no time passes."""
        events = []
        with patch('webship.core.progress.time.monotonic', return_value=100.0):
            tracker = ProgressTracker("test", 1, events.append)
            tracker.start()
            tracker.step_start("a")
            tracker.step_complete("a")
            tracker.complete()

        assert events[2].duration == "0.00"
        assert events[3].duration == "0.00"
        assert tracker.get_step_duration() == "0.00"

    def test_step_duration_before_any_step(self):
        assert ProgressTracker("test", 1).get_step_duration() == "0.00"

    def test_total_duration_measured_from_start(self):
        """Total duration counts from start()."""
        times = [0.0, 10.0, 12.5]

        def clock():
            return times.pop(0) if len(times) > 1 else times[0]

        with patch("webship.core.progress.time.monotonic", side_effect=clock):
            tracker = ProgressTracker("test", 1)
            tracker.start()
            assert tracker.get_total_duration() == "2.50"

    def test_failing_callback_does_not_abort(self):
        """A broken sink is logged and ignored."""
        def broken(event):
            raise RuntimeError("sink down")

        tracker = ProgressTracker("test", 1, broken)

        event = tracker.start("go")
        tracker.step_start("a")

        assert event.status == ProgressStatus.STARTED
        assert tracker.current_step == 1

    def test_no_callback(self):
        """Tracker works without a sink."""
        tracker = ProgressTracker("test", 1)
        assert tracker.complete().status == ProgressStatus.COMPLETED

    def test_to_dict_drops_unset_fields(self):
        tracker = ProgressTracker("test", 4)
        data = tracker.step_start("git fetch origin").to_dict()

        assert data["status"] == "step-running"
        assert data["command"] == "git fetch origin"
        assert data["current_step"] == 1
        assert data["total_steps"] == 4
        assert "stdout" not in data
        assert "timestamp" in data
