from unittest.mock import MagicMock

import pytest

from genbatch.domain.events.job_events import (
    JobDeferred, JobFailed, JobSkipped, JobStarted, JobSucceeded, RetryScheduled, VideoFailed,
)
from genbatch.domain.interfaces.user_interface import UserInterface
from genbatch.infrastructure.monitoring.progress import ProgressTracker, format_duration, make_progress_bar


@pytest.fixture
def mock_ui():
    return MagicMock(spec=UserInterface)


@pytest.fixture
def tracker(mock_ui, clock):
    return ProgressTracker(ui=mock_ui, clock=clock)


@pytest.mark.parametrize("seconds, text", [(0, "0s"), (42, "42s"), (185, "3m 5s"), (7800, "2h 10m")])
def test_format_duration(seconds, text):
    assert format_duration(seconds) == text


def test_progress_bar():
    assert make_progress_bar(50, width=10) == "=====-----"
    assert make_progress_bar(0, width=4) == "----"
    assert make_progress_bar(100, width=4) == "===="


def test_counts_from_events(tracker):
    tracker.add_to_total(5)
    tracker.handle_event(JobStarted("rec1", "a cat"))
    tracker.handle_event(JobSucceeded("rec1", 6))
    tracker.handle_event(JobSkipped("rec2"))
    tracker.handle_event(JobFailed("rec3", "bad request", transient=False))
    tracker.handle_event(RetryScheduled("rec4", "generate", 2, 1.0))
    tracker.handle_event(VideoFailed("rec1", "Video generation failed: boom"))

    assert (tracker.processed, tracker.succeeded, tracker.failed, tracker.skipped) == (3, 2, 1, 1)
    assert tracker.retries == 1
    assert tracker.video_failures == 1
    assert tracker.current_job == "rec1: a cat"


def test_deferred_jobs_leave_the_total(tracker):
    tracker.add_to_total(3)
    tracker.handle_event(JobDeferred("rec1"))

    assert tracker.deferred == 1
    assert tracker.total == 2
    assert tracker.processed == 0


def test_progress_display_is_throttled(tracker, mock_ui, clock):
    tracker.add_to_total(10)
    tracker.increment(True)
    tracker.increment(True)
    assert mock_ui.display_progress.call_count == 1

    clock.advance(2.5)
    tracker.increment(False)
    assert mock_ui.display_progress.call_count == 2


def test_progress_shown_when_page_completes(tracker, mock_ui):
    tracker.add_to_total(2)
    tracker.increment(True)
    tracker.increment(True)
    assert mock_ui.display_progress.call_count == 2


def test_snapshot_rate_and_eta(tracker, clock):
    tracker.add_to_total(10)
    for _ in range(4):
        tracker.increment(True)
    clock.advance(8)

    snapshot = tracker.snapshot()

    assert snapshot["percentage"] == 40
    assert snapshot["rate"] == 0.5
    assert snapshot["eta"] == 12
    assert snapshot["elapsed"] == 8
    assert snapshot["bar"] == make_progress_bar(40)


def test_snapshot_with_nothing_processed(tracker):
    snapshot = tracker.snapshot()
    assert snapshot["percentage"] == 0
    assert snapshot["rate"] == 0.0
    assert snapshot["eta"] == 0


def test_final_summary_goes_to_ui(tracker, mock_ui):
    tracker.add_to_total(1)
    tracker.increment(True)

    tracker.show_final_summary()

    summary = mock_ui.display_summary.call_args.args[0]
    assert summary["success"] == 1
