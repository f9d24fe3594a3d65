from tts_relay.services.progress import JobPhase, ProgressTracker


def test_new_tracker_reports_idle_job() -> None:
    tracker = ProgressTracker()

    snapshot = tracker.snapshot()

    assert snapshot is not None
    assert snapshot["phase"] == "idle"
    assert snapshot["total_segments"] == 0


def test_start_job_replaces_previous_record() -> None:
    tracker = ProgressTracker()
    first = tracker.start_job()
    first.set_phase(JobPhase.DISPATCHING)

    second = tracker.start_job()

    assert tracker.current is second
    assert second.job_id != first.job_id
    assert tracker.snapshot(first.job_id) is None
    assert tracker.snapshot(second.job_id)["phase"] == "idle"


def test_segment_counters_and_completion() -> None:
    tracker = ProgressTracker()
    job = tracker.start_job()

    job.set_phase(JobPhase.SEGMENTING)
    job.set_total(3)
    job.set_phase(JobPhase.DISPATCHING)
    tracker.set_queued(2)
    job.mark_processed()
    job.mark_processed()
    job.complete(audio_bytes=42)

    snapshot = tracker.snapshot()
    assert snapshot["phase"] == "complete"
    assert snapshot["processed_segments"] == 2
    assert snapshot["total_segments"] == 3
    assert snapshot["queued_segments"] == 0
    assert snapshot["audio_bytes"] == 42


def test_failure_is_terminal() -> None:
    job = ProgressTracker().start_job()
    job.set_phase(JobPhase.SUMMARIZING)

    job.fail("SummaryFailed", "provider down")
    job.set_phase(JobPhase.SEGMENTING)

    assert job.phase is JobPhase.ERROR
    assert job.error_type == "SummaryFailed"
    assert job.error_message == "provider down"


def test_summary_progress_is_clamped() -> None:
    job = ProgressTracker().start_job()

    job.set_summary_progress(150)
    assert job.summary_progress == 100

    job.set_summary_progress(-3)
    assert job.summary_progress == 0
