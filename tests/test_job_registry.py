# WORKFLOW: Job registry tests.
# Test scenarios:
# 1. Progress counters stay within 0..total
# 2. Cancellation: unknown handles, once-only, after finish
# 3. Per-register job reuse and conflicts
# 4. Retention of terminal jobs

import threading
import time

import pytest

from core.exceptions import JobConflictError
from services.job_registry import CancellationToken, JobKind, JobRegistry, JobState


def test_progress_stays_within_total():
    registry = JobRegistry()
    job, created = registry.create(1, JobKind.VALIDATION)
    assert created
    assert job.snapshot().state is JobState.CREATED

    job.start(2)
    for _ in range(5):
        job.advance()
    progress = registry.progress(job.handle_id)
    assert progress.state is JobState.RUNNING
    assert progress.processed == 2
    assert progress.total == 2
    assert not progress.finished


def test_unknown_handle_is_not_an_error():
    registry = JobRegistry()
    assert registry.progress("missing") is None
    assert registry.cancel("missing") is False


def test_cancel_after_finish_returns_false_and_keeps_state():
    registry = JobRegistry()
    job, _ = registry.create(1, JobKind.IMPORT)
    job.start(1)
    job.advance()
    job.finish()

    assert registry.cancel(job.handle_id) is False
    progress = registry.progress(job.handle_id)
    assert progress.state is JobState.FINISHED
    assert progress.finished
    assert progress.processed == progress.total


def test_cancel_is_reported_once():
    registry = JobRegistry()
    job, _ = registry.create(1, JobKind.VALIDATION)
    assert registry.cancel(job.handle_id) is True
    assert registry.cancel(job.handle_id) is False
    assert job.token.is_cancelled


def test_token_is_set_by_exactly_one_caller():
    token = CancellationToken()
    results = []
    threads = [threading.Thread(target=lambda: results.append(token.cancel())) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert results.count(True) == 1


def test_terminal_state_is_final():
    registry = JobRegistry()
    job, _ = registry.create(1, JobKind.VALIDATION)
    job.mark_cancelled()
    job.finish()
    job.fail("late failure")
    progress = job.snapshot()
    assert progress.state is JobState.CANCELLED
    assert progress.error is None


def test_running_job_of_same_kind_is_reused():
    registry = JobRegistry()
    first, _ = registry.create(7, JobKind.VALIDATION)
    second, created = registry.create(7, JobKind.VALIDATION)
    assert not created
    assert second is first


def test_running_job_of_other_kind_conflicts():
    registry = JobRegistry()
    registry.create(7, JobKind.IMPORT)
    with pytest.raises(JobConflictError):
        registry.create(7, JobKind.VALIDATION)


def test_new_job_after_release():
    registry = JobRegistry()
    first, _ = registry.create(7, JobKind.IMPORT)
    first.start(0)
    first.finish()
    registry.release(first)

    second, created = registry.create(7, JobKind.VALIDATION)
    assert created
    assert second.handle_id != first.handle_id
    assert registry.progress(first.handle_id).state is JobState.FINISHED


def test_terminal_jobs_are_pruned_after_retention():
    registry = JobRegistry(retention_seconds=0)
    job, _ = registry.create(1, JobKind.VALIDATION)
    job.fail("boom")
    time.sleep(0.01)

    registry.create(2, JobKind.VALIDATION)
    assert registry.progress(job.handle_id) is None
