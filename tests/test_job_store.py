"""Tests for JobStore."""

import pytest

from figurine.core.job_store import JobStore
from figurine.core.models import Destination, Job
from figurine.core.scheduler import ScheduledCall


def make_job(job_id="job-1", requester="alice") -> Job:
    return Job(
        job_id=job_id,
        destination=Destination(requester_id=requester),
        prompt="prompt",
        image_count=1,
        created_at=0.0,
        style=1,
    )


def test_add_and_lookup():
    store = JobStore()
    job = make_job()

    store.add(job)

    assert store.get("job-1") is job
    assert store.for_requester("alice") is job
    assert store.contains(job)
    assert len(store) == 1


def test_one_job_per_requester():
    store = JobStore()
    store.add(make_job("job-1"))

    with pytest.raises(ValueError):
        store.add(make_job("job-2"))

    assert store.get("job-2") is None


def test_duplicate_job_id_rejected():
    store = JobStore()
    store.add(make_job("job-1", "alice"))

    with pytest.raises(ValueError):
        store.add(make_job("job-1", "bob"))


def test_remove_cancels_pending_poll():
    store = JobStore()
    job = make_job()
    job.poll_handle = ScheduledCall(3)
    store.add(job)

    assert store.remove("job-1") is job
    assert job.poll_handle.cancelled()
    assert store.for_requester("alice") is None
    assert store.remove("job-1") is None


def test_contains_is_identity_based():
    store = JobStore()
    store.add(make_job())

    assert not store.contains(make_job())


def test_clear_cancels_everything():
    store = JobStore()
    jobs = [make_job(f"job-{i}", f"user-{i}") for i in range(3)]
    for job in jobs:
        job.poll_handle = ScheduledCall(3)
        store.add(job)

    assert store.clear() == 3
    assert len(store) == 0
    assert all(job.poll_handle.cancelled() for job in jobs)
    assert store.for_requester("user-1") is None
