"""Authoritative store of active jobs.

Jobs are keyed by the remote job identifier with a secondary index by
requester. Insertion enforces the one-job-per-requester invariant; removal
cancels the job's pending poll so a cleared job never polls again.
"""

import logging

from figurine.core.models import Job


logger = logging.getLogger(__name__)


class JobStore:
    """Process-local job registry; rebuilt empty on restart."""

    def __init__(self):
        self._jobs: dict[str, Job] = {}
        self._by_requester: dict[str, str] = {}

    def add(self, job: Job) -> None:
        """Insert a job.

        Raises:
            ValueError: Duplicate job id, or the requester already owns a job.
        """
        if job.job_id in self._jobs:
            raise ValueError(f"Job {job.job_id} is already tracked")
        existing = self._by_requester.get(job.requester_id)
        if existing is not None:
            raise ValueError(
                f"Requester {job.requester_id} already owns job {existing}"
            )
        self._jobs[job.job_id] = job
        self._by_requester[job.requester_id] = job.job_id

    def get(self, job_id: str) -> Job | None:
        return self._jobs.get(job_id)

    def contains(self, job: Job) -> bool:
        """Whether this exact job object is still the tracked one for its id."""
        return self._jobs.get(job.job_id) is job

    def for_requester(self, requester_id: str) -> Job | None:
        job_id = self._by_requester.get(requester_id)
        return self._jobs.get(job_id) if job_id is not None else None

    def remove(self, job_id: str) -> Job | None:
        """Remove a job and cancel its pending poll. Missing ids are ignored."""
        job = self._jobs.pop(job_id, None)
        if job is None:
            return None
        if self._by_requester.get(job.requester_id) == job_id:
            del self._by_requester[job.requester_id]
        if job.poll_handle is not None:
            job.poll_handle.cancel()
        return job

    def remove_requester(self, requester_id: str) -> Job | None:
        job_id = self._by_requester.get(requester_id)
        if job_id is None:
            return None
        return self.remove(job_id)

    def clear(self) -> int:
        """Remove every job, cancelling pending polls; return how many were removed."""
        count = len(self._jobs)
        for job in list(self._jobs.values()):
            if job.poll_handle is not None:
                job.poll_handle.cancel()
        self._jobs.clear()
        self._by_requester.clear()
        return count

    def jobs(self) -> list[Job]:
        return list(self._jobs.values())

    def __len__(self) -> int:
        return len(self._jobs)
