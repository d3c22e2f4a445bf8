"""Job status polling.

Architectural role:
    Drives each job from `InFlight` to a terminal outcome by querying the
    generation backend at a fixed relative interval.

Control-flow model:
    1. `start(job)` schedules the first poll after `poll_interval_seconds`.
    2. Each poll queries the backend once, then feeds the attempt count and
       the normalized status into `decide_poll_outcome`.
    3. `RESCHEDULE` schedules exactly one follow-up poll; `SUCCEED`/`FAIL`
       remove the job, release the gate and notify the requester once.

Scheduling:
    The next poll is scheduled only after the previous one completes, so a
    slow backend stretches the timeline instead of overlapping polls for the
    same job. A job never polls more than `max_poll_attempts` times.

Cancellation:
    Every poll re-checks that its job is still the tracked one before and
    after the remote call. Jobs removed by reset or shutdown turn pending or
    in-flight polls into no-ops.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from figurine.core.errors import EmptyResult, FigurineError, PollTimeout
from figurine.core.gate import ConcurrencyGate
from figurine.core.job_store import JobStore
from figurine.core.models import Destination, GenerationStatus, ImageContent, Job, StatusKind
from figurine.core.scheduler import Scheduler
from figurine.image.provider_config import GenerationConfig
from figurine.image.service import GenerationBackend
from figurine.logging_utils import log_event
from figurine.messaging.messenger import Content, Messenger


logger = logging.getLogger(__name__)


class PollAction(str, Enum):
    RESCHEDULE = "reschedule"
    SUCCEED = "succeed"
    FAIL = "fail"


@dataclass(frozen=True)
class PollDecision:
    """Outcome of one poll.

    Attributes:
        action: What the scheduler does next.
        attempts: Attempt counter after this poll.
        images: Result URLs for `SUCCEED`.
        error: Terminal error for `FAIL`.
        report_progress: Whether a non-terminal progress notice is due.
    """

    action: PollAction
    attempts: int
    images: tuple[str, ...] = ()
    error: FigurineError | None = None
    report_progress: bool = False


def decide_poll_outcome(
    attempts: int,
    status: GenerationStatus,
    max_attempts: int,
    progress_every: int = 5,
) -> PollDecision:
    """Map `(attempts so far, status)` to the next step. Pure function.

    Pending results (including transport errors) count as one unsuccessful
    attempt; reaching `max_attempts` turns them into `PollTimeout`.
    """
    if status.kind is StatusKind.SUCCEEDED and status.images:
        return PollDecision(PollAction.SUCCEED, attempts, images=status.images)

    if status.kind is StatusKind.EMPTY:
        return PollDecision(PollAction.FAIL, attempts, error=EmptyResult())

    attempts += 1
    if attempts >= max_attempts:
        return PollDecision(PollAction.FAIL, attempts, error=PollTimeout())

    return PollDecision(
        PollAction.RESCHEDULE,
        attempts,
        report_progress=attempts % progress_every == 0,
    )


class PollingScheduler:
    """Runs the poll chain of every active job."""

    def __init__(
        self,
        jobs: JobStore,
        gate: ConcurrencyGate,
        backend: GenerationBackend,
        messenger: Messenger,
        scheduler: Scheduler,
        config: GenerationConfig,
    ):
        self._jobs = jobs
        self._gate = gate
        self._backend = backend
        self._messenger = messenger
        self._scheduler = scheduler
        self._config = config

    def start(self, job: Job) -> None:
        """Schedule the first poll of a freshly stored job."""
        self._schedule(job)

    def _schedule(self, job: Job) -> None:
        async def run():
            await self.poll(job)

        job.poll_handle = self._scheduler.call_later(self._config.poll_interval_seconds, run)

    async def poll(self, job: Job) -> PollDecision | None:
        """Query the backend once for `job` and act on the result.

        Returns:
            The decision taken, or `None` when the job was no longer tracked.
        """
        if not self._jobs.contains(job):
            return None

        try:
            status = await self._backend.get_status(job.job_id)
        except Exception as exc:
            logger.warning("Status query for %s raised: %s", job.job_id, exc, exc_info=True)
            status = GenerationStatus.pending(str(exc))

        # Reset or shutdown while the query was in flight.
        if not self._jobs.contains(job):
            return None

        decision = decide_poll_outcome(
            job.poll_attempts,
            status,
            self._config.max_poll_attempts,
            self._config.progress_every,
        )
        job.poll_attempts = decision.attempts

        if decision.action is PollAction.SUCCEED:
            await self._succeed(job, decision.images)
        elif decision.action is PollAction.FAIL:
            await self._fail(job, decision.error)
        else:
            if decision.report_progress:
                elapsed = int(self._scheduler.now() - job.created_at)
                await self._send(job.destination, f"Generating... (waited {elapsed} seconds)")
            if self._jobs.contains(job):
                self._schedule(job)

        return decision

    def _finish(self, job: Job) -> None:
        self._jobs.remove(job.job_id)
        self._gate.release(job.requester_id, job.gate_token)

    async def _succeed(self, job: Job, images: tuple[str, ...]) -> None:
        self._finish(job)
        log_event(logger, "job.succeeded", job_id=job.job_id, requester=job.requester_id,
                  style=job.style, image_count=len(images), attempts=job.poll_attempts)

        for url in images:
            await self._send(job.destination, ImageContent(url))
        await self._send(
            job.destination,
            f"Figurine generation complete!\nStyle: {job.style}\nImages: {len(images)}",
        )

    async def _fail(self, job: Job, error: FigurineError | None) -> None:
        error = error or PollTimeout()
        self._finish(job)
        log_event(logger, "job.failed", level=logging.ERROR, job_id=job.job_id,
                  requester=job.requester_id, reason=type(error).__name__,
                  attempts=job.poll_attempts)
        await self._send(job.destination, error.user_message)

    async def _send(self, destination: Destination, content: Content) -> None:
        try:
            await self._messenger.send(destination, content)
        except Exception:
            logger.exception("Failed to deliver message to %s", destination.requester_id)
