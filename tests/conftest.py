"""Shared pytest fixtures for figurine tests.

Timers run on `FakeScheduler`, so tests advance virtual time instead of
sleeping.
"""

from __future__ import annotations

import pytest

from figurine.core.engine import FigurineEngine
from figurine.core.models import Destination, GenerationStatus, ImageAttachment, InboundMessage, SubmitResult
from figurine.core.scheduler import ScheduledCall
from figurine.image.provider_config import GenerationConfig


# ============================================================================
# Fakes
# ============================================================================


class FakeScheduler:
    """Virtual-time scheduler; callbacks run only inside `advance`."""

    def __init__(self, start: float = 1000.0):
        self._now = start
        self._seq = 0
        self._pending: list[tuple[float, int, ScheduledCall, object]] = []

    def now(self) -> float:
        return self._now

    def call_later(self, delay, callback) -> ScheduledCall:
        handle = ScheduledCall(delay)
        self._seq += 1
        self._pending.append((self._now + delay, self._seq, handle, callback))
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for _, _, handle, _ in self._pending if not handle.cancelled())

    async def advance(self, seconds: float) -> None:
        target = self._now + seconds
        while True:
            due = [item for item in self._pending if item[0] <= target]
            if not due:
                break
            item = min(due, key=lambda i: (i[0], i[1]))
            self._pending.remove(item)
            when, _, handle, callback = item
            self._now = max(self._now, when)
            if handle.cancelled():
                continue
            await callback()
        self._now = target


class FakeBackend:
    """In-memory generation backend with scripted responses."""

    def __init__(self):
        self.submissions: list[dict] = []
        self.status_calls: list[str] = []
        self.submit_result: SubmitResult | Exception = SubmitResult(job_id="job-12345678", queue_position=0)
        self.statuses: list[GenerationStatus | Exception] = []
        self.default_status = GenerationStatus.pending()
        self.on_submit = None

    async def submit(self, prompt, image_urls=None, count=1):
        self.submissions.append({"prompt": prompt, "image_urls": image_urls, "count": count})
        if self.on_submit is not None:
            self.on_submit()
        if isinstance(self.submit_result, Exception):
            raise self.submit_result
        return self.submit_result

    async def get_status(self, job_id):
        self.status_calls.append(job_id)
        if self.statuses:
            result = self.statuses.pop(0)
        else:
            result = self.default_status
        if isinstance(result, Exception):
            raise result
        return result


class RecordingMessenger:
    def __init__(self):
        self.sent: list[tuple[Destination, object]] = []

    async def send(self, destination, content):
        self.sent.append((destination, content))

    def texts(self, requester_id: str | None = None) -> list[str]:
        return [
            c for d, c in self.sent
            if isinstance(c, str) and (requester_id is None or d.requester_id == requester_id)
        ]


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def config() -> GenerationConfig:
    return GenerationConfig(
        api_key="test-key",
        cooldown_seconds=30,
        poll_interval_seconds=3,
        max_poll_attempts=40,
        enable_log=False,
    )


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def messenger() -> RecordingMessenger:
    return RecordingMessenger()


@pytest.fixture
def engine(config, backend, messenger, scheduler) -> FigurineEngine:
    return FigurineEngine(config, backend, messenger, scheduler)


@pytest.fixture
def alice() -> Destination:
    return Destination(requester_id="alice", channel_id="room-1")


def image_message(destination: Destination, url: str = "https://img.example/cat.png") -> InboundMessage:
    return InboundMessage(destination=destination, images=(ImageAttachment(url=url),))
