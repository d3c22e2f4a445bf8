"""Core orchestration for figurine and text-to-image generation jobs.

Architectural role:
    Owns the job store, concurrency gate and wait register, and exposes the
    only operations front-ends may use to change them.

Control-flow model (figurine command):
    1. Validate style and image count.
    2. Acquire the requester's gate (reject with `AlreadyBusy` otherwise).
    3. Resolve an image: explicit attachment, then quoted image, otherwise
       register a wait entry and return its prompt text.
    4. Build the prompt, submit to the backend.
    5. Store the job only once a job id is confirmed, then hand it to the
       polling scheduler.

Resumption path:
    `handle_message` is called for every inbound message. A message carrying
    an image from a requester with a wait entry consumes the entry and goes
    straight to step 4 with the stored style.

Error handling strategy:
    Validation errors come back as a `CommandReply` with no side effects.
    Resolution and submission errors release the gate and notify once.
    Nothing leaves a requester marked busy after a failure.

Concurrency:
    Runs on one event loop without locks. Gate acquisition always precedes
    the remote call; job insertion always follows its success. Each
    submission carries the gate token it was started under. A reset or
    shutdown that lands while the call is in flight wins: the late response
    is dropped instead of creating an orphaned job, and it cannot claim or
    free a newer acquisition by the same requester.
"""

import logging

from figurine.core.errors import (
    AlreadyBusy,
    FigurineError,
    InvalidCount,
    InvalidPrompt,
    SubmissionFailed,
)
from figurine.core.gate import ConcurrencyGate
from figurine.core.job_store import JobStore
from figurine.core.models import (
    CommandReply,
    Destination,
    ImageAttachment,
    InboundMessage,
    Job,
)
from figurine.core.polling import PollingScheduler
from figurine.core.scheduler import AsyncioScheduler, Scheduler
from figurine.core.wait_register import WaitRegister
from figurine.image.provider_config import MAX_IMAGE_COUNT, MIN_IMAGE_COUNT, GenerationConfig
from figurine.image.service import GenerationBackend
from figurine.logging_utils import log_event
from figurine.messaging.extraction import extract_image_reference, validate_image_reference
from figurine.messaging.messenger import Content, Messenger
from figurine.prompting.prompt_builder import (
    MIN_PROMPT_CHARS,
    build_figurine_prompt,
    build_text_prompt,
    validate_style,
)


logger = logging.getLogger(__name__)

GENERATING_FIGURINE = "Generating figurine image, please wait..."
GENERATING_IMAGE = "Generating image, please wait..."


def validate_count(count: int | None) -> int:
    """Return the requested image count (default 1) or raise `InvalidCount`."""
    if count is None:
        return MIN_IMAGE_COUNT
    if isinstance(count, bool) or not isinstance(count, int) or not MIN_IMAGE_COUNT <= count <= MAX_IMAGE_COUNT:
        raise InvalidCount(MIN_IMAGE_COUNT, MAX_IMAGE_COUNT)
    return count


class FigurineEngine:
    """Asynchronous job orchestration service.

    Args:
        config: Validated runtime configuration.
        backend: Remote generation service (`submit` / `get_status`).
        messenger: Outbound delivery for notices and result images.
        scheduler: Delayed-callback provider; defaults to the running loop.
    """

    def __init__(
        self,
        config: GenerationConfig,
        backend: GenerationBackend,
        messenger: Messenger,
        scheduler: Scheduler | None = None,
    ):
        self.config = config
        self.backend = backend
        self.messenger = messenger
        self.scheduler = scheduler or AsyncioScheduler()

        self.gate = ConcurrencyGate()
        self.jobs = JobStore()
        self.waits = WaitRegister(self.gate, self.scheduler, messenger)
        self.poller = PollingScheduler(
            self.jobs, self.gate, backend, messenger, self.scheduler, config
        )

        log_event(
            logger,
            "engine.start",
            has_api_key=bool(config.api_key),
            cooldown=config.cooldown_seconds,
            default_style=config.default_style,
            presets=config.style_count,
        )

    # -----------------------------------------------------
    # Commands
    # -----------------------------------------------------

    async def handle_command(
        self,
        destination: Destination,
        style: int | None = None,
        message: InboundMessage | None = None,
        image: ImageAttachment | None = None,
        count: int | None = None,
    ) -> CommandReply:
        """Turn an image into a figurine.

        Args:
            destination: Requester and reply target.
            style: 1-based preset index; `None` selects the default style.
            message: Inbound message the command arrived in, searched for an
                attached or quoted image when `image` is not given.
            image: Explicit image attachment.
            count: Number of images to generate; `None` means one.

        Returns:
            `CommandReply` with the wait prompt, a rejection, or no text when
            the job was submitted and notices went through the messenger.
        """
        requester_id = destination.requester_id
        try:
            style = validate_style(self.config.default_style if style is None else style,
                                   self.config.presets)
            count = validate_count(count)
            token = self._acquire(requester_id)
        except FigurineError as e:
            return CommandReply(e.user_message, e)

        attachment = image
        if attachment is None and message is not None:
            attachment = extract_image_reference(message)

        if attachment is None:
            text = self.waits.register(destination, style, self.config.cooldown_seconds, count)
            return CommandReply(text)

        try:
            image_url = validate_image_reference(attachment, self.config.max_image_size_bytes)
        except FigurineError as e:
            self.gate.release(requester_id, token)
            return CommandReply(e.user_message, e)

        job = await self._submit_image_job(destination, style, image_url, count, token)
        if job is None:
            return CommandReply(error=SubmissionFailed())
        return CommandReply()

    async def handle_message(self, message: InboundMessage) -> bool:
        """Resume a pending figurine command when the awaited image arrives.

        Messages without an image leave the wait entry untouched; only its
        timer governs expiry.

        Returns:
            Whether the message was consumed as the awaited image.
        """
        requester_id = message.destination.requester_id
        if not self.waits.has(requester_id):
            return False

        attachment = extract_image_reference(message)
        if attachment is None:
            return False

        try:
            image_url = validate_image_reference(attachment, self.config.max_image_size_bytes)
        except FigurineError as e:
            # Keep waiting; the requester may still send a usable image in time.
            await self._send(message.destination, e.user_message)
            return False

        entry = self.waits.consume(requester_id)
        if entry is None:
            return False

        # The wait entry kept the gate acquisition of the command that created it.
        token = self.gate.token(requester_id)
        await self._submit_image_job(message.destination, entry.style, image_url,
                                     entry.image_count, token)
        return True

    async def text_to_image(
        self,
        destination: Destination,
        prompt: str,
        count: int | None = None,
    ) -> CommandReply:
        """Generate images from a text description using the default style."""
        requester_id = destination.requester_id
        try:
            if not prompt or len(prompt.strip()) < MIN_PROMPT_CHARS:
                raise InvalidPrompt()
            count = validate_count(count)
            token = self._acquire(requester_id)
        except FigurineError as e:
            return CommandReply(e.user_message, e)

        style = self.config.default_style
        full_prompt = build_text_prompt(prompt, style, self.config.presets)

        await self._send(destination, GENERATING_IMAGE)
        job = await self._submit(destination, full_prompt, None, count, style, token)
        if job is None:
            return CommandReply(error=SubmissionFailed())
        return CommandReply()

    def status(self, destination: Destination) -> str:
        """Describe the requester's pending wait and active job."""
        requester_id = destination.requester_id
        entry = self.waits.get(requester_id)
        job = self.jobs.for_requester(requester_id)

        if entry is None and job is None:
            return "No task is currently in progress"

        lines = ["Current task status:"]
        if entry is not None:
            lines.append(f"Waiting for image input (style {entry.style})")
        if job is not None:
            elapsed = int(self.scheduler.now() - job.created_at)
            lines.append(f"Task: {job.job_id[:8]}...")
            lines.append(f"Style: {job.style}")
            lines.append(f"Waited: {elapsed} seconds")
        return "\n".join(lines)

    def reset(self, destination: Destination) -> str:
        """Clear the requester's job, wait entry and gate membership."""
        requester_id = destination.requester_id
        was_busy = self.gate.release(requester_id)
        removed_job = self.jobs.remove_requester(requester_id)
        removed_wait = self.waits.cancel(requester_id)

        cleared = was_busy or removed_job is not None or removed_wait
        log_event(logger, "engine.reset", requester=requester_id, cleared=cleared,
                  job_id=removed_job.job_id if removed_job else None)
        if cleared:
            return "Processing state reset"
        return "No task is currently being processed"

    def shutdown(self) -> None:
        """Cancel every timer and clear all state. Idempotent."""
        waits = self.waits.clear()
        jobs = self.jobs.clear()
        self.gate.clear()
        log_event(logger, "engine.shutdown", cleared_waits=waits, cleared_jobs=jobs)

    def is_busy(self, requester_id: str) -> bool:
        return self.gate.is_busy(requester_id)

    # -----------------------------------------------------
    # Submission
    # -----------------------------------------------------

    def _acquire(self, requester_id: str) -> int | None:
        if not self.gate.try_acquire(requester_id):
            log_event(logger, "engine.busy", requester=requester_id)
            raise AlreadyBusy()
        return self.gate.token(requester_id)

    async def _submit_image_job(
        self,
        destination: Destination,
        style: int,
        image_url: str,
        count: int,
        token: int | None,
    ) -> Job | None:
        log_event(logger, "engine.process", requester=destination.requester_id,
                  style=style, image_url=image_url[:100])
        await self._send(destination, GENERATING_FIGURINE)
        prompt = build_figurine_prompt(style, self.config.presets, image_url)
        return await self._submit(destination, prompt, [image_url], count, style, token, image_url)

    async def _submit(
        self,
        destination: Destination,
        prompt: str,
        image_urls: list[str] | None,
        count: int,
        style: int,
        token: int | None,
        image_url: str | None = None,
    ) -> Job | None:
        """Submit to the backend and start tracking the job.

        The caller must hold the requester's gate under `token`. On failure
        the gate is released and one failure notice is sent. If the
        acquisition was reset away while the call was in flight, the outcome
        belongs to nobody and is dropped without touching the gate.
        """
        requester_id = destination.requester_id
        result = None
        error = None
        try:
            result = await self.backend.submit(prompt, image_urls, count)
        except SubmissionFailed as e:
            error = e
        except Exception:
            logger.exception("Submission failed for %s", requester_id)
            error = SubmissionFailed()
        else:
            if not result.job_id:
                error = SubmissionFailed()

        if not self.gate.holds(requester_id, token):
            log_event(logger, "engine.submission_dropped", level=logging.WARNING,
                      requester=requester_id, job_id=result.job_id if result else None)
            return None

        if error is not None:
            self.gate.release(requester_id, token)
            await self._send(destination, error.user_message)
            return None

        job = Job(
            job_id=result.job_id,
            destination=destination,
            prompt=prompt,
            image_count=count,
            created_at=self.scheduler.now(),
            style=style,
            image_url=image_url,
            gate_token=token,
        )
        self.jobs.add(job)

        if result.queue_position > 0:
            await self._send(destination, f"Task submitted, queue position: {result.queue_position}")

        if self.jobs.contains(job):
            self.poller.start(job)
        return job

    async def _send(self, destination: Destination, content: Content) -> None:
        try:
            await self.messenger.send(destination, content)
        except Exception:
            logger.exception("Failed to deliver message to %s", destination.requester_id)
