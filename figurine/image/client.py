"""Yunwu (fal-ai compatible) asynchronous generation client.

Processing flow:
    1. `submit` posts `{prompt, image_urls?, num_images}` and returns the
       remote `request_id` and `queue_position`.
    2. `get_status` fetches the request by id and classifies the payload.

Status classification:
    - Non-empty `images` list -> `SUCCEEDED`.
    - `status == "COMPLETED"` with an empty `images` list -> `EMPTY`.
    - Anything else, including `status == "FAILED"` and transport or parse
      errors -> `PENDING`. A reported failure keeps its error text for logs.

Error handling strategy:
    - Submission problems of any kind raise `SubmissionFailed`.
    - Status queries never raise for transport/HTTP/JSON problems; the error
      text is attached to a `PENDING` status so the poller can retry.

Security considerations:
    - The API key is sent as a bearer token and never logged.
    - Prompts are logged truncated to 100 characters.
"""

import logging
from typing import Any

import httpx

from figurine.core.errors import SubmissionFailed
from figurine.core.models import GenerationStatus, StatusKind, SubmitResult
from figurine.image.provider_config import GenerationConfig
from figurine.logging_utils import log_event


logger = logging.getLogger(__name__)


class YunwuClient:
    """HTTP generation backend for the Yunwu fal-ai proxy."""

    def __init__(
        self,
        config: GenerationConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._transport = transport

    async def submit(self, prompt: str, image_urls: list[str] | None = None, count: int = 1) -> SubmitResult:
        """Submit one generation request.

        Raises:
            SubmissionFailed: Transport error, non-2xx status, non-JSON body or
                missing `request_id`.
        """
        payload: dict[str, Any] = {"prompt": prompt, "num_images": count}
        if image_urls:
            payload["image_urls"] = list(image_urls)

        log_event(logger, "job.submit", prompt=prompt[:100], num_images=count,
                  has_images=bool(image_urls))

        try:
            async with self._client(self.config.api_timeout_seconds) as client:
                response = await client.post(
                    self.config.submit_url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            logger.error("Submission rejected with status %s", exc.response.status_code)
            raise SubmissionFailed() from exc
        except httpx.RequestError as exc:
            logger.error("Submission transport error: %s", exc)
            raise SubmissionFailed() from exc
        except ValueError as exc:
            logger.error("Submission returned a non-JSON body")
            raise SubmissionFailed() from exc

        if not isinstance(data, dict):
            raise SubmissionFailed()

        job_id = data.get("request_id")
        if not job_id or not isinstance(job_id, str):
            logger.error("Submission response carried no request_id")
            raise SubmissionFailed()

        result = SubmitResult(
            job_id=job_id,
            queue_position=_as_int(data.get("queue_position")),
            status=data.get("status"),
        )
        log_event(logger, "job.submitted", job_id=result.job_id,
                  status=result.status, queue_position=result.queue_position)
        return result

    async def get_status(self, job_id: str) -> GenerationStatus:
        """Query one request; never raises for remote or transport problems."""
        url = f"{self.config.status_url}{job_id}"
        try:
            async with self._client(self.config.status_timeout_seconds) as client:
                response = await client.get(url)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            error = f"HTTP {exc.response.status_code}"
            log_event(logger, "job.status_error", level=logging.WARNING, job_id=job_id, error=error)
            return GenerationStatus.pending(error)
        except httpx.RequestError as exc:
            error = f"{type(exc).__name__}: {exc}"
            log_event(logger, "job.status_error", level=logging.WARNING, job_id=job_id, error=error)
            return GenerationStatus.pending(error)
        except ValueError:
            log_event(logger, "job.status_error", level=logging.WARNING, job_id=job_id, error="invalid JSON")
            return GenerationStatus.pending("invalid JSON")

        status = parse_status(data)
        log_event(logger, "job.status", job_id=job_id, kind=status.kind.value,
                  image_count=len(status.images), error=status.error)
        return status

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout,
            headers={"Authorization": f"Bearer {self.config.api_key}"},
            transport=self._transport,
        )


def parse_status(data: Any) -> GenerationStatus:
    """Classify a status payload."""
    if not isinstance(data, dict):
        return GenerationStatus.pending("unexpected payload shape")

    images = data.get("images")
    urls: list[str] = []
    if isinstance(images, list):
        for item in images:
            if isinstance(item, dict) and item.get("url"):
                urls.append(str(item["url"]))
            elif isinstance(item, str) and item:
                urls.append(item)

    if urls:
        return GenerationStatus(kind=StatusKind.SUCCEEDED, images=tuple(urls), raw=data)

    remote_status = str(data.get("status") or "").upper()
    if remote_status == "COMPLETED" and isinstance(images, list):
        return GenerationStatus(kind=StatusKind.EMPTY, raw=data)
    if remote_status == "FAILED":
        return GenerationStatus.pending(str(data.get("error") or "FAILED"))

    return GenerationStatus(kind=StatusKind.PENDING, raw=data)


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
