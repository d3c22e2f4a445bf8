"""Generation backend contract and dispatcher.

Role in pipeline:
    - Declares the two operations the engine needs from a remote service.
    - Selects the concrete client for the configured provider.

Any object with matching `submit`/`get_status` coroutines can be passed to
the engine, which is how tests and alternative providers plug in.
"""

from typing import Protocol

from figurine.core.errors import ConfigError
from figurine.core.models import GenerationStatus, SubmitResult
from figurine.image.client import YunwuClient
from figurine.image.provider_config import IMAGE_PROVIDER, GenerationConfig


class GenerationBackend(Protocol):
    async def submit(self, prompt: str, image_urls: list[str] | None = None, count: int = 1) -> SubmitResult:
        """Submit a job; raise `SubmissionFailed` when no job id is obtained."""
        ...

    async def get_status(self, job_id: str) -> GenerationStatus:
        """Return the current status; transport problems map to `PENDING`."""
        ...


def create_backend(config: GenerationConfig, provider: str | None = None) -> GenerationBackend:
    """Instantiate the backend for `provider` (defaults to `IMAGE_PROVIDER`)."""
    provider = provider or IMAGE_PROVIDER
    if provider == "yunwu":
        return YunwuClient(config)
    raise ConfigError(f"Unknown image provider: {provider}")
