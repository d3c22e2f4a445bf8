"""Data contracts shared by the orchestration engine and its collaborators.

Architectural role:
    Defines the job/wait records owned by the engine and the value objects that
    cross the messaging and generation-backend boundaries.

Ownership:
    `Job` and `WaitEntry` instances are created and mutated only by
    engine components (`core.engine`, `core.polling`). Front-ends
    only ever see `CommandReply`, `InboundMessage`, `Destination` and
    `ImageContent`.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol


@dataclass(frozen=True)
class Destination:
    """Requester identity plus the reply target outbound messages go to.

    Attributes:
        requester_id: Identity that owns at most one job or wait entry.
        channel_id: Front-end specific reply target (chat, console, outbox).
    """

    requester_id: str
    channel_id: str | None = None


@dataclass(frozen=True)
class ImageContent:
    """Outbound image message; front-ends render it with their own primitive."""

    url: str


@dataclass(frozen=True)
class ImageAttachment:
    """One image reference extracted from an inbound payload."""

    url: str
    size_bytes: int | None = None


@dataclass(frozen=True)
class InboundMessage:
    """Front-end independent view of one inbound chat message."""

    destination: Destination
    text: str = ""
    images: tuple[ImageAttachment, ...] = ()
    quoted_images: tuple[ImageAttachment, ...] = ()


class Cancellable(Protocol):
    """Handle returned by a scheduler for one pending callback."""

    def cancel(self) -> None:
        ...

    def cancelled(self) -> bool:
        ...


@dataclass
class Job:
    """One outstanding remote generation request.

    Everything except `poll_attempts` and `poll_handle` is fixed at creation.
    `gate_token` is the gate acquisition the job was submitted under.
    """

    job_id: str
    destination: Destination
    prompt: str
    image_count: int
    created_at: float
    style: int
    image_url: str | None = None
    gate_token: int | None = None
    poll_attempts: int = 0
    poll_handle: Cancellable | None = field(default=None, repr=False, compare=False)

    @property
    def requester_id(self) -> str:
        return self.destination.requester_id


@dataclass
class WaitEntry:
    """A requester who has been asked to send an image within the cooldown."""

    destination: Destination
    style: int
    image_count: int = 1
    expiry_handle: Cancellable | None = field(default=None, repr=False, compare=False)

    @property
    def requester_id(self) -> str:
        return self.destination.requester_id


@dataclass(frozen=True)
class SubmitResult:
    """Acknowledgement of a remote submission."""

    job_id: str
    queue_position: int = 0
    status: str | None = None


class StatusKind(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    EMPTY = "empty"


@dataclass(frozen=True)
class GenerationStatus:
    """Normalized result of one status query.

    Attributes:
        kind: Classification of the remote response.
        images: Result image URLs in the order returned (only for `SUCCEEDED`).
        error: Transport/parse error text when the query itself failed; such
            results are always `PENDING`.
        raw: Parsed remote payload, kept for logging.
    """

    kind: StatusKind
    images: tuple[str, ...] = ()
    error: str | None = None
    raw: dict[str, Any] | None = field(default=None, repr=False, compare=False)

    @classmethod
    def pending(cls, error: str | None = None) -> "GenerationStatus":
        return cls(kind=StatusKind.PENDING, error=error)


@dataclass(frozen=True)
class CommandReply:
    """Synchronous answer to a command.

    `text` is `None` when the command produced no immediate reply (all notices
    were delivered through the messenger). `error` is set when the command was
    rejected or failed.
    """

    text: str | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
