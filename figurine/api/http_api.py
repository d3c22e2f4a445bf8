"""
HTTP adapter for the figurine engine.

Architectural role:
- Expose a small JSON API that a chat platform bridge can call.
- Implement the messenger contract as per-requester outboxes.
- Delegate all orchestration to `figurine.core.engine.FigurineEngine`.

Endpoint responsibilities:
- `POST /v1/messages`: accept one inbound chat message, dispatch commands or
  the awaited image, return the synchronous reply.
- `GET /v1/outbox/{user_id}`: drain notices and result images queued for a
  requester by background polling.
- `GET /v1/health`: report engine state sizes.

Outbox bounds:
- Each requester box keeps the newest `OUTBOX_LIMIT` messages; at most
  `MAX_OUTBOXES` boxes are held and all are dropped at shutdown.

Input validation behavior:
- Missing/blank `user_id` -> HTTP 400.
- Engine not initialized (configuration error at startup) -> HTTP 503.

Lifecycle:
- The application lifespan builds the engine from the environment unless one
  is injected, and calls `shutdown()` on exit so no timers outlive the app.
"""

from dotenv import load_dotenv

load_dotenv()

import logging
from collections import OrderedDict, deque
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from figurine.api.commands import dispatch
from figurine.core.engine import FigurineEngine
from figurine.core.errors import ConfigError
from figurine.core.models import Destination, ImageAttachment, ImageContent, InboundMessage
from figurine.image.provider_config import GenerationConfig
from figurine.image.service import create_backend
from figurine.logging_utils import configure_logging


logger = logging.getLogger(__name__)

OUTBOX_LIMIT = 100
MAX_OUTBOXES = 1000


# ============================================================
# Outbound delivery
# ============================================================

class OutboxMessenger:
    """Queues outbound messages per requester until the bridge drains them.

    Each box keeps the newest `limit` messages. At most `max_boxes` requesters
    are held; sending to a new requester beyond that evicts the box that was
    written least recently.
    """

    def __init__(self, limit: int = OUTBOX_LIMIT, max_boxes: int = MAX_OUTBOXES):
        self._limit = limit
        self._max_boxes = max_boxes
        self._boxes: OrderedDict[str, deque] = OrderedDict()

    async def send(self, destination: Destination, content) -> None:
        if isinstance(content, ImageContent):
            item = {"type": "image", "url": content.url}
        else:
            item = {"type": "text", "content": str(content)}
        if destination.channel_id:
            item["channel_id"] = destination.channel_id
        self._box(destination.requester_id).append(item)

    def drain(self, requester_id: str) -> list[dict]:
        box = self._boxes.pop(requester_id, None)
        return list(box) if box else []

    def clear(self) -> int:
        count = len(self._boxes)
        self._boxes.clear()
        return count

    def __len__(self) -> int:
        return len(self._boxes)

    def _box(self, requester_id: str) -> deque:
        box = self._boxes.get(requester_id)
        if box is None:
            while len(self._boxes) >= self._max_boxes:
                evicted, dropped = self._boxes.popitem(last=False)
                logger.warning("Outbox for %s evicted with %d undelivered messages", evicted, len(dropped))
            box = self._boxes[requester_id] = deque(maxlen=self._limit)
        else:
            self._boxes.move_to_end(requester_id)
        return box


# ============================================================
# Request Schema
# ============================================================

class ImagePayload(BaseModel):
    url: str
    size_bytes: int | None = None


class MessageRequest(BaseModel):
    """One inbound chat message.

    Images may be given as flat URL lists (`image_urls`, `quoted_image_urls`,
    with `image_sizes` aligned to `image_urls`) or as `images` /
    `quoted_images` objects carrying their own size. Both forms are merged,
    flat lists first.
    """

    user_id: str
    channel_id: str | None = None
    text: str = ""
    image_urls: list[str] = Field(default_factory=list)
    quoted_image_urls: list[str] = Field(default_factory=list)
    image_sizes: list[int | None] = Field(default_factory=list)
    images: list[ImagePayload] = Field(default_factory=list)
    quoted_images: list[ImagePayload] = Field(default_factory=list)

    def to_inbound(self) -> InboundMessage:
        sizes = self.image_sizes + [None] * (len(self.image_urls) - len(self.image_sizes))
        images = [ImageAttachment(url=url, size_bytes=size) for url, size in zip(self.image_urls, sizes)]
        images += [ImageAttachment(url=i.url, size_bytes=i.size_bytes) for i in self.images]
        quoted = [ImageAttachment(url=url) for url in self.quoted_image_urls]
        quoted += [ImageAttachment(url=i.url, size_bytes=i.size_bytes) for i in self.quoted_images]
        return InboundMessage(
            destination=Destination(requester_id=self.user_id.strip(), channel_id=self.channel_id),
            text=self.text,
            images=tuple(images),
            quoted_images=tuple(quoted),
        )


# ============================================================
# Application factory
# ============================================================

def create_app(engine: FigurineEngine | None = None, outbox: OutboxMessenger | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        engine: Pre-built engine (tests, embedding hosts). When omitted the
            lifespan builds one from `GenerationConfig.from_env()`.
        outbox: Messenger shared with an injected engine.
    """
    if outbox is None:
        outbox = OutboxMessenger()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.engine = engine
        if app.state.engine is None:
            try:
                config = GenerationConfig.from_env()
            except ConfigError as e:
                configure_logging(True)
                logger.error("Configuration error, engine disabled: %s", e)
            else:
                configure_logging(config.enable_log)
                app.state.engine = FigurineEngine(config, create_backend(config), outbox)
        try:
            yield
        finally:
            if app.state.engine is not None:
                app.state.engine.shutdown()
            outbox.clear()

    app = FastAPI(lifespan=lifespan)
    app.state.engine = engine
    app.state.outbox = outbox

    @app.get("/v1/health")
    def health():
        current = app.state.engine
        if current is None:
            return JSONResponse(status_code=503, content={"status": "unavailable"})
        return {
            "status": "ok",
            "active_jobs": len(current.jobs),
            "waiting": len(current.waits),
            "busy": len(current.gate),
        }

    @app.post("/v1/messages")
    async def post_message(request: MessageRequest):
        """
        Accept one inbound chat message.

        Response formatting:
        - `{"reply": <text or null>}`; asynchronous notices go to the outbox.
        """
        current = app.state.engine
        if current is None:
            return JSONResponse(status_code=503, content={"error": "Engine not configured"})

        if not request.user_id.strip():
            return JSONResponse(status_code=400, content={"error": "No user_id provided"})

        reply = await dispatch(current, request.to_inbound())
        return {"reply": reply}

    @app.get("/v1/outbox/{user_id}")
    def get_outbox(user_id: str):
        return {"messages": app.state.outbox.drain(user_id)}

    return app


app = create_app()
