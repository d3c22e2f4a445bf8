"""Tests for the FastAPI adapter."""

import pytest
from fastapi.testclient import TestClient

from figurine.api.http_api import OutboxMessenger, create_app
from figurine.core.engine import GENERATING_FIGURINE, FigurineEngine
from figurine.core.models import Destination, ImageContent, SubmitResult


@pytest.fixture
def outbox():
    return OutboxMessenger()


@pytest.fixture
def client(config, backend, scheduler, outbox):
    engine = FigurineEngine(config, backend, outbox, scheduler)
    return TestClient(create_app(engine=engine, outbox=outbox))


def test_health_reports_state(client):
    response = client.get("/v1/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "active_jobs": 0, "waiting": 0, "busy": 0}


def test_command_without_image_returns_wait_prompt(client):
    response = client.post("/v1/messages", json={"user_id": "alice", "text": "/figurine --style 2"})

    assert response.status_code == 200
    assert "style 2" in response.json()["reply"]
    assert client.get("/v1/health").json()["waiting"] == 1


def test_image_submission_notices_go_to_outbox(client, backend):
    backend.submit_result = SubmitResult(job_id="abc", queue_position=3)

    response = client.post("/v1/messages", json={
        "user_id": "alice",
        "channel_id": "room-1",
        "text": "/figurine",
        "images": [{"url": "https://a/x.png", "size_bytes": 1024}],
    })

    assert response.json() == {"reply": None}
    messages = client.get("/v1/outbox/alice").json()["messages"]
    assert messages[0] == {"type": "text", "content": GENERATING_FIGURINE, "channel_id": "room-1"}
    assert "3" in messages[1]["content"]
    assert client.get("/v1/outbox/alice").json()["messages"] == []


def test_blank_user_rejected(client):
    response = client.post("/v1/messages", json={"user_id": "  ", "text": "/figurine"})

    assert response.status_code == 400


def test_missing_engine_is_unavailable(outbox):
    app = create_app(outbox=outbox)
    client = TestClient(app)

    assert client.get("/v1/health").status_code == 503
    assert client.post("/v1/messages", json={"user_id": "a"}).status_code == 503


@pytest.mark.asyncio
async def test_outbox_renders_images_and_limits_size():
    outbox = OutboxMessenger(limit=2)
    dest = Destination("alice")

    await outbox.send(dest, "one")
    await outbox.send(dest, ImageContent("https://cdn/1.png"))
    await outbox.send(dest, "three")

    assert outbox.drain("alice") == [
        {"type": "image", "url": "https://cdn/1.png"},
        {"type": "text", "content": "three"},
    ]


def test_flat_image_url_fields_are_accepted(client, backend):
    response = client.post("/v1/messages", json={
        "user_id": "alice",
        "text": "/figurine --style 3",
        "image_urls": ["https://a/x.png"],
        "image_sizes": [2048],
    })

    assert response.status_code == 200
    assert response.json() == {"reply": None}
    assert backend.submissions[0]["image_urls"] == ["https://a/x.png"]


def test_quoted_image_urls_feed_the_command(client, backend):
    response = client.post("/v1/messages", json={
        "user_id": "alice",
        "text": "/figurine",
        "quoted_image_urls": ["https://a/quoted.png"],
    })

    assert response.json() == {"reply": None}
    assert backend.submissions[0]["image_urls"] == ["https://a/quoted.png"]


def test_reported_image_size_is_enforced(client, backend):
    response = client.post("/v1/messages", json={
        "user_id": "alice",
        "text": "/figurine",
        "image_urls": ["https://a/huge.png"],
        "image_sizes": [11 * 1024 * 1024],
    })

    assert "10 MB" in response.json()["reply"]
    assert backend.submissions == []


@pytest.mark.asyncio
async def test_outbox_evicts_least_recently_written_requester():
    outbox = OutboxMessenger(max_boxes=2)

    await outbox.send(Destination("alice"), "a1")
    await outbox.send(Destination("bob"), "b1")
    await outbox.send(Destination("alice"), "a2")
    await outbox.send(Destination("carol"), "c1")

    assert len(outbox) == 2
    assert outbox.drain("bob") == []
    assert [m["content"] for m in outbox.drain("alice")] == ["a1", "a2"]


def test_outboxes_dropped_at_shutdown(config, backend, scheduler, outbox):
    engine = FigurineEngine(config, backend, outbox, scheduler)

    with TestClient(create_app(engine=engine, outbox=outbox)) as client:
        client.post("/v1/messages", json={"user_id": "alice", "text": "/figurine", "image_urls": ["https://a/x.png"]})
        assert len(outbox) == 1

    assert len(outbox) == 0
