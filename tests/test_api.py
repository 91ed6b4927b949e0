import asyncio

import httpx
import pytest

from feedsync.main import app
from tests.conftest import FakeDirectory, FakeFeedService, make_post

ALEX = {
    "id": "uid-alex",
    "email": "alex@example.com",
    "user_metadata": {"nickname": "alex"},
}


@pytest.fixture
def services():
    directory = FakeDirectory()
    feed_service = FakeFeedService([make_post("p2", 30), make_post("p1", 7200)])
    app.state.directory = directory
    app.state.feed_service = feed_service
    app.state.feed_session = None
    yield directory, feed_service
    app.state.feed_session = None


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_health():
    async with _client() as ac:
        r = await ac.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_feed_requires_session(services):
    async with _client() as ac:
        r = await ac.get("/feed")
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_session_lifecycle_and_feed(services):
    _, feed_service = services
    async with _client() as ac:
        r = await ac.post("/session", json=ALEX)
        assert r.status_code == 201
        assert r.json()["username"] == "alex"

        r = await ac.post("/session", json=ALEX)
        assert r.status_code == 409

        r = await ac.get("/session/identity")
        assert r.json()["nickname"] == "alex"

        r = await ac.get("/feed")
        body = r.json()
        assert body["state"] == "subscribed"
        assert [p["id"] for p in body["posts"]] == ["p2", "p1"]
        assert all(p["age"] for p in body["posts"])

        r = await ac.post("/posts", json={"content": "  hello  "})
        assert r.status_code == 202
        assert r.json()["content"] == "hello"

        feed_service.echo()
        r = await ac.get("/feed")
        assert r.json()["posts"][0]["content"] == "hello"

        r = await ac.delete("/session")
        assert r.status_code == 204
        assert feed_service.subscribers == {}

        r = await ac.get("/session/identity")
        assert r.status_code == 404


@pytest.mark.asyncio
async def test_post_validation_errors(services):
    async with _client() as ac:
        await ac.post("/session", json=ALEX)

        r = await ac.post("/posts", json={"content": "   "})
        assert r.status_code == 422
        assert r.json()["detail"]["reason"] == "empty"

        r = await ac.post("/posts", json={"content": "x" * 281})
        assert r.status_code == 422
        assert r.json()["detail"]["reason"] == "too_long"


@pytest.mark.asyncio
async def test_post_in_flight_conflict(services):
    _, feed_service = services
    feed_service.insert_gate = asyncio.Event()
    async with _client() as ac:
        await ac.post("/session", json=ALEX)

        first = asyncio.create_task(ac.post("/posts", json={"content": "one"}))
        while not app.state.feed_session.synchronizer.submitting:
            await asyncio.sleep(0)

        r = await ac.post("/posts", json={"content": "two"})
        assert r.status_code == 409

        feed_service.insert_gate.set()
        r = await first
        assert r.status_code == 202


@pytest.mark.asyncio
async def test_post_service_failure(services):
    _, feed_service = services
    feed_service.fail_insert = True
    async with _client() as ac:
        await ac.post("/session", json=ALEX)
        r = await ac.post("/posts", json={"content": "hello"})
    assert r.status_code == 502


@pytest.mark.asyncio
async def test_reload_failure_reports_bad_gateway(services):
    _, feed_service = services
    async with _client() as ac:
        await ac.post("/session", json=ALEX)
        feed_service.fail_list = True

        r = await ac.post("/feed/reload")
        assert r.status_code == 502

        r = await ac.get("/feed")
        body = r.json()
        assert "list_recent failed" in body["load_error"]
        assert len(body["posts"]) == 2


@pytest.mark.asyncio
async def test_start_session_subscribe_failure(services):
    _, feed_service = services
    feed_service.fail_subscribe = True
    async with _client() as ac:
        r = await ac.post("/session", json=ALEX)
    assert r.status_code == 502
    assert app.state.feed_session is None


@pytest.mark.asyncio
async def test_concurrent_session_starts_admit_only_one(services):
    _, feed_service = services
    feed_service.list_gate = asyncio.Event()
    async with _client() as ac:
        first = asyncio.create_task(ac.post("/session", json=ALEX))
        while feed_service.list_calls == 0:
            await asyncio.sleep(0)

        r = await ac.post("/session", json=ALEX)
        assert r.status_code == 409

        feed_service.list_gate.set()
        r = await first
        assert r.status_code == 201
        assert len(feed_service.subscribers) == 1

        r = await ac.delete("/session")
        assert r.status_code == 204
    assert feed_service.subscribers == {}


@pytest.mark.asyncio
async def test_session_ended_while_starting_releases_everything(services):
    _, feed_service = services
    feed_service.list_gate = asyncio.Event()
    async with _client() as ac:
        starting = asyncio.create_task(ac.post("/session", json=ALEX))
        while feed_service.list_calls == 0:
            await asyncio.sleep(0)

        r = await ac.delete("/session")
        assert r.status_code == 204

        feed_service.list_gate.set()
        r = await starting
        assert r.status_code == 409

        r = await ac.post("/session", json=ALEX)
        assert r.status_code == 201
    assert len(feed_service.subscribers) == 1
