"""Tests for the HTTP API over the flashcard store."""

import json
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from backend.database import get_session
from backend.llm_client import LLMClient, LLMReply, get_llm_client
from backend.main import app
from backend.persistence import SnapshotWriter, load_store
from backend.srs.store import FlashcardStore


@pytest_asyncio.fixture
async def api(session_factory):
    """An HTTP client bound to a fresh store and a throwaway database."""
    store = FlashcardStore()
    writer = SnapshotWriter(store, "api-test")
    app.state.store = store
    app.state.writer = writer

    llm = MagicMock(spec=LLMClient)
    llm.complete.return_value = LLMReply(
        text=json.dumps([{"front": "Generated?", "back": "Yes", "type": "fact", "tags": ["gen"]}])
    )

    async def override_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_llm_client] = lambda: llm

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client, store
    app.dependency_overrides.clear()
    writer.close()


async def _create(client: AsyncClient, front: str, tags: list[str] | None = None) -> dict:
    response = await client.post(
        "/api/flashcards", json={"front": front, "back": f"{front}!", "tags": tags or []}
    )
    assert response.status_code == 201
    return response.json()


class TestFlashcardRoutes:
    @pytest.mark.asyncio
    async def test_create_and_get(self, api) -> None:
        client, _ = api
        card = await _create(client, "Two pointers?", ["arrays"])
        assert card["review_count"] == 0
        assert card["ease_factor"] == 2.5
        assert card["type"] == "concept"

        response = await client.get(f"/api/flashcards/{card['id']}")
        assert response.status_code == 200
        assert response.json()["front"] == "Two pointers?"

    @pytest.mark.asyncio
    async def test_create_persists_snapshot(self, api, session_factory) -> None:
        client, _ = api
        await _create(client, "Persist me")
        async with session_factory() as db:
            loaded = await load_store(db, "api-test")
        assert [c.front for c in loaded.flashcards] == ["Persist me"]

    @pytest.mark.asyncio
    async def test_create_rejects_missing_back(self, api) -> None:
        client, _ = api
        response = await client.post("/api/flashcards", json={"front": "only front"})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_batch_and_tag_filters(self, api) -> None:
        client, _ = api
        response = await client.post(
            "/api/flashcards/batch",
            json=[
                {"front": "a", "back": "1", "tags": ["graphs", "dp"]},
                {"front": "b", "back": "2", "tags": ["graphs"]},
                {"front": "c", "back": "3", "tags": ["dp"]},
            ],
        )
        assert response.status_code == 201
        assert [c["front"] for c in response.json()] == ["a", "b", "c"]

        all_match = await client.get("/api/flashcards", params={"tags": ["graphs", "dp"]})
        assert [c["front"] for c in all_match.json()] == ["a"]

        any_match = await client.get(
            "/api/flashcards", params={"tags": ["graphs", "dp"], "match": "any"}
        )
        assert [c["front"] for c in any_match.json()] == ["a", "b", "c"]

        tags = await client.get("/api/flashcards/tags")
        assert tags.json() == ["dp", "graphs"]

    @pytest.mark.asyncio
    async def test_patch_and_delete(self, api) -> None:
        client, _ = api
        card = await _create(client, "Old")
        response = await client.patch(
            f"/api/flashcards/{card['id']}", json={"front": "New", "type": "code"}
        )
        assert response.status_code == 200
        assert response.json()["front"] == "New"
        assert response.json()["type"] == "code"

        missing = await client.patch("/api/flashcards/nope", json={"front": "x"})
        assert missing.status_code == 404

        deleted = await client.delete(f"/api/flashcards/{card['id']}")
        assert deleted.json() == {"deleted": True}
        gone = await client.get(f"/api/flashcards/{card['id']}")
        assert gone.status_code == 404

    @pytest.mark.asyncio
    async def test_export_and_import(self, api) -> None:
        client, store = api
        await _create(client, "Exported")
        exported = (await client.get("/api/flashcards/export")).json()

        response = await client.post(
            "/api/flashcards/import", json={"data": exported, "mode": "merge"}
        )
        assert response.status_code == 200
        assert response.json()["imported"] == 1
        assert len(store) == 2

        bad = await client.post("/api/flashcards/import", json={"data": {"version": "1.0.0"}})
        assert bad.status_code == 400

        exported["flashcards"].append({"front": "bad", "back": "tags", "tags": 7})
        partial = await client.post("/api/flashcards/import", json={"data": exported})
        assert partial.status_code == 200
        assert partial.json()["imported"] == 1
        assert partial.json()["errors"][0].startswith("Card 1:")

    @pytest.mark.asyncio
    async def test_generate(self, api) -> None:
        client, store = api
        response = await client.post(
            "/api/flashcards/generate",
            json={"content": "Some article text", "tags": ["article"], "source_platform": "general"},
        )
        assert response.status_code == 201
        cards = response.json()
        assert cards[0]["front"] == "Generated?"
        assert cards[0]["tags"] == ["gen", "article"]
        assert cards[0]["source_platform"] == "general"
        assert len(store) == 1


class TestSessionRoutes:
    @pytest.mark.asyncio
    async def test_full_session(self, api) -> None:
        client, _ = api
        first = await _create(client, "first")
        second = await _create(client, "second")

        started = await client.post("/api/session/start", json={})
        assert started.status_code == 200
        assert started.json()["total_cards"] == 2

        current = (await client.get("/api/session/current")).json()
        assert current["card_id"] == second["id"]  # newest first

        reviewed = await client.post(
            "/api/session/review", json={"quality": 4, "response_time_ms": 800}
        )
        assert reviewed.status_code == 200
        assert reviewed.json()["interval_days"] == 1
        assert (await client.get("/api/session/current")).json()["index"] == 0

        moved = (await client.post("/api/session/next")).json()
        assert moved["card_id"] == first["id"]
        clamped = (await client.post("/api/session/next")).json()
        assert clamped["index"] == 1
        back = (await client.post("/api/session/previous")).json()
        assert back["index"] == 0

        ended = await client.post("/api/session/end")
        assert ended.status_code == 200
        body = ended.json()
        assert body["completed_at"] is not None
        assert body["flashcards_reviewed"] == 1
        assert body["correct_answers"] == 1
        assert body["average_response_time_ms"] == 800

        assert (await client.get("/api/session")).status_code == 404

    @pytest.mark.asyncio
    async def test_start_by_tags(self, api) -> None:
        client, _ = api
        tagged = await _create(client, "tagged", ["trees"])
        await _create(client, "other", ["heaps"])
        started = await client.post("/api/session/start", json={"tags": ["trees"]})
        assert started.json()["total_cards"] == 1
        current = (await client.get("/api/session/current")).json()
        assert current["card_id"] == tagged["id"]

    @pytest.mark.asyncio
    async def test_review_rejects_out_of_range_quality(self, api) -> None:
        client, _ = api
        await _create(client, "q")
        await client.post("/api/session/start", json={})
        response = await client.post("/api/session/review", json={"quality": 6})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_deleted_card_in_session(self, api) -> None:
        client, _ = api
        card = await _create(client, "doomed")
        await client.post("/api/session/start", json={"card_ids": [card["id"]]})
        await client.delete(f"/api/flashcards/{card['id']}")

        current = (await client.get("/api/session/current")).json()
        assert current["card_id"] == card["id"]
        assert current["card"] is None
        response = await client.post("/api/session/review", json={"quality": 3})
        assert response.status_code == 410

    @pytest.mark.asyncio
    async def test_no_session(self, api) -> None:
        client, _ = api
        assert (await client.get("/api/session/current")).status_code == 404
        assert (await client.post("/api/session/end")).status_code == 404


class TestStatsRoutes:
    @pytest.mark.asyncio
    async def test_stats(self, api) -> None:
        client, _ = api
        await _create(client, "one")
        await _create(client, "two")
        stats = (await client.get("/api/stats")).json()
        assert stats["total"] == 2
        assert stats["due_today"] == 2
        assert stats["mastered_cards"] == 0
        assert stats["average_ease_factor"] == 2.5

        due = (await client.get("/api/stats/due")).json()
        assert len(due) == 2
