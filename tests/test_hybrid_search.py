"""Tests for HybridStore: search policy, result labels and merge order."""

import logging
from unittest.mock import Mock

import numpy as np
import pytest

from simple_memory.storage import HybridStore, cosine_similarity, embedding_text
from simple_memory.types import SearchLabel, SearchMode


async def _save_all(hybrid: HybridStore, worker, *items: dict) -> list[int]:
    ids = []
    for item in items:
        record = await hybrid.save(**item)
        ids.append(record.id)
    assert worker.drain(timeout=5)
    return ids


class TestCosineSimilarity:
    def test_identical(self):
        assert cosine_similarity([1.0, 2.0], [1.0, 2.0]) == pytest.approx(1.0)

    def test_orthogonal(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 3.0]) == pytest.approx(0.0)

    def test_opposite(self):
        assert cosine_similarity([1.0, 1.0], [-2.0, -2.0]) == pytest.approx(-1.0)

    def test_zero_vector(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0

    def test_accepts_numpy(self):
        a = np.array([1.0, 0.0], dtype=np.float32)
        assert cosine_similarity(a, [2.0, 0.0]) == pytest.approx(1.0)


def test_embedding_text_joins_title_and_content():
    assert embedding_text("Title", "Body") == "Title\nBody"
    assert embedding_text(None, "Body") == "\nBody"


class TestWrites:
    async def test_save_schedules_embedding(self, hybrid, worker, store, fake_provider):
        record = await hybrid.save("auth token notes", title="Auth")
        assert worker.drain(timeout=5)

        assert fake_provider.calls == ["Auth\nauth token notes"]
        assert [i for i, _ in store.iter_embeddings()] == [record.id]

    async def test_update_reembeds_on_text_change(self, hybrid, worker, fake_provider):
        record = await hybrid.save("first")
        worker.drain(timeout=5)

        updated, reembedding = await hybrid.update(record.id, content="second")
        worker.drain(timeout=5)

        assert reembedding is True
        assert updated.content == "second"
        assert fake_provider.calls[-1] == "first\nsecond"

    async def test_update_without_text_change_skips_embedding(self, hybrid, worker, fake_provider):
        record = await hybrid.save("text")
        worker.drain(timeout=5)
        calls = len(fake_provider.calls)

        _, reembedding = await hybrid.update(record.id, tags=["x"], project="p")

        assert reembedding is False
        assert len(fake_provider.calls) == calls

    async def test_keyword_only_store_never_embeds(self, keyword_hybrid, store):
        record = await keyword_hybrid.save("auth")
        _, reembedding = await keyword_hybrid.update(record.id, content="token")
        assert reembedding is False
        assert store.iter_embeddings() == []

    async def test_reembed_all(self, hybrid, worker, store):
        await _save_all(hybrid, worker, {"content": "auth"}, {"content": "dog"})
        for memory_id, _ in store.iter_embeddings():
            store.delete_embedding(memory_id)

        assert hybrid.reembed_all() == 2
        assert worker.drain(timeout=5)
        assert len(store.iter_embeddings()) == 2


class TestSearchPolicy:
    async def test_no_query_lists_recent(self, hybrid, worker):
        ids = await _save_all(hybrid, worker, {"content": "one"}, {"content": "two"})

        for query in (None, "", "   "):
            outcome = await hybrid.search(query)
            assert outcome.label == SearchLabel.RECENT
            assert outcome.query is None
            assert [r.id for r in outcome.records] == ids[::-1]

    async def test_recent_respects_filters(self, hybrid, worker):
        ids = await _save_all(
            hybrid,
            worker,
            {"content": "a", "project": "api", "tags": ["x"]},
            {"content": "b", "project": "api"},
            {"content": "c", "project": "web", "tags": ["x"]},
        )
        outcome = await hybrid.search(project="api", tag="X")
        assert [r.id for r in outcome.records] == [ids[0]]

    async def test_enough_keyword_hits_skip_vector(self, hybrid, worker, fake_provider):
        await _save_all(
            hybrid,
            worker,
            {"content": "deploy step one"},
            {"content": "deploy step two"},
            {"content": "deploy step three"},
            {"content": "server database"},
        )
        fake_provider.calls.clear()

        outcome = await hybrid.search("deploy")

        assert outcome.label == SearchLabel.KEYWORD
        assert len(outcome.records) == 3
        assert fake_provider.calls == []

    async def test_no_keyword_hits_fall_back_to_vector(self, hybrid, worker):
        auth_id, pet_id = await _save_all(
            hybrid,
            worker,
            {"content": "login with auth token"},
            {"content": "cat and dog"},
        )

        outcome = await hybrid.search("password auth")

        assert outcome.label == SearchLabel.VECTOR
        assert [r.id for r in outcome.records] == [auth_id, pet_id]
        assert outcome.scores[auth_id] > outcome.scores[pet_id]
        assert outcome.scores[pet_id] == pytest.approx(0.0)

    async def test_few_keyword_hits_merge_with_vector(self, hybrid, worker):
        exact, related, unrelated = await _save_all(
            hybrid,
            worker,
            {"content": "rotate the auth token"},
            {"content": "login password token"},
            {"content": "dog"},
        )

        outcome = await hybrid.search("rotate token")

        assert outcome.label == SearchLabel.KEYWORD_VECTOR
        assert [r.id for r in outcome.records] == [exact, related, unrelated]
        # Keyword hits are not duplicated by the vector pass
        assert len({r.id for r in outcome.records}) == 3

    async def test_merge_truncates_to_limit(self, hybrid, worker):
        exact, related, _ = await _save_all(
            hybrid,
            worker,
            {"content": "rotate the auth token"},
            {"content": "login password token"},
            {"content": "dog"},
        )
        outcome = await hybrid.search("rotate token", limit=2)
        assert [r.id for r in outcome.records] == [exact, related]

    async def test_keyword_mode_never_runs_vector(self, hybrid, worker, fake_provider):
        await _save_all(hybrid, worker, {"content": "auth token"})
        fake_provider.calls.clear()

        for mode in ("keyword", "fts", SearchMode.KEYWORD):
            outcome = await hybrid.search("password", mode=mode)
            assert outcome.label == SearchLabel.KEYWORD
            assert outcome.records == []
        assert fake_provider.calls == []

    async def test_vector_mode_skips_keyword(self, hybrid, worker):
        auth_id, _ = await _save_all(
            hybrid, worker, {"content": "auth token"}, {"content": "cat"}
        )
        outcome = await hybrid.search("auth", mode="VECTOR")
        assert outcome.label == SearchLabel.VECTOR
        assert outcome.records[0].id == auth_id

    async def test_mode_is_case_insensitive_and_unknown_means_auto(self, hybrid, worker):
        await _save_all(hybrid, worker, {"content": "auth token"}, {"content": "cat"})
        outcome = await hybrid.search("password auth", mode="bogus")
        assert outcome.label == SearchLabel.VECTOR

    async def test_without_provider_stays_keyword(self, keyword_hybrid):
        await keyword_hybrid.save("auth token")

        outcome = await keyword_hybrid.search("password")
        assert outcome.label == SearchLabel.KEYWORD
        assert outcome.records == []

        outcome = await keyword_hybrid.search("auth", mode="vector")
        assert outcome.label == SearchLabel.KEYWORD
        assert outcome.records == []

    async def test_provider_failure_degrades_to_keyword(self, hybrid, worker, fake_provider):
        await _save_all(hybrid, worker, {"content": "auth token"})
        fake_provider.fail = True

        outcome = await hybrid.search("password")

        assert outcome.label == SearchLabel.KEYWORD
        assert outcome.records == []

    async def test_malformed_provider_response_degrades_to_keyword(
        self, hybrid, worker, fake_provider
    ):
        (memory_id,) = await _save_all(hybrid, worker, {"content": "auth token"})
        fake_provider.embed = Mock(side_effect=AttributeError("no attribute 'get'"))

        few = await hybrid.search("token")
        none = await hybrid.search("password")

        assert few.label == SearchLabel.KEYWORD
        assert [r.id for r in few.records] == [memory_id]
        assert none.label == SearchLabel.KEYWORD
        assert none.records == []

    async def test_vector_pool_filtered_by_project_only(self, hybrid, worker):
        api_tagged, api_plain, web = await _save_all(
            hybrid,
            worker,
            {"content": "auth token", "project": "api", "tags": ["sec"]},
            {"content": "auth login", "project": "api"},
            {"content": "auth password", "project": "web"},
        )

        outcome = await hybrid.search("token login password", project="api", tag="sec")

        # Vector candidates ignore tag and type; project still applies
        ids = {r.id for r in outcome.records}
        assert web not in ids
        assert ids == {api_tagged, api_plain}

    async def test_limit_below_one_uses_default(self, hybrid, worker):
        await _save_all(hybrid, worker, *({"content": f"note {i}"} for i in range(25)))
        assert len((await hybrid.search(limit=0)).records) == 20
        assert len((await hybrid.search(limit=-5)).records) == 20
        assert len((await hybrid.search(limit=3)).records) == 3


class TestVectorSearch:
    def test_mismatched_dimensions_are_skipped(self, hybrid, store, caplog):
        matching = store.create("auth")
        legacy = store.create("auth legacy")
        store.put_embedding(matching, [1.0] + [0.0] * 8)
        store.put_embedding(legacy, [1.0, 0.0, 0.0])

        with caplog.at_level(logging.WARNING):
            hits = hybrid.vector_search("auth", project=None, limit=10)

        assert [h.id for h in hits] == [matching]
        assert hits[0].score == pytest.approx(1.0)
        assert "reembed" in caplog.text

    def test_ranks_by_similarity(self, hybrid, store):
        close = store.create("a")
        far = store.create("b")
        store.put_embedding(far, [0.0] * 8 + [1.0])
        store.put_embedding(close, [1.0, 1.0] + [0.0] * 7)

        hits = hybrid.vector_search("auth token", project=None, limit=10)

        assert [h.id for h in hits] == [close, far]
        assert hits[0].score == pytest.approx(1.0)

    def test_zero_query_vector_scores_zero(self, hybrid, store):
        memory_id = store.create("x")
        store.put_embedding(memory_id, [1.0] * 9)
        [hit] = hybrid.vector_search("nothing in vocabulary", project=None, limit=5)
        assert hit.score == 0.0

    def test_no_vectors(self, hybrid):
        assert hybrid.vector_search("auth", project=None, limit=5) == []
