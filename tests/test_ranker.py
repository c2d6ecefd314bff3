"""Tests for hybrid ranking (mediscore/services/ranker.py)."""

import asyncio
from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from mediscore.config import EngineSettings
from mediscore.errors import RetrievalUnavailable
from mediscore.models.knowledge import (
    Document,
    DocumentMetadata,
    RankingFactors,
    SearchBoost,
    SearchQuery,
    SearchWeights,
)
from mediscore.services.ranker import (
    Candidate,
    HybridRanker,
    keyword_score,
    merge_candidates,
    metadata_score,
    recency_score,
)
from mediscore.services.retrieval import CatalogueRetrievalClient, RetrievalClient

NOW = datetime(2026, 1, 1, tzinfo=UTC)


def _doc(doc_id, title="Doc", content="", **meta):
    return Document(id=doc_id, title=title, content=content, metadata=DocumentMetadata(**meta))


class StaticRetrievalClient(RetrievalClient):
    def __init__(self, semantic=(), keyword=()):
        self.hits = {"semantic": list(semantic), "keyword": list(keyword)}
        self.calls = []

    async def search(self, text, language, categories=(), limit=10, threshold=0.0, mode="semantic"):
        self.calls.append((text, mode, limit, threshold))
        return self.hits[mode][:limit]


class FailingRetrievalClient(RetrievalClient):
    async def search(self, text, language, categories=(), limit=10, threshold=0.0, mode="semantic"):
        raise RetrievalUnavailable("offline")


class HangingRetrievalClient(RetrievalClient):
    async def search(self, text, language, categories=(), limit=10, threshold=0.0, mode="semantic"):
        await asyncio.sleep(5)
        return []


def _ranker(client, **settings):
    return HybridRanker(client, settings=EngineSettings(**settings), clock=lambda: NOW)


class TestFinalScore:
    def test_clipped_to_unit_interval(self):
        ranker = _ranker(StaticRetrievalClient())
        query = SearchQuery(text="x")
        high = RankingFactors(semantic_score=1, keyword_score=1, metadata_score=1, recency_score=1, reliability_score=1)
        assert ranker.final_score(query, high) == 1.0
        assert ranker.final_score(query, RankingFactors()) == 0.0

    def test_default_weights(self):
        ranker = _ranker(StaticRetrievalClient())
        factors = RankingFactors(semantic_score=0.5, keyword_score=0.5, metadata_score=0.5)
        # 0.4*0.5 + 0.3*0.5 + 0.3*0.5 + 0.1*0.5 (category boost reuses metadata)
        assert ranker.final_score(SearchQuery(text="x"), factors) == pytest.approx(0.55)

    def test_monotone_in_semantic_score(self):
        ranker = _ranker(StaticRetrievalClient())
        query = SearchQuery(text="x")
        scores = [
            ranker.final_score(query, RankingFactors(semantic_score=s, metadata_score=0.3, reliability_score=0.5))
            for s in (0.0, 0.25, 0.5, 0.75, 1.0)
        ]
        assert scores == sorted(scores)
        assert scores[0] < scores[-1]

    def test_query_weights_override_settings(self):
        ranker = _ranker(StaticRetrievalClient())
        query = SearchQuery(text="x", weights=SearchWeights(semantic=1.0, keyword=0.0, metadata=0.0))
        factors = RankingFactors(semantic_score=0.3)
        assert ranker.final_score(query, factors) == pytest.approx(0.3)

    def test_negative_overrides_rejected(self):
        with pytest.raises(ValidationError):
            SearchWeights(semantic=-1.0)
        with pytest.raises(ValidationError):
            SearchBoost(recency=-0.5)

    def test_overrides_keep_score_monotone(self):
        ranker = _ranker(StaticRetrievalClient())
        query = SearchQuery(text="x", weights=SearchWeights(semantic=0.0, keyword=2.0), boost=SearchBoost(category=0.0))
        low = ranker.final_score(query, RankingFactors(semantic_score=0.0, keyword_score=0.2))
        high = ranker.final_score(query, RankingFactors(semantic_score=1.0, keyword_score=0.2))
        assert low <= high


class TestFactors:
    def test_keyword_score_capped(self):
        doc = _doc("d", title="fever", content="fever fever")
        assert keyword_score(["fever"], doc) == 1.0
        assert keyword_score([], doc) == 0.0

    def test_metadata_score(self):
        doc = Document(
            id="d", category="symptom", language="en",
            metadata=DocumentMetadata(tags=["Fever", "Chills"], reliability=1.0),
        )
        # category 0.3 + language 0.2 + half the tags 0.15 + reliability 0.2
        assert metadata_score(["fever"], doc, ["symptom"], "en") == pytest.approx(0.85)

    def test_recency_undated_and_fresh(self):
        assert recency_score(_doc("d"), NOW) == 0.5
        assert recency_score(_doc("d", published_date="2026-01-01T00:00:00+00:00"), NOW) == pytest.approx(1.0)
        older = recency_score(_doc("d", published_date="2025-01-01"), NOW)
        assert 0.3 < older < 0.4

    def test_bad_date_is_undated(self):
        assert recency_score(_doc("d", published_date="last spring"), NOW) == 0.5


class TestMerge:
    def test_shared_document_kept_once_with_semantic_score(self):
        a, b = _doc("a"), _doc("b")
        merged = merge_candidates([(a, 0.8)], [(a, 0.9), (b, 0.5)])
        assert [c.document.id for c in merged] == ["a", "b"]
        assert merged[0].semantic_score == 0.8
        assert merged[0].relevance == 0.9
        assert merged[1].semantic_score == 0.0


class TestRank:
    def test_ties_keep_retrieval_order(self):
        ranker = _ranker(StaticRetrievalClient())
        candidates = [Candidate(document=_doc(i), semantic_score=0.5) for i in ("first", "second", "third")]
        results = ranker.rank(SearchQuery(text="x"), "semantic", candidates)
        assert [r.document.id for r in results] == ["first", "second", "third"]

    def test_keyword_mode_ignores_semantic_score(self):
        ranker = _ranker(StaticRetrievalClient())
        results = ranker.rank(SearchQuery(text="x"), "keyword", [Candidate(document=_doc("a"), semantic_score=0.9)])
        assert results[0].ranking_factors.semantic_score == 0.0

    def test_threshold_and_limit(self):
        ranker = _ranker(StaticRetrievalClient())
        candidates = [Candidate(document=_doc(str(i)), semantic_score=i / 10) for i in range(10)]
        results = ranker.rank(SearchQuery(text="x", limit=3, threshold=0.3), "semantic", candidates)
        assert len(results) == 3
        assert all(r.ranking_factors.final_score >= 0.3 for r in results)
        assert results[0].document.id == "9"


class TestSearch:
    async def test_hybrid_uses_both_legs(self):
        a, b = _doc("a", title="fever"), _doc("b", title="cough", content="fever")
        client = StaticRetrievalClient(semantic=[(a, 0.9)], keyword=[(b, 0.6)])
        results, degraded = await _ranker(client).search_with_status(SearchQuery(text="fever", limit=5))
        assert degraded is False
        assert {r.document.id for r in results} == {"a", "b"}
        modes = {mode: (limit, threshold) for _, mode, limit, threshold in client.calls}
        assert modes["semantic"] == (10, 0.0)
        assert modes["keyword"] == (10, 0.3)

    async def test_semantic_mode_single_call(self):
        client = StaticRetrievalClient(semantic=[(_doc("a"), 0.9)])
        await _ranker(client).search(SearchQuery(text="fever", mode="semantic"))
        assert [mode for _, mode, _, _ in client.calls] == ["semantic"]

    async def test_unavailable_returns_empty_and_degraded(self):
        results, degraded = await _ranker(FailingRetrievalClient()).search_with_status(SearchQuery(text="fever"))
        assert results == []
        assert degraded is True

    async def test_timeout_is_degraded(self):
        ranker = _ranker(HangingRetrievalClient(), retrieval_timeout=0.01)
        results, degraded = await ranker.search_with_status(SearchQuery(text="fever", mode="semantic"))
        assert results == []
        assert degraded is True

    async def test_fallback_serves_catalogue(self, store):
        ranker = HybridRanker(FailingRetrievalClient(), fallback=CatalogueRetrievalClient(store))
        results, degraded = await ranker.search_with_status(SearchQuery(text="Influenza"))
        assert degraded is True
        assert results[0].document.id == "influenza"

    async def test_catalogue_search_ranks_exact_match_first(self, ranker):
        results = await ranker.search(SearchQuery(text="Warfarin", categories=["drug"]))
        assert results[0].document.id == "drug-warfarin"
        assert all(0.0 <= r.ranking_factors.final_score <= 1.0 for r in results)
