"""Tests for retrieval clients (mediscore/services/retrieval.py)."""

import json

import httpx
import pytest

from mediscore.errors import RetrievalUnavailable
from mediscore.models.interaction import Drug
from mediscore.services.retrieval import (
    CatalogueRetrievalClient,
    HttpRetrievalClient,
    build_retrieval_client,
    catalogue_documents,
)


def _client(handler) -> HttpRetrievalClient:
    return HttpRetrievalClient(base_url="http://search.test", api_key="k", transport=httpx.MockTransport(handler))


class TestHttpRetrievalClient:
    async def test_parses_hits(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json={"results": [
                {"document": {"id": "d1", "title": "Influenza", "category": "disease"}, "score": 0.9},
                {"document": {"id": "d2", "title": "Cold", "category": "disease"}, "score": 0.2},
            ]})

        client = _client(handler)
        hits = await client.search("flu", "en", ["disease"], limit=5, threshold=0.5, mode="semantic")
        await client.close()

        assert [(d.id, s) for d, s in hits] == [("d1", 0.9)]
        assert seen["body"]["query"] == "flu"
        assert seen["body"]["categories"] == ["disease"]
        assert seen["auth"] == "Bearer k"

    async def test_malformed_hits_are_skipped(self):
        def handler(request):
            return httpx.Response(200, json={"results": [
                {"document": {"title": "no id"}, "score": 0.9},
                {"document": {"id": "ok"}, "score": "high"},
                {"document": {"id": "good"}, "score": 1.7},
            ]})

        hits = await _client(handler).search("x", "en")
        assert [(d.id, s) for d, s in hits] == [("good", 1.0)]

    async def test_server_error_raises(self):
        client = _client(lambda request: httpx.Response(503))
        with pytest.raises(RetrievalUnavailable):
            await client.search("x", "en")

    async def test_connection_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(RetrievalUnavailable):
            await _client(handler).search("x", "en")

    async def test_invalid_json_raises(self):
        client = _client(lambda request: httpx.Response(200, content=b"<html>"))
        with pytest.raises(RetrievalUnavailable):
            await client.search("x", "en")


class TestCatalogueDocuments:
    def test_every_kind_is_rendered(self, store):
        categories = {d.category for d in catalogue_documents(store.current)}
        assert categories == {"disease", "symptom", "drug"}

    def test_interaction_documents_carry_severity_tag(self, store):
        doc = next(d for d in catalogue_documents(store.current) if d.id == "interaction-aspirin-warfarin")
        assert "severity:major" in doc.metadata.tags

    def test_symptom_documents_list_associated(self, store):
        doc = next(d for d in catalogue_documents(store.current) if d.id == "symptom-fever")
        assert "Commonly associated with" in doc.content


class TestCatalogueRetrievalClient:
    async def test_exact_title_scores_one(self, store):
        hits = await CatalogueRetrievalClient(store).search("Fever", "en", ["symptom"], limit=1)
        doc, score = hits[0]
        assert doc.title == "Fever"
        assert score == 1.0

    async def test_category_filter(self, store):
        hits = await CatalogueRetrievalClient(store).search("Aspirin", "en", ["disease"])
        assert all(d.category == "disease" for d, _ in hits)

    async def test_threshold_and_order(self, store):
        hits = await CatalogueRetrievalClient(store).search("chest pain", "en", threshold=0.3)
        scores = [s for _, s in hits]
        assert scores == sorted(scores, reverse=True)
        assert all(s >= 0.3 for s in scores)

    async def test_keyword_mode_matches_body(self, store):
        hits = await CatalogueRetrievalClient(store).search("INR", "en", ["drug"], mode="keyword")
        assert any(d.id == "interaction-aspirin-warfarin" for d, _ in hits)

    async def test_keyword_scores_scaled_to_best_match(self, store):
        hits = await CatalogueRetrievalClient(store).search("INR bleeding", "en", ["drug"], mode="keyword")
        scores = [s for _, s in hits]
        assert scores[0] == 1.0
        assert scores == sorted(scores, reverse=True)
        assert all(0.0 < s <= 1.0 for s in scores)

    async def test_keyword_mode_unknown_term(self, store):
        assert await CatalogueRetrievalClient(store).search("zorblax", "en", mode="keyword") == []

    async def test_index_follows_catalogue_version(self, store):
        client = CatalogueRetrievalClient(store)
        assert await client.search("Zorblax", "en", ["drug"]) == []
        store.add_drug(Drug(id="zorblax", name="Zorblax"))
        hits = await client.search("Zorblax", "en", ["drug"])
        assert hits[0][0].title == "Zorblax"

    async def test_empty_query(self, store):
        assert await CatalogueRetrievalClient(store).search("the and", "en") == []

    def test_builder_defaults_to_catalogue(self, store):
        assert isinstance(build_retrieval_client(store, ""), CatalogueRetrievalClient)
        assert isinstance(build_retrieval_client(store, "http://search.test"), HttpRetrievalClient)
