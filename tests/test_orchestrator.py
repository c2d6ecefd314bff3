"""Tests for request caching and boundary checks (mediscore/services/orchestrator.py)."""

import pytest

from mediscore.errors import CacheWriteFailure, InvalidRequest, RetrievalUnavailable
from mediscore.models.diagnosis import PatientProfile, Symptom
from mediscore.models.interaction import DrugAllergy, InteractionCheckRequest, InteractionPatientProfile
from mediscore.models.knowledge import SearchQuery
from mediscore.services.cache import CacheGateway, LocalResultCache, MemoryCacheGateway, make_cache_key
from mediscore.services.orchestrator import (
    RequestCacheOrchestrator,
    build_orchestrator,
    diagnosis_payload,
    get_orchestrator,
    interaction_payload,
    set_orchestrator,
)
from mediscore.services.ranker import HybridRanker
from mediscore.services.retrieval import CatalogueRetrievalClient


class BrokenCacheGateway(CacheGateway):
    async def get(self, key):
        raise RetrievalUnavailable("cache offline")

    async def set_with_expiry(self, key, value, ttl_seconds):
        raise CacheWriteFailure("cache offline")


class TestCanonicalPayloads:
    def test_drug_order_and_case_do_not_change_key(self):
        a = interaction_payload(InteractionCheckRequest(drugs=["Aspirin", "Warfarin"]))
        b = interaction_payload(InteractionCheckRequest(drugs=["warfarin", " ASPIRIN"]))
        assert make_cache_key("interactions", a) == make_cache_key("interactions", b)

    def test_profile_changes_key(self):
        plain = interaction_payload(InteractionCheckRequest(drugs=["Aspirin"]))
        allergic = interaction_payload(InteractionCheckRequest(
            drugs=["Aspirin"],
            patient_profile=InteractionPatientProfile(allergies=[DrugAllergy(drug_name="Aspirin")]),
        ))
        assert make_cache_key("interactions", plain) != make_cache_key("interactions", allergic)

    def test_flags_change_key(self):
        with_food = interaction_payload(InteractionCheckRequest(drugs=["Aspirin"]))
        without_food = interaction_payload(InteractionCheckRequest(drugs=["Aspirin"], include_food=False))
        assert with_food != without_food

    def test_symptom_order_does_not_change_key(self):
        a = diagnosis_payload([Symptom(name="Fever"), Symptom(name="Headache")], None, "en")
        b = diagnosis_payload([Symptom(name="headache"), Symptom(name="fever")], None, "en")
        assert a == b

    def test_language_and_age_change_key(self):
        symptoms = [Symptom(name="Fever")]
        assert diagnosis_payload(symptoms, None, "en") != diagnosis_payload(symptoms, None, "bn")
        assert diagnosis_payload(symptoms, PatientProfile(age=20), "en") != diagnosis_payload(
            symptoms, PatientProfile(age=70), "en",
        )


class TestBoundary:
    async def test_empty_drug_list_rejected(self, orchestrator):
        with pytest.raises(InvalidRequest):
            await orchestrator.check_interactions(InteractionCheckRequest(drugs=[]))

    async def test_blank_drug_names_rejected(self, orchestrator):
        with pytest.raises(InvalidRequest):
            await orchestrator.check_interactions(InteractionCheckRequest(drugs=["  ", ""]))

    async def test_blank_search_rejected(self, orchestrator):
        with pytest.raises(InvalidRequest):
            await orchestrator.hybrid_search(SearchQuery(text="   "))

    async def test_blank_suggestion_is_empty(self, orchestrator):
        assert await orchestrator.get_search_suggestions("  ") == []

    async def test_no_symptoms_is_allowed(self, orchestrator):
        result = await orchestrator.analyze_symptoms([])
        assert result.differential_diagnosis.primary == []


class TestCaching:
    async def test_repeated_check_skips_retrieval(self, orchestrator, retrieval):
        request = InteractionCheckRequest(drugs=["Aspirin", "Zorblax"])
        first = await orchestrator.check_interactions(request)
        calls = len(retrieval.calls)
        assert calls > 0

        second = await orchestrator.check_interactions(request)
        assert len(retrieval.calls) == calls
        assert second == first

    async def test_reordered_request_hits_cache(self, orchestrator, retrieval):
        await orchestrator.check_interactions(InteractionCheckRequest(drugs=["Aspirin", "Zorblax"]))
        calls = len(retrieval.calls)
        await orchestrator.check_interactions(InteractionCheckRequest(drugs=["zorblax", "ASPIRIN"]))
        assert len(retrieval.calls) == calls

    async def test_gateway_serves_after_local_eviction(self, orchestrator, retrieval, memory_cache):
        query = SearchQuery(text="Influenza")
        first = await orchestrator.hybrid_search(query)
        calls = len(retrieval.calls)
        orchestrator.local_cache.clear()

        second = await orchestrator.hybrid_search(query)
        assert len(retrieval.calls) == calls
        assert [r.document.id for r in second] == [r.document.id for r in first]
        assert len(orchestrator.local_cache) == 1

    async def test_diagnosis_is_cached(self, orchestrator, retrieval):
        symptoms = [Symptom(name="Fever"), Symptom(name="Headache")]
        first = await orchestrator.analyze_symptoms(symptoms)
        calls = len(retrieval.calls)
        second = await orchestrator.analyze_symptoms(list(reversed(symptoms)))
        assert len(retrieval.calls) == calls
        assert second.diagnostic_confidence == first.diagnostic_confidence

    async def test_suggestions_are_cached(self, orchestrator, memory_cache):
        results = await orchestrator.get_search_suggestions("fev")
        assert results[0].text == "fever"
        assert len(memory_cache) == 1

    async def test_degraded_results_are_not_cached(self, orchestrator, retrieval, memory_cache):
        retrieval.fail = True
        query = SearchQuery(text="Influenza")
        response = await orchestrator.search(query)
        assert response.degraded is True
        assert response.results == []
        calls = len(retrieval.calls)

        await orchestrator.search(query)
        assert len(retrieval.calls) > calls
        assert len(memory_cache) == 0

    async def test_broken_cache_still_answers(self, store, diagnosis_engine, interaction_engine, retrieval):
        orchestrator = RequestCacheOrchestrator(
            ranker=HybridRanker(retrieval),
            diagnosis=diagnosis_engine,
            interactions=interaction_engine,
            store=store,
            cache=BrokenCacheGateway(),
            local_cache=LocalResultCache(0),
        )
        result = await orchestrator.check_interactions(InteractionCheckRequest(drugs=["Aspirin", "Warfarin"]))
        assert result.safety_profile.level == "warning"

    async def test_unreadable_entry_is_recomputed(self, orchestrator, memory_cache):
        request = InteractionCheckRequest(drugs=["Aspirin", "Warfarin"])
        key = make_cache_key("interactions", interaction_payload(request))
        await memory_cache.set_with_expiry(key, b"{not json", 60)
        result = await orchestrator.check_interactions(request)
        assert result.interactions[0].severity == "major"


class TestWiring:
    def test_build_uses_catalogue_retrieval_without_url(self, store, memory_cache):
        orchestrator = build_orchestrator(store, cache=memory_cache)
        assert isinstance(orchestrator.ranker.retrieval, CatalogueRetrievalClient)
        assert orchestrator.ranker.fallback is None
        assert orchestrator.interactions.cache is memory_cache

    def test_build_keeps_empty_cache_gateway(self, store):
        empty = MemoryCacheGateway()
        assert len(empty) == 0
        orchestrator = build_orchestrator(store, cache=empty)
        assert orchestrator.cache is empty
        assert orchestrator.interactions.cache is empty

    def test_global_accessors(self, orchestrator):
        set_orchestrator(orchestrator)
        assert get_orchestrator() is orchestrator
        set_orchestrator(None)
        with pytest.raises(RuntimeError):
            get_orchestrator()
