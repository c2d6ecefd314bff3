"""Entry point for the four exposed operations.

Every call is keyed by a hash of its canonicalized input. Lookups go through
the bounded in-process cache, then the external gateway, and only then reach
the ranker and engines. Degraded results are returned but never cached.
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from pydantic import TypeAdapter, ValidationError

from mediscore.config import (
    DIAGNOSIS_CACHE_TTL,
    INTERACTION_CACHE_TTL,
    LOCAL_CACHE_MAX_ENTRIES,
    REDIS_URL,
    SEARCH_CACHE_TTL,
    SUGGESTION_CACHE_TTL,
    EngineSettings,
    engine_settings,
)
from mediscore.errors import CacheWriteFailure, InvalidRequest, RetrievalUnavailable
from mediscore.models.diagnosis import DiagnosisResult, PatientProfile, Symptom
from mediscore.models.interaction import InteractionCheckRequest, InteractionResult
from mediscore.models.knowledge import RankedResult, SearchQuery, SearchResponse, SearchSuggestion
from mediscore.services.cache import CacheGateway, LocalResultCache, build_cache_gateway, canonical_list, make_cache_key
from mediscore.services.catalogue import CatalogueStore
from mediscore.services.diagnosis import DiagnosisEngine
from mediscore.services.field_extractor import RegexFieldExtractor, build_field_extractor
from mediscore.services.interactions import InteractionEngine
from mediscore.services.normalizer import normalize
from mediscore.services.ranker import HybridRanker
from mediscore.services.retrieval import CatalogueRetrievalClient, RetrievalClient, build_retrieval_client
from mediscore.services.suggestions import suggest

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SEARCH_ADAPTER = TypeAdapter(SearchResponse)
_DIAGNOSIS_ADAPTER = TypeAdapter(DiagnosisResult)
_INTERACTION_ADAPTER = TypeAdapter(InteractionResult)
_SUGGESTION_ADAPTER = TypeAdapter(list[SearchSuggestion])


def search_payload(query: SearchQuery) -> dict:
    return {
        "text": " ".join(query.text.casefold().split()),
        "normalized": normalize(query.text, query.language, expand_synonyms=query.synonyms),
        "language": query.language,
        "mode": query.mode,
        "categories": sorted(query.categories),
        "limit": query.limit,
        "threshold": query.threshold,
        "weights": query.weights.model_dump(),
        "boost": query.boost.model_dump(),
        "synonyms": query.synonyms,
    }


def diagnosis_payload(symptoms: list[Symptom], profile: PatientProfile | None, language: str) -> dict:
    canonical_symptoms = sorted(
        (
            {
                "name": s.name.strip().casefold(),
                "severity": s.severity,
                "duration": s.duration.strip().casefold(),
                "frequency": s.frequency,
                "location": (s.location or "").strip().casefold(),
                "triggers": canonical_list(s.triggers),
                "associated": canonical_list(s.associated_symptoms),
                "language": s.language,
            }
            for s in symptoms
        ),
        key=lambda item: (item["name"], item["severity"], item["duration"], item["frequency"]),
    )
    profile_part = None
    if profile is not None:
        profile_part = {
            "age": profile.age,
            "gender": profile.gender,
            "history": canonical_list(profile.medical_history),
            "smoking": profile.lifestyle.smoking,
        }
    return {"symptoms": canonical_symptoms, "profile": profile_part, "language": language}


def interaction_payload(request: InteractionCheckRequest) -> dict:
    profile = request.patient_profile
    profile_part = None
    if profile is not None:
        profile_part = {
            "age": profile.age,
            "weight": profile.weight,
            "kidney": profile.kidney_function,
            "liver": profile.liver_function,
            "conditions": canonical_list(profile.conditions),
            "allergies": sorted(
                (
                    a.drug_name.strip().casefold(),
                    a.allergen.strip().casefold(),
                    tuple(canonical_list(a.cross_reactivity)),
                )
                for a in profile.allergies
            ),
        }
    return {
        "drugs": canonical_list(request.drugs),
        "profile": profile_part,
        "include_food": request.include_food,
        "include_conditions": request.include_conditions,
        "language": request.language,
    }


class RequestCacheOrchestrator:
    def __init__(
        self,
        ranker: HybridRanker,
        diagnosis: DiagnosisEngine,
        interactions: InteractionEngine,
        store: CatalogueStore,
        cache: CacheGateway,
        local_cache: LocalResultCache | None = None,
        settings: EngineSettings | None = None,
    ) -> None:
        self.ranker = ranker
        self.diagnosis = diagnosis
        self.interactions = interactions
        self.store = store
        self.cache = cache
        self.local_cache = local_cache if local_cache is not None else LocalResultCache(LOCAL_CACHE_MAX_ENTRIES)
        self.settings = settings or engine_settings()

    async def _read(self, key: str) -> bytes | None:
        raw = self.local_cache.get(key)
        if raw is not None:
            logger.debug("Local cache hit %s", key)
            return raw
        try:
            raw = await self.cache.get(key)
        except (RetrievalUnavailable, asyncio.TimeoutError) as e:
            logger.warning("Cache read failed for %s: %s", key, e)
            return None
        if raw is not None:
            logger.debug("Cache hit %s", key)
        return raw

    async def _write(self, key: str, raw: bytes, ttl: int) -> None:
        self.local_cache.set(key, raw, ttl)
        try:
            await self.cache.set_with_expiry(key, raw, ttl)
        except (CacheWriteFailure, asyncio.TimeoutError) as e:
            logger.warning("Cache write failed for %s, returning uncached result: %s", key, e)

    async def _cached(
        self,
        namespace: str,
        payload: dict,
        ttl: int,
        adapter: TypeAdapter,
        compute: Callable[[], Awaitable[T]],
        degraded: Callable[[T], bool] = lambda _: False,
    ) -> T:
        key = make_cache_key(namespace, payload)
        raw = await self._read(key)
        if raw is not None:
            try:
                value = adapter.validate_json(raw)
            except ValidationError as e:
                logger.warning("Discarding unreadable cache entry %s: %s", key, e)
            else:
                self.local_cache.set(key, raw, ttl)
                return value

        value = await compute()
        if degraded(value):
            logger.info("Not caching degraded %s result", namespace)
            return value
        await self._write(key, adapter.dump_json(value), ttl)
        return value

    async def search(self, query: SearchQuery) -> SearchResponse:
        if not query.text.strip():
            raise InvalidRequest("search text must not be empty")

        async def compute() -> SearchResponse:
            results, degraded = await self.ranker.search_with_status(query)
            return SearchResponse(results=results, degraded=degraded)

        return await self._cached(
            "search", search_payload(query), SEARCH_CACHE_TTL, _SEARCH_ADAPTER, compute, lambda r: r.degraded,
        )

    async def hybrid_search(self, query: SearchQuery) -> list[RankedResult]:
        response = await self.search(query)
        return response.results

    async def analyze_symptoms(
        self,
        symptoms: list[Symptom],
        patient_profile: PatientProfile | None = None,
        language: str = "en",
    ) -> DiagnosisResult:
        return await self._cached(
            "diagnosis",
            diagnosis_payload(symptoms, patient_profile, language),
            DIAGNOSIS_CACHE_TTL,
            _DIAGNOSIS_ADAPTER,
            lambda: self.diagnosis.analyze(symptoms, patient_profile, language),
            lambda r: r.degraded,
        )

    async def check_interactions(self, request: InteractionCheckRequest) -> InteractionResult:
        if not any(name.strip() for name in request.drugs):
            raise InvalidRequest("at least one drug is required")
        return await self._cached(
            "interactions",
            interaction_payload(request),
            INTERACTION_CACHE_TTL,
            _INTERACTION_ADAPTER,
            lambda: self.interactions.check(request),
            lambda r: r.degraded,
        )

    async def get_search_suggestions(self, partial: str, language: str = "en") -> list[SearchSuggestion]:
        text = partial.strip()
        if not text:
            return []

        async def compute() -> list[SearchSuggestion]:
            return suggest(text, language, self.store.current, self.settings.suggestion_limit)

        return await self._cached(
            "suggestions",
            {"partial": text.casefold(), "language": language},
            SUGGESTION_CACHE_TTL,
            _SUGGESTION_ADAPTER,
            compute,
        )

    async def close(self) -> None:
        await self.ranker.retrieval.close()
        await self.cache.close()


def build_orchestrator(
    store: CatalogueStore,
    retrieval: RetrievalClient | None = None,
    cache: CacheGateway | None = None,
    extractor: RegexFieldExtractor | None = None,
    settings: EngineSettings | None = None,
) -> RequestCacheOrchestrator:
    if settings is None:
        settings = engine_settings()
    if retrieval is None:
        retrieval = build_retrieval_client(store)
    if cache is None:
        cache = build_cache_gateway(REDIS_URL)
    if extractor is None:
        extractor = build_field_extractor()

    fallback = None if isinstance(retrieval, CatalogueRetrievalClient) else CatalogueRetrievalClient(store)
    ranker = HybridRanker(retrieval, settings=settings, fallback=fallback)
    return RequestCacheOrchestrator(
        ranker=ranker,
        diagnosis=DiagnosisEngine(ranker, store, extractor=extractor, settings=settings),
        interactions=InteractionEngine(ranker, store, cache=cache, extractor=extractor, settings=settings),
        store=store,
        cache=cache,
        settings=settings,
    )


_orchestrator: RequestCacheOrchestrator | None = None


def get_orchestrator() -> RequestCacheOrchestrator:
    if _orchestrator is None:
        raise RuntimeError("Orchestrator not initialized")
    return _orchestrator


def set_orchestrator(orchestrator: RequestCacheOrchestrator | None) -> None:
    global _orchestrator
    _orchestrator = orchestrator
