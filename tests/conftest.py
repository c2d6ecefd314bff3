import os

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# In-memory DB, local catalogue retrieval and no external services for tests
os.environ["OPENAI_API_KEY"] = ""
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["DATABASE_PATH"] = ":memory:"
os.environ["SEED_CATALOGUE"] = "true"
os.environ["REDIS_URL"] = ""
os.environ["KNOWLEDGE_SEARCH_URL"] = ""
os.environ["FIELD_EXTRACTOR"] = "regex"

from mediscore.catalogue_seed import seed_entries
from mediscore.config import EngineSettings
from mediscore.database import close_db, init_db
from mediscore.errors import RetrievalUnavailable
from mediscore.main import app
from mediscore.services.cache import LocalResultCache, MemoryCacheGateway
from mediscore.services.catalogue import CatalogueStore, build_catalogue
from mediscore.services.diagnosis import DiagnosisEngine
from mediscore.services.interactions import InteractionEngine
from mediscore.services.orchestrator import RequestCacheOrchestrator, set_orchestrator
from mediscore.services.ranker import HybridRanker
from mediscore.services.retrieval import CatalogueRetrievalClient


def seed_grouped(extra: list[tuple[str, dict]] | None = None) -> dict[str, list[dict]]:
    """Seed rows grouped by kind, the shape ``build_catalogue`` expects."""
    grouped: dict[str, list[dict]] = {}
    for kind, _, payload in seed_entries():
        grouped.setdefault(kind, []).append(payload)
    for kind, payload in extra or []:
        grouped.setdefault(kind, []).append(payload)
    return grouped


class CountingRetrievalClient(CatalogueRetrievalClient):
    """Catalogue retrieval that records every call and can be switched to fail."""

    def __init__(self, store: CatalogueStore) -> None:
        super().__init__(store)
        self.calls: list[tuple[str, str]] = []
        self.fail = False

    async def search(self, text, language, categories=(), limit=10, threshold=0.0, mode="semantic"):
        self.calls.append((text, mode))
        if self.fail:
            raise RetrievalUnavailable("search backend offline")
        return await super().search(text, language, categories, limit, threshold, mode)


@pytest_asyncio.fixture
async def db():
    """Provide a fresh in-memory database for each test."""
    import mediscore.database as db_mod

    if db_mod._db is not None:
        await db_mod._db.close()
    db_mod._db = None

    db_mod.DATABASE_PATH = ":memory:"
    db_mod.SEED_CATALOGUE = True

    await init_db()
    database = await db_mod.get_db()
    yield database
    await close_db()


@pytest.fixture
def settings():
    return EngineSettings()


@pytest.fixture
def store():
    """Seeded catalogue without touching the database."""
    return CatalogueStore(build_catalogue(seed_grouped(), version=1))


@pytest.fixture
def retrieval(store):
    return CountingRetrievalClient(store)


@pytest.fixture
def ranker(retrieval, settings):
    return HybridRanker(retrieval, settings=settings)


@pytest.fixture
def memory_cache():
    return MemoryCacheGateway()


@pytest.fixture
def diagnosis_engine(ranker, store, settings):
    return DiagnosisEngine(ranker, store, settings=settings)


@pytest.fixture
def interaction_engine(ranker, store, memory_cache, settings):
    return InteractionEngine(ranker, store, cache=memory_cache, settings=settings)


@pytest.fixture
def orchestrator(ranker, diagnosis_engine, interaction_engine, store, memory_cache, settings):
    return RequestCacheOrchestrator(
        ranker=ranker,
        diagnosis=diagnosis_engine,
        interactions=interaction_engine,
        store=store,
        cache=memory_cache,
        local_cache=LocalResultCache(64),
        settings=settings,
    )


@pytest_asyncio.fixture
async def async_client(orchestrator):
    """Provide an async httpx client bound to the app with a test orchestrator."""
    set_orchestrator(orchestrator)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    set_orchestrator(None)
