import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from mediscore.database import close_db, get_db, init_db
from mediscore.routers import knowledge
from mediscore.services.catalogue import CatalogueStore
from mediscore.services.orchestrator import build_orchestrator, get_orchestrator, set_orchestrator

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting MediScore...")
    await init_db()
    store = CatalogueStore()
    catalogue = await store.reload(await get_db())
    logger.info("Catalogue loaded: %d drugs, %d conditions", len(catalogue.drugs), len(catalogue.conditions))
    set_orchestrator(build_orchestrator(store))
    yield
    await get_orchestrator().close()
    set_orchestrator(None)
    await close_db()
    logger.info("MediScore shut down")


app = FastAPI(
    title="MediScore",
    description="Hybrid medical search, differential diagnosis and drug interaction scoring",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(knowledge.router)


@app.get("/health")
async def health():
    return {"status": "ok"}
