import logging

from fastapi import APIRouter, HTTPException

from mediscore.errors import InvalidRequest
from mediscore.models.diagnosis import DiagnosisRequest, DiagnosisResult
from mediscore.models.interaction import InteractionCheckRequest, InteractionResult
from mediscore.models.knowledge import SearchQuery, SearchResponse, SearchSuggestion, SuggestionRequest
from mediscore.services.orchestrator import get_orchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/knowledge", tags=["knowledge"])


@router.post("/search", response_model=SearchResponse)
async def search(body: SearchQuery):
    """Hybrid search over the medical knowledge base."""
    try:
        return await get_orchestrator().search(body)
    except InvalidRequest as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.post("/diagnosis", response_model=DiagnosisResult)
async def analyze_symptoms(body: DiagnosisRequest):
    """Differential diagnosis for a list of reported symptoms."""
    try:
        return await get_orchestrator().analyze_symptoms(body.symptoms, body.patient_profile, body.language)
    except InvalidRequest as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.post("/interactions", response_model=InteractionResult)
async def check_interactions(body: InteractionCheckRequest):
    """Drug interaction check with patient-adjusted risk."""
    try:
        return await get_orchestrator().check_interactions(body)
    except InvalidRequest as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/suggestions", response_model=list[SearchSuggestion])
async def get_suggestions(q: str, language: str = "en"):
    return await get_orchestrator().get_search_suggestions(q, language)


@router.post("/suggestions", response_model=list[SearchSuggestion])
async def post_suggestions(body: SuggestionRequest):
    return await get_orchestrator().get_search_suggestions(body.partial, body.language)
