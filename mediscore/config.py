import os
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes", "on")


OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")

# LLM configuration (structured field extraction only)
LLM_PROVIDER = os.getenv("LLM_PROVIDER", "auto")
LLM_DEFAULT_TIER = os.getenv("LLM_DEFAULT_TIER", "fast")
LLM_MODEL_FAST = os.getenv("LLM_MODEL_FAST", "")
LLM_MODEL_STANDARD = os.getenv("LLM_MODEL_STANDARD", "")
LLM_MODEL_HIGH = os.getenv("LLM_MODEL_HIGH", "")
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "20"))
FIELD_EXTRACTOR = os.getenv("FIELD_EXTRACTOR", "regex")

DATABASE_PATH = os.getenv("DATABASE_PATH", "mediscore.db")
SEED_CATALOGUE = _flag("SEED_CATALOGUE", "true")

# External knowledge search; empty means serve from the local catalogue
KNOWLEDGE_SEARCH_URL = os.getenv("KNOWLEDGE_SEARCH_URL", "")
KNOWLEDGE_SEARCH_API_KEY = os.getenv("KNOWLEDGE_SEARCH_API_KEY", "")
RETRIEVAL_TIMEOUT_SECONDS = float(os.getenv("RETRIEVAL_TIMEOUT_SECONDS", "10"))

# Redis result cache; empty means in-memory gateway
REDIS_URL = os.getenv("REDIS_URL", "")
CACHE_KEY_PREFIX = os.getenv("CACHE_KEY_PREFIX", "mediscore")
CACHE_TIMEOUT_SECONDS = float(os.getenv("CACHE_TIMEOUT_SECONDS", "2"))
LOCAL_CACHE_MAX_ENTRIES = int(os.getenv("LOCAL_CACHE_MAX_ENTRIES", "512"))
MEMORY_CACHE_MAX_ENTRIES = int(os.getenv("MEMORY_CACHE_MAX_ENTRIES", "10000"))

SEARCH_CACHE_TTL = int(os.getenv("SEARCH_CACHE_TTL", "300"))
DIAGNOSIS_CACHE_TTL = int(os.getenv("DIAGNOSIS_CACHE_TTL", "1800"))
INTERACTION_CACHE_TTL = int(os.getenv("INTERACTION_CACHE_TTL", "3600"))
SUGGESTION_CACHE_TTL = int(os.getenv("SUGGESTION_CACHE_TTL", "3600"))

FANOUT_LIMIT = int(os.getenv("FANOUT_LIMIT", "8"))


class EngineSettings(BaseModel):
    """Scoring defaults shared by the ranker and both engines."""

    # Hybrid ranker
    semantic_weight: float = 0.4
    keyword_weight: float = 0.3
    metadata_weight: float = 0.3
    boost_recency: float = 0.1
    boost_reliability: float = 0.2
    boost_category: float = 0.1
    keyword_retrieval_threshold: float = 0.3
    undated_recency: float = 0.5
    recency_decay_days: float = 365.0

    # Retrieval fan-out
    retrieval_timeout: float = RETRIEVAL_TIMEOUT_SECONDS
    fanout_limit: int = FANOUT_LIMIT

    # Diagnosis
    symptom_match_threshold: float = 0.8
    condition_search_threshold: float = 0.6
    condition_search_limit: int = 15
    cluster_weight: float = 0.4
    age_mismatch_factor: float = 0.5
    gender_mismatch_factor: float = 0.7
    risk_factor_bonus: float = 0.5
    degraded_confidence_factor: float = 0.75
    primary_limit: int = 5
    secondary_limit: int = 5

    # Interactions
    drug_match_threshold: float = 0.8
    interaction_search_threshold: float = 0.7
    interaction_search_limit: int = 3
    elderly_age: int = 65
    elderly_drug_drug_factor: float = 1.2
    elderly_drug_condition_factor: float = 1.3
    organ_impairment_factor: float = 1.3
    alternatives_per_drug: int = 2

    # Suggestions
    suggestion_limit: int = 10


@lru_cache
def engine_settings() -> EngineSettings:
    return EngineSettings()
