from typing import Literal

from pydantic import BaseModel, Field

DocumentCategory = Literal["symptom", "disease", "treatment", "drug", "procedure"]
SearchMode = Literal["semantic", "keyword", "hybrid"]


class DocumentMetadata(BaseModel):
    source: str = ""
    author: str | None = None
    published_date: str | None = None
    tags: list[str] = []
    reliability: float = Field(0.5, ge=0.0, le=1.0)


class Document(BaseModel):
    model_config = {"frozen": True}

    id: str
    title: str = ""
    content: str = ""
    category: DocumentCategory = "disease"
    language: str = "en"
    metadata: DocumentMetadata = DocumentMetadata()


class RankingFactors(BaseModel):
    semantic_score: float = 0.0
    keyword_score: float = 0.0
    metadata_score: float = 0.0
    recency_score: float = 0.0
    reliability_score: float = 0.0
    final_score: float = Field(0.0, ge=0.0, le=1.0)


class RankedResult(BaseModel):
    document: Document
    relevance: float = 0.0
    ranking_factors: RankingFactors = RankingFactors()
    explanation: str = ""


class SearchWeights(BaseModel):
    semantic: float | None = Field(None, ge=0.0)
    keyword: float | None = Field(None, ge=0.0)
    metadata: float | None = Field(None, ge=0.0)


class SearchBoost(BaseModel):
    recency: float | None = Field(None, ge=0.0)
    reliability: float | None = Field(None, ge=0.0)
    category: float | None = Field(None, ge=0.0)


class SearchQuery(BaseModel):
    text: str
    language: str = "en"
    mode: SearchMode = "hybrid"
    categories: list[DocumentCategory] = []
    limit: int = Field(10, ge=1, le=100)
    threshold: float = Field(0.0, ge=0.0, le=1.0)
    weights: SearchWeights = SearchWeights()
    boost: SearchBoost = SearchBoost()
    synonyms: bool = False


class SearchResponse(BaseModel):
    results: list[RankedResult] = []
    degraded: bool = False


class SearchSuggestion(BaseModel):
    text: str
    type: Literal["completion", "correction", "synonym"]
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    category: str | None = None


class SuggestionRequest(BaseModel):
    partial: str
    language: str = "en"
