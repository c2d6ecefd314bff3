"""Hybrid ranking over semantic and keyword candidate sets.

Scoring is pure and synchronous; only candidate retrieval suspends.
"""

import asyncio
import logging
import math
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Callable, Sequence

from mediscore.config import EngineSettings, engine_settings
from mediscore.errors import RetrievalUnavailable
from mediscore.models.knowledge import Document, RankedResult, RankingFactors, SearchQuery
from mediscore.services.normalizer import normalize, tokenize
from mediscore.services.retrieval import RetrievalClient, RetrievalHit

logger = logging.getLogger(__name__)


@dataclass
class Candidate:
    document: Document
    semantic_score: float = 0.0
    relevance: float = 0.0


def merge_candidates(semantic: Sequence[RetrievalHit], keyword: Sequence[RetrievalHit]) -> list[Candidate]:
    """Union by document id in retrieval order, semantic hits first.

    A document present in both sets keeps a single record carrying its
    semantic score.
    """
    merged: dict[str, Candidate] = {}
    for doc, score in semantic:
        if doc.id not in merged:
            merged[doc.id] = Candidate(document=doc, semantic_score=score, relevance=score)
    for doc, score in keyword:
        existing = merged.get(doc.id)
        if existing is None:
            merged[doc.id] = Candidate(document=doc, semantic_score=0.0, relevance=score)
        else:
            existing.relevance = max(existing.relevance, score)
    return list(merged.values())


def keyword_score(tokens: Sequence[str], document: Document) -> float:
    """Mean per-token frequency in title+content, per thousand characters, capped at 1."""
    if not tokens:
        return 0.0
    text = f"{document.title} {document.content}".lower()
    if not text.strip():
        return 0.0
    total = 0.0
    for token in tokens:
        occurrences = len(re.findall(re.escape(token.lower()), text))
        total += occurrences / len(text) * 1000
    return min(1.0, total / len(tokens))


def metadata_score(tokens: Sequence[str], document: Document, categories: Sequence[str], language: str) -> float:
    score = 0.0
    if categories and document.category in categories:
        score += 0.3
    if document.language == language:
        score += 0.2
    tags = [t.lower() for t in document.metadata.tags]
    if tags and tokens:
        matched = sum(1 for tag in tags if any(token in tag for token in tokens))
        score += matched / len(tags) * 0.3
    score += 0.2 * document.metadata.reliability
    return min(1.0, score)


def recency_score(document: Document, now: datetime, decay_days: float = 365.0, undated: float = 0.5) -> float:
    published = document.metadata.published_date
    if not published:
        return undated
    try:
        when = datetime.fromisoformat(published)
    except ValueError:
        logger.debug("Unparseable published_date %r on %s", published, document.id)
        return undated
    if when.tzinfo is None:
        when = when.replace(tzinfo=UTC)
    days = max(0.0, (now - when).total_seconds() / 86400)
    return math.exp(-days / decay_days)


class HybridRanker:
    def __init__(
        self,
        retrieval: RetrievalClient,
        settings: EngineSettings | None = None,
        fallback: RetrievalClient | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.retrieval = retrieval
        self.fallback = fallback
        self.settings = settings or engine_settings()
        self._clock = clock or (lambda: datetime.now(UTC))

    def final_score(self, query: SearchQuery, factors: RankingFactors) -> float:
        s = self.settings
        w, b = query.weights, query.boost
        score = (
            (w.semantic if w.semantic is not None else s.semantic_weight) * factors.semantic_score
            + (w.keyword if w.keyword is not None else s.keyword_weight) * factors.keyword_score
            + (w.metadata if w.metadata is not None else s.metadata_weight) * factors.metadata_score
            + (b.recency if b.recency is not None else s.boost_recency) * factors.recency_score
            + (b.reliability if b.reliability is not None else s.boost_reliability) * factors.reliability_score
            + (b.category if b.category is not None else s.boost_category) * factors.metadata_score
        )
        return max(0.0, min(1.0, score))

    def rank(self, query: SearchQuery, mode: str, candidates: Sequence[Candidate]) -> list[RankedResult]:
        tokens = tokenize(query.text, query.language, expand_synonyms=query.synonyms)
        now = self._clock()
        results: list[RankedResult] = []

        for candidate in candidates:
            doc = candidate.document
            factors = RankingFactors(
                semantic_score=candidate.semantic_score if mode != "keyword" else 0.0,
                keyword_score=keyword_score(tokens, doc) if mode != "semantic" else 0.0,
                metadata_score=metadata_score(tokens, doc, query.categories, query.language),
                recency_score=recency_score(doc, now, self.settings.recency_decay_days, self.settings.undated_recency),
                reliability_score=doc.metadata.reliability,
            )
            factors.final_score = self.final_score(query, factors)
            if factors.final_score < query.threshold:
                continue
            results.append(RankedResult(
                document=doc,
                relevance=candidate.relevance,
                ranking_factors=factors,
                explanation=(
                    f"semantic {factors.semantic_score:.2f}, keyword {factors.keyword_score:.2f}, "
                    f"metadata {factors.metadata_score:.2f}"
                ),
            ))

        # sorted() is stable, so equal scores keep retrieval order
        results = sorted(results, key=lambda r: r.ranking_factors.final_score, reverse=True)
        return results[: query.limit]

    async def _retrieve(self, text: str, query: SearchQuery, limit: int, threshold: float, mode: str):
        """Returns (hits, degraded). Failures fall back to the catalogue client when configured."""
        try:
            hits = await asyncio.wait_for(
                self.retrieval.search(text, query.language, query.categories, limit, threshold, mode),
                timeout=self.settings.retrieval_timeout,
            )
            return hits, False
        except (RetrievalUnavailable, asyncio.TimeoutError) as e:
            logger.warning("%s retrieval degraded for %r: %s", mode, text, str(e) or "timeout")

        if self.fallback is None:
            return [], True
        try:
            hits = await self.fallback.search(text, query.language, query.categories, limit, threshold, mode)
        except RetrievalUnavailable as e:
            logger.warning("Fallback retrieval failed for %r: %s", text, e)
            return [], True
        return hits, True

    async def search_with_status(self, query: SearchQuery) -> tuple[list[RankedResult], bool]:
        mode = query.mode
        normalized = normalize(query.text, query.language, expand_synonyms=query.synonyms) or query.text

        if mode == "semantic":
            hits, degraded = await self._retrieve(query.text, query, query.limit, query.threshold, "semantic")
            candidates = merge_candidates(hits, [])
        elif mode == "keyword":
            hits, degraded = await self._retrieve(
                normalized, query, query.limit, self.settings.keyword_retrieval_threshold, "keyword",
            )
            candidates = merge_candidates([], hits)
        else:
            (semantic, sem_degraded), (keyword, kw_degraded) = await asyncio.gather(
                self._retrieve(query.text, query, query.limit * 2, query.threshold, "semantic"),
                self._retrieve(
                    normalized, query, query.limit * 2, self.settings.keyword_retrieval_threshold, "keyword",
                ),
            )
            candidates = merge_candidates(semantic, keyword)
            degraded = sem_degraded or kw_degraded

        results = self.rank(query, mode, candidates)
        logger.debug("Ranked %d of %d candidates for %r (%s)", len(results), len(candidates), query.text, mode)
        return results, degraded

    async def search(self, query: SearchQuery) -> list[RankedResult]:
        results, _ = await self.search_with_status(query)
        return results
