"""Knowledge retrieval clients.

``HttpRetrievalClient`` consumes an external semantic/keyword search service.
``CatalogueRetrievalClient`` answers the same interface from documents derived
from the local catalogue; it is the default when no search URL is configured
and the catalogue-only fallback when the remote store is unreachable.
"""

import logging
import re
from typing import Sequence

import httpx
from pydantic import ValidationError
from rank_bm25 import BM25Okapi

from mediscore.config import KNOWLEDGE_SEARCH_API_KEY, KNOWLEDGE_SEARCH_URL, RETRIEVAL_TIMEOUT_SECONDS
from mediscore.errors import RetrievalUnavailable
from mediscore.models.knowledge import Document, DocumentMetadata
from mediscore.services.catalogue import Catalogue, CatalogueStore
from mediscore.services.normalizer import tokenize

logger = logging.getLogger(__name__)

RetrievalHit = tuple[Document, float]


class RetrievalClient:
    async def search(
        self,
        text: str,
        language: str,
        categories: Sequence[str] = (),
        limit: int = 10,
        threshold: float = 0.0,
        mode: str = "semantic",
    ) -> list[RetrievalHit]:  # pragma: no cover - interface
        raise NotImplementedError

    async def close(self) -> None:
        return


class HttpRetrievalClient(RetrievalClient):
    """POSTs search requests to a knowledge search endpoint.

    Expected response body: ``{"results": [{"document": {...}, "score": 0.83}, ...]}``.
    Any transport error, timeout or non-2xx status raises ``RetrievalUnavailable``.
    """

    def __init__(
        self,
        base_url: str = KNOWLEDGE_SEARCH_URL,
        api_key: str = KNOWLEDGE_SEARCH_API_KEY,
        timeout: float = RETRIEVAL_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def search(self, text, language, categories=(), limit=10, threshold=0.0, mode="semantic"):
        body = {
            "query": text,
            "language": language,
            "categories": list(categories),
            "limit": limit,
            "threshold": threshold,
            "mode": mode,
        }
        try:
            resp = await self._client.post("/search", json=body)
            resp.raise_for_status()
            payload = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise RetrievalUnavailable(f"knowledge search failed: {e}") from e

        hits: list[RetrievalHit] = []
        for item in payload.get("results", []) if isinstance(payload, dict) else []:
            try:
                document = Document.model_validate(item.get("document") or {})
                score = float(item.get("score", 0.0))
            except (ValidationError, TypeError, ValueError, AttributeError):
                logger.warning("Skipping malformed search hit: %r", item)
                continue
            score = max(0.0, min(1.0, score))
            if score >= threshold:
                hits.append((document, score))
        return hits[:limit]

    async def close(self) -> None:
        await self._client.aclose()


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.casefold()).strip("-") or "item"


def catalogue_documents(catalogue: Catalogue) -> list[Document]:
    """Render catalogue entries as searchable documents."""
    docs: list[Document] = []

    for condition in catalogue.conditions.values():
        content = (
            f"{condition.name}. {condition.description} "
            f"Common symptoms: {', '.join(condition.common_symptoms)}. "
            f"Risk factors: {', '.join(condition.risk_factors) or 'none known'}."
        )
        docs.append(Document(
            id=condition.id,
            title=condition.name,
            content=content,
            category="disease",
            language="en",
            metadata=DocumentMetadata(source="catalogue", tags=list(condition.common_symptoms), reliability=0.9),
        ))

    for name in catalogue.symptom_vocabulary():
        related: list[str] = []
        for cluster in catalogue.clusters:
            if any(s.casefold() == name.casefold() for s in cluster.symptoms):
                related.extend(s for s in cluster.symptoms if s.casefold() != name.casefold() and s not in related)
        content = f"{name} is a presenting symptom."
        if related:
            content += f" Commonly associated with {', '.join(related[:3])}."
        docs.append(Document(
            id=f"symptom-{_slug(name)}",
            title=name,
            content=content,
            category="symptom",
            language="en",
            metadata=DocumentMetadata(source="catalogue", tags=[name], reliability=0.9),
        ))

    for drug in catalogue.drugs.values():
        content = (
            f"{drug.name} (generic name: {drug.generic_name or drug.name}) "
            f"Brand names: {', '.join(drug.brand_names) or 'none'}. "
            f"Class: {drug.therapeutic_class}. Route: {drug.route}. "
            f"Mechanism: {drug.mechanism} "
            f"Contraindications: {', '.join(drug.contraindications) or 'none known'}. "
            f"Side effects: {', '.join(drug.side_effects) or 'none known'}."
        )
        docs.append(Document(
            id=f"drug-{drug.id}",
            title=drug.name,
            content=content,
            category="drug",
            language="en",
            metadata=DocumentMetadata(
                source="catalogue",
                tags=[t for t in (drug.therapeutic_class, drug.generic_name, *drug.brand_names) if t],
                reliability=0.9 if drug.verified else 0.4,
            ),
        ))

    for interaction in catalogue.interactions.values():
        content = (
            f"{interaction.description} Mechanism: {interaction.mechanism}. "
            f"Severity: {interaction.severity}. Onset: {interaction.onset}. "
            f"Monitor: {', '.join(interaction.monitoring_parameters) or 'none'}."
        )
        docs.append(Document(
            id=f"interaction-{interaction.id}",
            title=f"{interaction.drug1} and {interaction.drug2} interaction",
            content=content,
            category="drug",
            language="en",
            metadata=DocumentMetadata(
                source="catalogue",
                tags=[interaction.drug1, interaction.drug2, "interaction", f"severity:{interaction.severity}"],
                reliability=0.9,
            ),
        ))

    return docs


def _jaccard(a: set[str], b: set[str]) -> float:
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def _dice(a: set[str], b: set[str]) -> float:
    if not a or not b:
        return 0.0
    return 2 * len(a & b) / (len(a) + len(b))


class CatalogueRetrievalClient(RetrievalClient):
    """Deterministic lexical retrieval over catalogue documents.

    Semantic relevance is the better of title Jaccard overlap and Dice overlap
    against title plus tags. Keyword relevance is BM25 over title, tags and
    content, scaled so the best eligible document scores 1.
    """

    def __init__(self, store: CatalogueStore) -> None:
        self.store = store
        self._version: int | None = None
        self._index: list[tuple[Document, set[str], set[str]]] = []
        self._bm25: BM25Okapi | None = None

    def _ensure_index(self) -> None:
        catalogue = self.store.current
        if self._version == catalogue.version and self._index:
            return
        index = []
        corpus = []
        for doc in catalogue_documents(catalogue):
            title = tokenize(doc.title, "en")
            tag_tokens = [t for tag in doc.metadata.tags for t in tokenize(tag, "en")]
            index.append((doc, set(title), set(title) | set(tag_tokens)))
            corpus.append(title + tag_tokens + tokenize(doc.content, "en"))
        self._index = index
        self._bm25 = BM25Okapi(corpus) if corpus else None
        self._version = catalogue.version
        logger.debug("Indexed %d catalogue documents (version %s)", len(index), catalogue.version)

    def _keyword_scores(self, query: list[str], eligible: list[int]) -> dict[int, float]:
        if self._bm25 is None or not eligible:
            return {}
        raw = self._bm25.get_scores(query)
        best = max(float(raw[i]) for i in eligible)
        if best <= 0:
            return {}
        return {i: float(raw[i]) / best for i in eligible}

    async def search(self, text, language, categories=(), limit=10, threshold=0.0, mode="semantic"):
        self._ensure_index()
        query = list(dict.fromkeys(tokenize(text, language) + tokenize(text, "en")))
        if not query:
            return []

        eligible = [
            i for i, (doc, _, _) in enumerate(self._index)
            if not categories or doc.category in categories
        ]
        keyword = self._keyword_scores(query, eligible) if mode == "keyword" else {}
        query_set = set(query)

        hits: list[RetrievalHit] = []
        for i in eligible:
            doc, title, tagged = self._index[i]
            if mode == "keyword":
                score = keyword.get(i, 0.0)
            else:
                score = max(_jaccard(query_set, title), _dice(query_set, tagged))
            if score > 0 and score >= threshold:
                hits.append((doc, round(score, 6)))

        hits.sort(key=lambda hit: hit[1], reverse=True)
        return hits[:limit]


def build_retrieval_client(store: CatalogueStore, search_url: str = KNOWLEDGE_SEARCH_URL) -> RetrievalClient:
    if search_url:
        logger.info("Using knowledge search at %s", search_url)
        return HttpRetrievalClient(base_url=search_url)
    logger.info("KNOWLEDGE_SEARCH_URL not set, serving retrieval from the local catalogue")
    return CatalogueRetrievalClient(store)
