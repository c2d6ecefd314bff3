import logging

from mediscore.models.knowledge import SearchSuggestion
from mediscore.services.catalogue import Catalogue
from mediscore.services.normalizer import common_terms, synonyms_for

logger = logging.getLogger(__name__)


def levenshtein(a: str, b: str) -> int:
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (ca != cb),
            ))
        previous = current
    return previous[-1]


def suggest(partial: str, language: str, catalogue: Catalogue | None = None, limit: int = 10) -> list[SearchSuggestion]:
    """Completions, spelling corrections and synonyms for a partial query."""
    text = partial.strip().lower()
    if not text:
        return []

    terms = common_terms(language)
    vocabulary = list(terms)
    if catalogue is not None and language == "en":
        vocabulary += [name.lower() for name in catalogue.symptom_vocabulary()]
        vocabulary += [c.name.lower() for c in catalogue.conditions.values()]

    suggestions: list[SearchSuggestion] = []
    seen: set[str] = set()

    def add(value: str, kind: str, confidence: float, category: str | None = None) -> None:
        if value in seen or value == text:
            return
        seen.add(value)
        suggestions.append(SearchSuggestion(text=value, type=kind, confidence=round(confidence, 4), category=category))

    for term in vocabulary:
        if term.startswith(text):
            add(term, "completion", 0.9, "symptom" if term in terms else None)

    for term in terms:
        distance = levenshtein(text, term)
        if 1 <= distance <= 2:
            add(term, "correction", 1 - distance / max(len(text), len(term)))

    for synonym in synonyms_for(text, language):
        add(synonym, "synonym", 0.8)

    logger.debug("Built %d suggestions for %r", len(suggestions), partial)
    return suggestions[:limit]
