"""Tests for search suggestions (mediscore/services/suggestions.py)."""

from mediscore.services.suggestions import levenshtein, suggest


class TestLevenshtein:
    def test_identical(self):
        assert levenshtein("fever", "fever") == 0

    def test_empty(self):
        assert levenshtein("", "cough") == 5

    def test_single_substitution(self):
        assert levenshtein("feber", "fever") == 1

    def test_transposition_costs_two(self):
        assert levenshtein("cuogh", "cough") == 2


class TestSuggest:
    def test_completion(self):
        results = suggest("fev", "en")
        assert results[0].text == "fever"
        assert results[0].type == "completion"
        assert results[0].confidence == 0.9

    def test_correction_confidence(self):
        results = suggest("feber", "en")
        correction = next(r for r in results if r.type == "correction")
        assert correction.text == "fever"
        assert correction.confidence == 0.8

    def test_synonyms_for_exact_term(self):
        results = suggest("fever", "en")
        synonyms = [r.text for r in results if r.type == "synonym"]
        assert synonyms == ["pyrexia", "temperature"]
        assert all(r.text != "fever" for r in results)

    def test_catalogue_terms_complete(self, store):
        results = suggest("stiff", "en", store.current)
        assert "stiff neck" in [r.text for r in results]

    def test_bengali_completion(self):
        results = suggest("জ্ব", "bn")
        assert results[0].text == "জ্বর"

    def test_blank_returns_nothing(self):
        assert suggest("   ", "en") == []

    def test_limit(self, store):
        assert len(suggest("s", "en", store.current, limit=3)) <= 3

    def test_no_duplicates(self, store):
        texts = [r.text for r in suggest("fe", "en", store.current)]
        assert len(texts) == len(set(texts))
