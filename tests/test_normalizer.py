"""Tests for text normalization (mediscore/services/normalizer.py)."""

from mediscore.services.normalizer import (
    common_terms,
    normalize,
    split_words,
    synonyms_for,
    tokenize,
    transliterate,
)


class TestEnglish:
    def test_stop_words_removed(self):
        assert tokenize("the fever and the cough", "en") == tokenize("fever cough", "en")

    def test_plural_and_singular_share_a_stem(self):
        assert tokenize("headaches", "en") == tokenize("headache", "en")

    def test_tokens_are_deduplicated_in_order(self):
        tokens = tokenize("cough coughs fever", "en")
        assert len(tokens) == 2
        assert tokens[0] == tokenize("cough", "en")[0]

    def test_synonym_expansion_adds_terms(self):
        plain = tokenize("fever", "en")
        expanded = tokenize("fever", "en", expand_synonyms=True)
        assert expanded[: len(plain)] == plain
        assert set(tokenize("pyrexia temperature", "en")) <= set(expanded)

    def test_normalize_is_deterministic(self):
        assert normalize("Severe  Headache", "en") == normalize("severe headache", "en")

    def test_punctuation_splits_words(self):
        assert split_words("fever, cough; (rash)") == ["fever", "cough", "rash"]


class TestBengali:
    def test_stop_words_removed(self):
        tokens = tokenize("জ্বর এবং কাশি", "bn")
        assert tokens == tokenize("জ্বর কাশি", "bn")
        assert len(tokens) == 2

    def test_suffix_stripped(self):
        assert tokenize("জ্বরের", "bn") == ["জ্বর"]

    def test_short_words_keep_suffix(self):
        # stripping would leave fewer than two characters
        assert tokenize("রে", "bn") == ["রে"]

    def test_transliteration(self):
        assert transliterate("jor", "bn") == "জ্বর"
        assert tokenize("jor", "bn") == tokenize("জ্বর", "bn")

    def test_synonyms(self):
        assert "কফ" in synonyms_for("কাশি", "bn")


class TestUnsupportedLanguage:
    def test_normalize_passes_through(self):
        assert normalize("  Fièvre forte ", "fr") == "Fièvre forte"

    def test_tokenize_only_splits(self):
        assert tokenize("Fièvre forte", "fr") == ["fièvre", "forte"]

    def test_common_terms_fall_back_to_english(self):
        assert common_terms("fr") == common_terms("en")
