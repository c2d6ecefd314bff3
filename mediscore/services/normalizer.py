"""Language-aware query and term preprocessing.

Stop-word removal, suffix stemming, transliteration and synonym expansion for
English and Bengali. Output is deterministic so normalized text can take part
in cache keys. Languages without a table pass through untouched.
"""

import re

from nltk.stem import PorterStemmer

SUPPORTED_LANGUAGES = ("en", "bn")

# Bengali vowel signs are combining marks, so \w-based tokenizing would split words apart
TOKEN_SPLIT_RE = re.compile(r"[\s,.;:!?()\[\]{}\"'`/\\|।॥-]+")

STOP_WORDS = {
    "en": frozenset({
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
    }),
    "bn": frozenset({
        "এবং", "বা", "কিন্তু", "তবে", "যদি", "তাহলে", "কারণ", "যেহেতু", "এর", "এই", "সেই", "ওই",
        "যে", "যা", "কি", "কে", "কাকে", "আমি", "তুমি", "সে", "আমরা", "তোমরা", "তারা", "আমার",
        "তোমার", "তার",
    }),
}

# Checked in order; longer suffixes first
BENGALI_SUFFIXES = ("গুলো", "গুলি", "দের", "েদর", "রা", "ের", "তে", "য়", "ে", "ি")

SYNONYMS = {
    "en": {
        "fever": ["pyrexia", "temperature"],
        "headache": ["cephalalgia", "migraine"],
        "cough": ["tussis"],
        "nausea": ["queasiness", "sickness"],
        "breathlessness": ["dyspnea", "shortness of breath"],
    },
    "bn": {
        "জ্বর": ["তাপমাত্রা", "গরম", "উত্তাপ"],
        "মাথাব্যথা": ["মাথা ধরা", "মাথার যন্ত্রণা", "শিরঃপীড়া"],
        "কাশি": ["খুসখুসানি", "কফ"],
        "পেটব্যথা": ["পেট ধরা", "উদরশূল", "পেটের যন্ত্রণা"],
    },
}

TRANSLITERATIONS = {
    "bn": {
        "jor": "জ্বর",
        "jwor": "জ্বর",
        "mathabytha": "মাথাব্যথা",
        "mathabetha": "মাথাব্যথা",
        "kashi": "কাশি",
        "petbytha": "পেটব্যথা",
        "bomi": "বমি",
    },
}

COMMON_TERMS = {
    "en": ["fever", "headache", "cough", "stomach pain", "nausea"],
    "bn": ["জ্বর", "মাথাব্যথা", "কাশি", "পেটব্যথা", "বমি"],
}

_stemmer = PorterStemmer()


def split_words(text: str) -> list[str]:
    return [t for t in TOKEN_SPLIT_RE.split(text.lower()) if t]


def _stem(token: str, language: str) -> str:
    if language == "en":
        return _stemmer.stem(token)
    if language == "bn":
        for suffix in BENGALI_SUFFIXES:
            if token.endswith(suffix) and len(token) - len(suffix) >= 2:
                return token[: -len(suffix)]
    return token


def synonyms_for(term: str, language: str) -> list[str]:
    return list(SYNONYMS.get(language, {}).get(term.strip().lower(), []))


def transliterate(token: str, language: str) -> str:
    return TRANSLITERATIONS.get(language, {}).get(token, token)


def tokenize(text: str, language: str, expand_synonyms: bool = False) -> list[str]:
    """Return the normalized, de-duplicated token list for ``text``."""
    if language not in SUPPORTED_LANGUAGES:
        return split_words(text)

    stop_words = STOP_WORDS[language]
    words = [transliterate(w, language) for w in split_words(text)]
    words = [w for w in words if w not in stop_words]

    if expand_synonyms:
        expanded = list(words)
        for word in words:
            for synonym in synonyms_for(word, language):
                expanded.extend(w for w in split_words(synonym) if w not in stop_words)
        words = expanded

    seen: set[str] = set()
    tokens = []
    for word in words:
        stemmed = _stem(word, language)
        if stemmed and stemmed not in seen:
            seen.add(stemmed)
            tokens.append(stemmed)
    return tokens


def normalize(text: str, language: str, expand_synonyms: bool = False) -> str:
    if language not in SUPPORTED_LANGUAGES:
        return text.strip()
    return " ".join(tokenize(text, language, expand_synonyms))


def common_terms(language: str) -> list[str]:
    return list(COMMON_TERMS.get(language, COMMON_TERMS["en"]))
