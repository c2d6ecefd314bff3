class KnowledgeCoreError(Exception):
    """Base class for retrieval-and-scoring failures."""


class RetrievalUnavailable(KnowledgeCoreError):
    """Knowledge search or cache unreachable, failed, or timed out."""


class NormalizationFailure(KnowledgeCoreError):
    """A drug or symptom name could not be matched to a known entry."""


class RuleEvaluationError(KnowledgeCoreError):
    """A diagnostic rule definition is malformed."""


class CacheWriteFailure(KnowledgeCoreError):
    """A cache entry could not be written."""


class InvalidRequest(KnowledgeCoreError):
    """Boundary-level input validation failed."""
