"""Structured field extraction from retrieved free text.

Ranking and scoring never parse document text directly; they only consume what
an extractor returns. ``RegexFieldExtractor`` is deterministic and always
available. ``LLMFieldExtractor`` asks the configured LLM for the same fields and
falls back to the regex extractor whenever the provider is unavailable or fails.
"""

import logging
import re

from mediscore.config import FIELD_EXTRACTOR
from mediscore.models.diagnosis import MedicalCondition
from mediscore.models.extraction import ConditionFields, DrugFields, InteractionFields
from mediscore.models.interaction import Drug, Interaction, ManagementStrategy
from mediscore.models.knowledge import Document
from mediscore.services.llm import LLMClient, get_llm_client

logger = logging.getLogger(__name__)

_GENERIC_RE = re.compile(r"generic name[:\s]+([^.,;\n)]+)", re.IGNORECASE)
_BRANDS_RE = re.compile(r"brand names?[:\s]+([^.\n;]+)", re.IGNORECASE)
_THERAPEUTIC_CLASS_RE = re.compile(r"(?:therapeutic class|drug class|class)[:\s]+([^.,;\n]+)", re.IGNORECASE)
_INGREDIENTS_RE = re.compile(r"active ingredients?[:\s]+([^.\n;]+)", re.IGNORECASE)
_ROUTE_RE = re.compile(r"route[:\s]+([a-z]+)", re.IGNORECASE)
_MECHANISM_RE = re.compile(r"mechanism(?: of action)?[:\s]+([^.\n]+)", re.IGNORECASE)
_CONTRAINDICATIONS_RE = re.compile(r"contraindications?[:\s]+([^.\n;]+)", re.IGNORECASE)
_SIDE_EFFECTS_RE = re.compile(r"side effects?[:\s]+([^.\n;]+)", re.IGNORECASE)
_SYMPTOMS_RE = re.compile(r"(?:common )?symptoms?:\s*([^.\n;]+)", re.IGNORECASE)
_RISK_FACTORS_RE = re.compile(r"risk factors?:\s*([^.\n;]+)", re.IGNORECASE)

_MONITORING_RE = re.compile(r"(?:monitor|watch for|check)\s*:?\s+([^.\n;]+)", re.IGNORECASE)
_TIMEFRAME_RE = re.compile(r"(?:within|after|over)\s+(\d+\s*(?:minutes?|hours?|days?|weeks?)|days|hours|weeks)", re.IGNORECASE)
_EFFECTS_RE = re.compile(r"(?:may cause|can cause|results in|leads to|increases?)\s+([^.\n;]+)", re.IGNORECASE)
_RECOMMENDATION_RE = re.compile(r"(?:should|recommended to|advised to)\s+([^.\n;]+)", re.IGNORECASE)
_ASSOCIATED_RE = re.compile(r"(?:associated with|accompanied by|along with)\s+([^.\n;]+)", re.IGNORECASE)
_TRIGGERS_RE = re.compile(r"(?:triggered by|caused by|due to)\s+([^.\n;]+)", re.IGNORECASE)
_SEVERITY_TAG_RE = re.compile(r"^severity:(minor|moderate|major|contraindicated)$", re.IGNORECASE)

# Ordered from most to least severe; first hit wins
SEVERITY_KEYWORDS = (
    ("contraindicated", ("contraindicated", "avoid", "do not combine", "নিষিদ্ধ", "এড়িয়ে চলুন")),
    ("major", ("major", "serious", "severe", "গুরুতর", "মারাত্মক")),
    ("moderate", ("moderate", "মাঝারি")),
)

ONSET_KEYWORDS = (
    ("rapid", ("rapid", "immediate", "quickly", "দ্রুত")),
    ("delayed", ("delayed", "gradual", "over time", "ধীরে")),
)

CLINICAL_SIGNIFICANCE = {"minor": 3, "moderate": 6, "major": 8, "contraindicated": 10}

MANAGEMENT_BY_SEVERITY = {
    "contraindicated": ManagementStrategy(avoid_combination=True, alternative_recommended=True),
    "major": ManagementStrategy(
        monitoring_required=True, dosage_adjustment=True, timing_adjustment=True, alternative_recommended=True,
    ),
    "moderate": ManagementStrategy(monitoring_required=True, timing_adjustment=True),
    "minor": ManagementStrategy(),
}


def _split_list(value: str) -> list[str]:
    parts = re.split(r",|\band\b|/", value)
    return [p.strip(" :-") for p in parts if p.strip(" :-")]


def _first(pattern: re.Pattern, text: str) -> str:
    match = pattern.search(text)
    return match.group(1).strip() if match else ""


def _all(pattern: re.Pattern, text: str, limit: int = 5) -> list[str]:
    found: list[str] = []
    for match in pattern.finditer(text):
        value = match.group(1).strip()
        if value and value not in found:
            found.append(value)
        if len(found) >= limit:
            break
    return found


def classify_severity(text: str, tags: list[str] | None = None) -> str:
    """Structured ``severity:<level>`` tags win over keyword scanning."""
    for tag in tags or []:
        match = _SEVERITY_TAG_RE.match(tag.strip())
        if match:
            return match.group(1).lower()
    lowered = text.lower()
    for severity, keywords in SEVERITY_KEYWORDS:
        if any(k in lowered for k in keywords):
            return severity
    return "minor"


def classify_onset(text: str) -> str:
    lowered = text.lower()
    for onset, keywords in ONSET_KEYWORDS:
        if any(k in lowered for k in keywords):
            return onset
    return "variable"


def documentation_quality(reliability: float) -> str:
    if reliability >= 0.9:
        return "excellent"
    if reliability >= 0.7:
        return "good"
    if reliability >= 0.5:
        return "fair"
    return "poor"


def infer_condition_category(text: str) -> str:
    lowered = text.lower()
    if "emergency" in lowered or "urgent" in lowered:
        return "emergency"
    if "chronic" in lowered or "long-term" in lowered:
        return "chronic"
    if "acute" in lowered or "sudden" in lowered:
        return "acute"
    return "routine"


def infer_urgency(text: str) -> str:
    lowered = text.lower()
    if "life-threatening" in lowered or "critical" in lowered:
        return "critical"
    if "urgent" in lowered or "immediate" in lowered:
        return "high"
    if "moderate" in lowered or "significant" in lowered:
        return "medium"
    return "low"


def _doc_text(doc: Document) -> str:
    return f"{doc.title}. {doc.content}"


class RegexFieldExtractor:
    def associated_symptoms(self, text: str, limit: int = 3) -> list[str]:
        found: list[str] = []
        for chunk in _all(_ASSOCIATED_RE, text):
            found.extend(s for s in _split_list(chunk) if s not in found)
        return found[:limit]

    def triggers(self, text: str, limit: int = 3) -> list[str]:
        found: list[str] = []
        for chunk in _all(_TRIGGERS_RE, text):
            found.extend(s for s in _split_list(chunk) if s not in found)
        return found[:limit]

    def drug_fields(self, name: str, doc: Document) -> DrugFields:
        text = _doc_text(doc)
        route = _first(_ROUTE_RE, text).lower()
        if not route:
            lowered = text.lower()
            route = next((r for r in ("intravenous", "topical", "inhaled", "oral") if r in lowered), "oral")
        return DrugFields(
            generic_name=_first(_GENERIC_RE, text) or name,
            brand_names=_split_list(_first(_BRANDS_RE, text)),
            active_ingredients=_split_list(_first(_INGREDIENTS_RE, text)),
            contraindications=_split_list(_first(_CONTRAINDICATIONS_RE, text)),
            side_effects=_split_list(_first(_SIDE_EFFECTS_RE, text)),
            route=route,
            therapeutic_class=_first(_THERAPEUTIC_CLASS_RE, text),
            mechanism=_first(_MECHANISM_RE, text),
        )

    def condition_fields(self, doc: Document) -> ConditionFields:
        text = _doc_text(doc)
        symptoms = _split_list(_first(_SYMPTOMS_RE, text)) or [t for t in doc.metadata.tags if ":" not in t]
        sentences = [s.strip() for s in doc.content.split(".") if s.strip()]
        return ConditionFields(
            description=sentences[0] if sentences else doc.title,
            category=infer_condition_category(text),
            urgency_level=infer_urgency(text),
            common_symptoms=symptoms,
            risk_factors=_split_list(_first(_RISK_FACTORS_RE, text)),
        )

    def interaction_fields(self, doc: Document) -> InteractionFields:
        text = _doc_text(doc)
        return InteractionFields(
            severity=classify_severity(text, doc.metadata.tags),
            mechanism=_first(_MECHANISM_RE, text),
            onset=classify_onset(text),
            monitoring_parameters=[p for chunk in _all(_MONITORING_RE, text) for p in _split_list(chunk)],
            effects=_all(_EFFECTS_RE, text),
            recommendations=_all(_RECOMMENDATION_RE, text),
        )

    async def extract_drug(self, name: str, doc: Document) -> DrugFields:
        return self.drug_fields(name, doc)

    async def extract_condition(self, doc: Document) -> ConditionFields:
        return self.condition_fields(doc)

    async def extract_interaction(self, doc: Document) -> InteractionFields:
        return self.interaction_fields(doc)

    async def drug_from_document(self, name: str, doc: Document) -> Drug:
        fields = await self.extract_drug(name, doc)
        return Drug(
            id=doc.id,
            name=name,
            verified=doc.metadata.reliability >= 0.5,
            **fields.model_dump(),
        )

    async def condition_from_document(self, doc: Document) -> MedicalCondition:
        fields = await self.extract_condition(doc)
        return MedicalCondition(id=doc.id, name=doc.title, prevalence=0.1, **fields.model_dump())

    async def interaction_from_document(self, drug1: str, drug2: str, doc: Document) -> Interaction:
        fields = await self.extract_interaction(doc)
        text = _doc_text(doc)
        severity = fields.severity
        # Structured tags override whatever was read from prose
        if any(_SEVERITY_TAG_RE.match(t.strip()) for t in doc.metadata.tags):
            severity = classify_severity("", doc.metadata.tags)
        return Interaction(
            id=f"{drug1}-{drug2}".casefold().replace(" ", "-"),
            drug1=drug1,
            drug2=drug2,
            category="drug-drug",
            severity=severity,
            description=doc.content.split(".")[0].strip() or doc.title,
            mechanism=fields.mechanism,
            onset=fields.onset,
            documentation=documentation_quality(doc.metadata.reliability),
            probability=0.7,
            clinical_significance=CLINICAL_SIGNIFICANCE[severity],
            management_strategy=MANAGEMENT_BY_SEVERITY[severity].model_copy(),
            monitoring_parameters=fields.monitoring_parameters,
            timeframe=_first(_TIMEFRAME_RE, text),
            effects=fields.effects,
            recommendations=fields.recommendations,
            references=[doc.metadata.source] if doc.metadata.source else [],
        )


DRUG_PROMPT = """Extract structured drug information from the reference text.
Return JSON with keys: generic_name, brand_names, active_ingredients, contraindications,
side_effects, route, therapeutic_class, mechanism. Use empty values when the text is silent."""

CONDITION_PROMPT = """Extract structured condition information from the reference text.
Return JSON with keys: description (one sentence), category (acute|chronic|emergency|routine),
urgency_level (low|medium|high|critical), common_symptoms, risk_factors."""

INTERACTION_PROMPT = """Extract structured drug interaction information from the reference text.
Return JSON with keys: severity (minor|moderate|major|contraindicated), mechanism,
onset (rapid|delayed|variable), monitoring_parameters, effects, recommendations."""


class LLMFieldExtractor(RegexFieldExtractor):
    def __init__(self, client: LLMClient | None = None) -> None:
        self.client = client or get_llm_client()

    async def _generate(self, system: str, doc: Document, response_model):
        if not self.client.available():
            return None
        try:
            return await self.client.generate_json(
                system=system,
                user=f"Title: {doc.title}\n\n{doc.content}",
                response_model=response_model,
            )
        except Exception as e:
            logger.error("LLM field extraction failed for %s: %s", doc.id, e)
            return None

    async def extract_drug(self, name: str, doc: Document) -> DrugFields:
        fields = await self._generate(DRUG_PROMPT, doc, DrugFields)
        if fields is None:
            return self.drug_fields(name, doc)
        if not fields.generic_name:
            fields.generic_name = name
        return fields

    async def extract_condition(self, doc: Document) -> ConditionFields:
        fields = await self._generate(CONDITION_PROMPT, doc, ConditionFields)
        return fields if fields is not None else self.condition_fields(doc)

    async def extract_interaction(self, doc: Document) -> InteractionFields:
        fields = await self._generate(INTERACTION_PROMPT, doc, InteractionFields)
        return fields if fields is not None else self.interaction_fields(doc)


def build_field_extractor(kind: str = FIELD_EXTRACTOR) -> RegexFieldExtractor:
    if kind.lower() == "llm":
        client = get_llm_client()
        if client.available():
            logger.info("Using LLM field extractor (%s)", client.provider)
            return LLMFieldExtractor(client)
        logger.warning("FIELD_EXTRACTOR=llm but no LLM provider is configured, using regex extraction")
    return RegexFieldExtractor()
