"""Differential diagnosis from reported symptoms.

Rule evaluation, symptom-cluster matching and an always-on semantic search over
the condition catalogue are merged into one scored list of conditions, then
checked for red flags, risk and follow-up recommendations. This is heuristic
decision support, not a diagnostic device.
"""

import logging
from dataclasses import dataclass

from mediscore.config import EngineSettings, engine_settings
from mediscore.errors import NormalizationFailure, RuleEvaluationError
from mediscore.models.diagnosis import (
    DiagnosisRecommendations,
    DiagnosisResult,
    DiagnosticRule,
    DifferentialDiagnosis,
    FollowUp,
    MedicalCondition,
    PatientProfile,
    PossibleCondition,
    RedFlags,
    RiskAssessment,
    Symptom,
    SymptomCluster,
    TreatmentSuggestions,
)
from mediscore.models.knowledge import Document, RankedResult, SearchQuery
from mediscore.services.catalogue import Catalogue, CatalogueStore
from mediscore.services.fanout import bounded_gather
from mediscore.services.field_extractor import RegexFieldExtractor
from mediscore.services.ranker import HybridRanker

logger = logging.getLogger(__name__)

CRITICAL_SYMPTOMS = {
    "en": [
        "chest pain", "difficulty breathing", "severe headache", "loss of consciousness",
        "severe abdominal pain", "high fever", "seizure", "stroke symptoms",
    ],
    "bn": [
        "বুকে ব্যথা", "শ্বাসকষ্ট", "তীব্র মাথাব্যথা", "জ্ঞান হারানো",
        "তীব্র পেটব্যথা", "উচ্চ জ্বর", "খিঁচুনি", "স্ট্রোকের লক্ষণ",
    ],
}

SEVERITY_SCORES = {"mild": 1, "moderate": 2, "severe": 3, "critical": 4}
URGENCY_SCORES = {"low": 1, "medium": 2, "high": 3, "critical": 4}
RED_FLAG_RANK = {"routine": 0, "urgent": 1, "immediate": 2}
RESULT_URGENCY = {"routine": "routine", "urgent": "urgent", "immediate": "emergency"}

MESSAGES = {
    "en": {
        "escalate": "Seek immediate medical attention or go to emergency department",
        "consult": "Consult with a healthcare provider",
        "temperature": "Monitor temperature regularly",
        "track": "Track symptom changes",
        "deterioration": "Close monitoring for any deterioration",
        "diary": "Keep a symptom diary",
        "hydrate": "Stay hydrated",
        "rest": "Get adequate rest",
        "medication": "Follow prescribed medication regimen",
        "diet": "Maintain healthy diet",
        "exercise": "Regular exercise",
        "smoking": "Stop smoking",
        "specialist": "Follow up with a {specialist}",
    },
    "bn": {
        "escalate": "অবিলম্বে জরুরি বিভাগে যান বা ডাক্তারের সাথে যোগাযোগ করুন",
        "consult": "একজন ডাক্তারের সাথে পরামর্শ করুন",
        "temperature": "নিয়মিত তাপমাত্রা পরিমাপ করুন",
        "track": "লক্ষণের পরিবর্তন লক্ষ্য করুন",
        "deterioration": "অবস্থার অবনতি হচ্ছে কিনা নিবিড়ভাবে পর্যবেক্ষণ করুন",
        "diary": "লক্ষণের একটি ডায়েরি রাখুন",
        "hydrate": "পর্যাপ্ত পানি পান করুন",
        "rest": "পর্যাপ্ত বিশ্রাম নিন",
        "medication": "নির্ধারিত ওষুধ নিয়মিত সেবন করুন",
        "diet": "স্বাস্থ্যকর খাবার খান",
        "exercise": "নিয়মিত ব্যায়াম করুন",
        "smoking": "ধূমপান ত্যাগ করুন",
        "specialist": "{specialist} এর সাথে ফলো-আপ করুন",
    },
}

FEVER_TERMS = ("fever", "জ্বর")
CHEST_TERMS = ("chest", "বুক")


def _contains_either(a: str, b: str) -> bool:
    return a in b or b in a


def _symptom_has(names: list[str], term: str) -> bool:
    """Symptom names are matched by case-insensitive containment of the rule term."""
    needle = term.casefold()
    return any(needle in name for name in names)


@dataclass
class RuleOutcome:
    rule: DiagnosticRule
    condition: MedicalCondition
    fired: bool
    score: float = 0.0
    excluded: bool = False


def match_clusters(symptoms: list[Symptom], clusters: tuple[SymptomCluster, ...]) -> list[tuple[SymptomCluster, float]]:
    names = [s.name.casefold() for s in symptoms]
    matched_clusters = []
    for cluster in clusters:
        if not cluster.symptoms:
            continue
        matched = [
            cs for cs in cluster.symptoms
            if any(_contains_either(name, cs.casefold()) for name in names)
        ]
        if len(matched) >= 2:
            matched_clusters.append((cluster, len(matched) / len(cluster.symptoms)))
    return matched_clusters


def _risk_factor_matches(rule: DiagnosticRule, profile: PatientProfile | None) -> int:
    if profile is None:
        return 0
    history = [h.casefold() for h in profile.medical_history if h.strip()]
    count = 0
    for factor in rule.risk_factors:
        needle = factor.casefold()
        if any(_contains_either(needle, h) for h in history):
            count += 1
        elif needle == "smoking" and profile.lifestyle.smoking:
            count += 1
    return count


def evaluate_rule(
    rule: DiagnosticRule,
    names: list[str],
    profile: PatientProfile | None,
    catalogue: Catalogue,
    settings: EngineSettings,
) -> RuleOutcome:
    condition = catalogue.conditions.get(rule.condition) or catalogue.condition_by_name(rule.condition)
    if condition is None:
        raise RuleEvaluationError(f"rule {rule.id} names unknown condition {rule.condition!r}")
    if not rule.required_symptoms and not rule.optional_symptoms:
        raise RuleEvaluationError(f"rule {rule.id} lists no symptoms")
    if rule.minimum_symptoms < 1 or rule.confidence_weight < 0:
        raise RuleEvaluationError(f"rule {rule.id} has invalid thresholds")

    required = sum(1 for term in rule.required_symptoms if _symptom_has(names, term))
    if required < len(rule.required_symptoms):
        return RuleOutcome(rule, condition, fired=False)
    if any(_symptom_has(names, term) for term in rule.excluding_symptoms):
        return RuleOutcome(rule, condition, fired=False, excluded=True)

    optional = sum(1 for term in rule.optional_symptoms if _symptom_has(names, term))
    if required + optional < rule.minimum_symptoms:
        return RuleOutcome(rule, condition, fired=False)

    score = (2 * required + optional) * rule.confidence_weight
    if profile is not None:
        if rule.age_range is not None and not (rule.age_range.min <= profile.age <= rule.age_range.max):
            score *= settings.age_mismatch_factor
        if rule.gender not in (None, "any") and profile.gender != rule.gender:
            score *= settings.gender_mismatch_factor
    score += settings.risk_factor_bonus * _risk_factor_matches(rule, profile)
    return RuleOutcome(rule, condition, fired=True, score=score)


class DiagnosisEngine:
    def __init__(
        self,
        ranker: HybridRanker,
        store: CatalogueStore,
        extractor: RegexFieldExtractor | None = None,
        settings: EngineSettings | None = None,
    ) -> None:
        self.ranker = ranker
        self.store = store
        self.extractor = extractor or RegexFieldExtractor()
        self.settings = settings or engine_settings()

    @staticmethod
    def _best_match(symptom: Symptom, results: list[RankedResult]) -> Document:
        if not results:
            raise NormalizationFailure(f"No catalogue match for symptom {symptom.name!r}")
        return results[0].document

    async def _normalize_symptom(self, symptom: Symptom, language: str) -> tuple[Symptom, bool, bool]:
        """Returns (symptom, verified, degraded)."""
        query = SearchQuery(
            text=symptom.name,
            language=language,
            mode="semantic",
            categories=["symptom"],
            limit=1,
            threshold=self.settings.symptom_match_threshold,
        )
        results, degraded = await self.ranker.search_with_status(query)
        try:
            doc = self._best_match(symptom, results)
        except NormalizationFailure as e:
            logger.info("%s, keeping reported name", e)
            return symptom, False, degraded

        associated = list(symptom.associated_symptoms)
        for item in self.extractor.associated_symptoms(doc.content):
            if item not in associated:
                associated.append(item)
        triggers = list(symptom.triggers)
        for item in self.extractor.triggers(doc.content):
            if item not in triggers:
                triggers.append(item)
        normalized = symptom.model_copy(update={
            "name": doc.title or symptom.name,
            "associated_symptoms": associated,
            "triggers": triggers,
        })
        return normalized, True, degraded

    async def _semantic_conditions(
        self, symptoms: list[Symptom], language: str, catalogue: Catalogue,
    ) -> tuple[list[tuple[MedicalCondition, float]], bool]:
        query = SearchQuery(
            text=" ".join(s.name for s in symptoms),
            language=language,
            mode="semantic",
            categories=["disease"],
            limit=self.settings.condition_search_limit,
            threshold=self.settings.condition_search_threshold,
        )
        results, degraded = await self.ranker.search_with_status(query)
        found = []
        for result in results:
            doc = result.document
            condition = catalogue.conditions.get(doc.id) or catalogue.condition_by_name(doc.title)
            if condition is None:
                condition = await self.extractor.condition_from_document(doc)
            found.append((condition, result.ranking_factors.final_score))
        return found, degraded

    async def analyze(
        self,
        symptoms: list[Symptom],
        patient_profile: PatientProfile | None = None,
        language: str = "en",
    ) -> DiagnosisResult:
        catalogue = self.store.current
        settings = self.settings
        messages = MESSAGES.get(language, MESSAGES["en"])

        outcomes = await bounded_gather(
            (self._normalize_symptom(s, language) for s in symptoms), settings.fanout_limit,
        )
        normalized = [symptom for symptom, _, _ in outcomes]
        unverified = [original.name for original, (_, verified, _) in zip(symptoms, outcomes) if not verified]
        degraded = any(d for _, _, d in outcomes)

        names = [s.name.casefold() for s in normalized]
        scores: dict[str, float] = {}
        conditions: dict[str, MedicalCondition] = {}
        ruled_out: dict[str, MedicalCondition] = {}

        def contribute(condition: MedicalCondition, amount: float) -> None:
            conditions.setdefault(condition.id, condition)
            scores[condition.id] = scores.get(condition.id, 0.0) + amount

        for rule in catalogue.rules:
            try:
                outcome = evaluate_rule(rule, names, patient_profile, catalogue, settings)
            except RuleEvaluationError as e:
                logger.warning("Skipping diagnostic rule: %s", e)
                continue
            if outcome.fired:
                contribute(outcome.condition, outcome.score)
            elif outcome.excluded:
                ruled_out.setdefault(outcome.condition.id, outcome.condition)

        if normalized:
            semantic, semantic_degraded = await self._semantic_conditions(normalized, language, catalogue)
            degraded = degraded or semantic_degraded
            for condition, score in semantic:
                contribute(condition, score)

        for cluster, confidence in match_clusters(normalized, catalogue.clusters):
            for name in cluster.common_conditions:
                condition = catalogue.condition_by_name(name)
                if condition is None:
                    logger.debug("Cluster %s references unknown condition %s", cluster.id, name)
                    continue
                contribute(condition, confidence * settings.cluster_weight)

        ranked = sorted(scores, key=lambda cid: scores[cid], reverse=True)
        primary = [conditions[cid] for cid in ranked[: settings.primary_limit]]
        secondary = [
            conditions[cid] for cid in ranked[settings.primary_limit: settings.primary_limit + settings.secondary_limit]
        ]
        for cid in ranked:
            ruled_out.pop(cid, None)

        red_flags = self._red_flags(normalized, primary)
        risk = self._risk(normalized, primary, patient_profile)

        confidence = 0.0
        if primary:
            avg_urgency = sum(URGENCY_SCORES[c.urgency_level] for c in primary) / len(primary)
            confidence = 0.7 * (1 / len(primary)) + 0.3 * (avg_urgency / 4)
        if degraded:
            confidence *= settings.degraded_confidence_factor

        escalate = red_flags.urgency_level == "immediate" or any(
            s.severity in ("severe", "critical") for s in normalized
        )

        result = DiagnosisResult(
            symptoms=normalized,
            possible_conditions=[self._possible(c, names) for c in primary + secondary],
            recommendations=self._recommendations(primary, patient_profile, escalate, messages),
            urgency=RESULT_URGENCY[red_flags.urgency_level],
            diagnostic_confidence=round(min(1.0, confidence), 4),
            differential_diagnosis=DifferentialDiagnosis(
                primary=primary, secondary=secondary, ruled_out=list(ruled_out.values()),
            ),
            red_flags=red_flags,
            follow_up=self._follow_up(normalized, primary, escalate, messages),
            risk_assessment=risk,
            treatment_suggestions=self._treatments(primary, messages),
            unverified_symptoms=unverified,
            degraded=degraded,
            language=language,
        )
        logger.info(
            "Diagnosis: %d symptoms, %d primary, urgency=%s, confidence=%.2f%s",
            len(normalized), len(primary), result.urgency, result.diagnostic_confidence,
            " (degraded)" if degraded else "",
        )
        return result

    def _red_flags(self, symptoms: list[Symptom], primary: list[MedicalCondition]) -> RedFlags:
        flags: list[str] = []
        level = "routine"

        def escalate(to: str) -> None:
            nonlocal level
            if RED_FLAG_RANK[to] > RED_FLAG_RANK[level]:
                level = to

        critical_terms = [t for terms in CRITICAL_SYMPTOMS.values() for t in terms]
        for symptom in symptoms:
            name = symptom.name.casefold()
            if any(term in name for term in critical_terms):
                flags.append(f"Critical symptom: {symptom.name}")
                escalate("immediate")
            if symptom.severity in ("severe", "critical"):
                flags.append(f"{symptom.severity.capitalize()} symptom: {symptom.name}")
                escalate("urgent")

        for condition in primary:
            if condition.category == "emergency":
                flags.append(f"Emergency condition suspected: {condition.name}")
                escalate("immediate")
            elif condition.urgency_level in ("high", "critical"):
                flags.append(f"High-urgency condition: {condition.name}")
                escalate("urgent")

        return RedFlags(present=bool(flags), flags=flags, urgency_level=level)

    def _risk(
        self, symptoms: list[Symptom], primary: list[MedicalCondition], profile: PatientProfile | None,
    ) -> RiskAssessment:
        factors: list[str] = []
        avg_severity = (
            sum(SEVERITY_SCORES[s.severity] for s in symptoms) / len(symptoms) if symptoms else 0.0
        )
        emergencies = sum(1 for c in primary if c.category == "emergency")
        score = 10 * avg_severity + 20 * emergencies
        if avg_severity >= 3:
            factors.append("High symptom severity")
        if emergencies:
            factors.append("Emergency condition suspected")
        if profile is not None:
            if profile.age > self.settings.elderly_age:
                score += 10
                factors.append("Advanced age")
            if len(profile.medical_history) > 3:
                score += 5
                factors.append("Extensive medical history")
            if profile.lifestyle.smoking:
                score += 5
                factors.append("Smoking")
        score = min(100.0, score)

        if score >= 80:
            overall = "critical"
        elif score >= 60:
            overall = "high"
        elif score >= 30:
            overall = "medium"
        else:
            overall = "low"
        return RiskAssessment(overall=overall, factors=factors, score=round(score, 2))

    @staticmethod
    def _possible(condition: MedicalCondition, names: list[str]) -> PossibleCondition:
        probability = 0.0
        if condition.common_symptoms:
            matched = sum(1 for cs in condition.common_symptoms if _symptom_has(names, cs))
            probability = matched / len(condition.common_symptoms) * condition.prevalence
        return PossibleCondition(
            condition=condition,
            probability=round(probability, 4),
            description=condition.description,
            severity=condition.urgency_level,
        )

    @staticmethod
    def _recommendations(
        primary: list[MedicalCondition], profile: PatientProfile | None, escalate: bool, messages: dict,
    ) -> DiagnosisRecommendations:
        specialists = _dedupe(c.specialty_required for c in primary if c.specialty_required)
        lifestyle = [messages["diet"], messages["exercise"]]
        if profile is not None and profile.lifestyle.smoking:
            lifestyle.insert(0, messages["smoking"])
        return DiagnosisRecommendations(
            immediate=[messages["escalate"] if escalate else messages["consult"]],
            short_term=[messages["track"], messages["diary"], messages["hydrate"]],
            long_term=[messages["specialist"].format(specialist=s) for s in specialists],
            lifestyle=lifestyle,
        )

    @staticmethod
    def _follow_up(
        symptoms: list[Symptom], primary: list[MedicalCondition], escalate: bool, messages: dict,
    ) -> FollowUp:
        names = [s.name.casefold() for s in symptoms]
        tests = ["Complete Blood Count (CBC)"]
        if any(c.category == "emergency" for c in primary):
            tests += ["ECG", "Chest X-ray", "Basic Metabolic Panel"]
        if any(term in name for name in names for term in CHEST_TERMS):
            tests += ["ECG", "Cardiac enzymes"]
        has_fever = any(term in name for name in names for term in FEVER_TERMS)
        if has_fever:
            tests += ["Blood culture", "Urinalysis"]

        monitoring = []
        if has_fever:
            monitoring.append(messages["temperature"])
        monitoring.append(messages["track"])
        if any(c.urgency_level in ("high", "critical") for c in primary):
            monitoring.append(messages["deterioration"])

        return FollowUp(
            timeframe="immediate" if escalate else "1-2 weeks",
            tests=_dedupe(tests)[:5],
            specialists=_dedupe(c.specialty_required for c in primary if c.specialty_required),
            monitoring=_dedupe(monitoring),
        )

    @staticmethod
    def _treatments(primary: list[MedicalCondition], messages: dict) -> TreatmentSuggestions:
        if not primary:
            return TreatmentSuggestions()
        long_term = [f"Regular follow-up for {c.name}" for c in primary if c.category == "chronic"]
        return TreatmentSuggestions(
            immediate=[messages["rest"]],
            short_term=[messages["medication"]],
            long_term=long_term,
            lifestyle=[messages["diet"], messages["exercise"]],
        )


def _dedupe(values) -> list[str]:
    seen: set[str] = set()
    out = []
    for value in values:
        key = value.casefold()
        if key not in seen:
            seen.add(key)
            out.append(value)
    return out
