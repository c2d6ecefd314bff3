"""Drug interaction checking and risk aggregation.

Resolves each requested drug, discovers pairwise, food, condition and allergy
interactions, then turns them into alerts, a per-category risk score, a safety
level and deduplicated recommendations.
"""

import asyncio
import itertools
import logging
import re
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from mediscore.config import CACHE_KEY_PREFIX, INTERACTION_CACHE_TTL, EngineSettings, engine_settings
from mediscore.errors import CacheWriteFailure, RetrievalUnavailable
from mediscore.models.interaction import (
    SEVERITY_ORDER,
    Drug,
    DrugAllergy,
    Interaction,
    InteractionAlert,
    InteractionCheckRequest,
    InteractionPatientProfile,
    InteractionRecommendations,
    InteractionResult,
    RiskBreakdown,
    RiskScore,
    SafetyProfile,
    severity_weight,
)
from mediscore.models.knowledge import SearchQuery
from mediscore.services.cache import CacheGateway
from mediscore.services.catalogue import Catalogue, CatalogueStore, pair_key
from mediscore.services.fanout import bounded_gather
from mediscore.services.field_extractor import CLINICAL_SIGNIFICANCE, MANAGEMENT_BY_SEVERITY, RegexFieldExtractor
from mediscore.services.ranker import HybridRanker

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

ALERT_SEVERITY = {"minor": "low", "moderate": "medium", "major": "high", "contraindicated": "critical"}
ALERT_URGENCY = {"contraindicated": "immediate", "major": "urgent"}
IMPAIRED = ("moderate", "severe")

MESSAGES = {
    "en": {
        "avoid": "Avoid combination of {a} and {b}",
        "avoid_allergy": "Do not administer {a}: documented allergy to {b}",
        "consult": "Consult healthcare provider about {a} and {b} combination",
        "monitor": "Monitor for side effects of {a} with {b}",
        "share_list": "Tell every healthcare provider about all medicines you take",
        "allergy_card": "Carry a record of your drug allergies",
    },
    "bn": {
        "avoid": "{a} এবং {b} একসাথে সেবন করবেন না",
        "avoid_allergy": "{a} দেবেন না: {b} এ অ্যালার্জি আছে",
        "consult": "{a} এবং {b} একসাথে সেবনের আগে ডাক্তারের সাথে পরামর্শ করুন",
        "monitor": "{b} এর সাথে {a} এর পার্শ্বপ্রতিক্রিয়া লক্ষ্য করুন",
        "share_list": "আপনার সব ওষুধের কথা ডাক্তারকে জানান",
        "allergy_card": "আপনার ওষুধের অ্যালার্জির তালিকা সাথে রাখুন",
    },
}


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.casefold()).strip("-") or "item"


def _contains_either(a: str, b: str) -> bool:
    return bool(a) and bool(b) and (a in b or b in a)


def _drug_names(drug: Drug) -> set[str]:
    return set(drug.aliases()) | {i.casefold() for i in drug.active_ingredients if i}


def allergy_match(drug: Drug, allergy: DrugAllergy, catalogue: Catalogue) -> str | None:
    """Returns "direct", "cross" or None."""
    tokens = {t.strip().casefold() for t in (allergy.drug_name, allergy.allergen) if t and t.strip()}
    if not tokens:
        return None
    names = _drug_names(drug)
    if tokens & names:
        return "direct"

    related = {r.casefold() for r in allergy.cross_reactivity}
    for token in tokens:
        related |= {r.casefold() for r in catalogue.cross_reactivity.get(token, ())}
    drug_class = drug.therapeutic_class.casefold()
    if related & names or (drug_class and drug_class in related):
        return "cross"
    return None


def _interaction(
    interaction_id: str,
    drug1: str,
    drug2: str,
    category: str,
    severity: str,
    probability: float,
    description: str,
    **extra,
) -> Interaction:
    return Interaction(
        id=interaction_id,
        drug1=drug1,
        drug2=drug2,
        category=category,
        severity=severity,
        description=description,
        probability=probability,
        clinical_significance=CLINICAL_SIGNIFICANCE[severity],
        management_strategy=MANAGEMENT_BY_SEVERITY[severity].model_copy(),
        **extra,
    )


class InteractionEngine:
    def __init__(
        self,
        ranker: HybridRanker,
        store: CatalogueStore,
        cache: CacheGateway | None = None,
        extractor: RegexFieldExtractor | None = None,
        settings: EngineSettings | None = None,
        cache_ttl: int = INTERACTION_CACHE_TTL,
    ) -> None:
        self.ranker = ranker
        self.store = store
        self.cache = cache
        self.extractor = extractor or RegexFieldExtractor()
        self.settings = settings or engine_settings()
        self.cache_ttl = cache_ttl

    # --- cache helpers ---

    async def _cache_get(self, key: str) -> bytes | None:
        if self.cache is None:
            return None
        try:
            return await self.cache.get(key)
        except (RetrievalUnavailable, asyncio.TimeoutError) as e:
            logger.warning("Cache read failed for %s: %s", key, e)
            return None

    async def _cached_model(self, key: str, model: type[M]) -> M | None:
        """Cached record for ``key``, or None when absent or unreadable."""
        cached = await self._cache_get(key)
        if not cached:
            return None
        try:
            return model.model_validate_json(cached)
        except ValidationError as e:
            logger.warning("Discarding unreadable cache entry %s: %s", key, e)
            return None

    async def _cache_set(self, key: str, value: bytes) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.set_with_expiry(key, value, self.cache_ttl)
        except (CacheWriteFailure, asyncio.TimeoutError) as e:
            logger.warning("Cache write failed for %s: %s", key, e)

    # --- step 1 and 2: drug resolution ---

    async def _resolve_drug(self, name: str, language: str) -> tuple[Drug, bool]:
        """Returns (drug, degraded). Unresolvable names become unverified placeholders."""
        catalogue = self.store.current
        known = catalogue.find_drug(name)
        if known is not None:
            return known, False

        results, degraded = await self.ranker.search_with_status(SearchQuery(
            text=name,
            language=language,
            mode="semantic",
            categories=["drug"],
            limit=1,
            threshold=self.settings.drug_match_threshold,
        ))
        resolved_name = name.strip()
        if results:
            match = results[0].document.title.strip()
            known = self.store.current.find_drug(match)
            if known is not None:
                return known, degraded
            resolved_name = match or resolved_name

        cache_key = f"{CACHE_KEY_PREFIX}:drug:{resolved_name.casefold()}"
        drug = await self._cached_model(cache_key, Drug)
        if drug is not None:
            self.store.add_drug(drug)
            return drug, degraded

        fetched, fetch_degraded = await self.ranker.search_with_status(SearchQuery(
            text=f"{resolved_name} drug information pharmacology",
            language=language,
            mode="hybrid",
            categories=["drug"],
            limit=3,
        ))
        degraded = degraded or fetch_degraded
        needle = resolved_name.casefold()
        for result in fetched:
            doc = result.document
            if needle in doc.title.casefold() or needle in doc.content.casefold():
                drug = await self.extractor.drug_from_document(resolved_name, doc)
                await self._cache_set(cache_key, drug.model_dump_json().encode("utf-8"))
                self.store.add_drug(drug)
                return drug, degraded

        logger.info("Drug %r could not be verified", name)
        placeholder = Drug(
            id=f"unverified-{_slug(name)}",
            name=name.strip(),
            generic_name=name.strip(),
            verified=False,
        )
        return placeholder, degraded

    # --- step 3: pairwise interactions ---

    async def _pair_interaction(self, first: Drug, second: Drug, language: str) -> tuple[Interaction | None, bool]:
        catalogue = self.store.current
        for a, b in itertools.product(
            [first.name, first.generic_name], [second.name, second.generic_name],
        ):
            if a and b:
                known = catalogue.interaction_for(a, b)
                if known is not None:
                    return known, False

        key = pair_key(first.name, second.name)
        cache_key = f"{CACHE_KEY_PREFIX}:interaction:{key}"
        interaction = await self._cached_model(cache_key, Interaction)
        if interaction is not None:
            self.store.add_interaction(interaction)
            return interaction, False

        results, degraded = await self.ranker.search_with_status(SearchQuery(
            text=f"{first.name} {second.name} drug interaction contraindication",
            language=language,
            mode="hybrid",
            categories=["drug"],
            limit=self.settings.interaction_search_limit,
            threshold=self.settings.interaction_search_threshold,
        ))
        a, b = first.name.casefold(), second.name.casefold()
        for result in results:
            doc = result.document
            text = f"{doc.title} {doc.content}".casefold()
            if a in text and b in text:
                interaction = await self.extractor.interaction_from_document(first.name, second.name, doc)
                await self._cache_set(cache_key, interaction.model_dump_json().encode("utf-8"))
                self.store.add_interaction(interaction)
                return interaction, degraded
        return None, degraded

    # --- step 4: contextual interactions ---

    @staticmethod
    def _food_interactions(drugs: list[Drug], catalogue: Catalogue) -> list[Interaction]:
        found = []
        for drug in drugs:
            for item in catalogue.foods_for(drug):
                found.append(_interaction(
                    f"food-{_slug(drug.name)}-{_slug(item.food)}",
                    drug.name,
                    item.food,
                    "drug-food",
                    item.severity,
                    0.6,
                    item.description or f"{drug.name} interacts with {item.food}",
                    recommendations=[item.recommendation] if item.recommendation else [],
                    patient_education=[item.recommendation] if item.recommendation else [],
                ))
        return found

    @staticmethod
    def _condition_interactions(
        drugs: list[Drug], profile: InteractionPatientProfile, catalogue: Catalogue,
    ) -> list[Interaction]:
        found = []
        for drug in drugs:
            for condition in profile.conditions:
                needle = condition.strip().casefold()
                if not needle:
                    continue
                table_hit = next(
                    (c for c in catalogue.conditions_for(drug) if _contains_either(needle, c.condition.casefold())),
                    None,
                )
                contraindication = next(
                    (c for c in drug.contraindications if _contains_either(needle, c.casefold())),
                    None,
                )
                if table_hit is not None:
                    severity = table_hit.severity
                    description = table_hit.description or f"{drug.name} may worsen {condition}"
                    recommendations = [table_hit.recommendation] if table_hit.recommendation else []
                elif contraindication is not None:
                    severity = "major"
                    description = f"{drug.name} is contraindicated in {contraindication.lower()}"
                    recommendations = []
                else:
                    continue
                found.append(_interaction(
                    f"condition-{_slug(drug.name)}-{_slug(condition)}",
                    drug.name,
                    condition,
                    "drug-condition",
                    severity,
                    0.8,
                    description,
                    recommendations=recommendations,
                ))
        return found

    @staticmethod
    def _allergy_interactions(
        drugs: list[Drug], profile: InteractionPatientProfile, catalogue: Catalogue,
    ) -> list[Interaction]:
        found = []
        for drug in drugs:
            for allergy in profile.allergies:
                kind = allergy_match(drug, allergy, catalogue)
                if kind is None:
                    continue
                allergen = allergy.allergen or allergy.drug_name
                if kind == "direct":
                    found.append(_interaction(
                        f"allergy-{_slug(drug.name)}-{_slug(allergen)}",
                        drug.name,
                        allergen,
                        "drug-allergy",
                        "contraindicated",
                        1.0,
                        f"Patient has a documented allergy to {allergen}",
                        onset="rapid",
                        effects=list(allergy.symptoms),
                    ))
                else:
                    found.append(_interaction(
                        f"cross-{_slug(drug.name)}-{_slug(allergen)}",
                        drug.name,
                        allergen,
                        "drug-allergy",
                        "major",
                        0.7,
                        f"Possible cross-reactivity between {allergen} and {drug.name}",
                        onset="rapid",
                        monitoring_parameters=["Signs of allergic reaction"],
                    ))
        return found

    # --- steps 5 to 8: aggregation ---

    @staticmethod
    def _alert(interaction: Interaction, messages: dict) -> InteractionAlert:
        severity = interaction.severity
        if interaction.recommendations:
            recommendation = interaction.recommendations[0]
        elif severity == "contraindicated":
            key = "avoid_allergy" if interaction.category == "drug-allergy" else "avoid"
            recommendation = messages[key].format(a=interaction.drug1, b=interaction.drug2)
        elif severity == "major":
            recommendation = messages["consult"].format(a=interaction.drug1, b=interaction.drug2)
        else:
            recommendation = messages["monitor"].format(a=interaction.drug1, b=interaction.drug2)
        return InteractionAlert(
            id=f"alert-{interaction.id}",
            type=interaction.category,
            severity=ALERT_SEVERITY[severity],
            title=f"{severity.capitalize()} {interaction.category} interaction: {interaction.drug1} + {interaction.drug2}",
            description=interaction.description,
            recommendation=recommendation,
            urgency=ALERT_URGENCY.get(severity, "routine"),
            dismissible=severity != "contraindicated",
        )

    def _risk(self, interactions: list[Interaction], profile: InteractionPatientProfile | None) -> RiskScore:
        by_category = {"drug-drug": 0.0, "drug-food": 0.0, "drug-condition": 0.0, "drug-allergy": 0.0}
        for interaction in interactions:
            weight = severity_weight(interaction.severity)
            by_category[interaction.category] = max(by_category[interaction.category], weight)

        if profile is not None:
            if profile.age > self.settings.elderly_age:
                by_category["drug-drug"] *= self.settings.elderly_drug_drug_factor
                by_category["drug-condition"] *= self.settings.elderly_drug_condition_factor
            for function in (profile.kidney_function, profile.liver_function):
                if function in IMPAIRED:
                    by_category["drug-drug"] *= self.settings.organ_impairment_factor

        clipped = {k: round(min(100.0, v), 2) for k, v in by_category.items()}
        breakdown = RiskBreakdown(
            drug_drug=clipped["drug-drug"],
            drug_food=clipped["drug-food"],
            drug_condition=clipped["drug-condition"],
            drug_allergy=clipped["drug-allergy"],
        )
        return RiskScore(overall=max(clipped.values()), breakdown=breakdown)

    @staticmethod
    def _safety(interactions: list[Interaction], risk: RiskScore) -> SafetyProfile:
        severities = {i.severity for i in interactions}
        factors: list[str] = []
        if "contraindicated" in severities:
            level = "contraindicated"
            factors.append("Contraindicated drug combinations detected")
        elif "major" in severities or risk.overall >= 75:
            level = "warning"
            factors.append("Major interactions or high risk score")
        elif "moderate" in severities or risk.overall >= 50:
            level = "caution"
            factors.append("Moderate interactions detected")
        else:
            level = "safe"
        if risk.breakdown.drug_allergy > 0:
            factors.append("Potential allergic reactions")
        return SafetyProfile(level=level, factors=factors)

    async def _alternatives(
        self, drug: Drug, request_names: set[str], profile: InteractionPatientProfile | None, language: str,
    ) -> tuple[list[str], bool]:
        if not drug.therapeutic_class:
            return [], False
        results, degraded = await self.ranker.search_with_status(SearchQuery(
            text=f"{drug.therapeutic_class} alternative drugs",
            language=language,
            mode="semantic",
            categories=["drug"],
            limit=3,
        ))
        candidates = [r.document.title for r in results]
        candidates += [d.name for d in self.store.current.drugs_in_class(drug.therapeutic_class)]

        catalogue = self.store.current
        chosen: list[str] = []
        for name in candidates:
            if not name or name.casefold() in request_names or name in chosen:
                continue
            record = catalogue.find_drug(name)
            if record is None or record.id == drug.id:
                continue
            if profile is not None and any(allergy_match(record, a, catalogue) for a in profile.allergies):
                continue
            chosen.append(record.name)
            if len(chosen) >= self.settings.alternatives_per_drug:
                break
        return chosen, degraded

    async def _recommendations(
        self,
        interactions: list[Interaction],
        drugs: list[Drug],
        profile: InteractionPatientProfile | None,
        language: str,
        messages: dict,
    ) -> tuple[InteractionRecommendations, bool]:
        immediate: list[str] = []
        monitoring: list[str] = []
        education: list[str] = []
        flagged: dict[str, Drug] = {}
        by_name = {d.name.casefold(): d for d in drugs}

        for interaction in interactions:
            if interaction.severity == "contraindicated":
                key = "avoid_allergy" if interaction.category == "drug-allergy" else "avoid"
                immediate.append(messages[key].format(a=interaction.drug1, b=interaction.drug2))
                for name in (interaction.drug1, interaction.drug2):
                    drug = by_name.get(name.casefold())
                    if drug is not None:
                        flagged.setdefault(drug.name.casefold(), drug)
            elif interaction.severity == "major":
                immediate.append(messages["consult"].format(a=interaction.drug1, b=interaction.drug2))
            if interaction.management_strategy.monitoring_required:
                monitoring.extend(interaction.monitoring_parameters)
            education.extend(interaction.patient_education)

        if interactions:
            education.append(messages["share_list"])
        if any(i.category == "drug-allergy" for i in interactions):
            education.append(messages["allergy_card"])

        request_names = set(by_name)
        found = await bounded_gather(
            (self._alternatives(d, request_names, profile, language) for d in flagged.values()),
            self.settings.fanout_limit,
        )
        alternatives = [name for names, _ in found for name in names]
        degraded = any(d for _, d in found)

        return InteractionRecommendations(
            immediate=_dedupe(immediate),
            monitoring=_dedupe(monitoring),
            alternatives=_dedupe(alternatives),
            patient_education=_dedupe(education),
        ), degraded

    async def check(self, request: InteractionCheckRequest) -> InteractionResult:
        language = request.language
        messages = MESSAGES.get(language, MESSAGES["en"])
        profile = request.patient_profile

        resolved = await bounded_gather(
            (self._resolve_drug(name, language) for name in request.drugs if name.strip()),
            self.settings.fanout_limit,
        )
        degraded = any(d for _, d in resolved)
        drugs: list[Drug] = []
        for drug, _ in resolved:
            if all(drug.name.casefold() != d.name.casefold() for d in drugs):
                drugs.append(drug)
        unverified = [d.name for d in drugs if not d.verified]

        pairs = await bounded_gather(
            (self._pair_interaction(a, b, language) for a, b in itertools.combinations(drugs, 2)),
            self.settings.fanout_limit,
        )
        degraded = degraded or any(d for _, d in pairs)

        catalogue = self.store.current
        interactions: list[Interaction] = []
        for (a, b), (interaction, _) in zip(itertools.combinations(drugs, 2), pairs):
            if interaction is not None:
                interactions.append(interaction.model_copy(update={"drug1": a.name, "drug2": b.name}))
        if request.include_food:
            interactions += self._food_interactions(drugs, catalogue)
        if profile is not None:
            if request.include_conditions:
                interactions += self._condition_interactions(drugs, profile, catalogue)
            interactions += self._allergy_interactions(drugs, profile, catalogue)

        interactions = sorted(interactions, key=lambda i: SEVERITY_ORDER[i.severity], reverse=True)
        alerts = [self._alert(i, messages) for i in interactions]
        risk = self._risk(interactions, profile)
        safety = self._safety(interactions, risk)
        recommendations, rec_degraded = await self._recommendations(
            interactions, drugs, profile, language, messages,
        )

        result = InteractionResult(
            drugs=drugs,
            interactions=interactions,
            alerts=alerts,
            recommendations=recommendations,
            risk_score=risk,
            safety_profile=safety,
            unverified_drugs=unverified,
            degraded=degraded or rec_degraded,
        )
        logger.info(
            "Interaction check: %d drugs, %d interactions, safety=%s, risk=%.0f%s",
            len(drugs), len(interactions), safety.level, risk.overall,
            " (degraded)" if result.degraded else "",
        )
        return result


def _dedupe(values) -> list[str]:
    seen: set[str] = set()
    out = []
    for value in values:
        key = value.casefold()
        if value and key not in seen:
            seen.add(key)
            out.append(value)
    return out
