"""Read-only clinical catalogues shared by both engines.

A ``Catalogue`` is an immutable snapshot. Engines read ``CatalogueStore.current``
once per request; updates build a new snapshot and swap it in atomically.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Iterable

from pydantic import ValidationError

from mediscore.database import DatabaseAdapter, load_catalogue_entries
from mediscore.models.diagnosis import DiagnosticRule, MedicalCondition, SymptomCluster
from mediscore.models.interaction import ConditionInteraction, Drug, FoodInteraction, Interaction

logger = logging.getLogger(__name__)


def pair_key(first: str, second: str) -> str:
    """Order-independent key for a drug pair."""
    a, b = sorted((first.strip().casefold(), second.strip().casefold()))
    return f"{a}::{b}"


@dataclass(frozen=True)
class Catalogue:
    drugs: dict[str, Drug] = field(default_factory=dict)
    interactions: dict[str, Interaction] = field(default_factory=dict)
    food_interactions: dict[str, tuple[FoodInteraction, ...]] = field(default_factory=dict)
    condition_interactions: dict[str, tuple[ConditionInteraction, ...]] = field(default_factory=dict)
    cross_reactivity: dict[str, tuple[str, ...]] = field(default_factory=dict)
    conditions: dict[str, MedicalCondition] = field(default_factory=dict)
    rules: tuple[DiagnosticRule, ...] = ()
    clusters: tuple[SymptomCluster, ...] = ()
    version: int = 0

    def find_drug(self, name: str) -> Drug | None:
        needle = name.strip().casefold()
        if not needle:
            return None
        direct = self.drugs.get(needle)
        if direct is not None:
            return direct
        for drug in self.drugs.values():
            if needle in drug.aliases():
                return drug
        return None

    def interaction_for(self, first: str, second: str) -> Interaction | None:
        return self.interactions.get(pair_key(first, second))

    def foods_for(self, drug: Drug) -> tuple[FoodInteraction, ...]:
        return self.food_interactions.get(drug.name.casefold(), ())

    def conditions_for(self, drug: Drug) -> tuple[ConditionInteraction, ...]:
        return self.condition_interactions.get(drug.name.casefold(), ())

    def condition_by_name(self, name: str) -> MedicalCondition | None:
        needle = name.strip().casefold()
        for condition in self.conditions.values():
            if condition.name.casefold() == needle:
                return condition
        return None

    def drugs_in_class(self, therapeutic_class: str) -> list[Drug]:
        needle = therapeutic_class.strip().casefold()
        if not needle:
            return []
        return [d for d in self.drugs.values() if d.therapeutic_class.casefold() == needle]

    def symptom_vocabulary(self) -> list[str]:
        """Every symptom name mentioned by conditions, rules or clusters, first-seen order."""
        names: dict[str, str] = {}

        def add(values: Iterable[str]) -> None:
            for value in values:
                names.setdefault(value.casefold(), value)

        for condition in self.conditions.values():
            add(condition.common_symptoms)
        for rule in self.rules:
            add(rule.required_symptoms)
            add(rule.optional_symptoms)
        for cluster in self.clusters:
            add(cluster.symptoms)
        return list(names.values())

    def with_drug(self, drug: Drug) -> "Catalogue":
        drugs = dict(self.drugs)
        drugs[drug.name.casefold()] = drug
        return replace(self, drugs=drugs, version=self.version + 1)

    def with_interaction(self, interaction: Interaction) -> "Catalogue":
        interactions = dict(self.interactions)
        interactions[pair_key(interaction.drug1, interaction.drug2)] = interaction
        return replace(self, interactions=interactions, version=self.version + 1)


def _validated(model, rows: Iterable[dict], kind: str) -> list:
    items = []
    for row in rows:
        try:
            items.append(model.model_validate(row))
        except ValidationError as e:
            logger.warning("Skipping malformed %s entry %r: %s", kind, row.get("id") or row.get("name"), e)
    return items


def build_catalogue(entries: dict[str, list[dict]], version: int = 0) -> Catalogue:
    """Build a snapshot from raw entries grouped by kind; malformed rows are skipped."""
    drugs = {d.name.casefold(): d for d in _validated(Drug, entries.get("drug", []), "drug")}
    interactions = {
        pair_key(i.drug1, i.drug2): i for i in _validated(Interaction, entries.get("interaction", []), "interaction")
    }

    foods: dict[str, list[FoodInteraction]] = {}
    for item in _validated(FoodInteraction, entries.get("food", []), "food"):
        foods.setdefault(item.drug.casefold(), []).append(item)

    condition_hits: dict[str, list[ConditionInteraction]] = {}
    for item in _validated(ConditionInteraction, entries.get("drug_condition", []), "drug_condition"):
        condition_hits.setdefault(item.drug.casefold(), []).append(item)

    cross: dict[str, tuple[str, ...]] = {}
    for row in entries.get("cross_reactivity", []):
        allergen = str(row.get("allergen", "")).strip().casefold()
        related = row.get("related")
        if not allergen or not isinstance(related, list):
            logger.warning("Skipping malformed cross_reactivity entry %r", row)
            continue
        cross[allergen] = tuple(str(r) for r in related)

    conditions = {c.id: c for c in _validated(MedicalCondition, entries.get("condition", []), "condition")}
    rules = tuple(_validated(DiagnosticRule, entries.get("rule", []), "rule"))
    clusters = tuple(_validated(SymptomCluster, entries.get("cluster", []), "cluster"))

    return Catalogue(
        drugs=drugs,
        interactions=interactions,
        food_interactions={k: tuple(v) for k, v in foods.items()},
        condition_interactions={k: tuple(v) for k, v in condition_hits.items()},
        cross_reactivity=cross,
        conditions=conditions,
        rules=rules,
        clusters=clusters,
        version=version,
    )


class CatalogueStore:
    """Holds the active snapshot; replacement is a single reference swap."""

    def __init__(self, catalogue: Catalogue | None = None) -> None:
        self._current = catalogue or Catalogue()

    @property
    def current(self) -> Catalogue:
        return self._current

    def swap(self, catalogue: Catalogue) -> Catalogue:
        previous = self._current
        self._current = catalogue
        logger.info(
            "Catalogue swapped: version %d -> %d (%d drugs, %d conditions, %d rules)",
            previous.version, catalogue.version, len(catalogue.drugs), len(catalogue.conditions), len(catalogue.rules),
        )
        return previous

    async def reload(self, db: DatabaseAdapter) -> Catalogue:
        entries = await load_catalogue_entries(db)
        catalogue = build_catalogue(entries, version=self._current.version + 1)
        self.swap(catalogue)
        return catalogue

    def add_drug(self, drug: Drug) -> None:
        self._current = self._current.with_drug(drug)
        logger.debug("Learned drug %s", drug.name)

    def add_interaction(self, interaction: Interaction) -> None:
        self._current = self._current.with_interaction(interaction)
        logger.debug("Learned interaction %s + %s", interaction.drug1, interaction.drug2)
