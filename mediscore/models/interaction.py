from typing import Literal

from pydantic import BaseModel, Field

Severity = Literal["minor", "moderate", "major", "contraindicated"]
InteractionCategory = Literal["drug-drug", "drug-food", "drug-condition", "drug-allergy"]
OrganFunction = Literal["normal", "mild", "moderate", "severe"]

SEVERITY_ORDER: dict[str, int] = {"minor": 0, "moderate": 1, "major": 2, "contraindicated": 3}
SEVERITY_WEIGHTS: dict[str, int] = {"minor": 25, "moderate": 50, "major": 75, "contraindicated": 100}


def severity_weight(severity: str) -> int:
    return SEVERITY_WEIGHTS[severity]


class Drug(BaseModel):
    id: str
    name: str
    generic_name: str = ""
    brand_names: list[str] = []
    active_ingredients: list[str] = []
    contraindications: list[str] = []
    side_effects: list[str] = []
    route: str = "oral"
    therapeutic_class: str = ""
    mechanism: str = ""
    verified: bool = True

    def aliases(self) -> list[str]:
        names = [self.name, self.generic_name, *self.brand_names]
        return [n.casefold() for n in names if n]


class ManagementStrategy(BaseModel):
    avoid_combination: bool = False
    monitoring_required: bool = False
    dosage_adjustment: bool = False
    timing_adjustment: bool = False
    alternative_recommended: bool = False


class Interaction(BaseModel):
    id: str
    drug1: str
    drug2: str
    category: InteractionCategory = "drug-drug"
    severity: Severity = "minor"
    description: str = ""
    mechanism: str = ""
    onset: Literal["rapid", "delayed", "variable"] = "variable"
    documentation: Literal["excellent", "good", "fair", "poor"] = "fair"
    probability: float = Field(0.5, ge=0.0, le=1.0)
    clinical_significance: float = Field(0.0, ge=0.0, le=10.0)
    management_strategy: ManagementStrategy = ManagementStrategy()
    monitoring_parameters: list[str] = []
    timeframe: str = ""
    effects: list[str] = []
    recommendations: list[str] = []
    patient_education: list[str] = []
    references: list[str] = []


class FoodInteraction(BaseModel):
    drug: str
    food: str
    severity: Severity = "moderate"
    description: str = ""
    recommendation: str = ""


class ConditionInteraction(BaseModel):
    drug: str
    condition: str
    severity: Severity = "major"
    description: str = ""
    recommendation: str = ""


class DrugAllergy(BaseModel):
    drug_name: str
    allergen: str = ""
    reaction_type: Literal["mild", "moderate", "severe", "anaphylaxis"] = "moderate"
    symptoms: list[str] = []
    cross_reactivity: list[str] = []


class InteractionPatientProfile(BaseModel):
    age: int = Field(30, ge=0, le=150)
    weight: float | None = None
    kidney_function: OrganFunction = "normal"
    liver_function: OrganFunction = "normal"
    allergies: list[DrugAllergy] = []
    conditions: list[str] = []


class InteractionCheckRequest(BaseModel):
    drugs: list[str] = []
    patient_profile: InteractionPatientProfile | None = None
    include_food: bool = True
    include_conditions: bool = True
    language: str = "en"


class InteractionAlert(BaseModel):
    id: str
    type: InteractionCategory
    severity: Literal["low", "medium", "high", "critical"]
    title: str = ""
    description: str = ""
    recommendation: str = ""
    urgency: Literal["routine", "urgent", "immediate"] = "routine"
    dismissible: bool = True


class InteractionRecommendations(BaseModel):
    immediate: list[str] = []
    monitoring: list[str] = []
    alternatives: list[str] = []
    patient_education: list[str] = []


class RiskBreakdown(BaseModel):
    drug_drug: float = 0.0
    drug_food: float = 0.0
    drug_condition: float = 0.0
    drug_allergy: float = 0.0


class RiskScore(BaseModel):
    overall: float = Field(0.0, ge=0.0, le=100.0)
    breakdown: RiskBreakdown = RiskBreakdown()


class SafetyProfile(BaseModel):
    level: Literal["safe", "caution", "warning", "contraindicated"] = "safe"
    factors: list[str] = []


class InteractionResult(BaseModel):
    drugs: list[Drug] = []
    interactions: list[Interaction] = []
    alerts: list[InteractionAlert] = []
    recommendations: InteractionRecommendations = InteractionRecommendations()
    risk_score: RiskScore = RiskScore()
    safety_profile: SafetyProfile = SafetyProfile()
    unverified_drugs: list[str] = []
    degraded: bool = False
