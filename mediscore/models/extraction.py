from typing import Literal

from pydantic import BaseModel


class DrugFields(BaseModel):
    generic_name: str = ""
    brand_names: list[str] = []
    active_ingredients: list[str] = []
    contraindications: list[str] = []
    side_effects: list[str] = []
    route: str = "oral"
    therapeutic_class: str = ""
    mechanism: str = ""


class ConditionFields(BaseModel):
    description: str = ""
    category: Literal["acute", "chronic", "emergency", "routine"] = "routine"
    urgency_level: Literal["low", "medium", "high", "critical"] = "low"
    common_symptoms: list[str] = []
    risk_factors: list[str] = []


class InteractionFields(BaseModel):
    severity: Literal["minor", "moderate", "major", "contraindicated"] = "minor"
    mechanism: str = ""
    onset: Literal["rapid", "delayed", "variable"] = "variable"
    monitoring_parameters: list[str] = []
    effects: list[str] = []
    recommendations: list[str] = []
