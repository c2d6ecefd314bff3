from typing import Literal

from pydantic import BaseModel, Field

SymptomSeverity = Literal["mild", "moderate", "severe", "critical"]
ConditionCategory = Literal["acute", "chronic", "emergency", "routine"]
UrgencyLevel = Literal["low", "medium", "high", "critical"]
RiskLevel = Literal["low", "medium", "high", "critical"]


class Symptom(BaseModel):
    name: str
    severity: SymptomSeverity = "mild"
    duration: str = ""
    frequency: Literal["rare", "occasional", "frequent", "constant"] = "occasional"
    location: str | None = None
    triggers: list[str] = []
    associated_symptoms: list[str] = []
    language: str = "en"


class MedicalCondition(BaseModel):
    id: str
    name: str
    description: str = ""
    category: ConditionCategory = "routine"
    common_symptoms: list[str] = []
    risk_factors: list[str] = []
    prevalence: float = Field(0.1, ge=0.0, le=1.0)
    urgency_level: UrgencyLevel = "low"
    specialty_required: str | None = None


class AgeRange(BaseModel):
    min: int = 0
    max: int = 150


class DiagnosticRule(BaseModel):
    id: str
    condition: str
    required_symptoms: list[str] = []
    optional_symptoms: list[str] = []
    excluding_symptoms: list[str] = []
    minimum_symptoms: int = 1
    confidence_weight: float = 1.0
    age_range: AgeRange | None = None
    gender: Literal["male", "female", "any"] | None = None
    risk_factors: list[str] = []


class SymptomCluster(BaseModel):
    id: str
    symptoms: list[str] = []
    common_conditions: list[str] = []
    severity: SymptomSeverity = "mild"
    confidence: float = Field(0.0, ge=0.0, le=1.0)


class Lifestyle(BaseModel):
    smoking: bool = False
    alcohol: bool = False
    exercise: Literal["none", "light", "moderate", "heavy"] = "light"


class PatientProfile(BaseModel):
    age: int = Field(30, ge=0, le=150)
    gender: Literal["male", "female", "other"] = "other"
    medical_history: list[str] = []
    current_medications: list[str] = []
    allergies: list[str] = []
    lifestyle: Lifestyle = Lifestyle()
    family_history: list[str] = []


class DiagnosisRequest(BaseModel):
    symptoms: list[Symptom] = []
    patient_profile: PatientProfile | None = None
    language: str = "en"


class PossibleCondition(BaseModel):
    condition: MedicalCondition
    probability: float = Field(0.0, ge=0.0, le=1.0)
    description: str = ""
    severity: UrgencyLevel = "low"


class DiagnosisRecommendations(BaseModel):
    immediate: list[str] = []
    short_term: list[str] = []
    long_term: list[str] = []
    lifestyle: list[str] = []


class DifferentialDiagnosis(BaseModel):
    primary: list[MedicalCondition] = []
    secondary: list[MedicalCondition] = []
    ruled_out: list[MedicalCondition] = []


class RedFlags(BaseModel):
    present: bool = False
    flags: list[str] = []
    urgency_level: Literal["immediate", "urgent", "routine"] = "routine"


class FollowUp(BaseModel):
    timeframe: str = ""
    tests: list[str] = []
    specialists: list[str] = []
    monitoring: list[str] = []


class RiskAssessment(BaseModel):
    overall: RiskLevel = "low"
    factors: list[str] = []
    score: float = Field(0.0, ge=0.0, le=100.0)


class TreatmentSuggestions(BaseModel):
    immediate: list[str] = []
    short_term: list[str] = []
    long_term: list[str] = []
    lifestyle: list[str] = []


class DiagnosisResult(BaseModel):
    symptoms: list[Symptom] = []
    possible_conditions: list[PossibleCondition] = []
    recommendations: DiagnosisRecommendations = DiagnosisRecommendations()
    urgency: Literal["routine", "urgent", "emergency"] = "routine"
    diagnostic_confidence: float = Field(0.0, ge=0.0, le=1.0)
    differential_diagnosis: DifferentialDiagnosis = DifferentialDiagnosis()
    red_flags: RedFlags = RedFlags()
    follow_up: FollowUp = FollowUp()
    risk_assessment: RiskAssessment = RiskAssessment()
    treatment_suggestions: TreatmentSuggestions = TreatmentSuggestions()
    unverified_symptoms: list[str] = []
    degraded: bool = False
    language: str = "en"
