"""Starter catalogue written to the database on first start."""

CONDITIONS = [
    {
        "id": "influenza",
        "name": "Influenza",
        "description": "Acute viral respiratory infection with sudden onset of fever and body aches.",
        "category": "acute",
        "common_symptoms": ["Fever", "Headache", "Cough", "Muscle ache", "Fatigue"],
        "risk_factors": ["Asthma", "Diabetes", "Pregnancy"],
        "prevalence": 0.15,
        "urgency_level": "medium",
        "specialty_required": "General Practitioner",
    },
    {
        "id": "common-cold",
        "name": "Common cold",
        "description": "Mild viral infection of the nose and throat.",
        "category": "acute",
        "common_symptoms": ["Cough", "Runny nose", "Sore throat", "Sneezing", "Fever"],
        "risk_factors": [],
        "prevalence": 0.4,
        "urgency_level": "low",
    },
    {
        "id": "tension-headache",
        "name": "Tension headache",
        "description": "Routine headache linked to muscle tension and stress.",
        "category": "routine",
        "common_symptoms": ["Headache", "Neck pain", "Fatigue"],
        "risk_factors": ["Stress", "Poor posture"],
        "prevalence": 0.3,
        "urgency_level": "low",
        "specialty_required": "Neurologist",
    },
    {
        "id": "migraine",
        "name": "Migraine",
        "description": "Chronic recurring headache disorder, often with nausea and light sensitivity.",
        "category": "chronic",
        "common_symptoms": ["Headache", "Nausea", "Sensitivity to light", "Dizziness"],
        "risk_factors": ["Family history of migraine", "Stress"],
        "prevalence": 0.12,
        "urgency_level": "medium",
        "specialty_required": "Neurologist",
    },
    {
        "id": "gastroenteritis",
        "name": "Gastroenteritis",
        "description": "Acute inflammation of the stomach and intestines, usually infectious.",
        "category": "acute",
        "common_symptoms": ["Nausea", "Vomiting", "Diarrhea", "Stomach pain", "Fever"],
        "risk_factors": ["Contaminated food or water"],
        "prevalence": 0.12,
        "urgency_level": "medium",
        "specialty_required": "Gastroenterologist",
    },
    {
        "id": "pneumonia",
        "name": "Pneumonia",
        "description": "Acute lung infection; significant cases need prompt treatment.",
        "category": "acute",
        "common_symptoms": ["Fever", "Cough", "Shortness of breath", "Chest pain", "Fatigue"],
        "risk_factors": ["Smoking", "Asthma", "COPD"],
        "prevalence": 0.05,
        "urgency_level": "high",
        "specialty_required": "Pulmonologist",
    },
    {
        "id": "asthma",
        "name": "Asthma",
        "description": "Chronic inflammatory airway disease with episodic wheezing.",
        "category": "chronic",
        "common_symptoms": ["Wheezing", "Shortness of breath", "Cough", "Chest tightness"],
        "risk_factors": ["Allergies", "Smoking"],
        "prevalence": 0.08,
        "urgency_level": "medium",
        "specialty_required": "Pulmonologist",
    },
    {
        "id": "hypertension",
        "name": "Hypertension",
        "description": "Chronic elevation of blood pressure.",
        "category": "chronic",
        "common_symptoms": ["Headache", "Dizziness", "Blurred vision"],
        "risk_factors": ["Obesity", "Smoking", "Family history of hypertension"],
        "prevalence": 0.3,
        "urgency_level": "medium",
        "specialty_required": "Cardiologist",
    },
    {
        "id": "dengue",
        "name": "Dengue fever",
        "description": "Acute mosquito-borne viral infection with high fever and joint pain.",
        "category": "acute",
        "common_symptoms": ["High fever", "Headache", "Joint pain", "Rash", "Pain behind the eyes"],
        "risk_factors": ["Travel to endemic area"],
        "prevalence": 0.05,
        "urgency_level": "high",
        "specialty_required": "Infectious Disease Specialist",
    },
    {
        "id": "meningitis",
        "name": "Meningitis",
        "description": "Life-threatening emergency: inflammation of the membranes around the brain.",
        "category": "emergency",
        "common_symptoms": ["Fever", "Stiff neck", "Severe headache", "Confusion", "Photophobia"],
        "risk_factors": ["Immunosuppression"],
        "prevalence": 0.01,
        "urgency_level": "critical",
        "specialty_required": "Neurologist",
    },
    {
        "id": "myocardial-infarction",
        "name": "Myocardial infarction",
        "description": "Emergency: blocked blood flow to the heart muscle.",
        "category": "emergency",
        "common_symptoms": ["Chest pain", "Shortness of breath", "Sweating", "Nausea"],
        "risk_factors": ["Smoking", "Hypertension", "Diabetes", "High cholesterol"],
        "prevalence": 0.05,
        "urgency_level": "critical",
        "specialty_required": "Cardiologist",
    },
]

RULES = [
    {
        "id": "rule-influenza",
        "condition": "Influenza",
        "required_symptoms": ["Fever"],
        "optional_symptoms": ["Headache", "Cough", "Muscle ache", "Fatigue"],
        "minimum_symptoms": 2,
        "confidence_weight": 0.8,
        "risk_factors": ["Asthma", "Diabetes"],
    },
    {
        "id": "rule-common-cold",
        "condition": "Common cold",
        "required_symptoms": ["Cough"],
        "optional_symptoms": ["Runny nose", "Sore throat", "Sneezing"],
        "excluding_symptoms": ["High fever"],
        "minimum_symptoms": 2,
        "confidence_weight": 0.6,
    },
    {
        "id": "rule-tension-headache",
        "condition": "Tension headache",
        "required_symptoms": ["Headache"],
        "optional_symptoms": ["Neck pain", "Fatigue"],
        "excluding_symptoms": ["Fever"],
        "minimum_symptoms": 1,
        "confidence_weight": 0.6,
    },
    {
        "id": "rule-migraine",
        "condition": "Migraine",
        "required_symptoms": ["Headache"],
        "optional_symptoms": ["Nausea", "Sensitivity to light", "Dizziness"],
        "excluding_symptoms": ["Fever"],
        "minimum_symptoms": 2,
        "confidence_weight": 0.7,
        "risk_factors": ["Family history of migraine"],
    },
    {
        "id": "rule-gastroenteritis",
        "condition": "Gastroenteritis",
        "required_symptoms": ["Nausea"],
        "optional_symptoms": ["Vomiting", "Diarrhea", "Stomach pain", "Fever"],
        "minimum_symptoms": 2,
        "confidence_weight": 0.7,
    },
    {
        "id": "rule-pneumonia",
        "condition": "Pneumonia",
        "required_symptoms": ["Fever", "Cough"],
        "optional_symptoms": ["Shortness of breath", "Chest pain", "Fatigue"],
        "minimum_symptoms": 3,
        "confidence_weight": 0.9,
        "risk_factors": ["Smoking", "COPD"],
    },
    {
        "id": "rule-asthma",
        "condition": "Asthma",
        "required_symptoms": ["Wheezing"],
        "optional_symptoms": ["Shortness of breath", "Cough", "Chest tightness"],
        "minimum_symptoms": 2,
        "confidence_weight": 0.8,
    },
    {
        "id": "rule-dengue",
        "condition": "Dengue fever",
        "required_symptoms": ["High fever"],
        "optional_symptoms": ["Headache", "Joint pain", "Rash", "Pain behind the eyes"],
        "minimum_symptoms": 3,
        "confidence_weight": 0.9,
    },
    {
        "id": "rule-meningitis",
        "condition": "Meningitis",
        "required_symptoms": ["Fever", "Stiff neck"],
        "optional_symptoms": ["Severe headache", "Confusion", "Photophobia"],
        "minimum_symptoms": 3,
        "confidence_weight": 1.0,
        "risk_factors": ["Immunosuppression"],
    },
    {
        "id": "rule-myocardial-infarction",
        "condition": "Myocardial infarction",
        "required_symptoms": ["Chest pain"],
        "optional_symptoms": ["Shortness of breath", "Sweating", "Nausea"],
        "minimum_symptoms": 2,
        "confidence_weight": 1.0,
        "age_range": {"min": 30, "max": 120},
        "risk_factors": ["Smoking", "Hypertension", "Diabetes", "High cholesterol"],
    },
]

CLUSTERS = [
    {
        "id": "cluster-flu-like",
        "symptoms": ["Fever", "Headache", "Muscle ache", "Fatigue", "Cough"],
        "common_conditions": ["Influenza", "Common cold"],
        "severity": "moderate",
        "confidence": 0.7,
    },
    {
        "id": "cluster-cardiac",
        "symptoms": ["Chest pain", "Shortness of breath", "Sweating", "Nausea"],
        "common_conditions": ["Myocardial infarction"],
        "severity": "severe",
        "confidence": 0.8,
    },
    {
        "id": "cluster-gastrointestinal",
        "symptoms": ["Nausea", "Vomiting", "Diarrhea", "Stomach pain"],
        "common_conditions": ["Gastroenteritis"],
        "severity": "moderate",
        "confidence": 0.7,
    },
    {
        "id": "cluster-meningeal",
        "symptoms": ["Stiff neck", "Photophobia", "Fever", "Confusion"],
        "common_conditions": ["Meningitis"],
        "severity": "critical",
        "confidence": 0.8,
    },
    {
        "id": "cluster-respiratory",
        "symptoms": ["Cough", "Shortness of breath", "Wheezing", "Chest tightness"],
        "common_conditions": ["Asthma", "Pneumonia"],
        "severity": "moderate",
        "confidence": 0.7,
    },
]

DRUGS = [
    {
        "id": "aspirin",
        "name": "Aspirin",
        "generic_name": "Acetylsalicylic acid",
        "brand_names": ["Bayer", "Bufferin", "Ecotrin"],
        "active_ingredients": ["Acetylsalicylic acid"],
        "contraindications": ["Bleeding disorders", "Severe kidney disease", "Peptic ulcer"],
        "side_effects": ["Stomach upset", "Bleeding"],
        "route": "oral",
        "therapeutic_class": "NSAID",
        "mechanism": "Irreversibly inhibits cyclooxygenase, reducing prostaglandin and thromboxane synthesis.",
    },
    {
        "id": "ibuprofen",
        "name": "Ibuprofen",
        "generic_name": "Ibuprofen",
        "brand_names": ["Advil", "Motrin"],
        "active_ingredients": ["Ibuprofen"],
        "contraindications": ["Peptic ulcer", "Severe kidney disease", "Heart failure"],
        "side_effects": ["Stomach upset", "Heartburn"],
        "route": "oral",
        "therapeutic_class": "NSAID",
        "mechanism": "Reversibly inhibits cyclooxygenase.",
    },
    {
        "id": "naproxen",
        "name": "Naproxen",
        "generic_name": "Naproxen",
        "brand_names": ["Aleve", "Naprosyn"],
        "active_ingredients": ["Naproxen sodium"],
        "contraindications": ["Peptic ulcer", "Severe kidney disease"],
        "side_effects": ["Stomach upset", "Dizziness"],
        "route": "oral",
        "therapeutic_class": "NSAID",
        "mechanism": "Reversibly inhibits cyclooxygenase.",
    },
    {
        "id": "warfarin",
        "name": "Warfarin",
        "generic_name": "Warfarin sodium",
        "brand_names": ["Coumadin", "Jantoven"],
        "active_ingredients": ["Warfarin sodium"],
        "contraindications": ["Bleeding disorders", "Pregnancy", "Recent surgery"],
        "side_effects": ["Bleeding", "Bruising"],
        "route": "oral",
        "therapeutic_class": "Anticoagulant",
        "mechanism": "Vitamin K antagonist that inhibits clotting factor synthesis.",
    },
    {
        "id": "clopidogrel",
        "name": "Clopidogrel",
        "generic_name": "Clopidogrel bisulfate",
        "brand_names": ["Plavix"],
        "active_ingredients": ["Clopidogrel bisulfate"],
        "contraindications": ["Active bleeding"],
        "side_effects": ["Bleeding", "Rash"],
        "route": "oral",
        "therapeutic_class": "Antiplatelet",
        "mechanism": "Irreversibly blocks the P2Y12 ADP receptor on platelets.",
    },
    {
        "id": "paracetamol",
        "name": "Paracetamol",
        "generic_name": "Acetaminophen",
        "brand_names": ["Tylenol", "Panadol", "Napa"],
        "active_ingredients": ["Acetaminophen"],
        "contraindications": ["Severe liver disease"],
        "side_effects": ["Liver damage at high doses"],
        "route": "oral",
        "therapeutic_class": "Analgesic",
        "mechanism": "Central inhibition of prostaglandin synthesis.",
    },
    {
        "id": "metformin",
        "name": "Metformin",
        "generic_name": "Metformin hydrochloride",
        "brand_names": ["Glucophage"],
        "active_ingredients": ["Metformin hydrochloride"],
        "contraindications": ["Severe kidney disease", "Metabolic acidosis"],
        "side_effects": ["Nausea", "Diarrhea"],
        "route": "oral",
        "therapeutic_class": "Biguanide",
        "mechanism": "Decreases hepatic glucose production.",
    },
    {
        "id": "lisinopril",
        "name": "Lisinopril",
        "generic_name": "Lisinopril",
        "brand_names": ["Zestril", "Prinivil"],
        "active_ingredients": ["Lisinopril"],
        "contraindications": ["Pregnancy", "Angioedema"],
        "side_effects": ["Dry cough", "Dizziness"],
        "route": "oral",
        "therapeutic_class": "ACE inhibitor",
        "mechanism": "Inhibits angiotensin converting enzyme.",
    },
    {
        "id": "amoxicillin",
        "name": "Amoxicillin",
        "generic_name": "Amoxicillin",
        "brand_names": ["Amoxil"],
        "active_ingredients": ["Amoxicillin trihydrate"],
        "contraindications": ["Penicillin allergy"],
        "side_effects": ["Diarrhea", "Rash"],
        "route": "oral",
        "therapeutic_class": "Penicillin antibiotic",
        "mechanism": "Inhibits bacterial cell wall synthesis.",
    },
    {
        "id": "simvastatin",
        "name": "Simvastatin",
        "generic_name": "Simvastatin",
        "brand_names": ["Zocor"],
        "active_ingredients": ["Simvastatin"],
        "contraindications": ["Active liver disease", "Pregnancy"],
        "side_effects": ["Muscle pain"],
        "route": "oral",
        "therapeutic_class": "Statin",
        "mechanism": "Inhibits HMG-CoA reductase.",
    },
    {
        "id": "omeprazole",
        "name": "Omeprazole",
        "generic_name": "Omeprazole",
        "brand_names": ["Prilosec", "Losec"],
        "active_ingredients": ["Omeprazole"],
        "contraindications": [],
        "side_effects": ["Headache"],
        "route": "oral",
        "therapeutic_class": "Proton pump inhibitor",
        "mechanism": "Inhibits the gastric proton pump.",
    },
]

INTERACTIONS = [
    {
        "id": "aspirin-warfarin",
        "drug1": "Aspirin",
        "drug2": "Warfarin",
        "severity": "major",
        "description": "Additive anticoagulant effects increase the risk of serious bleeding.",
        "mechanism": "Additive anticoagulant and antiplatelet effects",
        "onset": "rapid",
        "documentation": "excellent",
        "probability": 0.9,
        "clinical_significance": 8,
        "management_strategy": {"monitoring_required": True, "dosage_adjustment": True},
        "monitoring_parameters": ["INR", "Signs of bleeding"],
        "timeframe": "Within days",
        "effects": ["Increased bleeding risk"],
        "recommendations": ["Monitor INR closely", "Watch for signs of bleeding"],
        "patient_education": ["Report unusual bruising or bleeding immediately"],
    },
    {
        "id": "ibuprofen-warfarin",
        "drug1": "Ibuprofen",
        "drug2": "Warfarin",
        "severity": "major",
        "description": "NSAIDs increase the bleeding risk of warfarin.",
        "mechanism": "Antiplatelet effect and gastric mucosal injury",
        "onset": "rapid",
        "documentation": "good",
        "probability": 0.8,
        "clinical_significance": 8,
        "management_strategy": {"monitoring_required": True, "alternative_recommended": True},
        "monitoring_parameters": ["INR", "Signs of bleeding"],
        "effects": ["Increased bleeding risk"],
    },
    {
        "id": "naproxen-warfarin",
        "drug1": "Naproxen",
        "drug2": "Warfarin",
        "severity": "major",
        "description": "NSAIDs increase the bleeding risk of warfarin.",
        "mechanism": "Antiplatelet effect and gastric mucosal injury",
        "onset": "rapid",
        "documentation": "good",
        "probability": 0.8,
        "clinical_significance": 8,
        "management_strategy": {"monitoring_required": True, "alternative_recommended": True},
        "monitoring_parameters": ["INR", "Signs of bleeding"],
    },
    {
        "id": "aspirin-ibuprofen",
        "drug1": "Aspirin",
        "drug2": "Ibuprofen",
        "severity": "moderate",
        "description": "Ibuprofen may interfere with the antiplatelet effect of low-dose aspirin.",
        "mechanism": "Competitive binding at cyclooxygenase-1",
        "onset": "delayed",
        "documentation": "good",
        "probability": 0.6,
        "clinical_significance": 6,
        "management_strategy": {"monitoring_required": True, "timing_adjustment": True},
        "monitoring_parameters": ["Cardiovascular symptoms"],
        "recommendations": ["Take aspirin at least 30 minutes before ibuprofen"],
    },
    {
        "id": "clopidogrel-omeprazole",
        "drug1": "Clopidogrel",
        "drug2": "Omeprazole",
        "severity": "moderate",
        "description": "Omeprazole reduces the activation of clopidogrel.",
        "mechanism": "CYP2C19 inhibition",
        "onset": "delayed",
        "documentation": "good",
        "probability": 0.6,
        "clinical_significance": 6,
        "management_strategy": {"monitoring_required": True, "alternative_recommended": True},
        "monitoring_parameters": ["Platelet function"],
    },
    {
        "id": "ibuprofen-lisinopril",
        "drug1": "Ibuprofen",
        "drug2": "Lisinopril",
        "severity": "moderate",
        "description": "NSAIDs may reduce the antihypertensive effect and impair kidney function.",
        "mechanism": "Prostaglandin inhibition",
        "onset": "delayed",
        "documentation": "good",
        "probability": 0.5,
        "clinical_significance": 6,
        "management_strategy": {"monitoring_required": True},
        "monitoring_parameters": ["Blood pressure", "Kidney function"],
    },
    {
        "id": "paracetamol-warfarin",
        "drug1": "Paracetamol",
        "drug2": "Warfarin",
        "severity": "minor",
        "description": "Regular high-dose paracetamol may raise INR.",
        "mechanism": "Interference with vitamin K dependent clotting",
        "onset": "delayed",
        "documentation": "fair",
        "probability": 0.3,
        "clinical_significance": 3,
    },
]

FOOD_INTERACTIONS = [
    {
        "drug": "Aspirin",
        "food": "Alcohol",
        "description": "Alcohol increases the risk of stomach bleeding with aspirin.",
        "recommendation": "Avoid alcohol while taking aspirin",
    },
    {
        "drug": "Warfarin",
        "food": "Vitamin K rich foods",
        "description": "Leafy greens can reduce the effect of warfarin.",
        "recommendation": "Keep vitamin K intake consistent",
    },
    {
        "drug": "Warfarin",
        "food": "Alcohol",
        "description": "Alcohol can change warfarin metabolism and bleeding risk.",
        "recommendation": "Limit alcohol intake",
    },
    {
        "drug": "Metformin",
        "food": "Alcohol",
        "description": "Alcohol raises the risk of lactic acidosis with metformin.",
        "recommendation": "Avoid heavy alcohol use",
    },
    {
        "drug": "Simvastatin",
        "food": "Grapefruit juice",
        "description": "Grapefruit juice raises simvastatin levels.",
        "recommendation": "Avoid grapefruit juice",
    },
]

CONDITION_INTERACTIONS = [
    {
        "drug": "Ibuprofen",
        "condition": "Heart failure",
        "description": "NSAIDs cause fluid retention and can worsen heart failure.",
        "recommendation": "Use a non-NSAID analgesic",
    },
    {
        "drug": "Aspirin",
        "condition": "Asthma",
        "description": "Aspirin can trigger bronchospasm in sensitive asthmatics.",
        "recommendation": "Use with caution in asthma",
    },
    {
        "drug": "Metformin",
        "condition": "Kidney disease",
        "description": "Reduced clearance raises the risk of lactic acidosis.",
        "recommendation": "Check kidney function before prescribing",
    },
    {
        "drug": "Warfarin",
        "condition": "Peptic ulcer",
        "description": "Anticoagulation increases the risk of gastrointestinal bleeding.",
        "recommendation": "Assess bleeding risk before starting",
    },
]

CROSS_REACTIVITY = [
    {"allergen": "Penicillin", "related": ["Amoxicillin", "Ampicillin", "Penicillin antibiotic", "Cephalexin"]},
    {"allergen": "Aspirin", "related": ["Ibuprofen", "Naproxen", "NSAID"]},
    {"allergen": "NSAID", "related": ["Aspirin", "Ibuprofen", "Naproxen"]},
    {"allergen": "Sulfa", "related": ["Sulfamethoxazole", "Sulfasalazine"]},
]


def _food_key(item: dict) -> str:
    return f"{item['drug']}:{item['food']}"


def _condition_key(item: dict) -> str:
    return f"{item['drug']}:{item['condition']}"


def seed_entries() -> list[tuple[str, str, dict]]:
    """Return (kind, key, payload) rows for the starter catalogue."""
    rows: list[tuple[str, str, dict]] = []
    rows += [("condition", c["id"], c) for c in CONDITIONS]
    rows += [("rule", r["id"], r) for r in RULES]
    rows += [("cluster", c["id"], c) for c in CLUSTERS]
    rows += [("drug", d["id"], d) for d in DRUGS]
    rows += [("interaction", i["id"], i) for i in INTERACTIONS]
    rows += [("food", _food_key(f), f) for f in FOOD_INTERACTIONS]
    rows += [("drug_condition", _condition_key(c), c) for c in CONDITION_INTERACTIONS]
    rows += [("cross_reactivity", x["allergen"], x) for x in CROSS_REACTIVITY]
    return rows
