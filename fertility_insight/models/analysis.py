"""
API Request / Response Models

Pydantic schemas for the HTTP adapter. Request fields are all optional so
that missing or out-of-range values reach the pipeline validator, which
reports every problem at once as INVALID_INPUT.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---- Request ----

class SemenAnalysisInput(BaseModel):
    """Semen analysis metrics (WHO 2021 units)."""
    concentration: Optional[float] = Field(None, description="Million sperm per ml")
    motility: Optional[float] = Field(None, description="Total motility %")
    morphology: Optional[float] = Field(None, description="Normal forms %")
    volume: Optional[float] = Field(None, description="Ejaculate volume in ml")


class PartnerInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    age: Optional[float] = None
    semen_analysis: Optional[SemenAnalysisInput] = Field(None, alias="spermAnalysis")


class AnalysisRequest(BaseModel):
    """
    Patient record submitted for analysis.

    Accepts snake_case or camelCase keys. Unknown fields (free-text notes,
    UI metadata) are accepted and ignored by the pipeline.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    age: Optional[float] = Field(None, description="Patient age in years (18-50)")
    infertility_duration_months: Optional[float] = Field(
        None, alias="infertilityDurationMonths", description="Months trying to conceive"
    )
    bmi: Optional[float] = Field(None, description="Body-mass index (kg/m²)")
    height_cm: Optional[float] = Field(None, alias="heightCm")
    weight_kg: Optional[float] = Field(None, alias="weightKg")
    lab_values: Optional[Dict[str, Optional[float]]] = Field(None, alias="labValues")
    symptoms: Optional[List[str]] = None
    medical_history: Optional[List[str]] = Field(None, alias="medicalHistory")
    partner: Optional[PartnerInput] = None
    endometriosis_stage: Optional[int] = Field(None, alias="endometriosisStage")


# ---- Response ----

class DiagnosticCandidateResponse(BaseModel):
    pathology_id: str
    probability: float
    evidence: List[str] = []


class PrimaryDiagnosisResponse(BaseModel):
    pathology_id: str
    name: str
    confidence: float
    evidence_level: str
    justification: List[str] = []


class RiskStratificationResponse(BaseModel):
    level: str
    score: int
    contributing_factors: List[str] = []


class TreatmentOptionResponse(BaseModel):
    treatment_id: str
    treatment: str
    success_probability: float
    timeframe: str
    rationale: str


class TreatmentDecisionTreeResponse(BaseModel):
    first_line: TreatmentOptionResponse
    second_line: TreatmentOptionResponse
    third_line: TreatmentOptionResponse
    category: str
    urgent_override: bool


class SuccessRateResponse(BaseModel):
    technique_id: str
    technique: str
    per_cycle_probability: float
    cumulative_probability: Dict[str, float]
    confidence: float
    evidence_level: str
    guideline_refs: List[str] = []
    factors: Dict[str, float] = {}
    adjustment: float
    recommendation: str
    cost_effectiveness: str


class ClinicalAnalysisResponse(BaseModel):
    primary_diagnosis: PrimaryDiagnosisResponse
    differential_diagnoses: List[DiagnosticCandidateResponse] = []
    risk_stratification: Optional[RiskStratificationResponse] = None
    treatment_decision_tree: Optional[TreatmentDecisionTreeResponse] = None
    success_rates: List[SuccessRateResponse] = []


class AnalysisResponse(BaseModel):
    """Successful (possibly partial) analysis."""
    success: bool
    data: Optional[ClinicalAnalysisResponse] = None
    metadata: Dict[str, Any] = {}


class ErrorResponse(BaseModel):
    error: str
    message: str
    details: Dict[str, Any] = {}


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    timestamp: str
    uptime_seconds: float
    cache: str
    knowledge_version: str


class CacheMetricsResponse(BaseModel):
    status: str
    total_entries: int
    total_bytes: int
    hits: int
    misses: int
    hit_rate: float
    evictions: int
    expirations: int
    oldest_entry: Optional[float] = None
    newest_entry: Optional[float] = None


class CacheInvalidationResponse(BaseModel):
    removed: int
    tag: Optional[str] = None
