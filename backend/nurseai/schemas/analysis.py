"""Pydantic schemas for health analysis results."""

from datetime import datetime
from typing import List
from pydantic import BaseModel, Field

from nurseai.utils.enums import AdherenceTrend, VitalTrend, Severity


class MedicationAdherenceItem(BaseModel):
    medication_id: str
    name: str
    adherence: float
    missed_doses: int


class MedicationAdherenceSummary(BaseModel):
    overall_percentage: float
    trend: AdherenceTrend
    medications: List[MedicationAdherenceItem] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class VitalTrendItem(BaseModel):
    type: str
    trend: VitalTrend
    average_value: float
    concern_level: Severity


class HealthTrendSummary(BaseModel):
    vitals: List[VitalTrendItem] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class DietSummary(BaseModel):
    average_calories: float = 0
    consistency: int = 0  # Number of diet logs in the window


class ExerciseSummary(BaseModel):
    average_minutes: float = 0
    frequency: int = 0  # Number of exercise logs in the window


class LifestyleCorrelationSummary(BaseModel):
    diet: DietSummary = Field(default_factory=DietSummary)
    exercise: ExerciseSummary = Field(default_factory=ExerciseSummary)
    recommendations: List[str] = Field(default_factory=list)


class RiskFactor(BaseModel):
    type: str
    severity: Severity
    description: str
    recommendation: str


class HealthAnalysisResult(BaseModel):
    """Aggregate computed fresh for every analysis call; never persisted."""
    patient_id: str
    period_start: datetime
    period_end: datetime
    medication_adherence: MedicationAdherenceSummary
    health_trends: HealthTrendSummary
    lifestyle_correlation: LifestyleCorrelationSummary
    risk_factors: List[RiskFactor] = Field(default_factory=list)
