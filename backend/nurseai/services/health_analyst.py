"""
Health Analyst

Statistical summary of a patient's raw records over a time window:
medication adherence, per-vital trends, lifestyle averages and risk factors.
Reads records directly (no embeddings) and never persists its result.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Dict, Optional, Callable

import numpy as np

from nurseai.models.medication import Medication
from nurseai.models.vital_measurement import VitalMeasurement
from nurseai.models.lifestyle import DietLog, ExerciseLog
from nurseai.repositories.records import RecordRepository
from nurseai.schemas.analysis import (
    HealthAnalysisResult,
    MedicationAdherenceItem,
    MedicationAdherenceSummary,
    VitalTrendItem,
    HealthTrendSummary,
    DietSummary,
    ExerciseSummary,
    LifestyleCorrelationSummary,
    RiskFactor,
)
from nurseai.utils.enums import IntakeStatus, AdherenceTrend, VitalTrend, Severity, VitalKind
from nurseai.utils.exceptions import InvalidInput


logger = logging.getLogger(__name__)


DEFAULT_WINDOW_DAYS = 30
TREND_CHANGE_PERCENT = 5.0
WEEKLY_EXERCISE_TARGET_MINUTES = 150
MISSED_DOSE_RISK_THRESHOLD = 10
SYSTOLIC_RISK_THRESHOLD = 140

# kind code -> (high, medium) thresholds on the average value
CONCERN_THRESHOLDS = {
    VitalKind.blood_pressure.value: (140, 130),
    VitalKind.blood_sugar.value: (180, 140),
}


# ---------------------------------------------------------------------------
# Medication adherence
# ---------------------------------------------------------------------------

def _intakes(medication: Medication) -> list:
    return [intake for schedule in medication.schedules for intake in schedule.intakes]


def classify_adherence_trend(overall: float) -> AdherenceTrend:
    """
    Coarse snapshot heuristic on the overall percentage.

    This is not a time series comparison: >= 90 is "stable",
    >= 75 "improving", anything lower "declining".
    """
    if overall >= 90:
        return AdherenceTrend.stable
    if overall >= 75:
        return AdherenceTrend.improving
    return AdherenceTrend.declining


def compute_medication_adherence(medications: List[Medication]) -> MedicationAdherenceSummary:
    items = []
    for med in medications:
        intakes = _intakes(med)
        total = len(intakes)
        taken = sum(1 for i in intakes if i.status == IntakeStatus.taken)
        adherence = taken / total * 100 if total > 0 else 100.0

        items.append(MedicationAdherenceItem(
            medication_id=str(med.id),
            name=med.medication_name,
            adherence=round(adherence, 2),
            missed_doses=total - taken,
        ))

    overall = float(np.mean([m.adherence for m in items])) if items else 100.0

    recommendations = []
    if overall < 80:
        recommendations.append("Consider setting medication reminders")
        recommendations.append("Review medication schedule for conflicts")
    if any(m.adherence < 70 for m in items):
        recommendations.append("Some medications have low adherence - discuss with healthcare provider")

    return MedicationAdherenceSummary(
        overall_percentage=round(overall, 2),
        trend=classify_adherence_trend(overall),
        medications=items,
        recommendations=recommendations,
    )


# ---------------------------------------------------------------------------
# Vital trends
# ---------------------------------------------------------------------------

def _parse_number(text: Optional[str]) -> float:
    if not text:
        return 0.0
    try:
        return float(text.strip().split("/")[0])
    except ValueError:
        return 0.0


def vital_value(vital: VitalMeasurement) -> float:
    """Primary reading: value1, else a number parsed from value_text, else 0."""
    return vital.value1 or _parse_number(vital.value_text) or 0.0


def classify_vital_trend(values: List[float]) -> VitalTrend:
    """Compare the mean of the first half with the mean of the second half."""
    mid = len(values) // 2
    if mid == 0:
        return VitalTrend.stable

    first = float(np.mean(values[:mid]))
    second = float(np.mean(values[mid:]))
    if first == 0:
        return VitalTrend.stable

    change = (second - first) / first * 100
    if abs(change) > TREND_CHANGE_PERCENT:
        return VitalTrend.increasing if change > 0 else VitalTrend.decreasing
    return VitalTrend.stable


def classify_concern(kind_code: str, average: float, trend: VitalTrend) -> Severity:
    thresholds = CONCERN_THRESHOLDS.get(kind_code)
    if thresholds:
        high, medium = thresholds
        if average > high:
            return Severity.high
        if average > medium:
            return Severity.medium
    if kind_code == VitalKind.weight.value and trend == VitalTrend.increasing:
        return Severity.medium
    return Severity.low


def compute_vital_trends(vitals: List[VitalMeasurement]) -> HealthTrendSummary:
    by_kind: Dict[str, List[float]] = {}
    for vital in vitals:
        by_kind.setdefault(vital.kind_code, []).append(vital_value(vital))

    items = []
    for kind_code, raw_values in by_kind.items():
        values = [v for v in raw_values if v > 0]
        if not values:
            continue

        average = float(np.mean(values))
        trend = classify_vital_trend(values)
        items.append(VitalTrendItem(
            type=kind_code,
            trend=trend,
            average_value=round(average, 2),
            concern_level=classify_concern(kind_code, average, trend),
        ))

    recommendations = []
    high_concern = [item.type for item in items if item.concern_level == Severity.high]
    if high_concern:
        recommendations.append(
            f"Monitor {', '.join(high_concern)} closely - consult healthcare provider if trends continue"
        )

    return HealthTrendSummary(vitals=items, recommendations=recommendations)


# ---------------------------------------------------------------------------
# Lifestyle
# ---------------------------------------------------------------------------

def compute_lifestyle(
    diet_logs: List[DietLog],
    exercise_logs: List[ExerciseLog]
) -> LifestyleCorrelationSummary:
    calories = [d.calories for d in diet_logs if d.calories and d.calories > 0]
    minutes = [e.duration_minutes for e in exercise_logs if e.duration_minutes and e.duration_minutes > 0]

    # Average per logged session, not per week
    average_calories = float(np.mean(calories)) if calories else 0.0
    average_minutes = float(np.mean(minutes)) if minutes else 0.0

    recommendations = []
    if average_calories == 0:
        recommendations.append("Start logging meals to track nutrition")
    if average_minutes < WEEKLY_EXERCISE_TARGET_MINUTES:
        recommendations.append("Aim for at least 150 minutes of exercise per week")

    return LifestyleCorrelationSummary(
        diet=DietSummary(average_calories=round(average_calories), consistency=len(diet_logs)),
        exercise=ExerciseSummary(average_minutes=round(average_minutes), frequency=len(exercise_logs)),
        recommendations=recommendations,
    )


# ---------------------------------------------------------------------------
# Risk factors
# ---------------------------------------------------------------------------

@dataclass
class RiskInputs:
    medications: List[Medication]
    vitals: List[VitalMeasurement]


RiskRule = Callable[[RiskInputs], Optional[RiskFactor]]


def missed_medication_risk(inputs: RiskInputs) -> Optional[RiskFactor]:
    missed = sum(
        1
        for med in inputs.medications
        for intake in _intakes(med)
        if intake.status != IntakeStatus.taken
    )
    if missed > MISSED_DOSE_RISK_THRESHOLD:
        return RiskFactor(
            type="medication_adherence",
            severity=Severity.high,
            description=f"High number of missed medications ({missed} doses)",
            recommendation="Review medication schedule and consider reminder system",
        )
    return None


def blood_pressure_risk(inputs: RiskInputs) -> Optional[RiskFactor]:
    systolic = [
        v.value1
        for v in inputs.vitals
        if v.kind_code == VitalKind.blood_pressure.value and v.value1 and v.value2
    ]
    if systolic and float(np.mean(systolic)) > SYSTOLIC_RISK_THRESHOLD:
        return RiskFactor(
            type="blood_pressure",
            severity=Severity.medium,
            description="Elevated blood pressure readings detected",
            recommendation="Monitor blood pressure regularly and consult healthcare provider",
        )
    return None


DEFAULT_RISK_RULES: List[RiskRule] = [missed_medication_risk, blood_pressure_risk]


def identify_risk_factors(inputs: RiskInputs, rules: Optional[List[RiskRule]] = None) -> List[RiskFactor]:
    factors = []
    for rule in rules if rules is not None else DEFAULT_RISK_RULES:
        factor = rule(inputs)
        if factor is not None:
            factors.append(factor)
    return factors


# ---------------------------------------------------------------------------
# Analyst
# ---------------------------------------------------------------------------

def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Record timestamps are stored as naive UTC; aware inputs are converted."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class HealthAnalyst:
    """
    Computes a HealthAnalysisResult for one patient and window.

    Example:
        analyst = HealthAnalyst()
        result = await analyst.analyze(patient_id)
        print(result.medication_adherence.overall_percentage)
    """

    def __init__(
        self,
        records: Optional[RecordRepository] = None,
        risk_rules: Optional[List[RiskRule]] = None
    ):
        self._records = records
        self.risk_rules = risk_rules if risk_rules is not None else list(DEFAULT_RISK_RULES)

    @property
    def records(self) -> RecordRepository:
        """Lazy load record repository."""
        if self._records is None:
            self._records = RecordRepository()
        return self._records

    async def analyze(
        self,
        patient_id: uuid.UUID,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ) -> HealthAnalysisResult:
        """
        Analyze the window [start_date, end_date], defaulting to the last 30 days.

        Raises:
            InvalidInput: If start_date is after end_date
        """
        end = _naive_utc(end_date) or datetime.utcnow()
        start = _naive_utc(start_date) or end - timedelta(days=DEFAULT_WINDOW_DAYS)
        if start > end:
            raise InvalidInput("start_date must not be after end_date")

        medications, vitals, diet_logs, exercise_logs = await asyncio.gather(
            self.records.get_medications_with_intakes(patient_id, start, end),
            self.records.get_vitals(patient_id, start, end),
            self.records.get_diet_logs(patient_id, start, end),
            self.records.get_exercise_logs(patient_id, start, end),
        )

        logger.debug(
            f"Analyzing patient {patient_id}: {len(medications)} medications, "
            f"{len(vitals)} vitals, {len(diet_logs)} diet logs, {len(exercise_logs)} exercise logs"
        )

        return HealthAnalysisResult(
            patient_id=str(patient_id),
            period_start=start,
            period_end=end,
            medication_adherence=compute_medication_adherence(medications),
            health_trends=compute_vital_trends(vitals),
            lifestyle_correlation=compute_lifestyle(diet_logs, exercise_logs),
            risk_factors=identify_risk_factors(RiskInputs(medications, vitals), self.risk_rules),
        )
