from enum import Enum


class UserStatus(str, Enum):
    active = "active"
    inactive = "inactive"
    suspended = "suspended"


class IntakeStatus(str, Enum):
    pending = "pending"
    taken = "taken"
    missed = "missed"
    skipped = "skipped"


class VitalKind(str, Enum):
    blood_pressure = "bp"
    blood_sugar = "bs"
    heart_rate = "hr"
    weight = "weight"
    temperature = "temp"
    spo2 = "spo2"


class EntityType(str, Enum):
    """Record kinds that carry embeddings and can be searched."""
    caregiver_notes = "caregiver_notes"
    medications = "medications"
    vital_measurements = "vital_measurements"
    diet_logs = "diet_logs"
    exercise_logs = "exercise_logs"
    document_chunks = "document_chunks"
    ai_insights = "ai_insights"


class InsightType(str, Enum):
    medication_adherence = "medication_adherence"
    health_trend = "health_trend"
    recommendation = "recommendation"
    alert = "alert"
    pattern_detection = "pattern_detection"


class InsightPriority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


class InsightCategory(str, Enum):
    medication = "medication"
    vitals = "vitals"
    lifestyle = "lifestyle"
    general = "general"


class MessageRole(str, Enum):
    user = "user"
    assistant = "assistant"


class AdherenceTrend(str, Enum):
    improving = "improving"
    declining = "declining"
    stable = "stable"


class VitalTrend(str, Enum):
    increasing = "increasing"
    decreasing = "decreasing"
    stable = "stable"


class Severity(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
