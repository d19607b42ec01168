# Digital Nurse AI Core database models
from nurseai.models.user import User
from nurseai.models.caregiver_note import CaregiverNote
from nurseai.models.medication import Medication, MedSchedule, MedIntake
from nurseai.models.vital_measurement import VitalMeasurement
from nurseai.models.lifestyle import DietLog, ExerciseLog
from nurseai.models.document import UserDocument, DocumentChunk
from nurseai.models.insight import Insight
from nurseai.models.conversation import Conversation, ConversationMessage
from nurseai.models.app_config import AppConfig

__all__ = [
    "User",
    "CaregiverNote",
    "Medication",
    "MedSchedule",
    "MedIntake",
    "VitalMeasurement",
    "DietLog",
    "ExerciseLog",
    "UserDocument",
    "DocumentChunk",
    "Insight",
    "Conversation",
    "ConversationMessage",
    "AppConfig",
]
