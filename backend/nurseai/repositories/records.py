"""
Read-only queries over a patient's raw records.

Used by the health analyst (windowed queries), the assistant's recency
fallback and the insight scheduler.
"""

import uuid
from datetime import datetime
from typing import List, Dict, Any
from sqlalchemy import select, and_, func
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import selectinload

from nurseai.database import AsyncSessionLocal
from nurseai.models.user import User
from nurseai.models.caregiver_note import CaregiverNote
from nurseai.models.medication import Medication, MedSchedule, MedIntake
from nurseai.models.vital_measurement import VitalMeasurement
from nurseai.models.lifestyle import DietLog, ExerciseLog
from nurseai.utils.enums import UserStatus


class RecordRepository:
    """Record store queries scoped by patient and optional date range."""

    def __init__(self, session_factory: async_sessionmaker = AsyncSessionLocal):
        self.session_factory = session_factory

    async def patient_exists(self, patient_id: uuid.UUID) -> bool:
        async with self.session_factory() as db:
            result = await db.execute(
                select(func.count(User.id)).where(User.id == patient_id)
            )
            return (result.scalar() or 0) > 0

    async def get_active_user_ids(self) -> List[uuid.UUID]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(User.id)
                .where(User.status == UserStatus.active)
                .order_by(User.created_at)
            )
            return [row[0] for row in result.fetchall()]

    async def get_medications_with_intakes(
        self,
        patient_id: uuid.UUID,
        start: datetime,
        end: datetime
    ) -> List[Medication]:
        """
        Medications with schedules and only the intakes due inside the window.
        """
        in_window = and_(MedIntake.due_at >= start, MedIntake.due_at <= end)
        async with self.session_factory() as db:
            result = await db.execute(
                select(Medication)
                .where(Medication.patient_id == patient_id)
                .options(
                    selectinload(Medication.schedules)
                    .selectinload(MedSchedule.intakes.and_(in_window))
                )
                .order_by(Medication.created_at)
            )
            return list(result.scalars().all())

    async def get_vitals(
        self,
        patient_id: uuid.UUID,
        start: datetime,
        end: datetime
    ) -> List[VitalMeasurement]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(VitalMeasurement)
                .where(
                    and_(
                        VitalMeasurement.patient_id == patient_id,
                        VitalMeasurement.recorded_at >= start,
                        VitalMeasurement.recorded_at <= end,
                    )
                )
                .order_by(VitalMeasurement.recorded_at.asc())
            )
            return list(result.scalars().all())

    async def get_diet_logs(
        self,
        patient_id: uuid.UUID,
        start: datetime,
        end: datetime
    ) -> List[DietLog]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(DietLog).where(
                    and_(
                        DietLog.patient_id == patient_id,
                        DietLog.log_date >= start.date(),
                        DietLog.log_date <= end.date(),
                    )
                )
            )
            return list(result.scalars().all())

    async def get_exercise_logs(
        self,
        patient_id: uuid.UUID,
        start: datetime,
        end: datetime
    ) -> List[ExerciseLog]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(ExerciseLog).where(
                    and_(
                        ExerciseLog.patient_id == patient_id,
                        ExerciseLog.log_date >= start.date(),
                        ExerciseLog.log_date <= end.date(),
                    )
                )
            )
            return list(result.scalars().all())

    async def get_recent_records(
        self,
        patient_id: uuid.UUID,
        limit: int = 5
    ) -> Dict[str, List[Any]]:
        """
        Most recent records per kind, newest first.

        Keys match the entity kinds used by semantic search.
        """
        recency = {
            "medications": (Medication, Medication.created_at),
            "vital_measurements": (VitalMeasurement, VitalMeasurement.recorded_at),
            "caregiver_notes": (CaregiverNote, CaregiverNote.created_at),
            "diet_logs": (DietLog, DietLog.created_at),
            "exercise_logs": (ExerciseLog, ExerciseLog.created_at),
        }

        records: Dict[str, List[Any]] = {}
        async with self.session_factory() as db:
            for kind, (model, order_column) in recency.items():
                result = await db.execute(
                    select(model)
                    .where(model.patient_id == patient_id)
                    .order_by(order_column.desc())
                    .limit(limit)
                )
                records[kind] = list(result.scalars().all())
        return records
