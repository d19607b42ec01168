import uuid
from datetime import datetime, time
from typing import Optional, List
from sqlalchemy import String, Text, DateTime, Time, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID
from pgvector.sqlalchemy import Vector

from nurseai.database import Base
from nurseai.utils.enums import IntakeStatus


class Medication(Base):
    __tablename__ = "medications"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    patient_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    medication_name: Mapped[str] = mapped_column(String(255), nullable=False)
    dosage: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Embedding of notes + instructions
    notes_embedding: Mapped[Optional[list]] = mapped_column(Vector(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False
    )

    # Relationships
    schedules: Mapped[List["MedSchedule"]] = relationship(
        "MedSchedule",
        back_populates="medication",
        cascade="all, delete-orphan"
    )

    def embedding_text(self) -> str:
        """Text used for the notes embedding (notes first, then instructions)."""
        parts = [t.strip() for t in (self.notes, self.instructions) if t and t.strip()]
        return " ".join(parts)

    def __repr__(self) -> str:
        return f"<Medication(id={self.id}, name={self.medication_name})>"


class MedSchedule(Base):
    __tablename__ = "med_schedules"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    medication_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("medications.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    time_of_day: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False
    )

    # Relationships
    medication: Mapped["Medication"] = relationship("Medication", back_populates="schedules")
    intakes: Mapped[List["MedIntake"]] = relationship(
        "MedIntake",
        back_populates="schedule",
        cascade="all, delete-orphan"
    )


class MedIntake(Base):
    """One scheduled dose and whether it was taken."""
    __tablename__ = "med_intakes"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    schedule_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("med_schedules.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    due_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    status: Mapped[IntakeStatus] = mapped_column(
        SQLEnum(IntakeStatus),
        default=IntakeStatus.pending,
        nullable=False
    )
    taken_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Relationships
    schedule: Mapped["MedSchedule"] = relationship("MedSchedule", back_populates="intakes")

    def __repr__(self) -> str:
        return f"<MedIntake(id={self.id}, due_at={self.due_at}, status={self.status})>"
