import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import String, Text, DateTime, Float, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID
from pgvector.sqlalchemy import Vector

from nurseai.database import Base


class VitalMeasurement(Base):
    """
    A single vital reading.

    ``kind_code`` is one of ``nurseai.utils.enums.VitalKind`` values. Blood
    pressure stores systolic in ``value1`` and diastolic in ``value2``.
    """
    __tablename__ = "vital_measurements"

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
    kind_code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    value1: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    value2: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    value_text: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes_embedding: Mapped[Optional[list]] = mapped_column(Vector(), nullable=True)
    recorded_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<VitalMeasurement(id={self.id}, kind={self.kind_code}, value={self.value1})>"
