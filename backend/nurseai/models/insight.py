"""AI-generated insight model."""

import uuid
from datetime import datetime
from typing import Optional, Any
from sqlalchemy import String, Text, Float, Boolean, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID, JSONB
from pgvector.sqlalchemy import Vector

from nurseai.database import Base
from nurseai.utils.enums import InsightType, InsightPriority, InsightCategory


class Insight(Base):
    """
    A typed, human-readable insight about a patient.

    Only the read/archived flags change after creation. Rows with an
    ``expires_at`` in the past are removed by the cleanup job.
    """
    __tablename__ = "ai_insights"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    # Requesting user and target patient
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    patient_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    insight_type: Mapped[InsightType] = mapped_column(SQLEnum(InsightType), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)  # 0-100
    priority: Mapped[InsightPriority] = mapped_column(
        SQLEnum(InsightPriority),
        default=InsightPriority.medium,
        nullable=False
    )
    category: Mapped[Optional[InsightCategory]] = mapped_column(
        SQLEnum(InsightCategory),
        nullable=True
    )
    recommendations: Mapped[list] = mapped_column(JSONB, default=list, nullable=False)
    extra_metadata: Mapped[Optional[dict]] = mapped_column("metadata", JSONB, nullable=True)
    embedding: Mapped[Optional[list]] = mapped_column(Vector(), nullable=True)

    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    generated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True
    )
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<Insight(id={self.id}, type={self.insight_type}, title={self.title})>"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "patient_id": str(self.patient_id),
            "type": self.insight_type.value,
            "title": self.title,
            "content": self.content,
            "confidence": self.confidence,
            "priority": self.priority.value if self.priority else None,
            "category": self.category.value if self.category else None,
            "recommendations": self.recommendations or [],
            "metadata": self.extra_metadata,
            "is_read": self.is_read,
            "is_archived": self.is_archived,
            "generated_at": self.generated_at.isoformat() if self.generated_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }
