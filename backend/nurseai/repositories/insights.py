import uuid
from datetime import datetime
from typing import List, Optional, Sequence
from sqlalchemy import select, and_, update, delete
from sqlalchemy.ext.asyncio import async_sessionmaker

from nurseai.database import AsyncSessionLocal
from nurseai.models.insight import Insight
from nurseai.utils.enums import InsightType, InsightPriority, InsightCategory


class InsightRepository:
    """Persistence for generated insights."""

    def __init__(self, session_factory: async_sessionmaker = AsyncSessionLocal):
        self.session_factory = session_factory

    async def add(self, insight: Insight) -> Insight:
        async with self.session_factory() as db:
            async with db.begin():
                db.add(insight)
                await db.flush()
            return insight

    async def list_for_user(
        self,
        user_id: uuid.UUID,
        patient_id: Optional[uuid.UUID] = None,
        kinds: Optional[Sequence[InsightType]] = None,
        priorities: Optional[Sequence[InsightPriority]] = None,
        categories: Optional[Sequence[InsightCategory]] = None,
        is_read: Optional[bool] = None,
        limit: int = 20
    ) -> List[Insight]:
        """Non-archived insights for a user, newest first."""
        conditions = [Insight.user_id == user_id, Insight.is_archived.is_(False)]

        if patient_id:
            conditions.append(Insight.patient_id == patient_id)
        if kinds:
            conditions.append(Insight.insight_type.in_(list(kinds)))
        if priorities:
            conditions.append(Insight.priority.in_(list(priorities)))
        if categories:
            conditions.append(Insight.category.in_(list(categories)))
        if is_read is not None:
            conditions.append(Insight.is_read.is_(is_read))

        async with self.session_factory() as db:
            result = await db.execute(
                select(Insight)
                .where(and_(*conditions))
                .order_by(Insight.generated_at.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def set_flag(
        self,
        insight_id: uuid.UUID,
        user_id: uuid.UUID,
        **flags: bool
    ) -> bool:
        """Flip read/archived flags. Returns False when no row matched."""
        async with self.session_factory() as db:
            async with db.begin():
                result = await db.execute(
                    update(Insight)
                    .where(and_(Insight.id == insight_id, Insight.user_id == user_id))
                    .values(updated_at=datetime.utcnow(), **flags)
                )
            return result.rowcount > 0

    async def delete_expired(self, now: Optional[datetime] = None) -> int:
        """Delete insights whose ``expires_at`` is set and in the past."""
        now = now or datetime.utcnow()
        async with self.session_factory() as db:
            async with db.begin():
                result = await db.execute(
                    delete(Insight).where(
                        and_(
                            Insight.expires_at.is_not(None),
                            Insight.expires_at < now
                        )
                    )
                )
            return result.rowcount
