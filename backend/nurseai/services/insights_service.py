"""
Insights Service

Turns a HealthAnalysisResult into typed, human-readable insights, embeds them
and stores them so they are also reachable through semantic search.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Dict, Any, Optional, Sequence, Callable, Awaitable

from nurseai.models.insight import Insight
from nurseai.rag.embedding_service import EmbeddingService
from nurseai.repositories.insights import InsightRepository
from nurseai.repositories.records import RecordRepository
from nurseai.services.health_analyst import HealthAnalyst
from nurseai.utils.enums import InsightType, InsightPriority, InsightCategory, Severity
from nurseai.utils.exceptions import InvalidInput, NotFound


logger = logging.getLogger(__name__)


@dataclass
class InsightDraft:
    """Builder output before embedding and persistence."""
    title: str
    content: str
    confidence: float
    recommendations: List[str] = field(default_factory=list)

    @property
    def embedding_text(self) -> str:
        return f"{self.title} {self.content}"


class InsightsService:
    """
    Generates, lists and updates insights.

    Builders are registered per insight type; the alert builder may return
    None, which means "nothing to report" and is not persisted.
    """

    def __init__(
        self,
        analyst: Optional[HealthAnalyst] = None,
        embedding_service: Optional[EmbeddingService] = None,
        insights: Optional[InsightRepository] = None,
        records: Optional[RecordRepository] = None
    ):
        self._analyst = analyst
        self._embedding_service = embedding_service
        self._insights = insights
        self._records = records

        self.builders: Dict[InsightType, Callable[[uuid.UUID], Awaitable[Optional[InsightDraft]]]] = {
            InsightType.medication_adherence: self._build_medication_adherence,
            InsightType.health_trend: self._build_health_trend,
            InsightType.recommendation: self._build_recommendation,
            InsightType.alert: self._build_alert,
            InsightType.pattern_detection: self._build_pattern_detection,
        }

    @property
    def analyst(self) -> HealthAnalyst:
        """Lazy load health analyst."""
        if self._analyst is None:
            self._analyst = HealthAnalyst(records=self.records)
        return self._analyst

    @property
    def embedding_service(self) -> EmbeddingService:
        """Lazy load embedding service."""
        if self._embedding_service is None:
            self._embedding_service = EmbeddingService()
        return self._embedding_service

    @property
    def insights(self) -> InsightRepository:
        if self._insights is None:
            self._insights = InsightRepository()
        return self._insights

    @property
    def records(self) -> RecordRepository:
        if self._records is None:
            self._records = RecordRepository()
        return self._records

    async def generate_insight(
        self,
        kind,
        patient_id: uuid.UUID,
        requesting_user_id: uuid.UUID,
        priority: Optional[InsightPriority] = None,
        category: Optional[InsightCategory] = None,
        metadata: Optional[Dict[str, Any]] = None,
        expires_at: Optional[datetime] = None
    ) -> Optional[Insight]:
        """
        Build, embed and store one insight.

        Returns:
            The stored insight, or None when the builder found nothing to report

        Raises:
            InvalidInput: Unknown insight type
            NotFound: Unknown patient
            ProviderUnavailable: The insight text could not be embedded
        """
        try:
            insight_type = InsightType(kind)
        except ValueError:
            raise InvalidInput(f"Unknown insight type: {kind}")

        if not await self.records.patient_exists(patient_id):
            raise NotFound("Patient", patient_id)

        logger.info(
            f"Generating {insight_type.value} insight for patient {patient_id} "
            f"(requested by user {requesting_user_id})"
        )

        draft = await self.builders[insight_type](patient_id)
        if draft is None:
            logger.info(f"No {insight_type.value} insight for patient {patient_id}")
            return None

        embedding = await self.embedding_service.generate_embedding(draft.embedding_text)

        insight = Insight(
            user_id=requesting_user_id,
            patient_id=patient_id,
            insight_type=insight_type,
            title=draft.title,
            content=draft.content,
            confidence=draft.confidence,
            priority=priority or InsightPriority.medium,
            category=category,
            recommendations=draft.recommendations,
            extra_metadata=metadata,
            embedding=embedding,
            is_read=False,
            is_archived=False,
            generated_at=datetime.utcnow(),
            expires_at=expires_at,
        )
        return await self.insights.add(insight)

    async def get_insights(
        self,
        user_id: uuid.UUID,
        patient_id: Optional[uuid.UUID] = None,
        kinds: Optional[Sequence[InsightType]] = None,
        priorities: Optional[Sequence[InsightPriority]] = None,
        categories: Optional[Sequence[InsightCategory]] = None,
        is_read: Optional[bool] = None,
        limit: int = 20
    ) -> List[Insight]:
        return await self.insights.list_for_user(
            user_id,
            patient_id=patient_id,
            kinds=kinds,
            priorities=priorities,
            categories=categories,
            is_read=is_read,
            limit=limit,
        )

    async def mark_as_read(self, insight_id: uuid.UUID, user_id: uuid.UUID):
        if not await self.insights.set_flag(insight_id, user_id, is_read=True):
            raise NotFound("Insight", insight_id)

    async def archive_insight(self, insight_id: uuid.UUID, user_id: uuid.UUID):
        if not await self.insights.set_flag(insight_id, user_id, is_archived=True):
            raise NotFound("Insight", insight_id)

    async def delete_expired_insights(self) -> int:
        deleted = await self.insights.delete_expired()
        logger.info(f"Deleted {deleted} expired insights")
        return deleted

    # -----------------------------------------------------------------------
    # Builders
    # -----------------------------------------------------------------------

    async def _build_medication_adherence(self, patient_id: uuid.UUID) -> InsightDraft:
        analysis = await self.analyst.analyze(patient_id)
        adherence = analysis.medication_adherence
        overall = adherence.overall_percentage

        if overall < 70:
            return InsightDraft(
                title="Low Medication Adherence Detected",
                content=(
                    f"Your medication adherence is {overall:.1f}%, which is below the "
                    "recommended 80%. This may impact treatment effectiveness."
                ),
                confidence=85,
                recommendations=list(adherence.recommendations),
            )
        if overall < 80:
            return InsightDraft(
                title="Medication Adherence Needs Improvement",
                content=(
                    f"Your medication adherence is {overall:.1f}%. "
                    "Consider setting reminders to improve consistency."
                ),
                confidence=75,
                recommendations=list(adherence.recommendations),
            )
        return InsightDraft(
            title="Good Medication Adherence",
            content=f"Your medication adherence is {overall:.1f}%. Keep up the good work!",
            confidence=90,
        )

    async def _build_health_trend(self, patient_id: uuid.UUID) -> InsightDraft:
        analysis = await self.analyst.analyze(patient_id)
        trends = analysis.health_trends
        concerning = [v.type for v in trends.vitals if v.concern_level == Severity.high]

        if concerning:
            return InsightDraft(
                title="Concerning Health Trends Detected",
                content=(
                    f"We've detected concerning trends in {', '.join(concerning)}. "
                    "Please consult your healthcare provider."
                ),
                confidence=80,
                recommendations=list(trends.recommendations),
            )
        return InsightDraft(
            title="Health Trends Stable",
            content="Your health measurements are within normal ranges and showing stable trends.",
            confidence=85,
        )

    async def _build_recommendation(self, patient_id: uuid.UUID) -> InsightDraft:
        analysis = await self.analyst.analyze(patient_id)
        recommendations = [
            *analysis.medication_adherence.recommendations,
            *analysis.health_trends.recommendations,
            *analysis.lifestyle_correlation.recommendations,
        ]

        if not recommendations:
            return InsightDraft(
                title="No Recommendations at This Time",
                content="Your health data looks good. Continue maintaining your current routine.",
                confidence=70,
            )
        return InsightDraft(
            title="Personalized Health Recommendations",
            content=(
                f"Based on your recent health data, we have {len(recommendations)} "
                "recommendations to help improve your health outcomes."
            ),
            confidence=75,
            recommendations=recommendations,
        )

    async def _build_alert(self, patient_id: uuid.UUID) -> Optional[InsightDraft]:
        analysis = await self.analyst.analyze(patient_id)
        high_risk = [r for r in analysis.risk_factors if r.severity == Severity.high]

        if not high_risk:
            return None
        return InsightDraft(
            title="Health Alert: Action Required",
            content=(
                f"We've identified {len(high_risk)} high-priority risk factor(s) "
                "that require attention."
            ),
            confidence=90,
            recommendations=[r.recommendation for r in high_risk],
        )

    async def _build_pattern_detection(self, patient_id: uuid.UUID) -> InsightDraft:
        # Placeholder until pattern mining exists
        return InsightDraft(
            title="Health Pattern Analysis",
            content="We are analyzing your health patterns. Check back soon for personalized insights.",
            confidence=60,
        )
