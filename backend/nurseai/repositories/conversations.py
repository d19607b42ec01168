import uuid
from datetime import datetime, timedelta
from typing import List, Optional, Dict, Any
from sqlalchemy import select, and_, update
from sqlalchemy.ext.asyncio import async_sessionmaker

from nurseai.database import AsyncSessionLocal
from nurseai.models.conversation import Conversation, ConversationMessage
from nurseai.utils.enums import MessageRole


class ConversationRepository:
    """Persistence for assistant conversations and their messages."""

    def __init__(self, session_factory: async_sessionmaker = AsyncSessionLocal):
        self.session_factory = session_factory

    async def get(
        self,
        conversation_id: uuid.UUID,
        user_id: uuid.UUID
    ) -> Optional[Conversation]:
        """Get a conversation owned by ``user_id``."""
        async with self.session_factory() as db:
            result = await db.execute(
                select(Conversation).where(
                    and_(
                        Conversation.id == conversation_id,
                        Conversation.user_id == user_id
                    )
                )
            )
            return result.scalar_one_or_none()

    async def list_for_user(
        self,
        user_id: uuid.UUID,
        patient_id: Optional[uuid.UUID] = None
    ) -> List[Conversation]:
        query = select(Conversation).where(Conversation.user_id == user_id)
        if patient_id:
            query = query.where(Conversation.patient_id == patient_id)
        query = query.order_by(Conversation.updated_at.desc())

        async with self.session_factory() as db:
            result = await db.execute(query)
            return list(result.scalars().all())

    async def get_messages(
        self,
        conversation_id: uuid.UUID,
        limit: Optional[int] = None
    ) -> List[ConversationMessage]:
        """
        Messages in chronological order.

        With ``limit`` only the most recent ``limit`` messages are returned,
        still oldest first.
        """
        query = select(ConversationMessage).where(
            ConversationMessage.conversation_id == conversation_id
        )
        async with self.session_factory() as db:
            if limit is None:
                result = await db.execute(query.order_by(ConversationMessage.created_at.asc()))
                return list(result.scalars().all())

            result = await db.execute(
                query.order_by(ConversationMessage.created_at.desc()).limit(limit)
            )
            messages = list(result.scalars().all())
            messages.reverse()
            return messages

    async def append_exchange(
        self,
        user_id: uuid.UUID,
        conversation_id: Optional[uuid.UUID],
        patient_id: Optional[uuid.UUID],
        user_content: str,
        assistant_content: str,
        assistant_metadata: Optional[Dict[str, Any]] = None
    ) -> uuid.UUID:
        """
        Store one user/assistant exchange in a single transaction.

        Creates the conversation when ``conversation_id`` is None and bumps
        ``updated_at`` otherwise. Returns the conversation id.
        """
        now = datetime.utcnow()

        async with self.session_factory() as db:
            async with db.begin():
                if conversation_id is None:
                    conversation = Conversation(
                        user_id=user_id,
                        patient_id=patient_id,
                        created_at=now,
                        updated_at=now,
                    )
                    db.add(conversation)
                    await db.flush()
                    conversation_id = conversation.id
                else:
                    await db.execute(
                        update(Conversation)
                        .where(Conversation.id == conversation_id)
                        .values(updated_at=now)
                    )

                db.add_all([
                    ConversationMessage(
                        conversation_id=conversation_id,
                        role=MessageRole.user,
                        content=user_content,
                        created_at=now,
                    ),
                    ConversationMessage(
                        conversation_id=conversation_id,
                        role=MessageRole.assistant,
                        content=assistant_content,
                        extra_metadata=assistant_metadata,
                        # Keeps replay order stable when both share a clock tick
                        created_at=now + timedelta(microseconds=1),
                    ),
                ])

        return conversation_id
