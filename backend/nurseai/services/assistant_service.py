"""
Assistant Service for retrieval-augmented chat about a patient's records.

Flow for one message:
1. Resolve the conversation (or defer creating it)
2. Retrieve context: semantic search, or the most recent records
3. Build a single prompt with context and recent history
4. One completion call
5. Store both messages and bump the conversation in one transaction

Nothing is written when the completion call fails.
"""

import logging
import uuid
from typing import List, Optional

from nurseai.models.conversation import Conversation, ConversationMessage
from nurseai.rag.chat_client import GeminiChatClient, get_shared_chat_client
from nurseai.rag.prompt_builder import AssistantPromptBuilder, ContextBundle
from nurseai.rag.search_engine import SemanticSearchEngine
from nurseai.repositories.conversations import ConversationRepository
from nurseai.repositories.records import RecordRepository
from nurseai.schemas.chat import ChatResponse
from nurseai.utils.exceptions import GenerationFailed, NotFound, ProviderUnavailable


logger = logging.getLogger(__name__)


class AssistantService:
    """Chat assistant grounded in the target patient's records."""

    SEARCH_LIMIT = 5
    RECENT_RECORDS_LIMIT = 5
    HISTORY_LIMIT = 10

    def __init__(
        self,
        search_engine: Optional[SemanticSearchEngine] = None,
        chat_client: Optional[GeminiChatClient] = None,
        conversations: Optional[ConversationRepository] = None,
        records: Optional[RecordRepository] = None,
        prompt_builder: Optional[AssistantPromptBuilder] = None
    ):
        self._search_engine = search_engine
        self._chat_client = chat_client
        self._conversations = conversations
        self._records = records
        self.prompt_builder = prompt_builder or AssistantPromptBuilder()

    @property
    def search_engine(self) -> SemanticSearchEngine:
        """Lazy load search engine."""
        if self._search_engine is None:
            self._search_engine = SemanticSearchEngine()
        return self._search_engine

    @property
    def chat_client(self) -> GeminiChatClient:
        """Lazy load chat client."""
        if self._chat_client is None:
            self._chat_client = get_shared_chat_client()
        return self._chat_client

    @property
    def conversations(self) -> ConversationRepository:
        if self._conversations is None:
            self._conversations = ConversationRepository()
        return self._conversations

    @property
    def records(self) -> RecordRepository:
        if self._records is None:
            self._records = RecordRepository()
        return self._records

    async def chat(
        self,
        user_id: uuid.UUID,
        message: str,
        patient_id: Optional[uuid.UUID] = None,
        conversation_id: Optional[uuid.UUID] = None
    ) -> ChatResponse:
        """
        Answer one user message.

        Raises:
            GenerationFailed: Completion provider not configured or the call failed
            NotFound: ``conversation_id`` does not exist for this user
            ProviderUnavailable: The message could not be embedded for retrieval
        """
        if not self.chat_client.is_configured:
            raise GenerationFailed("Chat completion provider is not configured")

        history: List[ConversationMessage] = []
        if conversation_id is not None:
            conversation = await self.conversations.get(conversation_id, user_id)
            if conversation is None:
                raise NotFound("Conversation", conversation_id)
            history = await self.conversations.get_messages(
                conversation_id, limit=self.HISTORY_LIMIT
            )

        target_id = patient_id or user_id
        bundle = await self.retrieve_context(target_id, message)

        prompt = self.prompt_builder.build_prompt(message, bundle, history)

        try:
            reply = await self.chat_client.generate(prompt)
        except ProviderUnavailable as e:
            logger.error(f"Chat generation failed for user {user_id}: {e}")
            raise GenerationFailed(f"Failed to generate AI response: {e}") from e

        sources = bundle.sources
        conversation_id = await self.conversations.append_exchange(
            user_id=user_id,
            conversation_id=conversation_id,
            patient_id=patient_id,
            user_content=message,
            assistant_content=reply,
            assistant_metadata={"sources": sources},
        )

        return ChatResponse(
            message=reply,
            conversation_id=str(conversation_id),
            sources=sources,
        )

    async def retrieve_context(self, target_id: uuid.UUID, message: str) -> ContextBundle:
        """
        Semantic context for a non-empty message, recent records otherwise.

        Search results without medications, vitals or notes are replaced by
        the recent records so the prompt always carries clinical data when
        any exists.
        """
        if message and message.strip():
            results = await self.search_engine.search_all(
                message,
                owner_id=target_id,
                limit=self.SEARCH_LIMIT,
            )
            bundle = ContextBundle.from_search_results(results)
            if bundle.has_clinical_data:
                return bundle
            logger.debug(f"No clinical search hits for {target_id}; using recent records")

        recent = await self.records.get_recent_records(target_id, limit=self.RECENT_RECORDS_LIMIT)
        return ContextBundle.from_records(recent)

    async def get_conversation(
        self,
        conversation_id: uuid.UUID,
        user_id: uuid.UUID
    ) -> dict:
        conversation = await self.conversations.get(conversation_id, user_id)
        if conversation is None:
            raise NotFound("Conversation", conversation_id)

        messages = await self.conversations.get_messages(conversation_id)
        return {
            "conversation": conversation.to_dict(),
            "messages": [m.to_dict() for m in messages],
        }

    async def get_conversations(
        self,
        user_id: uuid.UUID,
        patient_id: Optional[uuid.UUID] = None
    ) -> List[Conversation]:
        return await self.conversations.list_for_user(user_id, patient_id)
