"""
Document chunking and chunk-scoped question answering.

Text is split with a sliding window that prefers to end on a sentence or
paragraph boundary. Every chunk is embedded before the store is touched and
the new set replaces the old one in a single transaction.
"""

import logging
import math
import uuid
from dataclasses import dataclass
from typing import List, Optional

from nurseai.config import settings
from nurseai.models.document import DocumentChunk
from nurseai.rag.embedding_service import EmbeddingService
from nurseai.rag.vector_service import VectorService
from nurseai.schemas.document import DocumentAnswer, DocumentSource
from nurseai.schemas.search import SearchResult
from nurseai.utils.exceptions import InvalidInput, NotFound


logger = logging.getLogger(__name__)


@dataclass
class ChunkSpan:
    index: int
    text: str
    start_char: int
    end_char: int
    token_count: int


def estimate_tokens(text: str) -> int:
    """Rough token estimate (~4 characters per token)."""
    return math.ceil(len(text) / 4)


def chunk_text(text: str, chunk_size: int = 1000, chunk_overlap: int = 200) -> List[ChunkSpan]:
    """
    Split text into overlapping chunks.

    A window ends at the last '.' or paragraph break inside it when that
    boundary lies past the middle of the window, otherwise at the hard edge.
    Offsets point at the trimmed chunk inside ``text``.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if not 0 <= chunk_overlap < chunk_size:
        raise ValueError("chunk_overlap must be in [0, chunk_size)")

    spans: List[ChunkSpan] = []
    length = len(text)
    start = 0

    while start < length:
        end = min(start + chunk_size, length)
        actual_end = end

        if end < length:
            best_break = max(text.rfind(".", start, end), text.rfind("\n\n", start, end))
            if best_break > start + chunk_size * 0.5:
                actual_end = best_break + 1

        window = text[start:actual_end]
        stripped = window.strip()
        if stripped:
            leading = len(window) - len(window.lstrip())
            chunk_start = start + leading
            spans.append(ChunkSpan(
                index=len(spans),
                text=stripped,
                start_char=chunk_start,
                end_char=chunk_start + len(stripped),
                token_count=estimate_tokens(stripped),
            ))

        if actual_end >= length:
            break

        # Always move forward, even when the overlap would step back past start
        start = max(actual_end - chunk_overlap, start + 1)

    return spans


class DocumentProcessor:
    """Chunks, embeds and searches uploaded document text."""

    ANSWER_THRESHOLD = 0.6
    ANSWER_LIMIT = 5
    NOT_FOUND_ANSWER = (
        "I could not find relevant information in the document to answer this question."
    )
    EMBED_BATCH_SIZE = 64

    def __init__(
        self,
        embedding_service: Optional[EmbeddingService] = None,
        vector_service: Optional[VectorService] = None,
        chunk_size: Optional[int] = None,
        chunk_overlap: Optional[int] = None
    ):
        self._embedding_service = embedding_service
        self._vector_service = vector_service
        self.chunk_size = chunk_size or settings.RAG_CHUNK_SIZE
        self.chunk_overlap = settings.RAG_CHUNK_OVERLAP if chunk_overlap is None else chunk_overlap

    @property
    def embedding_service(self) -> EmbeddingService:
        """Lazy load embedding service."""
        if self._embedding_service is None:
            self._embedding_service = EmbeddingService()
        return self._embedding_service

    @property
    def vector_service(self) -> VectorService:
        """Lazy load vector service."""
        if self._vector_service is None:
            self._vector_service = VectorService()
        return self._vector_service

    async def _require_document(self, document_id: uuid.UUID):
        if not await self.vector_service.document_exists(document_id):
            raise NotFound("Document", document_id)

    async def process_document(
        self,
        document_id: uuid.UUID,
        owner_id: uuid.UUID,
        text: str
    ) -> List[ChunkSpan]:
        """
        Chunk, embed and store a document's text, replacing earlier chunks.

        Raises:
            InvalidInput: Empty text
            NotFound: Unknown document
            ProviderUnavailable: Embedding failed (existing chunks are untouched)
        """
        if not text or not text.strip():
            raise InvalidInput("Document text cannot be empty")

        await self._require_document(document_id)

        spans = chunk_text(text, self.chunk_size, self.chunk_overlap)

        embeddings: List[List[float]] = []
        for i in range(0, len(spans), self.EMBED_BATCH_SIZE):
            batch = spans[i:i + self.EMBED_BATCH_SIZE]
            embeddings.extend(
                await self.embedding_service.generate_embeddings_batch([s.text for s in batch])
            )

        chunks = [
            DocumentChunk(
                document_id=document_id,
                patient_id=owner_id,
                chunk_index=span.index,
                chunk_text=span.text,
                chunk_embedding=embedding,
                token_count=span.token_count,
                start_char=span.start_char,
                end_char=span.end_char,
            )
            for span, embedding in zip(spans, embeddings)
        ]

        await self.vector_service.replace_document_chunks(document_id, chunks)
        logger.info(f"Processed document {document_id}: {len(chunks)} chunks created")
        return spans

    async def search_document_chunks(
        self,
        document_id: uuid.UUID,
        query: str,
        limit: int = 5,
        threshold: float = 0.7
    ) -> List[SearchResult]:
        await self._require_document(document_id)

        query_embedding = await self.embedding_service.generate_query_embedding(query)
        return await self.vector_service.search_document_chunks(
            document_id,
            query_embedding,
            threshold=threshold,
            limit=limit,
        )

    async def answer_question(self, document_id: uuid.UUID, question: str) -> DocumentAnswer:
        """
        Answer from the best-matching chunk.

        The answer is an excerpt of the top chunk, not a generated reply.
        """
        chunks = await self.search_document_chunks(
            document_id,
            question,
            limit=self.ANSWER_LIMIT,
            threshold=self.ANSWER_THRESHOLD,
        )

        if not chunks:
            return DocumentAnswer(answer=self.NOT_FOUND_ANSWER, sources=[])

        best = chunks[0]
        return DocumentAnswer(
            answer=f"Based on the document: {best.content[:500]}...",
            sources=[
                DocumentSource(
                    text=chunk.content[:200],
                    similarity=chunk.similarity,
                    metadata=chunk.metadata,
                )
                for chunk in chunks
            ],
        )

    async def delete_document_chunks(self, document_id: uuid.UUID) -> int:
        deleted = await self.vector_service.delete_document_chunks(document_id)
        logger.info(f"Deleted {deleted} chunks for document {document_id}")
        return deleted
