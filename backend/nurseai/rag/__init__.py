# Digital Nurse RAG (Retrieval-Augmented Generation) Module
"""
Embedding, vector storage and retrieval for patient records:
- Text embeddings through an OpenAI-compatible provider
- Per-entity similarity search adapters over pgvector
- Multi-entity semantic search
- Document chunking and chunk-scoped question answering
- Chat completion client and prompt assembly for the assistant

Usage:
    from nurseai.rag import get_search_engine

    engine = get_search_engine()()
    results = await engine.search_all("dizziness after meals", owner_id=patient_id)
"""

# Core services (lazy imports to avoid circular dependencies)
def get_embedding_service():
    from nurseai.rag.embedding_service import EmbeddingService
    return EmbeddingService


def get_vector_service():
    from nurseai.rag.vector_service import VectorService
    return VectorService


def get_search_engine():
    from nurseai.rag.search_engine import SemanticSearchEngine
    return SemanticSearchEngine


def get_document_processor():
    from nurseai.rag.document_processor import DocumentProcessor
    return DocumentProcessor


def get_chat_client():
    from nurseai.rag.chat_client import GeminiChatClient
    return GeminiChatClient


def get_prompt_builder():
    from nurseai.rag.prompt_builder import AssistantPromptBuilder
    return AssistantPromptBuilder


__all__ = [
    "get_embedding_service",
    "get_vector_service",
    "get_search_engine",
    "get_document_processor",
    "get_chat_client",
    "get_prompt_builder",
]
