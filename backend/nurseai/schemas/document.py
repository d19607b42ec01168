"""Pydantic schemas for document question answering."""

from typing import List, Any, Dict
from pydantic import BaseModel, Field


class DocumentSource(BaseModel):
    text: str
    similarity: float
    metadata: Dict[str, Any] = Field(default_factory=dict)


class DocumentAnswer(BaseModel):
    answer: str
    sources: List[DocumentSource] = Field(default_factory=list)
