"""Pydantic schemas for the assistant chat."""

from typing import List, Any, Dict
from pydantic import BaseModel, Field


class ChatResponse(BaseModel):
    message: str
    conversation_id: str
    sources: List[Dict[str, Any]] = Field(default_factory=list)
