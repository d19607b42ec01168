"""Pydantic schemas for semantic search."""

from typing import Any, Dict
from pydantic import BaseModel, Field


class SearchResult(BaseModel):
    """A single ranked hit from one of the entity search adapters."""
    id: str
    entity_type: str
    content: str
    similarity: float = Field(ge=0.0, le=1.0)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def to_source(self, max_chars: int = 200) -> Dict[str, Any]:
        """Compact citation stored with assistant replies."""
        return {
            "id": self.id,
            "entity_type": self.entity_type,
            "similarity": round(self.similarity, 4),
            "snippet": self.content[:max_chars],
        }
