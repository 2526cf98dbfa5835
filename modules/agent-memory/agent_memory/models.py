"""Data models for agent memories."""

import time
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def now_ms() -> int:
    """Current time as Unix epoch milliseconds."""
    return int(time.time() * 1000)


class Content(BaseModel):
    """Structured memory payload.

    `text` is the unit that gets embedded and displayed. Any other fields
    (source, action, attachments, ...) are kept as-is.
    """

    model_config = ConfigDict(extra="allow")

    text: Optional[str] = None


class Memory(BaseModel):
    """A single stored memory.

    Design decisions:
    - id: Auto-generated UUID4, may be supplied by the caller for upserts
    - entity_id / agent_id / room_id: Scope of the memory
    - embedding: None until embedded, never recomputed afterwards
    - created_at: Epoch milliseconds, the ordering key for recency
    - similarity: Filled in by vector search, not persisted
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    entity_id: str
    agent_id: str
    room_id: str
    content: Content
    embedding: Optional[list[float]] = None
    created_at: int = Field(default_factory=now_ms)
    similarity: Optional[float] = None

    def dict_for_storage(self) -> dict:
        """Return the payload a persistence adapter stores."""
        return {
            "id": self.id,
            "entity_id": self.entity_id,
            "agent_id": self.agent_id,
            "room_id": self.room_id,
            "content": self.content.model_dump(),
            "embedding": self.embedding,
            "created_at": self.created_at,
        }
