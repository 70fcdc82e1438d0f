"""Data models for reasoning thoughts and their connections."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ThoughtType(str, Enum):
    """Kinds of reasoning steps."""

    REGULAR = "regular"
    REVISION = "revision"
    META = "meta"
    HYPOTHESIS = "hypothesis"
    CONCLUSION = "conclusion"


class Connection(BaseModel):
    """An explicit reasoning link to another thought."""

    target_id: str
    type: str = "supports"  # supports, contradicts, refines, derives, ...
    strength: float = Field(default=0.5, ge=0.0, le=1.0)


class ThoughtMetrics(BaseModel):
    """Scores attached to a thought by the reasoning layer."""

    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    relevance: float = Field(default=0.5, ge=0.0, le=1.0)
    quality: float = Field(default=0.5, ge=0.0, le=1.0)


class Thought(BaseModel):
    """One unit of reasoning text."""

    id: str
    content: str
    type: ThoughtType = ThoughtType.REGULAR
    connections: list[Connection] = Field(default_factory=list)
    metrics: ThoughtMetrics = Field(default_factory=ThoughtMetrics)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def connected_ids(self) -> list[str]:
        return [c.target_id for c in self.connections]
