"""
Pydantic schemas for ingestion and workflow results
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class UpdaterResult(BaseModel):
    """
    Terminal value of one ingestion run.

    ``records_processed`` counts rows actually inserted; rows that collided
    with an existing natural key are not counted.
    """

    table: str
    records_processed: int = Field(0, ge=0)
    message: str
    timestamp: str = Field(default_factory=utc_timestamp)
    checksum: Optional[str] = None


class WorkflowResult(BaseModel):
    """Terminal value of one pipeline run"""

    message: str
    post_id: Optional[str] = None
    title: Optional[str] = None
    slug: Optional[str] = None


class GeneratedPost(BaseModel):
    """Output of the content-generation collaborator"""

    title: str = Field(..., min_length=1, max_length=500)
    content: str
    excerpt: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    highlights: List[Dict[str, Any]] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SavedPost(BaseModel):
    """Identifiers of a persisted post"""

    post_id: str
    slug: str
    title: str
