"""
Pydantic schemas for library module.
DTOs for content, repertoire and tags.
"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from practice_journal.library.models import MAX_PROGRESS, MIN_PROGRESS, ContentType


# ═══════════════════════════════════════════════════════════════════════════
# CONTENT
# ═══════════════════════════════════════════════════════════════════════════


class ContentCreate(BaseModel):
    """DTO for creating a content item."""

    title: str = Field(..., min_length=1, max_length=300, description="Content title")
    url: Optional[str] = Field(None, max_length=2048, description="Link to the resource")
    type: ContentType = Field(ContentType.OTHER, description="Kind of resource")
    tempo: Optional[str] = Field(None, max_length=50, description="Practice tempo, e.g. '120 bpm'")
    tags: List[str] = Field(default_factory=list, description="Free-text tag names")

    model_config = {
        "json_schema_extra": {
            "example": {
                "title": "Barry Harris - 6th diminished scale",
                "url": "https://www.youtube.com/watch?v=example",
                "type": "youtube",
                "tags": ["jazz", "bebop"],
            }
        }
    }


class ContentUpdate(BaseModel):
    """DTO for updating a content item. tags replaces the full tag set when given."""

    title: Optional[str] = Field(None, min_length=1, max_length=300)
    url: Optional[str] = Field(None, max_length=2048)
    type: Optional[ContentType] = None
    tempo: Optional[str] = Field(None, max_length=50)
    tags: Optional[List[str]] = None


class ContentRead(BaseModel):
    """DTO for reading a content item."""

    id: str = Field(..., description="Content ID")
    title: str
    url: Optional[str] = None
    type: ContentType
    tempo: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    created_at: datetime

    model_config = {"from_attributes": True}


class ContentList(BaseModel):
    """DTO for listing content."""

    content: List[ContentRead]
    total: int


# ═══════════════════════════════════════════════════════════════════════════
# REPERTOIRE
# ═══════════════════════════════════════════════════════════════════════════


class RepertoireCreate(BaseModel):
    """DTO for creating a repertoire item."""

    title: str = Field(..., min_length=1, max_length=300, description="Piece title")
    composer: Optional[str] = Field(None, max_length=200)
    key: Optional[str] = Field(None, max_length=30)
    progress: int = Field(MIN_PROGRESS, ge=MIN_PROGRESS, le=MAX_PROGRESS, description="Learning stage")
    notes: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    model_config = {
        "json_schema_extra": {
            "example": {
                "title": "Autumn Leaves",
                "composer": "Joseph Kosma",
                "key": "G minor",
                "progress": 3,
            }
        }
    }


class RepertoireUpdate(BaseModel):
    """DTO for updating a repertoire item. Stats are never writable."""

    title: Optional[str] = Field(None, min_length=1, max_length=300)
    composer: Optional[str] = Field(None, max_length=200)
    key: Optional[str] = Field(None, max_length=30)
    progress: Optional[int] = Field(None, ge=MIN_PROGRESS, le=MAX_PROGRESS)
    notes: Optional[str] = None
    tags: Optional[List[str]] = None


class RepertoireRead(BaseModel):
    """DTO for reading a repertoire item with its derived stats."""

    id: str
    title: str
    composer: Optional[str] = None
    key: Optional[str] = None
    progress: int
    notes: Optional[str] = None
    practice_count: int = 0
    last_practiced: Optional[date] = None
    tags: List[str] = Field(default_factory=list)
    created_at: datetime

    model_config = {"from_attributes": True}


class RepertoireList(BaseModel):
    """DTO for listing repertoire."""

    repertoire: List[RepertoireRead]
    total: int


class RecomputeSummary(BaseModel):
    """Result of recomputing stats for every repertoire item."""

    total: int
    successful: int
    failed: int
    errors: List[str] = Field(default_factory=list)


class ContentRef(BaseModel):
    """Compact content item attached to goals and logs."""

    id: str
    title: str
    url: Optional[str] = None
    type: ContentType

    model_config = {"from_attributes": True}


class RepertoireRef(BaseModel):
    """Compact repertoire item attached to goals and logs."""

    id: str
    title: str
    composer: Optional[str] = None

    model_config = {"from_attributes": True}


# ═══════════════════════════════════════════════════════════════════════════
# TAGS
# ═══════════════════════════════════════════════════════════════════════════


class TagRead(BaseModel):
    """DTO for reading a tag."""

    id: str
    name: str

    model_config = {"from_attributes": True}


class TagAdd(BaseModel):
    """DTO for tagging an item by name."""

    name: str = Field(..., min_length=1, max_length=100, description="Tag name, normalized on save")


class TagList(BaseModel):
    """DTO for listing tags."""

    tags: List[TagRead]
    total: int


class LibraryError(BaseModel):
    """Error response for library operations."""

    error: str = Field(..., description="Error message")
    code: str = Field(..., description="Error code")

    model_config = {
        "json_schema_extra": {
            "example": {
                "error": "Repertoire not found",
                "code": "REPERTOIRE_NOT_FOUND",
            }
        }
    }
