"""
Zen Bridge Data Models
======================

Pydantic data models for type safety and validation throughout the application.
These models correspond to the database schema and provide validation,
serialization, and type hints.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Dict, Any, Iterable
from dataclasses import dataclass
from pydantic import BaseModel, Field, field_validator
import json
import uuid


DEFAULT_AUTHOR = "Unknown"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ArticleStatus(str, Enum):
    """Processing lifecycle of an article."""
    PENDING = "pending"
    PROCESSING = "processing"
    PROCESSED = "processed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ArticleStatus.PROCESSED, ArticleStatus.ERROR)


class Article(BaseModel):
    """Republished article with processing state."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Unique article ID")
    title: str = Field(..., min_length=1, description="Article title")
    link: str = Field(..., min_length=1, description="Source link, unique across articles")
    author: str = Field(default=DEFAULT_AUTHOR, description="Author or the Unknown sentinel")
    pub_date: datetime = Field(default_factory=utc_now, description="Publication date")
    description: str = Field(default="", max_length=160, description="Plain-text summary")
    content: str = Field(default="", description="Sanitized HTML content")
    category: List[str] = Field(default_factory=list, max_length=3, description="Taxonomy labels")
    images: List[str] = Field(default_factory=list, description="Absolute image URLs")
    status: ArticleStatus = Field(default=ArticleStatus.PENDING)
    error_message: Optional[str] = Field(default=None)
    zen_compliant: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utc_now)
    processed_at: Optional[datetime] = Field(default=None)

    @field_validator('author', mode='before')
    @classmethod
    def default_author(cls, v):
        """Blank authors collapse to the Unknown sentinel."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return DEFAULT_AUTHOR
        return v

    @property
    def is_published(self) -> bool:
        """True when the article belongs in the output feed."""
        return self.status == ArticleStatus.PROCESSED and self.zen_compliant

    @classmethod
    def from_db_row(cls, row: Dict[str, Any]) -> "Article":
        """Create Article from database row with JSON parsing."""
        data = dict(row)

        if isinstance(data.get('category'), str):
            data['category'] = json.loads(data['category'])
        if isinstance(data.get('images'), str):
            data['images'] = json.loads(data['images'])

        return cls(**data)

    def __str__(self) -> str:
        return f"Article({self.title[:50]}:{self.status.value})"


class RssConfig(BaseModel):
    """Source feed and output channel configuration."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Unique config ID")
    source_url: str = Field(..., min_length=1, description="Source RSS/Atom feed URL")
    title: str = Field(..., min_length=1, description="Output feed title")
    description: str = Field(..., description="Output feed description")
    site_link: str = Field(..., min_length=1, description="Output feed site link")
    language: str = Field(default="ru", description="Output feed language")
    check_interval: int = Field(default=30, ge=1, description="Minutes between scheduled cycles")
    is_active: bool = Field(default=True)
    last_checked: Optional[datetime] = Field(default=None, description="End of the last completed cycle")
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator('source_url', 'site_link')
    @classmethod
    def validate_http_url(cls, v):
        """Only http(s) URLs can be fetched or linked."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v

    @classmethod
    def from_db_row(cls, row: Dict[str, Any]) -> "RssConfig":
        return cls(**dict(row))

    def __str__(self) -> str:
        return f"RssConfig({self.title}:{self.source_url})"


@dataclass
class ProcessingStats:
    """Aggregate counts, always recomputed from the article set."""
    total_articles: int = 0
    processed_articles: int = 0
    zen_compliant_articles: int = 0
    error_count: int = 0
    last_updated: Optional[datetime] = None

    @classmethod
    def from_articles(
        cls, articles: Iterable[Article], last_updated: Optional[datetime] = None
    ) -> "ProcessingStats":
        stats = cls(last_updated=last_updated)
        for article in articles:
            stats.total_articles += 1
            if article.status == ArticleStatus.PROCESSED:
                stats.processed_articles += 1
                if article.zen_compliant:
                    stats.zen_compliant_articles += 1
            elif article.status == ArticleStatus.ERROR:
                stats.error_count += 1
        return stats

    @property
    def compliance_rate(self) -> float:
        """Share of processed articles that passed compliance, in percent."""
        if self.processed_articles == 0:
            return 0.0
        return (self.zen_compliant_articles / self.processed_articles) * 100
