"""
Pydantic models for the generation pipeline.

Requests, search hits, source attributions and the generated record itself,
plus the configuration that parameterises the orchestrator.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from trendsbox.core.settings import DEFAULT_TRUSTED_DOMAINS, Settings


class ContentType(str, Enum):
    """Kind of content to generate."""
    BLOG = "blog"
    SOCIAL = "social"


class Category(str, Enum):
    """News categories offered to the user."""
    POLITICS = "Politics"
    SPORTS = "Sports"
    ENTERTAINMENT = "Entertainment"
    TECHNOLOGY = "Technology"
    GENERAL = "General"


class RecordStatus(str, Enum):
    """Persistence state of a generated record."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class GenerationRequest(BaseModel):
    """What the user asked for."""
    content_type: ContentType = Field(ContentType.BLOG, description="blog or social")
    category: Category = Field(Category.GENERAL, description="News category")
    guidance: Optional[str] = Field(None, max_length=2000, description="Optional free-text topic")

    @field_validator('guidance')
    @classmethod
    def blank_guidance_is_none(cls, v):
        if v is None or not v.strip():
            return None
        return v.strip()

    @property
    def wants_latest_news(self) -> bool:
        """No explicit topic means "find the latest news"."""
        return self.guidance is None


class SearchResult(BaseModel):
    """One hit returned by the search collaborator."""
    title: str = ""
    url: str
    content: str = ""


class SourceAttribution(BaseModel):
    """A search hit credited in the final record."""
    display_name: str
    origin_domain_label: str
    url: str
    reliability_score: int = Field(..., ge=0, le=100)


class GenerationRecord(BaseModel):
    """A generated piece of content owned by one user."""
    id: str
    title: str
    excerpt: str
    body: str
    content_type: ContentType
    category: Category
    image_url: str
    sources: List[SourceAttribution] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    status: RecordStatus = RecordStatus.PENDING


class OrchestratorConfig(BaseModel):
    """
    Knobs for one orchestrator instance.

    ``system_template`` overrides the built-in editor prompt; it is formatted
    with ``region``, ``guidelines``, ``sources_rule`` and ``fields``.
    """
    completion_model: str = "llama-3.3-70b-versatile"
    image_model: str = "gemini-2.5-flash-image"
    system_template: Optional[str] = None
    include_domains: List[str] = Field(default_factory=lambda: list(DEFAULT_TRUSTED_DOMAINS))
    max_search_results: int = Field(5, ge=3, le=5)
    search_depth: str = "advanced"
    region: str = "Nigeria"
    aspect_ratio: str = "16:9"
    daily_limit: int = Field(20, ge=0)

    @classmethod
    def from_settings(cls, settings: Settings) -> "OrchestratorConfig":
        return cls(
            completion_model=settings.completion_model,
            image_model=settings.image_model,
            include_domains=list(settings.trusted_domains),
            max_search_results=settings.search_max_results,
            region=settings.region,
            daily_limit=settings.daily_limit,
        )
