"""Hybrid search models."""
import math
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from .profile import Availability, ProfileRecord, ProjectRecord
from .query import ParsedQuery


class ResultType(Enum):
    PROFILE = "profile"
    PROJECT = "project"


class SearchMethod(Enum):
    """Which stage produced (or last rescored) a result; browse rows are unranked."""
    BM25 = "bm25"
    VECTOR = "vector"
    FILTER = "filter"
    BM25_VECTOR = "bm25+vector"
    RERANK = "rerank"
    BROWSE = "browse"


class SortOrder(Enum):
    RELEVANCE = "relevance"
    RECENT = "recent"
    NAME = "name"
    RANDOM = "random"
    FEATURED = "featured"


@dataclass(frozen=True)
class FusionWeights:
    """Independent score contributions; they need not sum to 1."""
    bm25: float = 0.4
    vector: float = 0.4
    filter: float = 0.2

    def __post_init__(self):
        for name in ("bm25", "vector", "filter"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or not math.isfinite(value):
                raise ValueError(f"Fusion weight {name} must be a finite number")
            if value < 0:
                raise ValueError(f"Fusion weight {name} must be non-negative")
        if self.bm25 == 0 and self.vector == 0 and self.filter == 0:
            raise ValueError("At least one fusion weight must be positive")


@dataclass(frozen=True)
class SearchOptions:
    """Per-call search options."""
    page: int = 1
    limit: int = 20
    sort: SortOrder = SortOrder.RELEVANCE
    max_results: int = 20
    weights: FusionWeights = field(default_factory=FusionWeights)
    vector_threshold: float = 0.3
    bm25_min_score: float = 0.1
    enable_reranking: bool = True
    include_profiles: bool = True
    include_projects: bool = True
    seed: Optional[int] = None

    def __post_init__(self):
        if isinstance(self.sort, str):
            object.__setattr__(self, "sort", SortOrder(self.sort))
        if self.page < 1:
            raise ValueError("page must be >= 1")
        if self.limit < 1:
            raise ValueError("limit must be >= 1")
        if self.max_results < 1:
            raise ValueError("max_results must be >= 1")
        if not self.include_profiles and not self.include_projects:
            raise ValueError("At least one of profiles or projects must be included")
        if not -1.0 <= self.vector_threshold <= 1.0:
            raise ValueError("vector_threshold must be within [-1, 1]")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class RerankHit:
    """Reranker output mapped to the caller's original position."""
    index: int
    score: float


@dataclass
class HybridResult:
    """Ranked search candidate with denormalized display fields."""
    id: str
    type: ResultType
    score: float
    search_method: SearchMethod
    original_score: Optional[float] = None
    rerank_score: Optional[float] = None

    # Profile fields (also owner fields for projects)
    user_id: Optional[str] = None
    handle: Optional[str] = None
    display_name: Optional[str] = None
    headline: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    skills: list[str] = field(default_factory=list)
    interests: list[str] = field(default_factory=list)
    availability: Optional[Availability] = None

    # Project fields
    project_id: Optional[str] = None
    project_name: Optional[str] = None
    project_oneliner: Optional[str] = None
    project_description: Optional[str] = None
    project_url: Optional[str] = None
    project_featured: bool = False

    created_at: Optional[datetime] = None

    def apply_profile(self, profile: ProfileRecord) -> None:
        self.user_id = profile.user_id
        self.handle = profile.handle
        self.display_name = profile.display_name
        self.headline = profile.headline
        self.bio = profile.bio
        self.location = profile.location
        self.skills = list(profile.skills)
        self.interests = list(profile.interests)
        self.availability = profile.availability
        self.created_at = profile.created_at

    def apply_project(self, project: ProjectRecord) -> None:
        self.project_id = project.id
        self.project_name = project.name
        self.project_oneliner = project.oneliner
        self.project_description = project.description
        self.project_url = project.url
        self.project_featured = project.featured
        self.user_id = project.user_id
        self.handle = project.owner_handle
        self.display_name = project.owner_display_name
        self.created_at = project.created_at

    @property
    def title(self) -> str:
        if self.type is ResultType.PROJECT:
            return self.project_name or ""
        return self.display_name or self.handle or ""

    def rerank_text(self) -> str:
        """Text blob scored by the reranker."""
        if self.type is ResultType.PROFILE:
            parts = [self.display_name, self.headline, self.bio, self.location]
        else:
            parts = [
                self.project_name,
                self.project_oneliner,
                self.project_description,
            ]
        return " ".join(p for p in parts if p).strip()

    def to_dict(self) -> dict:
        data = asdict(self)
        data["type"] = self.type.value
        data["search_method"] = self.search_method.value
        if self.created_at is not None:
            data["created_at"] = self.created_at.isoformat()
        return data


@dataclass
class SearchTiming:
    """Per-stage wall-clock durations in milliseconds."""
    parse: float = 0.0
    bm25: float = 0.0
    vector: float = 0.0
    filtering: float = 0.0
    fusion: float = 0.0
    reranking: float = 0.0
    total: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {k: round(v, 2) for k, v in asdict(self).items()}


@dataclass
class SearchResponse:
    """Search response for the request-handling layer."""
    results: list[HybridResult]
    total_count: int
    parsed_query: Optional[ParsedQuery] = None
    timing: SearchTiming = field(default_factory=SearchTiming)
    mode: str = "hybrid"  # "hybrid" | "browse"
    fallback: bool = False
