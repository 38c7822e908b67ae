"""Domain models."""
from .document import (
    PROFILE_KIND,
    PROJECT_KIND,
    Document,
    EmbeddingRecord,
    KeywordHit,
    VectorHit,
    make_doc_id,
    split_doc_id,
)
from .profile import Availability, ProfileRecord, ProjectRecord
from .query import (
    AvailabilityIntent,
    ParsedQuery,
    QueryIntent,
    StrictFilters,
    StructuredFilters,
)
from .search import (
    FusionWeights,
    HybridResult,
    RerankHit,
    ResultType,
    SearchMethod,
    SearchOptions,
    SearchResponse,
    SearchTiming,
    SortOrder,
)

__all__ = [
    "PROFILE_KIND",
    "PROJECT_KIND",
    "Document",
    "EmbeddingRecord",
    "KeywordHit",
    "VectorHit",
    "make_doc_id",
    "split_doc_id",
    "Availability",
    "ProfileRecord",
    "ProjectRecord",
    "AvailabilityIntent",
    "ParsedQuery",
    "QueryIntent",
    "StrictFilters",
    "StructuredFilters",
    "FusionWeights",
    "HybridResult",
    "RerankHit",
    "ResultType",
    "SearchMethod",
    "SearchOptions",
    "SearchResponse",
    "SearchTiming",
    "SortOrder",
]
