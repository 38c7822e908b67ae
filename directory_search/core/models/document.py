"""Document domain models."""
from dataclasses import dataclass, field
from typing import Optional

PROFILE_KIND = "profile"
PROJECT_KIND = "project"


def make_doc_id(kind: str, record_id: str) -> str:
    """Build a namespaced document id, e.g. ``profile:<userId>``."""
    return f"{kind}:{record_id}"


def split_doc_id(doc_id: str) -> tuple[str, str]:
    """Split a namespaced document id into (kind, record id)."""
    kind, sep, record_id = doc_id.partition(":")
    if not sep or not record_id:
        raise ValueError(f"Malformed document id: {doc_id!r}")
    return kind, record_id


@dataclass
class Document:
    """Unit indexed for keyword search."""
    id: str
    content: str
    tokens: list[str] = field(default_factory=list)
    token_count: int = 0


@dataclass
class KeywordHit:
    """Keyword search result."""
    id: str
    score: float
    content: str


@dataclass
class EmbeddingRecord:
    """Precomputed embedding for one profile or project."""
    id: str
    kind: str
    embedding: list[float]
    content_hash: str
    content_preview: str


@dataclass
class VectorHit:
    """Similarity search result from the vector store."""
    id: str
    kind: str
    similarity: float
    content: str = ""
    metadata: dict = field(default_factory=dict)
    content_hash: Optional[str] = None
