"""Shared fixtures and protocol fakes."""

import asyncio
from datetime import datetime, timezone

import numpy as np
import pytest

from directory_search.core.indexing.tokenizer import tokenize
from directory_search.core.models.profile import Availability, ProfileRecord, ProjectRecord
from directory_search.core.models.search import RerankHit
from directory_search.core.services.embedding_service import EmbeddingService
from directory_search.core.services.keyword_index_service import KeywordIndexService
from directory_search.core.services.vector_search_service import VectorSearchService
from directory_search.infrastructure.stores.memory_store import InMemoryProfileStore
from directory_search.infrastructure.vector_stores.memory_store import InMemoryVectorStore

VOCABULARY = [
    "python", "django", "backend", "react", "typescript", "frontend", "music",
    "climbing", "rust", "go", "berlin", "amsterdam", "london", "data",
    "scientist", "design", "systems", "pytorch", "stripe", "library",
]


class FakeEmbedder:
    """Bag-of-words embedder over a fixed vocabulary."""

    def __init__(self):
        self.calls = 0

    def encode(self, texts):
        self.calls += 1
        if isinstance(texts, str):
            return self._vector(texts)
        return np.asarray([self._vector(t) for t in texts])

    def warmup(self):
        pass

    @staticmethod
    def _vector(text):
        tokens = tokenize(text)
        return np.asarray([float(tokens.count(w)) for w in VOCABULARY])


class FailingEmbedder:
    def encode(self, texts):
        raise RuntimeError("embedding provider unavailable")

    def warmup(self):
        pass


class EmptyEmbedder:
    def encode(self, texts):
        if isinstance(texts, str):
            return np.asarray([])
        return np.zeros((len(texts), 0))

    def warmup(self):
        pass


class FakeReranker:
    """Scores documents by query token overlap."""

    def __init__(self):
        self.calls = []

    def rerank(self, query, documents, top_k):
        self.calls.append((query, list(documents), top_k))
        query_tokens = set(tokenize(query))
        hits = [
            RerankHit(index=i, score=float(len(query_tokens & set(tokenize(doc)))))
            for i, doc in enumerate(documents)
        ]
        hits.sort(key=lambda h: (-h.score, h.index))
        return hits[:top_k]


class FailingReranker:
    def rerank(self, query, documents, top_k):
        raise RuntimeError("reranker unavailable")


class FakeLLM:
    """Structured LLM returning a canned response (or raising it)."""

    def __init__(self, response=None, delay: float = 0.0):
        self.response = response if response is not None else {}
        self.delay = delay
        self.calls = []

    async def generate_json(self, system_prompt, user_prompt, temperature=0.1):
        self.calls.append((system_prompt, user_prompt, temperature))
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def parsed_response(**overrides):
    """LLM payload with every key present."""
    data = {
        "companies": [],
        "locations": [],
        "skills": [],
        "interests": [],
        "availability": {"hire": None, "collab": None, "hiring": None},
        "strictFilters": {
            "locations": [],
            "skills": [],
            "companies": [],
            "availability": {"hire": None, "collab": None, "hiring": None},
        },
        "intent": "find_people",
        "freeformQuery": "",
        "confidence": 0.9,
    }
    data.update(overrides)
    return data


def _at(day: int) -> datetime:
    return datetime(2024, 1, day, tzinfo=timezone.utc)


def make_profiles() -> list[ProfileRecord]:
    return [
        ProfileRecord(
            user_id="u1",
            handle="ada",
            display_name="Ada",
            headline="Backend engineer",
            bio="Builds Django backends",
            location="Amsterdam, NL",
            skills=["Python", "Django"],
            interests=["climbing"],
            availability=Availability(hire=True),
            created_at=_at(1),
        ),
        ProfileRecord(
            user_id="u2",
            handle="linus",
            display_name="Linus",
            headline="Systems programmer at Stripe",
            bio="Go and Rust systems work",
            location="Berlin",
            skills=["Go", "Rust"],
            interests=[],
            availability=Availability(collab=True),
            created_at=_at(2),
        ),
        ProfileRecord(
            user_id="u3",
            handle="grace",
            display_name="Grace",
            headline="Frontend developer",
            bio="React and TypeScript interfaces",
            location=None,
            skills=["React", "TypeScript"],
            interests=["music"],
            created_at=_at(3),
        ),
        ProfileRecord(
            user_id="u4",
            handle="alan",
            display_name="Alan",
            headline="Data scientist",
            bio="Python and PyTorch models",
            location="London",
            skills=["Python", "PyTorch"],
            interests=[],
            availability=Availability(hiring=True),
            created_at=_at(4),
        ),
    ]


def make_projects() -> list[ProjectRecord]:
    return [
        ProjectRecord(
            id="p1",
            user_id="u1",
            name="Crux",
            oneliner="Python app for logging climbing sessions",
            featured=True,
            created_at=_at(5),
        ),
        ProjectRecord(
            id="p2",
            user_id="u3",
            name="Palette",
            oneliner="React design system library",
            created_at=_at(6),
        ),
    ]


@pytest.fixture
def store():
    return InMemoryProfileStore(make_profiles(), make_projects())


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def vector_store():
    return InMemoryVectorStore()


@pytest.fixture
def keyword_index(store):
    service = KeywordIndexService(store)
    service.build()
    return service


@pytest.fixture
def embedding_service(embedder, vector_store, store):
    return EmbeddingService(embedder, vector_store, store)


@pytest.fixture
def vector_search(embedder, vector_store, embedding_service):
    embedding_service.refresh_all()
    return VectorSearchService(embedder, vector_store, threshold=0.1)
