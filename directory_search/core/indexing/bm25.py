"""In-memory BM25 inverted index."""

import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable

from ..models.document import Document, KeywordHit
from .tokenizer import tokenize

logger = logging.getLogger(__name__)

BM25_K1 = 1.2
BM25_B = 0.75

# Terms present in more than half of the corpus would get a negative IDF.
IDF_FLOOR = 0.01


@dataclass
class IndexStats:
    document_count: int
    term_count: int
    average_document_length: float
    total_tokens: int


@dataclass
class KeywordIndex:
    """Inverted index with BM25 scoring.

    ``term_frequency`` maps term -> doc id -> count and ``document_frequency``
    maps term -> number of documents containing it. Aggregate statistics are
    recomputed after every add/remove.
    """

    documents: dict[str, Document] = field(default_factory=dict)
    term_frequency: dict[str, dict[str, int]] = field(default_factory=dict)
    document_frequency: dict[str, int] = field(default_factory=dict)
    document_count: int = 0
    total_tokens: int = 0
    average_document_length: float = 0.0

    @classmethod
    def build(cls, documents: Iterable[Document]) -> "KeywordIndex":
        """Build an index from documents (an empty corpus is fine)."""
        index = cls()
        for doc in documents:
            index.add(doc)

        logger.info(
            f"BM25 index built: {index.document_count} docs, "
            f"{len(index.term_frequency)} unique terms, "
            f"avg doc length: {index.average_document_length:.2f}"
        )
        return index

    def __contains__(self, doc_id: str) -> bool:
        return doc_id in self.documents

    def __len__(self) -> int:
        return self.document_count

    def add(self, doc: Document) -> None:
        """Add a document, replacing any previous version with the same id."""
        if doc.id in self.documents:
            self.remove(doc.id)

        tokens = tokenize(doc.content)
        indexed = Document(
            id=doc.id,
            content=doc.content,
            tokens=tokens,
            token_count=len(tokens),
        )
        self.documents[doc.id] = indexed

        for term, count in Counter(tokens).items():
            self.term_frequency.setdefault(term, {})[doc.id] = count
            self.document_frequency[term] = self.document_frequency.get(term, 0) + 1

        self.document_count += 1
        self.total_tokens += indexed.token_count
        self._recompute_average()

    def update(self, doc_id: str, content: str) -> None:
        self.remove(doc_id)
        self.add(Document(id=doc_id, content=content))

    def remove(self, doc_id: str) -> None:
        """Reverse every contribution of a document; unknown ids are ignored."""
        doc = self.documents.pop(doc_id, None)
        if doc is None:
            return

        for term in set(doc.tokens):
            postings = self.term_frequency.get(term)
            if postings is None:
                continue
            postings.pop(doc_id, None)
            if not postings:
                del self.term_frequency[term]
                self.document_frequency.pop(term, None)
            else:
                self.document_frequency[term] -= 1

        self.document_count -= 1
        self.total_tokens -= doc.token_count
        self._recompute_average()

    def _recompute_average(self) -> None:
        if self.document_count > 0:
            self.average_document_length = self.total_tokens / self.document_count
        else:
            self.average_document_length = 0.0

    def idf(self, term: str) -> float:
        df = self.document_frequency.get(term, 0)
        if df == 0 or self.document_count == 0:
            return 0.0
        raw = math.log((self.document_count - df + 0.5) / (df + 0.5))
        return max(raw, IDF_FLOOR)

    def score(self, doc_id: str, query_terms: Iterable[str]) -> float:
        """BM25 score of one document for a set of query terms."""
        doc = self.documents.get(doc_id)
        if doc is None or not doc.token_count or self.average_document_length == 0:
            return 0.0

        length_ratio = doc.token_count / self.average_document_length
        score = 0.0
        for term in query_terms:
            tf = self.term_frequency.get(term, {}).get(doc_id, 0)
            if tf == 0:
                continue
            numerator = tf * (BM25_K1 + 1)
            denominator = tf + BM25_K1 * (1 - BM25_B + BM25_B * length_ratio)
            score += self.idf(term) * (numerator / denominator)
        return score

    def search(
        self, query: str, top_k: int = 20, min_score: float = 0.0
    ) -> list[KeywordHit]:
        """Rank documents against a free-text query.

        Args:
            query: Raw query text, tokenized like the documents.
            top_k: Maximum number of hits.
            min_score: Hits must score strictly above this.

        Returns:
            Hits sorted by score (descending), ties broken by id.
        """
        query_terms = sorted(set(tokenize(query)))
        if not query_terms or self.document_count == 0:
            return []

        candidates: set[str] = set()
        for term in query_terms:
            candidates.update(self.term_frequency.get(term, {}))

        hits = []
        for doc_id in candidates:
            score = self.score(doc_id, query_terms)
            if score > min_score:
                hits.append(
                    KeywordHit(
                        id=doc_id, score=score, content=self.documents[doc_id].content
                    )
                )

        hits.sort(key=lambda h: (-h.score, h.id))

        logger.debug(
            f"BM25 '{query[:50]}' -> {query_terms}: "
            f"{len(hits)} hits, returning {min(top_k, len(hits))}"
        )
        return hits[:top_k]

    def stats(self) -> IndexStats:
        return IndexStats(
            document_count=self.document_count,
            term_count=len(self.term_frequency),
            average_document_length=self.average_document_length,
            total_tokens=self.total_tokens,
        )
