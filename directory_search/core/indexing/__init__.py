"""Keyword indexing: tokenizer, BM25 index and content builders."""
from .bm25 import BM25_B, BM25_K1, IndexStats, KeywordIndex
from .content import (
    build_keyword_documents,
    content_hash,
    profile_embedding_content,
    profile_keyword_content,
    project_embedding_content,
    project_keyword_content,
)
from .tokenizer import STOPWORDS, tokenize

__all__ = [
    "BM25_B",
    "BM25_K1",
    "IndexStats",
    "KeywordIndex",
    "build_keyword_documents",
    "content_hash",
    "profile_embedding_content",
    "profile_keyword_content",
    "project_embedding_content",
    "project_keyword_content",
    "STOPWORDS",
    "tokenize",
]
