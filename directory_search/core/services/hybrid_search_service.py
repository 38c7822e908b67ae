"""Hybrid search service - BM25, vector and structured filters fused and reranked."""

import asyncio
import logging
import math
import random
import time
from typing import Any, Callable, Optional

from ..errors import HydrationError
from ..models.document import PROFILE_KIND, PROJECT_KIND, split_doc_id
from ..models.query import ParsedQuery
from ..models.search import (
    HybridResult,
    ResultType,
    SearchMethod,
    SearchOptions,
    SearchResponse,
    SearchTiming,
    SortOrder,
)
from ..protocols.profile_store import ProfileStoreProtocol
from ..protocols.reranker import RerankerProtocol
from ..strategies.scoring import RerankSkipPolicy, ScoringStrategy, StrictFilterStrategy
from .keyword_index_service import KeywordIndexService
from .query_parser import (
    QueryParser,
    build_keyword_query,
    build_semantic_query,
    build_structured_filters,
)
from .vector_search_service import VectorSearchService

logger = logging.getLogger(__name__)

RERANK_MAX_DOCUMENTS = 20

_KIND_TO_TYPE = {PROFILE_KIND: ResultType.PROFILE, PROJECT_KIND: ResultType.PROJECT}


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


class HybridSearchService:
    """Runs keyword, vector and filter retrieval concurrently and fuses them.

    Every retrieval stage is best-effort: an exception or a timeout turns
    into an empty contribution. Only hydration failures propagate, as
    ``HydrationError``.
    """

    def __init__(
        self,
        query_parser: QueryParser,
        keyword_index: KeywordIndexService,
        vector_search: VectorSearchService,
        store: ProfileStoreProtocol,
        reranker: Optional[RerankerProtocol] = None,
        default_options: Optional[SearchOptions] = None,
        stage_timeout: float = 5.0,
        rerank_timeout: float = 10.0,
        strategies: list[ScoringStrategy] | None = None,
        rerank_skip_policy: Optional[RerankSkipPolicy] = None,
        filter_limit: int = 50,
    ):
        """Initialize hybrid search service.

        Args:
            query_parser: Natural language query parser.
            keyword_index: BM25 index service.
            vector_search: Semantic search service.
            store: Profile/project store (filter lookup and hydration).
            reranker: Optional second-pass reranker.
            default_options: Options used when a call passes none.
            stage_timeout: Seconds allowed per retrieval stage.
            rerank_timeout: Seconds allowed for reranking.
            strategies: Extra scoring strategies applied after fusion.
            rerank_skip_policy: Skips reranking when explicit matches
                already dominate the top results.
            filter_limit: Maximum structured filter matches.
        """
        if stage_timeout <= 0 or rerank_timeout <= 0:
            raise ValueError("Timeouts must be positive")

        self._query_parser = query_parser
        self._keyword_index = keyword_index
        self._vector_search = vector_search
        self._store = store
        self._reranker = reranker
        self._default_options = default_options or SearchOptions()
        self._stage_timeout = stage_timeout
        self._rerank_timeout = rerank_timeout
        self._strategies = strategies or []
        self._rerank_skip_policy = rerank_skip_policy
        self._strict_filter = StrictFilterStrategy()
        self._filter_limit = filter_limit

    async def search(
        self, query: str, options: Optional[SearchOptions] = None
    ) -> SearchResponse:
        """Search profiles and projects.

        Args:
            query: Free-text query.
            options: Paging, sorting, weights and thresholds.

        Returns:
            Ranked page of results with the parsed query and stage timings.

        Raises:
            HydrationError: When display fields cannot be loaded.
        """
        options = options or self._default_options
        timing = SearchTiming()
        total_start = time.perf_counter()

        start = time.perf_counter()
        parsed = await self._query_parser.parse(query)
        timing.parse = _elapsed_ms(start)

        keyword_query = build_keyword_query(parsed)
        semantic_query = build_semantic_query(parsed)
        filters = build_structured_filters(parsed)
        fetch_k = math.ceil(1.5 * options.max_results)

        bm25_hits, vector_hits, filter_ids = await asyncio.gather(
            self._run_stage(
                "bm25",
                timing,
                self._keyword_index.search,
                keyword_query,
                fetch_k,
                options.bm25_min_score,
            ),
            self._run_stage(
                "vector",
                timing,
                self._vector_search.search,
                semantic_query,
                fetch_k,
                options.vector_threshold,
                options.include_profiles,
                options.include_projects,
            ),
            self._run_stage(
                "filtering",
                timing,
                self._store.find_by_filters,
                filters,
                self._filter_limit,
            ),
        )

        logger.info(
            f"Retrieval: bm25={len(bm25_hits)} vector={len(vector_hits)} "
            f"filter={len(filter_ids)} for '{query[:60]}'"
        )

        start = time.perf_counter()
        candidates = self._fuse(options, bm25_hits, vector_hits, filter_ids)
        candidates = candidates[: 2 * options.max_results]
        candidates = await self._hydrate(candidates)
        for strategy in self._strategies:
            candidates = strategy.apply(parsed, candidates)
        timing.fusion = _elapsed_ms(start)

        start = time.perf_counter()
        if self._should_rerank(parsed, options, candidates):
            candidates = await self._rerank(query, candidates)
        timing.reranking = _elapsed_ms(start)

        start = time.perf_counter()
        candidates = self._strict_filter.apply(parsed, candidates)
        timing.filtering += _elapsed_ms(start)

        candidates = candidates[: options.max_results]
        total_count = len(candidates)
        candidates = self._sort(candidates, options)
        page = candidates[options.offset : options.offset + options.limit]

        timing.total = _elapsed_ms(total_start)
        logger.info(
            f"Search: {len(page)}/{total_count} results for '{query[:60]}' "
            f"in {timing.total:.0f}ms"
        )

        return SearchResponse(
            results=page,
            total_count=total_count,
            parsed_query=parsed,
            timing=timing,
        )

    async def _run_stage(
        self, name: str, timing: SearchTiming, func: Callable[..., Any], *args
    ) -> list:
        """Run one blocking retrieval stage; failures contribute nothing."""
        start = time.perf_counter()
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, *args), timeout=self._stage_timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"{name} stage timed out after {self._stage_timeout}s")
            return []
        except Exception as e:
            logger.warning(f"{name} stage failed: {e}")
            return []
        finally:
            setattr(timing, name, _elapsed_ms(start))

    def _fuse(
        self,
        options: SearchOptions,
        bm25_hits: list,
        vector_hits: list,
        filter_ids: list[str],
    ) -> list[HybridResult]:
        weights = options.weights
        fused: dict[str, HybridResult] = {}

        for hit in bm25_hits:
            result_type = self._result_type(hit.id, options)
            if result_type is None:
                continue
            fused[hit.id] = HybridResult(
                id=hit.id,
                type=result_type,
                score=hit.score * weights.bm25,
                search_method=SearchMethod.BM25,
            )

        for hit in vector_hits:
            existing = fused.get(hit.id)
            if existing is not None:
                existing.score += hit.similarity * weights.vector
                existing.search_method = SearchMethod.BM25_VECTOR
                continue
            result_type = self._result_type(hit.id, options)
            if result_type is None:
                continue
            fused[hit.id] = HybridResult(
                id=hit.id,
                type=result_type,
                score=hit.similarity * weights.vector,
                search_method=SearchMethod.VECTOR,
            )

        for doc_id in filter_ids:
            existing = fused.get(doc_id)
            if existing is not None:
                existing.score += weights.filter
                continue
            result_type = self._result_type(doc_id, options)
            if result_type is None:
                continue
            fused[doc_id] = HybridResult(
                id=doc_id,
                type=result_type,
                score=weights.filter,
                search_method=SearchMethod.FILTER,
            )

        return sorted(fused.values(), key=lambda r: (-r.score, r.id))

    @staticmethod
    def _result_type(doc_id: str, options: SearchOptions) -> Optional[ResultType]:
        try:
            kind, _ = split_doc_id(doc_id)
        except ValueError:
            logger.warning(f"Ignoring malformed document id: {doc_id!r}")
            return None
        result_type = _KIND_TO_TYPE.get(kind)
        if result_type is ResultType.PROFILE and not options.include_profiles:
            return None
        if result_type is ResultType.PROJECT and not options.include_projects:
            return None
        return result_type

    async def _hydrate(self, candidates: list[HybridResult]) -> list[HybridResult]:
        """Fill display fields from the store; drop ids it no longer has."""
        if not candidates:
            return candidates

        user_ids = []
        project_ids = []
        for candidate in candidates:
            _, record_id = split_doc_id(candidate.id)
            if candidate.type is ResultType.PROFILE:
                user_ids.append(record_id)
            else:
                project_ids.append(record_id)

        try:
            profiles = await asyncio.to_thread(self._store.get_profiles, user_ids)
            projects = (
                await asyncio.to_thread(self._store.get_projects, project_ids)
                if project_ids
                else {}
            )
        except Exception as e:
            raise HydrationError(f"Failed to load display fields: {e}") from e

        hydrated = []
        for candidate in candidates:
            _, record_id = split_doc_id(candidate.id)
            if candidate.type is ResultType.PROFILE:
                profile = profiles.get(record_id)
                if profile is None:
                    continue
                candidate.apply_profile(profile)
            else:
                project = projects.get(record_id)
                if project is None:
                    continue
                candidate.apply_project(project)
            hydrated.append(candidate)

        if len(hydrated) < len(candidates):
            logger.info(f"Dropped {len(candidates) - len(hydrated)} stale index entries")
        return hydrated

    def _should_rerank(
        self,
        parsed: ParsedQuery,
        options: SearchOptions,
        candidates: list[HybridResult],
    ) -> bool:
        if not options.enable_reranking or self._reranker is None:
            return False
        if len(candidates) <= 1:
            return False
        if self._rerank_skip_policy is not None:
            return not self._rerank_skip_policy.should_skip(parsed, candidates)
        return True

    async def _rerank(
        self, query: str, candidates: list[HybridResult]
    ) -> list[HybridResult]:
        """Rescore with the reranker; keep the fused order on failure."""
        documents = [c.rerank_text() for c in candidates]
        top_k = min(len(candidates), RERANK_MAX_DOCUMENTS)

        try:
            hits = await asyncio.wait_for(
                asyncio.to_thread(self._reranker.rerank, query, documents, top_k),
                timeout=self._rerank_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Reranking timed out after {self._rerank_timeout}s")
            return candidates
        except Exception as e:
            logger.warning(f"Reranking failed, keeping fused order: {e}")
            return candidates

        reranked = []
        seen = set()
        for hit in hits:
            if hit.index in seen or not 0 <= hit.index < len(candidates):
                continue
            seen.add(hit.index)
            candidate = candidates[hit.index]
            candidate.original_score = candidate.score
            candidate.rerank_score = hit.score
            candidate.score = hit.score
            candidate.search_method = SearchMethod.RERANK
            reranked.append(candidate)

        rest = [c for i, c in enumerate(candidates) if i not in seen]
        logger.info(f"Reranked {len(reranked)}/{len(candidates)} candidates")
        return reranked + rest

    @staticmethod
    def _sort(
        candidates: list[HybridResult], options: SearchOptions
    ) -> list[HybridResult]:
        if options.sort is SortOrder.RELEVANCE:
            return candidates
        return sort_results(candidates, options.sort, options.seed)


def sort_by_recency(candidates: list[HybridResult]) -> list[HybridResult]:
    """Newest first; undated entries last."""
    dated = [c for c in candidates if c.created_at is not None]
    undated = [c for c in candidates if c.created_at is None]
    dated.sort(key=lambda r: r.id)
    dated.sort(key=lambda r: r.created_at, reverse=True)
    undated.sort(key=lambda r: r.id)
    return dated + undated


def sort_results(
    candidates: list[HybridResult], sort: SortOrder, seed: Optional[int] = None
) -> list[HybridResult]:
    """Explicit sort orders shared by search and browse listings.

    ``featured`` puts featured projects first and keeps each group newest
    first; ``relevance`` is treated as ``recent`` since there is no score.
    """
    if sort is SortOrder.NAME:
        return sorted(candidates, key=lambda r: (r.title.lower(), r.id))
    if sort is SortOrder.RANDOM:
        shuffled = list(candidates)
        random.Random(seed).shuffle(shuffled)
        return shuffled
    if sort is SortOrder.FEATURED:
        ordered = sort_by_recency(candidates)
        return [r for r in ordered if r.project_featured] + [
            r for r in ordered if not r.project_featured
        ]
    return sort_by_recency(candidates)
