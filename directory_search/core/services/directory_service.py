"""Directory service - search entry point with browse fallback."""

import asyncio
import logging
from typing import Optional

from ..errors import HydrationError
from ..models.search import (
    HybridResult,
    ResultType,
    SearchMethod,
    SearchOptions,
    SearchResponse,
    SearchTiming,
)
from ..protocols.profile_store import ProfileStoreProtocol
from .hybrid_search_service import HybridSearchService, sort_results
from .keyword_index_service import KeywordIndexService

logger = logging.getLogger(__name__)


class DirectoryService:
    """Searches the directory; never raises to the request layer."""

    def __init__(
        self,
        hybrid_search: HybridSearchService,
        store: ProfileStoreProtocol,
        keyword_index: KeywordIndexService,
        browse_limit: int = 200,
        default_options: Optional[SearchOptions] = None,
    ):
        """Initialize directory service.

        Args:
            hybrid_search: Hybrid search orchestrator.
            store: Profile/project store for browse listings.
            keyword_index: Keyword index, built lazily on first search.
            browse_limit: Maximum records in a browse listing.
            default_options: Options for browse calls that pass none; search
                calls without options use the orchestrator's own defaults.
        """
        self._hybrid_search = hybrid_search
        self._store = store
        self._keyword_index = keyword_index
        self._browse_limit = browse_limit
        self._default_options = default_options or SearchOptions()

    async def search(
        self, query: Optional[str], options: Optional[SearchOptions] = None
    ) -> SearchResponse:
        """Hybrid search, or a browse listing for blank queries and failures."""
        if not query or not query.strip():
            return await self.browse(options)

        try:
            if not self._keyword_index.is_built:
                await asyncio.to_thread(self._keyword_index.ensure_built)
            return await self._hybrid_search.search(query.strip(), options)
        except HydrationError as e:
            logger.error(f"Hydration failed, falling back to browse: {e}")
        except Exception as e:
            logger.exception(f"Search failed, falling back to browse: {e}")

        response = await self.browse(options)
        response.fallback = True
        return response

    async def browse(self, options: Optional[SearchOptions] = None) -> SearchResponse:
        """Unranked listing, paginated.

        Lists profiles, or projects when profiles are excluded. Rows carry
        ``SearchMethod.BROWSE`` and a zero score.
        """
        options = options or self._default_options
        try:
            if options.include_profiles:
                results = await asyncio.to_thread(self._profile_rows)
            else:
                results = await asyncio.to_thread(self._project_rows)
        except Exception as e:
            logger.error(f"Browse listing failed: {e}")
            return SearchResponse(results=[], total_count=0, mode="browse", fallback=True)

        results = sort_results(results, options.sort, options.seed)
        page = results[options.offset : options.offset + options.limit]
        return SearchResponse(
            results=page,
            total_count=len(results),
            timing=SearchTiming(),
            mode="browse",
        )

    def _profile_rows(self) -> list[HybridResult]:
        rows = []
        for profile in self._store.recent_profiles(self._browse_limit):
            row = HybridResult(
                id=profile.doc_id,
                type=ResultType.PROFILE,
                score=0.0,
                search_method=SearchMethod.BROWSE,
            )
            row.apply_profile(profile)
            rows.append(row)
        return rows

    def _project_rows(self) -> list[HybridResult]:
        rows = []
        for project in self._store.recent_projects(self._browse_limit):
            row = HybridResult(
                id=project.doc_id,
                type=ResultType.PROJECT,
                score=0.0,
                search_method=SearchMethod.BROWSE,
            )
            row.apply_project(project)
            rows.append(row)
        return rows
