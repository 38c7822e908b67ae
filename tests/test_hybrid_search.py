"""Tests for the hybrid search orchestrator."""

import time

import pytest

from directory_search.core.models.document import KeywordHit, VectorHit
from directory_search.core.models.profile import ProfileRecord
from directory_search.core.models.search import (
    FusionWeights,
    RerankHit,
    SearchMethod,
    SearchOptions,
)
from directory_search.core.services.hybrid_search_service import HybridSearchService
from directory_search.core.services.query_parser import QueryParser
from directory_search.core.strategies.scoring import ExplicitMatchBoostStrategy
from directory_search.infrastructure.stores.memory_store import InMemoryProfileStore

from conftest import (
    FailingReranker,
    FakeLLM,
    FakeReranker,
    make_profiles,
    make_projects,
    parsed_response,
)

NO_RERANK = SearchOptions(enable_reranking=False)


class StubKeywordIndex:
    def __init__(self, hits=None, error=None, delay=0.0):
        self.hits = hits or []
        self.error = error
        self.delay = delay
        self.calls = []

    def search(self, query, top_k=20, min_score=0.0):
        self.calls.append((query, top_k, min_score))
        if self.delay:
            time.sleep(self.delay)
        if self.error:
            raise self.error
        return [h for h in self.hits if h.score > min_score][:top_k]


class StubVectorSearch:
    def __init__(self, hits=None, error=None):
        self.hits = hits or []
        self.error = error
        self.calls = []

    def search(self, query, limit=20, threshold=None, include_profiles=True, include_projects=True):
        self.calls.append((query, limit, threshold, include_profiles, include_projects))
        if self.error:
            raise self.error
        return self.hits[:limit]


class SubsetReranker:
    """Returns only the last candidate."""

    def rerank(self, query, documents, top_k):
        return [RerankHit(index=len(documents) - 1, score=5.0)]


def _bm25(*pairs):
    return [KeywordHit(id=doc_id, score=score, content="") for doc_id, score in pairs]


def _vector(*pairs):
    return [
        VectorHit(id=doc_id, kind=doc_id.split(":")[0], similarity=similarity)
        for doc_id, similarity in pairs
    ]


def _service(
    store,
    keyword=None,
    vector=None,
    llm_response=None,
    reranker=None,
    **kwargs,
):
    llm = FakeLLM(llm_response if llm_response is not None else RuntimeError("offline"))
    return HybridSearchService(
        query_parser=QueryParser(llm),
        keyword_index=keyword or StubKeywordIndex(),
        vector_search=vector or StubVectorSearch(),
        store=store,
        reranker=reranker,
        **kwargs,
    )


def _ids(response):
    return [r.id for r in response.results]


class TestFusion:
    @pytest.mark.asyncio
    async def test_fused_scores_are_additive(self, store):
        service = _service(
            store,
            keyword=StubKeywordIndex(_bm25(("profile:u1", 2.0), ("profile:u2", 1.0))),
            vector=StubVectorSearch(_vector(("profile:u1", 0.8), ("profile:u3", 0.5))),
            llm_response=parsed_response(skills=["Python"]),
        )

        response = await service.search("python people", NO_RERANK)

        by_id = {r.id: r for r in response.results}
        assert _ids(response) == ["profile:u1", "profile:u2", "profile:u3", "profile:u4"]
        assert by_id["profile:u1"].score == pytest.approx(2.0 * 0.4 + 0.8 * 0.4 + 0.2)
        assert by_id["profile:u1"].search_method is SearchMethod.BM25_VECTOR
        assert by_id["profile:u2"].score == pytest.approx(0.4)
        assert by_id["profile:u2"].search_method is SearchMethod.BM25
        assert by_id["profile:u3"].score == pytest.approx(0.2)
        assert by_id["profile:u3"].search_method is SearchMethod.VECTOR
        assert by_id["profile:u4"].score == pytest.approx(0.2)
        assert by_id["profile:u4"].search_method is SearchMethod.FILTER

    @pytest.mark.asyncio
    async def test_custom_weights(self, store):
        service = _service(
            store,
            keyword=StubKeywordIndex(_bm25(("profile:u1", 1.0))),
            vector=StubVectorSearch(_vector(("profile:u1", 0.5))),
        )
        options = SearchOptions(
            enable_reranking=False, weights=FusionWeights(bm25=1.0, vector=2.0, filter=0.0)
        )

        response = await service.search("anything", options)

        assert response.results[0].score == pytest.approx(2.0)

    @pytest.mark.asyncio
    async def test_results_are_hydrated(self, store):
        service = _service(
            store,
            keyword=StubKeywordIndex(_bm25(("profile:u1", 1.0), ("project:p1", 0.5))),
        )

        response = await service.search("anything", NO_RERANK)

        profile, project = response.results
        assert profile.display_name == "Ada"
        assert profile.location == "Amsterdam, NL"
        assert profile.skills == ["Python", "Django"]
        assert project.project_name == "Crux"
        assert project.handle == "ada"
        assert project.user_id == "u1"

    @pytest.mark.asyncio
    async def test_stale_ids_are_dropped(self, store):
        service = _service(
            store,
            keyword=StubKeywordIndex(_bm25(("profile:ghost", 3.0), ("profile:u2", 1.0))),
        )

        response = await service.search("anything", NO_RERANK)

        assert _ids(response) == ["profile:u2"]

    @pytest.mark.asyncio
    async def test_fusion_keeps_twice_max_results(self, store):
        keyword = StubKeywordIndex(
            _bm25(*[(f"profile:u{i}", 5.0 - i) for i in range(1, 5)])
        )
        service = _service(store, keyword=keyword)

        response = await service.search("anything", SearchOptions(max_results=1, enable_reranking=False))

        assert keyword.calls[0][1] == 2
        assert response.total_count == 1
        assert _ids(response) == ["profile:u1"]

    @pytest.mark.asyncio
    async def test_explicit_boost_strategy(self, store):
        keyword = _bm25(("profile:u2", 1.0), ("profile:u4", 0.9))
        options = SearchOptions(
            enable_reranking=False, weights=FusionWeights(bm25=0.4, vector=0.4, filter=0.0)
        )
        plain = _service(
            store,
            keyword=StubKeywordIndex(keyword),
            llm_response=parsed_response(skills=["PyTorch"]),
        )
        boosted = _service(
            store,
            keyword=StubKeywordIndex(keyword),
            llm_response=parsed_response(skills=["PyTorch"]),
            strategies=[ExplicitMatchBoostStrategy()],
        )

        assert _ids(await plain.search("pytorch", options))[0] == "profile:u2"
        response = await boosted.search("pytorch", options)
        assert _ids(response)[0] == "profile:u4"
        assert response.results[0].score == pytest.approx(0.9 * 0.4 + 0.3)


class TestDegradation:
    @pytest.mark.asyncio
    async def test_vector_failure_keeps_keyword_and_filter_results(self, store):
        service = _service(
            store,
            keyword=StubKeywordIndex(_bm25(("profile:u1", 2.0), ("profile:u2", 1.0))),
            vector=StubVectorSearch(error=RuntimeError("vector store down")),
            llm_response=parsed_response(skills=["Python"]),
        )

        response = await service.search("python", NO_RERANK)

        assert _ids(response) == ["profile:u1", "profile:u2", "profile:u4"]
        assert response.results[0].score == pytest.approx(2.0 * 0.4 + 0.2)

    @pytest.mark.asyncio
    async def test_keyword_timeout_contributes_nothing(self, store):
        service = _service(
            store,
            keyword=StubKeywordIndex(_bm25(("profile:u1", 2.0)), delay=0.5),
            vector=StubVectorSearch(_vector(("profile:u3", 0.9))),
            stage_timeout=0.05,
        )

        response = await service.search("anything", NO_RERANK)

        assert _ids(response) == ["profile:u3"]

    @pytest.mark.asyncio
    async def test_everything_failing_returns_empty_response(self, store):
        service = _service(
            store,
            keyword=StubKeywordIndex(error=RuntimeError("boom")),
            vector=StubVectorSearch(error=RuntimeError("boom")),
        )

        response = await service.search("anything")

        assert response.results == []
        assert response.total_count == 0
        assert response.parsed_query.confidence == pytest.approx(0.1)

    @pytest.mark.asyncio
    async def test_invalid_timeouts(self, store):
        with pytest.raises(ValueError):
            _service(store, stage_timeout=0)


class TestReranking:
    @pytest.mark.asyncio
    async def test_rerank_replaces_scores(self, store):
        reranker = FakeReranker()
        service = _service(
            store,
            keyword=StubKeywordIndex(
                _bm25(("profile:u1", 2.0), ("profile:u2", 1.0), ("profile:u3", 0.5))
            ),
            reranker=reranker,
        )

        response = await service.search("react frontend")

        assert _ids(response) == ["profile:u3", "profile:u1", "profile:u2"]
        top = response.results[0]
        assert top.search_method is SearchMethod.RERANK
        assert top.score == pytest.approx(2.0)
        assert top.rerank_score == pytest.approx(2.0)
        assert top.original_score == pytest.approx(0.5 * 0.4)
        assert reranker.calls[0][0] == "react frontend"
        assert reranker.calls[0][2] == 3

    @pytest.mark.asyncio
    async def test_unreturned_candidates_keep_fused_order(self, store):
        service = _service(
            store,
            keyword=StubKeywordIndex(
                _bm25(("profile:u1", 2.0), ("profile:u2", 1.0), ("profile:u3", 0.5))
            ),
            reranker=SubsetReranker(),
        )

        response = await service.search("anything")

        assert _ids(response) == ["profile:u3", "profile:u1", "profile:u2"]
        assert response.results[0].search_method is SearchMethod.RERANK
        assert response.results[1].search_method is SearchMethod.BM25
        assert response.results[1].original_score is None

    @pytest.mark.asyncio
    async def test_rerank_failure_keeps_fused_order(self, store):
        service = _service(
            store,
            keyword=StubKeywordIndex(_bm25(("profile:u1", 2.0), ("profile:u3", 0.5))),
            reranker=FailingReranker(),
        )

        response = await service.search("react frontend")

        assert _ids(response) == ["profile:u1", "profile:u3"]
        assert all(r.search_method is SearchMethod.BM25 for r in response.results)

    @pytest.mark.asyncio
    async def test_single_candidate_is_not_reranked(self, store):
        reranker = FakeReranker()
        service = _service(
            store, keyword=StubKeywordIndex(_bm25(("profile:u1", 2.0))), reranker=reranker
        )

        await service.search("anything")

        assert reranker.calls == []

    @pytest.mark.asyncio
    async def test_rerank_window_is_capped(self):
        many = InMemoryProfileStore(
            [ProfileRecord(user_id=f"x{i:02d}", handle=f"x{i:02d}") for i in range(30)]
        )
        reranker = FakeReranker()
        service = _service(
            many,
            keyword=StubKeywordIndex(_bm25(*[(f"profile:x{i:02d}", 30.0 - i) for i in range(30)])),
            reranker=reranker,
        )

        await service.search("anything", SearchOptions(max_results=20))

        assert len(reranker.calls[0][1]) == 30
        assert reranker.calls[0][2] == 20


class TestStrictFilters:
    @pytest.mark.asyncio
    async def test_only_in_amsterdam(self, store, keyword_index, vector_search):
        service = HybridSearchService(
            query_parser=QueryParser(
                FakeLLM(
                    parsed_response(
                        locations=["Amsterdam"],
                        freeformQuery="developers",
                    )
                )
            ),
            keyword_index=keyword_index,
            vector_search=vector_search,
            store=store,
            reranker=FakeReranker(),
        )

        response = await service.search("developers only in Amsterdam")

        assert response.parsed_query.strict_filters.locations == ("Amsterdam",)
        assert _ids(response) == ["profile:u1"]
        assert all("amsterdam" in r.location.lower() for r in response.results)

    @pytest.mark.asyncio
    async def test_strict_skill_without_matches_is_empty(self):
        store = InMemoryProfileStore(
            [p for p in make_profiles() if p.user_id != "u2"], make_projects()
        )
        service = _service(
            store,
            keyword=StubKeywordIndex(
                _bm25(("profile:u1", 2.0), ("profile:u3", 1.0), ("profile:u4", 0.5))
            ),
            llm_response=parsed_response(
                skills=["Rust"],
                strictFilters={
                    "locations": [],
                    "skills": ["Rust"],
                    "companies": [],
                    "availability": {"hire": None, "collab": None, "hiring": None},
                },
            ),
            reranker=FakeReranker(),
        )

        response = await service.search("only Rust engineers")

        assert response.results == []
        assert response.total_count == 0


class TestSortingAndPaging:
    @pytest.fixture
    def ranked(self, store):
        return _service(
            store,
            keyword=StubKeywordIndex(
                _bm25(
                    ("profile:u1", 4.0),
                    ("profile:u2", 3.0),
                    ("profile:u3", 2.0),
                    ("profile:u4", 1.0),
                )
            ),
        )

    @pytest.mark.asyncio
    async def test_pagination(self, ranked):
        response = await ranked.search(
            "anything", SearchOptions(page=2, limit=2, enable_reranking=False)
        )

        assert _ids(response) == ["profile:u3", "profile:u4"]
        assert response.total_count == 4

    @pytest.mark.asyncio
    async def test_page_past_end(self, ranked):
        response = await ranked.search(
            "anything", SearchOptions(page=5, limit=2, enable_reranking=False)
        )

        assert response.results == []
        assert response.total_count == 4

    @pytest.mark.asyncio
    async def test_max_results_bounds_total(self, ranked):
        response = await ranked.search(
            "anything", SearchOptions(page=2, limit=2, max_results=3, enable_reranking=False)
        )

        assert _ids(response) == ["profile:u3"]
        assert response.total_count == 3

    @pytest.mark.asyncio
    async def test_sort_recent(self, ranked):
        response = await ranked.search(
            "anything", SearchOptions(sort="recent", enable_reranking=False)
        )

        assert _ids(response) == ["profile:u4", "profile:u3", "profile:u2", "profile:u1"]

    @pytest.mark.asyncio
    async def test_sort_name(self, ranked):
        response = await ranked.search(
            "anything", SearchOptions(sort="name", enable_reranking=False)
        )

        assert _ids(response) == ["profile:u1", "profile:u4", "profile:u3", "profile:u2"]

    @pytest.mark.asyncio
    async def test_sort_random_is_seeded(self, ranked):
        options = SearchOptions(sort="random", seed=7, enable_reranking=False)

        first = await ranked.search("anything", options)
        second = await ranked.search("anything", options)

        assert _ids(first) == _ids(second)
        assert sorted(_ids(first)) == ["profile:u1", "profile:u2", "profile:u3", "profile:u4"]

    @pytest.mark.asyncio
    async def test_sort_featured(self, store):
        service = _service(
            store,
            keyword=StubKeywordIndex(
                _bm25(("profile:u1", 3.0), ("project:p2", 2.0), ("project:p1", 1.0))
            ),
        )

        response = await service.search(
            "anything", SearchOptions(sort="featured", enable_reranking=False)
        )

        assert _ids(response) == ["project:p1", "project:p2", "profile:u1"]
        assert response.results[0].project_featured is True

    @pytest.mark.asyncio
    async def test_default_options(self, store):
        service = _service(
            store,
            keyword=StubKeywordIndex(_bm25(("profile:u1", 2.0), ("profile:u2", 1.0))),
            default_options=SearchOptions(limit=1, enable_reranking=False),
        )

        response = await service.search("anything")

        assert _ids(response) == ["profile:u1"]
        assert response.total_count == 2


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_projects_can_be_excluded(self, store, keyword_index, vector_search):
        service = _service(store, keyword=keyword_index, vector=vector_search)

        with_projects = await service.search("react design library", NO_RERANK)
        without_projects = await service.search(
            "react design library",
            SearchOptions(enable_reranking=False, include_projects=False),
        )

        assert "project:p2" in _ids(with_projects)
        assert all(r.id.startswith("profile:") for r in without_projects.results)
        assert "profile:u3" in _ids(without_projects)

    @pytest.mark.asyncio
    async def test_profiles_can_be_excluded(self, store):
        vector = StubVectorSearch(_vector(("project:p2", 0.7)))
        service = _service(
            store,
            keyword=StubKeywordIndex(_bm25(("profile:u1", 3.0), ("project:p1", 1.0))),
            vector=vector,
            llm_response=parsed_response(skills=["Python"]),
        )

        response = await service.search(
            "python", SearchOptions(enable_reranking=False, include_profiles=False)
        )

        assert _ids(response) == ["project:p1", "project:p2"]
        assert vector.calls[0][3:] == (False, True)

    def test_excluding_both_kinds_is_rejected(self):
        with pytest.raises(ValueError):
            SearchOptions(include_profiles=False, include_projects=False)

    @pytest.mark.asyncio
    async def test_timing_is_reported(self, store, keyword_index, vector_search):
        service = _service(
            store, keyword=keyword_index, vector=vector_search, reranker=FakeReranker()
        )

        response = await service.search("python berlin")

        timing = response.timing.to_dict()
        assert set(timing) == {
            "parse", "bm25", "vector", "filtering", "fusion", "reranking", "total",
        }
        assert all(value >= 0 for value in timing.values())
        assert timing["total"] >= timing["parse"]
        assert response.mode == "hybrid"
        assert response.fallback is False
