import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, TypeVar

from .config.settings import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Container:
    _factories: dict[type, Callable[[], Any]] = field(default_factory=dict)
    _singletons: dict[type, Any] = field(default_factory=dict)
    _singleton_flags: set[type] = field(default_factory=set)

    def register(
        self, interface: type[T], factory: Callable[[], T], singleton: bool = False
    ) -> None:
        """Register factory for interface.

        Args:
            interface: Interface type.
            factory: Factory function.
            singleton: Whether to cache instance.
        """
        self._factories[interface] = factory
        if singleton:
            self._singleton_flags.add(interface)

    def resolve(self, interface: type[T]) -> T:
        if interface in self._singletons:
            return self._singletons[interface]

        if interface not in self._factories:
            raise KeyError(f"No factory registered for {interface}")

        instance = self._factories[interface]()

        if interface in self._singleton_flags:
            self._singletons[interface] = instance

        return instance

    def reset(self) -> None:
        """Reset singletons (for testing)."""
        self._singletons.clear()


container = Container()


def default_search_options(settings: Settings):
    """Search options built from settings."""
    from .core.models.search import FusionWeights, SearchOptions

    return SearchOptions(
        limit=settings.search_page_size,
        max_results=settings.search_max_results,
        weights=FusionWeights(
            bm25=settings.search_bm25_weight,
            vector=settings.search_vector_weight,
            filter=settings.search_filter_weight,
        ),
        vector_threshold=settings.search_vector_threshold,
        bm25_min_score=settings.search_bm25_min_score,
        enable_reranking=settings.search_enable_reranking,
    )


def configure_container(settings: Settings) -> Container:
    """Configure container with all dependencies.

    Args:
        settings: Application settings.

    Returns:
        Configured container.
    """
    from .core.protocols.embedder import EmbedderProtocol
    from .core.protocols.llm import StructuredLLMProtocol
    from .core.protocols.profile_store import ProfileStoreProtocol
    from .core.protocols.reranker import RerankerProtocol
    from .core.protocols.vector_store import VectorStoreProtocol
    from .core.services.directory_service import DirectoryService
    from .core.services.embedding_service import EmbeddingService
    from .core.services.hybrid_search_service import HybridSearchService
    from .core.services.index_updater import IndexUpdater
    from .core.services.keyword_index_service import KeywordIndexService
    from .core.services.query_parser import QueryParser
    from .core.services.vector_search_service import VectorSearchService
    from .core.strategies.scoring import ExplicitMatchBoostStrategy, RerankSkipPolicy
    from .infrastructure.embeddings.sentence_transformer import (
        SentenceTransformerEmbedder,
    )
    from .infrastructure.llm.openai_client import OpenAIStructuredClient
    from .infrastructure.rerankers.cross_encoder import CrossEncoderReranker
    from .infrastructure.stores.memory_store import InMemoryProfileStore
    from .infrastructure.vector_stores.chroma_store import ChromaVectorStore
    from .infrastructure.vector_stores.memory_store import InMemoryVectorStore

    def make_store():
        if Path(settings.data_path).exists():
            return InMemoryProfileStore.from_json(settings.data_path)
        logger.warning(f"Data file not found: {settings.data_path}, starting empty")
        return InMemoryProfileStore()

    def make_vector_store():
        if settings.vector_store == "chroma":
            return ChromaVectorStore(
                host=settings.chroma_host,
                port=settings.chroma_port,
                collection_name=settings.chroma_collection,
            )
        return InMemoryVectorStore()

    container.register(ProfileStoreProtocol, make_store, singleton=True)

    container.register(
        EmbedderProtocol,
        lambda: SentenceTransformerEmbedder(settings.embedding_model),
        singleton=True,
    )

    container.register(VectorStoreProtocol, make_vector_store, singleton=True)

    container.register(
        RerankerProtocol,
        lambda: CrossEncoderReranker(settings.reranker_model),
        singleton=True,
    )

    container.register(
        StructuredLLMProtocol,
        lambda: OpenAIStructuredClient(
            base_url=settings.llm_base_url,
            model=settings.llm_model,
            api_key=settings.llm_api_key,
            max_tokens=settings.llm_max_tokens,
        ),
        singleton=True,
    )

    container.register(
        KeywordIndexService,
        lambda: KeywordIndexService(container.resolve(ProfileStoreProtocol)),
        singleton=True,
    )

    container.register(
        VectorSearchService,
        lambda: VectorSearchService(
            embedder=container.resolve(EmbedderProtocol),
            vector_store=container.resolve(VectorStoreProtocol),
            threshold=settings.search_vector_threshold,
            profile_share=settings.search_profile_share,
            query_prefix=settings.embedding_query_prefix,
        ),
        singleton=True,
    )

    container.register(
        QueryParser,
        lambda: QueryParser(
            llm=container.resolve(StructuredLLMProtocol),
            timeout=settings.llm_timeout,
            temperature=settings.llm_temperature,
        ),
        singleton=True,
    )

    container.register(
        HybridSearchService,
        lambda: HybridSearchService(
            query_parser=container.resolve(QueryParser),
            keyword_index=container.resolve(KeywordIndexService),
            vector_search=container.resolve(VectorSearchService),
            store=container.resolve(ProfileStoreProtocol),
            reranker=(
                container.resolve(RerankerProtocol)
                if settings.search_enable_reranking
                else None
            ),
            default_options=default_search_options(settings),
            stage_timeout=settings.search_stage_timeout,
            rerank_timeout=settings.search_rerank_timeout,
            strategies=(
                [ExplicitMatchBoostStrategy()] if settings.search_explicit_boost else None
            ),
            rerank_skip_policy=(
                RerankSkipPolicy() if settings.search_rerank_skip else None
            ),
            filter_limit=settings.search_filter_limit,
        ),
        singleton=True,
    )

    container.register(
        DirectoryService,
        lambda: DirectoryService(
            hybrid_search=container.resolve(HybridSearchService),
            store=container.resolve(ProfileStoreProtocol),
            keyword_index=container.resolve(KeywordIndexService),
            browse_limit=settings.browse_limit,
            default_options=default_search_options(settings),
        ),
        singleton=True,
    )

    container.register(
        EmbeddingService,
        lambda: EmbeddingService(
            embedder=container.resolve(EmbedderProtocol),
            vector_store=container.resolve(VectorStoreProtocol),
            store=container.resolve(ProfileStoreProtocol),
            passage_prefix=settings.embedding_passage_prefix,
            batch_size=settings.embedding_batch_size,
        ),
        singleton=True,
    )

    container.register(
        IndexUpdater,
        lambda: IndexUpdater(
            embedding_service=container.resolve(EmbeddingService),
            keyword_index=container.resolve(KeywordIndexService),
            store=container.resolve(ProfileStoreProtocol),
            max_queue_size=settings.updater_queue_size,
            max_attempts=settings.updater_max_attempts,
            retry_delay=settings.updater_retry_delay,
            refresh_interval=settings.updater_refresh_interval,
        ),
        singleton=True,
    )

    logger.info("Container configured")
    return container
