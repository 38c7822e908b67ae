import logging

from sentence_transformers import CrossEncoder

from directory_search.core.models.search import RerankHit

logger = logging.getLogger(__name__)


class CrossEncoderReranker:
    """Reranker using CrossEncoder models."""

    def __init__(self, model_name: str = "BAAI/bge-reranker-v2-m3"):
        """Initialize reranker.

        Args:
            model_name: HuggingFace model name.
        """
        logger.info(f"Loading reranker: {model_name}")
        self._model = CrossEncoder(model_name)
        logger.info("Reranker loaded")

    def rerank(self, query: str, documents: list[str], top_k: int) -> list[RerankHit]:
        """Rerank documents by relevance.

        Args:
            query: User query.
            documents: Candidate texts.
            top_k: Maximum number of hits to return.

        Returns:
            Hits sorted by score (descending), pointing back into ``documents``.
        """
        if not documents or top_k <= 0:
            return []

        pairs = [[query, doc] for doc in documents]
        scores = self._model.predict(pairs)

        hits = [RerankHit(index=i, score=float(s)) for i, s in enumerate(scores)]
        hits.sort(key=lambda h: (-h.score, h.index))
        hits = hits[:top_k]

        if logger.isEnabledFor(logging.DEBUG):
            top_scores = ", ".join(f"{h.score:.2f}" for h in hits[:3])
            logger.debug(f"Reranker top-3 scores: [{top_scores}]")

        return hits
