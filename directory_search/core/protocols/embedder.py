"""Embedder protocol for dependency injection."""
from typing import Protocol, runtime_checkable
import numpy as np


@runtime_checkable
class EmbedderProtocol(Protocol):
    """Protocol for embedding service."""

    def encode(self, texts: str | list[str]) -> np.ndarray:
        """Encode text(s) to embeddings.

        Args:
            texts: Single text or list of texts to encode.

        Returns:
            Numpy array of embeddings (1-D for a single text).
        """
        ...

    def warmup(self) -> None:
        """Pre-load the model for faster inference."""
        ...
