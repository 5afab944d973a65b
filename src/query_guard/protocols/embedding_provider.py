"""Embedding provider protocol.

Defines the interface for any embedding generation service that can
convert query text to vector embeddings. The cache only requires that
embeddings of the same provider are comparable by cosine similarity.

Implementations:
- sentence-transformers (local, default)
- Ollama HTTP API
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Protocol for embedding generation services."""

    @property
    def dimension(self) -> int:
        """Return the dimension of the embedding vectors.

        Returns:
            The vector dimension (e.g., 384 for all-MiniLM-L6-v2)
        """
        ...

    @property
    def model_name(self) -> str:
        """Return the name/identifier of the model."""
        ...

    async def encode(self, text: str) -> list[float]:
        """Generate embedding vector for a single text.

        Args:
            text: The text to encode

        Returns:
            The embedding vector as a list of floats
        """
        ...

    async def is_available(self) -> bool:
        """Check if the embedding provider is available."""
        ...
