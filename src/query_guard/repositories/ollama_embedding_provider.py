"""Ollama-based embedding provider.

Uses Ollama's local API to generate embeddings. Ollama serves models locally
without requiring HuggingFace authentication or downloading models manually.

Requirements:
    - Ollama installed: https://ollama.com
    - Model pulled: `ollama pull nomic-embed-text`
    - Ollama running: `ollama serve`
"""

import logging

import httpx

from query_guard.config import settings

logger = logging.getLogger(__name__)


class OllamaEmbeddingProvider:
    """Ollama-based implementation of EmbeddingProvider protocol.

    Uses Ollama's ``/api/embed`` endpoint.

    Example:
        ```python
        provider = OllamaEmbeddingProvider.create(model_name="nomic-embed-text")
        embedding = await provider.encode("fruity ethiopian coffee")
        print(len(embedding))  # 768
        ```
    """

    # Known model dimensions (for common models)
    MODEL_DIMENSIONS = {
        "embeddinggemma": 768,
        "nomic-embed-text": 768,
        "mxbai-embed-large": 1024,
        "all-minilm": 384,
    }

    def __init__(
        self,
        model_name: str | None = None,
        base_url: str | None = None,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the Ollama embedding provider.

        Args:
            model_name: Name of the Ollama model.
                       Defaults to settings.embedding_model.
            base_url: Ollama API base URL.
                     Defaults to settings.ollama_base_url.
            timeout: Request timeout in seconds.
            http_client: Preconfigured client. Created lazily if None.
        """
        self._model_name = model_name or settings.embedding_model
        self._base_url = (base_url or settings.ollama_base_url).rstrip("/")
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = http_client

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
            )
        return self._client

    @classmethod
    def create(
        cls,
        model_name: str | None = None,
        base_url: str | None = None,
    ) -> "OllamaEmbeddingProvider":
        """Factory method to create OllamaEmbeddingProvider with defaults."""
        return cls(model_name=model_name, base_url=base_url)

    @property
    def dimension(self) -> int:
        """Get the embedding vector dimension.

        Known models report their own width; anything else uses the
        configured EMBEDDING_DIMENSION.
        """
        return self.MODEL_DIMENSIONS.get(self._model_name, settings.embedding_dimension)

    @property
    def model_name(self) -> str:
        return self._model_name

    async def encode(self, text: str) -> list[float]:
        """Generate embedding vector for a single text.

        Raises:
            RuntimeError: If the Ollama API request fails or returns no vector
        """
        url = f"{self._base_url}/api/embed"
        payload = {
            "model": self._model_name,
            "input": text,
        }

        try:
            response = await self.client.post(url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise RuntimeError(f"Ollama API error: {e}") from e

        data = response.json()

        # Ollama returns {"embeddings": [[...]]} for single input
        if data.get("embeddings"):
            return data["embeddings"][0]
        if "embedding" in data:
            return data["embedding"]

        raise RuntimeError(f"Unexpected Ollama response format: {list(data)}")

    async def is_available(self) -> bool:
        """Check if Ollama is running and the model answers."""
        try:
            await self.encode("test")
            return True
        except RuntimeError as exc:
            logger.warning("Ollama embeddings unavailable: %s", exc)
            return False

    async def close(self) -> None:
        """Close the async HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
