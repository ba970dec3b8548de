"""Dense embedding client for OpenAI-compatible /embeddings endpoints."""

import logging

import requests

from ..config import ServerConfig

logger = logging.getLogger(__name__)


class EmbeddingError(Exception):
    """The embedding service failed or returned an unusable vector."""


class EmbeddingClient:
    """Stateless wrapper around an external embedding endpoint.

    The API key is checked when the client is built, so a missing credential
    surfaces as a ConfigurationError at startup rather than on the first page.
    """

    def __init__(self, config: ServerConfig, dimension: int, session: requests.Session | None = None):
        """Initialize the embedding client.

        Args:
            config: ServerConfig with the API key, base URL, model and timeouts
            dimension: Expected length of every returned vector
            session: Optional requests session (shared connection pool)
        """
        self.api_key = config.require_api_key()
        self.endpoint = f"{config.OPENAI_BASE_URL.rstrip('/')}/embeddings"
        self.model = config.EMBEDDING_MODEL
        self.dimension = dimension
        self.timeout = config.backend_timeout
        self.session = session or requests.Session()

    def embed(self, text: str, max_chars: int = 8000) -> list[float]:
        """Embed ``text`` (truncated to ``max_chars``).

        Raises:
            ValueError: If the text is empty after trimming
            EmbeddingError: If the request fails or the vector has the wrong size
        """
        text = text.strip()
        if not text:
            raise ValueError("Text cannot be empty")

        payload = {"model": self.model, "input": text[:max_chars], "encoding_format": "float"}
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            response = self.session.post(self.endpoint, json=payload, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            embedding = response.json()["data"][0]["embedding"]
        except (requests.RequestException, KeyError, IndexError, ValueError) as e:
            logger.error(f"[EMBED] Error generating embedding: {e}")
            raise EmbeddingError(f"Failed to generate embedding: {e}") from e

        if len(embedding) != self.dimension:
            raise EmbeddingError(
                f"Embedding model '{self.model}' returned {len(embedding)} dimensions, expected {self.dimension}"
            )

        return embedding


def prepare_text_for_embedding(title: str, content: str, description: str | None = None, max_chars: int = 8000) -> str:
    """Join title, description and content into one whitespace-normalized string."""
    combined = " ".join(part for part in (title, description or "", content) if part)
    combined = " ".join(combined.split())
    return combined[:max_chars]
