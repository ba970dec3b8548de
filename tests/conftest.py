"""Shared pytest fixtures for Web RAG Server tests."""

import hashlib

import pytest
from qdrant_client import QdrantClient

from web_rag_server.config import ServerConfig
from web_rag_server.rag.config import RAGConfig
from web_rag_server.rag.models import WebPageDocument
from web_rag_server.rag.sparse import Vocabulary
from web_rag_server.rag.store import VectorStore

TEST_DIMENSION = 8


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without external services")


class FakeEmbedder:
    """Deterministic stand-in for EmbeddingClient that records every call."""

    def __init__(self, dimension: int = TEST_DIMENSION, fail_on: str | None = None):
        self.dimension = dimension
        self.fail_on = fail_on
        self.calls: list[str] = []

    def embed(self, text: str, max_chars: int = 8000) -> list[float]:
        text = text.strip()
        if not text:
            raise ValueError("Text cannot be empty")
        self.calls.append(text)
        if self.fail_on and self.fail_on in text:
            raise RuntimeError(f"embedding failed for {self.fail_on}")
        digest = hashlib.sha256(text[:max_chars].encode()).digest()
        return [byte / 255 + 0.01 for byte in digest[: self.dimension]]


@pytest.fixture
def server_config():
    """Provide a ServerConfig with a dummy API key."""
    config = ServerConfig()
    config.OPENAI_API_KEY = "sk-test"
    config.OPENAI_BASE_URL = "http://llm.test/v1"
    return config


@pytest.fixture
def rag_config(tmp_path):
    """Provide a fast RAGConfig backed by an in-memory store."""
    return RAGConfig(
        cache_dir=tmp_path / "rag_cache",
        qdrant_url=":memory:",
        collection_name="test_pages",
        vector_dimension=TEST_DIMENSION,
        max_concurrent_requests=2,
        request_delay=0,
        settle_delay=0,
        processing_batch_size=4,
        show_progress=False,
    )


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def vocabulary():
    return Vocabulary()


@pytest.fixture
def memory_store(rag_config):
    """Provide a VectorStore on an in-process Qdrant instance."""
    return VectorStore(rag_config, client=QdrantClient(location=":memory:"))


@pytest.fixture
def make_document():
    """Factory for successful documents."""

    def _make(url: str = "https://example.com/page", title: str = "Example page", content: str | None = None, **kwargs):
        if content is None:
            content = "Example content about hybrid retrieval and vector search. " * 5
        return WebPageDocument.success(url=url, title=title, content=content, **kwargs)

    return _make
