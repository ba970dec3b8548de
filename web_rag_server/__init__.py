"""Web RAG Server - scrape websites into a hybrid vector index and answer questions about them."""

from .backends import generate_chat_response
from .config import ConfigurationError, ServerConfig
from .rag import (
    ContentProcessor,
    EmbeddingClient,
    HybridRetriever,
    ProcessingStats,
    RAGConfig,
    RAGServices,
    SearchResult,
    VectorStore,
    Vocabulary,
    WebPageDocument,
    WebScraper,
)
from .server import RAGServer

__version__ = "0.1.0"
__all__ = [
    "ConfigurationError",
    "ContentProcessor",
    "EmbeddingClient",
    "HybridRetriever",
    "ProcessingStats",
    "RAGConfig",
    "RAGServer",
    "RAGServices",
    "SearchResult",
    "ServerConfig",
    "VectorStore",
    "Vocabulary",
    "WebPageDocument",
    "WebScraper",
    "generate_chat_response",
]
