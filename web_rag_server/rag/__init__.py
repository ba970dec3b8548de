"""Scraping, vectorization, storage and hybrid retrieval of web pages."""

from .config import RAGConfig
from .embeddings import EmbeddingClient, EmbeddingError
from .extractor import ExtractedContent, extract_content
from .models import ProcessingStats, ScrapeResult, SearchResult, SparseVector, WebPageDocument
from .processor import ContentProcessor
from .retriever import HybridRetriever, reciprocal_rank_fusion
from .scraper import ScrapeError, WebScraper
from .services import RAGServices
from .sparse import Vocabulary, generate_sparse_vector
from .store import VectorStore

__all__ = [
    "ContentProcessor",
    "EmbeddingClient",
    "EmbeddingError",
    "ExtractedContent",
    "HybridRetriever",
    "ProcessingStats",
    "RAGConfig",
    "RAGServices",
    "ScrapeError",
    "ScrapeResult",
    "SearchResult",
    "SparseVector",
    "VectorStore",
    "Vocabulary",
    "WebPageDocument",
    "WebScraper",
    "extract_content",
    "generate_sparse_vector",
    "reciprocal_rank_fusion",
]
