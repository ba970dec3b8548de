"""Wiring of the RAG components and the query-answering flow."""

import asyncio
import logging
from typing import Any

from ..backends import generate_chat_response
from ..config import ServerConfig
from .config import RAGConfig
from .embeddings import EmbeddingClient
from .processor import ContentProcessor
from .retriever import HybridRetriever
from .scraper import WebScraper
from .sparse import Vocabulary
from .store import VectorStore

logger = logging.getLogger(__name__)

SEARCH_MODES = ("hybrid", "dense")


def database_unavailable_response(query: str) -> str:
    """Explanation returned in place of an answer when retrieval fails."""
    return f"""I'm sorry, but the content database is not currently available. This usually means:

1. The Qdrant database is not running or not reachable
2. The websites haven't been processed yet
3. Connection configuration needs to be updated

To fix this:
- Start Qdrant (for example with Docker: docker run -p 6333:6333 qdrant/qdrant)
- Or point QDRANT_URL at a Qdrant Cloud instance
- Then process the website list: web-rag process websites.csv

Your question was: "{query}"

Once the database is set up and populated with content, I'll be able to search through the indexed websites and provide detailed answers with source citations."""


class RAGServices:
    """Builds and holds the explicitly injected ingestion and retrieval components.

    Every collaborator can be passed in; missing ones are constructed from the
    configs. Construction fails with ConfigurationError when the backend API
    key is missing.
    """

    def __init__(
        self,
        server_config: ServerConfig,
        rag_config: RAGConfig,
        embedder: EmbeddingClient | None = None,
        store: VectorStore | None = None,
        scraper: WebScraper | None = None,
        vocabulary: Vocabulary | None = None,
        use_store_fusion: bool = False,
    ):
        self.server_config = server_config
        self.rag_config = rag_config

        if vocabulary is None:
            if rag_config.vocabulary_path is not None:
                vocabulary = Vocabulary.load(rag_config.vocabulary_path)
            else:
                vocabulary = Vocabulary()
        self.vocabulary = vocabulary

        self.embedder = embedder or EmbeddingClient(server_config, rag_config.vector_dimension)
        self.store = store or VectorStore(rag_config)
        self.scraper = scraper or WebScraper(rag_config)

        self.processor = ContentProcessor(rag_config, self.scraper, self.embedder, self.store, self.vocabulary)
        self.retriever = HybridRetriever(
            rag_config, self.embedder, self.store, self.vocabulary, use_store_fusion=use_store_fusion
        )

    async def search(
        self, query: str, limit: int | None = None, mode: str = "hybrid", conditions: dict[str, Any] | None = None
    ):
        """Run a hybrid or dense-only search."""
        if mode not in SEARCH_MODES:
            raise ValueError(f"Unknown search mode '{mode}', expected one of: {', '.join(SEARCH_MODES)}")
        if mode == "dense":
            return await self.retriever.search_similar(query, limit, conditions)
        return await self.retriever.hybrid_search(query, limit, conditions)

    async def answer(
        self, query: str, limit: int | None = None, mode: str = "hybrid", conditions: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Retrieve sources for ``query`` and have the language model answer from them.

        Returns:
            Dict with query, response, sources and results_count. When
            retrieval fails the response is an explanation instead of an
            answer, and error/details fields are included.
        """
        try:
            results = await self.search(query, limit, mode, conditions)
        except ValueError:
            raise
        except Exception as e:
            logger.error(f"[SEARCH] Retrieval failed for '{query}': {e}")
            return {
                "query": query,
                "response": database_unavailable_response(query),
                "sources": [],
                "results_count": 0,
                "error": "Database not available",
                "details": str(e),
            }

        response = await asyncio.to_thread(
            generate_chat_response,
            query,
            results,
            self.server_config,
            self.rag_config.answer_context_results,
            self.rag_config.answer_context_chars,
        )

        return {
            "query": query,
            "response": response,
            "sources": [result.to_source() for result in results],
            "results_count": len(results),
        }
