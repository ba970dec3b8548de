"""Hybrid dense + sparse retrieval fused with Reciprocal Rank Fusion."""

import asyncio
import logging
import math
from typing import Any

from qdrant_client.http.models import Filter, Fusion

from .config import RAGConfig
from .embeddings import EmbeddingClient
from .models import SearchResult, WebPageDocument
from .sparse import Vocabulary, generate_sparse_vector
from .store import VectorStore

logger = logging.getLogger(__name__)


def reciprocal_rank_fusion(ranked_lists: list[list[SearchResult]], k: int = 60) -> list[SearchResult]:
    """Fuse ranked result lists with RRF.

    A document's fused score is the sum of ``1 / (k + rank)`` (ranks start at
    1) over every list it appears in. Equal scores are ordered by the
    document's rank in the first list, then in the following lists, then by id.

    Args:
        ranked_lists: Result lists, best first. The first list breaks ties.
        k: RRF constant

    Returns:
        All distinct documents, sorted by fused score descending
    """
    scores: dict[str, float] = {}
    ranks: dict[str, list[float]] = {}
    documents: dict[str, WebPageDocument] = {}

    for list_index, results in enumerate(ranked_lists):
        for rank, result in enumerate(results, 1):
            doc_id = result.document.id
            if doc_id not in scores:
                scores[doc_id] = 0.0
                ranks[doc_id] = [math.inf] * len(ranked_lists)
                documents[doc_id] = result.document
            # A document listed twice in one list only counts at its best rank
            if ranks[doc_id][list_index] != math.inf:
                continue
            ranks[doc_id][list_index] = rank
            scores[doc_id] += 1.0 / (k + rank)

    ordered = sorted(scores, key=lambda doc_id: (-scores[doc_id], *ranks[doc_id], doc_id))
    return [SearchResult(document=documents[doc_id], score=scores[doc_id]) for doc_id in ordered]


class HybridRetriever:
    """Answers queries against the page collection.

    Query vectors are built with the same embedding model and the same sparse
    vocabulary as ingestion, otherwise scores would not be comparable.
    """

    def __init__(
        self,
        config: RAGConfig,
        embedder: EmbeddingClient,
        store: VectorStore,
        vocabulary: Vocabulary,
        use_store_fusion: bool = False,
    ):
        """Initialize the retriever.

        Args:
            config: RAG configuration (limits, RRF constant)
            embedder: Dense embedding client
            store: Vector store to search
            vocabulary: Sparse vocabulary shared with ingestion
            use_store_fusion: Let Qdrant fuse the two prefetches instead of fusing locally.
                Qdrant applies its own built-in RRF constant, so ``config.rrf_k`` only
                affects local fusion and fused scores differ between the two paths.
        """
        self.config = config
        self.embedder = embedder
        self.store = store
        self.vocabulary = vocabulary
        self.use_store_fusion = use_store_fusion

    async def hybrid_search(
        self, query: str, limit: int | None = None, conditions: dict[str, Any] | Filter | None = None
    ) -> list[SearchResult]:
        """Search both vector spaces and fuse the rankings.

        Fusion runs locally with ``config.rrf_k`` unless ``use_store_fusion`` is set,
        in which case Qdrant fuses with its own RRF constant. Scores are therefore
        not comparable across the two modes.

        Args:
            query: Natural-language query
            limit: Number of results (default from config)
            conditions: Optional payload filter applied to both prefetches

        Returns:
            Up to ``limit`` results scored by fused rank
        """
        limit = limit or self.config.search_limit
        prefetch_limit = self.config.prefetch_limit(limit)

        dense_vector = await asyncio.to_thread(self.embedder.embed, query, self.config.embedding_max_chars)
        # Query terms unknown to the vocabulary cannot match any stored vector
        sparse_vector = generate_sparse_vector(query, self.vocabulary, extend_vocabulary=False)

        logger.debug(
            f"[SEARCH] Hybrid search for '{query}' (limit={limit}, prefetch={prefetch_limit}, "
            f"sparse_terms={len(sparse_vector)})"
        )

        if self.use_store_fusion:
            prefetch = [self.store.dense_prefetch(dense_vector, prefetch_limit, conditions)]
            if len(sparse_vector):
                prefetch.append(self.store.sparse_prefetch(sparse_vector, prefetch_limit, conditions))
            return await asyncio.to_thread(self.store.query, prefetch, Fusion.RRF, limit)

        dense_results, sparse_results = await asyncio.gather(
            asyncio.to_thread(self.store.search, dense_vector, prefetch_limit, conditions),
            asyncio.to_thread(self.store.search_sparse, sparse_vector, prefetch_limit, conditions),
        )
        logger.debug(f"[SEARCH] {len(dense_results)} dense and {len(sparse_results)} sparse candidates")

        fused = reciprocal_rank_fusion([dense_results, sparse_results], k=self.config.rrf_k)
        return fused[:limit]

    async def search_similar(
        self, query: str, limit: int | None = None, conditions: dict[str, Any] | Filter | None = None
    ) -> list[SearchResult]:
        """Dense-only search, scored by the store's vector similarity."""
        limit = limit or self.config.search_limit
        dense_vector = await asyncio.to_thread(self.embedder.embed, query, self.config.embedding_max_chars)
        return await asyncio.to_thread(self.store.search, dense_vector, limit, conditions)
