"""Qdrant vector store holding one point per scraped page.

Each point carries a named dense vector, a named sparse vector and the page
payload, keyed by the document id.
"""

import logging
from typing import Any
from urllib.parse import urlparse

from qdrant_client import QdrantClient
from qdrant_client.http.models import (
    Distance,
    FieldCondition,
    Filter,
    Fusion,
    FusionQuery,
    MatchValue,
    PointStruct,
    Prefetch,
    SparseIndexParams,
    SparseVectorParams,
    VectorParams,
)
from qdrant_client.http.models import SparseVector as QdrantSparseVector

from .config import RAGConfig
from .models import SearchResult, SparseVector, WebPageDocument

logger = logging.getLogger(__name__)

DENSE_VECTOR = "dense"
SPARSE_VECTOR = "sparse"


def make_qdrant_client(url: str, api_key: str | None = None) -> QdrantClient:
    """Create a QdrantClient, handling in-memory and HTTPS URLs."""
    if url == ":memory:":
        return QdrantClient(location=":memory:")
    parsed = urlparse(url)
    if parsed.scheme == "https":
        return QdrantClient(host=parsed.hostname, port=parsed.port or 443, https=True, api_key=api_key)
    return QdrantClient(url=url, api_key=api_key)


def build_filter(conditions: dict[str, Any] | Filter | None) -> Filter | None:
    """Turn ``{"domain": "example.com"}`` style conditions into a Qdrant filter."""
    if conditions is None or isinstance(conditions, Filter):
        return conditions
    if not conditions:
        return None
    return Filter(must=[FieldCondition(key=key, match=MatchValue(value=value)) for key, value in conditions.items()])


class VectorStore:
    """Thin adapter over a Qdrant collection of web pages."""

    def __init__(self, config: RAGConfig, client: QdrantClient | None = None):
        """Initialize the store.

        Args:
            config: RAG configuration (connection, collection name, vector size)
            client: Optional pre-built client, mainly for tests
        """
        self.config = config
        self.collection_name = config.collection_name
        self.client = client or make_qdrant_client(config.qdrant_url, config.qdrant_api_key)
        self._initialized = False

    def initialize(self):
        """Create the collection if it does not exist yet."""
        if self._initialized:
            return

        try:
            collections = [c.name for c in self.client.get_collections().collections]
            if self.collection_name not in collections:
                self.create_collection()
        except Exception as e:
            logger.error(f"[STORE] Failed to initialize Qdrant collection '{self.collection_name}': {e}")
            raise

        self._initialized = True
        logger.info(f"[STORE] Qdrant collection '{self.collection_name}' ready")

    def create_collection(
        self, dimension: int | None = None, distance: Distance = Distance.COSINE, sparse_enabled: bool = True
    ):
        """Create the collection with a named dense vector and, optionally, a sparse one."""
        sparse_config = None
        if sparse_enabled:
            sparse_config = {SPARSE_VECTOR: SparseVectorParams(index=SparseIndexParams(on_disk=False))}

        self.client.create_collection(
            collection_name=self.collection_name,
            vectors_config={
                DENSE_VECTOR: VectorParams(size=dimension or self.config.vector_dimension, distance=distance),
            },
            sparse_vectors_config=sparse_config,
        )
        logger.info(f"[STORE] Created collection '{self.collection_name}'")

    def upsert_document(self, document: WebPageDocument, dense_vector: list[float], sparse_vector: SparseVector):
        """Insert or replace the point for ``document``."""
        self.initialize()

        vector: dict[str, Any] = {DENSE_VECTOR: dense_vector}
        if len(sparse_vector):
            vector[SPARSE_VECTOR] = QdrantSparseVector(indices=sparse_vector.indices, values=sparse_vector.values)

        self.client.upsert(
            collection_name=self.collection_name,
            points=[PointStruct(id=document.id, vector=vector, payload=document.to_payload())],
            wait=True,
        )
        logger.debug(f"[STORE] Upserted {document.url} ({document.id})")

    def search(
        self, dense_vector: list[float], limit: int = 10, conditions: dict[str, Any] | Filter | None = None
    ) -> list[SearchResult]:
        """Rank documents by dense-vector similarity."""
        self.initialize()
        response = self.client.query_points(
            collection_name=self.collection_name,
            query=dense_vector,
            using=DENSE_VECTOR,
            query_filter=build_filter(conditions),
            limit=limit,
            with_payload=True,
        )
        return self._to_results(response.points)

    def search_sparse(
        self, sparse_vector: SparseVector, limit: int = 10, conditions: dict[str, Any] | Filter | None = None
    ) -> list[SearchResult]:
        """Rank documents by sparse (lexical) vector similarity."""
        self.initialize()
        if not len(sparse_vector):
            return []
        response = self.client.query_points(
            collection_name=self.collection_name,
            query=QdrantSparseVector(indices=sparse_vector.indices, values=sparse_vector.values),
            using=SPARSE_VECTOR,
            query_filter=build_filter(conditions),
            limit=limit,
            with_payload=True,
        )
        return self._to_results(response.points)

    def query(self, prefetch: list[Prefetch], fusion: Fusion = Fusion.RRF, limit: int = 10) -> list[SearchResult]:
        """Run the store's own multi-prefetch query fused with ``fusion``."""
        self.initialize()
        response = self.client.query_points(
            collection_name=self.collection_name,
            prefetch=prefetch,
            query=FusionQuery(fusion=fusion),
            limit=limit,
            with_payload=True,
        )
        return self._to_results(response.points)

    @staticmethod
    def dense_prefetch(
        dense_vector: list[float], limit: int, conditions: dict[str, Any] | Filter | None = None
    ) -> Prefetch:
        return Prefetch(query=dense_vector, using=DENSE_VECTOR, filter=build_filter(conditions), limit=limit)

    @staticmethod
    def sparse_prefetch(
        sparse_vector: SparseVector, limit: int, conditions: dict[str, Any] | Filter | None = None
    ) -> Prefetch:
        return Prefetch(
            query=QdrantSparseVector(indices=sparse_vector.indices, values=sparse_vector.values),
            using=SPARSE_VECTOR,
            filter=build_filter(conditions),
            limit=limit,
        )

    def get_document(self, document_id: str) -> WebPageDocument | None:
        """Fetch a stored document by id, without any score."""
        self.initialize()
        points = self.client.retrieve(collection_name=self.collection_name, ids=[document_id], with_payload=True)
        if not points:
            return None
        return WebPageDocument.from_payload(points[0].id, points[0].payload or {})

    def get_document_count(self) -> int:
        self.initialize()
        return self.client.count(collection_name=self.collection_name, exact=True).count

    def delete_collection(self):
        self.client.delete_collection(collection_name=self.collection_name)
        self._initialized = False
        logger.info(f"[STORE] Deleted collection '{self.collection_name}'")

    @staticmethod
    def _to_results(points) -> list[SearchResult]:
        return [
            SearchResult(document=WebPageDocument.from_payload(point.id, point.payload or {}), score=point.score)
            for point in points
        ]
