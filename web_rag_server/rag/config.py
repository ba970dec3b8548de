"""RAG configuration dataclass."""

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


@dataclass
class RAGConfig:
    """Configuration for scraping, indexing and hybrid search.

    Attributes:
        # Vector store settings
        qdrant_url: Qdrant server URL, or ":memory:" for an in-process store
        qdrant_api_key: Optional Qdrant API key
        collection_name: Collection holding the scraped pages
        vector_dimension: Dense embedding size (3072 for text-embedding-3-large)

        # Scraping settings
        max_concurrent_requests: Pages scraped concurrently in one window (default: 3)
        request_delay: Seconds each scrape waits after finishing before its window drains
        user_agent: Browser user agent for page contexts
        navigation_timeout: Seconds before a page navigation is abandoned
        settle_delay: Seconds to wait after load for client-side rendering

        # Ingestion settings
        processing_batch_size: URLs handed to the scraper per batch (default: 50)
        min_content_length: Pages with less content are skipped (default: 100)
        embedding_max_chars: Characters of text sent to the embedding call (default: 8000)
        cache_dir: Directory holding state shared between runs (default: ./rag_cache)
        vocabulary_path: JSON file the sparse vocabulary is loaded from and saved to
            (default: <cache_dir>/<collection_name>_vocabulary.json)

        # Search settings (uses Reciprocal Rank Fusion)
        search_limit: Default number of results to return
        prefetch_multiplier: Each vector space prefetches limit * this candidates...
        min_prefetch: ...but never fewer than this
        rrf_k: RRF constant, score = sum(1 / (k + rank))
        answer_context_results: Results passed to the language model
        answer_context_chars: Characters of each result passed to the language model
    """

    # Vector store settings
    qdrant_url: str = "http://localhost:6333"
    qdrant_api_key: str | None = None
    collection_name: str = "web_content"
    vector_dimension: int = 3072

    # Scraping settings
    max_concurrent_requests: int = 3
    request_delay: float = 1.5
    user_agent: str = DEFAULT_USER_AGENT
    navigation_timeout: float = 30.0
    settle_delay: float = 2.0

    # Ingestion settings
    processing_batch_size: int = 50
    min_content_length: int = 100
    embedding_max_chars: int = 8000
    cache_dir: str | Path = "./rag_cache"
    vocabulary_path: str | Path | None = None
    show_progress: bool = True

    # Search settings
    search_limit: int = 5
    prefetch_multiplier: int = 4
    min_prefetch: int = 50
    rrf_k: int = 60
    answer_context_results: int = 5
    answer_context_chars: int = 1000

    def __post_init__(self):
        """Validate settings and resolve the vocabulary file."""
        self.cache_dir = Path(self.cache_dir)
        if self.vocabulary_path is None:
            # Ingestion and query processes must agree on sparse term ids
            self.vocabulary_path = self.cache_dir / f"{self.collection_name}_vocabulary.json"
        else:
            self.vocabulary_path = Path(self.vocabulary_path)

        if self.max_concurrent_requests < 1:
            raise ValueError(f"max_concurrent_requests must be at least 1, got {self.max_concurrent_requests}")
        if self.processing_batch_size < self.max_concurrent_requests:
            raise ValueError(
                f"processing_batch_size ({self.processing_batch_size}) must not be smaller than "
                f"max_concurrent_requests ({self.max_concurrent_requests})"
            )
        if self.vector_dimension < 1:
            raise ValueError(f"vector_dimension must be positive, got {self.vector_dimension}")
        if self.request_delay < 0 or self.settle_delay < 0:
            raise ValueError("request_delay and settle_delay cannot be negative")
        if self.rrf_k < 0:
            raise ValueError(f"rrf_k cannot be negative, got {self.rrf_k}")

    def prefetch_limit(self, limit: int) -> int:
        """Number of candidates to fetch from each vector space for ``limit`` results."""
        return max(limit * self.prefetch_multiplier, self.min_prefetch)

    @classmethod
    def from_env(cls, **overrides) -> "RAGConfig":
        """Build a config from environment variables, with keyword overrides taking precedence."""
        from dotenv import load_dotenv

        load_dotenv()

        values = {
            "qdrant_url": os.getenv("QDRANT_URL", cls.qdrant_url),
            "qdrant_api_key": os.getenv("QDRANT_API_KEY") or None,
            "collection_name": os.getenv("QDRANT_COLLECTION_NAME", cls.collection_name),
            "vector_dimension": int(os.getenv("VECTOR_DIMENSION", str(cls.vector_dimension))),
            "max_concurrent_requests": int(os.getenv("MAX_CONCURRENT_REQUESTS", str(cls.max_concurrent_requests))),
            "request_delay": int(os.getenv("REQUEST_DELAY_MS", str(int(cls.request_delay * 1000)))) / 1000,
            "cache_dir": os.getenv("RAG_CACHE_DIR", cls.cache_dir),
            "vocabulary_path": os.getenv("SPARSE_VOCABULARY_PATH") or None,
        }
        values.update(overrides)
        return cls(**values)
