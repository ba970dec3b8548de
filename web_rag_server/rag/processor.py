"""Ingestion pipeline: URL list -> scraped pages -> dense + sparse vectors -> Qdrant."""

import asyncio
import csv
import logging
import math
import re
import sys
from pathlib import Path
from typing import Any, Iterable
from urllib.parse import urlparse

from tqdm import tqdm

from .config import RAGConfig
from .embeddings import EmbeddingClient, prepare_text_for_embedding
from .models import ProcessingStats, ScrapeResult, WebPageDocument
from .scraper import WebScraper
from .sparse import Vocabulary, generate_sparse_vector
from .store import VectorStore

logger = logging.getLogger(__name__)

# Rows that are placeholders or error output rather than URLs
SENTINEL_MARKERS = ("surprise!", "Handle this error")

_TRAILING_PUNCTUATION_RE = re.compile(r"[,;]+$")


def clean_url(url: str) -> str:
    """Strip whitespace and trailing commas/semicolons from a raw URL."""
    return _TRAILING_PUNCTUATION_RE.sub("", url.strip()).strip()


def is_valid_url(url: str) -> bool:
    """Check that ``url`` is a well-formed http(s) URL and not a sentinel row."""
    if not url or any(marker in url for marker in SENTINEL_MARKERS):
        return False
    try:
        parsed = urlparse(clean_url(url))
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc) and " " not in parsed.netloc


def deduplicate_urls(raw_urls: Iterable[str]) -> list[str]:
    """Clean, validate and deduplicate URLs, keeping first-seen order."""
    unique: dict[str, None] = {}
    for raw in raw_urls:
        url = clean_url(raw)
        if is_valid_url(url):
            unique.setdefault(url, None)
    return list(unique)


def load_urls_from_csv(csv_path: str | Path) -> list[str]:
    """Read raw URL strings from a CSV file.

    Uses the ``url`` column when the file has one, otherwise the first column
    of every row. Invalid rows are dropped here; duplicates are kept.

    Raises:
        FileNotFoundError: If the file does not exist
    """
    path = Path(csv_path).resolve()
    if not path.exists():
        raise FileNotFoundError(f"CSV file not found: {path}")

    with path.open(newline="", encoding="utf-8-sig") as f:
        reader = csv.reader(f)
        rows = [row for row in reader if row]

    if not rows:
        return []

    header = [cell.strip().lower() for cell in rows[0]]
    if "url" in header:
        column = header.index("url")
        values = [row[column] for row in rows[1:] if len(row) > column]
    else:
        values = [row[0] for row in rows]

    urls = [value.strip() for value in values if is_valid_url(clean_url(value))]
    logger.info(f"[PROCESSOR] Loaded {len(urls)} URLs from {path}")
    return urls


class ContentProcessor:
    """Runs scrape -> embed -> upsert over a URL list and tracks run statistics.

    The stats object is replaced at the start of every run and updated in
    place while it runs, so it can be polled for progress.
    """

    def __init__(
        self,
        config: RAGConfig,
        scraper: WebScraper,
        embedder: EmbeddingClient,
        store: VectorStore,
        vocabulary: Vocabulary,
    ):
        self.config = config
        self.scraper = scraper
        self.embedder = embedder
        self.store = store
        self.vocabulary = vocabulary
        self.stats = ProcessingStats()

    async def process_all_websites(self, csv_path: str | Path) -> ProcessingStats:
        """Scrape, embed and index every unique valid URL in ``csv_path``.

        Setup failures (unreadable CSV, unreachable vector store) propagate to
        the caller; the browser is shut down and the run marked finished on every exit path.

        Returns:
            The final ProcessingStats of this run
        """
        logger.info("[PROCESSOR] " + "=" * 70)
        logger.info("[PROCESSOR] Starting web content processing")
        logger.info("[PROCESSOR] " + "=" * 70)

        self.stats = ProcessingStats()

        try:
            urls = deduplicate_urls(load_urls_from_csv(csv_path))
            self.stats.total = len(urls)
            logger.info(f"[PROCESSOR] Processing {self.stats.total} unique URLs")

            await asyncio.to_thread(self.store.initialize)
            await self.scraper.initialize()

            batch_size = self.config.processing_batch_size
            total_batches = math.ceil(len(urls) / batch_size)

            pbar = tqdm(
                total=self.stats.total,
                desc="Processing websites",
                unit="url",
                disable=not self.config.show_progress,
                file=sys.stderr,
            )
            try:
                for batch_number, start in enumerate(range(0, len(urls), batch_size), 1):
                    batch = urls[start : start + batch_size]
                    logger.info(f"[PROCESSOR] Processing batch {batch_number}/{total_batches} ({len(batch)} URLs)")

                    await self.process_batch(batch)

                    pbar.update(len(batch))
                    pbar.set_postfix_str(
                        f"ok={self.stats.successful}, failed={self.stats.failed}, skipped={self.stats.skipped}",
                        refresh=True,
                    )
                    logger.info(
                        f"[PROCESSOR] Progress: {self.stats.processed + self.stats.skipped}/{self.stats.total} "
                        f"(successful={self.stats.successful}, failed={self.stats.failed}, "
                        f"skipped={self.stats.skipped})"
                    )
            finally:
                pbar.close()

        except Exception as e:
            logger.error(f"[PROCESSOR] Processing failed: {e}")
            raise
        finally:
            await self.scraper.close()
            self._save_vocabulary()
            self.stats.finish()

        self._log_final_stats()
        return self.stats

    async def process_batch(self, urls: list[str]):
        """Scrape one batch and index each successful page."""
        results = await self.scraper.scrape_multiple(urls)
        for result in results:
            await self._process_result(result)

    async def _process_result(self, result: ScrapeResult):
        if result.success and result.document is not None:
            await self.process_document(result.document)
        else:
            logger.error(f"[PROCESSOR] Failed to scrape: {result.error}")
            self.stats.record_failure()

    async def process_document(self, document: WebPageDocument):
        """Embed and store one scraped document, updating the stats.

        Documents shorter than ``min_content_length`` are skipped without
        calling the embedding service. Any embedding or upsert error is
        counted as a failure for this document only.
        """
        if document.content_length < self.config.min_content_length:
            logger.info(f"[PROCESSOR] Skipping {document.url} - content too short ({document.content_length} chars)")
            self.stats.record_skip()
            return

        try:
            text = prepare_text_for_embedding(
                document.title, document.content, document.description, max_chars=self.config.embedding_max_chars
            )

            logger.debug(f"[PROCESSOR] Generating embeddings for: {document.title}")
            dense_vector, sparse_vector = await asyncio.gather(
                asyncio.to_thread(self.embedder.embed, text, self.config.embedding_max_chars),
                asyncio.to_thread(generate_sparse_vector, text, self.vocabulary),
            )

            await asyncio.to_thread(self.store.upsert_document, document, dense_vector, sparse_vector)

            logger.info(f"[PROCESSOR] Processed: {document.title} ({document.domain})")
            self.stats.record_success()
        except Exception as e:
            logger.error(f"[PROCESSOR] Failed to process {document.url}: {e}")
            self.stats.record_failure()

    def get_processing_status(self) -> dict[str, Any]:
        """Return the stored document count and a snapshot of the current stats."""
        return {
            "documents_in_database": self.store.get_document_count(),
            "stats": self.stats.to_dict(),
            "is_processing": self.stats.is_processing,
        }

    def _save_vocabulary(self):
        if self.config.vocabulary_path is None:
            return
        try:
            self.vocabulary.save(self.config.vocabulary_path)
        except OSError as e:
            logger.error(f"[PROCESSOR] Failed to save sparse vocabulary: {e}")

    def _log_final_stats(self):
        stats = self.stats
        logger.info("[PROCESSOR] Final statistics:")
        logger.info(f"[PROCESSOR]   Total URLs: {stats.total}")
        logger.info(f"[PROCESSOR]   Successful: {stats.successful}")
        logger.info(f"[PROCESSOR]   Failed: {stats.failed}")
        logger.info(f"[PROCESSOR]   Skipped: {stats.skipped}")
        logger.info(f"[PROCESSOR]   Duration: {(stats.duration or 0) / 60:.1f} minutes")
        logger.info(f"[PROCESSOR]   Success rate: {stats.success_rate:.0%}")
