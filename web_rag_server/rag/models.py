"""Data types shared by the scraper, ingestion pipeline and retriever."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal
from urllib.parse import urlparse

DocumentStatus = Literal["success", "failed"]


def extract_domain(url: str) -> str:
    """Return the host component of a URL, or "unknown" if it cannot be parsed."""
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return "unknown"
    return hostname or "unknown"


@dataclass(frozen=True)
class WebPageDocument:
    """A single scrape attempt of one URL.

    Failed documents carry an empty title and content but always a non-empty
    error and a domain (``"unknown"`` when the URL itself was malformed).
    """

    id: str
    url: str
    title: str
    content: str
    domain: str
    scraped_at: datetime
    content_length: int
    status: DocumentStatus
    description: str | None = None
    error: str | None = None

    @classmethod
    def success(cls, url: str, title: str, content: str, description: str | None = None) -> "WebPageDocument":
        return cls(
            id=str(uuid.uuid4()),
            url=url,
            title=title,
            content=content,
            description=description,
            domain=extract_domain(url),
            scraped_at=datetime.now(timezone.utc),
            content_length=len(content),
            status="success",
        )

    @classmethod
    def failed(cls, url: str, error: str) -> "WebPageDocument":
        return cls(
            id=str(uuid.uuid4()),
            url=url,
            title="",
            content="",
            domain=extract_domain(url),
            scraped_at=datetime.now(timezone.utc),
            content_length=0,
            status="failed",
            error=error or "Unknown error",
        )

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the payload stored alongside the vectors."""
        return {
            "url": self.url,
            "title": self.title,
            "content": self.content,
            "description": self.description,
            "domain": self.domain,
            "scraped_at": self.scraped_at.isoformat(),
            "content_length": self.content_length,
            "status": self.status,
            "error": self.error,
        }

    @classmethod
    def from_payload(cls, point_id: Any, payload: dict[str, Any]) -> "WebPageDocument":
        scraped_at = payload.get("scraped_at")
        return cls(
            id=str(point_id),
            url=payload.get("url", ""),
            title=payload.get("title", ""),
            content=payload.get("content", ""),
            description=payload.get("description"),
            domain=payload.get("domain", "unknown"),
            scraped_at=datetime.fromisoformat(scraped_at) if scraped_at else datetime.now(timezone.utc),
            content_length=payload.get("content_length", 0),
            status=payload.get("status", "success"),
            error=payload.get("error"),
        )


@dataclass
class ScrapeResult:
    """Outcome of scraping one URL. Failures are data, not exceptions."""

    success: bool
    document: WebPageDocument | None = None
    error: str | None = None


@dataclass(frozen=True)
class SparseVector:
    """Parallel ``indices``/``values`` arrays of a sparse term-weight vector."""

    indices: list[int] = field(default_factory=list)
    values: list[float] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.indices)

    def as_dict(self) -> dict[int, float]:
        return dict(zip(self.indices, self.values))


@dataclass
class SearchResult:
    """A stored document plus its relevance score."""

    document: WebPageDocument
    score: float

    def to_source(self, preview_chars: int = 200) -> dict[str, Any]:
        """Summarize the result for API responses."""
        content = self.document.content
        return {
            "title": self.document.title,
            "url": self.document.url,
            "domain": self.document.domain,
            "score": self.score,
            "description": self.document.description,
            "content_preview": content[:preview_chars] + "...",
        }


@dataclass
class ProcessingStats:
    """Counters for one ingestion run.

    ``processed`` only counts documents that ended as successful or failed, so
    ``processed == successful + failed`` holds at every point. Skipped (too
    short) documents are tracked separately.
    """

    total: int = 0
    processed: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    end_time: datetime | None = None
    duration: float | None = None  # seconds

    def record_success(self):
        self.processed += 1
        self.successful += 1

    def record_failure(self):
        self.processed += 1
        self.failed += 1

    def record_skip(self):
        self.skipped += 1

    def finish(self):
        self.end_time = datetime.now(timezone.utc)
        self.duration = (self.end_time - self.start_time).total_seconds()

    @property
    def is_processing(self) -> bool:
        return self.end_time is None and self.total > 0

    @property
    def success_rate(self) -> float:
        if not self.total:
            return 0.0
        return self.successful / self.total

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "processed": self.processed,
            "successful": self.successful,
            "failed": self.failed,
            "skipped": self.skipped,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration": self.duration,
        }
