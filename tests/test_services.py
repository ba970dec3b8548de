"""Tests for RAGServices wiring and the answer flow."""

import asyncio
from unittest.mock import MagicMock

import pytest

from web_rag_server import backends
from web_rag_server.config import ConfigurationError, ServerConfig
from web_rag_server.rag.models import ScrapeResult, WebPageDocument
from web_rag_server.rag.services import RAGServices, database_unavailable_response
from web_rag_server.rag.sparse import Vocabulary, generate_sparse_vector

PAGE_CONTENT = "Qdrant supports hybrid retrieval with dense and sparse vectors in one collection. " * 3


class PageScraper:
    """Scraper stand-in that returns the same page content for every URL."""

    async def initialize(self):
        pass

    async def close(self):
        pass

    async def scrape_multiple(self, urls):
        return [
            ScrapeResult(success=True, document=WebPageDocument.success(url, "Hybrid search", PAGE_CONTENT))
            for url in urls
        ]


@pytest.fixture
def services(server_config, rag_config, fake_embedder, memory_store, vocabulary):
    return RAGServices(server_config, rag_config, embedder=fake_embedder, store=memory_store, vocabulary=vocabulary)


@pytest.mark.unit
class TestRAGServices:
    """Test component wiring."""

    def test_shares_components(self, services, fake_embedder, memory_store, vocabulary):
        assert services.processor.embedder is fake_embedder
        assert services.retriever.embedder is fake_embedder
        assert services.processor.store is memory_store
        assert services.retriever.vocabulary is vocabulary
        assert services.processor.vocabulary is vocabulary

    def test_missing_api_key(self, rag_config, memory_store):
        with pytest.raises(ConfigurationError):
            RAGServices(ServerConfig(), rag_config, store=memory_store)

    def test_loads_vocabulary_from_path(self, server_config, rag_config, fake_embedder, memory_store, tmp_path):
        path = tmp_path / "vocabulary.json"
        Vocabulary({"hybrid": 0, "search": 1}).save(path)
        rag_config.vocabulary_path = path

        services = RAGServices(server_config, rag_config, embedder=fake_embedder, store=memory_store)

        assert services.vocabulary.get("search") == 1

    def test_unknown_mode(self, services):
        with pytest.raises(ValueError, match="Unknown search mode"):
            asyncio.run(services.search("hello", mode="keyword"))


@pytest.mark.unit
class TestAnswer:
    """Test answering queries."""

    def test_answer_with_sources(self, services, make_document, monkeypatch):
        document = make_document(url="https://docs.test/hybrid", title="Hybrid")
        asyncio.run(services.processor.process_document(document))
        generate = MagicMock(return_value="Hybrid search is explained at https://docs.test/hybrid")
        monkeypatch.setattr("web_rag_server.rag.services.generate_chat_response", generate)

        result = asyncio.run(services.answer("hybrid retrieval"))

        assert result["query"] == "hybrid retrieval"
        assert result["response"].startswith("Hybrid search")
        assert result["results_count"] == 1
        source = result["sources"][0]
        assert source["url"] == "https://docs.test/hybrid"
        assert source["domain"] == "docs.test"
        assert source["content_preview"].endswith("...")
        assert "error" not in result
        assert generate.call_args.args[0] == "hybrid retrieval"
        assert generate.call_args.args[3:] == (5, 1000)

    def test_empty_collection_answers_without_model(self, services, monkeypatch):
        post = MagicMock()
        monkeypatch.setattr(backends.requests, "post", post)

        result = asyncio.run(services.answer("anything"))

        assert result["response"] == backends.NO_RESULTS_MESSAGE
        assert result["sources"] == []
        assert result["results_count"] == 0
        post.assert_not_called()

    def test_store_failure_returns_explanation(self, server_config, rag_config, fake_embedder, vocabulary):
        store = MagicMock()
        store.search.side_effect = ConnectionError("Connection refused")
        store.search_sparse.return_value = []
        services = RAGServices(server_config, rag_config, embedder=fake_embedder, store=store, vocabulary=vocabulary)

        result = asyncio.run(services.answer("Where is the pricing page?"))

        assert result["error"] == "Database not available"
        assert result["details"] == "Connection refused"
        assert result["sources"] == []
        assert result["results_count"] == 0
        assert 'Your question was: "Where is the pricing page?"' in result["response"]


@pytest.mark.unit
def test_database_unavailable_response_mentions_query():
    """Test the fallback explanation quotes the user's question."""
    text = database_unavailable_response("What is RRF?")

    assert '"What is RRF?"' in text
    assert "Qdrant" in text


@pytest.mark.unit
class TestVocabularySharing:
    """Test separate service instances agree on sparse term ids."""

    def test_default_config_shares_term_ids(self, server_config, rag_config, fake_embedder, memory_store, tmp_path):
        csv_path = tmp_path / "websites.csv"
        csv_path.write_text("url\nhttps://docs.test/hybrid\n", encoding="utf-8")
        ingest = RAGServices(
            server_config, rag_config, embedder=fake_embedder, store=memory_store, scraper=PageScraper()
        )
        asyncio.run(ingest.processor.process_all_websites(csv_path))

        query = RAGServices(server_config, rag_config, embedder=fake_embedder, store=memory_store)

        assert rag_config.vocabulary_path.exists()
        assert len(query.vocabulary) == len(ingest.vocabulary) > 0
        for term in ("qdrant", "hybrid", "retrieval"):
            assert query.vocabulary.get(term) == ingest.vocabulary.get(term)
        sparse = generate_sparse_vector("qdrant hybrid retrieval", query.vocabulary, extend_vocabulary=False)
        assert len(sparse) == 3

    def test_later_ingestion_continues_ids(self, server_config, rag_config, fake_embedder, memory_store, tmp_path):
        csv_path = tmp_path / "websites.csv"
        csv_path.write_text("url\nhttps://docs.test/hybrid\n", encoding="utf-8")
        first = RAGServices(server_config, rag_config, embedder=fake_embedder, store=memory_store, scraper=PageScraper())
        asyncio.run(first.processor.process_all_websites(csv_path))

        second = RAGServices(server_config, rag_config, embedder=fake_embedder, store=memory_store)

        assert second.vocabulary.get_or_add("unseenterm") == len(first.vocabulary)
