"""Flask server exposing search and ingestion over HTTP."""

import asyncio
import logging
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from .backends import check_openai_health
from .config import ServerConfig
from .rag.config import RAGConfig
from .rag.services import SEARCH_MODES, RAGServices

logger = logging.getLogger(__name__)


class RAGServer:
    """Flask server providing search, answer and processing endpoints."""

    def __init__(
        self,
        config: ServerConfig,
        rag_config: RAGConfig,
        services: Optional[RAGServices] = None,
        default_csv_path: str = "websites.csv",
        logger_names: Optional[List[str]] = None,
    ):
        """Initialize the RAG server.

        Args:
            config: ServerConfig instance
            rag_config: RAGConfig instance
            services: Optional pre-built services (built from the configs otherwise)
            default_csv_path: URL list processed when a start request names none
            logger_names: Optional list of logger names for debug logging
        """
        self.config = config
        self.rag_config = rag_config
        self.services = services or RAGServices(config, rag_config)
        self.default_csv_path = default_csv_path

        self._process_thread: Optional[threading.Thread] = None
        self._process_lock = threading.Lock()

        # Create Flask app
        self.app = Flask("web_rag_server")
        CORS(self.app)

        logger_names = logger_names or ["web_rag_server"]
        if config.DEBUG_LOGGING:
            log_file = Path(config.DEBUG_LOG_FILE)
            # Use RotatingFileHandler for automatic log rotation
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=config.DEBUG_LOG_MAX_BYTES,
                backupCount=config.DEBUG_LOG_BACKUP_COUNT,
                encoding="utf-8",
            )
            file_handler.setLevel(logging.DEBUG)

            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
            )
            file_handler.setFormatter(formatter)

            for logger_name in logger_names:
                logger_obj = logging.getLogger(logger_name)
                logger_obj.setLevel(logging.DEBUG)
                logger_obj.addHandler(file_handler)

            max_mb = config.DEBUG_LOG_MAX_BYTES / (1024 * 1024)
            print(f"Debug logging enabled: {log_file.absolute()}")
            print(f"  Rotation: {max_mb:.1f}MB max, {config.DEBUG_LOG_BACKUP_COUNT} backups")

        self._register_routes()

    def _register_routes(self):
        """Register Flask routes."""
        self.app.route("/health", methods=["GET"])(self.health)
        self.app.route("/v1/search", methods=["POST"])(self.search)
        self.app.route("/v1/process", methods=["POST"])(self.start_processing)
        self.app.route("/v1/process", methods=["GET"])(self.processing_status)

    @property
    def is_processing(self) -> bool:
        return self._process_thread is not None and self._process_thread.is_alive()

    def health(self):
        """Health check endpoint."""
        return jsonify(
            {
                "status": "healthy",
                "collection": self.rag_config.collection_name,
                "embedding_model": self.config.EMBEDDING_MODEL,
                "chat_model": self.config.CHAT_MODEL,
            }
        )

    def search(self):
        """Answer a query from the indexed pages."""
        data = request.get_json(silent=True)
        if data is None:
            return jsonify({"error": "Invalid JSON in request body"}), 400

        query = data.get("query")
        if not query or not isinstance(query, str) or not query.strip():
            return jsonify({"error": "Query is required and must be a string"}), 400

        limit = data.get("limit", self.rag_config.search_limit)
        if not isinstance(limit, int) or isinstance(limit, bool) or limit < 1:
            return jsonify({"error": "Field 'limit' must be a positive integer"}), 400

        mode = data.get("mode", "hybrid")
        if mode not in SEARCH_MODES:
            return jsonify({"error": f"Field 'mode' must be one of: {', '.join(SEARCH_MODES)}"}), 400

        try:
            result = asyncio.run(self.services.answer(query, limit=limit, mode=mode))
            return jsonify(result)
        except Exception as e:
            logger.error(f"[SERVER] Search API error: {e}")
            return jsonify({"error": "Failed to process search request", "details": str(e)}), 500

    def start_processing(self):
        """Start an ingestion run in a background thread."""
        data = request.get_json(silent=True)
        if data is None:
            return jsonify({"error": "Invalid JSON in request body"}), 400

        if data.get("action") != "start":
            return jsonify({"error": 'Invalid action. Use "start" to begin processing.'}), 400

        csv_path = data.get("csv_path", self.default_csv_path)

        with self._process_lock:
            if self.is_processing:
                return jsonify({"error": "Processing is already running"}), 409
            self._process_thread = self.start_background_processing(csv_path)

        return jsonify({"message": "Processing started", "status": "started", "csv_path": csv_path})

    def start_background_processing(self, csv_path: str) -> threading.Thread:
        """Run ``process_all_websites`` in a daemon thread with its own event loop.

        Returns:
            threading.Thread: The background thread (already started)
        """

        def _background_task():
            try:
                stats = asyncio.run(self.services.processor.process_all_websites(csv_path))
                logger.info(f"[SERVER] Processing completed: {stats.to_dict()}")
            except Exception as e:
                logger.error(f"[SERVER] Processing failed: {e}")

        thread = threading.Thread(target=_background_task, daemon=True)
        thread.start()
        logger.info(f"[SERVER] Background processing thread started for {csv_path}")
        return thread

    def processing_status(self):
        """Report stored document count and the current run's stats."""
        try:
            status = self.services.processor.get_processing_status()
        except Exception as e:
            logger.error(f"[SERVER] Status API error: {e}")
            return jsonify({"error": "Failed to get status", "details": str(e)}), 500
        return jsonify(status)

    def check_backend_health(self) -> bool:
        """Check if the backend is healthy and reachable.

        Returns:
            True if backend is healthy, False otherwise
        """
        is_healthy, message = check_openai_health(self.config, timeout=self.config.HEALTH_CHECK_TIMEOUT)

        if is_healthy:
            print(f"✓ {message}")
        else:
            print(f"✗ {message}")

        return is_healthy

    def run(self, port: Optional[int] = None, host: Optional[str] = None, debug: bool = False):
        """Run the Flask server.

        Args:
            port: Port to run on (defaults to config.DEFAULT_PORT)
            host: Host to bind to (defaults to config.DEFAULT_HOST, which is 127.0.0.1 for security)
            debug: Enable debug mode
        """
        port = port or self.config.DEFAULT_PORT
        host = host or self.config.DEFAULT_HOST

        print(
            f"""
╭────────────────────────────────────╮
│  Web RAG Server                    │
╰────────────────────────────────────╯

Collection: {self.rag_config.collection_name}
Embeddings: {self.config.EMBEDDING_MODEL}
Chat model: {self.config.CHAT_MODEL}
Host: {host}
Port: {port}
API: http://localhost:{port}/v1
"""
        )

        # Security warning if binding to all interfaces
        if host == "0.0.0.0":
            print("⚠️  WARNING: Server is binding to 0.0.0.0 (all network interfaces)")
            print("   This exposes the API to your entire network without authentication.")
            print("   For security, use HOST=127.0.0.1 (localhost only) unless you need network access.\n")

        if self.config.HEALTH_CHECK_ON_STARTUP:
            print("Checking backend health...")
            if not self.check_backend_health():
                print("\n⚠️  Warning: Backend health check failed!")
                print("The server will start anyway, but requests may fail.")
                print("To disable this check, set HEALTH_CHECK_ON_STARTUP=false\n")

        self.app.run(host=host, port=port, debug=debug)
