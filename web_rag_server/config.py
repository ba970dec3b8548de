"""Base configuration for the web RAG server."""

from typing import Optional


class ConfigurationError(Exception):
    """Raised at startup when a required setting or credential is missing."""


class ServerConfig:
    """Base configuration class for the web RAG server.

    Projects should subclass this and override as needed.
    """

    # OpenAI-compatible backend (embeddings + chat)
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    EMBEDDING_MODEL: str = "text-embedding-3-large"
    CHAT_MODEL: str = "gpt-4o-mini"
    CHAT_TEMPERATURE: float = 0.7
    CHAT_MAX_TOKENS: int = 1000

    # Server configuration
    DEFAULT_HOST: str = "127.0.0.1"  # Default to localhost for security (use 0.0.0.0 for all interfaces)
    DEFAULT_PORT: int = 8000

    # Debug settings
    DEBUG_LOGGING: bool = False
    DEBUG_LOG_FILE: str = "web_rag_debug.log"
    DEBUG_LOG_MAX_BYTES: int = 10 * 1024 * 1024  # 10MB default
    DEBUG_LOG_BACKUP_COUNT: int = 5  # Keep 5 backup files

    # Backend timeout settings (in seconds)
    BACKEND_CONNECT_TIMEOUT: int = 10  # Connection timeout
    BACKEND_READ_TIMEOUT: int = 120  # Read timeout

    # Health check settings
    HEALTH_CHECK_ON_STARTUP: bool = True  # Check backend availability before starting server
    HEALTH_CHECK_TIMEOUT: int = 5  # Timeout for health check requests (in seconds)

    def require_api_key(self) -> str:
        """Return the backend API key or raise ConfigurationError if it is missing."""
        if not self.OPENAI_API_KEY:
            raise ConfigurationError(
                "OpenAI API key not found. Please set OPENAI_API_KEY in your environment variables."
            )
        return self.OPENAI_API_KEY

    @property
    def backend_timeout(self) -> tuple:
        return (self.BACKEND_CONNECT_TIMEOUT, self.BACKEND_READ_TIMEOUT)

    @classmethod
    def from_env(cls, env_prefix: str = "", dotenv_path: Optional[str] = None):
        """Create config from environment variables with optional prefix.

        Args:
            env_prefix: Prefix for environment variables (e.g., "PALLY_")
            dotenv_path: Optional .env file to load (defaults to searching for .env)

        Returns:
            ServerConfig instance populated from environment
        """
        import os

        from dotenv import load_dotenv

        load_dotenv(dotenv_path)

        config = cls()

        # Helper to get env var with prefix
        def get_env(name: str, default):
            # Try with prefix first, then without
            prefixed = os.getenv(f"{env_prefix}{name}", None)
            if prefixed is not None:
                return prefixed
            return os.getenv(name, default)

        config.OPENAI_API_KEY = get_env("OPENAI_API_KEY", cls.OPENAI_API_KEY)
        config.OPENAI_BASE_URL = get_env("OPENAI_BASE_URL", cls.OPENAI_BASE_URL).rstrip("/")
        config.EMBEDDING_MODEL = get_env("EMBEDDING_MODEL", cls.EMBEDDING_MODEL)
        config.CHAT_MODEL = get_env("CHAT_MODEL", cls.CHAT_MODEL)
        config.CHAT_TEMPERATURE = float(get_env("CHAT_TEMPERATURE", str(cls.CHAT_TEMPERATURE)))
        config.CHAT_MAX_TOKENS = int(get_env("CHAT_MAX_TOKENS", str(cls.CHAT_MAX_TOKENS)))
        config.DEFAULT_HOST = get_env("HOST", cls.DEFAULT_HOST)
        config.DEFAULT_PORT = int(get_env("PORT", str(cls.DEFAULT_PORT)))
        config.DEBUG_LOGGING = get_env("DEBUG_LOGGING", "").lower() in ("true", "1", "yes")
        config.DEBUG_LOG_FILE = get_env("DEBUG_LOG_FILE", cls.DEBUG_LOG_FILE)
        config.DEBUG_LOG_MAX_BYTES = int(get_env("DEBUG_LOG_MAX_BYTES", str(cls.DEBUG_LOG_MAX_BYTES)))
        config.DEBUG_LOG_BACKUP_COUNT = int(get_env("DEBUG_LOG_BACKUP_COUNT", str(cls.DEBUG_LOG_BACKUP_COUNT)))
        config.BACKEND_CONNECT_TIMEOUT = int(get_env("BACKEND_CONNECT_TIMEOUT", str(cls.BACKEND_CONNECT_TIMEOUT)))
        config.BACKEND_READ_TIMEOUT = int(get_env("BACKEND_READ_TIMEOUT", str(cls.BACKEND_READ_TIMEOUT)))
        config.HEALTH_CHECK_ON_STARTUP = get_env("HEALTH_CHECK_ON_STARTUP", "").lower() not in ("false", "0", "no")
        config.HEALTH_CHECK_TIMEOUT = int(get_env("HEALTH_CHECK_TIMEOUT", str(cls.HEALTH_CHECK_TIMEOUT)))

        return config
