"""Base configuration for the site-qa server."""

from typing import Optional


class ServerConfig:
    """Base configuration class for the site-qa server.

    Projects should subclass this and override as needed.
    """

    # Backend configuration
    OLLAMA_ENDPOINT: str = "http://localhost:11434"
    EMBED_MODEL: str = "nomic-embed-text"
    GEN_MODEL: str = "llama3.1:8b"

    # Server configuration
    DEFAULT_HOST: str = "127.0.0.1"  # Default to localhost for security (use 0.0.0.0 for all interfaces)
    DEFAULT_PORT: int = 3000
    DEFAULT_TEMPERATURE: float = 0.25

    # Embedding input limits
    EMBED_MAX_CHARS: int = 750  # Clamp applied before the first embedding attempt
    EMBED_NUM_CTX: int = 2048  # Context size hint sent to the backend
    DISABLE_EMBEDDINGS: bool = False  # Return empty vectors (debugging only)

    # Debug settings
    DEBUG_LOG: bool = False
    DEBUG_LOG_FILE: str = "site_qa_debug.log"
    DEBUG_LOG_MAX_BYTES: int = 10 * 1024 * 1024  # 10MB default
    DEBUG_LOG_BACKUP_COUNT: int = 5  # Keep 5 backup files

    # Backend timeout settings (in seconds)
    BACKEND_CONNECT_TIMEOUT: int = 10  # Connection timeout
    BACKEND_READ_TIMEOUT: int = 300  # Read timeout (5 minutes for long completions)

    # Health check settings
    HEALTH_CHECK_ON_STARTUP: bool = True  # Check backend availability before starting server
    HEALTH_CHECK_TIMEOUT: int = 5  # Timeout for health check requests (in seconds)

    # Retry settings for non context-length backend failures
    BACKEND_RETRY_ATTEMPTS: int = 3  # Number of retry attempts for transient errors
    BACKEND_RETRY_INITIAL_DELAY: float = 1.0  # Initial delay in seconds (doubles each retry)

    # Optional allow-list of CORS origins (None = allow all)
    CORS_ORIGINS: Optional[list] = None

    @classmethod
    def from_env(cls, env_prefix: str = ""):
        """Create config from environment variables with optional prefix.

        Args:
            env_prefix: Prefix for environment variables (e.g., "SITEQA_")

        Returns:
            ServerConfig instance populated from environment
        """
        import os

        from dotenv import load_dotenv

        load_dotenv()

        config = cls()

        # Helper to get env var with prefix
        def get_env(name: str, default):
            # Try with prefix first, then without
            prefixed = os.getenv(f"{env_prefix}{name}", None)
            if prefixed is not None:
                return prefixed
            return os.getenv(name, default)

        # OLLAMA_HOST is the name the Ollama tooling itself uses
        config.OLLAMA_ENDPOINT = get_env("OLLAMA_ENDPOINT", get_env("OLLAMA_HOST", cls.OLLAMA_ENDPOINT))
        config.EMBED_MODEL = get_env("EMBED_MODEL", cls.EMBED_MODEL)
        config.GEN_MODEL = get_env("GEN_MODEL", cls.GEN_MODEL)
        config.DEFAULT_HOST = get_env("HOST", cls.DEFAULT_HOST)
        config.DEFAULT_PORT = int(get_env("PORT", str(cls.DEFAULT_PORT)))
        config.DEFAULT_TEMPERATURE = float(get_env("TEMPERATURE", str(cls.DEFAULT_TEMPERATURE)))
        config.EMBED_MAX_CHARS = int(get_env("EMBED_MAX_CHARS", str(cls.EMBED_MAX_CHARS)))
        config.EMBED_NUM_CTX = int(get_env("EMBED_NUM_CTX", str(cls.EMBED_NUM_CTX)))
        config.DISABLE_EMBEDDINGS = get_env("DISABLE_EMBEDDINGS", "").lower() in ("true", "1", "yes")
        config.DEBUG_LOG = get_env("DEBUG_LOG", "").lower() in ("true", "1", "yes")
        config.DEBUG_LOG_FILE = get_env("DEBUG_LOG_FILE", cls.DEBUG_LOG_FILE)
        config.DEBUG_LOG_MAX_BYTES = int(get_env("DEBUG_LOG_MAX_BYTES", str(cls.DEBUG_LOG_MAX_BYTES)))
        config.DEBUG_LOG_BACKUP_COUNT = int(get_env("DEBUG_LOG_BACKUP_COUNT", str(cls.DEBUG_LOG_BACKUP_COUNT)))
        config.BACKEND_CONNECT_TIMEOUT = int(get_env("BACKEND_CONNECT_TIMEOUT", str(cls.BACKEND_CONNECT_TIMEOUT)))
        config.BACKEND_READ_TIMEOUT = int(get_env("BACKEND_READ_TIMEOUT", str(cls.BACKEND_READ_TIMEOUT)))
        config.HEALTH_CHECK_ON_STARTUP = get_env("HEALTH_CHECK_ON_STARTUP", "").lower() not in ("false", "0", "no")
        config.HEALTH_CHECK_TIMEOUT = int(get_env("HEALTH_CHECK_TIMEOUT", str(cls.HEALTH_CHECK_TIMEOUT)))
        config.BACKEND_RETRY_ATTEMPTS = int(get_env("BACKEND_RETRY_ATTEMPTS", str(cls.BACKEND_RETRY_ATTEMPTS)))
        config.BACKEND_RETRY_INITIAL_DELAY = float(
            get_env("BACKEND_RETRY_INITIAL_DELAY", str(cls.BACKEND_RETRY_INITIAL_DELAY))
        )

        cors_origins = get_env("CORS_ORIGINS", "")
        if cors_origins:
            config.CORS_ORIGINS = [origin.strip() for origin in cors_origins.split(",") if origin.strip()]

        return config
