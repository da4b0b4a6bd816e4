"""site-qa - Crawl a site, index it, and answer questions with a local Ollama."""

from .backends import OllamaBackend
from .config import ServerConfig
from .errors import (
    BackendError,
    ContextLengthError,
    EmbeddingError,
    ExtractionError,
    FetchError,
    GenerationError,
    InputError,
    SiteQAError,
)
from .rag import Index, Indexer, RAGConfig, ScopedCrawler
from .server import SiteQAServer
from .service import QAService, UploadedFile
from .tools import create_site_search_tool

__version__ = "0.1.0"
__all__ = [
    "BackendError",
    "ContextLengthError",
    "EmbeddingError",
    "ExtractionError",
    "FetchError",
    "GenerationError",
    "Index",
    "Indexer",
    "InputError",
    "OllamaBackend",
    "QAService",
    "RAGConfig",
    "ScopedCrawler",
    "ServerConfig",
    "SiteQAError",
    "SiteQAServer",
    "UploadedFile",
    "create_site_search_tool",
]
