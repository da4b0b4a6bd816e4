"""Retrieval pipeline: scoped crawling, segmentation, hybrid indexing and ranking."""

from .config import RAGConfig
from .crawler import ScopedCrawler
from .index import Chunk, Index, Indexer
from .prompt import build_prompt
from .rerank import rank
from .segmenter import segment
from .session import SessionStore

__all__ = [
    "Chunk",
    "Index",
    "Indexer",
    "RAGConfig",
    "ScopedCrawler",
    "SessionStore",
    "build_prompt",
    "rank",
    "segment",
]
