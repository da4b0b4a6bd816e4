"""In-memory hybrid search index: chunks, embeddings and BM25 statistics.

An index is built once per session from crawled or uploaded ``(source, text)``
pairs and can later be extended with more pairs. Document frequencies, the
document count and the average chunk length are kept consistent with the
chunk list at all times.
"""

import hashlib
import logging
import re
import sys
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable

from tqdm import tqdm

from .config import RAGConfig
from .segmenter import segment

logger = logging.getLogger(__name__)

# Alphanumeric runs (Unicode aware, underscore excluded)
_TOKEN = re.compile(r"[^\W_]+")

EmbedFn = Callable[[str], list[float]]


def tokenize(text: str) -> list[str]:
    """Split text into case-folded alphanumeric tokens."""
    return _TOKEN.findall(text.casefold())


def term_frequencies(tokens: Iterable[str]) -> dict[str, int]:
    return dict(Counter(tokens))


@dataclass(frozen=True)
class Chunk:
    """A window of source text with its embedding and term statistics."""

    id: str
    source_id: str
    text: str
    embedding: list[float]
    term_frequency: dict[str, int]
    token_length: int


@dataclass
class Index:
    """Chunks plus the corpus statistics BM25 needs."""

    embed_model_id: str
    gen_model_id: str
    chunks: list[Chunk] = field(default_factory=list)
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    scope: str = ""
    document_frequency: dict[str, int] = field(default_factory=dict)
    total_docs: int = 0
    avg_doc_length: float = 0.0

    def merge(self, new_chunks: list[Chunk]):
        """Append chunks and fold their statistics into the corpus totals.

        The average is recomputed from the previous average and document count,
        so earlier chunks are never re-scanned.
        """
        if not new_chunks:
            return

        new_tokens = 0
        for chunk in new_chunks:
            new_tokens += chunk.token_length
            for term in chunk.term_frequency:
                self.document_frequency[term] = self.document_frequency.get(term, 0) + 1

        old_docs = self.total_docs
        total_docs = old_docs + len(new_chunks)
        self.avg_doc_length = (self.avg_doc_length * old_docs + new_tokens) / total_docs
        self.total_docs = total_docs
        self.chunks.extend(new_chunks)

    def sources(self) -> list[str]:
        """Distinct source ids in first-seen order."""
        return list(dict.fromkeys(chunk.source_id for chunk in self.chunks))

    def summary(self) -> dict:
        return {
            "chunks": self.total_docs,
            "pages_indexed": len(self.sources()),
            "created_at": self.created_at,
            "source_scope": self.scope,
            "embed_model": self.embed_model_id,
            "gen_model": self.gen_model_id,
        }


class Indexer:
    """Turns ``(source, text)`` pairs into chunks and builds or extends an Index."""

    def __init__(self, embed: EmbedFn, config: RAGConfig, embed_model_id: str = "", gen_model_id: str = ""):
        """Initialize the indexer.

        Args:
            embed: Callable returning the embedding vector for a text
            config: RAG configuration (chunk size, overlap, embedding workers)
            embed_model_id: Recorded on built indexes
            gen_model_id: Recorded on built indexes
        """
        self.embed = embed
        self.config = config
        self.embed_model_id = embed_model_id
        self.gen_model_id = gen_model_id

    def build(self, pairs: list[tuple[str, str]], scope: str = "") -> Index:
        """Build a fresh index from ``(source, text)`` pairs.

        Raises:
            EmbeddingError: If any chunk cannot be embedded
        """
        index = Index(embed_model_id=self.embed_model_id, gen_model_id=self.gen_model_id, scope=scope)
        pieces = self._number(self._segment(pairs))
        index.merge(self._make_chunks(pieces))
        logger.info(
            f"[INDEX] Built index: {index.total_docs} chunks from {len(pairs)} sources "
            f"(avg length {index.avg_doc_length:.1f} tokens)"
        )
        return index

    def extend(self, index: Index, pairs: list[tuple[str, str]]) -> int:
        """Add ``(source, text)`` pairs to an existing index.

        Chunks whose exact text already appeared earlier in this call are skipped
        before embedding. Text already present from earlier calls is not checked.
        The index is only modified after every new chunk has been embedded.

        Returns:
            Number of chunks added

        Raises:
            EmbeddingError: If any chunk cannot be embedded (index left unchanged)
        """
        seen_hashes: set[str] = set()
        kept = []
        duplicates = 0
        for source_id, text in self._segment(pairs):
            digest = hashlib.sha256(text.encode("utf-8")).hexdigest()
            if digest in seen_hashes:
                duplicates += 1
                continue
            seen_hashes.add(digest)
            kept.append((source_id, text))

        if duplicates:
            logger.info(f"[INDEX] Skipped {duplicates} duplicate chunks")

        existing = Counter(chunk.source_id for chunk in index.chunks)
        new_chunks = self._make_chunks(self._number(kept, existing))
        index.merge(new_chunks)
        logger.info(f"[INDEX] Extended index with {len(new_chunks)} chunks (total {index.total_docs})")
        return len(new_chunks)

    def _segment(self, pairs: list[tuple[str, str]]):
        for source_id, text in pairs:
            for piece in segment(text, self.config.chunk_target_chars, self.config.chunk_overlap):
                yield source_id, piece

    @staticmethod
    def _number(pieces: Iterable[tuple[str, str]], existing: Counter | None = None) -> list[tuple[str, str, str]]:
        """Assign ``source#ordinal`` ids, counting on from the chunks a source already has."""
        ordinals = Counter(existing or {})
        numbered = []
        for source_id, text in pieces:
            numbered.append((f"{source_id}#{ordinals[source_id]}", source_id, text))
            ordinals[source_id] += 1
        return numbered

    def _make_chunks(self, pieces: list[tuple[str, str, str]]) -> list[Chunk]:
        texts = [text for _, _, text in pieces]
        embeddings = self._embed_all(texts)

        chunks = []
        for (chunk_id, source_id, text), embedding in zip(pieces, embeddings):
            tokens = tokenize(text)
            chunks.append(
                Chunk(
                    id=chunk_id,
                    source_id=source_id,
                    text=text,
                    embedding=embedding,
                    term_frequency=term_frequencies(tokens),
                    token_length=len(tokens),
                )
            )
        return chunks

    def _embed_all(self, texts: list[str]) -> list[list[float]]:
        """Embed texts in order, sequentially or on a bounded worker pool."""
        if not texts:
            return []

        pbar = tqdm(
            total=len(texts),
            desc="Embedding chunks",
            unit="chunk",
            disable=not self.config.show_progress,
            file=sys.stderr,
        )
        try:
            if self.config.embed_workers <= 1:
                embeddings = []
                for text in texts:
                    embeddings.append(self.embed(text))
                    pbar.update(1)
                return embeddings

            def _embed(text: str) -> list[float]:
                vector = self.embed(text)
                pbar.update(1)
                return vector

            with ThreadPoolExecutor(max_workers=self.config.embed_workers) as executor:
                return list(executor.map(_embed, texts))
        finally:
            pbar.close()
