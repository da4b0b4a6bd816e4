"""Question answering over crawled sites and uploaded documents.

Ties the retrieval pipeline together:

- ``index_site``: crawl -> build or extend the session index
- ``upload``: stage -> extract -> delete -> build or extend the session index
- ``ask``: embed question -> hybrid rank -> prompt -> generate -> answer + sources
"""

import logging
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterable

from werkzeug.utils import secure_filename

from .errors import ExtractionError, InputError
from .rag.config import RAGConfig
from .rag.crawler import ScopedCrawler
from .rag.extractor import extract_file
from .rag.index import Index, Indexer
from .rag.prompt import build_prompt
from .rag.rerank import primary_source, rank
from .rag.session import DEFAULT_SESSION, SessionStore
from .rag.urls import default_scope, same_origin, sanitize_url

logger = logging.getLogger(__name__)

UPLOAD_SOURCE_PREFIX = "upload://"


@dataclass
class UploadedFile:
    """A file received from a client, not yet written to disk."""

    filename: str
    stream: BinaryIO


class QAService:
    """Owns the session store and runs index, upload and ask flows."""

    def __init__(self, backend, rag_config: RAGConfig | None = None, crawler: ScopedCrawler | None = None):
        """Initialize the service.

        Args:
            backend: Object with ``embed(text, model=None)``, ``generate(prompt, temperature, model=None)``
                and ``embed_model``/``gen_model`` attributes (normally an OllamaBackend)
            rag_config: RAG configuration (defaults to RAGConfig())
            crawler: Optional crawler (tests inject one with a fake fetcher)
        """
        self.backend = backend
        self.config = rag_config or RAGConfig()
        self.crawler = crawler or ScopedCrawler(self.config)
        self.sessions = SessionStore()

    def _indexer(self, embed_model: str, gen_model: str) -> Indexer:
        return Indexer(
            embed=lambda text: self.backend.embed(text, embed_model),
            config=self.config,
            embed_model_id=embed_model,
            gen_model_id=gen_model,
        )

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    def index_site(
        self,
        urls: str | list[str],
        session_id: str = DEFAULT_SESSION,
        depth: int | None = None,
        max_pages: int | None = None,
        scope_prefix: str | None = None,
        replace: bool = False,
    ) -> dict:
        """Crawl seed URL(s) and add the pages to the session index.

        Args:
            urls: One seed URL or a list of them
            session_id: Session to build or extend
            depth: Link depth (non-positive or None -> config default)
            max_pages: Page budget (non-positive or None -> config default)
            scope_prefix: URL prefix bounding the crawl (default: scheme+host of the first seed)
            replace: Build a fresh index even if the session already has one

        Returns:
            Index summary dict

        Raises:
            InputError: For malformed seeds or a crawl that returned no pages
        """
        raw_seeds = [urls] if isinstance(urls, str) else list(urls or [])
        if not raw_seeds:
            raise InputError("Missing required field: 'url'")
        seeds = [sanitize_url(raw) for raw in raw_seeds]

        depth = depth if depth and depth > 0 else self.config.max_depth
        max_pages = max_pages if max_pages and max_pages > 0 else self.config.max_pages
        scope = scope_prefix or default_scope(seeds[0])

        start = time.time()
        pairs = self.crawler.crawl(seeds, depth, scope, max_pages)
        if not pairs:
            raise InputError("Crawl returned 0 pages")
        logger.info(f"[RAG] Crawled {len(pairs)} pages in {time.time() - start:.1f}s")

        return self._add_pairs(session_id, pairs, scope, replace=replace)

    def upload(self, files: Iterable[UploadedFile], session_id: str = DEFAULT_SESSION) -> dict:
        """Extract uploaded documents and add them to the session index.

        Each file is staged in a temporary directory that is removed whether or
        not extraction succeeds.

        Returns:
            Index summary dict plus a per-file ``files`` report

        Raises:
            InputError: If no files were sent or none yielded any text
        """
        files = [f for f in files if f is not None and f.filename]
        if not files:
            raise InputError("No files uploaded")

        report = []
        pairs = []
        for upload in files:
            name = secure_filename(upload.filename) or "upload"
            try:
                text = self._extract_upload(upload, name)
            except ExtractionError as e:
                logger.warning(f"[RAG] Upload {upload.filename} rejected: {e}")
                report.append({"filename": upload.filename, "ok": False, "error": str(e)})
                continue
            if not text.strip():
                report.append({"filename": upload.filename, "ok": False, "error": "No text extracted"})
                continue
            pairs.append((f"{UPLOAD_SOURCE_PREFIX}{name}", text))
            report.append({"filename": upload.filename, "ok": True, "characters": len(text)})

        if not pairs:
            errors = "; ".join(f"{item['filename']}: {item['error']}" for item in report)
            raise InputError(f"No text could be extracted from the uploaded files ({errors})")

        result = self._add_pairs(session_id, pairs, scope="")
        result["files"] = report
        return result

    def _extract_upload(self, upload: UploadedFile, name: str) -> str:
        with tempfile.TemporaryDirectory(prefix="site-qa-upload-") as staging_dir:
            staged = Path(staging_dir) / name
            with staged.open("wb") as handle:
                while block := upload.stream.read(64 * 1024):
                    handle.write(block)
            return extract_file(staged, name, pdf_max_pages=self.config.pdf_max_pages)

    def _add_pairs(self, session_id: str, pairs: list[tuple[str, str]], scope: str, replace: bool = False) -> dict:
        """Build or extend the session index while holding its write lock."""
        with self.sessions.writing(session_id) as slot:
            if slot.index is None or replace:
                index = self._indexer(self.backend.embed_model, self.backend.gen_model).build(pairs, scope=scope)
                added = index.total_docs
                slot.index = index
            else:
                index = slot.index
                added = self._indexer(index.embed_model_id, index.gen_model_id).extend(index, pairs)
                if scope and not index.scope:
                    index.scope = scope

            result = {"ok": True, "session_id": session_id, "added": added}
            result.update(index.summary())
            return result

    # ------------------------------------------------------------------
    # Answering
    # ------------------------------------------------------------------

    def _index_matches(self, session_id: str, start_url: str) -> bool:
        with self.sessions.reading(session_id) as index:
            if index is None or not index.chunks:
                return False
            return same_origin(index.chunks[0].source_id, start_url)

    def ask(
        self,
        question: str,
        session_id: str = DEFAULT_SESSION,
        top_k: int | None = None,
        temperature: float | None = None,
        start_url: str | None = None,
        depth: int | None = None,
        max_pages: int | None = None,
        scope_prefix: str | None = None,
    ) -> dict:
        """Answer a question from the session index.

        If ``start_url`` is given and the session's index was not built from the
        same origin, the site is crawled first and replaces the session index.

        Returns:
            Dict with ``answer`` and ``sources``

        Raises:
            InputError: For an empty question, a bad start_url, or a missing index
        """
        if not question or not question.strip():
            raise InputError("Missing required field: 'question'")

        if start_url:
            start = sanitize_url(start_url)
            if not self._index_matches(session_id, start):
                logger.info(f"[RAG] Session {session_id} has no index for {start}, indexing first")
                self.index_site(start, session_id, depth, max_pages, scope_prefix, replace=True)

        question_lower = question.lower()
        list_programs = "english" in question_lower and (
            "program" in question_lower or "study program" in question_lower or "list" in question_lower
        )
        default_k = self.config.list_top_k if list_programs else self.config.default_top_k
        take = min(top_k or default_k, default_k)

        with self.sessions.reading(session_id) as index:
            if index is None:
                raise InputError("No index loaded. Provide start_url or index a site first.")
            answer, sources = self._answer(index, question, take, 0.0 if list_programs else temperature)

        return {"answer": answer, "sources": sources}

    def _answer(self, index: Index, question: str, take: int, temperature: float | None) -> tuple[str, list[str]]:
        query_embedding = self.backend.embed(question, index.embed_model_id)
        ranked = rank(question, query_embedding, index, take, min_candidates=self.config.candidate_pool)
        primary = primary_source(ranked)
        prompt = build_prompt(question, ranked, primary)

        logger.debug(f"[RAG] Ranked {len(ranked)} chunks, primary source: {primary or '(none)'}")
        answer = self.backend.generate(prompt, temperature, index.gen_model_id)

        sources: list[str] = []
        if primary:
            sources.append(primary)
        for chunk, _ in ranked:
            if len(sources) >= self.config.max_sources:
                break
            if chunk.source_id not in sources:
                sources.append(chunk.source_id)

        if "source:" not in answer.lower() and sources:
            answer = f"{answer}\n\nSource: {sources[0]}"
        return answer, sources

    def session_summary(self, session_id: str) -> dict | None:
        with self.sessions.reading(session_id) as index:
            return None if index is None else index.summary()


__all__ = ["QAService", "UploadedFile"]
