"""Scoped breadth-first web crawler.

Starts from one or more seed URLs, follows links that stay under a scope
prefix, and returns the extracted text of every page it could read. Same-origin
PDF/DOCX links are fetched out-of-band and their text is added directly.
"""

import logging
import sys
import time
from collections import deque

from tqdm import tqdm

from ..errors import ExtractionError, FetchError, InputError
from .config import RAGConfig
from .extractor import extract_document, extract_html, is_document_content_type
from .fetcher import Fetcher
from .urls import canonicalize, default_scope, looks_like_document, same_origin

logger = logging.getLogger(__name__)


class ScopedCrawler:
    """Breadth-first crawler bounded by depth, page count and a URL prefix."""

    def __init__(self, config: RAGConfig, fetcher: Fetcher | None = None):
        """Initialize the crawler.

        Args:
            config: RAG configuration (delays, fan-out and document limits)
            fetcher: Optional pre-built fetcher (tests inject fakes here)
        """
        self.config = config
        self._fetcher = fetcher

    def crawl(
        self,
        seed_urls: list[str],
        max_depth: int,
        scope_prefix: str | None = None,
        max_pages: int | None = None,
    ) -> list[tuple[str, str]]:
        """Crawl from the seeds and return ``(canonical_url, text)`` pairs.

        Pages that fail to fetch or extract are logged and left out; only setup
        problems raise.

        Args:
            seed_urls: Absolute seed URLs (depth 0)
            max_depth: Pages at this depth are read but their links are not followed
            scope_prefix: Only links whose canonical form starts with this are enqueued
                (default: scheme+host of the first seed)
            max_pages: Maximum number of pairs returned (default from config)

        Returns:
            List of (canonical_url, text) pairs in discovery order

        Raises:
            InputError: If no seed URLs were given
        """
        if not seed_urls:
            raise InputError("At least one seed URL is required")

        first_seed = seed_urls[0]
        scope = scope_prefix or default_scope(first_seed)
        max_pages = self.config.max_pages if max_pages is None else max_pages
        fetcher = self._fetcher or Fetcher(self.config)

        seen: set[str] = set()
        results: list[tuple[str, str]] = []
        queue: deque[tuple[str, int, str | None]] = deque((seed, 0, None) for seed in seed_urls)

        logger.info(
            f"[CRAWLER] Starting crawl from {first_seed} (depth={max_depth}, max_pages={max_pages}, scope={scope})"
        )

        pbar = tqdm(
            desc="Crawling",
            unit="page",
            total=max_pages,
            disable=not self.config.show_progress,
            file=sys.stderr,
        )

        try:
            while queue:
                if len(results) >= max_pages:
                    break

                url, depth, referer = queue.popleft()
                canonical = canonicalize(url)
                if canonical in seen:
                    continue
                seen.add(canonical)

                links = self._read_page(fetcher, url, canonical, referer, results, pbar)

                if links and depth < max_depth:
                    self._expand_links(
                        fetcher, links, url, depth, first_seed, scope, seen, queue, results, max_pages, pbar
                    )

                pbar.set_postfix_str(f"depth={depth}, queue={len(queue)}", refresh=False)
                time.sleep(self.config.politeness_delay)
        finally:
            pbar.close()
            if self._fetcher is None:
                fetcher.close()

        logger.info(f"[CRAWLER] Crawl finished: {len(results)} pages collected, {len(seen)} URLs seen")
        return results

    def _read_page(self, fetcher, url, canonical, referer, results, pbar) -> list[str]:
        """Fetch one queued page, record its text and return its outbound links."""
        try:
            resource = fetcher.fetch_text(canonical, referer)
        except FetchError as e:
            logger.warning(f"[CRAWLER] Skipping {url}: {e}")
            return []

        # A page URL can still serve a PDF; read it but never expand it
        if is_document_content_type(resource.content_type):
            self._record_document(resource.content, canonical, resource.content_type, results, pbar)
            return []

        text, links = extract_html(resource.final_url or canonical, resource.text)
        if text.strip():
            results.append((canonical, text))
            pbar.update(1)
        else:
            logger.debug(f"[CRAWLER] No text extracted from {url}")
        return links

    def _expand_links(self, fetcher, links, page_url, depth, first_seed, scope, seen, queue, results, max_pages, pbar):
        if len(links) > self.config.max_links_per_page:
            logger.debug(
                f"[CRAWLER] {page_url} has {len(links)} links, following the first {self.config.max_links_per_page}"
            )

        for link in links[: self.config.max_links_per_page]:
            link_key = canonicalize(link)

            if looks_like_document(link):
                if not self.config.follow_documents or not same_origin(link, first_seed):
                    continue
                if link_key in seen:
                    continue
                seen.add(link_key)
                if len(results) >= max_pages:
                    return
                self._fetch_document(fetcher, link, link_key, page_url, results, pbar)
            elif link_key.startswith(scope):
                queue.append((link, depth + 1, page_url))

    def _fetch_document(self, fetcher, link, link_key, referer, results, pbar):
        try:
            resource = fetcher.fetch_bytes(link_key, referer)
        except FetchError as e:
            logger.warning(f"[CRAWLER] Skipping document {link}: {e}")
            return
        self._record_document(resource.content, link_key, resource.content_type, results, pbar)

    def _record_document(self, data: bytes, key: str, content_type: str, results, pbar):
        if len(data) > self.config.max_document_bytes:
            logger.info(f"[CRAWLER] Discarding {key}: {len(data)} bytes exceeds {self.config.max_document_bytes}")
            return
        try:
            text = extract_document(data, key, content_type, pdf_max_pages=self.config.pdf_max_pages)
        except ExtractionError as e:
            logger.warning(f"[CRAWLER] Could not extract {key}: {e}")
            return
        if text.strip():
            results.append((key, text))
            pbar.update(1)
