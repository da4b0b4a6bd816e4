"""Retrying HTTP fetcher used by the crawler."""

import logging
import time
from dataclasses import dataclass

import requests

from ..errors import FetchError
from .config import RAGConfig

logger = logging.getLogger(__name__)

HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
DOCUMENT_ACCEPT = "application/pdf,application/octet-stream,*/*"
ACCEPT_LANGUAGE = "en-US,en;q=0.9,de;q=0.7"


def declared_charset(content_type: str) -> str | None:
    """Charset named in a Content-Type header, or None when the header has none.

    requests assumes ISO-8859-1 for undeclared text/html; pages without a
    charset are decoded as UTF-8 instead.
    """
    for param in content_type.split(";")[1:]:
        name, _, value = param.partition("=")
        if name.strip().lower() == "charset" and value.strip():
            return value.strip().strip("\"'")
    return None


@dataclass
class FetchedResource:
    """Body and metadata of a successful GET."""

    url: str
    final_url: str
    content_type: str
    content: bytes
    encoding: str | None = None

    @property
    def text(self) -> str:
        try:
            return self.content.decode(self.encoding or "utf-8", errors="replace")
        except LookupError:
            # Unknown charset name in the header
            return self.content.decode("utf-8", errors="replace")


class Fetcher:
    """HTTP GET with a bounded number of attempts and linear backoff.

    One ``requests.Session`` is shared by all fetches of a crawl so connections
    are pooled and kept alive.
    """

    def __init__(self, config: RAGConfig, session: requests.Session | None = None):
        self.config = config
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": config.user_agent, "Accept-Language": ACCEPT_LANGUAGE})
        self.session.max_redirects = config.max_redirects

    def fetch(self, url: str, referer: str | None = None, accept: str = HTML_ACCEPT) -> FetchedResource:
        """Fetch a URL, retrying failed attempts.

        Args:
            url: URL to fetch
            referer: Page the link was found on, sent as the Referer header
            accept: Accept header value

        Returns:
            FetchedResource for the first successful attempt

        Raises:
            FetchError: After ``fetch_attempts`` failed attempts
        """
        headers = {"Accept": accept}
        if referer:
            headers["Referer"] = referer

        last_error: Exception | None = None
        for attempt in range(1, self.config.fetch_attempts + 1):
            try:
                response = self.session.get(url, headers=headers, timeout=self.config.request_timeout)
                response.raise_for_status()
                return FetchedResource(
                    url=url,
                    final_url=response.url or url,
                    content_type=response.headers.get("content-type", ""),
                    content=response.content,
                    encoding=declared_charset(response.headers.get("content-type", "")),
                )
            except requests.RequestException as e:
                last_error = e
                logger.debug(f"[FETCH] Attempt {attempt}/{self.config.fetch_attempts} failed for {url}: {e}")

            if attempt < self.config.fetch_attempts:
                time.sleep(self.config.fetch_backoff * attempt)

        raise FetchError(url, last_error)

    def fetch_text(self, url: str, referer: str | None = None) -> FetchedResource:
        return self.fetch(url, referer, accept=HTML_ACCEPT)

    def fetch_bytes(self, url: str, referer: str | None = None) -> FetchedResource:
        return self.fetch(url, referer, accept=DOCUMENT_ACCEPT)

    def close(self):
        self.session.close()
