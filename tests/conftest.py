"""Shared pytest fixtures for site-qa tests."""

import io

import pytest

from site_qa.config import ServerConfig
from site_qa.errors import FetchError
from site_qa.rag.config import RAGConfig
from site_qa.rag.crawler import ScopedCrawler
from site_qa.rag.fetcher import FetchedResource
from site_qa.service import QAService


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without network access")


class FakeBackend:
    """Records calls; every text embeds to the same vector so lexical scoring decides rankings."""

    embed_model = "fake-embed"
    gen_model = "fake-gen"

    def __init__(self, answer="Generated answer."):
        self.answer = answer
        self.embedded = []
        self.prompts = []
        self.temperatures = []

    def embed(self, text, model=None):
        self.embedded.append(text)
        return [1.0, 0.5, 0.25]

    def generate(self, prompt, temperature=None, model=None):
        self.prompts.append(prompt)
        self.temperatures.append(temperature)
        return self.answer

    def check_health(self):
        return True, "ok"


class FakeFetcher:
    """Serves canned pages keyed by URL and records every fetch."""

    def __init__(self, pages):
        self.pages = pages
        self.fetched = []

    def _get(self, url):
        self.fetched.append(url)
        if url not in self.pages:
            raise FetchError(url, ConnectionError("not found"))
        content_type, body = self.pages[url]
        if isinstance(body, str):
            body = body.encode("utf-8")
        return FetchedResource(url=url, final_url=url, content_type=content_type, content=body, encoding="utf-8")

    def fetch_text(self, url, referer=None):
        return self._get(url)

    def fetch_bytes(self, url, referer=None):
        return self._get(url)

    def close(self):
        pass


def html_page(body, links=()):
    anchors = "".join(f'<a href="{href}">link</a>' for href in links)
    return "text/html; charset=utf-8", f"<html><body><main><p>{body}</p>{anchors}</main></body></html>"


@pytest.fixture
def default_config():
    """Provide a default ServerConfig instance for testing."""
    return ServerConfig()


@pytest.fixture
def fast_config():
    """ServerConfig with retry delays disabled."""
    config = ServerConfig()
    config.BACKEND_RETRY_INITIAL_DELAY = 0.0
    config.HEALTH_CHECK_ON_STARTUP = False
    return config


@pytest.fixture
def rag_config():
    """RAGConfig without progress bars or politeness delays."""
    return RAGConfig(show_progress=False, politeness_delay=0.0, fetch_backoff=0.0)


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def make_backend():
    """Factory for fake backends with a custom canned answer."""
    return FakeBackend


@pytest.fixture
def site_pages():
    """A small site under http://site.test/a/ with one out-of-scope link."""
    return {
        "http://site.test/a/": html_page(
            "Welcome to the graduate school. Application closing date: March 1.",
            ["/a/programs", "/b/outside", "http://other.test/x", "mailto:office@site.test"],
        ),
        "http://site.test/a/programs": html_page(
            "Master of Science in Data Engineering is an English-taught program with 120 ECTS.",
            ["/a/programs/detail"],
        ),
        "http://site.test/a/programs/detail": html_page("Module handbook and thesis rules."),
        "http://site.test/b/outside": html_page("Outside the scope."),
    }


@pytest.fixture
def fake_fetcher(site_pages):
    return FakeFetcher(site_pages)


@pytest.fixture
def make_fetcher():
    """Factory for fake fetchers over a custom page map."""
    return FakeFetcher


@pytest.fixture
def page():
    """Builds a (content_type, html) entry for a page map."""
    return html_page


@pytest.fixture
def service(fake_backend, rag_config, fake_fetcher):
    """QAService wired to the fake backend and fake site."""
    return QAService(fake_backend, rag_config, crawler=ScopedCrawler(rag_config, fetcher=fake_fetcher))


@pytest.fixture
def text_upload():
    from site_qa.service import UploadedFile

    return UploadedFile("notes.txt", io.BytesIO(b"Contact Anna Schmidt in room 204, anna@site.test."))
