"""Tests for the Flask API."""

import io
from unittest.mock import MagicMock

import pytest

from site_qa.errors import GenerationError
from site_qa.server import SiteQAServer


@pytest.fixture
def server(fast_config, service):
    return SiteQAServer(fast_config, service=service)


@pytest.fixture
def client(server):
    with server.app.test_client() as test_client:
        yield test_client


@pytest.fixture
def indexed_client(client):
    response = client.post("/api/index", json={"url": "http://site.test/a/", "depth": 1})
    assert response.status_code == 200
    return client


@pytest.mark.unit
class TestSiteQAServer:
    """Test server initialization."""

    def test_server_initialization(self, server, fast_config, service):
        assert server.config == fast_config
        assert server.service is service
        assert server.app is not None

    def test_default_service_uses_ollama(self, fast_config):
        from site_qa.backends import OllamaBackend

        server = SiteQAServer(fast_config)

        assert isinstance(server.backend, OllamaBackend)
        assert server.service.backend is server.backend

    def test_debug_log(self, fast_config, service, tmp_path):
        fast_config.DEBUG_LOG = True
        fast_config.DEBUG_LOG_FILE = str(tmp_path / "debug.log")

        SiteQAServer(fast_config, service=service, logger_names=["site_qa.test"])

        import logging

        handlers = logging.getLogger("site_qa.test").handlers
        assert any(getattr(h, "baseFilename", "").endswith("debug.log") for h in handlers)
        for handler in handlers:
            handler.close()
        logging.getLogger("site_qa.test").handlers.clear()


@pytest.mark.unit
class TestServerRoutes:
    """Test Flask routes."""

    def test_health_endpoint(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "healthy"
        assert data["embed_model"] == "fake-embed"
        assert data["sessions"] == []

    def test_index(self, client):
        response = client.post("/api/index", json={"url": "http://site.test/a/", "depth": 1, "session_id": "s1"})

        assert response.status_code == 200
        data = response.get_json()
        assert data["ok"] is True
        assert data["session_id"] == "s1"
        assert data["chunks"] == data["added"]

    def test_index_invalid_json(self, client):
        response = client.post("/api/index", data="not json", content_type="application/json")

        assert response.status_code == 400
        assert "Invalid JSON" in response.get_json()["error"]

    def test_index_missing_url(self, client):
        response = client.post("/api/index", json={"depth": 2})

        assert response.status_code == 400
        assert "url" in response.get_json()["error"]

    def test_index_bad_depth(self, client):
        response = client.post("/api/index", json={"url": "http://site.test/a/", "depth": "deep"})

        assert response.status_code == 400

    def test_index_nothing_crawled(self, client):
        response = client.post("/api/index", json={"url": "http://site.test/missing"})

        assert response.status_code == 400
        assert "0 pages" in response.get_json()["error"]

    def test_index_unexpected_error(self, client, service, monkeypatch):
        monkeypatch.setattr(service, "index_site", MagicMock(side_effect=RuntimeError("disk on fire")))

        response = client.post("/api/index", json={"url": "http://site.test/a/"})

        assert response.status_code == 500
        assert "disk on fire" in response.get_json()["error"]

    def test_ask(self, indexed_client, fake_backend, fast_config):
        response = indexed_client.post("/api/ask", json={"question": "What is the application deadline?"})

        assert response.status_code == 200
        data = response.get_json()
        assert data["answer"].startswith("Generated answer.")
        assert data["sources"][0] == "http://site.test/a/"
        assert fake_backend.temperatures == [fast_config.DEFAULT_TEMPERATURE]

    def test_ask_missing_question(self, indexed_client):
        response = indexed_client.post("/api/ask", json={"question": ""})

        assert response.status_code == 400
        assert "question" in response.get_json()["error"]

    def test_ask_without_index(self, client):
        response = client.post("/api/ask", json={"question": "What is the deadline?"})

        assert response.status_code == 400
        assert "No index" in response.get_json()["error"]

    def test_ask_generation_failure(self, indexed_client, fake_backend):
        fake_backend.generate = MagicMock(side_effect=GenerationError("Generation failed: model crashed"))

        response = indexed_client.post("/api/ask", json={"question": "deadline?"})

        assert response.status_code == 500
        assert "model crashed" in response.get_json()["error"]

    def test_upload(self, client):
        response = client.post(
            "/api/upload",
            data={
                "files": [(io.BytesIO(b"Deadline is March 1."), "notes.txt"), (io.BytesIO(b"MZ"), "tool.exe")],
                "session_id": "docs",
            },
            content_type="multipart/form-data",
        )

        assert response.status_code == 200
        data = response.get_json()
        assert data["session_id"] == "docs"
        assert [item["ok"] for item in data["files"]] == [True, False]

    def test_upload_without_files(self, client):
        response = client.post("/api/upload", data={}, content_type="multipart/form-data")

        assert response.status_code == 400
