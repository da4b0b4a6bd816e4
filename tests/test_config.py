"""Tests for configuration loading."""

import pytest

from site_qa.config import ServerConfig
from site_qa.rag.config import RAGConfig

ENV_NAMES = ["OLLAMA_HOST", "OLLAMA_ENDPOINT", "GEN_MODEL", "PORT", "CORS_ORIGINS", "SITEQA_GEN_MODEL"]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_NAMES + ["CHUNK_TARGET_CHARS", "PDF_MAX_PAGES", "SKIP_PDFS", "EMBED_WORKERS"]:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.mark.unit
class TestServerConfig:
    """Test ServerConfig defaults and environment loading."""

    def test_defaults(self, default_config):
        assert default_config.EMBED_MODEL == "nomic-embed-text"
        assert default_config.GEN_MODEL == "llama3.1:8b"
        assert default_config.DEFAULT_HOST == "127.0.0.1"
        assert default_config.DEFAULT_PORT == 3000
        assert default_config.EMBED_MAX_CHARS == 750

    def test_from_env(self, clean_env):
        clean_env.setenv("OLLAMA_HOST", "http://gpu-box:11434")
        clean_env.setenv("PORT", "8080")
        clean_env.setenv("CORS_ORIGINS", "http://a.test, http://b.test")

        config = ServerConfig.from_env()

        assert config.OLLAMA_ENDPOINT == "http://gpu-box:11434"
        assert config.DEFAULT_PORT == 8080
        assert config.CORS_ORIGINS == ["http://a.test", "http://b.test"]

    def test_prefix_wins(self, clean_env):
        clean_env.setenv("GEN_MODEL", "plain")
        clean_env.setenv("SITEQA_GEN_MODEL", "prefixed")

        assert ServerConfig.from_env("SITEQA_").GEN_MODEL == "prefixed"
        assert ServerConfig.from_env().GEN_MODEL == "plain"


@pytest.mark.unit
class TestRAGConfig:
    """Test RAGConfig validation and environment overrides."""

    def test_defaults(self):
        config = RAGConfig()

        assert (config.max_depth, config.max_pages) == (4, 400)
        assert (config.chunk_target_chars, config.chunk_overlap) == (700, 120)
        assert config.follow_documents is True

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"chunk_target_chars": 0},
            {"chunk_overlap": 700},
            {"fetch_attempts": 0},
            {"embed_workers": 0},
            {"candidate_pool": 0},
        ],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            RAGConfig(**kwargs)

    def test_from_env(self, clean_env):
        clean_env.setenv("CHUNK_TARGET_CHARS", "500")
        clean_env.setenv("SKIP_PDFS", "1")
        clean_env.setenv("PDF_MAX_PAGES", "3")

        config = RAGConfig.from_env(show_progress=False)

        assert config.chunk_target_chars == 500
        assert config.follow_documents is False
        assert config.pdf_max_pages == 3
        assert config.show_progress is False
