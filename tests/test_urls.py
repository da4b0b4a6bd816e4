"""Tests for URL helpers."""

import pytest

from site_qa.errors import InputError
from site_qa.rag.urls import canonicalize, default_scope, looks_like_document, same_origin, sanitize_url


@pytest.mark.unit
class TestSanitizeUrl:
    """Test sanitize_url()."""

    def test_wrapped_url_with_trailing_words(self):
        assert sanitize_url("  <www.example.com/path>  please") == "https://www.example.com/path"

    def test_scheme_added(self):
        assert sanitize_url("example.com/study") == "https://example.com/study"

    def test_protocol_relative(self):
        assert sanitize_url("//example.com/x") == "https://example.com/x"

    def test_http_kept(self):
        assert sanitize_url("http://example.com/a?b=1") == "http://example.com/a?b=1"

    @pytest.mark.parametrize("raw", ["", "   ", "http://", "\"\""])
    def test_rejects_unusable_input(self, raw):
        with pytest.raises(InputError):
            sanitize_url(raw)


@pytest.mark.unit
class TestUrlHelpers:
    """Test canonicalization and origin helpers."""

    def test_canonicalize_strips_fragment_only(self):
        assert canonicalize("http://a.test/x/y?q=1#section") == "http://a.test/x/y?q=1"

    def test_default_scope(self):
        assert default_scope("https://uni.test/master/cs?x=1") == "https://uni.test"

    def test_same_origin_with_default_port(self):
        assert same_origin("https://a.test/x", "https://a.test:443/y")
        assert not same_origin("https://a.test/x", "http://a.test/x")
        assert not same_origin("https://a.test/x", "https://b.test/x")

    def test_looks_like_document(self):
        assert looks_like_document("http://a.test/files/Handbook.PDF")
        assert looks_like_document("http://a.test/form.docx?download=1")
        assert not looks_like_document("http://a.test/pdf/index.html")
