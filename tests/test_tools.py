"""Tests for the LangChain site search tool."""

from unittest.mock import patch

import pytest

from site_qa.rag.rerank import rank
from site_qa.tools import SiteSearchInput, create_site_search_tool


@pytest.mark.unit
class TestSiteSearchTool:
    """Test create_site_search_tool()."""

    def test_tool_metadata(self, service):
        tool = create_site_search_tool(service)

        assert tool.name == "site_search"
        assert tool.args_schema is SiteSearchInput
        assert "indexed" in tool.description

    def test_no_index(self, service):
        tool = create_site_search_tool(service, session_id="empty")

        assert "No pages are indexed" in tool.func(query="deadline")

    def test_returns_ranked_passages(self, service):
        service.index_site("http://site.test/a/", depth=1, scope_prefix="http://site.test/a/")
        tool = create_site_search_tool(service)

        result = tool.func(query="application deadline", top_k=1)

        assert result.startswith("[1] http://site.test/a/ (score ")
        assert "closing date: March 1." in result
        assert "[2]" not in result

    def test_input_schema_bounds(self):
        with pytest.raises(ValueError):
            SiteSearchInput(query="x", top_k=0)

    def test_uses_service_candidate_pool(self, service):
        service.index_site("http://site.test/a/", depth=1, scope_prefix="http://site.test/a/")
        service.config.candidate_pool = 3
        tool = create_site_search_tool(service)

        with patch("site_qa.tools.rank", wraps=rank) as ranked:
            tool.func(query="deadline", top_k=1)

        assert ranked.call_args.kwargs["min_candidates"] == 3
