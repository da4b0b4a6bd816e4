"""LangChain tool exposing session search to tool-calling LLM servers.

The tool only retrieves ranked passages; the calling model writes the answer.
"""

from typing import TYPE_CHECKING

from langchain_core.tools import Tool
from pydantic import BaseModel, Field

from .rag.rerank import rank
from .rag.session import DEFAULT_SESSION

if TYPE_CHECKING:
    from .service import QAService


class SiteSearchInput(BaseModel):
    """Input schema for site search tool."""

    query: str = Field(description="Question or keywords to look up in the indexed pages")
    top_k: int = Field(default=5, description="Maximum number of passages to return (default: 5)", ge=1, le=30)


def create_site_search_tool(service: "QAService", session_id: str = DEFAULT_SESSION) -> Tool:
    """Create a search tool over one session's index.

    Args:
        service: QAService holding the session
        session_id: Session to search

    Returns:
        LangChain Tool for site search

    Example:
        >>> service = QAService(OllamaBackend(ServerConfig.from_env()))
        >>> service.index_site("https://example.edu/master")
        >>> tools = [create_site_search_tool(service)]
    """

    def _site_search(query: str, top_k: int = 5) -> str:
        with service.sessions.reading(session_id) as index:
            if index is None:
                return f"No pages are indexed for session '{session_id}'. Index a site first."
            query_embedding = service.backend.embed(query, index.embed_model_id)
            ranked = rank(query, query_embedding, index, top_k, min_candidates=service.config.candidate_pool)

        if not ranked:
            return "No matching passages found."

        sections = []
        for position, (chunk, score) in enumerate(ranked, 1):
            sections.append(f"[{position}] {chunk.source_id} (score {score:.3f})\n{chunk.text}")
        return "\n\n".join(sections)

    return Tool(
        name="site_search",
        description="Search the pages and documents indexed for this session. Returns the most relevant passages with their source URLs. Use this to answer questions about the indexed site (programs, deadlines, requirements, contacts).",
        func=_site_search,
        args_schema=SiteSearchInput,
    )


__all__ = ["SiteSearchInput", "create_site_search_tool"]
