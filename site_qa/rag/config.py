"""RAG configuration dataclass."""

import os
from dataclasses import dataclass

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/123.0 Safari/537.36"
)


@dataclass
class RAGConfig:
    """Configuration for crawling, chunking and hybrid retrieval.

    Attributes:
        # Crawling settings
        max_depth: Default link depth followed from the seed URL (default: 4)
        max_pages: Default maximum number of pages collected per crawl (default: 400)
        politeness_delay: Seconds slept after each fetched queue entry (default: 0.2)
        request_timeout: HTTP request timeout in seconds (default: 45)
        fetch_attempts: Attempts per URL before giving up (default: 3)
        fetch_backoff: Linear backoff step in seconds, multiplied by the attempt number (default: 0.2)
        max_redirects: Redirects followed per request (default: 10)
        max_links_per_page: Outbound links considered per page, bounds fan-out (default: 200)
        follow_documents: Fetch same-origin PDF/DOCX links found while crawling (default: True)
        max_document_bytes: Documents larger than this are discarded (default: 10 MiB)
        pdf_max_pages: Only the first N pages of a PDF are extracted (default: 12)

        # Chunking settings
        chunk_target_chars: Window size in characters (default: 700)
        chunk_overlap: Characters shared by consecutive windows (default: 120)
        embed_workers: Parallel embedding calls while indexing (default: 1 = sequential)

        # Search settings
        candidate_pool: Minimum number of cosine candidates kept for re-scoring (default: 50)
        default_top_k: Chunks packed into the prompt for ordinary questions (default: 18)
        list_top_k: Chunks packed into the prompt for "list the programs" questions (default: 30)
        max_sources: Maximum number of distinct sources returned with an answer (default: 8)
    """

    # Crawling settings
    max_depth: int = 4
    max_pages: int = 400
    politeness_delay: float = 0.2
    request_timeout: float = 45.0
    fetch_attempts: int = 3
    fetch_backoff: float = 0.2
    max_redirects: int = 10
    max_links_per_page: int = 200
    follow_documents: bool = True
    max_document_bytes: int = 10 * 1024 * 1024
    pdf_max_pages: int = 12
    user_agent: str = DEFAULT_USER_AGENT
    show_progress: bool = True

    # Chunking settings
    chunk_target_chars: int = 700
    chunk_overlap: int = 120
    embed_workers: int = 1

    # Search settings
    candidate_pool: int = 50
    default_top_k: int = 18
    list_top_k: int = 30
    max_sources: int = 8

    def __post_init__(self):
        """Validate settings that would otherwise fail deep inside the pipeline."""
        if self.chunk_target_chars <= 0:
            raise ValueError(f"chunk_target_chars must be positive, got {self.chunk_target_chars}")
        if not 0 <= self.chunk_overlap < self.chunk_target_chars:
            raise ValueError(
                f"chunk_overlap must be in [0, chunk_target_chars), "
                f"got overlap={self.chunk_overlap}, target={self.chunk_target_chars}"
            )
        if self.fetch_attempts < 1:
            raise ValueError(f"fetch_attempts must be at least 1, got {self.fetch_attempts}")
        if self.embed_workers < 1:
            raise ValueError(f"embed_workers must be at least 1, got {self.embed_workers}")
        if self.candidate_pool < 1:
            raise ValueError(f"candidate_pool must be at least 1, got {self.candidate_pool}")

    @classmethod
    def from_env(cls, **overrides):
        """Create a config honoring CHUNK_TARGET_CHARS, PDF_MAX_PAGES and SKIP_PDFS.

        Args:
            **overrides: Explicit field values that win over the environment

        Returns:
            RAGConfig instance
        """
        from dotenv import load_dotenv

        load_dotenv()

        values = {}
        if os.getenv("CHUNK_TARGET_CHARS"):
            values["chunk_target_chars"] = int(os.environ["CHUNK_TARGET_CHARS"])
        if os.getenv("PDF_MAX_PAGES"):
            values["pdf_max_pages"] = int(os.environ["PDF_MAX_PAGES"])
        if os.getenv("SKIP_PDFS", "") == "1":
            values["follow_documents"] = False
        if os.getenv("EMBED_WORKERS"):
            values["embed_workers"] = int(os.environ["EMBED_WORKERS"])
        values.update(overrides)
        return cls(**values)
