"""Text extraction for HTML pages and uploaded/crawled documents."""

import io
import logging
import re
from pathlib import Path
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup
from docx import Document as DocxDocument
from pypdf import PdfReader

from ..errors import ExtractionError

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")

# Elements that never carry readable page content
NON_CONTENT_TAGS = ["script", "style", "noscript", "template"]

# Containers tried in order; the first one present wins
CONTENT_SELECTORS = ["main", "article", "body"]

TEXT_EXTENSIONS = {".txt", ".md", ".markdown", ".csv", ".rst"}
SUPPORTED_EXTENSIONS = {".pdf", ".docx", ".html", ".htm"} | TEXT_EXTENSIONS


def normalize_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def extract_html(base_url: str, html: str) -> tuple[str, list[str]]:
    """Extract readable text and absolute outbound links from an HTML page.

    Args:
        base_url: URL the page was fetched from (used to resolve relative links)
        html: Raw HTML

    Returns:
        Tuple of (normalized text, list of absolute http(s) link URLs)
    """
    soup = BeautifulSoup(html, "html.parser")

    links = []
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href or href.startswith(("mailto:", "tel:", "#", "javascript:")):
            continue
        absolute = urljoin(base_url, href)
        if urlsplit(absolute).scheme in ("http", "https"):
            links.append(absolute)

    for element in soup(NON_CONTENT_TAGS):
        element.decompose()

    text = ""
    for selector in CONTENT_SELECTORS:
        node = soup.find(selector)
        if node is not None:
            text = node.get_text(separator=" ", strip=True)
            break
    else:
        # Fragments without <body> still have text
        text = soup.get_text(separator=" ", strip=True)

    return normalize_whitespace(text), links


def extract_pdf(data: bytes, max_pages: int | None = None) -> str:
    """Extract text from the first ``max_pages`` pages of a PDF."""
    try:
        reader = PdfReader(io.BytesIO(data))
        pages = reader.pages if max_pages is None else reader.pages[:max_pages]
        parts = [page.extract_text() or "" for page in pages]
    except Exception as e:
        raise ExtractionError(f"PDF extraction failed: {e}") from e
    return normalize_whitespace(" ".join(parts))


def extract_docx(data: bytes) -> str:
    try:
        document = DocxDocument(io.BytesIO(data))
    except Exception as e:
        raise ExtractionError(f"DOCX extraction failed: {e}") from e
    return normalize_whitespace("\n".join(paragraph.text for paragraph in document.paragraphs))


def is_document_content_type(content_type: str) -> bool:
    content_type = content_type.lower()
    return "application/pdf" in content_type or "wordprocessingml" in content_type


def extract_document(data: bytes, name: str = "", content_type: str = "", pdf_max_pages: int | None = None) -> str:
    """Extract text from document bytes, picking the format by content type or file name.

    Args:
        data: Raw document bytes
        name: File name or URL (its extension selects the format)
        content_type: Optional MIME type, checked before the extension
        pdf_max_pages: Page limit for PDFs

    Returns:
        Normalized plain text (may be empty)

    Raises:
        ExtractionError: If the format is unsupported or the document is corrupt
    """
    content_type = content_type.lower()
    extension = Path(urlsplit(name).path if "://" in name else name).suffix.lower()

    if "application/pdf" in content_type or extension == ".pdf":
        return extract_pdf(data, pdf_max_pages)
    if "wordprocessingml" in content_type or extension == ".docx":
        return extract_docx(data)
    if "text/html" in content_type or extension in (".html", ".htm"):
        text, _ = extract_html(name, data.decode("utf-8", errors="replace"))
        return text
    if content_type.startswith("text/") or extension in TEXT_EXTENSIONS:
        return normalize_whitespace(data.decode("utf-8", errors="replace"))

    raise ExtractionError(f"Unsupported file type: {extension or content_type or 'unknown'}")


def extract_file(path: Path, filename: str | None = None, pdf_max_pages: int | None = None) -> str:
    """Extract text from a staged file on disk.

    Args:
        path: Location of the staged file
        filename: Original file name (used for format detection when the staged name differs)
        pdf_max_pages: Page limit for PDFs
    """
    name = filename or path.name
    if Path(name).suffix.lower() not in SUPPORTED_EXTENSIONS:
        raise ExtractionError(f"Unsupported file type: {Path(name).suffix or name}")
    data = path.read_bytes()
    if not data:
        raise ExtractionError(f"Empty file: {name}")
    logger.debug(f"[EXTRACT] Extracting {name} ({len(data)} bytes)")
    return extract_document(data, name, pdf_max_pages=pdf_max_pages)
