"""URL helpers shared by the crawler and the question answering service."""

from urllib.parse import urlsplit, urlunsplit

from ..errors import InputError

# Characters people paste around links ("<https://...>", “https://...”, (https://...))
_WRAPPING_CHARS = "“”„«»\"'<>()[]{}"

DOCUMENT_EXTENSIONS = (".pdf", ".docx")

_DEFAULT_PORTS = {"http": 80, "https": 443}


def sanitize_url(raw: str) -> str:
    """Turn user-entered text into an absolute http(s) URL.

    Only the first whitespace-separated token is used. Control characters and
    wrapping quotes/brackets are removed, and scheme-less input is assumed to be
    https.

    Args:
        raw: URL as typed or pasted by the user

    Returns:
        Absolute URL string

    Raises:
        InputError: If nothing usable remains or the URL has no host
    """
    tokens = (raw or "").split()
    token = tokens[0].strip() if tokens else ""
    if not token:
        raise InputError("Invalid URL: empty")

    url = "".join(ch for ch in token if ch.isprintable())
    url = url.strip(_WRAPPING_CHARS)

    if url.startswith("//"):
        url = f"https:{url}"
    elif url.lower().startswith("www."):
        url = f"https://{url}"

    if not url.lower().startswith(("http://", "https://")):
        url = "https://" + url.lstrip(":/")

    try:
        parts = urlsplit(url)
        has_host = bool(parts.hostname) and parts.port != 0  # .port raises ValueError when out of range
    except ValueError as e:
        raise InputError(f"Invalid URL: {e}") from e

    if not has_host:
        raise InputError(f"Invalid URL: no host in {raw!r}")

    return urlunsplit(parts)


def canonicalize(url: str) -> str:
    """Strip the fragment, keeping scheme, host, path and query."""
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, parts.query, ""))


def default_scope(url: str) -> str:
    """Scope prefix covering everything on the URL's scheme and host."""
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


def origin(url: str) -> tuple[str, str, int | None]:
    """Return the (scheme, host, port) origin triple with default ports filled in."""
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    port = parts.port or _DEFAULT_PORTS.get(scheme)
    return scheme, (parts.hostname or "").lower(), port


def same_origin(a: str, b: str) -> bool:
    return origin(a) == origin(b)


def looks_like_document(url: str) -> bool:
    """True for links that point at PDF/DOCX resources rather than HTML pages."""
    path = urlsplit(url).path.lower()
    return path.endswith(DOCUMENT_EXTENSIONS)
