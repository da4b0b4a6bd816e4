"""Exception hierarchy for site-qa.

Every failure is scoped to the operation that raised it. ``InputError`` maps to
a client fault (HTTP 400); everything else maps to a server fault (HTTP 500).
"""


class SiteQAError(Exception):
    """Base class for all site-qa errors."""


class InputError(SiteQAError):
    """Malformed request input (bad seed URL, empty upload, missing index)."""


class FetchError(SiteQAError):
    """A page or document could not be fetched after all retry attempts."""

    def __init__(self, url: str, cause: Exception | None = None):
        self.url = url
        self.cause = cause
        super().__init__(f"Failed to fetch {url}: {cause}" if cause else f"Failed to fetch {url}")


class ExtractionError(SiteQAError):
    """A document could not be converted to text."""


class BackendError(SiteQAError):
    """The embedding/generation backend returned an error."""


class EmbeddingError(BackendError):
    """Embedding request failed terminally."""


class ContextLengthError(EmbeddingError):
    """Embedding input exceeded the backend's context window."""


class GenerationError(BackendError):
    """Generation request failed."""
