"""Ollama backend communication: embeddings, generation and health checks."""

import json
import logging
import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

import requests

from .errors import ContextLengthError, EmbeddingError, GenerationError

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE_FALLBACK = 0.2

# Character budgets tried, in order, after the backend rejects input as too long
SHRINK_BUDGETS: Tuple[int, ...] = (256, 192, 160, 120)
REDUCED_NUM_CTX = 1024

CONTEXT_LENGTH_MARKERS = ("context length", "exceeds the context length", "too long")


def sanitize_temperature(temperature: Optional[float]) -> float:
    """Map NaN/None to 0.2 and clamp everything else to [0, 1]."""
    try:
        value = float(temperature)
    except (TypeError, ValueError):
        return DEFAULT_TEMPERATURE_FALLBACK
    if math.isnan(value):
        return DEFAULT_TEMPERATURE_FALLBACK
    return min(max(value, 0.0), 1.0)


def clamp_text(text: str, max_chars: int) -> str:
    """Shorten text to at most ``max_chars`` characters.

    Cuts at the last whitespace inside the budget; falls back to a hard cut at
    the budget when the window has no whitespace.
    """
    if len(text) <= max_chars:
        return text
    window = text[:max_chars]
    cut = max((i for i, ch in enumerate(window) if ch.isspace()), default=-1)
    if cut <= 0:
        return window
    return window[:cut]


def is_context_length_error(body: str) -> bool:
    lower = body.lower()
    return any(marker in lower for marker in CONTEXT_LENGTH_MARKERS)


class EmbedState(Enum):
    TRYING = "trying"
    SHRINK_AND_RETRY = "shrink_and_retry"
    FAILED = "failed"
    SUCCEEDED = "succeeded"


@dataclass
class EmbedRetry:
    """Retry ladder for one embedding request.

    Context-length rejections shrink the input through ``budgets`` and lower the
    context hint; any other failure is retried with exponential backoff up to
    ``retry_attempts`` times. The caller performs the requests and reports each
    outcome; this class only decides what happens next.
    """

    text: str
    max_chars: int
    num_ctx: int
    retry_attempts: int = 3
    initial_delay: float = 1.0
    budgets: Tuple[int, ...] = SHRINK_BUDGETS
    state: EmbedState = EmbedState.TRYING
    shrinks: int = 0
    transient_failures: int = 0
    vector: Optional[list] = None
    error: Optional[EmbeddingError] = None
    budget_history: list = field(default_factory=list)

    def __post_init__(self):
        self.budget = self.max_chars
        self.budget_history.append(self.budget)

    @property
    def payload(self) -> str:
        return clamp_text(self.text, self.budget)

    @property
    def pending(self) -> bool:
        return self.state in (EmbedState.TRYING, EmbedState.SHRINK_AND_RETRY)

    def succeed(self, vector: list):
        self.vector = vector
        self.state = EmbedState.SUCCEEDED

    def context_exceeded(self, error: ContextLengthError):
        if self.shrinks >= len(self.budgets):
            self.error = EmbeddingError(
                f"{error}. Hint: lower CHUNK_TARGET_CHARS/EMBED_MAX_CHARS or pick a bigger-context embedding model."
            )
            self.state = EmbedState.FAILED
            return
        self.budget = self.budgets[self.shrinks]
        self.budget_history.append(self.budget)
        self.shrinks += 1
        self.num_ctx = min(self.num_ctx, REDUCED_NUM_CTX)
        self.state = EmbedState.SHRINK_AND_RETRY

    def transient_failure(self, error: EmbeddingError) -> float:
        """Record a non context-length failure.

        Returns:
            Seconds to wait before the next attempt (0 when the ladder failed)
        """
        if self.transient_failures >= self.retry_attempts:
            self.error = error
            self.state = EmbedState.FAILED
            return 0.0
        delay = self.initial_delay * (2**self.transient_failures)
        self.transient_failures += 1
        self.state = EmbedState.TRYING
        return delay

    def resume(self):
        if self.state is EmbedState.SHRINK_AND_RETRY:
            self.state = EmbedState.TRYING


def call_ollama_embeddings(text: str, config, model: str, num_ctx: int) -> list:
    """Single embedding request to Ollama.

    Raises:
        ContextLengthError: If the backend rejected the input as too long
        EmbeddingError: For any other failure
    """
    endpoint = f"{config.OLLAMA_ENDPOINT}/api/embeddings"
    payload = {"model": model, "prompt": text, "options": {"num_ctx": num_ctx, "truncate": True}}

    # Set timeout as tuple (connect_timeout, read_timeout)
    timeout = (config.BACKEND_CONNECT_TIMEOUT, config.BACKEND_READ_TIMEOUT)

    try:
        response = requests.post(endpoint, json=payload, timeout=timeout)
    except requests.RequestException as e:
        raise EmbeddingError(f"Embeddings request failed: {e}") from e

    if not response.ok:
        body = response.text or ""
        if is_context_length_error(body):
            raise ContextLengthError(f"Embeddings failed ({response.status_code}): {body}")
        raise EmbeddingError(f"Embeddings failed ({response.status_code}): {body}")

    try:
        return list(response.json()["embedding"])
    except (ValueError, KeyError, TypeError) as e:
        raise EmbeddingError(f"Malformed embeddings response: {e}") from e


def embed_text(text: str, config, model: Optional[str] = None) -> list:
    """Embed text, shrinking the input when the backend reports it is too long.

    Args:
        text: Text to embed
        config: ServerConfig instance
        model: Embedding model (defaults to config.EMBED_MODEL)

    Returns:
        Embedding vector

    Raises:
        EmbeddingError: When the retry ladder is exhausted
    """
    if config.DISABLE_EMBEDDINGS:
        return []

    model = model or config.EMBED_MODEL
    retry = EmbedRetry(
        text=text,
        max_chars=config.EMBED_MAX_CHARS,
        num_ctx=config.EMBED_NUM_CTX,
        retry_attempts=config.BACKEND_RETRY_ATTEMPTS,
        initial_delay=config.BACKEND_RETRY_INITIAL_DELAY,
    )

    while retry.pending:
        if retry.state is EmbedState.SHRINK_AND_RETRY:
            logger.info(f"[BACKEND] Input too long for {model}, retrying with {retry.budget} chars")
            retry.resume()
        try:
            vector = call_ollama_embeddings(retry.payload, config, model, retry.num_ctx)
        except ContextLengthError as e:
            retry.context_exceeded(e)
        except EmbeddingError as e:
            delay = retry.transient_failure(e)
            if delay:
                logger.warning(f"[BACKEND] {e}; retrying in {delay:.1f}s")
                time.sleep(delay)
        else:
            retry.succeed(vector)

    if retry.state is EmbedState.FAILED:
        raise retry.error
    return retry.vector


def generate(prompt: str, config, temperature: Optional[float] = None, model: Optional[str] = None) -> str:
    """Run a generation and assemble the streamed reply into one string.

    Raises:
        GenerationError: If the request fails or the backend reports an error
    """
    endpoint = f"{config.OLLAMA_ENDPOINT}/api/generate"
    payload = {
        "model": model or config.GEN_MODEL,
        "prompt": prompt,
        "stream": True,
        "options": {"temperature": sanitize_temperature(temperature)},
    }
    timeout = (config.BACKEND_CONNECT_TIMEOUT, config.BACKEND_READ_TIMEOUT)

    parts = []
    try:
        with requests.post(endpoint, json=payload, stream=True, timeout=timeout) as response:
            response.raise_for_status()
            for line in response.iter_lines(decode_unicode=True):
                if not line or not line.strip():
                    continue
                try:
                    tick = json.loads(line)
                except json.JSONDecodeError:
                    logger.debug(f"[BACKEND] Ignoring non-JSON generate line: {line[:80]}")
                    continue
                if tick.get("error"):
                    raise GenerationError(f"Generation failed: {tick['error']}")
                if tick.get("response"):
                    parts.append(tick["response"])
    except requests.RequestException as e:
        raise GenerationError(f"Generation failed: {e}") from e

    return "".join(parts)


def _model_available(model: str, names: list) -> bool:
    if model in names:
        return True
    # "nomic-embed-text" is listed as "nomic-embed-text:latest"
    return ":" not in model and f"{model}:latest" in names


def check_ollama_health(config, timeout: int = 5) -> Tuple[bool, str]:
    """Check if Ollama is reachable and both configured models are available.

    Args:
        config: ServerConfig instance
        timeout: Request timeout in seconds

    Returns:
        Tuple of (is_healthy: bool, message: str)
    """
    try:
        endpoint = f"{config.OLLAMA_ENDPOINT}/api/tags"
        response = requests.get(endpoint, timeout=timeout)
        response.raise_for_status()

        data = response.json()
        model_names = [model.get("name", "") for model in data.get("models", [])]

        missing = [m for m in (config.EMBED_MODEL, config.GEN_MODEL) if not _model_available(m, model_names)]
        if not missing:
            return True, f"Ollama is healthy. Models '{config.EMBED_MODEL}' and '{config.GEN_MODEL}' are available."
        available = ", ".join(model_names) if model_names else "none"
        return False, f"Ollama is reachable but model(s) {', '.join(missing)} not found. Available models: {available}"

    except requests.Timeout:
        return False, f"Ollama health check timed out after {timeout}s. Backend may be unresponsive."
    except requests.ConnectionError:
        return False, f"Cannot connect to Ollama at {config.OLLAMA_ENDPOINT}. Is it running?"
    except Exception as e:
        return False, f"Ollama health check failed: {e!s}"


class OllamaBackend:
    """Embedding and generation calls bound to one ServerConfig."""

    def __init__(self, config):
        self.config = config

    @property
    def embed_model(self) -> str:
        return self.config.EMBED_MODEL

    @property
    def gen_model(self) -> str:
        return self.config.GEN_MODEL

    def embed(self, text: str, model: Optional[str] = None) -> list:
        return embed_text(text, self.config, model)

    def generate(self, prompt: str, temperature: Optional[float] = None, model: Optional[str] = None) -> str:
        return generate(prompt, self.config, temperature, model)

    def check_health(self) -> Tuple[bool, str]:
        return check_ollama_health(self.config, timeout=self.config.HEALTH_CHECK_TIMEOUT)
