"""Command line entry point for the site-qa server."""

import logging

import click

from .config import ServerConfig
from .rag.config import RAGConfig
from .server import SiteQAServer


@click.command()
@click.option("--bind", "--host", "host", default=None, help="Interface to bind (default: HOST or 127.0.0.1).")
@click.option("--port", type=int, default=None, help="Port to listen on (default: PORT or 3000).")
@click.option("--ollama-host", default=None, help="Ollama base URL (default: OLLAMA_HOST or http://localhost:11434).")
@click.option("--embed-model", default=None, help="Embedding model (default: EMBED_MODEL or nomic-embed-text).")
@click.option("--gen-model", default=None, help="Generation model (default: GEN_MODEL or llama3.1:8b).")
@click.option("--env-prefix", default="", help="Prefix checked before the plain environment variable names.")
@click.option("--skip-health-check", is_flag=True, help="Do not check Ollama before starting.")
@click.option("--debug", is_flag=True, help="Run Flask in debug mode.")
@click.option("-v", "--verbose", is_flag=True, help="Log at INFO level to stderr.")
def main(host, port, ollama_host, embed_model, gen_model, env_prefix, skip_health_check, debug, verbose):
    """Crawl sites, index documents and answer questions with a local Ollama."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    config = ServerConfig.from_env(env_prefix)
    if ollama_host:
        config.OLLAMA_ENDPOINT = ollama_host.rstrip("/")
    if embed_model:
        config.EMBED_MODEL = embed_model
    if gen_model:
        config.GEN_MODEL = gen_model
    if skip_health_check:
        config.HEALTH_CHECK_ON_STARTUP = False

    server = SiteQAServer(config, RAGConfig.from_env())
    server.run(port=port, host=host, debug=debug)


if __name__ == "__main__":
    main()
