"""Flask JSON API for indexing sites, uploading documents and asking questions."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from .backends import OllamaBackend
from .config import ServerConfig
from .errors import InputError, SiteQAError
from .rag.config import RAGConfig
from .rag.session import DEFAULT_SESSION
from .service import QAService, UploadedFile

logger = logging.getLogger(__name__)

PACKAGE_LOGGER = "site_qa"


def _optional_int(data: dict, name: str) -> Optional[int]:
    value = data.get(name)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InputError(f"Field '{name}' must be an integer") from None


def _optional_float(data: dict, name: str) -> Optional[float]:
    value = data.get(name)
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise InputError(f"Field '{name}' must be a number") from None


class SiteQAServer:
    """Flask server exposing the question answering service."""

    def __init__(
        self,
        config: ServerConfig,
        rag_config: Optional[RAGConfig] = None,
        service: Optional[QAService] = None,
        logger_names: Optional[List[str]] = None,
    ):
        """Initialize the server.

        Args:
            config: ServerConfig instance
            rag_config: RAG configuration (defaults to RAGConfig.from_env())
            service: Optional pre-built service (tests pass one with a fake backend)
            logger_names: Optional list of logger names for debug logging
        """
        self.config = config
        self.backend = service.backend if service else OllamaBackend(config)
        self.service = service or QAService(self.backend, rag_config or RAGConfig.from_env())

        self.app = Flask("site_qa")
        if config.CORS_ORIGINS:
            CORS(self.app, origins=config.CORS_ORIGINS)
        else:
            CORS(self.app)

        if config.DEBUG_LOG:
            self._enable_debug_log(logger_names or [PACKAGE_LOGGER])

        self._register_routes()

    def _enable_debug_log(self, logger_names: List[str]):
        log_file = Path(self.config.DEBUG_LOG_FILE)
        # Use RotatingFileHandler for automatic log rotation
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=self.config.DEBUG_LOG_MAX_BYTES,
            backupCount=self.config.DEBUG_LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
        )

        for logger_name in logger_names:
            logger_obj = logging.getLogger(logger_name)
            logger_obj.setLevel(logging.DEBUG)
            logger_obj.addHandler(file_handler)

        max_mb = self.config.DEBUG_LOG_MAX_BYTES / (1024 * 1024)
        print(f"Debug logging enabled: {log_file.absolute()}")
        print(f"  Logging: {', '.join(logger_names)}")
        print(f"  Rotation: {max_mb:.1f}MB max, {self.config.DEBUG_LOG_BACKUP_COUNT} backups")

    def _register_routes(self):
        """Register Flask routes."""
        self.app.route("/health", methods=["GET"])(self.health)
        self.app.route("/api/index", methods=["POST"])(self.index_site)
        self.app.route("/api/upload", methods=["POST"])(self.upload)
        self.app.route("/api/ask", methods=["POST"])(self.ask)
        self.app.register_error_handler(InputError, self._input_error)
        self.app.register_error_handler(SiteQAError, self._server_error)

    # ------------------------------------------------------------------
    # Error translation
    # ------------------------------------------------------------------

    def _input_error(self, error: InputError):
        logger.info(f"[SERVER] Rejected request: {error}")
        return jsonify({"error": str(error)}), 400

    def _server_error(self, error: SiteQAError):
        logger.error(f"[SERVER] Request failed: {error}")
        return jsonify({"error": str(error)}), 500

    def _json_body(self) -> dict:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise InputError("Invalid JSON in request body")
        return data

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def health(self):
        """Health check endpoint."""
        return jsonify(
            {
                "status": "healthy",
                "embed_model": self.backend.embed_model,
                "gen_model": self.backend.gen_model,
                "sessions": self.service.sessions.session_ids(),
            }
        )

    def index_site(self):
        """Crawl a site and build or extend a session index."""
        try:
            data = self._json_body()
            urls = data.get("urls") or data.get("url")
            if not urls:
                return jsonify({"error": "Missing required field: 'url'"}), 400
            if not isinstance(urls, (str, list)):
                return jsonify({"error": "Field 'url' must be a string or an array"}), 400

            result = self.service.index_site(
                urls,
                session_id=data.get("session_id") or DEFAULT_SESSION,
                depth=_optional_int(data, "depth"),
                max_pages=_optional_int(data, "max_pages"),
                scope_prefix=data.get("scope_prefix") or None,
            )
            return jsonify(result)
        except SiteQAError:
            raise
        except Exception as e:
            logger.exception("[SERVER] Index request failed")
            return jsonify({"error": str(e)}), 500

    def upload(self):
        """Extract uploaded documents (multipart field ``files``) into a session index."""
        try:
            files = [UploadedFile(f.filename, f.stream) for f in request.files.getlist("files")]
            session_id = request.form.get("session_id") or DEFAULT_SESSION
            return jsonify(self.service.upload(files, session_id=session_id))
        except SiteQAError:
            raise
        except Exception as e:
            logger.exception("[SERVER] Upload request failed")
            return jsonify({"error": str(e)}), 500

    def ask(self):
        """Answer a question from a session index."""
        try:
            data = self._json_body()
            question = data.get("question")
            if not isinstance(question, str) or not question.strip():
                return jsonify({"error": "Missing required field: 'question'"}), 400

            temperature = _optional_float(data, "temperature")
            result = self.service.ask(
                question,
                session_id=data.get("session_id") or DEFAULT_SESSION,
                top_k=_optional_int(data, "top_k"),
                temperature=self.config.DEFAULT_TEMPERATURE if temperature is None else temperature,
                start_url=data.get("start_url") or None,
                depth=_optional_int(data, "depth"),
                max_pages=_optional_int(data, "max_pages"),
                scope_prefix=data.get("scope_prefix") or None,
            )
            return jsonify(result)
        except SiteQAError:
            raise
        except Exception as e:
            logger.exception("[SERVER] Ask request failed")
            return jsonify({"error": str(e)}), 500

    def check_backend_health(self) -> bool:
        """Check that Ollama is reachable and both models are pulled."""
        is_healthy, message = self.backend.check_health()
        if is_healthy:
            print(f"✓ {message}")
        else:
            print(f"✗ {message}")
        return is_healthy

    def run(self, port: Optional[int] = None, host: Optional[str] = None, debug: bool = False):
        """Run the Flask server.

        Args:
            port: Port to run on (defaults to config.DEFAULT_PORT)
            host: Host to bind to (defaults to config.DEFAULT_HOST, which is 127.0.0.1 for security)
            debug: Enable debug mode
        """
        port = port or self.config.DEFAULT_PORT
        host = host or self.config.DEFAULT_HOST

        print(
            f"""
╭────────────────────────────────────╮
│  site-qa - Ask questions about a site │
╰────────────────────────────────────╯

Ollama: {self.config.OLLAMA_ENDPOINT}
Embedding model: {self.config.EMBED_MODEL}
Generation model: {self.config.GEN_MODEL}
Host: {host}
Port: {port}
API: http://localhost:{port}/api
"""
        )

        # Security warning if binding to all interfaces
        if host == "0.0.0.0":
            print("⚠️  WARNING: Server is binding to 0.0.0.0 (all network interfaces)")
            print("   This exposes the API to your entire network without authentication.")
            print("   For security, use HOST=127.0.0.1 (localhost only) unless you need network access.\n")

        if self.config.HEALTH_CHECK_ON_STARTUP:
            print("Checking backend health...")
            if not self.check_backend_health():
                print("\n⚠️  Warning: Backend health check failed!")
                print("The server will start anyway, but requests may fail.")
                print("To disable this check, set HEALTH_CHECK_ON_STARTUP=false\n")

        self.app.run(host=host, port=port, debug=debug, threaded=True)
