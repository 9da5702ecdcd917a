import os
import logging
from typing import Optional

from flask import Blueprint, Flask, current_app, jsonify, request, send_file
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from application.dto.share_dto import UploadDTO, isoformat_utc
from codeshare.config import Settings
from codeshare.core import ShareService
from codeshare.errors import NOT_FOUND_MESSAGE, InvalidInput, NotFound, ShareError
from codeshare.utils import decode_data_url, sanitize_filename
from codeshare.wiring import build_service
from infrastructure.blob import LocalBlobStore
from infrastructure.web.reclaim_sweeper import ReclaimSweeper

# ── Logging ──────────────────────────────────────────────────────────
logging.basicConfig(
    level=getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger("codeshare")

SERVICE_KEY = "codeshare.service"
SWEEPER_KEY = "codeshare.sweeper"

web = Blueprint("web", __name__)


def _service() -> ShareService:
    return current_app.extensions[SERVICE_KEY]


# ════════════════════════════════════════════════════════════════════
# Request parsing
# ════════════════════════════════════════════════════════════════════


def _read_share_request() -> tuple[Optional[str], Optional[UploadDTO]]:
    """
    Accept either multipart/form-data (``text``, ``file``) or JSON
    (``text``, ``file`` as a data URL, ``fileName``).
    """
    if request.is_json:
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            raise InvalidInput("Request body must be a JSON object.")
        text = body.get("text")
        if text is not None and not isinstance(text, str):
            raise InvalidInput("Field 'text' must be a string.")
        file_field = body.get("file")
        upload = None
        if file_field:
            if not isinstance(file_field, str):
                raise InvalidInput("Field 'file' must be a data URL string.")
            data, mime = decode_data_url(file_field)
            upload = UploadDTO(
                data=data,
                name=sanitize_filename(body.get("fileName") or ""),
                content_type=mime,
            )
        return text, upload

    text = request.form.get("text")
    upload = None
    file_storage = request.files.get("file")
    if file_storage is not None and file_storage.filename:
        upload = UploadDTO(
            data=file_storage.read(),
            name=sanitize_filename(file_storage.filename),
            content_type=file_storage.mimetype,
        )
    return text, upload


# ════════════════════════════════════════════════════════════════════
# Routes
# ════════════════════════════════════════════════════════════════════


@web.route("/api/share", methods=["POST"])
def create_share():
    """
    POST /api/share
    Form fields or JSON:
      - text     : optional text payload
      - file     : optional file (multipart) or data URL (JSON)
      - fileName : display name for a data-URL file (JSON only)
    Returns: { code, expiresAt }
    """
    text, upload = _read_share_request()
    record = _service().create(text=text, file=upload)

    logger.info(
        "share accepted ip=%s code=%s kind=%s",
        request.remote_addr, record.code, record.kind,
    )
    return jsonify({
        "code":      record.code,
        "expiresAt": isoformat_utc(record.expires_at),
    }), 201


@web.route("/api/retrieve/<code>", methods=["GET"])
def retrieve_share(code: str):
    """
    GET /api/retrieve/<code>
    Returns: { kind, text, fileName, fileUrl, expiresAt }
    """
    result = _service().retrieve(code)
    if result is None:
        raise NotFound(NOT_FOUND_MESSAGE)
    return jsonify(result.to_dict())


@web.route("/blobs/<blob_id>", methods=["GET"])
def serve_blob(blob_id: str):
    """
    GET /blobs/<blob_id>
    Serves files held by the local blob store.
    """
    blobs = _service().blobs
    if not isinstance(blobs, LocalBlobStore):
        return jsonify({"error": "Not found."}), 404

    path = blobs.path_for(blob_id)
    if path is None:
        logger.warning("blob path rejected ip=%s id=%s", request.remote_addr, blob_id)
        return jsonify({"error": "Access denied."}), 403
    if not os.path.exists(path):
        return jsonify({"error": "File has expired."}), 410

    return send_file(path, mimetype="application/octet-stream", as_attachment=True)


@web.route("/health", methods=["GET"])
def health():
    sweeper: Optional[ReclaimSweeper] = current_app.extensions.get(SWEEPER_KEY)
    return jsonify({
        "status":     "ok",
        "liveShares": _service().live_count(),
        "sweeper":    bool(sweeper and sweeper.running),
    })


# ════════════════════════════════════════════════════════════════════
# Error handlers & Security headers
# ════════════════════════════════════════════════════════════════════


def _register_error_handlers(app: Flask) -> None:

    @app.errorhandler(ShareError)
    def handle_share_error(e: ShareError):
        status = e.http_status
        if status >= 500:
            logger.error("request failed path=%s: %s", request.path, e)
        else:
            logger.warning("request rejected ip=%s path=%s: %s", request.remote_addr, request.path, e)
        # First line only; the hint line is for the CLI
        return jsonify({"error": str(e).split("\n", 1)[0]}), status

    @app.errorhandler(413)
    def request_entity_too_large(e):
        limit_mb = app.config["CODESHARE_MAX_FILE_BYTES"] // (1024 * 1024)
        return jsonify({"error": f"File too large. Maximum size is {limit_mb} MB."}), 413

    @app.errorhandler(404)
    def not_found(e):
        path = request.path
        suspicious = any(p in path for p in ["..", "etc", "passwd", "wp-admin", ".env"])
        if suspicious:
            logger.warning("suspicious 404 ip=%s path=%s", request.remote_addr, path)
        return jsonify({"error": "Not found."}), 404

    @app.errorhandler(HTTPException)
    def handle_http_exception(e: HTTPException):
        return jsonify({"error": e.description}), e.code

    @app.errorhandler(Exception)
    def handle_exception(e):
        """Generic handler. Internal details never reach the client."""
        logger.error("unhandled exception: %s", e, exc_info=True)
        return jsonify({"error": "An internal error occurred."}), 500

    @app.after_request
    def set_security_headers(response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Cache-Control"] = "no-store"
        return response


# ════════════════════════════════════════════════════════════════════
# App factory
# ════════════════════════════════════════════════════════════════════


def create_app(
    settings: Optional[Settings] = None,
    service: Optional[ShareService] = None,
    start_sweeper: Optional[bool] = None,
) -> Flask:
    """
    Build the Flask app around an injected ShareService.

    Without *service*, stores are built from *settings* (or the environment).
    """
    settings = settings or Settings.from_env()
    service = service or build_service(settings)

    app = Flask(__name__)

    # Base64 data URLs inflate uploads by a third; leave headroom for text
    app.config["MAX_CONTENT_LENGTH"] = (
        settings.max_file_bytes * 4 // 3 + settings.max_text_chars * 4 + 64 * 1024
    )
    app.config["CODESHARE_MAX_FILE_BYTES"] = settings.max_file_bytes
    app.config["CODESHARE_API_KEY"] = settings.api_key
    app.json.sort_keys = False

    CORS(app, resources={
        r"/api/*":   {"origins": settings.cors_origins},
        r"/blobs/*": {"origins": settings.cors_origins},
    })

    app.extensions[SERVICE_KEY] = service

    app.register_blueprint(web)

    from adapters.web.api_v1_blueprint import api_v1
    app.register_blueprint(api_v1)

    import adapters.web.openapi_spec as openapi_spec

    @app.route("/api/v1/openapi.json")
    def get_openapi_spec():
        return jsonify(openapi_spec.OPENAPI_SPEC)

    _register_error_handlers(app)

    if start_sweeper is None:
        start_sweeper = settings.sweeper_enabled
    if start_sweeper:
        sweeper = ReclaimSweeper(
            service,
            interval_s=settings.sweep_interval_seconds,
            batch_size=settings.sweep_batch_size,
        )
        sweeper.start()
        app.extensions[SWEEPER_KEY] = sweeper

    return app


# ════════════════════════════════════════════════════════════════════
# Entry point
# ════════════════════════════════════════════════════════════════════

if __name__ == "__main__":
    debug_mode = os.environ.get("FLASK_DEBUG", "false").lower() == "true"
    create_app().run(debug=debug_mode, port=int(os.environ.get("PORT", "5000")))
