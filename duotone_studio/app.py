from __future__ import annotations

from pathlib import Path, PurePosixPath
from string import Template
from urllib.parse import urlsplit

from flask import Flask, jsonify, request
from werkzeug.exceptions import RequestEntityTooLarge

from .config import (
    HIGHLIGHT_COLOR,
    MAX_DIMENSION,
    SETTINGS,
    SHADOW_COLOR,
    configure_logging,
)
from .errors import DuotoneError, MissingInputError, OversizedInputError
from .infrastructure.cache import CACHE, result_key
from .infrastructure.network import FETCHER
from .infrastructure.responses import error_response, send_png
from .infrastructure.sessions import SESSIONS
from .processing.pipeline import decode_image, download_name, duotone_image, encode_png
from .validation import validate_upload

APP_VERSION = "1.0.0"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def parse_flag(raw, default: bool = False) -> bool:
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    value = str(raw).strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    return default


def _hex(rgb) -> str:
    return "#{:02x}{:02x}{:02x}".format(*rgb)


def read_source() -> tuple[bytes, str | None]:
    """Return the uploaded (or fetched) image bytes and a filename for them."""

    upload = request.files.get("file")
    if upload is not None and upload.filename:
        data = upload.read()
        validate_upload(upload.filename, upload.mimetype, len(data))
        return data, upload.filename

    source_url = request.values.get("source_url")
    if source_url:
        data = FETCHER.fetch_bytes(source_url)
        return data, PurePosixPath(urlsplit(source_url).path).name or None

    raise MissingInputError("no file or source_url in request")


def create_app() -> Flask:
    logger = configure_logging()
    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = SETTINGS.max_upload_bytes + 64 * 1024

    @app.errorhandler(DuotoneError)
    def handle_duotone_error(exc: DuotoneError):
        logger.warning("%s: %s", exc.code, exc.detail)
        return error_response(exc)

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(exc):
        return error_response(OversizedInputError(str(exc)))

    @app.route("/duotone", methods=["POST"])
    def duotone():
        reverse = parse_flag(request.values.get("reversed"))
        data, filename = read_source()

        key = result_key(data, reverse)
        png = CACHE.get(key)
        if png is None:
            png = encode_png(duotone_image(decode_image(data), reverse=reverse))
            CACHE.put(key, png)
        else:
            logger.debug("cache hit for %s", key)
        return send_png(png, download_name(filename))

    @app.route("/sessions", methods=["POST"])
    def create_session():
        reverse = parse_flag(request.values.get("reversed"))
        data, filename = read_source()
        source = decode_image(data)

        session = SESSIONS.create()
        try:
            session.load(source, filename, reverse=reverse)
            result = session.render_now()
        except Exception:
            SESSIONS.remove(session.id)
            raise

        return (
            jsonify(
                id=session.id,
                generation=result.generation,
                reversed=result.reverse,
                width=result.width,
                height=result.height,
                filename=download_name(filename),
            ),
            201,
        )

    @app.route("/sessions/<session_id>", methods=["PATCH"])
    def update_session(session_id: str):
        session = SESSIONS.get(session_id)
        payload = request.get_json(silent=True) or {}
        reverse = parse_flag(payload.get("reversed"), default=session.reverse)
        generation = session.set_reverse(reverse)
        return jsonify(id=session.id, generation=generation, reversed=reverse, pending=True), 202

    @app.route("/sessions/<session_id>/result", methods=["GET"])
    def session_result(session_id: str):
        session = SESSIONS.get(session_id)
        if parse_flag(request.args.get("wait")):
            session.flush()

        if session.error is not None:
            return error_response(session.error)

        result = session.result
        if result is None:
            return jsonify(id=session.id, generation=session.generation, pending=True), 202

        response = send_png(result.png, download_name(session.filename))
        response.headers["X-Render-Generation"] = str(result.generation)
        response.headers["X-Render-Pending"] = "1" if session.pending else "0"
        return response

    @app.route("/sessions/<session_id>", methods=["DELETE"])
    def delete_session(session_id: str):
        SESSIONS.remove(session_id)
        return ("", 204)

    @app.route("/health")
    def health():
        return jsonify(
            ok=True,
            version=APP_VERSION,
            max_dimension=MAX_DIMENSION,
            colors={"shadow": _hex(SHADOW_COLOR), "highlight": _hex(HIGHLIGHT_COLOR)},
            sessions=len(SESSIONS),
        )

    @app.route("/")
    def index():
        template_path = Path(__file__).parent / "templates" / "index.html"
        with open(template_path, "r", encoding="utf-8") as f:
            tmpl_str = f.read()

        # string.Template leaves the page's CSS/JS braces alone
        return Template(tmpl_str).safe_substitute(
            APP_VERSION=APP_VERSION,
            shadow_hex=_hex(SHADOW_COLOR),
            highlight_hex=_hex(HIGHLIGHT_COLOR),
            max_upload_mb=f"{SETTINGS.max_upload_mb:g}",
            debounce_ms=SETTINGS.debounce_ms,
        )

    return app


# Module-level app for WSGI servers (``duotone_studio.app:app``), plus the conventional alias.
app = create_app()
application = app
