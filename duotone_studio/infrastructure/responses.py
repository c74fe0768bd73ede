from __future__ import annotations

import io

from flask import jsonify, send_file

from ..errors import DuotoneError


def send_png(data: bytes, download_name: str | None = None):
    return send_file(
        io.BytesIO(data),
        mimetype="image/png",
        as_attachment=download_name is not None,
        download_name=download_name,
    )


def error_response(exc: DuotoneError):
    return jsonify(exc.to_dict()), exc.status
