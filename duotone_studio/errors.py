"""Error kinds raised by the engine and its collaborators.

Every error carries a short, non-technical ``user_message`` that the HTTP
layer can show as-is, plus the status code it maps to.
"""

from __future__ import annotations


class DuotoneError(Exception):
    status = 500
    code = "duotone_error"
    user_message = "Something went wrong while processing your image. Please try a different file."

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.user_message)
        self.detail = detail or self.user_message

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.user_message}


class InvalidInputError(DuotoneError, ValueError):
    """Malformed buffer or dimensions handed to the engine (a caller bug)."""

    code = "invalid_input"


class MissingInputError(DuotoneError):
    status = 400
    code = "missing_input"
    user_message = "Please choose an image to upload."


class DecodeFailureError(DuotoneError):
    status = 422
    code = "decode_failure"
    user_message = "We couldn't read that image. Please choose a different file."


class UnsupportedFormatError(DuotoneError):
    status = 415
    code = "unsupported_format"
    user_message = "Please select a valid image file (JPEG, PNG, or WebP)."


class OversizedInputError(DuotoneError):
    status = 413
    code = "oversized_input"
    user_message = "That file is too large. Please choose a smaller image."


class SourceFetchError(DuotoneError):
    status = 502
    code = "source_fetch_failed"
    user_message = "We couldn't download that image. Please check the link or upload a file instead."


class StaleResultError(DuotoneError):
    status = 409
    code = "stale_result"
    user_message = "A newer version of this image is on its way. Please wait a moment."


class SessionNotFoundError(DuotoneError):
    status = 404
    code = "session_not_found"
    user_message = "This editing session has expired. Please upload your image again."
