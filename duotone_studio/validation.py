from __future__ import annotations

from .config import SETTINGS
from .errors import OversizedInputError, UnsupportedFormatError

ACCEPTED_MIME_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/webp"})


def validate_upload(
    filename: str | None,
    mimetype: str | None,
    size: int,
    max_bytes: int | None = None,
) -> None:
    """Reject uploads by declared type and size before anything is decoded."""

    limit = SETTINGS.max_upload_bytes if max_bytes is None else max_bytes
    declared = (mimetype or "").split(";", 1)[0].strip().lower()
    if declared not in ACCEPTED_MIME_TYPES:
        raise UnsupportedFormatError(f"unsupported upload type {declared or 'unknown'!r} for {filename!r}")
    if size > limit:
        raise OversizedInputError(f"upload of {size} bytes exceeds the {limit} byte limit")
