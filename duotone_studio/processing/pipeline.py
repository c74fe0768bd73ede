from __future__ import annotations

import io
import warnings
from pathlib import PurePosixPath

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from ..config import ACCEPTED_FORMATS, DOWNLOAD_SUFFIX
from ..errors import DecodeFailureError, UnsupportedFormatError
from .dimensions import plan_dimensions
from .duotone import apply_duotone


def decode_image(data: bytes) -> Image.Image:
    """Decode uploaded bytes into a fully loaded, upright Pillow image."""

    if not data:
        raise DecodeFailureError("empty image payload")

    try:
        with warnings.catch_warnings():
            warnings.simplefilter("error", Image.DecompressionBombWarning)
            img = Image.open(io.BytesIO(data))
            if img.format not in ACCEPTED_FORMATS:
                raise UnsupportedFormatError(f"unsupported image format: {img.format}")
            img.load()
    except UnsupportedFormatError:
        raise
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        Image.DecompressionBombWarning,
        OSError,
        SyntaxError,
        ValueError,
    ) as exc:
        raise DecodeFailureError(f"could not decode image: {exc}") from exc

    return ImageOps.exif_transpose(img)


def prepare_buffer(img: Image.Image) -> np.ndarray:
    """Resample ``img`` to its planned size and return a fresh RGBA array."""

    rgba = img.convert("RGBA")
    size = plan_dimensions(*rgba.size)
    if size != rgba.size:
        rgba = rgba.resize(size, Image.Resampling.LANCZOS)
    return np.array(rgba, dtype=np.uint8)


def duotone_image(img: Image.Image, reverse: bool = False) -> Image.Image:
    buffer = prepare_buffer(img)
    apply_duotone(buffer, reverse=reverse)
    return Image.fromarray(buffer)


def encode_png(img: Image.Image) -> bytes:
    buffer = io.BytesIO()
    img.save(buffer, "PNG", optimize=True)
    return buffer.getvalue()


def download_name(filename: str | None) -> str:
    """``holiday.photo.jpg`` -> ``holiday.photo_brave-pink-hero-green-1312.png``"""

    name = PurePosixPath((filename or "").replace("\\", "/")).name
    stem = name.rsplit(".", 1)[0] if "." in name else name
    return f"{stem or 'image'}{DOWNLOAD_SUFFIX}"
