"""Pixel processing for the duotone studio."""

from .curve import enhance_contrast
from .dimensions import plan_dimensions, round_half_up
from .duotone import LuminanceRange, apply_duotone, endpoint_colors, luminance_range
from .pipeline import decode_image, download_name, duotone_image, encode_png, prepare_buffer

__all__ = [
    "enhance_contrast",
    "plan_dimensions",
    "round_half_up",
    "LuminanceRange",
    "apply_duotone",
    "endpoint_colors",
    "luminance_range",
    "decode_image",
    "download_name",
    "duotone_image",
    "encode_png",
    "prepare_buffer",
]
