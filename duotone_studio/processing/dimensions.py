from __future__ import annotations

import math
from numbers import Integral
from typing import Tuple

from ..config import MAX_DIMENSION
from ..errors import InvalidInputError


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _check_extent(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise InvalidInputError(f"{name} must be an integer, got {value!r}")
    if value <= 0:
        raise InvalidInputError(f"{name} must be positive, got {value}")
    return int(value)


def plan_dimensions(
    source_width: int,
    source_height: int,
    max_dimension: int = MAX_DIMENSION,
) -> Tuple[int, int]:
    """Return the working size for a ``source_width`` x ``source_height`` image.

    Images that fit inside ``max_dimension`` on both axes keep their size.
    Larger ones are scaled down so the longest edge equals ``max_dimension``
    while the aspect ratio is kept to within a pixel.
    """

    width = _check_extent("source_width", source_width)
    height = _check_extent("source_height", source_height)

    if width <= max_dimension and height <= max_dimension:
        return width, height

    scale = max_dimension / max(width, height)
    return (
        max(1, min(max_dimension, round_half_up(width * scale))),
        max(1, min(max_dimension, round_half_up(height * scale))),
    )
