from __future__ import annotations

import numpy as np

from ..config import CONTRAST_EXPONENT


def enhance_contrast(value, exponent: float = CONTRAST_EXPONENT):
    """Symmetric S-curve pushing values below 0.5 toward 0 and above toward 1.

    Accepts a float or a numpy array of normalized values in ``[0, 1]``.
    """

    if isinstance(value, np.ndarray):
        lower = np.power(value * 2, exponent) / 2
        upper = 1 - np.power((1 - value) * 2, exponent) / 2
        return np.where(value < 0.5, lower, upper)

    if value < 0.5:
        return ((value * 2) ** exponent) / 2
    return 1 - (((1 - value) * 2) ** exponent) / 2
