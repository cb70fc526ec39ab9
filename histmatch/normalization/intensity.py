"""Affine intensity rescaling from fitted Gaussian parameters.

    I'(x) = (I(x) - (origin + mean * bin_width)) / sigma

With the default zero-anchored histogram ``origin`` is 0, which centres the
fitted mode at zero with unit spread in bin units.
"""

import logging

import numpy as np

from histmatch.errors import DivisionByZeroError

logger = logging.getLogger(__name__)


def normalize_intensities(
    pixels: np.ndarray,
    mean: float,
    sigma: float,
    bin_width: float,
    origin: float = 0.0,
    dtype: str = "float32",
) -> np.ndarray:
    """Return a new array with every pixel shifted by the mode and divided by sigma.

    Args:
        pixels: Input slice; never modified
        mean: Fitted mode centre in bin-index units
        sigma: Fitted spread in bin-index units
        bin_width: Histogram bin width in intensity units
        origin: Intensity at the left edge of bin 0
        dtype: Output dtype

    Returns:
        Freshly allocated normalized slice with the input's shape

    Raises:
        DivisionByZeroError: If sigma is zero
    """
    if sigma == 0:
        raise DivisionByZeroError("Cannot normalize with sigma == 0")

    offset = origin + mean * bin_width
    normalized = (np.asarray(pixels, dtype=np.float64) - offset) / sigma
    return normalized.astype(dtype, copy=False)
