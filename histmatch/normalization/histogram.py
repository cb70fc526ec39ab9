"""Fixed-width intensity histograms of single slices.

Bins are uniform and anchored at zero by default: the bin width is
``max / nbins`` and the slice minimum is ignored. Pixels at or above the
maximum (and, in that mode, any negative pixels) clamp into the edge bins so
that every pixel is counted exactly once.
"""

from dataclasses import dataclass
from typing import Optional
import logging

import numpy as np

from histmatch.config import BIN_WIDTH_MODES, DEFAULT_NBINS
from histmatch.errors import ConfigurationError, DegenerateRangeError

logger = logging.getLogger(__name__)


@dataclass
class Histogram:
    """Bin counts of one slice.

    Attributes:
        counts: Pixel count per bin (length nbins)
        bin_width: Intensity width of every bin
        origin: Intensity at the left edge of bin 0
    """
    counts: np.ndarray
    bin_width: float
    origin: float = 0.0

    @property
    def nbins(self) -> int:
        return int(self.counts.size)

    @property
    def total(self) -> int:
        return int(self.counts.sum())

    def bin_to_intensity(self, index: float) -> float:
        """Map a (possibly fractional) bin index to its intensity."""
        return self.origin + index * self.bin_width


def build_histogram(
    pixels: np.ndarray,
    nbins: int = DEFAULT_NBINS,
    max_value: Optional[float] = None,
    min_value: Optional[float] = None,
    bin_width_mode: str = "legacy",
) -> Histogram:
    """Bin a slice's intensities into ``nbins`` uniform bins.

    Args:
        pixels: 2D array of intensities (any real dtype)
        nbins: Number of bins
        max_value: Slice maximum; derived from the pixels when omitted
        min_value: Slice minimum; only used in "range" mode
        bin_width_mode: "legacy" (width = max / nbins) or "range"
            (width = (max - min) / nbins)

    Returns:
        Histogram whose counts sum to ``pixels.size``

    Raises:
        ConfigurationError: If nbins or bin_width_mode is invalid
        ValueError: If the slice is empty or contains non-finite values
        DegenerateRangeError: If the range yields a non-positive bin width
    """
    if nbins < 1:
        raise ConfigurationError(f"nbins must be positive, got {nbins}")
    if bin_width_mode not in BIN_WIDTH_MODES:
        raise ConfigurationError(f"Unknown bin_width_mode: {bin_width_mode!r}")

    data = np.asarray(pixels, dtype=np.float64)
    if data.size == 0:
        raise ValueError("Cannot build a histogram of an empty slice")
    if not np.all(np.isfinite(data)):
        raise ValueError("Slice contains non-finite values")

    vmax = float(data.max()) if max_value is None else float(max_value)

    if bin_width_mode == "legacy":
        if vmax <= 0:
            raise DegenerateRangeError(
                f"Slice maximum must be positive to build a histogram, got {vmax}"
            )
        origin = 0.0
    else:
        origin = float(data.min()) if min_value is None else float(min_value)
        if vmax <= origin:
            raise DegenerateRangeError(
                f"Slice range is empty: min={origin}, max={vmax}"
            )

    bin_width = (vmax - origin) / nbins

    indices = np.floor((data.ravel() - origin) / bin_width)
    indices = np.clip(indices, 0, nbins - 1).astype(np.int64)
    counts = np.bincount(indices, minlength=nbins)

    logger.debug(
        f"Histogram: nbins={nbins}, bin_width={bin_width:.6g}, origin={origin:.6g}, "
        f"peak_count={int(counts.max())}"
    )
    return Histogram(counts=counts, bin_width=bin_width, origin=origin)
