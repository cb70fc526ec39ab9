"""Single-slice Gaussian mode normalization.

Runs histogram -> mode window -> Gaussian fit -> affine rescale on one 2D
slice and keeps every intermediate result for reporting.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging

import numpy as np

from histmatch.config import HistMatchConfig
from histmatch.normalization.gaussian_fit import GaussianFit, fit_gaussian
from histmatch.normalization.histogram import Histogram, build_histogram
from histmatch.normalization.intensity import normalize_intensities
from histmatch.normalization.mode_window import ModeWindow, locate_mode_window

logger = logging.getLogger(__name__)


@dataclass
class SliceResult:
    """Normalized slice together with the parameters that produced it."""
    pixels: np.ndarray
    histogram: Histogram
    window: ModeWindow
    fit: GaussianFit

    @property
    def mode_intensity(self) -> float:
        """Intensity mapped to zero by the normalization."""
        return self.histogram.bin_to_intensity(self.fit.mean)

    def to_dict(self) -> Dict[str, Any]:
        """Summary of the fit for JSON records (pixels excluded)."""
        return {
            "bin_width": float(self.histogram.bin_width),
            "origin": float(self.histogram.origin),
            "peak_index": self.window.peak_index,
            "lower_border": self.window.lower_border,
            "upper_border": self.window.upper_border,
            "fit_stop": self.window.fit_stop,
            "height": self.fit.height,
            "mean": self.fit.mean,
            "sigma": self.fit.sigma,
            "n_points": self.fit.n_points,
            "mode_intensity": float(self.mode_intensity),
        }


def normalize_slice(
    pixels: np.ndarray,
    config: Optional[HistMatchConfig] = None,
    max_value: Optional[float] = None,
    min_value: Optional[float] = None,
) -> SliceResult:
    """Normalize one slice so its dominant mode sits at 0 with unit sigma.

    Args:
        pixels: 2D intensity array; not modified
        config: Normalization settings (defaults to HistMatchConfig())
        max_value: Slice maximum, derived from the data when omitted
        min_value: Slice minimum, derived from the data when omitted

    Returns:
        SliceResult with a new pixel array of the same shape

    Raises:
        ValueError: If pixels is not 2D, empty, or non-finite
        DegenerateRangeError: If the slice range is degenerate
        InsufficientDataError: If the mode window has fewer than 3 bins
        NonConvergentFitError: If the Gaussian fit fails
    """
    config = config or HistMatchConfig()
    pixels = np.asarray(pixels)
    if pixels.ndim != 2:
        raise ValueError(f"Expected a 2D slice, got shape {pixels.shape}")

    histogram = build_histogram(
        pixels,
        nbins=config.nbins,
        max_value=max_value,
        min_value=min_value,
        bin_width_mode=config.bin_width_mode,
    )
    window = locate_mode_window(histogram.counts)
    fit = fit_gaussian(
        histogram.counts,
        window.lower_border,
        window.fit_stop,
        max_evaluations=config.max_evaluations,
    )
    normalized = normalize_intensities(
        pixels,
        mean=fit.mean,
        sigma=fit.sigma,
        bin_width=histogram.bin_width,
        origin=histogram.origin,
        dtype=config.output_dtype,
    )
    return SliceResult(pixels=normalized, histogram=histogram, window=window, fit=fit)
