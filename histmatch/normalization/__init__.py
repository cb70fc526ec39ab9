"""Histogram-based Gaussian mode normalization.

The per-slice pipeline is histogram -> mode window -> Gaussian fit ->
affine rescale. GaussianModeNormalizer applies it to stack files.
"""

from histmatch.normalization.histogram import Histogram, build_histogram
from histmatch.normalization.mode_window import ModeWindow, find_peak, locate_mode_window
from histmatch.normalization.gaussian_fit import GaussianFit, fit_gaussian, gaussian
from histmatch.normalization.intensity import normalize_intensities
from histmatch.normalization.pipeline import SliceResult, normalize_slice

__all__ = [
    "Histogram",
    "build_histogram",
    "ModeWindow",
    "find_peak",
    "locate_mode_window",
    "GaussianFit",
    "fit_gaussian",
    "gaussian",
    "normalize_intensities",
    "SliceResult",
    "normalize_slice",
]
