"""Locate the support of the dominant histogram mode.

Starting at the highest bin, the window grows left and right one bin at a
time for as long as the counts do not increase moving away from the peak.
No fitting happens here; the window only selects which bins the Gaussian
fit gets to see.
"""

from dataclasses import dataclass
from typing import Sequence, Tuple
import logging

import numpy as np

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModeWindow:
    """Bin range of the dominant mode.

    Attributes:
        peak_index: Bin with the greatest count (first one on ties)
        lower_border: First bin of the mode
        upper_border: Bin where the upper walk stopped
        fit_stop: Exclusive upper bound of the bins used for fitting
    """
    peak_index: int
    lower_border: int
    upper_border: int
    fit_stop: int

    @property
    def fit_range(self) -> Tuple[int, int]:
        return self.lower_border, self.fit_stop

    @property
    def n_fit_bins(self) -> int:
        return max(0, self.fit_stop - self.lower_border)


def find_peak(counts: Sequence[int]) -> int:
    """Return the index of the highest bin, the lowest index on ties."""
    counts = np.asarray(counts)
    if counts.size == 0:
        raise ValueError("Cannot find the peak of an empty histogram")
    # argmax returns the first occurrence of the maximum
    return int(np.argmax(counts))


def _walk_down(counts: np.ndarray, peak_index: int) -> int:
    upper_bin = peak_index
    lower_bin = peak_index - 1
    if lower_bin < 0:
        return 0
    while counts[lower_bin] <= counts[upper_bin] and lower_bin > 0:
        upper_bin -= 1
        lower_bin -= 1
    return upper_bin


def _walk_up(counts: np.ndarray, peak_index: int) -> int:
    nbins = counts.size
    upper_bin = peak_index + 1
    lower_bin = peak_index
    if upper_bin > nbins - 1:
        return upper_bin
    while counts[lower_bin] >= counts[upper_bin] and upper_bin < nbins - 1:
        upper_bin += 1
        lower_bin += 1
    return upper_bin


def locate_mode_window(counts: Sequence[int]) -> ModeWindow:
    """Find the peak bin and the contiguous, monotonically decaying bins around it.

    Lower walk: compare each bin with its right neighbour, moving left from
    the peak, and stop at the first increase or when bin 0 becomes the
    compared bin. The lower border is the last right-hand bin of the walk.

    Upper walk: symmetric to the right, stopping at the first increase or at
    the last bin. The stopping bin is excluded from the fit.

    When the peak is the last bin no upper walk happens; the fit then runs
    up to and including the peak and the upper border is the last bin.

    Args:
        counts: Histogram bin counts

    Returns:
        ModeWindow with the peak, borders, and fit bound
    """
    counts = np.asarray(counts)
    peak_index = find_peak(counts)
    nbins = counts.size

    lower_border = _walk_down(counts, peak_index)
    fit_stop = _walk_up(counts, peak_index)
    upper_border = min(fit_stop, nbins - 1)

    window = ModeWindow(
        peak_index=peak_index,
        lower_border=lower_border,
        upper_border=upper_border,
        fit_stop=fit_stop,
    )
    logger.debug(
        f"Mode window: peak={peak_index}, borders=[{lower_border}, {upper_border}], "
        f"fit bins={window.n_fit_bins}"
    )
    return window
