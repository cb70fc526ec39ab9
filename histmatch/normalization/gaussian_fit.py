"""Least-squares Gaussian fit of a windowed histogram.

The model is ``h * exp(-(x - mean)**2 / (2 * sigma**2))`` evaluated at bin
indices, fitted without weights using Levenberg-Marquardt
(``scipy.optimize.curve_fit``). Parameters are returned in bin-index units.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Sequence, Tuple
import logging
import warnings

import numpy as np
from scipy.optimize import OptimizeWarning, curve_fit

from histmatch.errors import InsufficientDataError, NonConvergentFitError

logger = logging.getLogger(__name__)

N_PARAMETERS = 3

# FWHM = 2 * sqrt(2 * ln 2) * sigma
FWHM_TO_SIGMA = 1.0 / (2.0 * np.sqrt(2.0 * np.log(2.0)))


@dataclass(frozen=True)
class GaussianFit:
    """Best-fit Gaussian over the mode window, in bin-index units."""
    height: float
    mean: float
    sigma: float
    n_points: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def gaussian(x: np.ndarray, height: float, mean: float, sigma: float) -> np.ndarray:
    """Evaluate the unnormalized Gaussian model."""
    return height * np.exp(-((x - mean) ** 2) / (2.0 * sigma ** 2))


def _interpolate_x_at_y(
    x: np.ndarray, y: np.ndarray, start: int, step: int, target: float
) -> float:
    """Walk from ``start`` in direction ``step`` to where y crosses ``target``.

    Raises:
        IndexError: If y never drops to ``target`` in that direction
    """
    i = start
    while 0 <= i + step < x.size:
        j = i + step
        if y[j] <= target <= y[i]:
            if y[i] == y[j]:
                return float(x[j])
            return float(x[i] + (target - y[i]) * (x[j] - x[i]) / (y[j] - y[i]))
        i = j
    raise IndexError("target value not reached")


def guess_parameters(x: np.ndarray, y: np.ndarray) -> Tuple[float, float, float]:
    """Initial (height, mean, sigma) from the peak and its half-maximum width.

    When the half maximum is reached on one side only (a mode at the edge
    of the histogram) that half width is mirrored; when it is reached on
    neither side the span of the observations is used.
    """
    order = np.argsort(x, kind="stable")
    x = np.asarray(x, dtype=np.float64)[order]
    y = np.asarray(y, dtype=np.float64)[order]

    peak = int(np.argmax(y))
    height = float(y[peak])
    mean = float(x[peak])

    half = height / 2.0
    half_widths = []
    for step in (-1, 1):
        try:
            half_widths.append(abs(_interpolate_x_at_y(x, y, peak, step, half) - mean))
        except IndexError:
            continue

    if len(half_widths) == 2:
        fwhm = sum(half_widths)
    elif half_widths:
        fwhm = 2.0 * half_widths[0]
    else:
        fwhm = float(x[-1] - x[0])

    if fwhm <= 0:
        fwhm = 1.0

    return height, mean, fwhm * FWHM_TO_SIGMA


def fit_gaussian(
    counts: Sequence[int],
    start: int,
    stop: int,
    max_evaluations: int = 10000,
) -> GaussianFit:
    """Fit a Gaussian to ``(bin_index, count)`` observations in ``[start, stop)``.

    Args:
        counts: Full histogram counts
        start: First bin of the observations
        stop: Exclusive last bin of the observations
        max_evaluations: Maximum number of model evaluations for the solver

    Returns:
        GaussianFit with a positive sigma

    Raises:
        InsufficientDataError: If fewer than 3 observations are available
        NonConvergentFitError: If the solver fails or sigma collapses to zero
    """
    counts = np.asarray(counts, dtype=np.float64)
    start = max(0, int(start))
    stop = min(counts.size, int(stop))

    x = np.arange(start, stop, dtype=np.float64)
    y = counts[start:stop]

    if x.size < N_PARAMETERS:
        raise InsufficientDataError(
            f"Mode window [{start}, {stop}) has {x.size} bins; "
            f"at least {N_PARAMETERS} are required to fit a Gaussian"
        )

    p0 = guess_parameters(x, y)
    logger.debug(
        f"Fitting {x.size} bins, initial guess: height={p0[0]:.3f}, "
        f"mean={p0[1]:.3f}, sigma={p0[2]:.3f}"
    )

    try:
        with warnings.catch_warnings():
            # Covariance is not used; an inestimable covariance is not a failure
            warnings.simplefilter("ignore", OptimizeWarning)
            popt, _ = curve_fit(
                gaussian, x, y, p0=p0, method="lm", maxfev=max_evaluations
            )
    except (RuntimeError, ValueError) as e:
        raise NonConvergentFitError(f"Gaussian fit did not converge: {e}") from e

    height, mean, sigma = (float(v) for v in popt)
    if not np.all(np.isfinite(popt)):
        raise NonConvergentFitError(
            f"Gaussian fit returned non-finite parameters: {popt.tolist()}"
        )

    # Only sigma**2 enters the model
    sigma = abs(sigma)
    if sigma == 0.0:
        raise NonConvergentFitError("Gaussian fit returned sigma == 0")

    logger.debug(f"Fit result: height={height:.3f}, mean={mean:.3f}, sigma={sigma:.3f}")
    return GaussianFit(height=height, mean=mean, sigma=sigma, n_points=int(x.size))
