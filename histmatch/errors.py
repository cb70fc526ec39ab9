"""Exception hierarchy for histogram-based slice normalization.

All per-slice failures derive from HistMatchError so that the stack
orchestration can wrap them uniformly in SliceNormalizationError.
"""

from typing import Optional


class HistMatchError(Exception):
    """Base class for all normalization errors."""
    pass


class ConfigurationError(HistMatchError, ValueError):
    """Raised when configuration is invalid or incomplete."""
    pass


class DegenerateRangeError(HistMatchError):
    """Raised when a slice's intensity range cannot support a histogram."""
    pass


class InsufficientDataError(HistMatchError):
    """Raised when the mode window holds fewer points than fit parameters."""
    pass


class NonConvergentFitError(HistMatchError):
    """Raised when the Gaussian fit fails or yields a zero sigma."""
    pass


class DivisionByZeroError(HistMatchError, ZeroDivisionError):
    """Raised when a zero sigma reaches the pixel transformation."""
    pass


class NormalizationCancelledError(HistMatchError):
    """Raised when a stack run is cancelled between slices."""
    pass


class SliceNormalizationError(HistMatchError):
    """Raised by the stack loop when one slice fails.

    Attributes:
        slice_index: Zero-based index of the failing slice
        cause: The per-slice error that aborted the stack
    """

    def __init__(self, slice_index: int, cause: Optional[BaseException] = None) -> None:
        self.slice_index = slice_index
        self.cause = cause
        kind = type(cause).__name__ if cause is not None else "error"
        super().__init__(f"Slice {slice_index} failed ({kind}): {cause}")
