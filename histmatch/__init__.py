"""Per-slice Gaussian background-mode normalization of image stacks."""

from histmatch.config import HistMatchConfig, load_config
from histmatch.errors import (
    ConfigurationError,
    DegenerateRangeError,
    DivisionByZeroError,
    HistMatchError,
    InsufficientDataError,
    NonConvergentFitError,
    NormalizationCancelledError,
    SliceNormalizationError,
)
from histmatch.stack import StackResult, normalize_stack, normalize_stack_detailed

__version__ = "0.1.0"

__all__ = [
    "HistMatchConfig",
    "load_config",
    "ConfigurationError",
    "DegenerateRangeError",
    "DivisionByZeroError",
    "HistMatchError",
    "InsufficientDataError",
    "NonConvergentFitError",
    "NormalizationCancelledError",
    "SliceNormalizationError",
    "StackResult",
    "normalize_stack",
    "normalize_stack_detailed",
]
