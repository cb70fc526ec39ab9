"""Stack-level orchestration of per-slice Gaussian mode normalization.

Slices are independent: each one is normalized on its own and written to
its own slot of a pre-sized result list, either sequentially or from a
thread pool. The first failing slice aborts the whole stack; no partial
stack is ever returned.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
import logging
import threading

import numpy as np

from histmatch.config import DEFAULT_NBINS, HistMatchConfig
from histmatch.errors import NormalizationCancelledError, SliceNormalizationError
from histmatch.normalization.pipeline import SliceResult, normalize_slice

logger = logging.getLogger(__name__)

StackLike = Union[np.ndarray, Sequence[np.ndarray]]
SliceRange = Tuple[Optional[float], Optional[float]]


@dataclass
class StackResult:
    """Per-slice results of a stack run, in slice order."""
    slices: List[SliceResult] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.slices)

    @property
    def stack(self) -> np.ndarray:
        """Normalized stack as ``(n_slices, height, width)``."""
        return np.stack([s.pixels for s in self.slices])

    def fits(self) -> List[Dict[str, Any]]:
        return [dict(slice_index=i, **s.to_dict()) for i, s in enumerate(self.slices)]


def _as_slices(slices: StackLike) -> List[np.ndarray]:
    if isinstance(slices, np.ndarray):
        if slices.ndim == 2:
            slices = slices[np.newaxis, ...]
        if slices.ndim != 3:
            raise ValueError(f"Expected a 3D stack, got shape {slices.shape}")
        if slices.shape[0] == 0:
            raise ValueError("Cannot normalize an empty stack")
        return [slices[i] for i in range(slices.shape[0])]

    arrays = [np.asarray(s) for s in slices]
    if not arrays:
        raise ValueError("Cannot normalize an empty stack")
    shape = arrays[0].shape
    for i, arr in enumerate(arrays):
        if arr.ndim != 2:
            raise ValueError(f"Slice {i} is not 2D: shape {arr.shape}")
        if arr.shape != shape:
            raise ValueError(f"Slice {i} has shape {arr.shape}, expected {shape}")
    return arrays


def _resolve_config(nbins: Optional[int], config: Optional[HistMatchConfig]) -> HistMatchConfig:
    if config is None:
        return HistMatchConfig(nbins=DEFAULT_NBINS if nbins is None else nbins)
    if nbins is not None and nbins != config.nbins:
        raise ValueError(
            f"nbins={nbins} conflicts with config.nbins={config.nbins}; pass only one"
        )
    return config


def _check_ranges(ranges: Optional[Sequence[SliceRange]], n_slices: int) -> List[SliceRange]:
    if ranges is None:
        return [(None, None)] * n_slices
    ranges = [tuple(r) for r in ranges]
    if len(ranges) != n_slices:
        raise ValueError(f"Got {len(ranges)} ranges for {n_slices} slices")
    for i, r in enumerate(ranges):
        if len(r) != 2:
            raise ValueError(f"Range of slice {i} must be a (min, max) pair, got {r}")
    return ranges


def normalize_stack_detailed(
    slices: StackLike,
    nbins: Optional[int] = None,
    config: Optional[HistMatchConfig] = None,
    workers: Optional[int] = None,
    cancel_event: Optional[threading.Event] = None,
    ranges: Optional[Sequence[SliceRange]] = None,
) -> StackResult:
    """Normalize every slice of a stack and keep the fit of each slice.

    Args:
        slices: 3D array ``(n_slices, height, width)`` or a sequence of 2D
            arrays with identical shapes
        nbins: Histogram bin count (default 128); alternative to ``config``
        config: Full normalization configuration
        workers: Thread count, overriding ``config.workers``
        cancel_event: Checked before each slice starts; when set the run
            stops with NormalizationCancelledError
        ranges: Optional per-slice ``(min, max)`` intensity ranges; a None
            entry is derived from the slice data

    Returns:
        StackResult with one SliceResult per input slice

    Raises:
        SliceNormalizationError: If any slice fails; carries the slice index
            and is chained to the underlying error
        NormalizationCancelledError: If cancel_event was set
    """
    config = _resolve_config(nbins, config)
    arrays = _as_slices(slices)
    n_slices = len(arrays)
    slice_ranges = _check_ranges(ranges, n_slices)
    n_workers = config.workers if workers is None else workers
    if n_workers < 1:
        raise ValueError(f"workers must be positive, got {n_workers}")

    results: List[Optional[SliceResult]] = [None] * n_slices
    abort = threading.Event()

    def _run(index: int) -> SliceResult:
        if abort.is_set() or (cancel_event is not None and cancel_event.is_set()):
            raise NormalizationCancelledError(f"Cancelled before slice {index}")
        logger.debug(f"Normalizing slice {index + 1}/{n_slices}")
        min_value, max_value = slice_ranges[index]
        return normalize_slice(
            arrays[index], config, max_value=max_value, min_value=min_value
        )

    logger.info(
        f"Normalizing {n_slices} slices (nbins={config.nbins}, "
        f"bin_width_mode={config.bin_width_mode}, workers={n_workers})"
    )

    if n_workers == 1 or n_slices == 1:
        for index in range(n_slices):
            try:
                results[index] = _run(index)
            except NormalizationCancelledError:
                logger.warning(f"Normalization cancelled at slice {index}")
                raise
            except Exception as e:
                logger.error(f"Slice {index} failed: {e}")
                raise SliceNormalizationError(index, e) from e
    else:
        failures: Dict[int, BaseException] = {}
        cancelled = False
        with ThreadPoolExecutor(max_workers=n_workers) as pool:
            future_to_index = {pool.submit(_run, i): i for i in range(n_slices)}
            for future in as_completed(future_to_index):
                index = future_to_index[future]
                try:
                    results[index] = future.result()
                except NormalizationCancelledError:
                    if not abort.is_set():
                        cancelled = True
                except Exception as e:
                    logger.error(f"Slice {index} failed: {e}")
                    failures[index] = e
                    abort.set()
                    for pending in future_to_index:
                        pending.cancel()

        if failures:
            index = min(failures)
            error = failures[index]
            raise SliceNormalizationError(index, error) from error
        if cancelled:
            logger.warning("Normalization cancelled")
            raise NormalizationCancelledError("Stack normalization was cancelled")

    logger.info(f"Normalized {n_slices} slices")
    return StackResult(slices=list(results))


def normalize_stack(
    slices: StackLike,
    nbins: Optional[int] = None,
    config: Optional[HistMatchConfig] = None,
    workers: Optional[int] = None,
    cancel_event: Optional[threading.Event] = None,
    ranges: Optional[Sequence[SliceRange]] = None,
) -> np.ndarray:
    """Normalize every slice of a stack; returns ``(n_slices, height, width)``.

    ``nbins`` defaults to 128. See normalize_stack_detailed for the other
    arguments and errors.
    """
    result = normalize_stack_detailed(
        slices,
        nbins=nbins,
        config=config,
        workers=workers,
        cancel_event=cancel_event,
        ranges=ranges,
    )
    return result.stack
