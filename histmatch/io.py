"""Reading and writing image stacks.

Stacks are handled in memory as ``(n_slices, height, width)`` arrays.
Multi-page TIFF files are read with tifffile; NIfTI volumes are read with
nibabel and sliced along their last axis, and their affine is carried over
when writing.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple
import logging

import nibabel as nib
import numpy as np
import tifffile

logger = logging.getLogger(__name__)

TIFF_SUFFIXES = (".tif", ".tiff")
NIFTI_SUFFIXES = (".nii", ".nii.gz")

OUTPUT_SUFFIX = "_hm"


@dataclass
class StackInfo:
    """Format details needed to write a stack back like its source.

    Attributes:
        format: "tiff" or "nifti"
        affine: NIfTI voxel-to-world affine, if any
    """
    format: str
    affine: Optional[np.ndarray] = None


def _split_suffix(path: Path) -> Tuple[str, str]:
    name = path.name
    lower = name.lower()
    if lower.endswith(".nii.gz"):
        return name[: -len(".nii.gz")], name[-len(".nii.gz"):]
    return path.stem, path.suffix


def stack_format(path: Path) -> str:
    """Return "tiff" or "nifti" from the file name.

    Raises:
        ValueError: If the extension is not supported
    """
    _, suffix = _split_suffix(Path(path))
    suffix = suffix.lower()
    if suffix in TIFF_SUFFIXES:
        return "tiff"
    if suffix in NIFTI_SUFFIXES:
        return "nifti"
    raise ValueError(f"Unsupported stack format: {path}")


def default_output_path(input_path: Path) -> Path:
    """Output path next to the input with ``_hm`` appended to the stem.

    Examples:
        >>> default_output_path(Path('data/brain.nii.gz'))
        PosixPath('data/brain_hm.nii.gz')
    """
    input_path = Path(input_path)
    stem, suffix = _split_suffix(input_path)
    return input_path.with_name(f"{stem}{OUTPUT_SUFFIX}{suffix}")


def read_stack(path: Path) -> Tuple[np.ndarray, StackInfo]:
    """Load a stack as ``(n_slices, height, width)``.

    A single 2D image is returned as a one-slice stack.

    Raises:
        FileNotFoundError: If path does not exist
        ValueError: If the format is unsupported or the data is not 2D/3D
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Stack file not found: {path}")

    fmt = stack_format(path)
    logger.debug(f"Loading {fmt} stack: {path}")

    if fmt == "tiff":
        data = np.asarray(tifffile.imread(str(path)))
        info = StackInfo(format=fmt)
    else:
        img = nib.load(str(path))
        volume = np.asanyarray(img.dataobj)
        data = np.moveaxis(volume, -1, 0) if volume.ndim == 3 else volume
        info = StackInfo(format=fmt, affine=np.asarray(img.affine))

    if data.ndim == 2:
        data = data[np.newaxis, ...]
    if data.ndim != 3:
        raise ValueError(f"Expected a 2D image or 3D stack, got shape {data.shape}")

    logger.info(f"Loaded stack {path.name}: {data.shape[0]} slices of {data.shape[1]}x{data.shape[2]}")
    return data, info


def write_stack(path: Path, stack: np.ndarray, info: Optional[StackInfo] = None) -> Path:
    """Write a ``(n_slices, height, width)`` stack.

    The output format follows the file name; ``info`` supplies the NIfTI affine.
    """
    path = Path(path)
    stack = np.asarray(stack)
    if stack.ndim != 3:
        raise ValueError(f"Expected a 3D stack, got shape {stack.shape}")

    fmt = stack_format(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if fmt == "tiff":
        tifffile.imwrite(str(path), stack)
    else:
        affine = info.affine if info is not None and info.affine is not None else np.eye(4)
        volume = np.moveaxis(stack, 0, -1)
        nib.Nifti1Image(volume, affine).to_filename(str(path))

    logger.debug(f"Saved {fmt} stack: {path}")
    return path
