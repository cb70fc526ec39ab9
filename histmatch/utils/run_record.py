"""Record of a normalization run.

Captures the configuration and the per-slice fit parameters so that a run
can be inspected or reproduced later.
"""

from dataclasses import dataclass, asdict, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
import json
import logging

from histmatch.config import HistMatchConfig

logger = logging.getLogger(__name__)


@dataclass
class NormalizationRecord:
    """Record of one stack normalization.

    Attributes:
        timestamp: ISO format timestamp of when the record was created
        input_path: Source stack
        output_path: Normalized stack
        config: Normalization configuration as a dictionary
        n_slices: Number of slices processed
        slice_shape: [height, width] of every slice
        slices: Per-slice fit summaries
    """
    input_path: str
    output_path: str
    config: Dict[str, Any]
    n_slices: int
    slice_shape: List[int]
    slices: List[Dict[str, Any]] = field(default_factory=list)
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    @classmethod
    def from_result(
        cls,
        input_path: Path,
        output_path: Path,
        config: HistMatchConfig,
        result: Dict[str, Any],
    ) -> "NormalizationRecord":
        """Create record from the dictionary returned by GaussianModeNormalizer.execute()."""
        return cls(
            input_path=str(input_path),
            output_path=str(output_path),
            config=config.to_dict(),
            n_slices=int(result["n_slices"]),
            slice_shape=list(result["slice_shape"]),
            slices=list(result["fits"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def save(self, output_path: Path) -> None:
        """Save record to JSON file, creating parent directories."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info(f"Normalization record saved to: {output_path}")

    @classmethod
    def load(cls, path: Path) -> "NormalizationRecord":
        with open(path, "r") as f:
            data = json.load(f)
        return cls(**data)


def default_record_path(output_path: Path, suffix: Optional[str] = "_fits.json") -> Path:
    """JSON path next to a stack file, e.g. ``brain_hm.tif -> brain_hm_fits.json``."""
    output_path = Path(output_path)
    name = output_path.name
    for ext in (".nii.gz", ".nii", ".tiff", ".tif"):
        if name.lower().endswith(ext):
            name = name[: -len(ext)]
            break
    return output_path.with_name(f"{name}{suffix}")
