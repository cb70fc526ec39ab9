"""Configuration dataclasses for histogram-based slice normalization.

This module defines the configuration for the Gaussian mode normalizer and a
YAML loader that reads it from a ``histmatch:`` section.
"""

from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, Literal, Optional
import logging

import numpy as np
import yaml

from histmatch.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_NBINS = 128

BIN_WIDTH_MODES = ("legacy", "range")


@dataclass
class HistMatchConfig:
    """Configuration for per-slice Gaussian mode normalization.

    Attributes:
        nbins: Number of uniform histogram bins per slice
        bin_width_mode: How the bin width is derived from the slice range:
            - "legacy": width = max / nbins, bins cover [0, max]
            - "range": width = (max - min) / nbins, bins cover [min, max]
        workers: Number of worker threads for the stack loop (1 = sequential)
        output_dtype: NumPy dtype name of normalized slices
        max_evaluations: Upper bound on model evaluations for the least-squares solver
        save_visualization: Write a before/after figure when running on files
    """
    nbins: int = DEFAULT_NBINS
    bin_width_mode: Literal["legacy", "range"] = "legacy"
    workers: int = 1
    output_dtype: str = "float32"
    max_evaluations: int = 10000
    save_visualization: bool = False

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if isinstance(self.nbins, bool) or not isinstance(self.nbins, (int, np.integer)):
            raise ConfigurationError(f"nbins must be an integer, got {self.nbins!r}")
        if self.nbins < 1:
            raise ConfigurationError(f"nbins must be positive, got {self.nbins}")

        if self.bin_width_mode not in BIN_WIDTH_MODES:
            raise ConfigurationError(
                f"bin_width_mode must be one of {BIN_WIDTH_MODES}, got {self.bin_width_mode!r}"
            )

        if isinstance(self.workers, bool) or not isinstance(self.workers, int) or self.workers < 1:
            raise ConfigurationError(f"workers must be a positive integer, got {self.workers!r}")

        try:
            dtype = np.dtype(self.output_dtype)
        except TypeError as e:
            raise ConfigurationError(f"Unknown output_dtype: {self.output_dtype!r}") from e
        if dtype.kind != "f":
            raise ConfigurationError(
                f"output_dtype must be a floating point type, got {self.output_dtype!r}"
            )

        if isinstance(self.max_evaluations, bool) or not isinstance(
            self.max_evaluations, (int, np.integer)
        ):
            raise ConfigurationError(
                f"max_evaluations must be an integer, got {self.max_evaluations!r}"
            )
        if self.max_evaluations < 1:
            raise ConfigurationError(
                f"max_evaluations must be positive, got {self.max_evaluations}"
            )

        if not isinstance(self.save_visualization, bool):
            raise ConfigurationError(
                f"save_visualization must be true or false, got {self.save_visualization!r}"
            )

        if self.bin_width_mode == "legacy":
            logger.debug("Using legacy bin width (max / nbins); slice minimum is ignored")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


def load_config(config_path: Path) -> HistMatchConfig:
    """Load normalization configuration from a YAML file.

    The file must contain a ``histmatch`` section; unknown keys are rejected.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated HistMatchConfig

    Raises:
        FileNotFoundError: If config_path does not exist
        ConfigurationError: If the YAML is malformed or values are invalid

    Examples:
        >>> config = load_config(Path('configs/histmatch.yaml'))
        >>> config.nbins
        128
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse YAML configuration: {e}") from e

    if not yaml_data:
        raise ConfigurationError(f"Empty configuration file: {config_path}")

    if "histmatch" not in yaml_data:
        raise ConfigurationError("Missing required 'histmatch' section in configuration")

    section: Optional[Dict[str, Any]] = yaml_data["histmatch"] or {}
    if not isinstance(section, dict):
        raise ConfigurationError("'histmatch' section must be a mapping")

    known = set(HistMatchConfig.__dataclass_fields__)
    unknown = sorted(set(section) - known)
    if unknown:
        raise ConfigurationError(
            f"Unknown configuration keys in 'histmatch': {unknown}. "
            f"Available keys: {sorted(known)}"
        )

    config = HistMatchConfig(**section)
    logger.info(f"Loaded configuration from {config_path}: {config}")
    return config
