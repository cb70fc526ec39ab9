"""Command-line interface for Gaussian mode normalization of image stacks.

Usage:
    histmatch-normalize stack.tif
    histmatch-normalize stack.nii.gz -o normalized.nii.gz --nbins 256
    histmatch-normalize stack.tif --config configs/histmatch.yaml --workers 4 --record
"""

import argparse
import dataclasses
import logging
import sys
from pathlib import Path
from typing import List, Optional

from histmatch.config import BIN_WIDTH_MODES, HistMatchConfig, load_config
from histmatch.errors import ConfigurationError, SliceNormalizationError
from histmatch.io import default_output_path
from histmatch.normalization.gaussian_mode import GaussianModeNormalizer
from histmatch.utils.run_record import NormalizationRecord, default_record_path


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the CLI.

    Args:
        verbose: If True, set logging level to DEBUG; otherwise INFO.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        description="Normalize each slice of an image stack by its Gaussian background mode.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Normalize a TIFF stack, writing stack_hm.tif next to it
  histmatch-normalize stack.tif

  # Finer histogram and four worker threads
  histmatch-normalize stack.tif --nbins 256 --workers 4

  # Bin over [min, max] instead of [0, max]
  histmatch-normalize volume.nii.gz --bin-width-mode range

  # Save per-slice fit parameters and a before/after figure
  histmatch-normalize stack.tif --record --visualize

Per slice:
  1. Histogram with NBINS bins of width max/NBINS
  2. Window around the highest bin while counts keep decreasing
  3. Least-squares Gaussian fit (height, mean, sigma) in bin units
  4. value' = (value - mean * bin_width) / sigma
        """,
    )

    parser.add_argument("input", type=Path, help="Input stack (.tif, .tiff, .nii, .nii.gz).")
    parser.add_argument(
        "-o", "--output",
        type=Path,
        help="Output stack (default: input name with '_hm' appended).",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="YAML configuration file with a 'histmatch' section.",
    )
    parser.add_argument("--nbins", type=int, help="Number of histogram bins (default: 128).")
    parser.add_argument("--workers", type=int, help="Number of worker threads (default: 1).")
    parser.add_argument(
        "--bin-width-mode",
        choices=BIN_WIDTH_MODES,
        help="'legacy' bins over [0, max]; 'range' bins over [min, max].",
    )
    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Overwrite the output file if it exists.",
    )
    parser.add_argument(
        "--record",
        nargs="?",
        const=True,
        default=None,
        help="Save per-slice fit parameters to JSON (optionally give the path).",
    )
    parser.add_argument(
        "--visualize",
        nargs="?",
        const=True,
        default=None,
        help="Save a before/after PNG figure (optionally give the path).",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging (DEBUG level).",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> HistMatchConfig:
    """Merge the optional YAML file with command-line overrides."""
    config = load_config(args.config) if args.config else HistMatchConfig()

    overrides = {}
    if args.nbins is not None:
        overrides["nbins"] = args.nbins
    if args.workers is not None:
        overrides["workers"] = args.workers
    if args.bin_width_mode is not None:
        overrides["bin_width_mode"] = args.bin_width_mode
    if args.visualize:
        overrides["save_visualization"] = True

    return dataclasses.replace(config, **overrides) if overrides else config


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    args = parse_arguments(argv)

    setup_logging(verbose=args.verbose)
    logger = logging.getLogger(__name__)

    try:
        config = build_config(args)
        output_path = args.output or default_output_path(args.input)

        logger.info(f"Input:            {args.input}")
        logger.info(f"Output:           {output_path}")
        logger.info(f"Bins:             {config.nbins} ({config.bin_width_mode})")
        logger.info(f"Workers:          {config.workers}")

        normalizer = GaussianModeNormalizer(config=config, verbose=args.verbose)
        result = normalizer.execute(args.input, output_path, allow_overwrite=args.overwrite)

        if args.record:
            record_path = (
                default_record_path(output_path) if args.record is True else Path(args.record)
            )
            NormalizationRecord.from_result(args.input, output_path, config, result).save(record_path)

        if config.save_visualization:
            viz_path = (
                default_record_path(output_path, suffix=".png")
                if args.visualize in (None, True) else Path(args.visualize)
            )
            normalizer.visualize(args.input, output_path, viz_path, **result)

        logger.info(f"Normalized {result['n_slices']} slices -> {output_path}")
        return 0

    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        return 1
    except FileExistsError as e:
        logger.error(f"Overwrite protection: {e}")
        logger.error("Use --overwrite or choose another output path")
        return 1
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2
    except SliceNormalizationError as e:
        logger.error(f"Normalization failed at slice {e.slice_index}: {e.cause}")
        return 3
    except KeyboardInterrupt:
        logger.warning("Processing interrupted by user")
        return 130
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
