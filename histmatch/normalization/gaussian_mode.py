"""Gaussian background-mode normalization of image stacks on disk.

Each slice is normalized independently:

    I'(x) = (I(x) - mean * bin_width) / sigma

where ``mean`` and ``sigma`` come from a Gaussian fitted to the dominant
peak of the slice histogram (in bin units) and ``bin_width = max / nbins``.
The background of every slice therefore ends up centred at zero with unit
spread, which makes slices with drifting brightness comparable.
"""

from pathlib import Path
from typing import Any, Dict, Optional
import logging

import numpy as np

from histmatch.base import BaseStackStep
from histmatch.config import HistMatchConfig
from histmatch.errors import HistMatchError
from histmatch.io import read_stack, write_stack
from histmatch.normalization.gaussian_fit import gaussian
from histmatch.stack import normalize_stack_detailed

logger = logging.getLogger(__name__)


class GaussianModeNormalizer(BaseStackStep):
    """Per-slice Gaussian mode normalizer for TIFF and NIfTI stacks.

    Attributes:
        config: Normalization configuration
    """

    def __init__(
        self,
        config: Optional[HistMatchConfig] = None,
        verbose: bool = False
    ) -> None:
        """Initialize normalizer.

        Args:
            config: Normalization configuration (defaults to HistMatchConfig())
            verbose: Enable verbose logging
        """
        super().__init__(step_name="GaussianModeNormalizer", verbose=verbose)
        self.config = config or HistMatchConfig()

        self.logger.info(
            f"Initialized GaussianModeNormalizer: nbins={self.config.nbins}, "
            f"bin_width_mode={self.config.bin_width_mode}, workers={self.config.workers}"
        )

    def execute(
        self,
        input_path: Path,
        output_path: Path,
        **kwargs: Any
    ) -> Dict[str, Any]:
        """Normalize every slice of a stack file and save the result.

        Args:
            input_path: Path to input stack (.tif, .tiff, .nii, .nii.gz)
            output_path: Path to output stack
            **kwargs: Additional parameters:
                - allow_overwrite: Allow overwriting existing files (bool)
                - cancel_event: threading.Event checked between slices

        Returns:
            Dictionary containing:
                - 'n_slices': Number of slices
                - 'slice_shape': [height, width]
                - 'fits': Per-slice fit summaries (mean, sigma, window, ...)
                - 'original_range': Original intensity range [min, max]
                - 'normalized_range': Normalized intensity range [min, max]

        Raises:
            FileNotFoundError: If input file does not exist
            FileExistsError: If output exists and allow_overwrite is False
            ValueError: If either path is not a TIFF or NIfTI file
            SliceNormalizationError: If a slice cannot be normalized
            RuntimeError: If reading or writing the stack fails
        """
        allow_overwrite = kwargs.get("allow_overwrite", False)
        cancel_event = kwargs.get("cancel_event", None)

        input_path, output_path = self.prepare_paths(
            input_path, output_path, allow_overwrite=allow_overwrite
        )

        try:
            stack, info = read_stack(input_path)
            original_range = [float(stack.min()), float(stack.max())]

            result = normalize_stack_detailed(
                stack, config=self.config, cancel_event=cancel_event
            )
            normalized = result.stack
            normalized_range = [float(normalized.min()), float(normalized.max())]

            self.logger.info(
                f"Original range: [{original_range[0]:.3f}, {original_range[1]:.3f}]"
            )
            self.logger.info(
                f"Normalized range: [{normalized_range[0]:.3f}, {normalized_range[1]:.3f}]"
            )

            self.logger.debug(f"Saving normalized stack: {output_path}")
            write_stack(output_path, normalized, info)

            self.logger.info("Gaussian mode normalization complete")

            return {
                "n_slices": len(result),
                "slice_shape": list(normalized.shape[1:]),
                "fits": result.fits(),
                "original_range": original_range,
                "normalized_range": normalized_range,
            }

        except HistMatchError:
            raise
        except Exception as e:
            self.logger.error(f"Gaussian mode normalization failed: {e}")
            raise RuntimeError(f"Normalization failed: {e}") from e

    def visualize(
        self,
        before_path: Path,
        after_path: Path,
        output_path: Path,
        **kwargs: Any
    ) -> None:
        """Generate visualization comparing before and after normalization.

        Creates a figure with:
        - Middle slice before and after normalization
        - Histogram of the middle slice with the fitted Gaussian and mode window
        - Fitted mode intensity and sigma for every slice of the stack

        Args:
            before_path: Path to input stack
            after_path: Path to normalized stack
            output_path: Path to save visualization (PNG)
            **kwargs: Metadata returned by execute():
                - 'fits': Per-slice fit summaries
                - 'original_range': Original intensity range
                - 'normalized_range': Normalized intensity range

        Raises:
            FileNotFoundError: If input files do not exist
            RuntimeError: If visualization generation fails
        """
        import matplotlib
        matplotlib.use('Agg')
        import matplotlib.pyplot as plt

        fits = kwargs.get("fits") or []
        original_range = kwargs.get("original_range")
        normalized_range = kwargs.get("normalized_range")

        output_path = Path(output_path)
        self.logger.info(f"Generating normalization visualization: {output_path}")

        try:
            before, _ = read_stack(Path(before_path))
            after, _ = read_stack(Path(after_path))

            mid = before.shape[0] // 2
            fig, axes = plt.subplots(2, 2, figsize=(12, 10))
            fig.suptitle(
                f'Gaussian Mode Normalization: {Path(before_path).name}',
                fontsize=16,
                fontweight='bold'
            )

            axes[0, 0].imshow(before[mid], cmap='gray')
            axes[0, 0].set_title(f'Original - Slice {mid}', fontsize=12)
            axes[0, 0].axis('off')

            axes[0, 1].imshow(after[mid], cmap='gray')
            axes[0, 1].set_title(f'Normalized - Slice {mid}', fontsize=12)
            axes[0, 1].axis('off')

            if mid < len(fits):
                fit = fits[mid]
                nbins = self.config.nbins
                edges = fit["origin"] + fit["bin_width"] * np.arange(nbins + 1)
                counts, _ = np.histogram(
                    np.clip(before[mid].ravel(), edges[0], edges[-1]), bins=edges
                )
                centers = fit["origin"] + fit["bin_width"] * np.arange(nbins)
                axes[1, 0].bar(
                    centers, counts, width=fit["bin_width"], align='edge',
                    alpha=0.6, color='blue', label='Histogram'
                )
                model = gaussian(np.arange(nbins), fit["height"], fit["mean"], fit["sigma"])
                axes[1, 0].plot(centers, model, 'r-', linewidth=2, label='Gaussian fit')
                for border in (fit["lower_border"], fit["fit_stop"]):
                    axes[1, 0].axvline(
                        fit["origin"] + border * fit["bin_width"],
                        color='orange', linestyle=':', linewidth=1.5
                    )
                axes[1, 0].axvline(
                    fit["mode_intensity"], color='green', linestyle='--', linewidth=2,
                    label=f'Mode={fit["mode_intensity"]:.2f}'
                )
                axes[1, 0].legend(fontsize=8)
            axes[1, 0].set_xlabel('Intensity', fontsize=10)
            axes[1, 0].set_ylabel('Count', fontsize=10)
            axes[1, 0].set_title('Original Histogram + Fit', fontsize=12)
            axes[1, 0].grid(True, alpha=0.3)

            if fits:
                indices = [f["slice_index"] for f in fits]
                axes[1, 1].plot(indices, [f["mode_intensity"] for f in fits], 'b.-', label='Mode intensity')
                ax_sigma = axes[1, 1].twinx()
                ax_sigma.plot(indices, [f["sigma"] for f in fits], 'r.-', label='Sigma (bins)')
                ax_sigma.set_ylabel('Sigma (bins)', fontsize=10)
            axes[1, 1].set_xlabel('Slice', fontsize=10)
            axes[1, 1].set_ylabel('Mode intensity', fontsize=10)
            axes[1, 1].set_title('Fit Parameters per Slice', fontsize=12)
            axes[1, 1].grid(True, alpha=0.3)

            if original_range is not None and normalized_range is not None:
                metadata_text = (
                    f"Normalization Method: Gaussian mode (nbins={self.config.nbins}, "
                    f"{self.config.bin_width_mode})\n"
                    f"Original Range: [{original_range[0]:.3f}, {original_range[1]:.3f}]\n"
                    f"Normalized Range: [{normalized_range[0]:.3f}, {normalized_range[1]:.3f}]"
                )
                fig.text(
                    0.5, 0.01,
                    metadata_text,
                    ha='center',
                    fontsize=10,
                    family='monospace',
                    bbox=dict(boxstyle='round', facecolor='wheat', alpha=0.5)
                )

            plt.tight_layout(rect=[0, 0.08, 1, 0.96])

            output_path.parent.mkdir(parents=True, exist_ok=True)

            plt.savefig(output_path, dpi=150, bbox_inches='tight')
            plt.close(fig)

            self.logger.info(f"Visualization saved to {output_path}")

        except Exception as e:
            self.logger.error(f"Visualization generation failed: {e}")
            raise RuntimeError(f"Visualization failed: {e}") from e
