from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Tuple
import logging

from histmatch.io import stack_format

logger = logging.getLogger(__name__)


class BaseStackStep(ABC):
    """Base class for operations that turn one stack file into another.

    Subclasses provide execute() and visualize(). Path handling lives here:
    both ends must be TIFF or NIfTI, the input must exist and an existing
    output is only replaced when asked to.

    Attributes:
        step_name: Name used in log records
        verbose: Whether DEBUG records are emitted
    """

    def __init__(self, step_name: str, verbose: bool = False) -> None:
        self.step_name = step_name
        self.verbose = verbose
        self.logger = logging.getLogger(f"{__name__}.{step_name}")
        if verbose:
            self.logger.setLevel(logging.DEBUG)

    @abstractmethod
    def execute(self, input_path: Path, output_path: Path, **kwargs: Any) -> Any:
        """Read the stack at input_path, process it and write output_path."""
        pass

    @abstractmethod
    def visualize(
        self,
        before_path: Path,
        after_path: Path,
        output_path: Path,
        **kwargs: Any
    ) -> None:
        """Save a figure comparing the stack before and after processing."""
        pass

    def validate_inputs(self, input_path: Path) -> None:
        """Check that the input stack exists and has a readable format.

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the extension is not a supported stack format
        """
        if not input_path.exists():
            raise FileNotFoundError(f"Input stack not found: {input_path}")
        fmt = stack_format(input_path)

        self.logger.debug(f"Input stack ({fmt}): {input_path}")

    def validate_outputs(self, output_path: Path, allow_overwrite: bool = False) -> None:
        """Check the output format and overwrite policy, creating parent directories.

        Raises:
            ValueError: If the extension is not a supported stack format
            FileExistsError: If the file exists and allow_overwrite is False
        """
        fmt = stack_format(output_path)
        if output_path.exists() and not allow_overwrite:
            raise FileExistsError(
                f"Output stack exists and overwrite=False: {output_path}"
            )

        output_path.parent.mkdir(parents=True, exist_ok=True)

        self.logger.debug(f"Output stack ({fmt}): {output_path}")

    def prepare_paths(
        self,
        input_path: Path,
        output_path: Path,
        allow_overwrite: bool = False
    ) -> Tuple[Path, Path]:
        """Validate both ends of a run and log it; returns the paths as Path objects."""
        input_path = Path(input_path)
        output_path = Path(output_path)

        self.validate_inputs(input_path)
        self.validate_outputs(output_path, allow_overwrite=allow_overwrite)

        self.logger.info(
            f"[{self.step_name}] {input_path.name} -> {output_path.name}"
        )
        return input_path, output_path
