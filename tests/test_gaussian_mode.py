"""Tests for file-level Gaussian mode normalization and run records."""

import json
from pathlib import Path
import shutil
import tempfile

import pytest
import numpy as np
import tifffile

from histmatch.config import HistMatchConfig
from histmatch.errors import SliceNormalizationError
from histmatch.normalization.gaussian_mode import GaussianModeNormalizer
from histmatch.utils.run_record import NormalizationRecord, default_record_path


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    d = tempfile.mkdtemp()
    yield Path(d)
    shutil.rmtree(d)


def create_stack_file(temp_dir, filename="stack.tif", n_slices=3, shape=(96, 96)):
    """Write a synthetic stack with drifting background brightness."""
    rng = np.random.RandomState(42)
    slices = []
    for i in range(n_slices):
        background = 100.0 + 50.0 * i
        data = rng.normal(background, background / 10, size=shape)
        bright = rng.rand(*shape) < 0.05
        data[bright] = rng.normal(4 * background, background / 3, size=int(bright.sum()))
        slices.append(np.clip(data, 0, None))
    stack = np.stack(slices).astype(np.float32)
    path = temp_dir / filename
    tifffile.imwrite(str(path), stack)
    return path, stack


class TestExecute:
    """GaussianModeNormalizer.execute()."""

    def test_writes_normalized_stack(self, temp_dir):
        input_path, stack = create_stack_file(temp_dir)
        output_path = temp_dir / "stack_hm.tif"

        normalizer = GaussianModeNormalizer(HistMatchConfig(nbins=128))
        result = normalizer.execute(input_path, output_path)

        assert output_path.exists()
        out = tifffile.imread(str(output_path))
        assert out.shape == stack.shape
        assert out.dtype == np.float32

        assert result["n_slices"] == 3
        assert result["slice_shape"] == [96, 96]
        assert len(result["fits"]) == 3
        assert result["original_range"][1] == pytest.approx(float(stack.max()))
        assert result["normalized_range"][0] < 0 < result["normalized_range"][1]

    def test_refuses_overwrite(self, temp_dir):
        input_path, _ = create_stack_file(temp_dir)
        output_path = temp_dir / "out.tif"
        output_path.touch()

        normalizer = GaussianModeNormalizer()
        with pytest.raises(FileExistsError):
            normalizer.execute(input_path, output_path)

        normalizer.execute(input_path, output_path, allow_overwrite=True)
        assert tifffile.imread(str(output_path)).shape == (3, 96, 96)

    def test_missing_input(self, temp_dir):
        with pytest.raises(FileNotFoundError):
            GaussianModeNormalizer().execute(temp_dir / "nope.tif", temp_dir / "out.tif")

    def test_slice_error_propagates(self, temp_dir):
        _, stack = create_stack_file(temp_dir)
        stack[1] = 0.0
        input_path = temp_dir / "bad.tif"
        tifffile.imwrite(str(input_path), stack)
        output_path = temp_dir / "bad_hm.tif"

        with pytest.raises(SliceNormalizationError) as exc_info:
            GaussianModeNormalizer().execute(input_path, output_path)

        assert exc_info.value.slice_index == 1
        assert not output_path.exists()

    def test_unsupported_output_format(self, temp_dir):
        input_path, _ = create_stack_file(temp_dir)

        with pytest.raises(ValueError, match="Unsupported"):
            GaussianModeNormalizer().execute(input_path, temp_dir / "out.png")
        assert not (temp_dir / "out.png").exists()

    def test_unreadable_stack(self, temp_dir):
        input_path = temp_dir / "corrupt.tif"
        input_path.write_bytes(b"not a tiff")

        with pytest.raises(RuntimeError, match="Normalization failed"):
            GaussianModeNormalizer().execute(input_path, temp_dir / "out.tif")


class TestVisualize:
    """Before/after figure."""

    def test_creates_png(self, temp_dir):
        input_path, _ = create_stack_file(temp_dir)
        output_path = temp_dir / "stack_hm.tif"
        viz_path = temp_dir / "viz" / "stack_hm.png"

        normalizer = GaussianModeNormalizer()
        result = normalizer.execute(input_path, output_path)
        normalizer.visualize(input_path, output_path, viz_path, **result)

        assert viz_path.exists()
        assert viz_path.stat().st_size > 0

    def test_missing_stack_raises_runtime_error(self, temp_dir):
        with pytest.raises(RuntimeError, match="Visualization failed"):
            GaussianModeNormalizer().visualize(
                temp_dir / "a.tif", temp_dir / "b.tif", temp_dir / "viz.png"
            )


class TestNormalizationRecord:
    """JSON record of per-slice fits."""

    def test_save_and_load(self, temp_dir):
        input_path, _ = create_stack_file(temp_dir)
        output_path = temp_dir / "stack_hm.tif"
        config = HistMatchConfig(nbins=64)

        result = GaussianModeNormalizer(config).execute(input_path, output_path)
        record = NormalizationRecord.from_result(input_path, output_path, config, result)
        record_path = default_record_path(output_path)
        record.save(record_path)

        assert record_path.name == "stack_hm_fits.json"
        data = json.loads(record_path.read_text())
        assert data["config"]["nbins"] == 64
        assert data["n_slices"] == 3
        assert len(data["slices"]) == 3
        assert {"mean", "sigma", "lower_border", "fit_stop"} <= set(data["slices"][0])

        loaded = NormalizationRecord.load(record_path)
        assert loaded.slices == record.slices

    def test_default_record_path_for_nifti(self):
        assert default_record_path(Path("out/brain_hm.nii.gz")) == Path("out/brain_hm_fits.json")
