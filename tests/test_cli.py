"""Tests for the histmatch-normalize command line."""

import json

import numpy as np
import tifffile

from histmatch.cli.normalize import build_config, main, parse_arguments


def write_stack(path, zero_slice=None):
    rng = np.random.RandomState(3)
    stack = rng.normal(100.0, 10.0, size=(2, 64, 64))
    bright = rng.rand(2, 64, 64) < 0.05
    stack[bright] = 400.0
    stack = np.clip(stack, 0, None).astype(np.float32)
    if zero_slice is not None:
        stack[zero_slice] = 0.0
    tifffile.imwrite(str(path), stack)
    return path


class TestArguments:
    """Argument parsing and config merging."""

    def test_overrides_applied(self, tmp_path):
        args = parse_arguments([
            str(tmp_path / "in.tif"), "--nbins", "64", "--workers", "2",
            "--bin-width-mode", "range",
        ])

        config = build_config(args)

        assert config.nbins == 64
        assert config.workers == 2
        assert config.bin_width_mode == "range"

    def test_yaml_then_overrides(self, tmp_path):
        config_path = tmp_path / "histmatch.yaml"
        config_path.write_text("histmatch:\n  nbins: 256\n  workers: 3\n")
        args = parse_arguments([
            str(tmp_path / "in.tif"), "--config", str(config_path), "--workers", "1",
        ])

        config = build_config(args)

        assert config.nbins == 256
        assert config.workers == 1


class TestMain:
    """Exit codes and outputs."""

    def test_default_output_and_record(self, tmp_path):
        input_path = write_stack(tmp_path / "stack.tif")

        code = main([str(input_path), "--record"])

        assert code == 0
        output_path = tmp_path / "stack_hm.tif"
        assert tifffile.imread(str(output_path)).shape == (2, 64, 64)
        record = json.loads((tmp_path / "stack_hm_fits.json").read_text())
        assert record["n_slices"] == 2

    def test_visualize(self, tmp_path):
        input_path = write_stack(tmp_path / "stack.tif")
        viz_path = tmp_path / "figure.png"

        code = main([str(input_path), "-o", str(tmp_path / "out.tif"), "--visualize", str(viz_path)])

        assert code == 0
        assert viz_path.exists()

    def test_missing_input(self, tmp_path):
        assert main([str(tmp_path / "missing.tif")]) == 1

    def test_existing_output_needs_overwrite(self, tmp_path):
        input_path = write_stack(tmp_path / "stack.tif")
        output_path = tmp_path / "out.tif"
        output_path.touch()

        assert main([str(input_path), "-o", str(output_path)]) == 1
        assert main([str(input_path), "-o", str(output_path), "--overwrite"]) == 0

    def test_invalid_configuration(self, tmp_path):
        input_path = write_stack(tmp_path / "stack.tif")

        assert main([str(input_path), "--nbins", "0"]) == 2

    def test_quoted_number_in_config_file(self, tmp_path):
        input_path = write_stack(tmp_path / "stack.tif")
        config_path = tmp_path / "histmatch.yaml"
        config_path.write_text('histmatch:\n  max_evaluations: "100"\n')

        assert main([str(input_path), "--config", str(config_path)]) == 2

    def test_failing_slice(self, tmp_path):
        input_path = write_stack(tmp_path / "stack.tif", zero_slice=1)

        assert main([str(input_path)]) == 3
        assert not (tmp_path / "stack_hm.tif").exists()
