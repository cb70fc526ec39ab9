"""Unit tests for configuration validation and YAML loading."""

import pytest

from histmatch.config import HistMatchConfig, load_config
from histmatch.errors import ConfigurationError


class TestHistMatchConfig:
    """Dataclass defaults and validation."""

    def test_defaults(self):
        config = HistMatchConfig()

        assert config.nbins == 128
        assert config.bin_width_mode == "legacy"
        assert config.workers == 1
        assert config.output_dtype == "float32"
        assert config.save_visualization is False

    @pytest.mark.parametrize("nbins", [0, -4, 1.5, True, "128"])
    def test_invalid_nbins(self, nbins):
        with pytest.raises(ConfigurationError, match="nbins"):
            HistMatchConfig(nbins=nbins)

    def test_invalid_bin_width_mode(self):
        with pytest.raises(ConfigurationError, match="bin_width_mode"):
            HistMatchConfig(bin_width_mode="minmax")

    @pytest.mark.parametrize("workers", [0, -1, 2.0])
    def test_invalid_workers(self, workers):
        with pytest.raises(ConfigurationError, match="workers"):
            HistMatchConfig(workers=workers)

    @pytest.mark.parametrize("dtype", ["int16", "uint8", "not-a-dtype"])
    def test_invalid_output_dtype(self, dtype):
        with pytest.raises(ConfigurationError, match="output_dtype"):
            HistMatchConfig(output_dtype=dtype)

    @pytest.mark.parametrize("max_evaluations", [0, -5, 1.5, "100", True])
    def test_invalid_max_evaluations(self, max_evaluations):
        with pytest.raises(ConfigurationError, match="max_evaluations"):
            HistMatchConfig(max_evaluations=max_evaluations)

    @pytest.mark.parametrize("value", ["yes", 1, None])
    def test_invalid_save_visualization(self, value):
        with pytest.raises(ConfigurationError, match="save_visualization"):
            HistMatchConfig(save_visualization=value)

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            HistMatchConfig(nbins=0)

    def test_to_dict(self):
        data = HistMatchConfig(nbins=64).to_dict()

        assert data["nbins"] == 64
        assert data["bin_width_mode"] == "legacy"


class TestLoadConfig:
    """YAML loading."""

    def test_load_full_section(self, tmp_path):
        path = tmp_path / "histmatch.yaml"
        path.write_text(
            "histmatch:\n"
            "  nbins: 256\n"
            "  bin_width_mode: range\n"
            "  workers: 4\n"
        )

        config = load_config(path)

        assert config.nbins == 256
        assert config.bin_width_mode == "range"
        assert config.workers == 4
        assert config.output_dtype == "float32"

    def test_empty_section_uses_defaults(self, tmp_path):
        path = tmp_path / "histmatch.yaml"
        path.write_text("histmatch:\n")

        assert load_config(path) == HistMatchConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        with pytest.raises(ConfigurationError, match="Empty"):
            load_config(path)

    def test_missing_section(self, tmp_path):
        path = tmp_path / "other.yaml"
        path.write_text("preprocessing:\n  nbins: 64\n")

        with pytest.raises(ConfigurationError, match="histmatch"):
            load_config(path)

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "typo.yaml"
        path.write_text("histmatch:\n  nbin: 64\n")

        with pytest.raises(ConfigurationError, match="nbin"):
            load_config(path)

    def test_invalid_value(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("histmatch:\n  nbins: 0\n")

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_quoted_number_rejected(self, tmp_path):
        path = tmp_path / "quoted.yaml"
        path.write_text('histmatch:\n  max_evaluations: "100"\n')

        with pytest.raises(ConfigurationError, match="max_evaluations"):
            load_config(path)

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("histmatch: [unclosed\n")

        with pytest.raises(ConfigurationError, match="parse"):
            load_config(path)
