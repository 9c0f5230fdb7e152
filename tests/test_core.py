"""Tests for core utilities."""

from pathlib import Path

import pytest
import torch
from omegaconf.errors import ConfigKeyError, ValidationError

from linscore.core.configs import EvalConfig, KernelConfig, ReductionConfig, config_from_dict, config_to_dict
from linscore.core.utils import get_device, memory_allocated, resolve_dtype, synchronize
from linscore.utils.config import load_config, load_eval_config, save_config


class TestConfig:
    """Tests for configuration utilities."""

    def test_load_config_from_file(self, tmp_path: Path) -> None:
        """Test loading a config file."""
        config_file = tmp_path / "test.yaml"
        config_file.write_text("reduction:\n  strategy: tree\n  tree_threshold: 64\n")

        config = load_config(config_file)

        assert config.reduction.strategy == "tree"
        assert config.reduction.tree_threshold == 64

    def test_load_config_with_overrides(self, tmp_path: Path) -> None:
        """Test loading config with CLI overrides."""
        config_file = tmp_path / "test.yaml"
        config_file.write_text("kernel:\n  max_threads_per_block: 256\n")

        config = load_config(config_file, overrides=["kernel.max_threads_per_block=512"])

        assert config.kernel.max_threads_per_block == 512

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test that a missing config file is reported."""
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_save_and_reload_eval_config(self, tmp_path: Path) -> None:
        """Test an EvalConfig survives a YAML round trip."""
        config = EvalConfig(reduction=ReductionConfig(strategy="auto", tree_threshold=10))
        config_file = tmp_path / "output.yaml"

        save_config(config, config_file)
        loaded = load_eval_config(config_file)

        assert loaded == config

    def test_eval_config_defaults(self) -> None:
        """Test schema defaults without a file."""
        assert load_eval_config() == EvalConfig()

    def test_eval_config_overrides(self) -> None:
        """Test dotlist overrides on top of the schema."""
        config = load_eval_config(overrides=["device.name=cpu", "scratch.enabled=true"])

        assert config.device.name == "cpu"
        assert config.scratch.enabled is True

    def test_unknown_key_rejected(self) -> None:
        """Test that typos in keys are not silently ignored."""
        with pytest.raises(ConfigKeyError):
            load_eval_config(overrides=["reduction.stratgy=tree"])

    def test_wrong_type_rejected(self) -> None:
        """Test that values are type-checked against the schema."""
        with pytest.raises(ValidationError):
            load_eval_config(overrides=["kernel.max_threads_per_block=many"])

    def test_shipped_config_loads(self) -> None:
        """Test the default YAML in configs/ matches the schema."""
        config_file = Path(__file__).parent.parent / "configs" / "eval.yaml"
        assert load_eval_config(config_file) == EvalConfig()


class TestSchema:
    """Tests for dataclass validation."""

    def test_thread_cap_validated(self) -> None:
        """Test launch limits outside [1, 1024] are rejected."""
        with pytest.raises(ValueError, match="max_threads_per_block"):
            KernelConfig(max_threads_per_block=2048)

    def test_strategy_validated(self) -> None:
        """Test unknown reduction strategies are rejected."""
        with pytest.raises(ValueError, match="strategy"):
            ReductionConfig(strategy="warp")

    def test_dict_round_trip(self) -> None:
        """Test dict conversion in both directions."""
        config = EvalConfig(verbose=True, log_level="DEBUG")
        assert config_from_dict(config_to_dict(config)) == config


class TestDevice:
    """Tests for device helpers."""

    def test_explicit_device(self) -> None:
        """Test explicit names are passed through."""
        assert get_device("cpu") == torch.device("cpu")

    def test_auto_device(self) -> None:
        """Test auto picks an available device."""
        device = get_device()
        if torch.cuda.is_available():
            assert device.type == "cuda"
        else:
            assert device.type in ("mps", "cpu")

    def test_resolve_dtype(self) -> None:
        """Test dtype names map to torch dtypes."""
        assert resolve_dtype("float64") is torch.float64
        with pytest.raises(ValueError, match="Unsupported dtype"):
            resolve_dtype("int8")

    def test_cpu_synchronize_and_memory(self) -> None:
        """Test CPU synchronization is a no-op and memory is untracked."""
        synchronize(torch.device("cpu"))
        assert memory_allocated(torch.device("cpu")) == 0
